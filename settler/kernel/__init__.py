from .exceptions import (
    ArtifactFormatError,
    InvalidRoundingIncrementError,
    KernelError,
    KernelValidationError,
    UnknownCompareKeyError,
    UnknownSelectorError,
)
from .domain import (
    AttributeMap,
    CompiledRuleset,
    EvidenceManifest,
    ManifestFileHash,
    ManifestInputs,
    ManifestOutputs,
    Record,
    RoundingMode,
    RoundingRule,
    Ruleset,
    Selector,
    SelectorKind,
    Severity,
    Variance,
    VarianceReport,
    VarianceType,
    parse_selector,
)
from .kernel_version import KERNEL_VERSION
from .rounding import round_amount
from .canonicalizer import (
    build_match_key,
    canonicalize,
    canonicalize_and_sort,
    canonicalize_for_hash,
)
from .variance_builder import build_variance
from .comparator import compare
from .matcher import MatchOutcome, match_records
from .report import VarianceSummary, assemble_report, summarize
from .serialization import (
    canonical_json_bytes,
    hash_canonical,
    manifest_from_dict,
    manifest_to_dict,
    record_from_dict,
    record_to_dict,
    records_from_list,
    records_to_list,
    report_from_dict,
    report_to_dict,
    ruleset_from_dict,
    ruleset_to_dict,
    sha256_hex,
)
from .manifest import build_manifest
from .engine import compute_manifest, compute_variances, validate_ruleset

__all__ = [
    # Exceptions
    "KernelError",
    "KernelValidationError",
    "UnknownSelectorError",
    "UnknownCompareKeyError",
    "InvalidRoundingIncrementError",
    "ArtifactFormatError",
    # Enumerations
    "RoundingMode",
    "VarianceType",
    "Severity",
    "SelectorKind",
    # Domain dataclasses
    "Selector",
    "parse_selector",
    "AttributeMap",
    "Record",
    "RoundingRule",
    "Ruleset",
    "CompiledRuleset",
    "Variance",
    "VarianceReport",
    "ManifestFileHash",
    "ManifestInputs",
    "ManifestOutputs",
    "EvidenceManifest",
    # Components
    "round_amount",
    "canonicalize",
    "build_match_key",
    "canonicalize_and_sort",
    "canonicalize_for_hash",
    "build_variance",
    "compare",
    "MatchOutcome",
    "match_records",
    "VarianceSummary",
    "assemble_report",
    "summarize",
    "build_manifest",
    # Canonical serialization
    "sha256_hex",
    "canonical_json_bytes",
    "hash_canonical",
    "record_to_dict",
    "records_to_list",
    "ruleset_to_dict",
    "report_to_dict",
    "manifest_to_dict",
    "record_from_dict",
    "records_from_list",
    "ruleset_from_dict",
    "report_from_dict",
    "manifest_from_dict",
    # Entry points
    "KERNEL_VERSION",
    "validate_ruleset",
    "compute_variances",
    "compute_manifest",
]
