# settler/kernel/manifest.py
# Manifest Builder -- evidence bundle over canonical inputs, ruleset and report.
#
# Four digests, each SHA-256 over canonical JSON bytes:
#   left_records   -- records re-canonicalized and sorted (match key dropped)
#   right_records  -- same, right side
#   ruleset        -- ruleset object
#   variance_report-- report object (includes summary_hash)
#
# The file names are labels chosen by the caller. Whoever writes the run pack
# must write exactly the canonical bytes under those names for the manifest
# to verify (see settler.storage.artifact_writer).

from __future__ import annotations

from typing import Iterable

from settler.utils.constants import (
    DEFAULT_LEFT_FILE_NAME,
    DEFAULT_REPORT_FILE_NAME,
    DEFAULT_RIGHT_FILE_NAME,
    DEFAULT_RULESET_FILE_NAME,
    DETERMINISTIC_STATEMENT,
    SCHEMA_VERSION,
)
from .canonicalizer import canonicalize_for_hash
from .domain import (
    EvidenceManifest,
    ManifestFileHash,
    ManifestInputs,
    ManifestOutputs,
    Record,
    Ruleset,
    VarianceReport,
)
from .kernel_version import KERNEL_VERSION
from .serialization import (
    hash_canonical,
    records_to_list,
    report_to_dict,
    ruleset_to_dict,
)


def build_manifest(
    records_left:      Iterable[Record],
    records_right:     Iterable[Record],
    ruleset:           Ruleset,
    report:            VarianceReport,
    left_file_name:    str = DEFAULT_LEFT_FILE_NAME,
    right_file_name:   str = DEFAULT_RIGHT_FILE_NAME,
    ruleset_file_name: str = DEFAULT_RULESET_FILE_NAME,
    report_file_name:  str = DEFAULT_REPORT_FILE_NAME,
) -> EvidenceManifest:
    """
    Build the EvidenceManifest for a computed report.

    Raises UnknownSelectorError if the ruleset's match keys cannot be
    resolved (the same keys the report was computed with).
    """
    left_sorted  = canonicalize_for_hash(records_left, ruleset.match_keys)
    right_sorted = canonicalize_for_hash(records_right, ruleset.match_keys)

    return EvidenceManifest(
        schema_version=SCHEMA_VERSION,
        kernel_version=KERNEL_VERSION,
        inputs=ManifestInputs(
            left_records=ManifestFileHash(
                file_name=left_file_name,
                sha256=hash_canonical(records_to_list(left_sorted)),
            ),
            right_records=ManifestFileHash(
                file_name=right_file_name,
                sha256=hash_canonical(records_to_list(right_sorted)),
            ),
        ),
        ruleset=ManifestFileHash(
            file_name=ruleset_file_name,
            sha256=hash_canonical(ruleset_to_dict(ruleset)),
        ),
        outputs=ManifestOutputs(
            variance_report=ManifestFileHash(
                file_name=report_file_name,
                sha256=hash_canonical(report_to_dict(report)),
            ),
            variance_summary_hash=report.summary_hash,
        ),
        deterministic_statement=DETERMINISTIC_STATEMENT,
    )
