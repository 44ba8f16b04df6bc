# settler/storage/artifact_loader.py
# ArtifactLoader -- loads records, rulesets, reports and manifests from JSON.
#
# LDR-01: A missing file is a hard failure (ArtifactFormatError).
# LDR-02: Invalid UTF-8 or invalid JSON is a hard failure (ArtifactFormatError).
# LDR-03: Records are accepted as a JSON array or as {"records": [...]}.
# LDR-04: Decoding is delegated to settler.kernel.serialization so that the
#         loader and the kernel agree on every field rule.
#
# The loader never re-orders or normalizes records; canonicalization is the
# kernel's job.

from pathlib import Path
from typing import Any, List, Union

from settler.kernel.domain import EvidenceManifest, Record, Ruleset, VarianceReport
from settler.kernel.exceptions import ArtifactFormatError
from settler.kernel.serialization import (
    loads_document,
    manifest_from_dict,
    records_from_list,
    report_from_dict,
    ruleset_from_dict,
)

PathLike = Union[str, Path]


def read_bytes(path: PathLike, artifact: str) -> bytes:
    """LDR-01: Read a file as raw bytes or raise ArtifactFormatError."""
    filepath = Path(path)
    if not filepath.is_file():
        raise ArtifactFormatError(artifact, "file not found: " + str(filepath))
    with open(filepath, "rb") as f:
        return f.read()


def _load_document(path: PathLike, artifact: str) -> Any:
    return loads_document(read_bytes(path, artifact), artifact)


class ArtifactLoader:
    """
    Loads wire documents from disk and decodes them into kernel types.
    Every failure surfaces as ArtifactFormatError naming the artifact.
    """

    def load_records(self, path: PathLike) -> List[Record]:
        """LDR-03: JSON array of records, or an object with a "records" array."""
        return records_from_list(_load_document(path, "records"))

    def load_ruleset(self, path: PathLike) -> Ruleset:
        return ruleset_from_dict(_load_document(path, "ruleset"))

    def load_report(self, path: PathLike) -> VarianceReport:
        return report_from_dict(_load_document(path, "variance_report"))

    def load_manifest(self, path: PathLike) -> EvidenceManifest:
        return manifest_from_dict(_load_document(path, "manifest"))
