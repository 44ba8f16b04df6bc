# settler/storage/artifact_writer.py
# RunPackWriter -- writes the canonical run pack of one reconciliation.
#
# RPW-01: left, right, ruleset, report and manifest files contain exactly the
#         canonical JSON bytes the manifest digests were computed over.
#         Records are written re-canonicalized and sorted by the ruleset's
#         match keys, so the files verify against the manifest.
# RPW-02: File names come from the manifest entries. A name that is not a
#         bare file name (contains a directory part) is rejected.
# RPW-03: The audit log is pretty-printed JSON and is NOT covered by the
#         manifest.
# RPW-04: The output directory is created if it does not exist.

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

from settler.kernel.canonicalizer import canonicalize_for_hash
from settler.kernel.domain import EvidenceManifest, Record, Ruleset, VarianceReport
from settler.kernel.exceptions import ArtifactFormatError
from settler.kernel.kernel_version import KERNEL_VERSION, STORAGE_FORMAT_VERSION
from settler.kernel.serialization import (
    canonical_json_bytes,
    manifest_to_dict,
    records_to_list,
    report_to_dict,
    ruleset_to_dict,
)
from settler.utils.constants import DEFAULT_AUDIT_LOG_FILE_NAME, DEFAULT_MANIFEST_FILE_NAME

PathLike = Union[str, Path]


def _check_file_name(name: str) -> str:
    """RPW-02: Only bare file names may be written into the run pack."""
    if not name or Path(name).name != name or name in (".", ".."):
        raise ArtifactFormatError(
            "manifest", "file name must be a bare file name: " + repr(name), "file_name"
        )
    return name


def _write_bytes(path: Path, payload: bytes) -> None:
    with open(path, "wb") as f:
        f.write(payload)


def build_run_pack(
    records_left:  Iterable[Record],
    records_right: Iterable[Record],
    ruleset:       Ruleset,
    report:        VarianceReport,
    manifest:      EvidenceManifest,
    manifest_name: str = DEFAULT_MANIFEST_FILE_NAME,
) -> Dict[str, bytes]:
    """
    Canonical bytes of every run pack file, keyed by file name in write
    order: left, right, ruleset, report, manifest.

    Raises ArtifactFormatError if a name is not a bare file name or two
    names collide.
    """
    left_sorted  = canonicalize_for_hash(records_left, ruleset.match_keys)
    right_sorted = canonicalize_for_hash(records_right, ruleset.match_keys)

    payloads = [
        (manifest.inputs.left_records.file_name,     records_to_list(left_sorted)),
        (manifest.inputs.right_records.file_name,    records_to_list(right_sorted)),
        (manifest.ruleset.file_name,                 ruleset_to_dict(ruleset)),
        (manifest.outputs.variance_report.file_name, report_to_dict(report)),
        (manifest_name,                              manifest_to_dict(manifest)),
    ]

    names = [_check_file_name(name) for name, _ in payloads]
    if len(set(names)) != len(names):
        raise ArtifactFormatError(
            "manifest", "run pack file names must be distinct: " + repr(names)
        )
    return {name: canonical_json_bytes(obj) for name, obj in payloads}


class RunPackWriter:
    """
    Writes one run pack (RPW-01 through RPW-04) into an output directory.
    """

    def write(
        self,
        out_dir:       PathLike,
        records_left:  Iterable[Record],
        records_right: Iterable[Record],
        ruleset:       Ruleset,
        report:        VarianceReport,
        manifest:      EvidenceManifest,
        manifest_name: str = DEFAULT_MANIFEST_FILE_NAME,
    ) -> Dict[str, Path]:
        """
        Write records, ruleset, report and manifest. Returns a mapping of
        file name -> written path, in write order.
        """
        pack = build_run_pack(
            records_left, records_right, ruleset, report, manifest, manifest_name
        )
        directory = Path(out_dir)
        directory.mkdir(parents=True, exist_ok=True)

        written: Dict[str, Path] = {}
        for name, payload in pack.items():
            path = directory / name
            _write_bytes(path, payload)
            written[name] = path
        return written

    def write_audit_log(
        self,
        out_dir:   PathLike,
        events:    List[Dict[str, Any]],
        file_name: str = DEFAULT_AUDIT_LOG_FILE_NAME,
    ) -> Path:
        """RPW-03: Write EventLogger.export() output as pretty-printed JSON."""
        directory = Path(out_dir)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / _check_file_name(file_name)

        payload = {
            "format_version": STORAGE_FORMAT_VERSION,
            "kernel_version": KERNEL_VERSION,
            "event_count":    len(events),
            "events":         events,
        }
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)
        return path
