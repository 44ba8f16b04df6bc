# settler/verification/manifest_verifier.py
# Evidence manifest verifier.
#
# Recomputes the SHA-256 digest of every file referenced by an
# EvidenceManifest and compares it with the recorded digest.
#
# MVR-01: Lenient. Every finding is accumulated; ok is True only when the
#         error list is empty.
# MVR-02: Files are checked in fixed order: left records, right records,
#         ruleset, variance report.
# MVR-03: A manifest that cannot be parsed yields exactly one error and no
#         file checks.
# MVR-04: An empty or whitespace-only deterministic_statement is an error.
# MVR-05: Digests are compared as exact lowercase hex strings.
#
# Error strings (stable, consumed by the runner and the browser console):
#   "manifest json invalid: <detail>"
#   "deterministic_statement must be present"
#   "missing file: <file_name>"
#   "hash mismatch for <file_name>: expected <hex>, got <hex>"
#   "invalid content for <file_name>: expected bytes, got <type>"

from __future__ import annotations

from dataclasses import dataclass
from hashlib import sha256
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Tuple, Union

from settler.kernel.domain import EvidenceManifest
from settler.kernel.exceptions import ArtifactFormatError
from settler.kernel.serialization import loads_document, manifest_from_dict, sha256_hex
from settler.utils.constants import DEFAULT_MANIFEST_FILE_NAME

_CHUNK_SIZE: int = 8192


class _UnusableContent(Exception):
    """Raised by a digest lookup when a file is present but cannot be hashed."""


@dataclass(frozen=True)
class VerificationResult:
    """
    Outcome of one verification pass.

    Attributes
    ----------
    ok : bool
        True only when errors is empty.
    errors : Tuple[str, ...]
        Findings in check order.
    """

    ok: bool
    errors: Tuple[str, ...]


def hash_file(path: Path) -> str:
    """
    SHA-256 hex digest of a file, read in 8 KB chunks.

    Raises
    ------
    FileNotFoundError
        If the path does not exist.
    """
    if not path.exists():
        raise FileNotFoundError("File not found: " + str(path))
    hasher = sha256()
    with open(path, "rb") as fh:
        while True:
            chunk = fh.read(_CHUNK_SIZE)
            if not chunk:
                break
            hasher.update(chunk)
    return hasher.hexdigest()


def _parse_manifest(manifest_json: Union[str, bytes]) -> EvidenceManifest:
    return manifest_from_dict(loads_document(manifest_json, "manifest"))


def _check_entries(
    manifest: EvidenceManifest,
    digest_of: Callable[[str], Optional[str]],
) -> List[str]:
    """MVR-02: digest_of(file_name) returns the actual digest, or None if absent."""
    errors: List[str] = []
    if not manifest.deterministic_statement.strip():
        errors.append("deterministic_statement must be present")

    for entry in manifest.file_hashes():
        try:
            actual = digest_of(entry.file_name)
        except _UnusableContent as exc:
            errors.append(str(exc))
            continue
        if actual is None:
            errors.append("missing file: " + entry.file_name)
            continue
        if actual != entry.sha256:
            errors.append(
                "hash mismatch for " + entry.file_name
                + ": expected " + entry.sha256
                + ", got " + actual
            )
    return errors


def verify_manifest(
    manifest_json: Union[str, bytes],
    files: Mapping[str, Optional[bytes]],
) -> VerificationResult:
    """
    Verify an in-memory run pack.

    Parameters
    ----------
    manifest_json : str or bytes
        The manifest document.
    files : Mapping[str, bytes]
        File name -> raw file bytes (bytes, bytearray or memoryview). A None
        value counts as missing; any other type is reported, never coerced.
    """
    try:
        manifest = _parse_manifest(manifest_json)
    except ArtifactFormatError as exc:
        return VerificationResult(ok=False, errors=("manifest json invalid: " + exc.message,))

    def digest_of(file_name: str) -> Optional[str]:
        data = files.get(file_name)
        if data is None:
            return None
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise _UnusableContent(
                "invalid content for " + file_name
                + ": expected bytes, got " + type(data).__name__
            )
        return sha256_hex(bytes(data))

    errors = _check_entries(manifest, digest_of)
    return VerificationResult(ok=not errors, errors=tuple(errors))


def verify_run_pack(
    directory: Union[str, Path],
    manifest_name: str = DEFAULT_MANIFEST_FILE_NAME,
) -> VerificationResult:
    """
    Verify a run pack on disk. Referenced files are resolved inside
    directory; a file name with a directory part counts as missing.
    """
    root = Path(directory)
    manifest_path = root / manifest_name
    if not manifest_path.is_file():
        return VerificationResult(ok=False, errors=("missing file: " + manifest_name,))

    with open(manifest_path, "rb") as fh:
        raw = fh.read()
    try:
        manifest = _parse_manifest(raw)
    except ArtifactFormatError as exc:
        return VerificationResult(ok=False, errors=("manifest json invalid: " + exc.message,))

    def digest_of(file_name: str) -> Optional[str]:
        if not file_name or Path(file_name).name != file_name:
            return None
        path = root / file_name
        if not path.is_file():
            return None
        return hash_file(path)

    errors = _check_entries(manifest, digest_of)
    return VerificationResult(ok=not errors, errors=tuple(errors))
