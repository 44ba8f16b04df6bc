# settler/kernel/serialization.py
# Canonical JSON codec for the v1 wire format.
#
# CANONICAL FORM (every digest is computed over exactly these bytes):
#   - Object fields in DECLARED order (the order of the dataclass fields),
#     not alphabetical. Attribute maps are emitted in lexicographic key order.
#   - Compact separators (",", ":"). No whitespace. No trailing newline.
#   - ensure_ascii=False, UTF-8 encoded; control characters escaped.
#   - None -> null. Enums -> their wire value. Integers as plain integers.
#   - NaN / Infinity rejected (allow_nan=False).
#
# Decoding (*_from_dict) raises ArtifactFormatError naming the artifact and
# the offending field. Unknown fields are ignored.

from __future__ import annotations

import json
from hashlib import sha256
from typing import Any, Dict, Iterable, List, Union

from .domain import (
    AttributeMap,
    EvidenceManifest,
    ManifestFileHash,
    ManifestInputs,
    ManifestOutputs,
    Record,
    RoundingMode,
    RoundingRule,
    Ruleset,
    Severity,
    Variance,
    VarianceReport,
    VarianceType,
)
from .exceptions import ArtifactFormatError, KernelValidationError


# =============================================================================
# SECTION 1 -- HASHING PRIMITIVES
# =============================================================================

def sha256_hex(data: bytes) -> str:
    """Return the 64-character lowercase hex SHA-256 digest of data."""
    return sha256(data).hexdigest()


def canonical_json_bytes(obj: Any) -> bytes:
    """Serialize a JSON-ready object (dicts in declared order) to canonical bytes."""
    return json.dumps(
        obj,
        ensure_ascii=False,
        separators=(",", ":"),
        allow_nan=False,
    ).encode("utf-8")


def hash_canonical(obj: Any) -> str:
    """SHA-256 hex digest of canonical_json_bytes(obj)."""
    return sha256_hex(canonical_json_bytes(obj))


# =============================================================================
# SECTION 2 -- ENCODERS
# =============================================================================

def _attributes_to_dict(attributes: AttributeMap) -> Dict[str, str]:
    return {key: value for key, value in AttributeMap(attributes).sorted_items()}


def record_to_dict(record: Record) -> Dict[str, Any]:
    return {
        "record_id":          record.record_id,
        "source":             record.source,
        "timestamp":          record.timestamp,
        "amount_minor_units": record.amount_minor_units,
        "currency":           record.currency,
        "attributes":         _attributes_to_dict(record.attributes),
        "schema_version":     record.schema_version,
    }


def records_to_list(records: Iterable[Record]) -> List[Dict[str, Any]]:
    return [record_to_dict(r) for r in records]


def ruleset_to_dict(ruleset: Ruleset) -> Dict[str, Any]:
    return {
        "match_keys":            list(ruleset.match_keys),
        "compare_keys":          list(ruleset.compare_keys),
        "tolerance_minor_units": ruleset.tolerance_minor_units,
        "rounding": {
            "mode":                  ruleset.rounding.mode.value,
            "increment_minor_units": ruleset.rounding.increment_minor_units,
        },
        "timezone":              ruleset.timezone,
        "schema_version":        ruleset.schema_version,
    }


def variance_to_dict(variance: Variance) -> Dict[str, Any]:
    return {
        "variance_id":              variance.variance_id,
        "variance_type":            variance.variance_type.value,
        "severity":                 variance.severity.value,
        "left_record_id":           variance.left_record_id,
        "right_record_id":          variance.right_record_id,
        "amount_delta_minor_units": variance.amount_delta_minor_units,
        "rationale":                variance.rationale,
    }


def variances_to_list(variances: Iterable[Variance]) -> List[Dict[str, Any]]:
    return [variance_to_dict(v) for v in variances]


def report_to_dict(report: VarianceReport) -> Dict[str, Any]:
    return {
        "schema_version": report.schema_version,
        "variances":      variances_to_list(report.variances),
        "summary_hash":   report.summary_hash,
    }


def _file_hash_to_dict(entry: ManifestFileHash) -> Dict[str, str]:
    return {"file_name": entry.file_name, "sha256": entry.sha256}


def manifest_to_dict(manifest: EvidenceManifest) -> Dict[str, Any]:
    return {
        "schema_version": manifest.schema_version,
        "kernel_version": manifest.kernel_version,
        "inputs": {
            "left_records":  _file_hash_to_dict(manifest.inputs.left_records),
            "right_records": _file_hash_to_dict(manifest.inputs.right_records),
        },
        "ruleset": _file_hash_to_dict(manifest.ruleset),
        "outputs": {
            "variance_report":       _file_hash_to_dict(manifest.outputs.variance_report),
            "variance_summary_hash": manifest.outputs.variance_summary_hash,
        },
        "deterministic_statement": manifest.deterministic_statement,
    }


# =============================================================================
# SECTION 3 -- DECODERS
# =============================================================================

def _require_utf8_text(obj: Any, artifact: str) -> None:
    # json.loads accepts "\ud800" escapes; such strings cannot be hashed.
    if isinstance(obj, str):
        try:
            obj.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise ArtifactFormatError(
                artifact, "string is not valid UTF-8 text: " + ascii(obj)
            ) from exc
    elif isinstance(obj, list):
        for item in obj:
            _require_utf8_text(item, artifact)
    elif isinstance(obj, dict):
        for key, value in obj.items():
            _require_utf8_text(key, artifact)
            _require_utf8_text(value, artifact)


def loads_document(raw: Union[bytes, str], artifact: str) -> Any:
    """
    Parse raw JSON text. Raises ArtifactFormatError on invalid JSON or on
    any string (key or value) that is not encodable as UTF-8.
    """
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        document = json.loads(raw)
    except (UnicodeDecodeError, ValueError) as exc:
        raise ArtifactFormatError(artifact, "invalid JSON: " + str(exc)) from exc
    _require_utf8_text(document, artifact)
    return document


def _require_object(d: Any, artifact: str, field_name: str = "") -> Dict[str, Any]:
    if not isinstance(d, dict):
        raise ArtifactFormatError(
            artifact, "expected a JSON object, got " + type(d).__name__, field_name
        )
    return d


def _field(d: Dict[str, Any], name: str, artifact: str) -> Any:
    if name not in d:
        raise ArtifactFormatError(artifact, "missing required field", name)
    return d[name]


def _wrap_validation(artifact: str, exc: KernelValidationError) -> ArtifactFormatError:
    return ArtifactFormatError(artifact, exc.message, exc.field_name)


def record_from_dict(d: Any) -> Record:
    d = _require_object(d, "record")
    attributes = d.get("attributes", {})
    if attributes is None:
        attributes = {}
    if not isinstance(attributes, dict):
        raise ArtifactFormatError("record", "expected a JSON object", "attributes")
    try:
        return Record(
            record_id=_field(d, "record_id", "record"),
            source=_field(d, "source", "record"),
            timestamp=_field(d, "timestamp", "record"),
            amount_minor_units=_field(d, "amount_minor_units", "record"),
            currency=_field(d, "currency", "record"),
            attributes=AttributeMap(attributes),
            schema_version=_field(d, "schema_version", "record"),
        )
    except KernelValidationError as exc:
        raise _wrap_validation("record", exc) from exc


def records_from_list(items: Any) -> List[Record]:
    """Decode a JSON array of records, or an object with a "records" array."""
    if isinstance(items, dict):
        items = _field(items, "records", "records")
    if not isinstance(items, list):
        raise ArtifactFormatError(
            "records", "expected a JSON array, got " + type(items).__name__
        )
    return [record_from_dict(item) for item in items]


def ruleset_from_dict(d: Any) -> Ruleset:
    d = _require_object(d, "ruleset")
    rounding = _require_object(_field(d, "rounding", "ruleset"), "ruleset", "rounding")
    mode_value = _field(rounding, "mode", "ruleset")
    try:
        mode = RoundingMode(mode_value)
    except ValueError as exc:
        raise ArtifactFormatError(
            "ruleset", "unknown rounding mode " + repr(mode_value), "rounding.mode"
        ) from exc
    try:
        return Ruleset(
            match_keys=_field(d, "match_keys", "ruleset"),
            compare_keys=_field(d, "compare_keys", "ruleset"),
            tolerance_minor_units=_field(d, "tolerance_minor_units", "ruleset"),
            rounding=RoundingRule(
                mode=mode,
                increment_minor_units=_field(rounding, "increment_minor_units", "ruleset"),
            ),
            timezone=_field(d, "timezone", "ruleset"),
            schema_version=_field(d, "schema_version", "ruleset"),
        )
    except KernelValidationError as exc:
        raise _wrap_validation("ruleset", exc) from exc


def variance_from_dict(d: Any) -> Variance:
    d = _require_object(d, "variance")
    try:
        variance_type = VarianceType(_field(d, "variance_type", "variance"))
        severity = Severity(_field(d, "severity", "variance"))
    except ValueError as exc:
        raise ArtifactFormatError("variance", str(exc)) from exc
    try:
        return Variance(
            variance_id=_field(d, "variance_id", "variance"),
            variance_type=variance_type,
            severity=severity,
            left_record_id=d.get("left_record_id"),
            right_record_id=d.get("right_record_id"),
            amount_delta_minor_units=_field(d, "amount_delta_minor_units", "variance"),
            rationale=_field(d, "rationale", "variance"),
        )
    except KernelValidationError as exc:
        raise _wrap_validation("variance", exc) from exc


def report_from_dict(d: Any) -> VarianceReport:
    d = _require_object(d, "variance_report")
    items = _field(d, "variances", "variance_report")
    if not isinstance(items, list):
        raise ArtifactFormatError("variance_report", "expected a JSON array", "variances")
    summary_hash = _field(d, "summary_hash", "variance_report")
    schema_version = _field(d, "schema_version", "variance_report")
    for name, value in (("summary_hash", summary_hash), ("schema_version", schema_version)):
        if not isinstance(value, str):
            raise ArtifactFormatError("variance_report", "expected a string", name)
    return VarianceReport(
        schema_version=schema_version,
        variances=tuple(variance_from_dict(item) for item in items),
        summary_hash=summary_hash,
    )


def _file_hash_from_dict(d: Any, field_name: str) -> ManifestFileHash:
    d = _require_object(d, "manifest", field_name)
    file_name = _field(d, "file_name", "manifest")
    digest = _field(d, "sha256", "manifest")
    if not isinstance(file_name, str) or not isinstance(digest, str):
        raise ArtifactFormatError("manifest", "file_name and sha256 must be strings", field_name)
    return ManifestFileHash(file_name=file_name, sha256=digest)


def manifest_from_dict(d: Any) -> EvidenceManifest:
    d = _require_object(d, "manifest")
    inputs = _require_object(_field(d, "inputs", "manifest"), "manifest", "inputs")
    outputs = _require_object(_field(d, "outputs", "manifest"), "manifest", "outputs")
    strings = {}
    for name in ("schema_version", "kernel_version", "deterministic_statement"):
        value = _field(d, name, "manifest")
        if not isinstance(value, str):
            raise ArtifactFormatError("manifest", "expected a string", name)
        strings[name] = value
    summary_hash = _field(outputs, "variance_summary_hash", "manifest")
    if not isinstance(summary_hash, str):
        raise ArtifactFormatError(
            "manifest", "expected a string", "outputs.variance_summary_hash"
        )
    return EvidenceManifest(
        schema_version=strings["schema_version"],
        kernel_version=strings["kernel_version"],
        inputs=ManifestInputs(
            left_records=_file_hash_from_dict(
                _field(inputs, "left_records", "manifest"), "inputs.left_records"
            ),
            right_records=_file_hash_from_dict(
                _field(inputs, "right_records", "manifest"), "inputs.right_records"
            ),
        ),
        ruleset=_file_hash_from_dict(_field(d, "ruleset", "manifest"), "ruleset"),
        outputs=ManifestOutputs(
            variance_report=_file_hash_from_dict(
                _field(outputs, "variance_report", "manifest"), "outputs.variance_report"
            ),
            variance_summary_hash=summary_hash,
        ),
        deterministic_statement=strings["deterministic_statement"],
    )
