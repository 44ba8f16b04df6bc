# =============================================================================
# SETTLER -- RECONCILIATION KERNEL
# File:   settler/kernel/domain.py
# =============================================================================
#
# SCOPE
# -----
# Frozen domain types for the v1 wire format: Record, RoundingRule, Ruleset,
# Variance, VarianceReport and EvidenceManifest, plus the closed enumerations
# (RoundingMode, VarianceType, Severity, SelectorKind) and the Selector sum
# type parsed from wire selector strings.
#
# No matching logic. No hashing. No serialization.
#
# VALIDATION PHILOSOPHY
# ---------------------
# __post_init__ checks field TYPES and field-local ranges only:
#   V1  Type   -- str / int fields; bool is never accepted as int.
#   V2  Range  -- amount_minor_units fits a signed 64-bit integer.
# Semantic ruleset checks (known selectors, increment > 0, tolerance >= 0)
# belong to engine.validate_ruleset(), which runs once before any record is
# touched and raises the configuration errors of the kernel contract.
#
# There is NO silent coercion except list -> tuple and dict -> AttributeMap,
# both of which preserve value equality.
#
# DETERMINISM CONSTRAINTS
# -----------------------
# DET-01  All dataclasses are frozen; no mutation path exists.
# DET-02  AttributeMap iterates keys in lexicographic (code point) order,
#         which equals UTF-8 byte order. Hashing and match-key derivation
#         both depend on this order.
# =============================================================================

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, Optional, Tuple, Union

from settler.utils.constants import (
    ATTRIBUTE_SELECTOR_PREFIX,
    MAX_AMOUNT_MINOR_UNITS,
    MIN_AMOUNT_MINOR_UNITS,
)
from .exceptions import KernelValidationError


# =============================================================================
# SECTION 1 -- ENUMERATIONS
# =============================================================================

class RoundingMode(str, Enum):
    """
    Integer rounding mode. Inherits from str; the value is the wire string.

    DOWN            -- toward negative infinity.
    UP              -- toward positive infinity.
    NEAREST         -- nearest multiple; ties away from zero.
    TOWARD_ZERO     -- discard the remainder.
    AWAY_FROM_ZERO  -- any remainder rounds away from zero.
    """
    DOWN           = "down"
    UP             = "up"
    NEAREST        = "nearest"
    TOWARD_ZERO    = "toward_zero"
    AWAY_FROM_ZERO = "away_from_zero"


class VarianceType(str, Enum):
    MISSING_RIGHT   = "missing_right"
    MISSING_LEFT    = "missing_left"
    FIELD_MISMATCH  = "field_mismatch"
    AMOUNT_MISMATCH = "amount_mismatch"


class Severity(str, Enum):
    HIGH   = "high"
    MEDIUM = "medium"
    LOW    = "low"


class SelectorKind(str, Enum):
    """
    Closed set of field selectors understood by the canonicalizer and the
    comparator. ATTRIBUTE carries the attribute name on the Selector.
    """
    RECORD_ID          = "record_id"
    SOURCE             = "source"
    TIMESTAMP          = "timestamp"
    AMOUNT_MINOR_UNITS = "amount_minor_units"
    CURRENCY           = "currency"
    ATTRIBUTE          = "attributes"


_SIMPLE_SELECTORS: Dict[str, SelectorKind] = {
    kind.value: kind
    for kind in SelectorKind
    if kind is not SelectorKind.ATTRIBUTE
}


@dataclass(frozen=True)
class Selector:
    """
    A parsed field selector.

    Fields
    ------
    kind      : SelectorKind.
    raw       : The wire string exactly as configured. Used in rationale
                text, so it must round-trip unchanged.
    attribute : Attribute name for SelectorKind.ATTRIBUTE; empty otherwise.
    """
    kind:      SelectorKind
    raw:       str
    attribute: str = ""


def parse_selector(raw: str) -> Optional[Selector]:
    """
    Parse a wire selector string. Returns None for an unknown selector so
    that the caller raises the error that fits its context (match key vs
    compare key).

    "attributes.<name>" strips the prefix exactly once; "<name>" may be
    empty, which resolves like any other missing attribute.
    """
    if not isinstance(raw, str):
        return None
    kind = _SIMPLE_SELECTORS.get(raw)
    if kind is not None:
        return Selector(kind=kind, raw=raw)
    if raw.startswith(ATTRIBUTE_SELECTOR_PREFIX):
        return Selector(
            kind=SelectorKind.ATTRIBUTE,
            raw=raw,
            attribute=raw[len(ATTRIBUTE_SELECTOR_PREFIX):],
        )
    return None


# =============================================================================
# SECTION 2 -- ATTRIBUTE MAP
# =============================================================================

class AttributeMap(Mapping):
    """
    Immutable str -> str mapping that always iterates in lexicographic key
    order, independent of construction order.

    Equality is mapping equality; the instance is hashable so that frozen
    Record instances stay hashable.
    """

    __slots__ = ("_items", "_index")

    def __init__(
        self,
        items: Union[Mapping, Iterable[Tuple[str, str]], None] = None,
    ) -> None:
        source: Dict[str, str] = {} if items is None else dict(items)
        for key, value in source.items():
            if not isinstance(key, str):
                raise KernelValidationError(
                    "attributes", key, "keys must be str"
                )
            if not isinstance(value, str):
                raise KernelValidationError(
                    "attributes." + key, value, "values must be str"
                )
            if not (_is_utf8_text(key) and _is_utf8_text(value)):
                raise KernelValidationError(
                    "attributes", key, "keys and values must be valid UTF-8 text"
                )
        self._items: Tuple[Tuple[str, str], ...] = tuple(sorted(source.items()))
        self._index: Dict[str, str] = dict(self._items)

    def __getitem__(self, key: str) -> str:
        return self._index[key]

    def __iter__(self) -> Iterator[str]:
        return iter([key for key, _ in self._items])

    def __len__(self) -> int:
        return len(self._items)

    def __hash__(self) -> int:
        return hash(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, AttributeMap):
            return self._items == other._items
        return Mapping.__eq__(self, other)

    def __repr__(self) -> str:
        return "AttributeMap(" + repr(dict(self._items)) + ")"

    def sorted_items(self) -> Tuple[Tuple[str, str], ...]:
        """Return (key, value) pairs in lexicographic key order."""
        return self._items


# =============================================================================
# SECTION 3 -- INTERNAL VALIDATION HELPERS
# =============================================================================

def _is_utf8_text(value: str) -> bool:
    # Lone surrogates are valid str but cannot be hashed as UTF-8.
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def _require_str(field_name: str, value: Any) -> None:
    if not isinstance(value, str):
        raise KernelValidationError(field_name, value, "must be str")
    if not _is_utf8_text(value):
        raise KernelValidationError(field_name, value, "must be valid UTF-8 text")


def _require_int(field_name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise KernelValidationError(field_name, value, "must be int")


def _require_optional_str(field_name: str, value: Any) -> None:
    if value is not None:
        if not isinstance(value, str):
            raise KernelValidationError(field_name, value, "must be str or None")
        _require_str(field_name, value)


def _require_str_tuple(field_name: str, value: Any) -> Tuple[str, ...]:
    if isinstance(value, str) or not isinstance(value, (list, tuple)):
        raise KernelValidationError(field_name, value, "must be a sequence of str")
    for item in value:
        _require_str(field_name, item)
    return tuple(value)


# =============================================================================
# SECTION 4 -- RECORDS AND RULESETS
# =============================================================================

@dataclass(frozen=True)
class Record:
    """
    One normalized financial record.

    INV-R-01  record_id, source, timestamp, currency, schema_version are str.
    INV-R-02  amount_minor_units is an int (not bool) within signed 64-bit.
    INV-R-03  attributes is an AttributeMap (plain mappings are converted).

    timestamp is carried as an opaque string; the kernel never parses it.
    """
    record_id:          str
    source:             str
    timestamp:          str
    amount_minor_units: int
    currency:           str
    attributes:         AttributeMap
    schema_version:     str

    def __post_init__(self) -> None:
        _require_str("record_id", self.record_id)
        _require_str("source", self.source)
        _require_str("timestamp", self.timestamp)
        _require_int("amount_minor_units", self.amount_minor_units)
        if not (MIN_AMOUNT_MINOR_UNITS <= self.amount_minor_units <= MAX_AMOUNT_MINOR_UNITS):
            raise KernelValidationError(
                "amount_minor_units",
                self.amount_minor_units,
                "must fit a signed 64-bit integer",
            )
        _require_str("currency", self.currency)
        _require_str("schema_version", self.schema_version)
        if not isinstance(self.attributes, AttributeMap):
            if not isinstance(self.attributes, Mapping):
                raise KernelValidationError(
                    "attributes", self.attributes, "must be a str -> str mapping"
                )
            object.__setattr__(self, "attributes", AttributeMap(self.attributes))


@dataclass(frozen=True)
class RoundingRule:
    """
    Rounding applied to both amounts before an amount comparison.

    increment_minor_units is type-checked here and range-checked
    (must be > 0) by engine.validate_ruleset() and rounding.round_amount().
    """
    mode:                  RoundingMode
    increment_minor_units: int

    def __post_init__(self) -> None:
        if not isinstance(self.mode, RoundingMode):
            raise KernelValidationError(
                "rounding.mode", self.mode, "must be a RoundingMode member"
            )
        _require_int("rounding.increment_minor_units", self.increment_minor_units)


@dataclass(frozen=True)
class Ruleset:
    """
    Reconciliation ruleset as it appears on the wire.

    match_keys and compare_keys hold the raw selector strings so that the
    ruleset serializes back byte-for-byte. engine.validate_ruleset()
    compiles them into Selector values.

    timezone is carried through to the manifest digest; the kernel does no
    time arithmetic.
    """
    match_keys:            Tuple[str, ...]
    compare_keys:          Tuple[str, ...]
    tolerance_minor_units: int
    rounding:              RoundingRule
    timezone:              str
    schema_version:        str

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "match_keys", _require_str_tuple("match_keys", self.match_keys)
        )
        object.__setattr__(
            self, "compare_keys", _require_str_tuple("compare_keys", self.compare_keys)
        )
        _require_int("tolerance_minor_units", self.tolerance_minor_units)
        if not isinstance(self.rounding, RoundingRule):
            raise KernelValidationError(
                "rounding", self.rounding, "must be a RoundingRule"
            )
        _require_str("timezone", self.timezone)
        _require_str("schema_version", self.schema_version)


@dataclass(frozen=True)
class CompiledRuleset:
    """
    A Ruleset whose selectors have been parsed and whose rounding rule and
    tolerance have been validated. Produced only by engine.validate_ruleset().
    """
    ruleset:           Ruleset
    match_selectors:   Tuple[Selector, ...]
    compare_selectors: Tuple[Selector, ...]

    @property
    def rounding(self) -> RoundingRule:
        return self.ruleset.rounding

    @property
    def tolerance_minor_units(self) -> int:
        return self.ruleset.tolerance_minor_units


# =============================================================================
# SECTION 5 -- VARIANCES AND REPORTS
# =============================================================================

@dataclass(frozen=True)
class Variance:
    """
    One detected discrepancy. Created only by variance_builder.build_variance().

    INV-V-01  At least one of left_record_id / right_record_id is present.
    INV-V-02  variance_id is a pure function of the five other observable
              fields (see variance_builder).
    """
    variance_id:              str
    variance_type:            VarianceType
    severity:                 Severity
    left_record_id:           Optional[str]
    right_record_id:          Optional[str]
    amount_delta_minor_units: int
    rationale:                str

    def __post_init__(self) -> None:
        _require_str("variance_id", self.variance_id)
        if not isinstance(self.variance_type, VarianceType):
            raise KernelValidationError(
                "variance_type", self.variance_type, "must be a VarianceType member"
            )
        if not isinstance(self.severity, Severity):
            raise KernelValidationError(
                "severity", self.severity, "must be a Severity member"
            )
        _require_optional_str("left_record_id", self.left_record_id)
        _require_optional_str("right_record_id", self.right_record_id)
        if self.left_record_id is None and self.right_record_id is None:
            raise KernelValidationError(
                "left_record_id",
                None,
                "at least one of left_record_id / right_record_id must be present",
            )
        _require_int("amount_delta_minor_units", self.amount_delta_minor_units)
        _require_str("rationale", self.rationale)


@dataclass(frozen=True)
class VarianceReport:
    """
    Result of one computation. variances is ordered by ascending variance_id;
    summary_hash digests that ordered sequence.
    """
    schema_version: str
    variances:      Tuple[Variance, ...]
    summary_hash:   str


# =============================================================================
# SECTION 6 -- EVIDENCE MANIFEST
# =============================================================================

@dataclass(frozen=True)
class ManifestFileHash:
    file_name: str
    sha256:    str


@dataclass(frozen=True)
class ManifestInputs:
    left_records:  ManifestFileHash
    right_records: ManifestFileHash


@dataclass(frozen=True)
class ManifestOutputs:
    variance_report:       ManifestFileHash
    variance_summary_hash: str


@dataclass(frozen=True)
class EvidenceManifest:
    """
    Hash bundle over canonical inputs, ruleset and report.

    Any holder of the four canonical artifacts can recompute the four
    sha256 values and confirm the report was produced from exactly those
    bytes.
    """
    schema_version:          str
    kernel_version:          str
    inputs:                  ManifestInputs
    ruleset:                 ManifestFileHash
    outputs:                 ManifestOutputs
    deterministic_statement: str

    def file_hashes(self) -> Tuple[ManifestFileHash, ...]:
        """Referenced files in fixed order: left, right, ruleset, report."""
        return (
            self.inputs.left_records,
            self.inputs.right_records,
            self.ruleset,
            self.outputs.variance_report,
        )


__all__ = [
    "RoundingMode",
    "VarianceType",
    "Severity",
    "SelectorKind",
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
]
