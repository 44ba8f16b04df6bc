# =============================================================================
# SETTLER -- RECONCILIATION KERNEL
# File:   settler/kernel/exceptions.py
# =============================================================================
#
# SCOPE
# -----
# Exception hierarchy for the reconciliation kernel and its artifact codecs.
# All exceptions are pure value objects: no side effects, no logging,
# no I/O of any kind.
#
# EXCEPTION HIERARCHY
# -------------------
#   KernelError(Exception)                        -- base; never raised directly
#     KernelValidationError(KernelError)          -- type / range violation
#     UnknownSelectorError(KernelError)           -- unknown match selector
#     UnknownCompareKeyError(KernelError)         -- unknown compare selector
#     InvalidRoundingIncrementError(KernelError)  -- increment_minor_units <= 0
#     ArtifactFormatError(KernelError)            -- malformed JSON document
#
# UnknownSelectorError, UnknownCompareKeyError and
# InvalidRoundingIncrementError are configuration errors: fatal to the whole
# computation, never retried. The caller must fix the ruleset.
#
# MESSAGE CONTRACT
# ----------------
# Every exception message is:
#   - Deterministic: identical inputs -> identical message string.
#   - Prefixed with the exception class name.
#   - Explicit: field name and violating value always included.
#
# =============================================================================

from __future__ import annotations

from typing import Any


# =============================================================================
# BASE EXCEPTION
# =============================================================================

class KernelError(Exception):
    """
    Base class for all reconciliation kernel exceptions.

    Never raised directly. Use a concrete subclass.

    Attributes:
        field_name:  Name of the offending field, or empty string if not
                     applicable.
        value:       The offending value, or None if the violation is not
                     tied to a single value.
        message:     Human-readable description. Always non-empty.
    """

    def __init__(
        self,
        message:    str,
        field_name: str = "",
        value:      Any = None,
    ) -> None:
        if not isinstance(message, str) or not message:
            raise ValueError(
                "KernelError: message must be a non-empty string"
            )
        if not isinstance(field_name, str):
            raise ValueError(
                "KernelError: field_name must be a string"
            )
        super().__init__(message)
        self.field_name: str = field_name
        self.value:      Any = value
        self.message:    str = message

    def __repr__(self) -> str:
        return (
            self.__class__.__name__
            + "(field_name=" + repr(self.field_name)
            + ", value=" + repr(self.value)
            + ", message=" + repr(self.message)
            + ")"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KernelError):
            return NotImplemented
        return (
            type(self) is type(other)
            and self.field_name == other.field_name
            and self.value == other.value
            and self.message == other.message
        )

    __hash__ = Exception.__hash__


# =============================================================================
# CONCRETE EXCEPTIONS
# =============================================================================

class KernelValidationError(KernelError):
    """
    Raised when a field of a record, ruleset or variance violates a type or
    range constraint.

    Message format:
        "KernelValidationError: field '<field_name>' violates constraint
         '<constraint>': got <value>."
    """

    def __init__(
        self,
        field_name: str,
        value:      Any,
        constraint: str,
    ) -> None:
        if not field_name:
            raise ValueError(
                "KernelValidationError: field_name must be a non-empty string"
            )
        if not isinstance(constraint, str) or not constraint:
            raise ValueError(
                "KernelValidationError: constraint must be a non-empty string"
            )
        message = (
            "KernelValidationError: field '"
            + field_name
            + "' violates constraint '"
            + constraint
            + "': got "
            + repr(value)
            + "."
        )
        super().__init__(message=message, field_name=field_name, value=value)
        self.constraint: str = constraint


class UnknownSelectorError(KernelError):
    """
    Raised when a match_keys entry is not a known field selector.

    Known selectors: record_id, source, timestamp, amount_minor_units,
    currency, attributes.<name>.
    """

    def __init__(self, selector: str) -> None:
        message = (
            "UnknownSelectorError: match key selector "
            + repr(selector)
            + " is not a known field selector."
        )
        super().__init__(message=message, field_name="match_keys", value=selector)
        self.selector: str = selector


class UnknownCompareKeyError(KernelError):
    """Raised when a compare_keys entry is not a known field selector."""

    def __init__(self, selector: str) -> None:
        message = (
            "UnknownCompareKeyError: compare key selector "
            + repr(selector)
            + " is not a known field selector."
        )
        super().__init__(message=message, field_name="compare_keys", value=selector)
        self.selector: str = selector


class InvalidRoundingIncrementError(KernelError):
    """
    Raised when rounding.increment_minor_units is not strictly positive.

    Checked once before any comparison; the computation produces no
    partial report.
    """

    def __init__(self, increment: Any) -> None:
        message = (
            "InvalidRoundingIncrementError: rounding.increment_minor_units "
            "must be > 0: got "
            + repr(increment)
            + "."
        )
        super().__init__(
            message=message,
            field_name="rounding.increment_minor_units",
            value=increment,
        )


class ArtifactFormatError(KernelError):
    """
    Raised when a JSON document cannot be decoded into a wire type.

    Args:
        artifact:  Kind of document being decoded (e.g. "record", "ruleset").
        detail:    What is wrong. Must be non-empty.
        field_name: Offending field, if known.
    """

    def __init__(self, artifact: str, detail: str, field_name: str = "") -> None:
        if not detail:
            raise ValueError(
                "ArtifactFormatError: detail must be a non-empty string"
            )
        location = "" if not field_name else " field '" + field_name + "'"
        message = (
            "ArtifactFormatError: "
            + artifact
            + location
            + ": "
            + detail
        )
        super().__init__(message=message, field_name=field_name, value=artifact)
        self.artifact: str = artifact
        self.detail:   str = detail


__all__ = [
    "KernelError",
    "KernelValidationError",
    "UnknownSelectorError",
    "UnknownCompareKeyError",
    "InvalidRoundingIncrementError",
    "ArtifactFormatError",
]
