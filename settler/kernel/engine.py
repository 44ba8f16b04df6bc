# =============================================================================
# SETTLER -- RECONCILIATION KERNEL
# File:   settler/kernel/engine.py
# =============================================================================
#
# SCOPE
# -----
# Public entry points of the kernel:
#   validate_ruleset()   -- pre-flight; compiles selectors, checks rounding
#                           increment and tolerance before any record is read.
#   compute_variances()  -- canonicalize -> match -> compare -> assemble.
#   compute_manifest()   -- evidence manifest for a computed report.
#
# Pure functions. No I/O. No clock reads. The optional EventLogger and its
# timestamp are supplied by the caller; when no logger is given nothing is
# recorded.
#
# FAILURE MODEL
# -------------
# Configuration errors (UnknownSelectorError, UnknownCompareKeyError,
# InvalidRoundingIncrementError, KernelValidationError on tolerance) abort the
# whole call. No partial report is ever returned. With a logger attached, a
# RUN_FAILED event is recorded before the error is re-raised.
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional

from settler.core.logging_layer import (
    MANIFEST_BUILT,
    MATCHING_COMPLETED,
    RECORDS_CANONICALIZED,
    REPORT_ASSEMBLED,
    RULESET_VALIDATED,
    RUN_STARTED,
    EventLogger,
)
from settler.utils.constants import (
    DEFAULT_LEFT_FILE_NAME,
    DEFAULT_REPORT_FILE_NAME,
    DEFAULT_RIGHT_FILE_NAME,
    DEFAULT_RULESET_FILE_NAME,
)
from .canonicalizer import canonicalize_and_sort, compile_match_keys
from .comparator import compile_compare_keys
from .domain import CompiledRuleset, EvidenceManifest, Record, Ruleset, VarianceReport
from .exceptions import (
    InvalidRoundingIncrementError,
    KernelError,
    KernelValidationError,
)
from .kernel_version import KERNEL_VERSION
from .manifest import build_manifest
from .matcher import match_records
from .report import assemble_report


def validate_ruleset(ruleset: Ruleset) -> CompiledRuleset:
    """
    Validate and compile a ruleset.

    Check order: rounding increment, tolerance, match keys, compare keys.
    The first violation is raised.

    Raises:
        KernelValidationError:          ruleset is not a Ruleset, or
                                        tolerance_minor_units < 0.
        InvalidRoundingIncrementError:  increment_minor_units <= 0.
        UnknownSelectorError:           unknown match key.
        UnknownCompareKeyError:         unknown compare key.
    """
    if not isinstance(ruleset, Ruleset):
        raise KernelValidationError("ruleset", ruleset, "must be a Ruleset")
    if ruleset.rounding.increment_minor_units <= 0:
        raise InvalidRoundingIncrementError(ruleset.rounding.increment_minor_units)
    if ruleset.tolerance_minor_units < 0:
        raise KernelValidationError(
            "tolerance_minor_units", ruleset.tolerance_minor_units, "must be >= 0"
        )
    return CompiledRuleset(
        ruleset=ruleset,
        match_selectors=compile_match_keys(ruleset.match_keys),
        compare_selectors=compile_compare_keys(ruleset.compare_keys),
    )


def compute_variances(
    records_left:  Iterable[Record],
    records_right: Iterable[Record],
    ruleset:       Ruleset,
    event_logger:  Optional[EventLogger] = None,
    timestamp:     Optional[datetime] = None,
) -> VarianceReport:
    """
    Reconcile two record collections under ruleset.

    The result depends only on the multiset of records on each side and on
    the ruleset; input order never changes a single output byte.

    Args:
        records_left:  Left-side records. Not mutated.
        records_right: Right-side records. Not mutated.
        ruleset:       Reconciliation ruleset; validated before use.
        event_logger:  Optional audit log. Requires timestamp.
        timestamp:     Caller-supplied time stamped on every audit event.

    Raises:
        KernelError subclasses (see validate_ruleset); LoggingError if a
        logger is supplied without a valid timestamp.
    """
    left: List[Record] = list(records_left)
    right: List[Record] = list(records_right)

    if event_logger is not None:
        event_logger.log_event(
            RUN_STARTED,
            {
                "kernel_version": KERNEL_VERSION,
                "left_count":     len(left),
                "right_count":    len(right),
            },
            timestamp,
        )

    try:
        compiled = validate_ruleset(ruleset)
        if event_logger is not None:
            event_logger.log_event(
                RULESET_VALIDATED,
                {
                    "match_keys":   len(compiled.match_selectors),
                    "compare_keys": len(compiled.compare_selectors),
                },
                timestamp,
            )

        left_sorted = canonicalize_and_sort(left, compiled.match_selectors)
        right_sorted = canonicalize_and_sort(right, compiled.match_selectors)
        if event_logger is not None:
            event_logger.log_event(
                RECORDS_CANONICALIZED,
                {"left_count": len(left_sorted), "right_count": len(right_sorted)},
                timestamp,
            )

        outcome = match_records(left_sorted, right_sorted, compiled)
        if event_logger is not None:
            event_logger.log_event(
                MATCHING_COMPLETED,
                {
                    "matched_pairs":   outcome.matched_pairs,
                    "unmatched_left":  outcome.unmatched_left,
                    "unmatched_right": outcome.unmatched_right,
                    "variance_count":  len(outcome.variances),
                },
                timestamp,
            )

        report = assemble_report(outcome.variances)
    except KernelError as exc:
        if event_logger is not None:
            event_logger.log_failure(exc, timestamp)
        raise

    if event_logger is not None:
        event_logger.log_event(
            REPORT_ASSEMBLED,
            {
                "variance_count": len(report.variances),
                "summary_hash":   report.summary_hash,
            },
            timestamp,
        )
    return report


def compute_manifest(
    records_left:      Iterable[Record],
    records_right:     Iterable[Record],
    ruleset:           Ruleset,
    report:            VarianceReport,
    left_file_name:    str = DEFAULT_LEFT_FILE_NAME,
    right_file_name:   str = DEFAULT_RIGHT_FILE_NAME,
    ruleset_file_name: str = DEFAULT_RULESET_FILE_NAME,
    report_file_name:  str = DEFAULT_REPORT_FILE_NAME,
    event_logger:      Optional[EventLogger] = None,
    timestamp:         Optional[datetime] = None,
) -> EvidenceManifest:
    """
    Build the EvidenceManifest for report.

    The ruleset is validated again so that a manifest is never produced for
    a ruleset the kernel would reject.
    """
    try:
        validate_ruleset(ruleset)
        manifest = build_manifest(
            records_left,
            records_right,
            ruleset,
            report,
            left_file_name=left_file_name,
            right_file_name=right_file_name,
            ruleset_file_name=ruleset_file_name,
            report_file_name=report_file_name,
        )
    except KernelError as exc:
        if event_logger is not None:
            event_logger.log_failure(exc, timestamp)
        raise

    if event_logger is not None:
        event_logger.log_event(
            MANIFEST_BUILT,
            {
                "kernel_version":  manifest.kernel_version,
                "variance_report": manifest.outputs.variance_report.sha256,
            },
            timestamp,
        )
    return manifest
