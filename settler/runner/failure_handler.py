# settler/runner/failure_handler.py
# FailureHandler -- hard failure policy of the reconciliation runner.
#
# HFP-01: Exit with a non-zero exit code on any hard failure.
# HFP-02: sys.exit is the last operation of handle().
# HFP-03: Failures are reported via failure_record.json and the exit code.
#         The run pack is never partially trusted: verify it before use.
# HFP-04: No catch-and-continue. No retry. No fallback.
# HFP-05: If the handler itself cannot write the record, partial info goes
#         to stderr and the process exits 4.

import json
import sys
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, NoReturn, Optional

from settler.kernel.exceptions import (
    ArtifactFormatError,
    InvalidRoundingIncrementError,
    KernelError,
    KernelValidationError,
    UnknownCompareKeyError,
    UnknownSelectorError,
)
from settler.kernel.kernel_version import KERNEL_VERSION, STORAGE_FORMAT_VERSION
from settler.utils.constants import DEFAULT_FAILURE_FILE_NAME


# ---------------------------------------------------------------------------
# FAILURE TYPE REGISTRY
# ---------------------------------------------------------------------------
# Exit code mapping:
#   Code 1 -- variances present and --fail-on-variance given
#   Code 2 -- configuration error (ruleset or arguments)
#   Code 3 -- data / artifact error
#   Code 4 -- internal runner error
#   Code 5 -- run pack failed verification

FAILURE_TYPES: Dict[str, int] = {
    # Exit Code 1
    "VARIANCES_PRESENT":          1,
    # Exit Code 2
    "UNKNOWN_SELECTOR":           2,
    "UNKNOWN_COMPARE_KEY":        2,
    "INVALID_ROUNDING_INCREMENT": 2,
    "INVALID_RULESET":            2,
    "INVALID_ARGUMENT":           2,
    # Exit Code 3
    "ARTIFACT_FORMAT_ERROR":      3,
    "INVALID_RECORD":             3,
    # Exit Code 4
    "RUNNER_INTERNAL_ERROR":      4,
    # Exit Code 5
    "VERIFICATION_FAILED":        5,
}

INTERNAL_ERROR_EXIT_CODE: int = 4


@dataclass
class FailureRecord:
    """
    Failure record written to the output directory on any hard failure.

    Fields:
      failure_type_id        -- Key from FAILURE_TYPES.
      exit_code              -- Process exit code.
      field_name             -- Offending field, empty if not applicable.
      detected_at_iso        -- UTC ISO-8601 time of detection.
      run_id                 -- Runner invocation identifier.
      kernel_version         -- KERNEL_VERSION at time of failure.
      storage_format_version -- STORAGE_FORMAT_VERSION of this record.
      detail                 -- Human-readable failure description.
    """
    failure_type_id:        str
    exit_code:              int
    field_name:             str
    detected_at_iso:        str
    run_id:                 str
    kernel_version:         str
    storage_format_version: str
    detail:                 str


def classify_exception(exc: BaseException) -> str:
    """Map a kernel exception to its FAILURE_TYPES key."""
    if isinstance(exc, UnknownSelectorError):
        return "UNKNOWN_SELECTOR"
    if isinstance(exc, UnknownCompareKeyError):
        return "UNKNOWN_COMPARE_KEY"
    if isinstance(exc, InvalidRoundingIncrementError):
        return "INVALID_ROUNDING_INCREMENT"
    if isinstance(exc, ArtifactFormatError):
        if exc.artifact == "ruleset":
            return "INVALID_RULESET"
        if exc.artifact in ("record", "records"):
            return "INVALID_RECORD"
        return "ARTIFACT_FORMAT_ERROR"
    if isinstance(exc, KernelValidationError):
        return "INVALID_RULESET"
    return "RUNNER_INTERNAL_ERROR"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class FailureHandler:
    """
    Enforces the hard failure policy.

    On any hard failure:
      1. Construct FailureRecord.
      2. Write it as JSON to <out_dir>/failure_record.json.
      3. Print the failure summary to stdout.
      4. Call sys.exit(exit_code) as the last operation.
    """

    def __init__(
        self,
        out_dir:   Path,
        run_id:    str,
        file_name: str = DEFAULT_FAILURE_FILE_NAME,
    ):
        self._out_dir   = Path(out_dir)
        self._run_id    = run_id
        self._file_name = file_name

    @property
    def record_path(self) -> Path:
        return self._out_dir / self._file_name

    def handle(
        self,
        failure_type_id: str,
        detail:          str,
        field_name:      str = "",
        detected_at_iso: Optional[str] = None,
    ) -> NoReturn:
        """Execute the hard failure policy. This method does not return."""
        exit_code = FAILURE_TYPES.get(failure_type_id, INTERNAL_ERROR_EXIT_CODE)
        record = FailureRecord(
            failure_type_id=failure_type_id,
            exit_code=exit_code,
            field_name=field_name,
            detected_at_iso=detected_at_iso or _now_iso(),
            run_id=self._run_id,
            kernel_version=KERNEL_VERSION,
            storage_format_version=STORAGE_FORMAT_VERSION,
            detail=detail,
        )

        try:
            self._out_dir.mkdir(parents=True, exist_ok=True)
            filepath = self.record_path
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(asdict(record), f, indent=4, ensure_ascii=False)

            print(
                f"RECONCILIATION RESULT: FAIL\n"
                f"Failure type:   {failure_type_id}\n"
                f"Exit code:      {exit_code}\n"
                f"Field:          {field_name or '(not applicable)'}\n"
                f"Detail:         {detail[:200]}\n"
                f"Record written: {filepath}"
            )
        except OSError as exc:
            sys.stderr.write(
                f"RUNNER_INTERNAL_ERROR: FailureHandler failed to write record: {exc}\n"
                f"Original failure: {failure_type_id} -- {detail}\n"
            )
            sys.exit(INTERNAL_ERROR_EXIT_CODE)

        sys.exit(exit_code)

    def handle_from_exception(self, exc: BaseException) -> NoReturn:
        """Classify exc and invoke handle() with its message and field."""
        field_name = exc.field_name if isinstance(exc, KernelError) else ""
        self.handle(
            failure_type_id=classify_exception(exc),
            detail=str(exc),
            field_name=field_name,
        )
