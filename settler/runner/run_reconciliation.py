# settler/runner/run_reconciliation.py
# Reconciliation Runner -- Entry Point.
#
# Reconcile two record files and write a verified run pack:
#   python -m settler.runner.run_reconciliation reconcile \
#       --left ledger.json \
#       --right bank.json \
#       --ruleset ruleset.json \
#       --out-dir runs/2024-01-02 \
#       [--fail-on-variance] [--timestamp 2024-01-02T10:00:00+00:00]
#
# Re-verify an existing run pack:
#   python -m settler.runner.run_reconciliation verify --run-dir runs/2024-01-02
#
# EXIT CODES (see failure_handler.FAILURE_TYPES):
#   0  -- Run pack written and verified (or verification passed).
#   1  -- Variances present and --fail-on-variance given.
#   2  -- Configuration error (ruleset, arguments).
#   3  -- Data / artifact error.
#   4  -- Internal runner error.
#   5  -- Verification failure.
#
# Single-threaded. The only wall-clock read is the default audit timestamp,
# which --timestamp overrides. Nothing the manifest covers depends on it.

import argparse
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from settler.core.logging_layer import EventLogger
from settler.kernel.engine import compute_manifest, compute_variances
from settler.kernel.exceptions import KernelError
from settler.kernel.kernel_version import KERNEL_VERSION
from settler.kernel.report import summarize
from settler.runner.failure_handler import FailureHandler
from settler.storage.artifact_loader import ArtifactLoader
from settler.storage.artifact_writer import RunPackWriter
from settler.utils.constants import DEFAULT_MANIFEST_FILE_NAME
from settler.verification.manifest_verifier import verify_run_pack

VERIFICATION_FAILED_EXIT_CODE: int = 5


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_run_id(now: datetime) -> str:
    return "RUN-" + now.strftime("%Y%m%d") + "-" + str(uuid.uuid4())[:8].upper()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="settler deterministic reconciliation runner " + KERNEL_VERSION,
        prog="python -m settler.runner.run_reconciliation",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    rec = sub.add_parser("reconcile", help="Reconcile two record files into a run pack.")
    rec.add_argument("--left", required=True, help="Left-side records JSON file.")
    rec.add_argument("--right", required=True, help="Right-side records JSON file.")
    rec.add_argument("--ruleset", required=True, help="Ruleset JSON file.")
    rec.add_argument("--out-dir", required=True, help="Directory for the run pack.")
    rec.add_argument(
        "--fail-on-variance",
        action="store_true",
        default=False,
        help="Exit 1 when the report contains at least one variance.",
    )
    rec.add_argument(
        "--timestamp",
        default=None,
        help="ISO-8601 timestamp stamped on audit events. Defaults to now (UTC).",
    )

    ver = sub.add_parser("verify", help="Verify a run pack against its manifest.")
    ver.add_argument("--run-dir", required=True, help="Directory holding the run pack.")
    ver.add_argument(
        "--manifest-name",
        default=DEFAULT_MANIFEST_FILE_NAME,
        help="Manifest file name inside --run-dir.",
    )
    return parser


def _parse_timestamp(raw: Optional[str], fh: FailureHandler) -> datetime:
    if raw is None:
        return _now()
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        fh.handle(
            failure_type_id="INVALID_ARGUMENT",
            detail=f"--timestamp must be an ISO-8601 datetime. Received: '{raw}'.",
            field_name="timestamp",
        )


def run_reconcile(args: argparse.Namespace) -> int:
    """
    Pipeline sequence:
      load inputs -> compute_variances -> compute_manifest
      -> write run pack and audit log -> verify run pack from disk.

    On pass returns 0. On any failure FailureHandler calls sys.exit.
    """
    out_dir = Path(args.out_dir)
    fh = FailureHandler(out_dir=out_dir, run_id=_new_run_id(_now()))
    timestamp = _parse_timestamp(args.timestamp, fh)
    event_logger = EventLogger()
    writer = RunPackWriter()

    # -----------------------------------------------------------------------
    # STAGE 1: LOAD INPUTS
    # -----------------------------------------------------------------------
    loader = ArtifactLoader()
    try:
        ruleset = loader.load_ruleset(args.ruleset)
        left = loader.load_records(args.left)
        right = loader.load_records(args.right)
    except KernelError as exc:
        fh.handle_from_exception(exc)

    # -----------------------------------------------------------------------
    # STAGE 2: RECONCILE
    # -----------------------------------------------------------------------
    try:
        report = compute_variances(left, right, ruleset, event_logger, timestamp)
        manifest = compute_manifest(
            left, right, ruleset, report,
            event_logger=event_logger, timestamp=timestamp,
        )
    except KernelError as exc:
        try:
            writer.write_audit_log(out_dir, event_logger.export())
        except OSError as write_exc:
            fh.handle("RUNNER_INTERNAL_ERROR", f"Failed to write audit log: {write_exc}")
        fh.handle_from_exception(exc)

    # -----------------------------------------------------------------------
    # STAGE 3: WRITE RUN PACK
    # -----------------------------------------------------------------------
    try:
        writer.write(out_dir, left, right, ruleset, report, manifest)
        writer.write_audit_log(out_dir, event_logger.export())
    except KernelError as exc:
        fh.handle_from_exception(exc)
    except OSError as exc:
        fh.handle("RUNNER_INTERNAL_ERROR", f"Failed to write run pack: {exc}")

    # -----------------------------------------------------------------------
    # STAGE 4: VERIFY FROM DISK
    # -----------------------------------------------------------------------
    verification = verify_run_pack(out_dir)
    if not verification.ok:
        fh.handle(
            failure_type_id="VERIFICATION_FAILED",
            detail="; ".join(verification.errors),
        )

    summary = summarize(report)
    counts = ", ".join(f"{k}={v}" for k, v in summary.counts_by_type.items())
    print(
        f"RECONCILIATION RESULT: {'PASS' if summary.total == 0 else 'VARIANCES'}\n"
        f"Kernel version:  {KERNEL_VERSION}\n"
        f"Records:         left={len(left)} right={len(right)}\n"
        f"Variances:       {summary.total} ({counts})\n"
        f"Summary hash:    {report.summary_hash}\n"
        f"Run pack:        {out_dir}"
    )

    if args.fail_on_variance and summary.total > 0:
        fh.handle(
            failure_type_id="VARIANCES_PRESENT",
            detail=f"{summary.total} variance(s) present ({counts}).",
        )
    return 0


def run_verify(args: argparse.Namespace) -> int:
    """Verify a run pack on disk. Returns 0 on pass, 5 on any finding."""
    result = verify_run_pack(args.run_dir, args.manifest_name)
    if result.ok:
        print(f"VERIFICATION RESULT: PASS\nRun pack:        {args.run_dir}")
        return 0
    print(f"VERIFICATION RESULT: FAIL\nRun pack:        {args.run_dir}")
    for error in result.errors:
        print(f"  - {error}")
    return VERIFICATION_FAILED_EXIT_CODE


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.command == "reconcile":
        return run_reconcile(args)
    return run_verify(args)


if __name__ == "__main__":
    sys.exit(main())
