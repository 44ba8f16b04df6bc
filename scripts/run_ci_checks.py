#!/usr/bin/env python3
# =============================================================================
# SETTLER -- CI CHECKS RUNNER
# File:   scripts/run_ci_checks.py
# =============================================================================
#
# PURPOSE
# -------
# Runs the full CI gate in two sequential stages:
#   Stage 1: pytest (all tests + coverage enforcement >= 85%)
#   Stage 2: determinism gate (fixed vectors, permuted re-execution)
#
# Exit codes:
#   0 -- All stages passed.
#   1 -- Stage 1 (pytest) failed.
#   2 -- Stage 2 (determinism gate) failed.
#
# Usage:
#   python scripts/run_ci_checks.py
#
# Requires the test extra: pip install -e ".[test]"
# =============================================================================

from __future__ import annotations

import pathlib
import subprocess
import sys

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
_REPO_ROOT = pathlib.Path(__file__).parent.parent
_PYTHON    = sys.executable

_COVERAGE_FLOOR: int = 85


def _separator(char: str = "=", width: int = 72) -> str:
    return char * width


def _run(cmd: list[str], label: str) -> int:
    """
    Run a subprocess command, stream stdout/stderr live, return exit code.
    """
    print(_separator())
    print(f"CI STAGE: {label}")
    print(f"CMD:      {' '.join(cmd)}")
    print(_separator("-"))
    sys.stdout.flush()

    proc = subprocess.run(
        cmd,
        cwd=str(_REPO_ROOT),
    )
    return proc.returncode


def _fail(stage: str, exit_code: int, message: str) -> None:
    print(_separator())
    print(f"CI RESULT: FAIL  [stage={stage}  exit_code={exit_code}]")
    print(f"Merge BLOCKED: {message}")
    print(_separator())
    sys.stdout.flush()


def main() -> int:
    print(_separator())
    print("SETTLER CI GATE -- starting")
    print(_separator())
    sys.stdout.flush()

    # ------------------------------------------------------------------
    # Stage 1: pytest with coverage (pytest-cov).
    # A non-zero exit code means tests failed or coverage is below floor.
    # ------------------------------------------------------------------
    pytest_rc = _run(
        [
            _PYTHON, "-m", "pytest",
            "--cov=settler",
            "--cov-report=term-missing",
            f"--cov-fail-under={_COVERAGE_FLOOR}",
        ],
        f"pytest (tests + coverage >= {_COVERAGE_FLOOR}%)",
    )
    if pytest_rc != 0:
        _fail("pytest", pytest_rc, "pytest stage did not pass.")
        return 1

    print(_separator("-"))
    print("CI STAGE pytest: PASS")
    sys.stdout.flush()

    # ------------------------------------------------------------------
    # Stage 2: determinism gate.
    # A non-zero exit code means a run pack differed between executions,
    # a vector produced unexpected counts, or a manifest failed to verify.
    # ------------------------------------------------------------------
    gate_rc = _run(
        [_PYTHON, "-m", "settler.verification.determinism_gate"],
        "determinism gate (fixed reconciliation vectors)",
    )
    if gate_rc != 0:
        _fail("determinism", gate_rc, "determinism gate did not pass.")
        return 2

    print(_separator("-"))
    print("CI STAGE determinism: PASS")

    print(_separator())
    print("CI RESULT: PASS  [stages=pytest,determinism]")
    print("Merge permitted.")
    print(_separator())
    sys.stdout.flush()
    return 0


if __name__ == "__main__":
    sys.exit(main())
