#!/usr/bin/env python3
# =============================================================================
# SETTLER -- DETERMINISM GATE
# File:   settler/verification/determinism_gate.py
# =============================================================================
#
# PURPOSE
# -------
# CI enforcement script. Every fixed vector is reconciled twice, once in
# declared input order and once with both sides reversed. The complete run
# pack (records, ruleset, report, manifest) must be byte-identical between
# the two executions, the variance counts must equal the vector's
# expectation, and the manifest must verify against its own run pack.
#
#   python -m settler.verification.determinism_gate
#
# Exit codes:
#   0 -- PASS: every vector passes every check.
#   1 -- FAIL or ERROR: CI must block merge.
#
# Failure lines carry a failure-type prefix:
#   NONDETERMINISTIC_OUTPUT  run pack bytes differ between executions
#   COUNT_MISMATCH           variance counts differ from the expectation
#   MANIFEST_UNVERIFIED      the manifest does not verify its own run pack
# =============================================================================

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple

from settler.kernel.domain import Record
from settler.kernel.engine import compute_manifest, compute_variances
from settler.kernel.report import summarize
from settler.storage.artifact_writer import build_run_pack
from settler.utils.constants import DEFAULT_MANIFEST_FILE_NAME
from settler.verification.manifest_verifier import verify_manifest
from settler.verification.vectors import GATE_VECTORS, ReconciliationVector


@dataclass(frozen=True)
class GateResult:
    """Aggregate outcome of one gate run. passed is True only with zero failures."""
    passed:       bool
    vectors_run:  int
    failures:     Tuple[str, ...]


def _execute(
    vector: ReconciliationVector,
    left:   Sequence[Record],
    right:  Sequence[Record],
) -> Tuple[Dict[str, bytes], Dict[str, int]]:
    report = compute_variances(left, right, vector.ruleset)
    manifest = compute_manifest(left, right, vector.ruleset, report)
    pack = build_run_pack(left, right, vector.ruleset, report, manifest)
    return pack, summarize(report).counts_by_type


def check_vector(vector: ReconciliationVector) -> List[str]:
    """Run one vector and return its failure lines (empty on success)."""
    failures: List[str] = []

    pack_a, counts = _execute(vector, vector.left, vector.right)
    pack_b, _ = _execute(
        vector, tuple(reversed(vector.left)), tuple(reversed(vector.right))
    )

    for name in pack_a:
        if pack_a[name] != pack_b.get(name):
            failures.append(
                "NONDETERMINISTIC_OUTPUT: " + vector.vector_id
                + " file " + name + " differs between executions."
            )

    expected = {vtype: vector.expected_counts.get(vtype, 0) for vtype in counts}
    if counts != expected:
        failures.append(
            "COUNT_MISMATCH: " + vector.vector_id
            + " expected " + repr(expected) + ", got " + repr(counts) + "."
        )

    verification = verify_manifest(pack_a[DEFAULT_MANIFEST_FILE_NAME], pack_a)
    if not verification.ok:
        failures.append(
            "MANIFEST_UNVERIFIED: " + vector.vector_id
            + " " + "; ".join(verification.errors)
        )
    return failures


def run_gate(vectors: Sequence[ReconciliationVector] = GATE_VECTORS) -> GateResult:
    failures: List[str] = []
    for vector in vectors:
        failures.extend(check_vector(vector))
    return GateResult(
        passed=not failures,
        vectors_run=len(vectors),
        failures=tuple(failures),
    )


def main() -> int:
    """
    Run the gate and return the exit code.

    Returns:
        0 if every vector passes.
        1 on any failure or unexpected exception.
    """
    try:
        result = run_gate()
    except Exception as exc:  # noqa: BLE001
        print(f"DETERMINISM-GATE EXCEPTION: {type(exc).__name__}: {exc}", file=sys.stderr)
        return 1

    if result.passed:
        print(f"DETERMINISM-GATE: {result.vectors_run} vectors PASS. Merge permitted.")
        return 0

    for line in result.failures:
        print(f"DETERMINISM-GATE: {line}", file=sys.stderr)
    print(
        f"DETERMINISM-GATE: {len(result.failures)} failure(s) across "
        f"{result.vectors_run} vectors. Merge BLOCKED.",
        file=sys.stderr,
    )
    return 1


if __name__ == "__main__":
    sys.exit(main())
