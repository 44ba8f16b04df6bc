# settler/kernel/report.py
# Report Assembler -- deterministic ordering and summary hash.
#
# Order: ascending variance_id (lexicographic on the hex string). The order is
# hash-derived and carries no causal meaning, but it is identical for every
# implementation given the same variances.
#
# summary_hash = SHA-256( canonical_json( [variance, ...] ) )
# where each variance serializes with the fixed field order of
# serialization.variance_to_dict().

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable

from settler.utils.constants import SCHEMA_VERSION
from .domain import Variance, VarianceReport, VarianceType
from .serialization import hash_canonical, variances_to_list


@dataclass(frozen=True)
class VarianceSummary:
    """
    Count of variances per type, for display. Not part of any hashed artifact.

    counts_by_type lists every VarianceType in declaration order, zero-filled.
    """
    total:          int
    counts_by_type: Dict[str, int]


def summary_hash(variances: Iterable[Variance]) -> str:
    """Digest of the canonical serialization of an already ordered sequence."""
    return hash_canonical(variances_to_list(variances))


def assemble_report(variances: Iterable[Variance]) -> VarianceReport:
    """Sort variances by variance_id and seal them into a VarianceReport."""
    ordered = tuple(sorted(variances, key=lambda v: v.variance_id))
    return VarianceReport(
        schema_version=SCHEMA_VERSION,
        variances=ordered,
        summary_hash=summary_hash(ordered),
    )


def summarize(report: VarianceReport) -> VarianceSummary:
    counts = {vt.value: 0 for vt in VarianceType}
    for variance in report.variances:
        counts[variance.variance_type.value] += 1
    return VarianceSummary(total=len(report.variances), counts_by_type=counts)
