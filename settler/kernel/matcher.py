# settler/kernel/matcher.py
# Matcher -- greedy per-key FIFO join of two canonicalized, sorted sequences.
#
# Buckets: match_key -> deque of right records, filled from the sorted right
# sequence, so bucket order is ascending key and queue order is the stable
# (key, record_id) sort order.
#
# One pass over the sorted left sequence:
#   bucket non-empty -> popleft() (consuming; a right record matches at most
#                       one left record) and compare the pair.
#   otherwise        -> missing_right (high, left id only, delta 0).
# Every right record still queued afterwards -> missing_left (high, right id
# only, delta 0).
#
# Not optimal bipartite matching. Deterministic because both sides were
# canonicalized and sorted before bucketing. Consumption inside one bucket
# must stay sequential.

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Sequence, Tuple

from settler.utils.constants import RATIONALE_MISSING_LEFT, RATIONALE_MISSING_RIGHT
from .comparator import compare
from .domain import CompiledRuleset, Record, Severity, Variance, VarianceType
from .variance_builder import build_variance


@dataclass(frozen=True)
class MatchOutcome:
    """
    Result of one matching pass.

    Fields:
      variances        -- Unsorted variances in emission order.
      matched_pairs    -- Number of (left, right) pairs compared.
      unmatched_left   -- Number of missing_right variances emitted.
      unmatched_right  -- Number of missing_left variances emitted.
    """
    variances:       Tuple[Variance, ...]
    matched_pairs:   int
    unmatched_left:  int
    unmatched_right: int


def _bucket_right(right_sorted: Sequence[Tuple[str, Record]]) -> Dict[str, Deque[Record]]:
    # dict insertion order follows the sorted input, i.e. ascending key.
    buckets: Dict[str, Deque[Record]] = {}
    for key, record in right_sorted:
        buckets.setdefault(key, deque()).append(record)
    return buckets


def match_records(
    left_sorted:  Sequence[Tuple[str, Record]],
    right_sorted: Sequence[Tuple[str, Record]],
    compiled:     CompiledRuleset,
) -> MatchOutcome:
    """
    Pair left and right records by match key and collect all variances.

    Both inputs must come from canonicalizer.canonicalize_and_sort() with the
    same match keys. Comparator errors propagate unchanged.
    """
    buckets = _bucket_right(right_sorted)
    variances: List[Variance] = []
    matched_pairs  = 0
    unmatched_left = 0

    for key, left_record in left_sorted:
        bucket = buckets.get(key)
        if bucket:
            right_record = bucket.popleft()
            matched_pairs += 1
            variances.extend(compare(left_record, right_record, compiled))
        else:
            unmatched_left += 1
            variances.append(build_variance(
                VarianceType.MISSING_RIGHT,
                Severity.HIGH,
                left_record.record_id,
                None,
                0,
                RATIONALE_MISSING_RIGHT,
            ))

    unmatched_right = 0
    for bucket in buckets.values():
        while bucket:
            right_record = bucket.popleft()
            unmatched_right += 1
            variances.append(build_variance(
                VarianceType.MISSING_LEFT,
                Severity.HIGH,
                None,
                right_record.record_id,
                0,
                RATIONALE_MISSING_LEFT,
            ))

    return MatchOutcome(
        variances=tuple(variances),
        matched_pairs=matched_pairs,
        unmatched_left=unmatched_left,
        unmatched_right=unmatched_right,
    )
