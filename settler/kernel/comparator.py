# settler/kernel/comparator.py
# Comparator -- field-by-field evaluation of one matched (left, right) pair.
#
# Selector rules:
#   record_id / source / timestamp / currency / attributes.<name>
#       exact string equality; mismatch -> field_mismatch, severity low,
#       delta = UNROUNDED left.amount - right.amount (context, not cause).
#   amount_minor_units
#       both sides rounded; delta = rounded_left - rounded_right;
#       abs(delta) > tolerance -> amount_mismatch, severity medium.
#
# Variances are emitted in compare_keys order. Order is irrelevant to the
# final report, which the report assembler re-sorts by variance_id.

from __future__ import annotations

from typing import List, Sequence, Union

from settler.utils.constants import (
    RATIONALE_AMOUNT_MISMATCH,
    RATIONALE_FIELD_MISMATCH_TEMPLATE,
)
from .canonicalizer import resolve_selector
from .domain import (
    CompiledRuleset,
    Record,
    Ruleset,
    Selector,
    SelectorKind,
    Severity,
    Variance,
    VarianceType,
    parse_selector,
)
from .exceptions import UnknownCompareKeyError
from .rounding import round_amount
from .variance_builder import build_variance


def compile_compare_keys(compare_keys: Sequence[Union[str, Selector]]) -> tuple:
    """Parse compare selectors. Raises UnknownCompareKeyError on the first unknown one."""
    compiled = []
    for key in compare_keys:
        if isinstance(key, Selector):
            compiled.append(key)
            continue
        selector = parse_selector(key)
        if selector is None:
            raise UnknownCompareKeyError(key)
        compiled.append(selector)
    return tuple(compiled)


def _compare_amount(
    left:     Record,
    right:    Record,
    compiled: CompiledRuleset,
) -> List[Variance]:
    left_amount  = round_amount(left.amount_minor_units, compiled.rounding)
    right_amount = round_amount(right.amount_minor_units, compiled.rounding)
    delta = left_amount - right_amount
    if abs(delta) <= compiled.tolerance_minor_units:
        return []
    return [build_variance(
        VarianceType.AMOUNT_MISMATCH,
        Severity.MEDIUM,
        left.record_id,
        right.record_id,
        delta,
        RATIONALE_AMOUNT_MISMATCH,
    )]


def _compare_field(
    selector: Selector,
    left:     Record,
    right:    Record,
) -> List[Variance]:
    if resolve_selector(left, selector) == resolve_selector(right, selector):
        return []
    return [build_variance(
        VarianceType.FIELD_MISMATCH,
        Severity.LOW,
        left.record_id,
        right.record_id,
        left.amount_minor_units - right.amount_minor_units,
        RATIONALE_FIELD_MISMATCH_TEMPLATE.format(selector=selector.raw),
    )]


def compare(
    left:    Record,
    right:   Record,
    ruleset: Union[Ruleset, CompiledRuleset],
) -> List[Variance]:
    """
    Compare a matched pair under the ruleset's compare_keys.

    Accepts a raw Ruleset (selectors parsed here; unknown ->
    UnknownCompareKeyError) or a CompiledRuleset from
    engine.validate_ruleset().
    """
    if isinstance(ruleset, Ruleset):
        compiled = CompiledRuleset(
            ruleset=ruleset,
            match_selectors=(),
            compare_selectors=compile_compare_keys(ruleset.compare_keys),
        )
    else:
        compiled = ruleset

    variances: List[Variance] = []
    for selector in compiled.compare_selectors:
        if selector.kind is SelectorKind.AMOUNT_MINOR_UNITS:
            variances.extend(_compare_amount(left, right, compiled))
        else:
            variances.extend(_compare_field(selector, left, right))
    return variances
