# settler/kernel/canonicalizer.py
# Canonicalizer -- record normalization and match-key derivation.
#
# canonicalize_and_sort() orders by (match_key, record_id). The record_id
# tie-break makes output order independent of input order even when several
# records share a match key. str ordering is by code point, which equals
# UTF-8 byte order. Records that share a record_id are further ordered by
# their remaining fields.

from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Sequence, Tuple, Union

from settler.utils.constants import MATCH_KEY_SEPARATOR
from .domain import AttributeMap, Record, Selector, SelectorKind, parse_selector
from .exceptions import UnknownSelectorError


def canonicalize(record: Record) -> Record:
    """Return a value-equal copy whose attributes iterate in sorted key order."""
    return replace(record, attributes=AttributeMap(record.attributes))


def resolve_selector(record: Record, selector: Selector) -> str:
    """
    Resolve a selector to its string value on record.

    amount_minor_units renders as a base-10 integer string. A missing
    attribute resolves to the empty string.
    """
    kind = selector.kind
    if kind is SelectorKind.RECORD_ID:
        return record.record_id
    if kind is SelectorKind.SOURCE:
        return record.source
    if kind is SelectorKind.TIMESTAMP:
        return record.timestamp
    if kind is SelectorKind.AMOUNT_MINOR_UNITS:
        return str(record.amount_minor_units)
    if kind is SelectorKind.CURRENCY:
        return record.currency
    return record.attributes.get(selector.attribute, "")


def compile_match_keys(match_keys: Iterable[Union[str, Selector]]) -> Tuple[Selector, ...]:
    """Parse match selectors. Raises UnknownSelectorError on the first unknown one."""
    compiled: List[Selector] = []
    for key in match_keys:
        if isinstance(key, Selector):
            compiled.append(key)
            continue
        selector = parse_selector(key)
        if selector is None:
            raise UnknownSelectorError(key)
        compiled.append(selector)
    return tuple(compiled)


def build_match_key(
    record: Record,
    match_keys: Sequence[Union[str, Selector]],
) -> str:
    """
    Join the resolved match selector values with MATCH_KEY_SEPARATOR.

    Accepts raw wire strings or pre-parsed Selectors. Raises
    UnknownSelectorError for an unknown selector string.
    """
    selectors = compile_match_keys(match_keys)
    return MATCH_KEY_SEPARATOR.join(resolve_selector(record, s) for s in selectors)


def canonicalize_and_sort(
    records: Iterable[Record],
    match_keys: Sequence[Union[str, Selector]],
) -> List[Tuple[str, Record]]:
    """
    Map every record to (match_key, canonical_record) and sort ascending by
    (match_key, record_id). The input is not mutated.
    """
    selectors = compile_match_keys(match_keys)
    enriched: List[Tuple[str, Record]] = []
    for record in records:
        canonical = canonicalize(record)
        enriched.append((build_match_key(canonical, selectors), canonical))
    enriched.sort(key=lambda pair: (pair[0],) + _record_order(pair[1]))
    return enriched


def _record_order(record: Record) -> tuple:
    # record_id decides; the remaining fields only break ties between
    # duplicate record_ids so that input order never leaks into the output.
    return (
        record.record_id,
        record.source,
        record.timestamp,
        record.amount_minor_units,
        record.currency,
        record.attributes.sorted_items(),
        record.schema_version,
    )


def canonicalize_for_hash(
    records: Iterable[Record],
    match_keys: Sequence[Union[str, Selector]],
) -> List[Record]:
    """Sorted canonical records with the match key discarded."""
    return [record for _, record in canonicalize_and_sort(records, match_keys)]
