# settler/verification/vectors.py
# Fixed, version-controlled reconciliation vectors for the determinism gate.
#
# NO VECTOR IS GENERATED AT RUNTIME. NO VECTOR IS SAMPLED.
# Every vector lists the exact variance counts it must produce. A change to
# any expected count is a behavioral change of the kernel.
#
# Execution order: DG-01 .. DG-07, ascending.

from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from settler.kernel.domain import Record, RoundingMode, RoundingRule, Ruleset
from settler.utils.constants import SCHEMA_VERSION


@dataclass(frozen=True)
class ReconciliationVector:
    """
    One gate vector.

    expected_counts maps variance type wire value -> count; types not
    listed must not occur.
    """
    vector_id:       str
    description:     str
    left:            Tuple[Record, ...]
    right:           Tuple[Record, ...]
    ruleset:         Ruleset
    expected_counts: Dict[str, int]


# ---------------------------------------------------------------------------
# HELPERS
# ---------------------------------------------------------------------------

def _record(
    record_id:  str,
    source:     str,
    amount:     int,
    invoice:    str,
    currency:   str = "USD",
    timestamp:  str = "2024-01-02T10:00:00Z",
    extra:      Optional[Dict[str, str]] = None,
) -> Record:
    attributes = {"invoice": invoice}
    if extra:
        attributes.update(extra)
    return Record(
        record_id=record_id,
        source=source,
        timestamp=timestamp,
        amount_minor_units=amount,
        currency=currency,
        attributes=attributes,
        schema_version=SCHEMA_VERSION,
    )


def _ruleset(
    compare_keys: Sequence[str] = ("amount_minor_units", "currency"),
    tolerance:    int = 2,
    mode:         RoundingMode = RoundingMode.NEAREST,
    increment:    int = 10,
    match_keys:   Sequence[str] = ("timestamp", "attributes.invoice"),
) -> Ruleset:
    return Ruleset(
        match_keys=tuple(match_keys),
        compare_keys=tuple(compare_keys),
        tolerance_minor_units=tolerance,
        rounding=RoundingRule(mode=mode, increment_minor_units=increment),
        timezone="UTC",
        schema_version=SCHEMA_VERSION,
    )


# ---------------------------------------------------------------------------
# VECTORS
# ---------------------------------------------------------------------------

GATE_VECTORS: Tuple[ReconciliationVector, ...] = (
    ReconciliationVector(
        vector_id="DG-01",
        description="105 vs 100, nearest/10, tolerance 2: one amount mismatch of 10",
        left=(_record("left-1", "ledger", 105, "inv-100"),),
        right=(_record("right-1", "bank", 100, "inv-100"),),
        ruleset=_ruleset(),
        expected_counts={"amount_mismatch": 1},
    ),
    ReconciliationVector(
        vector_id="DG-02",
        description="101 vs 100, nearest/10: rounded equal, no variances",
        left=(_record("left-1", "ledger", 101, "inv-100"),),
        right=(_record("right-1", "bank", 100, "inv-100"),),
        ruleset=_ruleset(),
        expected_counts={},
    ),
    ReconciliationVector(
        vector_id="DG-03",
        description="one unmatched record on each side",
        left=(
            _record("L-1", "ledger", 500, "inv-1"),
            _record("L-2", "ledger", 700, "inv-2"),
        ),
        right=(
            _record("R-1", "bank", 500, "inv-1"),
            _record("R-3", "bank", 900, "inv-3"),
        ),
        ruleset=_ruleset(),
        expected_counts={"missing_right": 1, "missing_left": 1},
    ),
    ReconciliationVector(
        vector_id="DG-04",
        description="two left records share a match key with one right record",
        left=(
            _record("L-b", "ledger", 250, "inv-dup"),
            _record("L-a", "ledger", 250, "inv-dup"),
        ),
        right=(_record("R-a", "bank", 250, "inv-dup"),),
        ruleset=_ruleset(),
        expected_counts={"missing_right": 1},
    ),
    ReconciliationVector(
        vector_id="DG-05",
        description="currency and attribute mismatch on one matched pair",
        left=(_record("L-1", "ledger", 1000, "inv-7", currency="USD",
                      extra={"memo": "rent"}),),
        right=(_record("R-1", "bank", 1000, "inv-7", currency="EUR",
                       extra={"memo": "Rent"}),),
        ruleset=_ruleset(compare_keys=("currency", "attributes.memo", "amount_minor_units")),
        expected_counts={"field_mismatch": 2},
    ),
    ReconciliationVector(
        vector_id="DG-06",
        description="negative amounts, down/10, tolerance 5",
        left=(_record("L-1", "ledger", -105, "inv-neg"),),
        right=(_record("R-1", "bank", -100, "inv-neg"),),
        ruleset=_ruleset(mode=RoundingMode.DOWN, tolerance=5),
        expected_counts={"amount_mismatch": 1},
    ),
    ReconciliationVector(
        vector_id="DG-07",
        description="non-ASCII attribute values and mixed sides",
        left=(
            _record("L-3", "ledger", 300, "façture-3"),
            _record("L-1", "ledger", 100, "請求-1"),
            _record("L-2", "ledger", 200, "inv-2"),
        ),
        right=(
            _record("R-2", "bank", 200, "inv-2"),
            _record("R-1", "bank", 130, "請求-1"),
            _record("R-4", "bank", 400, "inv-4"),
        ),
        ruleset=_ruleset(tolerance=0),
        expected_counts={"amount_mismatch": 1, "missing_right": 1, "missing_left": 1},
    ),
)
