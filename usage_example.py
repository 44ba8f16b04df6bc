# usage_example.py
# Minimal usage example for settler/kernel/engine.py.
# This file is not part of the settler package. For reference only.

from settler.kernel import (
    Record,
    RoundingMode,
    RoundingRule,
    Ruleset,
    compute_manifest,
    compute_variances,
    manifest_to_dict,
)

# Inputs
left = [
    Record(
        record_id="left-1",
        source="ledger",
        timestamp="2024-01-02T10:00:00Z",
        amount_minor_units=105,
        currency="USD",
        attributes={"invoice": "inv-100"},
        schema_version="v1",
    ),
]
right = [
    Record(
        record_id="right-1",
        source="bank",
        timestamp="2024-01-02T10:00:00Z",
        amount_minor_units=100,
        currency="USD",
        attributes={"invoice": "inv-100"},
        schema_version="v1",
    ),
]
ruleset = Ruleset(
    match_keys=("timestamp", "attributes.invoice"),
    compare_keys=("amount_minor_units", "currency"),
    tolerance_minor_units=2,
    rounding=RoundingRule(mode=RoundingMode.NEAREST, increment_minor_units=10),
    timezone="UTC",
    schema_version="v1",
)

# Compute
report = compute_variances(left, right, ruleset)
manifest = compute_manifest(left, right, ruleset, report)

# Inspect
# rounded amounts: 105 -> 110, 100 -> 100
# delta = 10, |10| > tolerance 2 -> one amount_mismatch (severity medium)

for variance in report.variances:
    print(
        f"{variance.variance_type.value}: "
        f"{variance.left_record_id} vs {variance.right_record_id} "
        f"delta={variance.amount_delta_minor_units}"
    )
print(f"summary_hash: {report.summary_hash}")
print(f"report sha256: {manifest_to_dict(manifest)['outputs']['variance_report']['sha256']}")

# Expected output (first line):
# amount_mismatch: left-1 vs right-1 delta=10

# Configuration errors surface when the ruleset is used, not when it is built:
# compute_variances(left, right, Ruleset(..., match_keys=("invoice",), ...))
#     -> raises UnknownSelectorError
# compute_variances(left, right, Ruleset(..., compare_keys=("memo",), ...))
#     -> raises UnknownCompareKeyError
# compute_variances(left, right, Ruleset(..., rounding=RoundingRule(RoundingMode.NEAREST, 0), ...))
#     -> raises InvalidRoundingIncrementError
