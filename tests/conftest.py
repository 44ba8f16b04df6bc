import json
from pathlib import Path
from typing import Dict, Optional, Sequence

import pytest

from settler.kernel import (
    Record,
    RoundingMode,
    RoundingRule,
    Ruleset,
)


def build_record(
    record_id:      str = "L-1",
    source:         str = "ledger",
    timestamp:      str = "2024-01-02T10:00:00Z",
    amount:         int = 100,
    currency:       str = "USD",
    attributes:     Optional[Dict[str, str]] = None,
    schema_version: str = "v1",
) -> Record:
    return Record(
        record_id=record_id,
        source=source,
        timestamp=timestamp,
        amount_minor_units=amount,
        currency=currency,
        attributes={} if attributes is None else attributes,
        schema_version=schema_version,
    )


def build_ruleset(
    match_keys:     Sequence[str] = ("timestamp", "attributes.invoice"),
    compare_keys:   Sequence[str] = ("amount_minor_units", "currency"),
    tolerance:      int = 2,
    mode:           RoundingMode = RoundingMode.NEAREST,
    increment:      int = 10,
    timezone:       str = "UTC",
    schema_version: str = "v1",
) -> Ruleset:
    return Ruleset(
        match_keys=tuple(match_keys),
        compare_keys=tuple(compare_keys),
        tolerance_minor_units=tolerance,
        rounding=RoundingRule(mode=mode, increment_minor_units=increment),
        timezone=timezone,
        schema_version=schema_version,
    )


@pytest.fixture
def make_record():
    """Factory fixture: build_record with keyword overrides."""
    return build_record


@pytest.fixture
def make_ruleset():
    """Factory fixture: build_ruleset with keyword overrides."""
    return build_ruleset


@pytest.fixture
def scenario_left() -> list:
    """Single ledger record of 105 minor units, invoice inv-100."""
    return [build_record("left-1", "ledger", amount=105, attributes={"invoice": "inv-100"})]


@pytest.fixture
def scenario_right() -> list:
    """Single bank record of 100 minor units, invoice inv-100."""
    return [build_record("right-1", "bank", amount=100, attributes={"invoice": "inv-100"})]


@pytest.fixture
def scenario_ruleset() -> Ruleset:
    """Match on timestamp + invoice; nearest/10 rounding; tolerance 2."""
    return build_ruleset()


@pytest.fixture
def input_files(tmp_path: Path, scenario_left, scenario_right, scenario_ruleset):
    """Scenario inputs written as wire JSON documents. Returns (left, right, ruleset) paths."""
    from settler.kernel import records_to_list, ruleset_to_dict

    left_path = tmp_path / "in" / "ledger.json"
    right_path = tmp_path / "in" / "bank.json"
    ruleset_path = tmp_path / "in" / "ruleset.json"
    left_path.parent.mkdir(parents=True)
    left_path.write_text(json.dumps(records_to_list(scenario_left)), encoding="utf-8")
    right_path.write_text(
        json.dumps({"records": records_to_list(scenario_right)}), encoding="utf-8"
    )
    ruleset_path.write_text(json.dumps(ruleset_to_dict(scenario_ruleset)), encoding="utf-8")
    return left_path, right_path, ruleset_path
