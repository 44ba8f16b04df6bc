import itertools
import json
from datetime import datetime, timezone
from hashlib import sha256

import pytest

from settler.core.logging_layer import EventLogger, LoggingError
from settler.kernel import (
    CompiledRuleset,
    InvalidRoundingIncrementError,
    KernelValidationError,
    SelectorKind,
    UnknownCompareKeyError,
    UnknownSelectorError,
    VarianceType,
    canonical_json_bytes,
    compute_manifest,
    compute_variances,
    manifest_to_dict,
    report_to_dict,
    validate_ruleset,
)

_TS = datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc)


def _report_bytes(report) -> bytes:
    return canonical_json_bytes(report_to_dict(report))


class TestValidateRuleset:
    def test_compiles_selectors(self, scenario_ruleset):
        compiled = validate_ruleset(scenario_ruleset)
        assert isinstance(compiled, CompiledRuleset)
        assert [s.kind for s in compiled.match_selectors] == [
            SelectorKind.TIMESTAMP, SelectorKind.ATTRIBUTE,
        ]
        assert compiled.tolerance_minor_units == 2
        assert compiled.rounding.increment_minor_units == 10

    def test_unknown_match_key(self, make_ruleset):
        with pytest.raises(UnknownSelectorError):
            validate_ruleset(make_ruleset(match_keys=["invoice"]))

    def test_unknown_compare_key(self, make_ruleset):
        with pytest.raises(UnknownCompareKeyError):
            validate_ruleset(make_ruleset(compare_keys=["memo"]))

    @pytest.mark.parametrize("increment", [0, -10])
    def test_invalid_increment(self, make_ruleset, increment):
        with pytest.raises(InvalidRoundingIncrementError):
            validate_ruleset(make_ruleset(increment=increment))

    def test_negative_tolerance(self, make_ruleset):
        with pytest.raises(KernelValidationError) as exc_info:
            validate_ruleset(make_ruleset(tolerance=-1))
        assert exc_info.value.field_name == "tolerance_minor_units"

    def test_not_a_ruleset(self):
        with pytest.raises(KernelValidationError):
            validate_ruleset({"match_keys": []})


class TestConcreteScenarios:
    def test_amount_mismatch_after_rounding(self, scenario_left, scenario_right, scenario_ruleset):
        report = compute_variances(scenario_left, scenario_right, scenario_ruleset)
        assert len(report.variances) == 1
        variance = report.variances[0]
        assert variance.variance_type is VarianceType.AMOUNT_MISMATCH
        assert variance.amount_delta_minor_units == 10
        assert variance.left_record_id == "left-1"
        assert variance.right_record_id == "right-1"

    def test_amount_mismatch_golden_digests(self, scenario_left, scenario_right, scenario_ruleset):
        # Cross-implementation fixed points; any drift breaks report interchange.
        report = compute_variances(scenario_left, scenario_right, scenario_ruleset)
        manifest = compute_manifest(scenario_left, scenario_right, scenario_ruleset, report)
        assert report.summary_hash == (
            "b1af726a19eeac0ed4982d965542d81735276c7fc9a78b3912bf61abfd13ca08"
        )
        assert manifest.outputs.variance_report.sha256 == (
            "9caee2ee6da74c660c4f25d7438c7a734317aea2b51dcb115eb66a9f4bf6f014"
        )

    def test_within_tolerance_gives_empty_report(self, make_record, scenario_ruleset):
        left = [make_record("left-1", amount=101, attributes={"invoice": "inv-100"})]
        right = [make_record("right-1", "bank", amount=100, attributes={"invoice": "inv-100"})]
        report = compute_variances(left, right, scenario_ruleset)
        assert report.variances == ()
        assert report.summary_hash == sha256(b"[]").hexdigest()
        assert len(report.summary_hash) == 64


class TestDeterminism:
    def test_two_invocations_byte_identical(self, scenario_left, scenario_right, scenario_ruleset):
        a = compute_variances(scenario_left, scenario_right, scenario_ruleset)
        b = compute_variances(scenario_left, scenario_right, scenario_ruleset)
        assert _report_bytes(a) == _report_bytes(b)
        ma = compute_manifest(scenario_left, scenario_right, scenario_ruleset, a)
        mb = compute_manifest(scenario_left, scenario_right, scenario_ruleset, b)
        assert canonical_json_bytes(manifest_to_dict(ma)) == canonical_json_bytes(manifest_to_dict(mb))

    def test_permutation_of_either_side(self, make_record, make_ruleset):
        ruleset = make_ruleset(compare_keys=["amount_minor_units", "source"], tolerance=0)
        left = [
            make_record("L-1", amount=100, attributes={"invoice": "a"}),
            make_record("L-2", amount=210, attributes={"invoice": "b"}),
            make_record("L-3", amount=300, attributes={"invoice": "b"}),
            make_record("L-4", amount=400, attributes={"invoice": "c"}),
        ]
        right = [
            make_record("R-1", "bank", amount=100, attributes={"invoice": "a"}),
            make_record("R-2", "bank", amount=200, attributes={"invoice": "b"}),
            make_record("R-5", "bank", amount=500, attributes={"invoice": "d"}),
        ]
        expected = _report_bytes(compute_variances(left, right, ruleset))
        for perm_left in itertools.permutations(left):
            for perm_right in itertools.permutations(right):
                report = compute_variances(list(perm_left), list(perm_right), ruleset)
                assert _report_bytes(report) == expected

    def test_inputs_not_mutated(self, scenario_left, scenario_right, scenario_ruleset):
        left_before = list(scenario_left)
        compute_variances(scenario_left, scenario_right, scenario_ruleset)
        assert scenario_left == left_before

    def test_accepts_generators(self, scenario_left, scenario_right, scenario_ruleset):
        report = compute_variances(iter(scenario_left), iter(scenario_right), scenario_ruleset)
        assert len(report.variances) == 1


class TestConfigurationErrorsAbort:
    def test_unknown_compare_key_aborts_even_without_matches(self, make_record, make_ruleset):
        # No pair is ever compared, yet the ruleset is still rejected up front.
        with pytest.raises(UnknownCompareKeyError):
            compute_variances([make_record()], [], make_ruleset(compare_keys=["memo"]))

    def test_invalid_increment_aborts_without_records(self, make_ruleset):
        with pytest.raises(InvalidRoundingIncrementError):
            compute_variances([], [], make_ruleset(increment=0))

    def test_manifest_rejects_invalid_ruleset(self, scenario_left, scenario_right, scenario_ruleset, make_ruleset):
        report = compute_variances(scenario_left, scenario_right, scenario_ruleset)
        with pytest.raises(InvalidRoundingIncrementError):
            compute_manifest(scenario_left, scenario_right, make_ruleset(increment=0), report)


class TestAuditEvents:
    def test_event_sequence(self, scenario_left, scenario_right, scenario_ruleset):
        logger = EventLogger()
        report = compute_variances(scenario_left, scenario_right, scenario_ruleset, logger, _TS)
        compute_manifest(
            scenario_left, scenario_right, scenario_ruleset, report,
            event_logger=logger, timestamp=_TS,
        )
        events = logger.export()
        assert [e["type"] for e in events] == [
            "RUN_STARTED",
            "RULESET_VALIDATED",
            "RECORDS_CANONICALIZED",
            "MATCHING_COMPLETED",
            "REPORT_ASSEMBLED",
            "MANIFEST_BUILT",
        ]
        matching = events[3]["data"]
        assert matching == {
            "matched_pairs": 1,
            "unmatched_left": 0,
            "unmatched_right": 0,
            "variance_count": 1,
        }
        assert events[4]["data"]["summary_hash"] == report.summary_hash
        json.dumps(events)

    def test_failure_logged_then_raised(self, make_ruleset):
        logger = EventLogger()
        with pytest.raises(UnknownSelectorError):
            compute_variances([], [], make_ruleset(match_keys=["nope"]), logger, _TS)
        events = logger.export()
        assert [e["type"] for e in events] == ["RUN_STARTED", "RUN_FAILED"]
        assert events[-1]["data"]["error_type"] == "UnknownSelectorError"

    def test_logger_without_timestamp_rejected(self, scenario_left, scenario_right, scenario_ruleset):
        with pytest.raises(LoggingError):
            compute_variances(scenario_left, scenario_right, scenario_ruleset, EventLogger())

    def test_logging_does_not_change_report(self, scenario_left, scenario_right, scenario_ruleset):
        plain = compute_variances(scenario_left, scenario_right, scenario_ruleset)
        logged = compute_variances(
            scenario_left, scenario_right, scenario_ruleset, EventLogger(), _TS
        )
        assert plain == logged
