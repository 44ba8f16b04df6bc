from settler.kernel import (
    Severity,
    VarianceType,
    canonicalize_and_sort,
    match_records,
    validate_ruleset,
)
from settler.utils.constants import RATIONALE_MISSING_LEFT, RATIONALE_MISSING_RIGHT


def _run(left, right, ruleset):
    compiled = validate_ruleset(ruleset)
    return match_records(
        canonicalize_and_sort(left, compiled.match_selectors),
        canonicalize_and_sort(right, compiled.match_selectors),
        compiled,
    )


def _by_type(outcome, variance_type):
    return [v for v in outcome.variances if v.variance_type is variance_type]


class TestMatching:
    def test_matched_pair_compared(self, scenario_left, scenario_right, scenario_ruleset):
        outcome = _run(scenario_left, scenario_right, scenario_ruleset)
        assert outcome.matched_pairs == 1
        assert outcome.unmatched_left == 0
        assert outcome.unmatched_right == 0
        assert [v.variance_type for v in outcome.variances] == [VarianceType.AMOUNT_MISMATCH]

    def test_missing_right(self, make_record, make_ruleset):
        left = [make_record("L-1", attributes={"invoice": "inv-1"})]
        outcome = _run(left, [], make_ruleset())
        variance = outcome.variances[0]
        assert variance.variance_type is VarianceType.MISSING_RIGHT
        assert variance.severity is Severity.HIGH
        assert variance.left_record_id == "L-1"
        assert variance.right_record_id is None
        assert variance.amount_delta_minor_units == 0
        assert variance.rationale == RATIONALE_MISSING_RIGHT

    def test_missing_left(self, make_record, make_ruleset):
        right = [make_record("R-1", attributes={"invoice": "inv-1"})]
        outcome = _run([], right, make_ruleset())
        variance = outcome.variances[0]
        assert variance.variance_type is VarianceType.MISSING_LEFT
        assert variance.left_record_id is None
        assert variance.right_record_id == "R-1"
        assert variance.rationale == RATIONALE_MISSING_LEFT

    def test_both_sides_empty(self, make_ruleset):
        outcome = _run([], [], make_ruleset())
        assert outcome.variances == ()
        assert outcome.matched_pairs == 0


class TestUnmatchedCounts:
    def test_n_unmatched_left_give_n_missing_right(self, make_record, make_ruleset):
        left = [make_record(f"L-{i}", attributes={"invoice": f"only-left-{i}"}) for i in range(5)]
        left.append(make_record("L-shared", attributes={"invoice": "shared"}))
        right = [make_record("R-shared", attributes={"invoice": "shared"})]
        right += [make_record(f"R-{i}", attributes={"invoice": f"only-right-{i}"}) for i in range(3)]

        outcome = _run(left, right, make_ruleset())
        missing_right = _by_type(outcome, VarianceType.MISSING_RIGHT)
        missing_left = _by_type(outcome, VarianceType.MISSING_LEFT)

        assert len(missing_right) == 5
        assert len(missing_left) == 3
        assert outcome.unmatched_left == 5
        assert outcome.unmatched_right == 3
        assert all(v.left_record_id and v.right_record_id is None for v in missing_right)
        assert all(v.right_record_id and v.left_record_id is None for v in missing_left)


class TestDuplicateKeys:
    def test_fifo_consumption_in_record_id_order(self, make_record, make_ruleset):
        left = [
            make_record("L-b", attributes={"invoice": "dup"}),
            make_record("L-a", attributes={"invoice": "dup"}),
        ]
        right = [make_record("R-a", attributes={"invoice": "dup"})]
        outcome = _run(left, right, make_ruleset(compare_keys=["record_id"]))

        mismatches = _by_type(outcome, VarianceType.FIELD_MISMATCH)
        missing_right = _by_type(outcome, VarianceType.MISSING_RIGHT)
        assert [(v.left_record_id, v.right_record_id) for v in mismatches] == [("L-a", "R-a")]
        assert [v.left_record_id for v in missing_right] == ["L-b"]

    def test_right_record_matched_at_most_once(self, make_record, make_ruleset):
        left = [make_record(f"L-{i}", attributes={"invoice": "k"}) for i in range(3)]
        right = [make_record(f"R-{i}", attributes={"invoice": "k"}) for i in range(2)]
        outcome = _run(left, right, make_ruleset())
        assert outcome.matched_pairs == 2
        assert outcome.unmatched_left == 1
        assert outcome.unmatched_right == 0
