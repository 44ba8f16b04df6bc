import json
from hashlib import sha256

from settler.kernel import (
    Severity,
    VarianceType,
    assemble_report,
    build_variance,
    summarize,
)
from settler.kernel.report import summary_hash


def _variances():
    return [
        build_variance(VarianceType.MISSING_RIGHT, Severity.HIGH, "L-1", None, 0, "a"),
        build_variance(VarianceType.MISSING_LEFT, Severity.HIGH, None, "R-1", 0, "b"),
        build_variance(VarianceType.AMOUNT_MISMATCH, Severity.MEDIUM, "L-2", "R-2", 10, "c"),
        build_variance(VarianceType.FIELD_MISMATCH, Severity.LOW, "L-3", "R-3", -1, "d"),
    ]


class TestAssembleReport:
    def test_sorted_by_variance_id(self):
        report = assemble_report(_variances())
        ids = [v.variance_id for v in report.variances]
        assert ids == sorted(ids)

    def test_order_independent(self):
        forward = assemble_report(_variances())
        backward = assemble_report(list(reversed(_variances())))
        assert forward == backward

    def test_schema_version(self):
        assert assemble_report([]).schema_version == "v1"

    def test_summary_hash_over_ordered_variance_array(self):
        report = assemble_report(_variances())
        payload = [
            {
                "variance_id": v.variance_id,
                "variance_type": v.variance_type.value,
                "severity": v.severity.value,
                "left_record_id": v.left_record_id,
                "right_record_id": v.right_record_id,
                "amount_delta_minor_units": v.amount_delta_minor_units,
                "rationale": v.rationale,
            }
            for v in report.variances
        ]
        expected = sha256(
            json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        ).hexdigest()
        assert report.summary_hash == expected

    def test_empty_report_hash_is_hash_of_empty_array(self):
        report = assemble_report([])
        assert report.variances == ()
        assert report.summary_hash == sha256(b"[]").hexdigest()
        assert summary_hash([]) == report.summary_hash


class TestSummarize:
    def test_counts_zero_filled_in_declaration_order(self):
        summary = summarize(assemble_report(_variances()[:1]))
        assert summary.total == 1
        assert list(summary.counts_by_type) == [
            "missing_right", "missing_left", "field_mismatch", "amount_mismatch",
        ]
        assert summary.counts_by_type["missing_right"] == 1
        assert summary.counts_by_type["amount_mismatch"] == 0

    def test_counts_sum_to_total(self):
        summary = summarize(assemble_report(_variances()))
        assert sum(summary.counts_by_type.values()) == summary.total == 4
