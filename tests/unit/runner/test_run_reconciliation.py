import json

import pytest

from settler.kernel import (
    ArtifactFormatError,
    InvalidRoundingIncrementError,
    KernelValidationError,
    UnknownCompareKeyError,
    UnknownSelectorError,
    record_to_dict,
    ruleset_to_dict,
)
from settler.runner.failure_handler import (
    FAILURE_TYPES,
    FailureHandler,
    classify_exception,
)
from settler.runner.run_reconciliation import main

_TS = "2024-01-02T10:00:00+00:00"


def _reconcile_args(input_files, out_dir, *extra):
    left, right, ruleset = input_files
    return [
        "reconcile",
        "--left", str(left),
        "--right", str(right),
        "--ruleset", str(ruleset),
        "--out-dir", str(out_dir),
        "--timestamp", _TS,
        *extra,
    ]


def _failure_record(out_dir):
    return json.loads((out_dir / "failure_record.json").read_text(encoding="utf-8"))


class TestReconcile:
    def test_writes_run_pack_and_returns_zero(self, tmp_path, input_files, capsys):
        out_dir = tmp_path / "run"
        assert main(_reconcile_args(input_files, out_dir)) == 0

        for name in ("left.json", "right.json", "ruleset.json", "variance.json",
                     "manifest.json", "audit_log.json"):
            assert (out_dir / name).is_file(), name
        assert not (out_dir / "failure_record.json").exists()

        out = capsys.readouterr().out
        assert "RECONCILIATION RESULT: VARIANCES" in out
        assert "amount_mismatch=1" in out

    def test_audit_log_uses_given_timestamp(self, tmp_path, input_files):
        out_dir = tmp_path / "run"
        main(_reconcile_args(input_files, out_dir))
        document = json.loads((out_dir / "audit_log.json").read_text(encoding="utf-8"))
        assert {e["timestamp"] for e in document["events"]} == {_TS}
        assert document["events"][-1]["type"] == "MANIFEST_BUILT"

    def test_repeat_runs_byte_identical(self, tmp_path, input_files):
        first, second = tmp_path / "a", tmp_path / "b"
        main(_reconcile_args(input_files, first))
        main(_reconcile_args(input_files, second))
        for name in ("left.json", "right.json", "ruleset.json", "variance.json", "manifest.json"):
            assert (first / name).read_bytes() == (second / name).read_bytes()

    def test_fail_on_variance(self, tmp_path, input_files):
        out_dir = tmp_path / "run"
        with pytest.raises(SystemExit) as exc_info:
            main(_reconcile_args(input_files, out_dir, "--fail-on-variance"))
        assert exc_info.value.code == 1
        assert _failure_record(out_dir)["failure_type_id"] == "VARIANCES_PRESENT"
        assert (out_dir / "manifest.json").is_file()

    def test_unknown_selector_exits_two(self, tmp_path, input_files, scenario_ruleset):
        left, right, ruleset_path = input_files
        document = ruleset_to_dict(scenario_ruleset)
        document["match_keys"] = ["invoice"]
        ruleset_path.write_text(json.dumps(document), encoding="utf-8")

        out_dir = tmp_path / "run"
        with pytest.raises(SystemExit) as exc_info:
            main(_reconcile_args((left, right, ruleset_path), out_dir))
        assert exc_info.value.code == 2
        record = _failure_record(out_dir)
        assert record["failure_type_id"] == "UNKNOWN_SELECTOR"
        assert not (out_dir / "variance.json").exists()

        audit = json.loads((out_dir / "audit_log.json").read_text(encoding="utf-8"))
        assert audit["events"][-1]["type"] == "RUN_FAILED"

    def test_missing_left_file_exits_three(self, tmp_path, input_files):
        _, right, ruleset = input_files
        out_dir = tmp_path / "run"
        with pytest.raises(SystemExit) as exc_info:
            main(_reconcile_args((tmp_path / "nope.json", right, ruleset), out_dir))
        assert exc_info.value.code == 3
        assert _failure_record(out_dir)["failure_type_id"] == "INVALID_RECORD"

    def test_lone_surrogate_record_exits_three(self, tmp_path, input_files, make_record):
        _, right, ruleset = input_files
        record = record_to_dict(make_record())
        record["record_id"] = "\ud800"
        left = tmp_path / "in" / "surrogate.json"
        left.write_text(json.dumps([record]), encoding="utf-8")

        out_dir = tmp_path / "run"
        with pytest.raises(SystemExit) as exc_info:
            main(_reconcile_args((left, right, ruleset), out_dir))
        assert exc_info.value.code == 3
        assert _failure_record(out_dir)["failure_type_id"] == "INVALID_RECORD"

    def test_bad_timestamp_exits_two(self, tmp_path, input_files):
        left, right, ruleset = input_files
        out_dir = tmp_path / "run"
        argv = [
            "reconcile", "--left", str(left), "--right", str(right),
            "--ruleset", str(ruleset), "--out-dir", str(out_dir),
            "--timestamp", "yesterday",
        ]
        with pytest.raises(SystemExit) as exc_info:
            main(argv)
        assert exc_info.value.code == 2
        record = _failure_record(out_dir)
        assert record["failure_type_id"] == "INVALID_ARGUMENT"
        assert record["field_name"] == "timestamp"


class TestVerifyCommand:
    def test_pass(self, tmp_path, input_files, capsys):
        out_dir = tmp_path / "run"
        main(_reconcile_args(input_files, out_dir))
        capsys.readouterr()
        assert main(["verify", "--run-dir", str(out_dir)]) == 0
        assert "VERIFICATION RESULT: PASS" in capsys.readouterr().out

    def test_tampered_pack_returns_five(self, tmp_path, input_files, capsys):
        out_dir = tmp_path / "run"
        main(_reconcile_args(input_files, out_dir))
        path = out_dir / "left.json"
        path.write_bytes(path.read_bytes().replace(b"105", b"106"))
        capsys.readouterr()

        assert main(["verify", "--run-dir", str(out_dir)]) == 5
        out = capsys.readouterr().out
        assert "VERIFICATION RESULT: FAIL" in out
        assert "hash mismatch for left.json" in out

    def test_empty_directory(self, tmp_path):
        assert main(["verify", "--run-dir", str(tmp_path)]) == 5


class TestClassifyException:
    @pytest.mark.parametrize("exc, expected", [
        (UnknownSelectorError("x"), "UNKNOWN_SELECTOR"),
        (UnknownCompareKeyError("x"), "UNKNOWN_COMPARE_KEY"),
        (InvalidRoundingIncrementError(0), "INVALID_ROUNDING_INCREMENT"),
        (ArtifactFormatError("ruleset", "bad"), "INVALID_RULESET"),
        (ArtifactFormatError("record", "bad"), "INVALID_RECORD"),
        (ArtifactFormatError("records", "bad"), "INVALID_RECORD"),
        (ArtifactFormatError("manifest", "bad"), "ARTIFACT_FORMAT_ERROR"),
        (KernelValidationError("tolerance_minor_units", -1, "must be >= 0"), "INVALID_RULESET"),
        (RuntimeError("boom"), "RUNNER_INTERNAL_ERROR"),
    ])
    def test_mapping(self, exc, expected):
        assert classify_exception(exc) == expected
        assert expected in FAILURE_TYPES


class TestFailureHandler:
    def test_writes_record_then_exits(self, tmp_path):
        fh = FailureHandler(out_dir=tmp_path / "out", run_id="RUN-TEST")
        with pytest.raises(SystemExit) as exc_info:
            fh.handle("VERIFICATION_FAILED", "hash mismatch", detected_at_iso="2024-01-02T10:00:00+00:00")
        assert exc_info.value.code == 5

        record = json.loads(fh.record_path.read_text(encoding="utf-8"))
        assert record["run_id"] == "RUN-TEST"
        assert record["exit_code"] == 5
        assert record["detected_at_iso"] == "2024-01-02T10:00:00+00:00"
        assert record["field_name"] == ""

    def test_unknown_failure_type_is_internal(self, tmp_path):
        fh = FailureHandler(out_dir=tmp_path, run_id="RUN-TEST")
        with pytest.raises(SystemExit) as exc_info:
            fh.handle("NOT_A_TYPE", "detail")
        assert exc_info.value.code == 4

    def test_from_exception_carries_field(self, tmp_path):
        fh = FailureHandler(out_dir=tmp_path, run_id="RUN-TEST")
        with pytest.raises(SystemExit) as exc_info:
            fh.handle_from_exception(
                KernelValidationError("tolerance_minor_units", -1, "must be >= 0")
            )
        assert exc_info.value.code == 2
        assert json.loads(fh.record_path.read_text(encoding="utf-8"))["field_name"] == (
            "tolerance_minor_units"
        )
