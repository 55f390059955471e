"""Tests for the @traced_engine decorator and input fingerprints."""

from datetime import date
from decimal import Decimal

import pytest

from payapp_engines import build_continuation, build_summary
from payapp_engines.tracer import compute_input_fingerprint, traced_engine
from payapp_kernel.domain.inputs import RetainageParams
from payapp_kernel.exceptions import DataError


class TestFingerprint:

    def test_deterministic(self):
        args = {"a": Decimal("1.50"), "b": [date(2024, 1, 1), "x"]}
        assert compute_input_fingerprint(("a", "b"), args) == compute_input_fingerprint(("a", "b"), args)

    def test_decimal_scale_does_not_matter(self):
        assert (
            compute_input_fingerprint(("a",), {"a": Decimal("1.50")})
            == compute_input_fingerprint(("a",), {"a": Decimal("1.5")})
        )

    def test_different_inputs_differ(self):
        assert (
            compute_input_fingerprint(("a",), {"a": Decimal("1")})
            != compute_input_fingerprint(("a",), {"a": Decimal("2")})
        )

    def test_mapping_key_order_ignored(self):
        assert (
            compute_input_fingerprint(("m",), {"m": {"x": 1, "y": 2}})
            == compute_input_fingerprint(("m",), {"m": {"y": 2, "x": 1}})
        )

    def test_length(self):
        assert len(compute_input_fingerprint((), {})) == 16


class TestTracedEngine:

    def test_trace_record_emitted(self, captured_logs, make_item):
        build_continuation([make_item("a", 100, 50)], RetainageParams.from_percentages(10, 10))

        traces = [r for r in captured_logs() if r["message"] == "PAYAPP_ENGINE_TRACE"]
        assert len(traces) == 1
        trace = traces[0]
        assert trace["engine_name"] == "continuation"
        assert trace["engine_version"] == "1.0"
        assert len(trace["input_fingerprint"]) == 16
        assert trace["duration_ms"] >= 0
        assert trace["logger"] == "payapp.engines.tracer"

    def test_same_inputs_same_fingerprint(self, captured_logs, make_item, make_project):
        project = make_project()
        sheet = build_continuation([make_item("a", 100, 50)], project.retainage)
        build_summary(project, sheet)
        build_summary(project, sheet)

        fingerprints = [
            r["input_fingerprint"] for r in captured_logs()
            if r["message"] == "PAYAPP_ENGINE_TRACE" and r["engine_name"] == "summary"
        ]
        assert len(fingerprints) == 2
        assert fingerprints[0] == fingerprints[1]

    def test_no_trace_on_failure(self, captured_logs):
        with pytest.raises(DataError):
            build_continuation([{"description": "x"}], RetainageParams.from_percentages(10, 10))
        assert not [r for r in captured_logs() if r["message"] == "PAYAPP_ENGINE_TRACE"]

    def test_keyword_arguments_bound(self, captured_logs):
        @traced_engine("demo", "2.0", fingerprint_fields=("x",))
        def demo(x, y=0):
            return x + y

        assert demo(x=Decimal("1"), y=Decimal("2")) == Decimal("3")
        demo(Decimal("1"))

        traces = [r for r in captured_logs() if r.get("engine_name") == "demo"]
        assert len(traces) == 2
        assert traces[0]["input_fingerprint"] == traces[1]["input_fingerprint"]
        assert traces[0]["function"].endswith("demo")

    def test_wraps_preserves_name(self):
        assert build_continuation.__name__ == "build_continuation"
