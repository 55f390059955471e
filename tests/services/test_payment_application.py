"""Tests for PaymentApplicationService."""

from dataclasses import replace
from decimal import Decimal

import pytest

from payapp_engines import RetainageSource
from payapp_kernel.exceptions import DataError, FormValidationError
from payapp_services import PaymentApplicationService, output_filename


class TestPrepare:

    def test_figures(self, application):
        summary = application.summary
        assert summary.total_completed_and_stored == Decimal("1100")
        assert summary.total_retainage == Decimal("110")
        assert summary.current_payment_due == Decimal("990")
        assert summary.balance_to_finish == Decimal("99010")
        assert application.continuation.totals.row == 9

    def test_run_id_and_source(self, application):
        assert application.run_id == "run-0001"
        assert application.retainage_source is RetainageSource.CONTINUATION

    def test_generated_run_id(self, default_config, line_items, make_project):
        app = PaymentApplicationService(default_config).prepare(line_items, make_project())
        assert len(app.run_id) == 32

    def test_logs_carry_run_context(self, default_config, line_items, make_project, captured_logs):
        PaymentApplicationService(default_config).prepare(line_items, make_project(), run_id="abc")
        logs = captured_logs()

        prepared = [r for r in logs if r["message"] == "payment_application_prepared"]
        assert len(prepared) == 1
        assert prepared[0]["run_id"] == "abc"
        assert prepared[0]["project_name"] == "Main Street Library"
        assert prepared[0]["row_count"] == 2

        traces = [r for r in logs if r["message"] == "PAYAPP_ENGINE_TRACE"]
        assert {t["engine_name"] for t in traces} == {"continuation", "summary"}
        assert all(t["run_id"] == "abc" for t in traces)

    def test_recompute_source(self, default_config, make_item, make_project):
        project = make_project(
            retainage_reduction_threshold=Decimal("50"),
            reduced_retainage_percent=Decimal("5"),
        )
        items = [make_item("a", 1000, 300, 300, 100), make_item("b", 1000, 100, 100, 0)]
        service = PaymentApplicationService(default_config, retainage_source="recompute")
        app = service.prepare(items, project)

        assert app.retainage_source is RetainageSource.RECOMPUTE
        assert app.summary.total_retainage == Decimal("90")
        assert app.continuation.totals.retainage_amount == Decimal("60")

    def test_configured_source_is_default(self, default_config):
        config = replace(default_config, retainage=replace(default_config.retainage, source="recompute"))
        assert PaymentApplicationService(config).retainage_source is RetainageSource.RECOMPUTE

    def test_unknown_source(self, default_config):
        with pytest.raises(ValueError):
            PaymentApplicationService(default_config, retainage_source="average")

    def test_bad_line_item_aborts(self, default_config, make_project):
        items = [{"description": "x", "scheduled_value": "abc"}]
        with pytest.raises(DataError):
            PaymentApplicationService(default_config).prepare(items, make_project())


class TestProjectForms:

    FORM = {
        "owner_name": "City of Springfield",
        "project_name": "Main Street Library",
        "application_number": "3",
        "contractor_name": "Acme Builders",
        "period_to": "2024-05-31",
        "contract_date": "2024-01-15",
        "original_contract_sum": "100000",
        "change_orders_sum": "0",
        "previous_payments": "0",
    }

    def test_form_uses_configured_percent_defaults(self, default_config, line_items):
        app = PaymentApplicationService(default_config).prepare(line_items, dict(self.FORM))
        assert app.project.retainage_completed_percent == Decimal("10")
        assert app.project.retainage_stored_percent == Decimal("10")
        assert app.summary.current_payment_due == Decimal("990")

    def test_invalid_form(self, default_config, line_items):
        form = dict(self.FORM, period_to="yesterday")
        with pytest.raises(FormValidationError):
            PaymentApplicationService(default_config).prepare(line_items, form)


class TestOutputFilename:

    def test_default_pattern(self, application):
        assert application.filename == "AIA_G702G703_Main_Street_Library_3.xlsx"

    def test_unsafe_characters_replaced(self, default_config, make_project):
        project = make_project(project_name="Smith & Sons / Phase 2", application_number="#4")
        assert output_filename(project, default_config) == "AIA_G702G703_Smith___Sons___Phase_2__4.xlsx"
