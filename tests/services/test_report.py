"""Tests for the text and dict renderings."""

import json
from decimal import Decimal

import pytest

from payapp_services import format_money, format_percent, render_text_report, to_dict


@pytest.mark.parametrize("amount, expected", [
    (Decimal("1234.5"), "1,234.50"),
    (Decimal("0.005"), "0.01"),
    (Decimal("-200"), "-200.00"),
    (Decimal("0"), "0.00"),
])
def test_format_money(amount, expected):
    assert format_money(amount) == expected


def test_format_percent():
    assert format_percent(Decimal("0.5")) == "50.00%"
    assert format_percent(Decimal("1.2")) == "120.00%"


class TestTextReport:

    def test_contains_both_sheets(self, application):
        text = render_text_report(application)
        assert text.startswith("G702 - Application\n")
        assert "G703 - Continuation Sheet" in text
        assert "Project:          Main Street Library" in text
        assert text.endswith("\n")

    def test_summary_lines(self, application):
        lines = render_text_report(application).splitlines()
        due = next(line for line in lines if line.startswith("8. CURRENT PAYMENT DUE"))
        assert due.endswith("990.00")
        breakdown = next(line for line in lines if "of Stored Material" in line)
        assert breakdown.startswith("    b. 10%")

    def test_rows_and_totals(self, application):
        lines = render_text_report(application).splitlines()
        sitework = next(line for line in lines if "Sitework" in line)
        assert "50.00%" in sitework
        totals = next(line for line in lines if "TOTALS" in line)
        assert "3,000.00" in totals
        assert "110.00" in totals


class TestToDict:

    def test_is_json_serializable(self, application):
        json.dumps(to_dict(application))

    def test_header_fields(self, application):
        data = to_dict(application)
        assert data["run_id"] == "run-0001"
        assert data["filename"] == "AIA_G702G703_Main_Street_Library_3.xlsx"
        assert data["retainage_source"] == "continuation"
        assert data["config"]["config_id"] == "aia-g702-g703"
        assert data["project"]["period_to"] == "2024-05-31"

    def test_rows(self, application):
        row = to_dict(application)["continuation"]["rows"][0]
        assert row["row"] == 7
        assert row["total_completed_and_stored"] == "500.00"
        assert row["percent_complete"] == "0.5000"
        assert row["retainage"] == "50.00"
        assert row["reduced_retainage_applied"] is False
        assert row["formulas"]["G"] == "=SUM(D7:F7)"

    def test_totals(self, application):
        totals = to_dict(application)["continuation"]["totals"]
        assert totals["row"] == 9
        assert totals["scheduled_value"] == "3000.00"
        assert totals["retainage"] == "110.00"
        assert "percent_complete" not in totals

    def test_summary_lines(self, application):
        lines = {line["line"]: line for line in to_dict(application)["summary"]["lines"]}
        assert list(lines) == ["1", "2", "3", "4", "5", "5a", "5b", "6", "7", "8", "9"]
        assert lines["1"]["formula"] is None
        assert lines["4"]["cell"] == "H13"
        assert lines["4"]["formula"] == "='G703 - Continuation Sheet'!G9"
        assert lines["8"]["value"] == "990.00"
