"""
Tests for the summary sheet engine.

Tests cover:
- The line sequence and its identities
- Both retainage sources, with and without threshold reduction
- References into the continuation totals
- DependencyError for missing or non-numeric totals and mismatched rates
- Formula audit
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from payapp_engines import (
    ContinuationSheet,
    ContinuationTotals,
    RetainageSource,
    SummaryLineKey,
    build_continuation,
    build_summary,
    render_formula,
    verify_summary,
)
from payapp_engines.layout import summary_cell
from payapp_kernel.domain.cells import SheetId
from payapp_kernel.domain.inputs import RetainageParams
from payapp_kernel.exceptions import DataError, DependencyError

Key = SummaryLineKey

TITLES = {
    SheetId.CONTINUATION: "G703 - Continuation Sheet",
    SheetId.SUMMARY: "G702 - Application",
}


def totals_only(**fields) -> ContinuationSheet:
    """A continuation sheet with no rows and hand-set totals."""
    return ContinuationSheet(rows=(), totals=ContinuationTotals(**fields))


def formula_text(summary, key) -> str:
    return render_formula(summary.line(key).formula, SheetId.SUMMARY, TITLES)


# ============================================================================
# Line sequence
# ============================================================================


class TestLineSequence:
    """Tests for the numbered lines and their arithmetic."""

    def test_reference_scenario(self, make_project):
        project = make_project(
            original_contract_sum=Decimal("100000"),
            change_orders_sum=Decimal("5000"),
            previous_payments=Decimal("20000"),
        )
        continuation = totals_only(
            total_completed_and_stored=Decimal("60000"),
            retainage_amount=Decimal("6000"),
        )
        summary = build_summary(project, continuation)

        assert summary.contract_sum_to_date == Decimal("105000")
        assert summary.total_completed_and_stored == Decimal("60000")
        assert summary.total_retainage == Decimal("6000")
        assert summary.total_earned_less_retainage == Decimal("54000")
        assert summary.current_payment_due == Decimal("34000")
        assert summary.balance_to_finish == Decimal("51000")

    def test_line_order_and_cells(self, make_project, make_item):
        continuation = build_continuation([make_item("a", 1000, 200, 300)], make_project().retainage)
        summary = build_summary(make_project(), continuation)

        assert [line.number for line in summary.lines] == [
            "1", "2", "3", "4", "5", "5a", "5b", "6", "7", "8", "9",
        ]
        assert summary.line(Key.ORIGINAL_CONTRACT_SUM).cell.address == "H10"
        assert summary.line(Key.RETAINAGE_COMPLETED_WORK).cell.address == "G15"
        assert summary.line(Key.RETAINAGE_STORED_MATERIAL).cell.address == "G16"
        assert summary.line(Key.BALANCE_TO_FINISH).cell.address == "H20"

    def test_literal_lines_have_no_formula(self, make_project):
        summary = build_summary(make_project(), totals_only())
        for key in (Key.ORIGINAL_CONTRACT_SUM, Key.NET_CHANGE_ORDERS, Key.PREVIOUS_PAYMENTS):
            assert summary.line(key).is_literal
        assert not summary.line(Key.CONTRACT_SUM_TO_DATE).is_literal

    def test_negative_change_orders(self, make_project):
        summary = build_summary(make_project(change_orders_sum=Decimal("-2500")), totals_only())
        assert summary.contract_sum_to_date == Decimal("97500")

    def test_overpayment_gives_negative_payment_due(self, make_project):
        project = make_project(previous_payments=Decimal("90000"))
        summary = build_summary(project, totals_only(total_completed_and_stored=Decimal("50000")))
        assert summary.current_payment_due < 0

    def test_labels_carry_percentages(self, make_project):
        project = make_project(retainage_completed_percent=Decimal("7.5"),
                               retainage_stored_percent=Decimal("5"))
        summary = build_summary(project, totals_only())
        assert summary.line(Key.RETAINAGE_COMPLETED_WORK).label == "a. 7.5% of Completed Work"
        assert summary.line(Key.RETAINAGE_STORED_MATERIAL).label == "b. 5% of Stored Material"

    def test_unknown_line(self, make_project):
        summary = build_summary(make_project(), totals_only())
        with pytest.raises(KeyError):
            summary.line("10")


# ============================================================================
# Retainage source
# ============================================================================


class TestRetainageSource:
    """Line 5 from the continuation total vs recomputed at flat rates."""

    @pytest.fixture
    def threshold_project(self, make_project):
        return make_project(
            retainage_reduction_threshold=Decimal("50"),
            reduced_retainage_percent=Decimal("5"),
        )

    @pytest.fixture
    def threshold_sheet(self, threshold_project, make_item):
        # Row a crosses the threshold (70%), row b does not (20%)
        return build_continuation([
            make_item("a", 1000, 300, 300, 100),
            make_item("b", 1000, 100, 100, 0),
        ], threshold_project.retainage)

    def test_continuation_source_uses_row_level_reduction(self, threshold_project, threshold_sheet):
        summary = build_summary(threshold_project, threshold_sheet, RetainageSource.CONTINUATION)

        # Row a: 600 * 5% + 100 * 10% = 40. Row b: 200 * 10% = 20
        assert summary.total_retainage == Decimal("60")
        assert summary.value(Key.RETAINAGE_STORED_MATERIAL) == Decimal("10")
        assert summary.value(Key.RETAINAGE_COMPLETED_WORK) == Decimal("50")
        assert summary.total_retainage == threshold_sheet.totals.retainage_amount

    def test_recompute_source_uses_flat_rates(self, threshold_project, threshold_sheet):
        summary = build_summary(threshold_project, threshold_sheet, RetainageSource.RECOMPUTE)

        # (400 + 400) completed work * 10%, 100 stored * 10%
        assert summary.value(Key.RETAINAGE_COMPLETED_WORK) == Decimal("80")
        assert summary.value(Key.RETAINAGE_STORED_MATERIAL) == Decimal("10")
        assert summary.total_retainage == Decimal("90")

    def test_recompute_logs_disagreement(self, threshold_project, threshold_sheet, captured_logs):
        build_summary(threshold_project, threshold_sheet, RetainageSource.RECOMPUTE)
        warnings = [r for r in captured_logs() if r["message"] == "summary_retainage_differs_from_continuation"]
        assert len(warnings) == 1
        assert Decimal(warnings[0]["summary_retainage"]) == Decimal("90")
        assert Decimal(warnings[0]["continuation_retainage"]) == Decimal("60")

    def test_sources_agree_without_threshold(self, make_project, make_item):
        project = make_project(retainage_stored_percent=Decimal("5"))
        sheet = build_continuation([
            make_item("a", 1000, 200, 300, 100),
            make_item("b", 500, 0, 250, 50),
        ], project.retainage)
        from_continuation = build_summary(project, sheet, RetainageSource.CONTINUATION)
        recomputed = build_summary(project, sheet, "recompute")

        for key in Key:
            assert from_continuation.value(key) == recomputed.value(key)

    def test_unknown_source_rejected(self, make_project):
        with pytest.raises(ValueError):
            build_summary(make_project(), totals_only(), "guess")


# ============================================================================
# Formulas
# ============================================================================


class TestSummaryFormulas:
    """Formula text of each derived line."""

    @pytest.fixture
    def two_row_sheet(self, make_project, make_item):
        return build_continuation(
            [make_item("a", 1000, 200, 300), make_item("b", 500, 100)],
            make_project().retainage,
        )

    def test_continuation_source_formulas(self, make_project, two_row_sheet):
        summary = build_summary(make_project(), two_row_sheet)

        assert formula_text(summary, Key.CONTRACT_SUM_TO_DATE) == "=H10+H11"
        assert formula_text(summary, Key.TOTAL_COMPLETED_AND_STORED) == "='G703 - Continuation Sheet'!G9"
        assert formula_text(summary, Key.TOTAL_RETAINAGE) == "='G703 - Continuation Sheet'!J9"
        assert formula_text(summary, Key.RETAINAGE_COMPLETED_WORK) == "=H14-G16"
        assert formula_text(summary, Key.RETAINAGE_STORED_MATERIAL) == "='G703 - Continuation Sheet'!F9*0.1"
        assert formula_text(summary, Key.TOTAL_EARNED_LESS_RETAINAGE) == "=H13-H14"
        assert formula_text(summary, Key.CURRENT_PAYMENT_DUE) == "=H17-H18"
        assert formula_text(summary, Key.BALANCE_TO_FINISH) == "=H12-H17"

    def test_recompute_source_formulas(self, make_project, two_row_sheet):
        summary = build_summary(make_project(), two_row_sheet, RetainageSource.RECOMPUTE)

        assert formula_text(summary, Key.TOTAL_RETAINAGE) == "=G15+G16"
        assert formula_text(summary, Key.RETAINAGE_COMPLETED_WORK) == (
            "=('G703 - Continuation Sheet'!D9+'G703 - Continuation Sheet'!E9)*0.1"
        )

    def test_line_cells_match_layout(self, make_project, two_row_sheet):
        summary = build_summary(make_project(), two_row_sheet)
        for line in summary.lines:
            assert line.cell == summary_cell(line.key)


# ============================================================================
# Dependencies
# ============================================================================


class TestDependencies:
    """A missing or non-numeric total aborts the summary."""

    @pytest.mark.parametrize("field, address", [
        ("total_completed_and_stored", "G7"),
        ("retainage_amount", "J7"),
        ("stored_materials", "F7"),
    ])
    def test_missing_total(self, make_project, field, address):
        with pytest.raises(DependencyError) as exc_info:
            build_summary(make_project(), totals_only(**{field: None}))
        assert address in exc_info.value.reference

    @pytest.mark.parametrize("bad", [Decimal("NaN"), Decimal("Infinity"), True, "12"])
    def test_non_numeric_total(self, make_project, bad):
        with pytest.raises(DependencyError):
            build_summary(make_project(), totals_only(total_completed_and_stored=bad))

    def test_int_totals_accepted(self, make_project):
        summary = build_summary(make_project(), totals_only(
            total_completed_and_stored=600, retainage_amount=60, stored_materials=0,
        ))
        assert summary.total_earned_less_retainage == Decimal("540")

    def test_continuation_built_with_other_rates(self, make_project, make_item):
        sheet = build_continuation(
            [make_item("a", 1000, 200, 300, 100)],
            make_project(retainage_stored_percent=Decimal("5")).retainage,
        )
        with pytest.raises(DependencyError) as exc_info:
            build_summary(make_project(), sheet)
        assert exc_info.value.reference == "continuation.retainage"

    def test_continuation_with_equal_rates_accepted(self, make_project, make_item):
        sheet = build_continuation(
            [make_item("a", 1000, 200, 300, 100)],
            RetainageParams(completed_rate=Decimal("0.10"), stored_rate=Decimal("0.1")),
        )
        summary = build_summary(make_project(), sheet)
        assert summary.value(Key.RETAINAGE_STORED_MATERIAL) == Decimal("10")

    def test_recompute_needs_completed_totals(self, make_project):
        with pytest.raises(DependencyError):
            build_summary(
                make_project(),
                totals_only(previous_completed=None),
                RetainageSource.RECOMPUTE,
            )

    def test_continuation_source_ignores_completed_totals(self, make_project):
        summary = build_summary(make_project(), totals_only(previous_completed=None))
        assert summary.total_retainage == 0

    def test_not_a_continuation_sheet(self, make_project):
        with pytest.raises(DependencyError):
            build_summary(make_project(), {"totals": {}})

    def test_bad_project(self, make_project):
        with pytest.raises(DataError):
            build_summary(make_project(retainage_completed_percent=Decimal("200")), totals_only())


# ============================================================================
# Audit
# ============================================================================


class TestVerifySummary:

    @pytest.mark.parametrize("source", list(RetainageSource))
    def test_computed_summary_verifies(self, source, make_project, make_item):
        project = make_project(
            change_orders_sum=Decimal("1234.56"),
            previous_payments=Decimal("333.33"),
            retainage_reduction_threshold=Decimal("40"),
            reduced_retainage_percent=Decimal("2.5"),
        )
        sheet = build_continuation([
            make_item("a", "1000.10", "200.20", "300.30", "12.34"),
            make_item("b", "777", "7", "0", "0"),
        ], project.retainage)
        verify_summary(build_summary(project, sheet, source), sheet)

    def test_tampered_line_fails(self, make_project, make_item):
        sheet = build_continuation([make_item("a", 1000, 200, 300)], make_project().retainage)
        summary = build_summary(make_project(), sheet)
        lines = tuple(
            replace(line, value=line.value + 1) if line.key is Key.CURRENT_PAYMENT_DUE else line
            for line in summary.lines
        )
        with pytest.raises(DependencyError) as exc_info:
            verify_summary(replace(summary, lines=lines), sheet)
        assert "H19" in exc_info.value.reference
