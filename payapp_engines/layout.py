"""
Sheet layout shared by the engines and the workbook writer.

Fixes where every figure of the AIA G703 continuation sheet and the G702
summary sheet lives, so that formula references computed by the engines
point at the same cells the writer fills.

Continuation sheet (G703):
    row 6        column headers
    rows 7..n+6  one row per budget line item
    row n+7      totals (row 7 when there are no line items)

Summary sheet (G702):
    column H     line values 1-9
    column G     retainage breakdown 5a / 5b
"""

from __future__ import annotations

from enum import Enum

from payapp_kernel.domain.cells import CellRef, SheetId


class ContinuationColumn(str, Enum):
    """Columns of the continuation sheet; the value is the column letter."""

    ITEM_NUMBER = "A"
    DESCRIPTION = "B"
    SCHEDULED_VALUE = "C"
    PREVIOUS_COMPLETED = "D"
    CURRENT_COMPLETED = "E"
    STORED_MATERIALS = "F"
    TOTAL_COMPLETED_AND_STORED = "G"
    PERCENT_COMPLETE = "H"
    BALANCE_TO_FINISH = "I"
    RETAINAGE = "J"


class SummaryLineKey(str, Enum):
    """Numbered lines of the certified-payment calculation."""

    ORIGINAL_CONTRACT_SUM = "1"
    NET_CHANGE_ORDERS = "2"
    CONTRACT_SUM_TO_DATE = "3"
    TOTAL_COMPLETED_AND_STORED = "4"
    TOTAL_RETAINAGE = "5"
    RETAINAGE_COMPLETED_WORK = "5a"
    RETAINAGE_STORED_MATERIAL = "5b"
    TOTAL_EARNED_LESS_RETAINAGE = "6"
    PREVIOUS_PAYMENTS = "7"
    CURRENT_PAYMENT_DUE = "8"
    BALANCE_TO_FINISH = "9"


# ----------------------------------------------------------------------------
# Continuation sheet
# ----------------------------------------------------------------------------

CONTINUATION_HEADER_ROW = 6
CONTINUATION_FIRST_DATA_ROW = CONTINUATION_HEADER_ROW + 1

CONTINUATION_HEADERS: dict[ContinuationColumn, str] = {
    ContinuationColumn.ITEM_NUMBER: "Item No.",
    ContinuationColumn.DESCRIPTION: "Description of Work",
    ContinuationColumn.SCHEDULED_VALUE: "Scheduled Value",
    ContinuationColumn.PREVIOUS_COMPLETED: "Work Completed\nFrom Previous\nApplication",
    ContinuationColumn.CURRENT_COMPLETED: "Work Completed\nThis Period",
    ContinuationColumn.STORED_MATERIALS: "Materials Presently Stored",
    ContinuationColumn.TOTAL_COMPLETED_AND_STORED: "Total Completed\nand Stored to\nDate (D+E+F)",
    ContinuationColumn.PERCENT_COMPLETE: "% (G ÷ C)",
    ContinuationColumn.BALANCE_TO_FINISH: "Balance to Finish (C-G)",
    ContinuationColumn.RETAINAGE: "Retainage",
}

# Columns summed on the totals row; percent complete is never summed.
CONTINUATION_TOTAL_COLUMNS: tuple[ContinuationColumn, ...] = (
    ContinuationColumn.SCHEDULED_VALUE,
    ContinuationColumn.PREVIOUS_COMPLETED,
    ContinuationColumn.CURRENT_COMPLETED,
    ContinuationColumn.STORED_MATERIALS,
    ContinuationColumn.TOTAL_COMPLETED_AND_STORED,
    ContinuationColumn.BALANCE_TO_FINISH,
    ContinuationColumn.RETAINAGE,
)

CONTINUATION_CURRENCY_COLUMNS = CONTINUATION_TOTAL_COLUMNS
CONTINUATION_PERCENT_COLUMNS: tuple[ContinuationColumn, ...] = (
    ContinuationColumn.PERCENT_COMPLETE,
)


def continuation_data_row(index: int) -> int:
    """Sheet row of the line item at 0-based ``index``."""
    return CONTINUATION_FIRST_DATA_ROW + index


def continuation_totals_row(row_count: int) -> int:
    """Sheet row of the totals line for a sheet with ``row_count`` items."""
    return CONTINUATION_FIRST_DATA_ROW + row_count


def continuation_cell(row: int, column: ContinuationColumn) -> CellRef:
    return CellRef(SheetId.CONTINUATION, row, column.value)


# ----------------------------------------------------------------------------
# Summary sheet
# ----------------------------------------------------------------------------

SUMMARY_TITLE_ROW = 8
SUMMARY_FIRST_LINE_ROW = SUMMARY_TITLE_ROW + 2
SUMMARY_LABEL_COLUMN = "A"
SUMMARY_BREAKDOWN_LABEL_COLUMN = "B"
SUMMARY_VALUE_COLUMN = "H"
SUMMARY_BREAKDOWN_COLUMN = "G"

_SUMMARY_ORDER: tuple[SummaryLineKey, ...] = (
    SummaryLineKey.ORIGINAL_CONTRACT_SUM,
    SummaryLineKey.NET_CHANGE_ORDERS,
    SummaryLineKey.CONTRACT_SUM_TO_DATE,
    SummaryLineKey.TOTAL_COMPLETED_AND_STORED,
    SummaryLineKey.TOTAL_RETAINAGE,
    SummaryLineKey.RETAINAGE_COMPLETED_WORK,
    SummaryLineKey.RETAINAGE_STORED_MATERIAL,
    SummaryLineKey.TOTAL_EARNED_LESS_RETAINAGE,
    SummaryLineKey.PREVIOUS_PAYMENTS,
    SummaryLineKey.CURRENT_PAYMENT_DUE,
    SummaryLineKey.BALANCE_TO_FINISH,
)

BREAKDOWN_LINES = frozenset({
    SummaryLineKey.RETAINAGE_COMPLETED_WORK,
    SummaryLineKey.RETAINAGE_STORED_MATERIAL,
})

SUMMARY_LABELS: dict[SummaryLineKey, str] = {
    SummaryLineKey.ORIGINAL_CONTRACT_SUM: "1. ORIGINAL CONTRACT SUM",
    SummaryLineKey.NET_CHANGE_ORDERS: "2. Net change by Change Orders",
    SummaryLineKey.CONTRACT_SUM_TO_DATE: "3. CONTRACT SUM TO DATE (Line 1 ± 2)",
    SummaryLineKey.TOTAL_COMPLETED_AND_STORED: "4. TOTAL COMPLETED & STORED TO DATE",
    SummaryLineKey.TOTAL_RETAINAGE: "5. RETAINAGE (Lines 5a + 5b)",
    SummaryLineKey.RETAINAGE_COMPLETED_WORK: "a. {percent}% of Completed Work",
    SummaryLineKey.RETAINAGE_STORED_MATERIAL: "b. {percent}% of Stored Material",
    SummaryLineKey.TOTAL_EARNED_LESS_RETAINAGE: "6. TOTAL EARNED LESS RETAINAGE",
    SummaryLineKey.PREVIOUS_PAYMENTS: "7. LESS PREVIOUS CERTIFICATES FOR PAYMENT",
    SummaryLineKey.CURRENT_PAYMENT_DUE: "8. CURRENT PAYMENT DUE",
    SummaryLineKey.BALANCE_TO_FINISH: "9. BALANCE TO FINISH, INCLUDING RETAINAGE",
}


def summary_line_order() -> tuple[SummaryLineKey, ...]:
    return _SUMMARY_ORDER


def summary_cell(key: SummaryLineKey) -> CellRef:
    """Cell holding the value of a summary line."""
    row = SUMMARY_FIRST_LINE_ROW + _SUMMARY_ORDER.index(key)
    column = SUMMARY_BREAKDOWN_COLUMN if key in BREAKDOWN_LINES else SUMMARY_VALUE_COLUMN
    return CellRef(SheetId.SUMMARY, row, column)


def summary_last_row() -> int:
    return SUMMARY_FIRST_LINE_ROW + len(_SUMMARY_ORDER) - 1
