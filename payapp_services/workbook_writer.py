"""
Workbook writer -- renders a PaymentApplication as an .xlsx workbook.

Two worksheets, in this order:

    continuation  title rows, header row 6, one row per line item from
                  row 7, totals row directly below the last item
    summary       owner / project / contractor block, then lines 1-9 with
                  values in column H and the 5a / 5b breakdown in column G

The summary sheet is active when the workbook opens. With
``formulas=True`` (default) every derived cell holds a live formula
rendered from the engine's expression tree, cross-sheet references
qualified with the continuation title. With ``formulas=False`` the same
cells hold the computed values.
"""

from __future__ import annotations

import io
from decimal import Decimal
from pathlib import Path
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils.exceptions import IllegalCharacterError
from openpyxl.worksheet.worksheet import Worksheet

from payapp_engines import ContinuationColumn, SummaryLineKey, render_formula
from payapp_engines.formulas import Expr
from payapp_engines.layout import (
    BREAKDOWN_LINES,
    CONTINUATION_CURRENCY_COLUMNS,
    CONTINUATION_HEADER_ROW,
    CONTINUATION_HEADERS,
    CONTINUATION_PERCENT_COLUMNS,
    SUMMARY_BREAKDOWN_LABEL_COLUMN,
    SUMMARY_LABEL_COLUMN,
    SUMMARY_TITLE_ROW,
    SUMMARY_VALUE_COLUMN,
    summary_last_row,
)
from payapp_kernel.domain.cells import SheetId
from payapp_kernel.exceptions import RenderError
from payapp_kernel.logging_config import get_logger
from payapp_services.payment_application import PaymentApplication

logger = get_logger("services.workbook_writer")

Col = ContinuationColumn

FORM_TITLE = "APPLICATION AND CERTIFICATE FOR PAYMENT"
CONTINUATION_SUBTITLE = "Continuation Sheet AIA Document G703"
SUMMARY_HEADING = "CONTRACTOR'S APPLICATION FOR PAYMENT"

_THIN = Side(style="thin")
_ALL_BORDERS = Border(left=_THIN, right=_THIN, top=_THIN, bottom=_THIN)
_TOP_BORDER = Border(top=_THIN)
_BOLD = Font(bold=True)
_TITLE_FONT = Font(bold=True, size=14)
_HEADER_FILL = PatternFill(fill_type="solid", start_color="D9D9D9", end_color="D9D9D9")
_HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center", wrap_text=True)
_WRAP = Alignment(wrap_text=True, vertical="top")

_LAST_COLUMN = Col.RETAINAGE.value


def _date_text(value: Any) -> str:
    return value.isoformat() if value is not None else ""


def _text_cell(ws: Worksheet, address: str, value: Any) -> None:
    """Store ``value`` as literal text; openpyxl would read a leading "=" as a formula."""
    cell = ws[address]
    cell.value = value
    if isinstance(value, str):
        cell.data_type = "s"


class WorkbookWriter:
    """
    Builds and saves the two-sheet workbook for one PaymentApplication.

    The workbook is built lazily on first use and reused by ``save`` and
    ``to_bytes``.
    """

    def __init__(self, application: PaymentApplication, formulas: bool = True):
        self._application = application
        self._formulas = formulas
        self._titles = application.sheet_titles
        self._workbook: Workbook | None = None

    @property
    def workbook(self) -> Workbook:
        if self._workbook is None:
            self._workbook = self.build()
        return self._workbook

    def build(self) -> Workbook:
        """
        Render both sheets into a new openpyxl Workbook.

        Raises:
            RenderError: a title or cell value cannot be stored in a
                workbook.
        """
        app = self._application
        try:
            wb = Workbook()
            continuation_ws = wb.active
            continuation_ws.title = self._titles[SheetId.CONTINUATION]
            summary_ws = wb.create_sheet(self._titles[SheetId.SUMMARY])

            self._write_continuation(continuation_ws)
            self._write_summary(summary_ws)
            wb.active = wb.sheetnames.index(summary_ws.title)
        except (ValueError, IllegalCharacterError) as exc:
            raise RenderError("workbook", str(exc)) from exc

        logger.info("workbook_built", extra={
            "row_count": len(app.continuation.rows),
            "formulas": self._formulas,
            "sheets": [continuation_ws.title, summary_ws.title],
        })
        return wb

    def save(self, path: Path | str) -> Path:
        """
        Write the workbook to ``path``; a directory gets the default filename.

        Raises:
            RenderError: the file cannot be written.
        """
        target = Path(path)
        if target.is_dir():
            target = target / self._application.filename
        wb = self.workbook
        try:
            wb.save(str(target))
        except OSError as exc:
            raise RenderError(str(target), str(exc)) from exc
        logger.info("workbook_saved", extra={"path": str(target)})
        return target

    def to_bytes(self) -> bytes:
        """Serialized .xlsx content, for streaming to a client."""
        buffer = io.BytesIO()
        try:
            self.workbook.save(buffer)
        except (OSError, ValueError) as exc:
            raise RenderError("workbook stream", str(exc)) from exc
        return buffer.getvalue()

    # ------------------------------------------------------------------
    # Continuation sheet
    # ------------------------------------------------------------------

    def _write_continuation(self, ws: Worksheet) -> None:
        app = self._application
        sheet = app.continuation
        formats = app.config.number_formats

        ws["A1"] = FORM_TITLE
        ws["A1"].font = _TITLE_FONT
        ws.merge_cells(f"A1:{_LAST_COLUMN}1")
        ws["A2"] = CONTINUATION_SUBTITLE
        ws["A2"].font = _BOLD
        ws.merge_cells(f"A2:{_LAST_COLUMN}2")

        ws["A4"] = "Application Number:"
        _text_cell(ws, "B4", app.project.application_number)
        ws["D4"] = "Period To:"
        ws["E4"] = _date_text(app.project.period_to)

        for column, header in CONTINUATION_HEADERS.items():
            cell = ws[f"{column.value}{CONTINUATION_HEADER_ROW}"]
            cell.value = header
            cell.font = _BOLD
            cell.fill = _HEADER_FILL
            cell.alignment = _HEADER_ALIGNMENT
            cell.border = _ALL_BORDERS
        ws.row_dimensions[CONTINUATION_HEADER_ROW].height = 45
        ws.freeze_panes = f"A{CONTINUATION_HEADER_ROW + 1}"

        for row in sheet.rows:
            _text_cell(ws, f"A{row.row}", row.item_number)
            _text_cell(ws, f"B{row.row}", row.description)
            ws[f"B{row.row}"].alignment = _WRAP
            for column in (Col.SCHEDULED_VALUE, Col.PREVIOUS_COMPLETED,
                           Col.CURRENT_COMPLETED, Col.STORED_MATERIALS):
                ws[f"{column.value}{row.row}"] = row.value(column)
            for column, expr in row.formulas.items():
                ws[f"{column.value}{row.row}"] = self._cell_content(
                    expr, row.value(column), SheetId.CONTINUATION
                )
            for column in CONTINUATION_CURRENCY_COLUMNS:
                ws[f"{column.value}{row.row}"].number_format = formats.currency
            for column in CONTINUATION_PERCENT_COLUMNS:
                ws[f"{column.value}{row.row}"].number_format = formats.percent
            for column in Col:
                ws[f"{column.value}{row.row}"].border = _ALL_BORDERS

        totals = sheet.totals
        ws[f"B{totals.row}"] = "TOTALS"
        for column in CONTINUATION_CURRENCY_COLUMNS:
            cell = ws[f"{column.value}{totals.row}"]
            expr = totals.formula(column)
            if expr is not None:
                cell.value = self._cell_content(expr, totals.require(column), SheetId.CONTINUATION)
            cell.number_format = formats.currency
        for column in Col:
            cell = ws[f"{column.value}{totals.row}"]
            cell.font = _BOLD
            cell.border = _TOP_BORDER

        for letter, width in app.config.continuation_column_widths:
            ws.column_dimensions[letter].width = width
        ws.print_area = f"A1:{_LAST_COLUMN}{totals.row}"

    # ------------------------------------------------------------------
    # Summary sheet
    # ------------------------------------------------------------------

    def _write_summary(self, ws: Worksheet) -> None:
        app = self._application
        project = app.project
        currency = app.config.number_formats.currency

        ws["A1"] = FORM_TITLE
        ws["A1"].font = _TITLE_FONT
        ws.merge_cells("A1:H1")

        ws["A3"] = "TO OWNER:"
        _text_cell(ws, "B3", project.owner_name)
        ws["A4"] = "PROJECT:"
        _text_cell(ws, "B4", project.project_name)
        ws["A5"] = "FROM CONTRACTOR:"
        _text_cell(ws, "B5", project.contractor_name)

        ws["F3"] = "APPLICATION NO:"
        _text_cell(ws, "G3", project.application_number)
        ws["F4"] = "PERIOD TO:"
        ws["G4"] = _date_text(project.period_to)
        ws["F5"] = "CONTRACT DATE:"
        ws["G5"] = _date_text(project.contract_date)

        ws[f"A{SUMMARY_TITLE_ROW}"] = SUMMARY_HEADING
        ws[f"A{SUMMARY_TITLE_ROW}"].font = _BOLD

        for line in app.summary.lines:
            row = line.cell.row
            label_column = (
                SUMMARY_BREAKDOWN_LABEL_COLUMN if line.key in BREAKDOWN_LINES
                else SUMMARY_LABEL_COLUMN
            )
            ws[f"{label_column}{row}"] = line.label
            target = ws[line.cell.address]
            if line.formula is None:
                target.value = line.value
            else:
                target.value = self._cell_content(line.formula, line.value, SheetId.SUMMARY)
            target.number_format = currency
            if line.key is SummaryLineKey.CURRENT_PAYMENT_DUE:
                ws[f"{label_column}{row}"].font = _BOLD
                target.font = _BOLD
                target.border = _ALL_BORDERS

        for letter, width in app.config.summary_column_widths:
            ws.column_dimensions[letter].width = width
        ws.print_area = f"A1:{SUMMARY_VALUE_COLUMN}{summary_last_row()}"

    def _cell_content(self, expr: Expr, value: Decimal, sheet: SheetId) -> Any:
        if self._formulas:
            return render_formula(expr, sheet, self._titles)
        return value
