"""
Value-only renderings of a PaymentApplication.

    render_text_report(app)  fixed-width plain text, both sheets
    to_dict(app)             JSON-ready dict; amounts as cent-rounded strings,
                             formulas as rendered text for reference

Rounding to cents happens here, at presentation. Engine values stay exact.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from payapp_engines import ContinuationColumn, render_formula
from payapp_kernel.domain.cells import SheetId
from payapp_kernel.domain.values import to_cents
from payapp_services.payment_application import PaymentApplication

Col = ContinuationColumn

_PERCENT_PLACES = Decimal("0.0001")

_TEXT_COLUMNS: tuple[tuple[ContinuationColumn, str, int], ...] = (
    (Col.ITEM_NUMBER, "Item", 5),
    (Col.DESCRIPTION, "Description of Work", 28),
    (Col.SCHEDULED_VALUE, "Scheduled", 14),
    (Col.PREVIOUS_COMPLETED, "Previous", 14),
    (Col.CURRENT_COMPLETED, "This Period", 14),
    (Col.STORED_MATERIALS, "Stored", 14),
    (Col.TOTAL_COMPLETED_AND_STORED, "Completed", 14),
    (Col.PERCENT_COMPLETE, "%", 8),
    (Col.BALANCE_TO_FINISH, "Balance", 14),
    (Col.RETAINAGE, "Retainage", 14),
)


def format_money(amount: Decimal) -> str:
    """1234.5 -> '1,234.50'; negatives keep a leading minus."""
    return f"{to_cents(amount):,.2f}"


def format_percent(rate: Decimal) -> str:
    """0.5 -> '50.00%'."""
    return f"{(rate * 100).quantize(Decimal('0.01')):.2f}%"


def _fit(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 1] + "~"


def render_text_report(application: PaymentApplication) -> str:
    """Plain text rendering of both sheets, values only."""
    app = application
    project = app.project
    titles = app.sheet_titles
    out: list[str] = []

    out.append(titles[SheetId.SUMMARY])
    out.append("=" * len(titles[SheetId.SUMMARY]))
    out.append(f"To owner:         {project.owner_name}")
    out.append(f"Project:          {project.project_name}")
    out.append(f"From contractor:  {project.contractor_name}")
    out.append(f"Application no:   {project.application_number}")
    if project.period_to is not None:
        out.append(f"Period to:        {project.period_to.isoformat()}")
    if project.contract_date is not None:
        out.append(f"Contract date:    {project.contract_date.isoformat()}")
    out.append("")

    for line in app.summary.lines:
        indent = "    " if line.key.value in ("5a", "5b") else ""
        label = f"{indent}{line.label}"
        out.append(f"{label:<52}{format_money(line.value):>18}")
    out.append("")

    out.append(titles[SheetId.CONTINUATION])
    out.append("=" * len(titles[SheetId.CONTINUATION]))
    header = " ".join(
        f"{title:<{width}}" if column in (Col.ITEM_NUMBER, Col.DESCRIPTION) else f"{title:>{width}}"
        for column, title, width in _TEXT_COLUMNS
    )
    out.append(header)
    out.append("-" * len(header))

    for row in app.continuation.rows:
        cells = []
        for column, _, width in _TEXT_COLUMNS:
            if column is Col.ITEM_NUMBER:
                cells.append(f"{row.item_number:<{width}}")
            elif column is Col.DESCRIPTION:
                cells.append(f"{_fit(row.description, width):<{width}}")
            elif column is Col.PERCENT_COMPLETE:
                cells.append(f"{format_percent(row.percent_complete):>{width}}")
            else:
                cells.append(f"{format_money(row.value(column)):>{width}}")
        out.append(" ".join(cells))

    out.append("-" * len(header))
    totals = app.continuation.totals
    cells = []
    for column, _, width in _TEXT_COLUMNS:
        if column is Col.DESCRIPTION:
            cells.append(f"{'TOTALS':<{width}}")
            continue
        value = totals.value(column)
        cells.append(f"{format_money(value):>{width}}" if value is not None else " " * width)
    out.append(" ".join(cells))

    return "\n".join(out) + "\n"


def to_dict(application: PaymentApplication) -> dict[str, Any]:
    """JSON-ready representation of a payment application."""
    app = application
    project = app.project
    titles = app.sheet_titles

    def formula_text(expr, sheet: SheetId) -> str | None:
        return render_formula(expr, sheet, titles) if expr is not None else None

    rows = []
    for row in app.continuation.rows:
        rows.append({
            "item_number": row.item_number,
            "row": row.row,
            "description": row.description,
            "scheduled_value": format(to_cents(row.scheduled_value), "f"),
            "previous_completed": format(to_cents(row.previous_completed), "f"),
            "current_completed": format(to_cents(row.current_completed), "f"),
            "stored_materials": format(to_cents(row.stored_materials), "f"),
            "total_completed_and_stored": format(to_cents(row.total_completed_and_stored), "f"),
            "percent_complete": format(row.percent_complete.quantize(_PERCENT_PLACES), "f"),
            "balance_to_finish": format(to_cents(row.balance_to_finish), "f"),
            "retainage": format(to_cents(row.retainage_amount), "f"),
            "reduced_retainage_applied": row.threshold_applied,
            "formulas": {
                column.value: formula_text(expr, SheetId.CONTINUATION)
                for column, expr in row.formulas.items()
            },
        })

    totals = app.continuation.totals
    totals_out: dict[str, Any] = {"row": totals.row}
    for column in Col:
        value = totals.value(column)
        if value is not None:
            totals_out[column.name.lower()] = format(to_cents(value), "f")

    summary_lines = [
        {
            "line": line.number,
            "label": line.label,
            "cell": line.cell.address,
            "value": format(to_cents(line.value), "f"),
            "formula": formula_text(line.formula, SheetId.SUMMARY),
        }
        for line in app.summary.lines
    ]

    return {
        "run_id": app.run_id,
        "filename": app.filename,
        "retainage_source": app.retainage_source.value,
        "config": {
            "config_id": app.config.config_id,
            "version": app.config.version,
            "checksum": app.config.checksum,
        },
        "project": {
            "owner_name": project.owner_name,
            "project_name": project.project_name,
            "application_number": project.application_number,
            "contractor_name": project.contractor_name,
            "period_to": project.period_to.isoformat() if project.period_to else None,
            "contract_date": project.contract_date.isoformat() if project.contract_date else None,
        },
        "continuation": {"title": titles[SheetId.CONTINUATION], "rows": rows, "totals": totals_out},
        "summary": {"title": titles[SheetId.SUMMARY], "lines": summary_lines},
    }
