"""
Continuation Sheet Engine (AIA G703).

Pure functions with deterministic behavior. No I/O.

Turns a flat list of budget line items and the retainage rates into the
line-item schedule of the payment application: for every item the total
completed and stored to date, percent complete, balance to finish and
retainage, plus column totals. Each derived figure carries both its value
and the formula that reproduces it from the row's own input cells, so a
renderer can emit a value-only table or a live spreadsheet.

Per-row computation:
    G = D + E + F                       total completed and stored
    H = 0 if C == 0 else G / C          percent complete
    I = C - G                           balance to finish (may be negative)
    J = (D + E) * completed + F * stored
        completed is replaced by the reduced rate when a threshold is
        configured and H > threshold (strictly greater)

Usage:
    from payapp_engines.continuation import build_continuation

    sheet = build_continuation(line_items, project.retainage)
    sheet.totals.total_completed_and_stored
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from payapp_engines.audit import check_formula
from payapp_engines.formulas import (
    Add,
    Compare,
    Div,
    Expr,
    If,
    Mul,
    Num,
    Ref,
    Resolver,
    Sub,
    SumRange,
)
from payapp_engines.layout import (
    CONTINUATION_FIRST_DATA_ROW,
    CONTINUATION_TOTAL_COLUMNS,
    ContinuationColumn,
    continuation_cell,
    continuation_data_row,
    continuation_totals_row,
)
from payapp_engines.tracer import traced_engine
from payapp_kernel.domain.cells import CellRef, SheetId
from payapp_kernel.domain.inputs import BudgetLineItem, RetainageParams, validate_line_items
from payapp_kernel.domain.values import ZERO, is_finite_decimal
from payapp_kernel.exceptions import DataError, DependencyError
from payapp_kernel.logging_config import get_logger

logger = get_logger("engines.continuation")

Col = ContinuationColumn

_ROW_INPUT_ATTRS: dict[ContinuationColumn, str] = {
    Col.SCHEDULED_VALUE: "scheduled_value",
    Col.PREVIOUS_COMPLETED: "previous_completed",
    Col.CURRENT_COMPLETED: "current_completed",
    Col.STORED_MATERIALS: "stored_materials",
}

_ROW_DERIVED_ATTRS: dict[ContinuationColumn, str] = {
    Col.TOTAL_COMPLETED_AND_STORED: "total_completed_and_stored",
    Col.PERCENT_COMPLETE: "percent_complete",
    Col.BALANCE_TO_FINISH: "balance_to_finish",
    Col.RETAINAGE: "retainage_amount",
}

_TOTAL_ATTRS: dict[ContinuationColumn, str] = {
    Col.SCHEDULED_VALUE: "scheduled_value",
    Col.PREVIOUS_COMPLETED: "previous_completed",
    Col.CURRENT_COMPLETED: "current_completed",
    Col.STORED_MATERIALS: "stored_materials",
    Col.TOTAL_COMPLETED_AND_STORED: "total_completed_and_stored",
    Col.BALANCE_TO_FINISH: "balance_to_finish",
    Col.RETAINAGE: "retainage_amount",
}


# ============================================================================
# Value Objects
# ============================================================================


@dataclass(frozen=True)
class ContinuationRow:
    """
    One computed line of the continuation sheet.

    Attributes:
        item_number: 1-based item number (column A)
        row: Sheet row the line occupies
        description .. stored_materials: Inputs copied from the line item
        total_completed_and_stored: D + E + F
        percent_complete: G / C as a fraction, 0 when C is 0
        balance_to_finish: C - G, negative when over-billed
        retainage_on_completed: Completed-work term of the retainage
        retainage_on_stored: Stored-material term of the retainage
        retainage_amount: Sum of both terms (column J)
        completed_rate_applied: Rate used on completed work for this row
        threshold_applied: True when the reduced rate was used
        formulas: Formula for each derived column (G, H, I, J)
    """

    item_number: int
    row: int
    description: str
    scheduled_value: Decimal
    previous_completed: Decimal
    current_completed: Decimal
    stored_materials: Decimal
    total_completed_and_stored: Decimal
    percent_complete: Decimal
    balance_to_finish: Decimal
    retainage_on_completed: Decimal
    retainage_on_stored: Decimal
    retainage_amount: Decimal
    completed_rate_applied: Decimal
    threshold_applied: bool
    formulas: Mapping[ContinuationColumn, Expr] = field(default_factory=dict)

    @property
    def completed_work(self) -> Decimal:
        """Work completed to date excluding stored materials (D + E)."""
        return self.previous_completed + self.current_completed

    def cell(self, column: ContinuationColumn) -> CellRef:
        return continuation_cell(self.row, column)

    def formula(self, column: ContinuationColumn) -> Expr | None:
        return self.formulas.get(column)

    def value(self, column: ContinuationColumn) -> Decimal:
        """Numeric value of a currency or percent column."""
        attr = _ROW_INPUT_ATTRS.get(column) or _ROW_DERIVED_ATTRS.get(column)
        if attr is None:
            raise KeyError(column)
        return getattr(self, attr)


@dataclass(frozen=True)
class ContinuationTotals:
    """
    Column totals of the continuation sheet.

    Percent complete has no total. A field set to None (or NaN) marks a
    total that is unavailable; the summary engine rejects references to
    it with a DependencyError.
    """

    scheduled_value: Decimal | None = ZERO
    previous_completed: Decimal | None = ZERO
    current_completed: Decimal | None = ZERO
    stored_materials: Decimal | None = ZERO
    total_completed_and_stored: Decimal | None = ZERO
    balance_to_finish: Decimal | None = ZERO
    retainage_amount: Decimal | None = ZERO
    retainage_on_completed: Decimal | None = None
    retainage_on_stored: Decimal | None = None
    row: int = CONTINUATION_FIRST_DATA_ROW
    formulas: Mapping[ContinuationColumn, Expr] = field(default_factory=dict)

    def cell(self, column: ContinuationColumn) -> CellRef:
        return continuation_cell(self.row, column)

    def formula(self, column: ContinuationColumn) -> Expr | None:
        return self.formulas.get(column)

    def value(self, column: ContinuationColumn) -> Decimal | None:
        """Total for a column, or None for columns without a total."""
        attr = _TOTAL_ATTRS.get(column)
        if attr is None:
            return None
        return getattr(self, attr)

    def require(self, column: ContinuationColumn) -> Decimal:
        """
        Total for a column that a downstream formula depends on.

        Raises:
            DependencyError: the total is absent or not a finite number.
        """
        reference = f"continuation.totals.{column.name.lower()} ({self.cell(column).address})"
        if column not in _TOTAL_ATTRS:
            raise DependencyError(reference, f"Column {column.value} has no total")
        value = self.value(column)
        if not is_finite_decimal(value):
            raise DependencyError(reference)
        return Decimal(value)


@dataclass(frozen=True)
class ContinuationSheet:
    """Computed continuation sheet: rows, totals and the rates used."""

    rows: tuple[ContinuationRow, ...]
    totals: ContinuationTotals
    retainage: RetainageParams | None = None

    @property
    def first_data_row(self) -> int:
        return CONTINUATION_FIRST_DATA_ROW

    @property
    def last_data_row(self) -> int | None:
        return self.rows[-1].row if self.rows else None

    def cell_value(self, cell: CellRef) -> Decimal:
        """
        Value held in a continuation cell.

        Raises:
            KeyError: the cell is empty or outside the computed area.
        """
        if cell.sheet != SheetId.CONTINUATION:
            raise KeyError(cell)
        column = ContinuationColumn(cell.column)
        if cell.row == self.totals.row:
            value = self.totals.value(column)
            if value is None:
                raise KeyError(cell)
            return value
        index = cell.row - CONTINUATION_FIRST_DATA_ROW
        if 0 <= index < len(self.rows):
            return self.rows[index].value(column)
        raise KeyError(cell)

    def resolver(self) -> Resolver:
        return self.cell_value


# ============================================================================
# Engine
# ============================================================================


@traced_engine("continuation", "1.0", fingerprint_fields=("line_items", "retainage"))
def build_continuation(
    line_items: Iterable[BudgetLineItem | Mapping[str, Any]],
    retainage: RetainageParams,
) -> ContinuationSheet:
    """
    Compute the continuation sheet for a batch of budget line items.

    The whole batch is validated before any row is computed; either every
    row is produced or a DataError is raised.

    Args:
        line_items: Budget line items in display order.
        retainage: Retainage rates (fractions).

    Returns:
        ContinuationSheet with one row per item and column totals.

    Raises:
        DataError: malformed line item or retainage parameters.
    """
    if not isinstance(retainage, RetainageParams):
        raise DataError(
            f"retainage must be RetainageParams, got {type(retainage).__name__}",
            field="retainage",
        )
    items = validate_line_items(line_items)

    logger.debug("continuation_build_started", extra={
        "row_count": len(items),
        "completed_rate": retainage.completed_rate,
        "stored_rate": retainage.stored_rate,
        "reduction_threshold": retainage.reduction_threshold,
    })

    rows = tuple(
        compute_row(item, index, retainage) for index, item in enumerate(items)
    )
    totals = compute_totals(rows)

    logger.debug("continuation_build_completed", extra={
        "row_count": len(rows),
        "total_completed_and_stored": totals.total_completed_and_stored,
        "retainage_amount": totals.retainage_amount,
        "rows_with_reduced_retainage": sum(1 for r in rows if r.threshold_applied),
    })

    return ContinuationSheet(rows=rows, totals=totals, retainage=retainage)


def compute_row(
    item: BudgetLineItem,
    index: int,
    retainage: RetainageParams,
) -> ContinuationRow:
    """Compute one continuation row from a validated line item."""
    row = continuation_data_row(index)

    total = item.previous_completed + item.current_completed + item.stored_materials
    if item.scheduled_value == 0:
        percent = ZERO
    else:
        percent = total / item.scheduled_value
    balance = item.scheduled_value - total

    threshold_applied = (
        retainage.has_threshold and percent > retainage.reduction_threshold
    )
    completed_rate = retainage.reduced_rate if threshold_applied else retainage.completed_rate
    on_completed = (item.previous_completed + item.current_completed) * completed_rate
    on_stored = item.stored_materials * retainage.stored_rate

    return ContinuationRow(
        item_number=index + 1,
        row=row,
        description=item.description,
        scheduled_value=item.scheduled_value,
        previous_completed=item.previous_completed,
        current_completed=item.current_completed,
        stored_materials=item.stored_materials,
        total_completed_and_stored=total,
        percent_complete=percent,
        balance_to_finish=balance,
        retainage_on_completed=on_completed,
        retainage_on_stored=on_stored,
        retainage_amount=on_completed + on_stored,
        completed_rate_applied=completed_rate,
        threshold_applied=threshold_applied,
        formulas=row_formulas(row, retainage),
    )


def row_formulas(row: int, retainage: RetainageParams) -> dict[ContinuationColumn, Expr]:
    """Formulas for the derived columns of one sheet row."""

    def ref(column: ContinuationColumn) -> Ref:
        return Ref(continuation_cell(row, column))

    total = SumRange(
        continuation_cell(row, Col.PREVIOUS_COMPLETED),
        continuation_cell(row, Col.STORED_MATERIALS),
    )
    percent = If(
        Compare("=", ref(Col.SCHEDULED_VALUE), Num(ZERO)),
        Num(ZERO),
        Div(ref(Col.TOTAL_COMPLETED_AND_STORED), ref(Col.SCHEDULED_VALUE)),
    )
    balance = Sub(ref(Col.SCHEDULED_VALUE), ref(Col.TOTAL_COMPLETED_AND_STORED))

    def retainage_terms(completed_rate: Decimal) -> Expr:
        completed_work = Add((ref(Col.PREVIOUS_COMPLETED), ref(Col.CURRENT_COMPLETED)))
        return Add((
            Mul(completed_work, Num(completed_rate)),
            Mul(ref(Col.STORED_MATERIALS), Num(retainage.stored_rate)),
        ))

    retained: Expr = retainage_terms(retainage.completed_rate)
    if retainage.has_threshold:
        retained = If(
            Compare(">", ref(Col.PERCENT_COMPLETE), Num(retainage.reduction_threshold)),
            retainage_terms(retainage.reduced_rate),
            retained,
        )

    return {
        Col.TOTAL_COMPLETED_AND_STORED: total,
        Col.PERCENT_COMPLETE: percent,
        Col.BALANCE_TO_FINISH: balance,
        Col.RETAINAGE: retained,
    }


def compute_totals(rows: tuple[ContinuationRow, ...]) -> ContinuationTotals:
    """Column-wise sums of every currency column; percent is not summed."""
    totals_row = continuation_totals_row(len(rows))

    sums: dict[str, Decimal] = {}
    formulas: dict[ContinuationColumn, Expr] = {}
    for column, attr in _TOTAL_ATTRS.items():
        sums[attr] = sum((r.value(column) for r in rows), ZERO)
        if rows:
            formulas[column] = SumRange(
                continuation_cell(rows[0].row, column),
                continuation_cell(rows[-1].row, column),
            )
        else:
            formulas[column] = Num(ZERO)

    return ContinuationTotals(
        **sums,
        retainage_on_completed=sum((r.retainage_on_completed for r in rows), ZERO),
        retainage_on_stored=sum((r.retainage_on_stored for r in rows), ZERO),
        row=totals_row,
        formulas=formulas,
    )


def verify_continuation(sheet: ContinuationSheet) -> None:
    """
    Re-evaluate every formula on the sheet from the cells it cites.

    Raises:
        DependencyError: a formula cites a missing cell or its recomputed
            value differs from the stored figure.
    """
    resolve = sheet.resolver()
    for r in sheet.rows:
        for column, expr in r.formulas.items():
            check_formula(r.cell(column), expr, r.value(column), resolve)
    for column in CONTINUATION_TOTAL_COLUMNS:
        expr = sheet.totals.formula(column)
        if expr is None:
            continue
        check_formula(sheet.totals.cell(column), expr, sheet.totals.require(column), resolve)
