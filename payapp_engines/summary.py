"""
Summary Sheet Engine (AIA G702).

Pure functions with deterministic behavior. No I/O.

Rolls the continuation sheet's published totals and the project's contract
figures into the certified-payment calculation. The engine never reads
budget line items; every figure taken from the continuation sheet is a
reference to one of its totals cells, so both sheets stay consistent when
a spreadsheet recalculates.

Line sequence:
    1  original contract sum                literal
    2  net change by change orders          literal
    3  contract sum to date                 = 1 + 2
    4  total completed & stored to date     = continuation G total
    5  retainage                            = 5a + 5b (see RetainageSource)
    5a retainage on completed work
    5b retainage on stored material         = F total * stored rate
    6  total earned less retainage          = 4 - 5
    7  less previous certificates           literal
    8  current payment due                  = 6 - 7
    9  balance to finish, incl. retainage   = 3 - 6

Usage:
    from payapp_engines.summary import build_summary

    summary = build_summary(project, continuation_sheet)
    summary.current_payment_due
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from payapp_engines.audit import check_formula
from payapp_engines.continuation import ContinuationSheet
from payapp_engines.formulas import Add, Expr, Mul, Num, Ref, Resolver, Sub, format_number
from payapp_engines.layout import (
    SUMMARY_LABELS,
    ContinuationColumn,
    SummaryLineKey,
    summary_cell,
    summary_line_order,
)
from payapp_engines.tracer import traced_engine
from payapp_kernel.domain.cells import CellRef, SheetId
from payapp_kernel.domain.inputs import ProjectInfo, validate_project_info
from payapp_kernel.exceptions import DependencyError
from payapp_kernel.logging_config import get_logger

logger = get_logger("engines.summary")

Key = SummaryLineKey
Col = ContinuationColumn


class RetainageSource(str, Enum):
    """
    Where line 5 takes its retainage figure from.

    CONTINUATION: line 5 references the continuation retainage total
        (column J), so threshold reductions applied per row flow through
        to the summary. 5b is the stored-material retainage and 5a is the
        remainder (5 - 5b).
    RECOMPUTE: 5a and 5b are recomputed from the continuation D+E and F
        totals at the flat rates and line 5 = 5a + 5b. Disagrees with
        the continuation total when any row crossed a reduction threshold.
    """

    CONTINUATION = "continuation"
    RECOMPUTE = "recompute"


# ============================================================================
# Value Objects
# ============================================================================


@dataclass(frozen=True)
class SummaryLine:
    """
    One numbered line of the certified-payment calculation.

    ``formula`` is None for literal input lines (1, 2 and 7).
    """

    key: SummaryLineKey
    label: str
    value: Decimal
    cell: CellRef
    formula: Expr | None = None

    @property
    def number(self) -> str:
        return self.key.value

    @property
    def is_literal(self) -> bool:
        return self.formula is None


@dataclass(frozen=True)
class SummarySheet:
    """Computed summary sheet."""

    lines: tuple[SummaryLine, ...]
    project: ProjectInfo
    retainage_source: RetainageSource = RetainageSource.CONTINUATION

    def line(self, key: SummaryLineKey) -> SummaryLine:
        for line in self.lines:
            if line.key == key:
                return line
        raise KeyError(key)

    def value(self, key: SummaryLineKey) -> Decimal:
        return self.line(key).value

    @property
    def original_contract_sum(self) -> Decimal:
        return self.value(Key.ORIGINAL_CONTRACT_SUM)

    @property
    def contract_sum_to_date(self) -> Decimal:
        return self.value(Key.CONTRACT_SUM_TO_DATE)

    @property
    def total_completed_and_stored(self) -> Decimal:
        return self.value(Key.TOTAL_COMPLETED_AND_STORED)

    @property
    def total_retainage(self) -> Decimal:
        return self.value(Key.TOTAL_RETAINAGE)

    @property
    def total_earned_less_retainage(self) -> Decimal:
        return self.value(Key.TOTAL_EARNED_LESS_RETAINAGE)

    @property
    def current_payment_due(self) -> Decimal:
        return self.value(Key.CURRENT_PAYMENT_DUE)

    @property
    def balance_to_finish(self) -> Decimal:
        return self.value(Key.BALANCE_TO_FINISH)

    def resolver(self, continuation: ContinuationSheet) -> Resolver:
        """Resolver over this sheet's lines and the continuation cells."""
        by_cell = {line.cell: line.value for line in self.lines}

        def resolve(cell: CellRef) -> Decimal:
            if cell.sheet == SheetId.SUMMARY:
                return by_cell[cell]
            return continuation.cell_value(cell)

        return resolve


# ============================================================================
# Engine
# ============================================================================


@traced_engine(
    "summary",
    "1.0",
    fingerprint_fields=("project", "retainage_source"),
)
def build_summary(
    project: ProjectInfo,
    continuation: ContinuationSheet,
    retainage_source: RetainageSource = RetainageSource.CONTINUATION,
) -> SummarySheet:
    """
    Compute the summary sheet from project figures and continuation totals.

    Args:
        project: Contract figures and retainage percentages.
        continuation: Output of ``build_continuation``; only its totals
            are read.
        retainage_source: How line 5 is derived.

    Returns:
        SummarySheet with lines in form order (1-5, 5a, 5b, 6-9).

    Raises:
        DataError: malformed ProjectInfo.
        DependencyError: a continuation total the summary needs is
            missing or not a finite number, or the continuation sheet was
            built with other retainage rates than the project's.
    """
    project = validate_project_info(project)
    if not isinstance(continuation, ContinuationSheet):
        raise DependencyError(
            "continuation",
            f"expected ContinuationSheet, got {type(continuation).__name__}",
        )
    source = RetainageSource(retainage_source)
    totals = continuation.totals
    rates = project.retainage
    if continuation.retainage is not None and continuation.retainage != rates:
        raise DependencyError(
            "continuation.retainage",
            "Continuation sheet was built with retainage rates that differ from the project's",
        )

    logger.debug("summary_build_started", extra={
        "retainage_source": source.value,
        "continuation_totals_row": totals.row,
    })

    values: dict[SummaryLineKey, Decimal] = {}
    formulas: dict[SummaryLineKey, Expr] = {}

    def line_ref(key: SummaryLineKey) -> Ref:
        return Ref(summary_cell(key))

    def total_ref(column: ContinuationColumn) -> Ref:
        return Ref(totals.cell(column))

    values[Key.ORIGINAL_CONTRACT_SUM] = project.original_contract_sum
    values[Key.NET_CHANGE_ORDERS] = project.change_orders_sum

    values[Key.CONTRACT_SUM_TO_DATE] = (
        values[Key.ORIGINAL_CONTRACT_SUM] + values[Key.NET_CHANGE_ORDERS]
    )
    formulas[Key.CONTRACT_SUM_TO_DATE] = Add((
        line_ref(Key.ORIGINAL_CONTRACT_SUM),
        line_ref(Key.NET_CHANGE_ORDERS),
    ))

    values[Key.TOTAL_COMPLETED_AND_STORED] = totals.require(Col.TOTAL_COMPLETED_AND_STORED)
    formulas[Key.TOTAL_COMPLETED_AND_STORED] = total_ref(Col.TOTAL_COMPLETED_AND_STORED)

    stored_total = totals.require(Col.STORED_MATERIALS)
    values[Key.RETAINAGE_STORED_MATERIAL] = stored_total * rates.stored_rate
    formulas[Key.RETAINAGE_STORED_MATERIAL] = Mul(
        total_ref(Col.STORED_MATERIALS), Num(rates.stored_rate)
    )

    if source is RetainageSource.RECOMPUTE:
        completed_total = (
            totals.require(Col.PREVIOUS_COMPLETED) + totals.require(Col.CURRENT_COMPLETED)
        )
        values[Key.RETAINAGE_COMPLETED_WORK] = completed_total * rates.completed_rate
        formulas[Key.RETAINAGE_COMPLETED_WORK] = Mul(
            Add((total_ref(Col.PREVIOUS_COMPLETED), total_ref(Col.CURRENT_COMPLETED))),
            Num(rates.completed_rate),
        )
        values[Key.TOTAL_RETAINAGE] = (
            values[Key.RETAINAGE_COMPLETED_WORK] + values[Key.RETAINAGE_STORED_MATERIAL]
        )
        formulas[Key.TOTAL_RETAINAGE] = Add((
            line_ref(Key.RETAINAGE_COMPLETED_WORK),
            line_ref(Key.RETAINAGE_STORED_MATERIAL),
        ))
    else:
        values[Key.TOTAL_RETAINAGE] = totals.require(Col.RETAINAGE)
        formulas[Key.TOTAL_RETAINAGE] = total_ref(Col.RETAINAGE)
        values[Key.RETAINAGE_COMPLETED_WORK] = (
            values[Key.TOTAL_RETAINAGE] - values[Key.RETAINAGE_STORED_MATERIAL]
        )
        formulas[Key.RETAINAGE_COMPLETED_WORK] = Sub(
            line_ref(Key.TOTAL_RETAINAGE),
            line_ref(Key.RETAINAGE_STORED_MATERIAL),
        )

    values[Key.TOTAL_EARNED_LESS_RETAINAGE] = (
        values[Key.TOTAL_COMPLETED_AND_STORED] - values[Key.TOTAL_RETAINAGE]
    )
    formulas[Key.TOTAL_EARNED_LESS_RETAINAGE] = Sub(
        line_ref(Key.TOTAL_COMPLETED_AND_STORED),
        line_ref(Key.TOTAL_RETAINAGE),
    )

    values[Key.PREVIOUS_PAYMENTS] = project.previous_payments

    values[Key.CURRENT_PAYMENT_DUE] = (
        values[Key.TOTAL_EARNED_LESS_RETAINAGE] - values[Key.PREVIOUS_PAYMENTS]
    )
    formulas[Key.CURRENT_PAYMENT_DUE] = Sub(
        line_ref(Key.TOTAL_EARNED_LESS_RETAINAGE),
        line_ref(Key.PREVIOUS_PAYMENTS),
    )

    values[Key.BALANCE_TO_FINISH] = (
        values[Key.CONTRACT_SUM_TO_DATE] - values[Key.TOTAL_EARNED_LESS_RETAINAGE]
    )
    formulas[Key.BALANCE_TO_FINISH] = Sub(
        line_ref(Key.CONTRACT_SUM_TO_DATE),
        line_ref(Key.TOTAL_EARNED_LESS_RETAINAGE),
    )

    labels = summary_labels(project)
    lines = tuple(
        SummaryLine(
            key=key,
            label=labels[key],
            value=values[key],
            cell=summary_cell(key),
            formula=formulas.get(key),
        )
        for key in summary_line_order()
    )

    if totals.retainage_amount is not None and values[Key.TOTAL_RETAINAGE] != totals.retainage_amount:
        logger.warning("summary_retainage_differs_from_continuation", extra={
            "summary_retainage": values[Key.TOTAL_RETAINAGE],
            "continuation_retainage": totals.retainage_amount,
            "retainage_source": source.value,
        })

    logger.debug("summary_build_completed", extra={
        "current_payment_due": values[Key.CURRENT_PAYMENT_DUE],
        "balance_to_finish": values[Key.BALANCE_TO_FINISH],
    })

    return SummarySheet(lines=lines, project=project, retainage_source=source)


def summary_labels(project: ProjectInfo) -> Mapping[SummaryLineKey, str]:
    """Line labels, with the retainage percentages filled into 5a and 5b."""
    labels = dict(SUMMARY_LABELS)
    labels[Key.RETAINAGE_COMPLETED_WORK] = labels[Key.RETAINAGE_COMPLETED_WORK].format(
        percent=format_number(project.retainage_completed_percent)
    )
    labels[Key.RETAINAGE_STORED_MATERIAL] = labels[Key.RETAINAGE_STORED_MATERIAL].format(
        percent=format_number(project.retainage_stored_percent)
    )
    return labels


def verify_summary(summary: SummarySheet, continuation: ContinuationSheet) -> None:
    """
    Re-evaluate every summary formula from the cells it cites.

    Raises:
        DependencyError: a cited cell is missing or a recomputed line
            differs from its stored value.
    """
    resolve = summary.resolver(continuation)
    for line in summary.lines:
        if line.formula is not None:
            check_formula(line.cell, line.formula, line.value, resolve)
