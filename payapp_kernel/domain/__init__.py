"""
Pure domain layer.

Immutable inputs and coordinates with NO dependencies on I/O, clocks or
spreadsheet libraries. All domain objects are deterministic.
"""

from payapp_kernel.domain.cells import CellRef, SheetId
from payapp_kernel.domain.inputs import (
    DEFAULT_RETAINAGE_PERCENT,
    LINE_ITEM_AMOUNT_FIELDS,
    BudgetLineItem,
    ProjectInfo,
    RetainageParams,
    parse_date,
    validate_line_items,
    validate_project_info,
)
from payapp_kernel.domain.values import (
    CENT,
    ONE_HUNDRED,
    ZERO,
    is_finite_decimal,
    percent_to_rate,
    to_cents,
    to_decimal,
    within_cent,
)

__all__ = [
    "BudgetLineItem",
    "CENT",
    "CellRef",
    "DEFAULT_RETAINAGE_PERCENT",
    "LINE_ITEM_AMOUNT_FIELDS",
    "ONE_HUNDRED",
    "ProjectInfo",
    "RetainageParams",
    "SheetId",
    "ZERO",
    "is_finite_decimal",
    "parse_date",
    "percent_to_rate",
    "to_cents",
    "to_decimal",
    "validate_line_items",
    "validate_project_info",
    "within_cent",
]
