"""
payapp_ingestion -- Budget exports and project forms in, kernel inputs out.

    adapters   read JSON / CSV / XLSX budget exports into dict records
    mapping    turn records into BudgetLineItem and forms into ProjectInfo

Usage:
    from payapp_ingestion import load_line_items, parse_project_form

    items = load_line_items("budget.json")
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from payapp_ingestion.adapters import adapter_for, probe_budget_source, read_budget_source
from payapp_ingestion.mapping import map_budget_record, map_budget_records, parse_project_form
from payapp_kernel.domain.inputs import BudgetLineItem


def load_line_items(
    source_path: Path | str,
    options: dict[str, Any] | None = None,
) -> tuple[BudgetLineItem, ...]:
    """Read a budget export and map it to line items."""
    return map_budget_records(read_budget_source(source_path, options))


__all__ = [
    "adapter_for",
    "load_line_items",
    "map_budget_record",
    "map_budget_records",
    "parse_project_form",
    "probe_budget_source",
    "read_budget_source",
]
