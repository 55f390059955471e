"""
XLSX source adapter for budget exports (e.g. a budget view exported to Excel).

Supports flexible layout:
  - sheet by index (0-based) or name
  - header row by index or auto-detect (scans first N rows for budget-like
    column names)
  - normalizes cell values (strip, blank -> empty string)

Auto-detect looks for a row containing at least 2 of: description, cost code,
scheduled value, budget, previous, this period, stored, amount billed.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Iterator

import openpyxl

from payapp_ingestion.adapters.base import SourceProbe

_HEADER_KEYWORDS = frozenset({
    "description", "name", "cost code", "item",
    "scheduled value", "scheduled_value", "budget", "revised budget",
    "original budget", "revised_budget_amount", "original_budget_amount",
    "previous", "previous_completed", "this period", "current_completed",
    "stored", "stored_materials", "material_stored",
    "amount billed", "amount_billed", "current_period_amount_billed",
})

_SAMPLE_SIZE = 5


def _normalize_header_cell(value: Any) -> str:
    """Normalize a header cell into a record key."""
    if value is None:
        return ""
    s = re.sub(r"\s+", " ", str(value)).strip().lower()
    return s.replace(" ", "_")


def _cell_value(row: Any, col_idx: int) -> Any:
    """Get cell value from an openpyxl row (0-based column index)."""
    try:
        cell = row[col_idx]
    except IndexError:
        return ""
    v = cell.value if cell is not None else None
    if v is None:
        return ""
    if isinstance(v, str):
        return v.strip()
    return v


def _row_keywords(row: Any, ncols: int) -> set[str]:
    keywords: set[str] = set()
    for c in range(ncols):
        v = _cell_value(row, c)
        if not isinstance(v, str) or not v:
            continue
        v_lower = v.lower()
        for kw in _HEADER_KEYWORDS:
            if kw in v_lower:
                keywords.add(kw)
    return keywords


def _detect_header_row(rows: list, max_search: int = 15, min_keywords: int = 2) -> int:
    """Return 0-based index of the first row that looks like a budget header."""
    for i, row in enumerate(rows[:max_search]):
        if len(_row_keywords(row, len(row))) >= min_keywords:
            return i
    return 0


class XlsxSourceAdapter:
    """
    Read .xlsx files as one dict per row, keyed by the header row.

    source_options:
      sheet: 0-based sheet index (int) or sheet name (str). Default: active sheet.
      header_row: 0-based row index to use as header. Default: auto-detect.
    """

    def read(self, source_path: Path, options: dict[str, Any]) -> Iterator[dict[str, Any]]:
        wb = openpyxl.load_workbook(source_path, read_only=True, data_only=True)
        try:
            rows = list(self._get_sheet(wb, options).iter_rows())
            if not rows:
                return
            header_idx = options.get("header_row")
            hi = int(header_idx) if header_idx is not None else _detect_header_row(rows)

            header_row = rows[hi]
            headers: list[str] = []
            for c in range(len(header_row)):
                key = _normalize_header_cell(_cell_value(header_row, c)) or f"column_{c + 1}"
                base = key
                cnt = 0
                while key in headers:
                    cnt += 1
                    key = f"{base}_{cnt}"
                headers.append(key)

            for row in rows[hi + 1:]:
                vals = [_cell_value(row, c) for c in range(len(headers))]
                if not any(v != "" for v in vals):
                    continue
                yield dict(zip(headers, vals))
        finally:
            wb.close()

    def probe(self, source_path: Path, options: dict[str, Any]) -> SourceProbe:
        sample: list[dict[str, Any]] = []
        count = 0
        for row in self.read(source_path, options):
            count += 1
            if len(sample) < _SAMPLE_SIZE:
                sample.append(row)
        columns = tuple(sample[0].keys()) if sample else ()
        return SourceProbe(row_count=count, columns=columns, sample_rows=tuple(sample))

    def _get_sheet(self, wb: Any, options: dict[str, Any]) -> Any:
        sheet_ref = options.get("sheet")
        if sheet_ref is None:
            return wb.active
        if isinstance(sheet_ref, int):
            return wb.worksheets[sheet_ref]
        return wb[sheet_ref]
