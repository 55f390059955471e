"""
Budget source adapter protocol and probe result.

Adapters turn one export file into plain dict records, one per budget
line. They only read files: no mapping to line items and no engine imports.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Protocol, runtime_checkable

# Columns that identify the two record shapes the budget mapper accepts.
NORMALIZED_COLUMNS = frozenset({"description", "scheduled_value"})
PROVIDER_COLUMNS = frozenset({"revised_budget_amount", "original_budget_amount", "amount_billed"})


@runtime_checkable
class SourceAdapter(Protocol):
    """Reads a budget export file into record dicts."""

    def read(self, source_path: Path, options: dict[str, Any]) -> Iterator[dict[str, Any]]:
        ...

    def probe(self, source_path: Path, options: dict[str, Any]) -> SourceProbe:
        ...


@dataclass(frozen=True)
class SourceProbe:
    """Row count, column names and the first few records of a source."""

    row_count: int
    columns: tuple[str, ...]
    sample_rows: tuple[dict[str, Any], ...]
    encoding: str | None = None

    @property
    def shape(self) -> str:
        """Record shape judged from the column names: normalized, provider or unknown."""
        columns = set(self.columns)
        if NORMALIZED_COLUMNS <= columns:
            return "normalized"
        if columns & PROVIDER_COLUMNS:
            return "provider"
        return "unknown"
