"""
Cell coordinates spanning the two payment application sheets.

A CellRef names a cell by logical sheet, row and column letter. Renderers
translate the logical sheet into a display title; the engines never build
spreadsheet reference strings themselves.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

_COLUMN_PATTERN = re.compile(r"^[A-Z]{1,3}$")


class SheetId(str, Enum):
    """Logical sheets of a payment application."""

    CONTINUATION = "continuation"  # AIA G703
    SUMMARY = "summary"  # AIA G702


@dataclass(frozen=True, slots=True)
class CellRef:
    """Coordinate of one cell: logical sheet, 1-based row, column letter."""

    sheet: SheetId
    row: int
    column: str

    def __post_init__(self) -> None:
        if self.row < 1:
            raise ValueError(f"row must be >= 1, got {self.row}")
        if not _COLUMN_PATTERN.match(self.column):
            raise ValueError(f"column must be letters A-Z, got {self.column!r}")

    @property
    def address(self) -> str:
        """Sheet-local A1 address, e.g. ``G9``."""
        return f"{self.column}{self.row}"

    def qualified(self, title: str) -> str:
        """Cross-sheet address, e.g. ``'G703 - Continuation Sheet'!G9``."""
        escaped = title.replace("'", "''")
        return f"'{escaped}'!{self.address}"

    def __str__(self) -> str:
        return f"{self.sheet.value}!{self.address}"
