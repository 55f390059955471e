"""
PayAppConfig schema.

Typed, frozen view of the payment application configuration. YAML files
are parsed into these types by the loader; every consumer receives a
``PayAppConfig`` and never reads YAML itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from payapp_kernel.domain.cells import SheetId

RETAINAGE_SOURCES = ("continuation", "recompute")


@dataclass(frozen=True)
class SheetTitles:
    """Display titles of the two worksheets."""

    continuation: str
    summary: str

    def as_mapping(self) -> dict[SheetId, str]:
        return {
            SheetId.CONTINUATION: self.continuation,
            SheetId.SUMMARY: self.summary,
        }


@dataclass(frozen=True)
class NumberFormats:
    """Spreadsheet number format codes."""

    currency: str
    percent: str


@dataclass(frozen=True)
class RetainageDefaults:
    """Retainage settings used when the project does not supply them."""

    completed_percent: Decimal
    stored_percent: Decimal
    source: str = "continuation"


@dataclass(frozen=True)
class PayAppConfig:
    """Complete, validated configuration for one run."""

    config_id: str
    version: int
    sheet_titles: SheetTitles
    number_formats: NumberFormats
    retainage: RetainageDefaults
    continuation_column_widths: tuple[tuple[str, float], ...] = ()
    summary_column_widths: tuple[tuple[str, float], ...] = ()
    filename_pattern: str = "AIA_G702G703_{project}_{application}.xlsx"
    checksum: str = ""
