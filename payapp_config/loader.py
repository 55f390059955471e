"""
Configuration Loader (``payapp_config.loader``).

Responsibility
--------------
Loads YAML configuration files, merges user overrides over the packaged
defaults and parses the result into the frozen ``payapp_config.schema``
dataclasses. Runtime callers go through ``payapp_config.get_active_config()``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys in parsed dict  -> ``KeyError`` propagates.
* Invalid values (unknown retainage source, bad percentage, blank or
  duplicate sheet titles)  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from payapp_config.schema import (
    RETAINAGE_SOURCES,
    NumberFormats,
    PayAppConfig,
    RetainageDefaults,
    SheetTitles,
)

# Characters Excel forbids in worksheet titles.
_FORBIDDEN_TITLE_CHARS = frozenset("[]:*?/\\")
_MAX_TITLE_LENGTH = 31


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")
    return data


def merge_config(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursively merge ``override`` into ``base``; scalars and lists replace."""
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), Mapping):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def parse_config(data: Mapping[str, Any]) -> PayAppConfig:
    """
    Parse a merged configuration dict into a validated PayAppConfig.

    Raises:
        KeyError: required section or key missing.
        ValueError: invalid value.
    """
    titles = SheetTitles(
        continuation=str(data["sheet_titles"]["continuation"]),
        summary=str(data["sheet_titles"]["summary"]),
    )
    _validate_titles(titles)

    formats = NumberFormats(
        currency=str(data["number_formats"]["currency"]),
        percent=str(data["number_formats"]["percent"]),
    )

    retainage_data = data["retainage"]
    retainage = RetainageDefaults(
        completed_percent=_parse_percent(retainage_data["completed_percent"], "completed_percent"),
        stored_percent=_parse_percent(retainage_data["stored_percent"], "stored_percent"),
        source=str(retainage_data.get("source", "continuation")).strip().lower(),
    )
    if retainage.source not in RETAINAGE_SOURCES:
        raise ValueError(
            f"retainage.source must be one of {RETAINAGE_SOURCES}, got {retainage.source!r}"
        )

    widths = data.get("column_widths", {}) or {}
    output = data.get("output", {}) or {}
    pattern = str(output.get("filename_pattern", "AIA_G702G703_{project}_{application}.xlsx"))
    if "{project}" not in pattern or "{application}" not in pattern:
        raise ValueError("output.filename_pattern must contain {project} and {application}")

    return PayAppConfig(
        config_id=str(data["config_id"]),
        version=int(data["version"]),
        sheet_titles=titles,
        number_formats=formats,
        retainage=retainage,
        continuation_column_widths=_parse_widths(widths.get("continuation", {})),
        summary_column_widths=_parse_widths(widths.get("summary", {})),
        filename_pattern=pattern,
        checksum=compute_checksum(dict(data)),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _parse_percent(value: Any, name: str) -> Decimal:
    try:
        pct = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"retainage.{name} must be a number, got {value!r}") from exc
    if not pct.is_finite() or pct < 0 or pct > 100:
        raise ValueError(f"retainage.{name} must be between 0 and 100, got {value!r}")
    return pct


def _parse_widths(data: Mapping[str, Any]) -> tuple[tuple[str, float], ...]:
    widths: list[tuple[str, float]] = []
    for column, width in sorted(data.items()):
        letter = str(column).strip().upper()
        if not letter.isalpha():
            raise ValueError(f"column width key must be a column letter, got {column!r}")
        widths.append((letter, float(width)))
    return tuple(widths)


def _validate_titles(titles: SheetTitles) -> None:
    for name in (titles.continuation, titles.summary):
        if not name.strip():
            raise ValueError("sheet titles must not be blank")
        if len(name) > _MAX_TITLE_LENGTH:
            raise ValueError(f"sheet title {name!r} exceeds {_MAX_TITLE_LENGTH} characters")
        if _FORBIDDEN_TITLE_CHARS & set(name):
            raise ValueError(f"sheet title {name!r} contains a forbidden character")
    if titles.continuation == titles.summary:
        raise ValueError("continuation and summary sheet titles must differ")
