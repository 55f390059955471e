"""
JSON source adapter for budget exports.

Handles a JSON array of budget records (the shape returned by the budget
line items endpoint) and JSON Lines. ``json_path`` selects a nested array,
e.g. "data.budget_line_items". Nested objects such as ``cost_code`` are
kept intact for the mapper.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterator

from payapp_ingestion.adapters.base import SourceProbe

_SAMPLE_SIZE = 5


def _get_nested(data: Any, path: str) -> Any:
    """Follow dot-separated path into dict/list. Returns None if key missing."""
    if not path.strip():
        return data
    for key in path.split("."):
        key = key.strip()
        if not key:
            continue
        if isinstance(data, list):
            try:
                data = data[int(key)]
            except (ValueError, IndexError):
                return None
        elif isinstance(data, dict) and key in data:
            data = data[key]
        else:
            return None
    return data


def _normalize_row_keys(item: Any) -> Any:
    """
    Lowercase top-level string keys so mappings match regardless of casing.

    Anything that is not an object is passed through for the mapper to
    reject with its record index.
    """
    if not isinstance(item, dict):
        return item
    return {str(k).strip().lower(): v for k, v in item.items() if isinstance(k, str)}


def _all_keys(rows: list[dict[str, Any]]) -> tuple[str, ...]:
    seen: set[str] = set()
    for row in rows:
        if isinstance(row, dict):
            seen.update(row.keys())
    return tuple(sorted(seen))


class JsonSourceAdapter:
    """Read a JSON array or JSON Lines file, one record per element or line."""

    def read(self, source_path: Path, options: dict[str, Any]) -> Iterator[dict[str, Any]]:
        fmt = options.get("format", "array")
        encoding = options.get("encoding", "utf-8")

        if fmt == "jsonl":
            with source_path.open("r", encoding=encoding) as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    yield _normalize_row_keys(json.loads(line))
            return

        for item in self._load_array(source_path, options):
            yield _normalize_row_keys(item)

    def probe(self, source_path: Path, options: dict[str, Any]) -> SourceProbe:
        encoding = options.get("encoding", "utf-8")
        rows = list(self.read(source_path, options))
        sample = rows[:_SAMPLE_SIZE]
        return SourceProbe(
            row_count=len(rows),
            columns=_all_keys(sample),
            sample_rows=tuple(sample),
            encoding=encoding,
        )

    def _load_array(self, source_path: Path, options: dict[str, Any]) -> list[Any]:
        json_path = options.get("json_path")
        encoding = options.get("encoding", "utf-8")
        with source_path.open("r", encoding=encoding) as f:
            data = json.load(f)
        root = _get_nested(data, json_path) if json_path else data
        if isinstance(root, dict):
            # A single wrapped export, e.g. {"budget_line_items": [...]}
            lists = [v for v in root.values() if isinstance(v, list)]
            root = lists[0] if len(lists) == 1 else None
        if not isinstance(root, list):
            raise ValueError("JSON budget source must contain an array of records")
        return root
