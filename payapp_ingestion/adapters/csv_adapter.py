"""
CSV source adapter for budget exports.

Uses csv.DictReader. Configurable: delimiter, encoding, skip_rows. Handles
BOM via utf-8-sig when encoding is utf-8. Header names are stripped and
lowercased so they line up with the budget field names.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Iterator

from payapp_ingestion.adapters.base import SourceProbe

_SAMPLE_SIZE = 5


def _get_encoding(options: dict[str, Any]) -> str:
    enc = options.get("encoding", "utf-8")
    if enc.lower() == "utf-8":
        return "utf-8-sig"  # Strip BOM if present
    return enc


def _normalize_header(name: str | None) -> str:
    return (name or "").strip().lower().replace(" ", "_")


class CsvSourceAdapter:
    """Read CSV files as one dict per row. Streams; does not load entire file."""

    def read(self, source_path: Path, options: dict[str, Any]) -> Iterator[dict[str, Any]]:
        encoding = _get_encoding(options)
        delimiter = options.get("delimiter", ",")
        skip_rows = int(options.get("skip_rows", 0))

        with source_path.open("r", encoding=encoding, newline="") as f:
            for _ in range(skip_rows):
                next(f, None)
            reader = csv.DictReader(f, delimiter=delimiter)
            for row in reader:
                record = {
                    _normalize_header(k): (v.strip() if isinstance(v, str) else v)
                    for k, v in row.items()
                    if k is not None
                }
                if not any(v not in ("", None) for v in record.values()):
                    continue
                yield record

    def probe(self, source_path: Path, options: dict[str, Any]) -> SourceProbe:
        sample: list[dict[str, Any]] = []
        count = 0
        for row in self.read(source_path, options):
            count += 1
            if len(sample) < _SAMPLE_SIZE:
                sample.append(row)
        columns = tuple(sample[0].keys()) if sample else ()
        return SourceProbe(
            row_count=count,
            columns=columns,
            sample_rows=tuple(sample),
            encoding=_get_encoding(options),
        )
