"""Source adapters for budget exports (file I/O only, no engine imports)."""

from __future__ import annotations

import csv
import json
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from openpyxl.utils.exceptions import InvalidFileException

from payapp_ingestion.adapters.base import SourceAdapter, SourceProbe
from payapp_ingestion.adapters.csv_adapter import CsvSourceAdapter
from payapp_ingestion.adapters.json_adapter import JsonSourceAdapter
from payapp_ingestion.adapters.xlsx_adapter import XlsxSourceAdapter
from payapp_kernel.exceptions import SourceError

_ADAPTERS: dict[str, type] = {
    ".json": JsonSourceAdapter,
    ".jsonl": JsonSourceAdapter,
    ".csv": CsvSourceAdapter,
    ".xlsx": XlsxSourceAdapter,
}


def adapter_for(source_path: Path) -> SourceAdapter:
    """Pick an adapter by file suffix."""
    try:
        return _ADAPTERS[source_path.suffix.lower()]()
    except KeyError:
        raise SourceError(
            str(source_path),
            f"unsupported format {source_path.suffix or '(none)'}; "
            f"expected one of {', '.join(sorted(_ADAPTERS))}",
        ) from None


def _prepare(source_path: Path | str, options: dict[str, Any] | None) -> tuple[Path, dict[str, Any], SourceAdapter]:
    path = Path(source_path)
    opts = dict(options or {})
    if path.suffix.lower() == ".jsonl":
        opts.setdefault("format", "jsonl")
    return path, opts, adapter_for(path)


@contextmanager
def _source_errors(path: Path) -> Iterator[None]:
    """Re-raise read failures of ``path`` as SourceError."""
    try:
        yield
    except FileNotFoundError as exc:
        raise SourceError(str(path), "file not found") from exc
    except (json.JSONDecodeError, csv.Error, UnicodeDecodeError) as exc:
        raise SourceError(str(path), f"malformed content: {exc}") from exc
    except (InvalidFileException, zipfile.BadZipFile) as exc:
        raise SourceError(str(path), f"not a valid workbook: {exc}") from exc
    except (OSError, ValueError, KeyError, IndexError) as exc:
        raise SourceError(str(path), str(exc)) from exc


def read_budget_source(
    source_path: Path | str,
    options: dict[str, Any] | None = None,
) -> list[Any]:
    """
    Read every record of a budget export.

    Raises:
        SourceError: the file is missing, unreadable or malformed.
    """
    path, opts, adapter = _prepare(source_path, options)
    with _source_errors(path):
        return list(adapter.read(path, opts))


def probe_budget_source(
    source_path: Path | str,
    options: dict[str, Any] | None = None,
) -> SourceProbe:
    """Row count, columns and sample records of a budget export, without mapping."""
    path, opts, adapter = _prepare(source_path, options)
    with _source_errors(path):
        return adapter.probe(path, opts)


__all__ = [
    "SourceAdapter",
    "SourceProbe",
    "CsvSourceAdapter",
    "JsonSourceAdapter",
    "XlsxSourceAdapter",
    "adapter_for",
    "probe_budget_source",
    "read_budget_source",
]
