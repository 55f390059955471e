"""Tests for the budget source adapters (JSON, JSON Lines, CSV, XLSX)."""

import json

import openpyxl
import pytest

from payapp_ingestion import load_line_items
from payapp_ingestion.adapters import (
    CsvSourceAdapter,
    JsonSourceAdapter,
    XlsxSourceAdapter,
    adapter_for,
    probe_budget_source,
    read_budget_source,
)
from payapp_kernel.exceptions import DataError, SourceError

PROVIDER_RECORDS = [
    {
        "cost_code": {"full_code": "01-100 General Conditions"},
        "revised_budget_amount": 25000,
        "amount_billed": 12000,
        "current_period_amount_billed": 2000,
        "material_stored": 0,
    },
    {
        "cost_code": {"full_code": "03-300 Concrete"},
        "original_budget_amount": "40000.00",
        "amount_billed": "10000",
        "current_period_amount_billed": "10000",
    },
]


def _write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestAdapterSelection:

    @pytest.mark.parametrize("name, adapter_type", [
        ("budget.json", JsonSourceAdapter),
        ("budget.JSONL", JsonSourceAdapter),
        ("budget.csv", CsvSourceAdapter),
        ("budget.xlsx", XlsxSourceAdapter),
    ])
    def test_by_suffix(self, tmp_path, name, adapter_type):
        assert isinstance(adapter_for(tmp_path / name), adapter_type)

    def test_unsupported_suffix(self, tmp_path):
        with pytest.raises(SourceError, match="unsupported format .pdf"):
            adapter_for(tmp_path / "budget.pdf")

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceError, match="file not found"):
            read_budget_source(tmp_path / "absent.json")


class TestJsonAdapter:

    def test_array(self, tmp_path):
        path = _write_json(tmp_path / "budget.json", PROVIDER_RECORDS)
        records = read_budget_source(path)
        assert len(records) == 2
        assert records[0]["cost_code"] == {"full_code": "01-100 General Conditions"}

    def test_wrapped_array_is_unwrapped(self, tmp_path):
        path = _write_json(tmp_path / "budget.json", {"budget_line_items": PROVIDER_RECORDS})
        assert len(read_budget_source(path)) == 2

    def test_json_path(self, tmp_path):
        path = _write_json(tmp_path / "budget.json", {
            "meta": {"count": 2},
            "data": {"items": PROVIDER_RECORDS, "links": []},
        })
        records = read_budget_source(path, {"json_path": "data.items"})
        assert len(records) == 2

    def test_keys_are_lowercased(self, tmp_path):
        path = _write_json(tmp_path / "budget.json", [{"Description": "Roofing", "Scheduled_Value": 10}])
        assert read_budget_source(path) == [{"description": "Roofing", "scheduled_value": 10}]

    def test_jsonl(self, tmp_path):
        path = tmp_path / "budget.jsonl"
        path.write_text(
            "\n".join(json.dumps(r) for r in PROVIDER_RECORDS) + "\n\n",
            encoding="utf-8",
        )
        assert len(read_budget_source(path)) == 2

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "budget.json"
        path.write_text("[{\"description\": ", encoding="utf-8")
        with pytest.raises(SourceError, match="malformed content"):
            read_budget_source(path)

    def test_scalar_root_rejected(self, tmp_path):
        path = _write_json(tmp_path / "budget.json", 42)
        with pytest.raises(SourceError, match="array of records"):
            read_budget_source(path)

    def test_probe(self, tmp_path):
        path = _write_json(tmp_path / "budget.json", PROVIDER_RECORDS)
        probe = JsonSourceAdapter().probe(path, {})
        assert probe.row_count == 2
        assert "amount_billed" in probe.columns
        assert probe.shape == "provider"

    def test_non_object_records_are_kept_in_place(self, tmp_path):
        path = _write_json(tmp_path / "budget.json", [{"Description": "A", "scheduled_value": 100}, "garbage", 42])
        assert read_budget_source(path) == [{"description": "A", "scheduled_value": 100}, "garbage", 42]

    @pytest.mark.parametrize("name", ["budget.json", "budget.jsonl"])
    def test_non_object_record_fails_mapping_with_its_index(self, tmp_path, name):
        records = [{"description": "A", "scheduled_value": 100}, "garbage", 42]
        path = tmp_path / name
        if name.endswith(".jsonl"):
            path.write_text("\n".join(json.dumps(r) for r in records), encoding="utf-8")
        else:
            _write_json(path, records)

        with pytest.raises(DataError, match="must be an object") as exc_info:
            load_line_items(path)
        assert exc_info.value.item_index == 1

    def test_probe_budget_source(self, tmp_path):
        path = tmp_path / "budget.jsonl"
        path.write_text("\n".join(json.dumps(r) for r in PROVIDER_RECORDS), encoding="utf-8")
        probe = probe_budget_source(path)
        assert probe.row_count == 2
        assert probe.shape == "provider"

    def test_probe_budget_source_maps_read_errors(self, tmp_path):
        with pytest.raises(SourceError, match="file not found"):
            probe_budget_source(tmp_path / "absent.json")


class TestCsvAdapter:

    def test_headers_normalized_and_blank_rows_skipped(self, tmp_path):
        path = tmp_path / "budget.csv"
        path.write_text(
            "\ufeffDescription, Scheduled Value ,Previous Completed\n"
            "Sitework,1000,200\n"
            ",,\n"
            "Framing, 2500 ,0\n",
            encoding="utf-8",
        )
        records = read_budget_source(path)
        assert records == [
            {"description": "Sitework", "scheduled_value": "1000", "previous_completed": "200"},
            {"description": "Framing", "scheduled_value": "2500", "previous_completed": "0"},
        ]

    def test_delimiter_and_skip_rows(self, tmp_path):
        path = tmp_path / "budget.csv"
        path.write_text("Exported 2024-05-31\ndescription;scheduled_value\nPaint;300\n", encoding="utf-8")
        records = read_budget_source(path, {"delimiter": ";", "skip_rows": 1})
        assert records == [{"description": "Paint", "scheduled_value": "300"}]

    def test_probe_normalized_shape(self, tmp_path):
        path = tmp_path / "budget.csv"
        path.write_text("description,scheduled_value\nPaint,300\nDoors,200\n", encoding="utf-8")
        probe = CsvSourceAdapter().probe(path, {})
        assert probe.row_count == 2
        assert probe.shape == "normalized"
        assert probe.encoding == "utf-8-sig"


class TestXlsxAdapter:

    def _workbook(self, path, rows, title="Budget"):
        wb = openpyxl.Workbook()
        ws = wb.active
        ws.title = title
        for row in rows:
            ws.append(row)
        wb.save(path)
        return path

    def test_header_autodetect(self, tmp_path):
        path = self._workbook(tmp_path / "budget.xlsx", [
            ["Budget export"],
            [],
            ["Cost Code", "Revised Budget Amount", "Amount Billed"],
            ["01-100", 25000, 12000],
            [None, None, None],
            ["03-300", 40000, 0],
        ])
        records = read_budget_source(path)
        assert records == [
            {"cost_code": "01-100", "revised_budget_amount": 25000, "amount_billed": 12000},
            {"cost_code": "03-300", "revised_budget_amount": 40000, "amount_billed": 0},
        ]

    def test_explicit_header_row_and_sheet(self, tmp_path):
        wb = openpyxl.Workbook()
        wb.active.title = "Notes"
        ws = wb.create_sheet("Lines")
        ws.append(["x", "y"])
        ws.append(["Description", "Scheduled Value"])
        ws.append(["Roofing", 900])
        path = tmp_path / "budget.xlsx"
        wb.save(path)

        records = read_budget_source(path, {"sheet": "Lines", "header_row": 1})
        assert records == [{"description": "Roofing", "scheduled_value": 900}]

    def test_duplicate_headers_are_suffixed(self, tmp_path):
        path = self._workbook(tmp_path / "budget.xlsx", [
            ["Description", "Budget", "Budget"],
            ["Doors", 10, 20],
        ])
        assert read_budget_source(path) == [{"description": "Doors", "budget": 10, "budget_1": 20}]

    def test_not_a_workbook(self, tmp_path):
        path = tmp_path / "budget.xlsx"
        path.write_text("plain text", encoding="utf-8")
        with pytest.raises(SourceError):
            read_budget_source(path)

    def test_unknown_sheet(self, tmp_path):
        path = self._workbook(tmp_path / "budget.xlsx", [["Description", "Budget"]])
        with pytest.raises(SourceError):
            read_budget_source(path, {"sheet": "Missing"})
