"""Tests for CellRef coordinates."""

import pytest

from payapp_kernel.domain.cells import CellRef, SheetId


class TestCellRef:

    def test_address(self):
        assert CellRef(SheetId.CONTINUATION, 9, "G").address == "G9"

    def test_qualified_quotes_title(self):
        cell = CellRef(SheetId.CONTINUATION, 9, "G")
        assert cell.qualified("G703 - Continuation Sheet") == "'G703 - Continuation Sheet'!G9"

    def test_qualified_escapes_apostrophe(self):
        cell = CellRef(SheetId.SUMMARY, 1, "A")
        assert cell.qualified("Owner's Sheet") == "'Owner''s Sheet'!A1"

    def test_str_uses_logical_sheet(self):
        assert str(CellRef(SheetId.SUMMARY, 10, "H")) == "summary!H10"

    def test_hashable_and_equal(self):
        a = CellRef(SheetId.SUMMARY, 10, "H")
        b = CellRef(SheetId.SUMMARY, 10, "H")
        assert a == b
        assert {a: 1}[b] == 1

    @pytest.mark.parametrize("row, column", [(0, "A"), (-1, "A"), (1, "a"), (1, "A1"), (1, "")])
    def test_invalid_coordinates(self, row, column):
        with pytest.raises(ValueError):
            CellRef(SheetId.CONTINUATION, row, column)
