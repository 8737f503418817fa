"""Tests for cell, column, row and label references."""

import pytest

from sheetserver.core.errors import InvalidSelectionError
from sheetserver.core.references import (
    ALL_CELLS,
    CellRange,
    CellReference,
    ColumnReference,
    LabelName,
    RowReference,
    is_cell_reference,
    is_label_name,
    parse_cell,
    parse_cell_or_label,
    parse_cell_range,
    parse_column,
    parse_column_range,
    parse_label,
    parse_row,
    parse_row_range,
)


class TestCells:
    def test_parse_cell(self):
        assert parse_cell("B2") == CellReference(row=2, column=2)
        assert parse_cell("$AA$10") == CellReference(row=10, column=27)
        assert parse_cell("b2") == CellReference(row=2, column=2)

    @pytest.mark.parametrize("text", ["", "A0", "2B", "ZZZZ1", "A1048577", "XFE1"])
    def test_parse_cell_invalid(self, text):
        with pytest.raises(InvalidSelectionError):
            parse_cell(text)

    def test_str(self):
        assert str(CellReference(row=10, column=27)) == "AA10"

    def test_row_major_ordering(self):
        assert CellReference(row=1, column=5) < CellReference(row=2, column=1)

    def test_add(self):
        assert parse_cell("B2").add(columns=1, rows=2) == parse_cell("C4")


class TestCellRange:
    def test_parse_normalizes_corners(self):
        cell_range = parse_cell_range("C3:A1")
        assert str(cell_range) == "A1:C3"
        assert cell_range.width == 3 and cell_range.height == 3

    def test_single_cell(self):
        cell_range = parse_cell_range("B2")
        assert cell_range.is_single_cell
        assert str(cell_range) == "B2"

    def test_contains_and_iter(self):
        cell_range = parse_cell_range("A1:B2")
        assert parse_cell("B2") in cell_range
        assert parse_cell("C1") not in cell_range
        assert [str(c) for c in cell_range] == ["A1", "B1", "A2", "B2"]

    def test_overlaps(self):
        assert parse_cell_range("A1:B2").overlaps(parse_cell_range("B2:C3"))
        assert not parse_cell_range("A1:B2").overlaps(parse_cell_range("C3:D4"))

    def test_all_cells_contains_corners(self):
        assert CellReference(1, 1) in ALL_CELLS
        assert ALL_CELLS.end in ALL_CELLS

    def test_columns_and_rows(self):
        cell_range = parse_cell_range("B2:D5")
        assert str(cell_range.columns) == "B:D"
        assert str(cell_range.rows) == "2:5"


class TestColumnsAndRows:
    def test_parse_column(self):
        assert parse_column("C") == ColumnReference(3)
        assert str(ColumnReference(28)) == "AB"

    def test_parse_column_range(self):
        columns = parse_column_range("D:B")
        assert str(columns) == "B:D"
        assert columns.count == 3
        assert [str(c) for c in columns] == ["B", "C", "D"]

    def test_parse_row(self):
        assert parse_row("7") == RowReference(7)
        with pytest.raises(InvalidSelectionError):
            parse_row("0")

    def test_parse_row_range(self):
        rows = parse_row_range("2:4")
        assert RowReference(3) in rows
        assert RowReference(5) not in rows

    def test_invalid_column(self):
        with pytest.raises(InvalidSelectionError):
            parse_column("1")


class TestLabels:
    @pytest.mark.parametrize("text", ["Total", "_tax", "Sales.Q1", "a1b"])
    def test_label_names(self, text):
        assert is_label_name(text)
        assert parse_label(text) == LabelName(text)

    @pytest.mark.parametrize("text", ["A1", "TRUE", "false", "1abc", "", "has space"])
    def test_not_label_names(self, text):
        assert not is_label_name(text)

    def test_parse_cell_or_label(self):
        assert parse_cell_or_label("A1") == parse_cell("A1")
        assert parse_cell_or_label("A1:B2") == parse_cell_range("A1:B2")
        assert parse_cell_or_label("Total") == LabelName("Total")

    def test_is_cell_reference(self):
        assert is_cell_reference("XFD1048576")
        assert not is_cell_reference("XFE1")
