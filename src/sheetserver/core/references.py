"""
A1-style references: cells, columns, rows, their ranges, and label names.

Columns and rows are 1-based (``A`` is column 1, row ``1`` is the first row).
Column letters are converted with :mod:`openpyxl.utils`, which also bounds
columns at ``XFD`` (16384).

Parse failures raise :class:`~sheetserver.core.errors.InvalidSelectionError`
so the HTTP layer answers 400.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Union

from openpyxl.utils import column_index_from_string, get_column_letter

from sheetserver.core.errors import InvalidSelectionError

MAX_COLUMN = 16384
MAX_ROW = 1048576

_CELL = re.compile(r"^\$?([A-Za-z]{1,3})\$?([1-9][0-9]*)$")
_COLUMN = re.compile(r"^\$?([A-Za-z]{1,3})$")
_ROW = re.compile(r"^\$?([1-9][0-9]*)$")
_LABEL = re.compile(r"^[A-Za-z_\\][A-Za-z0-9_.\\]{0,254}$")
_RESERVED_LABELS = frozenset({"TRUE", "FALSE"})


def _column_index(letters: str) -> int:
    index = column_index_from_string(letters.upper())
    if index > MAX_COLUMN:
        raise InvalidSelectionError(f"Invalid column {letters!r}")
    return index


def _row_index(digits: str) -> int:
    index = int(digits)
    if index > MAX_ROW:
        raise InvalidSelectionError(f"Invalid row {digits!r}")
    return index


# ── Columns and rows ─────────────────────────────────────────────────────


@dataclass(frozen=True, order=True)
class ColumnReference:
    index: int

    def add(self, delta: int) -> ColumnReference:
        return ColumnReference(self.index + delta)

    def __str__(self) -> str:
        return get_column_letter(self.index)


@dataclass(frozen=True, order=True)
class RowReference:
    index: int

    def add(self, delta: int) -> RowReference:
        return RowReference(self.index + delta)

    def __str__(self) -> str:
        return str(self.index)


@dataclass(frozen=True, order=True)
class ColumnRange:
    begin: ColumnReference
    end: ColumnReference

    def __post_init__(self) -> None:
        if self.begin > self.end:
            begin, end = self.end, self.begin
            object.__setattr__(self, "begin", begin)
            object.__setattr__(self, "end", end)

    @property
    def count(self) -> int:
        return self.end.index - self.begin.index + 1

    def __contains__(self, column: ColumnReference) -> bool:
        return self.begin <= column <= self.end

    def __iter__(self) -> Iterator[ColumnReference]:
        for index in range(self.begin.index, self.end.index + 1):
            yield ColumnReference(index)

    def __str__(self) -> str:
        if self.begin == self.end:
            return str(self.begin)
        return f"{self.begin}:{self.end}"


@dataclass(frozen=True, order=True)
class RowRange:
    begin: RowReference
    end: RowReference

    def __post_init__(self) -> None:
        if self.begin > self.end:
            begin, end = self.end, self.begin
            object.__setattr__(self, "begin", begin)
            object.__setattr__(self, "end", end)

    @property
    def count(self) -> int:
        return self.end.index - self.begin.index + 1

    def __contains__(self, row: RowReference) -> bool:
        return self.begin <= row <= self.end

    def __iter__(self) -> Iterator[RowReference]:
        for index in range(self.begin.index, self.end.index + 1):
            yield RowReference(index)

    def __str__(self) -> str:
        if self.begin == self.end:
            return str(self.begin)
        return f"{self.begin}:{self.end}"


# ── Cells ────────────────────────────────────────────────────────────────


@dataclass(frozen=True, order=True)
class CellReference:
    """A single cell.  Orders row-major (row first, then column)."""

    row: int
    column: int

    @property
    def column_reference(self) -> ColumnReference:
        return ColumnReference(self.column)

    @property
    def row_reference(self) -> RowReference:
        return RowReference(self.row)

    def add(self, columns: int = 0, rows: int = 0) -> CellReference:
        return CellReference(row=self.row + rows, column=self.column + columns)

    def to_range(self) -> CellRange:
        return CellRange(self, self)

    def __str__(self) -> str:
        return f"{get_column_letter(self.column)}{self.row}"


@dataclass(frozen=True, order=True)
class CellRange:
    """Rectangular range; ``begin`` is always the top-left corner."""

    begin: CellReference
    end: CellReference

    def __post_init__(self) -> None:
        top, bottom = sorted((self.begin.row, self.end.row))
        left, right = sorted((self.begin.column, self.end.column))
        object.__setattr__(self, "begin", CellReference(row=top, column=left))
        object.__setattr__(self, "end", CellReference(row=bottom, column=right))

    @property
    def width(self) -> int:
        return self.end.column - self.begin.column + 1

    @property
    def height(self) -> int:
        return self.end.row - self.begin.row + 1

    @property
    def is_single_cell(self) -> bool:
        return self.begin == self.end

    @property
    def columns(self) -> ColumnRange:
        return ColumnRange(self.begin.column_reference, self.end.column_reference)

    @property
    def rows(self) -> RowRange:
        return RowRange(self.begin.row_reference, self.end.row_reference)

    def __contains__(self, cell: CellReference) -> bool:
        return (
            self.begin.row <= cell.row <= self.end.row
            and self.begin.column <= cell.column <= self.end.column
        )

    def __iter__(self) -> Iterator[CellReference]:
        for row in range(self.begin.row, self.end.row + 1):
            for column in range(self.begin.column, self.end.column + 1):
                yield CellReference(row=row, column=column)

    def overlaps(self, other: CellRange) -> bool:
        return not (
            other.end.row < self.begin.row
            or other.begin.row > self.end.row
            or other.end.column < self.begin.column
            or other.begin.column > self.end.column
        )

    def __str__(self) -> str:
        if self.is_single_cell:
            return str(self.begin)
        return f"{self.begin}:{self.end}"


ALL_CELLS = CellRange(CellReference(1, 1), CellReference(MAX_ROW, MAX_COLUMN))


@dataclass(frozen=True, order=True)
class LabelName:
    name: str

    def __str__(self) -> str:
        return self.name


CellOrLabel = Union[CellReference, CellRange, LabelName]


# ── Parsing ──────────────────────────────────────────────────────────────


def is_cell_reference(text: str) -> bool:
    match = _CELL.match(text)
    if match is None:
        return False
    try:
        _column_index(match.group(1))
        _row_index(match.group(2))
    except (InvalidSelectionError, ValueError):
        return False
    return True


def is_label_name(text: str) -> bool:
    return (
        bool(_LABEL.match(text))
        and not is_cell_reference(text)
        and text.upper() not in _RESERVED_LABELS
    )


def parse_cell(text: str) -> CellReference:
    match = _CELL.match(text.strip())
    if match is None:
        raise InvalidSelectionError(f"Invalid cell reference {text!r}")
    try:
        column = _column_index(match.group(1))
    except ValueError as e:
        raise InvalidSelectionError(f"Invalid cell reference {text!r}", cause=e) from e
    return CellReference(row=_row_index(match.group(2)), column=column)


def parse_cell_range(text: str) -> CellRange:
    """Parse ``"A1:B2"`` or a lone ``"A1"`` (a one cell range)."""
    begin, sep, end = text.partition(":")
    first = parse_cell(begin)
    return CellRange(first, parse_cell(end) if sep else first)


def parse_column(text: str) -> ColumnReference:
    match = _COLUMN.match(text.strip())
    if match is None:
        raise InvalidSelectionError(f"Invalid column {text!r}")
    try:
        return ColumnReference(_column_index(match.group(1)))
    except ValueError as e:
        raise InvalidSelectionError(f"Invalid column {text!r}", cause=e) from e


def parse_column_range(text: str) -> ColumnRange:
    begin, sep, end = text.partition(":")
    first = parse_column(begin)
    return ColumnRange(first, parse_column(end) if sep else first)


def parse_row(text: str) -> RowReference:
    match = _ROW.match(text.strip())
    if match is None:
        raise InvalidSelectionError(f"Invalid row {text!r}")
    return RowReference(_row_index(match.group(1)))


def parse_row_range(text: str) -> RowRange:
    begin, sep, end = text.partition(":")
    first = parse_row(begin)
    return RowRange(first, parse_row(end) if sep else first)


def parse_label(text: str) -> LabelName:
    if not is_label_name(text):
        raise InvalidSelectionError(f"Invalid label {text!r}")
    return LabelName(text)


def parse_cell_or_label(text: str) -> CellOrLabel:
    """Parse a cell, a cell range or a label name, in that order."""
    if ":" in text:
        return parse_cell_range(text)
    if is_cell_reference(text):
        return parse_cell(text)
    return parse_label(text)
