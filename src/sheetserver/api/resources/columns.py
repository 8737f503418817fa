"""
Column and row resources of one spreadsheet.

``/api/spreadsheet/<id>/column/<A|A:C>[/<relation>]`` and the same for
``row`` with ``1`` / ``1:3``.  ``clear``, ``insert-after`` and
``insert-before`` are POST relations; ``insert-after`` and ``insert-before``
take an optional ``count`` (default 1).
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from sheetserver.core.model import Delta
from sheetserver.core.references import (
    ColumnRange,
    RowRange,
    parse_column,
    parse_column_range,
    parse_row,
    parse_row_range,
)
from sheetserver.hateos.mapping import SELF, ResourceHandler, ResourceMapping
from sheetserver.hateos.parameters import int_parameter
from sheetserver.hateos.selection import selection_parser


@dataclass(frozen=True)
class Axis:
    """Binds the column or row flavour of each engine operation."""

    name: str
    range_type: type
    parse_one: Callable[[str], Any]
    parse_range: Callable[[str], Any]

    def as_range(self, reference: Any) -> Any:
        return self.range_type(reference, reference)

    def engine_call(self, context: Any, operation: str) -> Callable[..., Delta]:
        return getattr(context.engine, f"{operation}_{self.name}s")


COLUMN = Axis("column", ColumnRange, parse_column, parse_column_range)
ROW = Axis("row", RowRange, parse_row, parse_row_range)


class AxisHandler(ResourceHandler):
    """Adapts a one selection to :meth:`handle_range`."""

    def __init__(self, axis: Axis):
        self.axis = axis

    def handle_one(self, id, resource, parameters, path, context):
        return self.handle_range(self.axis.as_range(id), resource, parameters, path, context)


class ClearAxisHandler(AxisHandler):
    def handle_range(self, range, resource, parameters, path, context):
        return self.axis.engine_call(context, "clear")(range, context.user)


class DeleteAxisHandler(AxisHandler):
    def handle_range(self, range, resource, parameters, path, context):
        return self.axis.engine_call(context, "delete")(range, context.user)


class PatchAxisHandler(AxisHandler):
    def handle_range(self, range, resource, parameters, path, context):
        return self.axis.engine_call(context, "patch")(range, resource, context.user)


class InsertAxisHandler(AxisHandler):
    """Insert ``count`` columns or rows before or after the selection."""

    def __init__(self, axis: Axis, after: bool):
        super().__init__(axis)
        self.after = after

    def handle_range(self, range, resource, parameters, path, context):
        count = int_parameter(parameters, "count", 1, minimum=1)
        before = range.end.add(1) if self.after else range.begin
        return self.axis.engine_call(context, "insert")(before, count, context.user)


def axis_mapping(axis: Axis) -> ResourceMapping:
    return (
        ResourceMapping(
            name=axis.name,
            selection_parser=selection_parser(axis.parse_one, range=axis.parse_range, wildcard=False),
            resource_type=Delta,
            collection_type="SpreadsheetDelta",
        )
        .set_handler(SELF, "DELETE", DeleteAxisHandler(axis))
        .set_handler(SELF, "PATCH", PatchAxisHandler(axis))
        .set_handler("clear", "POST", ClearAxisHandler(axis))
        .set_handler("insert-after", "POST", InsertAxisHandler(axis, after=True))
        .set_handler("insert-before", "POST", InsertAxisHandler(axis, after=False))
    )


def column_mapping() -> ResourceMapping:
    return axis_mapping(COLUMN)


def row_mapping() -> ResourceMapping:
    return axis_mapping(ROW)
