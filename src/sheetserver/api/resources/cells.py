"""
Cell resources of one spreadsheet: ``/api/spreadsheet/<id>/cell/<selection>[/<relation>]``.

A selection is ``*``, a cell (``B2``), a range (``A1:C3``) or a label,
which is resolved through the spreadsheet's label store.

Relations:
    self                           GET load, POST save, PATCH merge, DELETE
    <evaluation>                   GET load with that evaluation mode
    fill                           POST repeat the body cells over the selection
    find                           GET cells matching ``query``, at most ``max``
    labels                         GET labels naming the selection
    references                     GET cells whose formulas reference it
    sort                           GET reorder by the ``comparators`` plan, e.g. ``A=text;B=number DOWN``
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sheetserver.core.errors import BadRequestError, InvalidSelectionError
from sheetserver.core.model import Cell, Delta
from sheetserver.core.references import (
    ALL_CELLS,
    CellRange,
    CellReference,
    LabelName,
    parse_cell,
    parse_cell_or_label,
    parse_cell_range,
)
from sheetserver.engine.engine import Evaluation
from sheetserver.hateos.mapping import SELF, ResourceHandler, ResourceMapping
from sheetserver.hateos.parameters import int_parameter
from sheetserver.hateos.selection import WILDCARD, Selection


def parse_cell_selection(text: str, context: Any) -> Selection:
    if text == "":
        return Selection.none()
    if text == WILDCARD:
        return Selection.all()
    target = parse_cell_or_label(text)
    if isinstance(target, LabelName):
        target = context.repository.labels.resolve(target)
    if isinstance(target, CellReference):
        return Selection.one(target)
    return Selection.range(target)


def _cells(delta: Delta | None) -> dict[CellReference, Cell]:
    if delta is None:
        raise BadRequestError("Missing delta")
    return {parse_cell(key): cell for key, cell in delta.cells.items()}


def _bounds(references: Mapping[CellReference, Cell]) -> CellRange:
    rows = [ref.row for ref in references]
    columns = [ref.column for ref in references]
    return CellRange(
        CellReference(row=min(rows), column=min(columns)),
        CellReference(row=max(rows), column=max(columns)),
    )


class CellRangeHandler(ResourceHandler):
    """Adapts one and all selections to :meth:`handle_range`."""

    def handle_one(self, id, resource, parameters, path, context):
        return self.handle_range(id.to_range(), resource, parameters, path, context)

    def handle_all(self, resource, parameters, path, context):
        return self.handle_range(ALL_CELLS, resource, parameters, path, context)


class LoadCellHandler(CellRangeHandler):
    def __init__(self, evaluation: Evaluation):
        self.evaluation = evaluation

    def handle_range(self, range, resource, parameters, path, context):
        return context.engine.load_cells(range, self.evaluation)


class SaveCellHandler(CellRangeHandler):
    """Saves the body cells, every one of which must lie inside the selection."""

    def handle_range(self, range, resource, parameters, path, context):
        cells = _cells(resource)
        outside = sorted(ref for ref in cells if ref not in range)
        if outside:
            raise InvalidSelectionError(f"Cells {', '.join(map(str, outside))} are outside {range}")
        return context.engine.save_cells(cells, context.user)


class DeleteCellHandler(CellRangeHandler):
    def handle_range(self, range, resource, parameters, path, context):
        return context.engine.delete_cells(range, context.user)


class PatchCellHandler(CellRangeHandler):
    def handle_range(self, range, resource, parameters, path, context):
        return context.engine.patch_cells(range, resource, context.user)


class FillCellHandler(CellRangeHandler):
    """Fill the selection from the body cells.

    The ``from`` parameter names the source range; it defaults to the
    bounds of the body cells.  An empty body clears the selection.
    """

    def handle_all(self, resource, parameters, path, context):
        raise InvalidSelectionError("Fill needs a bounded cell range")

    def handle_range(self, range, resource, parameters, path, context):
        cells = _cells(resource)
        source_text = parameters.get("from")
        if source_text:
            source = parse_cell_range(source_text)
        elif cells:
            source = _bounds(cells)
        else:
            source = range
        return context.engine.fill_cells(cells, source, range, context.user)


class FindCellHandler(CellRangeHandler):
    def handle_range(self, range, resource, parameters, path, context):
        return context.engine.find_cells(
            range,
            parameters.get("query", ""),
            int_parameter(parameters, "max", minimum=0),
        )


class SortCellHandler(CellRangeHandler):
    def handle_range(self, range, resource, parameters, path, context):
        comparators = parameters.get("comparators")
        if not comparators:
            raise BadRequestError("Missing comparators")
        return context.engine.sort_cells(range, comparators, context.user)


class LabelsCellHandler(CellRangeHandler):
    def handle_range(self, range, resource, parameters, path, context):
        return context.engine.find_labels(range)


class ReferencesCellHandler(CellRangeHandler):
    def handle_range(self, range, resource, parameters, path, context):
        return context.engine.find_references(range)


def cell_mapping() -> ResourceMapping:
    mapping = (
        ResourceMapping(
            name="cell",
            selection_parser=parse_cell_selection,
            resource_type=Delta,
            collection_type="SpreadsheetDelta",
        )
        .set_handler(SELF, "GET", LoadCellHandler(Evaluation.COMPUTE_IF_NECESSARY))
        .set_handler(SELF, "POST", SaveCellHandler())
        .set_handler(SELF, "PATCH", PatchCellHandler())
        .set_handler(SELF, "DELETE", DeleteCellHandler())
        .set_handler("fill", "POST", FillCellHandler())
        .set_handler("find", "GET", FindCellHandler())
        .set_handler("labels", "GET", LabelsCellHandler())
        .set_handler("references", "GET", ReferencesCellHandler())
        .set_handler("sort", "GET", SortCellHandler())
    )
    for evaluation in Evaluation:
        mapping = mapping.set_handler(evaluation.value, "GET", LoadCellHandler(evaluation))
    return mapping
