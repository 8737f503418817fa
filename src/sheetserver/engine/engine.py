"""
In-memory spreadsheet engine for one spreadsheet.

Operations read and write the tenant's :class:`StoreRepository` and answer
a :class:`Delta` describing what changed.  Saving a cell evaluates it and
recomputes every cell that (transitively) references it, directly, through
a range or through a label.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from sheetserver.core.errors import InvalidSelectionError, UnknownLabelError
from sheetserver.core.ids import SpreadsheetId
from sheetserver.core.logging import get_logger
from sheetserver.core.model import (
    AuditInfo,
    Cell,
    Column,
    Delta,
    ExpressionReferenceSimilarities,
    Formula,
    LabelMapping,
    Row,
)
from sheetserver.core.providers import SpreadsheetProvider
from sheetserver.core.references import (
    MAX_COLUMN,
    MAX_ROW,
    CellRange,
    CellReference,
    ColumnRange,
    ColumnReference,
    RowRange,
    RowReference,
    is_cell_reference,
    is_label_name,
    parse_cell,
    parse_cell_or_label,
    parse_column,
    parse_label,
    parse_row,
)
from sheetserver.core.stores import AxisStore, StoreRepository
from sheetserver.engine.formula import (
    ERROR_CYCLE,
    ERROR_REF,
    Evaluator,
    FormulaError,
    literal_value,
    parse_expression,
    references,
    shift_axis,
    translate,
)
from sheetserver.engine.sort import parse_sort_plan, sorted_slices

logger = get_logger(__name__)


class Evaluation(str, Enum):
    """How a cell load treats stored values."""

    CLEAR_VALUE_ERROR_SKIP_EVALUATE = "clear-value-error-skip-evaluate"
    SKIP_EVALUATE = "skip-evaluate"
    FORCE_RECOMPUTE = "force-recompute"
    COMPUTE_IF_NECESSARY = "compute-if-necessary"


class _Recalculation:
    """Memo shared by the cells computed within one engine operation."""

    def __init__(self, force: bool):
        self.force = force
        self.computed: dict[CellReference, Cell] = {}
        self.visiting: set[CellReference] = set()


class SpreadsheetEngine:
    def __init__(
        self,
        spreadsheet_id: SpreadsheetId,
        repository: StoreRepository,
        provider: SpreadsheetProvider,
        clock: Callable[[], datetime] | None = None,
    ):
        self.spreadsheet_id = spreadsheet_id
        self.repository = repository
        self.provider = provider
        self._clock = clock or (lambda: datetime.now(UTC))

    # ── Evaluation ───────────────────────────────────────────────────────

    def _evaluate_text(self, text: str, recalculation: _Recalculation) -> Any:
        if not text.startswith("="):
            return literal_value(text)
        evaluator = Evaluator(
            value_of=lambda ref: self._value_of(ref, recalculation),
            resolve_label=self.repository.labels.resolve,
            functions=self.provider.functions,
        )
        try:
            node = parse_expression(text[1:])
        except InvalidSelectionError as e:
            raise FormulaError(ERROR_REF, str(e)) from e
        return evaluator.evaluate(node)

    def _value_of(self, reference: CellReference, recalculation: _Recalculation) -> Any:
        if reference in recalculation.visiting:
            raise FormulaError(ERROR_CYCLE, f"Cycle through {reference}")
        cell = self.repository.cells.load(reference)
        if cell is None:
            return None
        computed = self._compute(reference, cell, recalculation)
        if computed.formula.error is not None:
            raise FormulaError(computed.formula.error)
        return computed.formula.value

    def _compute(self, reference: CellReference, cell: Cell, recalculation: _Recalculation) -> Cell:
        if reference in recalculation.computed:
            return recalculation.computed[reference]
        formula = cell.formula
        up_to_date = formula.value is not None or formula.error is not None or not formula.text
        if up_to_date and not recalculation.force:
            return cell

        recalculation.visiting.add(reference)
        try:
            evaluated = Formula(text=formula.text, value=self._evaluate_text(formula.text, recalculation))
        except FormulaError as e:
            evaluated = Formula(text=formula.text, error=e.code)
        finally:
            recalculation.visiting.discard(reference)

        computed = cell.model_copy(update={"formula": evaluated})
        recalculation.computed[reference] = computed
        self.repository.cells.save(reference, computed)
        return computed

    def _dependents(self, changed: set[CellReference], labels: set[str] = frozenset()) -> list[CellReference]:
        """Cells referencing *changed* cells or *labels*, transitively, excluding *changed*."""
        ranges = self.repository.ranges
        found: set[CellReference] = set()
        pending_cells = set(changed)
        pending_labels = set(labels)
        while pending_cells or pending_labels:
            referencing: set[CellReference] = set()
            for cell in pending_cells:
                referencing |= ranges.referencing(cell.to_range())
                for mapping in self.repository.labels.labels_for(cell.to_range()):
                    referencing |= ranges.referencing_label(mapping.label)
            for label in pending_labels:
                referencing |= ranges.referencing_label(label)
            pending_cells = referencing - found - changed
            pending_labels = set()
            found |= pending_cells
        return sorted(found)

    def _recompute(self, cells: list[CellReference], recalculation: _Recalculation) -> dict[str, Cell]:
        updated = {}
        for reference in cells:
            cell = self.repository.cells.load(reference)
            if cell is not None:
                updated[str(reference)] = self._compute(reference, cell, recalculation)
        return updated

    def _record_references(self, reference: CellReference, cell: Cell) -> None:
        ranges, labels = references(cell.formula.text)
        self.repository.ranges.save_references(reference, ranges, labels)

    def _touch(self, user: str | None) -> None:
        """Stamp the spreadsheet's audit info with this modification."""
        now = self._clock()
        metadata_store = self.repository.metadata
        metadata = metadata_store.load(self.spreadsheet_id)
        audit = metadata.audit_info or AuditInfo(created_by=user, created_timestamp=now, modified_timestamp=now)
        metadata_store.save(
            metadata.model_copy(
                update={"audit_info": audit.model_copy(update={"modified_by": user, "modified_timestamp": now})}
            )
        )
        if user:
            self.repository.users.touch(user, now)

    # ── Cells ────────────────────────────────────────────────────────────

    def load_cells(self, cell_range: CellRange, evaluation: Evaluation) -> Delta:
        stored = self.repository.cells.between(cell_range)
        if evaluation is Evaluation.SKIP_EVALUATE:
            cells = stored
        elif evaluation is Evaluation.CLEAR_VALUE_ERROR_SKIP_EVALUATE:
            cells = {ref: cell.model_copy(update={"formula": cell.formula.cleared()}) for ref, cell in stored.items()}
        else:
            recalculation = _Recalculation(force=evaluation is Evaluation.FORCE_RECOMPUTE)
            cells = {ref: self._compute(ref, cell, recalculation) for ref, cell in stored.items()}
        return Delta(
            cells={str(ref): cell for ref, cell in cells.items()},
            labels=self.repository.labels.labels_for(cell_range),
        )

    def save_cells(self, cells: Mapping[CellReference, Cell], user: str | None = None) -> Delta:
        for reference, cell in cells.items():
            cleared = cell.model_copy(update={"formula": cell.formula.cleared()})
            self.repository.cells.save(reference, cleared)
            self._record_references(reference, cleared)

        recalculation = _Recalculation(force=True)
        saved = self._recompute(sorted(cells), recalculation)
        saved.update(self._recompute(self._dependents(set(cells)), recalculation))
        self._touch(user)
        logger.debug("cells.saved", spreadsheet_id=str(self.spreadsheet_id), count=len(cells))
        return Delta(cells=saved)

    def delete_cells(self, cell_range: CellRange, user: str | None = None) -> Delta:
        deleted = []
        for reference in self.repository.cells.between(cell_range):
            self.repository.cells.delete(reference)
            self.repository.ranges.delete(reference)
            deleted.append(reference)
        recalculation = _Recalculation(force=True)
        updated = self._recompute(self._dependents(set(deleted)), recalculation)
        self._touch(user)
        return Delta(cells=updated, deleted_cells=[str(ref) for ref in deleted])

    def patch_cells(self, cell_range: CellRange, patch: Delta, user: str | None = None) -> Delta:
        """Merge *patch* into the stored cells of *cell_range*.

        Only fields present in each patch cell replace stored ones; a patched
        formula always drops its previous value.
        """
        merged: dict[CellReference, Cell] = {}
        for key, patch_cell in patch.cells.items():
            reference = parse_cell(key)
            if reference not in cell_range:
                raise InvalidSelectionError(f"Cell {reference} is outside {cell_range}")
            stored = self.repository.cells.load(reference) or Cell()
            update = {name: getattr(patch_cell, name) for name in patch_cell.model_fields_set}
            if "style" in update:
                update["style"] = {**stored.style, **update["style"]}
            merged[reference] = stored.model_copy(update=update)

        for key, width in patch.column_widths.items():
            self.repository.columns.set_size(parse_column(key).index, width)
        for key, height in patch.row_heights.items():
            self.repository.rows.set_size(parse_row(key).index, height)

        delta = self.save_cells(merged, user) if merged else Delta()
        return delta.model_copy(
            update={"column_widths": dict(patch.column_widths), "row_heights": dict(patch.row_heights)}
        )

    def fill_cells(
        self,
        cells: Mapping[CellReference, Cell],
        source: CellRange,
        target: CellRange,
        user: str | None = None,
    ) -> Delta:
        """Repeat the *source* pattern of *cells* over *target*, translating references."""
        for reference in cells:
            if reference not in source:
                raise InvalidSelectionError(f"Fill cell {reference} is outside {source}")

        filled: dict[CellReference, Cell] = {}
        deleted: list[CellReference] = []
        for reference in target:
            columns = (reference.column - target.begin.column) % source.width
            rows = (reference.row - target.begin.row) % source.height
            origin = source.begin.add(columns=columns, rows=rows)
            cell = cells.get(origin)
            if cell is None:
                if self.repository.cells.delete(reference):
                    self.repository.ranges.delete(reference)
                    deleted.append(reference)
                continue
            text = translate(
                cell.formula.text,
                reference.column - origin.column,
                reference.row - origin.row,
            )
            filled[reference] = cell.model_copy(update={"formula": Formula(text=text)})

        delta = self.save_cells(filled, user) if filled else Delta()
        return delta.model_copy(update={"deleted_cells": [str(ref) for ref in deleted]})

    def find_cells(self, cell_range: CellRange, query: str = "", max_count: int | None = None) -> Delta:
        """Cells whose formula text or value contains *query*, ignoring case."""
        needle = query.lower()
        recalculation = _Recalculation(force=False)
        matched: dict[str, Cell] = {}
        for reference, cell in self.repository.cells.between(cell_range).items():
            if max_count is not None and len(matched) >= max_count:
                break
            computed = self._compute(reference, cell, recalculation)
            formula = computed.formula
            haystack = f"{formula.text}\n{'' if formula.value is None else formula.value}".lower()
            if needle in haystack:
                matched[str(reference)] = computed
        return Delta(cells=matched, matched_cells=list(matched))

    def sort_cells(self, cell_range: CellRange, comparators: str, user: str | None = None) -> Delta:
        """Reorder the rows (or columns) of *cell_range* by a sort plan.

        Rows or columns holding no cells end up after the others; formulas
        that move are translated like a fill.
        """
        plan = parse_sort_plan(comparators, self.provider.names("comparator"))
        axis = plan[0].axis
        bounds = cell_range.columns if axis == "column" else cell_range.rows
        for key in plan:
            if not bounds.begin.index <= key.index <= bounds.end.index:
                raise InvalidSelectionError(f"Sort {axis} {key.index} is outside {cell_range}")

        stored = self.repository.cells.between(cell_range)
        recalculation = _Recalculation(force=False)

        def slice_of(reference: CellReference) -> int:
            return reference.row if axis == "column" else reference.column

        def value_of(slice_index: int, key_index: int) -> Any:
            reference = (
                CellReference(row=slice_index, column=key_index)
                if axis == "column"
                else CellReference(row=key_index, column=slice_index)
            )
            cell = stored.get(reference)
            if cell is None:
                return None
            formula = self._compute(reference, cell, recalculation).formula
            return None if formula.error is not None else formula.value

        first = cell_range.begin.row if axis == "column" else cell_range.begin.column
        order = sorted_slices(sorted({slice_of(ref) for ref in stored}), plan, value_of)
        moves = {old: first + position for position, old in enumerate(order)}

        moved: dict[CellReference, Cell] = {}
        for reference, cell in stored.items():
            offset = moves[slice_of(reference)] - slice_of(reference)
            columns, rows = (0, offset) if axis == "column" else (offset, 0)
            text = translate(cell.formula.text, columns, rows)
            moved[reference.add(columns=columns, rows=rows)] = Cell(formula=Formula(text=text), style=cell.style)

        for reference in stored:
            self.repository.cells.delete(reference)
            self.repository.ranges.delete(reference)
        vacated = set(stored) - set(moved)
        delta = self.save_cells(moved, user) if moved else Delta()
        updated = self._recompute(self._dependents(vacated), _Recalculation(force=True))
        if not moved:
            self._touch(user)
        logger.debug("cells.sorted", spreadsheet_id=str(self.spreadsheet_id), range=str(cell_range), plan=comparators)
        return delta.model_copy(
            update={
                "cells": {**updated, **delta.cells},
                "deleted_cells": [str(ref) for ref in sorted(vacated)],
            }
        )

    def find_labels(self, cell_range: CellRange) -> Delta:
        return Delta(labels=self.repository.labels.labels_for(cell_range))

    def find_references(self, cell_range: CellRange) -> Delta:
        """Cells whose formulas reference *cell_range*, directly or through a label."""
        ranges = self.repository.ranges
        referencing = ranges.referencing(cell_range)
        for mapping in self.repository.labels.labels_for(cell_range):
            referencing |= ranges.referencing_label(mapping.label)
        cells = {
            str(ref): cell
            for ref in sorted(referencing)
            if (cell := self.repository.cells.load(ref)) is not None
        }
        return Delta(cells=cells)

    # ── Columns and rows ─────────────────────────────────────────────────

    @staticmethod
    def _band(axis: str, low: int, high: int) -> CellRange:
        if axis == "column":
            return CellRange(CellReference(row=1, column=low), CellReference(row=MAX_ROW, column=high))
        return CellRange(CellReference(row=low, column=1), CellReference(row=high, column=MAX_COLUMN))

    def _axis_store(self, axis: str) -> AxisStore:
        return self.repository.columns if axis == "column" else self.repository.rows

    def clear_columns(self, columns: ColumnRange, user: str | None = None) -> Delta:
        return self._clear("column", columns.begin.index, columns.end.index, user)

    def clear_rows(self, rows: RowRange, user: str | None = None) -> Delta:
        return self._clear("row", rows.begin.index, rows.end.index, user)

    def _clear(self, axis: str, low: int, high: int, user: str | None) -> Delta:
        delta = self.delete_cells(self._band(axis, low, high), user)
        store = self._axis_store(axis)
        for index in range(low, high + 1):
            store.delete(index)
        return delta

    def insert_columns(self, before: ColumnReference, count: int, user: str | None = None) -> Delta:
        return self._shift("column", before.index, count, user)

    def insert_rows(self, before: RowReference, count: int, user: str | None = None) -> Delta:
        return self._shift("row", before.index, count, user)

    def delete_columns(self, columns: ColumnRange, user: str | None = None) -> Delta:
        delta = self._shift("column", columns.begin.index, -columns.count, user)
        return delta.model_copy(update={"deleted_columns": [str(c) for c in columns]})

    def delete_rows(self, rows: RowRange, user: str | None = None) -> Delta:
        delta = self._shift("row", rows.begin.index, -rows.count, user)
        return delta.model_copy(update={"deleted_rows": [str(r) for r in rows]})

    def _shift(self, axis: str, at: int, delta: int, user: str | None) -> Delta:
        if delta == 0:
            raise InvalidSelectionError("Count must not be zero")
        before = self.repository.cells.all()
        removed_end = at - delta - 1 if delta < 0 else None

        after: dict[CellReference, Cell] = {}
        for reference, cell in before.items():
            index = reference.column if axis == "column" else reference.row
            if removed_end is not None and at <= index <= removed_end:
                continue
            moves = index > removed_end if removed_end is not None else index >= at
            if moves:
                reference = (
                    reference.add(columns=delta) if axis == "column" else reference.add(rows=delta)
                )
                if reference.column > MAX_COLUMN or reference.row > MAX_ROW:
                    raise InvalidSelectionError(f"Cells would move past the last {axis}")
            text = cell.formula.text
            if text.startswith("="):
                text = shift_axis(text, axis, at, delta)
            after[reference] = Cell(formula=Formula(text=text), style=cell.style)

        cells = self.repository.cells
        cells.replace_all(after)
        self.repository.ranges.clear()
        for reference, cell in after.items():
            self._record_references(reference, cell)

        for mapping in self.repository.labels.all():
            reference = shift_axis(mapping.reference, axis, at, delta)
            if ERROR_REF in reference:
                self.repository.labels.delete(mapping.label)
            elif reference != mapping.reference:
                self.repository.labels.save(mapping.model_copy(update={"reference": reference}))

        store = self._axis_store(axis)
        if removed_end is not None:
            for index in range(at, removed_end + 1):
                store.delete(index)
            store.shift(removed_end + 1, delta)
        else:
            store.shift(at, delta)

        recalculation = _Recalculation(force=True)
        changed = {}
        for reference in sorted(after):
            computed = self._compute(reference, cells.load(reference), recalculation)
            if before.get(reference) != computed:
                changed[str(reference)] = computed
        self._touch(user)
        logger.info("cells.shifted", spreadsheet_id=str(self.spreadsheet_id), axis=axis, at=at, delta=delta)
        return Delta(
            cells=changed,
            deleted_cells=[str(ref) for ref in sorted(set(before) - set(after))],
        )

    def patch_columns(self, columns: ColumnRange, patch: Delta, user: str | None = None) -> Delta:
        updated: dict[str, Column] = {}
        for key, column in patch.columns.items():
            reference = parse_column(key)
            if reference not in columns:
                raise InvalidSelectionError(f"Column {reference} is outside {columns}")
            self.repository.columns.save(reference.index, column)
            updated[str(reference)] = column
        widths = {}
        for key, width in patch.column_widths.items():
            reference = parse_column(key)
            if reference not in columns:
                raise InvalidSelectionError(f"Column {reference} is outside {columns}")
            self.repository.columns.set_size(reference.index, width)
            widths[str(reference)] = width
        self._touch(user)
        return Delta(columns=updated, column_widths=widths)

    def patch_rows(self, rows: RowRange, patch: Delta, user: str | None = None) -> Delta:
        updated: dict[str, Row] = {}
        for key, row in patch.rows.items():
            reference = parse_row(key)
            if reference not in rows:
                raise InvalidSelectionError(f"Row {reference} is outside {rows}")
            self.repository.rows.save(reference.index, row)
            updated[str(reference)] = row
        heights = {}
        for key, height in patch.row_heights.items():
            reference = parse_row(key)
            if reference not in rows:
                raise InvalidSelectionError(f"Row {reference} is outside {rows}")
            self.repository.rows.set_size(reference.index, height)
            heights[str(reference)] = height
        self._touch(user)
        return Delta(rows=updated, row_heights=heights)

    # ── Labels ───────────────────────────────────────────────────────────

    def load_label(self, name: str) -> Delta | None:
        mapping = self.repository.labels.load(str(parse_label(name)))
        return None if mapping is None else Delta(labels=[mapping])

    def load_labels(self, offset: int = 0, count: int | None = None) -> Delta:
        return Delta(labels=self.repository.labels.all(offset, count))

    def save_label(self, mapping: LabelMapping, user: str | None = None) -> Delta:
        parse_label(mapping.label)
        parse_cell_or_label(mapping.reference)
        self.repository.labels.save(mapping)
        recalculation = _Recalculation(force=True)
        updated = self._recompute(self._dependents(set(), {mapping.label}), recalculation)
        self._touch(user)
        return Delta(labels=[mapping], cells=updated)

    def find_similarities(self, text: str, count: int) -> ExpressionReferenceSimilarities:
        """Cell, existing labels or new label name that *text* could refer to."""
        labels = self.repository.labels.find_similar(text, count)
        return ExpressionReferenceSimilarities(
            cell_reference=str(parse_cell(text)) if is_cell_reference(text) else None,
            label_name=text if is_label_name(text) and not labels else None,
            labels=labels,
        )

    def delete_label(self, name: str, user: str | None = None) -> Delta:
        if not self.repository.labels.delete(name):
            raise UnknownLabelError(name)
        recalculation = _Recalculation(force=True)
        updated = self._recompute(self._dependents(set(), {name}), recalculation)
        self._touch(user)
        return Delta(deleted_labels=[name], cells=updated)
