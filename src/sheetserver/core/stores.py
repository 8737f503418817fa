"""
In-memory stores.

Every store guards its own state with a ``threading.RLock``; callers never
lock.  A :class:`StoreRepository` bundles the stores of one spreadsheet,
except the :class:`MetadataStore` (and :class:`PluginStore`) which are
shared by the whole server.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, TypeVar

from sheetserver.core.errors import (
    BadRequestError,
    InvalidSelectionError,
    MissingStoreError,
    UnknownLabelError,
)
from sheetserver.core.ids import SpreadsheetId
from sheetserver.core.model import Cell, Column, LabelMapping, Plugin, Row, SpreadsheetMetadata
from sheetserver.core.references import (
    CellRange,
    CellReference,
    LabelName,
    parse_cell_or_label,
)

T = TypeVar("T")


def _page(items: list[T], offset: int, count: int | None) -> list[T]:
    if offset < 0 or (count is not None and count < 0):
        raise ValueError("offset and count must not be negative")
    return items[offset:] if count is None else items[offset : offset + count]


# ── Cells ────────────────────────────────────────────────────────────────


class CellStore:
    """Cells keyed by reference."""

    def __init__(self) -> None:
        self._cells: dict[CellReference, Cell] = {}
        self._lock = threading.RLock()

    def load(self, reference: CellReference) -> Cell | None:
        with self._lock:
            return self._cells.get(reference)

    def save(self, reference: CellReference, cell: Cell) -> None:
        with self._lock:
            self._cells[reference] = cell

    def delete(self, reference: CellReference) -> bool:
        with self._lock:
            return self._cells.pop(reference, None) is not None

    def between(self, cell_range: CellRange) -> dict[CellReference, Cell]:
        """Cells inside *cell_range*, in row-major order."""
        with self._lock:
            found = {ref: cell for ref, cell in self._cells.items() if ref in cell_range}
        return dict(sorted(found.items()))

    def all(self) -> dict[CellReference, Cell]:
        with self._lock:
            return dict(sorted(self._cells.items()))

    def replace_all(self, cells: dict[CellReference, Cell]) -> None:
        with self._lock:
            self._cells = dict(cells)

    def bounds(self) -> tuple[int, int]:
        """(max column, max row) over stored cells, ``(0, 0)`` when empty."""
        with self._lock:
            if not self._cells:
                return 0, 0
            return (
                max(ref.column for ref in self._cells),
                max(ref.row for ref in self._cells),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._cells)


class AxisStore(Generic[T]):
    """Column or row properties (``hidden``) and sizes, keyed by 1-based index."""

    def __init__(self) -> None:
        self._items: dict[int, T] = {}
        self._sizes: dict[int, float] = {}
        self._lock = threading.RLock()

    def load(self, index: int) -> T | None:
        with self._lock:
            return self._items.get(index)

    def save(self, index: int, item: T) -> None:
        with self._lock:
            self._items[index] = item

    def delete(self, index: int) -> None:
        with self._lock:
            self._items.pop(index, None)
            self._sizes.pop(index, None)

    def size(self, index: int) -> float | None:
        with self._lock:
            return self._sizes.get(index)

    def set_size(self, index: int, size: float) -> None:
        if size <= 0:
            raise ValueError(f"Size must be positive, got {size}")
        with self._lock:
            self._sizes[index] = size

    def shift(self, start: int, delta: int) -> None:
        """Move every entry at ``index >= start`` by *delta*."""
        with self._lock:
            self._items = {(i + delta if i >= start else i): v for i, v in self._items.items()}
            self._sizes = {(i + delta if i >= start else i): v for i, v in self._sizes.items()}


class ColumnStore(AxisStore[Column]):
    pass


class RowStore(AxisStore[Row]):
    pass


# ── Labels ───────────────────────────────────────────────────────────────


class LabelStore:
    """Label mappings of one spreadsheet, resolved transitively."""

    def __init__(self) -> None:
        self._mappings: dict[str, LabelMapping] = {}
        self._lock = threading.RLock()

    def load(self, name: str) -> LabelMapping | None:
        with self._lock:
            return self._mappings.get(name)

    def save(self, mapping: LabelMapping) -> LabelMapping:
        """Store *mapping*, rejecting any that would close a label cycle.

        A mapping to a label that does not exist yet is accepted.
        """
        target = parse_cell_or_label(mapping.reference)
        if target == LabelName(mapping.label):
            raise InvalidSelectionError(f"Label {mapping.label!r} cannot reference itself")
        with self._lock:
            previous = self._mappings.get(mapping.label)
            self._mappings[mapping.label] = mapping
            try:
                self.resolve(mapping.label)
            except UnknownLabelError:
                pass
            except InvalidSelectionError:
                if previous is None:
                    del self._mappings[mapping.label]
                else:
                    self._mappings[mapping.label] = previous
                raise
        return mapping

    def delete(self, name: str) -> bool:
        with self._lock:
            return self._mappings.pop(name, None) is not None

    def all(self, offset: int = 0, count: int | None = None) -> list[LabelMapping]:
        with self._lock:
            mappings = sorted(self._mappings.values(), key=lambda m: m.label)
        return _page(mappings, offset, count)

    def find_similar(self, text: str, count: int) -> list[LabelMapping]:
        """At most *count* mappings whose label starts with *text*, ignoring case."""
        prefix = text.casefold()
        return [m for m in self.all() if m.label.casefold().startswith(prefix)][:count]

    def resolve(self, label: LabelName | str) -> CellReference | CellRange:
        """Follow label chains to a cell or a range.

        Raises :class:`UnknownLabelError` for any missing link and
        :class:`InvalidSelectionError` for a cycle.
        """
        name = str(label)
        seen: list[str] = []
        with self._lock:
            while True:
                if name in seen:
                    raise InvalidSelectionError(f"Label cycle: {' -> '.join(seen + [name])}")
                seen.append(name)
                mapping = self._mappings.get(name)
                if mapping is None:
                    raise UnknownLabelError(name)
                target = parse_cell_or_label(mapping.reference)
                if not isinstance(target, LabelName):
                    return target
                name = target.name

    def resolve_cell(self, label: LabelName | str) -> CellReference:
        target = self.resolve(label)
        if isinstance(target, CellRange):
            if not target.is_single_cell:
                raise InvalidSelectionError(f"Label {label} refers to range {target}, not a cell")
            return target.begin
        return target

    def labels_for(self, cell_range: CellRange) -> list[LabelMapping]:
        """Labels whose resolved target overlaps *cell_range*."""
        found = []
        for mapping in self.all():
            try:
                target = self.resolve(mapping.label)
            except (UnknownLabelError, InvalidSelectionError):
                continue
            as_range = target if isinstance(target, CellRange) else target.to_range()
            if as_range.overlaps(cell_range):
                found.append(mapping)
        return found


# ── References ───────────────────────────────────────────────────────────


class RangeStore:
    """Which cells reference which ranges and labels.

    A plain cell reference in a formula is recorded as a one cell range.
    """

    def __init__(self) -> None:
        self._ranges: dict[CellReference, frozenset[CellRange]] = {}
        self._labels: dict[CellReference, frozenset[str]] = {}
        self._lock = threading.RLock()

    def save_references(
        self,
        cell: CellReference,
        ranges: Iterable[CellRange],
        labels: Iterable[str] = (),
    ) -> None:
        ranges = frozenset(ranges)
        labels = frozenset(labels)
        with self._lock:
            if ranges:
                self._ranges[cell] = ranges
            else:
                self._ranges.pop(cell, None)
            if labels:
                self._labels[cell] = labels
            else:
                self._labels.pop(cell, None)

    def delete(self, cell: CellReference) -> None:
        self.save_references(cell, ())

    def references_of(self, cell: CellReference) -> frozenset[CellRange]:
        with self._lock:
            return self._ranges.get(cell, frozenset())

    def referencing(self, target: CellRange) -> set[CellReference]:
        """Cells whose formulas reference a range overlapping *target*."""
        with self._lock:
            return {
                cell
                for cell, ranges in self._ranges.items()
                if any(r.overlaps(target) for r in ranges)
            }

    def referencing_label(self, label: str) -> set[CellReference]:
        with self._lock:
            return {cell for cell, labels in self._labels.items() if label in labels}

    def clear(self) -> None:
        with self._lock:
            self._ranges.clear()
            self._labels.clear()


# ── Users and groups ─────────────────────────────────────────────────────


class UserStore:
    """Users that have modified a spreadsheet, with their last edit time."""

    def __init__(self) -> None:
        self._users: dict[str, datetime] = {}
        self._lock = threading.RLock()

    def touch(self, user: str, when: datetime) -> None:
        with self._lock:
            self._users[user] = when

    def load(self, user: str) -> datetime | None:
        with self._lock:
            return self._users.get(user)

    def all(self) -> list[str]:
        with self._lock:
            return sorted(self._users)


class GroupStore:
    """Named groups of users."""

    def __init__(self) -> None:
        self._groups: dict[str, frozenset[str]] = {}
        self._lock = threading.RLock()

    def save(self, name: str, users: Iterable[str]) -> None:
        with self._lock:
            self._groups[name] = frozenset(users)

    def load(self, name: str) -> frozenset[str]:
        with self._lock:
            try:
                return self._groups[name]
            except KeyError:
                raise MissingStoreError(f"Group not found: {name}") from None

    def delete(self, name: str) -> bool:
        with self._lock:
            return self._groups.pop(name, None) is not None

    def groups_for(self, user: str) -> list[str]:
        with self._lock:
            return sorted(name for name, users in self._groups.items() if user in users)


# ── Shared stores ────────────────────────────────────────────────────────


class MetadataStore:
    """Metadata of every spreadsheet on the server; allocates ids."""

    def __init__(self) -> None:
        self._metadata: dict[SpreadsheetId, SpreadsheetMetadata] = {}
        self._next_id = 1
        self._lock = threading.RLock()

    def create(self, metadata: SpreadsheetMetadata) -> SpreadsheetMetadata:
        """Store *metadata* under a freshly allocated id."""
        with self._lock:
            spreadsheet_id = SpreadsheetId(self._next_id)
            self._next_id += 1
            created = metadata.model_copy(update={"spreadsheet_id": spreadsheet_id})
            self._metadata[spreadsheet_id] = created
            return created

    def save(self, metadata: SpreadsheetMetadata) -> SpreadsheetMetadata:
        if metadata.spreadsheet_id is None:
            return self.create(metadata)
        with self._lock:
            self._metadata[metadata.spreadsheet_id] = metadata
            self._next_id = max(self._next_id, metadata.spreadsheet_id.value + 1)
            return metadata

    def load(self, spreadsheet_id: SpreadsheetId) -> SpreadsheetMetadata:
        with self._lock:
            try:
                return self._metadata[spreadsheet_id]
            except KeyError:
                raise MissingStoreError(f"Spreadsheet not found: {spreadsheet_id}") from None

    def delete(self, spreadsheet_id: SpreadsheetId) -> None:
        with self._lock:
            if self._metadata.pop(spreadsheet_id, None) is None:
                raise MissingStoreError(f"Spreadsheet not found: {spreadsheet_id}")

    def all(self, offset: int = 0, count: int | None = None) -> list[SpreadsheetMetadata]:
        with self._lock:
            items = [self._metadata[k] for k in sorted(self._metadata)]
        return _page(items, offset, count)

    def find_by_name(
        self, name: str, offset: int = 0, count: int | None = None
    ) -> list[SpreadsheetMetadata]:
        """Case-insensitive substring match on ``spreadsheetName``."""
        needle = name.lower()
        matches = [m for m in self.all() if needle in (m.spreadsheet_name or "").lower()]
        return _page(matches, offset, count)

    def __contains__(self, spreadsheet_id: SpreadsheetId) -> bool:
        with self._lock:
            return spreadsheet_id in self._metadata


class PluginStore:
    """Plugins uploaded to the server."""

    def __init__(self) -> None:
        self._plugins: dict[str, Plugin] = {}
        self._lock = threading.RLock()

    def load(self, name: str) -> Plugin | None:
        with self._lock:
            return self._plugins.get(name)

    def save(self, plugin: Plugin) -> Plugin:
        if not plugin.filename.endswith(".jar") and not plugin.filename.endswith(".zip"):
            raise BadRequestError(f"Plugin archive must be a .jar or .zip: {plugin.filename}")
        with self._lock:
            self._plugins[plugin.name] = plugin
        return plugin

    def delete(self, name: str) -> bool:
        with self._lock:
            return self._plugins.pop(name, None) is not None

    def all(self, offset: int = 0, count: int | None = None) -> list[Plugin]:
        with self._lock:
            plugins = [self._plugins[k] for k in sorted(self._plugins)]
        return _page(plugins, offset, count)


# ── Repository ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class StoreRepository:
    """Every store of one spreadsheet."""

    metadata: MetadataStore
    cells: CellStore = field(default_factory=CellStore)
    columns: ColumnStore = field(default_factory=ColumnStore)
    rows: RowStore = field(default_factory=RowStore)
    labels: LabelStore = field(default_factory=LabelStore)
    ranges: RangeStore = field(default_factory=RangeStore)
    users: UserStore = field(default_factory=UserStore)
    groups: GroupStore = field(default_factory=GroupStore)
