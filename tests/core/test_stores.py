"""Tests for the in-memory stores."""

import threading
from datetime import UTC, datetime

import pytest

from sheetserver.core.errors import (
    BadRequestError,
    InvalidSelectionError,
    MissingStoreError,
    UnknownLabelError,
)
from sheetserver.core.ids import SpreadsheetId
from sheetserver.core.model import Cell, Column, Formula, LabelMapping, Plugin, SpreadsheetMetadata
from sheetserver.core.references import LabelName, parse_cell, parse_cell_range
from sheetserver.core.stores import (
    CellStore,
    ColumnStore,
    GroupStore,
    LabelStore,
    MetadataStore,
    PluginStore,
    RangeStore,
    StoreRepository,
    UserStore,
)


def _cell(text: str) -> Cell:
    return Cell(formula=Formula(text=text))


class TestCellStore:
    def test_save_load_delete(self):
        store = CellStore()
        store.save(parse_cell("A1"), _cell("1"))
        assert store.load(parse_cell("A1")).formula.text == "1"
        assert store.delete(parse_cell("A1"))
        assert not store.delete(parse_cell("A1"))
        assert store.load(parse_cell("A1")) is None

    def test_between_is_sorted_and_bounded(self):
        store = CellStore()
        for ref in ("C3", "A1", "B2"):
            store.save(parse_cell(ref), _cell(ref))
        found = store.between(parse_cell_range("A1:B2"))
        assert [str(ref) for ref in found] == ["A1", "B2"]

    def test_bounds(self):
        store = CellStore()
        assert store.bounds() == (0, 0)
        store.save(parse_cell("C5"), _cell("x"))
        assert store.bounds() == (3, 5)
        assert len(store) == 1


class TestAxisStore:
    def test_sizes(self):
        store = ColumnStore()
        store.set_size(2, 120.0)
        assert store.size(2) == 120.0
        with pytest.raises(ValueError):
            store.set_size(2, 0)

    def test_shift(self):
        store = ColumnStore()
        store.save(3, Column(hidden=True))
        store.shift(2, 1)
        assert store.load(3) is None
        assert store.load(4).hidden


class TestLabelStore:
    def test_resolve_direct_and_chained(self):
        labels = LabelStore()
        labels.save(LabelMapping(label="Total", reference="B5"))
        labels.save(LabelMapping(label="GrandTotal", reference="Total"))
        assert labels.resolve("GrandTotal") == parse_cell("B5")
        assert labels.resolve(LabelName("Total")) == parse_cell("B5")

    def test_unknown_label(self):
        with pytest.raises(UnknownLabelError):
            LabelStore().resolve("Missing")

    def test_mutual_cycle_rejected(self):
        labels = LabelStore()
        labels.save(LabelMapping(label="A", reference="B"))
        with pytest.raises(InvalidSelectionError, match="cycle"):
            labels.save(LabelMapping(label="B", reference="A"))
        assert labels.load("B") is None
        with pytest.raises(UnknownLabelError):
            labels.resolve("A")

    def test_longer_cycle_keeps_previous_mapping(self):
        labels = LabelStore()
        labels.save(LabelMapping(label="A", reference="B"))
        labels.save(LabelMapping(label="B", reference="C"))
        labels.save(LabelMapping(label="C", reference="D4"))
        with pytest.raises(InvalidSelectionError):
            labels.save(LabelMapping(label="C", reference="A"))
        assert labels.load("C").reference == "D4"
        assert labels.resolve("A") == parse_cell("D4")

    def test_self_reference_rejected(self):
        with pytest.raises(InvalidSelectionError):
            LabelStore().save(LabelMapping(label="Loop", reference="Loop"))

    def test_resolve_cell_rejects_ranges(self):
        labels = LabelStore()
        labels.save(LabelMapping(label="Block", reference="A1:B2"))
        labels.save(LabelMapping(label="One", reference="C3:C3"))
        with pytest.raises(InvalidSelectionError):
            labels.resolve_cell("Block")
        assert labels.resolve_cell("One") == parse_cell("C3")

    def test_find_similar(self):
        labels = LabelStore()
        for name in ("Sales", "salesTax", "Cost"):
            labels.save(LabelMapping(label=name, reference="A1"))
        assert [m.label for m in labels.find_similar("SAL", 10)] == ["Sales", "salesTax"]
        assert labels.find_similar("x", 10) == []

    def test_labels_for(self):
        labels = LabelStore()
        labels.save(LabelMapping(label="Block", reference="A1:B2"))
        labels.save(LabelMapping(label="Far", reference="Z99"))
        found = labels.labels_for(parse_cell_range("B2:C3"))
        assert [m.label for m in found] == ["Block"]

    def test_all_pages(self):
        labels = LabelStore()
        for name in ("c", "a", "b"):
            labels.save(LabelMapping(label=name, reference="A1"))
        assert [m.label for m in labels.all(1, 1)] == ["b"]
        with pytest.raises(ValueError):
            labels.all(-1)


class TestRangeStore:
    def test_referencing(self):
        ranges = RangeStore()
        ranges.save_references(parse_cell("C1"), [parse_cell_range("A1:A3")], ["Total"])
        assert ranges.referencing(parse_cell_range("A2")) == {parse_cell("C1")}
        assert ranges.referencing(parse_cell_range("B2")) == set()
        assert ranges.referencing_label("Total") == {parse_cell("C1")}

    def test_delete(self):
        ranges = RangeStore()
        ranges.save_references(parse_cell("C1"), [parse_cell_range("A1")])
        ranges.delete(parse_cell("C1"))
        assert ranges.references_of(parse_cell("C1")) == frozenset()


class TestUsersAndGroups:
    def test_user_touch(self):
        users = UserStore()
        when = datetime(2024, 1, 1, tzinfo=UTC)
        users.touch("alice@example.com", when)
        assert users.load("alice@example.com") == when
        assert users.all() == ["alice@example.com"]

    def test_groups(self):
        groups = GroupStore()
        groups.save("editors", ["alice", "bob"])
        assert groups.groups_for("bob") == ["editors"]
        assert groups.delete("editors")
        with pytest.raises(MissingStoreError):
            groups.load("editors")


class TestMetadataStore:
    def test_create_allocates_ids(self):
        store = MetadataStore()
        first = store.create(SpreadsheetMetadata(spreadsheet_name="a"))
        second = store.create(SpreadsheetMetadata(spreadsheet_name="b"))
        assert first.spreadsheet_id == SpreadsheetId(1)
        assert second.spreadsheet_id == SpreadsheetId(2)

    def test_load_missing(self):
        with pytest.raises(MissingStoreError, match="Spreadsheet not found: ff"):
            MetadataStore().load(SpreadsheetId(255))

    def test_delete(self):
        store = MetadataStore()
        created = store.create(SpreadsheetMetadata())
        store.delete(created.spreadsheet_id)
        assert created.spreadsheet_id not in store
        with pytest.raises(MissingStoreError):
            store.delete(created.spreadsheet_id)

    def test_find_by_name(self):
        store = MetadataStore()
        store.create(SpreadsheetMetadata(spreadsheet_name="Budget 2024"))
        store.create(SpreadsheetMetadata(spreadsheet_name="Invoices"))
        assert [m.spreadsheet_name for m in store.find_by_name("budget")] == ["Budget 2024"]

    def test_concurrent_creates_get_distinct_ids(self):
        store = MetadataStore()
        ids: list[SpreadsheetId] = []
        lock = threading.Lock()

        def create():
            created = store.create(SpreadsheetMetadata())
            with lock:
                ids.append(created.spreadsheet_id)

        threads = [threading.Thread(target=create) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(set(ids)) == 16


class TestPluginStore:
    def test_archive_extension_required(self):
        with pytest.raises(BadRequestError):
            PluginStore().save(Plugin(name="p", filename="p.txt"))

    def test_save_and_list(self):
        store = PluginStore()
        store.save(Plugin(name="b", filename="b.jar"))
        store.save(Plugin(name="a", filename="a.zip"))
        assert [p.name for p in store.all()] == ["a", "b"]
        assert store.delete("a")
        assert store.load("a") is None


class TestStoreRepository:
    def test_sub_stores_are_per_repository(self):
        metadata = MetadataStore()
        one = StoreRepository(metadata=metadata)
        two = StoreRepository(metadata=metadata)
        assert one.metadata is two.metadata
        assert one.cells is not two.cells
        assert one.labels is not two.labels
