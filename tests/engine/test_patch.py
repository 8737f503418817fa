"""Tests for label resolution of incoming delta documents."""

import copy

import pytest

from sheetserver.core.errors import InvalidSelectionError, UnknownLabelError
from sheetserver.core.model import Delta, LabelMapping, SpreadsheetMetadata
from sheetserver.core.stores import LabelStore
from sheetserver.engine.patch import label_resolving_pre_processor, resolve_labels


@pytest.fixture()
def labels() -> LabelStore:
    store = LabelStore()
    store.save(LabelMapping(label="Total", reference="A10"))
    store.save(LabelMapping(label="Alias", reference="Total"))
    store.save(LabelMapping(label="Block", reference="A1:B2"))
    return store


def _cell(text: str) -> dict:
    return {"formula": {"text": text}}


class TestResolveLabels:
    def test_label_keys_become_cells(self, labels):
        document = {"cells": {"Total": _cell("=SUM(A1:A9)"), "B1": _cell("1")}}
        resolved = resolve_labels(document, labels)
        assert resolved["cells"] == {"A10": _cell("=SUM(A1:A9)"), "B1": _cell("1")}

    def test_label_chain(self, labels):
        resolved = resolve_labels({"cells": {"Alias": _cell("2")}}, labels)
        assert list(resolved["cells"]) == ["A10"]

    def test_idempotent(self, labels):
        once = resolve_labels({"cells": {"Total": _cell("1")}}, labels)
        assert resolve_labels(once, labels) == once

    def test_later_key_wins(self, labels):
        document = {"cells": {"A10": _cell("first"), "Total": _cell("second")}}
        resolved = resolve_labels(document, labels)
        assert resolved["cells"] == {"A10": _cell("second")}

    def test_input_not_mutated(self, labels):
        document = {"cells": {"Total": _cell("1")}, "deletedCells": ["Total"]}
        before = copy.deepcopy(document)
        resolved = resolve_labels(document, labels)
        assert document == before
        assert resolved["deletedCells"] == ["Total"]

    def test_formula_text_untouched(self, labels):
        resolved = resolve_labels({"cells": {"B1": _cell("=Total*2")}}, labels)
        assert resolved["cells"]["B1"] == _cell("=Total*2")

    def test_unknown_label(self, labels):
        with pytest.raises(UnknownLabelError):
            resolve_labels({"cells": {"B1": _cell("1"), "Missing": _cell("2")}}, labels)

    def test_range_label(self, labels):
        with pytest.raises(InvalidSelectionError):
            resolve_labels({"cells": {"Block": _cell("1")}}, labels)

    def test_invalid_key(self, labels):
        with pytest.raises(InvalidSelectionError):
            resolve_labels({"cells": {"not a cell!": _cell("1")}}, labels)

    def test_without_cells(self, labels):
        document = {"labels": []}
        assert resolve_labels(document, labels) == document


class TestPreProcessor:
    def test_only_deltas(self, labels):
        pre_process = label_resolving_pre_processor(labels)
        document = {"cells": {"Total": _cell("1")}}
        assert list(pre_process(document, Delta)["cells"]) == ["A10"]
        assert pre_process(document, SpreadsheetMetadata) is document
        assert pre_process("text", Delta) == "text"
