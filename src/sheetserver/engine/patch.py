"""
Label resolution for incoming delta documents.

Clients may key the ``cells`` object of a delta by label name::

    {"cells": {"Total": {"formula": {"text": "=SUM(A1:A9)"}}}}

Merging has no label awareness, so before a delta is unmarshalled every
label key is re-keyed to the cell it resolves to (``"A10"``).  Only the
keys of ``cells`` are rewritten: formula text, ``deletedCells`` and the
size maps are left alone.  When two keys land on the same cell the later
one wins, as it would in a JSON object using literal references.

Resolution is idempotent, fails as a whole on the first unknown label,
and never mutates its input.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sheetserver.core.errors import InvalidSelectionError
from sheetserver.core.logging import get_logger
from sheetserver.core.marshalling import PreProcessor
from sheetserver.core.model import Delta
from sheetserver.core.references import is_cell_reference, is_label_name
from sheetserver.core.stores import LabelStore

logger = get_logger(__name__)


def resolve_labels(document: Mapping[str, Any], labels: LabelStore) -> dict[str, Any]:
    """Return a copy of *document* with every label key of ``cells`` resolved.

    Raises:
        UnknownLabelError: a key names a label with no mapping (404).
        InvalidSelectionError: a key is neither a cell nor a label, or a
            label resolves to a multi-cell range (400).
    """
    cells = document.get("cells")
    if not isinstance(cells, Mapping):
        return dict(document)

    resolved: dict[str, Any] = {}
    relabelled = 0
    for key, value in cells.items():
        if is_cell_reference(key):
            target = key
        elif is_label_name(key):
            target = str(labels.resolve_cell(key))
            relabelled += 1
        else:
            raise InvalidSelectionError(f"Invalid cell reference or label {key!r}")
        # later entries win and take the later position
        resolved.pop(target, None)
        resolved[target] = value

    if relabelled:
        logger.debug("patch.labels_resolved", count=relabelled)
    return {**document, "cells": resolved}


def label_resolving_pre_processor(labels: LabelStore) -> PreProcessor:
    """Unmarshall pre-processor resolving labels of :class:`Delta` documents only."""

    def pre_process(json: Any, model: type) -> Any:
        if model is Delta and isinstance(json, Mapping):
            return resolve_labels(json, labels)
        return json

    return pre_process
