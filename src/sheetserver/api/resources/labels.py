"""
Label resources of one spreadsheet: ``/api/spreadsheet/<id>/label[/<name>|/*]``.

Bodies and answers are deltas whose ``labels`` hold the mappings.  POSTing
a mapping under a different name renames the label.

``/api/spreadsheet/<id>/cell-reference/<text>?count=<n>`` answers what a
partly typed reference could mean: the cell it names, up to ``count`` labels
it starts, or the new label it could become.
"""

from __future__ import annotations

from sheetserver.core.errors import BadRequestError
from sheetserver.core.model import Delta, LabelMapping
from sheetserver.core.references import parse_label
from sheetserver.hateos.mapping import SELF, ResourceHandler, ResourceMapping
from sheetserver.hateos.parameters import int_parameter, paging
from sheetserver.hateos.selection import selection_parser, text_id


def _label_name(text: str) -> str:
    return str(parse_label(text))


def _single_mapping(delta: Delta | None) -> LabelMapping:
    if delta is None or len(delta.labels) != 1:
        raise BadRequestError("Expected exactly one label mapping")
    return delta.labels[0]


class LoadLabelHandler(ResourceHandler):
    def handle_one(self, id, resource, parameters, path, context):
        return context.engine.load_label(id)

    def handle_all(self, resource, parameters, path, context):
        return context.engine.load_labels(*paging(parameters, context.default_count))


class SaveLabelHandler(ResourceHandler):
    def handle_none(self, resource, parameters, path, context):
        return context.engine.save_label(_single_mapping(resource), context.user)

    def handle_one(self, id, resource, parameters, path, context):
        mapping = _single_mapping(resource)
        saved = context.engine.save_label(mapping, context.user)
        if mapping.label == id or context.repository.labels.load(id) is None:
            return saved
        deleted = context.engine.delete_label(id, context.user)
        return saved.model_copy(
            update={"deleted_labels": deleted.deleted_labels, "cells": {**saved.cells, **deleted.cells}}
        )


class DeleteLabelHandler(ResourceHandler):
    def handle_one(self, id, resource, parameters, path, context):
        return context.engine.delete_label(id, context.user)


def label_mapping() -> ResourceMapping:
    return (
        ResourceMapping(
            name="label",
            selection_parser=selection_parser(_label_name),
            resource_type=Delta,
            collection_type="SpreadsheetDelta",
        )
        .set_handler(SELF, "GET", LoadLabelHandler())
        .set_handler(SELF, "POST", SaveLabelHandler())
        .set_handler(SELF, "DELETE", DeleteLabelHandler())
    )


class CellReferenceSimilaritiesHandler(ResourceHandler):
    def handle_one(self, id, resource, parameters, path, context):
        count = int_parameter(parameters, "count", minimum=0)
        if count is None:
            raise BadRequestError("Missing count")
        return context.engine.find_similarities(id, count)


def cell_reference_mapping() -> ResourceMapping:
    return ResourceMapping(
        name="cell-reference",
        selection_parser=selection_parser(text_id, wildcard=False),
        resource_type=None,
        collection_type="SpreadsheetExpressionReferenceSimilarities",
    ).set_handler(SELF, "GET", CellReferenceSimilaritiesHandler())
