"""Plugin archive resources: ``/api/plugin/[*|<name>]``."""

from __future__ import annotations

from datetime import UTC, datetime

from sheetserver.core.errors import BadRequestError, MissingStoreError
from sheetserver.core.model import Plugin
from sheetserver.core.stores import PluginStore
from sheetserver.hateos.mapping import SELF, ResourceHandler, ResourceMapping
from sheetserver.hateos.parameters import paging
from sheetserver.hateos.selection import selection_parser, text_id


class LoadPluginHandler(ResourceHandler):
    def __init__(self, store: PluginStore):
        self._store = store

    def handle_one(self, id, resource, parameters, path, context):
        return self._store.load(id)

    def handle_all(self, resource, parameters, path, context):
        return self._store.all(*paging(parameters, context.default_count))


class SavePluginHandler(ResourceHandler):
    """Saves an uploaded plugin, stamping the uploader and upload time."""

    def __init__(self, store: PluginStore):
        self._store = store

    def handle_one(self, id, resource, parameters, path, context):
        if resource is None:
            raise BadRequestError("Missing plugin")
        if resource.name != id:
            raise BadRequestError(f"Plugin name {resource.name!r} does not match {id!r}")
        return self._save(resource, context)

    def handle_none(self, resource, parameters, path, context):
        if resource is None:
            raise BadRequestError("Missing plugin")
        return self._save(resource, context)

    def _save(self, plugin: Plugin, context) -> Plugin:
        stamped = plugin.model_copy(update={"user": context.user, "timestamp": datetime.now(UTC)})
        return self._store.save(stamped)


class DeletePluginHandler(ResourceHandler):
    def __init__(self, store: PluginStore):
        self._store = store

    def handle_one(self, id, resource, parameters, path, context):
        if not self._store.delete(id):
            raise MissingStoreError(f"Plugin not found: {id}")
        return None


def plugin_mapping(store: PluginStore) -> ResourceMapping:
    return (
        ResourceMapping(
            name="plugin",
            selection_parser=selection_parser(text_id),
            resource_type=Plugin,
            collection_type="PluginSet",
        )
        .set_handler(SELF, "GET", LoadPluginHandler(store))
        .set_handler(SELF, "POST", SavePluginHandler(store))
        .set_handler(SELF, "DELETE", DeletePluginHandler(store))
    )
