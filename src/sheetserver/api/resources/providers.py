"""
Provider catalogue resources: ``/api/<kind>/[*|<name>|<name>,<name>]``.

One mapping per provider kind (comparator, converter, formatter, ...).
Answers come from the context's provider, so the same handlers serve the
server-wide catalogue and a spreadsheet's narrowed one.
"""

from __future__ import annotations

from sheetserver.core.providers import PROVIDER_KINDS
from sheetserver.hateos.mapping import SELF, ResourceHandler, ResourceMapping
from sheetserver.hateos.selection import selection_parser, text_id


class LoadProviderInfoHandler(ResourceHandler):
    def __init__(self, kind: str):
        self.kind = kind

    def handle_all(self, resource, parameters, path, context):
        return context.provider.infos(self.kind)

    def handle_one(self, id, resource, parameters, path, context):
        return context.provider.info(self.kind, id)

    def handle_many(self, ids, resource, parameters, path, context):
        infos = (context.provider.info(self.kind, name) for name in ids)
        return [info for info in infos if info is not None]


def collection_type_name(kind: str) -> str:
    """``form-handler`` → ``FormHandlerInfoSet``."""
    return "".join(part.capitalize() for part in kind.split("-")) + "InfoSet"


def provider_mapping(kind: str) -> ResourceMapping:
    if kind not in PROVIDER_KINDS:
        raise ValueError(f"Unknown provider kind {kind!r}")
    return ResourceMapping(
        name=kind,
        selection_parser=selection_parser(text_id, many=True),
        resource_type=None,
        collection_type=collection_type_name(kind),
    ).set_handler(SELF, "GET", LoadProviderInfoHandler(kind))


def provider_mappings() -> list[ResourceMapping]:
    return [provider_mapping(kind) for kind in PROVIDER_KINDS]
