"""
Spreadsheet metadata resources.

Server level, below ``/api``::

    POST   /api/spreadsheet          create (201)
    GET    /api/spreadsheet/*        list; ``name``, ``offset``, ``count``
    GET    /api/spreadsheet/<id>     load
    POST   /api/spreadsheet/<id>     save
    PATCH  /api/spreadsheet/<id>     JSON merge patch
    DELETE /api/spreadsheet/<id>     delete, evicting the cached context

Per spreadsheet, below ``/api/spreadsheet/<id>``::

    GET|POST|DELETE metadata/<propertyName>

Saving goes through :meth:`TenantContextFactory.save_metadata`, so a cached
context always reflects the latest locale and provider selectors.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sheetserver.api.tenant import TenantContextCache
from sheetserver.core.errors import BadRequestError, InvalidSelectionError
from sheetserver.core.ids import SpreadsheetId
from sheetserver.core.logging import get_logger
from sheetserver.core.model import AuditInfo, SpreadsheetMetadata
from sheetserver.core.providers import ProviderFactory
from sheetserver.core.stores import MetadataStore
from sheetserver.hateos.context import ContextForwarding, HandlerContext
from sheetserver.hateos.mapping import SELF, ResourceHandler, ResourceMapping
from sheetserver.hateos.parameters import paging
from sheetserver.hateos.selection import Selection, selection_parser

logger = get_logger(__name__)

DEFAULT_SPREADSHEET_NAME = "Untitled"

# Properties maintained by the server itself.
PROTECTED_PROPERTIES = frozenset({"spreadsheetId", "auditInfo"})
REQUIRED_PROPERTIES = frozenset({"spreadsheetId", "locale", "auditInfo"})


@dataclass(frozen=True)
class MetadataHandlerContext(ContextForwarding):
    handler_context: HandlerContext
    metadata_store: MetadataStore
    provider_factory: ProviderFactory
    tenants: TenantContextCache
    save_metadata: Callable[[SpreadsheetMetadata], SpreadsheetMetadata]
    default_locale: str


def _audit(existing: AuditInfo | None, user: str | None) -> AuditInfo:
    now = datetime.now(UTC)
    if existing is None:
        return AuditInfo(created_by=user, created_timestamp=now, modified_by=user, modified_timestamp=now)
    return existing.model_copy(update={"modified_by": user, "modified_timestamp": now})


def parse_spreadsheet_selection(text: str, context: Any = None) -> Selection:
    return selection_parser(SpreadsheetId.parse)(text, context)


class CreateMetadataHandler(ResourceHandler):
    """POST without an id: allocate a spreadsheet.

    The locale comes from the body, else the caller's ``Accept-Language``,
    else the server default.
    """

    def handle_none(self, resource, parameters, path, context: MetadataHandlerContext):
        metadata = resource or SpreadsheetMetadata()
        locale = metadata.locale or context.locales.preferred(context.accept_language, context.default_locale)
        metadata = metadata.model_copy(
            update={
                "spreadsheet_id": None,
                "spreadsheet_name": metadata.spreadsheet_name or DEFAULT_SPREADSHEET_NAME,
                "locale": context.locales.require(locale),
                "audit_info": _audit(None, context.user),
            }
        )
        context.provider_factory.provider_for(metadata)
        created = context.metadata_store.create(metadata)
        logger.info("spreadsheet.created", spreadsheet_id=str(created.spreadsheet_id), user=context.user)
        return created


class LoadMetadataHandler(ResourceHandler):
    def handle_one(self, id, resource, parameters, path, context: MetadataHandlerContext):
        return context.metadata_store.load(id)

    def handle_all(self, resource, parameters, path, context: MetadataHandlerContext):
        offset, count = paging(parameters, context.default_count)
        name = parameters.get("name")
        if name:
            return context.metadata_store.find_by_name(name, offset, count)
        return context.metadata_store.all(offset, count)


class SaveMetadataHandler(CreateMetadataHandler):
    """POST with an id: replace the metadata of an existing spreadsheet."""

    def handle_one(self, id, resource, parameters, path, context: MetadataHandlerContext):
        if resource is None:
            raise BadRequestError("Missing metadata")
        if resource.spreadsheet_id is not None and resource.spreadsheet_id != id:
            raise BadRequestError(f"SpreadsheetId {resource.spreadsheet_id} does not match {id}")
        existing = context.metadata_store.load(id)
        metadata = resource.model_copy(
            update={
                "spreadsheet_id": id,
                "locale": resource.locale or existing.locale,
                "audit_info": _audit(existing.audit_info, context.user),
            }
        )
        return context.save_metadata(metadata)


class PatchMetadataHandler(ResourceHandler):
    """JSON merge patch: a property set to ``null`` is removed."""

    def handle_one(self, id, resource, parameters, path, context: MetadataHandlerContext):
        existing = context.metadata_store.load(id)
        return context.save_metadata(merge_patch(existing, resource, context.user))


class DeleteMetadataHandler(ResourceHandler):
    def handle_one(self, id, resource, parameters, path, context: MetadataHandlerContext):
        context.metadata_store.delete(id)
        context.tenants.delete(id)
        logger.info("spreadsheet.deleted", spreadsheet_id=str(id), user=context.user)
        return None


def merge_patch(existing: SpreadsheetMetadata, patch: dict[str, Any], user: str | None) -> SpreadsheetMetadata:
    """Apply the JSON object *patch* to *existing*, validating the result."""
    protected = PROTECTED_PROPERTIES & patch.keys()
    if protected:
        raise BadRequestError(f"Cannot patch {', '.join(sorted(protected))}")
    unknown = patch.keys() - set(SpreadsheetMetadata.property_names())
    if unknown:
        raise BadRequestError(f"Unknown metadata properties: {', '.join(sorted(unknown))}")
    if "locale" in patch and patch["locale"] is None:
        raise BadRequestError("Cannot remove locale")

    document = existing.to_json()
    for name, value in patch.items():
        if value is None:
            document.pop(name, None)
        else:
            document[name] = value
    merged = SpreadsheetMetadata.model_validate(document)
    return merged.model_copy(update={"audit_info": _audit(existing.audit_info, user)})


def spreadsheet_mapping() -> ResourceMapping:
    return (
        ResourceMapping(
            name="spreadsheet",
            selection_parser=parse_spreadsheet_selection,
            resource_type=None,
            collection_type="SpreadsheetMetadataSet",
        )
        .set_handler(SELF, "GET", LoadMetadataHandler())
        .set_handler(SELF, "POST", _Unmarshalling(SaveMetadataHandler()))
        .set_handler(SELF, "PATCH", PatchMetadataHandler())
        .set_handler(SELF, "DELETE", DeleteMetadataHandler())
    )


class _Unmarshalling(ResourceHandler):
    """Turns the raw JSON body into :class:`SpreadsheetMetadata` before delegating.

    The mapping leaves bodies raw so PATCH sees exactly which properties
    were sent.
    """

    def __init__(self, delegate: ResourceHandler):
        self._delegate = delegate

    def handle(self, selection, resource, parameters, path, context):
        if resource is not None:
            resource = context.unmarshall(resource, SpreadsheetMetadata)
        return self._delegate.handle(selection, resource, parameters, path, context)


# ── Per-spreadsheet properties ───────────────────────────────────────────


def _property_name(text: str) -> str:
    if text not in SpreadsheetMetadata.property_names():
        raise InvalidSelectionError(f"Unknown metadata property {text!r}")
    return text


class LoadPropertyHandler(ResourceHandler):
    def handle_one(self, id, resource, parameters, path, context):
        document = context.metadata.to_json()
        if id not in document:
            return None
        return SpreadsheetMetadata.model_validate({id: document[id]})

    def handle_all(self, resource, parameters, path, context):
        return context.metadata


class SavePropertyHandler(ResourceHandler):
    def handle_one(self, id, resource, parameters, path, context):
        if id in PROTECTED_PROPERTIES:
            raise BadRequestError(f"Cannot set {id}")
        if not isinstance(resource, dict) or id not in resource:
            raise BadRequestError(f"Missing {id}")
        patched = merge_patch(context.metadata, {id: resource[id]}, context.user)
        return context.save_metadata(patched)


class DeletePropertyHandler(ResourceHandler):
    def handle_one(self, id, resource, parameters, path, context):
        if id in REQUIRED_PROPERTIES:
            raise BadRequestError(f"Cannot remove required property {id}")
        context.save_metadata(merge_patch(context.metadata, {id: None}, context.user))
        return None


def metadata_property_mapping() -> ResourceMapping:
    return (
        ResourceMapping(
            name="metadata",
            selection_parser=selection_parser(_property_name),
            resource_type=None,
            collection_type="SpreadsheetMetadata",
        )
        .set_handler(SELF, "GET", LoadPropertyHandler())
        .set_handler(SELF, "POST", SavePropertyHandler())
        .set_handler(SELF, "DELETE", DeletePropertyHandler())
    )
