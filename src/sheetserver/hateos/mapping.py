"""
Resource mappings: hypermedia dispatch over (link relation, HTTP method).

A resource path below a router's base path looks like::

    /<resource>[/<selection>[/<relation>[/<extra>...]]]

``relation`` defaults to ``self``.  The router picks the
:class:`ResourceMapping` named by ``<resource>``, the handler registered for
``(relation, method)``, parses the selection, decodes the JSON body and
calls the handler method for the selection kind.

Dispatch outcomes:

==============================================  ======================
situation                                       outcome
==============================================  ======================
unknown resource or relation                    declined (caller 404)
no handler for the method                       405 + ``Allow``
selection or body malformed                     400
PATCH without a JSON content type               415
handler returned ``None``                       204
POST with no selection (create)                 201
anything else                                   200
==============================================  ======================

Example::

    mapping = ResourceMapping(
        name="label",
        selection_parser=selection_parser(parse_label),
        resource_type=Delta,
        collection_type="SpreadsheetDelta",
    ).set_handler("self", "GET", LoadLabelHandler())

    router = build_router("/api/spreadsheet/*", [mapping], context)

Tags:
    hateos, hypermedia, dispatch, sheet-server

Doc-Types:
    api-reference
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from functools import partial
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel

from sheetserver.core.errors import (
    BadRequestError,
    InvalidSelectionError,
    MethodNotAllowedError,
    NotAcceptableError,
    UnsupportedMediaTypeError,
)
from sheetserver.hateos.routing import (
    HttpRequest,
    HttpResponse,
    RequestHandler,
    Router,
    path_matches,
    split_pattern,
)
from sheetserver.hateos.selection import Selection, SelectionKind, SelectionParser

SELF = "self"


class ResourceHandler:
    """Handles one (relation, method) of a resource.

    Override the ``handle_*`` methods for the selection kinds supported;
    the rest reject the request with 400.  Every method receives the decoded
    body (or ``None``), read-only query parameters, the path segments after
    the relation and the handler context, and returns a resource, a list
    of resources, or ``None`` for "no content".
    """

    def handle_none(self, resource: Any, parameters: Mapping[str, str], path: tuple[str, ...], context: Any) -> Any:
        return self._unsupported(SelectionKind.NONE)

    def handle_one(self, id: Any, resource: Any, parameters: Mapping[str, str], path: tuple[str, ...], context: Any) -> Any:
        return self._unsupported(SelectionKind.ONE)

    def handle_many(self, ids: tuple[Any, ...], resource: Any, parameters: Mapping[str, str], path: tuple[str, ...], context: Any) -> Any:
        return self._unsupported(SelectionKind.MANY)

    def handle_all(self, resource: Any, parameters: Mapping[str, str], path: tuple[str, ...], context: Any) -> Any:
        return self._unsupported(SelectionKind.ALL)

    def handle_range(self, range: Any, resource: Any, parameters: Mapping[str, str], path: tuple[str, ...], context: Any) -> Any:
        return self._unsupported(SelectionKind.RANGE)

    def _unsupported(self, kind: SelectionKind) -> Any:
        raise InvalidSelectionError(f"{type(self).__name__} does not support a {kind.value} selection")

    def handle(
        self,
        selection: Selection,
        resource: Any,
        parameters: Mapping[str, str],
        path: tuple[str, ...],
        context: Any,
    ) -> Any:
        kind = selection.kind
        if kind is SelectionKind.NONE:
            return self.handle_none(resource, parameters, path, context)
        if kind is SelectionKind.ONE:
            return self.handle_one(selection.value, resource, parameters, path, context)
        if kind is SelectionKind.MANY:
            return self.handle_many(selection.value, resource, parameters, path, context)
        if kind is SelectionKind.ALL:
            return self.handle_all(resource, parameters, path, context)
        return self.handle_range(selection.value, resource, parameters, path, context)


@dataclass(frozen=True)
class ResourceMapping:
    """Immutable registration of one resource and its handlers."""

    name: str
    selection_parser: SelectionParser
    resource_type: type[BaseModel] | None
    collection_type: str
    handlers: Mapping[tuple[str, str], ResourceHandler] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def set_handler(self, relation: str, method: str, handler: ResourceHandler) -> ResourceMapping:
        """Return a copy with *handler* registered; a pair may be registered once."""
        key = (relation, method.upper())
        if key in self.handlers:
            raise ValueError(f"{self.name}: handler already registered for {key}")
        return replace(self, handlers=MappingProxyType({**self.handlers, key: handler}))

    def handler(self, relation: str, method: str) -> ResourceHandler | None:
        return self.handlers.get((relation, method.upper()))

    def has_relation(self, relation: str) -> bool:
        return any(r == relation for r, _ in self.handlers)

    def methods(self, relation: str) -> set[str]:
        return {m for r, m in self.handlers if r == relation}


def _accepts_json(accept: str | None) -> bool:
    if not accept:
        return True
    for part in accept.split(","):
        media = part.split(";")[0].strip().lower()
        if media in ("*/*", "application/*", "application/json") or media.endswith("+json"):
            return True
    return False


class MappingRouter(Router):
    """Routes requests under *base_path* to resource mappings."""

    def __init__(self, base_path: str, mappings: Iterable[ResourceMapping], context: Any):
        self._base = split_pattern(base_path)
        self._mappings = {mapping.name: mapping for mapping in mappings}
        self._context = context

    def route(self, request: HttpRequest) -> RequestHandler | None:
        segments = request.segments
        base = self._base
        if len(segments) <= len(base) or not path_matches(base, segments[: len(base)]):
            return None
        rest = segments[len(base) :]
        mapping = self._mappings.get(rest[0])
        if mapping is None:
            return None
        selection = rest[1] if len(rest) > 1 else ""
        relation = rest[2] if len(rest) > 2 and rest[2] else SELF
        if not mapping.has_relation(relation):
            return None
        return partial(self._dispatch, mapping, selection, relation, tuple(rest[3:]))

    def _dispatch(
        self,
        mapping: ResourceMapping,
        selection_text: str,
        relation: str,
        extra: tuple[str, ...],
        request: HttpRequest,
    ) -> HttpResponse:
        handler = mapping.handler(relation, request.method)
        if handler is None:
            raise MethodNotAllowedError(request.method, mapping.methods(relation))
        if not _accepts_json(request.header("accept")):
            raise NotAcceptableError(f"Cannot produce {request.header('accept')}")

        context = self._context.for_request(request)
        selection = mapping.selection_parser(selection_text, context)
        resource = self._decode(mapping, request, context)
        result = handler.handle(selection, resource, request.parameters, extra, context)
        if result is None:
            return HttpResponse.no_content()

        created = request.method == "POST" and selection.kind is SelectionKind.NONE
        return HttpResponse.json(
            201 if created else 200,
            context.marshall(result),
            context.type_name(result) or mapping.collection_type,
        )

    @staticmethod
    def _decode(mapping: ResourceMapping, request: HttpRequest, context: Any) -> Any:
        if request.method == "PATCH":
            if not request.has_json_body:
                raise UnsupportedMediaTypeError(request.content_type)
            document = json.loads(request.body or b"null")
            if not isinstance(document, dict):
                raise BadRequestError("PATCH body must be a JSON object")
        elif not request.body.strip():
            return None
        else:
            if not request.has_json_body:
                raise UnsupportedMediaTypeError(request.content_type)
            document = json.loads(request.body)

        if mapping.resource_type is None:
            return document
        return context.unmarshall(document, mapping.resource_type)


def build_router(base_path: str, mappings: Iterable[ResourceMapping], context: Any) -> Router:
    """Compose *mappings* into one router answering below *base_path* (``*`` wildcards allowed)."""
    return MappingRouter(base_path, mappings, context)
