"""
Framework-neutral request routing.

A :class:`Router` looks at an :class:`HttpRequest` and either returns the
handler that will answer it or ``None`` ("declined").  Routers compose:

* :class:`RouteTable` tries its :class:`RouteEntry` predicates in
  registration order; the first match wins.
* :meth:`Router.then` chains routers; the first one that accepts wins.
* :meth:`Router.or_else` turns a router into a handler with a default for
  everything it declines.

Path patterns are matched segment by segment: ``*`` matches exactly one
segment (possibly empty), a trailing ``**`` matches zero or more.

Tags:
    routing, chain-of-responsibility, sheet-server

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from sheetserver.core.errors import MissingStoreError
from sheetserver.core.logging import get_logger

logger = get_logger(__name__)

JSON_MEDIA_TYPE = "application/json"
CONTENT_TYPE_NAME_HEADER = "X-Content-Type-Name"

METHODS = ("GET", "POST", "PUT", "DELETE", "PATCH")


# ── Request / response ───────────────────────────────────────────────────


@dataclass(frozen=True)
class HttpRequest:
    """An inbound request, already read off the wire.

    Header names are lower-cased; ``parameters`` holds the first value of
    each query parameter.
    """

    method: str
    path: str
    parameters: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    headers: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    body: bytes = b""
    user: str | None = None

    @property
    def segments(self) -> tuple[str, ...]:
        """Path segments without the leading root: ``/api/x`` → ``("api", "x")``."""
        if not self.path.startswith("/"):
            return tuple(self.path.split("/"))
        if self.path == "/":
            return ()
        return tuple(self.path[1:].split("/"))

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    @property
    def content_type(self) -> str | None:
        value = self.header("content-type")
        return value.split(";")[0].strip().lower() if value else None

    @property
    def has_json_body(self) -> bool:
        content_type = self.content_type
        return content_type is not None and (
            content_type == JSON_MEDIA_TYPE or content_type.endswith("+json")
        )


@dataclass(frozen=True)
class HttpResponse:
    """Outbound response.  ``body`` is JSON-compatible, or ``bytes`` for raw content."""

    status: int
    body: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)
    media_type: str = JSON_MEDIA_TYPE

    @classmethod
    def no_content(cls) -> HttpResponse:
        return cls(status=204)

    @classmethod
    def json(cls, status: int, body: Any, type_name: str | None = None) -> HttpResponse:
        headers = {CONTENT_TYPE_NAME_HEADER: type_name} if type_name else {}
        return cls(status=status, body=body, headers=headers)


RequestHandler = Callable[[HttpRequest], HttpResponse]


def not_found(request: HttpRequest) -> HttpResponse:
    """Default handler for everything no router accepted."""
    logger.info("route.unmatched", method=request.method, path=request.path)
    raise MissingStoreError(f"Not Found: {request.path}")


# ── Routers ──────────────────────────────────────────────────────────────


class Router:
    """Base router: subclasses implement :meth:`route`."""

    def route(self, request: HttpRequest) -> RequestHandler | None:
        raise NotImplementedError

    def then(self, other: Router) -> Router:
        return ChainedRouter((self, other))

    def or_else(self, default: RequestHandler) -> RequestHandler:
        def handle(request: HttpRequest) -> HttpResponse:
            handler = self.route(request)
            return (handler or default)(request)

        return handle


class ChainedRouter(Router):
    def __init__(self, routers: Iterable[Router]):
        flattened: list[Router] = []
        for router in routers:
            if isinstance(router, ChainedRouter):
                flattened.extend(router.routers)
            else:
                flattened.append(router)
        self.routers = tuple(flattened)

    def route(self, request: HttpRequest) -> RequestHandler | None:
        for router in self.routers:
            handler = router.route(request)
            if handler is not None:
                return handler
        return None


def path_matches(pattern: tuple[str, ...], segments: tuple[str, ...]) -> bool:
    if pattern and pattern[-1] == "**":
        fixed = pattern[:-1]
        if len(segments) < len(fixed):
            return False
        segments = segments[: len(fixed)]
        pattern = fixed
    if len(pattern) != len(segments):
        return False
    return all(p == "*" or p == s for p, s in zip(pattern, segments))


def split_pattern(path: str) -> tuple[str, ...]:
    return tuple(path.strip("/").split("/")) if path.strip("/") else ()


@dataclass(frozen=True)
class RouteEntry:
    """Predicates over path, method and headers, paired with a handler."""

    pattern: tuple[str, ...]
    handler: RequestHandler
    methods: frozenset[str] | None = None
    headers: Mapping[str, Callable[[str | None], bool]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def matches(self, request: HttpRequest) -> bool:
        if self.methods is not None and request.method not in self.methods:
            return False
        if not path_matches(self.pattern, request.segments):
            return False
        return all(test(request.header(name)) for name, test in self.headers.items())


class RouteTable(Router):
    """Ordered route entries; first match wins."""

    def __init__(self, entries: Iterable[RouteEntry]):
        self.entries = tuple(entries)

    def route(self, request: HttpRequest) -> RequestHandler | None:
        for entry in self.entries:
            if entry.matches(request):
                return entry.handler
        return None


class RouteTableBuilder:
    """Fluent builder for a :class:`RouteTable`."""

    def __init__(self) -> None:
        self._entries: list[RouteEntry] = []

    def add(
        self,
        path: str,
        handler: RequestHandler | Router,
        *,
        methods: Iterable[str] | None = None,
        headers: Mapping[str, Callable[[str | None], bool]] | None = None,
    ) -> RouteTableBuilder:
        """Register *handler* for *path*.  A router is wrapped to answer 404 on decline."""
        if isinstance(handler, Router):
            handler = handler.or_else(not_found)
        self._entries.append(
            RouteEntry(
                pattern=split_pattern(path),
                handler=handler,
                methods=frozenset(m.upper() for m in methods) if methods is not None else None,
                headers=MappingProxyType(dict(headers or {})),
            )
        )
        return self

    def build(self) -> RouteTable:
        return RouteTable(self._entries)
