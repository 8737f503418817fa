"""
FastAPI application factory.

``create_app()`` wires middleware, error handlers, the health router and
the catch-all route that hands every other request to
:class:`SpreadsheetHttpServer`.

Routing below FastAPI is the server's own: requests are converted to
:class:`HttpRequest`, routed on a worker thread, and the resulting
:class:`HttpResponse` converted back.

Tags:
    sheet-server, api, app-factory, composition-root, FastAPI

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from types import MappingProxyType

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from sheetserver.api.deps import current_user, get_settings
from sheetserver.api.health import create_health_router, server_checks
from sheetserver.api.middleware.errors import (
    sheet_server_error_handler,
    unhandled_exception_handler,
    value_error_handler,
)
from sheetserver.api.middleware.request_id import RequestIDMiddleware
from sheetserver.api.middleware.timing import TimingMiddleware
from sheetserver.api.middleware.transaction import TransactionIDMiddleware
from sheetserver.api.server import SpreadsheetHttpServer
from sheetserver.api.settings import SheetServerSettings
from sheetserver.core.errors import SheetServerError
from sheetserver.core.logging import configure_logging, get_logger
from sheetserver.hateos.routing import METHODS, HttpRequest, HttpResponse


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup / shutdown hooks."""
    settings: SheetServerSettings = app.state.settings
    configure_logging(level=settings.log_level, json_format=settings.log_json)
    log = get_logger("sheetserver.api")
    log.info("sheet-server API starting", version=app.version, server_url=settings.server_url)
    yield
    log.info("sheet-server API shutting down", tenants=len(app.state.server.tenants))


async def to_http_request(request: Request, settings: SheetServerSettings) -> HttpRequest:
    headers = MappingProxyType({name.lower(): value for name, value in request.headers.items()})
    parameters = MappingProxyType(dict(request.query_params))
    return HttpRequest(
        method=request.method,
        path=request.url.path,
        parameters=parameters,
        headers=headers,
        body=await request.body(),
        user=current_user(headers, parameters, settings.user_header),
    )


def to_response(response: HttpResponse) -> Response:
    headers = dict(response.headers)
    if response.status == 204:
        return Response(status_code=204, headers=headers)
    if isinstance(response.body, bytes):
        return Response(
            content=response.body,
            status_code=response.status,
            headers=headers,
            media_type=response.media_type,
        )
    return JSONResponse(
        content=response.body,
        status_code=response.status,
        headers=headers,
        media_type=response.media_type,
    )


def create_app(
    *,
    settings: SheetServerSettings | None = None,
    server: SpreadsheetHttpServer | None = None,
) -> FastAPI:
    """Build and return a fully-configured FastAPI application.

    Parameters
    ----------
    settings : SheetServerSettings | None
        Override settings (useful for testing).  When ``None`` the cached
        singleton from :func:`get_settings` is used.
    server : SpreadsheetHttpServer | None
        Override the request router, e.g. to share stores between apps.
    """
    settings = settings or get_settings()
    server = server or SpreadsheetHttpServer(settings)

    app = FastAPI(title=settings.api_title, version=settings.api_version, lifespan=lifespan)

    app.state.settings = settings
    app.state.server = server
    app.dependency_overrides[get_settings] = lambda: settings

    # ── Middleware (outermost → innermost) ────────────────────────────
    app.add_middleware(TimingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(TransactionIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Content-Type-Name", "X-Transaction-ID", "X-Request-ID"],
    )

    # ── Exception handlers ───────────────────────────────────────────
    app.add_exception_handler(SheetServerError, sheet_server_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # ── Routes ───────────────────────────────────────────────────────
    app.include_router(create_health_router("sheet-server", settings.api_version, checks=server_checks(server)))

    @app.api_route("/{full_path:path}", methods=list(METHODS), include_in_schema=False)
    async def dispatch(request: Request) -> Response:
        http_request = await to_http_request(request, settings)
        response = await run_in_threadpool(server.handle, http_request)
        return to_response(response)

    return app
