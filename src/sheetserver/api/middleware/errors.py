"""
Error-handling: maps exceptions to RFC 7807 responses.

Status codes come from :func:`sheetserver.core.errors.status_for_exception`
only; these handlers just render them.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse

from sheetserver.api.schemas.common import ErrorDetail, ProblemDetail
from sheetserver.core.errors import (
    MethodNotAllowedError,
    SheetServerError,
    status_for_exception,
    title_for_status,
)
from sheetserver.core.logging import get_logger

logger = get_logger(__name__)


def problem_response(
    *,
    status: int,
    title: str,
    detail: str = "",
    instance: str = "",
    errors: list[dict[str, Any]] | None = None,
    headers: Mapping[str, str] | None = None,
) -> JSONResponse:
    """Build a RFC 7807 JSON error response."""
    body = ProblemDetail(
        title=title,
        status=status,
        detail=detail,
        instance=instance,
    )
    if errors:
        body.errors = [ErrorDetail(**e) for e in errors]
    return JSONResponse(
        status_code=status,
        content=body.model_dump(),
        headers=dict(headers or {}),
        media_type="application/problem+json",
    )


async def sheet_server_error_handler(request: Request, exc: SheetServerError) -> JSONResponse:
    status = status_for_exception(exc)
    headers: dict[str, str] = {}
    if isinstance(exc, MethodNotAllowedError) and exc.allowed:
        headers["Allow"] = ", ".join(exc.allowed)
    logger.info("request.failed", status=status, path=request.url.path, **exc.to_dict())
    return problem_response(
        status=status,
        title=title_for_status(status),
        detail=exc.message,
        instance=str(request.url),
        headers=headers,
    )


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Parse and validation failures (pydantic, json) are malformed requests."""
    status = status_for_exception(exc)
    errors = None
    if hasattr(exc, "errors") and callable(exc.errors):
        errors = [
            {
                "code": str(e.get("type", "invalid")).upper(),
                "message": e.get("msg", ""),
                "field": ".".join(str(p) for p in e.get("loc", ())) or None,
            }
            for e in exc.errors()
        ]
    logger.info("request.invalid", status=status, path=request.url.path, error=str(exc))
    return problem_response(
        status=status,
        title=title_for_status(status),
        detail=str(exc),
        instance=str(request.url),
        errors=errors,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all for unhandled exceptions: returns 500 with ProblemDetail."""
    logger.error("request.crashed", path=request.url.path, error=repr(exc), exc_info=exc)
    return problem_response(
        status=500,
        title="Internal Server Error",
        detail=str(exc) if request.app.state.settings.debug else "An unexpected error occurred.",
        instance=str(request.url),
    )
