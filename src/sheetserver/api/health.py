"""Health endpoints for the sheet server.

Provides:

- **Response models**: ``HealthResponse``, ``CheckResult``, ``LivenessResponse``.
- **``HealthCheck``**: one named check with a ``required`` flag and timeout.
- **``create_health_router()``**: ``/health``, ``/health/ready`` and
  ``/health/live``.
- **``server_checks()``**: the checks of a :class:`SpreadsheetHttpServer`.

Quick start::

    router = create_health_router("sheet-server", "0.1.0", checks=server_checks(server))
    app.include_router(router)
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from fastapi import APIRouter
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from sheetserver.api.server import SpreadsheetHttpServer

_START_TIME = time.monotonic()

Status = Literal["healthy", "degraded", "unhealthy"]


# ── Response Models ──────────────────────────────────────────────────────


class CheckResult(BaseModel):
    status: Status
    latency_ms: float | None = None
    error: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Envelope returned from ``GET /health``."""

    status: Status = "healthy"
    service: str = ""
    version: str = ""
    uptime_s: float = Field(default_factory=lambda: round(time.monotonic() - _START_TIME, 1))
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    checks: dict[str, CheckResult] = Field(default_factory=dict)


class LivenessResponse(BaseModel):
    status: str = "alive"


# ── Health Check Definition ──────────────────────────────────────────────


@dataclass
class HealthCheck:
    """A named check.

    ``check_fn`` returns details to report, or raises on failure.  A failed
    ``required`` check makes the service ``unhealthy``, any other failure
    only ``degraded``.
    """

    name: str
    check_fn: Callable[[], Awaitable[dict[str, Any]]]
    required: bool = True
    timeout_s: float = 5.0


async def _run_checks(checks: list[HealthCheck]) -> dict[str, CheckResult]:
    async def _one(hc: HealthCheck) -> tuple[str, CheckResult]:
        start = time.monotonic()
        try:
            details = await asyncio.wait_for(hc.check_fn(), timeout=hc.timeout_s)
            elapsed = (time.monotonic() - start) * 1000
            return hc.name, CheckResult(status="healthy", latency_ms=round(elapsed, 2), details=details or {})
        except TimeoutError:
            return hc.name, CheckResult(status="unhealthy", error="timeout")
        except Exception as exc:  # noqa: BLE001
            elapsed = (time.monotonic() - start) * 1000
            return hc.name, CheckResult(status="unhealthy", latency_ms=round(elapsed, 2), error=str(exc)[:200])

    pairs = await asyncio.gather(*[_one(hc) for hc in checks])
    return dict(pairs)


def _compute_status(check_results: dict[str, CheckResult], checks: list[HealthCheck]) -> Status:
    required = {hc.name for hc in checks if hc.required}
    failed = {name for name, result in check_results.items() if result.status != "healthy"}
    if failed & required:
        return "unhealthy"
    if failed:
        return "degraded"
    return "healthy"


def server_checks(server: SpreadsheetHttpServer) -> list[HealthCheck]:
    settings = server.settings

    async def default_locale() -> dict[str, Any]:
        return {"locale": server.locales.require(settings.default_locale)}

    async def tenants() -> dict[str, Any]:
        return {"spreadsheets": len(server.metadata_store.all()), "cached": len(server.tenants)}

    checks = [HealthCheck("default_locale", default_locale), HealthCheck("tenants", tenants)]

    if settings.static_dir is not None:

        async def static_dir() -> dict[str, Any]:
            if not Path(settings.static_dir).is_dir():
                raise FileNotFoundError(f"Static directory missing: {settings.static_dir}")
            return {"path": settings.static_dir}

        checks.append(HealthCheck("static_dir", static_dir, required=False))
    return checks


def create_health_router(
    service_name: str,
    version: str,
    checks: list[HealthCheck] | None = None,
    prefix: str = "/health",
) -> APIRouter:
    """``GET {prefix}`` runs every check, ``{prefix}/ready`` answers 503 unless
    all pass, ``{prefix}/live`` always answers 200."""
    router = APIRouter(tags=["health"])
    _checks: list[HealthCheck] = checks or []

    def _make_response(status: Status, check_results: dict[str, CheckResult]) -> HealthResponse:
        return HealthResponse(status=status, service=service_name, version=version, checks=check_results)

    @router.get(prefix, response_model=HealthResponse)
    async def health() -> JSONResponse:
        check_results = await _run_checks(_checks)
        status = _compute_status(check_results, _checks)
        code = 503 if status == "unhealthy" else 200
        return JSONResponse(content=_make_response(status, check_results).model_dump(), status_code=code)

    @router.get(f"{prefix}/ready", response_model=HealthResponse)
    async def readiness() -> JSONResponse:
        check_results = await _run_checks(_checks)
        status = _compute_status(check_results, _checks)
        code = 503 if status != "healthy" else 200
        return JSONResponse(content=_make_response(status, check_results).model_dump(), status_code=code)

    @router.get(f"{prefix}/live", response_model=LivenessResponse)
    async def liveness() -> LivenessResponse:
        return LivenessResponse()

    return router
