"""
API settings.

All values can be overridden via environment variables prefixed with
``SHEETSERVER_`` (``SHEETSERVER_PORT=9000``) or a ``.env`` file.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SheetServerSettings(BaseSettings):
    """Settings for the sheet-server HTTP API.

    Order of precedence (highest → lowest):
        1. Environment variables (``SHEETSERVER_STATIC_DIR``, etc.)
        2. ``.env`` file
        3. Defaults below
    """

    # ── Server ───────────────────────────────────────────────────────────
    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=12000, description="Bind port")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: str = Field(default="INFO", description="Log level")
    log_json: bool | None = Field(default=None, description="JSON logs; None picks by tty")
    server_url: str = Field(default="http://localhost:12000", description="Public base URL")

    # ── API ──────────────────────────────────────────────────────────────
    api_title: str = Field(default="sheet-server API", description="OpenAPI title")
    api_version: str = Field(default="0.1.0", description="OpenAPI version string")

    # ── Spreadsheets ─────────────────────────────────────────────────────
    default_locale: str = Field(default="en-AU", description="Locale for new spreadsheets")
    user_header: str = Field(default="X-User", description="Header carrying the caller identity")
    default_count: int = Field(default=100, ge=1, description="Page size for list endpoints")

    # ── Static files ─────────────────────────────────────────────────────
    static_dir: str | None = Field(default=None, description="Directory served for unmatched paths")

    # ── CORS ─────────────────────────────────────────────────────────────
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")

    model_config = SettingsConfigDict(
        env_prefix="SHEETSERVER_",
        env_file=".env",
        extra="ignore",
    )
