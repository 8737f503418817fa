"""
Shared singletons and request helpers.

Tags:
    sheet-server, api, dependency-injection, singletons

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Mapping
from functools import lru_cache

from sheetserver.api.settings import SheetServerSettings

CURRENT_USER_PARAMETER = "currentUser"


# ── Settings (singleton) ─────────────────────────────────────────────────


@lru_cache(maxsize=1)
def get_settings() -> SheetServerSettings:
    """Cached settings, loaded once per process."""
    return SheetServerSettings()


# ── Caller identity ──────────────────────────────────────────────────────


def current_user(headers: Mapping[str, str], parameters: Mapping[str, str], user_header: str) -> str | None:
    """Caller identity from *user_header*, else the ``currentUser`` parameter; ``None`` is anonymous."""
    user = headers.get(user_header.lower()) or parameters.get(CURRENT_USER_PARAMETER) or ""
    return user.strip() or None
