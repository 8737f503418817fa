"""
Shared pytest fixtures for sheet-server tests.

Provides:
- ``settings``: settings isolated from the environment
- ``server`` / ``app`` / ``client``: a fresh in-memory server per test
- ``spreadsheet_id``: a spreadsheet created through the API
- ``engine_setup``: a repository and engine without HTTP
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient

from sheetserver.api.app import create_app
from sheetserver.api.server import SpreadsheetHttpServer
from sheetserver.api.settings import SheetServerSettings
from sheetserver.core.locales import LocaleTable
from sheetserver.core.model import SpreadsheetMetadata
from sheetserver.core.providers import ProviderFactory
from sheetserver.core.stores import MetadataStore, StoreRepository
from sheetserver.engine.engine import SpreadsheetEngine

FIXED_NOW = datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)


@pytest.fixture()
def settings(monkeypatch: pytest.MonkeyPatch) -> SheetServerSettings:
    for name in ("SHEETSERVER_STATIC_DIR", "SHEETSERVER_DEFAULT_LOCALE", "SHEETSERVER_SERVER_URL"):
        monkeypatch.delenv(name, raising=False)
    return SheetServerSettings(_env_file=None, server_url="http://server", log_level="WARNING")


@pytest.fixture()
def server(settings: SheetServerSettings) -> SpreadsheetHttpServer:
    return SpreadsheetHttpServer(settings)


@pytest.fixture()
def app(settings: SheetServerSettings, server: SpreadsheetHttpServer):
    return create_app(settings=settings, server=server)


@pytest.fixture()
def client(app) -> TestClient:
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture()
def spreadsheet_id(client: TestClient) -> str:
    resp = client.post("/api/spreadsheet", json={"spreadsheetName": "Budget", "locale": "en-AU"})
    assert resp.status_code == 201, resp.text
    return resp.json()["spreadsheetId"]


@pytest.fixture()
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture()
def engine_setup():
    """``(repository, engine)`` for a stored en-AU spreadsheet."""
    metadata_store = MetadataStore()
    metadata = metadata_store.create(SpreadsheetMetadata(spreadsheet_name="Test", locale="en-AU"))
    repository = StoreRepository(metadata=metadata_store)
    provider = ProviderFactory(LocaleTable(), "http://server").provider_for(metadata)
    engine = SpreadsheetEngine(metadata.spreadsheet_id, repository, provider, clock=lambda: FIXED_NOW)
    return repository, engine
