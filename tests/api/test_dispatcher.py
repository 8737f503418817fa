"""Tests for the spreadsheet id path dispatcher."""

import pytest

from sheetserver.api.dispatcher import SpreadsheetIdPathDispatcher
from sheetserver.core.errors import InvalidSpreadsheetIdError, MissingSpreadsheetIdError, MissingStoreError
from sheetserver.core.ids import SpreadsheetId
from sheetserver.hateos.routing import HttpRequest


@pytest.fixture()
def dispatcher(server):
    return SpreadsheetIdPathDispatcher(2, server.tenants)


class TestDispatcher:
    def test_negative_component(self, server):
        with pytest.raises(ValueError):
            SpreadsheetIdPathDispatcher(-1, server.tenants)

    def test_nothing_after_id(self, dispatcher):
        with pytest.raises(MissingStoreError):
            dispatcher(HttpRequest("GET", "/api/spreadsheet/1"))
        with pytest.raises(MissingStoreError):
            dispatcher(HttpRequest("GET", "/api/spreadsheet/1/"))

    def test_missing_id(self, dispatcher):
        with pytest.raises(MissingSpreadsheetIdError) as exc_info:
            dispatcher(HttpRequest("GET", "/api/spreadsheet//cell/A1"))
        assert exc_info.value.message == "Missing SpreadsheetId"
        assert exc_info.value.status == 400

    def test_invalid_id(self, dispatcher):
        with pytest.raises(InvalidSpreadsheetIdError) as exc_info:
            dispatcher(HttpRequest("GET", "/api/spreadsheet/xyz/cell/A1"))
        assert exc_info.value.status == 400

    def test_unknown_spreadsheet(self, dispatcher, server):
        with pytest.raises(MissingStoreError):
            dispatcher(HttpRequest("GET", "/api/spreadsheet/ff/cell/A1"))
        assert len(server.tenants) == 0

    def test_routes_to_tenant(self, dispatcher, server, client, spreadsheet_id):
        response = dispatcher(HttpRequest("GET", f"/api/spreadsheet/{spreadsheet_id}/cell/*"))
        assert response.status == 200
        assert SpreadsheetId.parse(spreadsheet_id) in server.tenants

    def test_unrouted_tenant_path(self, dispatcher, client, spreadsheet_id):
        with pytest.raises(MissingStoreError):
            dispatcher(HttpRequest("GET", f"/api/spreadsheet/{spreadsheet_id}/nothing/here"))


class TestDispatchOverHttp:
    def test_invalid_id(self, client):
        resp = client.get("/api/spreadsheet/xyz/cell/A1")
        assert resp.status_code == 400
        assert "Invalid SpreadsheetId" in resp.json()["detail"]

    def test_unknown_spreadsheet(self, client):
        resp = client.get("/api/spreadsheet/ff/cell/A1")
        assert resp.status_code == 404
        assert resp.headers["content-type"].startswith("application/problem+json")

    def test_trailing_slash_is_not_found(self, client, spreadsheet_id):
        assert client.get(f"/api/spreadsheet/{spreadsheet_id}/").status_code == 404
