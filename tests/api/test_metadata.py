"""Tests for spreadsheet metadata endpoints."""

from sheetserver.core.ids import SpreadsheetId


class TestCreate:
    def test_create(self, client):
        resp = client.post("/api/spreadsheet", json={"spreadsheetName": "Budget", "locale": "en-au"})
        assert resp.status_code == 201
        assert resp.headers["X-Content-Type-Name"] == "SpreadsheetMetadata"
        body = resp.json()
        assert body["spreadsheetName"] == "Budget"
        assert body["locale"] == "en-AU"
        assert "createdTimestamp" in body["auditInfo"]
        SpreadsheetId.parse(body["spreadsheetId"])

    def test_ids_are_unique(self, client):
        first = client.post("/api/spreadsheet").json()["spreadsheetId"]
        second = client.post("/api/spreadsheet").json()["spreadsheetId"]
        assert first != second

    def test_defaults(self, client):
        body = client.post("/api/spreadsheet").json()
        assert body["spreadsheetName"] == "Untitled"
        assert body["locale"] == "en-AU"

    def test_locale_from_accept_language(self, client):
        resp = client.post("/api/spreadsheet", json={}, headers={"Accept-Language": "xx, fr-FR;q=0.9"})
        assert resp.json()["locale"] == "fr-FR"

    def test_unsupported_locale(self, client):
        assert client.post("/api/spreadsheet", json={"locale": "xx-YY"}).status_code == 400

    def test_unknown_property(self, client):
        assert client.post("/api/spreadsheet", json={"colour": "red"}).status_code == 400

    def test_creator_recorded(self, client):
        body = client.post("/api/spreadsheet", headers={"X-User": "bob"}).json()
        assert body["auditInfo"]["createdBy"] == "bob"

    def test_user_from_parameter(self, client):
        body = client.post("/api/spreadsheet", params={"currentUser": "carol"}).json()
        assert body["auditInfo"]["createdBy"] == "carol"


class TestLoad:
    def test_load(self, client, spreadsheet_id):
        body = client.get(f"/api/spreadsheet/{spreadsheet_id}").json()
        assert body["spreadsheetId"] == spreadsheet_id
        assert body["spreadsheetName"] == "Budget"

    def test_unknown(self, client):
        assert client.get("/api/spreadsheet/ffff").status_code == 404

    def test_invalid_id(self, client):
        resp = client.get("/api/spreadsheet/not-hex")
        assert resp.status_code == 400
        assert resp.json()["status"] == 400

    def test_list_and_find(self, client, spreadsheet_id):
        client.post("/api/spreadsheet", json={"spreadsheetName": "Holidays"})
        resp = client.get("/api/spreadsheet/*")
        assert resp.headers["X-Content-Type-Name"] == "SpreadsheetMetadataSet"
        assert [m["spreadsheetName"] for m in resp.json()] == ["Budget", "Holidays"]

        found = client.get("/api/spreadsheet/*", params={"name": "bud"}).json()
        assert [m["spreadsheetId"] for m in found] == [spreadsheet_id]

        page = client.get("/api/spreadsheet/*", params={"offset": "1", "count": "1"}).json()
        assert [m["spreadsheetName"] for m in page] == ["Holidays"]

    def test_bad_paging(self, client):
        assert client.get("/api/spreadsheet/*", params={"count": "-1"}).status_code == 400


class TestSave:
    def test_save_keeps_locale(self, client, spreadsheet_id):
        resp = client.post(f"/api/spreadsheet/{spreadsheet_id}", json={"spreadsheetName": "New"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["spreadsheetName"] == "New"
        assert body["locale"] == "en-AU"

    def test_mismatched_id(self, client, spreadsheet_id):
        other = format(SpreadsheetId.parse(spreadsheet_id).value + 100, "x")
        resp = client.post(f"/api/spreadsheet/{spreadsheet_id}", json={"spreadsheetId": other})
        assert resp.status_code == 400

    def test_invalid_selector(self, client, spreadsheet_id):
        resp = client.post(f"/api/spreadsheet/{spreadsheet_id}", json={"parsers": ["nope"]})
        assert resp.status_code == 400


class TestPatch:
    def test_merge(self, client, spreadsheet_id):
        url = f"/api/spreadsheet/{spreadsheet_id}"
        client.patch(url, json={"findQuery": "x"})
        resp = client.patch(url, json={"spreadsheetName": "Renamed"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["spreadsheetName"] == "Renamed"
        assert body["findQuery"] == "x"
        assert body["locale"] == "en-AU"

    def test_null_removes(self, client, spreadsheet_id):
        url = f"/api/spreadsheet/{spreadsheet_id}"
        client.patch(url, json={"findQuery": "x"})
        body = client.patch(url, json={"findQuery": None}).json()
        assert "findQuery" not in body

    def test_rejected(self, client, spreadsheet_id):
        url = f"/api/spreadsheet/{spreadsheet_id}"
        assert client.patch(url, json={"spreadsheetId": "1"}).status_code == 400
        assert client.patch(url, json={"auditInfo": None}).status_code == 400
        assert client.patch(url, json={"colour": "red"}).status_code == 400
        assert client.patch(url, json={"locale": None}).status_code == 400
        assert client.patch(url, json=["not", "an", "object"]).status_code == 400
        assert client.get(url).json()["spreadsheetName"] == "Budget"

    def test_needs_json(self, client, spreadsheet_id):
        resp = client.patch(f"/api/spreadsheet/{spreadsheet_id}", content=b"x", headers={"content-type": "text/plain"})
        assert resp.status_code == 415


class TestDelete:
    def test_delete_evicts_tenant(self, client, server, spreadsheet_id):
        client.get(f"/api/spreadsheet/{spreadsheet_id}/cell/*")
        assert SpreadsheetId.parse(spreadsheet_id) in server.tenants

        assert client.delete(f"/api/spreadsheet/{spreadsheet_id}").status_code == 204
        assert SpreadsheetId.parse(spreadsheet_id) not in server.tenants
        assert client.get(f"/api/spreadsheet/{spreadsheet_id}").status_code == 404
        assert client.get(f"/api/spreadsheet/{spreadsheet_id}/cell/*").status_code == 404

    def test_delete_unknown(self, client):
        assert client.delete("/api/spreadsheet/ffff").status_code == 404


class TestProperties:
    def test_load(self, client, spreadsheet_id):
        base = f"/api/spreadsheet/{spreadsheet_id}/metadata"
        assert client.get(f"{base}/spreadsheetName").json() == {"spreadsheetName": "Budget"}
        assert client.get(f"{base}/findQuery").status_code == 204
        assert client.get(f"{base}/*").json()["spreadsheetId"] == spreadsheet_id
        assert client.get(f"{base}/colour").status_code == 400

    def test_save(self, client, spreadsheet_id):
        base = f"/api/spreadsheet/{spreadsheet_id}/metadata"
        resp = client.post(f"{base}/spreadsheetName", json={"spreadsheetName": "Renamed"})
        assert resp.status_code == 200
        assert resp.json()["spreadsheetName"] == "Renamed"
        assert client.post(f"{base}/spreadsheetName", json={"other": 1}).status_code == 400
        assert client.post(f"{base}/auditInfo", json={"auditInfo": {}}).status_code == 400

    def test_delete(self, client, spreadsheet_id):
        base = f"/api/spreadsheet/{spreadsheet_id}/metadata"
        assert client.delete(f"{base}/spreadsheetName").status_code == 204
        assert client.get(f"{base}/spreadsheetName").status_code == 204
        assert client.delete(f"{base}/locale").status_code == 400
