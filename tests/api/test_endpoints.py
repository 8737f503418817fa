"""End-to-end tests for the per-spreadsheet cell, label, column and row endpoints."""

import pytest


def _cells(**texts):
    return {"cells": {ref: {"formula": {"text": text}} for ref, text in texts.items()}}


@pytest.fixture()
def base(spreadsheet_id):
    return f"/api/spreadsheet/{spreadsheet_id}"


class TestCells:
    def test_save_then_recompute(self, client, base):
        resp = client.post(f"{base}/cell/B2", json=_cells(B2="=1+2"))
        assert resp.status_code == 200
        assert resp.headers["X-Content-Type-Name"] == "SpreadsheetDelta"
        assert resp.json()["cells"]["B2"]["formula"]["value"] == 3

        resp = client.get(f"{base}/cell/B2/force-recompute")
        assert resp.status_code == 200
        assert resp.json()["cells"]["B2"]["formula"]["value"] == 3

    def test_load_all(self, client, base):
        client.post(f"{base}/cell/A1:B2", json=_cells(A1="1", B2="=A1*10"))
        body = client.get(f"{base}/cell/*").json()
        assert set(body["cells"]) == {"A1", "B2"}
        assert body["cells"]["B2"]["formula"]["value"] == 10

    def test_clear_value_evaluation(self, client, base):
        client.post(f"{base}/cell/A1", json=_cells(A1="=2*3"))
        body = client.get(f"{base}/cell/A1/clear-value-error-skip-evaluate").json()
        assert "value" not in body["cells"]["A1"]["formula"]

    def test_put_not_allowed(self, client, base):
        resp = client.put(f"{base}/cell/A1", json=_cells(A1="1"))
        assert resp.status_code == 405
        assert resp.headers["Allow"] == "DELETE, GET, PATCH, POST"

    def test_cells_outside_selection(self, client, base):
        resp = client.post(f"{base}/cell/A1", json=_cells(C3="1"))
        assert resp.status_code == 400

    def test_invalid_selection(self, client, base):
        assert client.get(f"{base}/cell/1A2").status_code == 400

    def test_unknown_relation(self, client, base):
        assert client.get(f"{base}/cell/A1/nope").status_code == 404

    def test_delete(self, client, base):
        client.post(f"{base}/cell/A1", json=_cells(A1="1"))
        resp = client.delete(f"{base}/cell/A1")
        assert resp.status_code == 200
        assert resp.json()["deletedCells"] == ["A1"]
        assert client.get(f"{base}/cell/*").json().get("cells", {}) == {}

    def test_fill(self, client, base):
        resp = client.post(f"{base}/cell/A1:A3/fill", json=_cells(A1="=B1"))
        assert resp.status_code == 200
        cells = client.get(f"{base}/cell/*").json()["cells"]
        assert cells["A3"]["formula"]["text"] == "=B3"

    def test_fill_all_rejected(self, client, base):
        assert client.post(f"{base}/cell/*/fill", json=_cells(A1="1")).status_code == 400

    def test_find(self, client, base):
        client.post(f"{base}/cell/A1:A3", json=_cells(A1="apple", A2="pear", A3="crabapple"))
        body = client.get(f"{base}/cell/*/find", params={"query": "apple"}).json()
        assert body["matchedCells"] == ["A1", "A3"]
        assert client.get(f"{base}/cell/*/find", params={"max": "x"}).status_code == 400

    def test_references(self, client, base):
        client.post(f"{base}/cell/A1:C1", json=_cells(A1="1", B1="=A1", C1="2"))
        body = client.get(f"{base}/cell/A1/references").json()
        assert list(body["cells"]) == ["B1"]

    def test_user_stamped_on_metadata(self, client, base):
        client.post(f"{base}/cell/A1", json=_cells(A1="1"), headers={"X-User": "alice"})
        metadata = client.get(base).json()
        assert metadata["auditInfo"]["modifiedBy"] == "alice"

    def test_not_json_body(self, client, base):
        resp = client.post(f"{base}/cell/A1", content=b"A1=1", headers={"content-type": "text/plain"})
        assert resp.status_code == 415


class TestPatchWithLabels:
    def test_label_keys_resolved(self, client, base):
        client.post(f"{base}/label", json={"labels": [{"label": "Total", "reference": "A1"}]})
        resp = client.patch(f"{base}/cell/A1", json=_cells(Total="5"))
        assert resp.status_code == 200
        assert resp.json()["cells"]["A1"]["formula"]["value"] == 5

    def test_unknown_label_changes_nothing(self, client, base):
        client.post(f"{base}/cell/A1", json=_cells(A1="1"))
        resp = client.patch(f"{base}/cell/A1:B2", json=_cells(B2="2", Missing="3"))
        assert resp.status_code == 404
        cells = client.get(f"{base}/cell/*").json()["cells"]
        assert set(cells) == {"A1"}

    def test_patch_keeps_unsent_fields(self, client, base):
        client.post(f"{base}/cell/A1", json=_cells(A1="1"))
        resp = client.patch(f"{base}/cell/A1", json={"cells": {"A1": {"style": {"bold": True}}}})
        cell = resp.json()["cells"]["A1"]
        assert cell["formula"]["text"] == "1"
        assert cell["style"] == {"bold": True}

    def test_patch_without_json(self, client, base):
        resp = client.patch(f"{base}/cell/A1", content=b"{}", headers={"content-type": "text/plain"})
        assert resp.status_code == 415


class TestLabels:
    def test_crud(self, client, base):
        mapping = {"label": "Total", "reference": "A1"}
        resp = client.post(f"{base}/label", json={"labels": [mapping]})
        assert resp.status_code == 201

        assert client.get(f"{base}/label/Total").json()["labels"] == [mapping]
        assert client.get(f"{base}/label/*").json()["labels"] == [mapping]
        assert client.get(f"{base}/label/Missing").status_code == 204

        resp = client.delete(f"{base}/label/Total")
        assert resp.status_code == 200
        assert resp.json()["deletedLabels"] == ["Total"]
        assert client.delete(f"{base}/label/Total").status_code == 404

    def test_rename(self, client, base):
        client.post(f"{base}/label", json={"labels": [{"label": "Total", "reference": "A1"}]})
        resp = client.post(f"{base}/label/Total", json={"labels": [{"label": "Grand", "reference": "A1"}]})
        assert resp.status_code == 200
        assert resp.json()["deletedLabels"] == ["Total"]
        assert client.get(f"{base}/label/Total").status_code == 204

    def test_needs_one_mapping(self, client, base):
        assert client.post(f"{base}/label", json={"labels": []}).status_code == 400

    def test_invalid_name(self, client, base):
        assert client.get(f"{base}/label/A1").status_code == 400

    def test_label_as_cell_selection(self, client, base):
        client.post(f"{base}/cell/B3", json=_cells(B3="42"))
        client.post(f"{base}/label", json={"labels": [{"label": "Answer", "reference": "B3"}]})
        body = client.get(f"{base}/cell/Answer").json()
        assert body["cells"]["B3"]["formula"]["value"] == 42

    def test_cell_labels(self, client, base):
        client.post(f"{base}/label", json={"labels": [{"label": "Block", "reference": "A1:B2"}]})
        body = client.get(f"{base}/cell/B2/labels").json()
        assert [m["label"] for m in body["labels"]] == ["Block"]


class TestColumnsAndRows:
    def test_insert_before(self, client, base):
        client.post(f"{base}/cell/B1", json=_cells(B1="x"))
        resp = client.post(f"{base}/column/B/insert-before", params={"count": "2"})
        assert resp.status_code == 200
        assert resp.json()["deletedCells"] == ["B1"]
        assert set(client.get(f"{base}/cell/*").json()["cells"]) == {"D1"}

    def test_insert_after(self, client, base):
        client.post(f"{base}/cell/A2", json=_cells(A2="x"))
        client.post(f"{base}/row/1/insert-after")
        assert set(client.get(f"{base}/cell/*").json()["cells"]) == {"A3"}

    def test_insert_count_must_be_positive(self, client, base):
        assert client.post(f"{base}/column/B/insert-before", params={"count": "0"}).status_code == 400

    def test_delete_range(self, client, base):
        client.post(f"{base}/cell/A1:D1", json=_cells(A1="1", D1="=A1+1"))
        resp = client.delete(f"{base}/column/B:C")
        assert resp.status_code == 200
        assert resp.json()["deletedColumns"] == ["B", "C"]
        cells = client.get(f"{base}/cell/*").json()["cells"]
        assert cells["B1"]["formula"]["text"] == "=A1+1"

    def test_clear(self, client, base):
        client.post(f"{base}/cell/A1:B1", json=_cells(A1="1", B1="2"))
        client.post(f"{base}/column/A/clear")
        assert set(client.get(f"{base}/cell/*").json()["cells"]) == {"B1"}

    def test_patch_width(self, client, base):
        resp = client.patch(f"{base}/column/C", json={"columnWidths": {"C": 80.0}})
        assert resp.status_code == 200
        assert resp.json()["columnWidths"] == {"C": 80.0}

    def test_get_not_allowed(self, client, base):
        resp = client.get(f"{base}/column/A")
        assert resp.status_code == 405
        assert resp.headers["Allow"] == "DELETE, PATCH"

    def test_wildcard_rejected(self, client, base):
        assert client.delete(f"{base}/row/*").status_code == 400


class TestTenantProviders:
    def test_narrowed_by_metadata(self, client, base):
        client.patch(base, json={"formatters": ["date", "number"]})
        body = client.get(f"{base}/formatter/*").json()
        assert [info["name"] for info in body] == ["date", "number"]
        assert client.get("/api/formatter/*").json()[0]["name"] == "automatic"

    def test_comparators_and_functions(self, client, base):
        client.patch(base, json={"comparators": ["text"]})
        assert [info["name"] for info in client.get(f"{base}/comparator/*").json()] == ["text"]
        assert "sum" in [info["name"] for info in client.get(f"{base}/function/*").json()]


class TestSort:
    def test_sort(self, client, base):
        client.post(f"{base}/cell/A1:A3", json=_cells(A1="b", A2="c", A3="a"))
        resp = client.get(f"{base}/cell/A1:A3/sort", params={"comparators": "A=text"})
        assert resp.status_code == 200
        cells = client.get(f"{base}/cell/*").json()["cells"]
        assert [cells[ref]["formula"]["text"] for ref in ("A1", "A2", "A3")] == ["a", "b", "c"]

    def test_missing_comparators(self, client, base):
        assert client.get(f"{base}/cell/A1:A3/sort").status_code == 400

    def test_comparator_not_offered(self, client, base):
        client.patch(base, json={"comparators": ["text"]})
        resp = client.get(f"{base}/cell/A1:A3/sort", params={"comparators": "A=number"})
        assert resp.status_code == 400


class TestCellReferenceSimilarities:
    def test_labels(self, client, base):
        client.post(f"{base}/label", json={"labels": [{"label": "Total", "reference": "A1"}]})
        resp = client.get(f"{base}/cell-reference/Tot", params={"count": "5"})
        assert resp.status_code == 200
        assert resp.headers["X-Content-Type-Name"] == "SpreadsheetExpressionReferenceSimilarities"
        assert resp.json() == {"labels": [{"label": "Total", "reference": "A1"}]}

    def test_cell(self, client, base):
        body = client.get(f"{base}/cell-reference/B2", params={"count": "1"}).json()
        assert body == {"cellReference": "B2"}

    def test_count_required(self, client, base):
        assert client.get(f"{base}/cell-reference/Tot").status_code == 400
