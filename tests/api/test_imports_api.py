"""
Integration tests for the import wizard API
"""

import pytest
from fastapi.testclient import TestClient

from app.dependencies.imports import ImportSessionStore, get_publisher, get_session_store, get_write_service
from main import app


@pytest.fixture
def store():
    return ImportSessionStore()


@pytest.fixture
def client(store, fake_write_service, fake_publisher):
    """Test client with in-memory collaborators"""
    app.dependency_overrides[get_session_store] = lambda: store
    app.dependency_overrides[get_write_service] = lambda: fake_write_service
    app.dependency_overrides[get_publisher] = lambda: fake_publisher
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def session_id(client, scenario_csv):
    response = client.post(
        "/api/imports/sessions",
        files={"file": ("products.csv", scenario_csv, "text/csv")},
    )
    assert response.status_code == 201
    return response.json()["session_id"]


def url(session_id, path=""):
    return f"/api/imports/sessions/{session_id}{path}"


class TestCatalogEndpoints:
    """Test catalog and template downloads"""

    def test_list_fields(self, client):
        response = client.get("/api/imports/fields")

        assert response.status_code == 200
        body = response.json()
        assert [field["key"] for field in body["fields"]][:3] == ["sku", "name", "description"]
        assert "basic" in body["groups"]

    def test_csv_template(self, client):
        response = client.get("/api/imports/template")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "product-import-template.csv" in response.headers["content-disposition"]
        assert response.text.startswith("SKU,Product Name,Description")

    def test_xlsx_template(self, client):
        response = client.get("/api/imports/template", params={"format": "xlsx"})

        assert response.status_code == 200
        assert response.content[:2] == b"PK"

    def test_unknown_template_format(self, client):
        assert client.get("/api/imports/template", params={"format": "pdf"}).status_code == 422


class TestSessions:
    """Test session lifecycle"""

    def test_create_session(self, client, scenario_csv, store):
        response = client.post(
            "/api/imports/sessions",
            files={"file": ("products.csv", scenario_csv, "text/csv")},
        )

        assert response.status_code == 201
        body = response.json()
        assert body["stage"] == "upload"
        assert body["file"]["total_rows"] == 3
        assert body["mapping_status"]["is_complete"] is True
        assert len(body["preview"]["sample_rows"]) == 3
        assert len(store) == 1

    def test_rejected_upload_keeps_no_session(self, client, store):
        response = client.post(
            "/api/imports/sessions",
            files={"file": ("products.csv", b"", "text/csv")},
        )

        assert response.status_code == 400
        assert response.json()["code"] == "EMPTY_FILE"
        assert len(store) == 0

    def test_unknown_session(self, client):
        response = client.get(url("missing"))

        assert response.status_code == 404
        assert response.json()["details"] == {"session_id": "missing"}

    def test_delete_session(self, client, session_id, store):
        assert client.delete(url(session_id)).status_code == 204
        assert len(store) == 0

    def test_replace_file(self, client, session_id, csv_bytes):
        response = client.post(
            url(session_id, "/file"),
            files={"file": ("new.csv", csv_bytes(["SKU", "Name", "Price"], [["Z1", "Lamp", "20"]]), "text/csv")},
        )

        assert response.status_code == 200
        assert response.json()["file"]["name"] == "new.csv"

    def test_correlation_id_header(self, client):
        response = client.get("/api/imports/fields", headers={"X-Correlation-ID": "corr-1"})
        assert response.headers["X-Correlation-ID"] == "corr-1"


class TestNavigationAndMapping:
    """Test navigation and mapping endpoints"""

    def test_blocked_navigation(self, client, session_id):
        response = client.post(url(session_id, "/navigate"), json={"stage": "validation"})

        assert response.status_code == 200
        assert response.json()["moved"] is False
        assert response.json()["stage"] == "upload"
        assert response.json()["blocked_reasons"]

    def test_forward_navigation(self, client, session_id):
        response = client.post(url(session_id, "/navigate"), json={"stage": "mapping"})
        assert response.json() == {"stage": "mapping", "moved": True, "blocked_reasons": []}

    def test_detect(self, client, session_id):
        response = client.post(url(session_id, "/mappings/detect"))

        assert response.status_code == 200
        assert response.json()["confidence"] == 1.0

    def test_override_and_missing_required(self, client, session_id):
        response = client.put(url(session_id, "/mappings"), json={"csv_column": "Price", "ppm_field": ""})

        assert response.status_code == 200
        assert response.json()["status"]["missing_required"] == ["price"]

        response = client.get(url(session_id, "/validation"))
        assert response.status_code == 422
        assert response.json()["code"] == "MISSING_REQUIRED_FIELD"

    def test_unknown_field(self, client, session_id):
        response = client.put(url(session_id, "/mappings"), json={"csv_column": "Price", "ppm_field": "cost"})
        assert response.status_code == 422

    def test_auto_apply(self, client, session_id):
        client.put(url(session_id, "/mappings"), json={"csv_column": "Name", "ppm_field": "description"})
        response = client.post(url(session_id, "/mappings/auto-apply"))

        assert [m["ppm_field"] for m in response.json()["mappings"]] == ["sku", "description", "price"]


class TestValidationEndpoints:
    """Test validation, auto-fix and cell edits"""

    def test_validation(self, client, session_id):
        response = client.get(url(session_id, "/validation"))

        assert response.status_code == 200
        body = response.json()
        assert body["summary"]["error_count"] == 2
        assert [issue["code"] for issue in body["issues"]] == ["DUPLICATE_VALUE", "REQUIRED_FIELD_MISSING"]

    def test_autofix(self, client, csv_bytes):
        response = client.post(
            "/api/imports/sessions",
            files={"file": ("p.csv", csv_bytes(["SKU", "Name", "Price"], [["A1", "Widget", "9,99"]]), "text/csv")},
        )
        session_id = response.json()["session_id"]

        suggestions = client.get(url(session_id, "/autofix")).json()["suggestions"]
        assert suggestions[0]["after"] == "9.99"
        assert client.get(url(session_id, "/autofix"), params={"type": "warning"}).json()["suggestions"] == []

        response = client.post(url(session_id, "/autofix"), json={"suggestion_ids": [suggestions[0]["suggestion_id"]]})
        assert response.json()["is_valid"] is True

    def test_edit_cells(self, client, session_id):
        response = client.patch(
            url(session_id, "/cells"),
            json={"edits": [{"row": 1, "column_index": 0, "value": "A2"}, {"row": 2, "column_index": 0, "value": "A3"}]},
        )

        assert response.status_code == 200
        assert response.json()["summary"]["valid_rows"] == 3

    def test_edit_out_of_range(self, client, session_id):
        response = client.patch(url(session_id, "/cells"), json={"edits": [{"row": 9, "column_index": 0, "value": "x"}]})
        assert response.status_code == 400

    def test_validation_report(self, client, session_id):
        response = client.get(url(session_id, "/reports/validation-issues.csv"))

        assert response.status_code == 200
        assert response.text.splitlines()[0] == "Row,Column,Type,Message,Value,Suggestion"
        assert len(response.text.splitlines()) == 3


class TestExecutionEndpoints:
    """Test running imports over HTTP"""

    def test_execute_and_wait(self, client, session_id, fake_write_service, fake_publisher):
        response = client.post(url(session_id, "/execute"), params={"wait": "true"})

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "success"
        assert body["success_count"] == 1
        assert body["download_urls"]["error_report"] == f"/api/imports/sessions/{session_id}/reports/failed-rows.csv"
        assert fake_write_service.written[0]["sku"] == "A1"
        assert fake_publisher.events[0]["status"] == "success"

    def test_execute_in_background(self, client, session_id):
        response = client.post(url(session_id, "/execute"))

        assert response.status_code == 202
        assert response.json()["phase"] == "idle"

        result = client.get(url(session_id, "/result"))
        assert result.status_code == 200
        assert result.json()["status"] == "success"
        assert client.get(url(session_id, "/progress")).json()["phase"] == "completed"

    def test_options_and_unresolved_errors(self, client, session_id):
        response = client.put(url(session_id, "/options"), json={"skip_error_rows": False})
        assert response.status_code == 200

        response = client.post(url(session_id, "/execute"))
        assert response.status_code == 409
        assert response.json()["code"] == "UNRESOLVED_ERRORS"

    def test_invalid_chunk_size(self, client, session_id):
        response = client.put(url(session_id, "/options"), json={"chunk_size": 5})
        assert response.status_code == 422

    def test_execute_again_after_completion(self, client, session_id, fake_write_service):
        first = client.post(url(session_id, "/execute"), params={"wait": "true"}).json()
        response = client.post(url(session_id, "/execute"), params={"wait": "true"})

        assert response.status_code == 202
        assert response.json()["status"] == "success"
        assert response.json()["import_id"] != first["import_id"]
        assert len(fake_write_service.written) == 2

    def test_reset_finished_import(self, client, session_id):
        client.post(url(session_id, "/execute"), params={"wait": "true"})

        response = client.post(url(session_id, "/reset"))

        assert response.status_code == 200
        assert response.json()["stage"] == "validation"
        assert response.json()["result"] is None
        assert client.get(url(session_id, "/result")).status_code == 409
        assert client.put(url(session_id, "/options"), json={"dry_run": True}).status_code == 200

    def test_controls_without_run(self, client, session_id):
        for action in ("pause", "resume", "cancel"):
            assert client.post(url(session_id, f"/{action}")).status_code == 409
        assert client.get(url(session_id, "/result")).status_code == 409

    def test_cancel_after_completion(self, client, session_id):
        client.post(url(session_id, "/execute"), params={"wait": "true"})
        response = client.post(url(session_id, "/cancel"))

        assert response.json() == {"accepted": False, "phase": "completed"}

    def test_result_reports(self, client, session_id):
        client.post(url(session_id, "/execute"), params={"wait": "true"})

        failed = client.get(url(session_id, "/reports/failed-rows.csv"))
        assert failed.status_code == 200
        assert failed.text.splitlines()[0] == "Row,Status,Errors,SKU,Name,Price"
        assert len(failed.text.splitlines()) == 3

        summary = client.get(url(session_id, "/reports/import-result.csv"))
        assert "Status,success" in summary.text


class TestHealth:
    """Test health endpoints"""

    def test_health(self, client):
        response = client.get("/api/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_liveness(self, client):
        assert client.get("/api/health/live").json()["status"] == "alive"
