"""Tests for the import API endpoints."""

from io import BytesIO
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from csvimport.core.config import get_settings
from csvimport.models.page import Page
from csvimport.services import batch_importer
from csvimport.services.csv_stream import CsvRecordStream


@pytest.fixture
def create_import(client: TestClient, template, parent):
    """Create an import session over the API and return its summary."""
    def _create(source_path: str, column_mapping=("name", "title"), **options) -> dict:
        payload = {
            "template_id": template.id,
            "parent_id": parent.id,
            "source_path": source_path,
            "column_mapping": list(column_mapping),
            **options,
        }
        response = client.post("/api/v1/imports", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _create


def batch(client: TestClient, import_id: str, start) -> dict:
    response = client.get(f"/api/v1/imports/{import_id}/batch", params={"start": start})
    assert response.status_code == 200
    return response.json()


class TestUploadAndAnalyze:
    def test_upload_csv(self, client: TestClient, storage_dirs):
        files = {"file": ("products.csv", BytesIO(b"name,title\na,Alpha\n"), "text/csv")}

        response = client.post("/api/v1/imports/upload", files=files)

        assert response.status_code == 200
        data = response.json()
        assert data["filename"] == "products.csv"
        assert data["size"] == 19
        stored = Path(data["source_path"])
        assert stored.parent == storage_dirs / "uploads"
        assert stored.read_bytes() == b"name,title\na,Alpha\n"

    def test_upload_rejects_non_csv(self, client: TestClient):
        files = {"file": ("products.xlsx", BytesIO(b"binary"), "application/octet-stream")}

        response = client.post("/api/v1/imports/upload", files=files)

        assert response.status_code == 400

    def test_upload_too_large(self, client: TestClient, monkeypatch, storage_dirs):
        monkeypatch.setattr(get_settings(), "MAX_UPLOAD_SIZE", 10)
        files = {"file": ("products.csv", BytesIO(b"name,title\na,Alpha\n"), "text/csv")}

        response = client.post("/api/v1/imports/upload", files=files)

        assert response.status_code == 413
        assert list((storage_dirs / "uploads").iterdir()) == []

    def test_analyze(self, client: TestClient, write_csv):
        path = write_csv("name,title\na,Alpha\n\nb,Beta\n")

        response = client.post("/api/v1/imports/analyze", json={"source_path": path})

        assert response.status_code == 200
        data = response.json()
        assert data["num_rows"] == 3
        assert data["num_data_rows"] == 2
        assert data["header_row"] == ["name", "title"]

    def test_analyze_missing_file(self, client: TestClient, tmp_path):
        response = client.post(
            "/api/v1/imports/analyze", json={"source_path": str(tmp_path / "nope.csv")}
        )

        assert response.status_code == 404


class TestImportSessions:
    def test_create(self, create_import, sample_csv):
        summary = create_import(sample_csv, batch_size=1)

        assert summary["num_rows"] == 2
        assert summary["num_batches"] == 2
        assert summary["duplicate_policy"] == "skip"

    def test_default_batch_size(self, create_import, sample_csv):
        summary = create_import(sample_csv)

        assert summary["batch_size"] == get_settings().DEFAULT_BATCH_SIZE

    def test_create_invalid_mapping(self, client: TestClient, template, parent, sample_csv):
        response = client.post(
            "/api/v1/imports",
            json={
                "template_id": template.id,
                "parent_id": parent.id,
                "source_path": sample_csv,
                "column_mapping": ["name", "weight"],
            },
        )

        assert response.status_code == 400
        assert "weight" in response.json()["detail"]

    def test_create_unknown_template(self, client: TestClient, parent, sample_csv):
        response = client.post(
            "/api/v1/imports",
            json={
                "template_id": 999,
                "parent_id": parent.id,
                "source_path": sample_csv,
                "column_mapping": ["name", "title"],
            },
        )

        assert response.status_code == 404

    def test_get_and_delete(self, client: TestClient, create_import, sample_csv):
        import_id = create_import(sample_csv)["import_id"]

        assert client.get(f"/api/v1/imports/{import_id}").status_code == 200
        assert client.delete(f"/api/v1/imports/{import_id}").status_code == 204
        assert client.get(f"/api/v1/imports/{import_id}").status_code == 404
        assert client.delete(f"/api/v1/imports/{import_id}").status_code == 404


class TestBatchEndpoint:
    """Test the batch pull protocol."""

    def test_progress_keys(self, client: TestClient, create_import, sample_csv):
        import_id = create_import(sample_csv, batch_size=1)["import_id"]

        data = batch(client, import_id, 0)

        assert data == {
            "counter": "Processing batch 1 out of 2 - {50}% complete",
            "numBatches": 2,
            "numImported": 1,
            "numCreated": 1,
            "numModified": 0,
            "numSkipped": 0,
            "numFailed": 0,
            "usage": data["usage"],
            "rowStart": 2,
            "rowStop": 2,
            "csvNumRows": 2,
        }
        assert data["usage"].startswith("(skipped: 0, imported: 1, updated: 0) in ")

    def test_last_batch(self, client: TestClient, db, parent, create_import, sample_csv):
        import_id = create_import(sample_csv, batch_size=1)["import_id"]
        batch(client, import_id, 0)

        data = batch(client, import_id, 1)

        assert data["counter"] == "All done - {100}% complete"
        assert (data["rowStart"], data["rowStop"]) == (3, 3)
        assert db.query(Page).filter(Page.parent_id == parent.id).count() == 2

    def test_start_out_of_range(self, client: TestClient, create_import, sample_csv):
        import_id = create_import(sample_csv, batch_size=1)["import_id"]

        assert batch(client, import_id, 5) == {"error": "Start parameter out of range"}
        assert batch(client, import_id, "abc") == {"error": "Start parameter out of range"}

    def test_unknown_import(self, client: TestClient):
        assert batch(client, "no-such-import", 0) == {"error": "Import session not found"}

    def test_source_removed(self, client: TestClient, create_import, sample_csv):
        import_id = create_import(sample_csv)["import_id"]
        Path(sample_csv).unlink()

        data = batch(client, import_id, 0)

        assert data["error"].startswith("Source file not found")

    def test_failed_rows_reported(self, client: TestClient, create_import, write_csv):
        path = write_csv("name,title\n,Gamma\nd,Delta\n")
        import_id = create_import(path)["import_id"]

        data = batch(client, import_id, 0)

        assert data["numFailed"] == 1
        assert data["numImported"] == 1
        assert data["rows"] == ["Row 2: no page name could be derived"]
        assert data["usage"].startswith("(skipped: 0, imported: 1, updated: 0, failed: 1)")

    def test_offset_index_seeks_to_batch(
        self, client: TestClient, monkeypatch, db, parent, create_import, write_csv
    ):
        path = write_csv("name\na\nb\nc\nd\ne\n")
        summary = create_import(path, column_mapping=["name"], batch_size=2, use_offset_index=True)
        import_id = summary["import_id"]
        offsets = []

        class RecordingStream(CsvRecordStream):
            def __init__(self, *args, **kwargs):
                super().__init__(*args, **kwargs)
                offsets.append(kwargs.get("start_offset", 0))

        monkeypatch.setattr(batch_importer, "CsvRecordStream", RecordingStream)

        data = batch(client, import_id, 2)

        assert offsets == [13]
        assert (data["rowStart"], data["rowStop"]) == (6, 6)
        assert [p.name for p in db.query(Page).filter(Page.parent_id == parent.id)] == ["e"]

    def test_max_rows_ends_import(self, client: TestClient, create_import, write_csv):
        path = write_csv("name\na\nb\nc\nd\n")
        import_id = create_import(path, column_mapping=["name"], max_rows=2, batch_size=0)[
            "import_id"
        ]

        data = batch(client, import_id, 0)

        assert data["numBatches"] == 0
        assert data["numCreated"] == 1
        assert data["counter"] == "All done - {100}% complete"


def test_health(client: TestClient):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Request-ID" in response.headers


def test_readiness(client: TestClient):
    response = client.get("/health/ready")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ready",
        "checks": {"database": "connected", "uploads": "writable", "files": "writable"},
    }
