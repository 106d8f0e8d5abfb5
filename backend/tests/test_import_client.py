"""Tests for the batch import client driver."""

import pytest
from fastapi.testclient import TestClient

from csvimport.services.import_client import (
    BatchImportClient,
    counter_percent,
    counter_text,
    progress_percent,
)


@pytest.fixture
def import_id(client: TestClient, template, parent, write_csv) -> str:
    path = write_csv("name,title\na,Alpha\n,Nameless\nc,Gamma\nd,Delta\ne,Epsilon\n")
    response = client.post(
        "/api/v1/imports",
        json={
            "template_id": template.id,
            "parent_id": parent.id,
            "source_path": path,
            "column_mapping": ["name", "title"],
            "batch_size": 2,
        },
    )
    assert response.status_code == 201, response.text
    return response.json()["import_id"]


class TestHelpers:
    def test_progress_percent(self):
        assert progress_percent(0, 0) == 100
        assert progress_percent(1, 4) == 25
        assert progress_percent(2, 3) == 67

    def test_counter_placeholder(self):
        counter = "Processing batch 2 out of 5 - {40}% complete"

        assert counter_percent(counter) == "40"
        assert counter_text(counter) == "Processing batch 2 out of 5 - 40% complete"
        assert counter_percent("no placeholder") is None
        assert counter_percent(None) is None


class TestBatchImportClient:
    def test_runs_every_batch(self, client: TestClient, import_id):
        seen = []

        report = BatchImportClient(client).run(
            import_id, on_batch=lambda batch, data, report: seen.append(batch)
        )

        assert seen == [0, 1, 2]
        assert report.batches_run == 3
        assert report.num_imported == 4
        assert report.percent == 100
        assert report.error is None
        assert not report.canceled
        assert report.failed_rows == ["Row 3: no page name could be derived"]
        assert report.responses[-1]["counter"] == "All done - {100}% complete"

    def test_cancel_lets_current_batch_finish(self, client: TestClient, import_id):
        report = BatchImportClient(client).run(import_id, is_canceled=lambda: True)

        assert report.canceled
        assert report.batches_run == 1
        assert report.num_imported == 1
        assert report.percent == 0

    def test_stops_on_error(self, client: TestClient):
        report = BatchImportClient(client).run("no-such-import")

        assert report.error == "Import session not found"
        assert report.batches_run == 1
        assert report.num_imported == 0

    def test_http_error(self, client: TestClient, import_id):
        report = BatchImportClient(client, prefix="/api/v2").run(import_id)

        assert report.error == "404 (Not Found)"
        assert report.responses == []
