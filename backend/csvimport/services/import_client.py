"""
Client driver for the batch import protocol.

Pulls batches from ``GET {prefix}/imports/{id}/batch?start=N`` one after
another until the server reports an error, the last batch is done, or the
caller cancels. A cancel request lets the batch in flight finish.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable

import httpx

from csvimport.core.logging import get_logger

logger = get_logger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\{([^}]*)\}")


def progress_percent(batch: int, num_batches: int) -> int:
    """Progress after ``batch`` batches. A server-side ``numBatches`` of 0 means done."""
    if num_batches == 0:
        return 100
    return round(batch / num_batches * 100)


def counter_percent(counter: str | None) -> str | None:
    """Pull the value out of the ``{N}`` placeholder of a counter message."""
    if not counter:
        return None
    match = PLACEHOLDER_PATTERN.search(counter)
    return match.group(1) if match else None


def counter_text(counter: str) -> str:
    """Counter message with the placeholder braces removed."""
    return PLACEHOLDER_PATTERN.sub(r"\1", counter, count=1)


@dataclass
class ImportReport:
    """Everything a client run saw."""

    import_id: str
    responses: list[dict[str, Any]] = field(default_factory=list)
    num_imported: int = 0
    batches_run: int = 0
    percent: int = 0
    error: str | None = None
    canceled: bool = False

    @property
    def failed_rows(self) -> list[str]:
        rows = []
        for response in self.responses:
            rows.extend(response.get("rows") or [])
        return rows


class BatchImportClient:
    """Drive an import over HTTP, one batch per request."""

    def __init__(
        self,
        base_url: str | httpx.Client,
        prefix: str = "/api/v1",
        timeout: float = 300.0,
    ):
        if isinstance(base_url, httpx.Client):
            self.client = base_url
            self._owns_client = False
        else:
            self.client = httpx.Client(base_url=base_url, timeout=timeout)
            self._owns_client = True
        self.prefix = prefix.rstrip("/")

    def close(self):
        if self._owns_client:
            self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def batch_url(self, import_id: str) -> str:
        return f"{self.prefix}/imports/{import_id}/batch"

    def fetch_batch(self, import_id: str, batch: int) -> dict[str, Any]:
        response = self.client.get(self.batch_url(import_id), params={"start": batch})
        response.raise_for_status()
        return response.json()

    def run(
        self,
        import_id: str,
        on_batch: Callable[[int, dict[str, Any], ImportReport], None] | None = None,
        is_canceled: Callable[[], bool] | None = None,
    ) -> ImportReport:
        """
        Run an import from its first batch to its last.

        Args:
            import_id: Import session to drive
            on_batch: Called with (batch index, response, report) after each batch
            is_canceled: Polled before each new request

        Returns:
            ImportReport with the accumulated row count and every response
        """
        report = ImportReport(import_id=import_id)
        batch = 0

        while True:
            try:
                data = self.fetch_batch(import_id, batch)
            except httpx.HTTPStatusError as e:
                report.error = f"{e.response.status_code} ({e.response.reason_phrase})"
                break
            except httpx.HTTPError as e:
                report.error = str(e)
                break

            report.responses.append(data)
            report.batches_run += 1
            report.num_imported += data.get("numImported", 0)

            if on_batch is not None:
                on_batch(batch, data, report)

            if "error" in data:
                report.error = data["error"]
                break

            num_batches = data.get("numBatches", 0)
            report.percent = progress_percent(batch, num_batches)

            batch += 1
            if batch >= num_batches:
                report.percent = 100
                break
            if is_canceled is not None and is_canceled():
                report.canceled = True
                break

        logger.info(
            f"Import {import_id} finished: {report.num_imported} row(s) processed",
            extra={
                "extra_fields": {
                    "import_id": import_id,
                    "batches": report.batches_run,
                    "error": report.error,
                    "canceled": report.canceled,
                }
            },
        )
        return report
