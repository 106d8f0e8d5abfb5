"""
Attachment storage.

Files for a page live in ``FILES_DIR/<page id>/``, which is why attachment
locators are only flushed once the page has been written and has an id.
Locators are URLs (downloaded) or local paths (copied); relative paths are
taken relative to the CSV file.
"""

import os
import shutil
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx

from csvimport.core.config import get_settings
from csvimport.core.logging import get_logger
from csvimport.models.page import Page, Template
from csvimport.services.errors import AttachmentError
from csvimport.services.field_mapper import PendingAttachmentSet
from csvimport.services.page_names import sanitize_page_name, with_suffix
from csvimport.services.record_store import RecordStore

logger = get_logger(__name__)


def is_url(locator: str) -> bool:
    return urlparse(locator).scheme in ("http", "https")


def storage_filename(locator: str) -> str:
    """Derive a safe file name from a path or URL."""
    raw = unquote(urlparse(locator).path) if is_url(locator) else locator
    base = os.path.basename(raw.replace("\\", "/"))
    stem, ext = os.path.splitext(base)
    stem = sanitize_page_name(stem) or "file"
    return stem + ext.lower()


class AttachmentStorage:
    """Copy or download attachment files into a page's file directory."""

    def __init__(
        self,
        files_dir: str | None = None,
        base_dir: str | None = None,
        client: httpx.Client | None = None,
    ):
        settings = get_settings()
        self.files_dir = Path(files_dir or settings.FILES_DIR)
        self.base_dir = Path(base_dir) if base_dir else None
        self._client = client
        self._timeout = settings.ATTACHMENT_DOWNLOAD_TIMEOUT
        # Files written or replaced since the last commit/rollback
        self._stored: list[Path] = []
        self._replaced: list[Path] = []

    @property
    def client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(timeout=self._timeout, follow_redirects=True)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()

    def page_dir(self, page: Page) -> Path:
        return self.files_dir / str(page.id)

    def store(self, page: Page, locator: str) -> str:
        """
        Place the file behind ``locator`` in the page's directory.

        Returns:
            The stored file name

        Raises:
            AttachmentError: The file cannot be read, downloaded or written
        """
        target_dir = self.page_dir(page)
        target_dir.mkdir(parents=True, exist_ok=True)
        target = self._free_path(target_dir, storage_filename(locator))

        if is_url(locator):
            self._download(locator, target)
        else:
            self._copy(locator, target)
        self._stored.append(target)

        return target.name

    def flush(self, store: RecordStore, page: Page, pending: PendingAttachmentSet) -> int:
        """
        Attach all pending locators to a persisted page.

        Locators already attached to the same field are skipped. A single
        file field drops its previous file when a different one arrives.

        Returns:
            Number of files added
        """
        template: Template = page.template
        added = 0

        for field_name, locators in pending.items():
            template_field = template.get_field(field_name) if template else None
            single = template_field is not None and template_field.is_single
            existing = [f for f in page.files if f.field_name == field_name]
            known_sources = {f.source for f in existing}

            for locator in locators:
                if locator in known_sources:
                    continue
                if single:
                    for old in existing:
                        page.files.remove(old)
                        self._replaced.append(self.page_dir(page) / old.filename)
                    existing = []
                filename = self.store(page, locator)
                store.add_file(page, field_name, filename, locator)
                known_sources.add(locator)
                added += 1

        return added

    def commit(self) -> None:
        """Delete the files whose rows were replaced in the committed write."""
        for path in self._replaced:
            path.unlink(missing_ok=True)
        self._stored = []
        self._replaced = []

    def rollback(self) -> None:
        """Delete the files stored for a write that was rolled back."""
        for path in self._stored:
            path.unlink(missing_ok=True)
        self._stored = []
        self._replaced = []

    def _copy(self, locator: str, target: Path) -> None:
        source = Path(locator)
        if not source.is_absolute() and self.base_dir is not None:
            source = self.base_dir / source
        if not source.is_file():
            raise AttachmentError(f"Attachment not found: {locator}")
        try:
            shutil.copyfile(source, target)
        except OSError as e:
            raise AttachmentError(f"Could not copy {locator}: {e}") from e

    def _download(self, url: str, target: Path) -> None:
        try:
            with self.client.stream("GET", url) as response:
                response.raise_for_status()
                with open(target, "wb") as handle:
                    for chunk in response.iter_bytes():
                        handle.write(chunk)
        except httpx.HTTPError as e:
            target.unlink(missing_ok=True)
            raise AttachmentError(f"Could not download {url}: {e}") from e

    @staticmethod
    def _free_path(directory: Path, filename: str) -> Path:
        """Avoid overwriting a file another locator already stored."""
        target = directory / filename
        stem, ext = os.path.splitext(filename)
        number = 1
        while target.exists():
            target = directory / (with_suffix(stem, number) + ext)
            number += 1
        return target
