"""
Batch importer.

Imports exactly one batch of rows: the rows whose line numbers fall inside
the batch's window. Every row ends in a RowResult; a failing row never
stops the batch.

Row lifecycle:
1. Map columns onto a candidate page (no derivable name: failed)
2. Resolve the name against existing pages (skip / create / modify / fail)
3. Write the page and commit (write error: failed, rolled back)
4. Flush pending attachments in a second write now that the page has an id
"""

import os
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from csvimport.core.logging import get_context_logger
from csvimport.core.security import get_password_hash, verify_password
from csvimport.models.page import Page
from csvimport.services.attachments import AttachmentStorage
from csvimport.services.csv_stream import CsvRecord, CsvRecordStream
from csvimport.services.duplicate_resolver import DuplicateResolver, ResolutionAction
from csvimport.services.errors import BatchOutOfRange, NotFound, RowError
from csvimport.services.field_mapper import CandidatePage, FieldValueMapper, MappedValue
from csvimport.services.import_config import BatchWindow, ImportConfig
from csvimport.services.record_store import RecordStore
from csvimport.services.reference_resolver import ReferenceResolver


class ImportOutcome(str, Enum):
    SKIPPED = "skipped"
    CREATED = "created"
    CREATED_UNIQUE = "created_unique"
    MODIFIED = "modified"
    FAILED = "failed"


@dataclass
class RowResult:
    """What happened to one row."""

    line: int
    outcome: ImportOutcome
    name: str | None = None
    page_id: int | None = None
    changed: bool = False  # MODIFIED only: whether anything was written
    error: str | None = None


@dataclass
class BatchResult:
    """Counters for one batch. Skipped rows count as imported."""

    window: BatchWindow
    num_imported: int = 0
    num_skipped: int = 0
    num_created: int = 0
    num_modified: int = 0
    num_failed: int = 0
    truncated: bool = False  # max_rows reached; no further batches
    elapsed: float = 0.0
    errors: list[str] = field(default_factory=list)

    def record(self, row: RowResult) -> None:
        if row.outcome == ImportOutcome.FAILED:
            self.num_failed += 1
            self.errors.append(f"Row {row.line}: {row.error}")
            return

        self.num_imported += 1
        if row.outcome == ImportOutcome.SKIPPED:
            self.num_skipped += 1
        elif row.outcome in (ImportOutcome.CREATED, ImportOutcome.CREATED_UNIQUE):
            self.num_created += 1
        elif row.outcome == ImportOutcome.MODIFIED:
            self.num_modified += 1

    @property
    def usage(self) -> str:
        summary = (
            f"skipped: {self.num_skipped}, imported: {self.num_created}, "
            f"updated: {self.num_modified}"
        )
        if self.num_failed:
            summary += f", failed: {self.num_failed}"
        return f"({summary}) in {self.elapsed:.2f} s"


def apply_values(page: Page, values: list[MappedValue]) -> bool:
    """
    Copy mapped values onto a page, touching only fields that differ.

    Returns:
        True if anything changed
    """
    data = dict(page.data or {})
    changed = False

    for mapped in values:
        current = data.get(mapped.field_name)
        if mapped.secret:
            if isinstance(current, str) and verify_password(mapped.value, current):
                continue
            data[mapped.field_name] = get_password_hash(mapped.value)
            changed = True
        elif current != mapped.value or mapped.field_name not in data:
            data[mapped.field_name] = mapped.value
            changed = True

    if changed:
        page.data = data
    return changed


class BatchImporter:
    """Import one batch of an import at a time."""

    def __init__(
        self,
        db: Session,
        config: ImportConfig,
        attachments: AttachmentStorage | None = None,
    ):
        self.config = config
        self.store = RecordStore(db)
        self.resolver = DuplicateResolver(self.store)
        self.references = ReferenceResolver(self.store, config.create_missing_references)
        self.attachments = attachments or AttachmentStorage(
            base_dir=os.path.dirname(os.path.abspath(config.source_path))
        )

    def run_batch(self, batch_index: int) -> BatchResult:
        """
        Import the rows of one batch.

        Raises:
            BatchOutOfRange: ``batch_index`` is negative or past the last batch
            NotFound: The template or the source file is gone
            MalformedCsvError: The source stops being parseable
        """
        config = self.config
        if batch_index < 0 or batch_index > config.num_batches:
            raise BatchOutOfRange("Start parameter out of range")

        window = config.window(batch_index)
        result = BatchResult(window=window)
        logger = get_context_logger(
            __name__, source=config.source_path, batch=batch_index
        )
        started = time.perf_counter()

        if not window.is_empty:
            template = self.store.get_template(config.template_id)
            if template is None:
                raise NotFound(f"Template {config.template_id} not found")
            mapper = FieldValueMapper(template, config.column_mapping)

            for record in self._records(batch_index, window):
                # The line counter includes the header row
                if config.max_rows and record.line > config.max_rows:
                    result.truncated = True
                    break
                if record.line < window.row_start:
                    continue
                if record.line > window.row_stop:
                    break
                if record.is_blank:
                    continue

                row = self.import_row(mapper, record)
                if row.outcome == ImportOutcome.FAILED:
                    logger.warning(
                        f"Row {row.line} failed: {row.error}",
                        extra={"extra_fields": {"line": row.line, "name": row.name}},
                    )
                result.record(row)

        result.elapsed = time.perf_counter() - started
        logger.info(
            f"Batch {batch_index + 1}/{config.num_batches} done {result.usage}",
            extra={
                "extra_fields": {
                    "row_start": window.row_start,
                    "row_stop": window.row_stop,
                    "truncated": result.truncated,
                    "references_created": len(self.references.created),
                }
            },
        )
        return result

    def import_row(self, mapper: FieldValueMapper, record: CsvRecord) -> RowResult:
        """Import one record. Never raises for row-level problems."""
        config = self.config
        line = record.line

        try:
            candidate = mapper.map_row(record.fields)
        except RowError as e:
            return RowResult(line, ImportOutcome.FAILED, error=str(e))

        if not candidate.name:
            return RowResult(line, ImportOutcome.FAILED, error="no page name could be derived")

        resolution = self.resolver.resolve(
            candidate.name, config.parent_id, config.duplicate_policy, config.template_id
        )
        if resolution.action == ResolutionAction.SKIP:
            return RowResult(
                line, ImportOutcome.SKIPPED, name=resolution.name, page_id=resolution.existing.id
            )
        if resolution.action == ResolutionAction.FAIL:
            return RowResult(line, ImportOutcome.FAILED, name=resolution.name, error=resolution.reason)

        changed = True
        try:
            if resolution.action == ResolutionAction.CREATE:
                page = self._create(candidate, resolution.name)
                outcome = ImportOutcome.CREATED_UNIQUE if resolution.renamed else ImportOutcome.CREATED
            else:
                page = resolution.existing
                changed = self._modify(candidate, page)
                outcome = ImportOutcome.MODIFIED
            self.store.commit()
        except (SQLAlchemyError, RowError) as e:
            self.store.rollback()
            self.references.rollback()
            return RowResult(line, ImportOutcome.FAILED, name=resolution.name, error=str(e))
        self.references.commit()

        page_id = page.id
        if candidate.attachments:
            try:
                added = self.attachments.flush(self.store, page, candidate.attachments)
                self.store.commit()
            except (SQLAlchemyError, RowError) as e:
                self.store.rollback()
                self.attachments.rollback()
                return RowResult(
                    line,
                    ImportOutcome.FAILED,
                    name=resolution.name,
                    page_id=page_id,
                    error=f"attachments not saved: {e}",
                )
            self.attachments.commit()
            changed = changed or added > 0

        return RowResult(line, outcome, name=resolution.name, page_id=page_id, changed=changed)

    def _create(self, candidate: CandidatePage, name: str) -> Page:
        page = Page(
            parent_id=self.config.parent_id,
            template_id=self.config.template_id,
            name=name,
            title=candidate.title,
            data={},
        )
        apply_values(page, candidate.values + self._reference_values(candidate))
        return self.store.create(page)

    def _modify(self, candidate: CandidatePage, page: Page) -> bool:
        """Apply changed values to an existing page; write only if needed."""
        changed = apply_values(page, candidate.values + self._reference_values(candidate))
        if candidate.title is not None and page.title != candidate.title:
            page.title = candidate.title
            changed = True
        if changed:
            self.store.update(page)
        return changed

    def _reference_values(self, candidate: CandidatePage) -> list[MappedValue]:
        values = []
        for request in candidate.references:
            resolved = self.references.resolve(request)
            # Nothing matched: leave the field alone
            if resolved is None or resolved == []:
                continue
            values.append(MappedValue(request.field.name, resolved))
        return values

    def _records(self, batch_index: int, window: BatchWindow) -> Iterator[CsvRecord]:
        config = self.config
        # Imports set up with an offset index seek straight to the batch
        offset = config.batch_offset(batch_index)

        if offset is None:
            stream = CsvRecordStream(
                config.source_path,
                delimiter=config.delimiter,
                enclosure=config.enclosure,
                encoding=config.encoding,
            )
        else:
            stream = CsvRecordStream(
                config.source_path,
                delimiter=config.delimiter,
                enclosure=config.enclosure,
                encoding=config.encoding,
                start_offset=offset,
                start_line=window.row_start,
            )
        return iter(stream)
