"""
CSV page import service.

Handles the import lifecycle around the batch engine:
1. Store uploaded CSV files
2. Analyse a source file for the mapping step
3. Validate and persist the import configuration
4. Run one batch per request and report progress
5. End the import session

Batch requests are independent: each one loads the configuration,
recomputes its row window and reports whether more batches remain. The
server keeps no cursor between requests.
"""

import os
import uuid
from pathlib import Path

from fastapi import UploadFile
from sqlalchemy.orm import Session

from csvimport.core.config import get_settings
from csvimport.core.logging import get_logger
from csvimport.models.import_session import ImportSession
from csvimport.schemas.imports import (
    AnalysisResult,
    BatchError,
    BatchProgress,
    ImportCreate,
    ImportSummary,
)
from csvimport.services.attachments import AttachmentStorage
from csvimport.services.batch_importer import BatchImporter, BatchResult
from csvimport.services.csv_analyzer import analyze_csv
from csvimport.services.errors import ImportConfigError, ImportEngineError, NotFound
from csvimport.services.import_config import ImportConfig, build_import_config

logger = get_logger(__name__)

UPLOAD_CHUNK_SIZE = 1024 * 1024

DONE_COUNTER = "All done - {100}% complete"


async def save_upload(file: UploadFile) -> tuple[str, int]:
    """
    Stream an uploaded CSV file into the upload directory.

    Returns:
        Tuple of (stored path, size in bytes)

    Raises:
        ImportConfigError: The file is larger than MAX_UPLOAD_SIZE
    """
    settings = get_settings()
    upload_dir = Path(settings.UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    target = upload_dir / f"{uuid.uuid4()}.csv"

    size = 0
    with open(target, "wb") as handle:
        while chunk := await file.read(UPLOAD_CHUNK_SIZE):
            size += len(chunk)
            if size > settings.MAX_UPLOAD_SIZE:
                break
            handle.write(chunk)

    if size > settings.MAX_UPLOAD_SIZE:
        target.unlink(missing_ok=True)
        raise ImportConfigError(
            f"File too large. Maximum size is {settings.MAX_UPLOAD_SIZE // (1024 * 1024)}MB"
        )

    logger.info(f"Stored upload {file.filename} as {target} ({size} bytes)")
    return str(target), size


def analyze_source(path: str, delimiter: str, enclosure: str) -> AnalysisResult:
    """Count rows and read the header row of a source file."""
    if not os.path.isfile(path):
        raise NotFound(f"Source file not found: {path}")

    analysis = analyze_csv(path, delimiter=delimiter, enclosure=enclosure)
    return AnalysisResult(
        num_all_rows=analysis.num_all_rows,
        num_rows=analysis.num_rows,
        num_empty_rows=analysis.num_empty_rows,
        num_data_rows=analysis.num_data_rows,
        header_row=analysis.header_row,
        encoding=analysis.encoding,
    )


def create_import(db: Session, request: ImportCreate) -> ImportSummary:
    """Validate an import configuration and persist it as a new session."""
    settings = get_settings()
    batch_size = request.batch_size
    if batch_size is None:
        batch_size = settings.DEFAULT_BATCH_SIZE
    use_offset_index = request.use_offset_index
    if use_offset_index is None:
        use_offset_index = settings.USE_BATCH_OFFSET_INDEX

    config = build_import_config(
        db,
        template_id=request.template_id,
        parent_id=request.parent_id,
        source_path=request.source_path,
        column_mapping=request.column_mapping,
        delimiter=request.delimiter,
        enclosure=request.enclosure,
        duplicate_policy=request.duplicate_policy,
        create_missing_references=request.create_missing_references,
        max_rows=request.max_rows,
        batch_size=batch_size,
        with_offset_index=use_offset_index,
    )

    session = ImportSession(id=str(uuid.uuid4()), config=config.to_dict())
    db.add(session)
    db.commit()
    db.refresh(session)

    logger.info(
        f"Created import {session.id}",
        extra={
            "extra_fields": {
                "import_id": session.id,
                "num_rows": config.num_rows,
                "num_batches": config.num_batches,
            }
        },
    )
    return _summary(session.id, config, session)


def get_import_config(db: Session, import_id: str) -> ImportConfig:
    """Load the configuration of an import session."""
    session = db.get(ImportSession, import_id)
    if session is None:
        raise NotFound("Import session not found")
    return ImportConfig.from_dict(session.config)


def get_import_summary(db: Session, import_id: str) -> ImportSummary:
    session = db.get(ImportSession, import_id)
    if session is None:
        raise NotFound("Import session not found")
    return _summary(import_id, ImportConfig.from_dict(session.config), session)


def delete_import(db: Session, import_id: str) -> None:
    """End an import session. Pages already imported stay."""
    session = db.get(ImportSession, import_id)
    if session is None:
        raise NotFound("Import session not found")
    db.delete(session)
    db.commit()
    logger.info(f"Ended import {import_id}")


def process_batch(
    db: Session,
    import_id: str,
    start: int,
    attachments: AttachmentStorage | None = None,
) -> BatchProgress | BatchError:
    """
    Run batch ``start`` of an import.

    Request-level problems (unknown session, missing file, ``start`` out of
    range, unparseable CSV) come back as a BatchError with no counters.
    """
    try:
        config = get_import_config(db, import_id)
        importer = BatchImporter(db, config, attachments=attachments)
        try:
            result = importer.run_batch(start)
        finally:
            if attachments is None:
                importer.attachments.close()
    except ImportEngineError as e:
        logger.warning(
            f"Batch request failed: {e}",
            extra={"extra_fields": {"import_id": import_id, "start": start}},
        )
        return BatchError(error=str(e))

    return build_progress(config, start, result)


def build_progress(config: ImportConfig, batch_index: int, result: BatchResult) -> BatchProgress:
    """Translate a batch result into the progress response."""
    num_batches = config.num_batches

    if result.truncated or batch_index + 1 >= num_batches:
        counter = DONE_COUNTER
    else:
        percent = round((batch_index + 1) / num_batches * 100)
        counter = (
            f"Processing batch {batch_index + 1} out of {num_batches} - {{{percent}}}% complete"
        )

    return BatchProgress(
        counter=counter,
        num_batches=0 if result.truncated else num_batches,
        num_imported=result.num_imported,
        num_created=result.num_created,
        num_modified=result.num_modified,
        num_skipped=result.num_skipped,
        num_failed=result.num_failed,
        usage=result.usage,
        row_start=result.window.row_start,
        row_stop=result.window.row_stop,
        csv_num_rows=config.num_rows,
        rows=result.errors or None,
    )


def _summary(import_id: str, config: ImportConfig, session: ImportSession) -> ImportSummary:
    return ImportSummary(
        import_id=import_id,
        template_id=config.template_id,
        parent_id=config.parent_id,
        source_path=config.source_path,
        column_mapping=list(config.column_mapping),
        duplicate_policy=config.duplicate_policy,
        create_missing_references=config.create_missing_references,
        max_rows=config.max_rows,
        batch_size=config.batch_size,
        num_rows=config.num_rows,
        num_data_rows=config.num_data_rows,
        num_batches=config.num_batches,
        created_at=session.created_at,
    )
