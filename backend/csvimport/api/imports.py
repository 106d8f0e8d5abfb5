from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from csvimport.core.database import get_db
from csvimport.schemas.imports import (
    AnalysisResult,
    AnalyzeRequest,
    BatchError,
    BatchProgress,
    ImportCreate,
    ImportSummary,
    UploadResult,
)
from csvimport.services import import_service
from csvimport.services.errors import ImportConfigError, ImportEngineError, NotFound

router = APIRouter()


@router.post("/upload", response_model=UploadResult)
async def upload_csv(
    file: UploadFile = File(..., description="CSV file to import pages from"),
):
    """
    Upload a CSV file for a later import.

    The returned ``source_path`` is what ``POST /imports`` expects.
    """
    if not file.filename or not file.filename.lower().endswith(".csv"):
        raise HTTPException(
            status_code=400,
            detail="File must be a CSV file",
        )

    try:
        path, size = await import_service.save_upload(file)
    except ImportConfigError as e:
        raise HTTPException(status_code=413, detail=str(e)) from e

    return UploadResult(source_path=path, filename=file.filename, size=size)


@router.post("/analyze", response_model=AnalysisResult)
async def analyze_csv(request: AnalyzeRequest):
    """Count the rows of a CSV file and return its header row."""
    try:
        return import_service.analyze_source(
            request.source_path, request.delimiter, request.enclosure
        )
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ImportEngineError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.post("", response_model=ImportSummary, status_code=201)
async def create_import(request: ImportCreate, db: Session = Depends(get_db)):
    """
    Validate an import configuration and start an import session.

    Batches are then pulled one at a time from ``GET /imports/{id}/batch``.
    """
    try:
        return import_service.create_import(db, request)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ImportEngineError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


@router.get("/{import_id}", response_model=ImportSummary)
async def get_import(import_id: str, db: Session = Depends(get_db)):
    try:
        return import_service.get_import_summary(db, import_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.delete("/{import_id}", status_code=204)
async def delete_import(import_id: str, db: Session = Depends(get_db)):
    """End an import session. Imported pages are kept."""
    try:
        import_service.delete_import(db, import_id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e


@router.get(
    "/{import_id}/batch",
    response_model=BatchProgress | BatchError,
    response_model_exclude_none=True,
)
def run_batch(import_id: str, start: str | None = None, db: Session = Depends(get_db)):
    """
    Import one batch of rows.

    ``start`` is the zero-based batch index. Errors come back as
    ``{"error": "..."}`` with status 200 so a polling client can show them.
    """
    try:
        batch_index = int(start) if start is not None else 0
    except ValueError:
        return BatchError(error="Start parameter out of range")

    return import_service.process_batch(db, import_id, batch_index)
