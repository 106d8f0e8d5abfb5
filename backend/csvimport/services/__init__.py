from csvimport.services import import_service
from csvimport.services.batch_importer import (
    BatchImporter,
    BatchResult,
    ImportOutcome,
    RowResult,
)
from csvimport.services.csv_analyzer import CsvAnalysis, analyze_csv
from csvimport.services.csv_stream import CsvRecord, CsvRecordStream
from csvimport.services.duplicate_resolver import DuplicateResolver, Resolution, ResolutionAction
from csvimport.services.errors import (
    AttachmentError,
    BatchOutOfRange,
    FieldValueError,
    ImportConfigError,
    ImportEngineError,
    MalformedCsvError,
    NotFound,
    RowError,
)
from csvimport.services.field_mapper import CandidatePage, FieldValueMapper
from csvimport.services.import_client import BatchImportClient, ImportReport
from csvimport.services.import_config import (
    BatchWindow,
    DuplicatePolicy,
    ImportConfig,
    build_import_config,
    compute_num_batches,
    compute_window,
)

__all__ = [
    "import_service",
    # CSV reading
    "CsvRecord",
    "CsvRecordStream",
    "CsvAnalysis",
    "analyze_csv",
    # Configuration
    "DuplicatePolicy",
    "ImportConfig",
    "BatchWindow",
    "build_import_config",
    "compute_num_batches",
    "compute_window",
    # Row import
    "FieldValueMapper",
    "CandidatePage",
    "DuplicateResolver",
    "Resolution",
    "ResolutionAction",
    "BatchImporter",
    "BatchResult",
    "RowResult",
    "ImportOutcome",
    # Client
    "BatchImportClient",
    "ImportReport",
    # Errors
    "ImportEngineError",
    "ImportConfigError",
    "NotFound",
    "BatchOutOfRange",
    "MalformedCsvError",
    "RowError",
    "FieldValueError",
    "AttachmentError",
]
