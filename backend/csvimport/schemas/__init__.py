from csvimport.schemas.imports import (
    AnalysisResult,
    AnalyzeRequest,
    BatchError,
    BatchProgress,
    ImportCreate,
    ImportSummary,
    UploadResult,
)

__all__ = [
    "UploadResult",
    "AnalyzeRequest",
    "AnalysisResult",
    "ImportCreate",
    "ImportSummary",
    "BatchProgress",
    "BatchError",
]
