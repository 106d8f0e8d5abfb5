from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from csvimport.models.import_session import DuplicatePolicy


class UploadResult(BaseModel):
    source_path: str
    filename: str
    size: int


class AnalyzeRequest(BaseModel):
    source_path: str
    delimiter: str = Field(",", min_length=1, max_length=1)
    enclosure: str = Field('"', min_length=1, max_length=1)


class AnalysisResult(BaseModel):
    num_all_rows: int
    num_rows: int  # header excluded
    num_empty_rows: int
    num_data_rows: int
    header_row: list[str] | None
    encoding: str


class ImportCreate(BaseModel):
    template_id: int
    parent_id: int | None = None
    source_path: str
    column_mapping: list[str]  # one field name per column, "" = ignore
    delimiter: str = Field(",", min_length=1, max_length=1)
    enclosure: str = Field('"', min_length=1, max_length=1)
    duplicate_policy: DuplicatePolicy = DuplicatePolicy.SKIP
    create_missing_references: bool = False
    max_rows: int = Field(0, ge=0)  # 0 = unlimited
    batch_size: int | None = Field(None, ge=0)  # None = server default, 0 = one batch
    use_offset_index: bool | None = None  # None = server default


class ImportSummary(BaseModel):
    import_id: str
    template_id: int
    parent_id: int | None
    source_path: str
    column_mapping: list[str]
    duplicate_policy: DuplicatePolicy
    create_missing_references: bool
    max_rows: int
    batch_size: int
    num_rows: int
    num_data_rows: int
    num_batches: int
    created_at: datetime | None = None


class BatchProgress(BaseModel):
    """Response to one batch request. Serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    counter: str  # contains one "{N}" percent placeholder
    num_batches: int  # 0 once max_rows cut the import short
    num_imported: int  # every row that did not fail, skipped rows included
    num_created: int
    num_modified: int
    num_skipped: int
    num_failed: int
    usage: str
    row_start: int
    row_stop: int
    csv_num_rows: int
    rows: list[str] | None = None  # messages for failed rows


class BatchError(BaseModel):
    error: str
