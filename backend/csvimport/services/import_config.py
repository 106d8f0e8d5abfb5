"""
Import configuration and batch windows.

An ImportConfig is captured once when an import is set up and is read-only
afterwards. Every batch request re-derives its row window from it, so the
server keeps no cursor between requests.
"""

import math
import os
from dataclasses import asdict, dataclass, field

from sqlalchemy.orm import Session

from csvimport.models.import_session import DuplicatePolicy
from csvimport.models.page import Page, Template
from csvimport.services.csv_analyzer import analyze_csv
from csvimport.services.errors import ImportConfigError, NotFound

# Mapping targets that exist on every page
NAME_TARGET = "name"
TITLE_TARGET = "title"
BUILTIN_TARGETS = (NAME_TARGET, TITLE_TARGET)

# Row 1 holds the column headers
FIRST_DATA_ROW = 2


@dataclass(frozen=True)
class BatchWindow:
    """Inclusive range of 1-based line numbers one batch covers."""

    batch_index: int
    row_start: int
    row_stop: int

    @property
    def is_empty(self) -> bool:
        return self.row_stop < self.row_start

    def __contains__(self, line: int) -> bool:
        return self.row_start <= line <= self.row_stop


def compute_num_batches(num_rows: int, batch_size: int) -> int:
    """Number of batches needed for ``num_rows`` data rows."""
    if batch_size <= 0:
        return 1
    return math.ceil(num_rows / batch_size)


def compute_window(batch_index: int, batch_size: int, num_rows: int) -> BatchWindow:
    """
    Row window for one batch.

    ``row_start = batch_index * batch_size + 2`` and ``row_stop`` is capped
    at the last data row (``num_rows + 1``). A batch size of 0 puts every
    data row in batch 0. Batches past the last one get an empty window.
    """
    last_row = num_rows + 1
    if batch_index >= compute_num_batches(num_rows, batch_size):
        return BatchWindow(batch_index, last_row + 1, last_row)

    if batch_size <= 0:
        return BatchWindow(batch_index, FIRST_DATA_ROW, last_row)

    row_start = batch_index * batch_size + FIRST_DATA_ROW
    row_stop = min(row_start + batch_size - 1, last_row)
    return BatchWindow(batch_index, row_start, row_stop)


@dataclass(frozen=True)
class ImportConfig:
    """Everything a batch request needs to know about an import."""

    template_id: int
    parent_id: int | None
    source_path: str
    delimiter: str = ","
    enclosure: str = '"'
    encoding: str = "utf-8"
    duplicate_policy: DuplicatePolicy = DuplicatePolicy.SKIP
    create_missing_references: bool = False
    column_mapping: tuple[str, ...] = ()  # one target per column, "" = ignored
    max_rows: int = 0  # 0 = unlimited
    batch_size: int = 0  # 0 = single batch

    # Derived from the analysis pass
    num_rows: int = 0
    num_data_rows: int = 0
    batch_offsets: tuple[int, ...] = field(default_factory=tuple)

    @property
    def num_batches(self) -> int:
        return compute_num_batches(self.num_rows, self.batch_size)

    def window(self, batch_index: int) -> BatchWindow:
        return compute_window(batch_index, self.batch_size, self.num_rows)

    def batch_offset(self, batch_index: int) -> int | None:
        """Byte offset of the batch's first row, if the offset index has it."""
        if 0 <= batch_index < len(self.batch_offsets):
            return self.batch_offsets[batch_index]
        return None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duplicate_policy"] = self.duplicate_policy.value
        data["column_mapping"] = list(self.column_mapping)
        data["batch_offsets"] = list(self.batch_offsets)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ImportConfig":
        data = dict(data)
        data["duplicate_policy"] = DuplicatePolicy(data.get("duplicate_policy", "skip"))
        data["column_mapping"] = tuple(data.get("column_mapping") or ())
        data["batch_offsets"] = tuple(data.get("batch_offsets") or ())
        return cls(**data)


def validate_batching(max_rows: int, batch_size: int) -> None:
    """Reject limits that would let a max-rows cutoff span batches."""
    if max_rows < 0:
        raise ImportConfigError("max_rows must be 0 (unlimited) or positive")
    if batch_size < 0:
        raise ImportConfigError("batch_size must be 0 (single batch) or positive")
    if max_rows > 0 and 0 < batch_size < max_rows:
        raise ImportConfigError(
            f"batch_size ({batch_size}) must be 0 or at least max_rows ({max_rows})"
        )


def validate_mapping(
    column_mapping: list[str] | tuple[str, ...],
    template: Template,
    header_row: list[str],
) -> None:
    """Check that every mapped column targets a known, distinct field."""
    if len(column_mapping) > len(header_row):
        raise ImportConfigError(
            f"Mapping has {len(column_mapping)} columns but the file has {len(header_row)}"
        )

    targets = [t for t in column_mapping if t]
    if not targets:
        raise ImportConfigError("At least one column must be mapped to a field")

    duplicates = sorted({t for t in targets if targets.count(t) > 1})
    if duplicates:
        raise ImportConfigError(f"Fields mapped more than once: {', '.join(duplicates)}")

    unknown = [t for t in targets if t not in BUILTIN_TARGETS and template.get_field(t) is None]
    if unknown:
        raise ImportConfigError(
            f"Unknown fields for template '{template.name}': {', '.join(unknown)}"
        )


def build_import_config(
    db: Session,
    *,
    template_id: int,
    parent_id: int | None,
    source_path: str,
    column_mapping: list[str],
    delimiter: str = ",",
    enclosure: str = '"',
    duplicate_policy: DuplicatePolicy = DuplicatePolicy.SKIP,
    create_missing_references: bool = False,
    max_rows: int = 0,
    batch_size: int = 0,
    with_offset_index: bool = False,
) -> ImportConfig:
    """
    Validate import settings, analyse the source and return the config.

    Raises:
        ImportConfigError: Settings are inconsistent
        NotFound: The source, template or parent does not exist
    """
    if len(delimiter) != 1:
        raise ImportConfigError("Delimiter must be a single character")
    if len(enclosure) != 1:
        raise ImportConfigError("Enclosure must be a single character")
    if delimiter == enclosure:
        raise ImportConfigError("Delimiter and enclosure must differ")
    validate_batching(max_rows, batch_size)

    template = db.get(Template, template_id)
    if template is None:
        raise NotFound(f"Template {template_id} not found")
    if parent_id is not None and db.get(Page, parent_id) is None:
        raise NotFound(f"Parent page {parent_id} not found")

    if not os.path.isfile(source_path):
        raise NotFound(f"Source file not found: {source_path}")

    analysis = analyze_csv(
        source_path,
        delimiter=delimiter,
        enclosure=enclosure,
        batch_size=batch_size if with_offset_index else 0,
    )
    if analysis.header_row is None:
        raise ImportConfigError("CSV file appears to be empty")

    validate_mapping(column_mapping, template, analysis.header_row)

    return ImportConfig(
        template_id=template_id,
        parent_id=parent_id,
        source_path=source_path,
        delimiter=delimiter,
        enclosure=enclosure,
        encoding=analysis.encoding,
        duplicate_policy=DuplicatePolicy(duplicate_policy),
        create_missing_references=create_missing_references,
        column_mapping=tuple(column_mapping),
        max_rows=max_rows,
        batch_size=batch_size,
        num_rows=analysis.num_rows,
        num_data_rows=analysis.num_data_rows,
        batch_offsets=tuple(analysis.batch_offsets),
    )
