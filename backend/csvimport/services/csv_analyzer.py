"""
Single-pass CSV analysis.

Counts rows and empty rows and captures the header row without holding the
file in memory. Optionally records where every batch starts so batch
requests can seek instead of re-scanning.
"""

from dataclasses import dataclass, field

from csvimport.core.logging import get_logger
from csvimport.services.csv_stream import CsvRecordStream
from csvimport.services.errors import MalformedCsvError

logger = get_logger(__name__)

# Tried in order; Latin-1 accepts any byte sequence
ENCODINGS = ("utf-8", "latin-1")


@dataclass
class CsvAnalysis:
    """Result of analysing a source file."""

    num_all_rows: int  # every record, header included
    num_empty_rows: int
    header_row: list[str] | None
    encoding: str = "utf-8"
    # byte offset of the first row of each batch, when requested
    batch_offsets: list[int] = field(default_factory=list)

    @property
    def num_rows(self) -> int:
        """Data rows, header excluded."""
        return max(self.num_all_rows - 1, 0)

    @property
    def num_data_rows(self) -> int:
        """Data rows that are not empty."""
        return self.num_rows - self.num_empty_rows


def analyze_csv(
    path: str,
    delimiter: str = ",",
    enclosure: str = '"',
    batch_size: int = 0,
) -> CsvAnalysis:
    """
    Analyse a CSV file in one streaming pass.

    Args:
        path: Path of the source file
        delimiter: Field delimiter character
        enclosure: Field enclosure (quote) character
        batch_size: When > 0, record the byte offset where each batch of
            this size starts

    Returns:
        CsvAnalysis with row counts, header row and detected encoding

    Raises:
        NotFound: The file cannot be opened
        MalformedCsvError: The file is not parseable in any supported encoding
    """
    last_error: MalformedCsvError | None = None
    for encoding in ENCODINGS:
        try:
            return _analyze(path, delimiter, enclosure, encoding, batch_size)
        except MalformedCsvError as e:
            if not isinstance(e.__cause__, UnicodeDecodeError):
                raise
            logger.info(f"{path} is not valid {encoding}, retrying")
            last_error = e

    # Unreachable while latin-1 is in ENCODINGS
    raise last_error


def _analyze(
    path: str,
    delimiter: str,
    enclosure: str,
    encoding: str,
    batch_size: int,
) -> CsvAnalysis:
    num_all_rows = 0
    num_empty_rows = 0
    header_row: list[str] | None = None
    batch_offsets: list[int] = []

    stream = CsvRecordStream(path, delimiter=delimiter, enclosure=enclosure, encoding=encoding)
    for record in stream:
        num_all_rows += 1
        if header_row is None:
            header_row = record.fields
            if batch_size > 0:
                batch_offsets.append(record.end_offset)
            continue

        if record.is_blank:
            num_empty_rows += 1

        # record.line is the last row of a batch: the next one starts a new batch
        if batch_size > 0 and (record.line - 1) % batch_size == 0:
            batch_offsets.append(record.end_offset)

    if batch_offsets and num_all_rows > 1 and (num_all_rows - 1) % batch_size == 0:
        # Offset past the final row does not start a batch
        batch_offsets.pop()

    analysis = CsvAnalysis(
        num_all_rows=num_all_rows,
        num_empty_rows=num_empty_rows,
        header_row=header_row,
        encoding=encoding,
        batch_offsets=batch_offsets,
    )
    logger.info(
        f"Analysed {path}",
        extra={
            "extra_fields": {
                "num_rows": analysis.num_rows,
                "num_empty_rows": num_empty_rows,
                "encoding": encoding,
            }
        },
    )
    return analysis
