"""
Streaming CSV record reader.

Reads the source one record at a time and reports the byte offset reached
after each record, so that a later pass can seek straight to a record
boundary instead of re-reading everything before it.
"""

import csv
from dataclasses import dataclass
from typing import BinaryIO, Iterator

from csvimport.services.errors import MalformedCsvError, NotFound


@dataclass
class CsvRecord:
    """One parsed record of the source file."""

    line: int  # 1-based record number, header is 1
    fields: list[str]
    end_offset: int  # byte offset just past this record

    @property
    def is_blank(self) -> bool:
        """True for records with no fields or a single empty field."""
        return not self.fields or (len(self.fields) == 1 and not self.fields[0].strip())


class _LineFeed:
    """Decode lines of a binary file for csv.reader, counting consumed bytes."""

    def __init__(self, handle: BinaryIO, encoding: str, offset: int, strip_bom: bool):
        self.handle = handle
        self.encoding = encoding
        self.offset = offset
        self.strip_bom = strip_bom

    def __iter__(self) -> "_LineFeed":
        return self

    def __next__(self) -> str:
        raw = self.handle.readline()
        if not raw:
            raise StopIteration
        self.offset += len(raw)
        text = raw.decode(self.encoding)
        if self.strip_bom:
            self.strip_bom = False
            text = text.removeprefix("\ufeff")
        return text


class CsvRecordStream:
    """Iterate the records of a delimited file without loading it.

    Only doubled enclosure characters are treated as escapes inside a
    quoted field; there is no separate escape character.
    """

    def __init__(
        self,
        path: str,
        delimiter: str = ",",
        enclosure: str = '"',
        encoding: str = "utf-8",
        start_offset: int = 0,
        start_line: int = 1,
    ):
        self.path = path
        self.delimiter = delimiter
        self.enclosure = enclosure
        self.encoding = encoding
        self.start_offset = start_offset
        self.start_line = start_line

    def __iter__(self) -> Iterator[CsvRecord]:
        try:
            handle = open(self.path, "rb")
        except OSError as e:
            raise NotFound(f"Source file not found: {self.path}") from e

        with handle:
            if self.start_offset:
                handle.seek(self.start_offset)
            feed = _LineFeed(
                handle,
                self.encoding,
                offset=self.start_offset,
                strip_bom=self.start_offset == 0,
            )
            reader = csv.reader(
                feed,
                delimiter=self.delimiter,
                quotechar=self.enclosure,
                doublequote=True,
                escapechar=None,
            )

            line = self.start_line - 1
            try:
                for fields in reader:
                    line += 1
                    yield CsvRecord(line=line, fields=fields, end_offset=feed.offset)
            except csv.Error as e:
                raise MalformedCsvError(f"Malformed CSV near record {line + 1}: {e}") from e
            except UnicodeDecodeError as e:
                raise MalformedCsvError(
                    f"File encoding error near record {line + 1}: {e}"
                ) from e
