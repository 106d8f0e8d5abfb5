"""Tests for CSV reading and analysis."""

import pytest

from csvimport.services.csv_analyzer import analyze_csv
from csvimport.services.csv_stream import CsvRecord, CsvRecordStream
from csvimport.services.errors import NotFound


class TestCsvRecordStream:
    """Test record iteration."""

    def test_line_numbers_start_at_header(self, write_csv):
        path = write_csv("name,title\na,Alpha\nb,Beta\n")

        records = list(CsvRecordStream(path))

        assert [r.line for r in records] == [1, 2, 3]
        assert records[0].fields == ["name", "title"]
        assert records[2].fields == ["b", "Beta"]

    def test_quoted_newline_is_one_record(self, write_csv):
        path = write_csv('name,description\na,"two\nlines"\nb,plain\n')

        records = list(CsvRecordStream(path))

        assert len(records) == 3
        assert records[1].fields == ["a", "two\nlines"]
        assert records[2].line == 3

    def test_doubled_enclosure_is_escape(self, write_csv):
        path = write_csv('name,title\na,"Say ""hi"""\n')

        records = list(CsvRecordStream(path))

        assert records[1].fields == ["a", 'Say "hi"']

    def test_custom_delimiter_and_enclosure(self, write_csv):
        path = write_csv("name;title\na;'One; Two'\n")

        records = list(CsvRecordStream(path, delimiter=";", enclosure="'"))

        assert records[1].fields == ["a", "One; Two"]

    def test_bom_is_stripped(self, write_csv):
        path = write_csv("\ufeffname,title\na,Alpha\n")

        records = list(CsvRecordStream(path))

        assert records[0].fields == ["name", "title"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(NotFound, match="Source file not found"):
            list(CsvRecordStream(str(tmp_path / "missing.csv")))

    def test_seek_to_offset(self, write_csv):
        path = write_csv("h\na\nb\nc\n")
        records = list(CsvRecordStream(path))

        # Resume right after record 2
        resumed = list(
            CsvRecordStream(path, start_offset=records[1].end_offset, start_line=3)
        )

        assert [(r.line, r.fields) for r in resumed] == [(3, ["b"]), (4, ["c"])]

    def test_blank_records(self):
        assert CsvRecord(line=2, fields=[], end_offset=0).is_blank
        assert CsvRecord(line=2, fields=["  "], end_offset=0).is_blank
        assert not CsvRecord(line=2, fields=["", ""], end_offset=0).is_blank
        assert not CsvRecord(line=2, fields=["x"], end_offset=0).is_blank


class TestAnalyzeCsv:
    """Test the analysis pass."""

    def test_counts(self, write_csv):
        path = write_csv("name,title\na,Alpha\n\nb,Beta\n")

        analysis = analyze_csv(path)

        assert analysis.num_all_rows == 4
        assert analysis.num_rows == 3
        assert analysis.num_empty_rows == 1
        assert analysis.num_data_rows == 2
        assert analysis.header_row == ["name", "title"]
        assert analysis.encoding == "utf-8"

    def test_header_only(self, write_csv):
        analysis = analyze_csv(write_csv("name,title\n"))

        assert analysis.num_rows == 0
        assert analysis.header_row == ["name", "title"]

    def test_empty_file(self, write_csv):
        analysis = analyze_csv(write_csv(""))

        assert analysis.num_all_rows == 0
        assert analysis.num_rows == 0
        assert analysis.header_row is None

    def test_latin1_fallback(self, write_csv):
        path = write_csv("name,title\ncafe,Café\n", encoding="latin-1")

        analysis = analyze_csv(path)

        assert analysis.encoding == "latin-1"
        assert analysis.num_rows == 1

    def test_no_offsets_without_batch_size(self, write_csv):
        analysis = analyze_csv(write_csv("h\na\nb\n"))

        assert analysis.batch_offsets == []

    def test_batch_offsets(self, write_csv):
        # header + 5 rows, two rows per batch: batches start at rows 2, 4, 6
        path = write_csv("h\na\nb\nc\nd\ne\n")

        analysis = analyze_csv(path, batch_size=2)

        assert analysis.batch_offsets == [2, 6, 10]

    def test_batch_offsets_exact_multiple(self, write_csv):
        path = write_csv("h\na\nb\nc\nd\n")

        analysis = analyze_csv(path, batch_size=2)

        assert analysis.batch_offsets == [2, 6]

    def test_batch_offsets_point_at_batch_start(self, write_csv):
        path = write_csv("h\na\nb\nc\nd\ne\n")
        analysis = analyze_csv(path, batch_size=2)

        stream = CsvRecordStream(path, start_offset=analysis.batch_offsets[2], start_line=6)
        first = next(iter(stream))

        assert first.line == 6
        assert first.fields == ["e"]
