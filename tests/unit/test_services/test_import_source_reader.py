"""Tests for import source classification and parsing."""

import pytest

from litdedup.models.import_source import IdListSource, IdType, TabularSource
from litdedup.models.record import RecordSource
from litdedup.services.import_source_reader import ImportSourceReader
from litdedup.utils.exceptions import SourceReadError, UnrecognizedFormatError


@pytest.fixture
def reader():
    return ImportSourceReader()


class TestIdLists:
    def test_pmid_list(self, reader):
        source = reader.parse("12345\n\n67890\n", hint="txt")

        assert isinstance(source, IdListSource)
        assert source.id_type == IdType.PMID
        assert source.ids == ["12345", "67890"]

    def test_doi_list(self, reader):
        source = reader.parse("10.1000/xyz\n10.1038/nature12373\n", hint="pmids.txt")

        assert source.id_type == IdType.DOI
        assert source.ids == ["10.1000/xyz", "10.1038/nature12373"]

    def test_leading_blank_lines_ignored(self, reader):
        source = reader.parse("\n\n  123\n456", hint="txt")
        assert source.ids == ["123", "456"]

    def test_non_matching_lines_dropped(self, reader):
        source = reader.parse("123\nnot-an-id\n456", hint="txt")
        assert source.ids == ["123", "456"]

    def test_unrecognized_first_line(self, reader):
        with pytest.raises(UnrecognizedFormatError):
            reader.parse("hello world\n123", hint="txt")

    def test_empty_input(self, reader):
        with pytest.raises(UnrecognizedFormatError):
            reader.parse("   \n", hint="txt")


class TestTabular:
    def test_column_mapping(self, reader):
        raw = (
            "Title,Authors,Journal,Year,DOI,Abstract,Notes\n"
            "Gene editing,Smith J; Doe A,Nature,2021,10.1/ge,An abstract,ignored\n"
        )
        source = reader.parse(raw, hint="csv", file_name="refs.csv")

        assert isinstance(source, TabularSource)
        assert source.file_name == "refs.csv"
        record = source.records[0]
        assert record.title == "Gene editing"
        assert record.authors == ["Smith J", "Doe A"]
        assert record.journal == "Nature"
        assert record.publication_date == "2021"
        assert record.doi == "10.1/ge"
        assert record.abstract == "An abstract"
        assert record.id is None
        assert record.source == RecordSource.FILE_IMPORT
        assert record.metadata["source"] == "file-import"

    def test_rows_without_title_dropped(self, reader):
        raw = "title,doi\nFirst,10.1/a\n,10.1/b\nThird,\n"
        source = reader.parse(raw, hint="csv")

        assert [r.title for r in source.records] == ["First", "Third"]

    def test_external_id_fallback_order(self, reader):
        raw = "title\tdoi\tpmid\nA\t10.1/a\t111\nB\t\t222\nC\t\t\n"
        source = reader.parse(raw, hint="tsv")

        assert [r.external_id for r in source.records] == ["10.1/a", "222", "row_3"]

    def test_date_aliases(self, reader):
        source = reader.parse("title,publication_year\nA,2019\n", hint="csv")
        assert source.records[0].publication_date == "2019"

    def test_no_recognized_columns(self, reader):
        with pytest.raises(UnrecognizedFormatError):
            reader.parse("foo,bar\n1,2\n", hint="csv")

    def test_quoted_fields(self, reader):
        raw = 'title,authors\n"Cells, genes and you","Smith, J; Doe, A"\n'
        record = reader.parse(raw, hint="csv").records[0]

        assert record.title == "Cells, genes and you"
        assert record.authors == ["Smith, J", "Doe, A"]


class TestHints:
    def test_unknown_hint(self, reader):
        with pytest.raises(UnrecognizedFormatError):
            reader.parse("123", hint="refs.xlsx")

    def test_read_file(self, reader, tmp_path):
        path = tmp_path / "ids.txt"
        path.write_text("123\n456\n")

        source = reader.read_file(path)
        assert source.ids == ["123", "456"]
        assert source.file_name == "ids.txt"

    def test_read_file_strips_bom(self, reader, tmp_path):
        path = tmp_path / "refs.csv"
        path.write_text("\ufefftitle\nA\n", encoding="utf-8")

        assert reader.read_file(path).records[0].title == "A"

    def test_read_missing_file(self, reader, tmp_path):
        with pytest.raises(SourceReadError):
            reader.read_file(tmp_path / "missing.txt")
