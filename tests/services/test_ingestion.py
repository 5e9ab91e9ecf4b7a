"""
Unit tests for file ingestion.
"""

import io

import pytest
from openpyxl import Workbook

from app.core.errors import EmptyFile, FileTooLarge, MalformedFile, NoHeaders
from app.models.dataset import SourceFormat
from app.services.ingestion import detect_delimiter, parse_upload


def workbook_bytes(rows):
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    output = io.BytesIO()
    wb.save(output)
    return output.getvalue()


class TestDetectDelimiter:
    """Test delimiter detection on the header line"""

    @pytest.mark.parametrize("line,expected", [
        ("SKU,Name,Price", ","),
        ("SKU;Name;Price", ";"),
        ("SKU\tName\tPrice", "\t"),
        ("SKU|Name|Price", "|"),
        ("SKU", ","),
    ])
    def test_detect(self, line, expected):
        assert detect_delimiter(line) == expected


class TestParseDelimited:
    """Test CSV parsing"""

    def test_basic_csv(self, csv_bytes):
        """Test headers, rows and preview of a simple file"""
        result = parse_upload(csv_bytes(["SKU", "Name", "Price"], [["A1", "Widget", "9.99"]]), "p.csv")

        assert result.dataset.headers == ["SKU", "Name", "Price"]
        assert result.dataset.rows == [["A1", "Widget", "9.99"]]
        assert result.dataset.source_format == SourceFormat.CSV
        assert result.preview.total_rows == 1
        assert result.preview.delimiter == ","

    def test_semicolon_file(self, csv_bytes):
        content = csv_bytes(["SKU", "Price"], [["A1", "9,99"]], delimiter=";")
        dataset = parse_upload(content, "p.csv").dataset

        assert dataset.delimiter == ";"
        assert dataset.rows == [["A1", "9,99"]]

    def test_quoted_fields_keep_delimiters_and_newlines(self):
        content = b'SKU,Description\nA1,"Soft, warm\nand light"\n'
        dataset = parse_upload(content, "p.csv").dataset

        assert dataset.rows == [["A1", "Soft, warm\nand light"]]

    def test_byte_order_mark_is_removed(self):
        dataset = parse_upload("\ufeffSKU,Name\nA1,Widget\n".encode("utf-8"), "p.csv").dataset
        assert dataset.headers == ["SKU", "Name"]

    def test_headers_are_trimmed(self):
        dataset = parse_upload(b" SKU , Name \nA1,Widget\n", "p.csv").dataset
        assert dataset.headers == ["SKU", "Name"]

    def test_short_rows_are_padded(self):
        dataset = parse_upload(b"SKU,Name,Price\nA1,Widget\n", "p.csv").dataset
        assert dataset.rows == [["A1", "Widget", ""]]

    def test_long_rows_are_truncated_with_warning(self):
        result = parse_upload(b"SKU,Name\nA1,Widget,extra\n", "p.csv")

        assert result.dataset.rows == [["A1", "Widget"]]
        assert len(result.preview.warnings) == 1

    def test_blank_rows_are_dropped(self):
        dataset = parse_upload(b"\n\nSKU,Name\nA1,Widget\n,\n\nB2,Gadget\n", "p.csv").dataset
        assert dataset.rows == [["A1", "Widget"], ["B2", "Gadget"]]

    def test_preview_is_bounded(self, csv_bytes, rows_of_products):
        result = parse_upload(csv_bytes(["SKU", "Name", "Price"], rows_of_products(20)), "p.csv")

        assert len(result.preview.sample_rows) == 5
        assert result.preview.total_rows == 20

    def test_progress_ticks(self, csv_bytes, rows_of_products):
        """Test progress is reported in steps of ten up to 100"""
        ticks = []
        parse_upload(csv_bytes(["SKU", "Name", "Price"], rows_of_products(50)), "p.csv", on_progress=ticks.append)

        assert ticks == list(range(0, 101, 10))

    def test_progress_reported_while_reading(self, csv_bytes, rows_of_products):
        """Test ticks are sent as lines are read, before a late parse error"""
        content = csv_bytes(["SKU", "Name", "Price"], rows_of_products(50)) + b'SKU-9999,"Broken,1.99\n'
        ticks = []

        with pytest.raises(MalformedFile):
            parse_upload(content, "p.csv", on_progress=ticks.append)

        assert ticks == list(range(0, 91, 10))

    def test_cell_larger_than_csv_default_limit(self):
        """Test a 200 KB description is data, not a malformed file"""
        description = "<p>" + "x" * 200_000 + "</p>"
        content = f"SKU,Name,Price,Description\nA1,Widget,9.99,{description}\n".encode("utf-8")

        result = parse_upload(content, "p.csv")

        assert result.dataset.rows[0][3] == description


class TestFileErrors:
    """Test file-level rejections"""

    def test_too_large_by_content(self, monkeypatch):
        monkeypatch.setattr("app.services.ingestion.config.max_file_size", 10)
        with pytest.raises(FileTooLarge):
            parse_upload(b"SKU,Name\nA1,Widget\n", "p.csv")

    def test_too_large_by_declared_size(self):
        with pytest.raises(FileTooLarge) as exc_info:
            parse_upload(b"SKU\nA1\n", "p.csv", declared_size=11 * 1024 * 1024)
        assert exc_info.value.status_code == 413

    def test_empty_file(self):
        with pytest.raises(EmptyFile):
            parse_upload(b"", "p.csv")

    def test_whitespace_only_file(self):
        with pytest.raises(EmptyFile):
            parse_upload(b"\n  \n\n", "p.csv")

    def test_header_only_file(self):
        with pytest.raises(EmptyFile):
            parse_upload(b"SKU,Name,Price\n", "p.csv")

    def test_blank_header_row(self):
        with pytest.raises(NoHeaders):
            parse_upload(b",,\nA1,Widget,9.99\n", "p.csv")

    def test_interior_blank_header(self):
        with pytest.raises(MalformedFile) as exc_info:
            parse_upload(b"SKU,,Price\nA1,Widget,9.99\n", "p.csv")
        assert exc_info.value.details["columns"] == [2]

    def test_unterminated_quote(self):
        with pytest.raises(MalformedFile):
            parse_upload(b'SKU,Name\nA1,"Widget\n', "p.csv")

    def test_invalid_utf8(self):
        with pytest.raises(MalformedFile):
            parse_upload(b"SKU,Name\nA1,\xff\xfe\n", "p.csv")


class TestParseWorkbook:
    """Test .xlsx parsing"""

    def test_workbook_cells_become_text(self):
        content = workbook_bytes([
            ["SKU", "Name", "Price", "Stock", "Featured", None],
            ["A1", "Widget", 9.99, 10.0, True, None],
        ])
        result = parse_upload(content, "products.xlsx")

        assert result.dataset.source_format == SourceFormat.XLSX
        assert result.dataset.headers == ["SKU", "Name", "Price", "Stock", "Featured"]
        assert result.dataset.rows == [["A1", "Widget", "9.99", "10", "yes"]]
        assert result.preview.delimiter is None

    def test_workbook_progress_ticks(self):
        ticks = []
        content = workbook_bytes([["SKU", "Name", "Price"]] + [[f"A{i}", "Widget", 9.99] for i in range(30)])

        parse_upload(content, "products.xlsx", on_progress=ticks.append)

        assert ticks == list(range(0, 101, 10))

    def test_corrupt_workbook(self):
        with pytest.raises(MalformedFile):
            parse_upload(b"not a zip archive", "products.xlsx")
