"""Tests for spreadsheet, CSV and JSON-records conversion."""

import asyncio
import json
from io import BytesIO

import openpyxl
import pytest

from fileshift.converters.tabular import (
    CsvHandler,
    JsonRecordsHandler,
    SpreadsheetHandler,
    cell_text,
    coerce_number,
    parse_csv,
    parse_records,
    records_to_rows,
    rows_to_csv,
    rows_to_records,
    unique_headers,
)
from fileshift.engines import EngineRegistry
from fileshift.errors import ConversionError, UnsupportedConversionError
from fileshift.files import SourceFile
from fileshift.routing import CAPABILITIES

from helpers.fakes import make_settings, ready_engine

XLSX_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

CSV_TEXT = "name,qty,code\nwidget,12,007\ngadget,1.5,042\n"


@pytest.fixture
def engines():
    return EngineRegistry([ready_engine("spreadsheet", openpyxl)])


def _handler(handler_class, key, engines, tmp_path):
    return handler_class(CAPABILITIES[key], engines, make_settings(tmp_path))


def _xlsx(rows):
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class TestHeadersAndRecords:
    """Header disambiguation and record building."""

    def test_blank_and_duplicate_headers(self):
        headers = unique_headers(["name", "", "name", None, "name"])
        assert headers == ["name", "__EMPTY", "name_1", "__EMPTY_1", "name_2"]

    def test_blank_cells_and_rows_are_skipped(self):
        rows = [["a", "b"], ["1", ""], [None, None], ["", "x"]]
        assert rows_to_records(rows) == [{"a": "1"}, {"b": "x"}]

    def test_cells_past_the_header_are_kept(self):
        rows = [["a", None], ["1", "2", "3", "4"], ["5"]]
        assert rows_to_records(rows) == [
            {"a": "1", "__EMPTY": "2", "__EMPTY_1": "3", "__EMPTY_2": "4"},
            {"a": "5"},
        ]

    def test_integral_floats_become_ints(self):
        assert rows_to_records([["n"], [3.0], [2.5]]) == [{"n": 3}, {"n": 2.5}]

    def test_records_to_rows_unions_keys(self):
        rows = records_to_rows([{"a": 1}, {"b": 2, "a": 3}])
        assert rows == [["a", "b"], [1, None], [3, 2]]

    def test_no_records(self):
        assert records_to_rows([]) == []
        assert rows_to_records([]) == []


class TestCells:
    @pytest.mark.parametrize(
        "value,expected",
        [("12", 12), ("-3", -3), ("1.5e3", 1500.0), ("007", "007"), ("1,000", "1,000"), (4, 4)],
    )
    def test_coerce_number(self, value, expected):
        assert coerce_number(value) == expected
        assert type(coerce_number(value)) is type(expected)

    def test_cell_text(self):
        assert cell_text(True) == "TRUE"
        assert cell_text(None) == ""
        assert cell_text(2.0) == "2"
        assert cell_text({"k": "v"}) == '{"k": "v"}'

    def test_csv_quotes_as_needed(self):
        assert rows_to_csv([["a,b", 'say "hi"']]) == '"a,b","say ""hi"""\n'


class TestParsing:
    def test_parse_csv_trims_trailing_blanks(self):
        assert parse_csv(b"\xef\xbb\xbfa,b,\n1,2,\n\n") == [["a", "b"], ["1", "2"]]

    def test_parse_csv_falls_back_to_latin1(self):
        assert parse_csv("caf\xe9\n".encode("latin-1")) == [["caf\xe9"]]

    @pytest.mark.parametrize("payload", [b"{}", b"[1, 2]", b'"text"'])
    def test_records_must_be_array_of_objects(self, payload):
        with pytest.raises(ConversionError, match="array of objects"):
            parse_records(payload)

    def test_invalid_json(self):
        with pytest.raises(ConversionError, match="Invalid JSON"):
            parse_records(b"[{")


class TestHandlers:
    """End-to-end conversions through the handlers."""

    def test_csv_to_json(self, engines, tmp_path):
        handler = _handler(CsvHandler, "text/csv", engines, tmp_path)
        result = asyncio.run(handler.convert(SourceFile("stock.csv", CSV_TEXT.encode()), "json"))

        assert result.filename == "stock.json"
        assert result.mime_type == "application/json"
        assert json.loads(result.data) == [
            {"name": "widget", "qty": "12", "code": "007"},
            {"name": "gadget", "qty": "1.5", "code": "042"},
        ]

    def test_csv_row_wider_than_header(self, engines, tmp_path):
        handler = _handler(CsvHandler, "text/csv", engines, tmp_path)
        data = b"a,b\n1,2,3\n4,5,6\n"
        result = asyncio.run(handler.convert(SourceFile("t.csv", data, "text/csv"), "json"))

        assert json.loads(result.data) == [
            {"a": "1", "b": "2", "__EMPTY": "3"},
            {"a": "4", "b": "5", "__EMPTY": "6"},
        ]

    def test_json_back_to_csv(self, engines, tmp_path):
        to_json = _handler(CsvHandler, "text/csv", engines, tmp_path)
        to_csv = _handler(JsonRecordsHandler, "application/json", engines, tmp_path)

        async def scenario():
            as_json = await to_json.convert(SourceFile("stock.csv", CSV_TEXT.encode()), "json")
            return await to_csv.convert(SourceFile("stock.json", as_json.data), "csv")

        result = asyncio.run(scenario())
        assert result.filename == "stock.csv"
        assert result.data.decode() == CSV_TEXT

    def test_csv_to_xlsx_and_back(self, engines, tmp_path):
        to_xlsx = _handler(CsvHandler, "text/csv", engines, tmp_path)
        from_xlsx = _handler(SpreadsheetHandler, XLSX_TYPE, engines, tmp_path)

        async def scenario():
            workbook = await to_xlsx.convert(SourceFile("stock.csv", CSV_TEXT.encode()), "xlsx")
            back = await from_xlsx.convert(SourceFile("stock.xlsx", workbook.data), "csv")
            return workbook, back

        workbook, back = asyncio.run(scenario())
        assert workbook.filename == "stock.xlsx"
        sheet = openpyxl.load_workbook(BytesIO(workbook.data)).active
        assert sheet.title == "Sheet1"
        assert sheet["B2"].value == 12
        assert sheet["C2"].value == "007"
        assert back.data.decode() == CSV_TEXT

    def test_xlsx_first_sheet_to_json(self, engines, tmp_path):
        data = _xlsx([["id", None, "id"], [1, "x", 2], [None, None, None], [3.0, None, True]])
        handler = _handler(SpreadsheetHandler, XLSX_TYPE, engines, tmp_path)

        result = asyncio.run(handler.convert(SourceFile("book.xlsx", data), "json"))
        assert json.loads(result.data) == [
            {"id": 1, "__EMPTY": "x", "id_1": 2},
            {"id": 3, "id_1": True},
        ]

    def test_preview_shows_leading_rows(self, engines, tmp_path):
        handler = _handler(CsvHandler, "text/csv", engines, tmp_path)
        preview = asyncio.run(handler.preview(SourceFile("stock.csv", CSV_TEXT.encode())))
        assert preview.caption == "CSV file loaded: stock.csv. Ready to convert."
        assert preview.text.startswith("name,qty,code")

    def test_unreadable_workbook(self, engines, tmp_path):
        handler = _handler(SpreadsheetHandler, XLSX_TYPE, engines, tmp_path)
        with pytest.raises(ConversionError, match="Could not read book.xlsx"):
            asyncio.run(handler.convert(SourceFile("book.xlsx", b"not a zip"), "csv"))

    def test_unsupported_target(self, engines, tmp_path):
        handler = _handler(CsvHandler, "text/csv", engines, tmp_path)
        with pytest.raises(UnsupportedConversionError):
            asyncio.run(handler.convert(SourceFile("a.csv", b"a\n1\n"), "pdf"))
