"""Spreadsheet, CSV and JSON-records conversion.

All tabular handlers work on a plain list of rows (the first sheet or table
only) and share the same record semantics: the first row is the header,
blank cells and blank rows are left out, and records keep row order.
"""

import asyncio
import csv
import datetime
import io
import json
import logging
import re
from abc import abstractmethod
from io import BytesIO
from typing import Any, Iterable, Sequence

from fileshift.engines.builtin import LEGACY_SPREADSHEET, SPREADSHEET
from fileshift.errors import ConversionError
from fileshift.files import SourceFile
from fileshift.routing import CapabilityKind
from fileshift.status import ProgressCallback

from .base import BaseHandler, ConversionResult, Representation
from .markup import excerpt

logger = logging.getLogger(__name__)

Row = list[Any]

EMPTY_HEADER = "__EMPTY"
PREVIEW_ROWS = 10
XLSX_SHEET_TITLE = "Sheet1"

_NUMBER_RE = re.compile(r"^-?(0|[1-9]\d*)(\.\d+)?([eE][+-]?\d+)?$")


# ---------------------------------------------------------------------------
# Cell and row helpers
# ---------------------------------------------------------------------------


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def normalize_cell(value: Any) -> Any:
    """Make a cell JSON-friendly: integral floats become ints, dates ISO strings."""
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    return value


def cell_text(value: Any) -> str:
    """Render a cell for CSV output."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    value = normalize_cell(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


def coerce_number(value: Any) -> Any:
    """Turn numeric-looking strings into numbers; leave everything else."""
    if not isinstance(value, str):
        return value
    text = value.strip()
    if not _NUMBER_RE.match(text):
        return value
    if re.fullmatch(r"-?(0|[1-9]\d*)", text):
        return int(text)
    return float(text)


def unique_headers(header_row: Sequence[Any]) -> list[str]:
    """Header names with blanks and duplicates disambiguated."""
    headers: list[str] = []
    seen: set[str] = set()
    empty_count = 0
    for value in header_row:
        if is_blank(value):
            name = EMPTY_HEADER if empty_count == 0 else f"{EMPTY_HEADER}_{empty_count}"
            empty_count += 1
        else:
            name = cell_text(value)
        candidate = name
        suffix = 1
        while candidate in seen:
            candidate = f"{name}_{suffix}"
            suffix += 1
        seen.add(candidate)
        headers.append(candidate)
    return headers


def rows_to_records(rows: Sequence[Sequence[Any]]) -> list[dict[str, Any]]:
    """Header-keyed records from the rows below the header.

    Columns past the end of the header row are keyed like blank headers
    (``__EMPTY``, ``__EMPTY_1``...), so no cell is lost.
    """
    if not rows:
        return []
    width = max(len(row) for row in rows)
    header_row = list(rows[0]) + [None] * (width - len(rows[0]))
    headers = unique_headers(header_row)
    records = []
    for row in rows[1:]:
        record = {
            headers[index]: normalize_cell(value)
            for index, value in enumerate(row)
            if not is_blank(value)
        }
        if record:
            records.append(record)
    return records


def records_to_rows(records: Sequence[dict[str, Any]]) -> list[Row]:
    """Table whose header is the union of record keys in first-seen order."""
    headers: list[str] = []
    for record in records:
        for key in record:
            if key not in headers:
                headers.append(key)
    if not headers:
        return []
    rows: list[Row] = [list(headers)]
    for record in records:
        rows.append([record.get(header) for header in headers])
    return rows


def rows_to_csv(rows: Iterable[Sequence[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    for row in rows:
        writer.writerow([cell_text(value) for value in row])
    return buffer.getvalue()


def trim_rows(rows: Iterable[Sequence[Any]]) -> list[Row]:
    """Drop trailing blank cells and trailing blank rows."""
    trimmed = []
    for row in rows:
        cells = list(row)
        while cells and is_blank(cells[-1]):
            cells.pop()
        trimmed.append(cells)
    while trimmed and not trimmed[-1]:
        trimmed.pop()
    return trimmed


def records_json(records: Sequence[dict[str, Any]]) -> bytes:
    return json.dumps(records, indent=2, ensure_ascii=False).encode("utf-8")


def decode_text(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def parse_csv(data: bytes) -> list[Row]:
    text = decode_text(data)
    try:
        return trim_rows(csv.reader(io.StringIO(text)))
    except csv.Error as e:
        raise ConversionError(f"Malformed CSV: {e}") from e


def parse_records(data: bytes) -> list[dict[str, Any]]:
    """A JSON array of objects."""
    try:
        payload = json.loads(decode_text(data))
    except json.JSONDecodeError as e:
        raise ConversionError(f"Invalid JSON: {e.msg} (line {e.lineno})") from e
    if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
        raise ConversionError("JSON input must be an array of objects")
    return payload


# ---------------------------------------------------------------------------
# Workbook I/O
# ---------------------------------------------------------------------------


def read_xlsx(openpyxl: Any, data: bytes) -> list[Row]:
    """Rows of the first worksheet."""
    workbook = openpyxl.load_workbook(BytesIO(data), read_only=True, data_only=True)
    try:
        if not workbook.worksheets:
            return []
        sheet = workbook.worksheets[0]
        return trim_rows(sheet.iter_rows(values_only=True))
    finally:
        workbook.close()


def read_xls(xlrd: Any, data: bytes) -> list[Row]:
    """Rows of the first sheet of a legacy workbook."""
    book = xlrd.open_workbook(file_contents=data)
    if book.nsheets == 0:
        return []
    sheet = book.sheet_by_index(0)
    rows = []
    for index in range(sheet.nrows):
        row = []
        for cell in sheet.row(index):
            if cell.ctype == xlrd.XL_CELL_DATE:
                row.append(xlrd.xldate.xldate_as_datetime(cell.value, book.datemode))
            elif cell.ctype == xlrd.XL_CELL_BOOLEAN:
                row.append(bool(cell.value))
            elif cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
                row.append(None)
            else:
                row.append(cell.value)
        rows.append(row)
    return trim_rows(rows)


def write_xlsx(openpyxl: Any, rows: Iterable[Sequence[Any]]) -> bytes:
    """Single-sheet workbook; numeric-looking strings are stored as numbers."""
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.title = XLSX_SHEET_TITLE
    for row in rows:
        sheet.append([_xlsx_cell(value) for value in row])
    buffer = BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def _xlsx_cell(value: Any) -> Any:
    if is_blank(value):
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return coerce_number(value)


def preview_text(rows: Sequence[Sequence[Any]]) -> str:
    return excerpt(rows_to_csv(rows[:PREVIEW_ROWS]), limit=1200)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


class _TabularHandler(BaseHandler):
    label = "Table"

    @abstractmethod
    async def read_rows(self, file: SourceFile) -> list[Row]:
        """Rows of the first table in *file*, header first."""

    async def _rows(self, file: SourceFile) -> list[Row]:
        try:
            return await self.read_rows(file)
        except ConversionError:
            raise
        except Exception as e:
            raise ConversionError(f"Could not read {file.name}: {e}") from e

    async def preview(self, file: SourceFile) -> Representation:
        rows = await self._rows(file)
        return Representation.placeholder(
            f"{self.label} file loaded: {file.name}. Ready to convert.", preview_text(rows)
        )

    async def write(self, rows: list[Row], output_format: str) -> bytes:
        if output_format == "json":
            return records_json(rows_to_records(rows))
        if output_format == "csv":
            return rows_to_csv(rows).encode("utf-8")
        openpyxl = await self.engine(SPREADSHEET)
        return await asyncio.to_thread(write_xlsx, openpyxl, rows)

    async def _convert(
        self, file: SourceFile, output_format: str, progress: ProgressCallback
    ) -> ConversionResult:
        rows = await self._rows(file)
        progress(0.5)
        data = await self.write(rows, output_format)
        progress(1.0)
        logger.debug(f"{file.name}: {max(len(rows) - 1, 0)} data rows -> {output_format}")
        return self.result(data, file.with_extension(output_format), output_format)


class SpreadsheetHandler(_TabularHandler):
    """xlsx (openpyxl) and xls (xlrd) workbooks, first sheet only."""

    kinds = (CapabilityKind.SPREADSHEET,)
    label = "Excel"

    async def read_rows(self, file: SourceFile) -> list[Row]:
        module = await self.engine()
        if self.capability.required_engine == LEGACY_SPREADSHEET:
            return await asyncio.to_thread(read_xls, module, file.data)
        return await asyncio.to_thread(read_xlsx, module, file.data)


class CsvHandler(_TabularHandler):
    kinds = (CapabilityKind.CSV_TABLE,)
    label = "CSV"

    async def read_rows(self, file: SourceFile) -> list[Row]:
        return parse_csv(file.data)


class JsonRecordsHandler(_TabularHandler):
    """A JSON array of objects as a table."""

    kinds = (CapabilityKind.JSON_RECORDS,)
    label = "JSON"

    async def read_rows(self, file: SourceFile) -> list[Row]:
        return records_to_rows(parse_records(file.data))

    async def preview(self, file: SourceFile) -> Representation:
        records = parse_records(file.data)
        rows = records_to_rows(records)
        return Representation.placeholder(
            f"JSON file loaded: {file.name} ({len(records)} records). Ready to convert.",
            preview_text(rows),
        )
