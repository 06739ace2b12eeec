"""Tabular upload parsing (CSV and XLSX) into :class:`ParsedRow` sequences.

The constructors read only the header row. ``rows()`` decodes the upload
as it goes, so content past the point a caller stops iterating is never
parsed. An unreadable file raises :class:`StructuralImportError` when the bad
part is reached.

Row numbering
-------------
- CSV: the physical line on which the record starts (header is line 1). Blank
  lines are skipped but still consume their number, and a quoted field spanning
  several lines advances the count for the rows after it.
- XLSX: the worksheet row index (header is row 1). The first fully-empty row
  ends the data.
"""

from __future__ import annotations

import codecs
import csv
import io
import re
import zipfile
from collections.abc import Iterator, Sequence
from datetime import date, datetime, time
from pathlib import PurePath
from typing import Any, Protocol

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from ..errors import StructuralImportError
from ..logging_setup import get_logger
from ..models import ParsedRow, normalize_header

logger = get_logger("finance_import.ingest.tabular")

SUPPORTED_EXTENSIONS: tuple[str, ...] = ("csv", "xlsx")
IMPORT_SHEET_NAME = "Import"


class TabularParser(Protocol):
    headers: tuple[str, ...]

    def rows(self) -> Iterator[ParsedRow]: ...


def file_extension(file_name: str) -> str:
    """Return the lower-cased extension of ``file_name`` without the dot."""

    return PurePath(file_name or "").suffix.lower().lstrip(".")


def _build_row(row_number: int, headers: Sequence[str], values: Sequence[str]) -> ParsedRow | None:
    """Zip ``headers`` with ``values`` (truncating to the shorter) into a row.

    Returns ``None`` when every mapped value is blank.
    """

    fields: dict[str, str] = {}
    for header, value in zip(headers, values):
        if not header:
            continue
        fields[normalize_header(header)] = value.strip()
    if not any(fields.values()):
        return None
    return ParsedRow(row_number=row_number, fields=fields)


_LINE_RE = re.compile(r"[^\r\n]*(?:\r\n|\r|\n)|[^\r\n]+")
_UTF8_MESSAGE = "Unable to read the CSV file. Save it with UTF-8 encoding and try again."


def _text_lines(content: bytes) -> Iterator[str]:
    # Decoded per physical line so a bad byte only fails once it is reached.
    for text in codecs.iterdecode(io.BytesIO(content), "utf-8-sig"):
        yield from _LINE_RE.findall(text)


class CsvParser:
    """Comma-separated text with double-quote escaping (``""`` is a literal quote)."""

    def __init__(self, content: bytes) -> None:
        self._content = content
        records = self._records()
        try:
            first = next(records, None)
        finally:
            records.close()
        self.headers: tuple[str, ...] = tuple(h.strip() for h in first[1]) if first else ()
        logger.debug("tabular:csv_opened headers=%d bytes=%d", len(self.headers), len(content))

    def _records(self) -> Iterator[tuple[int, list[str]]]:
        reader = csv.reader(_text_lines(self._content), strict=False)
        try:
            while True:
                start_line = reader.line_num + 1
                try:
                    values = next(reader)
                except StopIteration:
                    return
                yield start_line, values
        except UnicodeDecodeError as exc:
            raise StructuralImportError(_UTF8_MESSAGE) from exc
        except csv.Error as exc:
            raise StructuralImportError(f"Unable to parse the CSV file: {exc}") from exc

    def rows(self) -> Iterator[ParsedRow]:
        if not any(self.headers):
            return
        records = self._records()
        next(records, None)
        for row_number, values in records:
            if not values:
                continue
            row = _build_row(row_number, self.headers, values)
            if row is not None:
                yield row


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.time() == time(0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, time):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _open_workbook(content: bytes) -> Workbook:
    try:
        return load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (zipfile.BadZipFile, InvalidFileException, KeyError, OSError, ValueError) as exc:
        raise StructuralImportError(
            "Unable to read the spreadsheet. Please upload a valid XLSX file."
        ) from exc


class SpreadsheetParser:
    """First-sheet-or-``Import`` XLSX reader built on ``openpyxl``."""

    def __init__(self, content: bytes, *, sheet_name: str = IMPORT_SHEET_NAME) -> None:
        self._content = content
        workbook = _open_workbook(content)
        try:
            if not workbook.sheetnames:
                raise StructuralImportError("The workbook does not contain any worksheets.")
            name = sheet_name if sheet_name in workbook.sheetnames else workbook.sheetnames[0]
            first = next(workbook[name].iter_rows(max_row=1, values_only=True), ())
        finally:
            workbook.close()

        headers: list[str] = []
        for value in first:
            text = _cell_text(value)
            if not text:
                break
            headers.append(text)
        self.headers: tuple[str, ...] = tuple(headers)
        self.sheet_name = name
        logger.debug("tabular:xlsx_opened sheet=%s headers=%d", name, len(self.headers))

    def rows(self) -> Iterator[ParsedRow]:
        if not self.headers:
            return
        workbook = _open_workbook(self._content)
        try:
            worksheet = workbook[self.sheet_name]
            for row_number, values in enumerate(
                worksheet.iter_rows(min_row=2, values_only=True), start=2
            ):
                texts = [_cell_text(v) for v in values]
                if not any(texts):
                    break
                row = _build_row(row_number, self.headers, texts)
                if row is not None:
                    yield row
        finally:
            workbook.close()


def parser_for(extension: str, content: bytes) -> TabularParser:
    """Return the parser for a supported extension (``csv`` or ``xlsx``)."""

    ext = extension.lower().lstrip(".")
    if ext == "csv":
        return CsvParser(content)
    if ext == "xlsx":
        return SpreadsheetParser(content)
    raise StructuralImportError("Unsupported file type. Please upload a CSV or XLSX file.")


__all__ = [
    "IMPORT_SHEET_NAME",
    "SUPPORTED_EXTENSIONS",
    "CsvParser",
    "SpreadsheetParser",
    "TabularParser",
    "file_extension",
    "parser_for",
]
