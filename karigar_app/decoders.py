from __future__ import annotations

import csv
from dataclasses import dataclass
from datetime import date, datetime, time
import io
import logging
from pathlib import PurePath
from typing import Callable, Optional

from openpyxl import load_workbook
import pdfplumber
import xlrd

from .errors import DecoderUnavailableError, KarigarParseError, UnsupportedFormatError


logger = logging.getLogger(__name__)

RawRow = list[Optional[str]]
RawGrid = list[RawRow]
Sheet = tuple[str, RawGrid]

CSV_SHEET_NAME = "Sheet1"

EXTENSION_TO_TYPE = {
    ".csv": "csv",
    ".xlsx": "xlsx",
    ".xlsm": "xlsx",
    ".xls": "xls",
    ".pdf": "pdf",
}
MIME_TO_TYPE = {
    "text/csv": "csv",
    "application/csv": "csv",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "application/vnd.ms-excel": "xls",
    "application/pdf": "pdf",
}
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"}


def detect_file_type(filename: str, mime_type: str = "") -> str:
    suffix = PurePath(filename or "").suffix.lower()
    if suffix in EXTENSION_TO_TYPE:
        return EXTENSION_TO_TYPE[suffix]
    return MIME_TO_TYPE.get((mime_type or "").strip().lower(), "unsupported")


def is_image_file(filename: str, mime_type: str = "") -> bool:
    if (mime_type or "").strip().lower().startswith("image/"):
        return True
    return PurePath(filename or "").suffix.lower() in IMAGE_EXTENSIONS


def cell_to_text(value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return f"{value:.12g}"
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, (date, time)):
        return value.isoformat()
    text = str(value)
    return text if text.strip() else None


def drop_blank_rows(rows: list[RawRow]) -> RawGrid:
    return [row for row in rows if any(cell is not None and cell.strip() for cell in row)]


def decode_spreadsheet(data: bytes, file_type: str) -> list[Sheet]:
    if file_type == "xlsx":
        return _decode_xlsx(data)
    if file_type == "xls":
        return _decode_xls(data)
    if file_type == "csv":
        return _decode_csv(data)
    raise UnsupportedFormatError(f"Unsupported spreadsheet type: {file_type}")


def _decode_xlsx(data: bytes) -> list[Sheet]:
    try:
        wb = load_workbook(io.BytesIO(data), data_only=True, read_only=True)
    except Exception as exc:
        raise KarigarParseError(f"Failed to read Excel file: {exc}") from exc
    sheets: list[Sheet] = []
    try:
        for ws in wb.worksheets:
            rows = [[cell_to_text(value) for value in row] for row in ws.iter_rows(values_only=True)]
            sheets.append((ws.title, drop_blank_rows(rows)))
    finally:
        wb.close()
    return sheets


def _decode_xls(data: bytes) -> list[Sheet]:
    try:
        book = xlrd.open_workbook(file_contents=data)
    except Exception as exc:
        raise KarigarParseError(f"Failed to read Excel file: {exc}") from exc
    sheets: list[Sheet] = []
    for sheet in book.sheets():
        rows: list[RawRow] = []
        for i in range(sheet.nrows):
            row: RawRow = []
            for cell in sheet.row(i):
                if cell.ctype == xlrd.XL_CELL_DATE:
                    row.append(cell_to_text(xlrd.xldate_as_datetime(cell.value, book.datemode)))
                elif cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
                    row.append(None)
                else:
                    row.append(cell_to_text(cell.value))
            rows.append(row)
        sheets.append((sheet.name, drop_blank_rows(rows)))
    return sheets


def _decode_csv(data: bytes) -> list[Sheet]:
    text = data.decode("utf-8-sig", errors="replace")
    rows = [[cell_to_text(cell) for cell in row] for row in csv.reader(io.StringIO(text))]
    return [(CSV_SHEET_NAME, drop_blank_rows(rows))]


def decode_pdf_text(data: bytes) -> list[str]:
    try:
        with pdfplumber.open(io.BytesIO(data)) as pdf:
            pages = [page.extract_text(layout=True) or "" for page in pdf.pages]
    except Exception as exc:
        raise KarigarParseError(f"Failed to read PDF file: {exc}") from exc
    logger.debug("Extracted text from %d PDF page(s)", len(pages))
    return pages


@dataclass(frozen=True)
class Decoders:
    """Document decoding capabilities handed to the parsers.

    A capability left as None is reported as unavailable at call time.
    """

    spreadsheet: Callable[[bytes, str], list[Sheet]] | None = decode_spreadsheet
    pdf: Callable[[bytes], list[str]] | None = decode_pdf_text

    def read_sheets(self, data: bytes, file_type: str) -> list[Sheet]:
        if self.spreadsheet is None:
            raise DecoderUnavailableError("Spreadsheet reader is not available. Please try again.")
        return self.spreadsheet(data, file_type)

    def read_pdf_pages(self, data: bytes) -> list[str]:
        if self.pdf is None:
            raise DecoderUnavailableError("PDF reader is not available. Please try again.")
        return self.pdf(data)


DEFAULT_DECODERS = Decoders()
