from datetime import date, datetime
from io import BytesIO

from openpyxl import Workbook
import pytest

from karigar_app.decoders import (
    cell_to_text,
    decode_pdf_text,
    decode_spreadsheet,
    detect_file_type,
    drop_blank_rows,
    is_image_file,
)
from karigar_app.errors import KarigarParseError, UnsupportedFormatError


def test_detect_file_type_by_extension_then_mime():
    assert detect_file_type("Orders.XLSX") == "xlsx"
    assert detect_file_type("book.xlsm") == "xlsx"
    assert detect_file_type("old.xls") == "xls"
    assert detect_file_type("list.pdf", "text/csv") == "pdf"
    assert detect_file_type("upload", "application/vnd.ms-excel") == "xls"
    assert detect_file_type("upload", " Text/CSV ") == "csv"
    assert detect_file_type("notes.txt") == "unsupported"
    assert detect_file_type("") == "unsupported"


def test_is_image_file():
    assert is_image_file("shot.PNG")
    assert is_image_file("upload", "image/jpeg")
    assert not is_image_file("mapping.xlsx")


def test_cell_to_text():
    assert cell_to_text(None) is None
    assert cell_to_text(12.0) == "12"
    assert cell_to_text(5.25) == "5.25"
    assert cell_to_text(0.1 + 0.2) == "0.3"
    assert cell_to_text(7) == "7"
    assert cell_to_text(True) == "TRUE"
    assert cell_to_text(datetime(2024, 5, 1)) == "2024-05-01"
    assert cell_to_text(datetime(2024, 5, 1, 9, 30)) == "2024-05-01 09:30:00"
    assert cell_to_text(date(2024, 5, 1)) == "2024-05-01"
    assert cell_to_text("   ") is None
    assert cell_to_text(" AB-12 ") == " AB-12 "


def test_drop_blank_rows():
    assert drop_blank_rows([[None, " "], ["a", None], []]) == [["a", None]]


def test_decode_csv_strips_bom():
    sheets = decode_spreadsheet("\ufeffOrder No,Design\n1,AB-12\n\n".encode("utf-8"), "csv")
    assert sheets == [("Sheet1", [["Order No", "Design"], ["1", "AB-12"]])]


def test_decode_xlsx_keeps_sheet_order():
    wb = Workbook()
    wb.active.title = "Orders"
    wb.active.append(["Order No", "Design"])
    wb.active.append([1, "AB-12"])
    wb.create_sheet("Empty")
    buffer = BytesIO()
    wb.save(buffer)

    sheets = decode_spreadsheet(buffer.getvalue(), "xlsx")
    assert [name for name, _ in sheets] == ["Orders", "Empty"]
    assert sheets[0][1] == [["Order No", "Design"], ["1", "AB-12"]]
    assert sheets[1][1] == []


def test_decode_errors_are_parse_errors():
    with pytest.raises(KarigarParseError):
        decode_spreadsheet(b"not a workbook", "xlsx")
    with pytest.raises(KarigarParseError):
        decode_spreadsheet(b"not a workbook", "xls")
    with pytest.raises(KarigarParseError):
        decode_pdf_text(b"not a pdf")
    with pytest.raises(UnsupportedFormatError):
        decode_spreadsheet(b"", "pdf")
