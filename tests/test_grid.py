from __future__ import annotations

import io
from datetime import datetime

import pytest
from openpyxl import Workbook

from statement_ingest.grid import (
    detect_header_row,
    is_encrypted_pdf,
    read_grid,
    score_header_row,
    split_header,
)
from statement_ingest.models import ExtractionError
from statement_ingest.columns import header_keywords


def _xlsx_bytes(rows: list[list[object]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def test_reads_comma_csv_with_bom() -> None:
    data = "﻿Date,Description,Amount\n2024-03-01,Coffee,4.50\n".encode()
    rows = read_grid(data, filename="stmt.csv")
    assert rows[0] == ["Date", "Description", "Amount"]
    assert rows[1] == ["2024-03-01", "Coffee", "4.50"]


def test_reads_semicolon_csv() -> None:
    data = b"Date;Description;Amount\n01/03/2024;Coffee;4,50\n02/03/2024;Bus;2,00\n"
    rows = read_grid(data)
    assert rows[0] == ["Date", "Description", "Amount"]
    assert rows[2] == ["02/03/2024", "Bus", "2,00"]


def test_falls_back_to_cp1252() -> None:
    data = "Date,Description,Amount\n2024-03-01,Café €,4.50\n".encode("cp1252")
    rows = read_grid(data)
    assert rows[1][1] == "Café €"


def test_reads_first_sheet_of_xlsx() -> None:
    data = _xlsx_bytes(
        [
            ["Date", "Description", "Amount"],
            [datetime(2024, 3, 1, 9, 30), "Coffee", 4.5],
        ]
    )
    rows = read_grid(data, filename="stmt.xlsx")
    assert rows[0] == ["Date", "Description", "Amount"]
    assert rows[1][0] == datetime(2024, 3, 1, 9, 30)
    assert rows[1][2] == 4.5


def test_trailing_blank_cells_are_trimmed() -> None:
    rows = read_grid(b"Date,Description,Amount,,\n2024-03-01,Coffee,4.50,,\n")
    assert rows[0] == ["Date", "Description", "Amount"]
    assert rows[1] == ["2024-03-01", "Coffee", "4.50"]


def test_single_row_file_is_unreadable() -> None:
    with pytest.raises(ExtractionError):
        read_grid(b"Date,Description,Amount\n")


def test_encrypted_pdf_reports_password_protection() -> None:
    data = b"%PDF-1.7\n1 0 obj\n<< /Encrypt 5 0 R >>\nendobj\n"
    assert is_encrypted_pdf(data)
    with pytest.raises(ExtractionError, match="password"):
        read_grid(data)


def test_plain_pdf_points_to_extracted_rows_entrypoint() -> None:
    with pytest.raises(ValueError, match="transform_extracted_rows"):
        read_grid(b"%PDF-1.4\n% no encryption\n", filename="statement.pdf")


def test_detects_header_after_bank_preamble() -> None:
    rows: list[list[object]] = [
        ["First National Bank"],
        ["Account", "12345678"],
        ["Statement period", "01/03/2024 - 31/03/2024", ""],
        [],
        ["Txn Date", "Narration", "Withdrawal Amt.", "Deposit Amt.", "Closing Balance"],
        ["01/03/24", "UPI-SWIGGY", "250.00", "", "9750.00"],
        ["02/03/24", "SALARY MARCH", "", "50000.00", "59750.00"],
    ]
    assert detect_header_row(rows) == 4
    header, data_rows = split_header(rows, 4)
    assert header[0] == "Txn Date"
    assert len(data_rows) == 2


def test_header_detection_defaults_to_first_row() -> None:
    rows = [["a", "b"], ["1", "2"]]
    assert detect_header_row(rows) == 0


def test_short_rows_never_qualify_and_ties_keep_earliest() -> None:
    keywords = header_keywords()
    assert score_header_row(["Date", "Amount"], keywords) is None
    rows = [
        ["Date", "Description", "Amount"],
        ["Date", "Description", "Amount"],
    ]
    assert detect_header_row(rows) == 0


def test_numeric_rows_score_below_header() -> None:
    keywords = header_keywords()
    header_score = score_header_row(["Date", "Description", "Amount"], keywords)
    data_score = score_header_row(["2024-03-01", "Coffee", "4.50"], keywords)
    assert header_score is not None and data_score is not None
    assert header_score > data_score


def test_damaged_xlsx_is_unreadable_not_a_crash() -> None:
    with pytest.raises(ExtractionError, match="unreadable"):
        read_grid(b"PK\x03\x04not really a zip", filename="stmt.xlsx")


OLE_HEADER = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 504


def test_encrypted_workbook_reports_password_protection() -> None:
    data = OLE_HEADER + "EncryptedPackage".encode("utf-16-le") + b"\x00" * 64
    with pytest.raises(ExtractionError, match="password"):
        read_grid(data, filename="stmt.xlsx")


def test_damaged_legacy_xls_is_unreadable() -> None:
    with pytest.raises(ExtractionError, match="unreadable"):
        read_grid(OLE_HEADER, filename="stmt.xls")


def test_text_export_labelled_xls_is_read_as_delimited() -> None:
    rows = read_grid(b"Date,Description,Amount\n2024-03-01,Coffee,4.50\n", filename="stmt.xls")
    assert rows[1] == ["2024-03-01", "Coffee", "4.50"]
