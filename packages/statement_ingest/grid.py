"""Grid extraction: file bytes to a rectangular grid plus header detection.

Spreadsheets are read with ``openpyxl`` (first worksheet, cached values);
legacy BIFF ``.xls`` workbooks go through ``xlrd``. A workbook that cannot be
opened is reported as unreadable rather than crashing the caller.
Anything else is treated as delimited text and parsed with the stdlib
:mod:`csv` module after sniffing the delimiter. PDFs are out of scope for the
grid path; their rows arrive already structured from an external document
service (see :func:`statement_ingest.normalizers.normalize_extracted_rows`).

Bank exports frequently open with address/account preambles, so the header
row is chosen by scoring the first rows rather than assumed to be row 0.
"""

from __future__ import annotations

import csv
import io
import re
import zipfile
from collections.abc import Sequence
from pathlib import PurePath

import xlrd
from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .columns import header_keywords
from .logging_setup import get_logger
from .models import Cell, ExtractionError, Row

HEADER_SCAN_LIMIT = 100
_MIN_HEADER_CELLS = 3

_XLSX_SUFFIXES = {".xlsx", ".xlsm", ".xltx", ".xltm"}
_XLSX_CONTENT_TYPES = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel.sheet.macroenabled.12",
}
_ZIP_MAGIC = b"PK\x03\x04"
_OLE_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
_OLE_ENCRYPTED_STREAM = "EncryptedPackage".encode("utf-16-le")
_PDF_MAGIC = b"%PDF"
_UNREADABLE_MESSAGE = "File appears empty or unreadable"
_PASSWORD_MESSAGE = (
    "This workbook appears to be password protected. "
    "Please remove the password and try again."
)
_TEXT_ENCODINGS = ("utf-8-sig", "cp1252", "latin-1")
_DELIMITERS = ",;\t|"
_NUMERIC_NOISE_RE = re.compile(r"[.,\-/]")

_logger = get_logger("statement_ingest.grid")


def _suffix(filename: str | None) -> str:
    return PurePath(filename).suffix.lower() if filename else ""


def is_pdf(data: bytes, *, filename: str | None = None, content_type: str | None = None) -> bool:
    return (
        data[:4] == _PDF_MAGIC
        or _suffix(filename) == ".pdf"
        or (content_type or "").lower() == "application/pdf"
    )


def is_encrypted_pdf(data: bytes) -> bool:
    """Cheap scan of raw PDF bytes for a standard encryption dictionary."""

    return b"/Encrypt" in data and b"/Encrypt null" not in data


def _is_xlsx(data: bytes, filename: str | None, content_type: str | None) -> bool:
    if _suffix(filename) in _XLSX_SUFFIXES:
        return True
    if (content_type or "").lower() in _XLSX_CONTENT_TYPES:
        return True
    return data[:4] == _ZIP_MAGIC


def _is_ole(data: bytes) -> bool:
    """Legacy ``.xls`` workbooks and encrypted OOXML both use the OLE container.

    Only the magic counts: banks often label delimited text exports ``.xls``.
    """

    return data[:8] == _OLE_MAGIC


def _trim_row(row: Sequence[Cell]) -> Row:
    out = list(row)
    while out and (out[-1] is None or (isinstance(out[-1], str) and not out[-1].strip())):
        out.pop()
    return out


def _read_xlsx(data: bytes) -> list[Row]:
    try:
        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (zipfile.BadZipFile, InvalidFileException, KeyError, OSError) as e:
        _logger.debug("grid:xlsx_unreadable error=%s", e.__class__.__name__)
        raise ExtractionError(_UNREADABLE_MESSAGE) from e
    try:
        ws = wb.worksheets[0]
        return [_trim_row(r) for r in ws.iter_rows(values_only=True)]
    finally:
        wb.close()


def _xls_cell(cell: xlrd.sheet.Cell, datemode: int) -> Cell:
    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK, xlrd.XL_CELL_ERROR):
        return None
    if cell.ctype == xlrd.XL_CELL_DATE:
        return xlrd.xldate.xldate_as_datetime(cell.value, datemode)
    if cell.ctype == xlrd.XL_CELL_BOOLEAN:
        return bool(cell.value)
    return cell.value


def _read_xls(data: bytes) -> list[Row]:
    """Read the first sheet of a legacy BIFF workbook.

    Encrypted OOXML workbooks share the OLE container, so they are told apart
    by their ``EncryptedPackage`` stream before ``xlrd`` is tried.
    """

    if _OLE_ENCRYPTED_STREAM in data:
        raise ExtractionError(_PASSWORD_MESSAGE)
    try:
        book = xlrd.open_workbook(file_contents=data, on_demand=True)
    except Exception as e:  # noqa: BLE001 - xlrd raises assorted errors for damaged files
        _logger.debug("grid:xls_unreadable error=%s", e.__class__.__name__)
        raise ExtractionError(_UNREADABLE_MESSAGE) from e
    try:
        sheet = book.sheet_by_index(0)
        return [
            _trim_row([_xls_cell(c, book.datemode) for c in sheet.row(i)])
            for i in range(sheet.nrows)
        ]
    finally:
        book.release_resources()


def _decode_text(data: bytes) -> str:
    for enc in _TEXT_ENCODINGS:
        try:
            return data.decode(enc)
        except UnicodeDecodeError:
            continue
    # latin-1 decodes any byte sequence, so this is unreachable in practice.
    raise ExtractionError(_UNREADABLE_MESSAGE)


def _sniff_dialect(sample: str) -> type[csv.Dialect] | csv.Dialect:
    try:
        return csv.Sniffer().sniff(sample, delimiters=_DELIMITERS)
    except csv.Error:
        return csv.excel


def _read_delimited(data: bytes) -> list[Row]:
    text = _decode_text(data)
    dialect = _sniff_dialect(text[:8192])
    with io.StringIO(text, newline="") as f:
        return [_trim_row(r) for r in csv.reader(f, dialect)]


def read_grid(
    data: bytes, *, filename: str | None = None, content_type: str | None = None
) -> list[Row]:
    """Return every row of the first sheet (or the delimited text) as cells.

    Raises :class:`~statement_ingest.models.ExtractionError` for encrypted
    PDFs or workbooks, damaged workbooks and files with fewer than two rows,
    and ``ValueError`` for other PDFs, which need the structured-rows
    entrypoint instead.
    """

    if is_pdf(data, filename=filename, content_type=content_type):
        if is_encrypted_pdf(data):
            raise ExtractionError(
                "This PDF appears to be password protected. "
                "Please remove the password and try again."
            )
        raise ValueError(
            "PDF statements are not tabular; extract rows with a document service and "
            "pass them to transform_extracted_rows()"
        )

    if _is_ole(data):
        rows = _read_xls(data)
        source = "xls"
    elif _is_xlsx(data, filename, content_type):
        rows = _read_xlsx(data)
        source = "xlsx"
    else:
        rows = _read_delimited(data)
        source = "delimited"

    _logger.debug("grid:read source=%s rows=%d filename=%s", source, len(rows), filename)
    if len(rows) < 2:
        raise ExtractionError(_UNREADABLE_MESSAGE)
    return rows


def _is_blank(cell: Cell) -> bool:
    return cell is None or str(cell).strip() == ""


def score_header_row(row: Sequence[Cell], keywords: Sequence[str]) -> float | None:
    """Score one candidate header row; ``None`` when the row cannot qualify.

    Purely numeric cells cost 3 points, cells naming a known field earn 3,
    any other text longer than two characters earns 0.5. Rows with at least
    three populated cells also earn one point per populated cell.
    """

    if len(row) < _MIN_HEADER_CELLS:
        return None
    score = 0.0
    non_empty = 0
    for cell in row:
        if _is_blank(cell):
            continue
        non_empty += 1
        text = str(cell).strip().lower()
        if _NUMERIC_NOISE_RE.sub("", text).isdigit():
            score -= 3
        elif any(k in text for k in keywords):
            score += 3
        elif len(text) > 2:
            score += 0.5
    if non_empty >= _MIN_HEADER_CELLS:
        score += non_empty
    return score


def detect_header_row(
    rows: Sequence[Sequence[Cell]], *, scan_limit: int = HEADER_SCAN_LIMIT
) -> int:
    """Return the index of the most header-like row among the first rows.

    Defaults to 0 when no row qualifies; downstream resolution then fails on
    its own terms.
    """

    keywords = header_keywords()
    best_index = 0
    best_score: float | None = None
    for i, row in enumerate(rows[:scan_limit]):
        score = score_header_row(row, keywords)
        if score is None:
            continue
        if best_score is None or score > best_score:
            best_score = score
            best_index = i
    return best_index


def split_header(rows: Sequence[Row], header_index: int) -> tuple[list[str], list[Row]]:
    """Split ``rows`` into stringified header cells and the rows below it."""

    header = ["" if c is None else str(c).strip() for c in rows[header_index]]
    return header, list(rows[header_index + 1 :])


__all__ = [
    "HEADER_SCAN_LIMIT",
    "detect_header_row",
    "is_encrypted_pdf",
    "is_pdf",
    "read_grid",
    "score_header_row",
    "split_header",
]
