"""
Spreadsheet (xlsx) codec built on openpyxl.

Also writes the combined error/skip report produced by import jobs.
"""

import io
import re
import zipfile
from typing import Any, Dict, List, Mapping, Optional, Sequence

import openpyxl
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from .base import TabularEncoder, TabularDecoder, resolve_columns, cell_text, build_row, non_blank_rows
from ..models.job import ExportFormat
from ..models.outcome import RowOutcome
from ..core.exceptions import DecodeError


HEADER_FONT = Font(bold=True)
HEADER_FILL = PatternFill(start_color="D3D3D3", end_color="D3D3D3", fill_type="solid")
REPORT_HEADER_FONT = Font(bold=True, color="FFFFFF")
REPORT_HEADER_FILL = PatternFill(start_color="FF0000", end_color="FF0000", fill_type="solid")

ERROR_REPORT_COLUMNS = ["Row Number", "Identifier", "Error Type", "Error Message", "Column"]

_INVALID_TITLE_CHARS = re.compile(r"[\\/*?:\[\]]")
_MAX_COLUMN_WIDTH = 60


def sheet_title(title: str, fallback: str = "Sheet1") -> str:
    """Excel sheet titles are limited to 31 characters and a safe charset."""
    cleaned = _INVALID_TITLE_CHARS.sub("", title or "").strip()
    return cleaned[:31] or fallback


def autofit_columns(worksheet: Worksheet) -> None:
    """Approximate auto-fit: width follows the longest text in each column."""
    widths: Dict[int, int] = {}
    for row in worksheet.iter_rows():
        for cell in row:
            if cell.value is not None:
                widths[cell.column] = max(widths.get(cell.column, 0), len(str(cell.value)))
    for column, width in widths.items():
        worksheet.column_dimensions[get_column_letter(column)].width = min(width + 2, _MAX_COLUMN_WIDTH)


def workbook_bytes(workbook: openpyxl.Workbook) -> bytes:
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class ExcelEncoder(TabularEncoder):
    """Writes one worksheet named after the entity type with a styled header row."""

    format = ExportFormat.EXCEL
    content_type = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

    def encode(self, rows: Sequence[Mapping[str, Any]], title: str = "Export") -> bytes:
        workbook = openpyxl.Workbook()
        worksheet = workbook.active
        worksheet.title = sheet_title(title)

        columns = resolve_columns(rows)
        if columns:
            worksheet.append(columns)
            for cell in worksheet[1]:
                cell.font = HEADER_FONT
                cell.fill = HEADER_FILL

            for row in rows:
                worksheet.append([cell_text(row.get(column)) for column in columns])

            autofit_columns(worksheet)

        return workbook_bytes(workbook)


class ExcelDecoder(TabularDecoder):
    """
    Reads the first worksheet of an xlsx upload.

    The header row bounds the columns (up to its last non-empty cell) and
    reading stops at the last row holding any value.
    """

    extensions = (".xlsx", ".xlsm")

    def decode(self, data: bytes, header_aliases: Optional[Mapping[str, str]] = None) -> List[Dict[str, str]]:
        try:
            workbook = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
        except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
            raise DecodeError("xlsx", str(e) or "not a valid workbook")

        try:
            if not workbook.worksheets:
                return []
            worksheet = workbook.worksheets[0]
            row_iter = worksheet.iter_rows(values_only=True)

            header_values = next(row_iter, None)
            if header_values is None:
                return []
            last_column = _last_used_index(header_values)
            headers = [cell_text(value).strip() for value in header_values[:last_column]]

            rows = []
            for values in row_iter:
                values = list(values[:last_column])
                rows.append(build_row(headers, values + [None] * (last_column - len(values)), header_aliases))
            return non_blank_rows(rows)
        finally:
            workbook.close()


def _last_used_index(values: Sequence[Any]) -> int:
    for index in range(len(values), 0, -1):
        if cell_text(values[index - 1]).strip():
            return index
    return 0


def encode_error_report(outcomes: Sequence[RowOutcome], title: str = "Import Errors") -> bytes:
    """
    Workbook listing failed and skipped import rows.

    Fixed columns come first, followed by the union of all captured row
    columns in first-seen order.
    """
    data_columns: List[str] = []
    seen = set()
    for outcome in outcomes:
        for column in outcome.row_data:
            if column not in seen:
                seen.add(column)
                data_columns.append(column)

    workbook = openpyxl.Workbook()
    worksheet = workbook.active
    worksheet.title = sheet_title(title)

    worksheet.append(ERROR_REPORT_COLUMNS + data_columns)
    for cell in worksheet[1]:
        cell.font = REPORT_HEADER_FONT
        cell.fill = REPORT_HEADER_FILL

    for outcome in outcomes:
        worksheet.append([
            outcome.row_number,
            outcome.identifier,
            outcome.error_type.value if outcome.error_type else outcome.kind.value,
            outcome.message or "",
            outcome.column or "",
        ] + [outcome.row_data.get(column, "") for column in data_columns])

    autofit_columns(worksheet)
    return workbook_bytes(workbook)
