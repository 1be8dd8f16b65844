"""
Import template generation.

Templates give users a file with the expected headers (and optionally a few
sample rows) to fill in before uploading.
"""

import csv
import io
from typing import Any, Dict, List, Mapping, Optional, Sequence

import openpyxl
from openpyxl.styles import Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.datavalidation import DataValidation

from .base import cell_text
from .excel import sheet_title, autofit_columns, workbook_bytes
from ..models.job import ExportFormat


TEMPLATE_VALIDATION_ROWS = 1000

TEMPLATE_HEADER_FONT = Font(bold=True)
TEMPLATE_HEADER_FILL = PatternFill(start_color="ADD8E6", end_color="ADD8E6", fill_type="solid")
TEMPLATE_HEADER_BORDER = Border(*(Side(style="thin"),) * 4)


def generate_import_template(entity_type: str, template_format: Any, headers: Sequence[str],
                             sample_rows: Optional[Sequence[Mapping[str, Any]]] = None,
                             dropdown_options: Optional[Mapping[str, Sequence[str]]] = None) -> bytes:
    """
    Build an import template.

    Spreadsheet templates get a styled header row and list validations for
    columns that have dropdown options; every other format yields a
    delimited-text template.
    """
    if ExportFormat.parse(template_format) is ExportFormat.EXCEL:
        return _excel_template(entity_type, headers, sample_rows or [], dropdown_options or {})
    return _csv_template(headers, sample_rows or [])


def _excel_template(entity_type: str, headers: Sequence[str], sample_rows: Sequence[Mapping[str, Any]],
                    dropdown_options: Mapping[str, Sequence[str]]) -> bytes:
    workbook = openpyxl.Workbook()
    worksheet = workbook.active
    worksheet.title = sheet_title(entity_type)

    worksheet.append(list(headers))
    for cell in worksheet[1]:
        cell.font = TEMPLATE_HEADER_FONT
        cell.fill = TEMPLATE_HEADER_FILL
        cell.border = TEMPLATE_HEADER_BORDER

    for row in sample_rows:
        worksheet.append([cell_text(row.get(header)) for header in headers])

    for index, header in enumerate(headers, start=1):
        options = dropdown_options.get(header)
        if not options:
            continue
        # Excel list literals are comma separated, so option text cannot hold commas or quotes.
        values = ",".join(str(option).replace(",", " ").replace('"', "") for option in options)
        validation = DataValidation(type="list", formula1=f'"{values}"', allow_blank=True)
        column = get_column_letter(index)
        validation.add(f"{column}2:{column}{TEMPLATE_VALIDATION_ROWS}")
        worksheet.add_data_validation(validation)

    autofit_columns(worksheet)
    return workbook_bytes(workbook)


def _csv_template(headers: Sequence[str], sample_rows: Sequence[Mapping[str, Any]]) -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\r\n")
    writer.writerow(headers)
    for row in sample_rows:
        writer.writerow([cell_text(row.get(header)) for header in headers])
    return buffer.getvalue().encode("utf-8")
