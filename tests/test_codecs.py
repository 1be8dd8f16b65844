"""Tests for the tabular codecs and import templates."""
import io
import json
from datetime import datetime

import openpyxl
import pytest

from import_export_orchestrator.core.exceptions import DecodeError, UnsupportedFormatError
from import_export_orchestrator.formats import (
    CsvEncoder, CsvDecoder, ExcelEncoder, ExcelDecoder, PdfEncoder, JsonEncoder,
    encode_error_report, generate_import_template, get_encoder, get_decoder, ERROR_REPORT_COLUMNS
)
from import_export_orchestrator.models.job import ExportFormat
from import_export_orchestrator.models.outcome import RowOutcome, RowOutcomeKind, ErrorType


ROWS = [
    {"Name": "Alice", "Email": "alice@example.com", "Active": True},
    {"Name": 'Bob "The Builder"', "Email": "bob@example.com"},
]


def test_csv_quotes_every_field_and_doubles_quotes():
    data = CsvEncoder().encode(ROWS)
    lines = data.decode("utf-8").split("\r\n")
    assert lines[0] == '"Name","Email","Active"'
    assert lines[1] == '"Alice","alice@example.com","true"'
    assert lines[2] == '"Bob ""The Builder""","bob@example.com",""'


def test_csv_empty_export_is_header_line_only():
    data = CsvEncoder().encode([])
    assert data.splitlines() == [b""]


def test_csv_decode_handles_quoted_delimiters_and_newlines():
    payload = 'Name,Notes\r\n"Smith, John","said ""hi""\nthen left"\r\n'.encode("utf-8")
    rows = CsvDecoder().decode(payload)
    assert rows == [{"Name": "Smith, John", "Notes": 'said "hi"\nthen left'}]


def test_csv_decode_drops_housekeeping_columns_and_blank_rows():
    payload = b"Id,Name,Created Date,UpdatedAt\n7,Alice,2024-01-01,2024-01-02\n,,,\n8,Bob,,\n"
    rows = CsvDecoder().decode(payload)
    assert rows == [{"Name": "Alice"}, {"Name": "Bob"}]


def test_csv_decode_applies_header_aliases():
    payload = b"Full Name,E-mail\nAlice,alice@example.com\n"
    rows = CsvDecoder().decode(payload, {"Full Name": "Name", "E-mail": "Email"})
    assert rows == [{"Name": "Alice", "Email": "alice@example.com"}]


def test_csv_decode_strips_bom():
    payload = "\ufeffName\nAlice\n".encode("utf-8")
    assert CsvDecoder().decode(payload) == [{"Name": "Alice"}]


def test_csv_decode_rejects_non_utf8():
    with pytest.raises(DecodeError):
        CsvDecoder().decode(b"\xff\xfe\x00N\x00a")


def test_excel_export_reads_back():
    data = ExcelEncoder().encode(ROWS, "User")
    workbook = openpyxl.load_workbook(io.BytesIO(data))
    sheet = workbook.active
    assert sheet.title == "User"
    assert [cell.value for cell in sheet[1]] == ["Name", "Email", "Active"]
    assert sheet[1][0].font.bold
    assert sheet.max_row == 3

    rows = ExcelDecoder().decode(data)
    assert rows[0] == {"Name": "Alice", "Email": "alice@example.com", "Active": "true"}
    assert rows[1]["Name"] == 'Bob "The Builder"'


def test_excel_decode_reads_first_sheet_within_header_bounds():
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.append(["Name", "Joined", None])
    sheet.append(["Alice", datetime(2024, 3, 1, 9, 30), "ignored"])
    sheet.append([None, None, None])
    sheet.append(["Bob", 42.0])
    workbook.create_sheet("Other").append(["Name"])
    buffer = io.BytesIO()
    workbook.save(buffer)

    rows = ExcelDecoder().decode(buffer.getvalue())
    assert rows == [
        {"Name": "Alice", "Joined": "2024-03-01 09:30:00"},
        {"Name": "Bob", "Joined": "42"},
    ]


def test_excel_decode_rejects_garbage():
    with pytest.raises(DecodeError):
        ExcelDecoder().decode(b"definitely not a workbook")


def test_pdf_export_produces_document():
    data = PdfEncoder().encode(ROWS, "User")
    assert data.startswith(b"%PDF")


def test_pdf_export_of_empty_rows_still_renders_page():
    data = PdfEncoder().encode([], "User")
    assert data.startswith(b"%PDF")
    assert b"/Type /Page" in data


def test_json_export_keeps_column_order_and_fills_missing_keys():
    data = JsonEncoder().encode(ROWS)
    documents = json.loads(data)
    assert list(documents[0]) == ["Name", "Email", "Active"]
    assert documents[1]["Active"] is None


def test_encoder_lookup():
    assert isinstance(get_encoder("csv"), CsvEncoder)
    assert isinstance(get_encoder(ExportFormat.PDF), PdfEncoder)
    with pytest.raises(UnsupportedFormatError):
        get_encoder("xml")


def test_decoder_lookup_by_extension():
    assert isinstance(get_decoder("users.CSV"), CsvDecoder)
    assert isinstance(get_decoder("users.xlsx"), ExcelDecoder)
    with pytest.raises(UnsupportedFormatError):
        get_decoder("users.txt")


def test_error_report_lists_fixed_then_row_columns():
    outcomes = [
        RowOutcome(RowOutcomeKind.ERROR, 2, "b@example.com", "Name is required",
                   ErrorType.VALIDATION, row_data={"Email": "b@example.com", "Name": ""}),
        RowOutcome(RowOutcomeKind.SKIPPED, 3, "a@example.com", "Duplicate",
                   ErrorType.SKIPPED, row_data={"Email": "a@example.com", "Dept": "Ops"}),
    ]
    workbook = openpyxl.load_workbook(io.BytesIO(encode_error_report(outcomes)))
    sheet = workbook.active

    assert [cell.value for cell in sheet[1]] == ERROR_REPORT_COLUMNS + ["Email", "Name", "Dept"]
    assert [cell.value for cell in sheet[2]][:4] == [2, "b@example.com", "Validation", "Name is required"]
    assert [cell.value for cell in sheet[3]][:4] == [3, "a@example.com", "Skipped", "Duplicate"]
    assert sheet[3][7].value == "Ops"


def test_excel_template_has_header_and_dropdowns():
    data = generate_import_template(
        "User", "Excel", ["Name", "Status"],
        sample_rows=[{"Name": "Alice", "Status": "Active"}],
        dropdown_options={"Status": ["Active", "Inactive"]},
    )
    sheet = openpyxl.load_workbook(io.BytesIO(data)).active
    assert [cell.value for cell in sheet[1]] == ["Name", "Status"]
    assert sheet[1][0].font.bold
    assert sheet["A2"].value == "Alice"

    validations = sheet.data_validations.dataValidation
    assert len(validations) == 1
    assert validations[0].formula1 == '"Active,Inactive"'
    assert str(validations[0].sqref) == "B2:B1000"


def test_csv_template_quotes_headers():
    data = generate_import_template("User", ExportFormat.CSV, ["Name", "Email"])
    assert data == b'"Name","Email"\r\n'
