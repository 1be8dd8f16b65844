"""Tests for export jobs run through the orchestrator."""
import io
import json
import re

import openpyxl
import pytest

from import_export_orchestrator import ExportFormat, ProcessingStatus, OperationType
from import_export_orchestrator.core.exceptions import UnsupportedFormatError, OrchestratorError
from import_export_orchestrator.formats import CsvDecoder


USERS = [
    {"name": "Alice", "email": "alice@example.com", "age": 31},
    {"name": "Bob", "email": "bob@example.com", "age": 45},
    {"name": "Cara", "email": "cara@example.com", "age": 28},
]


def map_user(user):
    return {"Name": user["name"], "Email": user["email"], "Age": user["age"]}


async def test_csv_export_completes_with_all_rows(orchestrator, tenant, ledger):
    seen = {}

    async def fetch(scope, filters):
        seen["organization"] = scope.tenant.get_current_organization_id()
        seen["filters"] = filters
        return USERS

    job_id = await orchestrator.start_export_job(
        tenant, "User", ExportFormat.CSV, fetch, filters={"active": True}, column_mapper=map_user
    )
    await orchestrator.wait_for_idle()

    status = await orchestrator.get_export_job_status(job_id)
    assert status.status is ProcessingStatus.COMPLETED
    assert status.progress_percent == 100
    assert status.total_rows == status.processed_rows == 3
    assert status.download_url == f"/api/import-export/download/{job_id}"
    assert seen == {"organization": "org-1", "filters": {"active": True}}

    data = await orchestrator.download_export_file(job_id)
    assert status.file_size_bytes == len(data)
    rows = CsvDecoder().decode(data)
    assert len(rows) == len(USERS)
    assert rows[0] == {"Name": "Alice", "Email": "alice@example.com", "Age": "31"}

    record = await ledger.get_by_job_id(job_id)
    assert record.operation_type is OperationType.EXPORT
    assert record.status is ProcessingStatus.COMPLETED
    assert record.progress == 100
    assert record.total_rows == record.success_count == 3
    assert record.organization_id == "org-1"
    assert record.imported_by == "Jane Admin"
    assert json.loads(record.applied_filters) == {"active": True}
    assert re.fullmatch(r"User_Export_\d{8}_\d{6}\.csv", record.file_name)
    assert (record.expires_at - record.created_at).total_seconds() == 24 * 3600


async def test_empty_csv_export_has_only_header_line(orchestrator, tenant):
    job_id = await orchestrator.start_export_job(tenant, "User", "CSV", lambda scope, filters: [])
    await orchestrator.wait_for_idle()

    status = await orchestrator.get_export_job_status(job_id)
    assert status.status is ProcessingStatus.COMPLETED
    assert status.total_rows == 0
    data = await orchestrator.download_export_file(job_id)
    assert data.splitlines() == [b""]


async def test_excel_export_uses_first_row_column_order(orchestrator, tenant):
    rows = [{"B": 1, "A": 2}, {"A": 3}]
    job_id = await orchestrator.start_export_job(tenant, "Metric", ExportFormat.EXCEL, lambda scope, filters: rows)
    await orchestrator.wait_for_idle()

    sheet = openpyxl.load_workbook(io.BytesIO(await orchestrator.download_export_file(job_id))).active
    assert sheet.title == "Metric"
    assert [cell.value for cell in sheet[1]] == ["B", "A"]
    assert sheet["B3"].value == "3"


@pytest.mark.parametrize("export_format,magic", [(ExportFormat.PDF, b"%PDF"), (ExportFormat.JSON, b"[")])
async def test_other_formats(orchestrator, tenant, export_format, magic):
    async def fetch(scope, filters):
        return USERS

    job_id = await orchestrator.start_export_job(tenant, "User", export_format, fetch, column_mapper=map_user)
    await orchestrator.wait_for_idle()
    data = await orchestrator.download_export_file(job_id)
    assert data.startswith(magic)


async def test_fetch_failure_marks_job_failed(orchestrator, tenant, ledger):
    async def fetch(scope, filters):
        raise RuntimeError("connection reset")

    job_id = await orchestrator.start_export_job(tenant, "User", ExportFormat.CSV, fetch)
    await orchestrator.wait_for_idle()

    status = await orchestrator.get_export_job_status(job_id)
    assert status.status is ProcessingStatus.FAILED
    assert status.message == "connection reset"
    assert await orchestrator.download_export_file(job_id) is None

    record = await ledger.get_by_job_id(job_id)
    assert record.status is ProcessingStatus.FAILED
    assert record.error_message == "connection reset"


async def test_mapper_failure_marks_job_failed(orchestrator, tenant):
    def broken_mapper(row):
        raise KeyError("email")

    job_id = await orchestrator.start_export_job(
        tenant, "User", ExportFormat.CSV, lambda scope, filters: USERS, column_mapper=broken_mapper
    )
    await orchestrator.wait_for_idle()
    assert (await orchestrator.get_export_job_status(job_id)).status is ProcessingStatus.FAILED


async def test_unsupported_format_is_rejected_synchronously(orchestrator, tenant):
    with pytest.raises(UnsupportedFormatError):
        await orchestrator.start_export_job(tenant, "User", "xml", lambda scope, filters: [])
    assert len(orchestrator.registry) == 0


async def test_unknown_job_lookups_return_none(orchestrator):
    assert await orchestrator.get_export_job_status("missing") is None
    assert await orchestrator.download_export_file("missing") is None


async def test_download_before_completion_returns_none(orchestrator, tenant):
    job_id = await orchestrator.start_export_job(tenant, "User", ExportFormat.CSV, lambda scope, filters: USERS[:1])
    assert await orchestrator.download_export_file(job_id) is None
    await orchestrator.wait_for_idle()
    assert await orchestrator.download_export_file(job_id) is not None


async def test_start_requires_running_orchestrator(orchestrator, tenant):
    await orchestrator.stop()
    with pytest.raises(OrchestratorError):
        await orchestrator.start_export_job(tenant, "User", ExportFormat.CSV, lambda scope, filters: [])


async def test_failed_history_write_forgets_the_job(orchestrator, tenant, ledger, monkeypatch):
    async def unavailable(record):
        raise ConnectionError("history database unavailable")

    monkeypatch.setattr(ledger, "add", unavailable)
    with pytest.raises(ConnectionError):
        await orchestrator.start_export_job(tenant, "User", ExportFormat.CSV, lambda scope, filters: USERS)

    assert len(orchestrator.registry) == 0
