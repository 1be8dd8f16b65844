"""Tests for import jobs run through the orchestrator."""
import io

import openpyxl
import pytest

from import_export_orchestrator import (
    ImportExportOrchestrator, DuplicateHandlingStrategy, ProcessingStatus, OperationType, RowProcessorResult
)
from import_export_orchestrator.core.exceptions import (
    EmptyUploadError, UnsupportedFormatError, UnsupportedStrategyError
)
from import_export_orchestrator.formats import ERROR_REPORT_COLUMNS


def csv_upload(*lines):
    return ("\r\n".join(lines) + "\r\n").encode("utf-8")


def xlsx_upload(rows):
    workbook = openpyxl.Workbook()
    for row in rows:
        workbook.active.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def read_report(data):
    sheet = openpyxl.load_workbook(io.BytesIO(data)).active
    return [[cell.value for cell in row] for row in sheet.iter_rows()]


async def test_mixed_outcomes_example(orchestrator, tenant, ledger, repository, user_processor):
    upload = csv_upload(
        "Email,Name",
        "alice@example.com,Alice",
        "bob@example.com,",
        "alice@example.com,Alice Again",
    )
    job_id = await orchestrator.start_import_job(
        tenant, "User", upload, "users.csv", user_processor, DuplicateHandlingStrategy.SKIP
    )
    await orchestrator.wait_for_idle()

    status = await orchestrator.get_import_job_status(job_id)
    assert status.status is ProcessingStatus.COMPLETED
    assert status.progress_percent == 100
    assert (status.total_rows, status.success_count, status.updated_count,
            status.skipped_count, status.error_count) == (3, 1, 0, 1, 1)
    assert status.total_rows == (status.success_count + status.updated_count
                                 + status.skipped_count + status.error_count)
    assert repository.find("alice@example.com")["Name"] == "Alice"

    report = read_report(await orchestrator.get_import_error_report(status.error_report_id))
    assert report[0] == ERROR_REPORT_COLUMNS + ["Email", "Name"]
    assert report[1][:4] == [2, "bob@example.com", "Validation", "Name is required"]
    assert report[2][:4] == [3, "alice@example.com", "Skipped", "Record skipped (duplicate or already exists)"]
    assert len(report) == 3

    record = await ledger.get_by_job_id(job_id)
    assert record.operation_type is OperationType.IMPORT
    assert record.status is ProcessingStatus.COMPLETED
    assert record.format == "CSV"
    assert record.duplicate_handling_strategy == "Skip"
    assert record.error_report_id == status.error_report_id
    assert (record.total_rows, record.success_count, record.skipped_count, record.error_count) == (3, 1, 1, 1)


async def test_update_strategy_mutates_existing_record(orchestrator, tenant, repository, user_processor):
    repository.add({"Email": "alice@example.com", "Name": "Old Name"})
    upload = csv_upload("Email,Name", "alice@example.com,New Name")

    job_id = await orchestrator.start_import_job(
        tenant, "User", upload, "users.csv", user_processor, DuplicateHandlingStrategy.UPDATE
    )
    await orchestrator.wait_for_idle()

    status = await orchestrator.get_import_job_status(job_id)
    assert (status.updated_count, status.skipped_count) == (1, 0)
    assert status.error_report_id is None
    assert repository.find("alice@example.com")["Name"] == "New Name"


async def test_skip_strategy_leaves_existing_record(orchestrator, tenant, repository, user_processor):
    repository.add({"Email": "alice@example.com", "Name": "Old Name"})
    upload = csv_upload("Email,Name", "alice@example.com,New Name")

    job_id = await orchestrator.start_import_job(
        tenant, "User", upload, "users.csv", user_processor, DuplicateHandlingStrategy.SKIP
    )
    await orchestrator.wait_for_idle()

    status = await orchestrator.get_import_job_status(job_id)
    assert (status.updated_count, status.skipped_count) == (0, 1)
    assert repository.find("alice@example.com")["Name"] == "Old Name"


async def test_processor_exception_is_isolated_to_its_row(orchestrator, tenant):
    processed = []

    def processor(scope, row, strategy):
        processed.append(row["Code"])
        if row["Code"] == "B":
            raise ValueError("lookup failed")
        return RowProcessorResult(True)

    upload = csv_upload("Code", "A", "B", "C")
    job_id = await orchestrator.start_import_job(tenant, "Department", upload, "depts.csv", processor)
    await orchestrator.wait_for_idle()

    status = await orchestrator.get_import_job_status(job_id)
    assert processed == ["A", "B", "C"]
    assert (status.success_count, status.error_count) == (2, 1)

    report = read_report(await orchestrator.get_import_error_report(status.error_report_id))
    assert report[1][:4] == [2, "B", "System", "lookup failed"]


async def test_excel_upload_with_aliases_and_housekeeping_columns(orchestrator, tenant):
    received = []

    async def processor(scope, row, strategy):
        received.append(row)
        return True, None, False, False

    upload = xlsx_upload([
        ["Id", "Full Name", "Created Date"],
        [1, "Alice", "2024-01-01"],
        [None, None, None],
        [2, "Bob", "2024-01-02"],
    ])
    job_id = await orchestrator.start_import_job(
        tenant, "User", upload, "users.xlsx", processor, header_aliases={"Full Name": "Name"}
    )
    await orchestrator.wait_for_idle()

    assert received == [{"Name": "Alice"}, {"Name": "Bob"}]
    status = await orchestrator.get_import_job_status(job_id)
    assert status.total_rows == 2
    assert status.error_report_id is None


async def test_processor_runs_under_job_tenant(orchestrator, other_tenant, repository, user_processor):
    upload = csv_upload("Email,Name", "x@example.com,X", "y@example.com,Y")
    await orchestrator.start_import_job(other_tenant, "User", upload, "users.csv", user_processor)
    await orchestrator.wait_for_idle()
    assert repository.organizations_seen == ["org-2", "org-2"]


async def test_undecodable_file_fails_the_job(orchestrator, tenant, ledger, user_processor):
    job_id = await orchestrator.start_import_job(tenant, "User", b"not a workbook", "users.xlsx", user_processor)
    await orchestrator.wait_for_idle()

    status = await orchestrator.get_import_job_status(job_id)
    assert status.status is ProcessingStatus.FAILED
    assert status.message
    assert status.success_count == status.error_count == 0

    record = await ledger.get_by_job_id(job_id)
    assert record.status is ProcessingStatus.FAILED
    assert record.error_message == status.message


async def test_setup_failures_are_raised_synchronously(orchestrator, tenant, user_processor):
    with pytest.raises(EmptyUploadError):
        await orchestrator.start_import_job(tenant, "User", b"", "users.csv", user_processor)
    with pytest.raises(UnsupportedFormatError):
        await orchestrator.start_import_job(tenant, "User", b"a,b", "users.txt", user_processor)
    assert len(orchestrator.registry) == 0


async def test_cache_invalidated_for_history_organization(orchestrator, tenant, cache_backend, user_processor):
    await cache_backend.set("user:list:org-1:page1", "cached")
    await cache_backend.set("users:stats:org-1", "cached")
    await cache_backend.set("user:list:org-2:page1", "cached")
    calls = []
    orchestrator.register_cache_invalidator("User", lambda entity, org: calls.append((entity, org)))

    upload = csv_upload("Email,Name", "z@example.com,Zed")
    await orchestrator.start_import_job(tenant, "User", upload, "users.csv", user_processor)
    await orchestrator.wait_for_idle()

    assert set(cache_backend.entries) == {"user:list:org-2:page1"}
    assert calls == [("User", "org-1")]


async def test_failed_import_does_not_invalidate_cache(orchestrator, tenant, user_processor):
    calls = []
    orchestrator.register_cache_invalidator("User", lambda entity, org: calls.append(org))
    await orchestrator.start_import_job(tenant, "User", b"garbage", "users.xlsx", user_processor)
    await orchestrator.wait_for_idle()
    assert calls == []


async def test_error_report_lookups_never_raise(orchestrator):
    assert await orchestrator.get_import_error_report("missing") is None
    assert await orchestrator.get_import_error_report("../secrets") is None
    assert await orchestrator.get_import_error_report("") is None
    assert await orchestrator.get_import_job_status("missing") is None


def stored_files(root):
    return [path for path in root.rglob("*") if path.is_file()] if root.exists() else []


async def test_progress_and_periodic_history_flush(orchestrator, tenant, ledger, monkeypatch, user_processor):
    history_writes = []
    registry_progress = []
    ledger_update = ledger.update
    registry_update = orchestrator.registry.update

    async def recording_ledger_update(history_id, **changes):
        history_writes.append(changes)
        return await ledger_update(history_id, **changes)

    def recording_registry_update(job_id, **changes):
        if "processed_rows" in changes and "status" not in changes:
            registry_progress.append(changes["progress_percent"])
        return registry_update(job_id, **changes)

    monkeypatch.setattr(ledger, "update", recording_ledger_update)
    monkeypatch.setattr(orchestrator.registry, "update", recording_registry_update)

    upload = csv_upload("Email,Name", *[f"user{i}@example.com,User {i}" for i in range(1, 6)])
    await orchestrator.start_import_job(tenant, "User", upload, "users.csv", user_processor)
    await orchestrator.wait_for_idle()

    assert registry_progress == [26, 42, 58, 74, 90]

    counted = [changes for changes in history_writes if "success_count" in changes]
    assert [changes["progress"] for changes in counted] == [42, 74, 100]
    assert [changes["success_count"] for changes in counted] == [2, 4, 5]
    assert "status" not in counted[0] and "status" not in counted[1]
    assert counted[2]["status"] is ProcessingStatus.COMPLETED


async def test_cache_invalidation_follows_organization_recorded_in_history(orchestrator, tenant, ledger):
    calls = []
    orchestrator.register_cache_invalidator("User", lambda entity, org: calls.append(org))

    def processor(scope, row, strategy):
        for record in ledger._records.values():
            record.organization_id = "org-moved"
        return RowProcessorResult(True)

    upload = csv_upload("Email,Name", "z@example.com,Zed")
    await orchestrator.start_import_job(tenant, "User", upload, "users.csv", processor)
    await orchestrator.wait_for_idle()

    assert calls == ["org-moved"]


async def test_strategy_names_are_parsed(orchestrator, tenant, ledger, user_processor):
    upload = csv_upload("Email,Name", "a@example.com,A")
    job_id = await orchestrator.start_import_job(tenant, "User", upload, "users.csv", user_processor, "update")
    await orchestrator.wait_for_idle()

    record = await ledger.get_by_job_id(job_id)
    assert record.duplicate_handling_strategy == "Update"

    with pytest.raises(UnsupportedStrategyError) as excinfo:
        await orchestrator.start_import_job(tenant, "User", upload, "users.csv", user_processor, "merge")
    assert excinfo.value.error_code == "UNSUPPORTED_STRATEGY"
    assert len(orchestrator.registry) == 1


async def test_failed_history_write_leaves_no_orphans(orchestrator, tenant, ledger, tmp_path, monkeypatch,
                                                       user_processor):
    async def unavailable(record):
        raise ConnectionError("history database unavailable")

    monkeypatch.setattr(ledger, "add", unavailable)
    upload = csv_upload("Email,Name", "a@example.com,A")

    with pytest.raises(ConnectionError):
        await orchestrator.start_import_job(tenant, "User", upload, "users.csv", user_processor)

    assert len(orchestrator.registry) == 0
    assert stored_files(tmp_path / "files") == []


async def test_scope_failure_marks_history_failed(ledger, file_store, settings, tenant, user_processor):
    base_factory = ledger.scope_factory()
    opened = []

    def flaky_factory():
        opened.append(1)
        if len(opened) == 2:
            raise ConnectionError("pool exhausted")
        return base_factory()

    orchestrator = ImportExportOrchestrator(flaky_factory, file_store=file_store, settings=settings,
                                            enable_cleanup=False)
    async with orchestrator:
        upload = csv_upload("Email,Name", "a@example.com,A")
        job_id = await orchestrator.start_import_job(tenant, "User", upload, "users.csv", user_processor)
        await orchestrator.wait_for_idle()

        status = await orchestrator.get_import_job_status(job_id)
        assert status.status is ProcessingStatus.FAILED
        assert status.message == "pool exhausted"

    record = await ledger.get_by_job_id(job_id)
    assert record.status is ProcessingStatus.FAILED
    assert record.error_message == "pool exhausted"
    assert record.completed_at is not None
