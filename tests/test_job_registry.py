"""Tests for the in-memory job status registry."""
import pytest

from import_export_orchestrator.core.exceptions import JobNotFoundError
from import_export_orchestrator.models.job import (
    ExportFormat, ExportJobStatus, ImportJobStatus, OperationType, ProcessingStatus
)
from import_export_orchestrator.services.job_registry import JobStatusRegistry


def test_create_registers_pending_records():
    registry = JobStatusRegistry()
    export_id = registry.create(OperationType.EXPORT, "User", export_format=ExportFormat.PDF)
    import_id = registry.create(OperationType.IMPORT, "User")

    export_status = registry.get_export(export_id)
    assert isinstance(export_status, ExportJobStatus)
    assert export_status.status is ProcessingStatus.PENDING
    assert export_status.format is ExportFormat.PDF

    assert isinstance(registry.get_import(import_id), ImportJobStatus)
    assert registry.get_export(import_id) is None
    assert len(registry) == 2


def test_update_merges_only_supplied_fields():
    registry = JobStatusRegistry()
    job_id = registry.create(OperationType.IMPORT, "Role")
    registry.update(job_id, status=ProcessingStatus.PROCESSING, total_rows=10)
    registry.update(job_id, progress_percent=50, success_count=4)

    status = registry.get(job_id)
    assert status.status is ProcessingStatus.PROCESSING
    assert status.total_rows == 10
    assert status.progress_percent == 50
    assert status.success_count == 4


def test_update_rejects_unknown_job_and_fields():
    registry = JobStatusRegistry()
    with pytest.raises(JobNotFoundError):
        registry.update("missing", progress_percent=10)

    job_id = registry.create(OperationType.EXPORT, "User")
    with pytest.raises(AttributeError):
        registry.update(job_id, no_such_field=1)


def test_get_returns_snapshot():
    registry = JobStatusRegistry()
    job_id = registry.create(OperationType.EXPORT, "User")
    snapshot = registry.get(job_id)
    snapshot.progress_percent = 99

    assert registry.get(job_id).progress_percent == 0
    assert registry.get("missing") is None


def test_statistics_and_active_jobs():
    registry = JobStatusRegistry()
    done = registry.create(OperationType.EXPORT, "User")
    running = registry.create(OperationType.IMPORT, "User")
    registry.update(done, status=ProcessingStatus.COMPLETED)
    registry.update(running, status=ProcessingStatus.PROCESSING)

    assert registry.active_job_ids() == [running]
    stats = registry.get_statistics()
    assert stats["total"] == 2
    assert stats["Completed"] == 1
    assert stats["Processing"] == 1


def test_discard_forgets_a_job():
    registry = JobStatusRegistry()
    job_id = registry.create(OperationType.EXPORT, "User", export_format=ExportFormat.CSV)

    assert registry.discard(job_id) is True
    assert job_id not in registry
    assert registry.discard(job_id) is False
