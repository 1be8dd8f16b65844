"""
Import pipeline for the Import/Export Orchestrator

Decodes an uploaded spreadsheet or CSV file and feeds each row to a
caller-supplied row processor. Rows are processed strictly in order and
each row's failure is isolated: it is recorded as an Error outcome and the
remaining rows still run.
"""

import asyncio
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..models.job import OperationType, ProcessingStatus, DuplicateHandlingStrategy
from ..models.history import HistoryRecord
from ..models.outcome import RowOutcome, RowOutcomeKind, classify_result, exception_outcome
from ..core.context import ExecutionScope, ScopeFactory, TenantContext, background_scope
from ..core.exceptions import EmptyUploadError, FileStoreError
from ..formats.registry import get_decoder, import_format_name
from ..formats.excel import encode_error_report
from ..services.job_registry import JobStatusRegistry
from ..services.file_store import FileStore
from ..services.cache_invalidation import CacheInvalidator
from ..utils.aio import maybe_await
from ..utils.ids import generate_id
from ..utils.time import utc_now
from ..utils.logger import get_logger, set_log_context


# Called as processor(scope, row, duplicate_strategy); returns a
# RowProcessorResult or a (success, error, is_update, is_skip) tuple.
RowProcessor = Callable[[ExecutionScope, Dict[str, str], DuplicateHandlingStrategy], Any]


def import_progress(processed: int, total: int) -> int:
    """Progress while rows are processed: 10 to 90 percent."""
    if total <= 0:
        return 10
    return 10 + int(processed / total * 80)


class ImportTally:
    """Running counts and reportable outcomes of one import."""

    def __init__(self):
        self.counts = {kind: 0 for kind in RowOutcomeKind}
        self.errors: List[RowOutcome] = []
        self.skipped: List[RowOutcome] = []

    def add(self, outcome: RowOutcome) -> None:
        self.counts[outcome.kind] += 1
        if outcome.kind is RowOutcomeKind.ERROR:
            self.errors.append(outcome)
        elif outcome.kind is RowOutcomeKind.SKIPPED:
            self.skipped.append(outcome)

    @property
    def processed(self) -> int:
        return sum(self.counts.values())

    @property
    def report_outcomes(self) -> List[RowOutcome]:
        """Errors first, then skips."""
        return self.errors + self.skipped

    def as_fields(self) -> Dict[str, int]:
        return {
            "success_count": self.counts[RowOutcomeKind.SUCCESS],
            "updated_count": self.counts[RowOutcomeKind.UPDATED],
            "skipped_count": self.counts[RowOutcomeKind.SKIPPED],
            "error_count": self.counts[RowOutcomeKind.ERROR],
        }


class ImportPipeline:
    """
    Runs import jobs.

    ``prepare`` validates the upload, stores it and writes the Pending
    history row; ``run`` is the detached part and never raises.
    """

    def __init__(self, registry: JobStatusRegistry, file_store: FileStore, scope_factory: ScopeFactory,
                 cache_invalidator: Optional[CacheInvalidator] = None,
                 error_report_namespace: str = "ErrorReports",
                 history_flush_interval: int = 100):
        self.registry = registry
        self.file_store = file_store
        self.scope_factory = scope_factory
        self.cache_invalidator = cache_invalidator
        self.error_report_namespace = error_report_namespace
        self.history_flush_interval = max(1, history_flush_interval)

        self.logger = get_logger(__name__)
        set_log_context(self.logger, component="import_pipeline")

    async def prepare(self, entity_type: str, data: bytes, file_name: str,
                      duplicate_strategy: DuplicateHandlingStrategy,
                      context: TenantContext) -> HistoryRecord:
        """
        Validate and persist the upload, then register the job.

        Raises:
            EmptyUploadError: If no content was uploaded
            UnsupportedFormatError: If no decoder handles the file extension
        """
        if not data:
            raise EmptyUploadError(file_name)
        get_decoder(file_name)

        locator = await self.file_store.store(file_name, data)
        job_id = self.registry.create(OperationType.IMPORT, entity_type)

        record = HistoryRecord(
            job_id=job_id,
            entity_type=entity_type,
            operation_type=OperationType.IMPORT,
            file_name=file_name,
            format=import_format_name(file_name),
            organization_id=context.organization_id,
            imported_by=context.user_name,
            file_path=locator,
            file_size_bytes=len(data),
            duplicate_handling_strategy=duplicate_strategy.value,
        )
        try:
            async with background_scope(self.scope_factory, context) as scope:
                record = await scope.history.add(record)
        except Exception:
            self.registry.discard(job_id)
            await self.file_store.delete(locator)
            raise

        self.logger.info("Import job created", extra={
            "job_id": job_id,
            "entity_type": entity_type,
            "file_name": file_name,
            "size_bytes": len(data),
            "duplicate_strategy": duplicate_strategy.value,
            "organization_id": context.organization_id
        })
        return record

    async def run(self, record: HistoryRecord, row_processor: RowProcessor,
                  duplicate_strategy: DuplicateHandlingStrategy,
                  header_aliases: Optional[Mapping[str, str]],
                  context: TenantContext) -> None:
        """Execute a prepared import job inside its own execution scope."""
        job_id = record.job_id
        async with background_scope(self.scope_factory, context) as scope:
            try:
                self.registry.update(job_id, status=ProcessingStatus.PROCESSING, progress_percent=5)
                await scope.history.update(record.id, status=ProcessingStatus.PROCESSING, progress=5)

                data = await self.file_store.retrieve(record.file_path)
                if data is None:
                    raise FileStoreError("retrieve", "import file not found", record.file_path)

                decoder = get_decoder(record.file_name)
                loop = asyncio.get_running_loop()
                rows = await loop.run_in_executor(None, decoder.decode, data, dict(header_aliases or {}))
                total = len(rows)

                self.registry.update(job_id, progress_percent=10, total_rows=total)
                await scope.history.update(record.id, progress=10, total_rows=total)
                self.logger.info("Import rows decoded", extra={"job_id": job_id, "total_rows": total})

                tally = await self._process_rows(scope, record, rows, row_processor, duplicate_strategy)

                error_report_id = None
                if tally.report_outcomes:
                    error_report_id = await self._store_error_report(record.entity_type, tally.report_outcomes)

                completed_at = utc_now()
                counts = tally.as_fields()
                self.registry.update(
                    job_id,
                    status=ProcessingStatus.COMPLETED,
                    progress_percent=100,
                    total_rows=total,
                    processed_rows=total,
                    error_report_id=error_report_id,
                    message=self._summary(total, counts),
                    completed_at=completed_at,
                    **counts
                )
                completed = await scope.history.update(
                    record.id,
                    status=ProcessingStatus.COMPLETED,
                    progress=100,
                    total_rows=total,
                    error_report_id=error_report_id,
                    completed_at=completed_at,
                    **counts
                )

                self.logger.info("Import job completed", extra={
                    "job_id": job_id,
                    "entity_type": record.entity_type,
                    "total_rows": total,
                    "error_report_id": error_report_id,
                    **counts
                })

            except Exception as e:
                self.logger.error("Import job failed", exc_info=True, extra={"job_id": job_id})
                await self._fail(scope, record, e)
                return

            if completed is not None:
                await self._invalidate_cache(record.entity_type, completed.organization_id, job_id)

    async def _process_rows(self, scope: ExecutionScope, record: HistoryRecord, rows: List[Dict[str, str]],
                            row_processor: RowProcessor,
                            duplicate_strategy: DuplicateHandlingStrategy) -> ImportTally:
        tally = ImportTally()
        total = len(rows)

        for index, row in enumerate(rows):
            row_number = index + 1
            try:
                result = await maybe_await(row_processor(scope, row, duplicate_strategy))
                outcome = classify_result(result, row_number, row)
            except Exception as e:
                outcome = exception_outcome(e, row_number, row)

            tally.add(outcome)
            if outcome.is_reportable:
                self.logger.debug("Import row not applied", extra={
                    "job_id": record.job_id,
                    "row_number": row_number,
                    "outcome": outcome.kind.value,
                    "reason": outcome.message
                })

            processed = index + 1
            progress = import_progress(processed, total)
            counts = tally.as_fields()
            self.registry.update(record.job_id, progress_percent=progress, processed_rows=processed, **counts)

            if processed % self.history_flush_interval == 0:
                await scope.history.update(record.id, progress=progress, **counts)

        return tally

    async def _store_error_report(self, entity_type: str, outcomes: List[RowOutcome]) -> str:
        report_id = generate_id()
        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(None, encode_error_report, outcomes, f"{entity_type} Errors")
        await self.file_store.store_named(self.error_report_namespace, f"{report_id}.xlsx", data)
        return report_id

    async def _invalidate_cache(self, entity_type: str, organization_id: str, job_id: str) -> None:
        if self.cache_invalidator is None:
            return
        try:
            await self.cache_invalidator.invalidate(entity_type, organization_id)
        except Exception:
            self.logger.warning("Cache invalidation failed after import", exc_info=True, extra={
                "job_id": job_id,
                "entity_type": entity_type,
                "organization_id": organization_id
            })

    async def _fail(self, scope: ExecutionScope, record: HistoryRecord, error: Exception) -> None:
        message = str(error) or error.__class__.__name__
        completed_at = utc_now()
        self.registry.update(
            record.job_id,
            status=ProcessingStatus.FAILED,
            progress_percent=0,
            message=message,
            completed_at=completed_at,
        )
        try:
            await scope.history.update(
                record.id,
                status=ProcessingStatus.FAILED,
                progress=0,
                error_message=message,
                completed_at=completed_at,
            )
        except Exception:
            self.logger.error("Could not record import failure in history", exc_info=True)

    @staticmethod
    def _summary(total: int, counts: Dict[str, int]) -> str:
        return (
            f"Processed {total} rows: {counts['success_count']} created, {counts['updated_count']} updated, "
            f"{counts['skipped_count']} skipped, {counts['error_count']} failed"
        )
