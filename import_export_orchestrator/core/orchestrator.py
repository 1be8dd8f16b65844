"""
Main ImportExportOrchestrator class that coordinates all services

Provides the public interface for starting export and import jobs, polling
their status, retrieving result files and error reports, browsing history
and sweeping expired files.
"""

import asyncio
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Set

from ..config import EngineSettings
from ..models.job import (
    ExportFormat, ExportJobStatus, ImportJobStatus, OperationType, ProcessingStatus,
    DuplicateHandlingStrategy
)
from ..models.history import HistoryRecord, PagedResult
from ..core.context import ScopeFactory, TenantContext, background_scope
from ..core.exceptions import (
    ImportExportError, OrchestratorError, UnsupportedFormatError, UnsupportedStrategyError
)
from ..formats.registry import supported_export_formats
from ..formats.templates import generate_import_template
from ..services.job_registry import JobStatusRegistry
from ..services.file_store import FileStore
from ..services.history_ledger import InMemoryHistoryLedger
from ..services.export_pipeline import ExportPipeline, RowFetcher, ColumnMapper
from ..services.import_pipeline import ImportPipeline, RowProcessor
from ..services.cache_invalidation import CacheInvalidator, RedisCacheBackend, InvalidationHook
from ..services.cleanup_service import FileCleanupService
from ..utils.database import DatabaseManager
from ..utils.time import utc_now
from ..utils.logger import get_logger, set_log_context


class ImportExportOrchestrator:
    """
    Facade over the import/export engine.

    Start calls do their setup synchronously (status record, history row and,
    for imports, the stored upload) and return the job id; the remaining
    work runs as a background task. At most ``max_concurrent_jobs`` jobs run
    at the same time, each inside its own execution scope.
    """

    def __init__(
        self,
        scope_factory: ScopeFactory,
        file_store: Optional[FileStore] = None,
        settings: Optional[EngineSettings] = None,
        cache_invalidator: Optional[CacheInvalidator] = None,
        database_manager: Optional[DatabaseManager] = None,
        enable_cleanup: bool = True
    ):
        """
        Initialize the ImportExportOrchestrator.

        Args:
            scope_factory: Opens a fresh execution scope (history ledger,
                tenant context, unit of work) per call
            file_store: Blob storage for uploads, exports and error reports
            settings: Engine settings; defaults when omitted
            cache_invalidator: Runs cache invalidation after imports
            database_manager: Pool to open on start and close on stop
            enable_cleanup: Run the periodic expired-file sweep while started
        """
        self.settings = settings or EngineSettings()
        self.scope_factory = scope_factory
        self.file_store = file_store or FileStore(self.settings.storage_path)
        self.cache_invalidator = cache_invalidator or CacheInvalidator()
        self.db = database_manager

        self.registry = JobStatusRegistry()
        self.export_pipeline = ExportPipeline(
            self.registry,
            self.file_store,
            scope_factory,
            retention=timedelta(hours=self.settings.export_retention_hours),
        )
        self.import_pipeline = ImportPipeline(
            self.registry,
            self.file_store,
            scope_factory,
            cache_invalidator=self.cache_invalidator,
            error_report_namespace=self.settings.error_report_namespace,
            history_flush_interval=self.settings.history_flush_interval,
        )

        self.cleanup_service: Optional[FileCleanupService] = None
        if enable_cleanup:
            self.cleanup_service = FileCleanupService(
                self.cleanup_expired_files,
                interval=self.settings.cleanup_interval_hours * 3600,
                initial_delay=self.settings.cleanup_initial_delay_minutes * 60,
            )

        # Background jobs
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._tasks: Set[asyncio.Task] = set()
        self._is_running = False

        self.logger = get_logger(__name__)
        set_log_context(self.logger, component="orchestrator")

    @classmethod
    def from_settings(cls, settings: EngineSettings, enable_cleanup: bool = True) -> "ImportExportOrchestrator":
        """
        Build an orchestrator from settings.

        Uses PostgreSQL for the history ledger when ``database_url`` is set
        and the in-memory ledger otherwise; Redis backs cache invalidation
        when ``redis_url`` is set.
        """
        database_manager = None
        if settings.database_url:
            database_manager = DatabaseManager(settings.database_url, pool_size=settings.database_pool_size)
            scope_factory = database_manager.create_scope
        else:
            scope_factory = InMemoryHistoryLedger().scope_factory()

        backend = RedisCacheBackend(settings.redis_url) if settings.redis_url else None
        return cls(
            scope_factory,
            file_store=FileStore(settings.storage_path),
            settings=settings,
            cache_invalidator=CacheInvalidator(backend),
            database_manager=database_manager,
            enable_cleanup=enable_cleanup,
        )

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def start(self):
        """Start the orchestrator and its services."""
        self.logger.info("Starting ImportExportOrchestrator", extra={
            "max_concurrent_jobs": self.settings.max_concurrent_jobs,
            "database_enabled": self.db is not None,
            "cleanup_enabled": self.cleanup_service is not None
        })

        try:
            if self.db:
                await self.db.initialize()
                await self.db.ensure_schema()

            if self.cleanup_service:
                await self.cleanup_service.start()

            self._semaphore = asyncio.Semaphore(self.settings.max_concurrent_jobs)
            self._is_running = True
            self.logger.info("ImportExportOrchestrator started successfully")

        except Exception as e:
            self.logger.error("Failed to start ImportExportOrchestrator", exc_info=True)
            await self.stop()
            raise OrchestratorError(f"Failed to start orchestrator: {str(e)}")

    async def stop(self):
        """Stop accepting jobs, let running jobs finish and stop services."""
        self.logger.info("Stopping ImportExportOrchestrator", extra={"running_jobs": len(self._tasks)})
        self._is_running = False

        await self.wait_for_idle()

        if self.cleanup_service:
            await self.cleanup_service.stop()

        if self.db:
            await self.db.close()

        self.logger.info("ImportExportOrchestrator stopped")

    async def __aenter__(self) -> "ImportExportOrchestrator":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    # Export interface
    async def start_export_job(
        self,
        context: TenantContext,
        entity_type: str,
        export_format: Any,
        row_fetcher: RowFetcher,
        filters: Optional[Mapping[str, Any]] = None,
        column_mapper: Optional[ColumnMapper] = None
    ) -> str:
        """
        Start an export job.

        Args:
            context: Tenant identity the job runs under
            entity_type: Entity type name, used for the file name and title
            export_format: ExportFormat member or its name/value
            row_fetcher: Called as ``row_fetcher(scope, filters)`` inside the
                job's execution scope; may be a coroutine function
            filters: Passed to the fetcher and recorded on the history row
            column_mapper: Maps one fetched item to an ordered column mapping

        Returns:
            Job id

        Raises:
            UnsupportedFormatError: If the format is unknown
            OrchestratorError: If the orchestrator is not running
        """
        self._ensure_running()
        fmt = self._parse_format(export_format)

        record = await self.export_pipeline.prepare(entity_type, fmt, filters, context)
        self._spawn(record.job_id, self.export_pipeline.run(
            record, fmt, row_fetcher, filters, column_mapper, context
        ))
        return record.job_id

    async def get_export_job_status(self, job_id: str) -> Optional[ExportJobStatus]:
        """Current status of an export job, or None when unknown."""
        return self.registry.get_export(job_id)

    async def download_export_file(self, job_id: str) -> Optional[bytes]:
        """
        Content of a completed export, or None.

        Falls back to the history ledger when the job is no longer in the
        in-memory registry (for example after a restart).
        """
        try:
            status = self.registry.get_export(job_id)
            if status is not None and (status.status is not ProcessingStatus.COMPLETED or not status.download_url):
                return None

            async with self.scope_factory() as scope:
                record = await scope.history.get_by_job_id(job_id)

            if (record is None or record.operation_type is not OperationType.EXPORT
                    or record.status is not ProcessingStatus.COMPLETED or not record.file_path):
                return None
            return await self.file_store.retrieve(record.file_path)

        except ImportExportError:
            self.logger.warning("Export download failed", exc_info=True, extra={"job_id": job_id})
            return None

    # Import interface
    async def start_import_job(
        self,
        context: TenantContext,
        entity_type: str,
        data: bytes,
        file_name: str,
        row_processor: RowProcessor,
        duplicate_strategy: DuplicateHandlingStrategy = DuplicateHandlingStrategy.SKIP,
        header_aliases: Optional[Mapping[str, str]] = None
    ) -> str:
        """
        Start an import job.

        Args:
            context: Tenant identity the job runs under
            entity_type: Entity type name
            data: Uploaded file content
            file_name: Uploaded file name; its extension selects the decoder
            row_processor: Called as ``row_processor(scope, row, duplicate_strategy)``
                for every data row; may be a coroutine function
            duplicate_strategy: Policy the processor applies to existing records
            header_aliases: Header renames applied before rows are built

        Returns:
            Job id

        Raises:
            EmptyUploadError: If ``data`` is empty
            UnsupportedFormatError: If the file extension has no decoder
            UnsupportedStrategyError: If the duplicate strategy is unknown
            OrchestratorError: If the orchestrator is not running
        """
        self._ensure_running()
        strategy = self._parse_strategy(duplicate_strategy)

        record = await self.import_pipeline.prepare(entity_type, data, file_name, strategy, context)
        self._spawn(record.job_id, self.import_pipeline.run(
            record, row_processor, strategy, header_aliases, context
        ))
        return record.job_id

    async def get_import_job_status(self, job_id: str) -> Optional[ImportJobStatus]:
        """Current status of an import job, or None when unknown."""
        return self.registry.get_import(job_id)

    async def get_import_error_report(self, error_report_id: str) -> Optional[bytes]:
        """Error/skip report workbook, or None when it does not exist."""
        if not error_report_id or "/" in error_report_id or "\\" in error_report_id:
            return None
        try:
            return await self.file_store.retrieve(
                f"{self.settings.error_report_namespace}/{error_report_id}.xlsx"
            )
        except ImportExportError:
            self.logger.warning("Error report retrieval failed", exc_info=True,
                                extra={"error_report_id": error_report_id})
            return None

    async def generate_import_template(
        self,
        entity_type: str,
        template_format: Any,
        headers: Sequence[str],
        sample_rows: Optional[Sequence[Mapping[str, Any]]] = None,
        dropdown_options: Optional[Mapping[str, Sequence[str]]] = None
    ) -> bytes:
        """Import template with the given headers (spreadsheet or CSV)."""
        fmt = self._parse_format(template_format)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, generate_import_template, entity_type, fmt, headers, sample_rows, dropdown_options
        )

    def register_cache_invalidator(self, entity_type: str, hook: InvalidationHook) -> None:
        """Register a hook run after every successful import of ``entity_type``."""
        self.cache_invalidator.register(entity_type, hook)

    # History interface
    async def get_history(
        self,
        context: TenantContext,
        entity_type: str,
        operation_type: Optional[OperationType] = None,
        page: int = 1,
        page_size: int = 20
    ) -> PagedResult[HistoryRecord]:
        """History of one entity type for the caller's organization, newest first."""
        return await self.get_all_history(context, entity_type=entity_type,
                                          operation_type=operation_type, page=page, page_size=page_size)

    async def get_all_history(
        self,
        context: TenantContext,
        entity_type: Optional[str] = None,
        operation_type: Optional[OperationType] = None,
        status: Optional[ProcessingStatus] = None,
        page: int = 1,
        page_size: int = 20
    ) -> PagedResult[HistoryRecord]:
        """History across entity types for the caller's organization, newest first."""
        async with background_scope(self.scope_factory, context) as scope:
            return await scope.history.query(
                organization_id=scope.tenant.get_current_organization_id(),
                entity_type=entity_type,
                operation_type=operation_type,
                status=status,
                page=page,
                page_size=page_size,
            )

    # Maintenance
    async def cleanup_expired_files(self, now: Optional[datetime] = None) -> int:
        """
        Delete files linked to expired history rows.

        History rows themselves are kept.

        Returns:
            Number of files removed
        """
        async with self.scope_factory() as scope:
            expired = await scope.history.list_expired(now)

        removed = 0
        for record in expired:
            if not record.file_path:
                continue
            try:
                if await self.file_store.delete(record.file_path):
                    removed += 1
            except ImportExportError:
                self.logger.warning("Could not delete expired file", exc_info=True, extra={
                    "job_id": record.job_id,
                    "locator": record.file_path
                })

        self.logger.info("Expired files cleaned up", extra={
            "expired_records": len(expired),
            "files_removed": removed
        })
        return removed

    async def wait_for_idle(self, timeout: Optional[float] = None) -> None:
        """Wait until every background job has finished."""
        while True:
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.wait_for(asyncio.gather(*pending), timeout=timeout)

    def get_statistics(self) -> Dict[str, Any]:
        """Job counts by status plus the number of in-flight background tasks."""
        stats = self.registry.get_statistics()
        stats["running_tasks"] = len(self._tasks)
        return stats

    def _ensure_running(self) -> None:
        if not self._is_running:
            raise OrchestratorError("Orchestrator is not running")

    @staticmethod
    def _parse_format(value: Any) -> ExportFormat:
        try:
            return ExportFormat.parse(value)
        except ValueError:
            raise UnsupportedFormatError(str(value), supported_export_formats())

    @staticmethod
    def _parse_strategy(value: Any) -> DuplicateHandlingStrategy:
        try:
            return DuplicateHandlingStrategy.parse(value)
        except ValueError:
            raise UnsupportedStrategyError(str(value), [member.value for member in DuplicateHandlingStrategy])

    def _spawn(self, job_id: str, job) -> None:
        task = asyncio.create_task(self._run_bounded(job_id, job))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_bounded(self, job_id: str, job) -> None:
        async with self._semaphore:
            try:
                await job
            except Exception as e:
                # Pipelines record their own failures; this covers scope setup errors.
                self.logger.error("Background job crashed", exc_info=True, extra={"job_id": job_id})
                message = str(e) or e.__class__.__name__
                completed_at = utc_now()
                self.registry.update(
                    job_id,
                    status=ProcessingStatus.FAILED,
                    progress_percent=0,
                    message=message,
                    completed_at=completed_at,
                )
                await self._record_crash(job_id, message, completed_at)

    async def _record_crash(self, job_id: str, message: str, completed_at: datetime) -> None:
        """Mark the history row Failed through a fresh scope, if the row is still open."""
        try:
            async with self.scope_factory() as scope:
                record = await scope.history.get_by_job_id(job_id)
                if record is not None and not record.status.is_terminal:
                    await scope.history.update(
                        record.id,
                        status=ProcessingStatus.FAILED,
                        progress=0,
                        error_message=message,
                        completed_at=completed_at,
                    )
        except Exception:
            self.logger.error("Could not record crashed job in history", exc_info=True, extra={"job_id": job_id})
