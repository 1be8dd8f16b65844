"""
Export pipeline for the Import/Export Orchestrator

Fetches rows through a caller-supplied fetcher, encodes them with the codec
for the requested format, stores the result file and tracks progress in
both the job status registry and the history ledger.
"""

import asyncio
import json
from datetime import timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..models.job import ExportFormat, OperationType, ProcessingStatus
from ..models.history import HistoryRecord
from ..core.context import ScopeFactory, TenantContext, background_scope
from ..formats.registry import get_encoder
from ..services.job_registry import JobStatusRegistry
from ..services.file_store import FileStore
from ..utils.aio import maybe_await
from ..utils.time import utc_now, export_timestamp
from ..utils.logger import get_logger, set_log_context


RowFetcher = Callable[..., Any]
ColumnMapper = Callable[[Any], Mapping[str, Any]]

DOWNLOAD_URL_TEMPLATE = "/api/import-export/download/{job_id}"


def export_file_name(entity_type: str, export_format: ExportFormat, moment=None) -> str:
    """``{EntityType}_Export_{yyyyMMdd_HHmmss}.{ext}`` in UTC."""
    return f"{entity_type}_Export_{export_timestamp(moment or utc_now())}.{export_format.extension}"


def serialize_filters(filters: Optional[Mapping[str, Any]]) -> Optional[str]:
    if not filters:
        return None
    return json.dumps(dict(filters), default=str, sort_keys=True)


class ExportPipeline:
    """
    Runs export jobs.

    ``prepare`` performs the synchronous setup (status record and history
    row); ``run`` is the detached part and never raises: failures end the
    job as Failed.
    """

    def __init__(self, registry: JobStatusRegistry, file_store: FileStore,
                 scope_factory: ScopeFactory, retention: timedelta = timedelta(hours=24)):
        self.registry = registry
        self.file_store = file_store
        self.scope_factory = scope_factory
        self.retention = retention

        self.logger = get_logger(__name__)
        set_log_context(self.logger, component="export_pipeline")

    async def prepare(self, entity_type: str, export_format: ExportFormat,
                      filters: Optional[Mapping[str, Any]], context: TenantContext) -> HistoryRecord:
        """
        Register the job and write its Pending history row.

        Returns:
            The created history record (carries the job id)
        """
        get_encoder(export_format)
        job_id = self.registry.create(OperationType.EXPORT, entity_type, export_format=export_format)

        created_at = utc_now()
        record = HistoryRecord(
            job_id=job_id,
            entity_type=entity_type,
            operation_type=OperationType.EXPORT,
            file_name=export_file_name(entity_type, export_format, created_at),
            format=export_format.value,
            organization_id=context.organization_id,
            imported_by=context.user_name,
            applied_filters=serialize_filters(filters),
            created_at=created_at,
            started_at=created_at,
            expires_at=created_at + self.retention,
        )

        try:
            async with background_scope(self.scope_factory, context) as scope:
                record = await scope.history.add(record)
        except Exception:
            self.registry.discard(job_id)
            raise

        self.logger.info("Export job created", extra={
            "job_id": job_id,
            "entity_type": entity_type,
            "format": export_format.value,
            "organization_id": context.organization_id
        })
        return record

    async def run(self, record: HistoryRecord, export_format: ExportFormat, row_fetcher: RowFetcher,
                  filters: Optional[Mapping[str, Any]], column_mapper: Optional[ColumnMapper],
                  context: TenantContext) -> None:
        """Execute a prepared export job inside its own execution scope."""
        job_id = record.job_id
        async with background_scope(self.scope_factory, context) as scope:
            locator = None
            try:
                await self._advance(scope, record, 5)

                fetched = await maybe_await(row_fetcher(scope, dict(filters or {})))
                rows = self._map_rows(fetched, column_mapper)
                total = len(rows)
                await self._advance(scope, record, 30, total_rows=total)

                encoder = get_encoder(export_format)
                loop = asyncio.get_running_loop()
                data = await loop.run_in_executor(None, encoder.encode, rows, record.entity_type)
                await self._advance(scope, record, 70)

                locator = await self.file_store.store(record.file_name, data, expires_in=self.retention)
                await self._advance(scope, record, 90)

                completed_at = utc_now()
                download_url = DOWNLOAD_URL_TEMPLATE.format(job_id=job_id)
                await scope.history.update(
                    record.id,
                    status=ProcessingStatus.COMPLETED,
                    progress=100,
                    total_rows=total,
                    success_count=total,
                    file_path=locator,
                    download_url=download_url,
                    file_size_bytes=len(data),
                    completed_at=completed_at,
                )
                self.registry.update(
                    job_id,
                    status=ProcessingStatus.COMPLETED,
                    progress_percent=100,
                    total_rows=total,
                    processed_rows=total,
                    download_url=download_url,
                    file_size_bytes=len(data),
                    message=f"Exported {total} rows",
                    completed_at=completed_at,
                )

                self.logger.info("Export job completed", extra={
                    "job_id": job_id,
                    "entity_type": record.entity_type,
                    "total_rows": total,
                    "file_size_bytes": len(data)
                })

            except Exception as e:
                self.logger.error("Export job failed", exc_info=True, extra={"job_id": job_id})
                await self._fail(scope, record, e, locator)

    async def _advance(self, scope, record: HistoryRecord, progress: int, **counts: int) -> None:
        self.registry.update(record.job_id, status=ProcessingStatus.PROCESSING, progress_percent=progress, **counts)
        await scope.history.update(record.id, status=ProcessingStatus.PROCESSING, progress=progress, **counts)
        self.logger.debug("Export progress", extra={"job_id": record.job_id, "progress": progress})

    async def _fail(self, scope, record: HistoryRecord, error: Exception, locator: Optional[str]) -> None:
        message = str(error) or error.__class__.__name__
        completed_at = utc_now()
        self.registry.update(
            record.job_id,
            status=ProcessingStatus.FAILED,
            progress_percent=0,
            message=message,
            completed_at=completed_at,
        )

        if locator:
            try:
                await self.file_store.delete(locator)
            except Exception:
                self.logger.warning("Could not remove partial export file", exc_info=True,
                                    extra={"locator": locator})

        try:
            await scope.history.update(
                record.id,
                status=ProcessingStatus.FAILED,
                progress=0,
                error_message=message,
                file_path=None,
                completed_at=completed_at,
            )
        except Exception:
            self.logger.error("Could not record export failure in history", exc_info=True)

    @staticmethod
    def _map_rows(fetched: Any, column_mapper: Optional[ColumnMapper]) -> List[Dict[str, Any]]:
        items = list(fetched or [])
        if column_mapper is None:
            return [dict(item) for item in items]
        return [dict(column_mapper(item)) for item in items]
