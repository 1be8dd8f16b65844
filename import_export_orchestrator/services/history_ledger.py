"""
History ledger for the Import/Export Orchestrator

Durable audit trail of every import/export job. ``PostgresHistoryLedger``
works on the single connection owned by an execution scope;
``InMemoryHistoryLedger`` offers the same interface without a database for
tests and single-process deployments (it is not durable).
"""

import copy
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Dict, List, Optional, Any, Callable, AsyncIterator

from ..models.history import HistoryRecord, PagedResult, MUTABLE_HISTORY_FIELDS
from ..models.job import OperationType, ProcessingStatus
from ..core.context import ExecutionScope, TenantContextService
from ..core.exceptions import DatabaseError
from ..utils.time import utc_now


HISTORY_TABLE = "import_export_history"

HISTORY_COLUMNS = (
    "id", "job_id", "entity_type", "operation_type", "file_name", "format",
    "organization_id", "imported_by", "status", "progress", "total_rows",
    "success_count", "updated_count", "skipped_count", "error_count",
    "file_size_bytes", "file_path", "download_url", "duplicate_handling_strategy",
    "error_report_id", "applied_filters", "error_message", "created_at",
    "started_at", "completed_at", "expires_at",
)


class HistoryLedger(ABC):
    """Interface of the history ledger."""

    @abstractmethod
    async def add(self, record: HistoryRecord) -> HistoryRecord:
        """Persist a new record."""

    @abstractmethod
    async def update(self, history_id: str, **changes: Any) -> Optional[HistoryRecord]:
        """
        Apply a partial update to one record.

        Returns:
            The updated record, or None when the id is unknown
        """

    @abstractmethod
    async def get(self, history_id: str) -> Optional[HistoryRecord]:
        """Record by id."""

    @abstractmethod
    async def get_by_job_id(self, job_id: str) -> Optional[HistoryRecord]:
        """Record by job id."""

    @abstractmethod
    async def query(self, organization_id: Optional[str] = None, entity_type: Optional[str] = None,
                    operation_type: Optional[OperationType] = None,
                    status: Optional[ProcessingStatus] = None,
                    page: int = 1, page_size: int = 20) -> PagedResult[HistoryRecord]:
        """Page of records, newest first."""

    @abstractmethod
    async def list_expired(self, now: Optional[datetime] = None) -> List[HistoryRecord]:
        """Records whose ``expires_at`` lies before ``now``."""


def _validate_changes(changes: Dict[str, Any]) -> None:
    unknown = set(changes) - MUTABLE_HISTORY_FIELDS
    if unknown:
        raise ValueError(f"History fields cannot be updated: {sorted(unknown)}")


def _normalize_paging(page: int, page_size: int):
    page = max(1, int(page))
    page_size = max(1, int(page_size))
    return page, page_size


class InMemoryHistoryLedger(HistoryLedger):
    """Dictionary-backed ledger; callers always receive copies."""

    def __init__(self):
        self._records: Dict[str, HistoryRecord] = {}

    async def add(self, record: HistoryRecord) -> HistoryRecord:
        self._records[record.id] = copy.deepcopy(record)
        return copy.deepcopy(record)

    async def update(self, history_id: str, **changes: Any) -> Optional[HistoryRecord]:
        _validate_changes(changes)
        record = self._records.get(history_id)
        if record is None:
            return None
        for name, value in changes.items():
            setattr(record, name, value)
        return copy.deepcopy(record)

    async def get(self, history_id: str) -> Optional[HistoryRecord]:
        record = self._records.get(history_id)
        return copy.deepcopy(record) if record else None

    async def get_by_job_id(self, job_id: str) -> Optional[HistoryRecord]:
        for record in self._records.values():
            if record.job_id == job_id:
                return copy.deepcopy(record)
        return None

    async def query(self, organization_id: Optional[str] = None, entity_type: Optional[str] = None,
                    operation_type: Optional[OperationType] = None,
                    status: Optional[ProcessingStatus] = None,
                    page: int = 1, page_size: int = 20) -> PagedResult[HistoryRecord]:
        page, page_size = _normalize_paging(page, page_size)
        matches = [
            record for record in self._records.values()
            if (organization_id is None or record.organization_id == organization_id)
            and (entity_type is None or record.entity_type == entity_type)
            and (operation_type is None or record.operation_type == operation_type)
            and (status is None or record.status == status)
        ]
        matches.sort(key=lambda r: r.created_at, reverse=True)
        start = (page - 1) * page_size
        return PagedResult(
            items=[copy.deepcopy(r) for r in matches[start:start + page_size]],
            page=page,
            page_size=page_size,
            total_count=len(matches),
        )

    async def list_expired(self, now: Optional[datetime] = None) -> List[HistoryRecord]:
        now = now or utc_now()
        return [copy.deepcopy(r) for r in self._records.values() if r.is_expired(now)]

    def scope_factory(self, unit_of_work_factory: Optional[Callable[[], Any]] = None):
        """
        Build a scope factory over this ledger.

        Args:
            unit_of_work_factory: Creates the repository object handed to row
                processors and fetchers for each scope
        """
        @asynccontextmanager
        async def create_scope() -> AsyncIterator[ExecutionScope]:
            yield ExecutionScope(
                history=self,
                tenant=TenantContextService(),
                unit_of_work=unit_of_work_factory() if unit_of_work_factory else None,
            )

        return create_scope


class PostgresHistoryLedger(HistoryLedger):
    """Ledger bound to one asyncpg connection."""

    def __init__(self, connection):
        self.conn = connection

    async def add(self, record: HistoryRecord) -> HistoryRecord:
        placeholders = ", ".join(f"${i}" for i in range(1, len(HISTORY_COLUMNS) + 1))
        values = [self._to_db(name, getattr(record, name)) for name in HISTORY_COLUMNS]
        try:
            await self.conn.execute(
                f"INSERT INTO {HISTORY_TABLE} ({', '.join(HISTORY_COLUMNS)}) VALUES ({placeholders})",
                *values
            )
        except Exception as e:
            raise DatabaseError("add_history", str(e), HISTORY_TABLE)
        return record

    async def update(self, history_id: str, **changes: Any) -> Optional[HistoryRecord]:
        _validate_changes(changes)
        if not changes:
            return await self.get(history_id)

        names = sorted(changes)
        assignments = ", ".join(f"{name} = ${i}" for i, name in enumerate(names, start=2))
        values = [self._to_db(name, changes[name]) for name in names]
        try:
            row = await self.conn.fetchrow(
                f"UPDATE {HISTORY_TABLE} SET {assignments} WHERE id = $1 RETURNING *",
                history_id, *values
            )
        except Exception as e:
            raise DatabaseError("update_history", str(e), HISTORY_TABLE)
        return HistoryRecord.from_row(dict(row)) if row else None

    async def get(self, history_id: str) -> Optional[HistoryRecord]:
        return await self._fetch_one("get_history", "id = $1", history_id)

    async def get_by_job_id(self, job_id: str) -> Optional[HistoryRecord]:
        return await self._fetch_one("get_history_by_job", "job_id = $1", job_id)

    async def query(self, organization_id: Optional[str] = None, entity_type: Optional[str] = None,
                    operation_type: Optional[OperationType] = None,
                    status: Optional[ProcessingStatus] = None,
                    page: int = 1, page_size: int = 20) -> PagedResult[HistoryRecord]:
        page, page_size = _normalize_paging(page, page_size)

        conditions = []
        args: List[Any] = []
        for column, value in (
            ("organization_id", organization_id),
            ("entity_type", entity_type),
            ("operation_type", operation_type.value if operation_type else None),
            ("status", status.value if status else None),
        ):
            if value is not None:
                args.append(value)
                conditions.append(f"{column} = ${len(args)}")
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        try:
            total = await self.conn.fetchval(f"SELECT COUNT(*) FROM {HISTORY_TABLE} {where}", *args)
            rows = await self.conn.fetch(
                f"SELECT * FROM {HISTORY_TABLE} {where} ORDER BY created_at DESC "
                f"OFFSET ${len(args) + 1} LIMIT ${len(args) + 2}",
                *args, (page - 1) * page_size, page_size
            )
        except Exception as e:
            raise DatabaseError("query_history", str(e), HISTORY_TABLE)

        return PagedResult(
            items=[HistoryRecord.from_row(dict(row)) for row in rows],
            page=page,
            page_size=page_size,
            total_count=total or 0,
        )

    async def list_expired(self, now: Optional[datetime] = None) -> List[HistoryRecord]:
        try:
            rows = await self.conn.fetch(
                f"SELECT * FROM {HISTORY_TABLE} WHERE expires_at IS NOT NULL AND expires_at < $1",
                now or utc_now()
            )
        except Exception as e:
            raise DatabaseError("list_expired_history", str(e), HISTORY_TABLE)
        return [HistoryRecord.from_row(dict(row)) for row in rows]

    async def _fetch_one(self, operation: str, condition: str, value: Any) -> Optional[HistoryRecord]:
        try:
            row = await self.conn.fetchrow(f"SELECT * FROM {HISTORY_TABLE} WHERE {condition}", value)
        except Exception as e:
            raise DatabaseError(operation, str(e), HISTORY_TABLE)
        return HistoryRecord.from_row(dict(row)) if row else None

    @staticmethod
    def _to_db(name: str, value: Any) -> Any:
        if isinstance(value, (ProcessingStatus, OperationType)):
            return value.value
        return value
