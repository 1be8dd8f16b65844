"""
History ledger models

A HistoryRecord is the durable audit row of one import or export job. It is
created when the job starts and mutated at milestones and at its terminal
state; unlike the in-memory job status it survives a process restart.
"""

import math
from datetime import datetime
from typing import Optional, Dict, Any, List, Generic, TypeVar
from dataclasses import dataclass, field

from .job import ProcessingStatus, OperationType
from ..utils.ids import generate_id
from ..utils.time import utc_now


# Columns callers may change after creation.
MUTABLE_HISTORY_FIELDS = frozenset({
    "status", "progress", "total_rows", "success_count", "updated_count",
    "skipped_count", "error_count", "file_path", "download_url",
    "file_size_bytes", "error_report_id", "error_message", "completed_at",
    "expires_at",
})


@dataclass
class HistoryRecord:
    """Durable record of one import/export operation."""

    job_id: str
    entity_type: str
    operation_type: OperationType
    file_name: str
    format: str
    organization_id: str
    imported_by: str

    id: str = field(default_factory=generate_id)
    status: ProcessingStatus = ProcessingStatus.PENDING
    progress: int = 0

    total_rows: int = 0
    success_count: int = 0
    updated_count: int = 0
    skipped_count: int = 0
    error_count: int = 0

    file_size_bytes: int = 0
    file_path: Optional[str] = None
    download_url: Optional[str] = None
    duplicate_handling_strategy: Optional[str] = None
    error_report_id: Optional[str] = None
    applied_filters: Optional[str] = None
    error_message: Optional[str] = None

    created_at: datetime = field(default_factory=utc_now)
    started_at: Optional[datetime] = field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at is not None and self.expires_at < (now or utc_now())

    def to_dict(self) -> Dict[str, Any]:
        """Convert record to dictionary for serialization."""
        return {
            "id": self.id,
            "job_id": self.job_id,
            "entity_type": self.entity_type,
            "operation_type": self.operation_type.value,
            "file_name": self.file_name,
            "format": self.format,
            "organization_id": self.organization_id,
            "imported_by": self.imported_by,
            "status": self.status.value,
            "progress": self.progress,
            "total_rows": self.total_rows,
            "success_count": self.success_count,
            "updated_count": self.updated_count,
            "skipped_count": self.skipped_count,
            "error_count": self.error_count,
            "file_size_bytes": self.file_size_bytes,
            "file_path": self.file_path,
            "download_url": self.download_url,
            "duplicate_handling_strategy": self.duplicate_handling_strategy,
            "error_report_id": self.error_report_id,
            "applied_filters": self.applied_filters,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "HistoryRecord":
        """Create a record from a database row mapping."""
        data = dict(row)
        data["id"] = str(data["id"])
        data["status"] = ProcessingStatus(data["status"])
        data["operation_type"] = OperationType(data["operation_type"])
        return cls(**data)


T = TypeVar("T")


@dataclass
class PagedResult(Generic[T]):
    """One page of a larger result set; ``page`` is 1-based."""

    items: List[T]
    page: int
    page_size: int
    total_count: int

    @property
    def total_pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return math.ceil(self.total_count / self.page_size)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [item.to_dict() if hasattr(item, "to_dict") else item for item in self.items],
            "page": self.page,
            "page_size": self.page_size,
            "total_count": self.total_count,
            "total_pages": self.total_pages,
        }
