"""
Job-related data models for the Import/Export Orchestrator

Defines lifecycle states, operation kinds, export formats, the duplicate
handling policy and the in-memory status records polled by callers.
"""

from enum import Enum
from datetime import datetime
from typing import Optional, Dict, Any
from dataclasses import dataclass, field, fields

from ..utils.time import utc_now


class ProcessingStatus(Enum):
    """Job lifecycle state, shared by the status registry and the history ledger."""
    PENDING = "Pending"
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    FAILED = "Failed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.COMPLETED, ProcessingStatus.FAILED, ProcessingStatus.CANCELLED)


class OperationType(Enum):
    """Kind of bulk operation recorded in history."""
    IMPORT = "Import"
    EXPORT = "Export"


class ExportFormat(Enum):
    """Output encodings supported by the export pipeline."""
    EXCEL = "Excel"
    CSV = "CSV"
    PDF = "PDF"
    JSON = "JSON"

    @property
    def extension(self) -> str:
        return _FORMAT_EXTENSIONS[self]

    @classmethod
    def parse(cls, value: Any) -> "ExportFormat":
        """Accept an enum member, its value or its name (case-insensitive)."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if text.lower() in (member.value.lower(), member.name.lower(), member.extension):
                return member
        raise ValueError(f"Unknown export format: {value}")


_FORMAT_EXTENSIONS = {
    ExportFormat.EXCEL: "xlsx",
    ExportFormat.CSV: "csv",
    ExportFormat.PDF: "pdf",
    ExportFormat.JSON: "json",
}


class DuplicateHandlingStrategy(Enum):
    """Policy the row processor applies when an import row matches an existing record."""
    SKIP = "Skip"
    UPDATE = "Update"

    @classmethod
    def parse(cls, value: Any) -> "DuplicateHandlingStrategy":
        """Accept an enum member, its value or its name (case-insensitive)."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if text in (member.value.lower(), member.name.lower()):
                return member
        raise ValueError(f"Unknown duplicate handling strategy: {value}")


@dataclass
class _JobStatusBase:
    """Fields common to export and import status records."""

    job_id: str
    entity_type: str
    status: ProcessingStatus = ProcessingStatus.PENDING
    progress_percent: int = 0
    total_rows: int = 0
    processed_rows: int = 0
    message: Optional[str] = None
    started_at: datetime = field(default_factory=utc_now)
    completed_at: Optional[datetime] = None

    def apply(self, changes: Dict[str, Any]) -> None:
        """Merge only the supplied fields; unknown field names are rejected."""
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise AttributeError(f"Unknown status fields: {sorted(unknown)}")
        for name, value in changes.items():
            setattr(self, name, value)

    def get_duration(self) -> Optional[float]:
        """Get job duration in seconds if completed."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def _base_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "entity_type": self.entity_type,
            "status": self.status.value,
            "progress_percent": self.progress_percent,
            "total_rows": self.total_rows,
            "processed_rows": self.processed_rows,
            "message": self.message,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


@dataclass
class ExportJobStatus(_JobStatusBase):
    """Pollable status of one export job."""

    format: ExportFormat = ExportFormat.EXCEL
    download_url: Optional[str] = None
    file_size_bytes: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data.update({
            "format": self.format.value,
            "download_url": self.download_url,
            "file_size_bytes": self.file_size_bytes,
        })
        return data


@dataclass
class ImportJobStatus(_JobStatusBase):
    """Pollable status of one import job."""

    success_count: int = 0
    updated_count: int = 0
    skipped_count: int = 0
    error_count: int = 0
    error_report_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self._base_dict()
        data.update({
            "success_count": self.success_count,
            "updated_count": self.updated_count,
            "skipped_count": self.skipped_count,
            "error_count": self.error_count,
            "error_report_id": self.error_report_id,
        })
        return data
