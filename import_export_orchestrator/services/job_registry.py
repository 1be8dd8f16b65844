"""
JobStatusRegistry service for the Import/Export Orchestrator

Process-local store of pollable job status records. Records are lost on
restart; the history ledger keeps the durable outcome.
"""

import copy
import threading
from typing import Dict, Optional, Union, Any, List

from ..models.job import (
    ExportJobStatus, ImportJobStatus, OperationType, ExportFormat
)
from ..utils.ids import generate_id
from ..utils.logger import get_logger, set_log_context
from ..core.exceptions import JobNotFoundError


JobStatusRecord = Union[ExportJobStatus, ImportJobStatus]


class JobStatusRegistry:
    """
    In-memory map of job id to status record.

    Every update is applied as one merge under a lock, and readers receive a
    snapshot copy, so pollers never observe a half-applied update.
    """

    def __init__(self):
        self._jobs: Dict[str, JobStatusRecord] = {}
        self._lock = threading.Lock()

        self.logger = get_logger(__name__)
        set_log_context(self.logger, component="job_registry")

    def create(self, kind: OperationType, entity_type: str,
               export_format: Optional[ExportFormat] = None,
               job_id: Optional[str] = None) -> str:
        """
        Register a new Pending job.

        Args:
            kind: Import or export
            entity_type: Entity type name
            export_format: Output format (exports only)
            job_id: Explicit id; generated when omitted

        Returns:
            The job id
        """
        job_id = job_id or generate_id()
        if kind is OperationType.EXPORT:
            record: JobStatusRecord = ExportJobStatus(
                job_id=job_id,
                entity_type=entity_type,
                format=export_format or ExportFormat.EXCEL,
            )
        else:
            record = ImportJobStatus(job_id=job_id, entity_type=entity_type)

        with self._lock:
            self._jobs[job_id] = record

        self.logger.debug("Job registered", extra={
            "job_id": job_id,
            "kind": kind.value,
            "entity_type": entity_type
        })
        return job_id

    def update(self, job_id: str, **changes: Any) -> JobStatusRecord:
        """
        Merge the supplied fields into a job's status, leaving others unchanged.

        Raises:
            JobNotFoundError: If the job id is unknown
        """
        with self._lock:
            record = self._jobs.get(job_id)
            if record is None:
                raise JobNotFoundError(job_id)
            record.apply(changes)
            return copy.copy(record)

    def get(self, job_id: str) -> Optional[JobStatusRecord]:
        """Snapshot of a job's status, or None when unknown."""
        with self._lock:
            record = self._jobs.get(job_id)
            return copy.copy(record) if record is not None else None

    def discard(self, job_id: str) -> bool:
        """Forget a job whose setup did not complete."""
        with self._lock:
            return self._jobs.pop(job_id, None) is not None

    def get_export(self, job_id: str) -> Optional[ExportJobStatus]:
        record = self.get(job_id)
        return record if isinstance(record, ExportJobStatus) else None

    def get_import(self, job_id: str) -> Optional[ImportJobStatus]:
        record = self.get(job_id)
        return record if isinstance(record, ImportJobStatus) else None

    def active_job_ids(self) -> List[str]:
        """Ids of jobs not yet in a terminal state."""
        with self._lock:
            return [job_id for job_id, record in self._jobs.items() if not record.status.is_terminal]

    def get_statistics(self) -> Dict[str, int]:
        """Job counts by status."""
        stats = {"total": 0}
        with self._lock:
            for record in self._jobs.values():
                stats[record.status.value] = stats.get(record.status.value, 0) + 1
                stats["total"] += 1
        return stats

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._jobs
