"""
Services package for the Import/Export Orchestrator

Contains the job status registry, file store, history ledger, the export and
import pipelines, cache invalidation and the periodic file cleanup.
"""

from .job_registry import JobStatusRegistry
from .file_store import FileStore
from .history_ledger import HistoryLedger, InMemoryHistoryLedger, PostgresHistoryLedger
from .export_pipeline import ExportPipeline
from .import_pipeline import ImportPipeline
from .cache_invalidation import CacheInvalidator, CacheBackend, InMemoryCacheBackend, RedisCacheBackend
from .cleanup_service import FileCleanupService

__all__ = [
    "JobStatusRegistry",
    "FileStore",
    "HistoryLedger",
    "InMemoryHistoryLedger",
    "PostgresHistoryLedger",
    "ExportPipeline",
    "ImportPipeline",
    "CacheInvalidator",
    "CacheBackend",
    "InMemoryCacheBackend",
    "RedisCacheBackend",
    "FileCleanupService"
]
