"""
Import/Export Orchestrator

Asynchronous bulk import/export job engine for tabular entities. Exports
fetch rows through a caller-supplied fetcher and encode them as Excel, CSV,
PDF or JSON; imports decode uploaded Excel/CSV files and feed every row to a
caller-supplied row processor, isolating per-row failures and producing an
error/skip report. Jobs run in the background with their own execution
scope; callers poll status and query a durable history ledger.

Usage:
    from import_export_orchestrator import (
        ImportExportOrchestrator, EngineSettings, TenantContext, ExportFormat
    )

    orchestrator = ImportExportOrchestrator.from_settings(EngineSettings.from_env())
    await orchestrator.start()

    context = TenantContext(organization_id="org-1", user_id="u-1", user_name="Jane")

    async def fetch_users(scope, filters):
        return await user_repository(scope.unit_of_work).list(**filters)

    job_id = await orchestrator.start_export_job(
        context, "User", ExportFormat.CSV, fetch_users,
        column_mapper=lambda user: {"Name": user.name, "Email": user.email}
    )

    status = await orchestrator.get_export_job_status(job_id)
    print(f"Export status: {status.status.value} ({status.progress_percent}%)")
"""

__version__ = "1.0.0"
__author__ = "Import/Export Orchestrator Team"
__license__ = "MIT"

# Core orchestrator
from .core.orchestrator import ImportExportOrchestrator
from .core.context import TenantContext, TenantContextService, ExecutionScope, background_scope
from .config import EngineSettings

# Data models
from .models.job import (
    ProcessingStatus, OperationType, ExportFormat, DuplicateHandlingStrategy,
    ExportJobStatus, ImportJobStatus
)
from .models.history import HistoryRecord, PagedResult
from .models.outcome import RowProcessorResult, RowOutcome, RowOutcomeKind

# Services (for advanced usage)
from .services.job_registry import JobStatusRegistry
from .services.file_store import FileStore
from .services.history_ledger import HistoryLedger, InMemoryHistoryLedger, PostgresHistoryLedger
from .services.cache_invalidation import CacheInvalidator, InMemoryCacheBackend, RedisCacheBackend

# Utilities
from .utils.database import DatabaseManager
from .utils.logger import setup_logger, get_logger

# Exceptions
from .core.exceptions import (
    ImportExportError,
    JobNotFoundError,
    UnsupportedFormatError,
    UnsupportedStrategyError,
    EmptyUploadError,
    DecodeError,
    FileStoreError,
    ConfigurationError,
    DatabaseError,
    OrchestratorError
)

__all__ = [
    # Core
    "ImportExportOrchestrator",
    "TenantContext",
    "TenantContextService",
    "ExecutionScope",
    "background_scope",
    "EngineSettings",

    # Models
    "ProcessingStatus",
    "OperationType",
    "ExportFormat",
    "DuplicateHandlingStrategy",
    "ExportJobStatus",
    "ImportJobStatus",
    "HistoryRecord",
    "PagedResult",
    "RowProcessorResult",
    "RowOutcome",
    "RowOutcomeKind",

    # Services (for advanced usage)
    "JobStatusRegistry",
    "FileStore",
    "HistoryLedger",
    "InMemoryHistoryLedger",
    "PostgresHistoryLedger",
    "CacheInvalidator",
    "InMemoryCacheBackend",
    "RedisCacheBackend",

    # Utilities
    "DatabaseManager",
    "setup_logger",
    "get_logger",

    # Exceptions
    "ImportExportError",
    "JobNotFoundError",
    "UnsupportedFormatError",
    "UnsupportedStrategyError",
    "EmptyUploadError",
    "DecodeError",
    "FileStoreError",
    "ConfigurationError",
    "DatabaseError",
    "OrchestratorError",

    # Package metadata
    "__version__",
    "__author__",
    "__license__"
]

# Package-level configuration
import logging
logging.getLogger(__name__).addHandler(logging.NullHandler())
