"""
Core package for the Import/Export Orchestrator

Contains the exception hierarchy and the background execution context. The
orchestrator facade lives in ``core.orchestrator``.
"""

from .exceptions import (
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
from .context import (
    TenantContext,
    TenantContextService,
    ExecutionScope,
    ScopeFactory,
    background_scope,
    SYSTEM_USER_NAME
)

__all__ = [
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
    "TenantContext",
    "TenantContextService",
    "ExecutionScope",
    "ScopeFactory",
    "background_scope",
    "SYSTEM_USER_NAME"
]
