"""
Exception classes for the Import/Export Orchestrator

Provides the exception hierarchy for setup failures (raised synchronously to
the caller of a start operation), pipeline failures (recorded on the job and
its history row) and infrastructure failures.
"""

from typing import Optional, Dict, Any


class ImportExportError(Exception):
    """Base exception for all import/export orchestrator errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details
        }


class JobNotFoundError(ImportExportError):
    """Raised when a job id is not present in the job status registry."""

    def __init__(self, job_id: str):
        super().__init__(
            f"Job {job_id} not found",
            error_code="JOB_NOT_FOUND",
            details={"job_id": job_id}
        )


class UnsupportedFormatError(ImportExportError):
    """Raised when an export format or import file type has no codec."""

    def __init__(self, requested: str, supported: Optional[list] = None):
        super().__init__(
            f"Unsupported format: {requested}",
            error_code="UNSUPPORTED_FORMAT",
            details={"requested": requested, "supported": supported or []}
        )


class UnsupportedStrategyError(ImportExportError):
    """Raised when an import names an unknown duplicate handling strategy."""

    def __init__(self, requested: str, supported: Optional[list] = None):
        super().__init__(
            f"Unsupported duplicate handling strategy: {requested}",
            error_code="UNSUPPORTED_STRATEGY",
            details={"requested": requested, "supported": supported or []}
        )


class EmptyUploadError(ImportExportError):
    """Raised when an import is started without file content."""

    def __init__(self, file_name: Optional[str] = None):
        super().__init__(
            f"Uploaded file is empty: {file_name}",
            error_code="EMPTY_UPLOAD",
            details={"file_name": file_name}
        )


class DecodeError(ImportExportError):
    """Raised when an uploaded payload cannot be parsed into rows."""

    def __init__(self, file_name: str, message: str):
        super().__init__(
            f"Failed to decode {file_name}: {message}",
            error_code="DECODE_ERROR",
            details={"file_name": file_name}
        )


class FileStoreError(ImportExportError):
    """Raised when the file store cannot read or write a blob."""

    def __init__(self, operation: str, message: str, locator: Optional[str] = None):
        super().__init__(
            f"File store operation '{operation}' failed: {message}",
            error_code="FILE_STORE_ERROR",
            details={"operation": operation, "locator": locator}
        )


class ConfigurationError(ImportExportError):
    """Raised when there's an error in configuration."""

    def __init__(self, config_key: str, message: str):
        super().__init__(
            f"Configuration error for {config_key}: {message}",
            error_code="CONFIGURATION_ERROR",
            details={"config_key": config_key}
        )


class DatabaseError(ImportExportError):
    """Raised when database operations fail."""

    def __init__(self, operation: str, message: str, table: Optional[str] = None):
        super().__init__(
            f"Database operation '{operation}' failed: {message}",
            error_code="DATABASE_ERROR",
            details={"operation": operation, "table": table}
        )


class OrchestratorError(ImportExportError):
    """Raised when orchestrator-level operations fail."""

    def __init__(self, message: str):
        super().__init__(
            f"Orchestrator error: {message}",
            error_code="ORCHESTRATOR_ERROR"
        )
