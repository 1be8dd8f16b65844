"""
Data models for the Import/Export Orchestrator

Job status records, history ledger rows and per-row import outcomes.
"""

# Job models
from .job import (
    ProcessingStatus,
    OperationType,
    ExportFormat,
    DuplicateHandlingStrategy,
    ExportJobStatus,
    ImportJobStatus
)

# History models
from .history import (
    HistoryRecord,
    PagedResult,
    MUTABLE_HISTORY_FIELDS
)

# Row outcome models
from .outcome import (
    RowProcessorResult,
    RowOutcome,
    RowOutcomeKind,
    ErrorType,
    classify_result,
    exception_outcome,
    DEFAULT_ERROR_MESSAGE,
    DEFAULT_SKIP_MESSAGE
)

__all__ = [
    # Job models
    "ProcessingStatus",
    "OperationType",
    "ExportFormat",
    "DuplicateHandlingStrategy",
    "ExportJobStatus",
    "ImportJobStatus",

    # History models
    "HistoryRecord",
    "PagedResult",
    "MUTABLE_HISTORY_FIELDS",

    # Row outcome models
    "RowProcessorResult",
    "RowOutcome",
    "RowOutcomeKind",
    "ErrorType",
    "classify_result",
    "exception_outcome",
    "DEFAULT_ERROR_MESSAGE",
    "DEFAULT_SKIP_MESSAGE"
]
