"""
Per-row import outcome models
"""

from enum import Enum
from typing import Optional, Dict, Any, NamedTuple
from dataclasses import dataclass, field


class RowProcessorResult(NamedTuple):
    """Value returned by a caller-supplied row processor.

    Plain 4-tuples ``(success, error, is_update, is_skip)`` are accepted too.
    """
    success: bool
    error: Optional[str] = None
    is_update: bool = False
    is_skip: bool = False


class RowOutcomeKind(Enum):
    """Classification of one processed import row."""
    SUCCESS = "Success"
    UPDATED = "Updated"
    SKIPPED = "Skipped"
    ERROR = "Error"


class ErrorType(Enum):
    """Report label for rows that did not succeed."""
    VALIDATION = "Validation"
    SYSTEM = "System"
    SKIPPED = "Skipped"


DEFAULT_ERROR_MESSAGE = "Unknown error"
DEFAULT_SKIP_MESSAGE = "Record skipped (duplicate or already exists)"


@dataclass
class RowOutcome:
    """Outcome of one import row, kept for the error/skip report."""

    kind: RowOutcomeKind
    row_number: int
    identifier: str = ""
    message: Optional[str] = None
    error_type: Optional[ErrorType] = None
    column: Optional[str] = None
    row_data: Dict[str, str] = field(default_factory=dict)

    @property
    def is_reportable(self) -> bool:
        return self.kind in (RowOutcomeKind.ERROR, RowOutcomeKind.SKIPPED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "row_number": self.row_number,
            "identifier": self.identifier,
            "message": self.message,
            "error_type": self.error_type.value if self.error_type else None,
            "column": self.column,
            "row_data": self.row_data,
        }


def classify_result(result: Any, row_number: int, row: Dict[str, str]) -> RowOutcome:
    """
    Turn a row processor result into a RowOutcome.

    Skip wins over success; otherwise success with the update flag yields
    Updated, plain success yields Success and anything else is an Error.
    """
    success, error, is_update, is_skip = _unpack(result)
    identifier = next(iter(row.values()), "") if row else ""

    if is_skip:
        return RowOutcome(
            kind=RowOutcomeKind.SKIPPED,
            row_number=row_number,
            identifier=identifier,
            message=error or DEFAULT_SKIP_MESSAGE,
            error_type=ErrorType.SKIPPED,
            row_data=dict(row),
        )
    if success:
        kind = RowOutcomeKind.UPDATED if is_update else RowOutcomeKind.SUCCESS
        return RowOutcome(kind=kind, row_number=row_number, identifier=identifier)
    return RowOutcome(
        kind=RowOutcomeKind.ERROR,
        row_number=row_number,
        identifier=identifier,
        message=error or DEFAULT_ERROR_MESSAGE,
        error_type=ErrorType.VALIDATION,
        row_data=dict(row),
    )


def exception_outcome(exc: BaseException, row_number: int, row: Dict[str, str]) -> RowOutcome:
    """Outcome for a row whose processor raised."""
    return RowOutcome(
        kind=RowOutcomeKind.ERROR,
        row_number=row_number,
        identifier=next(iter(row.values()), "") if row else "",
        message=str(exc) or exc.__class__.__name__,
        error_type=ErrorType.SYSTEM,
        row_data=dict(row),
    )


def _unpack(result: Any):
    if result is None:
        return False, None, False, False
    if isinstance(result, bool):
        return result, None, False, False
    values = list(result)
    values += [False, None, False, False][len(values):]
    success, error, is_update, is_skip = values[:4]
    return bool(success), error, bool(is_update), bool(is_skip)
