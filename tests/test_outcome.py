"""Tests for row outcome classification."""
from import_export_orchestrator.models.outcome import (
    RowProcessorResult, RowOutcomeKind, ErrorType, classify_result, exception_outcome,
    DEFAULT_ERROR_MESSAGE, DEFAULT_SKIP_MESSAGE
)

ROW = {"Email": "a@example.com", "Name": "Alice"}


def test_success_and_update():
    assert classify_result(RowProcessorResult(True), 1, ROW).kind is RowOutcomeKind.SUCCESS
    assert classify_result((True, None, True, False), 1, ROW).kind is RowOutcomeKind.UPDATED


def test_skip_wins_regardless_of_success():
    for success in (True, False):
        outcome = classify_result((success, None, False, True), 4, ROW)
        assert outcome.kind is RowOutcomeKind.SKIPPED
        assert outcome.error_type is ErrorType.SKIPPED
        assert outcome.message == DEFAULT_SKIP_MESSAGE
        assert outcome.row_number == 4


def test_failure_defaults_to_unknown_error():
    outcome = classify_result((False,), 2, ROW)
    assert outcome.kind is RowOutcomeKind.ERROR
    assert outcome.error_type is ErrorType.VALIDATION
    assert outcome.message == DEFAULT_ERROR_MESSAGE
    assert outcome.identifier == "a@example.com"
    assert outcome.row_data == ROW


def test_processor_message_is_kept():
    outcome = classify_result(RowProcessorResult(False, "Name is required"), 2, ROW)
    assert outcome.message == "Name is required"


def test_none_and_bool_results():
    assert classify_result(None, 1, ROW).kind is RowOutcomeKind.ERROR
    assert classify_result(True, 1, ROW).kind is RowOutcomeKind.SUCCESS


def test_exception_outcome_is_system_error():
    outcome = exception_outcome(RuntimeError("db down"), 7, ROW)
    assert outcome.kind is RowOutcomeKind.ERROR
    assert outcome.error_type is ErrorType.SYSTEM
    assert outcome.message == "db down"
    assert outcome.row_number == 7
