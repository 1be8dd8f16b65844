"""Tests for structured logging helpers."""
import json
import logging

from import_export_orchestrator.utils.logger import (
    StructuredFormatter, get_logger, set_log_context, clear_log_context
)


def _record(logger, message, **extra):
    record = logger.makeRecord(logger.name, logging.INFO, __file__, 1, message, (), None, extra=extra)
    for log_filter in logger.filters:
        log_filter.filter(record)
    return record


def test_structured_formatter_emits_json_with_context_and_extra():
    logger = get_logger("tests.structured")
    set_log_context(logger, component="export_pipeline")

    line = StructuredFormatter().format(_record(logger, "Export job completed", job_id="job-1", total_rows=3))
    entry = json.loads(line)

    assert entry["level"] == "INFO"
    assert entry["message"] == "Export job completed"
    assert entry["extra"] == {"component": "export_pipeline", "job_id": "job-1", "total_rows": 3}


def test_record_extra_wins_over_logger_context():
    logger = get_logger("tests.precedence")
    set_log_context(logger, component="import_pipeline", job_id="from-context")

    record = _record(logger, "row failed", job_id="from-call")
    assert record.job_id == "from-call"
    assert record.component == "import_pipeline"

    clear_log_context(logger)
    assert not hasattr(_record(logger, "plain"), "component")
