"""
Logging utilities for the Import/Export Orchestrator

Provides structured JSON logging configuration and per-logger context so
every record carries the component that emitted it.
"""

import logging
import sys
import json
from datetime import datetime, timezone
from typing import Optional
from pathlib import Path


_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName', 'taskName',
    'processName', 'process', 'message', 'exc_info', 'exc_text',
    'stack_info'
}


class StructuredFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON documents.

    Extra fields passed through ``extra=`` and fields attached by
    :class:`JobContextFilter` are emitted under the ``extra`` key.
    """

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno
        }

        if record.exc_info:
            log_entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        if self.include_extra:
            extra_fields = {
                key: value for key, value in record.__dict__.items()
                if key not in _RESERVED_ATTRS
            }
            if extra_fields:
                log_entry["extra"] = extra_fields

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class JobContextFilter(logging.Filter):
    """Adds component/job context to every record passing through a logger."""

    def __init__(self):
        super().__init__()
        self.context = {}

    def set_context(self, **kwargs):
        self.context.update(kwargs)

    def clear_context(self):
        self.context.clear()

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.context.items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


def setup_logger(
    name: str,
    level: str = "INFO",
    structured: bool = True,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Set up a logger with console (and optionally file) handlers.

    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        structured: Whether to use structured JSON logging
        log_file: Optional log file path

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, level.upper()))

    if structured:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, level.upper()))
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    _ensure_context_filter(logger)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)


def _ensure_context_filter(logger: logging.Logger) -> JobContextFilter:
    context_filter = getattr(logger, 'context_filter', None)
    if context_filter is None:
        context_filter = JobContextFilter()
        logger.addFilter(context_filter)
        logger.context_filter = context_filter
    return context_filter


def set_log_context(logger: logging.Logger, **kwargs):
    """
    Set context variables for a logger.

    Args:
        logger: Logger instance
        **kwargs: Context variables to set
    """
    _ensure_context_filter(logger).set_context(**kwargs)


def clear_log_context(logger: logging.Logger):
    """Clear context variables for a logger."""
    if hasattr(logger, 'context_filter'):
        logger.context_filter.clear_context()

