"""
Utilities package for the Import/Export Orchestrator

Contains logging setup and small id/time helpers. ``DatabaseManager`` lives
in ``utils.database``.
"""

from .logger import setup_logger, get_logger, set_log_context, clear_log_context
from .ids import generate_id
from .time import utc_now, export_timestamp

__all__ = [
    "setup_logger",
    "get_logger",
    "set_log_context",
    "clear_log_context",
    "generate_id",
    "utc_now",
    "export_timestamp"
]
