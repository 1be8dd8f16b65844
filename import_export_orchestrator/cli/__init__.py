"""
CLI package for the Import/Export Orchestrator

Provides the command-line interface for operators.
"""

from .main import main, cli

__all__ = ["main", "cli"]
