"""Observability module for Dialogue Forge.

Provides structured logging for graph edits, draft commits and graph resolution.
"""

from dialogueforge.observability.logging import (
    close_file_logging,
    configure_logging,
    get_logger,
    get_logs_dir,
    graph_context,
)

__all__ = [
    "close_file_logging",
    "configure_logging",
    "get_logger",
    "get_logs_dir",
    "graph_context",
]
