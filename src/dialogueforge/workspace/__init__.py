"""Workspace store and graph persistence."""

from dialogueforge.workspace.repository import GraphRepository, InMemoryGraphRepository
from dialogueforge.workspace.store import FocusRequest, WorkspaceStore, register_default_handlers

__all__ = [
    "FocusRequest",
    "GraphRepository",
    "InMemoryGraphRepository",
    "WorkspaceStore",
    "register_default_handlers",
]
