"""Workspace-level models shared by breadcrumbs, events and the store."""

from __future__ import annotations

from enum import StrEnum

from pydantic import Field

from dialogueforge.models.graph import ForgeModel, GraphKind


class GraphScope(StrEnum):
    """An independent editing context; each has its own active graph and history."""

    NARRATIVE = "narrative"
    STORYLET = "storylet"

    @classmethod
    def for_kind(cls, kind: GraphKind) -> GraphScope:
        return cls.NARRATIVE if kind == GraphKind.NARRATIVE else cls.STORYLET


class GraphStatus(StrEnum):
    """Resolution state of a graph in the workspace cache."""

    LOADING = "loading"
    READY = "ready"
    ERROR = "error"


class BreadcrumbItem(ForgeModel):
    """One entry in a scope's navigation history."""

    graph_id: str = Field(min_length=1)
    title: str = ""
    scope: GraphScope
