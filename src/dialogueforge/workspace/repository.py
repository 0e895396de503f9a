"""Graph persistence protocol and an in-memory implementation.

The workspace store only needs ``get_graph`` to resolve graphs; the rest of
the protocol is what editors use to create, save and list graphs.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from dialogueforge.graph.errors import ResolutionError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from dialogueforge.models.graph import GraphDocument, GraphKind


@runtime_checkable
class GraphRepository(Protocol):
    """Persistence backend for graph documents.

    ``get_graph`` and ``update_graph`` raise ResolutionError for unknown ids.
    """

    async def get_graph(self, graph_id: str) -> GraphDocument:
        """Fetch a graph by id."""
        ...

    async def create_graph(self, graph: GraphDocument) -> GraphDocument:
        """Store a new graph and return it as stored (with its assigned id)."""
        ...

    async def update_graph(self, graph_id: str, patch: dict[str, Any]) -> GraphDocument:
        """Apply a field patch (snake_case names) and return the updated graph."""
        ...

    async def list_graphs(
        self, project_id: int, kind: GraphKind | None = None
    ) -> list[GraphDocument]:
        """List a project's graphs, optionally only one kind."""
        ...


class InMemoryGraphRepository:
    """Dict-backed GraphRepository, used for tests and the CLI."""

    def __init__(self, graphs: Iterable[GraphDocument] | None = None) -> None:
        self._graphs: dict[str, GraphDocument] = {g.key: g for g in graphs or ()}

    def _require(self, graph_id: str) -> GraphDocument:
        graph = self._graphs.get(str(graph_id))
        if graph is None:
            raise ResolutionError(str(graph_id))
        return graph

    async def get_graph(self, graph_id: str) -> GraphDocument:
        return self._require(graph_id)

    async def create_graph(self, graph: GraphDocument) -> GraphDocument:
        if graph.id <= 0 or graph.key in self._graphs:
            next_id = max((g.id for g in self._graphs.values()), default=0) + 1
            graph = graph.model_copy(update={"id": next_id})
        self._graphs[graph.key] = graph
        return graph

    async def update_graph(self, graph_id: str, patch: dict[str, Any]) -> GraphDocument:
        current = self._require(graph_id)
        data = {**current.model_dump(), **patch, "updated_at": datetime.now(UTC)}
        updated = type(current).model_validate(data)
        self._graphs[updated.key] = updated
        return updated

    async def list_graphs(
        self, project_id: int, kind: GraphKind | None = None
    ) -> list[GraphDocument]:
        return [
            g
            for g in self._graphs.values()
            if g.project_id == project_id and (kind is None or g.kind == kind)
        ]
