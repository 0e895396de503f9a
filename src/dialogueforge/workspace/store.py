"""Workspace store: the single owner of graph cache, drafts and navigation.

The store is an explicit object handed to whatever needs it; there is no
module-level workspace state. It holds:

- the graph cache with a resolution status per graph id;
- the active graph id per scope and any pending focus request;
- per-scope breadcrumbs;
- the draft manager for the graph being edited;
- the handler registry used to announce graph changes.

Graph resolution is the only asynchronous boundary. Concurrent requests for
the same graph id share one in-flight resolution, and failures are recorded
against the id rather than raised.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from dialogueforge.config import ForgeConfig
from dialogueforge.events.envelope import (
    EventType,
    GraphChangedPayload,
    GraphChangeReason,
    GraphOpenRequestedEvent,
    create_event,
)
from dialogueforge.events.registry import HandlerRegistry
from dialogueforge.graph.breadcrumbs import BreadcrumbNavigator
from dialogueforge.graph.draft import DraftManager
from dialogueforge.graph.errors import NoGraphLoadedError, ResolutionError
from dialogueforge.models.workspace import BreadcrumbItem, GraphScope, GraphStatus
from dialogueforge.observability.logging import get_logger, graph_context

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from dialogueforge.graph.delta import GraphDelta
    from dialogueforge.models.graph import GraphDocument
    from dialogueforge.workspace.repository import GraphRepository

    GraphResolver = Callable[[str], Awaitable[GraphDocument]]

log = get_logger(__name__)


@dataclass(frozen=True)
class FocusRequest:
    """A request to bring a node into view once its graph is open."""

    graph_id: str
    node_id: str


class WorkspaceStore:
    """Explicit owner of all workspace state.

    Args:
        resolver: Coroutine fetching a graph by id. Defaults to the
            repository's ``get_graph``.
        repository: Persistence backend. When set, commits are saved through
            ``update_graph``.
        registry: Event registry. A fresh one is created if omitted.
        config: Project configuration (validation gate settings).
    """

    def __init__(
        self,
        resolver: GraphResolver | None = None,
        repository: GraphRepository | None = None,
        registry: HandlerRegistry | None = None,
        config: ForgeConfig | None = None,
    ) -> None:
        self.config = config or ForgeConfig()
        self.repository = repository
        self.registry = registry or HandlerRegistry()
        if resolver is None and repository is not None:
            resolver = repository.get_graph
        self._resolver = resolver

        self.graphs_by_id: dict[str, GraphDocument] = {}
        self.status_by_id: dict[str, GraphStatus] = {}
        self.errors_by_id: dict[str, ResolutionError] = {}
        self._inflight: dict[str, asyncio.Task[GraphDocument | None]] = {}

        self.active_graph_ids: dict[GraphScope, str | None] = {scope: None for scope in GraphScope}
        self.focus_requests: dict[GraphScope, FocusRequest | None] = {
            scope: None for scope in GraphScope
        }
        self.breadcrumbs = BreadcrumbNavigator(opener=self._reopen_from_breadcrumb)
        self.draft = DraftManager(config=self.config.validation)
        self.draft_scope: GraphScope | None = None

    # -- cache ------------------------------------------------------------------

    def get_graph(self, graph_id: str) -> GraphDocument | None:
        return self.graphs_by_id.get(graph_id)

    def get_status(self, graph_id: str) -> GraphStatus | None:
        return self.status_by_id.get(graph_id)

    def get_active_graph(self, scope: GraphScope) -> GraphDocument | None:
        graph_id = self.active_graph_ids[scope]
        return self.graphs_by_id.get(graph_id) if graph_id else None

    def set_graph(self, graph: GraphDocument) -> None:
        """Put a graph in the cache as ready."""
        self.graphs_by_id[graph.key] = graph
        self.status_by_id[graph.key] = GraphStatus.READY
        self.errors_by_id.pop(graph.key, None)

    def set_graphs(self, graphs: Iterable[GraphDocument]) -> None:
        for graph in graphs:
            self.set_graph(graph)

    def remove_graph(self, graph_id: str) -> None:
        """Drop a graph from the cache, breadcrumbs, active ids and the draft."""
        self.graphs_by_id.pop(graph_id, None)
        self.status_by_id.pop(graph_id, None)
        self.errors_by_id.pop(graph_id, None)
        self.breadcrumbs.remove_graph(graph_id)
        for scope, active_id in self.active_graph_ids.items():
            if active_id == graph_id:
                self.active_graph_ids[scope] = None
                self.focus_requests[scope] = None
        draft = self.draft.get_draft_graph()
        if draft is not None and draft.key == graph_id:
            self.draft.reset_draft(None)
            self.draft_scope = None
        log.debug("graph_removed", graph_id=graph_id)

    # -- resolution -------------------------------------------------------------

    async def ensure_graph(self, graph_id: str) -> GraphDocument | None:
        """Make sure a graph is cached, resolving it if needed.

        Concurrent calls for the same id join one resolution.

        Returns:
            The graph, or None if resolution failed. The failure is recorded
            in ``errors_by_id`` and the status is set to ``error``.
        """
        if self.status_by_id.get(graph_id) == GraphStatus.READY and graph_id in self.graphs_by_id:
            return self.graphs_by_id[graph_id]

        task = self._inflight.get(graph_id)
        if task is None:
            task = asyncio.ensure_future(self._resolve(graph_id))
            self._inflight[graph_id] = task
        # Cancelling one waiter must not cancel the shared resolution.
        return await asyncio.shield(task)

    async def _resolve(self, graph_id: str) -> GraphDocument | None:
        with graph_context(graph_id=graph_id):
            return await self._resolve_bound(graph_id)

    async def _resolve_bound(self, graph_id: str) -> GraphDocument | None:
        self.status_by_id[graph_id] = GraphStatus.LOADING
        self.errors_by_id.pop(graph_id, None)
        log.info("graph_resolving")
        try:
            if self._resolver is None:
                raise ResolutionError(graph_id, reason="no resolver configured")
            graph = await self._resolver(graph_id)
        except ResolutionError as e:
            self._record_failure(graph_id, e)
            return None
        except Exception as e:
            reason = str(e) or type(e).__name__
            self._record_failure(graph_id, ResolutionError(graph_id, reason=reason))
            return None
        finally:
            self._inflight.pop(graph_id, None)

        self.set_graph(graph)
        log.info("graph_resolved", nodes=len(graph.flow.nodes))
        return graph

    def _record_failure(self, graph_id: str, error: ResolutionError) -> None:
        self.status_by_id[graph_id] = GraphStatus.ERROR
        self.errors_by_id[graph_id] = error
        log.warning("graph_resolution_failed", reason=error.reason)

    # -- navigation -------------------------------------------------------------

    async def open_graph_in_scope(
        self,
        scope: GraphScope,
        graph_id: str,
        focus_node_id: str | None = None,
        push_breadcrumb: bool = True,
    ) -> GraphDocument | None:
        """Make ``graph_id`` the active graph of ``scope`` and load it into the draft.

        Returns:
            The opened graph, or None if it could not be resolved.
        """
        if push_breadcrumb:
            cached = self.graphs_by_id.get(graph_id)
            title = cached.title if cached is not None else f"Graph {graph_id}"
            self.breadcrumbs.push(BreadcrumbItem(graph_id=graph_id, title=title, scope=scope))

        self.active_graph_ids[scope] = graph_id
        graph = await self.ensure_graph(graph_id)
        if graph is None:
            return None

        with graph_context(graph_id=graph_id, scope=scope):
            if self.draft.has_uncommitted_changes:
                log.warning(
                    "draft_replaced_with_uncommitted_changes", pending=len(self.draft.deltas)
                )
            self.draft.reset_draft(graph)
            self.draft_scope = scope
            if focus_node_id:
                self.focus_requests[scope] = FocusRequest(graph_id=graph_id, node_id=focus_node_id)
            log.info("graph_opened", focus_node_id=focus_node_id)
        return graph

    async def _reopen_from_breadcrumb(self, scope: GraphScope, graph_id: str) -> None:
        await self.open_graph_in_scope(scope, graph_id, push_breadcrumb=False)

    async def navigate_to_breadcrumb(self, scope: GraphScope, index: int) -> BreadcrumbItem | None:
        return await self.breadcrumbs.navigate_to(scope, index)

    # -- editing ----------------------------------------------------------------

    def edit(
        self, operation: Callable[..., GraphDocument], *args: Any, **kwargs: Any
    ) -> GraphDocument:
        """Apply a connection-editor operation to the draft and record it.

        ``operation`` receives the current draft as its first argument.

        Raises:
            NoGraphLoadedError: If no graph is open.
        """
        draft = self.draft.get_draft_graph()
        if draft is None:
            raise NoGraphLoadedError("edit")
        updated = operation(draft, *args, **kwargs)
        self.draft.record(updated)
        return updated

    def _change_scope(self, graph: GraphDocument) -> GraphScope:
        return self.draft_scope or GraphScope.for_kind(graph.kind)

    async def commit(self) -> GraphDocument:
        """Commit the draft, persist it if a repository is set, and announce it.

        The draft only becomes committed once persistence has succeeded. If
        the repository raises, the draft, its delta log and the cache are left
        as they were and the error propagates.

        Raises:
            NoGraphLoadedError: If no graph is open.
            ValidationError: If validation blocks the commit.
        """
        draft = self.draft.ensure_committable()
        pending: GraphDelta = self.draft.pending_delta()

        with graph_context(graph_id=draft.key, scope=self._change_scope(draft)):
            persisted = draft
            if self.repository is not None:
                persisted = await self.repository.update_graph(
                    draft.key,
                    {
                        "title": draft.title,
                        "flow": draft.flow,
                        "start_node_id": draft.start_node_id,
                        "end_node_ids": draft.end_node_ids,
                        "compiled_output": draft.compiled_output,
                    },
                )
            self.draft.commit_draft()
            if persisted is not draft:
                self.draft.reset_draft(persisted)
            committed = persisted
            log.info("graph_committed", persisted=self.repository is not None)

        self.set_graph(committed)
        await self.registry.dispatch(
            create_event(
                EventType.GRAPH_CHANGED,
                GraphChangedPayload(
                    graph_id=committed.key,
                    scope=self._change_scope(committed),
                    reason=GraphChangeReason.COMMIT,
                    affected_node_ids=pending.affected_node_ids,
                ),
            )
        )
        return committed

    async def discard(self) -> None:
        """Drop the draft's pending edits and announce it.

        Raises:
            NoGraphLoadedError: If no graph is open.
        """
        committed = self.draft.get_committed_graph()
        if committed is None:
            raise NoGraphLoadedError("discard")
        pending = self.draft.pending_delta()
        self.draft.discard_draft()
        await self.registry.dispatch(
            create_event(
                EventType.GRAPH_CHANGED,
                GraphChangedPayload(
                    graph_id=committed.key,
                    scope=self._change_scope(committed),
                    reason=GraphChangeReason.DISCARD,
                    affected_node_ids=pending.affected_node_ids,
                ),
            )
        )


def register_default_handlers(store: WorkspaceStore) -> None:
    """Wire the store's built-in event handlers into its registry.

    ``graph.openRequested`` opens the requested graph in its scope.

    Raises:
        HandlerRegistrationConflict: If a handler is already registered.
    """

    async def on_open_requested(event: GraphOpenRequestedEvent) -> None:
        payload = event.payload
        await store.open_graph_in_scope(
            payload.scope, payload.graph_id, focus_node_id=payload.focus_node_id
        )

    store.registry.register(EventType.GRAPH_OPEN_REQUESTED, on_open_requested)
