"""Before/after deltas between two versions of a graph document.

A GraphDelta records which nodes and edges were added, updated or removed
(by id), whether the viewport changed, and which document-level fields
changed. Deltas can be replayed onto a graph and folded together, which is
how the draft log is summarized into a single pending change.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Generic, Literal, Protocol, TypeVar

if TYPE_CHECKING:
    from dialogueforge.models.graph import FlowEdge, FlowNode, GraphDocument, Viewport


class _HasId(Protocol):
    @property
    def id(self) -> str: ...


ItemT = TypeVar("ItemT", bound=_HasId)

CollectionAction = Literal["added", "updated", "removed"]

# Document-level fields tracked as meta changes.
META_FIELDS: tuple[str, ...] = ("title", "start_node_id", "end_node_ids", "compiled_output")


@dataclass
class CollectionDelta(Generic[ItemT]):
    """Changes to one id-keyed collection (nodes or edges).

    ``added`` and ``updated`` hold the new items; ``removed`` holds the items
    as they were before removal.
    """

    added: list[ItemT] = field(default_factory=list)
    updated: list[ItemT] = field(default_factory=list)
    removed: list[ItemT] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.added or self.updated or self.removed)

    def ids(self) -> list[str]:
        """All affected ids, first occurrence order, without duplicates."""
        seen: dict[str, None] = {}
        for items in (self.added, self.updated, self.removed):
            for item in items:
                seen.setdefault(item.id, None)
        return list(seen)


@dataclass
class GraphDelta:
    """One recorded change between two versions of a graph.

    Attributes:
        nodes: Node collection changes.
        edges: Edge collection changes.
        viewport: New viewport, or None when it did not change.
        meta: Changed document-level fields (snake_case names to new values).
    """

    nodes: CollectionDelta[FlowNode] = field(default_factory=CollectionDelta)
    edges: CollectionDelta[FlowEdge] = field(default_factory=CollectionDelta)
    viewport: Viewport | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    @property
    def affected_node_ids(self) -> list[str]:
        return self.nodes.ids()

    @property
    def affected_edge_ids(self) -> list[str]:
        return self.edges.ids()

    @property
    def is_empty(self) -> bool:
        return (
            self.nodes.is_empty
            and self.edges.is_empty
            and self.viewport is None
            and not self.meta
        )


def _collection_delta(before: list[ItemT], after: list[ItemT]) -> CollectionDelta[ItemT]:
    before_by_id = {item.id: item for item in before}
    after_by_id = {item.id: item for item in after}
    delta: CollectionDelta[ItemT] = CollectionDelta()

    for item_id, item in after_by_id.items():
        previous = before_by_id.get(item_id)
        if previous is None:
            delta.added.append(item)
        elif previous != item:
            delta.updated.append(item)

    for item_id, item in before_by_id.items():
        if item_id not in after_by_id:
            delta.removed.append(item)

    return delta


def _apply_collection(items: list[ItemT], delta: CollectionDelta[ItemT]) -> list[ItemT]:
    by_id = {item.id: item for item in items}
    for item in delta.removed:
        by_id.pop(item.id, None)
    # Existing keys keep their position; new keys are appended.
    for item in delta.updated:
        by_id[item.id] = item
    for item in delta.added:
        by_id[item.id] = item
    return list(by_id.values())


def _merge_collections(
    first: CollectionDelta[ItemT], second: CollectionDelta[ItemT]
) -> CollectionDelta[ItemT]:
    merged: dict[str, tuple[CollectionAction, ItemT]] = {}

    def action_of(item_id: str) -> CollectionAction | None:
        entry = merged.get(item_id)
        return entry[0] if entry else None

    for item in first.added:
        merged[item.id] = ("added", item)
    for item in first.updated:
        merged[item.id] = ("updated", item)
    for item in first.removed:
        merged[item.id] = ("removed", item)

    for item in second.removed:
        if action_of(item.id) == "added":
            # Added and removed within the same window: nothing to persist.
            del merged[item.id]
            continue
        merged[item.id] = ("removed", item)
    for item in second.updated:
        merged[item.id] = ("added" if action_of(item.id) == "added" else "updated", item)
    for item in second.added:
        if action_of(item.id) == "removed":
            # Removed then re-added: the committed item is replaced.
            merged[item.id] = ("updated", item)
            continue
        merged[item.id] = ("added", item)

    result: CollectionDelta[ItemT] = CollectionDelta()
    for action, item in merged.values():
        getattr(result, action).append(item)
    return result


def calculate_delta(before: GraphDocument, after: GraphDocument) -> GraphDelta:
    """Diff two versions of the same graph."""
    meta = {
        name: getattr(after, name)
        for name in META_FIELDS
        if getattr(before, name) != getattr(after, name)
    }
    return GraphDelta(
        nodes=_collection_delta(before.flow.nodes, after.flow.nodes),
        edges=_collection_delta(before.flow.edges, after.flow.edges),
        viewport=after.flow.viewport if before.flow.viewport != after.flow.viewport else None,
        meta=meta,
    )


def apply_delta_to_graph(graph: GraphDocument, delta: GraphDelta) -> GraphDocument:
    """Replay a delta onto a graph, returning a new graph."""
    flow = graph.flow.model_copy(
        update={
            "nodes": _apply_collection(graph.flow.nodes, delta.nodes),
            "edges": _apply_collection(graph.flow.edges, delta.edges),
            "viewport": delta.viewport if delta.viewport is not None else graph.flow.viewport,
        }
    )
    return graph.model_copy(update={**delta.meta, "flow": flow})


def merge_deltas(first: GraphDelta, second: GraphDelta) -> GraphDelta:
    """Fold two consecutive deltas into one.

    An add followed by an update stays an add; an add followed by a removal
    cancels out.
    """
    return GraphDelta(
        nodes=_merge_collections(first.nodes, second.nodes),
        edges=_merge_collections(first.edges, second.edges),
        viewport=second.viewport if second.viewport is not None else first.viewport,
        meta={**first.meta, **second.meta},
    )
