"""Connection editor: pure edits that keep the flow and semantic layers in lockstep.

Every function takes a GraphDocument and returns a new one; the input is
never mutated. Edges are upserted by a deterministic id built from
``(source, source_handle, target)``, and every semantic edge (FLOW, CHOICE,
CONDITION) is written together with the pointer on its source node.

Out-of-range choice/block indices are ignored rather than raised. The one
structural edit that is refused is deleting the start node.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from dialogueforge.graph.document import create_node, generate_id, require_node
from dialogueforge.graph.errors import NodeExistsError, StructuralError
from dialogueforge.graph.semantics import (
    BLOCK_HANDLE_PREFIX,
    CHOICE_HANDLE_PREFIX,
    NEXT_HANDLE,
    block_handle,
    build_edge_id,
    choice_handle,
    get_pointer,
    has_slot,
    infer_edge_type,
    iter_pointers,
    parse_handle,
    scrub_pointers,
    set_pointer,
)
from dialogueforge.models.graph import (
    Choice,
    ConditionalBlock,
    ConditionalBlockType,
    ConditionalNodeData,
    EdgeKind,
    FlowEdge,
    FlowNode,
    NodeType,
    PlayerNodeData,
    Position,
)
from dialogueforge.observability.logging import get_logger

if TYPE_CHECKING:
    from dialogueforge.models.graph import GraphDocument, NodeData

log = get_logger(__name__)

# Data fields that hold semantic pointers; editing them directly needs an edge resync.
_POINTER_FIELDS = frozenset({"default_next_node_id", "choices", "conditional_blocks"})

__all__ = [
    "add_choice",
    "add_conditional_block",
    "add_node",
    "apply_connection",
    "build_edge_id",
    "create_node",
    "delete_node",
    "insert_node_between_edge",
    "remove_choice",
    "remove_conditional_block",
    "remove_edge_and_semantic_link",
    "sync_edges_from_pointers",
    "update_choice",
    "update_node_data",
    "update_node_position",
    "upsert_node",
]


def _replace_flow(
    graph: GraphDocument,
    nodes: list[FlowNode] | None = None,
    edges: list[FlowEdge] | None = None,
    **doc_updates: Any,
) -> GraphDocument:
    flow_updates: dict[str, Any] = {}
    if nodes is not None:
        flow_updates["nodes"] = nodes
    if edges is not None:
        flow_updates["edges"] = edges
    flow = graph.flow.model_copy(update=flow_updates)
    return graph.model_copy(update={"flow": flow, **doc_updates})


def _with_data(node: FlowNode, data: NodeData) -> FlowNode:
    if data is node.data:
        return node
    return node.model_copy(update={"data": data})


def _map_node(graph: GraphDocument, node_id: str, data: NodeData) -> list[FlowNode]:
    return [_with_data(n, data) if n.id == node_id else n for n in graph.flow.nodes]


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------


def add_node(graph: GraphDocument, node: FlowNode) -> GraphDocument:
    """Append a node.

    Raises:
        NodeExistsError: If a node with the same id already exists.
    """
    if graph.has_node(node.id):
        raise NodeExistsError(node.id)
    log.debug("node_added", node_id=node.id, node_type=str(node.type))
    return _replace_flow(graph, nodes=[*graph.flow.nodes, node])


def upsert_node(graph: GraphDocument, node: FlowNode) -> GraphDocument:
    """Replace the node with the same id, or append it if absent."""
    if not graph.has_node(node.id):
        return _replace_flow(graph, nodes=[*graph.flow.nodes, node])
    return _replace_flow(graph, nodes=[node if n.id == node.id else n for n in graph.flow.nodes])


def update_node_data(graph: GraphDocument, node_id: str, **updates: Any) -> GraphDocument:
    """Update fields on a node's data.

    Updates are validated against the node's data model. When they touch a
    pointer field the visual edges are resynced from the pointers.

    Raises:
        NodeNotFoundError: If ``node_id`` is not in the graph.
        ValueError: If ``updates`` tries to change the node type.
        pydantic.ValidationError: If the updated data is invalid.
    """
    node = require_node(graph, node_id, context="update_node_data")
    if "type" in updates:
        raise ValueError(f"Cannot change the type of node '{node_id}' through a data update")

    merged = {**node.data.model_dump(), **updates}
    data = type(node.data).model_validate(merged)
    updated = _replace_flow(graph, nodes=_map_node(graph, node_id, data))

    if _POINTER_FIELDS.intersection(updates):
        updated = sync_edges_from_pointers(updated)
    return updated


def update_node_position(graph: GraphDocument, node_id: str, x: float, y: float) -> GraphDocument:
    """Move a node on the canvas.

    Raises:
        NodeNotFoundError: If ``node_id`` is not in the graph.
    """
    require_node(graph, node_id, context="update_node_position")
    nodes = [
        n.model_copy(update={"position": Position(x=x, y=y)}) if n.id == node_id else n
        for n in graph.flow.nodes
    ]
    return _replace_flow(graph, nodes=nodes)


def delete_node(graph: GraphDocument, node_id: str) -> GraphDocument:
    """Delete a node, every edge touching it, and every pointer to it.

    End-node entries naming the node are dropped as well.

    Raises:
        StructuralError: If ``node_id`` is the graph's start node.
    """
    if node_id == graph.start_node_id:
        raise StructuralError(node_id)

    edges = [e for e in graph.flow.edges if e.source != node_id and e.target != node_id]
    nodes = [
        _with_data(n, scrub_pointers(n.data, node_id))
        for n in graph.flow.nodes
        if n.id != node_id
    ]
    end_node_ids = [ref for ref in graph.end_node_ids if ref.node_id != node_id]

    log.debug(
        "node_deleted",
        node_id=node_id,
        edges_removed=len(graph.flow.edges) - len(edges),
    )
    return _replace_flow(graph, nodes=nodes, edges=edges, end_node_ids=end_node_ids)


# ---------------------------------------------------------------------------
# Edges
# ---------------------------------------------------------------------------


def _upsert_edge(edges: list[FlowEdge], edge: FlowEdge) -> list[FlowEdge]:
    for i, existing in enumerate(edges):
        if existing.id == edge.id:
            copy = list(edges)
            copy[i] = edge
            return copy
    return [*edges, edge]


def _make_edge(
    source: str, target: str, source_handle: str | None, target_handle: str | None = None
) -> FlowEdge:
    return FlowEdge(
        id=build_edge_id(source, target, source_handle),
        source=source,
        target=target,
        source_handle=source_handle,
        target_handle=target_handle,
        type=infer_edge_type(source_handle),
        kind=parse_handle(source_handle).kind,
    )


def apply_connection(
    graph: GraphDocument,
    source: str,
    target: str,
    source_handle: str | None = None,
    target_handle: str | None = None,
) -> GraphDocument:
    """Connect ``source`` to ``target`` through ``source_handle``.

    Upserts the visual edge and writes the matching semantic pointer on the
    source node. When the handle addresses an existing pointer slot, any
    other semantic edge leaving that same slot is replaced, so a slot never
    shows two targets. Handles addressing a missing slot update only the
    visual layer.

    Raises:
        NodeNotFoundError: If either endpoint is not in the graph.
    """
    if not source or not target:
        return graph
    source_node = require_node(graph, source, context="connection source")
    require_node(graph, target, context="connection target")

    edge = _make_edge(source, target, source_handle, target_handle)
    ref = parse_handle(source_handle)
    edges = list(graph.flow.edges)

    if ref.is_semantic and has_slot(source_node.data, ref):
        edges = [
            e
            for e in edges
            if e.id == edge.id or e.source != source or parse_handle(e.source_handle) != ref
        ]
    edges = _upsert_edge(edges, edge)

    data = set_pointer(source_node.data, ref, target)
    log.debug("edge_connected", edge_id=edge.id, kind=str(edge.kind))
    return _replace_flow(graph, nodes=_map_node(graph, source, data), edges=edges)


def remove_edge_and_semantic_link(graph: GraphDocument, edge_id: str) -> GraphDocument:
    """Remove an edge and clear its semantic pointer.

    The pointer is cleared only if it still equals the edge's target, so a
    pointer that was repointed elsewhere meanwhile is left alone. Unknown
    edge ids are a no-op.
    """
    edge = graph.get_edge(edge_id)
    if edge is None:
        return graph

    edges = [e for e in graph.flow.edges if e.id != edge_id]
    nodes = graph.flow.nodes
    source_node = graph.get_node(edge.source)
    if source_node is not None:
        ref = parse_handle(edge.source_handle)
        if ref.is_semantic and get_pointer(source_node.data, ref) == edge.target:
            nodes = _map_node(graph, edge.source, set_pointer(source_node.data, ref, None))

    log.debug("edge_removed", edge_id=edge_id)
    return _replace_flow(graph, nodes=nodes, edges=edges)


def _outgoing_handle(node: FlowNode) -> str:
    """Handle used to continue flow out of a newly inserted node."""
    if node.type == NodeType.PLAYER:
        return choice_handle(0)
    if node.type == NodeType.CONDITIONAL:
        return block_handle(0)
    return NEXT_HANDLE


def insert_node_between_edge(
    graph: GraphDocument,
    edge_id: str,
    new_type: NodeType,
    new_id: str,
    x: float = 0.0,
    y: float = 0.0,
) -> GraphDocument:
    """Split an edge ``source -> target`` into ``source -> new -> target``.

    The source side reuses the original handle, so the new node takes the
    choice or block slot the old target occupied. The new node continues to
    the old target through ``next``. PLAYER and CONDITIONAL nodes have no
    default-next pointer, so for them the continuation is written to the
    seeded first slot (``choice-0`` or ``block-0``) rather than to a
    default-next link; every flow edge out of the new node is then backed by
    a pointer.
    Unknown edge ids are a no-op.

    Raises:
        NodeExistsError: If ``new_id`` is already taken.
    """
    edge = graph.get_edge(edge_id)
    if edge is None:
        return graph
    if graph.has_node(new_id):
        raise NodeExistsError(new_id)

    new_node = create_node(new_type, new_id, x, y)
    updated = remove_edge_and_semantic_link(graph, edge_id)
    updated = add_node(updated, new_node)
    updated = apply_connection(
        updated,
        source=edge.source,
        target=new_id,
        source_handle=edge.source_handle,
        target_handle=edge.target_handle,
    )
    updated = apply_connection(
        updated,
        source=new_id,
        target=edge.target,
        source_handle=_outgoing_handle(new_node),
    )
    log.debug("node_inserted", edge_id=edge_id, node_id=new_id, node_type=str(new_type))
    return updated


def sync_edges_from_pointers(graph: GraphDocument) -> GraphDocument:
    """Reconcile the visual layer to the semantic pointers.

    Semantic edges whose pointer no longer matches are dropped, missing edges
    are added for every pointer whose target exists, and VISUAL edges are
    kept as they are.
    """
    nodes_by_id = graph.nodes_by_id()

    kept: list[FlowEdge] = []
    for edge in graph.flow.edges:
        ref = parse_handle(edge.source_handle)
        if not ref.is_semantic:
            kept.append(edge)
            continue
        source = nodes_by_id.get(edge.source)
        if (
            source is not None
            and edge.target in nodes_by_id
            and get_pointer(source.data, ref) == edge.target
        ):
            kept.append(edge)

    present = {(e.source, parse_handle(e.source_handle), e.target) for e in kept}
    added: list[FlowEdge] = []
    for node in graph.flow.nodes:
        for handle, target in iter_pointers(node.data):
            if target not in nodes_by_id:
                continue
            key = (node.id, parse_handle(handle), target)
            if key in present:
                continue
            present.add(key)
            added.append(_make_edge(node.id, target, handle))

    if len(kept) == len(graph.flow.edges) and not added:
        return graph
    log.debug(
        "edges_synced",
        dropped=len(graph.flow.edges) - len(kept),
        added=len(added),
    )
    return _replace_flow(graph, edges=[*kept, *added])


# ---------------------------------------------------------------------------
# Choices and conditional blocks
# ---------------------------------------------------------------------------


def _renumber_slot_edges(
    edges: list[FlowEdge], node_id: str, kind: EdgeKind, removed: int
) -> list[FlowEdge]:
    """Drop the edge of slot ``removed`` and shift later slot handles down by one."""
    prefix = CHOICE_HANDLE_PREFIX if kind == EdgeKind.CHOICE else BLOCK_HANDLE_PREFIX
    result: list[FlowEdge] = []
    for edge in edges:
        ref = parse_handle(edge.source_handle)
        if edge.source != node_id or ref.kind != kind or ref.index is None:
            result.append(edge)
            continue
        if ref.index == removed:
            continue
        if ref.index < removed:
            result.append(edge)
            continue
        handle = f"{prefix}{ref.index - 1}"
        result.append(
            edge.model_copy(
                update={
                    "id": build_edge_id(edge.source, edge.target, handle),
                    "source_handle": handle,
                }
            )
        )
    return result


def add_choice(
    graph: GraphDocument, node_id: str, text: str = "", choice_id: str | None = None
) -> GraphDocument:
    """Append a choice to a PLAYER node. Other node types are left unchanged.

    Raises:
        NodeNotFoundError: If ``node_id`` is not in the graph.
    """
    node = require_node(graph, node_id, context="add_choice")
    if not isinstance(node.data, PlayerNodeData):
        return graph
    choice = Choice(id=choice_id or generate_id("c"), text=text)
    data = node.data.model_copy(update={"choices": [*node.data.choices, choice]})
    return _replace_flow(graph, nodes=_map_node(graph, node_id, data))


def update_choice(graph: GraphDocument, node_id: str, index: int, **updates: Any) -> GraphDocument:
    """Update fields of one choice (text, conditions, set_flags).

    Pointers are changed through apply_connection, not here.

    Raises:
        NodeNotFoundError: If ``node_id`` is not in the graph.
        ValueError: If ``updates`` includes ``next_node_id``.
    """
    if "next_node_id" in updates:
        raise ValueError("Choice targets are changed with apply_connection()")
    node = require_node(graph, node_id, context="update_choice")
    if not isinstance(node.data, PlayerNodeData) or not 0 <= index < len(node.data.choices):
        return graph
    choices = list(node.data.choices)
    choices[index] = Choice.model_validate({**choices[index].model_dump(), **updates})
    data = node.data.model_copy(update={"choices": choices})
    return _replace_flow(graph, nodes=_map_node(graph, node_id, data))


def remove_choice(graph: GraphDocument, node_id: str, index: int) -> GraphDocument:
    """Remove choice ``index`` from a PLAYER node and renumber later choice handles.

    Raises:
        NodeNotFoundError: If ``node_id`` is not in the graph.
    """
    node = require_node(graph, node_id, context="remove_choice")
    if not isinstance(node.data, PlayerNodeData) or not 0 <= index < len(node.data.choices):
        return graph
    choices = [c for i, c in enumerate(node.data.choices) if i != index]
    data = node.data.model_copy(update={"choices": choices})
    edges = _renumber_slot_edges(graph.flow.edges, node_id, EdgeKind.CHOICE, index)
    log.debug("choice_removed", node_id=node_id, index=index)
    return _replace_flow(graph, nodes=_map_node(graph, node_id, data), edges=edges)


def add_conditional_block(
    graph: GraphDocument,
    node_id: str,
    block_type: ConditionalBlockType = ConditionalBlockType.ELSE_IF,
    block_id: str | None = None,
) -> GraphDocument:
    """Append a block to a CONDITIONAL node. Other node types are left unchanged.

    Raises:
        NodeNotFoundError: If ``node_id`` is not in the graph.
    """
    node = require_node(graph, node_id, context="add_conditional_block")
    if not isinstance(node.data, ConditionalNodeData):
        return graph
    block = ConditionalBlock(id=block_id or generate_id("b"), type=block_type)
    data = node.data.model_copy(
        update={"conditional_blocks": [*node.data.conditional_blocks, block]}
    )
    return _replace_flow(graph, nodes=_map_node(graph, node_id, data))


def remove_conditional_block(graph: GraphDocument, node_id: str, index: int) -> GraphDocument:
    """Remove block ``index`` from a CONDITIONAL node and renumber later block handles.

    Raises:
        NodeNotFoundError: If ``node_id`` is not in the graph.
    """
    node = require_node(graph, node_id, context="remove_conditional_block")
    if not isinstance(node.data, ConditionalNodeData) or not (
        0 <= index < len(node.data.conditional_blocks)
    ):
        return graph
    blocks = [b for i, b in enumerate(node.data.conditional_blocks) if i != index]
    data = node.data.model_copy(update={"conditional_blocks": blocks})
    edges = _renumber_slot_edges(graph.flow.edges, node_id, EdgeKind.CONDITION, index)
    log.debug("conditional_block_removed", node_id=node_id, index=index)
    return _replace_flow(graph, nodes=_map_node(graph, node_id, data), edges=edges)
