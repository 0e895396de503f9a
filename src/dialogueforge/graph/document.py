"""Graph document construction and lookup helpers."""

from __future__ import annotations

import random
from datetime import UTC, datetime
from uuid import uuid4

from dialogueforge.graph.errors import NodeNotFoundError
from dialogueforge.models.graph import (
    DEFAULT_START_NODE_TYPES,
    CharacterNodeData,
    Choice,
    ConditionalBlock,
    ConditionalBlockType,
    ConditionalNodeData,
    FlowGraph,
    FlowNode,
    GraphDocument,
    GraphKind,
    NodeData,
    NodeType,
    PlayerNodeData,
    Position,
    StructuralNodeData,
    Viewport,
)


def generate_id(prefix: str) -> str:
    """Generate a short unique id such as ``start_3f2a9c1b``."""
    return f"{prefix}_{uuid4().hex[:8]}"


def default_node_data(node_type: NodeType) -> NodeData:
    """Type-specific starting data for a freshly created node.

    PLAYER nodes get one seeded choice, CONDITIONAL nodes one seeded ``if``
    block, CHARACTER nodes placeholder speaker and content.
    """
    if node_type == NodeType.PLAYER:
        return PlayerNodeData(choices=[Choice(id=generate_id("c"), text="")])
    if node_type == NodeType.CONDITIONAL:
        return ConditionalNodeData(
            conditional_blocks=[
                ConditionalBlock(id=generate_id("b"), type=ConditionalBlockType.IF, content="")
            ]
        )
    if node_type == NodeType.CHARACTER:
        return CharacterNodeData(speaker="Character", content="...")
    return StructuralNodeData(type=node_type)


def create_node(node_type: NodeType, node_id: str, x: float = 0.0, y: float = 0.0) -> FlowNode:
    """Build a positioned node with type-specific default data."""
    return FlowNode(
        id=node_id,
        type=node_type,
        position=Position(x=x, y=y),
        data=default_node_data(node_type),
    )


def create_empty_graph(
    project_id: int,
    kind: GraphKind = GraphKind.NARRATIVE,
    title: str | None = None,
    graph_id: int | None = None,
    start_node_type: NodeType | None = None,
) -> GraphDocument:
    """Create a graph containing only its start node.

    Args:
        project_id: Owning project.
        kind: NARRATIVE or STORYLET.
        title: Graph title. Defaults to ``New Graph <first 4 digits of id>``.
        graph_id: Explicit id. Defaults to a random positive integer.
        start_node_type: Type of the start node. Defaults per graph kind.

    Returns:
        A new document whose start node is its only node.
    """
    if graph_id is None:
        graph_id = random.randint(100_000, 999_999_999)
    node_type = start_node_type or DEFAULT_START_NODE_TYPES[kind]
    start_id = generate_id("start")
    now = datetime.now(UTC)

    return GraphDocument(
        id=graph_id,
        project_id=project_id,
        kind=kind,
        title=title or f"New Graph {str(graph_id)[:4]}",
        start_node_id=start_id,
        end_node_ids=[],
        flow=FlowGraph(
            nodes=[create_node(node_type, start_id)],
            edges=[],
            viewport=Viewport(x=0, y=0, zoom=1),
        ),
        created_at=now,
        updated_at=now,
    )


def require_node(graph: GraphDocument, node_id: str, context: str = "") -> FlowNode:
    """Return the node with ``node_id`` or raise NodeNotFoundError."""
    node = graph.get_node(node_id)
    if node is None:
        raise NodeNotFoundError(node_id, available=graph.node_ids(), context=context)
    return node
