"""Pydantic models for graph documents and workspace state.

These models define the wire format exchanged with the persistence layer:
camelCase JSON on the wire, snake_case attributes in Python.
"""

from dialogueforge.models.graph import (
    DEFAULT_START_NODE_TYPES,
    STRUCTURAL_NODE_TYPES,
    CharacterNodeData,
    Choice,
    Condition,
    ConditionalBlock,
    ConditionalBlockType,
    ConditionalNodeData,
    ConditionOperator,
    EdgeKind,
    EndNodeRef,
    FlowEdge,
    FlowGraph,
    FlowNode,
    ForgeModel,
    GraphDocument,
    GraphKind,
    NodeData,
    NodeType,
    PlayerNodeData,
    Position,
    StoryletCall,
    StoryletCallMode,
    StructuralNodeData,
    Viewport,
)
from dialogueforge.models.workspace import BreadcrumbItem, GraphScope, GraphStatus

__all__ = [
    "DEFAULT_START_NODE_TYPES",
    "STRUCTURAL_NODE_TYPES",
    "BreadcrumbItem",
    "CharacterNodeData",
    "Choice",
    "Condition",
    "ConditionOperator",
    "ConditionalBlock",
    "ConditionalBlockType",
    "ConditionalNodeData",
    "EdgeKind",
    "EndNodeRef",
    "FlowEdge",
    "FlowGraph",
    "FlowNode",
    "ForgeModel",
    "GraphDocument",
    "GraphKind",
    "GraphScope",
    "GraphStatus",
    "NodeData",
    "NodeType",
    "PlayerNodeData",
    "Position",
    "StoryletCall",
    "StoryletCallMode",
    "StructuralNodeData",
    "Viewport",
]
