"""Narrative graph document models.

A graph document carries two layers that describe the same story flow:

- the *flow layer*: positioned nodes and handle-addressed edges, edited
  visually;
- the *semantic layer*: next-node pointers stored on node data
  (``default_next_node_id``, ``choices[i].next_node_id``,
  ``conditional_blocks[i].next_node_id``).

Node data is a tagged union keyed by node ``type``. The Python API uses
snake_case; the wire format is camelCase JSON.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Any, ClassVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class GraphKind(StrEnum):
    """Which editor a graph belongs to."""

    NARRATIVE = "NARRATIVE"
    STORYLET = "STORYLET"


class NodeType(StrEnum):
    """Every node type a graph may contain."""

    ACT = "ACT"
    CHAPTER = "CHAPTER"
    PAGE = "PAGE"
    PLAYER = "PLAYER"
    CHARACTER = "CHARACTER"
    CONDITIONAL = "CONDITIONAL"
    DETOUR = "DETOUR"
    JUMP = "JUMP"
    END = "END"
    STORYLET = "STORYLET"


class EdgeKind(StrEnum):
    """Semantic meaning of a flow edge, derived from its source handle."""

    FLOW = "FLOW"
    CHOICE = "CHOICE"
    CONDITION = "CONDITION"
    VISUAL = "VISUAL"


class ConditionalBlockType(StrEnum):
    IF = "if"
    ELSE_IF = "elseif"
    ELSE = "else"


class ConditionOperator(StrEnum):
    IS_SET = "is_set"
    IS_NOT_SET = "is_not_set"
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    GREATER_EQUAL = "greater_equal"
    LESS_EQUAL = "less_equal"


class StoryletCallMode(StrEnum):
    DETOUR_RETURN = "DETOUR_RETURN"
    JUMP = "JUMP"


STRUCTURAL_NODE_TYPES: frozenset[NodeType] = frozenset(
    {
        NodeType.ACT,
        NodeType.CHAPTER,
        NodeType.PAGE,
        NodeType.DETOUR,
        NodeType.STORYLET,
        NodeType.JUMP,
        NodeType.END,
    }
)

# Start node type of a freshly created graph, per graph kind.
DEFAULT_START_NODE_TYPES: dict[GraphKind, NodeType] = {
    GraphKind.NARRATIVE: NodeType.ACT,
    GraphKind.STORYLET: NodeType.CHARACTER,
}


# ---------------------------------------------------------------------------
# Base model
# ---------------------------------------------------------------------------


class ForgeModel(BaseModel):
    """Base for all wire models: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Node data pieces
# ---------------------------------------------------------------------------


class Position(ForgeModel):
    x: float = 0.0
    y: float = 0.0


class Viewport(ForgeModel):
    x: float = 0.0
    y: float = 0.0
    zoom: float = 1.0


class Condition(ForgeModel):
    """A flag test guarding a choice or conditional block."""

    flag: str = Field(min_length=1)
    operator: ConditionOperator
    value: bool | int | float | str | None = None


class Choice(ForgeModel):
    """One player option on a PLAYER node."""

    id: str = Field(min_length=1)
    text: str = ""
    next_node_id: str | None = None
    conditions: list[Condition] = Field(default_factory=list)
    set_flags: list[str] | None = None


class ConditionalBlock(ForgeModel):
    """One branch (if / elseif / else) of a CONDITIONAL node."""

    id: str = Field(min_length=1)
    type: ConditionalBlockType = ConditionalBlockType.IF
    condition: list[Condition] = Field(default_factory=list)
    content: str = ""
    speaker: str | None = None
    character_id: str | None = None
    next_node_id: str | None = None
    set_flags: list[str] | None = None


class StoryletCall(ForgeModel):
    """Call into another graph from a DETOUR or JUMP node."""

    mode: StoryletCallMode
    target_graph_id: int
    target_start_node_id: str | None = None
    return_node_id: str | None = None
    return_graph_id: int | None = None


# ---------------------------------------------------------------------------
# Node data variants
# ---------------------------------------------------------------------------


class BaseNodeData(ForgeModel):
    type: NodeType
    label: str | None = None
    set_flags: list[str] | None = None

    allowed_types: ClassVar[frozenset[NodeType]] = frozenset()

    @field_validator("type")
    @classmethod
    def _type_matches_variant(cls, value: NodeType) -> NodeType:
        if cls.allowed_types and value not in cls.allowed_types:
            msg = f"{cls.__name__} cannot carry node type {value!s}"
            raise ValueError(msg)
        return value


class StructuralNodeData(BaseNodeData):
    """ACT, CHAPTER, PAGE, DETOUR, STORYLET, JUMP and END nodes."""

    default_next_node_id: str | None = None
    content: str | None = None
    storylet_call: StoryletCall | None = None
    act_id: int | None = None
    chapter_id: int | None = None
    page_id: int | None = None

    allowed_types: ClassVar[frozenset[NodeType]] = STRUCTURAL_NODE_TYPES


class CharacterNodeData(BaseNodeData):
    """A line of dialogue spoken by a character."""

    type: NodeType = NodeType.CHARACTER
    speaker: str | None = None
    character_id: str | None = None
    content: str = ""
    default_next_node_id: str | None = None

    allowed_types: ClassVar[frozenset[NodeType]] = frozenset({NodeType.CHARACTER})


class PlayerNodeData(BaseNodeData):
    """A player decision point; each choice carries its own next pointer."""

    type: NodeType = NodeType.PLAYER
    choices: list[Choice] = Field(default_factory=list)

    allowed_types: ClassVar[frozenset[NodeType]] = frozenset({NodeType.PLAYER})


class ConditionalNodeData(BaseNodeData):
    """Flag-gated branching; each block carries its own next pointer."""

    type: NodeType = NodeType.CONDITIONAL
    conditional_blocks: list[ConditionalBlock] = Field(default_factory=list)

    allowed_types: ClassVar[frozenset[NodeType]] = frozenset({NodeType.CONDITIONAL})


def _node_data_tag(value: Any) -> str | None:
    """Pick the NodeData variant from the ``type`` field of raw or parsed data."""
    raw = value.get("type") if isinstance(value, dict) else getattr(value, "type", None)
    if raw == NodeType.PLAYER:
        return "player"
    if raw == NodeType.CONDITIONAL:
        return "conditional"
    if raw == NodeType.CHARACTER:
        return "character"
    if raw in STRUCTURAL_NODE_TYPES:
        return "structural"
    return None


NodeData = Annotated[
    Annotated[PlayerNodeData, Tag("player")]
    | Annotated[ConditionalNodeData, Tag("conditional")]
    | Annotated[CharacterNodeData, Tag("character")]
    | Annotated[StructuralNodeData, Tag("structural")],
    Discriminator(_node_data_tag),
]


# ---------------------------------------------------------------------------
# Flow layer
# ---------------------------------------------------------------------------


class FlowNode(ForgeModel):
    """A positioned node on the canvas together with its semantic data."""

    id: str = Field(min_length=1)
    type: NodeType
    position: Position = Field(default_factory=Position)
    data: NodeData

    @model_validator(mode="after")
    def _data_type_matches(self) -> FlowNode:
        if self.data.type != self.type:
            msg = f"Node '{self.id}' has type {self.type!s} but data of type {self.data.type!s}"
            raise ValueError(msg)
        return self


class FlowEdge(ForgeModel):
    """A visual connection between two node handles."""

    id: str = Field(min_length=1)
    source: str = Field(min_length=1)
    target: str = Field(min_length=1)
    source_handle: str | None = None
    target_handle: str | None = None
    type: str = "default"
    kind: EdgeKind = EdgeKind.FLOW


class FlowGraph(ForgeModel):
    nodes: list[FlowNode] = Field(default_factory=list)
    edges: list[FlowEdge] = Field(default_factory=list)
    viewport: Viewport = Field(default_factory=Viewport)


class EndNodeRef(ForgeModel):
    node_id: str
    exit_key: str | None = None


def _now() -> datetime:
    return datetime.now(UTC)


class GraphDocument(ForgeModel):
    """A complete narrative or storylet graph.

    Documents are treated as values: editor operations return new
    documents instead of mutating the one they were given.
    """

    id: int = 0
    project_id: int = Field(default=0, alias="project")
    kind: GraphKind = GraphKind.NARRATIVE
    title: str = ""
    start_node_id: str = ""
    end_node_ids: list[EndNodeRef] = Field(default_factory=list)
    flow: FlowGraph = Field(default_factory=FlowGraph)
    compiled_output: str | None = Field(default=None, alias="compiledYarn")
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    @property
    def key(self) -> str:
        """Cache key used by the workspace store and breadcrumbs."""
        return str(self.id)

    def node_ids(self) -> list[str]:
        return [n.id for n in self.flow.nodes]

    def get_node(self, node_id: str) -> FlowNode | None:
        for node in self.flow.nodes:
            if node.id == node_id:
                return node
        return None

    def has_node(self, node_id: str) -> bool:
        return self.get_node(node_id) is not None

    def get_edge(self, edge_id: str) -> FlowEdge | None:
        for edge in self.flow.edges:
            if edge.id == edge_id:
                return edge
        return None

    def nodes_by_id(self) -> dict[str, FlowNode]:
        """Map node id to node. Later duplicates shadow earlier ones."""
        return {n.id: n for n in self.flow.nodes}

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON wire shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> GraphDocument:
        """Parse a wire-shaped dict (camelCase or snake_case keys)."""
        return cls.model_validate(data)

    def __repr__(self) -> str:
        return (
            f"GraphDocument(id={self.id}, kind={self.kind!s}, "
            f"nodes={len(self.flow.nodes)}, edges={len(self.flow.edges)})"
        )
