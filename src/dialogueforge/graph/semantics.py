"""Handle naming and semantic pointer access.

A handle is the named connection slot an edge leaves a node through. Its
name decides which semantic pointer on the source node's data the edge
stands for:

- ``next`` / ``default`` (or no handle): ``default_next_node_id``
- ``choice-N``: ``choices[N].next_node_id``
- ``block-N``: ``conditional_blocks[N].next_node_id``
- anything else: a cosmetic edge with no semantic meaning

Every function that inspects node data dispatches exhaustively over the
NodeData variants.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, assert_never

from dialogueforge.models.graph import (
    CharacterNodeData,
    ConditionalNodeData,
    EdgeKind,
    PlayerNodeData,
    StructuralNodeData,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from dialogueforge.models.graph import NodeData

NEXT_HANDLE = "next"
FLOW_HANDLES: frozenset[str] = frozenset({NEXT_HANDLE, "default"})
CHOICE_HANDLE_PREFIX = "choice-"
BLOCK_HANDLE_PREFIX = "block-"

SEMANTIC_EDGE_KINDS: frozenset[EdgeKind] = frozenset(
    {EdgeKind.FLOW, EdgeKind.CHOICE, EdgeKind.CONDITION}
)


@dataclass(frozen=True)
class HandleRef:
    """Parsed form of a source handle.

    Attributes:
        kind: Edge kind the handle implies.
        index: Choice or block index for CHOICE/CONDITION handles. None when
            the handle has no index or its suffix is not a decimal integer.
    """

    kind: EdgeKind
    index: int | None = None

    @property
    def is_semantic(self) -> bool:
        return self.kind in SEMANTIC_EDGE_KINDS


def _parse_index(suffix: str) -> int | None:
    if suffix.isascii() and suffix.isdigit():
        return int(suffix)
    return None


def parse_handle(source_handle: str | None) -> HandleRef:
    """Parse a source handle name into its edge kind and slot index."""
    if not source_handle or source_handle in FLOW_HANDLES:
        return HandleRef(EdgeKind.FLOW)
    if source_handle.startswith(CHOICE_HANDLE_PREFIX):
        return HandleRef(EdgeKind.CHOICE, _parse_index(source_handle[len(CHOICE_HANDLE_PREFIX) :]))
    if source_handle.startswith(BLOCK_HANDLE_PREFIX):
        index = _parse_index(source_handle[len(BLOCK_HANDLE_PREFIX) :])
        return HandleRef(EdgeKind.CONDITION, index)
    return HandleRef(EdgeKind.VISUAL)


def infer_edge_kind(source_handle: str | None) -> EdgeKind:
    return parse_handle(source_handle).kind


def infer_edge_type(source_handle: str | None) -> str:
    """Visual edge type used by the canvas for a handle."""
    kind = infer_edge_kind(source_handle)
    if kind in (EdgeKind.CHOICE, EdgeKind.CONDITION):
        return "choice"
    return "default"


def choice_handle(index: int) -> str:
    return f"{CHOICE_HANDLE_PREFIX}{index}"


def block_handle(index: int) -> str:
    return f"{BLOCK_HANDLE_PREFIX}{index}"


def build_edge_id(source: str, target: str, source_handle: str | None = None) -> str:
    """Deterministic edge id for a (source, handle, target) triple.

    Reconnecting the same source handle to a new target yields a different id,
    but reconnecting to the same target yields the same id, so repeated
    connects upsert a single edge.
    """
    if source_handle:
        return f"e_{source}_{source_handle}_{target}"
    return f"e_{source}_{target}"


# ---------------------------------------------------------------------------
# Pointer access
# ---------------------------------------------------------------------------


def iter_pointers(data: NodeData) -> Iterator[tuple[str, str]]:
    """Yield ``(handle, target_id)`` for every set semantic pointer, in slot order."""
    if isinstance(data, StructuralNodeData | CharacterNodeData):
        if data.default_next_node_id:
            yield NEXT_HANDLE, data.default_next_node_id
    elif isinstance(data, PlayerNodeData):
        for i, choice in enumerate(data.choices):
            if choice.next_node_id:
                yield choice_handle(i), choice.next_node_id
    elif isinstance(data, ConditionalNodeData):
        for i, block in enumerate(data.conditional_blocks):
            if block.next_node_id:
                yield block_handle(i), block.next_node_id
    else:
        assert_never(data)


def child_ids(data: NodeData) -> list[str]:
    """Ids this node's semantic pointers lead to, in slot order."""
    return [target for _, target in iter_pointers(data)]


def has_slot(data: NodeData, ref: HandleRef) -> bool:
    """Whether ``data`` has the pointer slot a handle addresses."""
    if ref.kind == EdgeKind.FLOW:
        return isinstance(data, StructuralNodeData | CharacterNodeData)
    if ref.index is None:
        return False
    if ref.kind == EdgeKind.CHOICE:
        return isinstance(data, PlayerNodeData) and ref.index < len(data.choices)
    if ref.kind == EdgeKind.CONDITION:
        return isinstance(data, ConditionalNodeData) and ref.index < len(data.conditional_blocks)
    return False


def get_pointer(data: NodeData, ref: HandleRef) -> str | None:
    """Read the semantic pointer a handle addresses, or None if there is no such slot."""
    if ref.kind == EdgeKind.FLOW:
        if isinstance(data, StructuralNodeData | CharacterNodeData):
            return data.default_next_node_id
        return None
    if ref.kind == EdgeKind.CHOICE:
        if isinstance(data, PlayerNodeData) and ref.index is not None:
            if ref.index < len(data.choices):
                return data.choices[ref.index].next_node_id
        return None
    if ref.kind == EdgeKind.CONDITION:
        if isinstance(data, ConditionalNodeData) and ref.index is not None:
            if ref.index < len(data.conditional_blocks):
                return data.conditional_blocks[ref.index].next_node_id
        return None
    return None


def set_pointer(data: NodeData, ref: HandleRef, target: str | None) -> NodeData:
    """Return a copy of ``data`` with the addressed pointer set to ``target``.

    Handles with no matching slot on this node (wrong variant, missing or
    out-of-range index, VISUAL handles) leave the data unchanged.
    """
    if ref.kind == EdgeKind.FLOW:
        if isinstance(data, StructuralNodeData | CharacterNodeData):
            return data.model_copy(update={"default_next_node_id": target})
        return data
    if ref.kind == EdgeKind.CHOICE:
        if isinstance(data, PlayerNodeData) and ref.index is not None:
            if ref.index < len(data.choices):
                choices = list(data.choices)
                choices[ref.index] = choices[ref.index].model_copy(update={"next_node_id": target})
                return data.model_copy(update={"choices": choices})
        return data
    if ref.kind == EdgeKind.CONDITION:
        if isinstance(data, ConditionalNodeData) and ref.index is not None:
            if ref.index < len(data.conditional_blocks):
                blocks = list(data.conditional_blocks)
                blocks[ref.index] = blocks[ref.index].model_copy(update={"next_node_id": target})
                return data.model_copy(update={"conditional_blocks": blocks})
        return data
    return data


def scrub_pointers(data: NodeData, node_id: str) -> NodeData:
    """Return a copy of ``data`` with every pointer equal to ``node_id`` cleared.

    Returns the same object when nothing points at ``node_id``.
    """
    if isinstance(data, StructuralNodeData | CharacterNodeData):
        if data.default_next_node_id == node_id:
            return data.model_copy(update={"default_next_node_id": None})
        return data
    if isinstance(data, PlayerNodeData):
        if not any(c.next_node_id == node_id for c in data.choices):
            return data
        choices = [
            c.model_copy(update={"next_node_id": None}) if c.next_node_id == node_id else c
            for c in data.choices
        ]
        return data.model_copy(update={"choices": choices})
    if isinstance(data, ConditionalNodeData):
        if not any(b.next_node_id == node_id for b in data.conditional_blocks):
            return data
        blocks = [
            b.model_copy(update={"next_node_id": None}) if b.next_node_id == node_id else b
            for b in data.conditional_blocks
        ]
        return data.model_copy(update={"conditional_blocks": blocks})
    assert_never(data)
