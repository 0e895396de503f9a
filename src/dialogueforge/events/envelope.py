"""Typed event envelopes emitted to collaborators outside the graph core.

Every event shares the envelope ``{version, id, ts, type, payload}``; the
payload shape is fixed per ``type``. Envelopes are validated as a pydantic
discriminated union on ``type``.
"""

from __future__ import annotations

import time
from enum import StrEnum
from typing import Annotated, Any, Literal
from uuid import uuid4

from pydantic import Field, TypeAdapter

from dialogueforge.models.graph import ForgeModel
from dialogueforge.models.workspace import GraphScope

EVENT_VERSION = 1


class EventType(StrEnum):
    GRAPH_CHANGED = "graph.changed"
    GRAPH_OPEN_REQUESTED = "graph.openRequested"
    UI_TAB_CHANGED = "ui.tabChanged"
    NARRATIVE_SELECT = "narrative.select"


class GraphChangeReason(StrEnum):
    COMMIT = "commit"
    DISCARD = "discard"


def _new_event_id() -> str:
    return uuid4().hex


def _epoch_ms() -> int:
    return time.time_ns() // 1_000_000


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------


class GraphChangedPayload(ForgeModel):
    graph_id: str
    scope: GraphScope
    reason: GraphChangeReason
    affected_node_ids: list[str] = Field(default_factory=list)


class GraphOpenRequestedPayload(ForgeModel):
    graph_id: str
    scope: GraphScope
    focus_node_id: str | None = None


class TabChangedPayload(ForgeModel):
    scope: GraphScope
    tab: str


class NarrativeSelectPayload(ForgeModel):
    graph_id: str
    node_id: str | None = None


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


class EventEnvelope(ForgeModel):
    version: Literal[1] = EVENT_VERSION
    id: str = Field(default_factory=_new_event_id)
    ts: int = Field(default_factory=_epoch_ms)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class GraphChangedEvent(EventEnvelope):
    type: Literal["graph.changed"] = "graph.changed"
    payload: GraphChangedPayload


class GraphOpenRequestedEvent(EventEnvelope):
    type: Literal["graph.openRequested"] = "graph.openRequested"
    payload: GraphOpenRequestedPayload


class TabChangedEvent(EventEnvelope):
    type: Literal["ui.tabChanged"] = "ui.tabChanged"
    payload: TabChangedPayload


class NarrativeSelectEvent(EventEnvelope):
    type: Literal["narrative.select"] = "narrative.select"
    payload: NarrativeSelectPayload


ForgeEvent = Annotated[
    GraphChangedEvent | GraphOpenRequestedEvent | TabChangedEvent | NarrativeSelectEvent,
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter[ForgeEvent] = TypeAdapter(ForgeEvent)


def create_event(event_type: EventType | str, payload: ForgeModel | dict[str, Any]) -> ForgeEvent:
    """Build a validated envelope with a fresh id and timestamp.

    Raises:
        pydantic.ValidationError: If ``event_type`` is unknown or the payload
            does not match it.
    """
    if isinstance(payload, ForgeModel):
        payload = payload.model_dump(by_alias=True)
    return _event_adapter.validate_python({"type": str(event_type), "payload": payload})


def parse_event(data: dict[str, Any]) -> ForgeEvent:
    """Validate an incoming wire envelope.

    Raises:
        pydantic.ValidationError: If the envelope is malformed.
    """
    return _event_adapter.validate_python(data)
