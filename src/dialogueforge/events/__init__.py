"""Event envelopes and the dispatch registry."""

from dialogueforge.events.envelope import (
    EVENT_VERSION,
    EventEnvelope,
    EventType,
    ForgeEvent,
    GraphChangedEvent,
    GraphChangedPayload,
    GraphChangeReason,
    GraphOpenRequestedEvent,
    GraphOpenRequestedPayload,
    NarrativeSelectEvent,
    NarrativeSelectPayload,
    TabChangedEvent,
    TabChangedPayload,
    create_event,
    parse_event,
)
from dialogueforge.events.registry import HandlerRegistrationConflict, HandlerRegistry

__all__ = [
    "EVENT_VERSION",
    "EventEnvelope",
    "EventType",
    "ForgeEvent",
    "GraphChangeReason",
    "GraphChangedEvent",
    "GraphChangedPayload",
    "GraphOpenRequestedEvent",
    "GraphOpenRequestedPayload",
    "HandlerRegistrationConflict",
    "HandlerRegistry",
    "NarrativeSelectEvent",
    "NarrativeSelectPayload",
    "TabChangedEvent",
    "TabChangedPayload",
    "create_event",
    "parse_event",
]
