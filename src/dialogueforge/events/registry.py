"""One-handler-per-type dispatch registry for forge events."""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING

from dialogueforge.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from dialogueforge.events.envelope import EventType, ForgeEvent

    EventHandler = Callable[[ForgeEvent], Awaitable[None] | None]

log = get_logger(__name__)


@dataclass
class HandlerRegistrationConflict(Exception):
    """Raised when registering a second handler for an event type.

    Attributes:
        event_type: The event type that already has a handler.
    """

    event_type: str

    def __post_init__(self) -> None:
        super().__init__(
            f"A handler is already registered for '{self.event_type}'; unregister it first"
        )


class HandlerRegistry:
    """Maps each event type to exactly one handler.

    Handlers may be plain functions or coroutines. ``dispatch`` does not
    catch handler errors; they propagate to the caller.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, EventHandler] = {}

    def register(self, event_type: EventType | str, handler: EventHandler) -> None:
        """Register ``handler`` for ``event_type``.

        Raises:
            HandlerRegistrationConflict: If the type already has a handler.
        """
        key = str(event_type)
        if key in self._handlers:
            raise HandlerRegistrationConflict(key)
        self._handlers[key] = handler
        log.debug("event_handler_registered", event_type=key)

    def unregister(self, event_type: EventType | str) -> bool:
        """Remove the handler for ``event_type``. Returns False if there was none."""
        return self._handlers.pop(str(event_type), None) is not None

    def has_handler(self, event_type: EventType | str) -> bool:
        return str(event_type) in self._handlers

    def get_registered_types(self) -> list[str]:
        return list(self._handlers)

    def clear(self) -> None:
        self._handlers.clear()

    async def dispatch(self, event: ForgeEvent) -> None:
        """Run the handler registered for ``event.type``; no-op if none is."""
        handler = self._handlers.get(event.type)
        if handler is None:
            log.debug("event_unhandled", event_type=event.type, event_id=event.id)
            return
        log.debug("event_dispatch", event_type=event.type, event_id=event.id)
        result = handler(event)
        if inspect.isawaitable(result):
            await result
