"""Per-scope navigation history for jumping between graphs."""

from __future__ import annotations

from typing import TYPE_CHECKING

from dialogueforge.models.workspace import GraphScope
from dialogueforge.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from dialogueforge.models.workspace import BreadcrumbItem

    GraphOpener = Callable[[GraphScope, str], Awaitable[None]]

log = get_logger(__name__)


class BreadcrumbNavigator:
    """One breadcrumb stack per scope.

    Args:
        opener: Coroutine used by navigate_to_breadcrumb to reopen a graph.
            It must not push a breadcrumb itself.
    """

    def __init__(self, opener: GraphOpener | None = None) -> None:
        self._opener = opener
        self._stacks: dict[GraphScope, list[BreadcrumbItem]] = {scope: [] for scope in GraphScope}

    def set_opener(self, opener: GraphOpener | None) -> None:
        self._opener = opener

    def get_breadcrumbs(self, scope: GraphScope) -> list[BreadcrumbItem]:
        return list(self._stacks[scope])

    def push(self, item: BreadcrumbItem) -> bool:
        """Append ``item`` to its scope's stack.

        Returns:
            False if it duplicates the current top entry and was skipped.
        """
        stack = self._stacks[item.scope]
        if stack and stack[-1].graph_id == item.graph_id and stack[-1].scope == item.scope:
            return False
        stack.append(item)
        return True

    def pop(self, scope: GraphScope) -> BreadcrumbItem | None:
        stack = self._stacks[scope]
        return stack.pop() if stack else None

    async def navigate_to(self, scope: GraphScope, index: int) -> BreadcrumbItem | None:
        """Truncate the stack to ``[0..index]`` and reopen the graph at ``index``.

        Returns:
            The entry navigated to, or None if ``index`` is out of range.
        """
        stack = self._stacks[scope]
        if not 0 <= index < len(stack):
            return None
        del stack[index + 1 :]
        item = stack[index]
        log.debug("breadcrumb_navigate", scope=str(scope), graph_id=item.graph_id, index=index)
        if self._opener is not None:
            await self._opener(scope, item.graph_id)
        return item

    def clear(self, scope: GraphScope) -> None:
        self._stacks[scope].clear()

    def remove_graph(self, graph_id: str) -> None:
        """Drop every entry for ``graph_id`` from all scopes."""
        for scope, stack in self._stacks.items():
            self._stacks[scope] = [item for item in stack if item.graph_id != graph_id]
