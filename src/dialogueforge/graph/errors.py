"""Graph error types with actionable feedback.

Mutation-level errors (structural violations, unknown node ids) are raised
synchronously to the immediate caller. Commit-time validation failures carry
the full report so the caller can decide what to fix before retrying.

Each error type can format itself as human-readable remediation text via
``to_feedback()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from difflib import get_close_matches
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dialogueforge.graph.validation_types import ValidationReport


class GraphIntegrityError(Exception):
    """Base class for graph integrity violations.

    Subclasses must implement to_feedback() to describe what went wrong
    and how to fix it.
    """

    def to_feedback(self) -> str:
        """Format error as actionable feedback.

        Returns:
            Human-readable error message explaining what's wrong,
            why it's wrong, and how to fix it.
        """
        raise NotImplementedError


@dataclass
class NodeNotFoundError(GraphIntegrityError):
    """Raised when referencing a node id that is not in the document.

    Attributes:
        node_id: The ID that was referenced but doesn't exist.
        available: Node IDs present in the document.
        context: Description of where the reference occurred.
    """

    node_id: str
    available: list[str] = field(default_factory=list)
    context: str = ""

    def __post_init__(self) -> None:
        msg = f"Node '{self.node_id}' not found"
        if self.context:
            msg += f" ({self.context})"
        super().__init__(msg)

    def suggestions(self) -> list[str]:
        """Find similar IDs that might be typos."""
        return get_close_matches(self.node_id, self.available, n=3, cutoff=0.6)

    def to_feedback(self) -> str:
        lines = [f"Node '{self.node_id}' does not exist in the graph."]
        if self.context:
            lines.append(f"Context: {self.context}")

        suggestions = self.suggestions()
        if suggestions:
            lines.append("Did you mean: " + ", ".join(f"'{s}'" for s in suggestions) + "?")
        elif self.available:
            shown = sorted(self.available)[:10]
            lines.append("Existing nodes: " + ", ".join(shown))
            if len(self.available) > 10:
                lines.append(f"  ... and {len(self.available) - 10} more")
        return "\n".join(lines)


@dataclass
class NodeExistsError(GraphIntegrityError):
    """Raised when adding a node whose id is already taken.

    Attributes:
        node_id: The ID that already exists.
    """

    node_id: str

    def __post_init__(self) -> None:
        super().__init__(f"Node '{self.node_id}' already exists")

    def to_feedback(self) -> str:
        return (
            f"A node with id '{self.node_id}' already exists.\n"
            "Use a different id for a new node, or upsert_node() to replace it."
        )


@dataclass
class StructuralError(GraphIntegrityError):
    """Raised when an edit would break the document's structure.

    The only structural edit currently refused is deleting the start node.

    Attributes:
        node_id: The node the edit targeted.
        reason: What structural rule the edit violates.
    """

    node_id: str
    reason: str = "the start node cannot be deleted"

    def __post_init__(self) -> None:
        super().__init__(f"Cannot modify node '{self.node_id}': {self.reason}")

    def to_feedback(self) -> str:
        return (
            f"Refused edit on '{self.node_id}': {self.reason}.\n"
            "Point the graph at a different start node first, or edit its data instead."
        )


@dataclass
class ValidationError(GraphIntegrityError):
    """Raised when a draft commit is refused because validation has blocking findings.

    The draft is left untouched; fix the reported problems and commit again.

    Attributes:
        report: The validation report that blocked the commit.
        graph_id: Graph whose draft was being committed.
    """

    report: ValidationReport
    graph_id: str = ""

    def __post_init__(self) -> None:
        target = f" for graph {self.graph_id}" if self.graph_id else ""
        super().__init__(f"Commit refused{target}: {self.report.summary}")

    def to_feedback(self) -> str:
        lines = [f"Commit refused: {self.report.summary}", ""]
        for check in self.report.checks:
            if check.severity == "pass":
                continue
            lines.append(f"  [{check.severity}] {check.name}: {check.message}")
        return "\n".join(lines)


@dataclass
class ResolutionError(GraphIntegrityError):
    """Raised by a graph resolver when a graph cannot be fetched.

    The workspace store records it against the graph id instead of
    propagating it.

    Attributes:
        graph_id: The graph that failed to resolve.
        reason: Why resolution failed.
    """

    graph_id: str
    reason: str = "not found"

    def __post_init__(self) -> None:
        super().__init__(f"Could not resolve graph '{self.graph_id}': {self.reason}")

    def to_feedback(self) -> str:
        return (
            f"Graph '{self.graph_id}' could not be loaded ({self.reason}).\n"
            "Check the graph id, then retry opening it."
        )


@dataclass
class NoGraphLoadedError(GraphIntegrityError):
    """Raised when a draft operation runs before any graph was loaded.

    Attributes:
        operation: The draft operation that was attempted.
    """

    operation: str

    def __post_init__(self) -> None:
        super().__init__(f"Cannot {self.operation}: no graph is loaded")

    def to_feedback(self) -> str:
        return f"No graph is open, so '{self.operation}' has nothing to act on. Open a graph first."
