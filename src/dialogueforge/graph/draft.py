"""Two-buffer draft/commit versioning for a graph document.

Edits accumulate against a working copy (the draft) and are logged as
deltas. Nothing changes in the committed buffer until an explicit commit,
and a commit is refused while validation reports blocking findings.
"""

from __future__ import annotations

from datetime import UTC, datetime
from functools import reduce
from typing import TYPE_CHECKING

from dialogueforge.config import ValidationConfig
from dialogueforge.graph.delta import (
    GraphDelta,
    apply_delta_to_graph,
    calculate_delta,
    merge_deltas,
)
from dialogueforge.graph.errors import NoGraphLoadedError, ValidationError
from dialogueforge.graph.validation import validate_graph
from dialogueforge.observability.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from dialogueforge.graph.validation_types import ValidationReport
    from dialogueforge.models.graph import GraphDocument

    OnCommit = Callable[[GraphDocument, list[GraphDelta]], GraphDocument | None]

log = get_logger(__name__)


class DraftManager:
    """Committed and draft buffers for one graph, with a delta log.

    Args:
        graph: Initial graph for both buffers, or None until one is loaded.
        config: Validation gate settings.
        on_commit: Optional callback run with the draft and the delta log
            once a commit passes validation. If it returns a graph, that graph
            becomes the committed one (e.g. the persisted copy).
    """

    def __init__(
        self,
        graph: GraphDocument | None = None,
        config: ValidationConfig | None = None,
        on_commit: OnCommit | None = None,
    ) -> None:
        self._config = config or ValidationConfig()
        self._on_commit = on_commit
        self._committed: GraphDocument | None = graph
        self._draft: GraphDocument | None = graph
        self._deltas: list[GraphDelta] = []
        self._validation: ValidationReport | None = None
        self._has_uncommitted_changes = False
        self._last_committed_at: datetime | None = None

    # -- read accessors -----------------------------------------------------

    def get_draft_graph(self) -> GraphDocument | None:
        return self._draft

    def get_committed_graph(self) -> GraphDocument | None:
        return self._committed

    @property
    def deltas(self) -> list[GraphDelta]:
        return list(self._deltas)

    @property
    def validation(self) -> ValidationReport | None:
        """Last computed validation report, None when not computed since the last reset."""
        return self._validation

    @property
    def has_uncommitted_changes(self) -> bool:
        return self._has_uncommitted_changes

    @property
    def last_committed_at(self) -> datetime | None:
        return self._last_committed_at

    def pending_delta(self) -> GraphDelta:
        """All logged deltas folded into one."""
        return reduce(merge_deltas, self._deltas, GraphDelta())

    # -- edits ----------------------------------------------------------------

    def _require_draft(self, operation: str) -> GraphDocument:
        if self._draft is None:
            raise NoGraphLoadedError(operation)
        return self._draft

    def _accept(self, delta: GraphDelta, next_draft: GraphDocument) -> None:
        self._draft = next_draft
        self._deltas.append(delta)
        self._validation = validate_graph(next_draft, self._config)
        self._has_uncommitted_changes = True
        log.debug(
            "draft_delta_applied",
            graph_id=next_draft.id,
            nodes=delta.affected_node_ids,
            edges=len(delta.affected_edge_ids),
            pending=len(self._deltas),
        )

    def apply_delta(self, delta: GraphDelta) -> None:
        """Apply a delta to the draft, log it and revalidate.

        Raises:
            NoGraphLoadedError: If no graph has been loaded.
        """
        draft = self._require_draft("apply a delta")
        self._accept(delta, apply_delta_to_graph(draft, delta))

    def record(self, next_graph: GraphDocument) -> GraphDelta:
        """Make ``next_graph`` the draft, logging the delta from the current draft.

        Returns:
            The recorded delta.

        Raises:
            NoGraphLoadedError: If no graph has been loaded.
        """
        draft = self._require_draft("record an edit")
        delta = calculate_delta(draft, next_graph)
        self._accept(delta, next_graph)
        return delta

    def validate(self) -> ValidationReport:
        """Recompute validation for the current draft."""
        draft = self._require_draft("validate")
        self._validation = validate_graph(draft, self._config)
        return self._validation

    # -- versioning -------------------------------------------------------------

    def ensure_committable(self) -> GraphDocument:
        """Run the commit gate without committing.

        Validation is computed first if it has not been since the last reset.

        Returns:
            The draft that would be committed.

        Raises:
            NoGraphLoadedError: If no graph has been loaded.
            ValidationError: If validation has blocking findings.
        """
        draft = self._require_draft("commit")
        report = self._validation or self.validate()
        if report.is_blocking:
            log.warning("draft_commit_refused", graph_id=draft.id, summary=report.summary)
            raise ValidationError(report=report, graph_id=draft.key)
        return draft

    def commit_draft(self) -> GraphDocument:
        """Make the draft the committed graph.

        Returns:
            The new committed graph.

        Raises:
            NoGraphLoadedError: If no graph has been loaded.
            ValidationError: If validation has blocking findings. Both buffers
                and the delta log are left untouched.
        """
        draft = self.ensure_committable()

        committed = draft
        if self._on_commit is not None:
            committed = self._on_commit(draft, list(self._deltas)) or draft

        log.info("draft_committed", graph_id=committed.id, deltas=len(self._deltas))
        self._committed = committed
        self._draft = committed
        self._deltas = []
        self._has_uncommitted_changes = False
        self._last_committed_at = datetime.now(UTC)
        return committed

    def discard_draft(self) -> None:
        """Reset the draft to the committed graph and drop the delta log."""
        if self._deltas:
            log.info("draft_discarded", deltas=len(self._deltas))
        self._draft = self._committed
        self._deltas = []
        self._validation = None
        self._has_uncommitted_changes = False

    def reset_draft(self, new_graph: GraphDocument | None) -> None:
        """Replace both buffers, e.g. when switching to another graph."""
        self._committed = new_graph
        self._draft = new_graph
        self._deltas = []
        self._validation = None
        self._has_uncommitted_changes = False
