"""Commit-gate validation for graph documents.

Each check returns a ValidationCheck; ``validate_graph`` runs them all and
aggregates the results into a ValidationReport. A report is blocking when
any check fails, or when warnings are configured to block and any check
warns.
"""

from __future__ import annotations

from collections import Counter
from typing import TYPE_CHECKING

from dialogueforge.config import ValidationConfig
from dialogueforge.graph.hierarchy import validate_tree_structure
from dialogueforge.graph.semantics import get_pointer, parse_handle
from dialogueforge.graph.validation_types import ValidationCheck, ValidationReport
from dialogueforge.models.graph import NodeType
from dialogueforge.observability.logging import get_logger

if TYPE_CHECKING:
    from dialogueforge.graph.hierarchy import TreeValidationResult
    from dialogueforge.models.graph import GraphDocument

log = get_logger(__name__)


def _preview(ids: list[str], limit: int = 5) -> str:
    shown = ", ".join(ids[:limit])
    if len(ids) > limit:
        shown += f" (+{len(ids) - limit} more)"
    return shown


def check_start_node(graph: GraphDocument) -> ValidationCheck:
    """Verify the start node id is set and names an existing node."""
    if not graph.start_node_id:
        return ValidationCheck(
            name="start_node", severity="fail", message="Graph has no start node id"
        )
    if not graph.has_node(graph.start_node_id):
        return ValidationCheck(
            name="start_node",
            severity="fail",
            message=f"Start node '{graph.start_node_id}' does not exist",
            node_ids=[graph.start_node_id],
        )
    return ValidationCheck(
        name="start_node",
        severity="pass",
        message=f"Start node: {graph.start_node_id}",
    )


def check_unique_node_ids(graph: GraphDocument) -> ValidationCheck:
    counts = Counter(n.id for n in graph.flow.nodes)
    duplicates = sorted(node_id for node_id, count in counts.items() if count > 1)
    if duplicates:
        return ValidationCheck(
            name="unique_node_ids",
            severity="fail",
            message=f"Duplicate node ids: {_preview(duplicates)}",
            node_ids=duplicates,
        )
    return ValidationCheck(name="unique_node_ids", severity="pass", message="All node ids unique")


def check_dangling_references(tree_result: TreeValidationResult) -> ValidationCheck:
    """Pointers on reachable nodes that name a node id not in the document."""
    issues = tree_result.of_kind("dangling_reference")
    if issues:
        refs = [f"{i.node_id}->{i.target_id}" for i in issues]
        return ValidationCheck(
            name="dangling_references",
            severity="fail",
            message=f"Pointers to missing nodes: {_preview(refs)}",
            node_ids=[i.node_id for i in issues],
        )
    return ValidationCheck(
        name="dangling_references", severity="pass", message="No dangling pointers"
    )


def check_orphaned_nodes(
    tree_result: TreeValidationResult, orphans_block: bool = True
) -> ValidationCheck:
    """Nodes never reached from the start node."""
    orphans = [i.node_id for i in tree_result.of_kind("orphaned")]
    if orphans:
        return ValidationCheck(
            name="orphaned_nodes",
            severity="fail" if orphans_block else "warn",
            message=f"{len(orphans)} node(s) unreachable from start: {_preview(orphans)}",
            node_ids=orphans,
        )
    return ValidationCheck(
        name="orphaned_nodes", severity="pass", message="All nodes reachable from start"
    )


def check_dangling_edges(graph: GraphDocument) -> ValidationCheck:
    node_ids = set(graph.node_ids())
    dangling = [
        e.id for e in graph.flow.edges if e.source not in node_ids or e.target not in node_ids
    ]
    if dangling:
        return ValidationCheck(
            name="dangling_edges",
            severity="fail",
            message=f"Edges with missing endpoints: {_preview(dangling)}",
        )
    return ValidationCheck(name="dangling_edges", severity="pass", message="All edges attached")


def check_edge_kinds(graph: GraphDocument) -> ValidationCheck:
    """Stored edge kinds must agree with the kind their source handle implies."""
    mismatched = [
        e.id for e in graph.flow.edges if e.kind != parse_handle(e.source_handle).kind
    ]
    if mismatched:
        return ValidationCheck(
            name="edge_kinds",
            severity="fail",
            message=f"Edge kind does not match handle: {_preview(mismatched)}",
        )
    return ValidationCheck(name="edge_kinds", severity="pass", message="Edge kinds consistent")


def check_semantic_sync(graph: GraphDocument) -> ValidationCheck:
    """Every semantic edge must be backed by the pointer its handle addresses."""
    nodes_by_id = graph.nodes_by_id()
    unsynced: list[str] = []
    for edge in graph.flow.edges:
        ref = parse_handle(edge.source_handle)
        if not ref.is_semantic:
            continue
        source = nodes_by_id.get(edge.source)
        if source is None or get_pointer(source.data, ref) != edge.target:
            unsynced.append(edge.id)
    if unsynced:
        return ValidationCheck(
            name="semantic_sync",
            severity="fail",
            message=f"Edges without a matching pointer: {_preview(unsynced)}",
        )
    return ValidationCheck(
        name="semantic_sync", severity="pass", message="Edges and pointers in sync"
    )


def check_end_nodes(graph: GraphDocument) -> ValidationCheck:
    node_ids = set(graph.node_ids())
    missing = [ref.node_id for ref in graph.end_node_ids if ref.node_id not in node_ids]
    if missing:
        return ValidationCheck(
            name="end_nodes",
            severity="fail",
            message=f"End node entries reference missing nodes: {_preview(missing)}",
            node_ids=missing,
        )
    return ValidationCheck(name="end_nodes", severity="pass", message="End node entries valid")


_EXPECTED_PARENT: dict[NodeType, NodeType] = {
    NodeType.CHAPTER: NodeType.ACT,
    NodeType.PAGE: NodeType.CHAPTER,
}


def check_hierarchy(graph: GraphDocument) -> ValidationCheck:
    """Chapters should hang off an act and pages off a chapter.

    The parent is the source of the first edge targeting the node.
    """
    nodes_by_id = graph.nodes_by_id()
    misplaced: list[str] = []
    for node in graph.flow.nodes:
        expected = _EXPECTED_PARENT.get(node.type)
        if expected is None:
            continue
        parent_edge = next((e for e in graph.flow.edges if e.target == node.id), None)
        if parent_edge is None:
            continue
        parent = nodes_by_id.get(parent_edge.source)
        if parent is not None and parent.type != expected:
            misplaced.append(node.id)
    if misplaced:
        return ValidationCheck(
            name="hierarchy",
            severity="warn",
            message=f"Chapters/pages under the wrong parent type: {_preview(misplaced)}",
            node_ids=misplaced,
        )
    return ValidationCheck(
        name="hierarchy", severity="pass", message="Act/chapter/page nesting valid"
    )


def validate_graph(
    graph: GraphDocument, config: ValidationConfig | None = None
) -> ValidationReport:
    """Run all commit-gate checks against a graph.

    Args:
        graph: Document to validate.
        config: Gate settings. Defaults block on orphans but not on warnings.

    Returns:
        Aggregated report. Use ``report.is_blocking`` to decide on commit.
    """
    config = config or ValidationConfig()
    tree_result = validate_tree_structure(graph)

    checks = [
        check_start_node(graph),
        check_unique_node_ids(graph),
        check_dangling_references(tree_result),
        check_orphaned_nodes(tree_result, orphans_block=config.orphans_block_commit),
        check_dangling_edges(graph),
        check_edge_kinds(graph),
        check_semantic_sync(graph),
        check_end_nodes(graph),
        check_hierarchy(graph),
    ]
    report = ValidationReport(
        checks=checks, warnings_block=config.effective_warnings_block_commit()
    )
    log.debug("graph_validated", graph_id=graph.id, summary=report.summary)
    return report


def is_blocking(report: ValidationReport | None) -> bool:
    """Whether a (possibly absent) report refuses a commit."""
    return report is not None and report.is_blocking
