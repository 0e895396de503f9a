"""Tests for commit-gate validation."""

from __future__ import annotations

import pytest

from dialogueforge.config import WARNINGS_BLOCK_COMMIT_ENV, ValidationConfig
from dialogueforge.graph import (
    ValidationCheck,
    ValidationReport,
    delete_node,
    is_blocking,
    validate_graph,
)
from dialogueforge.graph.validation import (
    check_dangling_edges,
    check_edge_kinds,
    check_end_nodes,
    check_hierarchy,
    check_semantic_sync,
    check_start_node,
    check_unique_node_ids,
)
from dialogueforge.models.graph import EdgeKind, EndNodeRef, FlowGraph, GraphDocument, NodeType
from tests.fixtures.graph_fixtures import (
    make_character,
    make_edge,
    make_graph,
    make_scenario_graph,
    make_structural,
)


def _act_page_graph() -> GraphDocument:
    """An ACT leading straight to a PAGE, skipping the chapter level."""
    return make_graph(
        [
            make_structural("act", NodeType.ACT, next_id="page"),
            make_structural("page", NodeType.PAGE),
        ]
    )


class TestValidationReport:
    """Test report aggregation."""

    def test_blocking_on_failure(self) -> None:
        report = ValidationReport(
            checks=[ValidationCheck("a", "pass"), ValidationCheck("b", "fail")]
        )

        assert report.has_failures
        assert report.is_blocking
        assert [c.name for c in report.failures] == ["b"]

    def test_warnings_block_only_when_configured(self) -> None:
        checks = [ValidationCheck("a", "warn")]

        assert not ValidationReport(checks=checks).is_blocking
        assert ValidationReport(checks=checks, warnings_block=True).is_blocking

    def test_summary(self) -> None:
        report = ValidationReport(
            checks=[
                ValidationCheck("a", "fail"),
                ValidationCheck("b", "warn"),
                ValidationCheck("c", "pass"),
                ValidationCheck("d", "pass"),
            ]
        )
        assert report.summary == "1 failed, 1 warnings, 2 passed"

    def test_get(self) -> None:
        report = ValidationReport(checks=[ValidationCheck("a", "pass")])
        assert report.get("a") is not None
        assert report.get("z") is None

    def test_is_blocking_helper(self) -> None:
        assert not is_blocking(None)
        assert is_blocking(ValidationReport(checks=[ValidationCheck("a", "fail")]))


class TestValidateGraph:
    """Test the full check run."""

    def test_valid_scenario(self) -> None:
        report = validate_graph(make_scenario_graph())

        assert not report.is_blocking
        assert all(c.severity == "pass" for c in report.checks)
        assert [c.name for c in report.checks] == [
            "start_node",
            "unique_node_ids",
            "dangling_references",
            "orphaned_nodes",
            "dangling_edges",
            "edge_kinds",
            "semantic_sync",
            "end_nodes",
            "hierarchy",
        ]

    def test_orphan_blocks_commit(self) -> None:
        report = validate_graph(delete_node(make_scenario_graph(), "n2"))
        orphaned = report.get("orphaned_nodes")

        assert report.is_blocking
        assert orphaned.severity == "fail"
        assert orphaned.node_ids == ["n3"]

    def test_orphans_can_be_warnings(self) -> None:
        config = ValidationConfig(orphans_block_commit=False)
        report = validate_graph(delete_node(make_scenario_graph(), "n2"), config)

        assert report.get("orphaned_nodes").severity == "warn"
        assert not report.is_blocking

    def test_warnings_block_when_configured(self) -> None:
        config = ValidationConfig(warnings_block_commit=True)
        report = validate_graph(_act_page_graph(), config)

        assert not report.has_failures
        assert report.is_blocking

    def test_env_override_blocks_warnings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(WARNINGS_BLOCK_COMMIT_ENV, "true")
        assert validate_graph(_act_page_graph()).is_blocking

    def test_dangling_reference_fails(self) -> None:
        graph = make_graph([make_character("a", next_id="ghost")])
        check = validate_graph(graph).get("dangling_references")

        assert check.severity == "fail"
        assert "a->ghost" in check.message


class TestChecks:
    """Test individual checks."""

    def test_start_node_missing(self) -> None:
        graph = make_scenario_graph().model_copy(update={"start_node_id": "ghost"})
        check = check_start_node(graph)

        assert check.severity == "fail"
        assert check.node_ids == ["ghost"]

    def test_start_node_unset(self) -> None:
        assert check_start_node(GraphDocument()).severity == "fail"

    def test_duplicate_node_ids(self) -> None:
        graph = make_graph([make_character("a"), make_structural("a")], edges=[])
        check = check_unique_node_ids(graph)

        assert check.severity == "fail"
        assert check.node_ids == ["a"]

    def test_dangling_edge(self) -> None:
        graph = make_scenario_graph()
        edges = [*graph.flow.edges, make_edge("n3", "ghost")]
        flow = graph.flow.model_copy(update={"edges": edges})
        check = check_dangling_edges(graph.model_copy(update={"flow": flow}))

        assert check.severity == "fail"
        assert "e_n3_next_ghost" in check.message

    def test_edge_kind_mismatch(self) -> None:
        edge = make_edge("a", "b").model_copy(update={"kind": EdgeKind.VISUAL})
        graph = make_graph(
            [make_character("a", next_id="b"), make_structural("b")], edges=[edge]
        )

        assert check_edge_kinds(graph).severity == "fail"

    def test_edge_without_pointer(self) -> None:
        graph = make_graph([make_character("a"), make_structural("b")], edges=[make_edge("a", "b")])
        check = check_semantic_sync(graph)

        assert check.severity == "fail"
        assert "e_a_next_b" in check.message

    def test_visual_edge_needs_no_pointer(self) -> None:
        graph = make_graph(
            [make_character("a"), make_structural("b")], edges=[make_edge("a", "b", "decor")]
        )
        assert check_semantic_sync(graph).severity == "pass"

    def test_end_node_missing(self) -> None:
        graph = make_scenario_graph().model_copy(
            update={"end_node_ids": [EndNodeRef(node_id="ghost")]}
        )
        assert check_end_nodes(graph).severity == "fail"

    def test_page_under_act_warns(self) -> None:
        check = check_hierarchy(_act_page_graph())

        assert check.severity == "warn"
        assert check.node_ids == ["page"]

    def test_page_under_chapter_passes(self) -> None:
        graph = make_graph(
            [
                make_structural("act", NodeType.ACT, next_id="chapter"),
                make_structural("chapter", NodeType.CHAPTER, next_id="page"),
                make_structural("page", NodeType.PAGE),
            ]
        )
        assert check_hierarchy(graph).severity == "pass"

    def test_empty_flow_fails_start(self) -> None:
        graph = GraphDocument(start_node_id="x", flow=FlowGraph())
        assert validate_graph(graph).get("start_node").severity == "fail"
