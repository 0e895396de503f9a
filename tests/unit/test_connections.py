"""Tests for the connection editor."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from dialogueforge.graph import (
    NodeExistsError,
    NodeNotFoundError,
    StructuralError,
    add_choice,
    add_conditional_block,
    add_node,
    apply_connection,
    create_empty_graph,
    create_node,
    delete_node,
    insert_node_between_edge,
    remove_choice,
    remove_conditional_block,
    remove_edge_and_semantic_link,
    sync_edges_from_pointers,
    update_choice,
    update_node_data,
    update_node_position,
    upsert_node,
    validate_graph,
)
from dialogueforge.graph.semantics import child_ids
from dialogueforge.models.graph import (
    CharacterNodeData,
    ConditionalBlockType,
    EdgeKind,
    FlowNode,
    GraphKind,
    NodeType,
    PlayerNodeData,
    StructuralNodeData,
)
from tests.fixtures.graph_fixtures import (
    make_character,
    make_conditional,
    make_diamond_graph,
    make_edge,
    make_graph,
    make_player,
    make_scenario_graph,
    make_structural,
)


def _ends(*node_ids: str) -> list[FlowNode]:
    return [make_structural(node_id) for node_id in node_ids]


class TestCreateNode:
    """Test type-specific node defaults."""

    def test_player_gets_one_choice(self) -> None:
        node = create_node(NodeType.PLAYER, "p", 5, 6)

        assert isinstance(node.data, PlayerNodeData)
        assert len(node.data.choices) == 1
        assert node.data.choices[0].next_node_id is None
        assert (node.position.x, node.position.y) == (5, 6)

    def test_conditional_gets_if_block(self) -> None:
        node = create_node(NodeType.CONDITIONAL, "k")
        blocks = node.data.conditional_blocks

        assert len(blocks) == 1
        assert blocks[0].type == ConditionalBlockType.IF

    def test_character_gets_placeholders(self) -> None:
        node = create_node(NodeType.CHARACTER, "c")

        assert isinstance(node.data, CharacterNodeData)
        assert node.data.speaker
        assert node.data.content

    def test_structural_starts_empty(self) -> None:
        node = create_node(NodeType.CHAPTER, "ch")

        assert isinstance(node.data, StructuralNodeData)
        assert node.data.default_next_node_id is None


class TestCreateEmptyGraph:
    """Test the empty graph factory."""

    def test_contains_only_start_node(self) -> None:
        graph = create_empty_graph(project_id=4, graph_id=123456)

        assert graph.node_ids() == [graph.start_node_id]
        assert graph.start_node_id.startswith("start_")
        assert graph.flow.edges == []
        assert graph.title == "New Graph 1234"
        assert graph.flow.viewport.zoom == 1

    def test_start_node_type_per_kind(self) -> None:
        narrative = create_empty_graph(project_id=1, kind=GraphKind.NARRATIVE)
        storylet = create_empty_graph(project_id=1, kind=GraphKind.STORYLET)

        assert narrative.get_node(narrative.start_node_id).type == NodeType.ACT
        assert storylet.get_node(storylet.start_node_id).type == NodeType.CHARACTER

    def test_explicit_start_type_and_title(self) -> None:
        graph = create_empty_graph(
            project_id=1, title="Prologue", start_node_type=NodeType.PAGE
        )

        assert graph.title == "Prologue"
        assert graph.get_node(graph.start_node_id).type == NodeType.PAGE

    def test_new_graph_passes_validation(self) -> None:
        assert not validate_graph(create_empty_graph(project_id=1)).is_blocking


class TestNodeEdits:
    """Test adding, updating and moving nodes."""

    def test_add_node(self) -> None:
        graph = make_scenario_graph()
        updated = add_node(graph, create_node(NodeType.END, "n4"))

        assert updated.has_node("n4")
        assert not graph.has_node("n4")

    def test_add_duplicate_node_raises(self) -> None:
        with pytest.raises(NodeExistsError):
            add_node(make_scenario_graph(), create_node(NodeType.END, "n3"))

    def test_upsert_node_replaces(self) -> None:
        graph = make_scenario_graph()
        updated = upsert_node(graph, make_character("n2", content="Replaced"))

        assert updated.node_ids() == ["n1", "n2", "n3"]
        assert updated.get_node("n2").data.content == "Replaced"

    def test_update_node_data(self) -> None:
        updated = update_node_data(make_scenario_graph(), "n2", content="Hello", speaker="Mara")
        data = updated.get_node("n2").data

        assert data.content == "Hello"
        assert data.speaker == "Mara"
        assert data.default_next_node_id == "n3"

    def test_update_node_data_pointer_resyncs_edges(self) -> None:
        """Setting a pointer directly adds the matching edge."""
        updated = update_node_data(make_scenario_graph(), "n3", default_next_node_id="n1")

        edge = updated.get_edge("e_n3_next_n1")
        assert edge is not None
        assert edge.kind == EdgeKind.FLOW

    def test_update_node_data_rejects_type_change(self) -> None:
        with pytest.raises(ValueError, match="Cannot change the type"):
            update_node_data(make_scenario_graph(), "n2", type=NodeType.END)

    def test_update_node_data_validates(self) -> None:
        with pytest.raises(ValidationError):
            update_node_data(make_scenario_graph(), "n1", choices=[{"id": ""}])

    def test_update_unknown_node_suggests_close_ids(self) -> None:
        with pytest.raises(NodeNotFoundError) as exc_info:
            update_node_data(make_scenario_graph(), "n22", content="x")

        assert exc_info.value.suggestions() == ["n2"]
        assert "Did you mean: 'n2'?" in exc_info.value.to_feedback()

    def test_update_node_position(self) -> None:
        updated = update_node_position(make_scenario_graph(), "n3", 40, 80)
        position = updated.get_node("n3").position

        assert (position.x, position.y) == (40, 80)


class TestDeleteNode:
    """Test node deletion and pointer scrubbing."""

    def test_scenario_delete_middle_node(self) -> None:
        """Deleting n2 clears the choice pointer and the n2->n3 edge."""
        updated = delete_node(make_scenario_graph(), "n2")

        assert updated.node_ids() == ["n1", "n3"]
        assert updated.get_node("n1").data.choices[0].next_node_id is None
        assert updated.flow.edges == []

    def test_start_node_cannot_be_deleted(self) -> None:
        graph = make_scenario_graph()
        with pytest.raises(StructuralError, match="start node"):
            delete_node(graph, "n1")

    @pytest.mark.parametrize("node_id", ["choice", "left", "right", "end"])
    def test_no_reference_survives(self, node_id: str) -> None:
        """After deletion no edge and no pointer mentions the node."""
        updated = delete_node(make_diamond_graph(), node_id)

        assert not updated.has_node(node_id)
        assert all(node_id not in (e.source, e.target) for e in updated.flow.edges)
        assert all(node_id not in child_ids(n.data) for n in updated.flow.nodes)

    def test_drops_end_node_entries(self) -> None:
        updated = delete_node(make_scenario_graph(), "n3")
        assert updated.end_node_ids == []

    def test_input_not_mutated(self) -> None:
        graph = make_scenario_graph()
        before = graph.to_wire()
        delete_node(graph, "n2")
        assert graph.to_wire() == before


class TestApplyConnection:
    """Test connecting nodes."""

    def test_connect_flow_handle(self) -> None:
        updated = apply_connection(make_scenario_graph(), "n3", "n1")

        edge = updated.get_edge("e_n3_n1")
        assert edge is not None
        assert edge.kind == EdgeKind.FLOW
        assert edge.type == "default"
        assert updated.get_node("n3").data.default_next_node_id == "n1"

    def test_idempotent(self) -> None:
        """Repeating a connection leaves exactly one edge."""
        graph = make_scenario_graph()
        once = apply_connection(graph, "n3", "n1", source_handle="next")
        twice = apply_connection(once, "n3", "n1", source_handle="next")

        assert [e.id for e in twice.flow.edges].count("e_n3_next_n1") == 1
        assert len(twice.flow.edges) == len(once.flow.edges)

    def test_reconnect_slot_replaces_previous_target(self) -> None:
        """A choice slot points at one target on both layers."""
        updated = apply_connection(make_scenario_graph(), "n1", "n3", source_handle="choice-0")

        assert updated.get_edge("e_n1_choice-0_n2") is None
        edge = updated.get_edge("e_n1_choice-0_n3")
        assert edge is not None
        assert edge.kind == EdgeKind.CHOICE
        assert edge.type == "choice"
        assert updated.get_node("n1").data.choices[0].next_node_id == "n3"
        assert validate_graph(updated).get("semantic_sync").severity == "pass"

    def test_out_of_range_choice_only_adds_edge(self) -> None:
        """A missing choice slot leaves the pointers alone."""
        graph = make_scenario_graph()
        updated = apply_connection(graph, "n1", "n3", source_handle="choice-5")

        assert updated.get_edge("e_n1_choice-5_n3") is not None
        assert updated.get_node("n1").data == graph.get_node("n1").data

    def test_visual_handle_keeps_pointers(self) -> None:
        graph = make_scenario_graph()
        updated = apply_connection(graph, "n2", "n1", source_handle="annotation")

        assert updated.get_edge("e_n2_annotation_n1").kind == EdgeKind.VISUAL
        assert updated.get_node("n2").data.default_next_node_id == "n3"
        assert updated.get_edge("e_n2_next_n3") is not None

    def test_missing_endpoint_raises(self) -> None:
        with pytest.raises(NodeNotFoundError, match="n9"):
            apply_connection(make_scenario_graph(), "n1", "n9", source_handle="choice-0")

    def test_empty_endpoint_is_noop(self) -> None:
        graph = make_scenario_graph()
        assert apply_connection(graph, "", "n1") is graph

    def test_target_handle_kept(self) -> None:
        updated = apply_connection(make_scenario_graph(), "n3", "n1", target_handle="in")
        assert updated.get_edge("e_n3_n1").target_handle == "in"


class TestRemoveEdge:
    """Test edge removal with pointer clearing."""

    def test_removes_edge_and_pointer(self) -> None:
        updated = remove_edge_and_semantic_link(make_scenario_graph(), "e_n2_next_n3")

        assert updated.get_edge("e_n2_next_n3") is None
        assert updated.get_node("n2").data.default_next_node_id is None

    def test_repointed_pointer_left_alone(self) -> None:
        """A pointer that no longer matches the edge target is kept."""
        graph = make_graph(
            [
                make_structural("a", NodeType.ACT, next_id="c"),
                make_structural("b"),
                make_structural("c"),
            ],
            edges=[make_edge("a", "b")],
        )
        updated = remove_edge_and_semantic_link(graph, "e_a_next_b")

        assert updated.flow.edges == []
        assert updated.get_node("a").data.default_next_node_id == "c"

    def test_unknown_edge_is_noop(self) -> None:
        graph = make_scenario_graph()
        assert remove_edge_and_semantic_link(graph, "nope") is graph


class TestInsertNodeBetweenEdge:
    """Test splitting an edge with a new node."""

    def test_insert_into_choice_slot(self) -> None:
        """The new node takes the choice slot and continues to the old target."""
        updated = insert_node_between_edge(
            make_scenario_graph(), "e_n1_choice-0_n2", NodeType.CHARACTER, "mid", 50, 60
        )

        assert updated.get_node("n1").data.choices[0].next_node_id == "mid"
        assert updated.get_node("mid").data.default_next_node_id == "n2"
        assert updated.get_edge("e_n1_choice-0_n2") is None
        assert updated.get_edge("e_n1_choice-0_mid") is not None
        assert updated.get_edge("e_mid_next_n2") is not None
        assert not validate_graph(updated).is_blocking

    def test_insert_player_continues_through_first_choice(self) -> None:
        updated = insert_node_between_edge(
            make_scenario_graph(), "e_n2_next_n3", NodeType.PLAYER, "ask"
        )

        assert updated.get_node("n2").data.default_next_node_id == "ask"
        assert updated.get_node("ask").data.choices[0].next_node_id == "n3"
        assert updated.get_edge("e_ask_choice-0_n3") is not None

    def test_insert_conditional_continues_through_first_block(self) -> None:
        updated = insert_node_between_edge(
            make_scenario_graph(), "e_n2_next_n3", NodeType.CONDITIONAL, "gate"
        )

        assert updated.get_node("gate").data.conditional_blocks[0].next_node_id == "n3"
        assert updated.get_edge("e_gate_block-0_n3") is not None

    def test_existing_id_raises(self) -> None:
        with pytest.raises(NodeExistsError):
            insert_node_between_edge(make_scenario_graph(), "e_n2_next_n3", NodeType.END, "n3")

    def test_unknown_edge_is_noop(self) -> None:
        graph = make_scenario_graph()
        assert insert_node_between_edge(graph, "nope", NodeType.END, "x") is graph


class TestSyncEdgesFromPointers:
    """Test reconciling edges to pointers."""

    def test_adds_missing_edges(self) -> None:
        nodes = make_scenario_graph().flow.nodes
        graph = make_graph(list(nodes), edges=[])
        synced = sync_edges_from_pointers(graph)

        assert {e.id for e in synced.flow.edges} == {"e_n1_choice-0_n2", "e_n2_next_n3"}

    def test_drops_stale_semantic_edges_and_keeps_visual(self) -> None:
        graph = make_scenario_graph()
        stale = make_edge("n3", "n1")
        visual = make_edge("n3", "n2", "decor")
        graph = make_graph(list(graph.flow.nodes), edges=[*graph.flow.edges, stale, visual])
        synced = sync_edges_from_pointers(graph)

        ids = {e.id for e in synced.flow.edges}
        assert "e_n3_next_n1" not in ids
        assert "e_n3_decor_n2" in ids

    def test_already_in_sync_returns_same_graph(self) -> None:
        graph = make_scenario_graph()
        assert sync_edges_from_pointers(graph) is graph


class TestChoicesAndBlocks:
    """Test editing choices and conditional blocks."""

    def test_add_choice(self) -> None:
        updated = add_choice(make_scenario_graph(), "n1", text="Leave", choice_id="leave")
        choices = updated.get_node("n1").data.choices

        assert [c.id for c in choices] == ["n1_c0", "leave"]
        assert choices[1].text == "Leave"

    def test_add_choice_to_wrong_type_is_noop(self) -> None:
        graph = make_scenario_graph()
        assert add_choice(graph, "n2") is graph

    def test_update_choice(self) -> None:
        updated = update_choice(make_scenario_graph(), "n1", 0, text="Talk")
        choice = updated.get_node("n1").data.choices[0]

        assert choice.text == "Talk"
        assert choice.next_node_id == "n2"

    def test_update_choice_rejects_pointer(self) -> None:
        with pytest.raises(ValueError, match="apply_connection"):
            update_choice(make_scenario_graph(), "n1", 0, next_node_id="n3")

    def test_update_choice_out_of_range_is_noop(self) -> None:
        graph = make_scenario_graph()
        assert update_choice(graph, "n1", 3, text="x") is graph

    def test_remove_choice_renumbers_handles(self) -> None:
        graph = make_graph(
            [make_player("p", ["a", "b", "c"]), *_ends("a", "b", "c")]
        )
        updated = remove_choice(graph, "p", 0)

        assert [c.next_node_id for c in updated.get_node("p").data.choices] == ["b", "c"]
        assert {e.id for e in updated.flow.edges} == {"e_p_choice-0_b", "e_p_choice-1_c"}
        assert validate_graph(updated).get("semantic_sync").severity == "pass"

    def test_remove_last_choice_keeps_earlier_edges(self) -> None:
        graph = make_graph([make_player("p", ["a", "b"]), *_ends("a", "b")])
        updated = remove_choice(graph, "p", 1)

        assert {e.id for e in updated.flow.edges} == {"e_p_choice-0_a"}

    def test_add_conditional_block(self) -> None:
        graph = make_graph([make_conditional("k", ["a"]), make_structural("a")])
        updated = add_conditional_block(graph, "k", ConditionalBlockType.ELSE, block_id="otherwise")
        blocks = updated.get_node("k").data.conditional_blocks

        assert [b.id for b in blocks] == ["k_b0", "otherwise"]
        assert blocks[1].type == ConditionalBlockType.ELSE

    def test_remove_conditional_block_renumbers_handles(self) -> None:
        graph = make_graph(
            [make_conditional("k", ["a", "b", "c"]), *_ends("a", "b", "c")]
        )
        updated = remove_conditional_block(graph, "k", 1)

        blocks = updated.get_node("k").data.conditional_blocks
        assert [b.next_node_id for b in blocks] == ["a", "c"]
        assert {e.id for e in updated.flow.edges} == {"e_k_block-0_a", "e_k_block-1_c"}
        assert validate_graph(updated).get("semantic_sync").severity == "pass"
