"""Tests for the dforge CLI."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from typer.testing import CliRunner

from dialogueforge.cli import app
from dialogueforge.graph import load_graph, save_graph
from tests.fixtures.graph_fixtures import make_scenario_graph

if TYPE_CHECKING:
    from pathlib import Path

    from click.testing import Result

runner = CliRunner()


def _output(result: Result) -> str:
    """Console text with rich line wrapping undone."""
    return " ".join(result.output.split())


def _story_file(tmp_path: Path) -> Path:
    file = tmp_path / "story.json"
    save_graph(make_scenario_graph(), file)
    return file


class TestBasics:
    """Test entry-point behaviour."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert "Dialogue Forge v" in _output(result)

    def test_no_args_shows_help(self) -> None:
        result = runner.invoke(app, [])

        assert result.exit_code in (0, 2)
        assert "Usage" in _output(result)

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["validate", str(tmp_path / "nope.json")])

        assert result.exit_code == 1
        assert "Graph file not found" in _output(result)

    def test_invalid_graph_file(self, tmp_path: Path) -> None:
        file = tmp_path / "broken.json"
        file.write_text(json.dumps({"flow": {"nodes": [{"id": "a"}]}}))

        result = runner.invoke(app, ["validate", str(file)])

        assert result.exit_code == 1
        assert "not a valid graph" in _output(result)


class TestNew:
    """Test graph creation."""

    def test_new_storylet(self, tmp_path: Path) -> None:
        file = tmp_path / "side.json"

        result = runner.invoke(app, ["new", str(file), "--kind", "storylet", "--id", "42"])

        assert result.exit_code == 0
        assert "STORYLET" in _output(result)
        graph = load_graph(file)
        assert graph.id == 42
        assert graph.title == "New Graph 42"
        assert graph.get_node(graph.start_node_id).type == "CHARACTER"

    def test_new_uses_configured_start_type(self, tmp_path: Path) -> None:
        (tmp_path / "forge.yaml").write_text("start_node_types:\n  narrative: chapter\n")
        file = tmp_path / "main.json"

        result = runner.invoke(app, ["new", str(file), "--title", "Main"])

        assert result.exit_code == 0
        graph = load_graph(file)
        assert graph.title == "Main"
        assert graph.get_node(graph.start_node_id).type == "CHAPTER"

    def test_new_refuses_existing_file(self, tmp_path: Path) -> None:
        file = _story_file(tmp_path)

        result = runner.invoke(app, ["new", str(file)])

        assert result.exit_code == 1
        assert "already exists" in _output(result)

    def test_new_requires_json_suffix(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["new", str(tmp_path / "story.yaml")])

        assert result.exit_code == 1
        assert "must end in .json" in _output(result)


class TestInspect:
    """Test read-only commands."""

    def test_validate_ok(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["validate", str(_story_file(tmp_path))])

        assert result.exit_code == 0
        assert "OK:" in _output(result)
        assert "9 passed" in _output(result)

    def test_tree(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["tree", str(_story_file(tmp_path))])

        assert result.exit_code == 0
        for node_id in ("n1", "n2", "n3"):
            assert node_id in _output(result)

    def test_path(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["path", str(_story_file(tmp_path)), "n1", "n3"])

        assert result.exit_code == 0
        assert "n1 → n2 → n3" in _output(result)

    def test_no_path(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["path", str(_story_file(tmp_path)), "n3", "n1"])

        assert result.exit_code == 1
        assert "No path" in _output(result)


class TestEdit:
    """Test commands that rewrite the graph file."""

    def test_delete_node_reports_blocking(self, tmp_path: Path) -> None:
        file = _story_file(tmp_path)

        result = runner.invoke(app, ["delete-node", str(file), "n2"])

        assert result.exit_code == 0
        assert "blocking findings" in _output(result)
        assert not load_graph(file).has_node("n2")

        validated = runner.invoke(app, ["validate", str(file)])
        assert validated.exit_code == 1
        assert "Blocking:" in _output(validated)

    def test_delete_start_node_refused(self, tmp_path: Path) -> None:
        file = _story_file(tmp_path)

        result = runner.invoke(app, ["delete-node", str(file), "n1"])

        assert result.exit_code == 1
        assert "cannot be deleted" in _output(result)
        assert load_graph(file).has_node("n1")

    def test_delete_unknown_node(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["delete-node", str(_story_file(tmp_path)), "ghost"])

        assert result.exit_code == 1
        assert "not found" in _output(result)

    def test_connect(self, tmp_path: Path) -> None:
        file = _story_file(tmp_path)

        result = runner.invoke(app, ["connect", str(file), "n3", "n1"])

        assert result.exit_code == 0
        graph = load_graph(file)
        assert graph.get_edge("e_n3_n1") is not None
        assert graph.get_node("n3").data.default_next_node_id == "n1"

    def test_connect_missing_node(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["connect", str(_story_file(tmp_path)), "n3", "ghost"])

        assert result.exit_code == 1
        assert "ghost" in _output(result)

    def test_disconnect(self, tmp_path: Path) -> None:
        file = _story_file(tmp_path)

        result = runner.invoke(app, ["disconnect", str(file), "e_n2_next_n3"])

        assert result.exit_code == 0
        graph = load_graph(file)
        assert graph.get_edge("e_n2_next_n3") is None
        assert graph.get_node("n2").data.default_next_node_id is None

    def test_disconnect_unknown_edge(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["disconnect", str(_story_file(tmp_path)), "e_x_y"])

        assert result.exit_code == 1
        assert "not found" in _output(result)

    def test_insert(self, tmp_path: Path) -> None:
        file = _story_file(tmp_path)

        result = runner.invoke(
            app, ["insert", str(file), "e_n1_choice-0_n2", "character", "mid"]
        )

        assert result.exit_code == 0
        graph = load_graph(file)
        assert graph.get_node("n1").data.choices[0].next_node_id == "mid"
        assert graph.get_node("mid").data.default_next_node_id == "n2"

    def test_insert_unknown_edge(self, tmp_path: Path) -> None:
        result = runner.invoke(
            app, ["insert", str(_story_file(tmp_path)), "e_x_y", "character", "mid"]
        )

        assert result.exit_code == 1
