"""Pytest configuration and shared fixtures."""

from pathlib import Path

import pytest

from dialogueforge.config import WARNINGS_BLOCK_COMMIT_ENV
from dialogueforge.models.graph import GraphDocument
from tests.fixtures.graph_fixtures import make_scenario_graph


@pytest.fixture(autouse=True)
def clear_commit_gate_override(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's DFORGE_WARNINGS_BLOCK_COMMIT from leaking into tests."""
    monkeypatch.delenv(WARNINGS_BLOCK_COMMIT_ENV, raising=False)


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def scenario_graph() -> GraphDocument:
    """n1 (PLAYER, start) -> n2 (CHARACTER) -> n3 (END)."""
    return make_scenario_graph()
