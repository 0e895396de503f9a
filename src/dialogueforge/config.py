"""Project configuration loading."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path  # noqa: TC003 - used at runtime
from typing import Any

from ruamel.yaml import YAML

from dialogueforge.models.graph import DEFAULT_START_NODE_TYPES, GraphKind, NodeType

CONFIG_FILENAME = "forge.yaml"
WARNINGS_BLOCK_COMMIT_ENV = "DFORGE_WARNINGS_BLOCK_COMMIT"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off", ""}


def _default_start_node_types() -> dict[GraphKind, NodeType]:
    return dict(DEFAULT_START_NODE_TYPES)


class ForgeConfigError(Exception):
    """Raised when project configuration cannot be loaded."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to load forge config at {path}: {reason}")


@dataclass
class ValidationConfig:
    """Which validation findings block a draft commit.

    Attributes:
        orphans_block_commit: Treat nodes unreachable from the start node as
            failures. When False they are reported as warnings.
        warnings_block_commit: Refuse commits that have warnings, not only
            failures. ``DFORGE_WARNINGS_BLOCK_COMMIT`` overrides this.
    """

    orphans_block_commit: bool = True
    warnings_block_commit: bool = False

    def effective_warnings_block_commit(self) -> bool:
        """Warning gate after applying the environment override."""
        raw = os.getenv(WARNINGS_BLOCK_COMMIT_ENV)
        if raw is None:
            return self.warnings_block_commit
        value = raw.strip().lower()
        if value in _TRUTHY:
            return True
        if value in _FALSY:
            return False
        return self.warnings_block_commit

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ValidationConfig:
        return cls(
            orphans_block_commit=bool(data.get("orphans_block_commit", True)),
            warnings_block_commit=bool(data.get("warnings_block_commit", False)),
        )


@dataclass
class ForgeConfig:
    """Configuration for a Dialogue Forge project."""

    name: str = "unnamed"
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    start_node_types: dict[GraphKind, NodeType] = field(default_factory=_default_start_node_types)

    def start_node_type(self, kind: GraphKind) -> NodeType:
        return self.start_node_types.get(kind, _default_start_node_types()[kind])

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ForgeConfig:
        """Create config from dictionary.

        Args:
            data: Dictionary containing config fields.

        Returns:
            ForgeConfig instance.

        Raises:
            ValueError: If a graph kind or node type name is unknown.
        """
        start_node_types = _default_start_node_types()
        for kind, node_type in dict(data.get("start_node_types") or {}).items():
            start_node_types[GraphKind(str(kind).upper())] = NodeType(str(node_type).upper())

        return cls(
            name=data.get("name", "unnamed"),
            validation=ValidationConfig.from_dict(dict(data.get("validation") or {})),
            start_node_types=start_node_types,
        )


def load_forge_config(project_path: Path) -> ForgeConfig:
    """Load project configuration from forge.yaml.

    Args:
        project_path: Project directory containing forge.yaml, or the path of
            the config file itself.

    Returns:
        ForgeConfig instance. Defaults when no config file exists.

    Raises:
        ForgeConfigError: If the file exists but cannot be read or parsed.
    """
    if project_path.suffix in (".yaml", ".yml"):
        config_path = project_path
    else:
        config_path = project_path / CONFIG_FILENAME

    if not config_path.exists():
        return ForgeConfig(name=config_path.parent.name or "unnamed")

    yaml = YAML()
    try:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.load(f)

        if data is None:
            return ForgeConfig(name=config_path.parent.name or "unnamed")
        if not hasattr(data, "items"):
            raise ForgeConfigError(config_path, "Top level must be a mapping")

        return ForgeConfig.from_dict(dict(data))
    except Exception as e:
        if isinstance(e, ForgeConfigError):
            raise
        raise ForgeConfigError(config_path, str(e)) from e
