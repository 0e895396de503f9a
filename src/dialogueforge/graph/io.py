"""Reading and writing graph documents as JSON files."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from dialogueforge.models.graph import GraphDocument

if TYPE_CHECKING:
    from pathlib import Path


def load_graph(file_path: Path) -> GraphDocument:
    """Load a graph document from a wire-format JSON file.

    Args:
        file_path: Path to a ``.json`` graph file.

    Returns:
        Parsed graph document.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file is not a ``.json`` file.
        pydantic.ValidationError: If the content is not a valid graph.
    """
    if file_path.suffix != ".json":
        raise ValueError(f"Expected .json file, got: {file_path}")
    with file_path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    return GraphDocument.from_wire(data)


def save_graph(graph: GraphDocument, file_path: Path) -> None:
    """Write a graph document as wire-format JSON (atomic replace).

    Args:
        graph: Document to write.
        file_path: Destination ``.json`` path. Parent directories are created.
    """
    if file_path.suffix != ".json":
        raise ValueError(f"Graph can only be saved to .json files, got: {file_path}")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = file_path.with_suffix(".json.tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(graph.to_wire(), f, indent=2, ensure_ascii=False)
        f.write("\n")
    tmp_path.replace(file_path)
