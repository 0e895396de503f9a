"""Narrative graph editing: connection editor, hierarchy, validation and drafts.

Graph documents are pydantic values (see ``dialogueforge.models``). The
functions here take a document and return a new one; ``DraftManager`` buffers
those results behind a validation-gated commit.
"""

from dialogueforge.graph.breadcrumbs import BreadcrumbNavigator
from dialogueforge.graph.connections import (
    add_choice,
    add_conditional_block,
    add_node,
    apply_connection,
    build_edge_id,
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
)
from dialogueforge.graph.delta import (
    CollectionDelta,
    GraphDelta,
    apply_delta_to_graph,
    calculate_delta,
    merge_deltas,
)
from dialogueforge.graph.document import create_empty_graph, require_node
from dialogueforge.graph.draft import DraftManager
from dialogueforge.graph.errors import (
    GraphIntegrityError,
    NodeExistsError,
    NodeNotFoundError,
    NoGraphLoadedError,
    ResolutionError,
    StructuralError,
    ValidationError,
)
from dialogueforge.graph.hierarchy import (
    TreeNode,
    TreeValidationResult,
    count_nodes,
    create_hierarchy,
    find_node,
    find_path,
    get_all_nodes,
    get_ancestors,
    get_descendants,
    get_node_depth,
    get_node_height,
    validate_tree_structure,
)
from dialogueforge.graph.io import load_graph, save_graph
from dialogueforge.graph.validation import is_blocking, validate_graph
from dialogueforge.graph.validation_types import ValidationCheck, ValidationReport

__all__ = [
    "BreadcrumbNavigator",
    "CollectionDelta",
    "DraftManager",
    "GraphDelta",
    "GraphIntegrityError",
    "NoGraphLoadedError",
    "NodeExistsError",
    "NodeNotFoundError",
    "ResolutionError",
    "StructuralError",
    "TreeNode",
    "TreeValidationResult",
    "ValidationCheck",
    "ValidationError",
    "ValidationReport",
    "add_choice",
    "add_conditional_block",
    "add_node",
    "apply_connection",
    "apply_delta_to_graph",
    "build_edge_id",
    "calculate_delta",
    "count_nodes",
    "create_empty_graph",
    "create_hierarchy",
    "create_node",
    "delete_node",
    "find_node",
    "find_path",
    "get_all_nodes",
    "get_ancestors",
    "get_descendants",
    "get_node_depth",
    "get_node_height",
    "insert_node_between_edge",
    "is_blocking",
    "load_graph",
    "merge_deltas",
    "remove_choice",
    "remove_conditional_block",
    "remove_edge_and_semantic_link",
    "require_node",
    "save_graph",
    "sync_edges_from_pointers",
    "update_choice",
    "update_node_data",
    "update_node_position",
    "upsert_node",
    "validate_graph",
    "validate_tree_structure",
]
