"""Spanning-tree navigation over a graph's semantic pointers.

The hierarchy is a rooted tree materialized from the start node by a
depth-first walk over child pointers. Graphs may be cyclic or share targets,
so each node is materialized once; any later occurrence (a back edge or a
second parent) becomes a terminal *reference* leaf with no children.

Path queries therefore answer along the first-discovered path only. This is
a spanning tree of the reachable subgraph, not a general reachability index.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from dialogueforge.graph.semantics import child_ids

if TYPE_CHECKING:
    from collections.abc import Iterator

    from dialogueforge.models.graph import FlowNode, GraphDocument


@dataclass(eq=False)
class TreeNode:
    """One occurrence of a graph node in the spanning tree.

    Attributes:
        node_id: Graph node id.
        node: The graph node itself.
        parent: Parent occurrence, None for the root.
        children: Child occurrences in pointer slot order.
        is_reference: True for a repeated occurrence that was not descended.
    """

    node_id: str
    node: FlowNode
    parent: TreeNode | None = field(default=None, repr=False)
    children: list[TreeNode] = field(default_factory=list)
    is_reference: bool = False

    def each(self) -> Iterator[TreeNode]:
        """Breadth-first iteration over this subtree, self first."""
        queue: deque[TreeNode] = deque([self])
        while queue:
            current = queue.popleft()
            yield current
            queue.extend(current.children)

    @property
    def depth(self) -> int:
        depth = 0
        current = self.parent
        while current is not None:
            depth += 1
            current = current.parent
        return depth

    @property
    def height(self) -> int:
        """Edges on the longest downward path to a leaf."""
        heights: dict[int, int] = {}
        # Post-order via reversed BFS: children are always seen before parents.
        for tree_node in reversed(list(self.each())):
            heights[id(tree_node)] = max(
                (heights[id(c)] + 1 for c in tree_node.children), default=0
            )
        return heights[id(self)]


def create_hierarchy(graph: GraphDocument) -> TreeNode | None:
    """Build the spanning tree rooted at the start node.

    Returns:
        Root of the tree, or None if the start node is unset or missing.
    """
    nodes_by_id = graph.nodes_by_id()
    start = nodes_by_id.get(graph.start_node_id) if graph.start_node_id else None
    if start is None:
        return None

    root = TreeNode(node_id=start.id, node=start)
    visited: set[str] = {start.id}
    # Children are pushed in reverse so pops follow slot order.
    stack: list[tuple[str, TreeNode]] = [
        (cid, root) for cid in reversed(child_ids(start.data)) if cid in nodes_by_id
    ]

    while stack:
        node_id, parent = stack.pop()
        node = nodes_by_id[node_id]
        if node_id in visited:
            parent.children.append(
                TreeNode(node_id=node_id, node=node, parent=parent, is_reference=True)
            )
            continue
        visited.add(node_id)
        tree_node = TreeNode(node_id=node_id, node=node, parent=parent)
        parent.children.append(tree_node)
        stack.extend(
            (cid, tree_node) for cid in reversed(child_ids(node.data)) if cid in nodes_by_id
        )

    return root


def find_node(tree: TreeNode | None, node_id: str) -> TreeNode | None:
    """Find the materialized occurrence of ``node_id`` (never a reference leaf)."""
    if tree is None:
        return None
    for tree_node in tree.each():
        if tree_node.node_id == node_id and not tree_node.is_reference:
            return tree_node
    return None


def find_path(tree: TreeNode | None, from_id: str, to_id: str) -> list[str] | None:
    """Return ``[from_id, ..., to_id]`` along the spanning tree, or None.

    The walk goes upward from ``to_id`` through parent links, so a path is
    only found when ``to_id`` was first discovered beneath ``from_id``.
    """
    from_node = find_node(tree, from_id)
    to_node = find_node(tree, to_id)
    if from_node is None or to_node is None:
        return None
    if from_id == to_id:
        return [from_id]

    path: list[str] = []
    current: TreeNode | None = to_node
    while current is not None and current is not from_node:
        path.append(current.node_id)
        current = current.parent
    if current is None:
        return None
    path.append(from_id)
    path.reverse()
    return path


def get_ancestors(tree: TreeNode | None, node_id: str) -> list[str]:
    """Ancestor ids from the root down to the node's parent."""
    tree_node = find_node(tree, node_id)
    if tree_node is None:
        return []
    ancestors: list[str] = []
    current = tree_node.parent
    while current is not None:
        ancestors.append(current.node_id)
        current = current.parent
    ancestors.reverse()
    return ancestors


def get_descendants(tree: TreeNode | None, node_id: str) -> list[str]:
    """Materialized descendant ids in breadth-first order, excluding the node itself."""
    tree_node = find_node(tree, node_id)
    if tree_node is None:
        return []
    return [d.node_id for d in tree_node.each() if d is not tree_node and not d.is_reference]


def get_node_depth(tree: TreeNode | None, node_id: str) -> int:
    """Depth of the node (0 for the root), or -1 if not in the tree."""
    tree_node = find_node(tree, node_id)
    return tree_node.depth if tree_node is not None else -1


def get_node_height(tree: TreeNode | None, node_id: str) -> int:
    """Height of the node (0 for a leaf), or -1 if not in the tree."""
    tree_node = find_node(tree, node_id)
    return tree_node.height if tree_node is not None else -1


def get_all_nodes(tree: TreeNode | None, include_references: bool = False) -> list[TreeNode]:
    if tree is None:
        return []
    return [n for n in tree.each() if include_references or not n.is_reference]


def count_nodes(tree: TreeNode | None, include_references: bool = False) -> int:
    return len(get_all_nodes(tree, include_references=include_references))


# ---------------------------------------------------------------------------
# Structural diagnostics
# ---------------------------------------------------------------------------

TreeIssueKind = Literal["missing_start", "dangling_reference", "orphaned"]


@dataclass(frozen=True)
class TreeIssue:
    """A single structural finding.

    Attributes:
        kind: What is wrong.
        node_id: Node the finding is about (the referencing node for dangling
            references, empty when the start node id is unset).
        target_id: Missing node id, for dangling references.
    """

    kind: TreeIssueKind
    node_id: str = ""
    target_id: str | None = None

    @property
    def message(self) -> str:
        if self.kind == "missing_start":
            if not self.node_id:
                return "Graph has no start node id"
            return f'Start node "{self.node_id}" does not exist in nodes'
        if self.kind == "dangling_reference":
            return f'Node "{self.node_id}" references non-existent node "{self.target_id}"'
        return f'Node "{self.node_id}" is not reachable from start node'


@dataclass
class TreeValidationResult:
    issues: list[TreeIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.issues

    @property
    def errors(self) -> list[str]:
        return [issue.message for issue in self.issues]

    def of_kind(self, kind: TreeIssueKind) -> list[TreeIssue]:
        return [issue for issue in self.issues if issue.kind == kind]


def validate_tree_structure(graph: GraphDocument) -> TreeValidationResult:
    """Breadth-first structural check from the start node.

    Reports a missing start node, pointers to node ids that are not in the
    document, and nodes never reached from the start. Findings are returned,
    not raised.
    """
    result = TreeValidationResult()
    nodes_by_id = graph.nodes_by_id()

    if not graph.start_node_id or graph.start_node_id not in nodes_by_id:
        result.issues.append(TreeIssue(kind="missing_start", node_id=graph.start_node_id))
        return result

    visited: set[str] = set()
    queue: deque[str] = deque([graph.start_node_id])
    while queue:
        node_id = queue.popleft()
        if node_id in visited:
            continue
        visited.add(node_id)
        for child_id in child_ids(nodes_by_id[node_id].data):
            if child_id not in nodes_by_id:
                result.issues.append(
                    TreeIssue(kind="dangling_reference", node_id=node_id, target_id=child_id)
                )
            elif child_id not in visited:
                queue.append(child_id)

    for node_id in nodes_by_id:
        if node_id not in visited:
            result.issues.append(TreeIssue(kind="orphaned", node_id=node_id))

    return result
