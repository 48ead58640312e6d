"""Traversal helpers for resolved dependency trees."""

from typing import Callable, Iterator, List, Optional

from depwatch.artifact import TreeNode


def for_each_node(tree: Optional[TreeNode], visitor: Callable[[TreeNode], None]) -> None:
    """Call visitor for each node, parents before children (pre-order).

    A missing tree is a no-op.
    """
    for node in iter_nodes(tree):
        visitor(node)


def iter_nodes(tree: Optional[TreeNode]) -> Iterator[TreeNode]:
    """Yield every node depth-first, parents before children."""
    if tree is None:
        return
    stack = [tree]
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def collect_errors(tree: Optional[TreeNode]) -> List[TreeNode]:
    """Return the nodes carrying an error, in traversal order."""
    return [node for node in iter_nodes(tree) if node.error is not None]


def tree_filenames(tree: Optional[TreeNode]) -> List[str]:
    """Return the filename of every node in traversal order (may repeat)."""
    return [node.filename for node in iter_nodes(tree) if node.filename]


def format_tree(tree: Optional[TreeNode], indent: str = '  ') -> str:
    """Render a tree as indented lines, one node per line.

    Example:
        index.html (template)
          app.js (script)
          style.css (resource) [error: Could not open file.]
    """
    lines = []

    def render(node: TreeNode, depth: int) -> None:
        artifact = node.artifact
        line = f"{indent * depth}{artifact.name} ({artifact.type})"
        if artifact.error is not None:
            line += f" [error: {artifact.error_message or artifact.error.value}]"
        lines.append(line)
        for child in node.children:
            render(child, depth + 1)

    if tree is not None:
        render(tree, 0)
    return '\n'.join(lines)
