"""Tests for tree traversal helpers."""

from depwatch.artifact import Artifact, NodeError, TreeNode
from depwatch.tree import (
    collect_errors, for_each_node, format_tree, iter_nodes, tree_filenames
)


def make_tree():
    """index -> [a -> [c], b]"""
    c = TreeNode(Artifact("script", "c.js", filename="/c.js"))
    a = TreeNode(Artifact("script", "a.js", filename="/a.js"), [c])
    b = TreeNode(Artifact("resource", "b.css", filename="/b.css").failed(NodeError.UNREADABLE_FILE))
    return TreeNode(Artifact("template", "index.html", filename="/index.html"), [a, b])


class TestForEachNode:
    """Tests for for_each_node."""

    def test_pre_order(self):
        """Parents are visited before children, children in order."""
        visited = []
        for_each_node(make_tree(), lambda node: visited.append(node.artifact.name))
        assert visited == ["index.html", "a.js", "c.js", "b.css"]

    def test_none_tree_is_noop(self):
        """A missing tree visits nothing."""
        visited = []
        for_each_node(None, visited.append)
        assert visited == []

    def test_leaf_only(self):
        """A single node tree visits the node once."""
        leaf = TreeNode(Artifact("script", "a.js"))
        assert list(iter_nodes(leaf)) == [leaf]


class TestCollectErrors:
    """Tests for collect_errors and tree_filenames."""

    def test_collects_errored_nodes(self):
        """Only nodes with an error are returned."""
        errors = collect_errors(make_tree())
        assert [node.artifact.name for node in errors] == ["b.css"]

    def test_no_errors(self):
        """A clean tree has no errors."""
        assert collect_errors(TreeNode(Artifact("script", "a.js"))) == []

    def test_filenames(self):
        """Filenames come out in traversal order."""
        assert tree_filenames(make_tree()) == ["/index.html", "/a.js", "/c.js", "/b.css"]


class TestFormatTree:
    """Tests for format_tree."""

    def test_indented_output(self):
        """Each level is indented and errors are shown."""
        assert format_tree(make_tree()) == "\n".join([
            "index.html (template)",
            "  a.js (script)",
            "    c.js (script)",
            "  b.css (resource) [error: Could not open file.]",
        ])

    def test_empty(self):
        """No tree renders as an empty string."""
        assert format_tree(None) == ""
