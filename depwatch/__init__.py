"""Dependency trees for templates, scripts and resources, kept live.

Given a root artifact, depwatch discovers every file the root transitively
depends on and can watch all of them, rebuilding the root's tree whenever
one changes.

Example:
    from depwatch import Artifact, Resolver, WatchCoordinator

    tree = await Resolver().resolve(Artifact('template', 'index.html'))

    coordinator = WatchCoordinator()
    coordinator.watcher.start()
    await coordinator.watch(root, lambda tree, trigger: render(tree))
"""

from .artifact import Artifact, ArtifactType, NodeError, TreeNode, infer_type
from .handlers import HandlerRegistry, UnsupportedType, default_registry
from .resolver import Resolver, read_text, resolve
from .tree import for_each_node, iter_nodes, collect_errors, format_tree
from .watching import FileWatcher, RootListeners, WatchCoordinator

__all__ = [
    'Artifact',
    'ArtifactType',
    'NodeError',
    'TreeNode',
    'infer_type',
    'HandlerRegistry',
    'UnsupportedType',
    'default_registry',
    'Resolver',
    'read_text',
    'resolve',
    'for_each_node',
    'iter_nodes',
    'collect_errors',
    'format_tree',
    'FileWatcher',
    'RootListeners',
    'WatchCoordinator',
]
