"""Dependency tree construction.

The Resolver expands a root artifact into a tree by reading each file,
running the handler for its type, and recursing into the children the
handler declared. Children of a node are resolved concurrently and land in
declaration order.

Failures stay local to the node they happen on. A node that cannot be
expanded (unknown type, cycle, unreadable file, unparsable content) gets an
error and no children; its siblings and ancestors resolve normally, so the
caller always gets a complete tree back.

Example:
    resolver = Resolver()
    tree = await resolver.resolve(Artifact('template', 'index.html'))
    for node in iter_nodes(tree):
        print(node.filename, node.error)
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Awaitable, Callable, FrozenSet, Optional, Union

from depwatch.artifact import Artifact, NodeError, TreeNode, resolve_path
from depwatch.handlers.registry import HandlerRegistry, default_registry

logger = logging.getLogger(__name__)

Reader = Callable[[str], Awaitable[str]]


async def read_text(path: str) -> str:
    """Read a UTF-8 file without blocking the event loop."""
    return await asyncio.to_thread(Path(path).read_text, encoding='utf-8')


class Resolver:
    """Builds dependency trees.

    Args:
        registry: Handlers to dispatch on. Defaults to default_registry().
        reader: Coroutine function returning a file's text. Raising OSError
                or UnicodeDecodeError marks the node unreadable.
        base_path: Directory root names are resolved against (default cwd).
    """

    def __init__(
        self,
        registry: Optional[HandlerRegistry] = None,
        reader: Optional[Reader] = None,
        base_path: Union[str, Path, None] = None,
    ):
        self.registry = registry if registry is not None else default_registry()
        self.reader = reader or read_text
        self.base_path = Path(base_path) if base_path is not None else None

    def root_key(self, artifact: Artifact) -> str:
        """Return the absolute path identifying a root artifact."""
        if artifact.filename:
            return resolve_path(self._base_dir(), artifact.filename)
        return resolve_path(self._base_dir(), artifact.name)

    async def resolve(self, artifact: Artifact) -> TreeNode:
        """Resolve the full dependency tree of artifact.

        The artifact passed in is not modified.
        """
        return await self._resolve(artifact, frozenset(), self._base_dir())

    async def _resolve(
        self,
        artifact: Artifact,
        ancestors: FrozenSet[str],
        directory: str,
    ) -> TreeNode:
        artifact = artifact.copy()

        if not self.registry.supports(artifact.type):
            return TreeNode(artifact.failed(NodeError.UNSUPPORTED_TYPE))

        artifact.filename = resolve_path(directory, artifact.filename or artifact.name)
        if artifact.filename in ancestors:
            logger.debug("cyclic dependency on %s", artifact.filename)
            return TreeNode(artifact.failed(NodeError.CYCLIC_DEPENDENCY))
        # a new set per branch; siblings never see each other's paths
        ancestors = ancestors | {artifact.filename}

        try:
            content = await self.reader(artifact.filename)
        except (OSError, UnicodeDecodeError) as e:
            logger.debug("could not read %s: %s", artifact.filename, e)
            return TreeNode(artifact.failed(NodeError.UNREADABLE_FILE, str(e)))

        # handlers mutate; a failure must not leave partial data on the node
        parsed = artifact.copy()
        try:
            children = self.registry.handle(parsed, content)
        except Exception as e:
            logger.debug("handler for %s failed", artifact.filename, exc_info=True)
            return TreeNode(artifact.failed(NodeError.INVALID_CONTENT, f"{type(e).__name__}: {e}"))

        if not children:
            return TreeNode(parsed)

        child_directory = os.path.dirname(parsed.filename)
        nodes = await asyncio.gather(*(
            self._resolve(child, ancestors, child_directory) for child in children
        ))
        return TreeNode(parsed, list(nodes))

    def _base_dir(self) -> str:
        return str(self.base_path) if self.base_path is not None else os.getcwd()


async def resolve(artifact: Artifact, **kwargs) -> TreeNode:
    """One-shot resolution with a default Resolver (kwargs go to Resolver)."""
    return await Resolver(**kwargs).resolve(artifact)
