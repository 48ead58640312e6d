"""Live dependency trees: resolve, watch every node, rebuild on change.

The WatchCoordinator owns all mutable watch state:

- the latest resolved tree per root (the root tree cache)
- the listeners per root (RootListeners)
- the internal watches installed on behalf of each (root, listener)

Lifecycle of one subscription:

1. watch(root, listener) resolves the root's full tree.
2. One internal watch is registered per distinct file of the tree.
3. When any watched file changes, the whole tree is resolved again from
   scratch, the previous internal watches of that subscription are torn
   down, new ones are registered, and the listener is called.
4. unwatch(root, listener) removes the listener and its internal watches.

Resolution cannot be cancelled. Each subscription carries a generation
number instead; a rebuild that finishes after its subscription was removed
or replaced sees a stale generation and throws its result away without
registering anything.
"""

import asyncio
import itertools
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from depwatch.artifact import Artifact, NodeError, TreeNode
from depwatch.resolver import Resolver
from depwatch.tree import iter_nodes

from .listeners import Listener, RootListeners
from .watcher import FileWatcher

logger = logging.getLogger(__name__)

ErrorListener = Callable[[TreeNode, Artifact], Any]
SubscriptionKey = Tuple[str, Listener]


@dataclass(eq=False, repr=False)
class _InternalWatch:
    """Watch callback installed on one file for one subscription.

    Compared by identity, so each registration on the watcher is removed
    on its own.
    """

    coordinator: 'WatchCoordinator'
    key: SubscriptionKey
    root: Artifact
    artifact: Artifact
    generation: int

    @property
    def listener(self) -> Listener:
        """The external listener this watch was installed for."""
        return self.key[1]

    @property
    def path(self) -> str:
        return self.artifact.filename

    def __call__(self, path: str) -> None:
        self.coordinator._on_change(self)

    def __repr__(self) -> str:
        return f"<_InternalWatch {self.path} for {self.key[0]}>"


class WatchCoordinator:
    """Keeps resolved trees of watched roots up to date.

    Args:
        resolver: Builds trees. Defaults to Resolver().
        watcher: Change notification source. Defaults to FileWatcher().
        listeners: Root listener registry. Defaults to a new RootListeners.
        error_window: Seconds during which the same (file, error) pair of one
                      root is reported to error listeners only once.
        clock: Monotonic time source, for the error window.

    Example:
        coordinator = WatchCoordinator()
        coordinator.watcher.start()
        coordinator.on_error(lambda tree, artifact: print(artifact.error))
        await coordinator.watch(root, lambda tree, trigger: print(format_tree(tree)))
    """

    def __init__(
        self,
        resolver: Optional[Resolver] = None,
        watcher: Optional[FileWatcher] = None,
        listeners: Optional[RootListeners] = None,
        error_window: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.resolver = resolver or Resolver()
        self.watcher = watcher or FileWatcher()
        self.listeners = listeners if listeners is not None else RootListeners()
        self.error_window = error_window
        self._clock = clock

        self._trees: Dict[str, TreeNode] = {}
        self._active: Dict[SubscriptionKey, List[_InternalWatch]] = {}
        self._generations: Dict[SubscriptionKey, int] = {}
        self._counter = itertools.count(1)
        self._in_flight: Set[SubscriptionKey] = set()
        self._pending: Dict[SubscriptionKey, Artifact] = {}
        self._tasks: Set[asyncio.Future] = set()

        self._error_listeners: List[ErrorListener] = []
        self._reported: Dict[Tuple[str, str, NodeError], float] = {}

    async def watch(self, root: Artifact, listener: Listener) -> Optional[TreeNode]:
        """Subscribe listener to root's tree and resolve it once.

        listener is called as listener(tree, trigger) after the first
        resolution (trigger is root) and after every rebuild (trigger is the
        artifact whose file changed).

        Returns:
            The resolved tree, or None if the subscription was removed
            while resolving.
        """
        name = self.resolver.root_key(root)
        self.listeners.add(name, listener)
        key = (name, listener)
        generation = next(self._counter)
        self._generations[key] = generation
        self._in_flight.add(key)
        logger.debug("watching %s", name)
        return await self._rebuild(key, root, generation, root)

    def unwatch(self, root: Artifact, listener: Listener) -> bool:
        """Unsubscribe listener from root and drop its internal watches.

        Safe to call while the first resolution is still running: the
        result of that resolution is discarded.

        Returns:
            True if the listener was subscribed.
        """
        return self._unsubscribe(self.resolver.root_key(root), listener)

    def close(self) -> None:
        """Remove every subscription."""
        for name in self.listeners.roots():
            for listener in self.listeners.listeners(name):
                self._unsubscribe(name, listener)
        for name, listener in list(self._active):
            self._unsubscribe(name, listener)

    def tree_for(self, root: Artifact) -> Optional[TreeNode]:
        """Return the latest tree resolved for a watched root."""
        return self._trees.get(self.resolver.root_key(root))

    def on_error(self, callback: ErrorListener) -> None:
        """Call callback(tree, artifact) for each errored node of a fresh tree."""
        self._error_listeners.append(callback)

    def remove_error_listener(self, callback: ErrorListener) -> bool:
        if callback not in self._error_listeners:
            return False
        self._error_listeners.remove(callback)
        return True

    async def wait_idle(self) -> None:
        """Wait until every scheduled rebuild has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def watch_count(self) -> int:
        """Return the number of internal watches currently installed."""
        return sum(len(watches) for watches in self._active.values())

    def _unsubscribe(self, name: str, listener: Listener) -> bool:
        key = (name, listener)
        removed = self.listeners.remove(name, listener)
        self._generations.pop(key, None)
        self._pending.pop(key, None)
        self._teardown(key)
        if name not in self.listeners and not any(k[0] == name for k in self._active):
            self._trees.pop(name, None)
            self._reported = {k: when for k, when in self._reported.items() if k[0] != name}
        if removed:
            logger.debug("unwatched %s", name)
        return removed

    def _teardown(self, key: SubscriptionKey) -> None:
        for watch in self._active.pop(key, []):
            self.watcher.unwatch(watch.path, watch)

    def _is_current(self, key: SubscriptionKey, generation: int) -> bool:
        return self._generations.get(key) == generation and self.listeners.has(*key)

    async def _rebuild(
        self,
        key: SubscriptionKey,
        root: Artifact,
        generation: int,
        trigger: Artifact,
    ) -> Optional[TreeNode]:
        name, listener = key
        try:
            tree = await self.resolver.resolve(root)
        finally:
            self._in_flight.discard(key)

        if not self._is_current(key, generation):
            logger.debug("discarding stale tree for %s", name)
            return None

        # no suspension point from here on: teardown and replacement are atomic
        self._teardown(key)
        self._trees[name] = tree

        # one watch per file: a file reached through several paths still
        # yields a single rebuild per change
        watches = []
        seen = set()
        for node in iter_nodes(tree):
            if node.filename and node.filename not in seen:
                seen.add(node.filename)
                watch = _InternalWatch(self, key, root, node.artifact, generation)
                self.watcher.watch(node.filename, watch)
                watches.append(watch)
            if node.error is not None:
                self._report_error(name, tree, node.artifact)
        self._active[key] = watches

        logger.debug("tree for %s rebuilt, %d watches", name, len(watches))
        self.listeners.emit(name, tree, trigger, listener=listener)
        return tree

    def _on_change(self, watch: _InternalWatch) -> None:
        key = watch.key
        if not self._is_current(key, watch.generation):
            return
        if key in self._in_flight:
            # coalesce into one follow-up rebuild
            self._pending[key] = watch.artifact
            return
        self._in_flight.add(key)
        logger.debug("%s changed, rebuilding %s", watch.path, key[0])
        self._spawn(self._rebuild_until_settled(key, watch.root, watch.generation, watch.artifact))

    async def _rebuild_until_settled(
        self,
        key: SubscriptionKey,
        root: Artifact,
        generation: int,
        trigger: Artifact,
    ) -> None:
        while True:
            await self._rebuild(key, root, generation, trigger)
            trigger = self._pending.pop(key, None)
            if trigger is None or not self._is_current(key, generation):
                return
            self._in_flight.add(key)

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("rebuild failed", exc_info=task.exception())

    def _report_error(self, name: str, tree: TreeNode, artifact: Artifact) -> None:
        """Report an errored node of root name's tree, once per error window."""
        path = artifact.filename or artifact.name
        ident = (name, path, artifact.error)
        now = self._clock()
        last = self._reported.get(ident)
        if last is not None and now - last < self.error_window:
            return
        self._reported = {
            k: when for k, when in self._reported.items() if now - when < self.error_window
        }
        self._reported[ident] = now

        logger.warning("%s: %s", path, artifact.error_message or artifact.error.value)
        for callback in list(self._error_listeners):
            try:
                callback(tree, artifact)
            except Exception:
                logger.exception("error listener %r failed", callback)
