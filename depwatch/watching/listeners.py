"""Publish/subscribe registry keyed by root path."""

import logging
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class RootListeners:
    """Listeners interested in each root's tree updates.

    A listener may be registered on several roots; registering the same
    listener twice on one root is a no-op.
    """

    def __init__(self):
        self._by_root: Dict[str, List[Listener]] = {}

    def add(self, root: str, listener: Listener) -> None:
        """Register listener for root."""
        listeners = self._by_root.setdefault(root, [])
        if listener not in listeners:
            listeners.append(listener)

    def remove(self, root: str, listener: Listener) -> bool:
        """Unregister listener from root.

        Returns:
            True if the listener was registered.
        """
        listeners = self._by_root.get(root)
        if not listeners or listener not in listeners:
            return False
        listeners.remove(listener)
        if not listeners:
            del self._by_root[root]
        return True

    def listeners(self, root: str) -> List[Listener]:
        """Return a copy of the listeners for root."""
        return list(self._by_root.get(root, []))

    def has(self, root: str, listener: Listener) -> bool:
        return listener in self._by_root.get(root, [])

    def roots(self) -> List[str]:
        """Return the roots with at least one listener."""
        return list(self._by_root)

    def emit(self, root: str, *args: Any, listener: Optional[Listener] = None) -> int:
        """Call every listener of root with args, in registration order.

        When listener is given, only that listener is called, and only if it
        is still registered for root. A listener that raises is logged; the
        remaining listeners still run.

        Returns:
            Number of listeners called.
        """
        listeners = self.listeners(root)
        if listener is not None:
            listeners = [listener] if listener in listeners else []
        for callback in listeners:
            try:
                callback(*args)
            except Exception:
                logger.exception("listener %r for %s failed", callback, root)
        return len(listeners)

    def __contains__(self, root: str) -> bool:
        return root in self._by_root

    def __len__(self) -> int:
        return len(self._by_root)
