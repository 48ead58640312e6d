"""Watching resolved trees for changes.

- FileWatcher: per-file change callbacks on top of watchdog
- RootListeners: listeners per root path
- WatchCoordinator: keeps each watched root's tree current

Example:
    from depwatch.watching import WatchCoordinator

    coordinator = WatchCoordinator()
    coordinator.watcher.start()
    await coordinator.watch(root, on_update)
"""

from .watcher import FileWatcher
from .listeners import RootListeners
from .coordinator import WatchCoordinator

__all__ = [
    'FileWatcher',
    'RootListeners',
    'WatchCoordinator',
]
