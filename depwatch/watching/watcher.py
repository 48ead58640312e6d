"""Per-file change notification on top of watchdog.

watchdog observes directories; FileWatcher narrows that down to individual
files and lets any number of independent callbacks subscribe to the same
path. Each callback is removed on its own, so several owners can share a
path without stepping on each other.

Events arrive on the watchdog observer thread and are handed over to the
asyncio loop captured by start(), so callbacks always run on the loop.

Example:
    watcher = FileWatcher()
    watcher.start()
    watcher.watch('/site/index.html', lambda path: print('changed', path))
"""

import asyncio
import logging
import os
from typing import Any, Callable, Dict, List, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

logger = logging.getLogger(__name__)

Callback = Callable[[str], Any]

_CHANGE_EVENTS = {'modified', 'created', 'deleted', 'moved'}


class _ChangeHandler(FileSystemEventHandler):
    """Forwards file events from the observer thread to a FileWatcher."""

    def __init__(self, watcher: 'FileWatcher'):
        super().__init__()
        self.watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _CHANGE_EVENTS:
            return
        self.watcher._dispatch(os.fsdecode(event.src_path))
        dest_path = getattr(event, 'dest_path', None)
        if dest_path:
            self.watcher._dispatch(os.fsdecode(dest_path))


class FileWatcher:
    """Registry of per-file callbacks fed by a watchdog observer.

    Args:
        observer_factory: Builds the watchdog observer. Swap in
                          watchdog.observers.polling.PollingObserver for
                          filesystems without native events.
    """

    def __init__(self, observer_factory: Callable[[], Any] = Observer):
        self._observer_factory = observer_factory
        self._observer = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._handler = _ChangeHandler(self)
        self._callbacks: Dict[str, List[Callback]] = {}
        self._directories: Dict[str, int] = {}  # directory -> watched files in it
        self._scheduled: Dict[str, Any] = {}  # directory -> ObservedWatch

    def watch(self, path: str, callback: Callback) -> None:
        """Call callback(path) whenever the file at path changes."""
        path = os.path.abspath(path)
        callbacks = self._callbacks.setdefault(path, [])
        callbacks.append(callback)
        if len(callbacks) == 1:
            directory = os.path.dirname(path)
            self._directories[directory] = self._directories.get(directory, 0) + 1
            if self._directories[directory] == 1:
                self._schedule(directory)

    def unwatch(self, path: str, callback: Callback) -> bool:
        """Remove one registration of callback on path.

        Returns:
            True if a registration was removed.
        """
        path = os.path.abspath(path)
        callbacks = self._callbacks.get(path)
        if not callbacks or callback not in callbacks:
            return False
        callbacks.remove(callback)
        if not callbacks:
            del self._callbacks[path]
            directory = os.path.dirname(path)
            self._directories[directory] -= 1
            if not self._directories[directory]:
                del self._directories[directory]
                self._unschedule(directory)
        return True

    def listeners(self, path: str) -> List[Callback]:
        """Return a copy of the callbacks registered on path."""
        return list(self._callbacks.get(os.path.abspath(path), []))

    def watched_paths(self) -> List[str]:
        """Return every path with at least one registration."""
        return list(self._callbacks)

    def notify(self, path: str) -> int:
        """Run every callback registered on path.

        Each registration fires independently; one failing callback does not
        keep the others from running.

        Returns:
            Number of callbacks run.
        """
        path = os.path.abspath(path)
        callbacks = self.listeners(path)
        for callback in callbacks:
            try:
                callback(path)
            except Exception:
                logger.exception("watch callback %r for %s failed", callback, path)
        return len(callbacks)

    def start(self) -> None:
        """Start observing the filesystem.

        When called from a running event loop, callbacks are delivered on
        that loop; otherwise they run on the observer thread.
        """
        if self._observer is not None:
            return
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError:
            self._loop = None
        self._observer = self._observer_factory()
        for directory in self._directories:
            self._schedule(directory)
        self._observer.start()
        logger.debug("file watcher started (%d directories)", len(self._scheduled))

    def stop(self) -> None:
        """Stop observing. Registrations are kept."""
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join()
        self._observer = None
        self._scheduled.clear()
        self._loop = None
        logger.debug("file watcher stopped")

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def _schedule(self, directory: str) -> None:
        if self._observer is None or directory in self._scheduled:
            return
        try:
            self._scheduled[directory] = self._observer.schedule(
                self._handler, directory, recursive=False
            )
        except OSError as e:
            logger.warning("cannot watch directory %s: %s", directory, e)

    def _unschedule(self, directory: str) -> None:
        watch = self._scheduled.pop(directory, None)
        if watch is not None and self._observer is not None:
            self._observer.unschedule(watch)

    def _dispatch(self, path: str) -> None:
        """Route an observer event to notify() on the right thread."""
        path = os.path.abspath(path)
        if path not in self._callbacks:
            return
        loop = self._loop
        if loop is None:
            self.notify(path)
        elif not loop.is_closed():
            loop.call_soon_threadsafe(self.notify, path)
