"""Tests for WatchCoordinator."""

import asyncio

import pytest
from unittest.mock import MagicMock

from depwatch.artifact import Artifact, NodeError
from depwatch.resolver import Resolver, read_text
from depwatch.watching import FileWatcher, RootListeners, WatchCoordinator


@pytest.fixture
def site(tmp_path):
    """index.html including app.js and style.css."""
    (tmp_path / "index.html").write_text(
        '<script src="app.js"></script>\n<link rel="stylesheet" href="style.css">'
    )
    (tmp_path / "app.js").write_text("alert(1);")
    (tmp_path / "style.css").write_text("p {}")
    return tmp_path


@pytest.fixture
def watcher():
    """A watcher that is never started; tests fire changes with notify()."""
    return FileWatcher()


@pytest.fixture
def coordinator(site, watcher):
    return WatchCoordinator(resolver=Resolver(base_path=site), watcher=watcher)


@pytest.fixture
def root():
    return Artifact("template", "index.html")


class TestWatch:
    """Tests for the first resolution of a watched root."""

    @pytest.mark.asyncio
    async def test_returns_tree_and_notifies(self, coordinator, root):
        """The listener gets the first tree with the root as trigger."""
        listener = MagicMock()

        tree = await coordinator.watch(root, listener)

        assert [c.artifact.name for c in tree.children] == ["app.js", "style.css"]
        listener.assert_called_once_with(tree, root)
        assert coordinator.tree_for(root) is tree

    @pytest.mark.asyncio
    async def test_every_node_watched(self, coordinator, watcher, root, site):
        """One internal watch per node of the tree."""
        await coordinator.watch(root, MagicMock())

        assert sorted(watcher.watched_paths()) == sorted(
            str(site / name) for name in ("index.html", "app.js", "style.css")
        )
        assert coordinator.watch_count == 3

    @pytest.mark.asyncio
    async def test_missing_root_still_watched(self, coordinator, watcher, site):
        """An unreadable root is watched so creating it triggers a rebuild."""
        listener = MagicMock()
        tree = await coordinator.watch(Artifact("script", "later.js"), listener)

        assert tree.error is NodeError.UNREADABLE_FILE
        assert watcher.watched_paths() == [str(site / "later.js")]

        (site / "later.js").write_text("var x;")
        watcher.notify(str(site / "later.js"))
        await coordinator.wait_idle()

        fresh, _ = listener.call_args[0]
        assert fresh.error is None
        assert fresh.artifact.data == "var x;"


class TestRebuild:
    """Tests for rebuilding after a file change."""

    @pytest.mark.asyncio
    async def test_change_gives_one_notification(self, coordinator, watcher, root, site):
        """Changing a dependency rebuilds once and reports the changed artifact."""
        listener = MagicMock()
        await coordinator.watch(root, listener)

        (site / "app.js").write_text("alert(2);")
        watcher.notify(str(site / "app.js"))
        await coordinator.wait_idle()

        assert listener.call_count == 2
        tree, trigger = listener.call_args[0]
        assert trigger.filename == str(site / "app.js")
        assert tree.children[0].artifact.data == "alert(2);"
        assert coordinator.tree_for(root) is tree

    @pytest.mark.asyncio
    async def test_old_watches_replaced(self, coordinator, watcher, root, site):
        """A rebuild leaves exactly one registration per node."""
        await coordinator.watch(root, MagicMock())

        watcher.notify(str(site / "index.html"))
        await coordinator.wait_idle()

        assert len(watcher.listeners(str(site / "app.js"))) == 1
        assert coordinator.watch_count == 3

    @pytest.mark.asyncio
    async def test_new_dependency_watched(self, coordinator, watcher, root, site):
        """Dependencies added by a change get watched."""
        await coordinator.watch(root, MagicMock())

        (site / "extra.js").write_text("")
        (site / "app.js").write_text('"require extra.js";')
        watcher.notify(str(site / "app.js"))
        await coordinator.wait_idle()

        assert str(site / "extra.js") in watcher.watched_paths()

    @pytest.mark.asyncio
    async def test_removed_dependency_unwatched(self, coordinator, watcher, root, site):
        """Dependencies dropped by a change are no longer watched."""
        await coordinator.watch(root, MagicMock())

        (site / "index.html").write_text('<script src="app.js"></script>')
        watcher.notify(str(site / "index.html"))
        await coordinator.wait_idle()

        assert str(site / "style.css") not in watcher.watched_paths()

    @pytest.mark.asyncio
    async def test_changes_coalesce_while_rebuilding(self, coordinator, watcher, root, site):
        """Changes arriving before a rebuild finishes cause a single follow-up."""
        listener = MagicMock()
        await coordinator.watch(root, listener)

        watcher.notify(str(site / "app.js"))
        watcher.notify(str(site / "style.css"))
        watcher.notify(str(site / "index.html"))
        await coordinator.wait_idle()

        assert listener.call_count == 3
        triggers = [call[0][1].filename for call in listener.call_args_list[1:]]
        assert triggers == [str(site / "app.js"), str(site / "index.html")]

    @pytest.mark.asyncio
    async def test_shared_file_watched_once(self, coordinator, watcher, site):
        """A file reached through two dependencies rebuilds once per change."""
        (site / "page.html").write_text('<script src="a.js"></script><script src="b.js"></script>')
        (site / "a.js").write_text('"require c.js";')
        (site / "b.js").write_text('"require c.js";')
        (site / "c.js").write_text("")
        listener = MagicMock()
        tree = await coordinator.watch(Artifact("template", "page.html"), listener)
        assert [c.children[0].artifact.name for c in tree.children] == ["c.js", "c.js"]

        assert len(watcher.listeners(str(site / "c.js"))) == 1
        assert coordinator.watch_count == 4

        watcher.notify(str(site / "c.js"))
        await coordinator.wait_idle()

        assert listener.call_count == 2


class TestUnwatch:
    """Tests for removing subscriptions."""

    @pytest.mark.asyncio
    async def test_unwatch_stops_notifications(self, coordinator, watcher, root, site):
        """After unwatch nothing is watched and nothing is notified."""
        listener = MagicMock()
        await coordinator.watch(root, listener)

        assert coordinator.unwatch(root, listener) is True

        assert watcher.watched_paths() == []
        assert coordinator.tree_for(root) is None
        assert watcher.notify(str(site / "app.js")) == 0
        await coordinator.wait_idle()
        listener.assert_called_once()

    @pytest.mark.asyncio
    async def test_unwatch_unknown(self, coordinator, root):
        """Unwatching something never watched reports False."""
        assert coordinator.unwatch(root, MagicMock()) is False

    @pytest.mark.asyncio
    async def test_two_listeners_notified_separately(self, coordinator, watcher, root, site):
        """Each listener gets one notification per change; unwatch is per listener."""
        first, second = MagicMock(), MagicMock()
        await coordinator.watch(root, first)
        await coordinator.watch(root, second)
        assert first.call_count == 1
        assert second.call_count == 1

        watcher.notify(str(site / "app.js"))
        await coordinator.wait_idle()
        assert first.call_count == 2
        assert second.call_count == 2

        coordinator.unwatch(root, first)
        watcher.notify(str(site / "app.js"))
        await coordinator.wait_idle()

        assert first.call_count == 2
        assert second.call_count == 3
        assert coordinator.tree_for(root) is not None
        assert coordinator.watch_count == 3

    @pytest.mark.asyncio
    async def test_unwatch_during_first_resolution(self, site, watcher, root):
        """A resolution finishing after unwatch registers nothing."""
        gate = asyncio.Event()

        async def gated_reader(path):
            await gate.wait()
            return await read_text(path)

        coordinator = WatchCoordinator(
            resolver=Resolver(reader=gated_reader, base_path=site), watcher=watcher
        )
        listener = MagicMock()

        task = asyncio.ensure_future(coordinator.watch(root, listener))
        await asyncio.sleep(0)
        coordinator.unwatch(root, listener)
        gate.set()

        assert await task is None
        assert watcher.watched_paths() == []
        assert coordinator.tree_for(root) is None
        listener.assert_not_called()

    @pytest.mark.asyncio
    async def test_unwatch_during_rebuild(self, coordinator, watcher, root, site):
        """A rebuild finishing after unwatch is discarded."""
        listener = MagicMock()
        await coordinator.watch(root, listener)

        watcher.notify(str(site / "app.js"))
        coordinator.unwatch(root, listener)
        await coordinator.wait_idle()

        listener.assert_called_once()
        assert watcher.watched_paths() == []

    @pytest.mark.asyncio
    async def test_close(self, coordinator, watcher, root):
        """close() removes every subscription."""
        await coordinator.watch(root, MagicMock())
        await coordinator.watch(Artifact("resource", "style.css"), MagicMock())

        coordinator.close()

        assert watcher.watched_paths() == []
        assert len(coordinator.listeners) == 0


class TestErrors:
    """Tests for error reporting."""

    @pytest.mark.asyncio
    async def test_deleted_dependency_reported(self, coordinator, watcher, root, site):
        """Deleting a dependency marks it unreadable and fires error listeners."""
        errors = MagicMock()
        coordinator.on_error(errors)
        listener = MagicMock()
        await coordinator.watch(root, listener)
        errors.assert_not_called()

        (site / "app.js").unlink()
        watcher.notify(str(site / "app.js"))
        await coordinator.wait_idle()

        tree, _ = listener.call_args[0]
        assert tree.children[0].error is NodeError.UNREADABLE_FILE
        errors.assert_called_once_with(tree, tree.children[0].artifact)

    @pytest.mark.asyncio
    async def test_repeated_error_reported_once_per_window(self, site, watcher):
        """The same failure is reported again only after the window passes."""
        now = [0.0]
        coordinator = WatchCoordinator(
            resolver=Resolver(base_path=site), watcher=watcher,
            error_window=1.0, clock=lambda: now[0],
        )
        errors = MagicMock()
        coordinator.on_error(errors)

        await coordinator.watch(Artifact("script", "missing.js"), MagicMock())
        watcher.notify(str(site / "missing.js"))
        await coordinator.wait_idle()
        assert errors.call_count == 1

        now[0] = 5.0
        watcher.notify(str(site / "missing.js"))
        await coordinator.wait_idle()
        assert errors.call_count == 2

    @pytest.mark.asyncio
    async def test_roots_sharing_broken_file_each_reported(self, site, watcher):
        """A broken file shared by two roots is reported for both trees."""
        (site / "a.html").write_text('<script src="gone.js"></script>')
        (site / "b.html").write_text('<script src="gone.js"></script>')
        coordinator = WatchCoordinator(
            resolver=Resolver(base_path=site), watcher=watcher,
            error_window=60.0, clock=lambda: 0.0,
        )
        errors = MagicMock()
        coordinator.on_error(errors)

        await coordinator.watch(Artifact("template", "a.html"), MagicMock())
        await coordinator.watch(Artifact("template", "b.html"), MagicMock())

        reported = [(tree.artifact.name, artifact.name) for tree, artifact in
                    (call[0] for call in errors.call_args_list)]
        assert reported == [("a.html", "gone.js"), ("b.html", "gone.js")]

    @pytest.mark.asyncio
    async def test_expired_reports_forgotten(self, site, watcher):
        """Reports older than the window and those of unwatched roots are dropped."""
        now = [0.0]
        coordinator = WatchCoordinator(
            resolver=Resolver(base_path=site), watcher=watcher,
            error_window=1.0, clock=lambda: now[0],
        )
        first = Artifact("script", "missing.js")
        await coordinator.watch(first, MagicMock())
        assert len(coordinator._reported) == 1

        now[0] = 5.0
        listener = MagicMock()
        second = Artifact("script", "also-missing.js")
        await coordinator.watch(second, listener)
        assert [k[1] for k in coordinator._reported] == [str(site / "also-missing.js")]

        coordinator.unwatch(second, listener)
        assert coordinator._reported == {}

    @pytest.mark.asyncio
    async def test_failing_error_listener(self, coordinator):
        """A failing error listener does not break the rebuild."""
        coordinator.on_error(MagicMock(side_effect=RuntimeError("boom")))
        after = MagicMock()
        coordinator.on_error(after)

        tree = await coordinator.watch(Artifact("script", "missing.js"), MagicMock())

        after.assert_called_once_with(tree, tree.artifact)

    @pytest.mark.asyncio
    async def test_remove_error_listener(self, coordinator):
        """Removed error listeners are not called."""
        errors = MagicMock()
        coordinator.on_error(errors)
        assert coordinator.remove_error_listener(errors) is True
        assert coordinator.remove_error_listener(errors) is False

        await coordinator.watch(Artifact("script", "missing.js"), MagicMock())

        errors.assert_not_called()

    @pytest.mark.asyncio
    async def test_failing_listener_keeps_watching(self, coordinator, watcher, root, site):
        """An exception in a tree listener does not drop the subscription."""
        listener = MagicMock(side_effect=RuntimeError("boom"))
        await coordinator.watch(root, listener)

        watcher.notify(str(site / "app.js"))
        await coordinator.wait_idle()

        assert listener.call_count == 2
        assert coordinator.watch_count == 3


class TestSharedListeners:
    """Tests for injecting the listener registry."""

    @pytest.mark.asyncio
    async def test_injected_registry_used(self, site, watcher, root):
        """The coordinator records subscriptions in the given registry."""
        listeners = RootListeners()
        coordinator = WatchCoordinator(
            resolver=Resolver(base_path=site), watcher=watcher, listeners=listeners
        )
        listener = MagicMock()

        await coordinator.watch(root, listener)

        assert listeners.has(str(site / "index.html"), listener)
