"""Tests for event-driven watcher module."""

import errno
import logging
import os
import pytest
import sys
import threading
import time
from pathlib import Path

from reloadwatch.channel import NotificationChannel
from reloadwatch.config import WatcherConfig
from reloadwatch.exceptions import DuplicateFileNameError, WatcherSetupError
from reloadwatch.fs_watcher import EventWatcher, FSEventHandler, watch_auto
from reloadwatch.hash_store import hash_file
from reloadwatch.models import EventKind, RawFSEvent


FAST = WatcherConfig(poll_timeout_s=0.05)


class FakeWatch:
    def __init__(self, path):
        self.path = path


class FakeObserver:
    """Records schedule calls instead of talking to the OS."""

    def __init__(self, fail_paths=(), fail_errno=errno.ENOENT):
        self.fail_paths = {str(p) for p in fail_paths}
        self.fail_errno = fail_errno
        self.scheduled = []
        self.unscheduled = []
        self.started = False
        self.stopped = False

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self, timeout=None):
        pass

    def schedule(self, handler, path, recursive=False):
        if path in self.fail_paths:
            raise OSError(self.fail_errno, os.strerror(self.fail_errno), path)
        self.scheduled.append(path)
        return FakeWatch(path)

    def unschedule(self, watch):
        self.unscheduled.append(watch.path)


class Counter:
    def __init__(self):
        self.count = 0

    def __call__(self):
        self.count += 1


def atomic_write(path: Path, text: str) -> None:
    tmp = path.with_name(f".{path.name}.tmp")
    tmp.write_text(text)
    os.replace(tmp, path)


class TestFSEventHandler:
    """Tests for FSEventHandler class."""

    def test_modified(self, tmp_path):
        from watchdog.events import FileModifiedEvent

        events = []
        handler = FSEventHandler(events.append)
        handler.dispatch(FileModifiedEvent(str(tmp_path / "a.txt")))

        assert len(events) == 1
        assert events[0].kind == EventKind.MODIFIED
        assert events[0].path == tmp_path / "a.txt"
        assert events[0].is_directory is False

    def test_created_and_deleted(self, tmp_path):
        from watchdog.events import FileCreatedEvent, FileDeletedEvent

        events = []
        handler = FSEventHandler(events.append)
        handler.dispatch(FileDeletedEvent(str(tmp_path / "a.txt")))
        handler.dispatch(FileCreatedEvent(str(tmp_path / "a.txt")))

        assert [e.kind for e in events] == [EventKind.DELETED, EventKind.CREATED]

    def test_move_splits_into_delete_and_create(self, tmp_path):
        from watchdog.events import FileMovedEvent

        events = []
        handler = FSEventHandler(events.append)
        handler.dispatch(FileMovedEvent(str(tmp_path / ".a.txt.tmp"), str(tmp_path / "a.txt")))

        assert [(e.kind, e.name) for e in events] == [
            (EventKind.DELETED, ".a.txt.tmp"),
            (EventKind.CREATED, "a.txt"),
        ]

    def test_directory_events_flagged(self, tmp_path):
        from watchdog.events import DirModifiedEvent

        events = []
        handler = FSEventHandler(events.append)
        handler.dispatch(DirModifiedEvent(str(tmp_path)))

        assert events[0].is_directory is True


class TestEventWatcherSetup:
    """Tests for EventWatcher construction and start."""

    def test_start_populates_store(self, tmp_path):
        a = tmp_path / "a.txt"
        a.write_text("hello")
        observer = FakeObserver()
        watcher = EventWatcher([a], Counter(), observer_factory=lambda: observer)

        watcher.start()

        assert watcher.store.get("a.txt") == hash_file(a)
        assert observer.started is True

    def test_watches_file_and_directory(self, tmp_path):
        a = tmp_path / "a.txt"
        b = tmp_path / "b.txt"
        a.write_text("a")
        b.write_text("b")
        observer = FakeObserver()
        watcher = EventWatcher([a, b], Counter(), observer_factory=lambda: observer)

        watcher.start()

        assert observer.scheduled.count(str(tmp_path)) == 1
        assert str(a) in observer.scheduled
        assert str(b) in observer.scheduled
        assert set(watcher.watched_paths) == {a, b, tmp_path}

    def test_start_is_idempotent(self, tmp_path):
        a = tmp_path / "a.txt"
        a.write_text("a")
        observer = FakeObserver()
        watcher = EventWatcher([a], Counter(), observer_factory=lambda: observer)

        watcher.start()
        watcher.start()

        assert len(observer.scheduled) == 2

    def test_setup_error(self, tmp_path):
        def broken_factory():
            raise OSError(24, "inotify instance limit reached")

        watcher = EventWatcher([tmp_path / "a.txt"], Counter(), observer_factory=broken_factory)

        with pytest.raises(WatcherSetupError, match="inotify"):
            watcher.start()

    def test_setup_error_from_run(self, tmp_path):
        def broken_factory():
            raise OSError(24, "inotify instance limit reached")

        watcher = EventWatcher([tmp_path / "a.txt"], Counter(), observer_factory=broken_factory)

        with pytest.raises(WatcherSetupError):
            watcher.run(threading.Event())

    def test_duplicate_base_names_rejected(self, tmp_path):
        with pytest.raises(DuplicateFileNameError):
            EventWatcher([tmp_path / "x" / "a.txt", tmp_path / "y" / "a.txt"], Counter())

    def test_missing_file_still_watches_directory(self, tmp_path):
        missing = tmp_path / "later.txt"
        observer = FakeObserver(fail_paths=[missing])
        watcher = EventWatcher([missing], Counter(), observer_factory=lambda: observer)

        watcher.start()

        assert observer.scheduled == [str(tmp_path)]
        assert "later.txt" not in watcher.store

    def test_permission_denied_is_not_fatal(self, tmp_path):
        a = tmp_path / "a.txt"
        a.write_text("hello")
        observer = FakeObserver(fail_paths=[a], fail_errno=errno.EACCES)
        watcher = EventWatcher([a], Counter(), observer_factory=lambda: observer)

        watcher.start()

        assert observer.scheduled == [str(tmp_path)]
        assert observer.stopped is False

    @pytest.mark.parametrize("code", [errno.EMFILE, errno.ENFILE, errno.ENOSYS])
    def test_notification_unavailable_is_fatal(self, tmp_path, code):
        a = tmp_path / "a.txt"
        a.write_text("hello")
        observer = FakeObserver(fail_paths=[tmp_path], fail_errno=code)
        watcher = EventWatcher([a], Counter(), observer_factory=lambda: observer)

        with pytest.raises(WatcherSetupError):
            watcher.start()

        assert observer.stopped is True
        assert watcher.watched_paths == []

    @pytest.mark.skipif(not sys.platform.startswith("linux"), reason="inotify is Linux only")
    def test_inotify_instance_limit_is_fatal(self, tmp_path, monkeypatch):
        from watchdog.observers import Observer
        from watchdog.observers.inotify import InotifyObserver
        from watchdog.observers import inotify_c

        if Observer is not InotifyObserver:
            pytest.skip("default observer is not inotify")

        def no_instances(self, *args, **kwargs):
            raise OSError(errno.EMFILE, "inotify instance limit reached")

        monkeypatch.setattr(inotify_c.Inotify, "__init__", no_instances)

        a = tmp_path / "a.txt"
        a.write_text("hello")
        watcher = EventWatcher([a], Counter(), config=FAST)

        with pytest.raises(WatcherSetupError, match="inotify instance limit"):
            watcher.start()

        assert watcher.watched_paths == []
        assert watcher._observer is None

    def test_run_raises_when_notification_unavailable(self, tmp_path):
        a = tmp_path / "a.txt"
        a.write_text("hello")
        observer = FakeObserver(fail_paths=[a], fail_errno=errno.EMFILE)
        watcher = EventWatcher([a], Counter(), config=FAST, observer_factory=lambda: observer)

        with pytest.raises(WatcherSetupError):
            watcher.run(threading.Event())


class TestEventWatcherHandleEvent:
    """Tests for EventWatcher.handle_event."""

    @pytest.fixture
    def setup(self, tmp_path):
        a = tmp_path / "a.txt"
        a.write_text("hello")
        observer = FakeObserver()
        counter = Counter()
        watcher = EventWatcher([a], counter, observer_factory=lambda: observer)
        watcher.start()
        return a, observer, counter, watcher

    def test_change_notifies_once(self, setup):
        a, _, counter, watcher = setup
        a.write_text("world")

        assert watcher.handle_event(RawFSEvent(EventKind.MODIFIED, a)) is True
        assert counter.count == 1

        assert watcher.handle_event(RawFSEvent(EventKind.MODIFIED, a)) is False
        assert counter.count == 1

    def test_no_change_no_notify(self, setup):
        a, _, counter, watcher = setup

        assert watcher.handle_event(RawFSEvent(EventKind.MODIFIED, a)) is False
        assert counter.count == 0

    def test_unrelated_file_ignored(self, setup, tmp_path):
        a, _, counter, watcher = setup
        a.write_text("world")

        assert watcher.handle_event(RawFSEvent(EventKind.MODIFIED, tmp_path / "other.txt")) is False
        assert counter.count == 0

    def test_matches_by_base_name(self, setup, tmp_path):
        a, _, counter, watcher = setup
        a.write_text("world")

        event = RawFSEvent(EventKind.MODIFIED, tmp_path / "elsewhere" / "a.txt")
        assert watcher.handle_event(event) is True
        assert counter.count == 1

    def test_directory_event_ignored(self, setup, tmp_path):
        a, _, counter, watcher = setup
        a.write_text("world")

        event = RawFSEvent(EventKind.MODIFIED, tmp_path / "a.txt", is_directory=True)
        assert watcher.handle_event(event) is False
        assert counter.count == 0

    def test_delete_does_not_notify(self, setup):
        a, _, counter, watcher = setup
        before = watcher.store.get("a.txt")
        a.unlink()

        assert watcher.handle_event(RawFSEvent(EventKind.DELETED, a)) is False
        assert counter.count == 0
        assert watcher.store.get("a.txt") == before

    def test_create_reregisters_file_watch(self, setup):
        a, observer, _, watcher = setup
        a.unlink()
        watcher.handle_event(RawFSEvent(EventKind.DELETED, a))
        a.write_text("hello")

        watcher.handle_event(RawFSEvent(EventKind.CREATED, a))

        assert observer.unscheduled == [str(a)]
        assert observer.scheduled.count(str(a)) == 2

    def test_recreate_with_same_content_no_notify(self, setup):
        a, _, counter, watcher = setup
        a.unlink()
        watcher.handle_event(RawFSEvent(EventKind.DELETED, a))
        a.write_text("hello")

        assert watcher.handle_event(RawFSEvent(EventKind.CREATED, a)) is False
        assert counter.count == 0

    def test_modify_does_not_reregister(self, setup):
        a, observer, _, watcher = setup
        a.write_text("world")

        watcher.handle_event(RawFSEvent(EventKind.MODIFIED, a))

        assert observer.unscheduled == []


class TestEventWatcherRun:
    """Tests for the EventWatcher loop with a fake observer."""

    def test_stops_on_stop_event(self, tmp_path):
        a = tmp_path / "a.txt"
        a.write_text("hello")
        observer = FakeObserver()
        watcher = EventWatcher([a], Counter(), config=FAST, observer_factory=lambda: observer)
        stop = threading.Event()

        thread = threading.Thread(target=watcher.run, args=(stop,))
        thread.start()
        time.sleep(0.1)
        stop.set()
        thread.join(timeout=2.0)

        assert not thread.is_alive()
        assert observer.stopped is True
        assert watcher.watched_paths == []

    def test_processes_queued_events_in_order(self, tmp_path):
        a = tmp_path / "a.txt"
        a.write_text("hello")
        observer = FakeObserver()
        counter = Counter()
        watcher = EventWatcher([a], counter, config=FAST, observer_factory=lambda: observer)
        stop = threading.Event()

        thread = threading.Thread(target=watcher.run, args=(stop,))
        thread.start()
        time.sleep(0.1)

        a.write_text("world")
        watcher._handler.callback(RawFSEvent(EventKind.MODIFIED, a))
        watcher._handler.callback(RawFSEvent(EventKind.MODIFIED, a))
        time.sleep(0.2)
        stop.set()
        thread.join(timeout=2.0)

        assert counter.count == 1

    def test_subscription_errors_are_logged(self, tmp_path, caplog):
        a = tmp_path / "a.txt"
        a.write_text("hello")
        observer = FakeObserver(fail_paths=[a])
        counter = Counter()
        watcher = EventWatcher([a], counter, config=FAST, observer_factory=lambda: observer)
        stop = threading.Event()

        with caplog.at_level(logging.ERROR):
            thread = threading.Thread(target=watcher.run, args=(stop,))
            thread.start()
            time.sleep(0.2)

            a.write_text("world")
            watcher._handler.callback(RawFSEvent(EventKind.MODIFIED, a))
            time.sleep(0.2)
            stop.set()
            thread.join(timeout=2.0)

        assert "error watching file" in caplog.text
        assert counter.count == 1


class TestEventWatcherIntegration:
    """Tests against the real watchdog observer."""

    @pytest.fixture
    def running(self, tmp_path):
        a = tmp_path / "a.txt"
        a.write_text("hello")
        channel = NotificationChannel()
        stop = threading.Event()
        watcher = EventWatcher([a], channel.notify, config=FAST)

        thread = threading.Thread(target=watcher.run, args=(stop,), daemon=True)
        thread.start()
        time.sleep(0.3)

        yield a, channel, watcher

        stop.set()
        thread.join(timeout=5.0)

    def settle(self, channel):
        time.sleep(0.5)
        channel.drain()

    def test_detects_modification(self, running):
        a, channel, _ = running
        a.write_text("world")

        assert channel.wait(timeout=3.0) is True

    def test_no_notification_without_change(self, running):
        a, channel, _ = running
        a.write_text("world")
        assert channel.wait(timeout=3.0) is True
        self.settle(channel)

        assert channel.wait(timeout=0.5) is False

    def test_same_content_rewrite_ignored(self, running):
        a, channel, _ = running
        atomic_write(a, "hello")

        assert channel.wait(timeout=1.0) is False

    def test_atomic_replace_detected(self, running):
        a, channel, watcher = running
        atomic_write(a, "world")

        assert channel.wait(timeout=3.0) is True
        self.settle(channel)
        assert watcher.store.get("a.txt") == hash_file(a)

    def test_unrelated_file_ignored(self, running, tmp_path):
        _, channel, _ = running
        (tmp_path / "other.txt").write_text("noise")

        assert channel.wait(timeout=1.0) is False

    def test_survives_delete_and_recreate(self, running):
        a, channel, _ = running
        a.unlink()
        time.sleep(0.3)
        atomic_write(a, "hello")
        time.sleep(0.3)
        assert channel.pending == 0

        a.write_text("edited")

        assert channel.wait(timeout=3.0) is True

    def test_plain_recreate_renews_file_watch(self, running):
        a, channel, watcher = running
        old_watch = watcher._file_watches[a]

        a.unlink()
        time.sleep(0.3)
        a.write_text("hello")
        self.settle(channel)

        assert a in watcher._file_watches
        assert watcher._file_watches[a] is not old_watch

        a.write_text("edited")

        assert channel.wait(timeout=3.0) is True

    def test_watch_auto_with_stop_event(self, tmp_path):
        a = tmp_path / "a.txt"
        a.write_text("hello")
        channel = NotificationChannel()
        stop = threading.Event()

        thread = threading.Thread(
            target=watch_auto,
            args=([a], channel.notify),
            kwargs={"stop_event": stop, "config": FAST},
            daemon=True,
        )
        thread.start()
        time.sleep(0.3)

        atomic_write(a, "world")
        assert channel.wait(timeout=3.0) is True

        stop.set()
        thread.join(timeout=5.0)
        assert not thread.is_alive()
