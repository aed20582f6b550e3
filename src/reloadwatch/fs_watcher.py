"""Event-driven file watcher using the watchdog library."""

import errno
import logging
import queue
import threading
import time
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver, ObservedWatch

from .config import WatcherConfig
from .exceptions import SubscriptionError, WatcherError, WatcherSetupError
from .hash_store import HashStore, has_changed
from .models import EventKind, PathLike, RawFSEvent, normalize_files


_DIR_EVENTS = (DirCreatedEvent, DirDeletedEvent, DirModifiedEvent, DirMovedEvent)

# The OS notification mechanism itself cannot be created.
_FATAL_ERRNOS = frozenset({errno.EMFILE, errno.ENFILE, errno.ENOSYS})


class FSEventHandler(FileSystemEventHandler):
    """Handler that converts watchdog events to RawFSEvent."""

    def __init__(self, callback: Callable[[RawFSEvent], None]):
        super().__init__()
        self.callback = callback

    def _emit(self, kind: EventKind, path: str, is_directory: bool = False):
        """Emit a RawFSEvent to the callback."""
        raw_event = RawFSEvent(
            kind=kind,
            path=Path(path),
            is_directory=is_directory,
            timestamp=time.time(),
        )
        self.callback(raw_event)

    def on_created(self, event):
        self._emit(EventKind.CREATED, event.src_path, isinstance(event, _DIR_EVENTS))

    def on_deleted(self, event):
        self._emit(EventKind.DELETED, event.src_path, isinstance(event, _DIR_EVENTS))

    def on_modified(self, event):
        self._emit(EventKind.MODIFIED, event.src_path, isinstance(event, _DIR_EVENTS))

    def on_closed(self, event):
        self._emit(EventKind.CLOSED, event.src_path)

    def on_moved(self, event):
        # A rename onto a watched name is how atomic replaces show up, so
        # the destination is reported as a create.
        is_dir = isinstance(event, _DIR_EVENTS)
        self._emit(EventKind.DELETED, event.src_path, is_dir)
        self._emit(EventKind.CREATED, event.dest_path, is_dir)


class EventWatcher:
    """
    Watches a fixed set of files through OS file-change notification.

    Every file gets a watch of its own plus one on its containing
    directory: overwrites show up as modify events on the file, while
    removals and re-adds are only reliably reported on the directory.
    Raw events are queued by the observer thread and handled one at a
    time by ``run()``, which is the only code touching the hash store.
    """

    def __init__(
        self,
        files: Iterable[PathLike],
        notify: Callable[[], object],
        config: Optional[WatcherConfig] = None,
        logger: Optional[logging.Logger] = None,
        observer_factory: Callable[[], BaseObserver] = Observer,
    ):
        """
        Initialize the watcher.

        Args:
            files: Paths of the files to watch
            notify: Called once per detected change
            config: Watcher configuration
            logger: Logger for diagnostics
            observer_factory: Creates the watchdog observer

        Raises:
            WatcherConfigError: If the file list or config is invalid
        """
        self.files: List[Path] = normalize_files(files)
        self.notify = notify
        self.config = (config or WatcherConfig()).validate()
        self.logger = logger or logging.getLogger(__name__)
        self.store = HashStore(self.config.chunk_size, self.logger)

        self._observer_factory = observer_factory
        self._observer: Optional[BaseObserver] = None
        self._events: "queue.Queue[Union[RawFSEvent, WatcherError]]" = queue.Queue()
        self._handler = FSEventHandler(self._events.put)
        self._file_watches: Dict[Path, ObservedWatch] = {}
        self._dir_watches: Dict[Path, ObservedWatch] = {}

    def start(self) -> None:
        """
        Hash the initial state of every file and register OS watches.

        Raises:
            WatcherSetupError: If the observer cannot be created or started,
                or OS change notification is unavailable
        """
        if self._observer is not None:
            return

        self.store.populate(self.files)

        try:
            observer = self._observer_factory()
            observer.start()
        except (OSError, RuntimeError) as e:
            raise WatcherSetupError(f"cannot start file observer: {e}") from e
        self._observer = observer

        try:
            for file in self.files:
                self._watch_file(file, fatal=True)
                self._watch_dir(file.parent, fatal=True)
        except OSError as e:
            self.close()
            raise WatcherSetupError(f"cannot create file watch: {e}") from e

    def _schedule(self, path: Path, fatal: bool = False) -> Optional[ObservedWatch]:
        if self._observer is None:
            return None
        try:
            return self._observer.schedule(self._handler, str(path), recursive=False)
        except (OSError, RuntimeError) as e:
            if fatal and getattr(e, "errno", None) in _FATAL_ERRNOS:
                raise
            self._events.put(SubscriptionError(f"cannot watch {path}: {e}"))
            return None

    def _watch_file(self, file: Path, fatal: bool = False) -> None:
        """(Re)register the direct watch on a file."""
        old = self._file_watches.pop(file, None)
        if old is not None and self._observer is not None:
            try:
                self._observer.unschedule(old)
            except KeyError:
                # already dropped by the observer
                pass

        watch = self._schedule(file, fatal)
        if watch is not None:
            self._file_watches[file] = watch

    def _watch_dir(self, directory: Path, fatal: bool = False) -> None:
        if directory in self._dir_watches:
            return
        watch = self._schedule(directory, fatal)
        if watch is not None:
            self._dir_watches[directory] = watch

    def handle_event(self, event: RawFSEvent) -> bool:
        """
        Process one raw event.

        Only the first watched file whose base name matches the event
        is considered.

        Args:
            event: Raw filesystem event

        Returns:
            True if a change was detected and a notification sent
        """
        if event.is_directory:
            return False

        for file in self.files:
            if event.name != file.name:
                continue

            self.logger.debug(f"received fs event for {file.name} ({event.kind.value})")

            # Deleting a file can silently drop the direct watch on it.
            if event.kind is EventKind.CREATED:
                self._watch_file(file)

            if has_changed(self.store, file):
                self.logger.info(f"detected change on {file.name}")
                self.notify()
                return True

            self.logger.debug(f"no change on {file.name}")
            return False

        return False

    def run(self, stop_event: Optional[threading.Event] = None) -> None:
        """
        Process events until the stop event is set.

        Without a stop event this never returns.

        Args:
            stop_event: Stops the loop when set

        Raises:
            WatcherSetupError: If the observer cannot be started
        """
        self.start()
        stop_event = stop_event or threading.Event()
        timeout = self.config.poll_timeout_s

        try:
            while not stop_event.is_set():
                try:
                    item = self._events.get(timeout=timeout)
                except queue.Empty:
                    continue

                if isinstance(item, WatcherError):
                    self.logger.error(f"error watching file: {item}")
                    continue

                self.handle_event(item)
        finally:
            self.close()

    def close(self) -> None:
        """Stop the observer and drop all OS watches."""
        observer, self._observer = self._observer, None
        if observer is None:
            return

        observer.stop()
        observer.join(timeout=5.0)
        self._file_watches.clear()
        self._dir_watches.clear()

    @property
    def watched_paths(self) -> List[Path]:
        """Paths that currently hold an OS watch."""
        return list(self._file_watches) + list(self._dir_watches)


def watch_auto(
    files: Iterable[PathLike],
    notify: Callable[[], object],
    stop_event: Optional[threading.Event] = None,
    config: Optional[WatcherConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Watch files using OS change notification (inotify, FSEvents, ...).

    Runs on the calling thread until ``stop_event`` is set, or forever
    without one.
    """
    watcher = EventWatcher(files, notify, config=config, logger=logger)
    watcher.run(stop_event)
