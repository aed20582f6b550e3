"""Periodic file watcher for filesystems without reliable change events."""

import logging
import threading
from dataclasses import replace
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from .config import WatcherConfig
from .hash_store import HashStore, has_changed
from .models import PathLike, normalize_files


class TimedWatcher:
    """
    Re-hashes every watched file on a fixed interval.

    Meant for filesystems where OS notification is missing or unreliable
    (some FUSE and network mounts). All changes found during one sweep
    produce a single notification.
    """

    def __init__(
        self,
        files: Iterable[PathLike],
        interval_s: float,
        notify: Callable[[], object],
        config: Optional[WatcherConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the watcher.

        Args:
            files: Paths of the files to watch
            interval_s: Seconds between sweeps
            notify: Called once per sweep that found a change
            config: Watcher configuration (interval_s overrides its interval)
            logger: Logger for diagnostics

        Raises:
            WatcherConfigError: If the file list or config is invalid
        """
        self.files: List[Path] = normalize_files(files)
        self.notify = notify
        self.config = replace(config or WatcherConfig(), interval_s=interval_s).validate()
        self.interval_s = self.config.interval_s
        self.logger = logger or logging.getLogger(__name__)
        self.store = HashStore(self.config.chunk_size, self.logger)
        self._started = False

    def start(self) -> None:
        """Hash the initial state of every file."""
        if self._started:
            return
        self.store.populate(self.files)
        self._started = True

    def sweep(self) -> bool:
        """
        Check every watched file once.

        Returns:
            True if at least one file changed and a notification was sent
        """
        changed = False
        for file in self.files:
            if has_changed(self.store, file):
                self.logger.info(f"detected change on {file.name}, reloading")
                changed = True

        if changed:
            self.notify()
        else:
            self.logger.debug("nothing changed, not reloading")
        return changed

    def run(self, stop_event: Optional[threading.Event] = None) -> None:
        """
        Sweep on every tick until the stop event is set.

        Without a stop event this never returns.

        Args:
            stop_event: Stops the loop when set
        """
        self.start()
        stop_event = stop_event or threading.Event()

        while not stop_event.wait(timeout=self.interval_s):
            self.logger.debug("running timed reload (timer fired)")
            self.sweep()


def watch_timed(
    files: Iterable[PathLike],
    interval_s: float,
    notify: Callable[[], object],
    stop_event: Optional[threading.Event] = None,
    config: Optional[WatcherConfig] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Watch files by re-hashing them every ``interval_s`` seconds.

    Runs on the calling thread until ``stop_event`` is set, or forever
    without one.
    """
    watcher = TimedWatcher(files, interval_s, notify, config=config, logger=logger)
    watcher.run(stop_event)
