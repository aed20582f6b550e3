"""Watcher orchestrator: picks a detection mode and manages its thread."""

import logging
import threading
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .channel import NotificationChannel
from .config import WatcherConfig
from .exceptions import WatcherAlreadyRunningError, WatcherNotRunningError
from .fs_watcher import EventWatcher
from .models import PathLike, WatchMode
from .timed_watcher import TimedWatcher


class FileWatcher:
    """
    Runs one watcher over a fixed set of files and signals a channel.

    The watcher loop owns its hash store and OS watches; everything
    else talks to it through the notification channel and the stop
    event.
    """

    def __init__(
        self,
        files: Iterable[PathLike],
        channel: Optional[NotificationChannel] = None,
        config: Optional[WatcherConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the watcher.

        Args:
            files: Paths of the files to watch
            channel: Channel to signal on change (created if omitted)
            config: Watcher configuration
            logger: Logger passed to every component

        Raises:
            WatcherConfigError: If the file list or config is invalid
        """
        self.config = (config or WatcherConfig()).validate()
        self.logger = logger or logging.getLogger(__name__)
        self.channel = channel or NotificationChannel(
            self.config.channel_capacity, self.logger
        )
        self._watcher = self._create_watcher(files)

        self._running = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def _create_watcher(self, files: Iterable[PathLike]) -> Union[EventWatcher, TimedWatcher]:
        if self.config.mode is WatchMode.TIMED:
            return TimedWatcher(
                files,
                self.config.interval_s,
                self.channel.notify,
                config=self.config,
                logger=self.logger,
            )
        return EventWatcher(
            files,
            self.channel.notify,
            config=self.config,
            logger=self.logger,
        )

    @property
    def files(self) -> List[Path]:
        return list(self._watcher.files)

    @property
    def mode(self) -> WatchMode:
        return self.config.mode

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._running

    def _mark_running(self) -> None:
        with self._lock:
            if self._running:
                raise WatcherAlreadyRunningError("Watcher is already running")
            self._running = True
            self._stop_event.clear()

    def start(self) -> None:
        """
        Run the watcher on the calling thread until stop() is called.

        Raises:
            WatcherAlreadyRunningError: If already running
            WatcherSetupError: If OS change notification is unavailable
        """
        self._mark_running()
        self.logger.info(
            f"Watching {len(self.files)} file(s) in {self.mode.value} mode"
        )
        try:
            self._watcher.run(self._stop_event)
        except KeyboardInterrupt:
            pass
        finally:
            with self._lock:
                self._running = False

    def start_async(self) -> None:
        """
        Start the watcher in a background thread and return.

        Setup runs before the thread starts, so a missing OS notification
        mechanism is raised here rather than lost in the thread.

        Raises:
            WatcherAlreadyRunningError: If already running
            WatcherSetupError: If OS change notification is unavailable
        """
        self._mark_running()
        try:
            self._watcher.start()
        except Exception:
            with self._lock:
                self._running = False
            raise

        self.logger.info(
            f"Watching {len(self.files)} file(s) in {self.mode.value} mode"
        )
        self._thread = threading.Thread(
            target=self._run_thread,
            name=f"FileWatcher-{self.mode.value}",
            daemon=True,
        )
        self._thread.start()

    def _run_thread(self) -> None:
        try:
            self._watcher.run(self._stop_event)
        except Exception as e:
            self.logger.error(f"Watcher loop failed: {type(e).__name__}: {e}")
        finally:
            with self._lock:
                self._running = False

    def stop(self, timeout: float = 5.0) -> None:
        """
        Stop the watcher and wait for its thread to finish.

        Raises:
            WatcherNotRunningError: If the watcher was never started
        """
        if not self._running and self._thread is None:
            raise WatcherNotRunningError("Watcher is not running")

        self._stop_event.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread.is_alive():
            thread.join(timeout=timeout)

    def wait_for_change(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the watcher signals a change.

        Args:
            timeout: Seconds to wait, or None to wait forever

        Returns:
            True if a change was signaled, False on timeout
        """
        return self.channel.wait(timeout)

    def close(self) -> None:
        """Stop the watcher if it is running."""
        if self._running or self._thread is not None:
            self.stop()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
