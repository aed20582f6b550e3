"""Bounded notification channel between a watcher and its reloader."""

import logging
import queue
import threading
from typing import Optional


class NotificationChannel:
    """
    Single-consumer signal channel with a bounded buffer.

    Signals carry no payload. When the buffer is full, ``notify()`` drops
    the new signal instead of blocking the watch loop: a reload that is
    already pending covers every change made before it runs.
    """

    def __init__(self, capacity: int = 1, logger: Optional[logging.Logger] = None):
        """
        Initialize the channel.

        Args:
            capacity: Maximum number of buffered signals (at least 1)
            logger: Logger for dropped signals
        """
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1: {capacity}")
        self.capacity = capacity
        self.logger = logger or logging.getLogger(__name__)
        self._queue: "queue.Queue[bool]" = queue.Queue(maxsize=capacity)
        self._lock = threading.Lock()
        self._sent = 0
        self._dropped = 0

    def notify(self) -> bool:
        """
        Emit a signal without blocking.

        Returns:
            True if the signal was buffered, False if it was dropped
        """
        try:
            self._queue.put_nowait(True)
        except queue.Full:
            with self._lock:
                self._dropped += 1
            self.logger.debug("reload already pending, dropping notification")
            return False

        with self._lock:
            self._sent += 1
        return True

    __call__ = notify

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until a signal arrives and consume it.

        Args:
            timeout: Seconds to wait, or None to wait forever

        Returns:
            True if a signal was consumed, False on timeout
        """
        try:
            self._queue.get(timeout=timeout)
        except queue.Empty:
            return False
        return True

    def drain(self) -> int:
        """
        Consume every buffered signal.

        Returns:
            Number of signals consumed
        """
        count = 0
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return count
            count += 1

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def sent(self) -> int:
        with self._lock:
            return self._sent

    @property
    def dropped(self) -> int:
        with self._lock:
            return self._dropped
