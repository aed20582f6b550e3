"""Configuration for the reloadwatch package."""

from dataclasses import dataclass

from .exceptions import WatcherConfigError
from .models import WatchMode


@dataclass
class WatcherConfig:
    """
    Configuration options for the file watcher.

    Attributes:
        mode: Detection strategy, event-driven (AUTO) or periodic (TIMED)
        interval_s: Seconds between sweeps in TIMED mode
        poll_timeout_s: Seconds the event loop blocks before re-checking
            its stop token
        channel_capacity: Number of notifications buffered before new
            ones are dropped
        chunk_size: Bytes read at a time when hashing a file
    """
    mode: WatchMode = WatchMode.AUTO
    interval_s: float = 1.0
    poll_timeout_s: float = 0.5
    channel_capacity: int = 1
    chunk_size: int = 65536

    def __post_init__(self):
        if isinstance(self.mode, str):
            try:
                self.mode = WatchMode(self.mode.lower())
            except ValueError:
                raise WatcherConfigError(f"unknown watch mode: {self.mode}") from None

    def validate(self) -> "WatcherConfig":
        """
        Check option values.

        Returns:
            self, for chaining

        Raises:
            WatcherConfigError: If an option is out of range
        """
        if self.interval_s <= 0:
            raise WatcherConfigError(f"interval_s must be positive: {self.interval_s}")
        if self.poll_timeout_s <= 0:
            raise WatcherConfigError(f"poll_timeout_s must be positive: {self.poll_timeout_s}")
        if self.channel_capacity < 1:
            raise WatcherConfigError(f"channel_capacity must be at least 1: {self.channel_capacity}")
        if self.chunk_size < 1:
            raise WatcherConfigError(f"chunk_size must be at least 1: {self.chunk_size}")
        return self
