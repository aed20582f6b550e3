"""Custom exceptions for the reloadwatch package."""

from pathlib import Path


class WatcherError(Exception):
    """Base exception for all watcher errors."""
    pass


class FileReadError(WatcherError):
    """A watched file could not be read for hashing."""

    def __init__(self, path: Path, cause: OSError):
        super().__init__(f"error reading file {path}: {cause}")
        self.path = path
        self.cause = cause


class SubscriptionError(WatcherError):
    """An OS-level watch could not be registered."""
    pass


class WatcherSetupError(WatcherError):
    """The underlying OS watch mechanism could not be created."""
    pass


class WatcherConfigError(WatcherError):
    """Invalid watcher configuration or file list."""
    pass


class DuplicateFileNameError(WatcherConfigError):
    """Two watched files share the same base name."""
    pass


class WatcherNotRunningError(WatcherError):
    """Watcher is not running."""
    pass


class WatcherAlreadyRunningError(WatcherError):
    """Watcher is already running."""
    pass
