"""
reloadwatch

Detects content changes in a small, fixed set of files and signals a
reloader when any of them changes.

Features:
- Event-driven watching via OS notification (watchdog)
- Timed watching for filesystems without reliable notification
- SHA-256 content hashing, so touches and identical rewrites are ignored
- Re-registration of watches after delete + recreate
- One notification per detected change batch, never blocking the watcher
"""

from .models import (
    Digest,
    EventKind,
    RawFSEvent,
    WatchMode,
    base_name,
    normalize_files,
)

from .config import WatcherConfig

from .exceptions import (
    WatcherError,
    FileReadError,
    SubscriptionError,
    WatcherSetupError,
    WatcherConfigError,
    DuplicateFileNameError,
    WatcherNotRunningError,
    WatcherAlreadyRunningError,
)

from .hash_store import HashStore, hash_file, has_changed
from .channel import NotificationChannel
from .fs_watcher import EventWatcher, FSEventHandler, watch_auto
from .timed_watcher import TimedWatcher, watch_timed
from .process import FileWatcher


__all__ = [
    # Models
    "Digest",
    "EventKind",
    "RawFSEvent",
    "WatchMode",
    "base_name",
    "normalize_files",
    # Config
    "WatcherConfig",
    # Exceptions
    "WatcherError",
    "FileReadError",
    "SubscriptionError",
    "WatcherSetupError",
    "WatcherConfigError",
    "DuplicateFileNameError",
    "WatcherNotRunningError",
    "WatcherAlreadyRunningError",
    # Components
    "HashStore",
    "hash_file",
    "has_changed",
    "NotificationChannel",
    "EventWatcher",
    "FSEventHandler",
    "watch_auto",
    "TimedWatcher",
    "watch_timed",
    # Main Process
    "FileWatcher",
]

__version__ = "0.1.0"
