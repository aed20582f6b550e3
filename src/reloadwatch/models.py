"""Data models for the reloadwatch package."""

import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Union

from .exceptions import DuplicateFileNameError, WatcherConfigError


DIGEST_SIZE = 32

PathLike = Union[str, Path]


class WatchMode(Enum):
    """Change detection strategies."""
    AUTO = "auto"
    TIMED = "timed"


class EventKind(Enum):
    """Normalized kinds of raw filesystem events."""
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"
    CLOSED = "closed"


@dataclass(frozen=True)
class Digest:
    """
    SHA-256 digest of a file's contents at last observation.

    Only equality is meaningful. The hex form is what gets logged.
    """
    value: bytes

    def __post_init__(self):
        if not isinstance(self.value, bytes) or len(self.value) != DIGEST_SIZE:
            raise ValueError(f"digest must be {DIGEST_SIZE} bytes")

    def hex(self) -> str:
        return self.value.hex()

    def __str__(self) -> str:
        return self.hex()


@dataclass
class RawFSEvent:
    """
    Normalized event from the filesystem observer.

    Attributes:
        kind: What happened to the path
        path: Path the event refers to
        is_directory: Whether the path is a directory
        timestamp: Unix timestamp when the event was received
    """
    kind: EventKind
    path: Path
    is_directory: bool = False
    timestamp: float = field(default_factory=time.time)

    @property
    def name(self) -> str:
        return self.path.name


def base_name(path: PathLike) -> str:
    """Return the key a file is tracked under in the hash store."""
    return Path(path).name


def normalize_files(files: Iterable[PathLike]) -> List[Path]:
    """
    Validate and normalize the list of files to watch.

    Paths are made absolute without resolving symlinks, so a symlinked
    file that gets swapped out is still tracked under the name it was
    given.

    Args:
        files: Paths of the files to watch

    Returns:
        Absolute paths in their original order, duplicates removed

    Raises:
        WatcherConfigError: If the list is empty
        DuplicateFileNameError: If two different paths share a base name
    """
    result: List[Path] = []
    seen = {}

    for file in files:
        path = Path(file).absolute()
        if path in result:
            continue

        name = path.name
        if not name:
            raise WatcherConfigError(f"not a file path: {file}")
        if name in seen:
            raise DuplicateFileNameError(
                f"'{path}' and '{seen[name]}' share the base name '{name}'"
            )

        seen[name] = path
        result.append(path)

    if not result:
        raise WatcherConfigError("no files to watch")

    return result
