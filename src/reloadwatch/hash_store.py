"""Content hashing and change detection for watched files."""

import hashlib
import logging
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional

from .exceptions import FileReadError
from .models import Digest, PathLike, base_name


DEFAULT_CHUNK_SIZE = 65536


def hash_file(path: PathLike, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Digest:
    """
    Compute the SHA-256 digest of a file's contents.

    Args:
        path: Path to the file
        chunk_size: Bytes to read at a time

    Returns:
        Digest of the file contents

    Raises:
        FileReadError: If the file cannot be opened or read
    """
    path = Path(path)
    hasher = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(chunk_size), b""):
                hasher.update(chunk)
    except OSError as e:
        raise FileReadError(path, e) from e
    return Digest(hasher.digest())


class HashStore:
    """
    Last known digest of every watched file, keyed by base name.

    Owned by a single watcher loop, so there is no locking.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        logger: Optional[logging.Logger] = None,
    ):
        self.chunk_size = chunk_size
        self.logger = logger or logging.getLogger(__name__)
        self._hashes: Dict[str, Digest] = {}

    def populate(self, files: Iterable[PathLike]) -> int:
        """
        Hash the initial state of the given files.

        Files that cannot be read are logged and left out of the store.

        Args:
            files: Paths of the files to hash

        Returns:
            Number of files hashed
        """
        count = 0
        for file in files:
            try:
                digest = hash_file(file, self.chunk_size)
            except FileReadError as e:
                self.logger.warning(str(e))
                continue

            name = base_name(file)
            self.logger.info(f"sha256({name}) = {digest}")
            self._hashes[name] = digest
            count += 1
        return count

    def get(self, name: str) -> Optional[Digest]:
        """Return the stored digest for a base name, or None."""
        return self._hashes.get(name)

    def update(self, name: str, digest: Digest) -> bool:
        """
        Store a digest if it differs from the current entry.

        Args:
            name: Base name of the file
            digest: Newly computed digest

        Returns:
            True if the entry was absent or different and has been replaced
        """
        if self._hashes.get(name) == digest:
            return False
        self._hashes[name] = digest
        return True

    def __contains__(self, name: str) -> bool:
        return name in self._hashes

    def __len__(self) -> int:
        return len(self._hashes)

    def __iter__(self) -> Iterator[str]:
        return iter(self._hashes)


def has_changed(store: HashStore, path: PathLike) -> bool:
    """
    Check whether a file's contents differ from its stored digest.

    The store is updated when they do. A read failure is logged and
    reported as no change, leaving the previous digest in place.

    Args:
        store: Hash store owned by the calling watcher
        path: Path to the file

    Returns:
        True if the file changed since it was last hashed
    """
    try:
        digest = hash_file(path, store.chunk_size)
    except FileReadError as e:
        store.logger.warning(str(e))
        return False

    name = base_name(path)
    if store.update(name, digest):
        store.logger.info(f"sha256({name}) = {digest}")
        return True
    return False
