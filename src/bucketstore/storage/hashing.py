"""Streaming content fingerprints."""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from bucketstore.config import DEFAULT_CHUNK_SIZE, DEFAULT_DIGEST
from bucketstore.storage.errors import StorageIOError

logger = logging.getLogger(__name__)


class ContentHasher:
    """Computes lowercase hex digests of files in bounded memory.

    The algorithm is fixed per instance because on-disk addresses depend on
    the digest width and format.
    """

    def __init__(
        self,
        algorithm: str = DEFAULT_DIGEST,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._algorithm = algorithm
        self._chunk_size = chunk_size

    @property
    def algorithm(self) -> str:
        """Return the hashlib algorithm name."""
        return self._algorithm

    def digest(self, path: Path) -> str:
        """Stream a file through the digest and return its hex fingerprint.

        Args:
            path: File to hash.

        Returns:
            Lowercase hex digest string.

        Raises:
            StorageIOError: If the file cannot be opened or read.
        """
        hasher = hashlib.new(self._algorithm)
        try:
            with open(path, "rb") as fh:
                while chunk := fh.read(self._chunk_size):
                    hasher.update(chunk)
        except OSError as e:
            raise StorageIOError(message=f"Failed to read file for hashing: {e}", cause=e) from e

        fingerprint = hasher.hexdigest()
        logger.debug("Hashed %s: %s=%s", path.name, self._algorithm, fingerprint)
        return fingerprint

    def digest_bytes(self, data: bytes) -> str:
        """Return the hex fingerprint of an in-memory payload."""
        return hashlib.new(self._algorithm, data).hexdigest()
