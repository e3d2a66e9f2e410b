"""bucketstore object storage interface definition.

Provides the ObjectStore interface that storage backends implement.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterable, Iterable
from typing import BinaryIO

from bucketstore.storage.models import StoredObject


class ObjectStore(ABC):
    """Abstract base class for object storage backends.

    All implementations must provide bucket-scoped storage with:
    - Path traversal protection on every bucket and key
    - Content-addressed, de-duplicated hashed uploads
    - Overwriting direct writes to explicit keys

    Implementations:
    - FilesystemObjectStore: Local filesystem
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Return the backend identifier for observability.

        Returns:
            Backend name string (e.g., "filesystem").
        """
        ...

    @abstractmethod
    def upload(
        self,
        bucket: str,
        key: str | None,
        body: BinaryIO | Iterable[bytes],
        *,
        filename: str | None = None,
    ) -> StoredObject:
        """Store a payload under its content address.

        Args:
            bucket: Target bucket.
            key: Logical key. Only its directory component and extension
                are used; the leaf name is replaced by the fingerprint.
            body: Payload as a binary file object or iterable of chunks.
            filename: Original filename, consulted for the extension when
                the key has none.

        Returns:
            StoredObject with the content-addressed key and fingerprint.

        Raises:
            InvalidPathError: If the bucket or key escapes its root.
            StorageIOError: If the backend cannot complete the write.
        """
        ...

    @abstractmethod
    def put(
        self,
        bucket: str,
        key: str,
        body: BinaryIO | Iterable[bytes],
    ) -> StoredObject:
        """Write a payload to an explicit key, replacing prior content.

        Raises:
            InvalidPathError: If the key is empty or escapes the bucket.
            StorageIOError: If the backend cannot complete the write.
        """
        ...

    @abstractmethod
    async def put_stream(
        self,
        bucket: str,
        key: str,
        chunks: AsyncIterable[bytes],
    ) -> StoredObject:
        """Stream an async body to an explicit key, replacing prior content.

        Raises:
            InvalidPathError: If the key is empty or escapes the bucket.
            StorageIOError: If the backend cannot complete the write.
        """
        ...
