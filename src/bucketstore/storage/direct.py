"""Direct writes to explicit, caller-chosen keys.

No staging, hashing or dedup: each write truncates the destination and
streams the body into it. A failed write leaves the partial file in place; a
retried write to the same key overwrites it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, Iterable
from pathlib import Path
from typing import BinaryIO

from bucketstore.config import DEFAULT_CHUNK_SIZE
from bucketstore.storage.errors import InvalidPathError, StorageIOError
from bucketstore.storage.models import WriteResult
from bucketstore.storage.paths import PathResolver
from bucketstore.storage.staging import has_stage_segment, iter_chunks

logger = logging.getLogger(__name__)


class DirectKeyWriter:
    """Streams request bodies straight to their resolved destination."""

    def __init__(self, resolver: PathResolver, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._resolver = resolver
        self._chunk_size = chunk_size

    def _destination(self, bucket: str, key: str) -> Path:
        """Validate the key and resolve the destination path."""
        if not key:
            raise InvalidPathError("Missing key", bucket=bucket)
        if key.endswith("/"):
            raise InvalidPathError("Key must name a file, not a directory", bucket=bucket, key=key)
        if has_stage_segment(key):
            raise InvalidPathError("Key segment uses a reserved prefix", bucket=bucket, key=key)
        return self._resolver.resolve(bucket, key)

    def write(self, bucket: str, key: str, body: BinaryIO | Iterable[bytes]) -> WriteResult:
        """Write a body to an explicit key, replacing prior content.

        Args:
            bucket: Target bucket.
            key: Bucket-relative key, may contain "/".
            body: Binary file object or iterable of byte chunks.

        Returns:
            WriteResult with the destination path and bytes written.

        Raises:
            InvalidPathError: If the key is empty, escapes the bucket or has a
                segment starting with the stage prefix.
            StorageIOError: If the directory or file cannot be written.
        """
        path = self._destination(bucket, key)
        size = 0
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as fh:
                for chunk in iter_chunks(body, self._chunk_size):
                    fh.write(chunk)
                    size += len(chunk)
        except OSError as e:
            raise StorageIOError(
                message=f"Failed to write object: {e}",
                bucket=bucket,
                key=key,
                cause=e,
            ) from e

        logger.debug("Wrote %d bytes: bucket=%s key=%s", size, bucket, key)
        return WriteResult(final_path=path, size_bytes=size)

    async def write_async(
        self,
        bucket: str,
        key: str,
        chunks: AsyncIterable[bytes],
    ) -> WriteResult:
        """Write an async chunk stream to an explicit key.

        Every filesystem call runs in a worker thread so the event loop only
        suspends at I/O boundaries.

        Raises:
            InvalidPathError: If the key is empty, escapes the bucket or has a
                segment starting with the stage prefix.
            StorageIOError: If the directory or file cannot be written.
        """
        path = self._destination(bucket, key)
        size = 0
        try:
            await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
            fh = await asyncio.to_thread(open, path, "wb")
            try:
                async for chunk in chunks:
                    if chunk:
                        await asyncio.to_thread(fh.write, chunk)
                        size += len(chunk)
            finally:
                await asyncio.to_thread(fh.close)
        except OSError as e:
            raise StorageIOError(
                message=f"Failed to write object: {e}",
                bucket=bucket,
                key=key,
                cause=e,
            ) from e

        logger.debug("Streamed %d bytes: bucket=%s key=%s", size, bucket, key)
        return WriteResult(final_path=path, size_bytes=size)
