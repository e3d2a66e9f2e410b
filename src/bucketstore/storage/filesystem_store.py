"""bucketstore filesystem object storage backend.

Objects are stored in a directory structure:
    {root}/{bucket}/{optional/sub/dirs}/{sha256}{ext}   # hashed uploads
    {root}/{bucket}/{key}                               # direct writes

Hashed uploads flow through staging, hashing and dedup finalize. Direct
writes go straight to the resolved key. There is no manifest; the directory
tree is the only inventory.
"""

from __future__ import annotations

import logging
import posixpath
from collections.abc import AsyncIterable, Iterable
from pathlib import Path
from typing import BinaryIO

from bucketstore.config import StoreConfig
from bucketstore.storage.direct import DirectKeyWriter
from bucketstore.storage.errors import StorageIOError
from bucketstore.storage.finalize import DedupFinalizer
from bucketstore.storage.hashing import ContentHasher
from bucketstore.storage.models import StoredObject
from bucketstore.storage.object_store import ObjectStore
from bucketstore.storage.paths import PathResolver
from bucketstore.storage.staging import StagingWriter
from bucketstore.storage.tracing import traced_storage_operation

logger = logging.getLogger(__name__)


def split_logical_key(key: str | None) -> str:
    """Return the directory component of a logical key ("" for none)."""
    if not key:
        return ""
    dirname = posixpath.dirname(key)
    return "" if dirname == "." else dirname


def extension_for(key: str | None, filename: str | None) -> str:
    """Pick the extension of a hashed upload.

    The logical key's extension wins; the original filename is the fallback.
    Dotfiles such as ".env" have no extension.
    """
    for source in (key, filename):
        if not source:
            continue
        leaf = posixpath.basename(source.replace("\\", "/"))
        ext = posixpath.splitext(leaf)[1]
        if ext:
            return ext
    return ""


class FilesystemObjectStore(ObjectStore):
    """Filesystem-based object storage implementation."""

    def __init__(self, config: StoreConfig | None = None) -> None:
        """Initialize filesystem storage.

        Args:
            config: Storage configuration. If None, built from environment
                variables via StoreConfig.from_env().
        """
        if config is None:
            config = StoreConfig.from_env()

        self._config = config
        self._resolver = PathResolver(config.root)
        self._hasher = ContentHasher(config.digest, config.chunk_size)
        self._stager = StagingWriter(self._resolver, config.chunk_size)
        self._finalizer = DedupFinalizer(self._resolver)
        self._direct = DirectKeyWriter(self._resolver, config.chunk_size)

        try:
            config.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(message=f"Failed to create storage root: {e}", cause=e) from e

        logger.debug(
            "FilesystemObjectStore initialized with root=%s digest=%s",
            config.root,
            config.digest,
        )

    @property
    def backend_name(self) -> str:
        """Return the backend identifier."""
        return "filesystem"

    @property
    def root(self) -> Path:
        """Return the storage root path."""
        return self._config.root

    @property
    def config(self) -> StoreConfig:
        """Return the storage configuration."""
        return self._config

    @property
    def resolver(self) -> PathResolver:
        """Return the path resolver bound to the storage root."""
        return self._resolver

    @property
    def hasher(self) -> ContentHasher:
        """Return the content hasher."""
        return self._hasher

    def _stored(
        self,
        bucket: str,
        path: Path,
        size_bytes: int,
        *,
        sha256: str | None = None,
        deduplicated: bool = False,
    ) -> StoredObject:
        return StoredObject(
            bucket=bucket,
            key=self._resolver.relative_key(bucket, path),
            path=path,
            size_bytes=size_bytes,
            sha256=sha256,
            deduplicated=deduplicated,
            public_prefix=self._config.public_prefix,
        )

    @traced_storage_operation("upload")
    def upload(
        self,
        bucket: str,
        key: str | None,
        body: BinaryIO | Iterable[bytes],
        *,
        filename: str | None = None,
    ) -> StoredObject:
        """Store a payload under its content address."""
        dest_dir = split_logical_key(key)
        extension = extension_for(key, filename)

        staged = self._stager.stage(bucket, dest_dir, body)
        try:
            fingerprint = self._hasher.digest(staged.path)
        except StorageIOError:
            staged.path.unlink(missing_ok=True)
            raise

        result = self._finalizer.finalize(staged.path, bucket, dest_dir, fingerprint, extension)

        logger.info(
            "Stored object: bucket=%s object=%s size=%d deduplicated=%s",
            bucket,
            result.final_path.name,
            staged.size_bytes,
            result.deduplicated,
        )
        return self._stored(
            bucket,
            result.final_path,
            staged.size_bytes,
            sha256=fingerprint,
            deduplicated=result.deduplicated,
        )

    @traced_storage_operation("put")
    def put(
        self,
        bucket: str,
        key: str,
        body: BinaryIO | Iterable[bytes],
    ) -> StoredObject:
        """Write a payload to an explicit key."""
        result = self._direct.write(bucket, key, body)
        logger.info("Wrote object: bucket=%s key=%s size=%d", bucket, key, result.size_bytes)
        return self._stored(bucket, result.final_path, result.size_bytes)

    @traced_storage_operation("put_stream")
    async def put_stream(
        self,
        bucket: str,
        key: str,
        chunks: AsyncIterable[bytes],
    ) -> StoredObject:
        """Stream an async body to an explicit key."""
        result = await self._direct.write_async(bucket, key, chunks)
        logger.info("Wrote object: bucket=%s key=%s size=%d", bucket, key, result.size_bytes)
        return self._stored(bucket, result.final_path, result.size_bytes)
