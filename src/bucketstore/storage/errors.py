"""bucketstore object storage error types.

Provides typed exceptions for storage operations. Path and I/O failures are
fail-closed: operations that cannot complete safely raise errors.
"""

from __future__ import annotations

from pathlib import Path


class ObjectStorageError(Exception):
    """Base exception for object storage operations.

    Attributes:
        message: Human-readable error message.
        bucket: Bucket associated with the operation (if applicable).
        key: Logical key associated with the operation (if applicable).
    """

    def __init__(
        self,
        message: str,
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.bucket = bucket
        self.key = key

    def __str__(self) -> str:
        parts = [self.message]
        if self.bucket:
            parts.append(f"bucket={self.bucket}")
        if self.key:
            parts.append(f"key={self.key}")
        return " ".join(parts)


class InvalidPathError(ObjectStorageError):
    """Raised when a bucket or key would escape its root, or a key is missing.

    Always a client error. Never retried.
    """

    def __init__(
        self,
        message: str = "Invalid path",
        *,
        bucket: str | None = None,
        key: str | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)


class StorageIOError(ObjectStorageError):
    """Raised when a filesystem operation fails.

    Covers permission errors, full disks, missing stage files and unexpected
    rename failures. A destination that already exists during finalize is not
    reported through this error.
    """

    def __init__(
        self,
        message: str = "Storage I/O error",
        *,
        bucket: str | None = None,
        key: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, bucket=bucket, key=key)
        self.cause = cause


class DuplicateContentResolved(Exception):  # noqa: N818
    """Signals that finalize found an object already stored at the address.

    Not a failure: the caller treats it as a successful write. It exists so
    the dedup outcome stays distinguishable in logs and spans.
    """

    def __init__(self, final_path: Path) -> None:
        super().__init__(f"Content already stored at {final_path.name}")
        self.final_path = final_path
