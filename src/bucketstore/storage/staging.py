"""Staging of incoming uploads before their content address is known."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Iterable
from pathlib import Path
from typing import BinaryIO

from bucketstore.config import DEFAULT_CHUNK_SIZE
from bucketstore.storage.errors import InvalidPathError, StorageIOError
from bucketstore.storage.models import StagedFile
from bucketstore.storage.paths import PathResolver

logger = logging.getLogger(__name__)

STAGE_PREFIX = ".stage-"
# 128 bits of entropy per stage name.
_STAGE_TOKEN_BYTES = 16


def iter_chunks(body: BinaryIO | Iterable[bytes], chunk_size: int) -> Iterable[bytes]:
    """Yield byte chunks from a binary file object or an iterable of chunks."""
    read = getattr(body, "read", None)
    if read is None:
        yield from body  # type: ignore[misc]
        return
    while chunk := read(chunk_size):
        yield chunk


def has_stage_segment(path: str) -> bool:
    """Return True if any "/"-separated segment uses the reserved stage prefix."""
    return any(part.startswith(STAGE_PREFIX) for part in path.replace("\\", "/").split("/"))


def normalize_dest_dir(dest_dir: str | None) -> str:
    """Map "." and empty directory components to the bucket root."""
    if not dest_dir or dest_dir == ".":
        return ""
    return dest_dir


class StagingWriter:
    """Writes request bodies to randomly named files inside a bucket."""

    def __init__(self, resolver: PathResolver, chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._resolver = resolver
        self._chunk_size = chunk_size

    def stage(
        self,
        bucket: str,
        dest_dir: str | None,
        body: BinaryIO | Iterable[bytes],
    ) -> StagedFile:
        """Write a body to a new stage file in the destination directory.

        Args:
            bucket: Target bucket.
            dest_dir: Directory component of the logical key ("" or "." for
                the bucket root).
            body: Binary file object or iterable of byte chunks.

        Returns:
            StagedFile with the absolute stage path and bytes written.

        Raises:
            InvalidPathError: If the directory escapes the bucket or uses the
                reserved stage prefix.
            StorageIOError: If the directory or file cannot be written. The
                partial stage file is removed before raising.
        """
        dest_dir = normalize_dest_dir(dest_dir)
        if has_stage_segment(dest_dir):
            raise InvalidPathError(
                "Path segment uses a reserved prefix", bucket=bucket, key=dest_dir
            )
        directory = self._resolver.resolve(bucket, dest_dir, allow_bucket_root=True)
        stage_name = f"{STAGE_PREFIX}{secrets.token_hex(_STAGE_TOKEN_BYTES)}"
        stage_path = self._resolver.resolve(bucket, dest_dir, stage_name)

        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageIOError(
                message=f"Failed to create destination directory: {e}",
                bucket=bucket,
                key=dest_dir or None,
                cause=e,
            ) from e

        try:
            # "xb" fails rather than clobbering another request's stage.
            fh = open(stage_path, "xb")  # noqa: SIM115
        except OSError as e:
            raise StorageIOError(
                message=f"Failed to create stage file: {e}",
                bucket=bucket,
                key=dest_dir or None,
                cause=e,
            ) from e

        size = 0
        try:
            with fh:
                for chunk in iter_chunks(body, self._chunk_size):
                    fh.write(chunk)
                    size += len(chunk)
        except OSError as e:
            stage_path.unlink(missing_ok=True)
            raise StorageIOError(
                message=f"Failed to write stage file: {e}",
                bucket=bucket,
                key=dest_dir or None,
                cause=e,
            ) from e
        except Exception:
            stage_path.unlink(missing_ok=True)
            raise

        logger.debug("Staged %d bytes: bucket=%s stage=%s", size, bucket, stage_name)
        return StagedFile(path=stage_path, size_bytes=size)
