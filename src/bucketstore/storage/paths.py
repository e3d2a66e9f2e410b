"""Safe path resolution for bucket and key segments.

All checks here are lexical: nothing touches the filesystem, so a rejected
path never causes a directory to be created or a file to be opened.
"""

from __future__ import annotations

import os
import posixpath
import re
from pathlib import Path

from bucketstore.storage.errors import InvalidPathError

_DRIVE_LETTER_PATTERN = re.compile(r"^[a-zA-Z]:")


def _is_unsafe_segment(segment: str) -> bool:
    """Check if a key segment is absolute-looking or contains traversal.

    Detects:
    - Null bytes
    - Backslashes (Windows path separators)
    - Leading "/" or "~"
    - Drive letters like "C:"
    - ".." path components
    """
    if "\x00" in segment or "\\" in segment:
        return True
    if segment.startswith(("/", "~")):
        return True
    if _DRIVE_LETTER_PATTERN.match(segment):
        return True
    return any(part == ".." for part in segment.split("/"))


def _is_within(candidate: Path, root: Path) -> bool:
    """Separator-bounded descendant check; /data/ab never contains /data/abc."""
    prefix = str(root).rstrip(os.sep) + os.sep
    return str(candidate).startswith(prefix)


class PathResolver:
    """Resolves bucket names and key segments to absolute paths under a root."""

    def __init__(self, root: Path) -> None:
        self._root = Path(os.path.normpath(os.path.abspath(root)))

    @property
    def root(self) -> Path:
        """Return the storage root."""
        return self._root

    def bucket_dir(self, bucket: str) -> Path:
        """Resolve the directory of a bucket.

        Raises:
            InvalidPathError: If the bucket name is empty, contains a separator
                or would not resolve strictly inside the storage root.
        """
        if (
            not bucket
            or bucket in (".", "..")
            or "/" in bucket
            or "\\" in bucket
            or "\x00" in bucket
            or _DRIVE_LETTER_PATTERN.match(bucket)
        ):
            raise InvalidPathError("Invalid bucket name", bucket=bucket)

        candidate = Path(os.path.normpath(os.path.join(self._root, bucket)))
        if not _is_within(candidate, self._root):
            raise InvalidPathError("Bucket resolves outside storage root", bucket=bucket)
        return candidate

    def resolve(self, bucket: str, *segments: str, allow_bucket_root: bool = False) -> Path:
        """Resolve key segments inside a bucket.

        Args:
            bucket: Bucket name.
            *segments: Relative key segments; each may itself contain "/".
                Empty segments are ignored.
            allow_bucket_root: Accept a result equal to the bucket directory
                (used when staging into a bucket without subdirectories).

        Returns:
            Absolute, normalized path inside the bucket directory.

        Raises:
            InvalidPathError: If any segment is absolute-looking or contains
                traversal, or the normalized result escapes the bucket.
        """
        bucket_dir = self.bucket_dir(bucket)
        parts = [segment for segment in segments if segment]

        for segment in parts:
            if _is_unsafe_segment(segment):
                raise InvalidPathError(
                    "Invalid key: path traversal or absolute path detected",
                    bucket=bucket,
                    key=segment,
                )

        key = posixpath.join(*parts) if parts else ""
        candidate = Path(os.path.normpath(os.path.join(bucket_dir, key)))

        if candidate == bucket_dir:
            if allow_bucket_root:
                return candidate
            raise InvalidPathError("Key resolves to the bucket root", bucket=bucket, key=key)

        if not _is_within(candidate, bucket_dir):
            raise InvalidPathError("Key resolves outside bucket", bucket=bucket, key=key)

        return candidate

    def relative_key(self, bucket: str, path: Path) -> str:
        """Return the "/"-separated key of a resolved path within its bucket."""
        return path.relative_to(self.bucket_dir(bucket)).as_posix()
