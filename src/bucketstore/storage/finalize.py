"""Promotion of staged uploads to their content-addressed location.

Finalize either discards a stage (an object with the same address already
exists) or moves it to <dest_dir>/<fingerprint><ext>. The move is a hard link
that fails when the destination exists, followed by removing the stage name,
so two requests finalizing identical content at the same time can never both
"win": the loser sees FileExistsError and reports a dedup outcome. Only a
regular file or symlink at the address counts as a stored object.

Postcondition of a successful finalize: exactly one file at the final path and
none at the stage path.
"""

from __future__ import annotations

import errno
import logging
import os
import stat
from pathlib import Path
from typing import NoReturn

from bucketstore.storage.errors import (
    DuplicateContentResolved,
    InvalidPathError,
    StorageIOError,
)
from bucketstore.storage.models import FinalizeResult
from bucketstore.storage.paths import PathResolver
from bucketstore.storage.staging import normalize_dest_dir

logger = logging.getLogger(__name__)

# errno values meaning "this filesystem cannot hard link here".
_LINK_UNSUPPORTED_ERRNOS = frozenset(
    {
        errno.EPERM,
        errno.EXDEV,
        errno.EMLINK,
        errno.ENOSYS,
        errno.ENOTSUP,
        errno.EOPNOTSUPP,
    }
)


class DedupFinalizer:
    """Decides between discarding and promoting a staged file."""

    def __init__(self, resolver: PathResolver) -> None:
        self._resolver = resolver

    def finalize(
        self,
        staged_path: Path,
        bucket: str,
        dest_dir: str | None,
        fingerprint: str,
        extension: str,
    ) -> FinalizeResult:
        """Commit a staged file under its content address.

        Args:
            staged_path: Absolute path of the stage file.
            bucket: Target bucket.
            dest_dir: Directory component of the logical key.
            fingerprint: Hex digest of the staged content.
            extension: File extension including the dot, or "".

        Returns:
            FinalizeResult with the final path and whether the content was
            already stored.

        Raises:
            InvalidPathError: If the final address escapes the bucket. The
                stage is removed before raising.
            StorageIOError: For filesystem failures other than a stored
                object already existing, including a directory or other
                non-file occupying the address. The stage is removed.
        """
        dest_dir = normalize_dest_dir(dest_dir)
        try:
            final_path = self._resolver.resolve(bucket, dest_dir, f"{fingerprint}{extension}")
        except InvalidPathError:
            self._discard_stage(staged_path)
            raise

        try:
            if self._object_exists(final_path, bucket):
                raise DuplicateContentResolved(final_path)
            self._promote(staged_path, final_path, bucket)
        except StorageIOError:
            self._discard_stage(staged_path)
            raise
        except DuplicateContentResolved as dup:
            self._remove_stage(staged_path, bucket)
            logger.info(
                "Duplicate content resolved: bucket=%s object=%s",
                bucket,
                dup.final_path.name,
            )
            return FinalizeResult(final_path=final_path, deduplicated=True)

        logger.debug("Promoted stage: bucket=%s object=%s", bucket, final_path.name)
        return FinalizeResult(final_path=final_path, deduplicated=False)

    def _object_exists(self, final_path: Path, bucket: str) -> bool:
        """Check whether an object is already stored at the address."""
        return self._holds_object(final_path, bucket)

    def _holds_object(self, final_path: Path, bucket: str) -> bool:
        """Inspect what occupies the address without following symlinks.

        Only a regular file or a symlink counts as a stored object.

        Raises:
            StorageIOError: If something else, such as a directory created by
                a direct write, occupies the address.
        """
        try:
            mode = os.lstat(final_path).st_mode
        except (FileNotFoundError, NotADirectoryError):
            return False
        except OSError as e:
            raise StorageIOError(
                message=f"Failed to inspect object address: {e}",
                bucket=bucket,
                cause=e,
            ) from e

        if stat.S_ISREG(mode) or stat.S_ISLNK(mode):
            return True
        raise StorageIOError(
            message=f"Object address {final_path.name} is occupied by a non-file",
            bucket=bucket,
        )

    def _promote(self, staged_path: Path, final_path: Path, bucket: str) -> None:
        """Move the stage to the final path without overwriting.

        Raises:
            DuplicateContentResolved: If the final path appeared concurrently.
            StorageIOError: On any other failure.
        """
        try:
            final_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            self._discard_stage(staged_path)
            raise StorageIOError(
                message=f"Failed to create object directory: {e}",
                bucket=bucket,
                cause=e,
            ) from e

        if not hasattr(os, "link"):
            self._rename_if_absent(staged_path, final_path, bucket)
            return

        try:
            os.link(staged_path, final_path)
        except FileExistsError as e:
            self._raise_duplicate(final_path, bucket, e)
        except FileNotFoundError as e:
            raise StorageIOError(
                message="Stage file missing at finalize",
                bucket=bucket,
                cause=e,
            ) from e
        except OSError as e:
            if e.errno in _LINK_UNSUPPORTED_ERRNOS:
                self._rename_if_absent(staged_path, final_path, bucket)
                return
            self._discard_stage(staged_path)
            raise StorageIOError(
                message=f"Failed to link object into place: {e}",
                bucket=bucket,
                cause=e,
            ) from e

        self._remove_stage(staged_path, bucket)

    def _rename_if_absent(self, staged_path: Path, final_path: Path, bucket: str) -> None:
        """Check-then-rename for filesystems without hard links.

        A destination created between the check and the rename is either
        reported by the platform (FileExistsError) or replaced by a file with
        the same digest, so one object remains at the address either way.
        """
        if self._object_exists(final_path, bucket):
            raise DuplicateContentResolved(final_path)
        try:
            os.rename(staged_path, final_path)
        except FileExistsError as e:
            self._raise_duplicate(final_path, bucket, e)
        except OSError as e:
            self._discard_stage(staged_path)
            raise StorageIOError(
                message=f"Failed to rename stage into place: {e}",
                bucket=bucket,
                cause=e,
            ) from e

    def _raise_duplicate(self, final_path: Path, bucket: str, cause: OSError) -> NoReturn:
        """Turn a lost promotion race into a dedup outcome if a file won it."""
        if self._holds_object(final_path, bucket):
            raise DuplicateContentResolved(final_path) from cause
        raise StorageIOError(
            message="Object address vanished during finalize",
            bucket=bucket,
            cause=cause,
        ) from cause

    def _remove_stage(self, staged_path: Path, bucket: str) -> None:
        """Remove the stage name, failing if it cannot be removed."""
        try:
            staged_path.unlink()
        except OSError as e:
            raise StorageIOError(
                message=f"Failed to remove stage file: {e}",
                bucket=bucket,
                cause=e,
            ) from e

    def _discard_stage(self, staged_path: Path) -> None:
        """Best-effort stage cleanup on failure paths."""
        try:
            staged_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to clean up stage %s: %s", staged_path.name, e)
