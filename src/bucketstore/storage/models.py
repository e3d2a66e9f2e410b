"""bucketstore object storage data models."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class StagedFile:
    """A file written under a random name before its address is known.

    Attributes:
        path: Absolute path of the stage file.
        size_bytes: Number of bytes written to it.
    """

    path: Path
    size_bytes: int


@dataclass(frozen=True)
class FinalizeResult:
    """Outcome of promoting or discarding a staged file."""

    final_path: Path
    deduplicated: bool


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a direct write to an explicit key."""

    final_path: Path
    size_bytes: int


@dataclass(frozen=True)
class StoredObject:
    """A persisted object as reported back to callers.

    Attributes:
        bucket: Bucket the object lives in.
        key: Bucket-relative key, always "/"-separated.
        path: Absolute filesystem path of the object.
        size_bytes: Size of the uploaded payload in bytes.
        sha256: Content fingerprint (hashed uploads only).
        deduplicated: True when an identical object was already stored.
        public_prefix: URL prefix under which objects are served.
    """

    bucket: str
    key: str
    path: Path
    size_bytes: int
    sha256: str | None = None
    deduplicated: bool = False
    public_prefix: str = "/public"

    @property
    def url(self) -> str:
        """Public retrieval URL of the object."""
        return f"{self.public_prefix.rstrip('/')}/{self.bucket}/{self.key}"

    def to_dict(self) -> dict[str, str | int | None]:
        """Convert to the dictionary returned by the HTTP layer.

        The dedup flag and the absolute path are internal and not included.
        """
        result: dict[str, str | int | None] = {
            "bucket": self.bucket,
            "key": self.key,
            "url": self.url,
            "size": self.size_bytes,
        }
        if self.sha256 is not None:
            result["sha256"] = self.sha256
        return result
