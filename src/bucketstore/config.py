"""bucketstore configuration.

The storage root and digest algorithm are carried in an explicit StoreConfig
value handed to every storage component, so tests can run against isolated
temporary roots.

Environment Variables:
    BUCKETSTORE_ROOT: Storage root directory (default: ./public)
    BUCKETSTORE_DIGEST: hashlib algorithm with a 256-bit digest (default: sha256)
    BUCKETSTORE_CHUNK_SIZE: Streaming chunk size in bytes (default: 65536)
    BUCKETSTORE_PUBLIC_PREFIX: URL prefix for static object serving (default: /public)
    BUCKETSTORE_HOST: Bind host for `serve` (default: 127.0.0.1)
    PORT: Bind port for `serve` (default: 33000)
    BUCKETSTORE_LOG_LEVEL: Log level for `serve` (default: INFO)
"""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass
from pathlib import Path

BUCKETSTORE_ROOT_ENV = "BUCKETSTORE_ROOT"
BUCKETSTORE_DIGEST_ENV = "BUCKETSTORE_DIGEST"
BUCKETSTORE_CHUNK_SIZE_ENV = "BUCKETSTORE_CHUNK_SIZE"
BUCKETSTORE_PUBLIC_PREFIX_ENV = "BUCKETSTORE_PUBLIC_PREFIX"
BUCKETSTORE_HOST_ENV = "BUCKETSTORE_HOST"
BUCKETSTORE_PORT_ENV = "PORT"
BUCKETSTORE_LOG_LEVEL_ENV = "BUCKETSTORE_LOG_LEVEL"

DEFAULT_ROOT = "public"
DEFAULT_DIGEST = "sha256"
DEFAULT_CHUNK_SIZE = 64 * 1024
DEFAULT_PUBLIC_PREFIX = "/public"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 33000
DEFAULT_LOG_LEVEL = "INFO"

# On-disk names are <hex digest><ext>; the width is fixed by the layout.
DIGEST_SIZE_BYTES = 32


class ConfigError(Exception):
    """Raised when configuration values are invalid."""

    pass


def _validate_digest(name: str) -> str:
    """Check that a hashlib algorithm exists and produces a 256-bit digest."""
    try:
        digest_size = hashlib.new(name).digest_size
    except ValueError as e:
        raise ConfigError(f"Unknown digest algorithm: {name}") from e
    if digest_size != DIGEST_SIZE_BYTES:
        raise ConfigError(
            f"Digest algorithm {name} produces {digest_size * 8}-bit digests, "
            f"expected {DIGEST_SIZE_BYTES * 8}"
        )
    return name


def _get_env_int(key: str, default: int) -> int:
    """Get a positive integer from an environment variable."""
    raw = os.environ.get(key, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from e
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class StoreConfig:
    """Storage configuration shared by all storage components.

    Attributes:
        root: Absolute storage root; each bucket is a directory below it.
        digest: hashlib algorithm name used for content addresses.
        chunk_size: Read/write chunk size for streaming operations.
        public_prefix: URL prefix under which stored objects are served.
        host: Bind host used by the `serve` command.
        port: Bind port used by the `serve` command.
        log_level: Root log level used by the `serve` command.
    """

    root: Path
    digest: str = DEFAULT_DIGEST
    chunk_size: int = DEFAULT_CHUNK_SIZE
    public_prefix: str = DEFAULT_PUBLIC_PREFIX
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    log_level: str = DEFAULT_LOG_LEVEL

    def __post_init__(self) -> None:
        _validate_digest(self.digest)
        if self.chunk_size <= 0:
            raise ConfigError(f"chunk_size must be positive, got {self.chunk_size}")
        if not self.public_prefix.startswith("/"):
            raise ConfigError(f"public_prefix must start with '/', got {self.public_prefix!r}")
        prefix = self.public_prefix.rstrip("/")
        if not prefix:
            raise ConfigError("public_prefix cannot be the site root")
        object.__setattr__(self, "public_prefix", prefix)
        object.__setattr__(self, "root", Path(self.root).resolve())

    @classmethod
    def from_env(cls, root: str | Path | None = None) -> StoreConfig:
        """Build configuration from environment variables.

        Args:
            root: Explicit storage root. Overrides BUCKETSTORE_ROOT when given.

        Raises:
            ConfigError: If any configured value is invalid.
        """
        if root is None:
            root = os.environ.get(BUCKETSTORE_ROOT_ENV) or DEFAULT_ROOT

        prefix = os.environ.get(BUCKETSTORE_PUBLIC_PREFIX_ENV, DEFAULT_PUBLIC_PREFIX).strip()

        return cls(
            root=Path(root),
            digest=os.environ.get(BUCKETSTORE_DIGEST_ENV, DEFAULT_DIGEST).strip().lower(),
            chunk_size=_get_env_int(BUCKETSTORE_CHUNK_SIZE_ENV, DEFAULT_CHUNK_SIZE),
            public_prefix=prefix or DEFAULT_PUBLIC_PREFIX,
            host=os.environ.get(BUCKETSTORE_HOST_ENV, DEFAULT_HOST).strip() or DEFAULT_HOST,
            port=_get_env_int(BUCKETSTORE_PORT_ENV, DEFAULT_PORT),
            log_level=os.environ.get(BUCKETSTORE_LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL).strip().upper(),
        )
