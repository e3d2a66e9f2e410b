"""Pytest configuration and fixtures for bucketstore tests.

This module provides common fixtures and configuration for all tests.
"""

from __future__ import annotations

import tempfile
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from bucketstore.config import StoreConfig
from bucketstore.storage.filesystem_store import FilesystemObjectStore
from bucketstore.storage.paths import PathResolver

_ENV_VARS = (
    "BUCKETSTORE_ROOT",
    "BUCKETSTORE_DIGEST",
    "BUCKETSTORE_CHUNK_SIZE",
    "BUCKETSTORE_PUBLIC_PREFIX",
    "BUCKETSTORE_HOST",
    "BUCKETSTORE_LOG_LEVEL",
    "BUCKETSTORE_OTEL_ENABLED",
    "BUCKETSTORE_OTEL_TEST_CAPTURE",
    "PORT",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start every test without bucketstore environment overrides."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def storage_root() -> Iterator[Path]:
    """Create a temporary storage root."""
    with tempfile.TemporaryDirectory(prefix="bucketstore_test_") as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def config(storage_root: Path) -> StoreConfig:
    """Return a configuration rooted at the temporary storage root.

    A small chunk size makes every streaming path loop more than once.
    """
    return StoreConfig(root=storage_root, chunk_size=7)


@pytest.fixture
def resolver(storage_root: Path) -> PathResolver:
    """Return a path resolver bound to the temporary storage root."""
    return PathResolver(storage_root)


@pytest.fixture
def store(config: StoreConfig) -> FilesystemObjectStore:
    """Return a filesystem store bound to the temporary storage root."""
    return FilesystemObjectStore(config)


def _list_files(root: Path) -> list[str]:
    return sorted(p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file())


@pytest.fixture
def list_files() -> Callable[[Path], list[str]]:
    """Return a helper listing all regular files below a directory.

    Paths are "/"-separated, relative to the directory, and sorted.
    """
    return _list_files
