"""Tests for FilesystemObjectStore.

Covers hashed uploads, direct writes, path traversal prevention and
OpenTelemetry span emission.
"""

from __future__ import annotations

import asyncio
import hashlib
import io
import os
from collections.abc import AsyncIterator, Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from bucketstore.config import StoreConfig
from bucketstore.storage import ObjectStore
from bucketstore.storage.errors import InvalidPathError, StorageIOError
from bucketstore.storage.filesystem_store import (
    FilesystemObjectStore,
    extension_for,
    split_logical_key,
)
from bucketstore.storage.staging import STAGE_PREFIX

HELLO_SHA256 = hashlib.sha256(b"hello").hexdigest()
EMPTY_SHA256 = hashlib.sha256(b"").hexdigest()


class TestHashedUpload:
    """Tests for content-addressed uploads."""

    def test_upload_hello_under_logical_directory(
        self,
        store: FilesystemObjectStore,
        storage_root: Path,
        list_files: Callable[[Path], list[str]],
    ) -> None:
        """The logical key picks the directory and extension, content picks the name."""
        stored = store.upload("docs", "a/b/file.txt", io.BytesIO(b"hello"))

        assert stored.bucket == "docs"
        assert stored.key == f"a/b/{HELLO_SHA256}.txt"
        assert stored.path == storage_root / "docs" / "a" / "b" / f"{HELLO_SHA256}.txt"
        assert stored.sha256 == HELLO_SHA256
        assert stored.size_bytes == 5
        assert stored.deduplicated is False
        assert stored.url == f"/public/docs/a/b/{HELLO_SHA256}.txt"
        assert list_files(storage_root) == [f"docs/a/b/{HELLO_SHA256}.txt"]

    def test_repeat_upload_is_deduplicated(
        self,
        store: FilesystemObjectStore,
        storage_root: Path,
        list_files: Callable[[Path], list[str]],
    ) -> None:
        """Identical content at the same logical directory is stored once."""
        first = store.upload("docs", "a/b/file.txt", io.BytesIO(b"hello"))
        second = store.upload("docs", "a/b/other-name.txt", io.BytesIO(b"hello"))

        assert second.deduplicated is True
        assert second.path == first.path
        assert second.to_dict() == first.to_dict()
        assert list_files(storage_root) == [f"docs/a/b/{HELLO_SHA256}.txt"]

    def test_no_key_and_no_filename_gives_bare_digest(
        self, store: FilesystemObjectStore, storage_root: Path
    ) -> None:
        """Without a key or filename the object is a bare hex name in the bucket root."""
        stored = store.upload("docs", None, io.BytesIO(b""))

        assert stored.path == storage_root / "docs" / EMPTY_SHA256
        assert stored.key == EMPTY_SHA256
        assert stored.size_bytes == 0

    def test_filename_extension_is_fallback(self, store: FilesystemObjectStore) -> None:
        """The uploaded filename supplies the extension when the key has none."""
        stored = store.upload("img", "avatars/user1", io.BytesIO(b"png"), filename="me.png")

        assert stored.key == f"avatars/{hashlib.sha256(b'png').hexdigest()}.png"

    def test_key_extension_wins_over_filename(self, store: FilesystemObjectStore) -> None:
        """An extension on the key takes precedence."""
        stored = store.upload("img", "x.jpg", io.BytesIO(b"data"), filename="x.png")

        assert stored.key.endswith(".jpg")

    def test_multi_chunk_content(self, store: FilesystemObjectStore) -> None:
        """Bodies larger than the chunk size hash and store correctly."""
        data = os.urandom(1000)

        stored = store.upload("docs", "blob.bin", io.BytesIO(data))

        assert stored.sha256 == hashlib.sha256(data).hexdigest()
        assert stored.path.read_bytes() == data

    def test_no_stage_files_remain(
        self,
        store: FilesystemObjectStore,
        storage_root: Path,
        list_files: Callable[[Path], list[str]],
    ) -> None:
        """Neither promoted nor deduplicated uploads leave stage files."""
        for _ in range(3):
            store.upload("docs", "d/f.txt", io.BytesIO(b"repeat"))
        store.upload("docs", "d/g.txt", io.BytesIO(b"different"))

        files = list_files(storage_root)
        assert len(files) == 2
        assert not any(Path(f).name.startswith(STAGE_PREFIX) for f in files)

    def test_traversal_key_rejected(
        self, store: FilesystemObjectStore, storage_root: Path
    ) -> None:
        """A traversing logical key is rejected and writes nothing."""
        with pytest.raises(InvalidPathError):
            store.upload("docs", "../../etc/passwd.txt", io.BytesIO(b"x"))

        assert list(storage_root.iterdir()) == []

    def test_hash_failure_removes_stage(
        self,
        store: FilesystemObjectStore,
        storage_root: Path,
        list_files: Callable[[Path], list[str]],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A failure while hashing discards the stage."""

        def fail(_path: Path) -> str:
            raise StorageIOError(message="read failed", bucket="docs")

        monkeypatch.setattr(store.hasher, "digest", fail)

        with pytest.raises(StorageIOError):
            store.upload("docs", "a.txt", io.BytesIO(b"x"))

        assert list_files(storage_root) == []

    def test_direct_write_blocking_content_address(
        self,
        store: FilesystemObjectStore,
        storage_root: Path,
        list_files: Callable[[Path], list[str]],
    ) -> None:
        """An address turned into a directory by put fails the upload."""
        store.put("docs", f"{HELLO_SHA256}.txt/blocker", io.BytesIO(b"x"))

        with pytest.raises(StorageIOError):
            store.upload("docs", "note.txt", io.BytesIO(b"hello"))

        assert list_files(storage_root) == [f"docs/{HELLO_SHA256}.txt/blocker"]

    def test_alternate_public_prefix(self, storage_root: Path) -> None:
        """The URL follows the configured public prefix."""
        store = FilesystemObjectStore(StoreConfig(root=storage_root, public_prefix="/files/"))

        stored = store.upload("docs", "f.txt", io.BytesIO(b"hello"))

        assert stored.url == f"/files/docs/{HELLO_SHA256}.txt"


class TestDirectPut:
    """Tests for explicit-key writes."""

    def test_put_and_overwrite(self, store: FilesystemObjectStore, storage_root: Path) -> None:
        """put stores under the key as given and overwrites."""
        store.put("docs", "reports/latest.json", io.BytesIO(b'{"v": 1}'))
        stored = store.put("docs", "reports/latest.json", io.BytesIO(b'{"v": 2}'))

        assert stored.key == "reports/latest.json"
        assert stored.path == storage_root / "docs" / "reports" / "latest.json"
        assert stored.path.read_bytes() == b'{"v": 2}'
        assert stored.sha256 is None
        assert stored.url == "/public/docs/reports/latest.json"
        assert "sha256" not in stored.to_dict()

    def test_put_stream(self, store: FilesystemObjectStore) -> None:
        """put_stream consumes an async chunk iterator."""

        async def body() -> AsyncIterator[bytes]:
            yield b"streamed "
            yield b"body"

        stored = asyncio.run(store.put_stream("docs", "s.txt", body()))

        assert stored.size_bytes == 13
        assert stored.path.read_bytes() == b"streamed body"

    def test_put_rejects_traversal(self, store: FilesystemObjectStore) -> None:
        """Direct keys are validated like hashed ones."""
        with pytest.raises(InvalidPathError):
            store.put("docs", "../other/x", io.BytesIO(b"x"))


class TestStoreSetup:
    """Tests for construction and identity."""

    def test_backend_name(self, store: FilesystemObjectStore) -> None:
        """The filesystem store identifies itself."""
        assert store.backend_name == "filesystem"
        assert isinstance(store, ObjectStore)

    def test_creates_missing_root(self, tmp_path: Path) -> None:
        """The storage root is created on construction."""
        root = tmp_path / "nested" / "root"

        store = FilesystemObjectStore(StoreConfig(root=root))

        assert root.is_dir()
        assert store.root == root.resolve()

    def test_config_from_environment(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Without a config the store reads the environment."""
        monkeypatch.setenv("BUCKETSTORE_ROOT", str(tmp_path / "env-root"))

        store = FilesystemObjectStore()

        assert store.root == (tmp_path / "env-root").resolve()


class TestKeyHelpers:
    """Tests for logical key helpers."""

    @pytest.mark.parametrize(
        ("key", "expected"),
        [(None, ""), ("", ""), ("file.txt", ""), ("a/b/file.txt", "a/b"), ("a/", "a")],
    )
    def test_split_logical_key(self, key: str | None, expected: str) -> None:
        """Only the directory component of the key is kept."""
        assert split_logical_key(key) == expected

    @pytest.mark.parametrize(
        ("key", "filename", "expected"),
        [
            ("a/b/file.txt", None, ".txt"),
            ("a/b/file", "photo.JPG", ".JPG"),
            (None, "archive.tar.gz", ".gz"),
            (None, ".env", ""),
            (None, "C:\\Users\\me\\doc.pdf", ".pdf"),
            ("", "", ""),
            ("dir.d/file", None, ""),
        ],
    )
    def test_extension_for(self, key: str | None, filename: str | None, expected: str) -> None:
        """The key's extension wins; dotfiles have none."""
        assert extension_for(key, filename) == expected


class TestOtelSpans:
    """Tests for OpenTelemetry span emission."""

    @pytest.fixture(autouse=True)
    def reset_tracing_env(self) -> Iterator[None]:
        """Reset tracing state around each test."""
        from bucketstore.observability.tracing import reset_tracing

        reset_tracing()
        yield
        reset_tracing()

    def _enable_capture(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("BUCKETSTORE_OTEL_ENABLED", "1")
        monkeypatch.setenv("BUCKETSTORE_OTEL_TEST_CAPTURE", "1")

        from bucketstore.observability.tracing import clear_test_spans, configure_tracing

        configure_tracing()
        clear_test_spans()

    def _spans(self, name: str) -> list[Any]:
        from bucketstore.observability.tracing import get_test_spans

        spans = get_test_spans()
        return [s for s in spans if s.name == name]

    def test_upload_emits_span_with_safe_attributes(
        self,
        store: FilesystemObjectStore,
        storage_root: Path,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Upload spans carry bucket, key hash and digest, never paths or raw keys."""
        self._enable_capture(monkeypatch)

        key = "private/report.txt"
        store.upload("docs", key, io.BytesIO(b"hello"))

        upload_spans = self._spans("bucketstore.object_store.upload")
        assert len(upload_spans) == 1

        attrs = dict(upload_spans[0].attributes or {})
        assert attrs["bucketstore.bucket"] == "docs"
        assert attrs["bucketstore.object_key_sha256"] == hashlib.sha256(key.encode()).hexdigest()
        assert attrs["bucketstore.object_sha256"] == HELLO_SHA256
        assert attrs["bucketstore.object_size_bytes"] == 5
        assert attrs["bucketstore.deduplicated"] is False
        assert attrs["storage.backend"] == "filesystem"

        for value in attrs.values():
            if isinstance(value, str):
                assert str(storage_root) not in value
                assert key not in value

    def test_dedup_recorded_on_span(
        self, store: FilesystemObjectStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """The dedup outcome is visible in traces."""
        self._enable_capture(monkeypatch)

        store.upload("docs", "a.txt", io.BytesIO(b"same"))
        store.upload("docs", "a.txt", io.BytesIO(b"same"))

        spans = self._spans("bucketstore.object_store.upload")
        assert [dict(s.attributes or {})["bucketstore.deduplicated"] for s in spans] == [
            False,
            True,
        ]

    def test_error_recorded_on_span(
        self, store: FilesystemObjectStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Failures mark the span with the error type."""
        self._enable_capture(monkeypatch)

        with pytest.raises(InvalidPathError):
            store.put("docs", "../escape", io.BytesIO(b"x"))

        spans = self._spans("bucketstore.object_store.put")
        assert len(spans) == 1
        attrs = dict(spans[0].attributes or {})
        assert attrs["error"] is True
        assert attrs["error.type"] == "InvalidPathError"

    def test_put_stream_emits_span(
        self, store: FilesystemObjectStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Async direct writes are traced too."""
        self._enable_capture(monkeypatch)

        async def body() -> AsyncIterator[bytes]:
            yield b"abc"

        asyncio.run(store.put_stream("docs", "s.bin", body()))

        spans = self._spans("bucketstore.object_store.put_stream")
        assert len(spans) == 1
        assert dict(spans[0].attributes or {})["bucketstore.object_size_bytes"] == 3

    def test_no_spans_when_disabled(self, store: FilesystemObjectStore) -> None:
        """Tracing is off unless explicitly enabled."""
        from bucketstore.observability.tracing import clear_test_spans

        clear_test_spans()

        store.upload("docs", "a.txt", io.BytesIO(b"x"))

        assert self._spans("bucketstore.object_store.upload") == []
