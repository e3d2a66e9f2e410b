"""bucketstore object storage.

Provides bucket-scoped object storage with content-addressed, de-duplicated
uploads and overwriting direct writes to explicit keys.

Components:
- PathResolver: lexical containment checks for buckets and keys
- ContentHasher: streaming SHA-256 fingerprints
- StagingWriter: randomly named stage files for in-flight uploads
- DedupFinalizer: link-if-absent promotion of stages
- DirectKeyWriter: raw writes to explicit keys
- FilesystemObjectStore: the backend composing all of the above
"""

from bucketstore.storage.direct import DirectKeyWriter
from bucketstore.storage.errors import (
    DuplicateContentResolved,
    InvalidPathError,
    ObjectStorageError,
    StorageIOError,
)
from bucketstore.storage.filesystem_store import FilesystemObjectStore
from bucketstore.storage.finalize import DedupFinalizer
from bucketstore.storage.hashing import ContentHasher
from bucketstore.storage.models import FinalizeResult, StagedFile, StoredObject, WriteResult
from bucketstore.storage.object_store import ObjectStore
from bucketstore.storage.paths import PathResolver
from bucketstore.storage.staging import StagingWriter

__all__ = [
    "ContentHasher",
    "DedupFinalizer",
    "DirectKeyWriter",
    "DuplicateContentResolved",
    "FilesystemObjectStore",
    "FinalizeResult",
    "InvalidPathError",
    "ObjectStorageError",
    "ObjectStore",
    "PathResolver",
    "StagedFile",
    "StagingWriter",
    "StorageIOError",
    "StoredObject",
    "WriteResult",
]
