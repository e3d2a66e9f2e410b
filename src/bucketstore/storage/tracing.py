"""bucketstore object storage OpenTelemetry tracing integration.

Provides tracing decorators for storage operations.

Security:
    - Never export absolute filesystem paths in span attributes
    - Keys are exported only as their SHA-256 hash
"""

from __future__ import annotations

import functools
import hashlib
import inspect
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar, cast

from bucketstore.observability.tracing import is_tracing_enabled

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


@contextmanager
def _storage_span(operation: str, store: Any, bucket: str, key: str | None) -> Iterator[Any]:
    """Open a storage span with the request-independent attributes set."""
    from opentelemetry import trace

    tracer = trace.get_tracer("bucketstore.object_store")
    with tracer.start_as_current_span(f"bucketstore.object_store.{operation}") as span:
        span.set_attribute("bucketstore.bucket", bucket)
        # Raw keys may carry user data; correlate by hash only.
        key_sha256 = hashlib.sha256((key or "").encode("utf-8")).hexdigest()
        span.set_attribute("bucketstore.object_key_sha256", key_sha256)
        span.set_attribute("storage.backend", getattr(store, "backend_name", "unknown"))
        try:
            yield span
        except Exception as e:
            span.set_attribute("error", True)
            span.set_attribute("error.type", type(e).__name__)
            raise


def traced_storage_operation(operation: str) -> Callable[[F], F]:
    """Decorator to trace storage operations with OpenTelemetry.

    Works for both plain and coroutine methods whose first two positional
    arguments after self are the bucket and the key.

    Args:
        operation: Operation name (e.g., "upload", "put", "put_stream").

    Returns:
        Decorated function that emits spans when tracing is enabled.
    """

    def decorator(func: F) -> F:
        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(
                self: Any, bucket: str, key: str | None, *args: Any, **kwargs: Any
            ) -> Any:
                if not is_tracing_enabled():
                    return await func(self, bucket, key, *args, **kwargs)
                with _storage_span(operation, self, bucket, key) as span:
                    result = await func(self, bucket, key, *args, **kwargs)
                    _add_result_attributes(span, result)
                    return result

            return cast(F, async_wrapper)

        @functools.wraps(func)
        def wrapper(self: Any, bucket: str, key: str | None, *args: Any, **kwargs: Any) -> Any:
            if not is_tracing_enabled():
                return func(self, bucket, key, *args, **kwargs)
            with _storage_span(operation, self, bucket, key) as span:
                result = func(self, bucket, key, *args, **kwargs)
                _add_result_attributes(span, result)
                return result

        return cast(F, wrapper)

    return decorator


def _add_result_attributes(span: Any, result: Any) -> None:
    """Add result-based attributes to span safely.

    Only adds the content fingerprint, size and dedup outcome. Never paths.
    """
    try:
        from bucketstore.storage.models import StoredObject

        if isinstance(result, StoredObject):
            if result.sha256:
                span.set_attribute("bucketstore.object_sha256", result.sha256)
            span.set_attribute("bucketstore.object_size_bytes", result.size_bytes)
            span.set_attribute("bucketstore.deduplicated", result.deduplicated)
    except Exception as e:
        logger.debug("Failed to add result attributes to span: %s", e)
