"""Span enrichment for the bucketstore API.

Adds the request id, and for writes the target bucket, to the server span
opened by the FastAPI instrumentation. Keys, bodies and filesystem paths are
never attached.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from bucketstore.api.middleware.request_id import request_id_of
from bucketstore.observability.tracing import set_span_attributes

_WRITE_METHODS = frozenset({"POST", "PUT"})


def _bucket_of(request: Request) -> str | None:
    if request.method not in _WRITE_METHODS:
        return None
    return request.url.path.lstrip("/").split("/", 1)[0] or None


class TracingEnrichmentMiddleware(BaseHTTPMiddleware):
    """Copies request context onto the current span.

    Runs inside RequestIdMiddleware.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        set_span_attributes(
            {
                "bucketstore.request_id": request_id_of(request),
                "bucketstore.bucket": _bucket_of(request),
            }
        )
        return await call_next(request)
