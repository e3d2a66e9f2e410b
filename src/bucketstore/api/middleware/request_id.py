"""Request correlation ids for the bucketstore API.

Every request gets an id in request.state.request_id, echoed in the
X-Request-Id response header and in error envelopes. A client-supplied id is
reused only when it is short, visible ASCII; anything else is replaced so
headers and log lines stay well-formed.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-Id"

_MAX_REQUEST_ID_LENGTH = 128
_REQUEST_ID_PATTERN = re.compile(r"[\x21-\x7e]+")


def accept_request_id(raw: str | None) -> str:
    """Return the client id if usable, otherwise a fresh uuid4."""
    candidate = (raw or "").strip()
    if len(candidate) <= _MAX_REQUEST_ID_LENGTH and _REQUEST_ID_PATTERN.fullmatch(candidate):
        return candidate
    return str(uuid.uuid4())


def request_id_of(request: Request) -> str:
    """Return the id assigned to this request, assigning one if missing."""
    request_id: str | None = getattr(request.state, "request_id", None)
    if request_id is None:
        request_id = accept_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
    return request_id


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Assigns the correlation id and stamps it on the response."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request_id_of(request)
        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
