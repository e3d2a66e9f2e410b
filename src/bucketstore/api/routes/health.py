"""Health check endpoint for the bucketstore API."""

from datetime import UTC, datetime

from fastapi import APIRouter
from pydantic import BaseModel

from bucketstore import __version__

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Health check response schema."""

    ok: bool
    time: str
    version: str


@router.get("/_health", response_model=HealthResponse)
def get_health() -> HealthResponse:
    """Health check endpoint.

    Returns JSON with ok, time (ISO-8601), and version. The X-Request-Id
    header is added by the request ID middleware.
    """
    return HealthResponse(
        ok=True,
        time=datetime.now(UTC).isoformat(),
        version=__version__,
    )
