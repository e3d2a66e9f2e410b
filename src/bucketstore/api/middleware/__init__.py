"""bucketstore API middleware package."""

from bucketstore.api.middleware.request_id import RequestIdMiddleware
from bucketstore.api.middleware.tracing import TracingEnrichmentMiddleware

__all__ = ["RequestIdMiddleware", "TracingEnrichmentMiddleware"]
