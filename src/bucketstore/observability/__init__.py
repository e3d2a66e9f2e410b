"""bucketstore observability module.

Provides the OpenTelemetry tracing baseline.
"""

from bucketstore.observability.tracing import configure_tracing, get_current_trace_id

__all__ = ["configure_tracing", "get_current_trace_id"]
