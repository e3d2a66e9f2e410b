"""bucketstore HTTP API."""
