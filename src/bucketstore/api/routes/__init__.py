"""bucketstore API routers."""
