"""bucketstore - content-addressed object store over HTTP."""

__version__ = "0.1.0"
