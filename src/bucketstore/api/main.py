"""bucketstore FastAPI application factory.

This module provides the create_app() factory for bootstrapping the API.
"""

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException

from bucketstore import __version__
from bucketstore.api.errors import (
    StoreHttpError,
    generic_exception_handler,
    http_exception_handler,
    invalid_path_error_handler,
    request_validation_error_handler,
    storage_io_error_handler,
    store_http_error_handler,
)
from bucketstore.api.middleware.request_id import RequestIdMiddleware
from bucketstore.api.middleware.tracing import TracingEnrichmentMiddleware
from bucketstore.api.routes.health import router as health_router
from bucketstore.api.routes.objects import router as objects_router
from bucketstore.api.static import ObjectFiles
from bucketstore.config import StoreConfig
from bucketstore.observability.tracing import configure_tracing, instrument_fastapi
from bucketstore.storage.errors import InvalidPathError, StorageIOError
from bucketstore.storage.filesystem_store import FilesystemObjectStore


def create_app(
    store: FilesystemObjectStore | None = None,
    config: StoreConfig | None = None,
) -> FastAPI:
    """Create and configure the bucketstore FastAPI application.

    This factory:
    - Builds the filesystem store (or uses the one given)
    - Registers middleware (request id outermost, span enrichment inside)
    - Registers exception handlers for storage and HTTP errors
    - Mounts the health and object routers
    - Serves stored objects under the configured public prefix

    Args:
        store: Optional store instance for testing. If None, one is built
            from config.
        config: Optional configuration. If None, read from the environment.
            Ignored when store is given.

    Returns:
        Configured FastAPI application instance.
    """
    if store is None:
        store = FilesystemObjectStore(config or StoreConfig.from_env())

    app = FastAPI(
        title="bucketstore",
        description="Content-addressed object store",
        version=__version__,
    )

    app.state.store = store

    configure_tracing()

    # Last added = outermost.
    app.add_middleware(TracingEnrichmentMiddleware)
    app.add_middleware(RequestIdMiddleware)

    instrument_fastapi(app)

    app.add_exception_handler(StoreHttpError, store_http_error_handler)
    app.add_exception_handler(InvalidPathError, invalid_path_error_handler)
    app.add_exception_handler(StorageIOError, storage_io_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(health_router)
    app.mount(
        store.config.public_prefix,
        ObjectFiles(directory=str(store.root)),
        name="public",
    )
    app.include_router(objects_router)

    return app
