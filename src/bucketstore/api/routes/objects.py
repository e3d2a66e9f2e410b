"""Object write routes for the bucketstore API.

- POST /{bucket}            multipart upload, stored under its content address
- PUT  /{bucket}/{key:path} raw body written verbatim to an explicit key

Storage calls run off the event loop. Whether a hashed upload was
de-duplicated is logged but not exposed in the response.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Annotated, Any

from fastapi import APIRouter, File, Form, Request, UploadFile
from pydantic import BaseModel

from bucketstore.api.errors import ErrorResponse, StoreHttpError
from bucketstore.api.middleware.request_id import request_id_of
from bucketstore.storage.object_store import ObjectStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Objects"])

_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


class UploadResponse(BaseModel):
    """Response model for hashed uploads."""

    bucket: str
    key: str
    url: str
    size: int
    sha256: str


class PutResponse(BaseModel):
    """Response model for direct writes."""

    bucket: str
    key: str
    url: str
    size: int


def get_store(request: Request) -> ObjectStore:
    """Return the object store attached to the application."""
    store: ObjectStore = request.app.state.store
    return store


@router.post("/{bucket}", response_model=UploadResponse, responses=_ERROR_RESPONSES)
async def upload_object(
    bucket: str,
    request: Request,
    file: Annotated[UploadFile | None, File()] = None,
    key: Annotated[str | None, Form()] = None,
    key_alt: Annotated[str | None, Form(alias="Key")] = None,
) -> UploadResponse:
    """Store an uploaded file under its content address.

    The optional "key" (or "Key") form field supplies the directory and
    extension; the leaf name is replaced by the fingerprint. An empty file
    is a valid upload.

    Raises:
        StoreHttpError: 400 MISSING_FILE when no file part was sent.
    """
    if file is None:
        raise StoreHttpError(
            status_code=400,
            code="MISSING_FILE",
            message="Missing uploaded file",
        )

    store = get_store(request)
    logical_key = key or key_alt or ""

    try:
        stored = await asyncio.to_thread(
            store.upload,
            bucket,
            logical_key,
            file.file,
            filename=file.filename,
        )
    finally:
        await file.close()

    logger.info(
        "Upload complete: bucket=%s key=%s deduplicated=%s",
        stored.bucket,
        stored.key,
        stored.deduplicated,
        extra={"request_id": request_id_of(request)},
    )
    return UploadResponse.model_validate(stored.to_dict())


@router.put(
    "/{bucket}/{key:path}", response_model=PutResponse, responses=_ERROR_RESPONSES
)
async def put_object(bucket: str, key: str, request: Request) -> PutResponse:
    """Stream the raw request body to an explicit key.

    Raises:
        StoreHttpError: 400 MISSING_KEY when the key path segment is empty.
    """
    if not key:
        raise StoreHttpError(
            status_code=400,
            code="MISSING_KEY",
            message="Missing key",
        )

    store = get_store(request)
    stored = await store.put_stream(bucket, key, request.stream())

    logger.info(
        "Put complete: bucket=%s key=%s size=%d",
        stored.bucket,
        stored.key,
        stored.size_bytes,
        extra={"request_id": request_id_of(request)},
    )
    return PutResponse.model_validate(stored.to_dict())
