"""Static serving of stored objects."""

from __future__ import annotations

from starlette.exceptions import HTTPException
from starlette.responses import Response
from starlette.staticfiles import StaticFiles
from starlette.types import Scope

from bucketstore.storage.staging import has_stage_segment


class ObjectFiles(StaticFiles):
    """StaticFiles that never serves in-flight stage files or directory indexes."""

    def __init__(self, directory: str) -> None:
        super().__init__(directory=directory, html=False)

    async def get_response(self, path: str, scope: Scope) -> Response:
        if has_stage_segment(path):
            raise HTTPException(status_code=404)
        return await super().get_response(path, scope)
