"""Serves files below a directory for every path no API router claims."""

from __future__ import annotations

import mimetypes
from functools import partial
from pathlib import Path

from sheetserver.core.errors import MissingStoreError
from sheetserver.core.logging import get_logger
from sheetserver.hateos.routing import HttpRequest, HttpResponse, RequestHandler, Router

logger = get_logger(__name__)

INDEX_FILE = "index.html"


class StaticFileRouter(Router):
    """GET-only router over *root*; paths escaping *root* are never served."""

    def __init__(self, root: Path | str | None):
        self._root = Path(root).resolve() if root is not None else None

    def route(self, request: HttpRequest) -> RequestHandler | None:
        if self._root is None or request.method != "GET":
            return None
        path = self._resolve(request.segments)
        if path is None:
            return None
        return partial(self._serve, path)

    def _resolve(self, segments: tuple[str, ...]) -> Path | None:
        path = self._root.joinpath(*(s for s in segments if s)).resolve()
        if path != self._root and self._root not in path.parents:
            return None
        if path.is_dir():
            path = path / INDEX_FILE
        return path if path.is_file() else None

    @staticmethod
    def _serve(path: Path, request: HttpRequest) -> HttpResponse:
        try:
            content = path.read_bytes()
        except FileNotFoundError:
            raise MissingStoreError(f"Not Found: {request.path}") from None
        media_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        logger.debug("static.served", path=request.path, bytes=len(content))
        return HttpResponse(status=200, body=content, media_type=media_type)
