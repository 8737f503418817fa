"""Routes ``/api/spreadsheet/<id>/...`` requests to the spreadsheet's own router."""

from __future__ import annotations

from sheetserver.api.tenant import TenantContextCache
from sheetserver.core.errors import MissingSpreadsheetIdError
from sheetserver.core.ids import SpreadsheetId
from sheetserver.hateos.routing import HttpRequest, HttpResponse, not_found


class SpreadsheetIdPathDispatcher:
    """Request handler reading the spreadsheet id at a fixed path position.

    ``path_component`` counts segments after the root, so for
    ``/api/spreadsheet/<id>/cell/A1`` the id is component 2.  A path with
    nothing after the id is not found; an empty id is a bad request.
    """

    def __init__(self, path_component: int, tenants: TenantContextCache):
        if path_component < 0:
            raise ValueError(f"path_component must be >= 0, got {path_component}")
        self._path_component = path_component
        self._tenants = tenants

    def __call__(self, request: HttpRequest) -> HttpResponse:
        segments = request.segments
        index = self._path_component
        if len(segments) <= index + 1 or not segments[index + 1]:
            return not_found(request)

        text = segments[index]
        if not text:
            raise MissingSpreadsheetIdError()
        spreadsheet_id = SpreadsheetId.parse(text)

        tenant = self._tenants.resolve(spreadsheet_id)
        return tenant.router.or_else(not_found)(request)
