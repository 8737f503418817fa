"""Transaction-ID middleware: echoes the client's ``X-Transaction-ID``.

Clients tag requests with a transaction id so they can pair responses with
the edits that caused them; the header is copied back unchanged, errors
included.
"""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

TRANSACTION_ID_HEADER = "X-Transaction-ID"


class TransactionIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        transaction_id = request.headers.get(TRANSACTION_ID_HEADER)
        response = await call_next(request)
        if transaction_id is not None:
            response.headers[TRANSACTION_ID_HEADER] = transaction_id
        return response
