"""Request correlation middleware.

Every request gets a request id, either the caller's ``X-Request-ID`` or a
fresh UUID4 hex. The id, method and path are bound into structlog
contextvars for the lifetime of the request, echoed back in the response
header, and a single completion line with status and duration is logged.
"""
from __future__ import annotations

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from structlog.contextvars import bind_contextvars, clear_contextvars

logger = structlog.get_logger(__name__)

# Longer inbound ids are replaced rather than trusted
MAX_INBOUND_ID_LENGTH = 64


class RequestIdMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, header_name: str = "X-Request-ID") -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name

    def _request_id_for(self, request: Request) -> str:
        inbound = request.headers.get(self.header_name)
        if inbound and len(inbound) <= MAX_INBOUND_ID_LENGTH and inbound.isprintable():
            return inbound
        return uuid.uuid4().hex

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:  # type: ignore[override]
        request_id = self._request_id_for(request)
        clear_contextvars()
        bind_contextvars(request_id=request_id, method=request.method, path=request.url.path)
        request.state.request_id = request_id

        started = time.perf_counter()
        try:
            response: Response = await call_next(request)
            logger.info(
                "Request finished",
                status_code=response.status_code,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
            )
        finally:
            clear_contextvars()

        response.headers[self.header_name] = request_id
        return response
