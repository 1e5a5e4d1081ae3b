"""Request-id middleware feeding the logging context."""

from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from ..core.constants import REQUEST_ID_HEADER
from ..core.request_context import reset_request_id, set_request_id
from ..core.ulid_helper import generate_ulid


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Adopt the caller's X-Request-ID (or mint one) and echo it on the response."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = (request.headers.get(REQUEST_ID_HEADER) or "").strip()[:64] or generate_ulid()
        token = set_request_id(request_id)
        try:
            response = await call_next(request)
        finally:
            reset_request_id(token)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
