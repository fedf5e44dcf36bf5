"""
Request ID middleware.

Every request gets an id (client-supplied ``X-Request-ID`` or a fresh
UUID). It is echoed in the response and attached to every log record
emitted while the request is handled.
"""

import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from core.logging_config import request_id_var


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())

        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        try:
            response: Response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            request_id_var.reset(token)


def get_request_id(request: Request) -> str:
    """Request id from request state, or "no-request-id" outside the middleware."""
    return getattr(request.state, "request_id", "no-request-id")
