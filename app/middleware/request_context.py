"""
Request context middleware for FastAPI.

Exposes the invocation's correlation id to route handlers and echoes it back
to the client, so that page logs and Lambda logs can be matched up.
"""

import logging
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware that attaches a request id to every request.

    The id is taken from, in order:
    1. The adapter's scope extension (aws.request_id)
    2. An incoming X-Request-ID header
    3. A freshly generated UUID (local development)

    It is stored in request.state.request_id and returned in the
    X-Request-ID response header.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = (
            request.scope.get("aws.request_id")
            or request.headers.get(REQUEST_ID_HEADER)
            or str(uuid.uuid4())
        )
        request.state.request_id = request_id
        request.state.lambda_context = request.scope.get("aws.context")

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.debug(f"[{request_id}] {request.method} {request.url.path} -> {response.status_code}")
        return response


def get_request_id(request: Request) -> str:
    """
    Get the current request id from request state.

    Usable as a FastAPI dependency:

    @app.get("/")
    async def index(request_id: str = Depends(get_request_id)):
        ...
    """
    return getattr(request.state, "request_id", None) or "-"
