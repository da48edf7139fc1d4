"""
Rendering invoker: runs one NormalizedRequest through an ASGI application.

The application is driven on a fresh event loop per invocation through
Mangum's HTTP cycle. When the host exposes a deadline (Lambda's
get_remaining_time_in_millis), the render task is cancelled shortly before
it so in-flight work stops promptly.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional
from urllib.parse import unquote, urlencode

from mangum.protocols.http import HTTPCycle, HTTPCycleState

from app.errors import RenderingError
from app.models import NormalizedRequest, NormalizedResponse

logger = logging.getLogger(__name__)

ASGIApp = Callable[[Dict[str, Any], Callable[[], Awaitable[dict]], Callable[[dict], Awaitable[None]]], Awaitable[None]]


class RenderCycle(HTTPCycle):
    """
    HTTP cycle that records application errors instead of masking them.

    Mangum's cycle turns any exception into a 500 response; the invoker
    needs the exception itself to raise a RenderingError.
    """

    def __init__(self, scope: Dict[str, Any], body: bytes):
        super().__init__(scope, body)
        self.error: Optional[Exception] = None
        self.chunks = 0

    async def run(self, app: ASGIApp) -> None:
        try:
            await app(self.scope, self.receive, self.send)
        except Exception as e:
            self.error = e

    async def send(self, message: dict) -> None:
        if self.state is HTTPCycleState.RESPONSE and message.get("type") == "http.response.body":
            self.chunks += 1
        await super().send(message)

    def disconnect(self) -> None:
        self.app_queue.put_nowait({"type": "http.disconnect"})


class RenderingInvoker:
    """
    Invoke the embedded rendering application for one request.

    Usage:
        invoker = RenderingInvoker(app)
        response = invoker(request, context)
    """

    def __init__(self, app: ASGIApp, cancel_margin_ms: int = 250):
        """
        Args:
            app: ASGI application (FastAPI/Starlette)
            cancel_margin_ms: Cancel the render this long before the host deadline
        """
        self.app = app
        self.cancel_margin_ms = cancel_margin_ms

    def __call__(self, request: NormalizedRequest, context: Any = None) -> NormalizedResponse:
        """
        Render a request synchronously.

        Raises:
            RenderingError: If the application fails, is cancelled, or does not
                produce a complete response
        """
        return asyncio.run(self.render(request, context))

    async def render(self, request: NormalizedRequest, context: Any = None) -> NormalizedResponse:
        cycle = RenderCycle(build_scope(request, context), request.body)
        timeout = self._time_budget(context)

        task = asyncio.ensure_future(cycle.run(self.app))
        done, _ = await asyncio.wait({task}, timeout=timeout)

        if not done:
            cycle.disconnect()
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            raise RenderingError("Render cancelled at the host deadline", status_code=504)

        # The application raised CancelledError itself
        if task.cancelled():
            raise RenderingError("Application cancelled the render")

        error = cycle.error
        if isinstance(error, MemoryError):
            raise error
        if error is not None:
            raise RenderingError(f"Application raised {type(error).__name__}") from error

        if cycle.state is HTTPCycleState.REQUEST:
            raise RenderingError("Application returned without sending a response")
        if cycle.state is not HTTPCycleState.COMPLETE:
            raise RenderingError("Application returned before completing the response body")

        return NormalizedResponse(
            status_code=cycle.status,
            headers=[(key.decode("latin-1"), value.decode("latin-1")) for key, value in cycle.headers],
            body=cycle.body,
            streaming=cycle.chunks > 1,
        )

    def _time_budget(self, context: Any) -> Optional[float]:
        """Seconds left before the host deadline, minus the cancel margin."""
        get_remaining = getattr(context, "get_remaining_time_in_millis", None)
        if get_remaining is None:
            return None
        remaining_ms = get_remaining() - self.cancel_margin_ms
        return max(remaining_ms, 0) / 1000


def build_scope(request: NormalizedRequest, context: Any = None) -> Dict[str, Any]:
    """Build the ASGI HTTP connection scope for a request."""
    host = request.header("host", "localhost")
    server_name, _, port = host.partition(":")
    scheme = request.header("x-forwarded-proto", "https")
    default_port = 443 if scheme == "https" else 80

    raw_headers = [
        (name.encode("latin-1"), value.encode("latin-1"))
        for name, values in request.headers.items()
        for value in values
    ]

    query_string = request.query_string
    if not query_string and request.query:
        # Requests built in code carry only the parsed mapping
        query_string = urlencode(request.query, doseq=True).encode("latin-1")

    return {
        "type": "http",
        "asgi": {"version": "3.0", "spec_version": "2.3"},
        "http_version": "1.1",
        "method": request.method,
        "scheme": scheme,
        "path": unquote(request.path),
        "raw_path": request.path.encode("utf-8"),
        "root_path": "",
        "query_string": query_string,
        "headers": raw_headers,
        "client": (request.source_ip, 0) if request.source_ip else None,
        "server": (server_name, int(port) if port.isdigit() else default_port),
        "aws.context": context,
        "aws.request_id": request.request_id or getattr(context, "aws_request_id", None),
    }
