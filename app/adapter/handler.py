"""
Lambda entrypoint adapter.

LambdaHandler composes the decoder, the rendering invoker and the encoder,
and guarantees one well-formed response per invocation: every adapter
error is converted into an error page instead of crashing the instance.
"""

import logging
import time
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Tuple

from app.adapter.decoder import decode_event, detect_source
from app.adapter.encoder import ResponseEncoder
from app.adapter.invoker import ASGIApp, RenderingInvoker
from app.config import AdapterSettings, get_adapter_settings
from app.errors import (
    AdapterError,
    MalformedEventError,
    PayloadTooLargeError,
    RenderingError,
    StreamingNotEnabledError,
)
from app.models import EventSource, InvocationResponse, NormalizedRequest, NormalizedResponse

logger = logging.getLogger(__name__)

ErrorPage = Callable[[AdapterError, Optional[NormalizedRequest]], NormalizedResponse]

PUBLIC_MESSAGES = {
    MalformedEventError: "The request could not be understood.",
    PayloadTooLargeError: "The response was too large to deliver.",
    RenderingError: "The page could not be rendered.",
}


def describe_error(error: AdapterError) -> str:
    """Public, non-sensitive description of an adapter error."""
    if error.status_code == 504:
        return "The page took too long to render."
    for error_type, message in PUBLIC_MESSAGES.items():
        if isinstance(error, error_type):
            return message
    return "An unexpected error occurred."


def default_error_page(error: AdapterError, request: Optional[NormalizedRequest] = None) -> NormalizedResponse:
    """Render a minimal error page, HTML when the client accepts it."""
    message = describe_error(error)
    accept = request.header("accept", "") if request else ""

    if "text/html" in accept:
        body = (
            "<!DOCTYPE html><html><head><title>Error {status}</title></head>"
            "<body><h1>{status}</h1><p>{message}</p></body></html>"
        ).format(status=error.status_code, message=message)
        content_type = "text/html; charset=utf-8"
    else:
        body = f"{error.status_code}: {message}"
        content_type = "text/plain; charset=utf-8"

    return NormalizedResponse(
        status_code=error.status_code,
        headers=[("content-type", content_type), ("cache-control", "no-store")],
        body=body.encode("utf-8"),
    )


class LambdaHandler:
    """
    Callable registered as the Lambda function handler.

    Usage:
        handler = LambdaHandler(app)
        # Lambda calls handler(event, context)
    """

    def __init__(
        self,
        app: ASGIApp,
        settings: Optional[AdapterSettings] = None,
        error_page: Optional[ErrorPage] = None,
    ):
        """
        Args:
            app: ASGI application to render requests with
            settings: Adapter settings (defaults to the process-wide settings)
            error_page: Renderer for error responses; falls back to
                default_error_page if it fails
        """
        self.settings = settings or get_adapter_settings()
        self.invoker = RenderingInvoker(app, cancel_margin_ms=self.settings.cancel_margin_ms)
        self.encoder = ResponseEncoder(
            max_body_bytes=self.settings.max_response_bytes,
            text_mime_types=self.settings.text_mime_types,
            base64_binary=self.settings.base64_binary,
        )
        self.error_page = error_page or default_error_page

    @property
    def streaming_enabled(self) -> bool:
        return self.settings.response_streaming

    def __call__(self, event: Mapping[str, Any], context: Any = None) -> Dict[str, Any]:
        """
        Handle one invocation and return the host response payload.

        Args:
            event: Invocation event
            context: Lambda context

        Returns:
            Response payload shaped for the event's source
        """
        request, response = self.respond(event, context)
        source, multi_value = self._reply_shape(event, request)

        try:
            envelope = self.encoder.encode(response, source=source, multi_value=multi_value)
        except PayloadTooLargeError as e:
            logger.error(f"[{self._correlation_id(request, context)}] {e}")
            try:
                envelope = self.encoder.encode(
                    self._error_response(e, request), source=source, multi_value=multi_value
                )
            except PayloadTooLargeError:
                envelope = InvocationResponse(
                    status_code=e.status_code,
                    headers=[("content-type", "text/plain; charset=utf-8")],
                    body=str(e.status_code),
                    multi_value=multi_value,
                )

        # Events that could not be decoded are answered without a Mangum handler
        return self.encoder.payload(envelope, source, event if request is not None else None)

    def stream(self, event: Mapping[str, Any], context: Any = None) -> Iterator[bytes]:
        """
        Handle one invocation as a streamed HTTP integration response.

        Raises:
            StreamingNotEnabledError: If response streaming was not enabled at startup
        """
        if not self.streaming_enabled:
            raise StreamingNotEnabledError("Response streaming is not enabled (ADAPTER_RESPONSE_STREAMING)")

        request, response = self.respond(event, context)
        try:
            return self.encoder.encode_stream(response)
        except PayloadTooLargeError as e:
            logger.error(f"[{self._correlation_id(request, context)}] {e}")
            return self.encoder.encode_stream(self._error_response(e, request))

    def respond(
        self, event: Mapping[str, Any], context: Any = None
    ) -> Tuple[Optional[NormalizedRequest], NormalizedResponse]:
        """Decode and render an event; adapter errors become error responses."""
        try:
            request = decode_event(event, context)
        except MalformedEventError as e:
            logger.warning(f"[{self._correlation_id(None, context)}] Rejected malformed event: {e}")
            return None, self._error_response(e, None)
        except MemoryError:
            raise
        except Exception as e:
            logger.warning(f"[{self._correlation_id(None, context)}] Unreadable invocation event: {e}", exc_info=True)
            return None, self._error_response(MalformedEventError("Unreadable invocation event"), None)

        correlation_id = self._correlation_id(request, context)
        started = time.perf_counter()

        try:
            response = self.invoker(request, context)
        except RenderingError as e:
            logger.error(
                f"[{correlation_id}] Rendering failed for {request.method} {request.path}: {e}",
                exc_info=True,
            )
            return request, self._error_response(e, request)
        except MemoryError:
            raise
        except Exception as e:
            logger.error(f"[{correlation_id}] Unexpected adapter failure: {e}", exc_info=True)
            return request, self._error_response(RenderingError("Unexpected adapter failure"), request)

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"[{correlation_id}] {request.method} {request.path} -> "
            f"{response.status_code} ({len(response.body)} bytes, {elapsed_ms:.1f} ms)"
        )
        return request, response

    def _error_response(self, error: AdapterError, request: Optional[NormalizedRequest]) -> NormalizedResponse:
        if self.error_page is not default_error_page:
            try:
                return self.error_page(error, request)
            except Exception as e:
                logger.error(f"Error page renderer failed, using default: {e}", exc_info=True)
        return default_error_page(error, request)

    def _reply_shape(
        self, event: Mapping[str, Any], request: Optional[NormalizedRequest]
    ) -> Tuple[EventSource, bool]:
        if request is not None:
            return request.source, request.multi_value
        try:
            source = detect_source(event)
        except MalformedEventError:
            return EventSource.FUNCTION_URL, False
        return source, "multiValueHeaders" in event

    @staticmethod
    def _correlation_id(request: Optional[NormalizedRequest], context: Any) -> str:
        if request is not None and request.request_id:
            return request.request_id
        return getattr(context, "aws_request_id", None) or "-"
