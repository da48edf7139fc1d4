"""
Adapter error taxonomy.

Every error raised inside the invocation pipeline carries the HTTP status
it is surfaced with. None of them are retried by the adapter.
"""


class AdapterError(Exception):
    """Base class for errors raised while handling an invocation."""

    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class MalformedEventError(AdapterError):
    """Raised when the invocation event cannot be decoded into a request."""

    status_code = 400


class RenderingError(AdapterError):
    """Raised when the embedded application fails to produce a response."""

    status_code = 500


class PayloadTooLargeError(AdapterError):
    """Raised when the encoded response body exceeds the host limit."""

    status_code = 500

    def __init__(self, size: int, limit: int):
        super().__init__(f"Encoded response body is {size} bytes, limit is {limit} bytes")
        self.size = size
        self.limit = limit


class StreamingNotEnabledError(AdapterError):
    """Raised when a streamed response is requested but streaming is off."""
