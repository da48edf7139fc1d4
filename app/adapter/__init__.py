"""Lambda request adapter: event decoding, rendering and response encoding."""

from app.adapter.decoder import decode_event, detect_source
from app.adapter.encoder import ResponseEncoder
from app.adapter.handler import LambdaHandler, default_error_page, describe_error
from app.adapter.invoker import RenderingInvoker, build_scope

__all__ = [
    "LambdaHandler",
    "RenderingInvoker",
    "ResponseEncoder",
    "build_scope",
    "decode_event",
    "default_error_page",
    "describe_error",
    "detect_source",
]
