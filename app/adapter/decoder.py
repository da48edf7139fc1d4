"""
Event decoder: Lambda invocation event -> NormalizedRequest.

Supported event shapes:
- Lambda function URL / API Gateway HTTP API (payload format 2.0)
- API Gateway REST API (payload format 1.0)
- Application Load Balancer target events
- Direct invocations ({"method": ..., "path": ..., "headers": ..., "body": ...})

Integration events are recognised and read with Mangum's event handlers;
the decoder adds validation on top so that a bad event becomes a
MalformedEventError instead of an exception deep inside the application.
"""

import base64
import binascii
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import parse_qsl, urlencode

from mangum.handlers import ALB, APIGateway, HTTPGateway

from app.config import DEFAULT_TEXT_MIME_TYPES
from app.errors import MalformedEventError
from app.models import EventSource, NormalizedRequest

# RFC 9110 token characters
_TOKEN_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")
# Visible characters, space and tab; no CR, LF or NUL
_HEADER_VALUE_RE = re.compile(r"^[\t\x20-\x7e\x80-\xff]*$")

# Same precedence Mangum uses when inferring the handler
HANDLERS = (ALB, HTTPGateway, APIGateway)

LAMBDA_CONFIG = {
    "api_gateway_base_path": "/",
    "text_mime_types": list(DEFAULT_TEXT_MIME_TYPES),
    "exclude_headers": [],
}

_MAPPING_FIELDS = (
    "requestContext",
    "headers",
    "multiValueHeaders",
    "queryStringParameters",
    "multiValueQueryStringParameters",
)


def _handler_class(event: Mapping[str, Any]):
    for handler_cls in HANDLERS:
        if handler_cls.infer(event, None, LAMBDA_CONFIG):
            return handler_cls
    return None


def detect_source(event: Mapping[str, Any]) -> EventSource:
    """
    Identify which integration produced an event.

    Raises:
        MalformedEventError: If the event matches no known shape
    """
    if not isinstance(event, Mapping):
        raise MalformedEventError("Invocation event must be a JSON object")
    request_context = event.get("requestContext")
    if request_context is not None and not isinstance(request_context, Mapping):
        raise MalformedEventError("requestContext must be a JSON object")

    handler_cls = _handler_class(event)
    if handler_cls is ALB:
        return EventSource.ALB
    if handler_cls is HTTPGateway:
        # HTTP APIs can also deliver payload format 1.0
        return EventSource.FUNCTION_URL if event.get("version") == "2.0" else EventSource.API_GATEWAY_V1
    if handler_cls is APIGateway:
        return EventSource.API_GATEWAY_V1
    if "method" in event or "path" in event:
        return EventSource.DIRECT
    raise MalformedEventError("Unrecognized invocation event shape")


def integration_handler(event: Mapping[str, Any], context: Any = None):
    """
    Mangum handler for an integration event (None for direct invocations).

    The handler reads a shallow copy of the event with absent header maps
    filled in; the caller's event is never modified.
    """
    handler_cls = _handler_class(event)
    if handler_cls is None:
        return None

    prepared = dict(event)
    for key in ("headers", "multiValueHeaders"):
        if key in prepared and prepared[key] is None:
            del prepared[key]
    if "headers" not in prepared and "multiValueHeaders" not in prepared:
        prepared["headers"] = {}
    return handler_cls(prepared, context, LAMBDA_CONFIG)


def decode_event(event: Mapping[str, Any], context: Any = None) -> NormalizedRequest:
    """
    Decode an invocation event into a NormalizedRequest.

    Args:
        event: Raw event mapping delivered by the host runtime
        context: Lambda context, passed through to the ASGI scope

    Returns:
        NormalizedRequest with lower-cased header names and decoded body

    Raises:
        MalformedEventError: If required fields are missing or invalid
    """
    source = detect_source(event)
    if source == EventSource.DIRECT:
        fields = _fields_from_direct(event)
    else:
        fields = _fields_from_integration(event, context)

    method, path = fields["method"], fields["path"]
    if not method:
        raise MalformedEventError("Invocation event has no HTTP method")
    if not path:
        raise MalformedEventError("Invocation event has no path")
    if not isinstance(method, str) or not _TOKEN_RE.match(method):
        raise MalformedEventError(f"Invalid HTTP method: {method!r}")
    if not isinstance(path, str) or not path.startswith("/"):
        raise MalformedEventError(f"Invalid request path: {path!r}")

    query_string = fields["query_string"]
    return NormalizedRequest(
        method=method.upper(),
        path=path,
        headers=_normalize_headers(fields["headers"]),
        query=_group(parse_qsl(query_string.decode("latin-1"), keep_blank_values=True)),
        query_string=query_string,
        body=fields["body"],
        source=source,
        multi_value=fields.get("multi_value", False),
        source_ip=fields.get("source_ip"),
        request_id=fields.get("request_id"),
    )


def _fields_from_integration(event: Mapping[str, Any], context: Any) -> Dict[str, Any]:
    for key in _MAPPING_FIELDS:
        value = event.get(key)
        if value is not None and not isinstance(value, Mapping):
            raise MalformedEventError(f"{key} must be a JSON object")

    cookies = event.get("cookies")
    if cookies is not None and (
        not isinstance(cookies, list) or not all(isinstance(cookie, str) for cookie in cookies)
    ):
        raise MalformedEventError("cookies must be a list of strings")

    _check_body(event.get("body"), bool(event.get("isBase64Encoded")))

    handler = integration_handler(event, context)
    try:
        scope = handler.scope
        body = handler.body
    except (KeyError, TypeError, AttributeError, ValueError, IndexError) as e:
        raise MalformedEventError(f"Invocation event has missing or invalid fields ({type(e).__name__})") from e

    request_context = event.get("requestContext") or {}
    client = scope.get("client") or (None, 0)
    return {
        "method": scope.get("method"),
        "path": scope.get("path"),
        "headers": [(name.decode("utf-8"), value.decode("utf-8")) for name, value in scope["headers"]],
        "query_string": scope.get("query_string") or b"",
        "body": body,
        "multi_value": isinstance(event.get("multiValueHeaders"), Mapping),
        "source_ip": client[0] or None,
        "request_id": request_context.get("requestId"),
    }


def _fields_from_direct(event: Mapping[str, Any]) -> Dict[str, Any]:
    path = event.get("path")
    query = event.get("query")
    if query is not None and not isinstance(query, Mapping):
        raise MalformedEventError("query must be a JSON object")

    extra_query = urlencode(_flatten(query or {}))
    raw_query = ""
    # Allow "/search?q=x" as a shorthand for path + query
    if isinstance(path, str) and "?" in path:
        path, _, raw_query = path.partition("?")
    query_string = "&".join(part for part in (raw_query, extra_query) if part)

    return {
        "method": event.get("method"),
        "path": path,
        "headers": _header_pairs(event.get("headers")),
        "query_string": query_string.encode("utf-8"),
        "body": _check_body(event.get("body"), bool(event.get("isBase64Encoded"))),
        "request_id": event.get("requestId"),
    }


def _header_pairs(headers: Optional[Mapping[str, Any]]) -> List[Tuple[str, str]]:
    if headers is None:
        return []
    if not isinstance(headers, Mapping):
        raise MalformedEventError("Headers must be a mapping of names to values")
    return _flatten(headers)


def _flatten(mapping: Mapping[str, Any]) -> List[Tuple[str, str]]:
    """Expand {name: value | [values]} into ordered (name, value) pairs."""
    pairs = []
    for name, values in mapping.items():
        if values is None:
            continue
        if isinstance(values, (str, int, float)):
            values = [values]
        if not isinstance(values, Iterable):
            raise MalformedEventError(f"Invalid value for {name!r}")
        for value in values:
            pairs.append((str(name), str(value)))
    return pairs


def _group(pairs: Iterable[Tuple[str, str]]) -> Dict[str, List[str]]:
    grouped: Dict[str, List[str]] = {}
    for name, value in pairs:
        grouped.setdefault(name, []).append(value)
    return grouped


def _normalize_headers(pairs: List[Tuple[str, str]]) -> Dict[str, List[str]]:
    headers: Dict[str, List[str]] = {}
    for name, value in pairs:
        if not _TOKEN_RE.match(name):
            raise MalformedEventError(f"Invalid header name: {name!r}")
        if not _HEADER_VALUE_RE.match(value):
            raise MalformedEventError(f"Invalid value for header {name!r}")
        headers.setdefault(name.lower(), []).append(value)
    return headers


def _check_body(body: Any, is_base64: bool) -> bytes:
    """Validate and decode an event body."""
    if body is None or body == "":
        return b""
    if not isinstance(body, str):
        raise MalformedEventError("Body must be a string")
    if is_base64:
        try:
            return base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError):
            raise MalformedEventError("Body is flagged as base64 but is not valid base64")
    return body.encode("utf-8")
