"""Response encoder: NormalizedResponse -> InvocationResponse."""

import base64
import json
from typing import Any, Dict, Iterator, List, Mapping, Optional

from app.adapter.decoder import integration_handler
from app.config import DEFAULT_TEXT_MIME_TYPES, LAMBDA_MAX_RESPONSE_BYTES
from app.errors import PayloadTooLargeError
from app.models import EventSource, InvocationResponse, NormalizedResponse

# Separates the JSON prelude from the body in a streamed HTTP integration response
STREAM_PRELUDE_DELIMITER = b"\x00" * 8
STREAM_CONTENT_TYPE = "application/vnd.awslambda.http-integration-response"


class ResponseEncoder:
    """
    Serialize application responses into host response envelopes.

    Usage:
        encoder = ResponseEncoder(max_body_bytes=6 * 1024 * 1024)
        envelope = encoder.encode(response, source=EventSource.FUNCTION_URL)
        return encoder.payload(envelope, EventSource.FUNCTION_URL, event)
    """

    def __init__(
        self,
        max_body_bytes: int = LAMBDA_MAX_RESPONSE_BYTES,
        text_mime_types: Optional[List[str]] = None,
        base64_binary: bool = True,
    ):
        """
        Args:
            max_body_bytes: Host limit on the encoded body size
            text_mime_types: Content-type prefixes that are sent as text
            base64_binary: Base64-encode every non-text content type, even when
                the bytes happen to be valid UTF-8
        """
        self.max_body_bytes = max_body_bytes
        self.text_mime_types = text_mime_types or list(DEFAULT_TEXT_MIME_TYPES)
        self.base64_binary = base64_binary

    def encode(
        self,
        response: NormalizedResponse,
        source: EventSource = EventSource.FUNCTION_URL,
        multi_value: bool = False,
    ) -> InvocationResponse:
        """
        Encode a response for the host.

        Raises:
            PayloadTooLargeError: If the encoded body exceeds max_body_bytes
        """
        body, is_base64 = self.encode_body(response)

        size = len(body.encode("utf-8"))
        if size > self.max_body_bytes:
            raise PayloadTooLargeError(size, self.max_body_bytes)

        return InvocationResponse(
            status_code=response.status_code,
            headers=list(response.headers),
            body=body,
            is_base64_encoded=is_base64,
            multi_value=multi_value,
        )

    def payload(
        self,
        envelope: InvocationResponse,
        source: EventSource,
        event: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Render the host response payload for an encoded response.

        Integration events are shaped by the Mangum handler for the event,
        which splits headers, multi-value headers and cookies the way the
        integration expects. The body and its base64 flag always come from
        this encoder. Direct invocations, and events that could not be read,
        use InvocationResponse.to_payload().
        """
        handler = integration_handler(event) if event is not None and source != EventSource.DIRECT else None
        if handler is None:
            return envelope.to_payload(source)

        payload = handler(
            {
                "status": envelope.status_code,
                "headers": [(key.encode("utf-8"), value.encode("utf-8")) for key, value in envelope.headers],
                "body": b"",
            }
        )
        payload["body"] = envelope.body
        payload["isBase64Encoded"] = envelope.is_base64_encoded

        has_content_type = any(key.lower() == "content-type" for key, _ in envelope.headers)
        if not has_content_type and isinstance(payload.get("headers"), dict):
            # Mangum defaults payload v2 responses to a JSON content type
            payload["headers"].pop("content-type", None)
        if source == EventSource.ALB:
            payload.setdefault("statusDescription", envelope.status_description)
        return payload

    def encode_body(self, response: NormalizedResponse):
        """Return (body text, is_base64) for a response body."""
        if not response.body:
            return "", False

        if self.base64_binary and not self.is_text(response):
            return base64.b64encode(response.body).decode("ascii"), True

        try:
            return response.body.decode("utf-8"), False
        except UnicodeDecodeError:
            return base64.b64encode(response.body).decode("ascii"), True

    def is_text(self, response: NormalizedResponse) -> bool:
        """Whether a response is sent as text rather than binary."""
        if response.header("content-encoding"):
            return False
        content_type = (response.header("content-type") or "").lower()
        if not content_type:
            return True
        mime_type = content_type.split(";", 1)[0].strip()
        if mime_type.endswith("+json") or mime_type.endswith("+xml"):
            return True
        return any(mime_type.startswith(prefix) for prefix in self.text_mime_types)

    def encode_stream(self, response: NormalizedResponse, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
        """
        Yield a streamed HTTP integration response.

        The stream starts with a JSON prelude (status, headers, cookies) and
        eight NUL bytes, followed by the raw body.

        Raises:
            PayloadTooLargeError: If the body exceeds max_body_bytes
        """
        if len(response.body) > self.max_body_bytes:
            raise PayloadTooLargeError(len(response.body), self.max_body_bytes)

        envelope = InvocationResponse(status_code=response.status_code, headers=list(response.headers))
        prelude = envelope.to_payload(EventSource.FUNCTION_URL)
        del prelude["body"]
        del prelude["isBase64Encoded"]

        def chunks():
            yield json.dumps(prelude).encode("utf-8")
            yield STREAM_PRELUDE_DELIMITER
            for start in range(0, len(response.body), chunk_size):
                yield response.body[start:start + chunk_size]

        return chunks()
