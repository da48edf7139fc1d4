"""
Normalized request/response models.

These models decouple the adapter pipeline from the host's event shapes:
the decoder produces a NormalizedRequest, the application produces a
NormalizedResponse and the encoder turns it into an InvocationResponse.
"""

from enum import Enum
from http import HTTPStatus
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class EventSource(str, Enum):
    """Shape of the invocation event (and of the expected response)."""

    FUNCTION_URL = "function_url"
    API_GATEWAY_V1 = "api_gateway_v1"
    ALB = "alb"
    DIRECT = "direct"


class NormalizedRequest(BaseModel):
    """HTTP request decoded from one invocation event."""

    model_config = ConfigDict(frozen=True)

    method: str
    path: str
    headers: Dict[str, List[str]] = Field(default_factory=dict)
    query: Dict[str, List[str]] = Field(default_factory=dict)
    query_string: bytes = b""
    body: bytes = b""
    source: EventSource = EventSource.DIRECT
    multi_value: bool = False
    source_ip: Optional[str] = None
    request_id: Optional[str] = None

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Return the first value of a header (case-insensitive)."""
        values = self.headers.get(name.lower())
        return values[0] if values else default


class NormalizedResponse(BaseModel):
    """HTTP response produced by the application for one request."""

    model_config = ConfigDict(frozen=True)

    status_code: int
    headers: List[Tuple[str, str]] = Field(default_factory=list)
    body: bytes = b""
    streaming: bool = False

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        name = name.lower()
        for key, value in self.headers:
            if key.lower() == name:
                return value
        return default


class InvocationResponse(BaseModel):
    """Host response envelope for one invocation."""

    model_config = ConfigDict(frozen=True)

    status_code: int
    headers: List[Tuple[str, str]] = Field(default_factory=list)
    body: str = ""
    is_base64_encoded: bool = False
    multi_value: bool = False

    @property
    def cookies(self) -> List[str]:
        return [value for key, value in self.headers if key.lower() == "set-cookie"]

    @property
    def status_description(self) -> str:
        try:
            phrase = HTTPStatus(self.status_code).phrase
        except ValueError:
            phrase = "Unknown"
        return f"{self.status_code} {phrase}"

    def multi_value_headers(self) -> Dict[str, List[str]]:
        grouped: Dict[str, List[str]] = {}
        for key, value in self.headers:
            grouped.setdefault(key, []).append(value)
        return grouped

    def to_payload(self, source: EventSource) -> Dict[str, Any]:
        """
        Render the JSON envelope for an event source without a Mangum handler.

        Args:
            source: Event source the request was decoded from

        Returns:
            Dict ready to be returned from the Lambda handler
        """
        payload: Dict[str, Any] = {
            "statusCode": self.status_code,
            "body": self.body,
            "isBase64Encoded": self.is_base64_encoded,
        }
        grouped = self.multi_value_headers()

        if source == EventSource.FUNCTION_URL:
            # Payload v2 folds repeated headers with commas, except cookies
            payload["headers"] = {
                key: ",".join(values)
                for key, values in grouped.items()
                if key.lower() != "set-cookie"
            }
            if self.cookies:
                payload["cookies"] = self.cookies
        elif source == EventSource.DIRECT:
            payload["headers"] = grouped
        elif source == EventSource.API_GATEWAY_V1:
            payload["multiValueHeaders"] = grouped
        else:
            # ALB only accepts multiValueHeaders when the target group enables them
            payload["statusDescription"] = self.status_description
            if self.multi_value:
                payload["multiValueHeaders"] = grouped
            else:
                payload["headers"] = {key: values[-1] for key, values in grouped.items()}

        return payload
