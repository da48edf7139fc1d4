"""
Shared pytest fixtures for adapter and site tests.

Provides:
- Invocation event builders for every supported event source
- A fake Lambda context
- A small FastAPI application exercising success and failure paths
"""

import asyncio
from typing import Any, Dict, List, Optional

import pytest
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, Response, StreamingResponse


class FakeLambdaContext:
    """Stand-in for the Lambda context object."""

    def __init__(self, request_id: str = "req-123", remaining_ms: Optional[int] = 30000):
        self.aws_request_id = request_id
        self.function_name = "site-lambda-test"
        self._remaining_ms = remaining_ms

    def get_remaining_time_in_millis(self) -> int:
        return self._remaining_ms


def function_url_event(
    method: str = "GET",
    path: str = "/",
    headers: Optional[Dict[str, str]] = None,
    query: str = "",
    body: Optional[str] = None,
    is_base64: bool = False,
    cookies: Optional[List[str]] = None,
) -> Dict[str, Any]:
    event = {
        "version": "2.0",
        "routeKey": "$default",
        "rawPath": path,
        "rawQueryString": query,
        "headers": headers or {"host": "abc123.lambda-url.us-east-1.on.aws"},
        "requestContext": {
            "requestId": "url-req-1",
            "http": {"method": method, "path": path, "sourceIp": "203.0.113.9"},
        },
        "isBase64Encoded": is_base64,
    }
    if body is not None:
        event["body"] = body
    if cookies:
        event["cookies"] = cookies
    return event


def api_gateway_v1_event(
    method: str = "GET",
    path: str = "/",
    headers: Optional[Dict[str, str]] = None,
    multi_headers: Optional[Dict[str, List[str]]] = None,
    query: Optional[Dict[str, List[str]]] = None,
    body: Optional[str] = None,
) -> Dict[str, Any]:
    return {
        "resource": "/{proxy+}",
        "httpMethod": method,
        "path": path,
        "headers": headers,
        "multiValueHeaders": multi_headers,
        "queryStringParameters": {k: v[-1] for k, v in (query or {}).items()} or None,
        "multiValueQueryStringParameters": query,
        "requestContext": {"requestId": "rest-req-1", "identity": {"sourceIp": "198.51.100.7"}},
        "body": body,
        "isBase64Encoded": False,
    }


def alb_event(
    method: str = "GET",
    path: str = "/",
    headers: Optional[Dict[str, str]] = None,
    query: Optional[Dict[str, str]] = None,
    multi_value: bool = False,
) -> Dict[str, Any]:
    event = {
        "requestContext": {"elb": {"targetGroupArn": "arn:aws:elasticloadbalancing:us-east-1:000000000000:targetgroup/site/1"}},
        "httpMethod": method,
        "path": path,
        "body": "",
        "isBase64Encoded": False,
    }
    if multi_value:
        event["multiValueHeaders"] = {k: [v] for k, v in (headers or {}).items()}
        event["multiValueQueryStringParameters"] = {k: [v] for k, v in (query or {}).items()}
    else:
        event["headers"] = headers or {}
        event["queryStringParameters"] = query or {}
    return event


@pytest.fixture
def lambda_context():
    return FakeLambdaContext()


@pytest.fixture
def make_context():
    """Factory for Lambda contexts with a custom request id or deadline."""
    return FakeLambdaContext


@pytest.fixture
def url_event():
    """Builder for function URL (payload v2.0) events."""
    return function_url_event


@pytest.fixture
def rest_event():
    """Builder for API Gateway REST (payload v1.0) events."""
    return api_gateway_v1_event


@pytest.fixture
def elb_event():
    """Builder for ALB target events."""
    return alb_event


@pytest.fixture
def asgi_app():
    """FastAPI app with routes covering the adapter's success and failure paths."""
    test_app = FastAPI()

    @test_app.get("/", response_class=HTMLResponse)
    async def index():
        return "<html><body><h1>Home</h1></body></html>"

    @test_app.get("/echo")
    async def echo(request: Request):
        return {
            "method": request.method,
            "path": request.url.path,
            "query": dict(request.query_params.multi_items()),
            "headers": {k: v for k, v in request.headers.items()},
            "client": request.client.host if request.client else None,
            "request_id": request.scope.get("aws.request_id"),
        }

    @test_app.post("/upload")
    async def upload(request: Request):
        body = await request.body()
        return Response(content=body, media_type="application/octet-stream")

    @test_app.get("/binary")
    async def binary():
        return Response(content=bytes([0xFF, 0xFE, 0x00, 0x01]), media_type="image/png")

    @test_app.get("/cookies")
    async def cookies():
        response = HTMLResponse("<p>ok</p>")
        response.set_cookie("session", "abc")
        response.set_cookie("theme", "dark")
        return response

    @test_app.get("/stream")
    async def stream():
        async def chunks():
            for part in (b"<p>one</p>", b"<p>two</p>", b"<p>three</p>"):
                yield part
        return StreamingResponse(chunks(), media_type="text/html")

    @test_app.get("/large")
    async def large():
        return Response(content=b"x" * 4096, media_type="text/plain")

    @test_app.get("/boom")
    async def boom():
        raise RuntimeError("database password is hunter2")

    @test_app.get("/slow")
    async def slow():
        await asyncio.sleep(5)
        return {"done": True}

    return test_app

