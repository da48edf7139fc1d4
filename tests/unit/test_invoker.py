"""
Unit tests for the rendering invoker.

Tests cover:
- ASGI scope construction
- Response collection (status, headers, body, streaming flag)
- Application failures converted to RenderingError
- Cancellation at the host deadline
"""

import asyncio
import json

import pytest

from app.adapter.decoder import decode_event
from app.adapter.invoker import RenderingInvoker, build_scope
from app.errors import RenderingError
from app.models import NormalizedRequest


def make_request(path="/", method="GET", **kwargs) -> NormalizedRequest:
    return NormalizedRequest(method=method, path=path, **kwargs)


class TestBuildScope:
    """Tests for build_scope."""

    def test_basic_scope(self):
        request = make_request(
            "/posts/hello%20world",
            headers={"host": ["example.com:8443"], "accept": ["text/html"]},
            query={"a": ["1", "2"]},
            source_ip="203.0.113.9",
            request_id="req-1",
        )

        scope = build_scope(request)

        assert scope["type"] == "http"
        assert scope["method"] == "GET"
        assert scope["path"] == "/posts/hello world"
        assert scope["raw_path"] == b"/posts/hello%20world"
        assert scope["query_string"] == b"a=1&a=2"
        assert (b"accept", b"text/html") in scope["headers"]
        assert scope["server"] == ("example.com", 8443)
        assert scope["client"] == ("203.0.113.9", 0)
        assert scope["aws.request_id"] == "req-1"

    def test_scheme_and_default_port(self):
        request = make_request(headers={"host": ["example.com"], "x-forwarded-proto": ["http"]})
        scope = build_scope(request)
        assert scope["scheme"] == "http"
        assert scope["server"] == ("example.com", 80)

    def test_raw_query_string_passed_unchanged(self, url_event):
        request = decode_event(url_event(query="a=1&b=2&a=3"))

        scope = build_scope(request)

        assert scope["query_string"] == b"a=1&b=2&a=3"

    def test_request_id_falls_back_to_context(self, make_context):
        scope = build_scope(make_request(), make_context(request_id="ctx-9"))
        assert scope["aws.request_id"] == "ctx-9"
        assert scope["client"] is None


class TestRenderingInvoker:
    """Tests for RenderingInvoker."""

    def test_renders_html(self, asgi_app):
        response = RenderingInvoker(asgi_app)(make_request("/"))

        assert response.status_code == 200
        assert response.header("content-type").startswith("text/html")
        assert b"<h1>Home</h1>" in response.body
        assert response.streaming is False

    def test_passes_request_through(self, asgi_app, lambda_context):
        request = make_request(
            "/echo",
            headers={"x-custom": ["yes"]},
            query={"tag": ["a", "b"]},
            source_ip="198.51.100.1",
            request_id="abc",
        )

        response = RenderingInvoker(asgi_app)(request, lambda_context)

        payload = json.loads(response.body)
        assert payload["path"] == "/echo"
        assert payload["headers"]["x-custom"] == "yes"
        assert payload["client"] == "198.51.100.1"
        assert payload["request_id"] == "abc"

    def test_request_body_delivered(self, asgi_app):
        request = make_request("/upload", method="POST", body=bytes([0xFF, 0xFE]))

        response = RenderingInvoker(asgi_app)(request)

        assert response.body == bytes([0xFF, 0xFE])

    def test_streaming_flag_set_for_chunked_bodies(self, asgi_app):
        response = RenderingInvoker(asgi_app)(make_request("/stream"))

        assert response.streaming is True
        assert response.body == b"<p>one</p><p>two</p><p>three</p>"

    def test_not_found_is_a_response_not_an_error(self, asgi_app):
        response = RenderingInvoker(asgi_app)(make_request("/missing"))
        assert response.status_code == 404

    def test_application_exception_raises_rendering_error(self, asgi_app):
        with pytest.raises(RenderingError) as exc_info:
            RenderingInvoker(asgi_app)(make_request("/boom"))

        assert exc_info.value.status_code == 500
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert "hunter2" not in str(exc_info.value)

    def test_no_response_raises_rendering_error(self):
        async def silent_app(scope, receive, send):
            return None

        with pytest.raises(RenderingError, match="without sending a response"):
            RenderingInvoker(silent_app)(make_request())

    def test_incomplete_body_raises_rendering_error(self):
        async def partial_app(scope, receive, send):
            await send({"type": "http.response.start", "status": 200, "headers": []})
            await send({"type": "http.response.body", "body": b"half", "more_body": True})

        with pytest.raises(RenderingError, match="before completing"):
            RenderingInvoker(partial_app)(make_request())

    def test_app_raising_cancelled_error_is_a_rendering_error(self):
        async def cancelling_app(scope, receive, send):
            raise asyncio.CancelledError()

        with pytest.raises(RenderingError, match="cancelled the render") as exc_info:
            RenderingInvoker(cancelling_app)(make_request())

        assert exc_info.value.status_code == 500

    def test_second_response_start_is_a_rendering_error(self):
        async def double_start_app(scope, receive, send):
            await send({"type": "http.response.start", "status": 200, "headers": []})
            await send({"type": "http.response.start", "status": 200, "headers": []})

        with pytest.raises(RenderingError):
            RenderingInvoker(double_start_app)(make_request())

    def test_receive_reports_disconnect_after_response(self):
        messages = []

        async def app(scope, receive, send):
            messages.append(await receive())
            await send({"type": "http.response.start", "status": 204, "headers": []})
            await send({"type": "http.response.body", "body": b""})
            messages.append(await receive())

        response = RenderingInvoker(app)(make_request(body=b"payload"))

        assert response.status_code == 204
        assert messages[0] == {"type": "http.request", "body": b"payload", "more_body": False}
        assert messages[1] == {"type": "http.disconnect"}

    def test_render_cancelled_at_host_deadline(self, asgi_app, make_context):
        context = make_context(remaining_ms=300)
        invoker = RenderingInvoker(asgi_app, cancel_margin_ms=200)

        with pytest.raises(RenderingError) as exc_info:
            invoker(make_request("/slow"), context)

        assert exc_info.value.status_code == 504

    def test_no_deadline_without_context(self):
        assert RenderingInvoker(None)._time_budget(None) is None

    def test_time_budget_subtracts_margin(self, make_context):
        invoker = RenderingInvoker(None, cancel_margin_ms=500)
        assert invoker._time_budget(make_context(remaining_ms=3000)) == pytest.approx(2.5)
        assert invoker._time_budget(make_context(remaining_ms=100)) == 0
