"""
webapp/app.py

Server-rendered site served from AWS Lambda.
- Jinja2 templates rendered per request with server-side data loaders
- Fingerprinted static assets mounted under /<pkg dir>
- /health exposes build version info
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.adapter.handler import describe_error
from app.errors import AdapterError
from app.middleware.request_context import RequestContextMiddleware
from app.models import NormalizedRequest, NormalizedResponse
from webapp.loaders import load_post, load_posts
from webapp.state import TEMPLATES_DIR, SiteState

logger = logging.getLogger(__name__)


def create_templates(state: SiteState) -> Jinja2Templates:
    """Jinja2 environment with site-wide globals bound to the cold-start state."""
    templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
    templates.env.globals["asset_url"] = state.manifest.url
    templates.env.globals["site_name"] = state.settings.name
    templates.env.globals["metadata"] = state.metadata
    return templates


def create_app(state: SiteState) -> FastAPI:
    """
    Build the site application.

    Args:
        state: Immutable cold-start state shared by all requests

    Returns:
        FastAPI application
    """
    app = FastAPI(title=state.settings.name, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.site = state
    templates = create_templates(state)

    app.add_middleware(RequestContextMiddleware)
    app.mount(
        f"/{state.settings.pkg_dir}",
        StaticFiles(directory=str(state.static_dir)),
        name="static",
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_page(request: Request, exc: StarletteHTTPException):
        """Render HTTP errors (404, 405, ...) with the site layout."""
        return templates.TemplateResponse(
            request,
            "error.html",
            {"status_code": exc.status_code, "message": exc.detail},
            status_code=exc.status_code,
        )

    @app.get("/", response_class=HTMLResponse)
    async def index(request: Request) -> HTMLResponse:
        """Home page listing every post."""
        posts = await load_posts(state.content_dir)
        return templates.TemplateResponse(request, "index.html", {"posts": posts})

    @app.get("/posts/{slug}", response_class=HTMLResponse)
    async def post_detail(request: Request, slug: str) -> HTMLResponse:
        """Single post page."""
        post = await load_post(state.content_dir, slug)
        if post is None:
            raise HTTPException(status_code=404, detail="Post not found")
        return templates.TemplateResponse(request, "post.html", {"post": post})

    @app.get("/health")
    async def health() -> dict:
        """Liveness check with build version info."""
        return {"status": "healthy", **state.version}

    return app


def make_error_page(state: SiteState):
    """
    Adapter error renderer using the site's error template.

    Returns:
        Callable(error, request) -> NormalizedResponse
    """
    templates = create_templates(state)
    template = templates.get_template("error.html")

    def render(error: AdapterError, request: Optional[NormalizedRequest] = None) -> NormalizedResponse:
        html = template.render(status_code=error.status_code, message=describe_error(error))
        return NormalizedResponse(
            status_code=error.status_code,
            headers=[("content-type", "text/html; charset=utf-8"), ("cache-control", "no-store")],
            body=html.encode("utf-8"),
        )

    return render
