"""
Shared pytest fixtures for integration tests.

Provides reusable test fixtures for:
- A built site (fingerprinted assets + manifest) in a temporary directory
- The site application and a LambdaHandler wrapping it
- The deployed function URL (deployed tests only)
"""

import os
from pathlib import Path

import pytest

from app.adapter import LambdaHandler
from app.assets import build_asset_bundle
from app.config import AdapterSettings, Config, SiteSettings
from webapp.app import create_app, make_error_page
from webapp.state import STATIC_SOURCE_DIR, SiteState, build_site_state


@pytest.fixture(scope="session")
def project_root() -> Path:
    """
    Get project root directory.

    Returns:
        Path to project root
    """
    # Integration tests are in tests/integration/
    return Path(__file__).parent.parent.parent


@pytest.fixture
def site_settings(tmp_path) -> SiteSettings:
    """Site settings pointing at a freshly built site."""
    settings = SiteSettings(_env_file=None, output_name="test-site", root=str(tmp_path / "site"), name="Test Site")
    build_asset_bundle(STATIC_SOURCE_DIR, settings.root, settings.pkg_dir, settings.output_name)
    return settings


@pytest.fixture
def site_state(site_settings, monkeypatch) -> SiteState:
    monkeypatch.setenv("CONTACT_EMAIL", "hello@example.com")
    monkeypatch.delenv("ANALYTICS_ID", raising=False)
    return build_site_state(settings=site_settings, config=Config(use_local=True))


@pytest.fixture
def site_handler(site_state) -> LambdaHandler:
    """LambdaHandler serving the site exactly as main.py wires it."""
    return LambdaHandler(
        create_app(site_state),
        settings=AdapterSettings(_env_file=None),
        error_page=make_error_page(site_state),
    )


@pytest.fixture(scope="session")
def site_url() -> str:
    """
    Deployed function URL from SITE_URL.

    Tests using this fixture are skipped when it is not set.
    """
    url = os.getenv("SITE_URL")
    if not url:
        pytest.skip("SITE_URL not set - deploy the stack and export its SiteUrl output")
    return url.rstrip("/")
