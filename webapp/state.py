"""
Process-wide site state.

Built once at cold start and shared by reference with every request; the
model is frozen so handlers can read it without locking.
"""

from pathlib import Path
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict

from app.assets import AssetManifest, load_manifest
from app.config import Config, SiteSettings, get_config, get_site_settings
from version import get_version_info

WEBAPP_DIR = Path(__file__).resolve().parent
TEMPLATES_DIR = WEBAPP_DIR / "templates"
STATIC_SOURCE_DIR = WEBAPP_DIR / "static"
CONTENT_DIR = WEBAPP_DIR / "content"


class SiteState(BaseModel):
    """Immutable cold-start state for the site."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    settings: SiteSettings
    manifest: AssetManifest
    static_dir: Path
    content_dir: Path
    metadata: Dict[str, Optional[str]]
    version: Dict[str, str]


def build_site_state(
    settings: Optional[SiteSettings] = None,
    config: Optional[Config] = None,
    content_dir: Optional[Path] = None,
) -> SiteState:
    """
    Resolve settings, asset manifest and page metadata once.

    Static files are served from the built site when a manifest exists,
    otherwise straight from the unhashed source directory.
    """
    settings = settings or get_site_settings()
    config = config or get_config()

    manifest = load_manifest(settings.root, settings.pkg_dir, settings.output_name)
    static_dir = manifest.directory or STATIC_SOURCE_DIR

    return SiteState(
        settings=settings,
        manifest=manifest,
        static_dir=static_dir,
        content_dir=content_dir or CONTENT_DIR,
        metadata=config.get_site_metadata(),
        version=get_version_info(),
    )
