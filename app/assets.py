"""
Compiled asset manifest.

The client bundle is built by fingerprinting every file of the static
source directory into <site root>/<pkg dir>/ and writing a manifest
(<site root>/<output name>.manifest.json) that maps logical names to hashed names:

    {"app.css": "app.3f9c2a1b.css", "app.js": "app.91d0e4c7.js"}

The manifest is loaded once per process and never mutated afterwards.
"""

import hashlib
import json
import logging
import shutil
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Mapping, Optional

logger = logging.getLogger(__name__)


class AssetManifest:
    """Read-only mapping of logical asset names to fingerprinted file names."""

    def __init__(self, entries: Mapping[str, str], base_url: str = "/pkg", directory: Optional[Path] = None):
        self._entries = MappingProxyType(dict(entries))
        self.base_url = base_url.rstrip("/")
        self.directory = directory

    @property
    def entries(self) -> Mapping[str, str]:
        return self._entries

    def url(self, name: str) -> str:
        """URL for a logical asset name; unknown names are served unhashed."""
        return f"{self.base_url}/{self._entries.get(name, name)}"

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def manifest_path(site_root: str, output_name: str) -> Path:
    # Kept beside the asset directory so it is never served as a static file
    return Path(site_root) / f"{output_name}.manifest.json"


@lru_cache(maxsize=4)
def load_manifest(site_root: str, pkg_dir: str, output_name: str) -> AssetManifest:
    """
    Load the asset manifest for a built site (cached per process).

    Missing manifests are not an error: local development serves the
    unhashed source files.

    Args:
        site_root: Built site directory (e.g. "target/site")
        pkg_dir: Asset directory under the site root (e.g. "pkg")
        output_name: Artifact name the manifest was written for

    Returns:
        AssetManifest (empty when no build output exists)
    """
    path = manifest_path(site_root, output_name)
    if not path.exists():
        logger.warning(f"Asset manifest not found at {path}, serving unhashed assets")
        return AssetManifest({}, base_url=f"/{pkg_dir}")

    with open(path) as f:
        entries = json.load(f)

    logger.info(f"Loaded asset manifest with {len(entries)} entries from {path}")
    return AssetManifest(entries, base_url=f"/{pkg_dir}", directory=Path(site_root) / pkg_dir)


def fingerprint(path: Path, length: int = 8) -> str:
    """Content hash used in fingerprinted file names."""
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(65536), b""):
            digest.update(block)
    return digest.hexdigest()[:length]


def build_asset_bundle(source_dir: Path, site_root: str, pkg_dir: str, output_name: str) -> Dict[str, str]:
    """
    Fingerprint static files into the built site and write the manifest.

    Args:
        source_dir: Directory with unhashed static files
        site_root: Built site directory
        pkg_dir: Asset directory under the site root
        output_name: Artifact name the server expects

    Returns:
        Manifest entries (logical name -> hashed name)
    """
    source_dir = Path(source_dir)
    if not source_dir.is_dir():
        raise FileNotFoundError(f"Static source directory not found: {source_dir}")

    out_dir = Path(site_root) / pkg_dir
    if out_dir.exists():
        shutil.rmtree(out_dir)
    out_dir.mkdir(parents=True)

    entries: Dict[str, str] = {}
    for path in sorted(p for p in source_dir.rglob("*") if p.is_file()):
        logical = path.relative_to(source_dir).as_posix()
        hashed = path.relative_to(source_dir).with_name(f"{path.stem}.{fingerprint(path)}{path.suffix}")
        target = out_dir / hashed
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(path, target)
        entries[logical] = hashed.as_posix()

    with open(manifest_path(site_root, output_name), "w") as f:
        json.dump(entries, f, indent=2, sort_keys=True)

    logger.info(f"Built {len(entries)} assets into {out_dir}")
    return entries
