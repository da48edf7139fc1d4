#!/usr/bin/env python3
"""
Operator CLI: build, package, deploy and invoke the site locally.

Usage:
    site-lambda build-assets
    site-lambda package [--with-deps]
    site-lambda deploy --env dev
    site-lambda invoke events/get-home.json

Environment:
    SITE_OUTPUT_NAME, SITE_ROOT, SITE_PKG_DIR select where the built site
    and the deployment artifact are written (see app.config.SiteSettings).
"""

import argparse
import json
import os
import subprocess
import sys
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from app.assets import build_asset_bundle
from app.config import SiteSettings, get_site_settings
from version import BUILD_INFO_NAME, make_build_info

PROJECT_ROOT = Path(__file__).resolve().parent.parent
SERVER_SOURCES = ["main.py", "version.py", "app", "webapp"]
EXCLUDED_PARTS = {"__pycache__", "tests", "static"}


def artifact_path(settings: SiteSettings, dist_dir: Path) -> Path:
    """Deployment artifact named after the output name."""
    return Path(dist_dir) / f"{settings.output_name}.zip"


def resolve_site_root(settings: SiteSettings, project_root: Path = PROJECT_ROOT) -> Path:
    site_root = Path(settings.root)
    return site_root if site_root.is_absolute() else project_root / site_root


def cmd_build_assets(args, settings: SiteSettings) -> int:
    site_root = resolve_site_root(settings)
    entries = build_asset_bundle(Path(args.source), str(site_root), settings.pkg_dir, settings.output_name)
    print(f"Built {len(entries)} assets into {site_root / settings.pkg_dir}")
    for logical, hashed in sorted(entries.items()):
        print(f"  {logical} -> {hashed}")
    return 0


def _iter_sources(root: Path):
    for name in SERVER_SOURCES:
        path = root / name
        if path.is_file():
            yield path
        elif path.is_dir():
            for child in sorted(path.rglob("*")):
                relative = child.relative_to(root)
                if child.is_file() and not EXCLUDED_PARTS.intersection(relative.parts):
                    yield child


def package_artifact(
    settings: SiteSettings,
    dist_dir: Path,
    project_root: Path = PROJECT_ROOT,
    deps_dir: Optional[Path] = None,
) -> Path:
    """
    Zip server sources, the built site and optional dependencies.

    Returns:
        Path to the written artifact

    Raises:
        FileNotFoundError: If the site has not been built yet
    """
    site_root = resolve_site_root(settings, project_root)
    if not site_root.is_dir():
        raise FileNotFoundError(f"Built site not found at {site_root}; run build-assets first")

    # The function resolves SITE_ROOT relative to the artifact root
    archive_root = Path(settings.root) if not Path(settings.root).is_absolute() else Path(site_root.name)

    target = artifact_path(settings, dist_dir)
    target.parent.mkdir(parents=True, exist_ok=True)

    with zipfile.ZipFile(target, "w", zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(BUILD_INFO_NAME, json.dumps(make_build_info(settings.output_name), indent=2))
        for path in _iter_sources(project_root):
            archive.write(path, path.relative_to(project_root).as_posix())
        for path in sorted(site_root.rglob("*")):
            if path.is_file():
                archive.write(path, (archive_root / path.relative_to(site_root)).as_posix())
        if deps_dir is not None:
            for path in sorted(Path(deps_dir).rglob("*")):
                if path.is_file() and "__pycache__" not in path.parts:
                    archive.write(path, path.relative_to(deps_dir).as_posix())

    return target


def cmd_package(args, settings: SiteSettings) -> int:
    deps_dir = None
    if args.with_deps:
        deps_dir = Path(args.dist) / "deps"
        subprocess.run(
            [
                sys.executable, "-m", "pip", "install", str(PROJECT_ROOT),
                "--target", str(deps_dir),
                "--platform", "manylinux2014_x86_64" if args.arch == "x86_64" else "manylinux2014_aarch64",
                "--only-binary=:all:",
                "--upgrade",
            ],
            check=True,
        )

    target = package_artifact(settings, Path(args.dist), deps_dir=deps_dir)
    print(f"Wrote {target} ({target.stat().st_size} bytes)")
    return 0


def cmd_deploy(args, settings: SiteSettings) -> int:
    artifact = artifact_path(settings, Path(args.dist)).resolve()
    if not artifact.exists():
        print(f"Artifact not found: {artifact}; run package first", file=sys.stderr)
        return 1

    env = dict(
        os.environ,
        SITE_ARTIFACT=str(artifact),
        SITE_OUTPUT_NAME=settings.output_name,
    )
    command = ["cdk", "deploy", "--context", f"env={args.env}", "--require-approval", args.approval]
    print(f"Deploying {artifact.name} to environment: {args.env}")
    return subprocess.run(command, cwd=PROJECT_ROOT / "infrastructure", env=env).returncode


class LocalContext:
    """Minimal stand-in for the Lambda context object."""

    def __init__(self, request_id: str = "local-invoke", timeout_ms: int = 30000):
        self.aws_request_id = request_id
        self.function_name = "site-lambda-local"
        self._deadline = datetime.now(timezone.utc).timestamp() * 1000 + timeout_ms

    def get_remaining_time_in_millis(self) -> int:
        return max(int(self._deadline - datetime.now(timezone.utc).timestamp() * 1000), 0)


def cmd_invoke(args, settings: SiteSettings) -> int:
    with open(args.event) as f:
        event = json.load(f)

    from main import handler

    response = handler(event, LocalContext(timeout_ms=args.timeout_ms))
    print(json.dumps(response, indent=2))
    return 0 if response["statusCode"] < 500 else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="site-lambda", description="Build and deploy the site to AWS Lambda")
    subparsers = parser.add_subparsers(dest="command", required=True)

    build = subparsers.add_parser("build-assets", help="Fingerprint static assets and write the manifest")
    build.add_argument("--source", default=str(PROJECT_ROOT / "webapp" / "static"), help="Static source directory")
    build.set_defaults(func=cmd_build_assets)

    package = subparsers.add_parser("package", help="Zip the server and built site into the deployment artifact")
    package.add_argument("--dist", default="dist", help="Output directory (default: dist)")
    package.add_argument("--with-deps", action="store_true", help="Install dependencies into the artifact")
    package.add_argument("--arch", choices=["x86_64", "arm64"], default="arm64", help="Lambda architecture")
    package.set_defaults(func=cmd_package)

    deploy = subparsers.add_parser("deploy", help="Deploy the artifact with the CDK app")
    deploy.add_argument("--env", choices=["dev", "test", "prod"], default="dev", help="Target environment")
    deploy.add_argument("--dist", default="dist", help="Directory holding the artifact")
    deploy.add_argument("--approval", choices=["never", "any-change", "broadening"], default="broadening")
    deploy.set_defaults(func=cmd_deploy)

    invoke = subparsers.add_parser("invoke", help="Run an event JSON file through the handler locally")
    invoke.add_argument("event", help="Path to an invocation event JSON file")
    invoke.add_argument("--timeout-ms", type=int, default=30000, help="Simulated function timeout")
    invoke.set_defaults(func=cmd_invoke)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args, get_site_settings())


if __name__ == "__main__":
    sys.exit(main())
