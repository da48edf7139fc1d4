"""
Build stamp for the site, reported at /health.

`site-lambda package` writes build_info.json into the artifact root, next
to this module. Outside a packaged artifact the stamp is assembled on the
fly from APP_VERSION, GIT_SHA and SITE_OUTPUT_NAME, falling back to git.
"""

import json
import os
import subprocess
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

__version__ = "0.1.0"

BUILD_INFO_NAME = "build_info.json"
ARTIFACT_ROOT = Path(__file__).resolve().parent


def git_revision(cwd: Path = ARTIFACT_ROOT) -> Optional[str]:
    """Short SHA of the checkout, or None outside a git work tree."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
            cwd=cwd,
        )
    except (OSError, subprocess.SubprocessError):
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def make_build_info(output_name: str) -> Dict[str, str]:
    """Stamp for a deployment artifact built now."""
    return {
        "version": os.getenv("APP_VERSION", __version__),
        "git_sha": os.getenv("GIT_SHA") or git_revision() or "unknown",
        "build_timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        "output_name": output_name,
    }


def read_build_info(root: Path = ARTIFACT_ROOT) -> Optional[Dict[str, str]]:
    path = Path(root) / BUILD_INFO_NAME
    if not path.is_file():
        return None
    with open(path, encoding="utf-8") as f:
        return {key: str(value) for key, value in json.load(f).items()}


@lru_cache(maxsize=1)
def get_version_info() -> Dict[str, str]:
    # The packaged stamp wins over anything computed at runtime
    info = read_build_info(ARTIFACT_ROOT) or make_build_info(os.getenv("SITE_OUTPUT_NAME", "site"))
    info["runtime"] = "lambda" if os.getenv("AWS_LAMBDA_FUNCTION_NAME") else "local"
    return info
