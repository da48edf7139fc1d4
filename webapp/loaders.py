"""Server-side data loaders used while rendering pages."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles

logger = logging.getLogger(__name__)

POSTS_FILE = "posts.json"


async def load_posts(content_dir: Path) -> List[Dict[str, Any]]:
    """
    Load all posts, newest first.

    Args:
        content_dir: Directory holding posts.json

    Returns:
        List of post dicts (slug, title, date, summary, body)
    """
    path = Path(content_dir) / POSTS_FILE
    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        posts = json.loads(await f.read())

    logger.debug(f"Loaded {len(posts)} posts from {path}")
    return sorted(posts, key=lambda post: post.get("date", ""), reverse=True)


async def load_post(content_dir: Path, slug: str) -> Optional[Dict[str, Any]]:
    """Load a single post by slug, or None if it does not exist."""
    for post in await load_posts(content_dir):
        if post.get("slug") == slug:
            return post
    return None
