"""
HTML content cache for fetched source documents.

File-backed, one JSON file per URL:
- Key derived from the URL ("html_content:" + base64 URL, alphanumerics only)
- Entries carry cached_at and ttl; expired entries count as misses
- Read and write failures are logged and treated as misses
"""

import base64
import json
import logging
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

KEY_PREFIX = "html_content:"
_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]")


@dataclass
class CacheConfig:
    """Configuration for the HTML cache."""
    enabled: bool = False
    cache_dir: str = "data/cache/html"
    ttl_seconds: int = 24 * 60 * 60  # 24 hours


def cache_key(url: str) -> str:
    """Build the cache key for a URL."""
    encoded = base64.b64encode(url.encode("utf-8")).decode("ascii")
    return KEY_PREFIX + _NON_ALNUM_RE.sub("", encoded)


class HtmlCache:
    """
    Cache raw HTML by URL on disk.

    Usage:
        cache = HtmlCache(CacheConfig(enabled=True))
        html = cache.get(url)
        if html is None:
            cache.set(url, fetched_html)
    """

    def __init__(self, config: Optional[CacheConfig] = None, clock=time.time):
        self.config = config or CacheConfig()
        self.cache_dir = Path(self.config.cache_dir)
        self._clock = clock

    def _path_for(self, url: str) -> Path:
        return self.cache_dir / f"{cache_key(url).replace(':', '_')}.json"

    def get(self, url: str) -> Optional[str]:
        """Return cached HTML for the URL, or None on a miss."""
        path = self._path_for(url)
        if not path.exists():
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                entry = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Error reading HTML cache for {url}: {e}")
            return None

        age = self._clock() - entry.get("cached_at", 0)
        if age > entry.get("ttl", self.config.ttl_seconds):
            logger.debug(f"HTML cache entry expired for {url} (age {age:.0f}s)")
            return None

        logger.info(f"HTML cache hit for {url}")
        return entry.get("content")

    def set(self, url: str, content: str, ttl_seconds: Optional[int] = None):
        """Store HTML for the URL."""
        entry = {
            "key": cache_key(url),
            "url": url,
            "cached_at": self._clock(),
            "ttl": ttl_seconds if ttl_seconds is not None else self.config.ttl_seconds,
            "content": content,
        }
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            with open(self._path_for(url), "w", encoding="utf-8") as f:
                json.dump(entry, f, ensure_ascii=False)
            logger.debug(f"Cached HTML for {url} ({len(content)} chars)")
        except OSError as e:
            logger.warning(f"Error writing HTML cache for {url}: {e}")

    def clear(self, url: str) -> bool:
        """Remove the entry for the URL. Returns True if one existed."""
        path = self._path_for(url)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Error clearing HTML cache for {url}: {e}")
            return False
