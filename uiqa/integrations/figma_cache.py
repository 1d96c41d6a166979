"""On-disk cache for Figma API responses.

One JSON file per request URL (``<md5(url)>.json`` holding
``{data, timestamp, url}``). Entries older than the TTL are treated as
absent and deleted on read. The cache is an optimisation only: every I/O
error is logged and swallowed, and concurrent writers simply race (last
writer wins).
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import time
from typing import Any, Dict, Optional

from .. import settings

logger = logging.getLogger("uiqa.integrations.figma_cache")


class FigmaCache:

    def __init__(self, cache_dir: Optional[str] = None, ttl_seconds: Optional[float] = None):
        self.cache_dir = cache_dir or settings.CACHE_DIR
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else settings.CACHE_TTL_SECONDS
        self._ensure_cache_dir()

    def _ensure_cache_dir(self) -> None:
        try:
            os.makedirs(self.cache_dir, exist_ok=True)
        except OSError as e:
            logger.warning(f"FigmaCache: could not create cache directory {self.cache_dir}: {e}")

    @staticmethod
    def cache_key(url: str) -> str:
        return hashlib.md5(url.encode("utf-8")).hexdigest()

    def _path(self, url: str) -> str:
        return os.path.join(self.cache_dir, f"{self.cache_key(url)}.json")

    def get(self, url: str) -> Optional[Any]:
        path = self._path(url)
        try:
            if not os.path.exists(path):
                return None
            with open(path, "r", encoding="utf-8") as f:
                entry = json.load(f)
            age = time.time() - float(entry.get("timestamp", 0))
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"FigmaCache: error reading cache for {url}: {e}")
            return None

        if not 0 <= age < self.ttl_seconds:
            logger.info(f"FigmaCache: cache expired for {url}")
            self.delete(url)
            return None

        logger.info(f"FigmaCache: cache hit for {url}")
        return entry.get("data")

    def set(self, url: str, data: Any) -> None:
        entry = {"data": data, "timestamp": time.time(), "url": url}
        try:
            with open(self._path(url), "w", encoding="utf-8") as f:
                json.dump(entry, f, ensure_ascii=False, indent=2)
            logger.info(f"FigmaCache: cached response for {url}")
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"FigmaCache: error writing cache for {url}: {e}")

    def delete(self, url: str) -> None:
        try:
            os.remove(self._path(url))
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"FigmaCache: error deleting cache for {url}: {e}")

    def clear(self) -> int:
        """Delete every cache entry; returns how many were removed."""
        removed = 0
        try:
            for name in os.listdir(self.cache_dir):
                if name.endswith(".json"):
                    os.remove(os.path.join(self.cache_dir, name))
                    removed += 1
        except OSError as e:
            logger.warning(f"FigmaCache: error clearing cache: {e}")
        logger.info(f"FigmaCache: cleared {removed} cache entries")
        return removed

    def stats(self) -> Dict[str, int]:
        try:
            names = [n for n in os.listdir(self.cache_dir) if n.endswith(".json")]
            total_size = sum(os.path.getsize(os.path.join(self.cache_dir, n)) for n in names)
        except OSError:
            return {"entries": 0, "total_size": 0}
        return {"entries": len(names), "total_size": total_size}
