"""Figma REST API client for resolving design links to rendered images.

Resolves a design URL to one or more PNG renders using Personal Access
Token (PAT) authentication. Every API call goes through one rate-limit
retry wrapper (HTTP 429 only) and JSON responses are memoised in the
on-disk FigmaCache.

Usage:
    client = FigmaClient(token, cache=FigmaCache())
    images = await client.resolve_design_url(
        "https://www.figma.com/design/6kGd851qaAX4TiL44vpIrO/App?node-id=16650-538"
    )
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, TypeVar
from urllib.parse import urlencode

import httpx

from .. import settings
from ..exceptions import FigmaClientError, FigmaRateLimitError, IntegrationError
from .figma_cache import FigmaCache
from .image_utils import download_image, placeholder_png
from .links import parse_design_url

logger = logging.getLogger("uiqa.integrations.figma")

FIGMA_API_BASE = "https://api.figma.com"

T = TypeVar("T")


@dataclass
class DesignImage:
    """One rendered design node."""
    node_id: str
    data: bytes
    image_url: Optional[str] = None


def _parse_retry_after(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


class FigmaClient:
    """Async Figma REST API client.

    Args:
        token: Figma PAT. May be empty only in mock mode.
        cache: Response cache; ``None`` disables caching.
        mock_mode: Return a fixed placeholder PNG for every node without
            touching the network or the cache.
        design_hosts: Extra design hosts accepted when parsing URLs.
        timeout: HTTP request timeout in seconds.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        cache: Optional[FigmaCache] = None,
        mock_mode: bool = False,
        design_hosts: Optional[Iterable[str]] = None,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
        initial_retry_delay: Optional[float] = None,
        max_retry_delay: Optional[float] = None,
    ):
        self._token = token or ""
        self.mock_mode = mock_mode
        if not self._token and not mock_mode:
            raise FigmaClientError(
                "Figma token not configured. Set figma_access_token "
                "(or FIGMA_ACCESS_TOKEN), or enable figma_mock_mode."
            )
        self._cache = cache
        self._design_hosts = list(design_hosts or [])
        self._timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT
        self._max_retries = max(1, max_retries if max_retries is not None else settings.FIGMA_MAX_RETRIES)
        self._initial_retry_delay = (
            initial_retry_delay if initial_retry_delay is not None else settings.FIGMA_INITIAL_RETRY_DELAY
        )
        self._max_retry_delay = (
            max_retry_delay if max_retry_delay is not None else settings.FIGMA_MAX_RETRY_DELAY
        )
        self._client: Optional[httpx.AsyncClient] = None
        self._placeholder: Optional[bytes] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=FIGMA_API_BASE,
                headers={"X-FIGMA-TOKEN": self._token, "Accept": "application/json"},
                timeout=self._timeout,
                limits=httpx.Limits(max_connections=5, max_keepalive_connections=3),
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Rate-limit retry
    # ------------------------------------------------------------------

    def _retry_delay(self, attempt: int, retry_after: Optional[float]) -> float:
        if retry_after is not None:
            return min(retry_after, self._max_retry_delay)
        return min(self._initial_retry_delay * (2 ** attempt), self._max_retry_delay)

    async def _request_with_retry(self, call: Callable[[], Awaitable[T]], label: str) -> T:
        """Run ``call``, retrying only FigmaRateLimitError up to max_retries attempts.

        Prefers the server's Retry-After hint (capped), else exponential
        backoff from the initial delay. Any other error propagates at once.
        """
        for attempt in range(self._max_retries):
            try:
                return await call()
            except FigmaRateLimitError as e:
                if attempt + 1 >= self._max_retries:
                    logger.error(
                        f"{label}: rate limited, giving up after {self._max_retries} attempts"
                    )
                    raise
                delay = self._retry_delay(attempt, e.retry_after)
                logger.warning(
                    f"{label}: rate limited (attempt {attempt + 1}/{self._max_retries}), "
                    f"retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)
        raise FigmaClientError(f"{label}: retries exhausted")

    async def _get(self, path: str, params: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Make a single GET request to the Figma API."""
        client = await self._get_client()
        try:
            resp = await client.get(path, params=params)
        except httpx.TimeoutException as e:
            raise FigmaClientError(f"Figma API timeout: {path}") from e
        except httpx.HTTPError as e:
            raise FigmaClientError(f"Figma API connection error: {path}: {e}") from e

        if resp.status_code == 429:
            raise FigmaRateLimitError(
                "Figma API rate limit exceeded",
                retry_after=_parse_retry_after(resp.headers.get("Retry-After")),
            )
        if resp.status_code == 403:
            raise FigmaClientError(
                "Figma API returned 403 Forbidden. Check that figma_access_token is "
                f"valid, has the file_content:read scope and can view {path}.",
                status_code=403,
            )
        if resp.status_code == 404:
            raise FigmaClientError(
                f"Figma resource not found: {path}. Check the file key and node-id "
                "in the design link.",
                status_code=404,
            )
        if resp.status_code != 200:
            raise FigmaClientError(
                f"Figma API error {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as e:
            raise FigmaClientError(
                f"Figma API returned a non-JSON body for {path}", details=resp.text[:200],
            ) from e
        if not isinstance(data, dict):
            raise FigmaClientError(f"Figma API returned an unexpected body for {path}")
        return data

    async def _get_cached(self, path: str, params: Dict[str, str]) -> Dict[str, Any]:
        cache_url = f"{FIGMA_API_BASE}{path}?{urlencode(sorted(params.items()))}"
        if self._cache is not None:
            cached = self._cache.get(cache_url)
            if cached is not None:
                return cached

        data = await self._request_with_retry(lambda: self._get(path, params), path)

        if self._cache is not None:
            self._cache.set(cache_url, data)
        return data

    # ------------------------------------------------------------------
    # Core API methods
    # ------------------------------------------------------------------

    async def get_file(self, file_key: str, depth: int = 2) -> Dict[str, Any]:
        """GET /v1/files/:key (depth=2 covers pages and their top-level frames)."""
        data = await self._get_cached(f"/v1/files/{file_key}", {"depth": str(depth)})
        logger.info(f"get_file: file={file_key}, name={data.get('name', '')!r}")
        return data

    async def get_node_images(
        self,
        file_key: str,
        node_ids: List[str],
        fmt: str = "png",
        scale: Optional[int] = None,
    ) -> Dict[str, str]:
        """Render node images via GET /v1/images/:key. Null renders are dropped."""
        params = {
            "ids": ",".join(node_ids),
            "format": fmt,
            "scale": str(scale if scale is not None else settings.FIGMA_IMAGE_SCALE),
        }
        data = await self._get_cached(f"/v1/images/{file_key}", params)

        if data.get("err"):
            raise FigmaClientError(f"Figma image render error: {data['err']}")

        images = {nid: url for nid, url in (data.get("images") or {}).items() if url}
        logger.info(
            f"get_node_images: file={file_key}, requested={len(node_ids)}, "
            f"rendered={len(images)}"
        )
        return images

    async def _download(self, url: str) -> bytes:
        try:
            return await download_image(url, timeout=self._timeout)
        except IntegrationError as e:
            if e.status_code == 429:
                raise FigmaRateLimitError(f"Figma image download rate limited: {url}") from e
            raise FigmaClientError(str(e), status_code=e.status_code) from e

    async def download_image(self, image_url: str) -> bytes:
        return await self._request_with_retry(lambda: self._download(image_url), "download_image")

    # ------------------------------------------------------------------
    # High-level: design URL -> images
    # ------------------------------------------------------------------

    def _placeholder_image(self) -> bytes:
        if self._placeholder is None:
            self._placeholder = placeholder_png("Figma mock mode")
        return self._placeholder

    @staticmethod
    def _frame_ids(file_data: Dict[str, Any], max_frames: int) -> List[str]:
        pages = (file_data.get("document") or {}).get("children") or []
        if not pages:
            return []
        first_page = pages[0]
        children = first_page.get("children") or []
        if children:
            return [child["id"] for child in children[:max_frames] if child.get("id")]
        return [first_page["id"]] if first_page.get("id") else []

    async def resolve_design_url(self, url: str) -> List[DesignImage]:
        """Resolve a design URL to rendered images.

        A URL with a node-id resolves to that node; otherwise to the first
        page's first ``FIGMA_MAX_FRAMES`` children (or the page itself when
        it has none).
        """
        info = parse_design_url(url, self._design_hosts)
        if info is None:
            raise FigmaClientError(f"Invalid Figma URL: {url}")

        if self.mock_mode:
            node_id = info.node_id or "0:1"
            logger.info(f"resolve_design_url: mock mode, placeholder for {info.file_key}/{node_id}")
            return [DesignImage(node_id=node_id, data=self._placeholder_image())]

        if info.node_id:
            node_ids = [info.node_id]
        else:
            file_data = await self.get_file(info.file_key)
            node_ids = self._frame_ids(file_data, settings.FIGMA_MAX_FRAMES)
            if not node_ids:
                raise FigmaClientError(f"Figma file {info.file_key} has no pages to render")

        image_urls = await self.get_node_images(info.file_key, node_ids)

        results: List[DesignImage] = []
        for node_id in node_ids:
            image_url = image_urls.get(node_id)
            if not image_url:
                logger.warning(f"resolve_design_url: no render for node {node_id}")
                continue
            try:
                data = await self.download_image(image_url)
            except FigmaClientError as e:
                logger.warning(f"resolve_design_url: download failed for node {node_id}: {e}")
                continue
            results.append(DesignImage(node_id=node_id, data=data, image_url=image_url))

        logger.info(f"resolve_design_url: {url} -> {len(results)}/{len(node_ids)} images")
        return results
