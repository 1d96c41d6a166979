"""Image download and encoding helpers shared by the integrations and AI adapters."""

from __future__ import annotations

import base64
import logging
from io import BytesIO
from typing import Dict, Optional

import httpx
from PIL import Image, ImageDraw, UnidentifiedImageError

from .. import settings
from ..exceptions import IntegrationError

logger = logging.getLogger(__name__)

_FORMAT_MEDIA_TYPES = {
    "PNG": "image/png",
    "JPEG": "image/jpeg",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}


async def download_image(
    url: str,
    headers: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
) -> bytes:
    """Download raw image bytes, following redirects (GitHub asset URLs redirect)."""
    try:
        async with httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.HTTP_TIMEOUT,
            follow_redirects=True,
        ) as client:
            resp = await client.get(url, headers=headers)
    except httpx.HTTPError as e:
        raise IntegrationError(f"Image download failed: {url}: {e}") from e

    if resp.status_code != 200:
        raise IntegrationError(
            f"Image download failed: {url}: HTTP {resp.status_code}",
            status_code=resp.status_code,
        )
    logger.info(f"download_image: {url} ({len(resp.content)} bytes)")
    return resp.content


def media_type_for(data: bytes, url: str = "") -> str:
    """Media type from the image bytes, falling back to the URL, then PNG."""
    try:
        with Image.open(BytesIO(data)) as img:
            media_type = _FORMAT_MEDIA_TYPES.get(img.format or "")
            if media_type:
                return media_type
    except (UnidentifiedImageError, OSError):
        pass

    lower = url.lower()
    if ".jpg" in lower or ".jpeg" in lower:
        return "image/jpeg"
    if ".gif" in lower:
        return "image/gif"
    if ".webp" in lower:
        return "image/webp"
    return "image/png"


def to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def to_data_url(data: bytes, media_type: Optional[str] = None) -> str:
    return f"data:{media_type or media_type_for(data)};base64,{to_base64(data)}"


def placeholder_png(label: str = "Design placeholder", size: tuple = (400, 300)) -> bytes:
    """A fixed grey placeholder used in Figma mock mode."""
    img = Image.new("RGB", size, (240, 240, 240))
    draw = ImageDraw.Draw(img)
    draw.rectangle([(0, 0), (size[0] - 1, size[1] - 1)], outline=(180, 180, 180), width=2)
    draw.text((16, 16), label, fill=(90, 90, 90))
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()
