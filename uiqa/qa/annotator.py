"""Draw numbered issue markers onto a screenshot with Pillow."""

from __future__ import annotations

import logging
import os
from io import BytesIO
from typing import Dict, List, Optional, Sequence, Tuple

from PIL import Image, ImageDraw, ImageFont

from .models import AnnotationResult, ComparisonIssue, LegendEntry, Severity

logger = logging.getLogger(__name__)

SEVERITY_COLORS: Dict[Severity, Tuple[int, int, int]] = {
    Severity.CRITICAL: (220, 38, 38),
    Severity.MAJOR: (234, 88, 12),
    Severity.MINOR: (234, 179, 8),
}

MIN_MARKER_SIZE = 24
MAX_MARKER_SIZE = 48
MIN_OUTLINE_PX = 10


def marker_size(width: int, height: int) -> int:
    return min(MAX_MARKER_SIZE, max(MIN_MARKER_SIZE, round(min(width, height) * 0.04)))


def _draw_outline(draw: ImageDraw.ImageDraw, box: Tuple[int, int, int, int], color) -> None:
    r, g, b = color
    draw.rounded_rectangle(box, radius=4, fill=(r, g, b, 38), outline=(r, g, b, 255), width=3)


def _draw_marker(draw: ImageDraw.ImageDraw, number: int, left: int, top: int, size: int, color) -> None:
    r, g, b = color
    draw.ellipse(
        [(left + 1, top + 1), (left + size - 2, top + size - 2)],
        fill=(r, g, b, 217),
        outline=(r, g, b, 255),
        width=2,
    )
    font = ImageFont.load_default(size=size * 0.5)
    draw.text(
        (left + size / 2, top + size / 2),
        str(number),
        fill=(255, 255, 255, 255),
        font=font,
        anchor="mm",
    )


def annotate(screenshot: bytes, issues: Sequence[ComparisonIssue]) -> AnnotationResult:
    """Mark every issue that carries a bounding box.

    Markers are numbered from 1 in input order over the issues that have a
    box; the legend maps each number to its issue. With no usable box the
    original bytes come back untouched.
    """
    located = [issue for issue in issues if issue.bounding_box is not None]
    if not located:
        return AnnotationResult(image=screenshot, legend=[], has_annotations=False)

    with Image.open(BytesIO(screenshot)) as src:
        base = src.convert("RGBA")
    width, height = base.size
    size = marker_size(width, height)

    overlay = Image.new("RGBA", base.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    legend: List[LegendEntry] = []

    for number, issue in enumerate(located, start=1):
        bb = issue.bounding_box
        color = SEVERITY_COLORS[issue.severity]
        px = round(bb.x / 100 * width)
        py = round(bb.y / 100 * height)
        pw = round(bb.width / 100 * width)
        ph = round(bb.height / 100 * height)

        if pw > MIN_OUTLINE_PX and ph > MIN_OUTLINE_PX:
            left = max(0, min(width - pw, px))
            top = max(0, min(height - ph, py))
            _draw_outline(draw, (left, top, left + pw - 1, top + ph - 1), color)

        mx = max(0, min(width - size, round(px - size / 2)))
        my = max(0, min(height - size, round(py - size / 2)))
        _draw_marker(draw, number, mx, my, size, color)

        legend.append(LegendEntry(
            number=number,
            severity=issue.severity,
            description=issue.description,
            location=issue.location,
        ))

    annotated = Image.alpha_composite(base, overlay)
    buf = BytesIO()
    annotated.save(buf, format="PNG")
    logger.info(f"annotate: {len(legend)} marker(s) on {width}x{height} screenshot")
    return AnnotationResult(image=buf.getvalue(), legend=legend, has_annotations=True)


def save_annotation(result: AnnotationResult, directory: str, name: str) -> Optional[str]:
    """Write an annotated image to ``directory``; returns the path, or None for a no-op result."""
    if not result.has_annotations:
        return None
    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, name)
    with open(path, "wb") as f:
        f.write(result.image)
    result.path = path
    logger.info(f"save_annotation: wrote {path}")
    return path
