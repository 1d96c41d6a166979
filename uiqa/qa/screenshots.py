"""Pick the one PR comment whose images are analysed this run."""

from __future__ import annotations

import logging
from typing import Iterable, Optional, Sequence

from ..integrations.github_client import PRComment
from .report import BOT_MARKERS

logger = logging.getLogger(__name__)


def is_bot_comment(comment: PRComment, markers: Iterable[str] = BOT_MARKERS) -> bool:
    return any(marker in comment.body for marker in markers)


def qualifies(comment: PRComment) -> bool:
    """Has at least one image and is not one of our own comments."""
    return bool(comment.image_urls) and not is_bot_comment(comment)


def select_screenshot_comment(
    comments: Sequence[PRComment],
    trigger_comment_id: Optional[int] = None,
) -> Optional[PRComment]:
    """The triggering comment when it qualifies, else the most recent qualifying one.

    Recency is ``created_at`` (ISO-8601 strings compare chronologically),
    ties broken by the higher comment id. Images are never merged across
    comments.
    """
    candidates = [c for c in comments if qualifies(c)]
    if trigger_comment_id is not None:
        for comment in candidates:
            if comment.id == trigger_comment_id:
                return comment
        logger.info(
            f"select_screenshot_comment: comment {trigger_comment_id} has no screenshots, "
            "using the most recent qualifying comment"
        )
    if not candidates:
        return None
    return max(candidates, key=lambda c: (c.created_at, c.id))
