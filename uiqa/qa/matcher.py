"""Pair screenshots with design images.

Policy, in order:

1. one screenshot and one design: paired directly at confidence 100;
2. one screenshot and several designs: paired with design 0, the other
   designs are reported unmatched;
3. anything else: the collaborator proposes a pairing which is then
   sanitised (out-of-range and reused indices dropped, confidence clamped);
4. collaborator failure, an unparseable reply, or zero matches while both
   sides are non-empty: index-order pairing at confidence 50.

The result is always a partial bijection: every index on either side
appears in exactly one of ``matches`` or its unmatched list.
"""

from __future__ import annotations

import logging
import math
from typing import Any, List, Optional, Sequence, Set

from ..ai.base import AICollaborator, ImageInput
from ..ai.schemas import MatchResponse
from ..exceptions import AIProviderError
from .models import Match, MatchResult

logger = logging.getLogger(__name__)

DIRECT_MATCH_CONFIDENCE = 100
FALLBACK_CONFIDENCE = 50
DEFAULT_REASONING = "Matched by AI analysis"


def _index(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not number.is_integer():
        return None
    return int(number)


def _confidence(value: Any) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return FALLBACK_CONFIDENCE
    if math.isnan(number) or number == 0:
        return FALLBACK_CONFIDENCE
    return int(math.floor(max(0.0, min(100.0, number)) + 0.5))


def _with_unmatched(matches: List[Match], n_screens: int, n_designs: int) -> MatchResult:
    used_s = {m.screenshot_index for m in matches}
    used_d = {m.design_index for m in matches}
    return MatchResult(
        matches=matches,
        unmatched_screenshots=[i for i in range(n_screens) if i not in used_s],
        unmatched_designs=[i for i in range(n_designs) if i not in used_d],
    )


def order_fallback(n_screens: int, n_designs: int) -> MatchResult:
    """Pair screenshot i with design i; the longer side's tail stays unmatched."""
    matches = [
        Match(i, i, FALLBACK_CONFIDENCE, "Fallback: matched by upload order")
        for i in range(min(n_screens, n_designs))
    ]
    return _with_unmatched(matches, n_screens, n_designs)


def sanitize_matches(response: MatchResponse, n_screens: int, n_designs: int) -> MatchResult:
    """Turn a raw collaborator proposal into a valid partial bijection.

    First-seen pair wins when an index is reused.
    """
    matches: List[Match] = []
    used_s: Set[int] = set()
    used_d: Set[int] = set()

    for raw in response.matches:
        s = _index(raw.get("screenshotIndex"))
        d = _index(raw.get("figmaIndex", raw.get("designIndex")))
        if s is None or d is None or not (0 <= s < n_screens) or not (0 <= d < n_designs):
            logger.warning(f"sanitize_matches: dropping out-of-range pair {raw!r}")
            continue
        if s in used_s or d in used_d:
            logger.warning(f"sanitize_matches: dropping duplicate pair ({s}, {d})")
            continue
        used_s.add(s)
        used_d.add(d)
        reasoning = raw.get("reasoning")
        matches.append(Match(
            screenshot_index=s,
            design_index=d,
            confidence=_confidence(raw.get("confidence")),
            reasoning=reasoning.strip() if isinstance(reasoning, str) and reasoning.strip()
            else DEFAULT_REASONING,
        ))

    return _with_unmatched(matches, n_screens, n_designs)


async def match_screenshots(
    collaborator: AICollaborator,
    screenshots: Sequence[ImageInput],
    designs: Sequence[ImageInput],
) -> MatchResult:
    n_screens, n_designs = len(screenshots), len(designs)

    if n_screens == 1 and n_designs == 1:
        return MatchResult(
            matches=[Match(0, 0, DIRECT_MATCH_CONFIDENCE, "Single screenshot matched to single design")],
        )

    if n_screens == 1 and n_designs > 1:
        logger.info(f"match_screenshots: 1 screenshot, {n_designs} designs, using design 0")
        return MatchResult(
            matches=[Match(0, 0, DIRECT_MATCH_CONFIDENCE, "Single screenshot matched to first design")],
            unmatched_designs=list(range(1, n_designs)),
        )

    if n_screens == 0 or n_designs == 0:
        return _with_unmatched([], n_screens, n_designs)

    try:
        response = await collaborator.match_screenshots(screenshots, designs)
    except AIProviderError as e:
        logger.warning(f"match_screenshots: collaborator failed ({e}), using order fallback")
        return order_fallback(n_screens, n_designs)

    if response is None:
        logger.warning("match_screenshots: unparseable matching reply, using order fallback")
        return order_fallback(n_screens, n_designs)

    result = sanitize_matches(response, n_screens, n_designs)
    if not result.matches:
        logger.warning("match_screenshots: collaborator returned no usable matches, using order fallback")
        return order_fallback(n_screens, n_designs)

    logger.info(
        f"match_screenshots: {len(result.matches)} match(es), "
        f"{len(result.unmatched_screenshots)} unmatched screenshot(s), "
        f"{len(result.unmatched_designs)} unmatched design(s)"
    )
    return result
