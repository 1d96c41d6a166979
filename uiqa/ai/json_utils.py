"""JSON extraction from free-form LLM responses.

Models wrap JSON in prose, markdown fences or trailing commentary. The
parser tries the whole (fence-stripped) text first, then the first
balanced ``{...}`` span, moving on to the next ``{`` whenever a span
fails to parse.
"""

import json
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def _strip_fence(text: str) -> str:
    if not text.startswith("```"):
        return text
    lines = text.split("\n")[1:]
    if lines and lines[-1].strip() == "```":
        lines = lines[:-1]
    return "\n".join(lines).strip()


def _balanced_span(text: str, start: int) -> Optional[str]:
    """Return the ``{...}`` span opening at ``start``, honouring JSON strings."""
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None  # truncated


def extract_json_object(raw: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return the first JSON object found in ``raw``, or None."""
    if not raw or not isinstance(raw, str):
        return None

    text = _strip_fence(raw.strip())

    try:
        parsed = json.loads(text)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    start = text.find("{")
    while start >= 0:
        span = _balanced_span(text, start)
        if span is None:
            break
        try:
            parsed = json.loads(span)
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass
        start = text.find("{", start + 1)
    return None


def parse_llm_json(raw: Optional[str], caller: str = "LLM") -> Optional[Dict[str, Any]]:
    """``extract_json_object`` that logs the unparseable head of the response."""
    parsed = extract_json_object(raw)
    if parsed is None:
        logger.error("%s: JSON parse error, raw[:500]: %s", caller, (raw or "")[:500])
    return parsed
