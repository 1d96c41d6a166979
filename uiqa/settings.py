"""Runtime settings: tunable parameters for the QA pipeline.

All values read from environment variables with sensible defaults.
Import from here instead of hardcoding.

Credentials, identifiers and the mode selector live in uiqa/config.py.
"""

from __future__ import annotations

import os


def _int(key: str, default: int) -> int:
    return int(os.getenv(key, str(default)))


def _float(key: str, default: float) -> float:
    return float(os.getenv(key, str(default)))


def _str(key: str, default: str) -> str:
    return os.getenv(key, default)


# =====================================================================
# Figma API
# =====================================================================

# Max attempts for a rate-limited (HTTP 429) Figma call, first try included
FIGMA_MAX_RETRIES = _int("UIQA_FIGMA_MAX_RETRIES", 5)

# Exponential backoff start when Figma sends no Retry-After header (seconds)
FIGMA_INITIAL_RETRY_DELAY = _float("UIQA_FIGMA_INITIAL_RETRY_DELAY", 2.0)

# Ceiling for any single wait, Retry-After hints included (seconds)
FIGMA_MAX_RETRY_DELAY = _float("UIQA_FIGMA_MAX_RETRY_DELAY", 60.0)

# Pause between successive design URLs during analyze (skipped in mock mode)
FIGMA_REQUEST_DELAY = _float("UIQA_FIGMA_REQUEST_DELAY", 2.0)

# A design URL without node-id resolves to at most this many top-level frames
FIGMA_MAX_FRAMES = _int("UIQA_FIGMA_MAX_FRAMES", 5)

FIGMA_IMAGE_SCALE = _int("UIQA_FIGMA_IMAGE_SCALE", 2)


# =====================================================================
# Design image cache
# =====================================================================

CACHE_DIR = _str("UIQA_CACHE_DIR", ".figma-cache")
CACHE_TTL_SECONDS = _float("UIQA_CACHE_TTL_SECONDS", 24 * 60 * 60)


# =====================================================================
# HTTP / LLM timeouts
# =====================================================================

HTTP_TIMEOUT = _float("UIQA_HTTP_TIMEOUT", 30.0)
LLM_TIMEOUT = _float("UIQA_LLM_TIMEOUT", 180.0)
LLM_MAX_TOKENS = _int("UIQA_LLM_MAX_TOKENS", 4096)
LLM_TEMPERATURE = _float("UIQA_LLM_TEMPERATURE", 0.2)


# =====================================================================
# Comparison policy
# =====================================================================

# Max parallel screenshot/design comparisons
COMPARE_CONCURRENCY = _int("UIQA_COMPARE_CONCURRENCY", 3)

# matchPercentage >= PASS_THRESHOLD with no critical/major issue -> pass
PASS_THRESHOLD = _int("UIQA_PASS_THRESHOLD", 90)

# matchPercentage below WARNING_THRESHOLD -> fail
WARNING_THRESHOLD = _int("UIQA_WARNING_THRESHOLD", 70)

# More major issues than this -> fail regardless of matchPercentage
MAJOR_ISSUE_TOLERANCE = _int("UIQA_MAJOR_ISSUE_TOLERANCE", 2)


# =====================================================================
# GitHub
# =====================================================================

STATUS_CONTEXT = _str("UIQA_STATUS_CONTEXT", "UI QA Agent")
