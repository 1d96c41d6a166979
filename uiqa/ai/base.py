"""AI collaborator interface shared by every provider adapter.

The collaborator exposes three operations to the QA core:

    extract_design_links(ticket_text)           -> LinkExtractionResult
    compare_screenshot(design, screenshot, ctx) -> UXValidationResult | None
    match_screenshots(screenshots, designs)     -> MatchResponse | None

Prompts, JSON extraction and response conversion live here; adapters
implement only ``_complete(prompt, images) -> str``. Unparseable responses
never escape as exceptions: link extraction falls back to a regex scan,
comparison and matching return None so the core can apply its own
fallbacks. Transport and auth failures raise AIProviderError.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from pydantic import ValidationError

from .. import settings
from ..exceptions import AIProviderError
from ..integrations.image_utils import media_type_for, to_base64
from ..integrations.links import find_design_urls
from .json_utils import parse_llm_json
from .prompts import build_link_extraction_prompt, build_matching_prompt, build_validation_prompt
from .schemas import LinkExtraction, MatchResponse, UXValidationResult, parse_validation

logger = logging.getLogger(__name__)


@dataclass
class ImageInput:
    """One image handed to the model."""
    data: bytes
    media_type: str = "image/png"

    @classmethod
    def from_bytes(cls, data: bytes, url: str = "") -> "ImageInput":
        return cls(data=data, media_type=media_type_for(data, url))

    @property
    def base64(self) -> str:
        return to_base64(self.data)


@dataclass
class LinkExtractionResult:
    links: List[str] = field(default_factory=list)
    confidence: str = "low"
    context: str = ""


class AICollaborator(ABC):
    """Base class for vision-LLM provider adapters."""

    provider_name = "base"

    def __init__(
        self,
        design_hosts: Optional[Iterable[str]] = None,
        timeout: Optional[float] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ):
        self.design_hosts = list(design_hosts or [])
        self.timeout = timeout if timeout is not None else settings.LLM_TIMEOUT
        self.max_tokens = max_tokens if max_tokens is not None else settings.LLM_MAX_TOKENS
        self.temperature = temperature if temperature is not None else settings.LLM_TEMPERATURE

    @abstractmethod
    async def _complete(self, prompt: str, images: Sequence[ImageInput]) -> str:
        """Send one user turn (images first, then the prompt) and return the text reply."""

    async def close(self) -> None:
        pass

    # ------------------------------------------------------------------
    # Link extraction
    # ------------------------------------------------------------------

    def _regex_fallback(self, ticket_text: str, reason: str) -> LinkExtractionResult:
        links = find_design_urls(ticket_text, self.design_hosts)
        return LinkExtractionResult(
            links=links,
            confidence="medium" if links else "low",
            context=reason,
        )

    async def extract_design_links(self, ticket_text: str) -> LinkExtractionResult:
        """Ask the model for design links in ticket text.

        Links are returned as the model wrote them; callers validate them.
        """
        prompt = build_link_extraction_prompt(ticket_text, self.design_hosts)
        try:
            response = await self._complete(prompt, [])
        except AIProviderError as e:
            if e.is_permanent:
                raise
            logger.warning(f"{self.provider_name}: link extraction failed ({e}), using regex fallback")
            return self._regex_fallback(ticket_text, "Extracted via regex fallback (provider error)")

        data = parse_llm_json(response, caller=f"{self.provider_name}.extract_design_links")
        if data is None:
            return self._regex_fallback(ticket_text, "Extracted via regex fallback")
        try:
            parsed = LinkExtraction.model_validate(data)
        except ValidationError:
            logger.warning(f"{self.provider_name}: link extraction JSON has unexpected shape")
            return self._regex_fallback(ticket_text, "Extracted via regex fallback")

        links = [link.strip() for link in parsed.figmaLinks if isinstance(link, str) and link.strip()]
        confidence = parsed.confidence if parsed.confidence in ("high", "medium", "low") else "low"
        logger.info(
            f"{self.provider_name}: extracted {len(links)} link(s), confidence={confidence}"
        )
        return LinkExtractionResult(links=links, confidence=confidence, context=parsed.context)

    # ------------------------------------------------------------------
    # Comparison
    # ------------------------------------------------------------------

    async def compare_screenshot(
        self,
        design: ImageInput,
        screenshot: ImageInput,
        context: str = "",
    ) -> Optional[UXValidationResult]:
        """Per-component verdict for one pair; None when the reply is unparseable.

        The screenshot is sent first (the "input" image), the design second.
        """
        response = await self._complete(build_validation_prompt(context), [screenshot, design])
        data = parse_llm_json(response, caller=f"{self.provider_name}.compare_screenshot")
        result = parse_validation(data)
        if result is None and data is not None:
            logger.error(f"{self.provider_name}: comparison JSON is not a validation result")
        return result

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    async def match_screenshots(
        self,
        screenshots: Sequence[ImageInput],
        designs: Sequence[ImageInput],
    ) -> Optional[MatchResponse]:
        """Raw pairing proposal; None when the reply is unparseable.

        Images go out as one sequence, all screenshots then all designs.
        """
        prompt = build_matching_prompt(len(screenshots), len(designs))
        response = await self._complete(prompt, [*screenshots, *designs])
        data = parse_llm_json(response, caller=f"{self.provider_name}.match_screenshots")
        if data is None:
            return None
        try:
            return MatchResponse.model_validate(data)
        except ValidationError:
            logger.error(f"{self.provider_name}: matching JSON has unexpected shape")
            return None
