"""Anthropic API adapter using the official ``anthropic`` SDK."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import anthropic

from ..exceptions import AIProviderError
from .base import AICollaborator, ImageInput

logger = logging.getLogger(__name__)


class AnthropicCollaborator(AICollaborator):

    provider_name = "anthropic"

    def __init__(self, api_key: str, model: str, **kwargs: Any):
        super().__init__(**kwargs)
        if not api_key:
            raise AIProviderError("Anthropic API key is required (anthropic_api_key).")
        self.model = model
        # Figma is the only component that retries
        self._client: Optional[anthropic.AsyncAnthropic] = anthropic.AsyncAnthropic(
            api_key=api_key, timeout=self.timeout, max_retries=0,
        )
        logger.info(f"Anthropic config: model={model}, has_api_key={bool(api_key)}")

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def _complete(self, prompt: str, images: Sequence[ImageInput]) -> str:
        if self._client is None:
            raise AIProviderError("Anthropic client is closed")

        content: List[Dict[str, Any]] = [
            {
                "type": "image",
                "source": {"type": "base64", "media_type": img.media_type, "data": img.base64},
            }
            for img in images
        ]
        content.append({"type": "text", "text": prompt})

        try:
            message = await self._client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=[{"role": "user", "content": content}],
            )
        except anthropic.AuthenticationError as e:
            raise AIProviderError(
                "Anthropic authentication failed, check anthropic_api_key.", status_code=401,
            ) from e
        except anthropic.PermissionDeniedError as e:
            raise AIProviderError(
                f'Anthropic API key may not use model "{self.model}".', status_code=403,
            ) from e
        except anthropic.NotFoundError as e:
            raise AIProviderError(f'Anthropic model "{self.model}" not found.', status_code=404) from e
        except anthropic.BadRequestError as e:
            raise AIProviderError(f"Anthropic rejected the request: {e}", status_code=400) from e
        except anthropic.APITimeoutError as e:
            raise AIProviderError(f"Anthropic request timed out after {self.timeout}s") from e
        except anthropic.APIStatusError as e:
            raise AIProviderError(
                f"Anthropic API error {e.status_code}: {e}", status_code=e.status_code,
            ) from e
        except anthropic.APIConnectionError as e:
            raise AIProviderError(f"Anthropic connection error: {e}") from e
        except anthropic.APIError as e:
            # e.g. APIResponseValidationError on a malformed body
            raise AIProviderError(f"Anthropic returned an unusable response: {e}", status_code=502) from e

        logger.info(
            f"anthropic: {len(images)} image(s), input_tokens={message.usage.input_tokens}, "
            f"output_tokens={message.usage.output_tokens}"
        )
        return "".join(block.text for block in message.content if block.type == "text")
