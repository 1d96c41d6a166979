"""Azure OpenAI adapter (chat completions on a vision-capable deployment)."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..exceptions import AIProviderError
from ..integrations.image_utils import to_data_url
from .base import AICollaborator, ImageInput

logger = logging.getLogger(__name__)


class AzureOpenAICollaborator(AICollaborator):

    provider_name = "azure"

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        deployment: str,
        api_version: str = "2024-12-01-preview",
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        missing = [
            name for name, value in (
                ("azure_openai_endpoint", endpoint),
                ("azure_openai_api_key", api_key),
                ("azure_openai_deployment", deployment),
            ) if not value
        ]
        if missing:
            raise AIProviderError(f"Azure OpenAI is missing: {', '.join(missing)}")
        self.endpoint = endpoint.rstrip("/")
        self._api_key = api_key
        self.deployment = deployment
        self.api_version = api_version
        self._client: Optional[httpx.AsyncClient] = None
        logger.info(
            f"Azure OpenAI client initialized: endpoint={self.endpoint}, "
            f"deployment={deployment}, has_api_key={bool(api_key)}"
        )

    @property
    def url(self) -> str:
        return f"{self.endpoint}/openai/deployments/{self.deployment}/chat/completions"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers={"api-key": self._api_key, "Content-Type": "application/json"},
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _build_body(self, prompt: str, images: Sequence[ImageInput]) -> Dict[str, Any]:
        content: List[Dict[str, Any]] = [
            {"type": "image_url", "image_url": {"url": to_data_url(img.data, img.media_type)}}
            for img in images
        ]
        content.append({"type": "text", "text": prompt})
        return {
            "messages": [{"role": "user", "content": content if images else prompt}],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

    async def _complete(self, prompt: str, images: Sequence[ImageInput]) -> str:
        client = await self._get_client()
        try:
            resp = await client.post(
                self.url,
                params={"api-version": self.api_version},
                json=self._build_body(prompt, images),
            )
        except httpx.TimeoutException as e:
            raise AIProviderError(f"Azure OpenAI request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise AIProviderError(f"Azure OpenAI connection error: {e}") from e

        if resp.status_code != 200:
            try:
                body = resp.json()
            except ValueError:
                body = None
            error = body.get("error") if isinstance(body, dict) else None
            message = (error.get("message") if isinstance(error, dict) else None) or resp.text[:300]
            if resp.status_code in (401, 403):
                message = f"access denied, check azure_openai_api_key ({message})"
            elif resp.status_code == 404:
                message = (
                    f'deployment "{self.deployment}" not found at {self.endpoint} '
                    f"(api-version {self.api_version})"
                )
            raise AIProviderError(
                f"Azure OpenAI API error {resp.status_code}: {message}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise AIProviderError(
                f"Azure OpenAI returned a non-JSON body: {resp.text[:200]}", status_code=502,
            ) from e
        choices = data.get("choices") if isinstance(data, dict) else None
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise AIProviderError("Azure OpenAI response has no choices", status_code=502)
        message = choices[0].get("message")
        return (message.get("content") if isinstance(message, dict) else None) or ""
