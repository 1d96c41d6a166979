"""Amazon Bedrock adapter (Anthropic Claude models).

Calls the Bedrock Runtime InvokeModel REST endpoint with a Bedrock API key
as bearer token, so no AWS SDK or process-wide credential environment is
involved. The request body is the Anthropic Messages format.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

import httpx

from ..exceptions import AIProviderError
from .base import AICollaborator, ImageInput

logger = logging.getLogger(__name__)

BEDROCK_ANTHROPIC_VERSION = "bedrock-2023-05-31"


class BedrockCollaborator(AICollaborator):
    """Claude on Amazon Bedrock.

    Args:
        api_key: Bedrock API key (bearer token).
        region: AWS region hosting the model, e.g. ``us-east-1``.
        model_id: Model or inference-profile id.
    """

    provider_name = "bedrock"

    def __init__(self, api_key: str, region: str, model_id: str, **kwargs: Any):
        super().__init__(**kwargs)
        if not api_key:
            raise AIProviderError("Bedrock API key is required (bedrock_api_key).")
        self._api_key = api_key
        self.region = region
        self.model_id = model_id
        self._client: Optional[httpx.AsyncClient] = None
        logger.info(
            f"Bedrock config: region={region}, model={model_id}, has_api_key={bool(api_key)}"
        )

    @property
    def endpoint(self) -> str:
        return (
            f"https://bedrock-runtime.{self.region}.amazonaws.com"
            f"/model/{quote(self.model_id, safe='')}/invoke"
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    def _build_body(self, prompt: str, images: Sequence[ImageInput]) -> Dict[str, Any]:
        content: List[Dict[str, Any]] = [
            {
                "type": "image",
                "source": {"type": "base64", "media_type": img.media_type, "data": img.base64},
            }
            for img in images
        ]
        content.append({"type": "text", "text": prompt})
        return {
            "anthropic_version": BEDROCK_ANTHROPIC_VERSION,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [{"role": "user", "content": content}],
        }

    def _error_for(self, resp: httpx.Response) -> AIProviderError:
        detail = resp.text[:300]
        if resp.status_code in (401, 403):
            return AIProviderError(
                f"Bedrock API access denied (HTTP {resp.status_code}). Check that:\n"
                "1. bedrock_api_key is valid and not expired\n"
                "2. its identity has the bedrock:InvokeModel permission\n"
                f'3. model "{self.model_id}" is enabled in region {self.region}\n'
                f"Details: {detail}",
                status_code=resp.status_code,
            )
        if resp.status_code == 400:
            return AIProviderError(
                f'Bedrock rejected the request for model "{self.model_id}" (HTTP 400). '
                "Check that bedrock_model_id names a vision-capable Claude model or "
                f"inference profile available in {self.region}. Details: {detail}",
                status_code=400,
            )
        if resp.status_code == 404:
            return AIProviderError(
                f'Bedrock model "{self.model_id}" not found in {self.region}.',
                status_code=404,
            )
        return AIProviderError(
            f"Bedrock API error {resp.status_code}: {detail}", status_code=resp.status_code,
        )

    async def _complete(self, prompt: str, images: Sequence[ImageInput]) -> str:
        client = await self._get_client()
        try:
            resp = await client.post(self.endpoint, json=self._build_body(prompt, images))
        except httpx.TimeoutException as e:
            raise AIProviderError(f"Bedrock request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise AIProviderError(f"Bedrock connection error: {e}") from e

        if resp.status_code != 200:
            raise self._error_for(resp)

        try:
            data = resp.json()
        except ValueError as e:
            raise AIProviderError(
                f"Bedrock returned a non-JSON body: {resp.text[:200]}", status_code=502,
            ) from e
        if not isinstance(data, dict):
            raise AIProviderError("Bedrock returned an unexpected response body", status_code=502)
        text = "".join(
            block.get("text") or ""
            for block in data.get("content") or []
            if isinstance(block, dict) and block.get("type") == "text"
        )
        usage = data.get("usage") or {}
        logger.info(
            f"bedrock: {len(images)} image(s), input_tokens={usage.get('input_tokens', 0)}, "
            f"output_tokens={usage.get('output_tokens', 0)}"
        )
        return text
