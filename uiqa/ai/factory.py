"""Construct the configured AI collaborator."""

from __future__ import annotations

import logging

from ..config import PROVIDER_REQUIREMENTS, ActionConfig
from ..exceptions import ConfigurationError
from .base import AICollaborator

logger = logging.getLogger(__name__)


def create_collaborator(config: ActionConfig) -> AICollaborator:
    """Build the adapter named by ``config.ai_provider``.

    Credentials are passed to the adapter explicitly; nothing is read from
    or written to the process environment here.
    """
    provider = config.ai_provider
    if provider not in PROVIDER_REQUIREMENTS:
        raise ConfigurationError(
            f"Unknown ai_provider: {provider!r}. "
            f"Expected one of: {', '.join(PROVIDER_REQUIREMENTS)}"
        )
    config.require(*PROVIDER_REQUIREMENTS[provider])
    common = {"design_hosts": config.design_hosts}

    if provider == "bedrock":
        from .bedrock import BedrockCollaborator
        return BedrockCollaborator(
            api_key=config.bedrock_api_key,
            region=config.bedrock_region,
            model_id=config.bedrock_model_id,
            **common,
        )
    if provider == "azure":
        from .azure import AzureOpenAICollaborator
        return AzureOpenAICollaborator(
            endpoint=config.azure_openai_endpoint,
            api_key=config.azure_openai_api_key,
            deployment=config.azure_openai_deployment,
            api_version=config.azure_openai_api_version,
            **common,
        )

    from .anthropic_client import AnthropicCollaborator
    return AnthropicCollaborator(
        api_key=config.anthropic_api_key,
        model=config.anthropic_model,
        **common,
    )
