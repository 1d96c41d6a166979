"""Action configuration: credentials, identifiers and the mode selector.

Values come from, in order of precedence:
1. explicit overrides (CLI flags)
2. GitHub Action inputs (``INPUT_<NAME>`` environment variables)
3. plain environment variables (``JIRA_BASE_URL``, ``FIGMA_ACCESS_TOKEN``, ...)

Tunable runtime parameters (timeouts, thresholds, retries) stay in
uiqa/settings.py.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from .exceptions import ConfigurationError

MODES = ("detect", "request", "analyze")
AI_PROVIDERS = ("bedrock", "azure", "anthropic")

DEFAULT_GITHUB_API_URL = "https://api.github.com"
DEFAULT_BEDROCK_REGION = "us-east-1"
DEFAULT_BEDROCK_MODEL_ID = "us.anthropic.claude-sonnet-4-20250514-v1:0"
DEFAULT_AZURE_API_VERSION = "2024-12-01-preview"
DEFAULT_ANTHROPIC_MODEL = "claude-sonnet-4-20250514"

# Plain env var fallbacks for each option (after INPUT_<NAME>)
_ENV_FALLBACKS: Dict[str, tuple] = {
    "github_token": ("GITHUB_TOKEN",),
    "github_repository": ("GITHUB_REPOSITORY",),
    "github_api_url": ("GITHUB_API_URL",),
    "jira_base_url": ("JIRA_BASE_URL", "JIRA_URL"),
    "jira_email": ("JIRA_EMAIL",),
    "jira_api_token": ("JIRA_API_TOKEN",),
    "figma_access_token": ("FIGMA_ACCESS_TOKEN", "FIGMA_TOKEN"),
    "figma_mock_mode": ("FIGMA_MOCK_MODE",),
    "ai_provider": ("UIQA_AI_PROVIDER",),
    "bedrock_api_key": ("BEDROCK_API_KEY",),
    "bedrock_region": ("BEDROCK_REGION", "AWS_REGION"),
    "bedrock_model_id": ("BEDROCK_MODEL_ID",),
    "azure_openai_endpoint": ("AZURE_OPENAI_ENDPOINT",),
    "azure_openai_api_key": ("AZURE_OPENAI_API_KEY",),
    "azure_openai_deployment": ("AZURE_OPENAI_DEPLOYMENT",),
    "azure_openai_api_version": ("AZURE_OPENAI_API_VERSION",),
    "anthropic_api_key": ("ANTHROPIC_API_KEY",),
    "anthropic_model": ("ANTHROPIC_MODEL",),
    "event_path": ("GITHUB_EVENT_PATH",),
    "output_path": ("GITHUB_OUTPUT",),
}

# Options each provider needs before it can be constructed
PROVIDER_REQUIREMENTS: Dict[str, tuple] = {
    "bedrock": ("bedrock_api_key", "bedrock_region", "bedrock_model_id"),
    "azure": ("azure_openai_endpoint", "azure_openai_api_key", "azure_openai_deployment"),
    "anthropic": ("anthropic_api_key",),
}

_JIRA_OPTIONS = ("jira_base_url", "jira_email", "jira_api_token")


def _as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    value = value.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _as_int(name: str, value: Optional[str]) -> Optional[int]:
    if value is None or value.strip() == "":
        return None
    try:
        return int(value.strip())
    except ValueError:
        raise ConfigurationError(f"Option '{name}' must be an integer, got {value!r}")


def _split_list(value: Optional[str]) -> List[str]:
    """Parse a JSON array or a comma-separated string into a list."""
    if not value or not value.strip():
        return []
    text = value.strip()
    if text.startswith("["):
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list):
            return [str(item).strip() for item in parsed if str(item).strip()]
    return [token.strip() for token in text.split(",") if token.strip()]


def _read_option(
    name: str,
    overrides: Mapping[str, Optional[str]],
    environ: Mapping[str, str],
) -> Optional[str]:
    value = overrides.get(name)
    if value not in (None, ""):
        return value

    input_name = name.upper()
    for key in (f"INPUT_{input_name.replace('_', '-')}", f"INPUT_{input_name}"):
        value = environ.get(key)
        if value not in (None, ""):
            return value

    for key in _ENV_FALLBACKS.get(name, ()):
        value = environ.get(key)
        if value not in (None, ""):
            return value
    return None


@dataclass
class ActionConfig:
    mode: str = ""
    github_token: Optional[str] = None
    github_repository: Optional[str] = None
    github_api_url: str = DEFAULT_GITHUB_API_URL
    pr_number: Optional[int] = None
    comment_id: Optional[int] = None
    figma_links: List[str] = field(default_factory=list)

    jira_base_url: Optional[str] = None
    jira_email: Optional[str] = None
    jira_api_token: Optional[str] = None

    figma_access_token: Optional[str] = None
    figma_mock_mode: bool = False

    ai_provider: str = "bedrock"
    bedrock_api_key: Optional[str] = None
    bedrock_region: str = DEFAULT_BEDROCK_REGION
    bedrock_model_id: str = DEFAULT_BEDROCK_MODEL_ID
    azure_openai_endpoint: Optional[str] = None
    azure_openai_api_key: Optional[str] = None
    azure_openai_deployment: Optional[str] = None
    azure_openai_api_version: str = DEFAULT_AZURE_API_VERSION
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = DEFAULT_ANTHROPIC_MODEL

    ticket_hosts: List[str] = field(default_factory=list)
    design_hosts: List[str] = field(default_factory=list)
    annotations_dir: Optional[str] = None
    event_path: Optional[str] = None
    output_path: Optional[str] = None

    def require(self, *names: str) -> None:
        """Raise ConfigurationError listing every option in ``names`` that is unset."""
        missing = [name for name in names if not getattr(self, name, None)]
        if missing:
            raise ConfigurationError(
                f"Missing required configuration for {self.mode or 'this'} mode: "
                + ", ".join(missing)
            )

    def validate_for_mode(self) -> None:
        """Check everything the selected mode needs before any network call."""
        if self.mode not in MODES:
            raise ConfigurationError(
                f"Unknown mode: {self.mode!r}. Expected one of: {', '.join(MODES)}"
            )
        if self.ai_provider not in AI_PROVIDERS:
            raise ConfigurationError(
                f"Unknown ai_provider: {self.ai_provider!r}. "
                f"Expected one of: {', '.join(AI_PROVIDERS)}"
            )

        self.require("github_token", "github_repository")
        if self.mode == "request":
            return

        self.require(*_JIRA_OPTIONS)
        self.require(*PROVIDER_REQUIREMENTS[self.ai_provider])
        if self.mode == "analyze" and not self.figma_mock_mode:
            self.require("figma_access_token")

    def as_dict(self) -> Dict[str, object]:
        """Non-secret view for logging."""
        return {
            "mode": self.mode,
            "github_repository": self.github_repository,
            "pr_number": self.pr_number,
            "comment_id": self.comment_id,
            "jira_base_url": self.jira_base_url,
            "ai_provider": self.ai_provider,
            "figma_mock_mode": self.figma_mock_mode,
            "has_figma_token": bool(self.figma_access_token),
            "has_jira_token": bool(self.jira_api_token),
            "design_links": len(self.figma_links),
        }


def load_config(
    overrides: Optional[Mapping[str, Optional[str]]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ActionConfig:
    """Return the merged action configuration.

    Only parses; call ``ActionConfig.validate_for_mode()`` to enforce the
    per-mode requirements.
    """
    overrides = overrides or {}
    environ = os.environ if environ is None else environ

    def read(name: str) -> Optional[str]:
        return _read_option(name, overrides, environ)

    return ActionConfig(
        mode=(read("mode") or "").strip().lower(),
        github_token=read("github_token"),
        github_repository=read("github_repository"),
        github_api_url=(read("github_api_url") or DEFAULT_GITHUB_API_URL).rstrip("/"),
        pr_number=_as_int("pr_number", read("pr_number")),
        comment_id=_as_int("comment_id", read("comment_id")),
        figma_links=_split_list(read("figma_links")),
        jira_base_url=read("jira_base_url"),
        jira_email=read("jira_email"),
        jira_api_token=read("jira_api_token"),
        figma_access_token=read("figma_access_token"),
        figma_mock_mode=_as_bool(read("figma_mock_mode"), False),
        ai_provider=(read("ai_provider") or "bedrock").strip().lower(),
        bedrock_api_key=read("bedrock_api_key"),
        bedrock_region=read("bedrock_region") or DEFAULT_BEDROCK_REGION,
        bedrock_model_id=read("bedrock_model_id") or DEFAULT_BEDROCK_MODEL_ID,
        azure_openai_endpoint=read("azure_openai_endpoint"),
        azure_openai_api_key=read("azure_openai_api_key"),
        azure_openai_deployment=read("azure_openai_deployment"),
        azure_openai_api_version=read("azure_openai_api_version") or DEFAULT_AZURE_API_VERSION,
        anthropic_api_key=read("anthropic_api_key"),
        anthropic_model=read("anthropic_model") or DEFAULT_ANTHROPIC_MODEL,
        ticket_hosts=_split_list(read("ticket_hosts")),
        design_hosts=_split_list(read("design_hosts")),
        annotations_dir=read("annotations_dir"),
        event_path=read("event_path"),
        output_path=read("output_path"),
    )
