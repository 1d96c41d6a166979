"""Exception hierarchy for the UI QA bot."""

from __future__ import annotations

from typing import Any, Optional


class UIQAError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(UIQAError):
    """Required configuration is missing or invalid. Always fatal."""


class IntegrationError(UIQAError):
    """Raised when a call to an external REST API fails."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class JiraClientError(IntegrationError):
    """Raised when a Jira API call fails."""


class FigmaClientError(IntegrationError):
    """Raised when a Figma API call fails."""


class FigmaRateLimitError(FigmaClientError):
    """Figma answered HTTP 429. ``retry_after`` is the server hint in seconds."""

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class GitHubClientError(IntegrationError):
    """Raised when a GitHub API call fails."""


class AIProviderError(UIQAError):
    """Raised when the AI collaborator cannot be reached or rejects a request."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_permanent(self) -> bool:
        """Auth, permission, not-found and bad-request failures."""
        return self.status_code in (400, 401, 403, 404)
