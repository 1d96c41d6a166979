"""Jira Cloud REST client.

Fetches ticket text (summary, description, comments) flattened from
Atlassian Document Format (ADF) for prompting, and posts plain-text
comments converted back to ADF.

Usage:
    client = JiraClient("company.atlassian.net", "me@company.com", token)
    content = await client.get_ticket_content("PROJ-123")
    await client.add_comment("PROJ-123", "UI QA finished\\n\\nAll checks passed")
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import httpx
from pydantic import BaseModel, Field

from .. import settings
from ..exceptions import ConfigurationError, JiraClientError

logger = logging.getLogger("uiqa.integrations.jira")


class TicketContent(BaseModel):
    """Ticket text flattened for LLM processing."""
    key: str
    summary: str = ""
    description_text: str = ""
    comments_text: List[str] = Field(default_factory=list)
    full_text: str = ""


def normalize_base_url(base_url: Optional[str]) -> str:
    """Add a missing scheme, drop trailing slashes and validate the host."""
    url = (base_url or "").strip()
    if url and not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    url = url.rstrip("/")

    parts = urlsplit(url) if url else None
    if not parts or not parts.hostname:
        raise ConfigurationError(
            f'Invalid Jira base URL: "{base_url}". '
            "Expected format: https://your-domain.atlassian.net"
        )
    return url


# --- ADF conversion ---


def _node_text(node: Dict[str, Any]) -> str:
    node_type = node.get("type")
    attrs = node.get("attrs") or {}

    if node_type == "text":
        text = node.get("text") or ""
        for mark in node.get("marks") or []:
            href = (mark.get("attrs") or {}).get("href")
            if mark.get("type") == "link" and href:
                # Keep the URL visible even when hidden behind display text
                text = f"{text} ({href})"
        return text

    if node_type == "inlineCard" and attrs.get("url"):
        return attrs["url"] + " "
    if node_type == "blockCard" and attrs.get("url"):
        return attrs["url"] + "\n"
    if node_type == "media" and attrs.get("url"):
        return attrs["url"] + " "

    children = node.get("content")
    if not isinstance(children, list):
        return ""
    if node_type == "mediaGroup":
        return " ".join(_node_text(child) for child in children)
    return "".join(_node_text(child) for child in children)


def adf_to_text(adf: Any) -> str:
    """Flatten an ADF document to plain text, preserving link URLs."""
    if not isinstance(adf, dict) or not isinstance(adf.get("content"), list):
        # Jira Server / API v2 can still hand back plain strings
        return adf.strip() if isinstance(adf, str) else ""

    parts = []
    for node in adf["content"]:
        text = _node_text(node)
        if node.get("type") in ("paragraph", "heading"):
            text += "\n"
        parts.append(text)
    return "".join(parts).strip()


def text_to_adf(text: str) -> Dict[str, Any]:
    """Convert plain text to an ADF doc: one paragraph per blank-line block,
    hardBreak between lines, never an empty paragraph."""
    paragraphs = []
    for block in text.split("\n\n"):
        if not block.strip():
            continue
        lines = block.split("\n")
        content: List[Dict[str, Any]] = []
        for i, line in enumerate(lines):
            if line:
                content.append({"type": "text", "text": line})
            if i < len(lines) - 1:
                content.append({"type": "hardBreak"})
        if not any(item["type"] == "text" for item in content):
            content = [{"type": "text", "text": " "}]
        paragraphs.append({"type": "paragraph", "content": content})

    if not paragraphs:
        paragraphs.append({"type": "paragraph", "content": [{"type": "text", "text": text or " "}]})

    return {"type": "doc", "version": 1, "content": paragraphs}


class JiraClient:
    """Async Jira Cloud REST API (v3) client.

    Args:
        base_url: Jira instance URL; ``https://`` is added when missing.
        email: Account email for Basic auth.
        api_token: Jira API token.
        timeout: HTTP request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        email: str,
        api_token: str,
        timeout: Optional[float] = None,
    ):
        self.base_url = normalize_base_url(base_url)
        auth_bytes = base64.b64encode(f"{email}:{api_token}".encode()).decode()
        self._headers = {
            "Authorization": f"Basic {auth_bytes}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        self._timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def host(self) -> str:
        return urlsplit(self.base_url).hostname or ""

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=f"{self.base_url}/rest/api/3",
                headers=self._headers,
                timeout=self._timeout,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        client = await self._get_client()
        try:
            resp = await client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise JiraClientError(f"Jira request timed out: {path}") from e
        except httpx.HTTPError as e:
            raise JiraClientError(f"Failed to connect to Jira: {self.base_url}: {e}") from e

        if resp.status_code == 401:
            raise JiraClientError(
                "Jira authentication failed. Check jira_email and jira_api_token.",
                status_code=401,
            )
        if resp.status_code == 403:
            raise JiraClientError(
                f"Jira permission denied for {path}. The account needs Browse "
                "Projects (and Add Comments for the report echo).",
                status_code=403,
            )
        if resp.status_code == 404:
            raise JiraClientError(f"Jira resource not found: {path}", status_code=404)
        if resp.status_code >= 400:
            raise JiraClientError(
                f"Jira API returned status {resp.status_code}",
                status_code=resp.status_code,
                details=resp.text[:500],
            )
        return resp

    # ------------------------------------------------------------------
    # Core API methods
    # ------------------------------------------------------------------

    async def get_issue(self, key: str) -> Dict[str, Any]:
        """GET /rest/api/3/issue/:key (summary, description, comments)."""
        resp = await self._request(
            "GET", f"/issue/{key}", params={"fields": "summary,description,comment"},
        )
        try:
            data = resp.json()
        except ValueError as e:
            raise JiraClientError(
                f"Jira returned a non-JSON body for issue {key}", details=resp.text[:500],
            ) from e
        if not isinstance(data, dict):
            raise JiraClientError(f"Jira returned an unexpected body for issue {key}")
        return data

    async def get_ticket_content(self, key: str) -> TicketContent:
        """Fetch a ticket and flatten it into one prompt-ready text blob."""
        issue = await self.get_issue(key)
        fields = issue.get("fields") or {}
        issue_key = issue.get("key") or key
        summary = fields.get("summary") or ""

        description_text = adf_to_text(fields.get("description"))
        comments = ((fields.get("comment") or {}).get("comments")) or []
        comments_text = [adf_to_text(c.get("body")) for c in comments]

        full_text = "\n".join([
            f"Ticket: {issue_key}",
            f"Summary: {summary}",
            "",
            "Description:",
            description_text,
            "",
            "Comments:",
            *[f"Comment {i + 1}: {c}" for i, c in enumerate(comments_text)],
        ])

        logger.info(
            f"get_ticket_content: {issue_key}, description={len(description_text)} chars, "
            f"comments={len(comments_text)}"
        )
        return TicketContent(
            key=issue_key,
            summary=summary,
            description_text=description_text,
            comments_text=comments_text,
            full_text=full_text,
        )

    async def add_comment(self, key: str, text: str) -> None:
        """POST a plain-text comment, converted to ADF."""
        await self._request("POST", f"/issue/{key}/comment", json={"body": text_to_adf(text)})
        logger.info(f"add_comment: posted comment to {key}")

    def issue_url(self, key: str) -> str:
        return f"{self.base_url}/browse/{key}"
