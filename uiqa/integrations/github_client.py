"""GitHub REST client: pull requests, issue comments and commit statuses.

Usage:
    gh = GitHubClient(token, "octo-org/web-app")
    pr = await gh.get_pull_request(42)
    comment_id = await gh.post_or_update_comment(42, body, marker)
    await gh.set_commit_status(pr.head_sha, "success", "All UI checks passed")
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import httpx
from pydantic import BaseModel, ConfigDict, Field

from .. import settings
from ..exceptions import GitHubClientError, IntegrationError
from .image_utils import download_image

logger = logging.getLogger("uiqa.integrations.github")

# GitHub rejects commit-status descriptions longer than this
STATUS_DESCRIPTION_LIMIT = 140

COMMIT_STATES = ("pending", "success", "failure", "error")

_MD_IMAGE = re.compile(r"!\[[^\]]*\]\(\s*([^)\s]+)(?:\s+\"[^\"]*\")?\s*\)")
_HTML_IMG = re.compile(r"<img[^>]+src=[\"']([^\"']+)[\"'][^>]*>", re.IGNORECASE)
_BARE_GITHUB_IMAGE = re.compile(
    r"https://(?:user-images\.githubusercontent\.com"
    r"|private-user-images\.githubusercontent\.com"
    r"|github\.com/[^/\s]+/[^/\s]+/assets"
    r"|github\.com/user-attachments/assets)/[^\s\"')<>\]]+"
)

_AUTH_IMAGE_HOSTS = ("github.com", "githubusercontent.com")


def extract_image_urls(markdown: Optional[str]) -> List[str]:
    """Image URLs in a comment body, deduplicated in first-seen order.

    Recognises ``![alt](url)``, ``<img src="url">`` and bare GitHub
    attachment URLs pasted without markup.
    """
    if not markdown:
        return []
    urls: List[str] = []
    for pattern in (_MD_IMAGE, _HTML_IMG, _BARE_GITHUB_IMAGE):
        for match in pattern.finditer(markdown):
            url = match.group(1) if pattern.groups else match.group(0)
            if url not in urls:
                urls.append(url)
    return urls


class PullRequestInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    number: int
    title: str = ""
    body: str = ""
    head_sha: str = ""
    html_url: str = ""


class PRComment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    body: str = ""
    user: str = "unknown"
    created_at: str = ""
    image_urls: List[str] = Field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "PRComment":
        body = data.get("body") or ""
        return cls(
            id=data["id"],
            body=body,
            user=(data.get("user") or {}).get("login") or "unknown",
            created_at=data.get("created_at") or "",
            image_urls=extract_image_urls(body),
        )


class GitHubClient:
    """Async GitHub REST API client scoped to one repository.

    Args:
        token: Token with ``pull-requests: write`` and ``statuses: write``.
        repository: ``owner/repo``.
        api_url: REST base URL (GitHub Enterprise Server uses its own).
    """

    def __init__(
        self,
        token: str,
        repository: str,
        api_url: str = "https://api.github.com",
        timeout: Optional[float] = None,
    ):
        if not token:
            raise GitHubClientError("GitHub token not configured (github_token / GITHUB_TOKEN).")
        if "/" not in (repository or ""):
            raise GitHubClientError(f"Invalid repository {repository!r}; expected 'owner/repo'.")
        self._token = token
        self.owner, self.repo = repository.split("/", 1)
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._api_url,
                headers={
                    "Authorization": f"Bearer {self._token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": "2022-11-28",
                },
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
            raise GitHubClientError(f"GitHub API timeout: {method} {path}") from e
        except httpx.HTTPError as e:
            raise GitHubClientError(f"GitHub API connection error: {method} {path}: {e}") from e

        if resp.status_code in (401, 403):
            raise GitHubClientError(
                f"GitHub API returned {resp.status_code} for {method} {path}. The token "
                "needs pull-requests: write, issues: write and statuses: write.",
                status_code=resp.status_code,
                details=resp.text[:500],
            )
        if resp.status_code == 404:
            raise GitHubClientError(f"GitHub resource not found: {path}", status_code=404)
        if resp.status_code >= 400:
            raise GitHubClientError(
                f"GitHub API error {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )
        return resp

    @staticmethod
    def _json(resp: httpx.Response, expected: type) -> Any:
        try:
            data = resp.json()
        except ValueError as e:
            raise GitHubClientError(
                f"GitHub API returned a non-JSON body for {resp.request.url.path}",
                details=resp.text[:500],
            ) from e
        if not isinstance(data, expected):
            raise GitHubClientError(
                f"GitHub API returned an unexpected body for {resp.request.url.path}"
            )
        return data

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    # ------------------------------------------------------------------
    # Pull requests and comments
    # ------------------------------------------------------------------

    async def get_pull_request(self, number: int) -> PullRequestInfo:
        resp = await self._request("GET", f"{self._repo_path}/pulls/{number}")
        data = self._json(resp, dict)
        return PullRequestInfo(
            number=number,
            title=data.get("title") or "",
            body=data.get("body") or "",
            head_sha=(data.get("head") or {}).get("sha") or "",
            html_url=data.get("html_url") or "",
        )

    async def list_comments(self, number: int) -> List[PRComment]:
        """All issue comments on a PR, following pagination."""
        comments: List[PRComment] = []
        page = 1
        while True:
            resp = await self._request(
                "GET",
                f"{self._repo_path}/issues/{number}/comments",
                params={"per_page": 100, "page": page},
            )
            batch = self._json(resp, list)
            comments.extend(PRComment.from_api(item) for item in batch)
            if len(batch) < 100:
                break
            page += 1
        logger.info(f"list_comments: PR #{number}, {len(comments)} comments")
        return comments

    async def create_comment(self, number: int, body: str) -> int:
        resp = await self._request(
            "POST", f"{self._repo_path}/issues/{number}/comments", json={"body": body},
        )
        comment_id = self._json(resp, dict).get("id")
        if comment_id is None:
            raise GitHubClientError(f"GitHub API did not return an id for the new comment on PR #{number}")
        logger.info(f"create_comment: PR #{number}, comment {comment_id}")
        return comment_id

    async def update_comment(self, comment_id: int, body: str) -> None:
        await self._request(
            "PATCH", f"{self._repo_path}/issues/comments/{comment_id}", json={"body": body},
        )
        logger.info(f"update_comment: comment {comment_id}")

    async def find_comment_by_marker(self, number: int, marker: str) -> Optional[PRComment]:
        for comment in await self.list_comments(number):
            if marker in comment.body:
                return comment
        return None

    async def post_or_update_comment(self, number: int, body: str, marker: str) -> int:
        """Overwrite the comment carrying ``marker``, or create one."""
        existing = await self.find_comment_by_marker(number, marker)
        if existing is not None:
            await self.update_comment(existing.id, body)
            return existing.id
        return await self.create_comment(number, body)

    # ------------------------------------------------------------------
    # Commit status
    # ------------------------------------------------------------------

    async def set_commit_status(
        self,
        sha: str,
        state: str,
        description: str,
        context: Optional[str] = None,
    ) -> None:
        if state not in COMMIT_STATES:
            raise GitHubClientError(f"Invalid commit status state: {state!r}")
        if len(description) > STATUS_DESCRIPTION_LIMIT:
            description = description[: STATUS_DESCRIPTION_LIMIT - 3] + "..."
        await self._request(
            "POST",
            f"{self._repo_path}/statuses/{sha}",
            json={
                "state": state,
                "description": description,
                "context": context or settings.STATUS_CONTEXT,
            },
        )
        logger.info(f"set_commit_status: {sha[:7]} -> {state} ({description})")

    # ------------------------------------------------------------------
    # Screenshot download
    # ------------------------------------------------------------------

    async def download_image(self, url: str) -> bytes:
        """Download a pasted screenshot; GitHub-hosted attachments get the token."""
        host = (urlsplit(url).hostname or "").lower()
        headers = None
        if any(host == h or host.endswith("." + h) for h in _AUTH_IMAGE_HOSTS):
            headers = {"Authorization": f"Bearer {self._token}"}
        try:
            return await download_image(url, headers=headers, timeout=self._timeout)
        except IntegrationError as e:
            raise GitHubClientError(f"Screenshot download failed: {e}", status_code=e.status_code) from e
