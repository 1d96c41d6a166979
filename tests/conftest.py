"""Shared fixtures for the UI QA test suite.

Provides:
- A scripted AI collaborator (real base-class parsing, canned replies)
- Tiny PNG factory built with Pillow
- httpx MockTransport helpers for the REST clients
"""

from __future__ import annotations

import json
from io import BytesIO
from typing import Callable, List, Sequence, Union

import httpx
import pytest
from PIL import Image

from uiqa import settings
from uiqa.ai.base import AICollaborator, ImageInput


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------


def make_png(width: int = 200, height: int = 120, color=(255, 255, 255)) -> bytes:
    img = Image.new("RGB", (width, height), color)
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_factory() -> Callable[..., bytes]:
    return make_png


@pytest.fixture
def tiny_png() -> bytes:
    return make_png(40, 30, (10, 120, 200))


# ---------------------------------------------------------------------------
# Scripted collaborator
# ---------------------------------------------------------------------------


Reply = Union[str, dict, Exception]


class ScriptedCollaborator(AICollaborator):
    """Collaborator whose ``_complete`` replays canned replies in order.

    Dict replies are serialised to JSON; exceptions are raised. Every call
    is recorded as ``(prompt, images)``.
    """

    provider_name = "scripted"

    def __init__(self, replies: Sequence[Reply] = (), **kwargs):
        super().__init__(**kwargs)
        self.replies: List[Reply] = list(replies)
        self.calls: List[tuple] = []
        self.closed = False

    async def _complete(self, prompt: str, images: Sequence[ImageInput]) -> str:
        self.calls.append((prompt, list(images)))
        if not self.replies:
            raise AssertionError("ScriptedCollaborator: no reply queued")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if isinstance(reply, dict):
            return json.dumps(reply)
        return reply

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def collaborator_factory() -> Callable[..., ScriptedCollaborator]:
    return ScriptedCollaborator


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


def mock_async_client(handler, base_url: str = "") -> httpx.AsyncClient:
    """AsyncClient backed by ``handler(request) -> httpx.Response``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=base_url)


@pytest.fixture
def fast_retries(monkeypatch):
    """No real sleeping in retry loops or between design URLs."""
    monkeypatch.setattr(settings, "FIGMA_REQUEST_DELAY", 0.0)

    async def _no_sleep(_delay):
        return None

    monkeypatch.setattr("uiqa.integrations.figma_client.asyncio.sleep", _no_sleep)


@pytest.fixture(autouse=True)
def isolated_cache_dir(tmp_path, monkeypatch):
    """Keep the on-disk Figma cache inside the test's tmp dir."""
    monkeypatch.setattr(settings, "CACHE_DIR", str(tmp_path / "figma-cache"))


class FakeGitHub:
    """In-memory GitHub REST API for one repository, served through MockTransport."""

    def __init__(self, repository: str = "acme/web"):
        self.repository = repository
        self.pulls = {}
        self.comments: List[dict] = []
        self.statuses: List[dict] = []
        self._next_id = 1000

    def add_comment(self, number: int, body: str, created_at: str = "2024-01-01T00:00:00Z", login: str = "dev"):
        self._next_id += 1
        comment = {
            "id": self._next_id,
            "issue": number,
            "body": body,
            "user": {"login": login},
            "created_at": created_at,
        }
        self.comments.append(comment)
        return comment

    def handler(self, request: httpx.Request) -> httpx.Response:
        prefix = f"/repos/{self.repository}"
        path = request.url.path
        if not path.startswith(prefix):
            return httpx.Response(404, json={"message": "Not Found"})
        path = path[len(prefix):]
        parts = [p for p in path.split("/") if p]

        if request.method == "GET" and parts[0] == "pulls":
            pr = self.pulls.get(int(parts[1]))
            return httpx.Response(200, json=pr) if pr else httpx.Response(404, json={})
        if parts[:1] == ["issues"] and len(parts) == 3 and parts[2] == "comments":
            number = int(parts[1])
            if request.method == "GET":
                per_page = int(request.url.params.get("per_page", 30))
                page = int(request.url.params.get("page", 1))
                mine = [c for c in self.comments if c["issue"] == number]
                return httpx.Response(200, json=mine[(page - 1) * per_page: page * per_page])
            body = json.loads(request.content)["body"]
            return httpx.Response(201, json=self.add_comment(number, body, "2024-06-01T00:00:00Z", "uiqa-bot"))
        if request.method == "PATCH" and parts[:2] == ["issues", "comments"]:
            comment_id = int(parts[2])
            for comment in self.comments:
                if comment["id"] == comment_id:
                    comment["body"] = json.loads(request.content)["body"]
                    return httpx.Response(200, json=comment)
            return httpx.Response(404, json={})
        if request.method == "POST" and parts[0] == "statuses":
            status = dict(json.loads(request.content), sha=parts[1])
            self.statuses.append(status)
            return httpx.Response(201, json=status)
        return httpx.Response(404, json={"message": "Not Found"})

    def client(self, token: str = "ghs_test"):
        from uiqa.integrations.github_client import GitHubClient

        gh = GitHubClient(token=token, repository=self.repository)
        gh._client = mock_async_client(self.handler, base_url="https://api.github.com")
        return gh


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


# ---------------------------------------------------------------------------
# Run reports
# ---------------------------------------------------------------------------


def make_pair(status: str = "pass", percentage: int = 100, issues=(), index: int = 0):
    """A PairComparison with the given verdict, for report and publisher tests."""
    from uiqa.qa.models import (
        ComparisonResult,
        DesignReference,
        Match,
        MatchStatus,
        PairComparison,
        ScreenshotCandidate,
    )

    return PairComparison(
        match=Match(index, index, 90, "Same layout"),
        design=DesignReference(
            source_url=f"https://www.figma.com/design/KEY/Page?node-id=1:{index + 1}",
            file_key="KEY",
            node_id=f"1:{index + 1}",
            data=b"design",
        ),
        screenshot=ScreenshotCandidate(
            source_url=f"https://github.com/user-attachments/assets/shot-{index}",
            data=b"shot",
        ),
        result=ComparisonResult(
            overall_match=MatchStatus(status),
            match_percentage=percentage,
            issues=list(issues),
            summary=f"{percentage}% of components found",
            recommendations=["Fix 1 color difference(s)"] if issues else [],
        ),
    )
