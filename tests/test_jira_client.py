"""Tests for uiqa.integrations.jira_client."""

import json

import httpx
import pytest

from uiqa.exceptions import ConfigurationError, JiraClientError
from uiqa.integrations.jira_client import (
    JiraClient,
    adf_to_text,
    normalize_base_url,
    text_to_adf,
)

from conftest import mock_async_client


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_issue():
    return {
        "key": "PROJ-5",
        "fields": {
            "summary": "Checkout header",
            "description": {
                "type": "doc",
                "version": 1,
                "content": [
                    {"type": "heading", "content": [{"type": "text", "text": "Design"}]},
                    {
                        "type": "paragraph",
                        "content": [
                            {"type": "text", "text": "See "},
                            {
                                "type": "text",
                                "text": "the mockup",
                                "marks": [{"type": "link", "attrs": {"href": "https://www.figma.com/design/K/P"}}],
                            },
                        ],
                    },
                    {"type": "blockCard", "attrs": {"url": "https://www.figma.com/file/K2/Q"}},
                ],
            },
            "comment": {
                "comments": [
                    {"body": {"type": "doc", "content": [
                        {"type": "paragraph", "content": [
                            {"type": "inlineCard", "attrs": {"url": "https://www.figma.com/design/K3/R"}},
                        ]},
                    ]}},
                ],
            },
        },
    }


@pytest.fixture
def client():
    return JiraClient("acme.atlassian.net/", "me@acme.test", "tok")


# ---------------------------------------------------------------------------
# Tests: helpers
# ---------------------------------------------------------------------------


class TestNormalizeBaseUrl:

    def test_adds_scheme_and_strips_slashes(self):
        assert normalize_base_url("acme.atlassian.net//") == "https://acme.atlassian.net"

    def test_keeps_http(self):
        assert normalize_base_url("http://jira.local:8080/") == "http://jira.local:8080"

    @pytest.mark.parametrize("value", ["", None, "https://"])
    def test_invalid(self, value):
        with pytest.raises(ConfigurationError, match="Invalid Jira base URL"):
            normalize_base_url(value)


class TestAdfToText:

    def test_link_marks_keep_href(self, sample_issue):
        text = adf_to_text(sample_issue["fields"]["description"])
        assert "Design\n" in text
        assert "the mockup (https://www.figma.com/design/K/P)" in text
        assert "https://www.figma.com/file/K2/Q" in text

    def test_media_group(self):
        doc = {"type": "doc", "content": [
            {"type": "mediaGroup", "content": [
                {"type": "media", "attrs": {"url": "https://a.example/1.png"}},
                {"type": "media", "attrs": {"url": "https://a.example/2.png"}},
            ]},
        ]}
        text = adf_to_text(doc)
        assert "https://a.example/1.png" in text
        assert "https://a.example/2.png" in text

    def test_plain_string_and_garbage(self):
        assert adf_to_text("  plain text ") == "plain text"
        assert adf_to_text(None) == ""
        assert adf_to_text({"type": "doc"}) == ""


class TestTextToAdf:

    def test_paragraphs_and_hard_breaks(self):
        doc = text_to_adf("Title\nline two\n\nSecond block")
        assert doc["type"] == "doc"
        assert len(doc["content"]) == 2
        first = doc["content"][0]["content"]
        assert [n["type"] for n in first] == ["text", "hardBreak", "text"]

    def test_never_empty_paragraph(self):
        doc = text_to_adf("")
        assert doc["content"][0]["content"][0]["type"] == "text"
        doc = text_to_adf("\n\n\n\nx")
        assert all(p["content"] for p in doc["content"])


# ---------------------------------------------------------------------------
# Tests: API methods (mocked HTTP)
# ---------------------------------------------------------------------------


class TestGetTicketContent:

    @pytest.mark.asyncio
    async def test_flattened_layout(self, client, sample_issue):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["fields"] = request.url.params.get("fields")
            return httpx.Response(200, json=sample_issue)

        client._client = mock_async_client(handler, base_url=f"{client.base_url}/rest/api/3")
        content = await client.get_ticket_content("PROJ-5")

        assert "/rest/api/3/issue/PROJ-5" in seen["url"]
        assert seen["fields"] == "summary,description,comment"
        assert client._headers["Authorization"].startswith("Basic ")
        lines = content.full_text.split("\n")
        assert lines[0] == "Ticket: PROJ-5"
        assert lines[1] == "Summary: Checkout header"
        assert lines[2] == ""
        assert lines[3] == "Description:"
        assert "Comments:" in lines
        assert any(line.startswith("Comment 1: https://www.figma.com/design/K3/R") for line in lines)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,match", [
        (401, "authentication failed"),
        (403, "permission denied"),
        (404, "not found"),
        (500, "status 500"),
    ])
    async def test_error_mapping(self, client, status, match):
        client._client = mock_async_client(
            lambda request: httpx.Response(status, text="nope"),
            base_url=f"{client.base_url}/rest/api/3",
        )
        with pytest.raises(JiraClientError, match=match) as exc:
            await client.get_ticket_content("PROJ-5")
        assert exc.value.status_code == status

    @pytest.mark.asyncio
    async def test_connection_error_wrapped(self, client):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client._client = mock_async_client(handler, base_url=f"{client.base_url}/rest/api/3")
        with pytest.raises(JiraClientError, match="Failed to connect"):
            await client.get_issue("PROJ-5")

    @pytest.mark.asyncio
    async def test_non_json_body_wrapped(self, client):
        client._client = mock_async_client(
            lambda request: httpx.Response(200, text="<html>SSO login</html>"),
            base_url=f"{client.base_url}/rest/api/3",
        )
        with pytest.raises(JiraClientError, match="non-JSON body"):
            await client.get_issue("PROJ-5")


class TestAddComment:

    @pytest.mark.asyncio
    async def test_posts_adf_body(self, client):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["method"] = request.method
            captured["path"] = request.url.path
            captured["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": "10001"})

        client._client = mock_async_client(handler, base_url=f"{client.base_url}/rest/api/3")
        await client.add_comment("PROJ-5", "Hello\n\nWorld")

        assert captured["method"] == "POST"
        assert captured["path"] == "/rest/api/3/issue/PROJ-5/comment"
        assert captured["body"]["body"]["type"] == "doc"
        assert len(captured["body"]["body"]["content"]) == 2

    def test_issue_url(self, client):
        assert client.issue_url("PROJ-5") == "https://acme.atlassian.net/browse/PROJ-5"
        assert client.host == "acme.atlassian.net"
