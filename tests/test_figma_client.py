"""Tests for uiqa.integrations.figma_client (rate-limit retry, resolution, cache, mock mode)."""

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from uiqa.exceptions import FigmaClientError, FigmaRateLimitError
from uiqa.integrations.figma_cache import FigmaCache
from uiqa.integrations.figma_client import FIGMA_API_BASE, FigmaClient, _parse_retry_after

from conftest import mock_async_client


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def client():
    return FigmaClient(token="figd_test", max_retries=3, initial_retry_delay=1.0, max_retry_delay=5.0)


@pytest.fixture
def sample_file_response():
    return {
        "name": "App",
        "document": {
            "children": [
                {
                    "id": "0:1",
                    "type": "CANVAS",
                    "children": [{"id": f"1:{i}", "type": "FRAME"} for i in range(1, 8)],
                },
                {"id": "0:2", "type": "CANVAS", "children": []},
            ],
        },
    }


# ---------------------------------------------------------------------------
# Tests: initialization
# ---------------------------------------------------------------------------


class TestFigmaClientInit:

    def test_requires_token_unless_mock(self):
        with pytest.raises(FigmaClientError, match="figma_access_token"):
            FigmaClient()
        assert FigmaClient(mock_mode=True).mock_mode is True

    def test_parse_retry_after(self):
        assert _parse_retry_after("7") == 7.0
        assert _parse_retry_after("soon") is None
        assert _parse_retry_after(None) is None
        assert _parse_retry_after("-1") is None


# ---------------------------------------------------------------------------
# Tests: rate-limit retry wrapper
# ---------------------------------------------------------------------------


class TestRetry:

    @pytest.mark.asyncio
    async def test_always_429_is_bounded(self, client):
        calls = []

        def handler(request):
            calls.append(request.url.path)
            return httpx.Response(429, text="slow down")

        client._client = mock_async_client(handler, base_url=FIGMA_API_BASE)
        with patch("uiqa.integrations.figma_client.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(FigmaRateLimitError):
                await client.get_file("KEY")

        assert len(calls) == 3
        assert sleep.await_count == 2
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_retry_after_is_capped(self, client):
        responses = [
            httpx.Response(429, headers={"Retry-After": "120"}),
            httpx.Response(200, json={"name": "ok", "document": {"children": []}}),
        ]
        client._client = mock_async_client(lambda request: responses.pop(0), base_url=FIGMA_API_BASE)

        with patch("uiqa.integrations.figma_client.asyncio.sleep", new=AsyncMock()) as sleep:
            data = await client.get_file("KEY")

        assert data["name"] == "ok"
        sleep.assert_awaited_once_with(5.0)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,match", [
        (403, "403 Forbidden"),
        (404, "not found"),
        (500, "Figma API error 500"),
    ])
    async def test_other_errors_not_retried(self, client, status, match):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(status, text="err")

        client._client = mock_async_client(handler, base_url=FIGMA_API_BASE)
        with patch("uiqa.integrations.figma_client.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(FigmaClientError, match=match):
                await client.get_file("KEY")
        assert len(calls) == 1
        sleep.assert_not_awaited()


# ---------------------------------------------------------------------------
# Tests: API methods
# ---------------------------------------------------------------------------


class TestClientHeaders:

    @pytest.mark.asyncio
    async def test_token_header(self, client):
        http = await client._get_client()
        assert http.headers["X-FIGMA-TOKEN"] == "figd_test"
        await client.close()


class TestGetNodeImages:

    @pytest.mark.asyncio
    async def test_null_renders_dropped(self, client):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"images": {"1:1": "https://cdn.example/a.png", "1:2": None}})

        client._client = mock_async_client(handler, base_url=FIGMA_API_BASE)
        images = await client.get_node_images("KEY", ["1:1", "1:2"])

        assert images == {"1:1": "https://cdn.example/a.png"}
        assert seen["params"] == {"ids": "1:1,1:2", "format": "png", "scale": "2"}

    @pytest.mark.asyncio
    async def test_err_field_raises(self, client):
        client._client = mock_async_client(
            lambda request: httpx.Response(200, json={"err": "Invalid node IDs", "images": {}}),
            base_url=FIGMA_API_BASE,
        )
        with pytest.raises(FigmaClientError, match="render error"):
            await client.get_node_images("KEY", ["bad"])

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response,match", [
        (httpx.Response(200, text="<html>maintenance</html>"), "non-JSON body"),
        (httpx.Response(200, json=["images"]), "unexpected body"),
    ])
    async def test_malformed_body_raises_client_error(self, client, response, match):
        client._client = mock_async_client(lambda request: response, base_url=FIGMA_API_BASE)
        with pytest.raises(FigmaClientError, match=match):
            await client.get_node_images("KEY", ["1:1"])


class TestResponseCache:

    @pytest.mark.asyncio
    async def test_second_call_served_from_cache(self, tmp_path):
        calls = []

        def handler(request):
            calls.append(1)
            return httpx.Response(200, json={"name": "cached", "document": {"children": []}})

        client = FigmaClient(token="t", cache=FigmaCache(str(tmp_path)))
        client._client = mock_async_client(handler, base_url=FIGMA_API_BASE)

        first = await client.get_file("KEY")
        second = await client.get_file("KEY")

        assert first == second
        assert len(calls) == 1


# ---------------------------------------------------------------------------
# Tests: design URL resolution
# ---------------------------------------------------------------------------


class TestResolveDesignUrl:

    @pytest.mark.asyncio
    async def test_explicit_node(self, client, tiny_png):
        client.get_node_images = AsyncMock(return_value={"1:2": "https://cdn.example/n.png"})
        client.download_image = AsyncMock(return_value=tiny_png)

        images = await client.resolve_design_url("https://www.figma.com/design/KEY/Page?node-id=1-2")

        client.get_node_images.assert_awaited_once_with("KEY", ["1:2"])
        assert len(images) == 1
        assert images[0].node_id == "1:2"
        assert images[0].data == tiny_png

    @pytest.mark.asyncio
    async def test_no_node_uses_first_page_frames(self, client, sample_file_response, tiny_png, monkeypatch):
        monkeypatch.setattr("uiqa.settings.FIGMA_MAX_FRAMES", 5)
        client.get_file = AsyncMock(return_value=sample_file_response)
        client.get_node_images = AsyncMock(
            side_effect=lambda key, ids: {nid: f"https://cdn.example/{nid}.png" for nid in ids}
        )
        client.download_image = AsyncMock(return_value=tiny_png)

        images = await client.resolve_design_url("https://www.figma.com/file/KEY/App")

        assert [img.node_id for img in images] == ["1:1", "1:2", "1:3", "1:4", "1:5"]

    @pytest.mark.asyncio
    async def test_failed_download_skipped(self, client, tiny_png):
        client.get_node_images = AsyncMock(return_value={
            "1:1": "https://cdn.example/a.png",
            "1:2": "https://cdn.example/b.png",
        })
        client._frame_ids = lambda data, n: ["1:1", "1:2"]
        client.get_file = AsyncMock(return_value={})
        client.download_image = AsyncMock(side_effect=[FigmaClientError("boom"), tiny_png])

        images = await client.resolve_design_url("https://www.figma.com/file/KEY/App")

        assert [img.node_id for img in images] == ["1:2"]

    @pytest.mark.asyncio
    async def test_invalid_url(self, client):
        with pytest.raises(FigmaClientError, match="Invalid Figma URL"):
            await client.resolve_design_url("https://example.com/x")

    @pytest.mark.asyncio
    async def test_mock_mode_is_offline(self, tmp_path):
        cache = FigmaCache(str(tmp_path))
        client = FigmaClient(mock_mode=True, cache=cache)
        client._get = AsyncMock(side_effect=AssertionError("network used in mock mode"))

        images = await client.resolve_design_url("https://www.figma.com/design/KEY/Page?node-id=3-4")

        assert len(images) == 1
        assert images[0].node_id == "3:4"
        assert images[0].data.startswith(b"\x89PNG")
        assert cache.stats()["entries"] == 0
