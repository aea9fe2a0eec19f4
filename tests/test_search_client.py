"""Tests for the allcpp search client using httpx.MockTransport."""

import json

import httpx
import pytest

from services.allcpp.api.search import COVER_REFERER, ConventionSearchClient

API_URL = "http://search.test/search"


def _client(handler) -> ConventionSearchClient:
    transport = httpx.MockTransport(handler)
    return ConventionSearchClient(API_URL, client=httpx.AsyncClient(transport=transport))


def _payload(**overrides):
    item = {
        "name": "南京漫展",
        "location": "江苏省 南京市",
        "address": "南京国际博览中心",
        "time": "2026-10-01",
        "tag": "同人展",
        "ended": "未开始",
        "wannaGoCount": 12,
        "circleCount": 3,
        "doujinshiCount": 40,
        "url": "https://www.allcpp.cn/allcpp/event/1.do",
        "isOnline": False,
        "appLogoPicUrl": "https://imagecdn3.allcpp.cn/logo.png",
    }
    item.update(overrides)
    return item


class TestSearch:
    @pytest.mark.asyncio
    async def test_parses_records_and_sends_keyword(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["msg"] = request.url.params.get("msg")
            return httpx.Response(200, json={"code": 200, "data": [_payload()]})

        client = _client(handler)
        records = await client.search("南京")

        assert seen["msg"] == "南京"
        assert len(records) == 1
        assert records[0].name == "南京漫展"
        assert records[0].cover_url == "https://imagecdn3.allcpp.cn/logo.png"
        assert records[0].wanna_go_count == 12

    @pytest.mark.asyncio
    async def test_non_200_code_means_no_results(self):
        client = _client(lambda r: httpx.Response(200, json={"code": 404, "data": None}))
        assert await client.search("火星") == []

    @pytest.mark.asyncio
    async def test_malformed_items_skipped(self):
        body = {"code": 200, "data": [_payload(), "garbage", 3]}
        client = _client(lambda r: httpx.Response(200, json=body))

        records = await client.search("南京")

        assert [r.name for r in records] == ["南京漫展"]

    @pytest.mark.asyncio
    async def test_http_error_propagates(self):
        client = _client(lambda r: httpx.Response(502, text="bad gateway"))
        with pytest.raises(httpx.HTTPStatusError):
            await client.search("南京")

    @pytest.mark.asyncio
    async def test_invalid_json_propagates(self):
        client = _client(lambda r: httpx.Response(200, text="<html>"))
        with pytest.raises(json.JSONDecodeError):
            await client.search("南京")


class TestCoverFetch:
    @pytest.mark.asyncio
    async def test_sends_referer(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["referer"] = request.headers.get("Referer")
            return httpx.Response(200, content=b"\x89PNGdata")

        client = _client(handler)
        data = await client.fetch_cover("https://imagecdn3.allcpp.cn/logo.png")

        assert data == b"\x89PNGdata"
        assert seen["referer"] == COVER_REFERER

    @pytest.mark.asyncio
    async def test_failure_returns_none(self):
        client = _client(lambda r: httpx.Response(403))
        assert await client.fetch_cover("https://imagecdn3.allcpp.cn/logo.png") is None

    @pytest.mark.asyncio
    async def test_missing_url_skips_request(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200)

        client = _client(handler)

        assert await client.fetch_cover(None) is None
        assert calls == []
