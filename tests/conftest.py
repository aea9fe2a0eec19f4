"""Shared fixtures and fakes for the convention bot tests."""

from __future__ import annotations

import base64
from typing import Dict, List, Optional

import pytest

from services.render.pipeline import RenderedImage
from shared.conventions.display import ImageType
from shared.conventions.records import EventRecord
from shared.storage.subscriptions import SubscriptionStore


def make_record(name: str, **overrides) -> EventRecord:
    fields = {
        "location": "江苏省 南京市",
        "address": f"{name}会展中心",
        "time": "2026-10-01 09:00 ~ 2026-10-02 17:00",
        "tag": "同人展|COS",
        "ended": "未开始",
        "wanna_go_count": 120,
        "circle_count": 45,
        "doujinshi_count": 300,
        "url": f"https://www.allcpp.cn/allcpp/event/{abs(hash(name)) % 10000}.do",
        "is_online": False,
        "cover_url": None,
    }
    fields.update(overrides)
    return EventRecord(name=name, **fields)


class FakeSearch:
    """In-memory search backend keyed by keyword."""

    def __init__(
        self,
        results: Optional[Dict[str, List[EventRecord]]] = None,
        *,
        failing: Optional[set] = None,
        covers: Optional[Dict[str, bytes]] = None,
    ):
        self.results = results or {}
        self.failing = failing or set()
        self.covers = covers or {}
        self.calls: List[str] = []
        self.cover_calls: List[Optional[str]] = []

    async def search(self, keyword: str) -> List[EventRecord]:
        self.calls.append(keyword)
        if keyword in self.failing:
            raise RuntimeError(f"backend down for {keyword}")
        return list(self.results.get(keyword, []))

    async def fetch_cover(self, url: Optional[str]) -> Optional[bytes]:
        self.cover_calls.append(url)
        if not url:
            return None
        return self.covers.get(url)


class FakeSession:
    """Records everything a command handler sends."""

    def __init__(
        self,
        user_id: str = "u1",
        channel_key: str = "c1",
        *,
        replies=None,
        max_text: Optional[int] = None,
        reject_images: bool = False,
    ):
        self.user_id = user_id
        self.channel_key = channel_key
        self.sent: List[tuple] = []
        self.deleted: List[str] = []
        self._replies = list(replies or [])
        self._next_id = 0
        self.max_text = max_text
        self.reject_images = reject_images

    def _id(self) -> str:
        self._next_id += 1
        return f"m{self._next_id}"

    @property
    def texts(self) -> List[str]:
        return [entry[1] for entry in self.sent if entry[0] == "text"]

    @property
    def images(self) -> List[tuple]:
        return [entry for entry in self.sent if entry[0] == "image"]

    async def send_text(self, text: str, *, quote: bool = False) -> Optional[str]:
        if self.max_text is not None and len(text) > self.max_text:
            raise RuntimeError("400 Bad Request: message too long")
        self.sent.append(("text", text))
        return self._id()

    async def send_image(self, data: bytes, *, filename: str, caption: str = "", quote: bool = False):
        if self.reject_images:
            raise RuntimeError("413 Payload Too Large")
        self.sent.append(("image", filename, caption, data))
        return self._id()

    async def delete_message(self, message_id: str) -> None:
        self.deleted.append(message_id)

    async def prompt(self, timeout: float) -> Optional[str]:
        return self._replies.pop(0) if self._replies else None


class FakeRenderer:
    def __init__(self, *, available: bool = True, fail_list: bool = False, fail_detail: bool = False):
        self.available = available
        self.fail_list = fail_list
        self.fail_detail = fail_detail
        self.list_calls: List[tuple] = []
        self.detail_calls: List[EventRecord] = []

    async def render_list(self, title, records):
        self.list_calls.append((title, list(records)))
        if self.fail_list:
            raise RuntimeError("render failed")
        return RenderedImage(base64.b64encode(b"list-image").decode("ascii"), ImageType.PNG)

    async def render_detail(self, record):
        self.detail_calls.append(record)
        if self.fail_detail:
            raise RuntimeError("render failed")
        return RenderedImage(base64.b64encode(b"detail-image").decode("ascii"), ImageType.PNG)


@pytest.fixture
def store(tmp_path) -> SubscriptionStore:
    return SubscriptionStore(tmp_path / "subscriptions.db")


@pytest.fixture
def nanjing_records() -> List[EventRecord]:
    return [
        make_record("南京漫展A", ended="进行中"),
        make_record("南京漫展B", ended="未开始"),
        make_record("南京漫展C", ended="已结束"),
    ]
