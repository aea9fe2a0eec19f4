"""Canonical convention record schema and helpers."""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional, Union

ONLINE_TEXT = "线上"
OFFLINE_TEXT = "线下"
UNKNOWN_STATUS_TEXT = "未知"


class EventStatus(str, Enum):
    ONGOING = "进行中"
    UPCOMING = "未开始"
    ENDED = "已结束"


def classify_status(raw: Optional[str]) -> EventStatus:
    """
    Map the free-text status label onto one of three states.

    Only the exact "ended" and "upcoming" labels are recognised; every other
    value (including empty) counts as ongoing.
    """
    if raw == EventStatus.ENDED.value:
        return EventStatus.ENDED
    if raw == EventStatus.UPCOMING.value:
        return EventStatus.UPCOMING
    return EventStatus.ONGOING


@dataclass(frozen=True)
class EventRecord:
    name: str
    location: str = ""
    address: str = ""
    time: str = ""
    tag: str = ""
    ended: str = ""
    wanna_go_count: Union[str, int, None] = None
    circle_count: Union[str, int, None] = None
    doujinshi_count: Union[str, int, None] = None
    url: str = ""
    is_online: Union[str, bool, None] = None
    cover_url: Optional[str] = None
    keyword: Optional[str] = None

    # -------------------------------------------------

    @property
    def status(self) -> EventStatus:
        return classify_status(self.ended)

    @property
    def participation_text(self) -> str:
        if isinstance(self.is_online, str):
            return self.is_online
        return ONLINE_TEXT if self.is_online else OFFLINE_TEXT

    def with_keyword(self, keyword: str) -> "EventRecord":
        return replace(self, keyword=keyword)

    # -------------------------------------------------

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "EventRecord":
        if not isinstance(payload, dict):
            raise ValueError(f"Event payload must be an object, got {type(payload).__name__}")

        return cls(
            name=_text(payload.get("name")),
            location=_text(payload.get("location")),
            address=_text(payload.get("address")),
            time=_text(payload.get("time")),
            tag=_text(payload.get("tag")),
            ended=_text(payload.get("ended")),
            wanna_go_count=payload.get("wannaGoCount"),
            circle_count=payload.get("circleCount"),
            doujinshi_count=payload.get("doujinshiCount"),
            url=_text(payload.get("url")),
            is_online=payload.get("isOnline"),
            cover_url=payload.get("appLogoPicUrl") or None,
            keyword=payload.get("keyword") or None,
        )


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def format_detail_text(record: EventRecord) -> str:
    """Plain-text detail view used by text selections and as render fallback."""
    return (
        f"漫展名称: \t{record.name}\n"
        f"地点: \t{record.location}\n"
        f"地址: \t{record.address}\n"
        f"时间: \t{record.time}\n"
        f"标签: \t{record.tag}\n"
        f"状态: \t{record.ended or UNKNOWN_STATUS_TEXT}\n"
        f"想去人数: \t{_count(record.wanna_go_count)}\n"
        f"社团数: \t{_count(record.circle_count)}\n"
        f"同人作数: \t{_count(record.doujinshi_count)}\n"
        f"链接: \t{record.url}\n"
        f"参与方式: \t{record.participation_text}"
    )


def _count(value: Any) -> str:
    return "" if value is None else str(value)


__all__ = [
    "EventRecord",
    "EventStatus",
    "classify_status",
    "format_detail_text",
    "ONLINE_TEXT",
    "OFFLINE_TEXT",
]
