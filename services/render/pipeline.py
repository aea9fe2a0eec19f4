"""
Convention image rendering.

Glues cover download, font resolution, HTML composition and rasterization
into two calls: render_list() for a result set and render_detail() for a
single selected record.
"""

from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from services.render.browser import BrowserService, RenderUnavailable, rasterize
from services.render.composer import (
    DETAIL_VIEWPORT_WIDTH,
    LIST_VIEWPORT_WIDTH,
    compose_detail_document,
    compose_list_document,
)
from services.render.fonts import resolve_font
from services.render.theme import theme_for
from shared.config.conventions import RenderConfig
from shared.conventions.display import DisplayMode, ImageType
from shared.conventions.records import EventRecord
from shared.logging.logger import get_logger

log = get_logger("render.pipeline")


class CoverSource(Protocol):
    async def fetch_cover(self, url: Optional[str]) -> Optional[bytes]:
        ...


@dataclass(frozen=True)
class RenderedImage:
    data_base64: str
    image_type: ImageType

    @property
    def data_uri(self) -> str:
        return f"data:{self.image_type.mime};base64,{self.data_base64}"

    @property
    def filename(self) -> str:
        return f"conventions.{self.image_type.value}"

    def to_bytes(self) -> bytes:
        return base64.b64decode(self.data_base64)


def sniff_image_mime(data: bytes) -> str:
    if data.startswith(b"\x89PNG"):
        return "image/png"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"


def cover_data_uri(data: Optional[bytes]) -> Optional[str]:
    if not data:
        return None
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{sniff_image_mime(data)};base64,{encoded}"


class ConventionRenderer:
    def __init__(
        self,
        *,
        browser: Optional[BrowserService],
        covers: CoverSource,
        settings: RenderConfig,
    ):
        self._browser = browser
        self._covers = covers
        self.settings = settings

    # ------------------------------------------------------------

    @property
    def available(self) -> bool:
        return self._browser is not None and self._browser.available

    # ------------------------------------------------------------

    async def render_list(self, title: str, records: Sequence[EventRecord]) -> RenderedImage:
        browser = self._require_browser()
        settings = self.settings
        mode = settings.image_display_mode

        covers: List[Optional[str]] = []
        if mode is not DisplayMode.NONE:
            covers = await self._cover_uris(records)

        document = compose_list_document(
            title,
            records,
            theme_for(settings.enable_dark_mode),
            mode=mode,
            covers=covers,
            font=resolve_font(settings.custom_font_path),
        )
        data = await rasterize(
            browser,
            document,
            viewport_width=LIST_VIEWPORT_WIDTH,
            image_type=settings.image_type,
            quality=settings.screenshot_quality,
        )
        return RenderedImage(data_base64=data, image_type=settings.image_type)

    async def render_detail(self, record: EventRecord) -> RenderedImage:
        browser = self._require_browser()
        settings = self.settings

        cover = cover_data_uri(await self._covers.fetch_cover(record.cover_url))
        document = compose_detail_document(
            record,
            theme_for(settings.enable_dark_mode),
            cover_uri=cover,
            font=resolve_font(settings.custom_font_path),
        )
        data = await rasterize(
            browser,
            document,
            viewport_width=DETAIL_VIEWPORT_WIDTH,
            image_type=settings.image_type,
            quality=settings.screenshot_quality,
        )
        return RenderedImage(data_base64=data, image_type=settings.image_type)

    # ------------------------------------------------------------

    def _require_browser(self) -> BrowserService:
        if not self.available:
            raise RenderUnavailable("Image rendering requires the headless browser")
        return self._browser

    async def _cover_uris(self, records: Sequence[EventRecord]) -> List[Optional[str]]:
        payloads = await asyncio.gather(
            *(self._covers.fetch_cover(r.cover_url) for r in records)
        )
        uris = [cover_data_uri(p) for p in payloads]
        log.debug(f"Fetched {sum(1 for u in uris if u)}/{len(uris)} cover(s)")
        return uris
