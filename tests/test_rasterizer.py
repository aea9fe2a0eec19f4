"""Tests for rasterization against a scripted fake browser page."""

import base64
import io
from contextlib import asynccontextmanager

import pytest
from PIL import Image

from services.render.browser import BrowserService, RenderError, RenderUnavailable, rasterize
from services.render.pipeline import ConventionRenderer, RenderedImage, cover_data_uri, sniff_image_mime
from shared.config.conventions import RenderConfig
from shared.conventions.display import DisplayMode, ImageType
from tests.conftest import FakeSearch, make_record


def _png_bytes(size=(4, 3)) -> bytes:
    out = io.BytesIO()
    Image.new("RGB", size, (245, 166, 35)).save(out, format="PNG")
    return out.getvalue()


class FakePage:
    def __init__(self, *, height=1234, fail_on=None):
        self.height = height
        self.fail_on = fail_on
        self.calls = []
        self.screenshot_kwargs = None

    def _step(self, name):
        self.calls.append(name)
        if self.fail_on == name:
            raise RuntimeError(f"{name} exploded")

    async def set_content(self, html):
        self._step("set_content")
        self.content = html

    async def wait_for_selector(self, selector, *, state, timeout):
        self._step("wait_for_selector")
        self.wait_args = (selector, state, timeout)

    async def evaluate(self, script):
        self._step("evaluate")
        return self.height

    async def set_viewport_size(self, size):
        self._step("set_viewport_size")
        self.viewport = size

    async def screenshot(self, **kwargs):
        self._step("screenshot")
        self.screenshot_kwargs = kwargs
        return _png_bytes()


class FakeBrowser:
    def __init__(self, page: FakePage, *, available=True):
        self._page = page
        self.available = available
        self.opened_width = None
        self.closed = False

    @asynccontextmanager
    async def page(self, *, width):
        self.opened_width = width
        try:
            yield self._page
        finally:
            self.closed = True


class TestRasterize:
    @pytest.mark.asyncio
    async def test_png_capture_fits_content_height(self):
        page = FakePage(height=2048)
        browser = FakeBrowser(page)

        data = await rasterize(browser, "<html></html>", viewport_width=900, image_type=ImageType.PNG)

        assert browser.opened_width == 900
        assert page.viewport == {"width": 900, "height": 2048}
        assert page.wait_args == ("body", "attached", 10000)
        assert page.screenshot_kwargs == {"type": "png", "full_page": True}
        assert base64.b64decode(data).startswith(b"\x89PNG")
        assert browser.closed

    @pytest.mark.asyncio
    async def test_jpeg_passes_quality(self):
        page = FakePage()
        await rasterize(FakeBrowser(page), "<html></html>", viewport_width=700, image_type="jpeg", quality=55)

        assert page.screenshot_kwargs == {"type": "jpeg", "quality": 55, "full_page": True}

    @pytest.mark.asyncio
    async def test_webp_is_reencoded(self):
        page = FakePage()
        data = await rasterize(FakeBrowser(page), "<html></html>", viewport_width=700, image_type=ImageType.WEBP)

        raw = base64.b64decode(data)
        assert page.screenshot_kwargs["type"] == "png"
        assert raw[:4] == b"RIFF" and raw[8:12] == b"WEBP"

    def test_only_png_is_lossless(self):
        assert [t for t in ImageType if not t.lossy] == [ImageType.PNG]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("step", ["set_content", "wait_for_selector", "screenshot"])
    async def test_failure_raises_render_error_and_closes_page(self, step):
        browser = FakeBrowser(FakePage(fail_on=step))

        with pytest.raises(RenderError):
            await rasterize(browser, "<html></html>", viewport_width=900)

        assert browser.closed

    @pytest.mark.asyncio
    async def test_stopped_service_is_unavailable(self):
        service = BrowserService()
        assert not service.available

        with pytest.raises(RenderUnavailable):
            await rasterize(service, "<html></html>", viewport_width=900)


class TestRenderer:
    def _renderer(self, page, *, mode=DisplayMode.COMPACT, covers=None):
        settings = RenderConfig(image_display_mode=mode)
        search = FakeSearch(covers=covers or {})
        renderer = ConventionRenderer(browser=FakeBrowser(page), covers=search, settings=settings)
        return renderer, search

    @pytest.mark.asyncio
    async def test_list_embeds_fetched_covers(self):
        cover = _png_bytes((2, 2))
        page = FakePage()
        renderer, search = self._renderer(page, covers={"https://img/1.png": cover})
        records = [make_record("A", cover_url="https://img/1.png"), make_record("B")]

        image = await renderer.render_list("漫展查询：南京", records)

        assert isinstance(image, RenderedImage)
        assert image.filename == "conventions.png"
        assert cover_data_uri(cover) in page.content
        assert search.cover_calls == ["https://img/1.png", None]

    @pytest.mark.asyncio
    async def test_none_mode_skips_cover_downloads(self):
        page = FakePage()
        renderer, search = self._renderer(page, mode=DisplayMode.NONE)

        await renderer.render_list("t", [make_record("A", cover_url="https://img/1.png")])

        assert search.cover_calls == []

    @pytest.mark.asyncio
    async def test_unavailable_browser_raises(self):
        renderer = ConventionRenderer(browser=None, covers=FakeSearch(), settings=RenderConfig())

        assert not renderer.available
        with pytest.raises(RenderUnavailable):
            await renderer.render_detail(make_record("A"))

    def test_sniff_image_mime(self):
        assert sniff_image_mime(_png_bytes()) == "image/png"
        assert sniff_image_mime(b"GIF89a....") == "image/gif"
        assert sniff_image_mime(b"\xff\xd8\xff\xe0") == "image/jpeg"
