import asyncio
import base64
import io
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from PIL import Image
from playwright.async_api import Browser, Page, Playwright, async_playwright

from shared.conventions.display import ImageType
from shared.logging.logger import get_logger

log = get_logger("render.browser")

INITIAL_VIEWPORT_HEIGHT = 800
DEVICE_SCALE_FACTOR = 1.5
BODY_TIMEOUT_MS = 10000


class RenderUnavailable(RuntimeError):
    """The headless browser is not configured or failed to start."""


class RenderError(RuntimeError):
    """Rasterization failed after a page was acquired."""


class BrowserService:
    """
    Owns one headless Chromium for the whole process.

    - start() is idempotent and serialized by a lock
    - page() hands out a fresh browser context + page per call and closes it
      on every exit path; pages are never shared between renders
    - a failed launch leaves the service unavailable instead of raising
    """

    def __init__(self, *, headless: bool = True):
        self._headless = headless
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    # ------------------------------------------------------------

    @property
    def available(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    # ------------------------------------------------------------

    async def start(self) -> bool:
        async with self._lock:
            if self.available:
                return True

            log.info("Starting headless Chromium for image rendering")
            try:
                self._playwright = await async_playwright().start()
                self._browser = await self._playwright.chromium.launch(
                    headless=self._headless,
                    args=["--no-first-run", "--no-default-browser-check"],
                )
            except Exception as e:
                log.error(f"Headless browser unavailable, image commands disabled: {e}")
                await self._teardown()
                return False

            log.info("Headless Chromium ready")
            return True

    # ------------------------------------------------------------

    @asynccontextmanager
    async def page(
        self,
        *,
        width: int,
        height: int = INITIAL_VIEWPORT_HEIGHT,
        scale: float = DEVICE_SCALE_FACTOR,
    ) -> AsyncIterator[Page]:
        if not self.available:
            raise RenderUnavailable("Headless browser is not running")

        context = await self._browser.new_context(
            viewport={"width": width, "height": height},
            device_scale_factor=scale,
        )
        try:
            yield await context.new_page()
        finally:
            try:
                await context.close()
            except Exception as e:
                log.warning(f"Browser context close ignored: {e}")

    # ------------------------------------------------------------

    async def shutdown(self) -> None:
        async with self._lock:
            log.info("Shutting down headless browser")
            await self._teardown()

    async def _teardown(self) -> None:
        try:
            if self._browser:
                try:
                    await self._browser.close()
                except Exception as e:
                    log.warning(f"Browser close ignored: {e}")

            if self._playwright:
                try:
                    await self._playwright.stop()
                except Exception as e:
                    log.warning(f"Playwright stop ignored: {e}")
        finally:
            self._browser = None
            self._playwright = None


# ------------------------------------------------------------
# RASTERIZATION
# ------------------------------------------------------------

async def rasterize(
    browser: BrowserService,
    document: str,
    *,
    viewport_width: int,
    image_type: ImageType = ImageType.PNG,
    quality: int = 80,
) -> str:
    """
    Load an HTML document, fit the viewport height to the content and
    capture a full-page image. Returns the encoded image as base64.
    """
    image_type = ImageType(image_type)
    try:
        async with browser.page(width=viewport_width) as page:
            await page.set_content(document)
            await page.wait_for_selector("body", state="attached", timeout=BODY_TIMEOUT_MS)

            content_height = await page.evaluate(
                "() => document.documentElement.scrollHeight"
            )
            await page.set_viewport_size(
                {"width": viewport_width, "height": int(content_height)}
            )

            raw = await _capture(page, image_type, quality)
    except RenderUnavailable:
        raise
    except Exception as e:
        log.error(f"Failed to render image: {e}")
        raise RenderError(str(e)) from e

    log.debug(
        f"Rendered {image_type.value} image ({len(raw)} bytes, "
        f"{viewport_width}x{content_height})"
    )
    return base64.b64encode(raw).decode("ascii")


async def _capture(page: Page, image_type: ImageType, quality: int) -> bytes:
    # png rejects a quality option
    if not image_type.lossy:
        return await page.screenshot(type="png", full_page=True)

    if image_type is ImageType.JPEG:
        return await page.screenshot(type="jpeg", quality=quality, full_page=True)

    # Chromium cannot emit webp directly
    png = await page.screenshot(type="png", full_page=True)
    out = io.BytesIO()
    with Image.open(io.BytesIO(png)) as img:
        img.save(out, format="WEBP", quality=quality)
    return out.getvalue()
