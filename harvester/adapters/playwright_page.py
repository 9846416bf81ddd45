from typing import List, Optional

from loguru import logger
from playwright.async_api import Error as PWError

from harvester.adapters.base import ImageRecord, PageCapability
from harvester.adapters.extract import select_image_urls
from harvester.browser import close_page, open_page
from harvester.resolver import ContentType

# One record per <img>; the policy itself runs in Python (select_image_urls)
_READ_IMAGES_JS = """
() => Array.from(document.querySelectorAll('img')).map(img => {
    const a = img.closest('a');
    return {
        src: img.src || null,
        srcset: img.srcset || null,
        link_href: (a && a.href) ? a.href : null,
        width: img.naturalWidth || 0,
    };
})
"""


class PlaywrightPage(PageCapability):
    """PageCapability over a single Chromium tab."""

    def __init__(self, pw, browser, context, page, headless: bool = True):
        self._pw = pw
        self._browser = browser
        self._context = context
        self.page = page
        self.headless = headless
        self._closed = False

    @classmethod
    async def launch(cls, headless: bool = True, storage_state: Optional[str] = None) -> "PlaywrightPage":
        pw, browser, context, page = await open_page(headless=headless, storage_state=storage_state)
        return cls(pw, browser, context, page, headless=headless)

    async def navigate(self, url: str, timeout_ms: int, wait_until: str) -> bool:
        try:
            await self.page.goto(url, wait_until=wait_until, timeout=timeout_ms)
            return True
        except PWError as e:
            # Slow pages often time out on networkidle with most images already there
            logger.warning(f"[NAV ] {url} did not settle: {e}")
            return False

    async def extract_images(self, content_type: ContentType) -> List[str]:
        raw = await self.page.evaluate(_READ_IMAGES_JS)
        records = [ImageRecord(**r) for r in raw]
        return select_image_urls(records, content_type)

    async def scroll_by(self, amount: int):
        await self.page.evaluate("(y) => window.scrollBy(0, y)", amount)

    async def viewport_height(self) -> int:
        return await self.page.evaluate("() => window.innerHeight || 900")

    async def scroll_height(self) -> int:
        return await self.page.evaluate("() => document.body ? document.body.scrollHeight : 0")

    async def wait(self, delay_ms: int):
        await self.page.wait_for_timeout(delay_ms)

    async def close(self):
        if self._closed:
            return
        self._closed = True
        await close_page(self._pw, self._browser, self._context)
