from typing import Optional

from loguru import logger
from playwright.async_api import async_playwright
# Asynchronous Playwright API, the browser is driven with async/await.

from harvester.config import CHROME_ARGS, UA, VIEWPORT


async def open_page(headless: bool = True, storage_state: Optional[str] = None):
    """
    Starts the Playwright driver and opens one Chromium tab for a job.

    Returns:
        pw: Playwright instance
        browser: Chromium browser object
        context: Browser context (UA, viewport, optional login state)
        page: The tab the job scrolls and reads images from
    Hand the first three to close_page() when the job ends.
    """

    pw = await async_playwright().start()
    # Start the Playwright engine.

    try:
        browser = await pw.chromium.launch(headless=headless, args=CHROME_ARGS)
        # headless=False shows the window, used when the user asks to watch the job.

        context = await browser.new_context(
            storage_state=storage_state if storage_state else None,
            # Saved cookies / localStorage for sites that need a login.

            user_agent=UA,

            viewport=VIEWPORT,
            # Below ~800px many sites switch to the mobile DOM.
        )

        page = await context.new_page()
    except Exception:
        # The engine is already running; do not leave its node process behind.
        await pw.stop()
        raise

    logger.debug(f"[PAGE] Chromium opened (headless={headless})")
    return pw, browser, context, page


async def close_page(pw, browser, context):
    """
    Properly closes Playwright resources.
    This prevents zombie browser processes and leaked node drivers.
    """

    try:
        await context.close()
        # Closes all tabs of this context.

        await browser.close()
        # Ends the Chromium process.
    finally:
        await pw.stop()
        # Stops the driver Playwright spawns, even if the browser already died.

    logger.debug("[PAGE] Chromium closed")
