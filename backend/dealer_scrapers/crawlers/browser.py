"""
Browser crawler for script-rendered and bot-protected sites.

Uses Playwright Chromium with stealth settings. One browser is launched per
technology group; every dealer gets its own browser context, so cookies,
storage and DOM state are never shared between dealers.
"""

import asyncio
import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Error as PlaywrightError,
    TimeoutError as PlaywrightTimeoutError,
)
import logging

from .page import (
    Crawler,
    CrawlerSession,
    CrawlerStartupError,
    NavigationError,
    PageHandle,
    ResponseListener,
)

logger = logging.getLogger(__name__)

CLEANUP_TIMEOUT = 2.0  # seconds per close operation
ACTION_TIMEOUT_MS = 5000

LAUNCH_ARGS = [
    '--disable-blink-features=AutomationControlled',
    '--disable-dev-shm-usage',
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-background-timer-throttling',
    '--disable-backgrounding-occluded-windows',
    '--disable-renderer-backgrounding',
    '--disable-gpu',
]

# Hide automation indicators
STEALTH_SCRIPT = """
    Object.defineProperty(navigator, 'webdriver', {
        get: () => undefined
    });

    Object.defineProperty(navigator, 'plugins', {
        get: () => [1, 2, 3, 4, 5]
    });

    Object.defineProperty(navigator, 'languages', {
        get: () => ['es-AR', 'es', 'en']
    });
"""


async def _close_quietly(closeable, what: str):
    """Close with a timeout so a hung browser can't block the run."""
    try:
        await asyncio.wait_for(closeable.close(), timeout=CLEANUP_TIMEOUT)
    except asyncio.TimeoutError:
        logger.warning(f"{what} close timed out, forcing cleanup")
    except PlaywrightError as e:
        logger.debug(f"Error closing {what}: {e}")


class BrowserPage(PageHandle):
    """Playwright page behind the PageHandle interface."""

    def __init__(self, page: Page):
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    async def goto(self, url: str, timeout: float) -> bool:
        try:
            response = await self._page.goto(
                url,
                wait_until='networkidle',
                timeout=int(timeout * 1000)
            )
        except PlaywrightTimeoutError:
            logger.warning(f"Network did not settle within {timeout}s for {url}, continuing with partial page")
            return False
        except PlaywrightError as e:
            raise NavigationError(f"Navigation to {url} failed: {e}") from e

        if response and response.status >= 400:
            raise NavigationError(f"HTTP {response.status} for {url}")
        return True

    async def content(self) -> str:
        return await self._page.content()

    async def wait(self, seconds: float):
        await self._page.wait_for_timeout(seconds * 1000)

    async def scroll_to_bottom(self):
        await self._page.evaluate("window.scrollTo(0, document.body.scrollHeight)")

    async def scroll_height(self) -> int:
        return int(await self._page.evaluate("document.body.scrollHeight"))

    async def click(self, selector: str) -> bool:
        locator = self._page.locator(selector).first
        try:
            if await locator.count() == 0 or not await locator.is_visible():
                return False
            await locator.click(timeout=ACTION_TIMEOUT_MS)
            return True
        except PlaywrightError as e:
            logger.debug(f"Click on {selector} failed: {e}")
            return False

    async def fill(self, selector: str, value: str) -> bool:
        locator = self._page.locator(selector).first
        try:
            if await locator.count() == 0:
                return False
            await locator.fill(value, timeout=ACTION_TIMEOUT_MS)
            return True
        except PlaywrightError as e:
            logger.debug(f"Fill on {selector} failed: {e}")
            return False

    def add_response_listener(self, listener: ResponseListener):
        self._page.on('response', listener)

    def remove_response_listener(self, listener: ResponseListener):
        self._page.remove_listener('response', listener)

    async def close(self):
        await _close_quietly(self._page, 'Page')


class BrowserSession(CrawlerSession):
    def __init__(self, context: BrowserContext):
        self._context = context
        self._pages: List[BrowserPage] = []

    async def new_page(self) -> PageHandle:
        page = BrowserPage(await self._context.new_page())
        self._pages.append(page)
        return page

    async def close(self):
        for page in self._pages:
            await page.close()
        self._pages.clear()
        await _close_quietly(self._context, 'Context')


class BrowserCrawler(Crawler):
    """
    Stealth Chromium crawler.

    Features:
    - Realistic browser fingerprint and headers
    - One isolated context per dealer session
    - Bounded cleanup that never hangs the run
    """

    def __init__(
        self,
        headless: bool = True,
        user_agent: Optional[str] = None,
        locale: str = 'es-AR',
        timezone_id: str = 'America/Argentina/Buenos_Aires',
    ):
        self.headless = headless
        self.user_agent = user_agent
        self.locale = locale
        self.timezone_id = timezone_id
        self._playwright = None
        self._browser: Optional[Browser] = None

    async def start(self):
        """
        Launch Chromium once for the whole group.

        Raises:
            CrawlerStartupError: If Playwright or Chromium is unavailable
        """
        if self._browser is not None and self._browser.is_connected():
            return

        try:
            self._playwright = await async_playwright().start()

            chromium_path = self._playwright.chromium.executable_path
            if not chromium_path or not os.path.exists(chromium_path):
                raise CrawlerStartupError("Chromium browser not found. Run: playwright install chromium")

            logger.debug("Launching Chromium browser...")
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=LAUNCH_ARGS,
                handle_sigint=False,
                handle_sigterm=False,
                handle_sighup=False,
            )
            if not self._browser.is_connected():
                raise CrawlerStartupError("Browser launched but not connected")

        except CrawlerStartupError:
            await self.close()
            raise
        except PlaywrightError as e:
            logger.error(f"Failed to initialize browser: {e}")
            await self.close()
            raise CrawlerStartupError(f"Failed to initialize browser: {e}") from e

    async def _new_context(self) -> BrowserContext:
        if self._browser is None:
            await self.start()
        context = await self._browser.new_context(
            viewport={'width': 1920, 'height': 1080},
            user_agent=self.user_agent,
            locale=self.locale,
            timezone_id=self.timezone_id,
            ignore_https_errors=True,
            extra_http_headers={
                'Accept-Language': 'es-AR,es;q=0.9,en;q=0.8',
                'DNT': '1',
                'Upgrade-Insecure-Requests': '1',
            }
        )
        await context.add_init_script(STEALTH_SCRIPT)
        return context

    @asynccontextmanager
    async def session(self) -> AsyncIterator[BrowserSession]:
        session = BrowserSession(await self._new_context())
        try:
            yield session
        finally:
            await session.close()

    async def close(self):
        """Close the browser and stop Playwright."""
        if self._browser is not None:
            await _close_quietly(self._browser, 'Browser')
            self._browser = None

        if self._playwright is not None:
            try:
                await asyncio.wait_for(self._playwright.stop(), timeout=CLEANUP_TIMEOUT)
            except asyncio.TimeoutError:
                logger.warning("Playwright stop timed out, forcing cleanup")
            except PlaywrightError as e:
                logger.warning(f"Error stopping playwright: {e}")
            self._playwright = None
