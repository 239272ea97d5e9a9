"""
Pytest configuration and fixtures for dealer scraper tests.

Pages are served by in-memory fakes implementing the PageHandle interface,
so no browser or network is needed.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Callable, Dict, List, Optional

import pytest

from dealer_scrapers.base import SiteProfile, TechnologyGroup
from dealer_scrapers.config import SiteProfileRegistry
from dealer_scrapers.crawlers.page import (
    Crawler,
    CrawlerSession,
    CrawlerStartupError,
    NavigationError,
    PageHandle,
)
from dealer_scrapers.settings import Settings


class FakeResponse:
    """Stand-in for a network response seen by response listeners."""

    def __init__(self, url: str, data=None, status: int = 200, invalid_json: bool = False):
        self.url = url
        self.status = status
        self._data = data
        self._invalid_json = invalid_json

    async def json(self):
        if self._invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._data


class FakePage(PageHandle):
    """
    In-memory page.

    Args:
        pages: HTML per URL
        heights: Page height after 0, 1, 2... scrolls (last value repeats)
        clicks: Selector -> queue of HTML documents swapped in per click
        fillable: Selectors that accept fill()
        responses: Responses emitted to listeners on every goto
        failing: URLs whose navigation raises NavigationError
        settled: Value returned by goto for successful navigations
    """

    def __init__(
        self,
        pages: Optional[Dict[str, str]] = None,
        heights: Optional[List[int]] = None,
        clicks: Optional[Dict[str, List[str]]] = None,
        fillable: Optional[List[str]] = None,
        responses: Optional[List[FakeResponse]] = None,
        failing: Optional[set] = None,
        settled: bool = True,
        on_goto: Optional[Callable[[str], None]] = None,
    ):
        self.pages = dict(pages or {})
        self.heights = list(heights or [1000])
        self.click_queue = {k: list(v) for k, v in (clicks or {}).items()}
        self.fillable = set(fillable or [])
        self.responses = list(responses or [])
        self.failing = set(failing or [])
        self.settled = settled
        self.on_goto = on_goto

        self._url = ''
        self.visited: List[str] = []
        self.scrolls = 0
        self.clicked: List[str] = []
        self.filled: Dict[str, str] = {}
        self.listeners = []
        self.closed = False

    @property
    def url(self) -> str:
        return self._url

    async def goto(self, url: str, timeout: float) -> bool:
        self.visited.append(url)
        if self.on_goto is not None:
            self.on_goto(url)
        if url in self.failing:
            raise NavigationError(f"net::ERR_CONNECTION_REFUSED at {url}")
        self._url = url
        for response in self.responses:
            for listener in list(self.listeners):
                listener(response)
        return self.settled

    async def content(self) -> str:
        return self.pages.get(self._url, '')

    async def wait(self, seconds: float):
        # Yield so scheduled response captures can run
        await asyncio.sleep(0)

    async def scroll_to_bottom(self):
        self.scrolls += 1

    async def scroll_height(self) -> int:
        return self.heights[min(self.scrolls, len(self.heights) - 1)]

    async def click(self, selector: str) -> bool:
        queue = self.click_queue.get(selector)
        if not queue:
            return False
        self.clicked.append(selector)
        self.pages[self._url] = queue.pop(0)
        return True

    async def fill(self, selector: str, value: str) -> bool:
        if selector not in self.fillable:
            return False
        self.filled[selector] = value
        return True

    def add_response_listener(self, listener):
        self.listeners.append(listener)

    def remove_response_listener(self, listener):
        if listener in self.listeners:
            self.listeners.remove(listener)

    async def close(self):
        self.closed = True


class FakeSession(CrawlerSession):
    def __init__(self, page_factory: Callable[[], FakePage]):
        self.page_factory = page_factory
        self.pages: List[FakePage] = []

    async def new_page(self) -> PageHandle:
        page = self.page_factory()
        self.pages.append(page)
        return page


class FakeCrawler(Crawler):
    """Crawler whose sessions hand out FakePages over a fixed site map."""

    def __init__(self, pages: Optional[Dict[str, str]] = None, fail_start: bool = False, **page_kwargs):
        self.site = dict(pages or {})
        self.fail_start = fail_start
        self.page_kwargs = page_kwargs
        self.started = False
        self.closed = False
        self.sessions: List[FakeSession] = []

    async def start(self):
        if self.fail_start:
            raise CrawlerStartupError("Chromium browser not found. Run: playwright install chromium")
        self.started = True

    async def close(self):
        self.closed = True

    @asynccontextmanager
    async def session(self):
        session = FakeSession(lambda: FakePage(pages=self.site, **self.page_kwargs))
        self.sessions.append(session)
        yield session


# ============================================================
# HTML FIXTURES
# ============================================================

def woo_item(n: int, title: str, price: str = '$ 20.000.000') -> str:
    return (
        f'<li class="product">'
        f'<a class="woocommerce-LoopProduct-link" href="/auto/{n}/">'
        f'<img src="data:image/gif;base64,R0lGOD" data-src="/img/{n}.jpg">'
        f'<h2 class="woocommerce-loop-product__title">{title}</h2>'
        f'<span class="price">{price}</span>'
        f'</a></li>'
    )


def woo_page(items: List[str], next_url: Optional[str] = None) -> str:
    pagination = ''
    if next_url:
        pagination = (
            '<nav class="woocommerce-pagination"><ul class="page-numbers">'
            f'<li><a class="next page-numbers" href="{next_url}">→</a></li></ul></nav>'
        )
    return (
        '<html><head><link rel="stylesheet" href="/wp-content/themes/x/style.css"></head><body>'
        f'<ul class="products">{"".join(items)}</ul>{pagination}</body></html>'
    )


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def fast_settings():
    """Settings with every pause disabled and one content poll."""
    return Settings(
        dealer_delay_seconds=0,
        group_delay_seconds=0,
        scroll_delay_seconds=0,
        content_wait_interval_seconds=0,
        content_wait_attempts=1,
        hydration_wait_attempts=1,
        intercept_drain_timeout_seconds=1,
        save_results=False,
        max_pages=3,
    )


@pytest.fixture
def test_logger():
    return logging.getLogger('scraper.test')


@pytest.fixture
def template_profile():
    return SiteProfile(domain='dealer-a.test', technology_group=TechnologyGroup.TEMPLATE_CMS, name='Dealer A')


@pytest.fixture
def test_registry():
    """Verified template-cms profiles for the dealer-*.test domains."""
    profiles = {
        f'dealer-{c}.test': SiteProfile(
            domain=f'dealer-{c}.test',
            technology_group=TechnologyGroup.TEMPLATE_CMS,
            name=f'Dealer {c.upper()}',
        )
        for c in 'abc'
    }
    return SiteProfileRegistry(profiles)
