"""
Page handle abstraction shared by the browser and static crawlers.

Strategies, the classifier, the navigation controller and the response
interceptor only talk to a PageHandle, never to Playwright or httpx
directly.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Callable

from bs4 import BeautifulSoup

from ..utils.extractors import safe_select

# Called with a response object exposing .url, .status and async .json()
ResponseListener = Callable[[Any], Any]


class NavigationError(Exception):
    """Navigation failed outright or the server answered with HTTP >= 400."""


class CrawlerStartupError(Exception):
    """The crawler backend (browser, HTTP client) could not be started."""


class PageHandle(ABC):
    """One loaded page owned by a single dealer scrape."""

    @property
    @abstractmethod
    def url(self) -> str:
        ...

    @abstractmethod
    async def goto(self, url: str, timeout: float) -> bool:
        """
        Navigate and wait for the page to settle.

        Returns False when the settle wait timed out (whatever loaded is
        still usable).

        Raises:
            NavigationError: On navigation failure or HTTP >= 400
        """

    @abstractmethod
    async def content(self) -> str:
        ...

    async def soup(self) -> BeautifulSoup:
        return BeautifulSoup(await self.content(), 'html.parser')

    async def count(self, selector: str) -> int:
        return len(safe_select(await self.soup(), selector))

    async def wait(self, seconds: float):
        await asyncio.sleep(seconds)

    @abstractmethod
    async def scroll_to_bottom(self):
        ...

    @abstractmethod
    async def scroll_height(self) -> int:
        ...

    @abstractmethod
    async def click(self, selector: str) -> bool:
        """Click the first visible match; False when nothing was clicked."""

    @abstractmethod
    async def fill(self, selector: str, value: str) -> bool:
        ...

    @abstractmethod
    def add_response_listener(self, listener: ResponseListener):
        ...

    @abstractmethod
    def remove_response_listener(self, listener: ResponseListener):
        ...

    @abstractmethod
    async def close(self):
        ...


class CrawlerSession(ABC):
    """Isolated per-dealer context (cookies, storage, pages)."""

    @abstractmethod
    async def new_page(self) -> PageHandle:
        ...


class Crawler(ABC):
    """Backend that hands out isolated sessions, one per dealer."""

    async def start(self):
        """Acquire shared resources. Raises CrawlerStartupError."""

    async def close(self):
        """Release shared resources."""

    @abstractmethod
    def session(self) -> AsyncContextManager[CrawlerSession]:
        ...

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
