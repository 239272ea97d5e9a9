"""
Static HTML crawler using httpx.

This crawler is for server-rendered sites that don't require JavaScript.
It's faster and more resource-efficient than the browser crawler; scrolling,
clicking and response events are no-ops.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

import httpx
import logging

from .page import Crawler, CrawlerSession, NavigationError, PageHandle, ResponseListener

logger = logging.getLogger(__name__)


DEFAULT_HEADERS = {
    'User-Agent': 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36',
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8',
    'Accept-Language': 'es-AR,es;q=0.9,en;q=0.8',
    'Accept-Encoding': 'gzip, deflate',  # Some sites have issues with brotli
}


class StaticPage(PageHandle):
    """A fetched HTML document behind the PageHandle interface."""

    def __init__(self, session: 'StaticSession'):
        self._session = session
        self._url = ''
        self._html = ''

    @property
    def url(self) -> str:
        return self._url

    async def goto(self, url: str, timeout: float) -> bool:
        self._url = url
        try:
            response = await self._session.fetch(url, timeout)
        except httpx.TimeoutException as e:
            logger.warning(f"Timed out loading {url}: {e}")
            self._html = ''
            return False
        self._url = str(response.url)
        self._html = response.text
        return True

    async def content(self) -> str:
        return self._html

    async def scroll_to_bottom(self):
        pass

    async def scroll_height(self) -> int:
        return len(self._html)

    async def click(self, selector: str) -> bool:
        return False

    async def fill(self, selector: str, value: str) -> bool:
        return False

    def add_response_listener(self, listener: ResponseListener):
        pass

    def remove_response_listener(self, listener: ResponseListener):
        pass

    async def close(self):
        self._html = ''


class StaticSession(CrawlerSession):
    """
    Per-dealer HTTP session.

    Owns its own AsyncClient so cookies never leak between dealers.
    """

    def __init__(self, crawler: 'StaticCrawler'):
        self.crawler = crawler
        self._client: Optional[httpx.AsyncClient] = None
        self._last_request_time = 0.0

    async def _wait_for_rate_limit(self):
        """Wait to respect rate limit."""
        elapsed = time.time() - self._last_request_time
        if elapsed < self.crawler.rate_limit:
            await asyncio.sleep(self.crawler.rate_limit - elapsed)
        self._last_request_time = time.time()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the session's HTTP client with connection pooling."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                follow_redirects=True,
                timeout=self.crawler.timeout,
                headers=self.crawler.headers,
                transport=self.crawler.transport,
                limits=httpx.Limits(
                    max_keepalive_connections=5,
                    max_connections=10,
                    keepalive_expiry=30.0
                )
            )
        return self._client

    async def fetch(self, url: str, timeout: Optional[float] = None) -> httpx.Response:
        """
        Fetch a URL with retries and exponential backoff.

        Raises:
            httpx.TimeoutException: If every attempt timed out
            NavigationError: On HTTP >= 400 or any other transport failure
        """
        logger.debug(f"StaticCrawler fetching: {url}")
        await self._wait_for_rate_limit()

        last_error = None
        client = await self._get_client()

        for attempt in range(self.crawler.max_retries):
            try:
                response = await client.get(url, timeout=timeout or self.crawler.timeout)
                if response.status_code >= 400:
                    raise NavigationError(f"HTTP {response.status_code} for {url}")
                return response

            except NavigationError:
                raise

            except httpx.HTTPError as e:
                last_error = e
                logger.warning(f"Attempt {attempt + 1}/{self.crawler.max_retries} failed for {url}: {e}")
                if attempt < self.crawler.max_retries - 1:
                    await asyncio.sleep(2 ** attempt)  # Exponential backoff

        if isinstance(last_error, httpx.TimeoutException):
            raise last_error
        raise NavigationError(f"Failed to fetch {url}: {last_error}") from last_error

    async def new_page(self) -> PageHandle:
        return StaticPage(self)

    async def close(self):
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


class StaticCrawler(Crawler):
    """
    Wrapper for fetching static HTML pages.

    Uses httpx for async HTTP requests; parsing happens in PageHandle.soup().
    Provides rate limiting, connection pooling, and error handling.
    """

    def __init__(
        self,
        rate_limit: float = 1.0,
        timeout: float = 30.0,
        max_retries: int = 3,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the static crawler.

        Args:
            rate_limit: Seconds to wait between requests within a session
            timeout: Request timeout in seconds
            max_retries: Number of attempts per request
            headers: Custom HTTP headers
            transport: Optional httpx transport (e.g. httpx.MockTransport)
        """
        self.rate_limit = rate_limit
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.headers = headers or dict(DEFAULT_HEADERS)
        self.transport = transport

    @asynccontextmanager
    async def session(self) -> AsyncIterator[StaticSession]:
        session = StaticSession(self)
        try:
            yield session
        finally:
            await session.close()
