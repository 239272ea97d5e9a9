"""Crawler implementations: Playwright browser and httpx static fetching."""

from .page import PageHandle, CrawlerSession, Crawler, NavigationError, CrawlerStartupError
from .static import StaticCrawler
from .browser import BrowserCrawler

__all__ = [
    'PageHandle',
    'CrawlerSession',
    'Crawler',
    'NavigationError',
    'CrawlerStartupError',
    'StaticCrawler',
    'BrowserCrawler',
]
