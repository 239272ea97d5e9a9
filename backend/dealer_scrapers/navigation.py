"""
Pagination, infinite scroll and "load more" handling.

Every loop here is bounded: scrolling stops once the page height is stable
for two consecutive iterations or the iteration cap is hit, and load-more
clicking stops when the item count stops growing or the click cap is hit.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from .crawlers.page import PageHandle
from .utils.extractors import safe_select, safe_select_one

logger = logging.getLogger(__name__)


PAGINATION_CONTAINERS = [
    '.pagination',
    '.pager',
    '.page-numbers',
    '.nav-links',
    '[class*="pagination"]',
]

# Explicit next-labelled anchors first, then rel=next
NEXT_LINK_SELECTORS = [
    'a.next',
    'a.siguiente',
    '.next a',
    '.siguiente a',
    'a.next-page',
    '.next-page a',
    'a[rel="next"]',
]

NEXT_LINK_TEXTS = {'siguiente', 'sig', 'next', 'próxima', 'proxima', 'próximo', 'proximo', '›', '»', '>'}

LOAD_MORE_SELECTORS = [
    '[class*="load-more"]',
    '[class*="loadmore"]',
    '[class*="ver-mas"]',
    '[class*="cargar-mas"]',
]

LOAD_MORE_TEXTS = ('ver más', 'ver mas', 'cargar más', 'cargar mas', 'mostrar más', 'load more', 'show more')


class PaginationKind(Enum):
    LINKS = "links"
    LOAD_MORE = "load-more"
    NONE = "none"


@dataclass(frozen=True)
class PaginationInfo:
    kind: PaginationKind
    next_url: Optional[str] = None
    load_more_selector: Optional[str] = None


def _href(el: Optional[Tag], base_url: str) -> Optional[str]:
    if el is None:
        return None
    anchor = el if el.name == 'a' else el.find('a', href=True)
    if anchor is None:
        return None
    href = (anchor.get('href') or '').strip()
    if not href or href.startswith(('#', 'javascript:')):
        return None
    return urljoin(base_url, href)


def _link_label(anchor: Tag) -> str:
    text = anchor.get_text(' ', strip=True) or anchor.get('aria-label') or anchor.get('title') or ''
    return text.strip().lower()


def find_next_link(scope: Tag, base_url: str, extra_selectors: Iterable[str] = ()) -> Optional[str]:
    """Resolve the "next page" URL inside scope, or None."""
    for selector in list(extra_selectors) + NEXT_LINK_SELECTORS:
        url = _href(safe_select_one(scope, selector), base_url)
        if url:
            return url

    # Localized "next" text
    for anchor in scope.find_all('a', href=True):
        label = _link_label(anchor)
        stripped = label.strip(' ›»>.').strip()
        if label in NEXT_LINK_TEXTS or stripped in NEXT_LINK_TEXTS:
            url = _href(anchor, base_url)
            if url:
                return url
    return None


def find_load_more(soup: BeautifulSoup) -> Optional[str]:
    """Selector for a "load more" control, or None."""
    for selector in LOAD_MORE_SELECTORS:
        if safe_select(soup, selector):
            return selector

    for button in soup.find_all(['button', 'a']):
        label = button.get_text(' ', strip=True).lower()
        for text in LOAD_MORE_TEXTS:
            if label.startswith(text):
                # Text selector understood by Playwright
                return f'{button.name}:has-text("{button.get_text(" ", strip=True)}")'
    return None


class NavigationController:
    """Detects and drives pagination for one page handle."""

    def __init__(self, scroll_delay: float = 2.0, load_more_delay: float = 2.0):
        self.scroll_delay = scroll_delay
        self.load_more_delay = load_more_delay

    async def detect_pagination(self, handle: PageHandle, next_hint: Optional[str] = None) -> PaginationInfo:
        """
        Inspect the page for link pagination or a load-more control.

        The next link is looked up inside the first pagination container,
        then in the whole document.
        """
        soup = await handle.soup()
        base_url = handle.url

        if next_hint:
            url = _href(safe_select_one(soup, next_hint), base_url)
            if url:
                return PaginationInfo(kind=PaginationKind.LINKS, next_url=url)

        container = None
        for selector in PAGINATION_CONTAINERS:
            container = safe_select_one(soup, selector)
            if container is not None:
                break

        if container is not None:
            url = find_next_link(container, base_url) or find_next_link(soup, base_url)
            if url and url.rstrip('/') != base_url.rstrip('/'):
                return PaginationInfo(kind=PaginationKind.LINKS, next_url=url)

        load_more = find_load_more(soup)
        if load_more:
            return PaginationInfo(kind=PaginationKind.LOAD_MORE, load_more_selector=load_more)

        return PaginationInfo(kind=PaginationKind.NONE)

    async def scroll_to_exhaustion(self, handle: PageHandle, max_iterations: int) -> int:
        """
        Scroll until the page height is unchanged for two consecutive
        iterations, or max_iterations is reached.

        Returns:
            Number of scroll iterations performed
        """
        last_height = await handle.scroll_height()
        stable = 0
        iterations = 0

        while iterations < max_iterations:
            await handle.scroll_to_bottom()
            await handle.wait(self.scroll_delay)
            iterations += 1

            height = await handle.scroll_height()
            if height == last_height:
                stable += 1
                if stable >= 2:
                    break
            else:
                stable = 0
                last_height = height

        logger.debug(f"Scrolled {iterations} time(s) on {handle.url}, final height {last_height}")
        return iterations

    async def click_load_more(
        self,
        handle: PageHandle,
        selector: str,
        max_clicks: int,
        item_selector: Optional[str] = None,
    ) -> int:
        """
        Click a load-more control until it disappears, the item count stops
        growing, or max_clicks is reached.

        Returns:
            Number of successful clicks
        """
        clicks = 0
        while clicks < max_clicks:
            before = await handle.count(item_selector) if item_selector else None
            if not await handle.click(selector):
                break
            clicks += 1
            await handle.wait(self.load_more_delay)
            if item_selector:
                after = await handle.count(item_selector)
                if after <= before:
                    break

        if clicks:
            logger.debug(f"Clicked load-more {clicks} time(s) on {handle.url}")
        return clicks
