"""
Component-framework sites: React, Next.js, Vue/Nuxt.

Listings usually arrive through background API calls after first paint,
so the interceptor is always attached before navigation and its payloads
are preferred over the DOM. Content is only trusted once the framework
root is hydrated. More items come from infinite scroll or a load-more
button.
"""

from bs4 import BeautifulSoup

from ..base import SiteProfile, TechnologyGroup
from ..classifier import is_hydrated
from ..crawlers.page import PageHandle
from ..navigation import PaginationKind
from .base import ExtractionStrategy, ScrapeContext


class ComponentFrameworkStrategy(ExtractionStrategy):
    group = TechnologyGroup.COMPONENT_FRAMEWORK
    follows_links = False
    always_intercepts = True

    DEFAULT_SELECTORS = {
        'container': [
            '[class*="results"]',
            '[class*="grid"]',
            '[class*="list"]',
            '[class*="catalog"]',
            '[class*="vehicles"]',
            '[class*="products"]',
        ],
        'item': [
            '[class*="card"]',
            '[class*="item"]',
            '[class*="product"]',
            '[class*="vehicle"]',
            '[class*="listing"]',
        ],
        'title': [
            '[class*="title"]',
            '[class*="name"]',
            '[class*="heading"]',
            'h1', 'h2', 'h3', 'h4',
        ],
        'price': [
            '[class*="price"]',
            '[class*="cost"]',
            '[class*="amount"]',
            '[class*="value"]',
        ],
        'image': [
            '[class*="image"] img',
            '[class*="photo"] img',
            '[class*="picture"] img',
            'img[src*="vehicle"]',
            'img[src*="car"]',
        ],
        'link': [
            'a[class*="link"]',
            'a[href*="vehicle"]',
            'a[href*="car"]',
        ],
        'details': [
            '[class*="specs"]',
            '[class*="details"]',
            '[class*="subtitle"]',
        ],
    }

    async def await_content(self, handle: PageHandle, profile: SiteProfile) -> bool:
        """Wait for hydration, then for a listing container."""
        attempts = max(1, self.settings.hydration_wait_attempts)
        for attempt in range(attempts):
            if is_hydrated(await handle.soup()):
                break
            if attempt < attempts - 1:
                await handle.wait(self.settings.content_wait_interval_seconds)
        else:
            return False
        return await super().await_content(handle, profile)

    def content_ready(self, soup: BeautifulSoup, profile: SiteProfile) -> bool:
        return is_hydrated(soup) and super().content_ready(soup, profile)

    async def expand(self, ctx: ScrapeContext):
        handle = ctx.handle
        if ctx.profile.feature_flags.has_infinite_scroll:
            iterations = await self.navigation.scroll_to_exhaustion(handle, self.settings.max_scroll_iterations)
            ctx.logger.debug(f"Infinite scroll settled after {iterations} iteration(s)")
            return

        info = await self.navigation.detect_pagination(handle, ctx.profile.hint('next_page'))
        if info.kind == PaginationKind.LOAD_MORE:
            item_selector = ', '.join(self.selectors(ctx.profile, 'item'))
            await self.navigation.click_load_more(
                handle, info.load_more_selector, self.settings.max_load_more_clicks, item_selector
            )
