"""
Aggregator and marketplace portals listing many dealers' vehicles.

When no direct listing URL is known (or a search query is configured) the
portal's search form is submitted first. Results are paginated through
explicit "next" links, never by scrolling.
"""

from typing import List, Optional

from ..base import TechnologyGroup
from ..crawlers.page import PageHandle
from .base import ExtractionStrategy, ScrapeContext

SEARCH_INPUT_SELECTORS = [
    'input[type="search"]',
    'input[name*="search"]',
    'input[name*="busca"]',
    'input[name="q"]',
    'input[type="text"]',
]

SUBMIT_SELECTORS = [
    '.search-button',
    '.btn-search',
    '.apply-filters',
    'input[type="submit"]',
    'button[type="submit"]',
]


class AggregatorPortalStrategy(ExtractionStrategy):
    group = TechnologyGroup.AGGREGATOR_PORTAL

    DEFAULT_SELECTORS = {
        'container': [
            '.search-results',
            '.results',
            '.listings',
            '.vehicles',
            '.autos',
            '.grid',
            '.list',
            '.content',
        ],
        'item': [
            '.vehicle-item',
            '.auto-item',
            '.listing',
            '.card',
            '.item',
            '.result',
            '.product',
        ],
        'title': [
            '.vehicle-title',
            '.auto-title',
            '.title',
            '.name',
            'h1', 'h2', 'h3', 'h4',
            '.heading',
        ],
        'price': [
            '.price',
            '.precio',
            '.cost',
            '.amount',
            '.value',
        ],
        'image': [
            '.vehicle-image img',
            '.auto-image img',
            '.listing-image img',
            '.photo img',
            'img[alt*="auto"]',
            'img[alt*="car"]',
            'img',
        ],
        'link': [
            '.vehicle-link',
            '.auto-link',
            'a[href*="vehicle"]',
            'a[href*="auto"]',
            'a[href*="detail"]',
        ],
        'details': [
            '.vehicle-specs',
            '.auto-specs',
            '.specifications',
            '.location',
            '.ubicacion',
        ],
    }

    def _scoped(self, form: Optional[str], selectors: List[str]) -> List[str]:
        if not form:
            return selectors
        return [f"{form} {s}" for s in selectors] + selectors

    async def submit_search(self, handle: PageHandle, ctx: ScrapeContext) -> bool:
        """
        Fill the search input (when a query is configured) and click the
        first submit control that exists. Returns whether anything was submitted.
        """
        form = ctx.profile.hint('search_form')

        if ctx.search_query:
            inputs = self._scoped(form, [ctx.profile.hint('search_input')] if ctx.profile.hint('search_input') else [])
            for selector in inputs + self._scoped(form, SEARCH_INPUT_SELECTORS):
                if await handle.fill(selector, ctx.search_query):
                    break
            else:
                ctx.logger.debug("No search input found")

        for selector in self._scoped(form, SUBMIT_SELECTORS):
            if await handle.click(selector):
                ctx.logger.info(f"Submitted search form via {selector}")
                await handle.wait(self.settings.content_wait_interval_seconds)
                return True

        ctx.logger.debug("No search submit control found, extracting landing page")
        return False

    async def expand(self, ctx: ScrapeContext):
        if not ctx.direct_listing or ctx.search_query:
            if await self.submit_search(ctx.handle, ctx):
                await self.await_content(ctx.handle, ctx.profile)
