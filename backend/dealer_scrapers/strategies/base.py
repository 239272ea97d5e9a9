"""
Base class for technology-group extraction strategies.

A strategy owns navigation, content-ready waiting and raw candidate
extraction for one technology group. Strategies hold no per-dealer state:
everything about the dealer being scraped travels in a ScrapeContext, so
one strategy instance can serve concurrent dealers.
"""

import logging
from abc import ABC
from dataclasses import dataclass
from typing import ClassVar, Dict, List, Optional

from bs4 import BeautifulSoup

from ..base import SiteProfile, TechnologyGroup, VehicleListingCandidate
from ..classifier import Classification, SiteClassifier
from ..crawlers.page import CrawlerSession, NavigationError, PageHandle
from ..interceptor import CapturedPayloads, ResponseInterceptor
from ..navigation import NavigationController, PaginationKind
from ..settings import Settings
from ..utils.extractors import (
    expand_selectors,
    extract_image_url,
    extract_link,
    find_container,
    find_items,
    first_text,
    remaining_text,
)

logger = logging.getLogger(__name__)


def merge_candidates(
    api_candidates: List[VehicleListingCandidate],
    dom_candidates: List[VehicleListingCandidate],
) -> List[VehicleListingCandidate]:
    """
    Intercepted candidates first, then DOM candidates not already seen.

    Best-effort: only a shared, non-empty source_url counts as the same
    listing. Positions are renumbered in the merged order.
    """
    seen = {c.source_url for c in api_candidates if c.source_url}
    merged = list(api_candidates)
    merged.extend(c for c in dom_candidates if not (c.source_url and c.source_url in seen))
    for position, candidate in enumerate(merged):
        candidate.position = position
    return merged


@dataclass
class ScrapeContext:
    """Everything one dealer scrape carries through a strategy."""
    dealer_name: str
    url: str
    profile: SiteProfile
    logger: logging.Logger
    direct_listing: bool = True        # url already points at the listing page
    search_query: Optional[str] = None
    handle: Optional[PageHandle] = None
    captured: Optional[CapturedPayloads] = None
    classification: Optional[Classification] = None


class ExtractionStrategy(ABC):
    """
    Common open / await_content / extract_candidates contract.

    Subclasses set their group, their default selectors per role, and
    override the hooks where their sites behave differently.
    """

    group: ClassVar[TechnologyGroup]

    DEFAULT_SELECTORS: ClassVar[Dict[str, List[str]]] = {}
    # Follow explicit "next" links after the first page
    follows_links: ClassVar[bool] = True
    # Read deferred-source image attributes before src
    lazy_images: ClassVar[bool] = False
    # Capture background responses even without the profile flag
    always_intercepts: ClassVar[bool] = False

    def __init__(
        self,
        settings: Settings,
        navigation: Optional[NavigationController] = None,
        classifier: Optional[SiteClassifier] = None,
        interceptor: Optional[ResponseInterceptor] = None,
    ):
        self.settings = settings
        self.navigation = navigation or NavigationController(
            scroll_delay=settings.scroll_delay_seconds,
            load_more_delay=settings.scroll_delay_seconds,
        )
        self.classifier = classifier or SiteClassifier()
        self.interceptor = interceptor or ResponseInterceptor(settings.max_intercepted_payloads)
        # Other strategies, keyed by group; filled in by build_strategies()
        self.peers: Dict[TechnologyGroup, 'ExtractionStrategy'] = {}

    def __repr__(self):
        return f"<{self.__class__.__name__} group={self.group.value}>"

    # ------------------------------------------------------------
    # Selectors
    # ------------------------------------------------------------

    def selectors(self, profile: SiteProfile, role: str) -> List[str]:
        """
        Ordered selectors for a role.

        Verified profile hints come before the group defaults; hints from
        an unverified (generic) profile come after them.
        """
        hint = profile.hint(role)
        defaults = self.DEFAULT_SELECTORS.get(role, [])
        if profile.verified:
            return expand_selectors(hint, defaults)
        return expand_selectors(defaults, hint)

    # ------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------

    def intercepts(self, profile: SiteProfile) -> bool:
        return self.always_intercepts or profile.feature_flags.requires_response_intercept

    async def prepare(self, ctx: ScrapeContext):
        """Hook run on a fresh page before the first navigation."""
        if ctx.captured is None and self.intercepts(ctx.profile):
            ctx.captured = self.interceptor.attach(ctx.handle, ctx.profile)

    async def open(self, ctx: ScrapeContext, session: CrawlerSession) -> PageHandle:
        """
        Open the dealer URL in a new page of the dealer's session.

        A settle timeout is logged and ignored; extraction proceeds with
        whatever loaded.

        Raises:
            NavigationError: If navigation fails outright
        """
        ctx.handle = await session.new_page()
        await self.prepare(ctx)
        await self.goto(ctx, ctx.url)
        return ctx.handle

    async def goto(self, ctx: ScrapeContext, url: str) -> bool:
        settled = await ctx.handle.goto(url, timeout=self.settings.navigation_timeout_seconds)
        if not settled:
            ctx.logger.warning(f"Page did not settle in {self.settings.navigation_timeout_seconds}s: {url}")
        return settled

    def content_ready(self, soup: BeautifulSoup, profile: SiteProfile) -> bool:
        return find_container(soup, self.selectors(profile, 'container')) is not None or bool(
            find_items(soup, [], self.selectors(profile, 'item'))
        )

    async def await_content(self, handle: PageHandle, profile: SiteProfile) -> bool:
        """Poll for a non-empty listing container, a bounded number of times."""
        attempts = max(1, self.settings.content_wait_attempts)
        for attempt in range(attempts):
            if self.content_ready(await handle.soup(), profile):
                return True
            if attempt < attempts - 1:
                await handle.wait(self.settings.content_wait_interval_seconds)
        return False

    async def extract_candidates(
        self,
        handle: PageHandle,
        profile: SiteProfile,
        dealer_name: str,
        start_position: int = 0,
    ) -> List[VehicleListingCandidate]:
        """
        One candidate per listing item that has a title.

        Title, price, image, link and details are each resolved on their
        own; a missing one never drops the item, a missing title does.
        """
        soup = await handle.soup()
        base_url = handle.url
        items = find_items(soup, self.selectors(profile, 'container'), self.selectors(profile, 'item'))

        title_selectors = self.selectors(profile, 'title')
        price_selectors = self.selectors(profile, 'price')
        image_selectors = self.selectors(profile, 'image')
        link_selectors = self.selectors(profile, 'link')
        details_selectors = self.selectors(profile, 'details')
        lazy_first = self.lazy_images or profile.feature_flags.has_lazy_images

        candidates = []
        for item in items:
            title = first_text(item, title_selectors)
            if not title:
                continue
            price = first_text(item, price_selectors)
            candidates.append(VehicleListingCandidate(
                dealer_name=dealer_name,
                source_url=extract_link(item, link_selectors, base_url),
                raw_title=title,
                raw_price_text=price,
                raw_details_text=first_text(item, details_selectors) or remaining_text(item, (title, price)),
                image_url=extract_image_url(item, image_selectors, base_url, lazy_first=lazy_first),
                position=start_position + len(candidates),
            ))
        return candidates

    # ------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------

    async def expand(self, ctx: ScrapeContext):
        """Hook to reveal more items on the current page (scroll, load more)."""

    async def follow_pages(self, ctx: ScrapeContext, collected: List[VehicleListingCandidate]):
        """Follow explicit "next" links up to max_pages, appending to collected."""
        handle = ctx.handle
        visited = {handle.url}
        pages = 1

        while pages < self.settings.max_pages:
            info = await self.navigation.detect_pagination(handle, ctx.profile.hint('next_page'))
            if info.kind != PaginationKind.LINKS or info.next_url in visited:
                break

            visited.add(info.next_url)
            ctx.logger.info(f"Following page {pages + 1}: {info.next_url}")
            try:
                await self.goto(ctx, info.next_url)
            except NavigationError as e:
                ctx.logger.warning(f"Stopping pagination: {e}")
                break

            await self.await_content(handle, ctx.profile)
            found = await self.extract_candidates(handle, ctx.profile, ctx.dealer_name, len(collected))
            if not found:
                break
            collected.extend(found)
            pages += 1

    async def collect(self, ctx: ScrapeContext) -> List[VehicleListingCandidate]:
        """
        Extract from an already opened page, including any pagination.

        When responses are being captured, intercepted listings come first
        and the DOM candidates are merged in after them.
        """
        if ctx.captured is None and self.intercepts(ctx.profile):
            # Handed over after navigation; later responses are still captured
            await self.prepare(ctx)

        handle = ctx.handle
        if not await self.await_content(handle, ctx.profile):
            ctx.logger.debug(f"No listing container confirmed on {handle.url}, extracting anyway")

        await self.expand(ctx)
        candidates = await self.extract_candidates(handle, ctx.profile, ctx.dealer_name)

        if (self.follows_links or ctx.profile.feature_flags.has_pagination) and candidates:
            await self.follow_pages(ctx, candidates)

        if ctx.captured is None:
            return candidates

        await ctx.captured.drain(self.settings.intercept_drain_timeout_seconds)
        api_candidates = ctx.captured.candidates(ctx.dealer_name, handle.url)
        if api_candidates:
            ctx.logger.info(f"{len(api_candidates)} listing(s) from intercepted API, {len(candidates)} from DOM")
        return merge_candidates(api_candidates, candidates)

    async def scrape(self, ctx: ScrapeContext, session: CrawlerSession) -> List[VehicleListingCandidate]:
        """
        Full dealer scrape: open, optionally re-classify, collect.

        When the profile is unverified the loaded page is classified and,
        if it belongs to another group, handed to that group's strategy.
        """
        try:
            await self.open(ctx, session)
            strategy = self
            if not ctx.profile.verified:
                ctx.classification = await self.classifier.classify(ctx.handle)
                if ctx.classification.group != TechnologyGroup.SPECIAL:
                    strategy = self.resolve_peer(ctx.classification.group)
                if strategy is not self:
                    ctx.logger.info(f"Page classified as {ctx.classification.group.value}, switching strategy")
            return await strategy.collect(ctx)
        finally:
            if ctx.captured is not None:
                ctx.captured.detach()
            if ctx.handle is not None:
                await ctx.handle.close()

    def resolve_peer(self, group: TechnologyGroup) -> 'ExtractionStrategy':
        if group == self.group:
            return self
        return self.peers.get(group, self)
