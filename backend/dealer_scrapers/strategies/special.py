"""
Catch-all for social storefronts, hybrid systems and unrecognised sites.

Tries a short chain of the other strategies against the same loaded page
until one yields at least one candidate.
"""

from typing import List

from ..base import TechnologyGroup, VehicleListingCandidate
from .base import ExtractionStrategy, ScrapeContext

FALLBACK_CHAIN = [
    TechnologyGroup.COMPONENT_FRAMEWORK,
    TechnologyGroup.TEMPLATE_CMS,
    TechnologyGroup.CUSTOM_RENDERED,
]


class SpecialStrategy(ExtractionStrategy):
    group = TechnologyGroup.SPECIAL

    def chain(self, ctx: ScrapeContext) -> List[ExtractionStrategy]:
        """Fallback strategies in order; a classified group in the chain goes first."""
        order = list(FALLBACK_CHAIN)
        if ctx.classification is not None and ctx.classification.group in order:
            order.remove(ctx.classification.group)
            order.insert(0, ctx.classification.group)
        return [self.peers[g] for g in order if g in self.peers]

    async def collect(self, ctx: ScrapeContext) -> List[VehicleListingCandidate]:
        """
        First non-empty result of the chain.

        Raises:
            Exception: The last error, when every attempt raised
        """
        if ctx.classification is None:
            ctx.classification = await self.classifier.classify(ctx.handle)

        last_error = None
        attempted_cleanly = False

        for strategy in self.chain(ctx):
            try:
                candidates = await strategy.collect(ctx)
            except Exception as e:
                ctx.logger.warning(f"{strategy.group.value} extraction failed: {e}")
                last_error = e
                continue

            attempted_cleanly = True
            if candidates:
                ctx.logger.info(f"{strategy.group.value} extraction found {len(candidates)} candidate(s)")
                return candidates

        if last_error is not None and not attempted_cleanly:
            raise last_error
        return []
