"""Per-technology-group extraction strategies."""

from typing import Dict, Optional, Type

from ..base import TechnologyGroup
from ..classifier import SiteClassifier
from ..interceptor import ResponseInterceptor
from ..navigation import NavigationController
from ..settings import Settings
from .aggregator_portal import AggregatorPortalStrategy
from .base import ExtractionStrategy, ScrapeContext
from .component_framework import ComponentFrameworkStrategy
from .custom_rendered import CustomRenderedStrategy
from .special import SpecialStrategy
from .template_cms import TemplateCmsStrategy

# Closed set: every technology group has exactly one strategy
STRATEGY_REGISTRY: Dict[TechnologyGroup, Type[ExtractionStrategy]] = {
    TechnologyGroup.TEMPLATE_CMS: TemplateCmsStrategy,
    TechnologyGroup.COMPONENT_FRAMEWORK: ComponentFrameworkStrategy,
    TechnologyGroup.CUSTOM_RENDERED: CustomRenderedStrategy,
    TechnologyGroup.AGGREGATOR_PORTAL: AggregatorPortalStrategy,
    TechnologyGroup.SPECIAL: SpecialStrategy,
}


def build_strategies(
    settings: Settings,
    navigation: Optional[NavigationController] = None,
    classifier: Optional[SiteClassifier] = None,
    interceptor: Optional[ResponseInterceptor] = None,
) -> Dict[TechnologyGroup, ExtractionStrategy]:
    """
    Instantiate one strategy per technology group, sharing collaborators.

    Each strategy can reach the others through its peers mapping, which
    is how classification hand-off and the special-group fallback chain work.
    """
    missing = set(TechnologyGroup) - set(STRATEGY_REGISTRY)
    if missing:
        raise ValueError(f"No strategy registered for: {sorted(g.value for g in missing)}")

    navigation = navigation or NavigationController(
        scroll_delay=settings.scroll_delay_seconds,
        load_more_delay=settings.scroll_delay_seconds,
    )
    classifier = classifier or SiteClassifier()
    interceptor = interceptor or ResponseInterceptor(settings.max_intercepted_payloads)

    strategies = {
        group: cls(settings, navigation=navigation, classifier=classifier, interceptor=interceptor)
        for group, cls in STRATEGY_REGISTRY.items()
    }
    for strategy in strategies.values():
        strategy.peers = strategies
    return strategies


__all__ = [
    'ExtractionStrategy',
    'ScrapeContext',
    'TemplateCmsStrategy',
    'ComponentFrameworkStrategy',
    'CustomRenderedStrategy',
    'AggregatorPortalStrategy',
    'SpecialStrategy',
    'STRATEGY_REGISTRY',
    'build_strategies',
]
