"""
Runtime technology fingerprinting for loaded pages.

Each technology group has a set of independent boolean probes run against
the page HTML. The first group (in fixed priority order) with a decisive
probe wins; anything unrecognised is "special".
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Tuple
from urllib.parse import urlsplit

from bs4 import BeautifulSoup

from .base import TechnologyGroup, GROUP_PRIORITY
from .crawlers.page import PageHandle
from .utils.extractors import safe_select, safe_select_one

logger = logging.getLogger(__name__)

FRAMEWORK_ROOTS = '#__next, #root, [data-reactroot], #__nuxt'
COMPONENT_LIBRARIES = ('material-ui', 'antd', 'chakra', 'mantine')


@dataclass(frozen=True)
class PageFingerprint:
    """Parsed page plus the raw material every probe needs."""
    soup: BeautifulSoup
    html: str          # lowercased
    url: str

    def has(self, selector: str) -> bool:
        return safe_select_one(self.soup, selector) is not None


Probe = Callable[[PageFingerprint], bool]


def _component_library(fp: PageFingerprint) -> bool:
    return any(lib in fp.html for lib in COMPONENT_LIBRARIES)


# (signal name, probe, decisive). Non-decisive probes are reported but never
# pick a group on their own.
GROUP_PROBES: Dict[TechnologyGroup, List[Tuple[str, Probe, bool]]] = {
    TechnologyGroup.COMPONENT_FRAMEWORK: [
        ('framework_root', lambda fp: fp.has(FRAMEWORK_ROOTS), True),
        ('next_data', lambda fp: fp.has('#__NEXT_DATA__'), True),
        ('component_library', _component_library, True),
    ],
    TechnologyGroup.TEMPLATE_CMS: [
        ('wp_content', lambda fp: 'wp-content' in fp.html, True),
        ('wp_includes', lambda fp: 'wp-includes' in fp.html, True),
        ('wp_generator', lambda fp: fp.has('meta[name="generator"][content*="WordPress" i]'), True),
        ('wp_json', lambda fp: fp.has('link[rel="https://api.w.org/"]'), True),
        ('woocommerce', lambda fp: fp.has('.woocommerce, [class*="woocommerce"]'), True),
        ('elementor', lambda fp: fp.has('.elementor, [data-elementor-type]'), True),
        ('divi', lambda fp: fp.has('[class*="et_pb"]'), True),
    ],
    TechnologyGroup.CUSTOM_RENDERED: [
        ('php_extension', lambda fp: urlsplit(fp.url).path.lower().endswith('.php') or '.php?' in fp.url.lower(), True),
        ('php_session', lambda fp: 'phpsessid' in fp.html, True),
        ('php_source', lambda fp: '<?php' in fp.html, True),
        ('table_layout', lambda fp: len(safe_select(fp.soup, 'table')) > 2, True),
        ('jquery', lambda fp: fp.has('script[src*="jquery" i]'), False),
        ('bootstrap', lambda fp: fp.has('link[href*="bootstrap" i]'), False),
        ('traditional_forms', lambda fp: fp.has('form[method="post" i], form[method="get" i]'), False),
    ],
    TechnologyGroup.AGGREGATOR_PORTAL: [
        ('multiple_dealers', lambda fp: fp.has('.dealer, .concesionario, .seller, .vendedor, .dealer-name'), True),
        ('search_filters', lambda fp: fp.has('.filters, .search-filters, .filtros, select[name*="brand"], select[name*="marca"]'), False),
        ('numbered_pagination', lambda fp: fp.has('.pagination, .pager, .page-nav'), False),
    ],
}


@dataclass(frozen=True)
class Classification:
    group: TechnologyGroup
    signals: Mapping[str, bool] = field(default_factory=dict)

    @property
    def matched(self) -> List[str]:
        return [name for name, hit in self.signals.items() if hit]


def is_hydrated(soup: BeautifulSoup) -> bool:
    """
    True once the framework root has child elements.

    A page without any framework root has nothing to hydrate and counts
    as hydrated.
    """
    roots = safe_select(soup, FRAMEWORK_ROOTS)
    if not roots:
        return True
    return any(root.find(True) is not None for root in roots)


class SiteClassifier:
    """Fingerprints a loaded page into a TechnologyGroup."""

    def classify_html(self, html: str, url: str = '') -> Classification:
        fp = PageFingerprint(soup=BeautifulSoup(html or '', 'html.parser'), html=(html or '').lower(), url=url or '')

        signals: Dict[str, bool] = {}
        winner = None
        for group in GROUP_PRIORITY:
            for name, probe, decisive in GROUP_PROBES.get(group, []):
                hit = bool(probe(fp))
                signals[name] = hit
                if hit and decisive and winner is None:
                    winner = group

        return Classification(group=winner or TechnologyGroup.SPECIAL, signals=signals)

    async def classify(self, handle: PageHandle) -> Classification:
        """Classify a loaded page. Any failure degrades to SPECIAL."""
        try:
            html = await handle.content()
            result = self.classify_html(html, handle.url)
        except Exception as e:
            logger.warning(f"Classification failed for {handle.url}: {e}")
            return Classification(group=TechnologyGroup.SPECIAL)

        logger.debug(f"Classified {handle.url} as {result.group.value} ({', '.join(result.matched) or 'no signals'})")
        return result
