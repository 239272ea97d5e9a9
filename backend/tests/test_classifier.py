"""
Tests for page technology classification.
"""

import asyncio

from bs4 import BeautifulSoup

from dealer_scrapers.base import TechnologyGroup
from dealer_scrapers.classifier import SiteClassifier, is_hydrated

from conftest import FakePage


WORDPRESS = '<html><head><link href="/wp-content/themes/astra/style.css"></head><body><ul class="products"></ul></body></html>'
NEXT_APP = '<html><body><div id="__next"><div class="grid"></div></div><script id="__NEXT_DATA__">{}</script></body></html>'
PORTAL = '<html><body><div class="filters"></div><div class="listing"><span class="dealer-name">Autos SA</span></div></body></html>'


class TestClassifyHtml:
    """Test the priority-ordered probes."""

    def setup_method(self):
        self.classifier = SiteClassifier()

    def test_wordpress(self):
        result = self.classifier.classify_html(WORDPRESS)
        assert result.group == TechnologyGroup.TEMPLATE_CMS
        assert 'wp_content' in result.matched

    def test_component_framework(self):
        result = self.classifier.classify_html(NEXT_APP)
        assert result.group == TechnologyGroup.COMPONENT_FRAMEWORK
        assert {'framework_root', 'next_data'} <= set(result.matched)

    def test_component_wins_over_template(self):
        html = '<div id="root"><p>x</p></div><img src="/wp-content/uploads/a.jpg">'
        assert self.classifier.classify_html(html).group == TechnologyGroup.COMPONENT_FRAMEWORK

    def test_php_url(self):
        result = self.classifier.classify_html('<div>usados</div>', 'https://dealer.test/usados.php?page=2')
        assert result.group == TechnologyGroup.CUSTOM_RENDERED

    def test_table_layout(self):
        html = '<table></table>' * 3
        assert self.classifier.classify_html(html).group == TechnologyGroup.CUSTOM_RENDERED

    def test_aggregator(self):
        assert self.classifier.classify_html(PORTAL).group == TechnologyGroup.AGGREGATOR_PORTAL

    def test_weak_signals_alone_are_special(self):
        html = '<script src="/js/jquery.min.js"></script><form method="get"></form>'
        result = self.classifier.classify_html(html)

        assert result.group == TechnologyGroup.SPECIAL
        assert 'jquery' in result.matched

    def test_empty_page(self):
        assert self.classifier.classify_html('').group == TechnologyGroup.SPECIAL


class TestClassifyPage:

    def test_classify_loaded_page(self):
        page = FakePage(pages={'https://d.test/': WORDPRESS})

        async def run():
            await page.goto('https://d.test/', timeout=1)
            return await SiteClassifier().classify(page)

        assert asyncio.run(run()).group == TechnologyGroup.TEMPLATE_CMS

    def test_failure_degrades_to_special(self):
        class BrokenPage(FakePage):
            async def content(self):
                raise RuntimeError("Target page, context or browser has been closed")

        result = asyncio.run(SiteClassifier().classify(BrokenPage()))
        assert result.group == TechnologyGroup.SPECIAL


class TestHydration:

    def test_empty_root_not_hydrated(self):
        assert not is_hydrated(BeautifulSoup('<div id="root"></div>', 'html.parser'))

    def test_populated_root_hydrated(self):
        assert is_hydrated(BeautifulSoup('<div id="root"><main></main></div>', 'html.parser'))

    def test_no_root_counts_as_hydrated(self):
        assert is_hydrated(BeautifulSoup('<div class="x"></div>', 'html.parser'))
