"""
Tests for the static HTTP crawler, served by httpx.MockTransport.
"""

import asyncio

import httpx
import pytest

from dealer_scrapers.base import TechnologyGroup
from dealer_scrapers.crawlers import NavigationError, StaticCrawler
from dealer_scrapers.dealers import DealerConfig, GroupConfig, RunConfig
from dealer_scrapers.manager import Orchestrator

from conftest import woo_item, woo_page

LISTING = woo_page([woo_item(1, 'Volkswagen Gol Trend 2016', '$ 8.900.000')])


def handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == '/usados/':
        return httpx.Response(200, html=LISTING)
    if request.url.path == '/viejo/':
        return httpx.Response(301, headers={'Location': 'https://dealer-a.test/usados/'})
    if request.url.path == '/lento/':
        raise httpx.ReadTimeout("timed out", request=request)
    if request.url.path == '/caido/':
        raise httpx.ConnectError("connection refused", request=request)
    return httpx.Response(404, text='not found')


def crawler():
    return StaticCrawler(rate_limit=0, max_retries=1, transport=httpx.MockTransport(handler))


def load(url):
    async def run():
        async with crawler().session() as session:
            page = await session.new_page()
            try:
                settled = await page.goto(url, timeout=5)
                return settled, page.url, await page.content()
            finally:
                await page.close()

    return asyncio.run(run())


class TestStaticPage:

    def test_fetches_html(self):
        settled, url, html = load('https://dealer-a.test/usados/')
        assert settled
        assert url == 'https://dealer-a.test/usados/'
        assert 'Volkswagen Gol Trend' in html

    def test_follows_redirects(self):
        _, url, html = load('https://dealer-a.test/viejo/')
        assert url == 'https://dealer-a.test/usados/'
        assert 'Volkswagen' in html

    def test_http_error_raises(self):
        with pytest.raises(NavigationError, match='HTTP 404'):
            load('https://dealer-a.test/nada/')

    def test_transport_failure_raises(self):
        with pytest.raises(NavigationError, match='connection refused'):
            load('https://dealer-a.test/caido/')

    def test_timeout_is_unsettled(self):
        settled, _, html = load('https://dealer-a.test/lento/')
        assert not settled
        assert html == ''

    def test_browser_only_actions_are_noops(self):
        async def run():
            async with crawler().session() as session:
                page = await session.new_page()
                await page.goto('https://dealer-a.test/usados/', timeout=5)
                return await page.click('.load-more'), await page.fill('input', 'x')

        assert asyncio.run(run()) == (False, False)


class TestStaticGroupRun:
    """A whole group run over plain HTTP."""

    def test_template_dealer_over_http(self, fast_settings, test_registry):
        orch = Orchestrator(registry=test_registry, settings=fast_settings, crawler_factory=lambda group: crawler())
        config = RunConfig(groups=[GroupConfig(
            group=TechnologyGroup.TEMPLATE_CMS,
            priority=1,
            dealers=[
                DealerConfig(id='a', name='Dealer A', base_url='https://dealer-a.test', listing_path='/usados/'),
                DealerConfig(id='b', name='Dealer B', base_url='https://dealer-b.test', listing_path='/cerrado/'),
            ],
        )])

        summary = asyncio.run(orch.run(config))

        assert summary.total_records == 1
        assert summary.failed_dealers == 1
        record = orch.all_records()[0]
        assert record.brand == 'Volkswagen'
        assert record.source_url == 'https://dealer-a.test/auto/1/'
