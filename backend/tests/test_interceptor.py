"""
Tests for background response capture and payload mapping.
"""

import asyncio

from dealer_scrapers.base import ExtractionSource, SiteProfile, TechnologyGroup
from dealer_scrapers.interceptor import (
    ResponseInterceptor,
    map_item_to_candidate,
    unwrap_listing_array,
)

from conftest import FakePage, FakeResponse

PROFILE = SiteProfile(
    domain='kavak.test',
    technology_group=TechnologyGroup.COMPONENT_FRAMEWORK,
    api_endpoints=('/catalog-ui/api/search',),
)


class TestMatching:

    def test_profile_endpoint(self):
        assert ResponseInterceptor().matches('https://kavak.test/catalog-ui/api/search?page=2', PROFILE)

    def test_generic_api_keyword(self):
        interceptor = ResponseInterceptor()
        assert interceptor.matches('https://x.test/api/v1/vehicles?limit=20')
        assert not interceptor.matches('https://x.test/api/v1/session')
        assert not interceptor.matches('https://x.test/static/vehicles.js')
        assert not interceptor.matches('')


class TestPayloadMapping:
    """Test the ordered field fallbacks."""

    def test_envelopes(self):
        assert unwrap_listing_array([1, 2]) == [1, 2]
        assert unwrap_listing_array({'results': [1]}) == [1]
        assert unwrap_listing_array({'data': [2]}) == [2]
        assert unwrap_listing_array({'items': [3]}) == []
        assert unwrap_listing_array('nope') == []

    def test_primary_keys(self):
        candidate = map_item_to_candidate(
            {'title': 'Toyota Hilux SRV', 'price': 35000000, 'year': 2021, 'mileage': 40000,
             'url': '/auto/hilux-1', 'image': 'https://cdn.test/h.jpg', 'location': 'Córdoba'},
            'Kavak', base_url='https://kavak.test/ar/',
        )

        assert candidate.raw_title == 'Toyota Hilux SRV'
        assert candidate.raw_price_text == '35000000'
        assert candidate.raw_details_text == '2021 · 40000 km · Córdoba'
        assert candidate.source_url == 'https://kavak.test/auto/hilux-1'
        assert candidate.image_url == 'https://cdn.test/h.jpg'
        assert candidate.location == 'Córdoba'
        assert candidate.extraction_source == ExtractionSource.INTERCEPTED_API

    def test_fallback_keys(self):
        candidate = map_item_to_candidate(
            {'name': 'Cronos Drive', 'make': 'Fiat', 'cost': {'amount': 18000, 'currency': 'USD'},
             'km': '12.000 km', 'city': 'Rosario', 'permalink': 'https://d.test/c/1', 'price': None},
            'Dealer',
        )

        assert candidate.raw_title == 'Fiat Cronos Drive'
        assert candidate.raw_price_text == 'USD 18000'
        assert candidate.raw_details_text == '12.000 km · Rosario'
        assert candidate.source_url == 'https://d.test/c/1'

    def test_items_without_title_skipped(self):
        assert map_item_to_candidate({'price': 100}, 'Dealer') is None
        assert map_item_to_candidate('Toyota', 'Dealer') is None


class TestCapture:
    """Test the dealer-scoped capture buffer."""

    def capture(self, responses, max_payloads=50):
        page = FakePage(responses=responses)
        interceptor = ResponseInterceptor(max_payloads=max_payloads)

        async def run():
            captured = interceptor.attach(page, PROFILE)
            await page.goto('https://kavak.test/ar/', timeout=1)
            await captured.drain(timeout=1)
            return captured

        return page, asyncio.run(run())

    def test_captures_matching_json(self):
        responses = [
            FakeResponse('https://kavak.test/catalog-ui/api/search?page=1', {'results': [{'title': 'Ford Ka'}]}),
            FakeResponse('https://kavak.test/assets/app.js', {'results': [{'title': 'ignored'}]}),
            FakeResponse('https://kavak.test/catalog-ui/api/search?page=2', invalid_json=True),
        ]
        _, captured = self.capture(responses)

        assert len(captured) == 1
        assert [c.raw_title for c in captured.candidates('Kavak', 'https://kavak.test/')] == ['Ford Ka']

    def test_buffer_is_bounded(self):
        responses = [
            FakeResponse(f'https://kavak.test/catalog-ui/api/search?page={i}', [{'title': f'Auto {i}'}])
            for i in range(5)
        ]
        _, captured = self.capture(responses, max_payloads=2)

        assert len(captured) == 2
        assert captured.dropped == 3

    def test_detach_unsubscribes(self):
        page, captured = self.capture([])
        assert page.listeners

        captured.detach()
        assert page.listeners == []
        captured.detach()

    def test_positions_follow_capture_order(self):
        responses = [
            FakeResponse('https://kavak.test/catalog-ui/api/search?page=1', [{'title': 'A'}, {'price': 1}, {'title': 'B'}]),
        ]
        _, captured = self.capture(responses)
        assert [(c.raw_title, c.position) for c in captured.candidates('Kavak')] == [('A', 0), ('B', 1)]
