"""
Background response capture for script-rendered sites.

Many component-framework sites fetch their listings via background JSON
calls after first paint. ResponseInterceptor subscribes to a page's
responses, keeps the ones that look like listing APIs in a bounded,
dealer-scoped buffer, and maps their items to candidates.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set
from urllib.parse import urljoin

from .base import SiteProfile, VehicleListingCandidate, ExtractionSource
from .crawlers.page import PageHandle

logger = logging.getLogger(__name__)


# Ordered candidate keys per target attribute; first present, non-null wins
FIELD_FALLBACKS: Dict[str, List[str]] = {
    'title': ['title', 'name', 'model', 'description', 'vehicleName'],
    'price': ['price', 'cost', 'amount', 'value', 'priceAmount'],
    'year': ['year', 'modelYear', 'fabricationYear'],
    'mileage': ['mileage', 'km', 'kilometers', 'odometer'],
    'brand': ['brand', 'make', 'manufacturer'],
    'model': ['model', 'modelName'],
    'location': ['location', 'city', 'region'],
    'image': ['image', 'imageUrl', 'photo', 'picture', 'thumbnail'],
    'url': ['url', 'link', 'permalink', 'detailUrl', 'href'],
}

API_KEYWORDS = ('vehicle', 'car', 'product', 'search')

# Envelope keys holding the listing array
ENVELOPE_KEYS = ('results', 'data')


def pick(item: Dict[str, Any], attribute: str) -> Any:
    """First present, non-null value among the attribute's fallback keys."""
    for key in FIELD_FALLBACKS[attribute]:
        value = item.get(key)
        if value is not None and value != '':
            return value
    return None


def unwrap_listing_array(payload: Any) -> List[Any]:
    """
    Listing array from a payload.

    Accepted shapes: a bare array, {"results": [...]} and {"data": [...]}.
    Anything else yields an empty list.
    """
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ENVELOPE_KEYS:
            value = payload.get(key)
            if isinstance(value, list):
                return value
    return []


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else f"{value:.2f}"
    if isinstance(value, (int, str)):
        text = str(value).strip()
        return text or None
    if isinstance(value, dict):
        # {"amount": 123, "currency": "USD"} / {"name": "Córdoba"}
        for key in ('amount', 'value', 'name', 'label', 'url', 'src'):
            if key in value:
                inner = _as_text(value[key])
                currency = value.get('currency')
                if inner and key in ('amount', 'value') and isinstance(currency, str):
                    return f"{currency} {inner}"
                return inner
    if isinstance(value, list) and value:
        return _as_text(value[0])
    return None


def map_item_to_candidate(
    item: Any,
    dealer_name: str,
    base_url: str = '',
    position: int = 0,
) -> Optional[VehicleListingCandidate]:
    """
    Map one API item to a candidate, or None when it has no title.
    """
    if not isinstance(item, dict):
        return None

    title = _as_text(pick(item, 'title'))
    if not title:
        return None

    brand = _as_text(pick(item, 'brand'))
    if brand and brand.lower() not in title.lower():
        title = f"{brand} {title}"

    details = []
    year = _as_text(pick(item, 'year'))
    if year:
        details.append(year)
    mileage = _as_text(pick(item, 'mileage'))
    if mileage:
        details.append(mileage if 'km' in mileage.lower() else f"{mileage} km")
    model = _as_text(pick(item, 'model'))
    if model and model.lower() not in title.lower():
        details.append(model)
    location = _as_text(pick(item, 'location'))
    if location:
        details.append(location)

    url = _as_text(pick(item, 'url'))
    image = _as_text(pick(item, 'image'))

    return VehicleListingCandidate(
        dealer_name=dealer_name,
        source_url=urljoin(base_url, url) if url else None,
        raw_title=title,
        raw_price_text=_as_text(pick(item, 'price')),
        raw_details_text=' · '.join(details) or None,
        image_url=urljoin(base_url, image) if image else None,
        extraction_source=ExtractionSource.INTERCEPTED_API,
        position=position,
        location=location,
    )


@dataclass
class InterceptedPayload:
    url: str
    data: Any
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class CapturedPayloads:
    """
    Bounded buffer of captured payloads for one dealer's page.

    Populated as a side effect while the page loads; detach() removes the
    subscription and drops pending captures.
    """

    def __init__(self, handle: PageHandle, profile: SiteProfile, interceptor: 'ResponseInterceptor'):
        self._handle = handle
        self._profile = profile
        self._interceptor = interceptor
        self._payloads: List[InterceptedPayload] = []
        self._tasks: Set[asyncio.Future] = set()
        self._detached = False
        self.dropped = 0

    def __len__(self) -> int:
        return len(self._payloads)

    def __iter__(self):
        return iter(list(self._payloads))

    @property
    def full(self) -> bool:
        return len(self._payloads) + len(self._tasks) >= self._interceptor.max_payloads

    def _on_response(self, response):
        if self._detached or not self._interceptor.matches(response.url, self._profile):
            return
        if self.full:
            self.dropped += 1
            return
        task = asyncio.ensure_future(self._capture(response))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _capture(self, response):
        try:
            data = await response.json()
        except Exception as e:
            # Non-JSON or unreadable bodies are expected noise
            logger.debug(f"Ignoring unparseable response {response.url}: {e}")
            return
        if self._detached or len(self._payloads) >= self._interceptor.max_payloads:
            return
        logger.debug(f"Captured API response: {response.url}")
        self._payloads.append(InterceptedPayload(url=response.url, data=data))

    async def drain(self, timeout: float = 5.0):
        """Wait (bounded) for in-flight captures to finish."""
        pending = [t for t in self._tasks if not t.done()]
        if pending:
            await asyncio.wait(pending, timeout=timeout)

    def detach(self):
        if self._detached:
            return
        self._detached = True
        self._handle.remove_response_listener(self._on_response)
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()

    def items(self) -> List[Any]:
        """Every listing item across captured payloads, in capture order."""
        result = []
        for payload in self._payloads:
            result.extend(unwrap_listing_array(payload.data))
        return result

    def candidates(self, dealer_name: str, base_url: str = '') -> List[VehicleListingCandidate]:
        candidates = []
        for item in self.items():
            candidate = map_item_to_candidate(item, dealer_name, base_url, position=len(candidates))
            if candidate is not None:
                candidates.append(candidate)
        return candidates


class ResponseInterceptor:
    """Decides which responses are listing APIs and attaches capture buffers."""

    def __init__(self, max_payloads: int = 50):
        self.max_payloads = max_payloads

    def matches(self, url: str, profile: Optional[SiteProfile] = None) -> bool:
        """
        A response is a listing API when its URL contains one of the
        profile's endpoint fragments, or "/api/" plus a vehicle keyword.
        """
        if not url:
            return False
        if profile is not None and any(fragment in url for fragment in profile.api_endpoints):
            return True
        lowered = url.lower()
        return '/api/' in lowered and any(keyword in lowered for keyword in API_KEYWORDS)

    def attach(self, handle: PageHandle, profile: SiteProfile) -> CapturedPayloads:
        captured = CapturedPayloads(handle, profile, self)
        handle.add_response_listener(captured._on_response)
        return captured
