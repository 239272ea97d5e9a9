"""
Core data structures for the dealer scraping engine.

This module defines the site profile, the raw and normalized listing
records, and the per-dealer / per-group / per-run result containers
shared by every strategy and by the orchestrator.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from types import MappingProxyType
from typing import List, Dict, Optional, Any, Mapping, Tuple
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

# ANSI color codes for terminal output
class Colors:
    """ANSI color codes for colorized logging."""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'

    # Colors
    GREEN = '\033[92m'
    YELLOW = '\033[93m'
    RED = '\033[91m'
    BLUE = '\033[94m'
    CYAN = '\033[96m'
    GRAY = '\033[90m'

    @staticmethod
    def green(text):
        return f"{Colors.GREEN}{text}{Colors.RESET}"

    @staticmethod
    def yellow(text):
        return f"{Colors.YELLOW}{text}{Colors.RESET}"

    @staticmethod
    def red(text):
        return f"{Colors.RED}{text}{Colors.RESET}"

    @staticmethod
    def blue(text):
        return f"{Colors.BLUE}{text}{Colors.RESET}"

    @staticmethod
    def cyan(text):
        return f"{Colors.CYAN}{text}{Colors.RESET}"

    @staticmethod
    def gray(text):
        return f"{Colors.GRAY}{text}{Colors.RESET}"

    @staticmethod
    def bold(text):
        return f"{Colors.BOLD}{text}{Colors.RESET}"


class TechnologyGroup(Enum):
    """How a target site is built; decides which extraction heuristics apply."""
    TEMPLATE_CMS = "template-cms"                 # WordPress / WooCommerce / Elementor / Divi
    COMPONENT_FRAMEWORK = "component-framework"   # React / Next.js / Vue, hydrated client-side
    CUSTOM_RENDERED = "custom-rendered"           # bespoke server-rendered HTML (PHP etc.)
    AGGREGATOR_PORTAL = "aggregator-portal"       # multi-dealer portals and marketplaces
    SPECIAL = "special"                           # social storefronts, hybrid sites, unknown


# Fixed classification / execution priority
GROUP_PRIORITY: Tuple[TechnologyGroup, ...] = (
    TechnologyGroup.COMPONENT_FRAMEWORK,
    TechnologyGroup.TEMPLATE_CMS,
    TechnologyGroup.CUSTOM_RENDERED,
    TechnologyGroup.AGGREGATOR_PORTAL,
    TechnologyGroup.SPECIAL,
)


class ExtractionSource(Enum):
    """Where a candidate was read from."""
    DOM = "dom"
    INTERCEPTED_API = "intercepted-api"


class ErrorScope(Enum):
    """Scope of a run error."""
    DEALER = "dealer"
    GROUP = "group"
    FATAL = "fatal"


@dataclass(frozen=True)
class FeatureFlags:
    """Behaviour switches for a site."""
    has_infinite_scroll: bool = False
    requires_response_intercept: bool = False
    has_pagination: bool = False
    has_lazy_images: bool = False


@dataclass(frozen=True)
class SiteProfile:
    """
    Static description of one target site.

    Selector hints are advisory CSS selectors keyed by role
    (container, item, title, price, image, link, details, search_form,
    search_input, next_page). Strategies try them before their own
    group defaults.
    """
    domain: str
    technology_group: TechnologyGroup
    name: Optional[str] = None
    selector_hints: Mapping[str, str] = field(default_factory=dict)
    feature_flags: FeatureFlags = field(default_factory=FeatureFlags)
    api_endpoints: Tuple[str, ...] = ()
    listing_path: Optional[str] = None
    verified: bool = True

    def __post_init__(self):
        # Freeze the hint mapping so a loaded profile cannot be edited in place
        object.__setattr__(self, 'selector_hints', MappingProxyType(dict(self.selector_hints)))
        object.__setattr__(self, 'api_endpoints', tuple(self.api_endpoints))

    def hint(self, role: str) -> Optional[str]:
        return self.selector_hints.get(role)


@dataclass
class VehicleListingCandidate:
    """One scraped item before normalization."""
    dealer_name: str
    source_url: Optional[str]
    raw_title: str
    raw_price_text: Optional[str] = None
    raw_details_text: Optional[str] = None
    image_url: Optional[str] = None
    extraction_source: ExtractionSource = ExtractionSource.DOM
    discovered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    position: int = 0                       # order of discovery within the dealer
    location: Optional[str] = None

    @property
    def has_title(self) -> bool:
        return bool(self.raw_title and self.raw_title.strip())

    @property
    def dedup_key(self) -> str:
        """
        Identity of the listing.

        The detail URL when known; otherwise dealer + title + position,
        which is best-effort and not guaranteed unique across pages.
        """
        if self.source_url:
            return self.source_url
        return f"{self.dealer_name}|{(self.raw_title or '').strip()}|{self.position}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'dealer_name': self.dealer_name,
            'source_url': self.source_url,
            'raw_title': self.raw_title,
            'raw_price_text': self.raw_price_text,
            'raw_details_text': self.raw_details_text,
            'image_url': self.image_url,
            'extraction_source': self.extraction_source.value,
            'discovered_at': self.discovered_at.isoformat(),
            'location': self.location,
        }


@dataclass(frozen=True)
class NormalizedVehicleRecord:
    """Normalized listing derived from exactly one candidate."""
    title: str
    candidate: VehicleListingCandidate
    price_amount: Optional[float] = None
    price_currency_guess: Optional[str] = None
    price_text: Optional[str] = None
    year: Optional[int] = None
    mileage_km: Optional[int] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    age_years: Optional[int] = None
    price_per_km: Optional[float] = None

    @property
    def dealer_name(self) -> str:
        return self.candidate.dealer_name

    @property
    def source_url(self) -> Optional[str]:
        return self.candidate.source_url

    def to_dict(self) -> Dict[str, Any]:
        return {
            'title': self.title,
            'price_amount': self.price_amount,
            'price_currency_guess': self.price_currency_guess,
            'price_text': self.price_text,
            'year': self.year,
            'mileage_km': self.mileage_km,
            'brand': self.brand,
            'model': self.model,
            'age_years': self.age_years,
            'price_per_km': self.price_per_km,
            'source_url': self.candidate.source_url,
            'image_url': self.candidate.image_url,
            'location': self.candidate.location,
            'extraction_source': self.candidate.extraction_source.value,
            'discovered_at': self.candidate.discovered_at.isoformat(),
        }


@dataclass
class DealershipScrapeResult:
    """Outcome of scraping one dealer in one run."""
    dealer_name: str
    source_url: str
    technology_group: TechnologyGroup
    dealer_id: Optional[str] = None
    records: List[NormalizedVehicleRecord] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    candidates_found: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return not self.errors

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at and self.started_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> Dict:
        return {
            'dealer_id': self.dealer_id,
            'dealer_name': self.dealer_name,
            'source_url': self.source_url,
            'technology_group': self.technology_group.value,
            'started_at': self.started_at.isoformat(),
            'completed_at': self.completed_at.isoformat() if self.completed_at else None,
            'duration_seconds': self.duration_seconds,
            'candidates_found': self.candidates_found,
            'count': len(self.records),
            'success': self.success,
            'errors': list(self.errors),
            'records': [r.to_dict() for r in self.records],
        }


@dataclass(frozen=True)
class GroupSummary:
    """Aggregate counts for one technology group."""
    group: TechnologyGroup
    dealers_attempted: int = 0
    dealers_succeeded: int = 0
    dealers_failed: int = 0
    dealers_empty: int = 0
    total_records: int = 0

    @property
    def avg_records_per_dealer(self) -> float:
        if self.dealers_attempted == 0:
            return 0.0
        return round(self.total_records / self.dealers_attempted, 2)

    @classmethod
    def from_results(cls, group: TechnologyGroup, results: List[DealershipScrapeResult]) -> 'GroupSummary':
        succeeded = [r for r in results if r.success]
        return cls(
            group=group,
            dealers_attempted=len(results),
            dealers_succeeded=len(succeeded),
            dealers_failed=len(results) - len(succeeded),
            dealers_empty=sum(1 for r in succeeded if not r.records),
            total_records=sum(len(r.records) for r in results),
        )

    def to_dict(self) -> Dict:
        data = asdict(self)
        data['group'] = self.group.value
        data['avg_records_per_dealer'] = self.avg_records_per_dealer
        return data


@dataclass(frozen=True)
class RunError:
    """One typed entry of the run error log."""
    scope: ErrorScope
    message: str
    group: Optional[TechnologyGroup] = None
    dealer: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict:
        return {
            'type': self.scope.value,
            'group': self.group.value if self.group else None,
            'dealer': self.dealer,
            'message': self.message,
            'timestamp': self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class RunSummary:
    """Top-level aggregate of one run. Built once, at the end of the run."""
    started_at: datetime
    completed_at: datetime
    total_dealers: int
    total_records: int
    successful_dealers: int
    failed_dealers: int
    group_summaries: Mapping[TechnologyGroup, GroupSummary]
    errors: Tuple[RunError, ...] = ()
    cancelled: bool = False
    aborted: bool = False

    def __post_init__(self):
        object.__setattr__(self, 'group_summaries', MappingProxyType(dict(self.group_summaries)))
        object.__setattr__(self, 'errors', tuple(self.errors))

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    @property
    def success_rate(self) -> float:
        if not self.total_dealers:
            return 0.0
        return round(self.successful_dealers / self.total_dealers * 100, 2)

    def errors_of(self, scope: ErrorScope) -> List[RunError]:
        return [e for e in self.errors if e.scope == scope]

    def to_dict(self) -> Dict:
        return {
            'started_at': self.started_at.isoformat(),
            'completed_at': self.completed_at.isoformat(),
            'duration_seconds': self.duration_seconds,
            'total_dealers': self.total_dealers,
            'total_records': self.total_records,
            'successful_dealers': self.successful_dealers,
            'failed_dealers': self.failed_dealers,
            'success_rate': self.success_rate,
            'cancelled': self.cancelled,
            'aborted': self.aborted,
            'group_summaries': {g.value: s.to_dict() for g, s in self.group_summaries.items()},
            'errors': [e.to_dict() for e in self.errors],
        }
