"""
Site profiles for the known dealership and marketplace sources.

Each site has a SiteProfile that defines:
- Technology group (decides which extraction strategy runs)
- Advisory selector hints for container/item/title/price/image/link
- Feature flags (infinite scroll, response interception, pagination, lazy images)
- Background API endpoint fragments worth intercepting
"""

import logging
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional
from urllib.parse import urlsplit

from .base import SiteProfile, TechnologyGroup, FeatureFlags

logger = logging.getLogger(__name__)


# ============================================================
# GENERIC PROFILE
# Used for any dealer without a registered entry
# ============================================================
GENERIC_SELECTOR_HINTS = {
    'container': '.vehicles, .cars, .inventory, .products, .listings, .results',
    'item': '.vehicle, .car, .product, .item, .listing, article',
    'title': 'h1, h2, h3, .title, .name',
    'price': '.price, .precio, [class*="price"]',
    'image': 'img',
    'link': 'a',
}


def generic_profile(domain: str = '') -> SiteProfile:
    """Broad fallback profile: common selectors, every feature flag off, unverified."""
    return SiteProfile(
        domain=domain,
        technology_group=TechnologyGroup.SPECIAL,
        name=None,
        selector_hints=GENERIC_SELECTOR_HINTS,
        feature_flags=FeatureFlags(),
        verified=False,
    )


# ============================================================
# SITE PROFILES
# ============================================================

SITES: Dict[str, SiteProfile] = {
    # ========== TEMPLATE CMS (WordPress / WooCommerce / Elementor / Divi) ==========

    'loxautos.com.ar': SiteProfile(
        domain='loxautos.com.ar',
        name='LOX Autos',
        technology_group=TechnologyGroup.TEMPLATE_CMS,
        listing_path='/vehiculos/',
        selector_hints={
            'container': '.elementor-loop-container',
            'item': '.e-loop-item',
            'title': '.elementor-heading-title',
            'price': '.elementor-widget-container .price',
            'image': 'img[data-src]',
            'link': 'a.elementor-post__thumbnail__link',
        },
        feature_flags=FeatureFlags(has_lazy_images=True),
    ),

    'cenoa.com.ar': SiteProfile(
        domain='cenoa.com.ar',
        name='Cenoa Usados',
        technology_group=TechnologyGroup.TEMPLATE_CMS,
        listing_path='/',
        selector_hints={
            'container': '.elementor-posts-container',
            'item': 'article.elementor-post',
            'title': '.elementor-post__title',
            'price': '.elementor-post__price, .elementor-price',
            'image': '.elementor-post__thumbnail img',
        },
    ),

    'fortunatofortino.com': SiteProfile(
        domain='fortunatofortino.com',
        name='Fortunato Fortino',
        technology_group=TechnologyGroup.TEMPLATE_CMS,
        listing_path='/vehiculos-usados/',
        selector_hints={
            'container': '.products',
            'item': '.product',
            'title': '.woocommerce-loop-product__title',
            'price': '.price',
        },
    ),

    'chevroletdycar.com.ar': SiteProfile(
        domain='chevroletdycar.com.ar',
        name='Dycar Chevrolet',
        technology_group=TechnologyGroup.TEMPLATE_CMS,
        listing_path='/usados/',
        selector_hints={
            'container': '.et_pb_shop',
            'item': '.et_pb_shop_item',
            'title': '.entry-title',
            'price': '.et_pb_module_header',
        },
    ),

    # ========== COMPONENT FRAMEWORK (React / Next.js) ==========

    'kavak.com': SiteProfile(
        domain='kavak.com',
        name='Kavak',
        technology_group=TechnologyGroup.COMPONENT_FRAMEWORK,
        listing_path='/ar/catalog-ui/',
        api_endpoints=('/catalog-ui/api/search', '/catalog-ui/api/vehicles'),
        selector_hints={
            'container': '[class*="results"], [class*="catalog"]',
            'item': '[class*="card-product"]',
            'title': '[class*="card-product__title"], [class*="title"]',
            'price': '[class*="card-product__price"], [class*="price"]',
            'image': '[class*="card-product__image"] img, [class*="image"] img',
        },
        feature_flags=FeatureFlags(has_infinite_scroll=True, requires_response_intercept=True),
    ),

    'carcash.com.ar': SiteProfile(
        domain='carcash.com.ar',
        name='Car Cash',
        technology_group=TechnologyGroup.COMPONENT_FRAMEWORK,
        listing_path='/autos/',
        selector_hints={
            'container': '[class*="vehicles"], [class*="grid"]',
            'item': '[class*="vehicle-card"], [class*="card"]',
            'title': '[class*="vehicle-title"], h3',
            'price': '[class*="price"]',
        },
        feature_flags=FeatureFlags(has_lazy_images=True),
    ),

    'tiendacars.com': SiteProfile(
        domain='tiendacars.com',
        name='Tienda Cars',
        technology_group=TechnologyGroup.COMPONENT_FRAMEWORK,
        listing_path='/vehiculos/',
        selector_hints={
            'container': '[class*="catalog"], [class*="grid"]',
            'item': '[class*="product"], [class*="car-item"]',
            'title': '[class*="car-title"], h2',
            'price': '[class*="price"]',
        },
    ),

    'carone.com.ar': SiteProfile(
        domain='carone.com.ar',
        name='Car One',
        technology_group=TechnologyGroup.COMPONENT_FRAMEWORK,
        listing_path='/usados/',
        selector_hints={
            'container': '[class*="vehicles"], [class*="listing"]',
            'item': '[class*="vehicle"], [class*="item"]',
            'title': 'h3, h4',
            'price': '[class*="price"]',
        },
    ),

    # ========== CUSTOM RENDERED (PHP / bespoke HTML) ==========

    'lineup.com.ar': SiteProfile(
        domain='lineup.com.ar',
        name='Toyota Line Up Usados',
        technology_group=TechnologyGroup.CUSTOM_RENDERED,
        listing_path='/usados',
        selector_hints={
            'container': '.vehicles, .usados',
            'item': '.vehicle-item, .auto',
            'title': '.vehicle-title, h3',
            'price': '.price, .precio',
        },
        feature_flags=FeatureFlags(has_pagination=True),
    ),

    'autosol.com.ar': SiteProfile(
        domain='autosol.com.ar',
        name='Autosol Salta/Jujuy',
        technology_group=TechnologyGroup.CUSTOM_RENDERED,
        listing_path='/usados',
        selector_hints={
            'container': '.vehicles, .productos',
            'item': '.vehicle, .producto',
            'title': 'h2, h3',
            'price': '.precio',
        },
        feature_flags=FeatureFlags(has_pagination=True),
    ),

    'fordpussetto.com.ar': SiteProfile(
        domain='fordpussetto.com.ar',
        name='Ford Pussetto',
        technology_group=TechnologyGroup.CUSTOM_RENDERED,
        listing_path='/vehiculos/usados',
        selector_hints={
            'container': '.vehiculos, .usados',
            'item': '.vehiculo',
            'title': '.titulo, h2',
            'price': '.precio',
        },
        feature_flags=FeatureFlags(has_pagination=True),
    ),

    'armandoautomotores.com.ar': SiteProfile(
        domain='armandoautomotores.com.ar',
        name='Armando Automotores',
        technology_group=TechnologyGroup.CUSTOM_RENDERED,
        listing_path='/vehiculos/',
        selector_hints={
            'container': '.vehiculos, table',
            'item': '.vehiculo, tr',
            'title': '.titulo, td',
            'price': '.precio, td',
        },
    ),

    'montironi.com': SiteProfile(
        domain='montironi.com',
        name='Montironi',
        technology_group=TechnologyGroup.CUSTOM_RENDERED,
        listing_path='/usados/',
        selector_hints={
            'container': '.vehicle-list, .inventory, .usados',
            'item': '.vehicle, .car-item, .usado',
            'title': 'h3, .title, .usado-title',
            'price': '.price, .usado-price',
            'details': '.specs',
        },
    ),

    # ========== AGGREGATOR PORTALS ==========

    'zonaauto.com.ar': SiteProfile(
        domain='zonaauto.com.ar',
        name='Zona Auto',
        technology_group=TechnologyGroup.AGGREGATOR_PORTAL,
        listing_path='/autos-usados/',
        api_endpoints=('/api/search', '/api/vehicles'),
        selector_hints={
            'search_form': '#search-form',
            'container': '.results-container, .search-results, .vehicles-grid',
            'item': '.listing-item, .vehicle-item, .auto-card',
            'title': '.vehicle-title, h3',
            'price': '.price, .precio',
            'next_page': '.pagination .next',
        },
        feature_flags=FeatureFlags(has_pagination=True, requires_response_intercept=True),
    ),

    'autocosmos.com.ar': SiteProfile(
        domain='autocosmos.com.ar',
        name='Autocosmos',
        technology_group=TechnologyGroup.AGGREGATOR_PORTAL,
        listing_path='/auto/usado',
        api_endpoints=('/clasificados/api/search',),
        selector_hints={
            'container': '.results-container, .clasificados',
            'item': '.clasificado-item, .result-item',
            'title': '.clasificado-title, .auto-title',
            'price': '.clasificado-price, .price',
            'details': '.location, .ubicacion',
        },
        feature_flags=FeatureFlags(has_pagination=True, requires_response_intercept=True),
    ),

    'deruedas.com.ar': SiteProfile(
        domain='deruedas.com.ar',
        name='DeRuedas',
        technology_group=TechnologyGroup.AGGREGATOR_PORTAL,
        listing_path='/autos/',
        selector_hints={
            'container': '.results, .autos-grid',
            'item': '.auto-item, .vehicle-card',
            'title': '.auto-title, h2',
            'price': '.auto-price, .price',
            'details': '.auto-specs, .specifications',
        },
        feature_flags=FeatureFlags(has_pagination=True),
    ),

    # ========== SPECIAL (hybrid systems, social storefronts) ==========

    'gruporandazzo.com': SiteProfile(
        domain='gruporandazzo.com',
        name='Grupo Randazzo',
        technology_group=TechnologyGroup.SPECIAL,
        listing_path='/vehiculos/',
        selector_hints={
            'container': '.swiper-container, .vehicle-grid',
            'item': '.swiper-slide, .vehicle-item',
            'title': 'h3, .vehicle-title',
            'price': '.price, [class*="precio"]',
            'image': 'img',
        },
    ),

    'autocity.com.ar': SiteProfile(
        domain='autocity.com.ar',
        name='Autocity',
        technology_group=TechnologyGroup.SPECIAL,
        listing_path='/catalogo/usados/',
        selector_hints={
            'container': '.catalog-container, .results',
            'item': '.vehicle-card, .product-item',
            'title': '.vehicle-name, h3',
            'price': '.vehicle-price',
            'details': '.vehicle-specs',
        },
    ),

    'avec.com.ar': SiteProfile(
        domain='avec.com.ar',
        name='AVEC',
        technology_group=TechnologyGroup.SPECIAL,
        listing_path='/vehiculos/',
        selector_hints={
            'container': '.vehicles-container',
            'item': '.vehicle-item',
            'title': '.vehicle-model',
            'price': '.vehicle-price',
            'image': '.vehicle-image img',
        },
    ),
}


# ============================================================
# REGISTRY
# ============================================================

def normalize_domain(domain_or_url: str) -> str:
    """Reduce a URL or host to a bare lowercase domain (no scheme, www., port or path)."""
    value = (domain_or_url or '').strip().lower()
    if not value:
        return ''
    if '://' not in value:
        value = f"//{value}"
    try:
        host = urlsplit(value).hostname or ''
    except ValueError:
        # Malformed netloc (e.g. unbalanced IPv6 brackets)
        return ''
    if host.startswith('www.'):
        host = host[4:]
    return host


class SiteProfileRegistry:
    """
    Read-only lookup from a domain (or any URL on it) to its SiteProfile.

    Built once at startup and shared by reference; nothing mutates it
    during a run.
    """

    def __init__(self, profiles: Optional[Mapping[str, SiteProfile]] = None):
        source = SITES if profiles is None else profiles
        self._profiles = MappingProxyType({normalize_domain(k): v for k, v in source.items()})

    @property
    def profiles(self) -> Mapping[str, SiteProfile]:
        return self._profiles

    def resolve(self, domain_or_url: str) -> SiteProfile:
        """
        Resolve a profile for a domain or URL.

        Exact match first, then substring containment in either
        direction, then the generic profile. Never raises.
        """
        domain = normalize_domain(domain_or_url)
        if not domain:
            return generic_profile()

        profile = self._profiles.get(domain)
        if profile is not None:
            return profile

        for key, profile in self._profiles.items():
            if key in domain or domain in key:
                logger.debug(f"Partial profile match: {domain} -> {key}")
                return profile

        logger.debug(f"No profile for {domain}, using generic profile")
        return generic_profile(domain)

    def __contains__(self, domain_or_url: str) -> bool:
        return normalize_domain(domain_or_url) in self._profiles

    def __len__(self) -> int:
        return len(self._profiles)


# ============================================================
# HELPER FUNCTIONS
# ============================================================

def get_site_profile(domain: str) -> SiteProfile:
    """
    Get the registered profile for a domain.

    Raises:
        ValueError: If the domain is not registered
    """
    key = normalize_domain(domain)
    if key not in SITES:
        valid_keys = ', '.join(sorted(SITES.keys()))
        raise ValueError(f"Unknown site: '{domain}'. Valid sites: {valid_keys}")
    return SITES[key]


def get_sites_by_group(group: TechnologyGroup) -> dict:
    """Get all sites of a specific technology group."""
    return {k: v for k, v in SITES.items() if v.technology_group == group}


def list_sites() -> list:
    """List all registered domains."""
    return list(SITES.keys())


def get_site_summary() -> List[dict]:
    """Get a summary of all sites for display."""
    summary = []
    for key, profile in SITES.items():
        flags = profile.feature_flags
        summary.append({
            'domain': key,
            'name': profile.name,
            'group': profile.technology_group.value,
            'listing_path': profile.listing_path,
            'infinite_scroll': flags.has_infinite_scroll,
            'intercept': flags.requires_response_intercept,
            'pagination': flags.has_pagination,
            'lazy_images': flags.has_lazy_images,
        })
    return summary
