"""
Custom server-rendered sites (PHP and other bespoke HTML).

Content is complete at initial load; markup differs per dealer, so a wide
set of container and item selectors is probed, table layouts included.
"""

from ..base import TechnologyGroup
from .base import ExtractionStrategy


class CustomRenderedStrategy(ExtractionStrategy):
    group = TechnologyGroup.CUSTOM_RENDERED

    DEFAULT_SELECTORS = {
        'container': [
            '.vehicles',
            '.cars',
            '.autos',
            '.vehiculos',
            '.usados',
            '.productos',
            '.products',
            '.listings',
            '#vehicles',
            '#cars',
            '.content',
            '.main',
            '#content',
        ],
        'item': [
            '.vehicle',
            '.vehiculo',
            '.car',
            '.auto',
            '.producto',
            '.product',
            '.listing',
            '.item',
            'tr',
            '.row',
        ],
        'title': [
            '.title',
            '.titulo',
            '.name',
            '.model',
            '.car-title',
            '.vehicle-title',
            'h1', 'h2', 'h3', 'h4',
        ],
        'price': [
            '.price',
            '.precio',
            '.cost',
            '.value',
            '.amount',
        ],
        'image': [
            'img[src*="car"]',
            'img[src*="auto"]',
            'img[src*="vehicle"]',
            'img[alt*="car"]',
            'img[alt*="auto"]',
            'img',
        ],
        'link': [
            'a[href*="vehicle"]',
            'a[href*="vehiculo"]',
            'a[href*="car"]',
            'a[href*="auto"]',
            'a[href*="detail"]',
            'a[href*="ver"]',
        ],
        'details': [
            '.specs',
            '.caracteristicas',
            '.details',
            '.detalles',
        ],
    }
