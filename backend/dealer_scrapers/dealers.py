"""
Dealer configuration source.

Describes which dealers to visit in a run, grouped by technology group,
plus the run-wide filters. Loaded from JSON and validated with pydantic,
or taken from the built-in default run configuration.
"""

import json
import logging
import re
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import urljoin

from pydantic import BaseModel, model_validator

from .base import TechnologyGroup, FeatureFlags, SiteProfile
from .filters import FilterConfig

logger = logging.getLogger(__name__)


class FeatureFlagOverrides(BaseModel):
    has_infinite_scroll: Optional[bool] = None
    requires_response_intercept: Optional[bool] = None
    has_pagination: Optional[bool] = None
    has_lazy_images: Optional[bool] = None

    def apply(self, flags: FeatureFlags) -> FeatureFlags:
        values = {k: v for k, v in self.model_dump().items() if v is not None}
        return replace(flags, **values)


class FilterOverrides(BaseModel):
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    year_min: Optional[int] = None
    year_max: Optional[int] = None
    max_per_dealer: Optional[int] = None

    def to_filter_config(self) -> FilterConfig:
        return FilterConfig(**self.model_dump())


class DealerConfig(BaseModel):
    id: str
    name: str
    base_url: str
    listing_path: Optional[str] = None
    group: Optional[TechnologyGroup] = None  # technology group hint
    feature_flags: Optional[FeatureFlagOverrides] = None
    filters: Optional[FilterOverrides] = None
    search_query: Optional[str] = None
    enabled: bool = True

    @property
    def slug(self) -> str:
        return re.sub(r'[^a-z0-9]+', '-', self.id.lower()).strip('-')

    def listing_url(self, profile: Optional[SiteProfile] = None) -> str:
        """Dealer listing path, else the profile's, else the base URL."""
        path = self.listing_path or (profile.listing_path if profile else None)
        return urljoin(self.base_url, path) if path else self.base_url


class GroupConfig(BaseModel):
    group: TechnologyGroup
    enabled: bool = True
    priority: int
    dealers: List[DealerConfig] = []

    @model_validator(mode='after')
    def _default_dealer_group(self):
        for dealer in self.dealers:
            if dealer.group is None:
                dealer.group = self.group
        return self


class RunConfig(BaseModel):
    groups: List[GroupConfig]
    filters: FilterOverrides = FilterOverrides()

    def ordered_groups(self) -> List[GroupConfig]:
        """Enabled groups by ascending priority (ties keep file order)."""
        return sorted((g for g in self.groups if g.enabled), key=lambda g: g.priority)

    def only(self, groups: List[TechnologyGroup]) -> 'RunConfig':
        """Copy with every group not listed disabled."""
        wanted = set(groups)
        return self.model_copy(update={
            'groups': [g.model_copy(update={'enabled': g.enabled and g.group in wanted}) for g in self.groups]
        })


def load_run_config(path: Union[str, Path]) -> RunConfig:
    """
    Load and validate a run configuration JSON file.

    Raises:
        FileNotFoundError: If the file does not exist
        pydantic.ValidationError: If the content doesn't match the schema
    """
    path = Path(path)
    data = json.loads(path.read_text(encoding='utf-8'))
    config = RunConfig.model_validate(data)
    logger.info(f"Loaded run config from {path}: {sum(len(g.dealers) for g in config.groups)} dealer(s)")
    return config


# ============================================================
# DEFAULT RUN CONFIGURATION
# (id, name, base_url, listing_path, enabled)
# ============================================================

_DEFAULT_DEALERS = {
    TechnologyGroup.TEMPLATE_CMS: [
        ('lox-autos', 'LOX Autos', 'https://loxautos.com.ar/', '/vehiculos/', True),
        ('cenoa-usados', 'Cenoa Usados', 'https://usados.cenoa.com.ar/', '/', True),
        ('fortunato-fortino', 'Fortunato Fortino', 'https://www.fortunatofortino.com/', '/vehiculos-usados/', True),
        ('dycar-chevrolet', 'Dycar Chevrolet', 'https://www.chevroletdycar.com.ar/', '/usados/', True),
    ],
    TechnologyGroup.COMPONENT_FRAMEWORK: [
        ('kavak', 'Kavak Argentina', 'https://www.kavak.com', '/ar/catalog-ui/', True),
        ('car-cash', 'Car Cash Argentina', 'https://www.carcash.com.ar', '/autos/', True),
        ('tienda-cars', 'Tienda Cars', 'https://tiendacars.com', '/vehiculos/', True),
        ('car-one', 'Car One', 'https://www.carone.com.ar', '/usados/', True),
    ],
    TechnologyGroup.CUSTOM_RENDERED: [
        ('lineup', 'Toyota Line Up Usados', 'https://lineup.com.ar', '/usados', True),
        ('autosol', 'Autosol Salta/Jujuy', 'https://www.autosol.com.ar', '/usados', True),
        ('jalil-salta', 'Jalil Salta', 'https://www.jalilsalta.com.ar', '/', True),
        ('ford-pussetto', 'Ford Pussetto', 'https://www.fordpussetto.com.ar', '/vehiculos/usados', True),
        ('carmak', 'Carmak', 'https://carmak.com.ar', '/', True),
        ('san-vicente', 'San Vicente Automotores', 'https://sanvicenteautomotores.com.ar', '/vehiculos/', True),
        ('malarczuk', 'Malarczuk Automotores', 'https://malarczuk-autos.com.ar', '/autos/', True),
        ('armando', 'Armando Automotores', 'http://www.armandoautomotores.com.ar', '/vehiculos/', True),
        ('neostar', 'NEOSTAR', 'https://neostar.com.ar', '/autos/', True),
    ],
    TechnologyGroup.AGGREGATOR_PORTAL: [
        ('zona-auto', 'Zona Auto Argentina', 'https://zonaauto.com.ar', '/autos-usados/', True),
        ('autocosmos', 'Autocosmos Argentina', 'https://www.autocosmos.com.ar', '/auto/usado', True),
        ('deruedas', 'DeRuedas Argentina', 'https://www.deruedas.com.ar', '/autos/', True),
        ('autos-misiones', 'Autos Misiones', 'https://www.autosmisiones.com', '/autos-usados/', True),
    ],
    TechnologyGroup.SPECIAL: [
        # Social storefronts need a logged-in session
        ('indiana-usados', 'Indiana Usados', 'https://www.facebook.com/indianausados', None, False),
        ('autosok', 'Autosok Tucumán', 'https://www.instagram.com/autosoktuc', None, False),
        ('kumenia', 'Kumenia Renault', 'https://www.kumenia.com', '/usados', True),
        ('sion', 'SION Autocenter', 'https://sionautocenter.com.ar', '/vehiculos/', True),
        ('pirerayen', 'Pirerayen Fiat', 'https://pirerayenfiat.com.ar', '/unidades/', True),
        ('grupo-randazzo', 'Grupo Randazzo', 'https://www.gruporandazzo.com', '/vehiculos/', True),
        ('autocity', 'Autocity', 'https://autocity.com.ar', '/catalogo/usados/', True),
        ('montironi', 'Montironi', 'https://montironi.com', '/usados/', True),
        ('avec', 'AVEC', 'https://avec.com.ar', '/vehiculos/', True),
    ],
}

_DEFAULT_PRIORITIES = {
    TechnologyGroup.TEMPLATE_CMS: 1,
    TechnologyGroup.COMPONENT_FRAMEWORK: 2,
    TechnologyGroup.CUSTOM_RENDERED: 3,
    TechnologyGroup.AGGREGATOR_PORTAL: 4,
    TechnologyGroup.SPECIAL: 5,
}

DEFAULT_FILTERS = FilterOverrides(
    max_per_dealer=100,
    price_min=0,
    price_max=10_000_000,
    year_min=2000,
    year_max=2030,
)


def default_run_config() -> RunConfig:
    """Built-in dealer list with the five groups in default priority order."""
    groups = []
    for group, priority in _DEFAULT_PRIORITIES.items():
        dealers = [
            DealerConfig(id=id_, name=name, base_url=url, listing_path=path, enabled=enabled)
            for id_, name, url, path, enabled in _DEFAULT_DEALERS[group]
        ]
        groups.append(GroupConfig(group=group, priority=priority, dealers=dealers))
    return RunConfig(groups=groups, filters=DEFAULT_FILTERS.model_copy())
