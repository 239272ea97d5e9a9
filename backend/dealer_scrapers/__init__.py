"""
Adaptive multi-site vehicle listing scraper.

This package provides:
- Site technology classification (template CMS, component framework,
  custom server-rendered, aggregator portal, special)
- One extraction strategy per technology group
- Navigation (pagination links, load more, infinite scroll) and
  background API response capture
- Listing normalization, filtering and a failure-isolating run orchestrator
"""

from .base import (
    TechnologyGroup,
    FeatureFlags,
    SiteProfile,
    VehicleListingCandidate,
    NormalizedVehicleRecord,
    DealershipScrapeResult,
    GroupSummary,
    RunError,
    RunSummary,
    ErrorScope,
)
from .config import SITES, SiteProfileRegistry, get_site_profile
from .dealers import RunConfig, DealerConfig, default_run_config, load_run_config
from .manager import Orchestrator, OrchestratorState

__all__ = [
    'TechnologyGroup',
    'FeatureFlags',
    'SiteProfile',
    'VehicleListingCandidate',
    'NormalizedVehicleRecord',
    'DealershipScrapeResult',
    'GroupSummary',
    'RunError',
    'RunSummary',
    'ErrorScope',
    'SITES',
    'SiteProfileRegistry',
    'get_site_profile',
    'RunConfig',
    'DealerConfig',
    'default_run_config',
    'load_run_config',
    'Orchestrator',
    'OrchestratorState',
]
