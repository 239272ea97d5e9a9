"""
Run-wide result filtering.

Only known-bad values are rejected: a record whose price or year is
missing is kept even when a bound for that field is configured.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, fields, replace
from typing import Dict, List, Optional

from .base import NormalizedVehicleRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterConfig:
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    year_min: Optional[int] = None
    year_max: Optional[int] = None
    max_per_dealer: Optional[int] = None

    def merged(self, override: Optional['FilterConfig']) -> 'FilterConfig':
        """Field-by-field overlay: set fields of override win."""
        if override is None:
            return self
        changes = {f.name: getattr(override, f.name) for f in fields(override) if getattr(override, f.name) is not None}
        return replace(self, **changes)

    def to_dict(self) -> Dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class ResultFilter:
    """Applies FilterConfig bounds and the per-dealer cap."""

    def accepts(self, record: NormalizedVehicleRecord, config: FilterConfig) -> bool:
        price = record.price_amount
        if price is not None:
            if config.price_min is not None and price < config.price_min:
                return False
            if config.price_max is not None and price > config.price_max:
                return False

        year = record.year
        if year is not None:
            if config.year_min is not None and year < config.year_min:
                return False
            if config.year_max is not None and year > config.year_max:
                return False

        return True

    def apply(self, records: List[NormalizedVehicleRecord], config: FilterConfig) -> List[NormalizedVehicleRecord]:
        """
        Filter records, preserving their original order.

        max_per_dealer keeps the first N accepted records of each dealer
        (stable truncation).
        """
        kept = [r for r in records if self.accepts(r, config)]

        if config.max_per_dealer is not None:
            per_dealer = defaultdict(int)
            capped = []
            for record in kept:
                if per_dealer[record.dealer_name] < config.max_per_dealer:
                    per_dealer[record.dealer_name] += 1
                    capped.append(record)
            kept = capped

        dropped = len(records) - len(kept)
        if dropped:
            logger.debug(f"Filtered out {dropped} of {len(records)} record(s)")
        return kept
