"""Shared utilities for listing extraction."""

from .normalizers import (
    clean_text,
    clean_price,
    extract_year,
    extract_mileage,
    extract_brand_model,
    guess_currency,
    normalize_candidate,
)
from .extractors import (
    split_selectors,
    expand_selectors,
    safe_select,
    first_text,
    extract_image_url,
    extract_link,
    find_items,
)

__all__ = [
    'clean_text',
    'clean_price',
    'extract_year',
    'extract_mileage',
    'extract_brand_model',
    'guess_currency',
    'normalize_candidate',
    'split_selectors',
    'expand_selectors',
    'safe_select',
    'first_text',
    'extract_image_url',
    'extract_link',
    'find_items',
]
