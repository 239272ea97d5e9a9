"""
Data normalization utilities for vehicle listings.

These functions turn raw scraped text into canonical numeric and semantic
fields. They are pure: no I/O, no state.
"""

import re
from datetime import date
from typing import Optional, Tuple

from ..base import VehicleListingCandidate, NormalizedVehicleRecord


KNOWN_BRANDS = [
    'Chevrolet', 'Ford', 'Fiat', 'Renault', 'Peugeot', 'Volkswagen', 'VW',
    'Toyota', 'Honda', 'Nissan', 'Citroën', 'Citroen', 'Hyundai', 'Kia',
    'Mazda', 'Mercedes-Benz', 'Mercedes', 'BMW', 'Audi', 'Jeep', 'RAM', 'Dodge',
]

BRAND_ALIASES = {
    'vw': 'Volkswagen',
    'mercedes': 'Mercedes-Benz',
    'citroen': 'Citroën',
}

_CANONICAL_BRANDS = {b.lower(): BRAND_ALIASES.get(b.lower(), b) for b in KNOWN_BRANDS}

# Longest names first so "Mercedes-Benz" wins over "Mercedes"
_BRAND_RE = re.compile(
    r'(?<![\w-])(' + '|'.join(re.escape(b) for b in sorted(KNOWN_BRANDS, key=len, reverse=True)) + r')(?![\w-])',
    re.IGNORECASE,
)

_YEAR_RE = re.compile(r'(?<!\d)(199\d|20[0-3]\d)(?!\d)')

_NUMBER = r'\d{1,3}(?:[.,]\d{3})+|\d+'
_MILEAGE_RE = re.compile(
    rf'(?<![\d.,])(?P<before>{_NUMBER})\s*(?:kil[oó]metros|kms?)\b'
    rf'|\bkms?\s*:\s*(?P<after>{_NUMBER})',
    re.IGNORECASE,
)

_CURRENCY_SYMBOLS_RE = re.compile(r'[$€£¥₹]')
_PRICE_NUMBER_RE = re.compile(r'\d[\d.,]*')

_USD_RE = re.compile(r'U\$S|U\$D|US\$|\bUSD\b|\bd[oó]lares\b', re.IGNORECASE)
_EUR_RE = re.compile(r'€|\bEUR\b', re.IGNORECASE)

# Tokens that end a model name
_MODEL_STOP_RE = re.compile(r'^(?:\$|U\$S|US\$|USD|ARS|-|\||/|·)$', re.IGNORECASE)


def clean_text(text: Optional[str]) -> Optional[str]:
    """Collapse whitespace; empty results become None."""
    if not text:
        return None
    cleaned = re.sub(r'\s+', ' ', text).strip()
    return cleaned or None


def clean_price(price_text: Optional[str]) -> Optional[float]:
    """
    Parse a displayed price into a number.

    Separator rules:
        both ',' and '.' present  -> the last one is the decimal marker
        only one kind present     -> thousands separator, unless exactly
                                     two digits follow its last occurrence

    Examples:
        $ 25.500.000    -> 25500000.0
        USD 18,500      -> 18500.0
        $45.000.000.-   -> 45000000.0
        1.234,56        -> 1234.56
        sin precio      -> None
    """
    if not price_text:
        return None

    text = _CURRENCY_SYMBOLS_RE.sub('', price_text)
    match = _PRICE_NUMBER_RE.search(text)
    if not match:
        return None

    number = match.group(0).rstrip('.,')
    has_comma = ',' in number
    has_dot = '.' in number

    if has_comma and has_dot:
        decimal = ',' if number.rfind(',') > number.rfind('.') else '.'
        thousands = '.' if decimal == ',' else ','
        number = number.replace(thousands, '')
        number = number.replace(decimal, '.')
    elif has_comma or has_dot:
        sep = ',' if has_comma else '.'
        head, _, tail = number.rpartition(sep)
        if len(tail) == 2:
            number = head.replace(sep, '') + '.' + tail
        else:
            number = number.replace(sep, '')

    try:
        return float(number)
    except ValueError:
        return None


def extract_year(text: Optional[str]) -> Optional[int]:
    """
    First 4-digit year in 1990-2039.

    Examples:
        Modelo 2023, excelente -> 2023
        sin año -> None
        120231 -> None
    """
    if not text:
        return None
    match = _YEAR_RE.search(text)
    return int(match.group(1)) if match else None


def extract_mileage(text: Optional[str]) -> Optional[int]:
    """
    Mileage in km, from "45.000 km", "120000 kms", "80.000 kilómetros" or "Km: 45.000".
    """
    if not text:
        return None
    match = _MILEAGE_RE.search(text)
    if not match:
        return None
    value = match.group('before') or match.group('after')
    return int(re.sub(r'[.,]', '', value))


def extract_brand_model(title: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Match a known brand in the title and take the next one or two tokens as model.

    Unlisted brands give (None, None).

    Examples:
        Toyota Corolla XEI 2020 -> ('Toyota', 'Corolla XEI')
        VW Gol Trend - 2015 -> ('Volkswagen', 'Gol Trend')
        Ford Ka 2018 -> ('Ford', 'Ka')
    """
    if not title:
        return None, None

    match = _BRAND_RE.search(title)
    if not match:
        return None, None

    brand = _CANONICAL_BRANDS[match.group(1).lower()]

    tokens = []
    for raw in title[match.end():].split():
        if _MODEL_STOP_RE.match(raw):
            break
        # A leading year-like token is a model name (Peugeot 2008)
        if tokens and _YEAR_RE.fullmatch(raw.strip(',.;:')):
            break
        if raw.startswith(('$', 'U$', 'US$')):
            break
        token = raw.strip(',;:|()')
        if token:
            tokens.append(token)
        if len(tokens) == 2 or raw.endswith((',', ';', ':')):
            break

    return brand, (' '.join(tokens) or None)


def guess_currency(price_text: Optional[str], default: str = 'ARS') -> Optional[str]:
    """Currency implied by the price text; None when there is no price text."""
    if not price_text:
        return None
    if _USD_RE.search(price_text):
        return 'USD'
    if _EUR_RE.search(price_text):
        return 'EUR'
    return default


def normalize_candidate(
    candidate: VehicleListingCandidate,
    default_currency: str = 'ARS',
    today: Optional[date] = None,
) -> NormalizedVehicleRecord:
    """
    Build a NormalizedVehicleRecord from a candidate.

    Callers drop title-less candidates first; passing one here is a
    programming error.

    Raises:
        ValueError: If the candidate has no title
    """
    title = clean_text(candidate.raw_title)
    if not title:
        raise ValueError(f"Candidate without title from {candidate.dealer_name}")

    details = candidate.raw_details_text or ''
    price = clean_price(candidate.raw_price_text)
    year = extract_year(title) or extract_year(details)
    mileage = extract_mileage(details) if details else None
    if mileage is None:
        mileage = extract_mileage(title)
    brand, model = extract_brand_model(title)

    age = None
    if year:
        age = max((today or date.today()).year - year, 0)

    price_per_km = None
    if price and mileage:
        price_per_km = round(price / mileage, 2)

    return NormalizedVehicleRecord(
        title=title,
        candidate=candidate,
        price_amount=price,
        price_currency_guess=guess_currency(candidate.raw_price_text, default_currency),
        price_text=clean_text(candidate.raw_price_text),
        year=year,
        mileage_km=mileage,
        brand=brand,
        model=model,
        age_years=age,
        price_per_km=price_per_km,
    )
