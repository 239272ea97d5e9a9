"""
DOM extraction utilities for listing pages.

All selectors here are advisory: a selector that fails to parse is logged
and skipped, never raised.
"""

import logging
from typing import Iterable, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

logger = logging.getLogger(__name__)

# Deferred-source attributes used by lazy-loading plugins, in priority order
LAZY_IMAGE_ATTRS = ['data-src', 'data-lazy-src', 'data-original', 'data-srcset', 'srcset']


def split_selectors(selector_list: Optional[str]) -> List[str]:
    """
    Split a comma-separated selector group into its parts, in order.

    Commas inside brackets, parentheses or quotes are kept.

    Examples:
        '.a, .b' -> ['.a', '.b']
        '[class*="a,b"], h3' -> ['[class*="a,b"]', 'h3']
    """
    if not selector_list:
        return []

    parts, current, depth, quote = [], [], 0, None
    for ch in selector_list:
        if quote:
            if ch == quote:
                quote = None
        elif ch in ('"', "'"):
            quote = ch
        elif ch in '([':
            depth += 1
        elif ch in ')]':
            depth = max(depth - 1, 0)
        elif ch == ',' and depth == 0:
            parts.append(''.join(current).strip())
            current = []
            continue
        current.append(ch)
    parts.append(''.join(current).strip())
    return [p for p in parts if p]


def expand_selectors(*groups: Iterable[str]) -> List[str]:
    """Flatten hint strings and selector lists into one ordered, de-duplicated list."""
    result = []
    for group in groups:
        if not group:
            continue
        items = [group] if isinstance(group, str) else group
        for item in items:
            for selector in split_selectors(item):
                if selector not in result:
                    result.append(selector)
    return result


def safe_select(root: Tag, selector: str) -> List[Tag]:
    """root.select() that treats an invalid selector as matching nothing."""
    try:
        return root.select(selector)
    except (SelectorSyntaxError, ValueError) as e:
        logger.warning(f"Skipping invalid selector '{selector}': {e}")
        return []


def safe_select_one(root: Tag, selector: str) -> Optional[Tag]:
    try:
        return root.select_one(selector)
    except (SelectorSyntaxError, ValueError) as e:
        logger.warning(f"Skipping invalid selector '{selector}': {e}")
        return None


def first_text(item: Tag, selectors: Iterable[str]) -> Optional[str]:
    """Text of the first selector that yields a non-empty string."""
    for selector in selectors:
        el = safe_select_one(item, selector)
        if el is None:
            continue
        text = el.get_text(' ', strip=True)
        if text:
            return text
    return None


def remaining_text(item: Tag, exclude: Iterable[Optional[str]] = ()) -> Optional[str]:
    """Item text with the already extracted fields (title, price) removed."""
    text = item.get_text(' ', strip=True)
    for part in exclude:
        if part:
            text = text.replace(part, ' ')
    text = ' '.join(text.split())
    return text or None


def _usable_url(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    value = value.strip()
    if not value or value.startswith(('data:', '#', 'javascript:')):
        return None
    return value


def _image_source(img: Tag, lazy_first: bool) -> Optional[str]:
    attrs = LAZY_IMAGE_ATTRS + ['src'] if lazy_first else ['src'] + LAZY_IMAGE_ATTRS
    for attr in attrs:
        value = img.get(attr)
        if attr.endswith('srcset') and value:
            # "url 300w, url2 600w" -> first url
            value = value.split(',')[0].strip().split(' ')[0]
        value = _usable_url(value)
        if value:
            return value
    return None


def extract_image_url(
    item: Tag,
    selectors: Iterable[str] = (),
    base_url: str = '',
    lazy_first: bool = False,
) -> Optional[str]:
    """
    Resolve an item's image URL.

    With lazy_first, deferred-source attributes (data-src, ...) are read
    before src, which on lazy sites is usually a placeholder.
    """
    candidates = []
    for selector in selectors:
        el = safe_select_one(item, selector)
        if el is not None:
            candidates.append(el if el.name == 'img' else el.find('img'))
    candidates.append(item if item.name == 'img' else item.find('img'))

    for img in candidates:
        if img is None:
            continue
        src = _image_source(img, lazy_first)
        if src:
            return urljoin(base_url, src)
    return None


def extract_link(item: Tag, selectors: Iterable[str] = (), base_url: str = '') -> Optional[str]:
    """Absolute detail-page URL for an item, or None."""
    anchors = []
    if item.name == 'a':
        anchors.append(item)
    for selector in selectors:
        el = safe_select_one(item, selector)
        if el is not None:
            anchors.append(el if el.name == 'a' else el.find('a', href=True))
    anchors.append(item.find('a', href=True))
    if item.name != 'a':
        # Card wrapped by its link
        parent = item.find_parent('a', href=True)
        if parent is not None:
            anchors.append(parent)

    for a in anchors:
        if a is None:
            continue
        href = _usable_url(a.get('href'))
        if href:
            return urljoin(base_url, href)
    return None


def find_container(soup: BeautifulSoup, selectors: Iterable[str]) -> Optional[Tag]:
    """First selector match that has at least one child element."""
    for selector in selectors:
        for el in safe_select(soup, selector):
            if el.find(True) is not None:
                return el
    return None


def find_items(
    soup: BeautifulSoup,
    container_selectors: Iterable[str],
    item_selectors: Iterable[str],
) -> List[Tag]:
    """
    Locate listing items.

    Item selectors are tried inside the first matching container, then
    against the whole document.
    """
    item_selectors = list(item_selectors)
    container = find_container(soup, container_selectors)

    roots = [container, soup] if container is not None else [soup]
    for root in roots:
        for selector in item_selectors:
            items = safe_select(root, selector)
            if items:
                return outermost(items)
    return []


def outermost(elements: List[Tag]) -> List[Tag]:
    """
    Drop elements nested inside another element of the list.

    Substring class selectors ([class*="card"]) also match a card's own
    children (card__title, card__price); only the cards are items.
    """
    selected = {id(el) for el in elements}
    return [el for el in elements if not any(id(parent) in selected for parent in el.parents)]
