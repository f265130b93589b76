"""Price, mileage and description extraction from listing HTML.

Each field is located by an ordered list of strategy functions. A strategy
takes the parsed page and returns a value or None; the first non-None value
wins. Structural selectors come first and free-text search comes last.
"""

import logging
import math
import re
from collections.abc import Callable
from dataclasses import dataclass

from bs4 import BeautifulSoup

from price_monitor.models import NO_DESCRIPTION

logger = logging.getLogger(__name__)

SNAPSHOT_CHARS = 5000

PRICE_PATTERN = re.compile(r"[£$€]\s*(\d[\d,]*(?:\.\d+)?)")
MILEAGE_PATTERN = re.compile(r"(\d[\d,]*)\s*miles", re.IGNORECASE)

PRICE_META_SELECTORS = [
    "[itemprop='price']",
    "meta[property='product:price:amount']",
    "meta[property='og:price:amount']",
]

# Price selectors to try, most specific listing layouts first
PRICE_SELECTORS = [
    ".price",
    ".vehicle-price",
    ".product-price",
    "[class*='price']",
    "[data-test*='price']",
    "[data-testid*='price']",
    "[data-test='product-price']",
    ".ProductPrice__priceValue",
    "[class*='ProductPrice']",
    ".product__price",
    ".selling-price",
    ".sale-price",
    ".current-price",
]

FREE_TEXT_TAGS = ["h2", "span", "div"]

MILEAGE_SELECTORS = [".mileage", "[class*='mileage']"]

DESCRIPTION_SELECTORS = [
    "title",
    ".vehicle-title",
    ".product-title",
    "h1",
    "[data-test='product-overview-name']",
]

Strategy = Callable[[BeautifulSoup], float | None]


@dataclass(frozen=True)
class Extraction:
    """Fields pulled out of one page. price is None when nothing matched."""

    price: float | None
    mileage: int | None
    description: str


def parse_price(text: str) -> float | None:
    """Extract a positive amount from text like '£12,995' or '$1,299.99'."""
    if not text:
        return None
    match = PRICE_PATTERN.search(text)
    if not match:
        return None
    try:
        price = float(match.group(1).replace(",", ""))
    except ValueError:
        return None
    return price if math.isfinite(price) and price > 0 else None


def _parse_plain_number(text: str) -> float | None:
    try:
        value = float(text.replace(",", "").strip())
    except ValueError:
        return None
    return value if math.isfinite(value) and value > 0 else None


def price_from_metadata(soup: BeautifulSoup) -> float | None:
    """schema.org / Open Graph price markup; the value is a bare number."""
    for selector in PRICE_META_SELECTORS:
        el = soup.select_one(selector)
        if el is None:
            continue
        raw = el.get("content") or el.get_text()
        value = _parse_plain_number(raw) if raw else None
        if value is None and raw:
            value = parse_price(raw)
        if value is not None:
            return value
    return None


def price_from_selectors(soup: BeautifulSoup) -> float | None:
    """First element of each known price selector, in priority order."""
    for selector in PRICE_SELECTORS:
        el = soup.select_one(selector)
        if el is None:
            continue
        price = parse_price(el.get_text())
        if price is not None:
            return price
    return None


def price_from_free_text(soup: BeautifulSoup) -> float | None:
    """Last resort: the first heading, span or div whose text holds a currency amount."""
    for tag in FREE_TEXT_TAGS:
        for el in soup.find_all(tag):
            price = parse_price(el.get_text())
            if price is not None:
                return price
    return None


PRICE_STRATEGIES: list[Strategy] = [
    price_from_metadata,
    price_from_selectors,
    price_from_free_text,
]


def _parse_mileage(text: str) -> int | None:
    match = MILEAGE_PATTERN.search(text or "")
    if not match:
        return None
    try:
        return int(match.group(1).replace(",", ""))
    except ValueError:
        return None


def mileage_from_selectors(soup: BeautifulSoup) -> int | None:
    for selector in MILEAGE_SELECTORS:
        el = soup.select_one(selector)
        if el is not None:
            mileage = _parse_mileage(el.get_text())
            if mileage is not None:
                return mileage
    return None


def mileage_from_list_items(soup: BeautifulSoup) -> int | None:
    for li in soup.find_all("li"):
        text = li.get_text()
        mileage = _parse_mileage(text)
        if mileage is not None:
            return mileage
    return None


MILEAGE_STRATEGIES = [mileage_from_selectors, mileage_from_list_items]


def extract_description(soup: BeautifulSoup) -> str:
    """Page title or headline. Falls back to a placeholder, never fails."""
    for selector in DESCRIPTION_SELECTORS:
        el = soup.select_one(selector)
        if el is None:
            continue
        text = el.get_text().strip()
        if text:
            return text
    return NO_DESCRIPTION


def _first_match(strategies, soup: BeautifulSoup):
    for strategy in strategies:
        value = strategy(soup)
        if value is not None:
            logger.debug("%s matched: %s", strategy.__name__, value)
            return value
    return None


def extract(html: str) -> Extraction:
    """Run all strategy lists over a page."""
    soup = BeautifulSoup(html, "html.parser")
    return Extraction(
        price=_first_match(PRICE_STRATEGIES, soup),
        mileage=_first_match(MILEAGE_STRATEGIES, soup),
        description=extract_description(soup),
    )


def snapshot(html: str) -> str:
    """Bounded copy of the markup kept for diagnosing parse failures."""
    return html[:SNAPSHOT_CHARS]
