"""Single product page dissection."""

import re

from bs4 import BeautifulSoup

from catchdeal.models import DissectedProduct, discount_rate
from catchdeal.parsers.common import clean_text

# Tried in order; the first non-empty match wins
TITLE_SELECTORS = [
    "h2.prod-buy-header__title",
    ".prod-buy-header__title",
    '[class*="ProductTitle"]',
    "h1",
]
META_TITLE_SELECTOR = 'meta[property="og:title"]'

PRICE_SELECTORS = [
    ".total-price strong",
    ".prod-price__total .total-price",
    '[class*="totalPrice"]',
    '[class*="salePrice"]',
]

ORIGINAL_PRICE_SELECTORS = [
    ".origin-price",
    ".prod-price__origin",
    '[class*="originPrice"]',
]

MIN_TITLE_CHARS = 2
MIN_PRICE = 100
MAX_TITLE_CHARS = 300

_NON_DIGIT_RE = re.compile(r"[^0-9]")


def _digits(text: str) -> int:
    digits = _NON_DIGIT_RE.sub("", text or "")
    return int(digits) if digits else 0


def _first_text(soup: BeautifulSoup, selectors: list[str]) -> str:
    for selector in selectors:
        el = soup.select_one(selector)
        if el is None:
            continue
        text = clean_text(el.get_text(" "))
        if text:
            return text
    return ""


def _first_price(soup: BeautifulSoup, selectors: list[str]) -> int:
    for selector in selectors:
        el = soup.select_one(selector)
        if el is None:
            continue
        value = _digits(el.get_text())
        if value:
            return value
    return 0


def parse_product_page(html: str) -> DissectedProduct | None:
    """
    Read name and price from a product page.

    Returns None when the page is not parseable: a title shorter than two
    characters or a price under 100 is treated as a placeholder.
    """
    soup = BeautifulSoup(html or "", "html.parser")

    title = _first_text(soup, TITLE_SELECTORS)
    if not title:
        meta = soup.select_one(META_TITLE_SELECTOR)
        title = clean_text(meta.get("content")) if meta is not None else ""

    price = _first_price(soup, PRICE_SELECTORS)
    if len(title) < MIN_TITLE_CHARS or price < MIN_PRICE:
        return None

    original = _first_price(soup, ORIGINAL_PRICE_SELECTORS) or None
    if original is not None and original < price:
        original = None

    return DissectedProduct(
        name=title[:MAX_TITLE_CHARS],
        price=price,
        original_price=original,
        discount_rate=discount_rate(price, original),
    )
