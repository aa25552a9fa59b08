"""Category listing parser: embedded data first, DOM card heuristic second."""

import logging
import re

from bs4 import BeautifulSoup, Tag

from catchdeal.config import COMMERCE_BASE, PRODUCT_PATH
from catchdeal.models import ScannedProduct, discount_rate
from catchdeal.parsers.common import MAX_ITEMS, absolute_url, clean_text, normalize_link
from catchdeal.parsers.embedded import parse_embedded

logger = logging.getLogger(__name__)

PRODUCT_LINK_SELECTOR = f'a[href*="{PRODUCT_PATH}"]'
TITLE_HINT_SELECTOR = 'dd, [class*="name"], [class*="title"], [class*="desc"]'

# ₩12345, 12,345 or 12345원
PRICE_TOKEN_RE = re.compile(r"₩\s*(\d[\d,]*)|(?<![\d,])(\d{1,3}(?:,\d{3})+)(?![\d,])|(\d+)\s*원")
PRICE_ONLY_RE = re.compile(r"^₩?\s*\d[\d,.]*\s*원?$")
PRODUCT_ID_RE = re.compile(re.escape(PRODUCT_PATH) + r"(\d+)")

MIN_PRICE = 100
MAX_PRICE = 100_000_000
TITLE_PREFIX_CHARS = 150
TITLE_MAX_CHARS = 300


def price_tokens(text: str) -> list[int]:
    """Currency-looking numbers in ``text`` within the sane price window."""
    values = []
    for match in PRICE_TOKEN_RE.finditer(text):
        raw = next(g for g in match.groups() if g)
        value = int(raw.replace(",", ""))
        if MIN_PRICE <= value <= MAX_PRICE:
            values.append(value)
    return values


def _has_class_hint(tag: Tag, hint: str) -> bool:
    return any(hint in c for c in tag.get("class") or [])


def find_card(anchor: Tag) -> Tag:
    """
    Smallest ancestor holding at most two product links and a price.

    Falls back to the nearest list item or product/search-hinted container,
    then to the direct parent.
    """
    el = anchor.parent
    while isinstance(el, Tag) and el.name not in ("body", "html", "[document]"):
        if len(el.select(PRODUCT_LINK_SELECTOR)) <= 2 and PRICE_TOKEN_RE.search(el.get_text(" ")):
            return el
        el = el.parent
    return (
        anchor.find_parent("li")
        or anchor.find_parent(lambda t: _has_class_hint(t, "product"))
        or anchor.find_parent(lambda t: _has_class_hint(t, "search"))
        or anchor.parent
    )


def find_title(card: Tag, anchor: Tag) -> str:
    text = clean_text(anchor.get_text(" "))
    if len(text) > 3:
        return text
    label = clean_text(anchor.get("title") or anchor.get("aria-label"))
    if len(label) > 3:
        return label
    for el in card.select(TITLE_HINT_SELECTOR):
        candidate = clean_text(el.get_text(" "))
        if 5 <= len(candidate) <= 200 and not PRICE_ONLY_RE.match(candidate):
            return candidate
    prefix = clean_text(card.get_text(" "))[:TITLE_PREFIX_CHARS].strip()
    if len(prefix) >= 3:
        return prefix
    match = PRODUCT_ID_RE.search(anchor.get("href") or "")
    return f"item {match.group(1)}" if match else "item"


def parse_dom(soup: BeautifulSoup, base: str = COMMERCE_BASE) -> list[ScannedProduct]:
    """Products read from anchor cards when no embedded data exists."""
    seen: set[str] = set()
    products: list[ScannedProduct] = []
    for anchor in soup.select(PRODUCT_LINK_SELECTOR):
        link = normalize_link(absolute_url(anchor.get("href") or "", base))
        if link in seen:
            continue
        card = find_card(anchor)
        prices = price_tokens(card.get_text(" "))
        if not prices:
            continue
        seen.add(link)

        first = prices[0]
        second = prices[1] if len(prices) >= 2 else first
        price, original = min(first, second), max(first, second)
        products.append(
            ScannedProduct(
                title=find_title(card, anchor)[:TITLE_MAX_CHARS],
                price=price,
                original_price=original if original != price else None,
                discount_rate=discount_rate(price, original),
                link=link,
            )
        )
        if len(products) >= MAX_ITEMS:
            break
    return products


def parse_listing(html: str, base: str = COMMERCE_BASE) -> list[ScannedProduct]:
    """
    Parse a category listing page.

    The DOM heuristic only runs when the embedded payloads yield nothing.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    products = parse_embedded(soup, html or "", base)
    if products:
        logger.debug("Embedded data yielded %d products", len(products))
        return products
    products = parse_dom(soup, base)
    logger.debug("DOM heuristic yielded %d products", len(products))
    return products
