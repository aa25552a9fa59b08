"""
Embedded-data strategy for category listings.

Storefronts ship their product grid as JSON inside the page: either in
``<script type="application/json">`` / ``__NEXT_DATA__`` nodes or as a
``window.__STATE__ = {...}`` assignment. Both are decoded and walked for
objects that look like products.
"""

import json
import logging
import math
import re

from bs4 import BeautifulSoup

from catchdeal.config import COMMERCE_BASE, COMMERCE_DOMAIN, PRODUCT_PATH
from catchdeal.models import ScannedProduct, discount_rate
from catchdeal.parsers.common import absolute_url, dedupe_capped, normalize_link

logger = logging.getLogger(__name__)

SCRIPT_SELECTOR = 'script[type="application/json"], script#__NEXT_DATA__'
MIN_PAYLOAD_CHARS = 500
MAX_DEPTH = 8

GLOBAL_STATE_RE = re.compile(r"window\.__[A-Z_]+__\s*=\s*(?=\{)")

LINK_KEYS = ("link", "url", "productUrl", "itemUrl")
PATH_KEYS = ("href", "path")
ID_KEYS = ("productId", "itemId", "id")
TITLE_KEYS = ("name", "title", "productName")
PRICE_KEYS = ("price", "salePrice")
ORIGINAL_PRICE_KEYS = ("originalPrice", "listPrice")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _first_string(node: dict, keys) -> str | None:
    for key in keys:
        value = node.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _first_amount(node: dict, keys) -> int | None:
    """First finite, positive whole-won amount under ``keys``."""
    for key in keys:
        value = node.get(key)
        if _is_number(value) and math.isfinite(value) and int(value) > 0:
            return int(value)
    return None


def _product_id(node: dict) -> str | None:
    for key in ID_KEYS:
        value = node.get(key)
        if _is_number(value) and not isinstance(value, float):
            return str(value)
        if isinstance(value, str) and value.isdigit():
            return value
    return None


def resolve_link(node: dict, base: str = COMMERCE_BASE) -> str | None:
    """Best URL for a product-like node: explicit link, product path, then bare id."""
    link = _first_string(node, LINK_KEYS)
    if link:
        return absolute_url(link, base)
    path = _first_string(node, PATH_KEYS)
    if path and PRODUCT_PATH.strip("/") in path:
        return absolute_url(path, base)
    product_id = _product_id(node)
    if product_id:
        return f"{base}{PRODUCT_PATH}{product_id}"
    return None


def _candidate(node: dict, base: str) -> dict | None:
    title = _first_string(node, TITLE_KEYS)
    price = _first_amount(node, PRICE_KEYS)
    if not title or price is None:
        return None
    link = resolve_link(node, base)
    if not link or COMMERCE_DOMAIN not in link:
        return None
    original = _first_amount(node, ORIGINAL_PRICE_KEYS)
    return {"title": title, "price": price, "original_price": original, "link": link}


def walk(node, depth: int = 0, base: str = COMMERCE_BASE) -> list[dict]:
    """
    Collect product-like objects from a decoded JSON value.

    Objects are tested themselves and then descended into; arrays are
    descended into. Nothing below MAX_DEPTH is visited.
    """
    if depth > MAX_DEPTH:
        return []
    if isinstance(node, list):
        found = []
        for child in node:
            found.extend(walk(child, depth + 1, base))
        return found
    if not isinstance(node, dict):
        return []

    found = []
    item = _candidate(node, base)
    if item:
        found.append(item)
    for child in node.values():
        found.extend(walk(child, depth + 1, base))
    return found


def balanced_object(text: str, start: int) -> str | None:
    """Return the ``{...}`` literal opening at ``start``, honouring strings."""
    if start >= len(text) or text[start] != "{":
        return None
    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def iter_payloads(soup: BeautifulSoup, html: str) -> list[str]:
    payloads = []
    for script in soup.select(SCRIPT_SELECTOR):
        text = script.string or script.get_text() or ""
        if len(text) >= MIN_PAYLOAD_CHARS:
            payloads.append(text)
    for match in GLOBAL_STATE_RE.finditer(html):
        literal = balanced_object(html, match.end())
        if literal:
            payloads.append(literal)
    return payloads


def _to_product(item: dict) -> ScannedProduct:
    price = item["price"]
    original = item["original_price"]
    if original is not None and original < price:
        original = None
    return ScannedProduct(
        title=item["title"],
        price=price,
        original_price=original,
        discount_rate=discount_rate(price, original),
        link=normalize_link(item["link"]),
    )


def parse_embedded(soup: BeautifulSoup, html: str, base: str = COMMERCE_BASE) -> list[ScannedProduct]:
    """Products found in embedded JSON, deduplicated by query-less link."""
    found: list[dict] = []
    for payload in iter_payloads(soup, html):
        try:
            data = json.loads(payload)
        except ValueError:
            logger.debug("Skipping undecodable embedded payload (%d chars)", len(payload))
            continue
        found.extend(walk(data, 0, base))
    unique = dedupe_capped(found, key=lambda item: normalize_link(item["link"]))
    return [_to_product(item) for item in unique]
