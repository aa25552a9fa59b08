"""Helpers shared by the page parsers."""

import re
from urllib.parse import urljoin

MAX_ITEMS = 50

_WS_RE = re.compile(r"\s+")


def clean_text(text: str | None) -> str:
    """Collapse whitespace runs and trim."""
    return _WS_RE.sub(" ", text or "").strip()


def normalize_link(url: str) -> str:
    """Drop the query string; used as the dedupe key."""
    return url.split("?", 1)[0].strip()


def absolute_url(href: str, base: str) -> str:
    return urljoin(base, href.strip())


def dedupe_capped(items, key, limit: int = MAX_ITEMS) -> list:
    """Keep the first item per key in discovery order, at most ``limit``."""
    seen: set[str] = set()
    out = []
    for item in items:
        k = key(item)
        if not k or k in seen:
            continue
        seen.add(k)
        out.append(item)
        if len(out) >= limit:
            break
    return out
