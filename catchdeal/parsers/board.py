"""Board list and post page parsing."""

from bs4 import BeautifulSoup

from catchdeal.config import BOARD_BASE, BOARD_DOMAIN, COMMERCE_BASE, COMMERCE_DOMAIN, PRODUCT_PATH
from catchdeal.models import CandidateLink
from catchdeal.parsers.common import absolute_url, clean_text, dedupe_capped, normalize_link

OUTBOUND_SELECTOR = f'a[href*="{COMMERCE_DOMAIN}"], a[href*="{PRODUCT_PATH.strip("/")}"], a[href^="http"]'


def keyword_matches(text: str, keyword: str) -> bool:
    """Case-insensitive substring test."""
    return keyword.casefold() in text.casefold()


def parse_post_links(html: str, keyword: str, base: str = BOARD_BASE) -> list[CandidateLink]:
    """
    Posts on a board list page whose anchor text contains ``keyword``.

    Only links on the board domain count. Duplicates differing by query
    string collapse to the first occurrence.
    """
    keyword = keyword.strip()
    if not keyword:
        return []
    soup = BeautifulSoup(html or "", "html.parser")
    found = []
    for anchor in soup.select("a[href]"):
        href = (anchor.get("href") or "").strip()
        if not href or href == "#" or href.lower().startswith("javascript:"):
            continue
        title = clean_text(anchor.get_text(" "))
        if len(title) < 2 or not keyword_matches(title, keyword):
            continue
        url = absolute_url(href, base)
        if BOARD_DOMAIN not in url:
            continue
        found.append(CandidateLink(title=title, url=url))
    return dedupe_capped(found, key=lambda link: normalize_link(link.url))


def is_commerce_link(url: str) -> bool:
    return COMMERCE_DOMAIN in url or PRODUCT_PATH.rstrip("/") in url


def extract_outbound_links(html: str) -> list[str]:
    """Distinct outbound hrefs in a post body, in document order."""
    soup = BeautifulSoup(html or "", "html.parser")
    seen: set[str] = set()
    urls = []
    for anchor in soup.select(OUTBOUND_SELECTOR):
        href = (anchor.get("href") or "").strip()
        if not href or href.lower().startswith("javascript:") or href in seen:
            continue
        seen.add(href)
        urls.append(href)
    return urls


def split_commerce_links(urls: list[str]) -> tuple[list[str], list[str]]:
    """
    Partition outbound links into commerce links and everything else.

    Relative product paths are resolved against the storefront.
    """
    commerce: list[str] = []
    other: list[str] = []
    for url in urls:
        if is_commerce_link(url):
            if not url.startswith("http"):
                url = absolute_url(url, COMMERCE_BASE)
            if url not in commerce:
                commerce.append(url)
        else:
            other.append(url)
    return commerce, other
