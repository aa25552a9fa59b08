"""Page parsers for board lists, posts, category listings and product pages."""

from catchdeal.parsers.board import extract_outbound_links, parse_post_links, split_commerce_links
from catchdeal.parsers.listing import parse_listing
from catchdeal.parsers.product import parse_product_page

__all__ = [
    "extract_outbound_links",
    "parse_listing",
    "parse_post_links",
    "parse_product_page",
    "split_commerce_links",
]
