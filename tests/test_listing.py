import json

import pytest

from catchdeal.parsers import listing
from catchdeal.parsers.embedded import MIN_PAYLOAD_CHARS
from catchdeal.parsers.listing import parse_listing, price_tokens


def _card(href, title, *prices):
    spans = "".join(f"<span>{p}</span>" for p in prices)
    return f'<li class="search-product"><a href="{href}">{title}</a>{spans}</li>'


def test_dom_card_yields_price_and_original():
    html = f"<html><body><ul>{_card('/np/products/77', 'Wireless Earbuds Pro', '49,000', '98,000')}</ul></body></html>"
    products = parse_listing(html)
    assert len(products) == 1
    item = products[0]
    assert item.price == 49000
    assert item.original_price == 98000
    assert item.discount_rate == 50
    assert item.link == "https://www.coupang.com/np/products/77"
    assert item.title == "Wireless Earbuds Pro"


def test_dom_swaps_reversed_prices():
    html = f"<ul>{_card('/np/products/1', 'Robot Vacuum', '98,000원', '49,000원')}</ul>"
    item = parse_listing(html)[0]
    assert (item.price, item.original_price, item.discount_rate) == (49000, 98000, 50)


def test_dom_single_price_has_no_discount():
    item = parse_listing(f"<ul>{_card('/np/products/2', 'Monitor Arm', '35,500원')}</ul>")[0]
    assert item.price == 35500
    assert item.original_price is None
    assert item.discount_rate == 0


def test_dom_dedupes_links_differing_by_query():
    html = "<ul>" + _card("/np/products/5?src=a", "Desk Lamp A", "12,000") + _card(
        "/np/products/5?src=b", "Desk Lamp B", "13,000"
    ) + "</ul>"
    products = parse_listing(html)
    assert len(products) == 1
    assert products[0].title == "Desk Lamp A"


def test_dom_skips_cards_without_prices():
    html = "<div><a href='/np/products/3'>Mystery box</a></div>"
    assert parse_listing(html) == []


def test_dom_title_falls_back_to_label_then_hint():
    html = """
    <ul>
      <li><a href="/np/products/8" aria-label="Standing Desk Frame"><img src="a.png"></a><em>210,000원</em></li>
      <li><a href="/np/products/9"><img src="b.png"></a><div class="name">Ergonomic Chair</div><em>189,000원</em></li>
    </ul>
    """
    titles = [p.title for p in parse_listing(html)]
    assert titles == ["Standing Desk Frame", "Ergonomic Chair"]


def test_price_tokens_apply_magnitude_window():
    assert price_tokens("256GB 99원 1,200 ₩ 150,000,000 3,400원") == [1200, 3400]


def test_embedded_data_takes_precedence(monkeypatch):
    payload = json.dumps({
        "pad": "x" * MIN_PAYLOAD_CHARS,
        "items": [{"name": "From JSON", "price": 10000, "productId": 1}],
    })
    html = f'<script type="application/json">{payload}</script>' + _card("/np/products/2", "From DOM", "20,000")

    def boom(*args, **kwargs):
        raise AssertionError("DOM heuristic must not run")

    monkeypatch.setattr(listing, "parse_dom", boom)
    products = parse_listing(html)
    assert [p.title for p in products] == ["From JSON"]


@pytest.mark.parametrize("html", ["", "<html></html>", "<p>nothing to see 1,000</p>"])
def test_empty_pages_return_empty_list(html):
    assert parse_listing(html) == []
