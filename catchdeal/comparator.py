"""Category filter and trade-record logic."""

from catchdeal.models import FilterConfig, ScannedProduct, TradeRecord, round_half_up

RESALE_MARKUP = 1.1


def matches_filter(product: ScannedProduct, filter_config: FilterConfig) -> bool:
    """
    Return True if the product clears the price floor and discount target
    and its title contains none of the excluded keywords.
    """
    if product.price < filter_config.min_price:
        return False
    if product.discount_rate < filter_config.target_discount_rate:
        return False
    title = product.title.casefold()
    return not any(kw and kw.casefold() in title for kw in filter_config.exclude_keywords)


def resale_price(buy_price: int) -> int:
    return round_half_up(buy_price * RESALE_MARKUP)


def build_trade_record(product: ScannedProduct, user_id: str) -> TradeRecord:
    return TradeRecord(
        user_id=user_id,
        product_name=product.title,
        buy_price=product.price,
        sell_price=resale_price(product.price),
        link=product.link,
    )
