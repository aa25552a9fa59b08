from datetime import date

from catchdeal.models import (
    DailyStats,
    DissectedProduct,
    ExtractedLink,
    LinkStatus,
    discount_rate,
    round_half_up,
)


def test_discount_rate_rounds_half_up():
    assert discount_rate(49000, 98000) == 50
    # 1 - 7/8 = 12.5%
    assert discount_rate(7, 8) == 13
    assert discount_rate(139000, 279000) == 50


def test_discount_rate_without_a_higher_original_is_zero():
    assert discount_rate(1000, None) == 0
    assert discount_rate(1000, 0) == 0
    assert discount_rate(1000, 1000) == 0
    assert discount_rate(1000, 900) == 0


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(2.49) == 2


def test_extracted_link_lifecycle():
    link = ExtractedLink(url="https://link.coupang.com/a/abc", post_title="deal")
    assert link.status == LinkStatus.PENDING

    link.mark_success(DissectedProduct(name="Lamp", price=9000, discount_rate=10, original_price=10000))
    data = link.to_dict()
    assert data["status"] == "success"
    assert data["product_name"] == "Lamp"
    assert data["original_price"] == 10000
    assert data["failed_at"] is None

    other = ExtractedLink(url="https://link.coupang.com/a/def")
    other.mark_failed("product name/price not parseable (after 5 attempts)")
    assert other.status == LinkStatus.FAILED
    assert other.to_dict()["failed_at"] is not None


def test_daily_stats_roll_over():
    stats = DailyStats(scan_count=4, success_count=1, day=date(2024, 1, 1))
    stats.roll_over(date(2024, 1, 1))
    assert (stats.scan_count, stats.success_count) == (4, 1)
    stats.roll_over(date(2024, 1, 2))
    assert (stats.scan_count, stats.success_count, stats.day) == (0, 0, date(2024, 1, 2))
