import asyncio

from catchdeal.cancellation import CancelToken
from catchdeal.dissection import (
    AttemptFailed,
    DissectionQueue,
    Failed,
    Parsed,
    QueueEntry,
    Requeue,
    Success,
    step,
)
from catchdeal.errors import NavigationTimeout
from catchdeal.models import DissectedProduct, ExtractedLink, LinkStatus
from tests.fakes import BROKEN_PAGE, FakeDriver, RecordingSink, no_sleep, product_page

URL_A = "https://www.coupang.com/np/products/1"
URL_B = "https://www.coupang.com/np/products/2"


def _queue(sink, max_attempts=5):
    return DissectionQueue(sink, max_attempts=max_attempts, settle_seconds=0, sleep=no_sleep)


def test_step_transitions():
    entry = QueueEntry(ExtractedLink(url=URL_A))
    product = DissectedProduct(name="Lamp", price=1000)

    assert step(entry, Parsed(product)) == Success(product)

    result = step(entry, AttemptFailed("boom"))
    assert isinstance(result, Requeue)
    assert result.entry.attempts == 1
    assert result.entry.last_error == "boom"

    last = QueueEntry(entry.link, attempts=4)
    result = step(last, AttemptFailed("boom"), max_attempts=5)
    assert result == Failed("boom (after 5 attempts)", 5)


def test_success_marks_link_and_closes_page():
    sink = RecordingSink()
    driver = FakeDriver({URL_A: product_page()})
    queue = _queue(sink)
    link = ExtractedLink(url=URL_A, post_title="deal post")
    queue.push(link)

    succeeded = asyncio.run(queue.drain(driver, CancelToken()))

    assert succeeded == 1
    assert link.status == LinkStatus.SUCCESS
    assert link.product_name == "Galaxy Buds3 Pro"
    assert link.price == 139000
    assert link.discount_rate == 50
    assert sink.of_kind("extracted_link_updated") == [
        ("extracted_link_updated", URL_A, LinkStatus.SUCCESS, None)
    ]
    assert driver.open_pages == []
    assert len(queue) == 0


def test_link_fails_after_five_attempts():
    sink = RecordingSink()
    driver = FakeDriver({URL_A: BROKEN_PAGE})
    queue = _queue(sink)
    link = ExtractedLink(url=URL_A)
    queue.push(link)

    succeeded = asyncio.run(queue.drain(driver, CancelToken()))

    assert succeeded == 0
    assert driver.visits == [URL_A] * 5
    assert driver.open_pages == []
    assert link.status == LinkStatus.FAILED
    assert link.retry_count == 5
    assert link.failed_at is not None
    assert "after 5 attempts" in link.error_message
    updates = sink.of_kind("extracted_link_updated")
    assert len(updates) == 1
    assert updates[0][2] == LinkStatus.FAILED
    assert updates[0][3]


def test_failed_link_goes_behind_untried_links():
    sink = RecordingSink()
    driver = FakeDriver({URL_A: [BROKEN_PAGE, product_page()], URL_B: product_page(name="Desk Lamp")})
    queue = _queue(sink)
    a, b = ExtractedLink(url=URL_A), ExtractedLink(url=URL_B)
    queue.push(a)
    queue.push(b)

    succeeded = asyncio.run(queue.drain(driver, CancelToken()))

    assert driver.visits == [URL_A, URL_B, URL_A]
    assert succeeded == 2
    assert a.status == b.status == LinkStatus.SUCCESS
    assert a.retry_count == 1
    assert b.retry_count == 0


def test_timeouts_share_the_attempt_budget():
    sink = RecordingSink()
    driver = FakeDriver({URL_A: [NavigationTimeout("slow"), BROKEN_PAGE, product_page()]})
    queue = _queue(sink, max_attempts=3)
    link = ExtractedLink(url=URL_A)
    queue.push(link)

    assert asyncio.run(queue.drain(driver, CancelToken())) == 1
    assert driver.visits == [URL_A] * 3
    assert link.retry_count == 2
    assert link.status == LinkStatus.SUCCESS


def test_timeouts_alone_exhaust_the_budget():
    sink = RecordingSink()
    driver = FakeDriver({URL_A: NavigationTimeout("slow")})
    queue = _queue(sink, max_attempts=2)
    link = ExtractedLink(url=URL_A)
    queue.push(link)

    asyncio.run(queue.drain(driver, CancelToken()))

    assert link.status == LinkStatus.FAILED
    assert link.error_message == "slow (after 2 attempts)"


def test_cancelled_drain_leaves_links_pending():
    sink = RecordingSink()
    driver = FakeDriver({URL_A: product_page()})
    queue = _queue(sink)
    queue.push(ExtractedLink(url=URL_A))
    token = CancelToken()
    token.cancel()

    assert asyncio.run(queue.drain(driver, token)) == 0
    assert driver.visits == []
    assert len(queue) == 1


def test_cancel_between_links_stops_the_drain():
    sink = RecordingSink()
    token = CancelToken()

    class CancellingDriver(FakeDriver):
        async def open_page(self):
            page = await super().open_page()
            token.cancel()
            return page

    driver = CancellingDriver({URL_A: product_page(), URL_B: product_page()})
    queue = _queue(sink)
    a, b = ExtractedLink(url=URL_A), ExtractedLink(url=URL_B)
    queue.push(a)
    queue.push(b)

    assert asyncio.run(queue.drain(driver, token)) == 1
    assert driver.visits == [URL_A]
    assert b.status == LinkStatus.PENDING
    assert len(queue) == 1
