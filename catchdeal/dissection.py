"""
Dissection queue: load extracted links one at a time and parse them.

A link that fails to load or parse goes to the back of the queue, behind
links not yet tried, until it has used up ``max_attempts``. The retry policy
lives in ``step`` so it can be exercised without a browser.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass

from catchdeal.browser import PageDriver
from catchdeal.cancellation import CancelToken
from catchdeal.errors import ParseFailure
from catchdeal.events import EventSink
from catchdeal.models import DissectedProduct, ExtractedLink
from catchdeal.parsers.product import parse_product_page

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5


@dataclass(frozen=True)
class QueueEntry:
    link: ExtractedLink
    attempts: int = 0
    last_error: str | None = None


# Attempt outcomes
@dataclass(frozen=True)
class Parsed:
    product: DissectedProduct


@dataclass(frozen=True)
class AttemptFailed:
    error: str


# Transitions
@dataclass(frozen=True)
class Success:
    product: DissectedProduct


@dataclass(frozen=True)
class Requeue:
    entry: QueueEntry


@dataclass(frozen=True)
class Failed:
    reason: str
    attempts: int


def step(entry: QueueEntry, outcome, max_attempts: int = MAX_ATTEMPTS):
    """Decide what happens to ``entry`` after one dissection attempt."""
    if isinstance(outcome, Parsed):
        return Success(outcome.product)
    attempts = entry.attempts + 1
    if attempts < max_attempts:
        return Requeue(QueueEntry(entry.link, attempts, outcome.error))
    return Failed(f"{outcome.error} (after {attempts} attempts)", attempts)


class DissectionQueue:
    """FIFO of pending links, drained serially against one page driver."""

    def __init__(
        self,
        events: EventSink,
        max_attempts: int = MAX_ATTEMPTS,
        timeout_ms: int = 15_000,
        settle_seconds: float = 1.5,
        sleep=asyncio.sleep,
    ):
        self.events = events
        self.max_attempts = max_attempts
        self.timeout_ms = timeout_ms
        self.settle_seconds = settle_seconds
        self._sleep = sleep
        self._pending: deque[QueueEntry] = deque()

    def __len__(self) -> int:
        return len(self._pending)

    def push(self, link: ExtractedLink) -> None:
        self._pending.append(QueueEntry(link))

    async def attempt(self, driver: PageDriver, url: str):
        """Open ``url`` in a fresh page and parse it. The page is always closed."""
        page = None
        try:
            page = await driver.open_page()
            await page.goto(url, self.timeout_ms)
            await self._sleep(self.settle_seconds)
            product = parse_product_page(await page.html())
            if product is None:
                raise ParseFailure("product name/price not parseable")
            return Parsed(product)
        except ParseFailure as e:
            return AttemptFailed(str(e))
        except Exception as e:
            logger.debug("Dissection of %s raised", url, exc_info=True)
            return AttemptFailed(str(e) or type(e).__name__)
        finally:
            if page is not None:
                await page.close()

    async def drain(self, driver: PageDriver, token: CancelToken) -> int:
        """
        Process pending links until empty or cancelled.

        Cancellation leaves the remaining entries pending. Returns the
        number of links dissected successfully.
        """
        succeeded = 0
        while self._pending and not token.cancelled:
            entry = self._pending.popleft()
            link = entry.link
            self.events.log(f"    Opening {link.url}")
            result = step(entry, await self.attempt(driver, link.url), self.max_attempts)

            if isinstance(result, Success):
                link.mark_success(result.product)
                self.events.log(f"    Dissected: {result.product.name[:30]}… {result.product.price:,}원")
                self.events.extracted_link_updated(link)
                succeeded += 1
            elif isinstance(result, Requeue):
                link.retry_count = result.entry.attempts
                self._pending.append(result.entry)
                self.events.log(
                    f"    Dissection failed ({result.entry.attempts}/{self.max_attempts}): "
                    f"{result.entry.last_error}; moved to the back"
                )
            else:
                link.retry_count = result.attempts
                link.mark_failed(result.reason)
                self.events.log(f"    Dissection abandoned: {result.reason}")
                self.events.extracted_link_updated(link)
        return succeeded
