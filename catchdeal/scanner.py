"""Board and category scanners: one pass over the configured pages."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable

from catchdeal.browser import PageDriver, PageHandle
from catchdeal.cancellation import CancelToken
from catchdeal.comparator import build_trade_record, matches_filter
from catchdeal.config import BOARD_FRAME, Settings
from catchdeal.dissection import DissectionQueue
from catchdeal.errors import NavigationTimeout, PersistenceError
from catchdeal.events import EventSink
from catchdeal.models import (
    CandidateLink,
    EngineStatus,
    ExtractedLink,
    FilterConfig,
    ScannedProduct,
    Sector,
    Source,
)
from catchdeal.parsers import (
    extract_outbound_links,
    parse_listing,
    parse_post_links,
    parse_product_page,
    split_commerce_links,
)
from catchdeal.parsers.listing import PRODUCT_LINK_SELECTOR
from catchdeal.storage import TradeStore

logger = logging.getLogger(__name__)

LISTING_RENDER_TIMEOUT_MS = 12_000


def _short(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit] + "…"


@dataclass
class ScanHooks:
    """Callbacks through which the scheduler observes a pass."""

    set_status: Callable[[EngineStatus], None]
    on_scan: Callable[[], None]
    on_link: Callable[[ExtractedLink], None]
    on_success: Callable[[int], None]


class BoardScanner:
    """Board list → keyword posts → outbound commerce links → dissection."""

    def __init__(
        self,
        settings: Settings,
        queue: DissectionQueue,
        events: EventSink,
        hooks: ScanHooks,
        sleep=asyncio.sleep,
    ):
        self.settings = settings
        self.queue = queue
        self.events = events
        self.hooks = hooks
        self._sleep = sleep

    async def _load(self, page: PageHandle, url: str, timeout_ms: int) -> None:
        await page.goto(url, timeout_ms)
        await self._sleep(self.settings.settle_seconds)

    async def read_post_links(self, page: PageHandle, list_url: str, keyword: str) -> list[CandidateLink]:
        """Keyword posts on a list page, looking inside the board frame if the top document has none."""
        await self._load(page, list_url, self.settings.list_timeout_ms)
        posts = parse_post_links(await page.html(), keyword)
        if posts:
            return posts
        frame = await page.frame_html(BOARD_FRAME)
        return parse_post_links(frame, keyword) if frame else []

    async def read_outbound_links(self, page: PageHandle, post_url: str) -> list[str]:
        """Outbound links of a post body; the board frame wins when present."""
        await self._load(page, post_url, self.settings.post_timeout_ms)
        frame = await page.frame_html(BOARD_FRAME)
        if frame:
            links = extract_outbound_links(frame)
            if links:
                return links
        return extract_outbound_links(await page.html())

    async def scan(self, driver: PageDriver, sources: list[Source], token: CancelToken) -> None:
        """Scan each source in order; one failing source never stops the rest."""
        for source in sources:
            if token.cancelled:
                break
            try:
                await self.scan_source(driver, source, token)
            except NavigationTimeout as e:
                self.events.log(f"  → Timed out on {source.name or source.list_url}: {e}")
            except Exception as e:
                logger.exception("Board scan failed for %s", source.list_url)
                self.events.log(f"  → Error on {source.name or source.list_url}: {e}")

    async def scan_source(self, driver: PageDriver, source: Source, token: CancelToken) -> None:
        self.hooks.set_status(EngineStatus.SCANNING)
        self.events.log(f"Checking board: {source.name or source.list_url} (keyword: {source.keyword})")

        page = await driver.open_page()
        try:
            posts = await self.read_post_links(page, source.list_url, source.keyword)
        finally:
            await page.close()
        self.hooks.on_scan()

        if not posts:
            self.events.log("  → No posts match the keyword.")
            return
        self.events.log(f"  → {len(posts)} matching posts. Extracting links...")

        for post in posts:
            if token.cancelled:
                break
            self.events.log(f"  Post: {_short(post.title, 50)}")
            try:
                await self.scan_post(driver, post, token)
            except NavigationTimeout as e:
                self.events.log(f"    Post timed out: {e}")
            except Exception as e:
                logger.exception("Post scan failed for %s", post.url)
                self.events.log(f"    Post error: {e}")

    async def scan_post(self, driver: PageDriver, post: CandidateLink, token: CancelToken) -> None:
        page = await driver.open_page()
        try:
            links = await self.read_outbound_links(page, post.url)
        finally:
            await page.close()

        commerce, other = split_commerce_links(links)
        if not commerce:
            if other:
                more = "…" if len(other) > 3 else ""
                self.events.log(f"    {len(other)} links: {', '.join(other[:3])}{more}")
            else:
                self.events.log("    (no links in post)")
            return

        self.events.log(f"    {len(links)} links ({len(commerce)} commerce). Dissecting...")
        for url in commerce:
            link = ExtractedLink(url=url, post_title=post.title)
            self.hooks.on_link(link)
            self.queue.push(link)

        self.hooks.set_status(EngineStatus.PURCHASING)
        succeeded = await self.queue.drain(driver, token)
        if succeeded:
            self.hooks.on_success(succeeded)
        self.hooks.set_status(EngineStatus.SCANNING)


class PriceConfirmAction:
    """
    Default deal action: re-open the product page and confirm the price held.

    Checkout needs the stored payment secret, so it is left to the host.
    """

    def __init__(self, timeout_ms: int = 12_000, settle_seconds: float = 0.8, sleep=asyncio.sleep):
        self.timeout_ms = timeout_ms
        self.settle_seconds = settle_seconds
        self._sleep = sleep

    async def __call__(self, driver: PageDriver, product: ScannedProduct) -> bool:
        page = await driver.open_page()
        try:
            await page.goto(product.link, self.timeout_ms)
            await self._sleep(self.settle_seconds)
            live = parse_product_page(await page.html())
        finally:
            await page.close()
        return live is not None and live.price <= product.price


class CategoryScanner:
    """Category listing → filter → deal action → trade log."""

    def __init__(
        self,
        settings: Settings,
        events: EventSink,
        hooks: ScanHooks,
        store: TradeStore,
        user_id: str,
        action=None,
        sleep=asyncio.sleep,
    ):
        self.settings = settings
        self.events = events
        self.hooks = hooks
        self.store = store
        self.user_id = user_id
        self.action = action or PriceConfirmAction(sleep=sleep)
        self._sleep = sleep

    async def read_listing(self, driver: PageDriver, url: str) -> str:
        page = await driver.open_page()
        try:
            await page.goto(url, self.settings.list_timeout_ms)
            # Results render client-side; wait for the first product link
            await page.wait_for(PRODUCT_LINK_SELECTOR, LISTING_RENDER_TIMEOUT_MS)
            await self._sleep(self.settings.settle_seconds)
            return await page.html()
        finally:
            await page.close()

    async def scan(
        self, driver: PageDriver, sectors: list[Sector], filter_config: FilterConfig, token: CancelToken
    ) -> None:
        for sector in sectors:
            if token.cancelled:
                break
            try:
                await self.scan_sector(driver, sector, filter_config, token)
            except NavigationTimeout as e:
                self.events.log(f"Timed out on {sector.category_url}: {e}")
            except Exception as e:
                logger.exception("Category scan failed for %s", sector.category_url)
                self.events.log(f"Error on {sector.category_url}: {e}")

    async def scan_sector(
        self, driver: PageDriver, sector: Sector, filter_config: FilterConfig, token: CancelToken
    ) -> None:
        self.hooks.set_status(EngineStatus.SCANNING)
        self.events.log(f"Scanning: {sector.name or sector.category_url}")
        html = await self.read_listing(driver, sector.category_url)
        self.hooks.on_scan()

        items = parse_listing(html)
        if not items:
            if "access denied" in html.lower():
                self.events.log("→ Access Denied: the storefront blocked this browser as a bot.")
            else:
                self.events.log("No products found on this page (layout may have changed).")
            return
        self.events.log(f"{len(items)} products loaded. Checking...")

        for item in items:
            if token.cancelled:
                break
            self.events.log(f"Check: {_short(item.title, 40)} | {item.price:,}원 ({item.discount_rate}% off)")
            if not matches_filter(item, filter_config):
                continue
            self.events.log(f"Found! {item.title} | {item.price}원 ({item.discount_rate}%)")
            self.hooks.set_status(EngineStatus.PURCHASING)
            try:
                done = await self.action(driver, item)
            except Exception as e:
                logger.exception("Deal action failed for %s", item.link)
                self.events.log(f"Deal action failed: {e}")
                done = False
            self.hooks.set_status(EngineStatus.SCANNING)
            if done:
                self.hooks.on_success(1)
                self.record_trade(item)

    def record_trade(self, item: ScannedProduct) -> None:
        try:
            self.store.save_trade(build_trade_record(item, self.user_id))
            self.events.log("Deal recorded → trade log")
        except PersistenceError as e:
            logger.warning("Trade log write failed: %s", e)
            self.events.log(f"Trade log write failed: {e}")
