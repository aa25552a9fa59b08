"""
The engine: owns status, daily stats and link history, and runs the cycle loop.

One Engine is built per process. ``start`` validates configuration and
launches the loop as a background task; ``stop`` cancels it cooperatively.
"""

import asyncio
import dataclasses
import logging
from collections import deque
from dataclasses import dataclass, field

from catchdeal.auth import Credentials, load_cookies, load_credentials
from catchdeal.browser import PageDriver, connect_browser
from catchdeal.cancellation import CancelToken
from catchdeal.config import Settings, load_app_config
from catchdeal.dissection import DissectionQueue
from catchdeal.errors import ConfigurationError, ConnectionFailure, NavigationTimeout, PersistenceError
from catchdeal.events import EventSink, LoggingEventSink
from catchdeal.models import AppConfig, CandidateLink, DailyStats, EngineStatus, ExtractedLink
from catchdeal.scanner import BoardScanner, CategoryScanner, ScanHooks
from catchdeal.storage import TradeStore

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    ok: bool
    error: str | None = None


@dataclass
class PreviewResult:
    ok: bool
    links: list[CandidateLink] = field(default_factory=list)
    error: str | None = None


class Engine:
    def __init__(
        self,
        settings: Settings,
        events: EventSink | None = None,
        config_loader=None,
        credentials_loader=None,
        cookies_loader=None,
        driver_factory=None,
        store: TradeStore | None = None,
        deal_action=None,
        sleep=asyncio.sleep,
    ):
        self.settings = settings
        self.events = events or LoggingEventSink()
        self._load_config = config_loader or (lambda: load_app_config(settings.config_path))
        self._load_credentials = credentials_loader or load_credentials
        self._load_cookies = cookies_loader or (lambda: load_cookies(settings.cookies_path))
        self._driver_factory = driver_factory or (
            lambda: connect_browser(
                settings.cdp_discovery_url,
                settings.cdp_discovery_attempts,
                settings.cdp_discovery_interval,
            )
        )
        self.store = store or TradeStore()
        self.deal_action = deal_action
        self._sleep = sleep

        self._status = EngineStatus.IDLE
        self._stats = DailyStats()
        self._links: deque[ExtractedLink] = deque(maxlen=settings.history_limit)
        self._token: CancelToken | None = None
        self._task: asyncio.Task | None = None

        self.hooks = ScanHooks(
            set_status=self._phase,
            on_scan=self._count_scan,
            on_link=self.record_link,
            on_success=self._count_success,
        )
        self.queue = DissectionQueue(
            self.events,
            max_attempts=settings.max_dissect_attempts,
            timeout_ms=settings.product_timeout_ms,
            settle_seconds=settings.settle_seconds,
            sleep=sleep,
        )
        self.board = BoardScanner(settings, self.queue, self.events, self.hooks, sleep=sleep)

    # -- commands -----------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, max_cycles: int | None = None) -> CommandResult:
        """Validate configuration and launch the cycle loop in the background."""
        if self.running:
            return CommandResult(False, "Already running")
        try:
            credentials, cookies = self._validate()
        except ConfigurationError as e:
            return CommandResult(False, str(e))

        self._token = CancelToken()
        self._stats.roll_over()
        self._set_status(EngineStatus.SCANNING)
        self._task = asyncio.create_task(self._run(credentials, cookies, self._token, max_cycles))
        return CommandResult(True)

    def _validate(self) -> tuple[Credentials, list[dict]]:
        credentials = self._load_credentials()
        if credentials is None:
            raise ConfigurationError("Login required: no session credentials configured.")
        config = self._load_config()
        if not config.enabled_sources() and not config.enabled_sectors():
            raise ConfigurationError("Add at least one enabled cafe source (list URL and keyword) or category.")
        cookies = self._load_cookies()
        if config.enabled_sectors() and not cookies:
            raise ConfigurationError("Category scanning needs the storefront login cookies; import them first.")
        return credentials, cookies

    def stop(self) -> CommandResult:
        if self._token is not None:
            self._token.cancel()
        self._set_status(EngineStatus.STOPPED)
        return CommandResult(True)

    async def wait(self) -> None:
        """Block until the background loop has unwound."""
        if self._task is not None:
            await self._task

    def get_status(self) -> EngineStatus:
        return self._status

    def get_daily_stats(self) -> DailyStats:
        self._stats.roll_over()
        return dataclasses.replace(self._stats)

    def get_extracted_links(self) -> list[ExtractedLink]:
        return [dataclasses.replace(link) for link in self._links]

    def get_trade_logs(self, limit: int = 100) -> list[dict]:
        """Recent completed trades of the signed-in user, newest first."""
        credentials = self._load_credentials()
        if credentials is None:
            return []
        try:
            self.store.init_db()
            return self.store.recent_trades(credentials.user_id, limit)
        except PersistenceError as e:
            logger.warning("Trade log unavailable: %s", e)
            return []

    async def fetch_post_links(self, list_url: str, keyword: str) -> PreviewResult:
        """One-shot keyword preview of a board list page, outside the loop."""
        if not list_url.strip() or not keyword.strip():
            return PreviewResult(False, error="Enter both a board list URL and a keyword.")
        driver = None
        try:
            driver = await self._driver_factory()
            page = await driver.open_page()
            try:
                links = await self.board.read_post_links(page, list_url, keyword)
            finally:
                await page.close()
            return PreviewResult(True, links)
        except (ConnectionFailure, NavigationTimeout) as e:
            return PreviewResult(False, error=str(e))
        except Exception as e:
            logger.exception("Post link preview failed for %s", list_url)
            return PreviewResult(False, error=str(e) or type(e).__name__)
        finally:
            if driver is not None:
                await driver.close()

    # -- state --------------------------------------------------------------

    def _set_status(self, status: EngineStatus) -> None:
        self._status = status
        self.events.status(status)

    def _phase(self, status: EngineStatus) -> None:
        # Sub-phase changes after a stop request must not overwrite "stopped"
        if self._token is not None and self._token.cancelled:
            return
        if status != self._status:
            self._set_status(status)

    def _count_scan(self) -> None:
        self._stats.roll_over()
        self._stats.scan_count += 1

    def _count_success(self, n: int) -> None:
        self._stats.roll_over()
        self._stats.success_count += n

    def record_link(self, link: ExtractedLink) -> None:
        self._links.append(link)
        self.events.extracted_link(link)

    def _log(self, line: str) -> None:
        self.events.log(line)

    # -- loop ---------------------------------------------------------------

    async def _run(
        self, credentials: Credentials, cookies: list[dict], token: CancelToken, max_cycles: int | None
    ) -> None:
        driver = None
        try:
            try:
                driver = await self._driver_factory()
            except ConnectionFailure as e:
                self._log(f"Connection failed: {e}")
                self._set_status(EngineStatus.ERROR)
                return
            self._log("Attached to Chrome (debugging mode). Starting scan.")
            if cookies:
                await driver.add_cookies(cookies)
            await self.run_cycles(driver, credentials, token, max_cycles)
        except Exception as e:
            logger.exception("Scanner crashed")
            self._log(f"Scanner error: {e}")
            self._set_status(EngineStatus.ERROR)
            return
        finally:
            if driver is not None:
                await driver.close()

        if token.cancelled:
            self._log("Scanner stopped.")
        else:
            self._set_status(EngineStatus.IDLE)

    async def run_cycles(
        self, driver: PageDriver, credentials: Credentials, token: CancelToken, max_cycles: int | None = None
    ) -> None:
        """Scan every enabled source, wait out the delay, repeat until cancelled."""
        category = CategoryScanner(
            self.settings,
            self.events,
            self.hooks,
            self.store,
            credentials.user_id,
            action=self.deal_action,
            sleep=self._sleep,
        )
        store_ready = False
        cycles = 0
        while not token.cancelled:
            config: AppConfig = self._load_config()
            sources, sectors = config.enabled_sources(), config.enabled_sectors()

            if len(self.queue):
                self._log(f"Resuming {len(self.queue)} pending links.")
                self._phase(EngineStatus.PURCHASING)
                succeeded = await self.queue.drain(driver, token)
                if succeeded:
                    self._count_success(succeeded)

            if sources:
                await self.board.scan(driver, sources, token)
            if sectors and not token.cancelled:
                if not store_ready:
                    store_ready = self._init_store()
                await category.scan(driver, sectors, config.filter, token)
            if not sources and not sectors:
                self._log("No enabled sources in the current config; skipping this cycle.")

            cycles += 1
            if token.cancelled or (max_cycles is not None and cycles >= max_cycles):
                break
            self._log("Cycle complete. Waiting for the next cycle...")
            await self._delay(token)

    def _init_store(self) -> bool:
        try:
            self.store.init_db()
            return True
        except PersistenceError as e:
            logger.warning("Trade log unavailable: %s", e)
            self._log(f"Trade log unavailable: {e}")
            return False

    async def _delay(self, token: CancelToken) -> None:
        """Inter-cycle wait in one-second ticks, each re-checking the token."""
        for _ in range(self.settings.cycle_delay_seconds):
            if token.cancelled:
                return
            await self._sleep(1)
