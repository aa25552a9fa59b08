"""Page driver: the narrow browser surface the scanners depend on."""

import asyncio
import logging
from abc import ABC, abstractmethod

import requests
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from catchdeal.errors import ConnectionFailure, NavigationTimeout

logger = logging.getLogger(__name__)


class PageHandle(ABC):
    """One open tab. Scoped to the operation that opened it."""

    @abstractmethod
    async def goto(self, url: str, timeout_ms: int) -> None:
        """Navigate and wait for DOM-ready; raise NavigationTimeout on budget overrun."""

    @abstractmethod
    async def wait_for(self, selector: str, timeout_ms: int) -> bool:
        """Wait for a selector to appear. False when it never does."""

    @abstractmethod
    async def html(self) -> str:
        """Serialized markup of the top-level document."""

    @abstractmethod
    async def frame_html(self, name: str) -> str | None:
        """Markup of the named embedded frame, or None when absent."""

    @abstractmethod
    async def close(self) -> None:
        ...


class PageDriver(ABC):
    """A shared browsing context that hands out pages."""

    @abstractmethod
    async def open_page(self) -> PageHandle:
        ...

    @abstractmethod
    async def add_cookies(self, cookies: list[dict]) -> None:
        ...

    @abstractmethod
    async def cookies(self) -> list[dict]:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...


class PlaywrightPage(PageHandle):
    def __init__(self, page):
        self._page = page

    async def goto(self, url: str, timeout_ms: int) -> None:
        try:
            await self._page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationTimeout(f"{url} not loaded within {timeout_ms} ms") from e

    async def wait_for(self, selector: str, timeout_ms: int) -> bool:
        try:
            await self._page.wait_for_selector(selector, timeout=timeout_ms)
            return True
        except PlaywrightTimeoutError:
            return False

    async def html(self) -> str:
        return await self._page.content()

    async def frame_html(self, name: str) -> str | None:
        frame = self._page.frame(name=name)
        if frame is None:
            element = await self._page.query_selector(f"iframe#{name}, iframe[name='{name}']")
            if element is not None:
                frame = await element.content_frame()
        if frame is None:
            return None
        try:
            await frame.wait_for_load_state("domcontentloaded")
        except PlaywrightTimeoutError:
            logger.debug("Frame %s never reached DOM-ready", name)
        return await frame.content()

    async def close(self) -> None:
        try:
            await self._page.close()
        except PlaywrightError as e:
            logger.debug("Page close failed: %s", e)


class PlaywrightDriver(PageDriver):
    """Driver attached to an externally launched Chrome over CDP."""

    def __init__(self, pw, browser, context):
        self._pw = pw
        self._browser = browser
        self._context = context

    async def open_page(self) -> PageHandle:
        return PlaywrightPage(await self._context.new_page())

    async def add_cookies(self, cookies: list[dict]) -> None:
        await self._context.add_cookies(cookies)

    async def cookies(self) -> list[dict]:
        return await self._context.cookies()

    async def close(self) -> None:
        # Disconnects only; the user's Chrome keeps running.
        try:
            await self._browser.close()
        except PlaywrightError as e:
            logger.debug("Browser disconnect failed: %s", e)
        await self._pw.stop()


async def discover_ws_endpoint(
    discovery_url: str,
    attempts: int = 5,
    interval: float = 2.0,
    sleep=asyncio.sleep,
) -> str:
    """
    Poll the DevTools discovery endpoint for the browser WebSocket URL.

    Each failed probe is treated as transient. Raises ConnectionFailure once
    all attempts are used up.
    """
    version_url = discovery_url.rstrip("/") + "/json/version"
    last_error = "no response"
    for attempt in range(1, attempts + 1):
        try:
            resp = await asyncio.to_thread(requests.get, version_url, timeout=5)
            resp.raise_for_status()
            ws_url = resp.json().get("webSocketDebuggerUrl")
            if ws_url:
                return ws_url
            last_error = "response has no webSocketDebuggerUrl"
        except (requests.RequestException, ValueError) as e:
            last_error = str(e)
        logger.debug("CDP discovery attempt %d/%d failed: %s", attempt, attempts, last_error)
        if attempt < attempts:
            await sleep(interval)
    raise ConnectionFailure(
        f"Chrome debugging endpoint {discovery_url} unreachable after {attempts} attempts: {last_error}"
    )


async def connect_browser(discovery_url: str, attempts: int = 5, interval: float = 2.0) -> PlaywrightDriver:
    """Find the running Chrome, attach to it and reuse its first context."""
    ws_url = await discover_ws_endpoint(discovery_url, attempts, interval)
    pw = await async_playwright().start()
    try:
        browser = await pw.chromium.connect_over_cdp(ws_url)
        contexts = browser.contexts
        context = contexts[0] if contexts else await browser.new_context()
    except PlaywrightError as e:
        await pw.stop()
        raise ConnectionFailure(f"CDP attach to {ws_url} failed: {e}") from e
    return PlaywrightDriver(pw, browser, context)
