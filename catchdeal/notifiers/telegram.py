"""Telegram push notification for dissected deals."""

import asyncio
import html
import logging
import os

import requests

from catchdeal.events import EventSink
from catchdeal.models import ExtractedLink, LinkStatus

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org/bot{token}/sendMessage"


def format_deal(link: ExtractedLink) -> str:
    # Sent with parse_mode=HTML; scraped text must be escaped
    name = html.escape((link.product_name or "")[:80])
    discount = f" (-{link.discount_rate}%)" if link.discount_rate else ""
    text = f"🔔 <b>Deal dissected</b>\n\n<b>{name}</b>\n\n💰 {link.price:,}원{discount}\n"
    if link.post_title:
        text += f"📝 {html.escape(link.post_title[:80])}\n"
    return text + f"\n{html.escape(link.url)}"


def send_telegram_message(text: str) -> bool:
    """
    Send a message via Telegram Bot API.

    Requires TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID.
    """
    token = os.environ.get("TELEGRAM_BOT_TOKEN")
    chat_id = os.environ.get("TELEGRAM_CHAT_ID")

    if not token or not chat_id:
        logger.debug("Telegram: TELEGRAM_BOT_TOKEN or TELEGRAM_CHAT_ID not set")
        return False

    payload = {
        "chat_id": chat_id,
        "text": text,
        "parse_mode": "HTML",
        "disable_web_page_preview": True,
    }

    try:
        resp = requests.post(TELEGRAM_API.format(token=token), json=payload, timeout=10)
        logger.debug("Telegram response status: %d", resp.status_code)
        if resp.status_code != 200:
            logger.error("Telegram error (status %d): %s", resp.status_code, resp.text)
        resp.raise_for_status()
        return True
    except requests.exceptions.RequestException as e:
        logger.error("Telegram request failed: %s", e)
        return False


class TelegramEventSink(EventSink):
    """
    Push each successfully dissected link to a Telegram chat.

    Inside a running event loop the HTTP call goes to the default executor,
    so a slow Bot API never stalls the scan loop.
    """

    def __init__(self):
        self._pending: set[asyncio.Future] = set()

    def extracted_link_updated(self, link: ExtractedLink) -> None:
        if link.status != LinkStatus.SUCCESS:
            return
        text = format_deal(link)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._deliver(link.url, text)
            return
        future = loop.run_in_executor(None, self._deliver, link.url, text)
        self._pending.add(future)
        future.add_done_callback(self._finished)

    def _deliver(self, url: str, text: str) -> None:
        if send_telegram_message(text):
            logger.info("📱 Telegram sent for %s", url)

    def _finished(self, future: asyncio.Future) -> None:
        self._pending.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.error("Telegram delivery failed: %s", future.exception())

    async def flush(self) -> None:
        """Wait for notifications still in flight."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
