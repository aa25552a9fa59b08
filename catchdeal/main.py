"""Entry point for the CatchDeal watcher."""

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parents[1] / ".env")

from catchdeal.config import Settings
from catchdeal.engine import Engine
from catchdeal.events import FanoutEventSink, LoggingEventSink
from catchdeal.notifiers import TelegramEventSink

logging.basicConfig(
    level=getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Watch cafe boards for deal posts and dissect their links")
    sub = p.add_subparsers(dest="command")

    run = sub.add_parser("run", help="Run the scan loop until interrupted")
    run.add_argument("--cycles", type=int, default=None, help="Stop after this many cycles")

    links = sub.add_parser("links", help="List keyword-matching posts on a board once")
    links.add_argument("--url", required=True, help="Board list URL")
    links.add_argument("--keyword", required=True, help="Keyword the post title must contain")

    trades = sub.add_parser("trades", help="Show recently recorded trades")
    trades.add_argument("--limit", type=int, default=100, help="Maximum rows to show")
    return p.parse_args(argv)


def build_engine(settings: Settings) -> Engine:
    sinks = [LoggingEventSink()]
    if os.environ.get("TELEGRAM_BOT_TOKEN") and os.environ.get("TELEGRAM_CHAT_ID"):
        sinks.append(TelegramEventSink())
    return Engine(settings, events=FanoutEventSink(*sinks))


async def run(engine: Engine, cycles: int | None) -> int:
    result = await engine.start(max_cycles=cycles)
    if not result.ok:
        logger.error("Cannot start: %s", result.error)
        return 1

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, engine.stop)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    await engine.wait()
    stats = engine.get_daily_stats()
    logger.info("Done: %d scans, %d successes today", stats.scan_count, stats.success_count)
    return 0


async def preview(engine: Engine, url: str, keyword: str) -> int:
    result = await engine.fetch_post_links(url, keyword)
    if not result.ok:
        logger.error("Lookup failed: %s", result.error)
        return 1
    if not result.links:
        logger.info("No posts match %r", keyword)
    for link in result.links:
        print(f"{link.title}\t{link.url}")
    return 0


def show_trades(engine: Engine, limit: int) -> int:
    rows = engine.get_trade_logs(limit)
    if not rows:
        logger.info("No trades recorded")
    for row in rows:
        print(f"{row['created_at']}\t{row['product_name']}\t{row['buy_price']:,} -> {row['sell_price']:,}\t{row['link']}")
    return 0


def main() -> None:
    args = parse_args()
    settings = Settings.from_env()
    engine = build_engine(settings)
    logger.info("🚀 CatchDeal watcher started")

    if args.command == "trades":
        code = show_trades(engine, args.limit)
    elif args.command == "links":
        code = asyncio.run(preview(engine, args.url, args.keyword))
    else:
        code = asyncio.run(run(engine, getattr(args, "cycles", None)))
    sys.exit(code)


if __name__ == "__main__":
    main()
