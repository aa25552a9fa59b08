"""Runtime settings from the environment and the JSON app config."""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

from catchdeal.models import AppConfig, FilterConfig, Sector, Source

logger = logging.getLogger(__name__)

COMMERCE_BASE = "https://www.coupang.com"
COMMERCE_DOMAIN = "coupang.com"
PRODUCT_PATH = "/np/products/"
BOARD_BASE = "https://cafe.naver.com"
BOARD_DOMAIN = "cafe.naver.com"
BOARD_FRAME = "cafe_main"


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        logger.warning("%s is not an integer; using %d", name, default)
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except ValueError:
        logger.warning("%s is not a number; using %s", name, default)
        return default


@dataclass
class Settings:
    """Scalar knobs for the engine, overridable through env vars."""

    config_path: Path = Path("config.json")
    cookies_path: Path = Path("cookies.json")
    cdp_discovery_url: str = "http://127.0.0.1:9222"
    cdp_discovery_attempts: int = 5
    cdp_discovery_interval: float = 2.0
    cycle_delay_seconds: int = 15
    settle_seconds: float = 2.0
    list_timeout_ms: int = 20_000
    post_timeout_ms: int = 15_000
    product_timeout_ms: int = 15_000
    max_dissect_attempts: int = 5
    history_limit: int = 200

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            config_path=Path(os.environ.get("CATCHDEAL_CONFIG", "config.json")),
            cookies_path=Path(os.environ.get("CATCHDEAL_COOKIES", "cookies.json")),
            cdp_discovery_url=os.environ.get("CDP_DISCOVERY_URL", "http://127.0.0.1:9222"),
            cdp_discovery_attempts=_env_int("CDP_DISCOVERY_ATTEMPTS", 5),
            cdp_discovery_interval=_env_float("CDP_DISCOVERY_INTERVAL_SECONDS", 2.0),
            cycle_delay_seconds=_env_int("CYCLE_DELAY_SECONDS", 15),
            settle_seconds=_env_float("SETTLE_SECONDS", 2.0),
            max_dissect_attempts=_env_int("MAX_DISSECT_ATTEMPTS", 5),
            history_limit=_env_int("HISTORY_LIMIT", 200),
        )


def _as_int(value, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _parse_filter(raw) -> FilterConfig:
    defaults = FilterConfig()
    if not isinstance(raw, dict):
        return defaults
    keywords = raw.get("excludeKeywords", defaults.exclude_keywords)
    if not isinstance(keywords, list):
        keywords = defaults.exclude_keywords
    return FilterConfig(
        min_price=_as_int(raw.get("minPrice"), defaults.min_price),
        target_discount_rate=_as_int(raw.get("targetDiscountRate"), defaults.target_discount_rate),
        exclude_keywords=[str(k) for k in keywords if k],
    )


def _parse_sources(raw) -> list[Source]:
    sources: list[Source] = []
    for i, item in enumerate(raw if isinstance(raw, list) else []):
        if not isinstance(item, dict) or not item.get("cafeListUrl"):
            logger.warning("Skipping malformed cafe source #%d", i)
            continue
        sources.append(
            Source(
                id=str(item.get("id") or i),
                name=str(item.get("name") or ""),
                list_url=str(item["cafeListUrl"]),
                keyword=str(item.get("keyword") or ""),
                enabled=bool(item.get("enabled", True)),
            )
        )
    return sources


def _parse_sectors(raw) -> list[Sector]:
    sectors: list[Sector] = []
    for i, item in enumerate(raw if isinstance(raw, list) else []):
        if not isinstance(item, dict) or not item.get("categoryUrl"):
            logger.warning("Skipping malformed sector #%d", i)
            continue
        sectors.append(
            Sector(
                id=str(item.get("id") or i),
                name=str(item.get("name") or ""),
                category_url=str(item["categoryUrl"]),
                enabled=bool(item.get("enabled", True)),
            )
        )
    return sectors


def parse_app_config(text: str) -> AppConfig:
    """Build an AppConfig from JSON text; malformed input yields defaults."""
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        logger.warning("App config is not valid JSON (%s); using defaults", e)
        return AppConfig()
    if not isinstance(data, dict):
        logger.warning("App config must be a JSON object; using defaults")
        return AppConfig()
    return AppConfig(
        sources=_parse_sources(data.get("cafeSources")),
        sectors=_parse_sectors(data.get("sectors")),
        filter=_parse_filter(data.get("filter")),
    )


def load_app_config(path: Path) -> AppConfig:
    """Read the app config file. A missing file means an empty config."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning("Cannot read app config %s: %s", path, e)
        return AppConfig()
    return parse_app_config(text)
