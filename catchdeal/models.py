"""Data models for board scanning and link dissection."""

import math
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from enum import Enum


class EngineStatus(str, Enum):
    """Process-wide engine state."""

    IDLE = "idle"
    SCANNING = "scanning"
    PURCHASING = "purchasing"  # also covers link dissection
    ERROR = "error"
    STOPPED = "stopped"


class LinkStatus(str, Enum):
    """Dissection state of an extracted link."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class Source:
    """A monitored board: list page URL plus a title keyword."""

    id: str
    name: str
    list_url: str
    keyword: str
    enabled: bool = True


@dataclass(frozen=True)
class Sector:
    """A category listing page scanned in category mode."""

    id: str
    name: str
    category_url: str
    enabled: bool = True


@dataclass
class FilterConfig:
    """Category-mode filter."""

    min_price: int = 100_000
    target_discount_rate: int = 50
    exclude_keywords: list[str] = field(default_factory=lambda: ["케이스", "반품", "리퍼"])


@dataclass
class AppConfig:
    """Sources, sectors and filter supplied before each scan pass."""

    sources: list[Source] = field(default_factory=list)
    sectors: list[Sector] = field(default_factory=list)
    filter: FilterConfig = field(default_factory=FilterConfig)

    def enabled_sources(self) -> list[Source]:
        return [s for s in self.sources if s.enabled and s.list_url.strip() and s.keyword.strip()]

    def enabled_sectors(self) -> list[Sector]:
        return [s for s in self.sectors if s.enabled and s.category_url.strip()]


@dataclass(frozen=True)
class CandidateLink:
    """A keyword-matching post on a board list page."""

    title: str
    url: str


@dataclass
class ScannedProduct:
    """One entry parsed from a category listing."""

    title: str
    price: int
    link: str
    discount_rate: int = 0
    original_price: int | None = None


@dataclass
class DissectedProduct:
    """Structured result of parsing a single product page."""

    name: str
    price: int
    discount_rate: int = 0
    original_price: int | None = None


@dataclass
class ExtractedLink:
    """A commerce link found inside a post, tracked through dissection."""

    url: str
    post_title: str | None = None
    extracted_at: datetime = field(default_factory=datetime.now)
    status: LinkStatus = LinkStatus.PENDING
    product_name: str | None = None
    price: int | None = None
    original_price: int | None = None
    discount_rate: int | None = None
    retry_count: int = 0
    failed_at: datetime | None = None
    error_message: str | None = None

    def mark_success(self, product: DissectedProduct) -> None:
        self.status = LinkStatus.SUCCESS
        self.product_name = product.name
        self.price = product.price
        self.original_price = product.original_price
        self.discount_rate = product.discount_rate

    def mark_failed(self, message: str) -> None:
        self.status = LinkStatus.FAILED
        self.failed_at = datetime.now()
        self.error_message = message

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        data["extracted_at"] = self.extracted_at.isoformat()
        data["failed_at"] = self.failed_at.isoformat() if self.failed_at else None
        return data


@dataclass
class DailyStats:
    """Counters for the current calendar day."""

    scan_count: int = 0
    success_count: int = 0
    day: date = field(default_factory=date.today)

    def roll_over(self, today: date | None = None) -> None:
        """Reset the counters when the calendar date has changed."""
        today = today or date.today()
        if self.day != today:
            self.scan_count = 0
            self.success_count = 0
            self.day = today


@dataclass
class TradeRecord:
    """Completed transaction handed to storage."""

    user_id: str
    product_name: str
    buy_price: int
    sell_price: int
    link: str
    status: str = "PURCHASED"
    recorded_at: datetime = field(default_factory=datetime.now)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def discount_rate(price: int, original_price: int | None) -> int:
    """
    Percent saved against the original price.

    Zero unless an original price above the current price is known.
    """
    if not original_price or original_price <= price:
        return 0
    return round_half_up(100 * (1 - price / original_price))
