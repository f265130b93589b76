"""Data models for price tracking."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

DEFAULT_CATEGORY = "General"
NO_DESCRIPTION = "No description found"


class ErrorKind(str, Enum):
    """Classification of a failed scrape."""

    NOT_FOUND = "NOT_FOUND"
    GONE = "GONE"
    FORBIDDEN = "FORBIDDEN"
    RATE_LIMITED = "RATE_LIMITED"
    SERVER_ERROR = "SERVER_ERROR"
    TIMEOUT = "TIMEOUT"
    CONNECTION_REFUSED = "CONNECTION_REFUSED"
    CONNECTION_RESET = "CONNECTION_RESET"
    PARSE_ERROR = "PARSE_ERROR"
    UNKNOWN = "UNKNOWN"

    @property
    def is_transient(self) -> bool:
        """True if retrying may succeed. FORBIDDEN counts as transient until the budget runs out."""
        return self not in (ErrorKind.NOT_FOUND, ErrorKind.GONE, ErrorKind.PARSE_ERROR)


class AlertDecision(str, Enum):
    """Outcome of comparing a new price with the baseline."""

    BASELINE = "baseline"
    NO_CHANGE = "no_change"
    ALERT = "alert"
    BELOW_THRESHOLD = "below_threshold"


class AlertKind(str, Enum):
    """Kind of alert handed to the notifier."""

    PRICE_CHANGE = "price_change"
    REPEATED_FAILURE = "repeated_failure"


@dataclass(frozen=True)
class Thresholds:
    """Minimum drop needed before a price decrease alerts. Either condition is enough."""

    min_amount: float = 0.0
    min_percent: float = 0.0


@dataclass(frozen=True)
class TrackedItem:
    """A configured listing URL."""

    url: str
    name: str
    category: str = DEFAULT_CATEGORY
    enabled: bool = True
    recipients: tuple[str, ...] | None = None
    thresholds: Thresholds | None = None


@dataclass(frozen=True)
class HttpOutcome:
    """Raw result of one HTTP request: a response, or a transport error."""

    status_code: int | None = None
    text: str = ""
    error: ErrorKind | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class ScrapeResult:
    """Outcome of one fetch attempt sequence for a URL."""

    url: str
    success: bool
    price: float | None = None
    mileage: int | None = None
    description: str | None = None
    error_kind: ErrorKind | None = None
    error_message: str | None = None
    html_snapshot: str | None = None
    attempts: int = 1


@dataclass(frozen=True)
class PriceRecord:
    """Historical price record for storage."""

    item_url: str
    price: float
    checked_at: datetime
    mileage: int | None = None
    description: str | None = None


@dataclass(frozen=True)
class FailureRecord:
    """A failed check, kept until the next successful one."""

    item_url: str
    error_kind: ErrorKind
    message: str
    failed_at: datetime
    html_snapshot: str | None = None


@dataclass(frozen=True)
class AlertEvent:
    """Everything a notifier needs to tell someone about an item."""

    kind: AlertKind
    item: TrackedItem
    occurred_at: datetime
    recipients: tuple[str, ...] = field(default_factory=tuple)
    old_price: float | None = None
    new_price: float | None = None
    mileage: int | None = None
    description: str | None = None
    error_kind: ErrorKind | None = None
    error_message: str | None = None
    consecutive_failures: int = 0

    @property
    def price_change(self) -> float | None:
        if self.old_price is None or self.new_price is None:
            return None
        return self.new_price - self.old_price
