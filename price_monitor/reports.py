"""Daily failure and weekly price summaries."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from price_monitor.config import ConfigSnapshot
from price_monitor.failures import PERSISTENT_WINDOW_DAYS, FailureTracker
from price_monitor.models import ErrorKind, TrackedItem
from price_monitor.storage import HistoryStore

logger = logging.getLogger(__name__)

WEEKLY_HISTORY_LIMIT = 50


@dataclass(frozen=True)
class ItemFailures:
    item: TrackedItem
    count: int
    first_failed_at: datetime
    error_kind: ErrorKind
    error_message: str


@dataclass(frozen=True)
class FailureSummary:
    """Failures in the last `hours`, grouped per item."""

    generated_at: datetime
    hours: int
    items: tuple[ItemFailures, ...]
    recipients: tuple[str, ...] = ()

    @property
    def total_failures(self) -> int:
        return sum(entry.count for entry in self.items)


@dataclass(frozen=True)
class ItemWeek:
    item: TrackedItem
    current_price: float
    week_ago_price: float

    @property
    def change(self) -> float:
        return self.current_price - self.week_ago_price


@dataclass(frozen=True)
class WeeklySummary:
    generated_at: datetime
    items: tuple[ItemWeek, ...]
    persistent_failures: tuple[TrackedItem, ...] = ()
    recipients: tuple[str, ...] = field(default_factory=tuple)

    @property
    def total_changes(self) -> int:
        return sum(1 for entry in self.items if entry.change != 0)

    @property
    def biggest_drop(self) -> ItemWeek | None:
        drops = [entry for entry in self.items if entry.change < 0]
        return min(drops, key=lambda e: e.change) if drops else None

    @property
    def biggest_increase(self) -> ItemWeek | None:
        rises = [entry for entry in self.items if entry.change > 0]
        return max(rises, key=lambda e: e.change) if rises else None


def build_failure_summary(
    store: HistoryStore,
    snapshot: ConfigSnapshot,
    hours: int = 24,
    now: datetime | None = None,
) -> FailureSummary | None:
    """Group recent failures by item. Returns None when nothing failed."""
    now = now or datetime.now(timezone.utc)
    failures = store.failures_since(now - timedelta(hours=hours))
    if not failures:
        logger.info("No failures in the last %d hours", hours)
        return None

    by_url = {item.url: item for item in snapshot.items}
    grouped: dict[str, list] = {}
    for failure in failures:
        if failure.item_url in by_url:
            grouped.setdefault(failure.item_url, []).append(failure)

    entries = []
    for url, records in grouped.items():
        first = records[0]
        entries.append(
            ItemFailures(
                item=by_url[url],
                count=len(records),
                first_failed_at=first.failed_at,
                error_kind=first.error_kind,
                error_message=first.message,
            )
        )
    if not entries:
        return None

    logger.info("Found %d failure(s) across %d item(s)", len(failures), len(entries))
    return FailureSummary(
        generated_at=now,
        hours=hours,
        items=tuple(entries),
        recipients=snapshot.recipients,
    )


def build_weekly_summary(
    store: HistoryStore,
    snapshot: ConfigSnapshot,
    now: datetime | None = None,
    window_days: int = 7,
) -> WeeklySummary:
    """
    Compare each item's current price with its price a week ago.

    The week-ago price is the newest record at or before the window start;
    items without one fall back to their current price. Items with fewer
    than two records are left out.
    """
    now = now or datetime.now(timezone.utc)
    window_start = now - timedelta(days=window_days)

    entries = []
    for item in snapshot.items:
        history = store.price_history(item.url, limit=WEEKLY_HISTORY_LIMIT)
        if len(history) < 2:
            continue
        current = history[0].price
        week_ago = next((h.price for h in history if h.checked_at <= window_start), current)
        entries.append(ItemWeek(item=item, current_price=current, week_ago_price=week_ago))

    tracker = FailureTracker(store, clock=lambda: now)
    persistent = tracker.persistent_failures(snapshot.items, window_days=PERSISTENT_WINDOW_DAYS)

    return WeeklySummary(
        generated_at=now,
        items=tuple(entries),
        persistent_failures=tuple(persistent),
        recipients=snapshot.weekly.recipients or snapshot.recipients,
    )
