"""Failure streak tracking."""

import logging
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from price_monitor.models import ErrorKind, FailureRecord, TrackedItem
from price_monitor.storage import HistoryStore

logger = logging.getLogger(__name__)

STREAK_ALERT_AT = 3
PERSISTENT_WINDOW_DAYS = 7


def should_alert(streak: int) -> bool:
    """Edge-triggered: only the failure that makes the streak exactly 3 alerts."""
    return streak == STREAK_ALERT_AT


class FailureTracker:
    """Records scrape failures and works out streaks against the price history."""

    def __init__(self, store: HistoryStore, clock: Callable[[], datetime] | None = None) -> None:
        self.store = store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def record_failure(
        self,
        item: TrackedItem,
        error_kind: ErrorKind,
        message: str,
        snapshot: str | None = None,
    ) -> int:
        """Append a FailureRecord and return the resulting streak length."""
        self.store.record_failure(
            FailureRecord(
                item_url=item.url,
                error_kind=error_kind,
                message=message,
                failed_at=self._clock(),
                html_snapshot=snapshot,
            )
        )
        return self.consecutive_failures(item)

    def consecutive_failures(self, item: TrackedItem) -> int:
        return self.store.consecutive_failures(item.url)

    def clear_on_success(self, item: TrackedItem) -> None:
        self.store.clear_failures(item.url)

    def persistent_failures(
        self,
        items: Iterable[TrackedItem],
        window_days: int = PERSISTENT_WINDOW_DAYS,
    ) -> list[TrackedItem]:
        """Configured items that have failed without a success for longer than window_days."""
        failing = self.store.persistent_failures(window_days, now=self._clock())
        by_url = {item.url: item for item in items}
        unknown = [url for url in failing if url not in by_url]
        if unknown:
            logger.debug("Ignoring persistent failures for unconfigured URLs: %s", unknown)
        return [by_url[url] for url in failing if url in by_url]
