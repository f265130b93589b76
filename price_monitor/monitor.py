"""One monitoring pass over the tracked items."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from price_monitor import comparator
from price_monitor.config import ConfigSnapshot
from price_monitor.failures import FailureTracker, should_alert
from price_monitor.fetchers.scraper import Scraper
from price_monitor.models import (
    AlertDecision,
    AlertEvent,
    AlertKind,
    PriceRecord,
    ScrapeResult,
    TrackedItem,
)
from price_monitor.storage import HistoryStore

logger = logging.getLogger(__name__)

Notify = Callable[[AlertEvent, list[str]], bool]


@dataclass
class CheckSummary:
    """What happened during one pass."""

    config_version: int
    checked: int = 0
    skipped: int = 0
    failed: int = 0
    errors: int = 0
    events: list[AlertEvent] = field(default_factory=list)
    notified: int = 0

    @property
    def price_changes(self) -> int:
        return sum(1 for e in self.events if e.kind is AlertKind.PRICE_CHANGE)


class Monitor:
    """
    Drives a monitoring pass: scrape, compare or count failures, emit events.

    Items are processed strictly in order, one at a time. Records are written
    before the notifier is called; notifier failures are logged and not
    retried.
    """

    def __init__(
        self,
        scraper: Scraper,
        store: HistoryStore,
        notify: Notify,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.scraper = scraper
        self.store = store
        self.notify = notify
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.tracker = FailureTracker(store, clock=self._clock)

    def run_check(self, snapshot: ConfigSnapshot) -> CheckSummary:
        """Check every enabled item once."""
        summary = CheckSummary(config_version=snapshot.version)
        for item in snapshot.items:
            if not item.enabled:
                logger.info("Skipping: %s (paused)", item.name)
                summary.skipped += 1
                continue
            try:
                event = self.check_item(item, snapshot, summary)
            except Exception as e:
                summary.errors += 1
                logger.exception("Unexpected error checking %s: %s", item.url, e)
                continue
            if event is not None:
                summary.events.append(event)
                self._dispatch(event, summary)

        logger.info(
            "Check complete - %d checked, %d failed, %d price change(s)",
            summary.checked, summary.failed, summary.price_changes,
        )
        return summary

    def check_item(self, item: TrackedItem, snapshot: ConfigSnapshot, summary: CheckSummary) -> AlertEvent | None:
        """Scrape one item and update its history. Returns an event to send, if any."""
        logger.info("Checking: %s [%s] %s", item.name, item.category, item.url)
        result = self.scraper.fetch_listing(item.url)
        summary.checked += 1
        if result.success:
            return self._handle_success(item, result, snapshot)
        summary.failed += 1
        return self._handle_failure(item, result, snapshot)

    def _handle_success(self, item: TrackedItem, result: ScrapeResult, snapshot: ConfigSnapshot) -> AlertEvent | None:
        now = self._clock()
        latest = self.store.get_latest(item.url)
        previous_price = latest.price if latest else None
        decision = comparator.evaluate(item, previous_price, result.price)

        logger.info("Current price: %.2f", result.price)
        if result.mileage is not None:
            logger.info("Mileage: %d miles", result.mileage)

        event = None
        if decision is AlertDecision.BASELINE:
            logger.info("First check - baseline recorded")
        elif decision is AlertDecision.NO_CHANGE:
            logger.info("No price change")
        elif decision is AlertDecision.BELOW_THRESHOLD:
            logger.info(
                "Price drop %.2f -> %.2f below threshold - not alerting",
                previous_price, result.price,
            )
        else:
            logger.info("PRICE CHANGE: %.2f -> %.2f", previous_price, result.price)
            event = AlertEvent(
                kind=AlertKind.PRICE_CHANGE,
                item=item,
                occurred_at=now,
                recipients=snapshot.recipients_for(item),
                old_price=previous_price,
                new_price=result.price,
                mileage=result.mileage,
                description=result.description,
            )

        self.store.append(
            PriceRecord(
                item_url=item.url,
                price=result.price,
                mileage=result.mileage,
                description=result.description,
                checked_at=now,
            )
        )
        self.tracker.clear_on_success(item)
        return event

    def _handle_failure(self, item: TrackedItem, result: ScrapeResult, snapshot: ConfigSnapshot) -> AlertEvent | None:
        logger.warning("Failed to scrape %s: %s (%s)", item.name, result.error_message, result.error_kind.value)
        streak = self.tracker.record_failure(
            item, result.error_kind, result.error_message or "", result.html_snapshot
        )
        logger.info("Consecutive failures: %d", streak)
        if not should_alert(streak):
            return None
        logger.warning("%d consecutive failures for %s - raising alert", streak, item.name)
        return AlertEvent(
            kind=AlertKind.REPEATED_FAILURE,
            item=item,
            occurred_at=self._clock(),
            recipients=snapshot.recipients_for(item),
            error_kind=result.error_kind,
            error_message=result.error_message,
            consecutive_failures=streak,
        )

    def _dispatch(self, event: AlertEvent, summary: CheckSummary) -> None:
        try:
            sent = self.notify(event, list(event.recipients))
        except Exception as e:
            logger.exception("Notifier raised for %s: %s", event.item.url, e)
            return
        if sent:
            summary.notified += 1
        else:
            logger.warning("Alert for %s was not delivered", event.item.name)
