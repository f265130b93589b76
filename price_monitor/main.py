"""Entry point and scheduler for Price Monitor."""

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parents[1] / ".env")

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.combining import OrTrigger
from apscheduler.triggers.cron import CronTrigger

from price_monitor.config import ConfigError, ConfigSnapshot, ConfigStore, get_float_env
from price_monitor.fetchers import Fetcher, RetryPolicy, Scraper
from price_monitor.fetchers.retry import JITTER_MAX_SECONDS
from price_monitor.monitor import Monitor
from price_monitor.notifiers import send_alert
from price_monitor.reports import build_failure_summary, build_weekly_summary
from price_monitor.storage import HistoryStore

logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

PRICE_CHECK_JOB_ID = "price_check"

# Day names as APScheduler's cron day_of_week expects them
CRON_DAYS = {
    "monday": "mon", "tuesday": "tue", "wednesday": "wed", "thursday": "thu",
    "friday": "fri", "saturday": "sat", "sunday": "sun",
}


def build_monitor(store: HistoryStore) -> Monitor:
    """Wire scraper, store and notifiers from environment settings."""
    fetcher = Fetcher(timeout=get_float_env("REQUEST_TIMEOUT_SECONDS", 20.0))
    policy = RetryPolicy(jitter_max=get_float_env("JITTER_MAX_SECONDS", JITTER_MAX_SECONDS))
    return Monitor(Scraper(fetcher, policy), store, send_alert)


def run_check(config: ConfigStore, monitor: Monitor) -> None:
    """Reload config and run one monitoring pass on the fresh snapshot."""
    snapshot = config.reload()
    logger.info("🔍 Checking %d item(s) (config v%d)", len(snapshot.enabled_items), snapshot.version)
    monitor.run_check(snapshot)


def run_failure_summary(config: ConfigStore, store: HistoryStore) -> None:
    """Send the last 24 hours of failures, if there were any."""
    snapshot = config.snapshot
    summary = build_failure_summary(store, snapshot)
    if summary is None:
        return
    if send_alert(summary, list(summary.recipients)):
        logger.info("Daily failure summary sent")
    else:
        logger.warning("Daily failure summary not sent")


def run_weekly_summary(config: ConfigStore, store: HistoryStore) -> None:
    snapshot = config.snapshot
    summary = build_weekly_summary(store, snapshot)
    if send_alert(summary, list(summary.recipients)):
        logger.info("Weekly summary sent (%d change(s))", summary.total_changes)
    else:
        logger.warning("Weekly summary not sent")


def _cron(time_str: str, timezone: str, **extra) -> CronTrigger:
    hour, minute = time_str.split(":")
    return CronTrigger(hour=int(hour), minute=int(minute), timezone=timezone, **extra)


def build_scheduler(snapshot: ConfigSnapshot, config: ConfigStore, store: HistoryStore, monitor: Monitor) -> BlockingScheduler:
    """
    Register price checks and summaries.

    All check times share a single job. APScheduler limits instances per job,
    so with max_instances=1 a trigger that fires while the previous pass is
    still running is skipped, not queued or run alongside it.
    """
    scheduler = BlockingScheduler(timezone=snapshot.timezone)
    job_defaults = {"max_instances": 1, "coalesce": True, "misfire_grace_time": 300}

    scheduler.add_job(
        run_check,
        trigger=OrTrigger([_cron(t, snapshot.timezone) for t in snapshot.check_times]),
        args=(config, monitor),
        id=PRICE_CHECK_JOB_ID,
        **job_defaults,
    )
    logger.info("Scheduled price checks for %s", ", ".join(snapshot.check_times))

    if snapshot.weekly.enabled:
        scheduler.add_job(
            run_weekly_summary,
            trigger=_cron(snapshot.weekly.time, snapshot.timezone, day_of_week=CRON_DAYS[snapshot.weekly.day_of_week]),
            args=(config, store),
            id="weekly_summary",
            **job_defaults,
        )
        logger.info("Scheduled weekly summary for %ss at %s", snapshot.weekly.day_of_week, snapshot.weekly.time)

    if snapshot.failure_summary.enabled:
        scheduler.add_job(
            run_failure_summary,
            trigger=_cron(snapshot.failure_summary.time, snapshot.timezone),
            args=(config, store),
            id="daily_failure_summary",
            **job_defaults,
        )
        logger.info("Scheduled daily failure summary for %s", snapshot.failure_summary.time)

    return scheduler


def main(argv: list[str] | None = None) -> int:
    """Initialize DB, run once immediately, then start the scheduler."""
    parser = argparse.ArgumentParser(description="Track listing prices and alert on changes.")
    parser.add_argument("--once", action="store_true", help="run a single check and exit")
    parser.add_argument("--config", help="path to config.json (default: $CONFIG_PATH or ./config.json)")
    args = parser.parse_args(argv)

    try:
        config = ConfigStore(args.config)
    except ConfigError as e:
        logger.error("Cannot start: %s", e)
        return 1

    store = HistoryStore()
    store.init_db()
    monitor = build_monitor(store)
    snapshot = config.snapshot

    logger.info("🚀 Price Monitor started")
    for item in snapshot.items:
        recipients = ", ".join(snapshot.recipients_for(item)) or "global"
        logger.info("  - %s [%s] (alerts: %s)", item.name, item.category, recipients)
        if item.thresholds:
            logger.info(
                "    Thresholds: %.2f+ or %.1f%%+",
                item.thresholds.min_amount, item.thresholds.min_percent,
            )

    if args.once:
        monitor.run_check(snapshot)
        return 0

    scheduler = build_scheduler(snapshot, config, store, monitor)

    # Run once immediately on startup
    monitor.run_check(snapshot)

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("👋 Shutting down Price Monitor")
    return 0


if __name__ == "__main__":
    sys.exit(main())
