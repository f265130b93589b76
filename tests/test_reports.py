from datetime import datetime, timedelta, timezone

from price_monitor.config import parse_config
from price_monitor.models import ErrorKind, FailureRecord, PriceRecord
from price_monitor.notifiers.email import render
from price_monitor.reports import build_failure_summary, build_weekly_summary

NOW = datetime(2026, 6, 7, 18, 0, tzinfo=timezone.utc)
CAR = "https://cars.example.com/listing/1"
LEGO = "https://bricks.example.com/product/75313"
DEAD = "https://cars.example.com/listing/dead"

SNAPSHOT = parse_config(
    {
        "email": {"recipients": ["owner@example.com"]},
        "items": [
            {"url": CAR, "name": "MG ZS"},
            {"url": LEGO, "name": "AT-AT"},
            {"url": DEAD, "name": "Sold car"},
        ],
        "weeklyEmail": {"enabled": True, "recipients": ["weekly@example.com"]},
    }
)


def add_price(store, url, value, age):
    store.append(PriceRecord(item_url=url, price=value, checked_at=NOW - age))


def add_failure(store, url, kind, age):
    store.record_failure(FailureRecord(item_url=url, error_kind=kind, message=kind.value, failed_at=NOW - age))


def test_failure_summary_groups_by_item(store):
    add_failure(store, CAR, ErrorKind.TIMEOUT, timedelta(hours=5))
    add_failure(store, CAR, ErrorKind.SERVER_ERROR, timedelta(hours=2))
    add_failure(store, DEAD, ErrorKind.NOT_FOUND, timedelta(hours=1))
    add_failure(store, LEGO, ErrorKind.TIMEOUT, timedelta(hours=30))

    summary = build_failure_summary(store, SNAPSHOT, now=NOW)

    assert summary.total_failures == 3
    by_name = {entry.item.name: entry for entry in summary.items}
    assert set(by_name) == {"MG ZS", "Sold car"}
    assert by_name["MG ZS"].count == 2
    assert by_name["MG ZS"].error_kind is ErrorKind.TIMEOUT
    assert summary.recipients == ("owner@example.com",)


def test_failure_summary_is_none_without_failures(store):
    assert build_failure_summary(store, SNAPSHOT, now=NOW) is None


def test_weekly_summary_compares_against_week_ago_price(store):
    add_price(store, CAR, 10000.0, timedelta(days=9))
    add_price(store, CAR, 9800.0, timedelta(days=3))
    add_price(store, CAR, 9500.0, timedelta(hours=1))
    add_price(store, LEGO, 600.0, timedelta(days=8))
    add_price(store, LEGO, 650.0, timedelta(days=1))
    add_failure(store, DEAD, ErrorKind.NOT_FOUND, timedelta(days=8))

    summary = build_weekly_summary(store, SNAPSHOT, now=NOW)

    changes = {entry.item.name: entry.change for entry in summary.items}
    assert changes == {"MG ZS": -500.0, "AT-AT": 50.0}
    assert summary.total_changes == 2
    assert summary.biggest_drop.item.url == CAR
    assert summary.biggest_increase.item.url == LEGO
    assert [item.url for item in summary.persistent_failures] == [DEAD]
    assert summary.recipients == ("weekly@example.com",)


def test_weekly_summary_renders_as_text(store):
    add_price(store, CAR, 10000.0, timedelta(days=9))
    add_price(store, CAR, 9500.0, timedelta(hours=1))

    subject, body = render(build_weekly_summary(store, SNAPSHOT, now=NOW))

    assert "1 change" in subject
    assert "MG ZS" in body
    assert "Biggest drop" in body
