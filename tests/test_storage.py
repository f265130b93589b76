from datetime import datetime, timedelta, timezone

from price_monitor.failures import FailureTracker, should_alert
from price_monitor.models import ErrorKind, FailureRecord, PriceRecord, TrackedItem

URL = "https://cars.example.com/listing/1"
ITEM = TrackedItem(url=URL, name="MG ZS")
T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def price(value, at, mileage=None, url=URL) -> PriceRecord:
    return PriceRecord(item_url=url, price=value, checked_at=at, mileage=mileage, description="MG ZS EV")


def failure(at, url=URL, kind=ErrorKind.TIMEOUT) -> FailureRecord:
    return FailureRecord(item_url=url, error_kind=kind, message="timed out", failed_at=at)


def test_price_records_round_trip(store):
    first = price(12995.0, T0, mileage=45000)
    second = price(12499.99, T0 + timedelta(hours=6), mileage=45012)
    store.append(first)
    store.append(second)

    history = store.price_history(URL)

    assert history == [second, first]
    assert store.get_latest(URL) == second


def test_latest_follows_timestamp_not_insert_order(store):
    store.append(price(100.0, T0 + timedelta(days=1)))
    store.append(price(90.0, T0))

    assert store.get_latest(URL).price == 100.0


def test_microsecond_timestamps_keep_order(store):
    store.append(price(1.0, T0))
    store.append(price(2.0, T0 + timedelta(microseconds=1)))

    assert store.get_latest(URL).price == 2.0


def test_no_history_returns_none(store):
    assert store.get_latest(URL) is None
    assert store.consecutive_failures(URL) == 0


def test_streak_counts_failures_after_last_success(store):
    store.record_failure(failure(T0))
    store.append(price(10.0, T0 + timedelta(minutes=1)))
    store.record_failure(failure(T0 + timedelta(minutes=2)))
    store.record_failure(failure(T0 + timedelta(minutes=3)))

    assert store.consecutive_failures(URL) == 2


def test_streak_is_per_item(store):
    other = "https://cars.example.com/listing/2"
    store.record_failure(failure(T0))
    store.record_failure(failure(T0, url=other))
    store.record_failure(failure(T0 + timedelta(minutes=1), url=other))

    assert store.consecutive_failures(URL) == 1
    assert store.consecutive_failures(other) == 2


def test_failures_since_window(store):
    store.record_failure(failure(T0 - timedelta(hours=30)))
    store.record_failure(failure(T0 - timedelta(hours=2), kind=ErrorKind.PARSE_ERROR))

    recent = store.failures_since(T0 - timedelta(hours=24))

    assert [f.error_kind for f in recent] == [ErrorKind.PARSE_ERROR]


def test_persistent_failures_need_old_unresolved_failure(store):
    stale = "https://cars.example.com/stale"
    fresh = "https://cars.example.com/fresh"
    recovered = "https://cars.example.com/recovered"

    store.record_failure(failure(T0 - timedelta(days=9), url=stale))
    store.record_failure(failure(T0 - timedelta(days=1), url=stale))
    store.record_failure(failure(T0 - timedelta(days=2), url=fresh))
    store.record_failure(failure(T0 - timedelta(days=10), url=recovered))
    store.append(price(5.0, T0 - timedelta(days=8), url=recovered))

    assert store.persistent_failures(7, now=T0) == [stale]


def test_tracker_resets_streak_on_success(store, clock):
    tracker = FailureTracker(store, clock=clock)
    for _ in range(5):
        tracker.record_failure(ITEM, ErrorKind.SERVER_ERROR, "HTTP 500")
    assert tracker.consecutive_failures(ITEM) == 5

    store.append(price(10.0, clock()))
    tracker.clear_on_success(ITEM)

    assert tracker.consecutive_failures(ITEM) == 0
    assert store.failures_since(T0 - timedelta(days=365)) == []


def test_tracker_returns_running_streak(store, clock):
    tracker = FailureTracker(store, clock=clock)

    streaks = [tracker.record_failure(ITEM, ErrorKind.NOT_FOUND, "HTTP 404") for _ in range(4)]

    assert streaks == [1, 2, 3, 4]
    assert [should_alert(s) for s in streaks] == [False, False, True, False]


def test_tracker_maps_persistent_failures_to_items(store):
    unknown = "https://cars.example.com/removed-from-config"
    store.record_failure(failure(T0 - timedelta(days=10)))
    store.record_failure(failure(T0 - timedelta(days=10), url=unknown))
    tracker = FailureTracker(store, clock=lambda: T0)

    assert tracker.persistent_failures([ITEM], window_days=7) == [ITEM]
