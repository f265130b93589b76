import random
from datetime import datetime, timedelta, timezone

import pytest

from price_monitor.fetchers.http import Fetcher
from price_monitor.fetchers.retry import RetryPolicy
from price_monitor.fetchers.scraper import Scraper
from price_monitor.storage import HistoryStore

LISTING_HTML = """
<html>
  <head><title>MG ZS EV Trophy</title></head>
  <body>
    <h1>MG ZS EV</h1>
    <div class="vehicle-price">£12,995</div>
    <ul><li>2021</li><li>45,000 miles</li></ul>
  </body>
</html>
"""

NO_PRICE_HTML = "<html><head><title>Sold</title></head><body><p>This listing has ended.</p></body></html>"


class FakeResponse:
    def __init__(self, status_code: int = 200, text: str = "") -> None:
        self.status_code = status_code
        self.text = text


class FakeSession:
    """Plays back scripted responses (or raises scripted exceptions) in order."""

    def __init__(self, script) -> None:
        self.script = list(script)
        self.calls: list[dict] = []
        self.max_redirects = 30

    def get(self, url, headers=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "timeout": timeout})
        step = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(step, BaseException):
            raise step
        return step


class SteppingClock:
    """Each call returns a time one minute after the previous one."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(minutes=1)
        return self.current


@pytest.fixture
def store(tmp_path) -> HistoryStore:
    history = HistoryStore(tmp_path / "prices.db")
    history.init_db()
    return history


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def make_scraper(sleeps):
    def factory(script) -> tuple[Scraper, FakeSession]:
        session = FakeSession(script)
        fetcher = Fetcher(session=session, rng=random.Random(7))
        policy = RetryPolicy(rng=random.Random(11))
        return Scraper(fetcher, policy, sleep=sleeps.append), session

    return factory
