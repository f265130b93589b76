"""
Environment + JSON config loader for tracked items and schedules.

The JSON file is parsed into an immutable ConfigSnapshot. ConfigStore holds
the current snapshot; reloading builds a new one and swaps the reference, so
a monitoring pass that already holds a snapshot keeps a consistent view.
"""

import json
import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path

from price_monitor.models import DEFAULT_CATEGORY, Thresholds, TrackedItem

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Europe/London"
DEFAULT_CHECK_TIMES = ("09:00", "18:00")
DEFAULT_DAILY_SUMMARY_TIME = "18:00"
WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class ConfigError(ValueError):
    """Raised when the config file is missing or malformed."""


def get_config_path() -> Path:
    """Get config path from env or default."""
    return Path(os.environ.get("CONFIG_PATH", "config.json"))


def get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class WeeklySummaryConfig:
    enabled: bool = False
    day_of_week: str = "sunday"
    time: str = "09:00"
    recipients: tuple[str, ...] | None = None


@dataclass(frozen=True)
class FailureSummaryConfig:
    enabled: bool = False
    time: str = DEFAULT_DAILY_SUMMARY_TIME


@dataclass(frozen=True)
class ConfigSnapshot:
    """One consistent, read-only view of the configuration."""

    version: int
    items: tuple[TrackedItem, ...]
    recipients: tuple[str, ...] = ()
    check_times: tuple[str, ...] = DEFAULT_CHECK_TIMES
    timezone: str = DEFAULT_TIMEZONE
    weekly: WeeklySummaryConfig = field(default_factory=WeeklySummaryConfig)
    failure_summary: FailureSummaryConfig = field(default_factory=FailureSummaryConfig)

    @property
    def enabled_items(self) -> list[TrackedItem]:
        return [item for item in self.items if item.enabled]

    def recipients_for(self, item: TrackedItem) -> tuple[str, ...]:
        """Item-specific recipients, falling back to the global list."""
        return item.recipients or self.recipients


def _optional_float(value: object) -> float:
    if value is None or value == "":
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid threshold value: {value!r}") from e


def _recipients(value: object) -> tuple[str, ...] | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ConfigError("'recipients' must be a list of addresses")
    cleaned = tuple(v.strip() for v in value if isinstance(v, str) and v.strip())
    return cleaned or None


def _check_time(value: object) -> str:
    text = str(value).strip()
    hour, sep, minute = text.partition(":")
    if not sep or not hour.isdigit() or not minute.isdigit() or int(hour) > 23 or int(minute) > 59:
        raise ConfigError(f"Invalid time {value!r}, expected HH:MM")
    return f"{int(hour):02d}:{int(minute):02d}"


def _flag(section: dict, key: str, default: bool) -> bool:
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ConfigError(f"'{key}' must be true or false, got {value!r}")
    return value


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be an object")
    return value


def _parse_item(entry: object) -> TrackedItem:
    if not isinstance(entry, dict):
        raise ConfigError(f"Invalid item entry: {entry!r}")
    url = str(entry.get("url", "")).strip()
    name = str(entry.get("name", "")).strip()
    if not url or not name:
        raise ConfigError(f"Item needs both 'url' and 'name': {entry!r}")

    if "enabled" in entry:
        enabled = _flag(entry, "enabled", True)
    else:
        enabled = not _flag(entry, "disabled", False)

    thresholds = None
    raw_thresholds = entry.get("thresholds")
    if isinstance(raw_thresholds, dict):
        thresholds = Thresholds(
            min_amount=_optional_float(raw_thresholds.get("minAmount")),
            min_percent=_optional_float(raw_thresholds.get("minPercent")),
        )

    return TrackedItem(
        url=url,
        name=name,
        category=str(entry.get("category") or DEFAULT_CATEGORY),
        enabled=enabled,
        recipients=_recipients(entry.get("recipients")),
        thresholds=thresholds,
    )


def parse_config(raw: dict, version: int = 1) -> ConfigSnapshot:
    """Build a snapshot from already-decoded JSON."""
    if not isinstance(raw, dict):
        raise ConfigError("Config root must be a JSON object")
    entries = raw.get("items", [])
    if not isinstance(entries, list):
        raise ConfigError("'items' must be a list")

    items: list[TrackedItem] = []
    seen: set[str] = set()
    for entry in entries:
        item = _parse_item(entry)
        if item.url in seen:
            raise ConfigError(f"Duplicate item URL: {item.url}")
        seen.add(item.url)
        items.append(item)

    email = _section(raw, "email")
    schedule = _section(raw, "schedule")
    weekly_raw = _section(raw, "weeklyEmail")
    failure_raw = _section(raw, "failureAlerts")

    times = schedule.get("times") or list(DEFAULT_CHECK_TIMES)
    if not isinstance(times, list):
        raise ConfigError("'schedule.times' must be a list of HH:MM strings")
    day = str(weekly_raw.get("dayOfWeek", "sunday")).strip().lower()
    if day not in WEEKDAYS:
        raise ConfigError(f"Invalid weeklyEmail.dayOfWeek: {day!r}")

    return ConfigSnapshot(
        version=version,
        items=tuple(items),
        recipients=_recipients(email.get("recipients")) or (),
        check_times=tuple(_check_time(t) for t in times),
        timezone=str(schedule.get("timezone") or DEFAULT_TIMEZONE),
        weekly=WeeklySummaryConfig(
            enabled=_flag(weekly_raw, "enabled", False),
            day_of_week=day,
            time=_check_time(weekly_raw.get("time", "09:00")),
            recipients=_recipients(weekly_raw.get("recipients")),
        ),
        failure_summary=FailureSummaryConfig(
            enabled=_flag(failure_raw, "dailySummary", False),
            time=_check_time(failure_raw.get("dailySummaryTime", DEFAULT_DAILY_SUMMARY_TIME)),
        ),
    )


def load_config(path: Path | str, version: int = 1) -> ConfigSnapshot:
    """Load and validate a config file."""
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    return parse_config(raw, version=version)


class ConfigStore:
    """Holds the current snapshot. reload() swaps it, never edits it."""

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else get_config_path()
        self._lock = threading.Lock()
        self._snapshot = load_config(self.path)

    @property
    def snapshot(self) -> ConfigSnapshot:
        return self._snapshot

    def reload(self) -> ConfigSnapshot:
        """
        Re-read the file into a new snapshot.

        On error the previous snapshot stays current and is returned.
        """
        with self._lock:
            try:
                fresh = load_config(self.path, version=self._snapshot.version + 1)
            except ConfigError as e:
                logger.error("Config reload failed, keeping version %d: %s", self._snapshot.version, e)
                return self._snapshot
            self._snapshot = fresh
            logger.info("Config reloaded (version %d, %d items)", fresh.version, len(fresh.items))
            return fresh
