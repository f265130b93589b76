"""SQLite persistence for price history and scrape failures."""

import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path

from price_monitor.models import ErrorKind, FailureRecord, PriceRecord

EPOCH = "1970-01-01T00:00:00.000000+00:00"


def get_db_path() -> Path:
    """Get database path from env or default."""
    path = os.environ.get("DB_PATH", "data/prices.db")
    return Path(path)


def _ts(value: datetime) -> str:
    """Fixed-width UTC timestamp so string order matches time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class HistoryStore:
    """Price and failure history, keyed by item URL."""

    def __init__(self, db_path: Path | str | None = None) -> None:
        self.db_path = Path(db_path) if db_path is not None else get_db_path()

    @contextmanager
    def get_connection(self):
        """Context manager for SQLite connection."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def init_db(self) -> None:
        """Create tables if they don't exist."""
        with self.get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS price_history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    item_url TEXT NOT NULL,
                    price REAL NOT NULL,
                    mileage INTEGER,
                    description TEXT,
                    checked_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_price_item_checked
                ON price_history(item_url, checked_at)
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS scrape_failures (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    item_url TEXT NOT NULL,
                    error_type TEXT NOT NULL,
                    error_message TEXT,
                    html_snapshot TEXT,
                    failed_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_failure_item_failed
                ON scrape_failures(item_url, failed_at)
            """)

    # ── Prices ────────────────────────────────────────────────────────────────

    def append(self, record: PriceRecord) -> None:
        """Save a price record."""
        with self.get_connection() as conn:
            conn.execute(
                """
                INSERT INTO price_history (item_url, price, mileage, description, checked_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    record.item_url,
                    record.price,
                    record.mileage,
                    record.description,
                    _ts(record.checked_at),
                ),
            )

    def get_latest(self, item_url: str) -> PriceRecord | None:
        """Get the most recent price record for an item."""
        history = self.price_history(item_url, limit=1)
        return history[0] if history else None

    def price_history(self, item_url: str, limit: int = 10) -> list[PriceRecord]:
        """Most recent price records for an item, newest first."""
        with self.get_connection() as conn:
            rows = conn.execute(
                """
                SELECT item_url, price, mileage, description, checked_at
                FROM price_history
                WHERE item_url = ?
                ORDER BY checked_at DESC, id DESC LIMIT ?
                """,
                (item_url, limit),
            ).fetchall()
        return [
            PriceRecord(
                item_url=row["item_url"],
                price=row["price"],
                mileage=row["mileage"],
                description=row["description"],
                checked_at=datetime.fromisoformat(row["checked_at"]),
            )
            for row in rows
        ]

    # ── Failures ──────────────────────────────────────────────────────────────

    def record_failure(self, record: FailureRecord) -> None:
        """Save a failed check."""
        with self.get_connection() as conn:
            conn.execute(
                """
                INSERT INTO scrape_failures (item_url, error_type, error_message, html_snapshot, failed_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    record.item_url,
                    record.error_kind.value,
                    record.message,
                    record.html_snapshot,
                    _ts(record.failed_at),
                ),
            )

    def consecutive_failures(self, item_url: str) -> int:
        """Failures logged after the item's latest successful check."""
        with self.get_connection() as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) AS count
                FROM scrape_failures
                WHERE item_url = ?
                AND failed_at > (
                    SELECT COALESCE(MAX(checked_at), ?)
                    FROM price_history
                    WHERE item_url = ?
                )
                """,
                (item_url, EPOCH, item_url),
            ).fetchone()
        return row["count"] if row else 0

    def clear_failures(self, item_url: str) -> None:
        """Drop outstanding failures after a successful check."""
        with self.get_connection() as conn:
            conn.execute("DELETE FROM scrape_failures WHERE item_url = ?", (item_url,))

    def failures_since(self, window_start: datetime) -> list[FailureRecord]:
        """All failures logged after window_start, oldest first."""
        with self.get_connection() as conn:
            rows = conn.execute(
                """
                SELECT item_url, error_type, error_message, html_snapshot, failed_at
                FROM scrape_failures
                WHERE failed_at > ?
                ORDER BY failed_at ASC, id ASC
                """,
                (_ts(window_start),),
            ).fetchall()
        return [
            FailureRecord(
                item_url=row["item_url"],
                error_kind=ErrorKind(row["error_type"]),
                message=row["error_message"] or "",
                html_snapshot=row["html_snapshot"],
                failed_at=datetime.fromisoformat(row["failed_at"]),
            )
            for row in rows
        ]

    def persistent_failures(self, window_days: int, now: datetime | None = None) -> list[str]:
        """
        Items whose earliest unresolved failure is older than window_days.

        A failure is unresolved when no price was recorded after it.
        """
        cutoff = (now or _now()) - timedelta(days=window_days)
        with self.get_connection() as conn:
            rows = conn.execute(
                """
                SELECT f.item_url, MIN(f.failed_at) AS first_failure
                FROM scrape_failures f
                WHERE NOT EXISTS (
                    SELECT 1 FROM price_history p
                    WHERE p.item_url = f.item_url
                    AND p.checked_at > f.failed_at
                )
                GROUP BY f.item_url
                HAVING MIN(f.failed_at) <= ?
                ORDER BY first_failure ASC
                """,
                (_ts(cutoff),),
            ).fetchall()
        return [row["item_url"] for row in rows]
