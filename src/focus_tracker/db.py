"""SQLite database layer for activity records, trophies, settings and feeds."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

from .models import (
    ActivityRecord,
    ConsumptionEntry,
    EarnedTrophy,
    LibraryItem,
    WalletTransaction,
)

logger = logging.getLogger(__name__)

DATETIME_FMT = "%Y-%m-%d %H:%M:%S.%f"

_ACTIVITY_COLUMNS = """
    id,
    started_at,
    ended_at,
    source,
    app_name,
    bundle_id,
    window_title,
    url,
    domain,
    category,
    seconds_active,
    idle_seconds
"""


def open_database(
    path: Union[Path, str], *, check_same_thread: bool = True
) -> sqlite3.Connection:
    """Open (and initialize) the SQLite database."""
    conn = sqlite3.connect(
        path,
        isolation_level=None,
        check_same_thread=check_same_thread,
    )
    conn.row_factory = sqlite3.Row
    initialize_schema(conn)
    return conn


def initialize_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS activities (
            id INTEGER PRIMARY KEY,
            started_at TEXT NOT NULL,
            ended_at TEXT,
            source TEXT CHECK(source IN ('app', 'url')) NOT NULL,
            app_name TEXT,
            bundle_id TEXT,
            window_title TEXT,
            url TEXT,
            domain TEXT,
            category TEXT,
            seconds_active INTEGER NOT NULL DEFAULT 0,
            idle_seconds INTEGER NOT NULL DEFAULT 0
        );

        CREATE TABLE IF NOT EXISTS trophies (
            id TEXT PRIMARY KEY,
            earned_at TEXT NOT NULL,
            meta TEXT
        );

        CREATE TABLE IF NOT EXISTS settings (
            key TEXT PRIMARY KEY,
            value TEXT
        );

        CREATE TABLE IF NOT EXISTS consumption_log (
            id INTEGER PRIMARY KEY,
            occurred_at TEXT NOT NULL,
            kind TEXT NOT NULL,
            day TEXT NOT NULL,
            meta TEXT
        );

        CREATE TABLE IF NOT EXISTS library_items (
            id INTEGER PRIMARY KEY,
            purpose TEXT NOT NULL,
            consumed_at TEXT,
            note TEXT
        );

        CREATE TABLE IF NOT EXISTS wallet (
            id INTEGER PRIMARY KEY CHECK(id = 1),
            balance INTEGER NOT NULL
        );

        CREATE TABLE IF NOT EXISTS transactions (
            id INTEGER PRIMARY KEY,
            ts TEXT NOT NULL,
            type TEXT CHECK(type IN ('earn', 'spend')) NOT NULL,
            amount INTEGER NOT NULL,
            meta TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_activities_started_at
            ON activities(started_at);
        CREATE INDEX IF NOT EXISTS idx_consumption_occurred_at
            ON consumption_log(occurred_at);
        CREATE INDEX IF NOT EXISTS idx_transactions_ts
            ON transactions(ts);
        """
    )


def format_ts(value: datetime) -> str:
    return value.strftime(DATETIME_FMT)


def parse_ts(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.strptime(value, DATETIME_FMT)
    except ValueError:
        return datetime.fromisoformat(value)


def _dump_meta(meta: Optional[dict[str, Any]]) -> Optional[str]:
    return json.dumps(meta) if meta else None


def _load_meta(raw: Optional[str]) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring malformed meta payload: %r", raw)
        return {}
    return value if isinstance(value, dict) else {}


# Activities.


def insert_activity(conn: sqlite3.Connection, record: ActivityRecord) -> int:
    cur = conn.execute(
        """
        INSERT INTO activities (
            started_at,
            ended_at,
            source,
            app_name,
            bundle_id,
            window_title,
            url,
            domain,
            category,
            seconds_active,
            idle_seconds
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            format_ts(record.started_at),
            format_ts(record.ended_at) if record.ended_at else None,
            record.source,
            record.app_name,
            record.bundle_id,
            record.window_title,
            record.url,
            record.domain,
            record.category,
            record.seconds_active,
            record.idle_seconds,
        ),
    )
    return int(cur.lastrowid)


def extend_activity(
    conn: sqlite3.Connection,
    record_id: int,
    ended_at: datetime,
    active_delta: int,
    idle_delta: int,
) -> None:
    cur = conn.execute(
        """
        UPDATE activities
        SET ended_at = ?,
            seconds_active = seconds_active + ?,
            idle_seconds = idle_seconds + ?
        WHERE id = ?
        """,
        (format_ts(ended_at), active_delta, idle_delta, record_id),
    )
    if cur.rowcount == 0:
        raise ValueError(f"No activity found for id={record_id}")


def close_activity(conn: sqlite3.Connection, record_id: int, ended_at: datetime) -> None:
    cur = conn.execute(
        "UPDATE activities SET ended_at = ? WHERE id = ?",
        (format_ts(ended_at), record_id),
    )
    if cur.rowcount == 0:
        raise ValueError(f"No activity found for id={record_id}")


def fetch_activities_since(
    conn: sqlite3.Connection, since: Optional[datetime]
) -> list[sqlite3.Row]:
    """Records overlapping ``[since, now]`` (all records when ``since`` is None)."""
    if since is None:
        return list(
            conn.execute(
                f"SELECT {_ACTIVITY_COLUMNS} FROM activities ORDER BY started_at, id"
            )
        )
    since_iso = format_ts(since)
    return list(
        conn.execute(
            f"""
            SELECT {_ACTIVITY_COLUMNS}
            FROM activities
            WHERE started_at >= ? OR ended_at IS NULL OR ended_at >= ?
            ORDER BY started_at, id
            """,
            (since_iso, since_iso),
        )
    )


def fetch_recent_activities(conn: sqlite3.Connection, limit: int) -> list[sqlite3.Row]:
    return list(
        conn.execute(
            f"""
            SELECT {_ACTIVITY_COLUMNS}
            FROM activities
            ORDER BY started_at DESC, id DESC
            LIMIT ?
            """,
            (limit,),
        )
    )


def row_to_record(row: sqlite3.Row) -> ActivityRecord:
    return ActivityRecord(
        id=row["id"],
        started_at=parse_ts(row["started_at"]),
        ended_at=parse_ts(row["ended_at"]),
        source=row["source"],
        app_name=row["app_name"],
        bundle_id=row["bundle_id"],
        window_title=row["window_title"],
        url=row["url"],
        domain=row["domain"],
        category=row["category"],
        seconds_active=int(row["seconds_active"] or 0),
        idle_seconds=int(row["idle_seconds"] or 0),
    )


# Trophies and settings.


def fetch_earned(conn: sqlite3.Connection) -> list[sqlite3.Row]:
    return list(conn.execute("SELECT id, earned_at, meta FROM trophies ORDER BY earned_at"))


def upsert_earned(
    conn: sqlite3.Connection,
    trophy_id: str,
    earned_at: datetime,
    meta: Optional[dict[str, Any]] = None,
) -> None:
    conn.execute(
        """
        INSERT INTO trophies (id, earned_at, meta) VALUES (?, ?, ?)
        ON CONFLICT(id) DO UPDATE SET earned_at = excluded.earned_at, meta = excluded.meta
        """,
        (trophy_id, format_ts(earned_at), _dump_meta(meta)),
    )


def insert_earned(
    conn: sqlite3.Connection,
    trophy_id: str,
    earned_at: datetime,
    meta: Optional[dict[str, Any]] = None,
) -> bool:
    """Insert a first-earn row; an existing row for the trophy is left untouched."""
    cursor = conn.execute(
        """
        INSERT INTO trophies (id, earned_at, meta) VALUES (?, ?, ?)
        ON CONFLICT(id) DO NOTHING
        """,
        (trophy_id, format_ts(earned_at), _dump_meta(meta)),
    )
    return cursor.rowcount > 0


def get_setting(conn: sqlite3.Connection, key: str) -> Any:
    row = conn.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
    if row is None or row["value"] is None:
        return None
    try:
        return json.loads(row["value"])
    except json.JSONDecodeError:
        logger.warning("Failed to parse setting %s", key)
        return None


def set_setting(conn: sqlite3.Connection, key: str, value: Any) -> None:
    conn.execute(
        """
        INSERT INTO settings (key, value) VALUES (?, ?)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value
        """,
        (key, json.dumps(value)),
    )


# Auxiliary feeds. Writers exist for importers and fixtures; the core only reads.


def insert_consumption(
    conn: sqlite3.Connection,
    kind: str,
    occurred_at: datetime,
    meta: Optional[dict[str, Any]] = None,
) -> None:
    conn.execute(
        "INSERT INTO consumption_log (occurred_at, kind, day, meta) VALUES (?, ?, ?, ?)",
        (format_ts(occurred_at), kind, occurred_at.strftime("%Y-%m-%d"), _dump_meta(meta)),
    )


def insert_library_item(
    conn: sqlite3.Connection,
    purpose: str,
    consumed_at: Optional[datetime] = None,
    note: Optional[str] = None,
) -> None:
    conn.execute(
        "INSERT INTO library_items (purpose, consumed_at, note) VALUES (?, ?, ?)",
        (purpose, format_ts(consumed_at) if consumed_at else None, note),
    )


def insert_transaction(
    conn: sqlite3.Connection,
    type_: str,
    amount: int,
    ts: datetime,
    meta: Optional[dict[str, Any]] = None,
) -> None:
    conn.execute(
        "INSERT INTO transactions (ts, type, amount, meta) VALUES (?, ?, ?, ?)",
        (format_ts(ts), type_, amount, _dump_meta(meta)),
    )


def set_balance(conn: sqlite3.Connection, balance: int) -> None:
    conn.execute(
        """
        INSERT INTO wallet (id, balance) VALUES (1, ?)
        ON CONFLICT(id) DO UPDATE SET balance = excluded.balance
        """,
        (balance,),
    )


class SQLiteRepository:
    """Repository over one shared connection; every call is serialized."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.RLock()

    @classmethod
    def open(cls, path: Union[Path, str]) -> "SQLiteRepository":
        return cls(open_database(path, check_same_thread=False))

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def fetch_all(self, sql: str, params: tuple[Any, ...] = ()) -> list[sqlite3.Row]:
        with self._lock:
            return list(self._conn.execute(sql, params))

    def insert_open_record(self, record: ActivityRecord) -> int:
        with self._lock:
            return insert_activity(self._conn, record)

    def extend_record(
        self, record_id: int, ended_at: datetime, active_delta: int, idle_delta: int
    ) -> None:
        with self._lock:
            extend_activity(self._conn, record_id, ended_at, active_delta, idle_delta)

    def close_record(self, record_id: int, ended_at: datetime) -> None:
        with self._lock:
            close_activity(self._conn, record_id, ended_at)

    def query_records(self, since: Optional[datetime] = None) -> list[ActivityRecord]:
        with self._lock:
            rows = fetch_activities_since(self._conn, since)
        return [row_to_record(row) for row in rows]

    def recent_records(self, limit: int) -> list[ActivityRecord]:
        with self._lock:
            rows = fetch_recent_activities(self._conn, limit)
        return [row_to_record(row) for row in rows]

    def list_earned(self) -> list[EarnedTrophy]:
        with self._lock:
            rows = fetch_earned(self._conn)
        return [
            EarnedTrophy(
                id=row["id"],
                earned_at=parse_ts(row["earned_at"]),
                meta=_load_meta(row["meta"]) or None,
            )
            for row in rows
        ]

    def upsert_earned(
        self, trophy_id: str, earned_at: datetime, meta: Optional[dict[str, Any]] = None
    ) -> None:
        with self._lock:
            upsert_earned(self._conn, trophy_id, earned_at, meta)

    def insert_earned(
        self, trophy_id: str, earned_at: datetime, meta: Optional[dict[str, Any]] = None
    ) -> bool:
        with self._lock:
            return insert_earned(self._conn, trophy_id, earned_at, meta)

    def clear_earned(self) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM trophies")

    def get_json(self, key: str) -> Any:
        with self._lock:
            return get_setting(self._conn, key)

    def set_json(self, key: str, value: Any) -> None:
        with self._lock:
            set_setting(self._conn, key, value)


class SQLiteFeeds:
    """Read-only views over the consumption log, library and wallet tables."""

    def __init__(self, repository: SQLiteRepository) -> None:
        self._repository = repository

    def list_consumption_since(self, since: datetime) -> list[ConsumptionEntry]:
        rows = self._repository.fetch_all(
            """
            SELECT occurred_at, kind, day, meta
            FROM consumption_log
            WHERE occurred_at >= ?
            ORDER BY occurred_at
            """,
            (format_ts(since),),
        )
        return [
            ConsumptionEntry(
                kind=row["kind"],
                occurred_at=parse_ts(row["occurred_at"]),
                day=row["day"],
                meta=_load_meta(row["meta"]),
            )
            for row in rows
        ]

    def list_library_items(self) -> list[LibraryItem]:
        rows = self._repository.fetch_all(
            "SELECT purpose, consumed_at, note FROM library_items ORDER BY id"
        )
        return [
            LibraryItem(
                purpose=row["purpose"],
                consumed_at=parse_ts(row["consumed_at"]),
                note=row["note"],
            )
            for row in rows
        ]

    def list_transactions_since(self, since: datetime) -> list[WalletTransaction]:
        rows = self._repository.fetch_all(
            "SELECT ts, type, amount, meta FROM transactions WHERE ts >= ? ORDER BY ts",
            (format_ts(since),),
        )
        return [
            WalletTransaction(
                type=row["type"],
                amount=int(row["amount"]),
                ts=parse_ts(row["ts"]),
                meta=_load_meta(row["meta"]),
            )
            for row in rows
        ]

    def get_balance(self) -> int:
        rows = self._repository.fetch_all("SELECT balance FROM wallet WHERE id = 1")
        return int(rows[0]["balance"]) if rows else 0
