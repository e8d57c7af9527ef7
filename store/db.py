from __future__ import annotations

import sqlite3
import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path


@dataclass(frozen=True)
class Database:
    conn: sqlite3.Connection
    lock: threading.Lock


_MIGRATIONS: list[tuple[int, str]] = [
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
          version INTEGER NOT NULL PRIMARY KEY
        );

        CREATE TABLE IF NOT EXISTS disasters (
          id INTEGER NOT NULL PRIMARY KEY AUTOINCREMENT,
          disaster_id TEXT NOT NULL,
          type TEXT NOT NULL,
          severity TEXT NOT NULL,
          title TEXT NOT NULL,
          description TEXT NOT NULL DEFAULT '',
          location_name TEXT NOT NULL,
          latitude REAL NOT NULL,
          longitude REAL NOT NULL,
          magnitude REAL NULL,
          depth REAL NULL,
          affected_area REAL NULL,
          source TEXT NOT NULL,
          external_url TEXT NULL,
          occurred_at TEXT NOT NULL,
          is_active INTEGER NOT NULL DEFAULT 1,
          created_at TEXT NOT NULL,
          updated_at TEXT NOT NULL,

          CHECK (latitude BETWEEN -90 AND 90),
          CHECK (longitude BETWEEN -180 AND 180)
        );

        CREATE UNIQUE INDEX IF NOT EXISTS disasters_disaster_id_uq ON disasters(disaster_id);
        CREATE INDEX IF NOT EXISTS disasters_active_occurred_idx ON disasters(is_active, occurred_at);
        CREATE INDEX IF NOT EXISTS disasters_type_idx ON disasters(type);

        CREATE TABLE IF NOT EXISTS sources (
          source_id TEXT NOT NULL PRIMARY KEY,
          last_fetch_at TEXT NULL,
          last_success_at TEXT NULL,
          last_error_at TEXT NULL,
          last_error TEXT NULL,
          consecutive_failures INTEGER NOT NULL DEFAULT 0,
          success_count INTEGER NOT NULL DEFAULT 0,
          error_count INTEGER NOT NULL DEFAULT 0,
          last_new_count INTEGER NOT NULL DEFAULT 0,
          last_updated_count INTEGER NOT NULL DEFAULT 0,
          last_total INTEGER NOT NULL DEFAULT 0
        );
        """,
    ),
    (
        2,
        """
        CREATE TABLE IF NOT EXISTS country_topics (
          country TEXT NOT NULL PRIMARY KEY,
          topic_handle TEXT NOT NULL,
          disaster_count INTEGER NOT NULL DEFAULT 0,
          created_at TEXT NOT NULL,
          updated_at TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS subscriptions (
          email TEXT NOT NULL,
          country TEXT NOT NULL,
          subscription_handle TEXT NOT NULL,
          status TEXT NOT NULL,
          subscribed_at TEXT NOT NULL,
          unsubscribed_at TEXT NULL,
          PRIMARY KEY (email, country)
        );

        CREATE INDEX IF NOT EXISTS subscriptions_handle_idx ON subscriptions(subscription_handle);

        CREATE TABLE IF NOT EXISTS alert_log (
          alert_id INTEGER NOT NULL PRIMARY KEY AUTOINCREMENT,
          disaster_id TEXT NOT NULL,
          country TEXT NOT NULL,
          topic_handle TEXT NULL,
          message_id TEXT NULL,
          subject TEXT NOT NULL,
          message TEXT NOT NULL,
          status TEXT NOT NULL,
          error TEXT NULL,
          created_at TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS alert_log_disaster_idx ON alert_log(disaster_id);
        """,
    ),
    (
        3,
        """
        CREATE TABLE IF NOT EXISTS outbox_topics (
          topic_handle TEXT NOT NULL PRIMARY KEY,
          name TEXT NOT NULL,
          created_at TEXT NOT NULL
        );

        CREATE UNIQUE INDEX IF NOT EXISTS outbox_topics_name_uq ON outbox_topics(name);

        CREATE TABLE IF NOT EXISTS outbox_messages (
          message_id TEXT NOT NULL PRIMARY KEY,
          topic_handle TEXT NOT NULL,
          subject TEXT NOT NULL,
          body TEXT NOT NULL,
          created_at TEXT NOT NULL,
          delivered_at TEXT NULL,
          FOREIGN KEY (topic_handle) REFERENCES outbox_topics(topic_handle) ON DELETE CASCADE
        );

        CREATE TABLE IF NOT EXISTS outbox_subscriptions (
          subscription_handle TEXT NOT NULL PRIMARY KEY,
          topic_handle TEXT NOT NULL,
          endpoint TEXT NOT NULL,
          created_at TEXT NOT NULL,
          FOREIGN KEY (topic_handle) REFERENCES outbox_topics(topic_handle) ON DELETE CASCADE
        );
        """,
    ),
]


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def to_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(tz=UTC).isoformat().replace("+00:00", "Z")


def parse_iso(ts: str) -> datetime:
    if ts.endswith("Z"):
        return datetime.fromisoformat(ts.removesuffix("Z") + "+00:00")
    parsed = datetime.fromisoformat(ts)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


def open_database(path: Path) -> Database:
    if str(path) != ":memory:":
        path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA busy_timeout=5000;")
    _apply_migrations(conn)
    return Database(conn=conn, lock=threading.Lock())


def close_database(db: Database) -> None:
    with db.lock:
        db.conn.close()


def _apply_migrations(conn: sqlite3.Connection) -> None:
    conn.execute(
        "CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER NOT NULL PRIMARY KEY);"
    )
    row = conn.execute(
        "SELECT COALESCE(MAX(version), 0) AS v FROM schema_migrations;"
    ).fetchone()
    current_version = int(row["v"])

    for version, sql in _MIGRATIONS:
        if version <= current_version:
            continue
        conn.executescript(sql)
        conn.execute("INSERT INTO schema_migrations(version) VALUES (?);", (version,))
        conn.commit()
