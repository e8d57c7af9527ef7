from __future__ import annotations

import sqlite3
from collections.abc import Iterable

from store.db import Database, parse_iso, to_iso, utc_now
from store.models import CountryTopic, Subscription


def _row_to_topic(row: sqlite3.Row) -> CountryTopic:
    return CountryTopic(
        country=str(row["country"]),
        topic_handle=str(row["topic_handle"]),
        disaster_count=int(row["disaster_count"]),
        updated_at=parse_iso(str(row["updated_at"])) if row["updated_at"] else None,
    )


def _row_to_subscription(row: sqlite3.Row) -> Subscription:
    return Subscription(
        email=str(row["email"]),
        country=str(row["country"]),
        subscription_handle=str(row["subscription_handle"]),
        status=str(row["status"]),
        subscribed_at=parse_iso(str(row["subscribed_at"])),
        unsubscribed_at=parse_iso(str(row["unsubscribed_at"]))
        if row["unsubscribed_at"]
        else None,
    )


class TopicStore:
    def __init__(self, db: Database) -> None:
        self._db = db

    def get_topic(self, country: str) -> CountryTopic | None:
        with self._db.lock:
            row = self._db.conn.execute(
                "SELECT * FROM country_topics WHERE country = ? LIMIT 1;", (country,)
            ).fetchone()
        return _row_to_topic(row) if row is not None else None

    def save_topic(self, country: str, topic_handle: str) -> CountryTopic:
        now_iso = to_iso(utc_now())
        with self._db.lock:
            self._db.conn.execute(
                """
                INSERT INTO country_topics(country, topic_handle, disaster_count, created_at, updated_at)
                VALUES(?, ?, 0, ?, ?)
                ON CONFLICT(country) DO UPDATE SET
                  topic_handle = excluded.topic_handle,
                  updated_at = excluded.updated_at;
                """,
                (country, topic_handle, now_iso, now_iso),
            )
            self._db.conn.commit()
            row = self._db.conn.execute(
                "SELECT * FROM country_topics WHERE country = ?;", (country,)
            ).fetchone()
        return _row_to_topic(row)

    def update_count(self, country: str, count: int) -> bool:
        with self._db.lock:
            cur = self._db.conn.execute(
                """
                UPDATE country_topics
                SET disaster_count = ?, updated_at = ?
                WHERE country = ?;
                """,
                (count, to_iso(utc_now()), country),
            )
            self._db.conn.commit()
        return cur.rowcount > 0

    def reset_counts_except(self, countries: Iterable[str]) -> int:
        keep = list(countries)
        now_iso = to_iso(utc_now())
        with self._db.lock:
            if keep:
                placeholders = ", ".join("?" for _ in keep)
                cur = self._db.conn.execute(
                    f"""
                    UPDATE country_topics SET disaster_count = 0, updated_at = ?
                    WHERE disaster_count != 0 AND country NOT IN ({placeholders});
                    """,
                    (now_iso, *keep),
                )
            else:
                cur = self._db.conn.execute(
                    """
                    UPDATE country_topics SET disaster_count = 0, updated_at = ?
                    WHERE disaster_count != 0;
                    """,
                    (now_iso,),
                )
            self._db.conn.commit()
        return cur.rowcount

    def list_topics(self) -> list[CountryTopic]:
        with self._db.lock:
            rows = self._db.conn.execute(
                "SELECT * FROM country_topics ORDER BY country ASC;"
            ).fetchall()
        return [_row_to_topic(r) for r in rows]

    def upsert_subscription(
        self, *, email: str, country: str, subscription_handle: str, status: str
    ) -> Subscription:
        now_iso = to_iso(utc_now())
        with self._db.lock:
            self._db.conn.execute(
                """
                INSERT INTO subscriptions(email, country, subscription_handle, status, subscribed_at)
                VALUES(?, ?, ?, ?, ?)
                ON CONFLICT(email, country) DO UPDATE SET
                  subscription_handle = excluded.subscription_handle,
                  status = excluded.status,
                  subscribed_at = excluded.subscribed_at,
                  unsubscribed_at = NULL;
                """,
                (email, country, subscription_handle, status, now_iso),
            )
            self._db.conn.commit()
            row = self._db.conn.execute(
                "SELECT * FROM subscriptions WHERE email = ? AND country = ?;",
                (email, country),
            ).fetchone()
        return _row_to_subscription(row)

    def get_subscription(self, subscription_handle: str) -> Subscription | None:
        with self._db.lock:
            row = self._db.conn.execute(
                "SELECT * FROM subscriptions WHERE subscription_handle = ? LIMIT 1;",
                (subscription_handle,),
            ).fetchone()
        return _row_to_subscription(row) if row is not None else None

    def list_subscriptions(self, email: str) -> list[Subscription]:
        with self._db.lock:
            rows = self._db.conn.execute(
                """
                SELECT * FROM subscriptions
                WHERE email = ?
                ORDER BY subscribed_at DESC;
                """,
                (email,),
            ).fetchall()
        return [_row_to_subscription(r) for r in rows]

    def mark_unsubscribed(self, subscription_handle: str) -> bool:
        with self._db.lock:
            cur = self._db.conn.execute(
                """
                UPDATE subscriptions
                SET status = 'unsubscribed', unsubscribed_at = ?
                WHERE subscription_handle = ?;
                """,
                (to_iso(utc_now()), subscription_handle),
            )
            self._db.conn.commit()
        return cur.rowcount > 0

    def log_alert(
        self,
        *,
        disaster_id: str,
        country: str,
        topic_handle: str | None,
        message_id: str | None,
        subject: str,
        message: str,
        status: str,
        error: str | None = None,
    ) -> None:
        with self._db.lock:
            self._db.conn.execute(
                """
                INSERT INTO alert_log(
                  disaster_id, country, topic_handle, message_id, subject, message, status, error, created_at
                )
                VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?);
                """,
                (
                    disaster_id,
                    country,
                    topic_handle,
                    message_id,
                    subject,
                    message,
                    status,
                    error,
                    to_iso(utc_now()),
                ),
            )
            self._db.conn.commit()

    def alert_log(self, disaster_id: str) -> list[dict]:
        with self._db.lock:
            rows = self._db.conn.execute(
                """
                SELECT disaster_id, country, topic_handle, message_id, status, error, created_at
                FROM alert_log
                WHERE disaster_id = ?
                ORDER BY alert_id ASC;
                """,
                (disaster_id,),
            ).fetchall()
        return [dict(r) for r in rows]
