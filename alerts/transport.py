from __future__ import annotations

import sqlite3
import uuid
from typing import Protocol

from store.db import Database, to_iso, utc_now


PENDING_CONFIRMATION = "pending confirmation"


class TransportError(Exception):
    pass


class NotificationTransport(Protocol):
    async def create_topic(self, name: str) -> str: ...

    async def publish(self, topic_handle: str, subject: str, body: str) -> str: ...

    async def subscribe(self, topic_handle: str, endpoint: str) -> str: ...

    async def unsubscribe(self, subscription_handle: str) -> None: ...


class OutboxTransport:
    """Notification transport that writes to local outbox tables.

    Topics, messages and subscriptions land in sqlite for a relay process to
    deliver. With `require_confirmation` set, `subscribe` answers
    "pending confirmation" the way e-mail subscriptions do on hosted pub/sub
    services, and no subscription row is written until one is confirmed.
    """

    def __init__(self, db: Database, *, require_confirmation: bool = False) -> None:
        self._db = db
        self._require_confirmation = require_confirmation

    async def create_topic(self, name: str) -> str:
        topic_handle = f"outbox:{name}"
        try:
            with self._db.lock:
                self._db.conn.execute(
                    """
                    INSERT INTO outbox_topics(topic_handle, name, created_at)
                    VALUES(?, ?, ?)
                    ON CONFLICT DO NOTHING;
                    """,
                    (topic_handle, name, to_iso(utc_now())),
                )
                self._db.conn.commit()
        except sqlite3.Error as e:
            raise TransportError(f"create_topic failed for {name}: {e}") from e
        return topic_handle

    async def publish(self, topic_handle: str, subject: str, body: str) -> str:
        message_id = str(uuid.uuid4())
        try:
            with self._db.lock:
                if not self._topic_exists(topic_handle):
                    raise TransportError(f"unknown topic {topic_handle}")
                self._db.conn.execute(
                    """
                    INSERT INTO outbox_messages(message_id, topic_handle, subject, body, created_at)
                    VALUES(?, ?, ?, ?, ?);
                    """,
                    (message_id, topic_handle, subject, body, to_iso(utc_now())),
                )
                self._db.conn.commit()
        except sqlite3.Error as e:
            raise TransportError(f"publish failed for {topic_handle}: {e}") from e
        return message_id

    async def subscribe(self, topic_handle: str, endpoint: str) -> str:
        if self._require_confirmation:
            return PENDING_CONFIRMATION
        subscription_handle = f"{topic_handle}:{uuid.uuid4()}"
        try:
            with self._db.lock:
                if not self._topic_exists(topic_handle):
                    raise TransportError(f"unknown topic {topic_handle}")
                self._db.conn.execute(
                    """
                    INSERT INTO outbox_subscriptions(subscription_handle, topic_handle, endpoint, created_at)
                    VALUES(?, ?, ?, ?);
                    """,
                    (subscription_handle, topic_handle, endpoint, to_iso(utc_now())),
                )
                self._db.conn.commit()
        except sqlite3.Error as e:
            raise TransportError(f"subscribe failed for {topic_handle}: {e}") from e
        return subscription_handle

    async def unsubscribe(self, subscription_handle: str) -> None:
        try:
            with self._db.lock:
                cur = self._db.conn.execute(
                    "DELETE FROM outbox_subscriptions WHERE subscription_handle = ?;",
                    (subscription_handle,),
                )
                self._db.conn.commit()
        except sqlite3.Error as e:
            raise TransportError(f"unsubscribe failed: {e}") from e
        if cur.rowcount == 0:
            raise TransportError(f"unknown subscription {subscription_handle}")

    def pending_messages(self, topic_handle: str | None = None) -> list[dict]:
        sql = """
            SELECT message_id, topic_handle, subject, body, created_at
            FROM outbox_messages
            WHERE delivered_at IS NULL
        """
        params: tuple = ()
        if topic_handle is not None:
            sql += " AND topic_handle = ?"
            params = (topic_handle,)
        with self._db.lock:
            rows = self._db.conn.execute(sql + " ORDER BY created_at ASC;", params).fetchall()
        return [dict(r) for r in rows]

    def _topic_exists(self, topic_handle: str) -> bool:
        row = self._db.conn.execute(
            "SELECT 1 FROM outbox_topics WHERE topic_handle = ? LIMIT 1;", (topic_handle,)
        ).fetchone()
        return row is not None
