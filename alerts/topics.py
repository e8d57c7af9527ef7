from __future__ import annotations

import asyncio
import logging
import re
import sqlite3
import uuid
from collections.abc import Iterable, Sequence

from alerts.messages import format_welcome_message, format_welcome_subject
from alerts.transport import PENDING_CONFIRMATION, NotificationTransport, TransportError
from store.models import CountryTopic, Disaster, Subscription
from store.topics import TopicStore


logger = logging.getLogger(__name__)

_SPACES_RE = re.compile(r"\s+")
_UNSAFE_RE = re.compile(r"[^a-z0-9_-]")


def topic_name(prefix: str, country: str) -> str:
    slug = _UNSAFE_RE.sub("", _SPACES_RE.sub("-", country.strip().lower()))
    return f"{prefix}-{slug}"


class TopicManager:
    """Per-country notification topics and their e-mail subscriptions.

    Topic handles and subscriptions are mirrored in the local store; the
    transport is the system of record for delivery only.
    """

    def __init__(
        self,
        *,
        store: TopicStore,
        transport: NotificationTransport,
        prefix: str = "disaster-alerts",
    ) -> None:
        self._store = store
        self._transport = transport
        self._prefix = prefix
        self._create_lock = asyncio.Lock()

    async def get_or_create(self, country: str) -> CountryTopic:
        existing = self._store.get_topic(country)
        if existing is not None:
            return existing
        async with self._create_lock:
            existing = self._store.get_topic(country)
            if existing is not None:
                return existing
            name = topic_name(self._prefix, country)
            handle = await self._transport.create_topic(name)
            logger.info("created topic %s for %s", name, country)
            return self._store.save_topic(country, handle)

    def update_count(self, country: str, count: int) -> bool:
        return self._store.update_count(country, count)

    def reset_counts(self, except_countries: Iterable[str]) -> int:
        return self._store.reset_counts_except(except_countries)

    def list_topics(self) -> list[CountryTopic]:
        return self._store.list_topics()

    async def publish(
        self, country: str, subject: str, body: str, *, disaster_id: str
    ) -> str:
        topic_handle: str | None = None
        try:
            topic = await self.get_or_create(country)
            topic_handle = topic.topic_handle
            message_id = await self._transport.publish(topic_handle, subject, body)
        except Exception as e:
            logger.error("alert for %s to %s failed: %s", disaster_id, country, e)
            self._log_alert(
                disaster_id=disaster_id,
                country=country,
                topic_handle=topic_handle,
                message_id=None,
                subject=subject,
                message=body,
                status="failed",
                error=str(e),
            )
            raise

        logger.info("alert for %s sent to %s (%s)", disaster_id, country, message_id)
        self._log_alert(
            disaster_id=disaster_id,
            country=country,
            topic_handle=topic_handle,
            message_id=message_id,
            subject=subject,
            message=body,
            status="sent",
        )
        return message_id

    def _log_alert(self, **entry) -> None:
        # the message is already out or already failed; the log row is secondary
        try:
            self._store.log_alert(**entry)
        except sqlite3.Error as e:
            logger.error("could not record alert for %s: %s", entry["disaster_id"], e)

    async def subscribe(
        self, email: str, country: str, *, active: Sequence[Disaster] = ()
    ) -> Subscription:
        topic = await self.get_or_create(country)
        handle = await self._transport.subscribe(topic.topic_handle, email)
        status = "confirmed"
        if handle == PENDING_CONFIRMATION:
            # the real handle only exists once the recipient confirms
            status = "pending"
            handle = f"pending:{uuid.uuid4()}"
        logger.info("subscribed %s to %s (%s)", email, country, status)
        subscription = self._store.upsert_subscription(
            email=email, country=country, subscription_handle=handle, status=status
        )
        await self._send_welcome(topic, active)
        return subscription

    async def _send_welcome(
        self, topic: CountryTopic, active: Sequence[Disaster]
    ) -> None:
        try:
            await self._transport.publish(
                topic.topic_handle,
                format_welcome_subject(topic.country, active),
                format_welcome_message(topic.country, active),
            )
        except Exception as e:
            logger.warning("welcome message for %s failed: %s", topic.country, e)
            return
        logger.info(
            "welcome message for %s sent with %d active disasters",
            topic.country,
            len(active),
        )

    async def unsubscribe(self, subscription_handle: str) -> bool:
        if self._store.get_subscription(subscription_handle) is None:
            return False
        if not subscription_handle.startswith("pending:"):
            try:
                await self._transport.unsubscribe(subscription_handle)
            except TransportError as e:
                logger.warning(
                    "transport unsubscribe failed for %s: %s", subscription_handle, e
                )
        return self._store.mark_unsubscribed(subscription_handle)

    def subscriptions_for(self, email: str) -> list[Subscription]:
        return self._store.list_subscriptions(email)
