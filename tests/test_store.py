from datetime import UTC, datetime

import pytest

from health.health import record_fetch_error, record_fetch_success, source_status
from normalize.severity import Severity
from store.db import close_database, open_database
from store.disasters import DisasterStore
from store.models import Disaster, DisasterType
from store.topics import TopicStore


def _disaster(disaster_id: str, *, hour: int = 0, severity=Severity.LOW) -> Disaster:
    return Disaster(
        disaster_id=disaster_id,
        type=DisasterType.FLOOD,
        severity=severity,
        title="Flood Alert",
        description="Flood warning issued",
        location_name="Jakarta, Indonesia",
        latitude=-6.2,
        longitude=106.8,
        occurred_at=datetime(2023, 11, 14, hour, tzinfo=UTC),
        source="GDACS",
    )


def test_insert_find_and_update(tmp_path) -> None:
    db = open_database(tmp_path / "test.db")
    try:
        store = DisasterStore(db)
        store.insert(_disaster("flood-1"))
        found = store.find_by_natural_key("flood-1")
        assert found is not None
        assert found.severity is Severity.LOW
        assert found.created_at is not None

        assert store.update("flood-1", {"severity": Severity.HIGH, "title": "Worse"})
        updated = store.find_by_natural_key("flood-1")
        assert updated.severity is Severity.HIGH
        assert updated.title == "Worse"
        assert updated.created_at == found.created_at

        assert store.find_by_natural_key("missing") is None
        assert not store.update("missing", {"title": "x"})
    finally:
        close_database(db)


def test_update_rejects_identity_fields(tmp_path) -> None:
    db = open_database(tmp_path / "test.db")
    try:
        store = DisasterStore(db)
        store.insert(_disaster("flood-1"))
        with pytest.raises(ValueError):
            store.update("flood-1", {"disaster_id": "flood-2"})
    finally:
        close_database(db)


def test_list_active_newest_first_and_stats(tmp_path) -> None:
    db = open_database(tmp_path / "test.db")
    try:
        store = DisasterStore(db)
        store.insert(_disaster("old", hour=1))
        store.insert(_disaster("new", hour=5, severity=Severity.CRITICAL))
        assert [d.disaster_id for d in store.list_active()] == ["new", "old"]

        stats = store.stats_by_type()
        assert stats["flood"]["total"] == 2
        assert stats["flood"]["critical"] == 1
    finally:
        close_database(db)


def test_topics_and_subscriptions(tmp_path) -> None:
    db = open_database(tmp_path / "test.db")
    try:
        topics = TopicStore(db)
        topics.save_topic("Japan", "outbox:alerts-japan")
        topics.save_topic("Chile", "outbox:alerts-chile")
        assert topics.update_count("Japan", 3)
        assert topics.update_count("Chile", 2)
        assert not topics.update_count("Peru", 1)

        assert topics.reset_counts_except(["Japan"]) == 1
        counts = {t.country: t.disaster_count for t in topics.list_topics()}
        assert counts == {"Chile": 0, "Japan": 3}

        sub = topics.upsert_subscription(
            email="a@example.com", country="Japan", subscription_handle="h1", status="confirmed"
        )
        assert sub.unsubscribed_at is None
        assert topics.mark_unsubscribed("h1")
        assert topics.get_subscription("h1").status == "unsubscribed"

        again = topics.upsert_subscription(
            email="a@example.com", country="Japan", subscription_handle="h2", status="pending"
        )
        assert again.subscription_handle == "h2"
        assert again.unsubscribed_at is None
        assert len(topics.list_subscriptions("a@example.com")) == 1
    finally:
        close_database(db)


def test_source_health_tracks_failures(tmp_path) -> None:
    db = open_database(tmp_path / "test.db")
    try:
        assert record_fetch_error(db, source_id="usgs", error="timeout") == 1
        assert record_fetch_error(db, source_id="usgs", error="timeout") == 2
        record_fetch_success(db, source_id="usgs", new_count=2, updated_count=1, total=3)
        (row,) = source_status(db)
        assert row["consecutive_failures"] == 0
        assert row["error_count"] == 2
        assert row["success_count"] == 1
        assert row["last_total"] == 3
        assert row["last_error"] is None
    finally:
        close_database(db)
