import asyncio
import random
import sqlite3
from datetime import UTC, datetime
from pathlib import Path

import httpx

from health.health import source_status
from ingest.sources.earthquake import EarthquakeFetcher
from ingest.sources.fire import FireFetcher, FirmsFireFeed, SampleFireFeed
from ingest.sources.gdacs import CycloneFetcher, FloodFetcher, cyclone_category, gdacs_location
from normalize.severity import Severity
from store.db import close_database, open_database
from store.disasters import DisasterStore


FIXTURES = Path(__file__).resolve().parent / "fixtures"
USGS_URL = "https://usgs.test/all_day.geojson"
GDACS_URL = "https://gdacs.test/rss.xml"


def _serve(body: bytes, *, failures: int = 0, status: int = 503):
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] <= failures:
            return httpx.Response(status)
        return httpx.Response(200, content=body)

    return handler, calls


def _earthquakes(db, client, **kwargs) -> EarthquakeFetcher:
    return EarthquakeFetcher(
        db=db,
        client=client,
        url=USGS_URL,
        user_agent="test-agent",
        timeout_seconds=5,
        **kwargs,
    )


def test_earthquake_fetch_is_idempotent(tmp_path) -> None:
    db = open_database(tmp_path / "test.db")
    handler, _ = _serve((FIXTURES / "usgs.geojson").read_bytes())

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            fetcher = _earthquakes(db, client)
            return await fetcher.fetch(), await fetcher.fetch()

    try:
        first, second = asyncio.run(run())
        assert first.success and second.success
        assert (first.new_count, first.updated_count, first.total) == (2, 0, 2)
        assert (second.new_count, second.updated_count) == (0, 2)

        store = DisasterStore(db)
        assert len(store.list_active()) == 2
        quake = store.find_by_natural_key("usgs-ci40000001")
        assert quake is not None
        assert quake.severity is Severity.HIGH
        assert quake.magnitude == 6.1
        assert store.find_by_natural_key("usgs-nc7300low") is None
    finally:
        close_database(db)


def test_earthquake_fetch_retries_then_succeeds(tmp_path) -> None:
    db = open_database(tmp_path / "test.db")
    handler, calls = _serve((FIXTURES / "usgs.geojson").read_bytes(), failures=2)
    sleeps: list[float] = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            fetcher = _earthquakes(
                db, client, max_attempts=3, retry_delay_seconds=1.0, sleep=fake_sleep
            )
            return await fetcher.fetch()

    try:
        result = asyncio.run(run())
        assert result.success
        assert calls["n"] == 3
        assert sleeps == [1.0, 1.0]
    finally:
        close_database(db)


def test_earthquake_fetch_gives_up_after_max_attempts(tmp_path) -> None:
    db = open_database(tmp_path / "test.db")
    handler, calls = _serve(b"", failures=10)

    async def no_sleep(seconds: float) -> None:
        return None

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            fetcher = _earthquakes(db, client, max_attempts=2, sleep=no_sleep)
            return await fetcher.fetch()

    try:
        result = asyncio.run(run())
        assert not result.success
        assert result.error == "http_503"
        assert calls["n"] == 2
        (row,) = source_status(db)
        assert row["source_id"] == "usgs_earthquakes"
        assert row["consecutive_failures"] == 1
    finally:
        close_database(db)


def test_timeout_becomes_failed_result(tmp_path) -> None:
    db = open_database(tmp_path / "test.db")

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            fetcher = FloodFetcher(
                db=db, client=client, url=GDACS_URL, user_agent="t", timeout_seconds=1
            )
            return await fetcher.fetch()

    try:
        result = asyncio.run(run())
        assert not result.success
        assert result.error == "timeout"
    finally:
        close_database(db)


def test_gdacs_flood_and_cyclone_from_one_feed(tmp_path) -> None:
    db = open_database(tmp_path / "test.db")
    handler, _ = _serve((FIXTURES / "gdacs.rss.xml").read_bytes())

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            kwargs = dict(db=db, client=client, url=GDACS_URL, user_agent="t", timeout_seconds=1)
            return await FloodFetcher(**kwargs).fetch(), await CycloneFetcher(**kwargs).fetch()

    try:
        floods, cyclones = asyncio.run(run())
        assert (floods.new_count, floods.total) == (1, 1)
        assert (cyclones.new_count, cyclones.total) == (1, 1)

        store = DisasterStore(db)
        flood = store.find_by_natural_key("flood-gdacs-1102345")
        assert flood.severity is Severity.HIGH
        assert flood.location_name == "Indonesia"
        assert flood.source == "GDACS"

        cyclone = store.find_by_natural_key("cyclone-gdacs-1000999")
        assert cyclone.severity is Severity.CRITICAL
        assert cyclone.magnitude == 4.0
        assert cyclone.location_name == "Philippines"
        assert cyclone.description == "Wind Speed: 132 mph, Category 4"
    finally:
        close_database(db)


def test_unreadable_gdacs_feed_is_a_parse_error(tmp_path) -> None:
    db = open_database(tmp_path / "test.db")
    handler, _ = _serve(b"this is not a feed")

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await CycloneFetcher(
                db=db, client=client, url=GDACS_URL, user_agent="t", timeout_seconds=1
            ).fetch()

    try:
        result = asyncio.run(run())
        assert not result.success
        assert result.error.startswith("parse_error")
    finally:
        close_database(db)


def test_cyclone_category_from_wind_or_alert_level() -> None:
    assert cyclone_category(160, None) == 5
    assert cyclone_category(100, "Green") == 2
    assert cyclone_category(50, "Red") == 0
    assert cyclone_category(None, "Red") == 4
    assert cyclone_category(None, "Orange") == 2
    assert cyclone_category(None, None) == 0


def test_gdacs_location_appends_country() -> None:
    assert gdacs_location({"title": "Green flood alert in Java", "country": "Indonesia"}) == (
        "Java, Indonesia"
    )
    assert gdacs_location({"title": "Flood", "country": None}) == "Unknown Location"


def test_sample_fire_feed_is_stable_per_day(tmp_path) -> None:
    db = open_database(tmp_path / "test.db")
    now = datetime(2023, 11, 14, 12, tzinfo=UTC)

    async def run():
        feed = SampleFireFeed(rng=random.Random(7), now=lambda: now)
        fetcher = FireFetcher(db=db, feed=feed, source_id="sample_fires")
        return await fetcher.fetch(), await fetcher.fetch()

    try:
        first, second = asyncio.run(run())
        assert first.new_count == 5
        assert (second.new_count, second.updated_count) == (0, 5)
        assert DisasterStore(db).find_by_natural_key("fire-37.80--120.50-2023-11-14")
    finally:
        close_database(db)


def test_firms_feed_reads_csv(tmp_path) -> None:
    db = open_database(tmp_path / "test.db")
    seen: list[str] = []
    body = (FIXTURES / "firms.csv").read_bytes()

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, content=body)

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            feed = FirmsFireFeed(client, api_key="KEY", user_agent="t", timeout_seconds=1)
            return await FireFetcher(db=db, feed=feed, source_id="firms_hotspots").fetch()

    try:
        result = asyncio.run(run())
        assert seen == ["/api/area/csv/KEY/VIIRS_SNPP_NRT/world/1"]
        assert (result.new_count, result.total) == (2, 2)
        fire = DisasterStore(db).find_by_natural_key("fire-34.10--118.30-2023-11-14")
        assert fire.severity is Severity.CRITICAL
        assert fire.occurred_at == datetime(2023, 11, 14, 9, 30, tzinfo=UTC)
    finally:
        close_database(db)


def test_unsaveable_record_is_skipped_not_fatal(tmp_path, monkeypatch) -> None:
    db = open_database(tmp_path / "test.db")
    handler, _ = _serve((FIXTURES / "usgs.geojson").read_bytes())

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            fetcher = _earthquakes(db, client)
            insert = fetcher._store.insert

            def insert_or_fail(disaster) -> None:
                if disaster.disaster_id == "usgs-us7000abcd":
                    raise sqlite3.OperationalError("database disk image is malformed")
                insert(disaster)

            monkeypatch.setattr(fetcher._store, "insert", insert_or_fail)
            return await fetcher.fetch()

    try:
        result = asyncio.run(run())
        assert result.success
        assert (result.new_count, result.updated_count, result.total) == (1, 0, 2)

        store = DisasterStore(db)
        assert store.find_by_natural_key("usgs-ci40000001") is not None
        assert store.find_by_natural_key("usgs-us7000abcd") is None
        (row,) = source_status(db)
        assert row["last_new_count"] == 1
        assert row["consecutive_failures"] == 0
    finally:
        close_database(db)


class StaticFireFeed:
    def __init__(self, events: list[dict]) -> None:
        self._events = events

    async def load(self) -> list[dict]:
        return self._events


def test_malformed_fire_feed_becomes_parse_error(tmp_path) -> None:
    db = open_database(tmp_path / "test.db")
    feed = StaticFireFeed(
        [{"latitude": "north", "longitude": 10.0, "occurred_at": "2023-11-14T00:00:00Z"}]
    )

    try:
        result = asyncio.run(FireFetcher(db=db, feed=feed, source_id="custom_fires").fetch())
        assert not result.success
        assert result.error.startswith("parse_error:")
        (row,) = source_status(db)
        assert row["consecutive_failures"] == 1
        assert DisasterStore(db).list_active() == []
    finally:
        close_database(db)
