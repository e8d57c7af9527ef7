from __future__ import annotations

import math
import random
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Protocol

import httpx

from ingest.fetch import fetch_feed
from ingest.parsers.csv import parse_csv_records
from ingest.sources.base import SourceFetcher, derived_key
from normalize.transform import UNKNOWN_LOCATION, parse_timestamp, transform_fire
from store.db import Database, utc_now
from store.models import Disaster, DisasterType


FIRMS_BASE_URL = "https://firms.modaps.eosdis.nasa.gov/api/area/csv/"


class FireFeed(Protocol):
    async def load(self) -> list[dict]: ...


def _float_or(value: str | None, default: float) -> float:
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _acquired_at(row: dict) -> str | None:
    acq_date = row.get("acq_date") or ""
    acq_time = row.get("acq_time") or ""
    if not acq_date:
        return None
    try:
        dt = datetime.fromisoformat(acq_date).replace(tzinfo=UTC)
    except ValueError:
        return None
    if len(acq_time) >= 3 and acq_time.isdigit():
        padded = acq_time.zfill(4)
        dt = dt.replace(hour=int(padded[:2]) % 24, minute=int(padded[2:4]) % 60)
    return dt.isoformat().replace("+00:00", "Z")


def firms_row_to_event(row: dict) -> dict | None:
    lat = _float_or(row.get("latitude"), float("nan"))
    lng = _float_or(row.get("longitude"), float("nan"))
    if math.isnan(lat) or math.isnan(lng):
        return None
    brightness = _float_or(row.get("bright_ti4") or row.get("brightness"), 300.0)
    location = row.get("country_id") or row.get("country") or UNKNOWN_LOCATION
    confidence = row.get("confidence") or "n/a"
    return {
        "latitude": lat,
        "longitude": lng,
        "brightness": brightness,
        "frp": _float_or(row.get("frp"), 0.0),
        "confidence": confidence,
        "location_name": location,
        "title": f"Wildfire detected in {location}",
        "description": f"Brightness: {brightness}K, Confidence: {confidence}%",
        "area": _float_or(row.get("scan"), 1.0),
        "occurred_at": _acquired_at(row),
        "source": "NASA FIRMS",
    }


class FirmsFireFeed:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_key: str,
        user_agent: str,
        timeout_seconds: float,
        product: str = "VIIRS_SNPP_NRT",
        area: str = "world",
        days: int = 1,
        max_records: int = 500,
    ) -> None:
        self._client = client
        self._url = f"{FIRMS_BASE_URL}{api_key}/{product}/{area}/{days}"
        self._user_agent = user_agent
        self._timeout = timeout_seconds
        self._max_records = max_records

    async def load(self) -> list[dict]:
        data = await fetch_feed(
            self._client,
            url=self._url,
            user_agent=self._user_agent,
            timeout_seconds=self._timeout,
        )
        events = [e for e in map(firms_row_to_event, parse_csv_records(data)) if e]
        # world-wide queries return thousands of hotspots; keep the most intense
        events.sort(key=lambda e: e["frp"], reverse=True)
        return events[: self._max_records]


# (location name, latitude, longitude)
SAMPLE_REGIONS: tuple[tuple[str, float, float], ...] = (
    ("California, USA", 37.8, -120.5),
    ("Queensland, Australia", -25.3, 152.8),
    ("Turkey", 39.9, 32.7),
    ("New Jersey, USA", 40.7, -74.0),
    ("Ontario, Canada", 43.6, -79.3),
)


class SampleFireFeed:
    """Synthetic hotspots over a fixed set of regions.

    Used when no FIRMS key is configured so the fire pipeline still has data
    to work with. Values are drawn from `rng`; pass a seeded `random.Random`
    for reproducible output.
    """

    def __init__(
        self,
        *,
        rng: random.Random | None = None,
        now: Callable[[], datetime] = utc_now,
    ) -> None:
        self._rng = rng or random.Random()
        self._now = now

    async def load(self) -> list[dict]:
        now = self._now()
        events: list[dict] = []
        for index, (location, lat, lng) in enumerate(SAMPLE_REGIONS):
            brightness = round(300 + self._rng.random() * 100, 1)
            confidence = round(75 + self._rng.random() * 20)
            events.append(
                {
                    "latitude": lat,
                    "longitude": lng,
                    "brightness": brightness,
                    "frp": round(30 + self._rng.random() * 50, 1),
                    "confidence": confidence,
                    "location_name": location,
                    "title": f"Wildfire detected in {location}",
                    "description": f"Brightness: {brightness}K, Confidence: {confidence}%",
                    "area": round(200 + self._rng.random() * 300, 1),
                    "occurred_at": now - timedelta(hours=index),
                    "source": "Sample Fire Feed",
                }
            )
        return events


class FireFetcher(SourceFetcher):
    disaster_type = DisasterType.FIRE

    def __init__(self, *, db: Database, feed: FireFeed, source_id: str) -> None:
        super().__init__(db=db)
        self._feed = feed
        self.source_id = source_id

    async def load_raw(self) -> list[dict]:
        return await self._feed.load()

    def build_records(self, raw: list[dict]) -> list[Disaster | None]:
        records: list[Disaster | None] = []
        for event in raw:
            lat, lng = event.get("latitude"), event.get("longitude")
            if lat is None or lng is None:
                continue
            occurred_at = parse_timestamp(event.get("occurred_at"))
            key = derived_key(self.disaster_type, float(lat), float(lng), occurred_at)
            records.append(transform_fire({**event, "occurred_at": occurred_at}, key))
        return records
