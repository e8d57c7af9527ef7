from __future__ import annotations

import logging
import re

import httpx

from ingest.fetch import fetch_feed
from ingest.parsers.gdacs import parse_gdacs_rss
from ingest.sources.base import SourceFetcher, derived_key
from normalize.transform import (
    UNKNOWN_LOCATION,
    parse_timestamp,
    transform_cyclone,
    transform_flood,
)
from store.db import Database
from store.models import Disaster, DisasterType


logger = logging.getLogger(__name__)

_IN_PLACE_RE = re.compile(r"\bin\s+(.+?)\s*(?:\(|$)", flags=re.IGNORECASE)
_STORM_NAME_RE = re.compile(
    r"\b(?:cyclone|storm|hurricane|typhoon|depression)\s+([A-Z][A-Z0-9-]+)\b"
)
_CYCLONE_WORDS = ("tropical", "cyclone", "hurricane", "typhoon")

KMH_TO_MPH = 0.621371

# Saffir-Simpson lower bounds in mph, category 1 through 5
_SAFFIR_SIMPSON = ((157, 5), (130, 4), (111, 3), (96, 2), (74, 1))

_ALERT_CATEGORY = {"red": 4, "orange": 2, "yellow": 1, "green": 0}


def gdacs_location(record: dict) -> str:
    title = record.get("title") or ""
    country = record.get("country")
    m = _IN_PLACE_RE.search(title)
    place = m.group(1).strip() if m else None
    if place and country and country.casefold() not in place.casefold():
        place = f"{place}, {country}"
    return place or country or UNKNOWN_LOCATION


def gdacs_key(disaster_type: DisasterType, record: dict, lat: float, lng: float) -> str:
    event_id = record.get("event_id")
    if event_id:
        return f"{disaster_type.value}-gdacs-{event_id}"
    return derived_key(disaster_type, lat, lng, parse_timestamp(record.get("published")))


def wind_speed_mph(record: dict) -> float | None:
    value = record.get("severity_value")
    if value is None:
        return None
    unit = (record.get("severity_unit") or "").casefold()
    if unit in ("km/h", "kmh", "kph"):
        return value * KMH_TO_MPH
    if unit in ("mph", ""):
        return value
    return None


def cyclone_category(wind_mph: float | None, alert_level: str | None) -> int:
    if wind_mph:
        for threshold, category in _SAFFIR_SIMPSON:
            if wind_mph >= threshold:
                return category
        return 0
    return _ALERT_CATEGORY.get((alert_level or "").casefold(), 0)


def is_flood(record: dict) -> bool:
    if record.get("event_type"):
        return record["event_type"] == "FL"
    text = f"{record.get('category') or ''} {record.get('title') or ''}".casefold()
    return "flood" in text


def is_cyclone(record: dict) -> bool:
    if record.get("event_type"):
        return record["event_type"] == "TC"
    text = f"{record.get('category') or ''} {record.get('title') or ''}".casefold()
    return any(word in text for word in _CYCLONE_WORDS)


class GdacsFetcher(SourceFetcher):
    def __init__(
        self,
        *,
        db: Database,
        client: httpx.AsyncClient,
        url: str,
        user_agent: str,
        timeout_seconds: float,
    ) -> None:
        super().__init__(db=db)
        self._client = client
        self._url = url
        self._user_agent = user_agent
        self._timeout = timeout_seconds

    async def load_raw(self) -> list[dict]:
        data = await fetch_feed(
            self._client,
            url=self._url,
            user_agent=self._user_agent,
            timeout_seconds=self._timeout,
        )
        return parse_gdacs_rss(data)


class FloodFetcher(GdacsFetcher):
    disaster_type = DisasterType.FLOOD
    source_id = "gdacs_floods"

    def build_records(self, raw: list[dict]) -> list[Disaster | None]:
        records: list[Disaster | None] = []
        for record in raw:
            if not is_flood(record):
                continue
            if record.get("point") is None:
                logger.debug("flood item without coordinates skipped: %s", record.get("id"))
                continue
            lat, lng = record["point"]
            event = {
                "latitude": lat,
                "longitude": lng,
                "alert_level": record.get("alert_level"),
                "affected_population": record.get("population"),
                "title": record.get("title"),
                "description": record.get("summary"),
                "location_name": gdacs_location(record),
                "source": "GDACS",
                "url": record.get("link"),
                "occurred_at": record.get("published"),
            }
            records.append(
                transform_flood(event, gdacs_key(self.disaster_type, record, lat, lng))
            )
        return records


class CycloneFetcher(GdacsFetcher):
    disaster_type = DisasterType.CYCLONE
    source_id = "gdacs_cyclones"
    update_fields = SourceFetcher.update_fields + ("magnitude",)

    def build_records(self, raw: list[dict]) -> list[Disaster | None]:
        records: list[Disaster | None] = []
        for record in raw:
            if not is_cyclone(record):
                continue
            if record.get("point") is None:
                logger.debug("cyclone item without coordinates skipped: %s", record.get("id"))
                continue
            lat, lng = record["point"]
            wind = wind_speed_mph(record)
            category = cyclone_category(wind, record.get("alert_level"))
            wind_rounded = round(wind) if wind else 0
            m = _STORM_NAME_RE.search(record.get("title") or "")
            event = {
                "latitude": lat,
                "longitude": lng,
                "name": m.group(1) if m else None,
                "wind_speed": wind_rounded,
                "category": category,
                "title": record.get("title"),
                "description": f"Wind Speed: {wind_rounded} mph, Category {category}",
                "location_name": gdacs_location(record),
                "source": "GDACS",
                "url": record.get("link"),
                "occurred_at": record.get("published"),
            }
            records.append(
                transform_cyclone(event, gdacs_key(self.disaster_type, record, lat, lng))
            )
        return records
