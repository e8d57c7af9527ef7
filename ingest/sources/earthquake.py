from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx

from ingest.fetch import fetch_feed
from ingest.parsers.geojson import parse_geojson
from ingest.sources.base import SourceFetcher
from normalize.transform import transform_earthquake
from store.db import Database
from store.models import Disaster, DisasterType


logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def _magnitude(event: dict) -> float | None:
    mag = (event.get("properties") or {}).get("mag")
    if mag is None or isinstance(mag, bool):
        return None
    try:
        return float(mag)
    except (TypeError, ValueError):
        return None


class EarthquakeFetcher(SourceFetcher):
    disaster_type = DisasterType.EARTHQUAKE
    source_id = "usgs_earthquakes"
    update_fields = (
        "severity",
        "title",
        "description",
        "location_name",
        "latitude",
        "longitude",
        "magnitude",
        "depth",
        "external_url",
        "occurred_at",
    )

    def __init__(
        self,
        *,
        db: Database,
        client: httpx.AsyncClient,
        url: str,
        user_agent: str,
        timeout_seconds: float,
        min_magnitude: float = 2.5,
        max_attempts: int = 3,
        retry_delay_seconds: float = 1.0,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        super().__init__(db=db)
        self._client = client
        self._url = url
        self._user_agent = user_agent
        self._timeout = timeout_seconds
        self._min_magnitude = min_magnitude
        self._max_attempts = max(1, max_attempts)
        self._retry_delay = retry_delay_seconds
        self._sleep = sleep

    async def load_raw(self) -> list[dict]:
        attempt = 1
        while True:
            try:
                data = await fetch_feed(
                    self._client,
                    url=self._url,
                    user_agent=self._user_agent,
                    timeout_seconds=self._timeout,
                )
                return parse_geojson(data)
            except (httpx.HTTPError, ValueError) as e:
                if attempt >= self._max_attempts:
                    raise
                logger.warning(
                    "USGS attempt %d/%d failed: %s", attempt, self._max_attempts, e
                )
                attempt += 1
                await self._sleep(self._retry_delay)

    def build_records(self, raw: list[dict]) -> list[Disaster | None]:
        records: list[Disaster | None] = []
        for event in raw:
            magnitude = _magnitude(event)
            if magnitude is None or magnitude < self._min_magnitude:
                continue
            event_id = event.get("id")
            if not event_id:
                continue
            records.append(transform_earthquake(event, f"usgs-{event_id}"))
        return records
