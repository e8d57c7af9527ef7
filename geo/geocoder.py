from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Generic, Protocol, TypeVar

import httpx


logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class GeocodingError(Exception):
    pass


class Geocoder(Protocol):
    async def reverse_geocode(self, lat: float, lng: float) -> str: ...


class RateLimiter:
    """Enforces a minimum interval between acquisitions across all callers.

    Callers queue on the lock and each one waits out whatever remains of the
    interval since the previous slot was handed out.
    """

    def __init__(
        self,
        min_interval_seconds: float,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._min_interval = min_interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._last_slot: float | None = None

    async def acquire(self) -> None:
        async with self._lock:
            now = self._clock()
            if self._last_slot is not None:
                wait = self._last_slot + self._min_interval - now
                if wait > 0:
                    await self._sleep(wait)
                    now = self._clock()
            self._last_slot = now


class TTLCache(Generic[K, V]):
    def __init__(self, ttl_seconds: float, *, clock: Clock = time.monotonic) -> None:
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: dict[K, tuple[V, float]] = {}

    def get(self, key: K) -> V | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, fetched_at = entry
        if self._clock() - fetched_at >= self._ttl:
            del self._entries[key]
            return None
        return value

    def set(self, key: K, value: V) -> None:
        self._entries[key] = (value, self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class NominatimGeocoder:
    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        url: str,
        user_agent: str,
        timeout_seconds: float = 5.0,
    ) -> None:
        self._client = client
        self._url = url
        self._user_agent = user_agent
        self._timeout = timeout_seconds

    async def reverse_geocode(self, lat: float, lng: float) -> str:
        try:
            res = await self._client.get(
                self._url,
                params={
                    "lat": lat,
                    "lon": lng,
                    "format": "json",
                    "zoom": 3,
                    "addressdetails": 1,
                },
                headers={"User-Agent": self._user_agent, "Accept": "application/json"},
                timeout=self._timeout,
            )
            res.raise_for_status()
            doc = res.json()
        except httpx.HTTPError as e:
            raise GeocodingError(f"request_error:{e.__class__.__name__}") from e
        except ValueError as e:
            raise GeocodingError("parse_error") from e

        address = doc.get("address") if isinstance(doc, dict) else None
        country = (address or {}).get("country")
        if not country:
            raise GeocodingError(f"no country for ({lat}, {lng})")
        return str(country)
