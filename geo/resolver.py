from __future__ import annotations

import logging
from collections.abc import Iterable

from geo.countries import extract_country, fallback_country
from geo.geocoder import Geocoder, GeocodingError, RateLimiter, TTLCache
from store.models import Disaster


logger = logging.getLogger(__name__)

UNKNOWN_COUNTRY = "Unknown"


class CountryResolver:
    """Resolves a disaster to the country it belongs to.

    Strategies run in order and the first hit wins: table match on the
    location name, reverse geocoding of the coordinates, table match on the
    description, then the last token of the location name. Anything left over
    resolves to "Unknown".
    """

    def __init__(
        self,
        geocoder: Geocoder | None,
        *,
        rate_limiter: RateLimiter,
        cache: TTLCache[tuple[float, float], str],
    ) -> None:
        self._geocoder = geocoder
        self._rate_limiter = rate_limiter
        self._cache = cache

    async def resolve(
        self,
        location_name: str | None,
        lat: float | None,
        lng: float | None,
        description: str | None,
    ) -> str:
        country = extract_country(location_name)
        if country is not None:
            return country

        if lat is not None and lng is not None:
            logger.info(
                "no country in location %r, trying coordinates", location_name
            )
            country = await self._geocode(lat, lng)
            if country is not None:
                return country

        country = extract_country(description)
        if country is not None:
            logger.info("found country in description: %s", country)
            return country

        country = fallback_country(location_name)
        if country is not None:
            return country

        logger.warning("could not determine country for (%s, %s)", lat, lng)
        return UNKNOWN_COUNTRY

    async def resolve_disaster(self, disaster: Disaster) -> str:
        return await self.resolve(
            disaster.location_name,
            disaster.latitude,
            disaster.longitude,
            disaster.description,
        )

    async def _geocode(self, lat: float, lng: float) -> str | None:
        if self._geocoder is None:
            return None

        key = (round(lat, 3), round(lng, 3))
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        await self._rate_limiter.acquire()
        try:
            country = await self._geocoder.reverse_geocode(lat, lng)
        except GeocodingError as e:
            logger.warning("geocoding failed for (%s, %s): %s", lat, lng, e)
            return None

        logger.info("geocoded (%s, %s) -> %s", lat, lng, country)
        self._cache.set(key, country)
        return country


async def resolve_countries(
    resolver: CountryResolver, disasters: Iterable[Disaster]
) -> dict[str, str]:
    countries: dict[str, str] = {}
    for disaster in disasters:
        if disaster.disaster_id in countries:
            continue
        countries[disaster.disaster_id] = await resolver.resolve_disaster(disaster)
    return countries


def group_by_country(
    disasters: Iterable[Disaster], countries: dict[str, str]
) -> dict[str, list[Disaster]]:
    grouped: dict[str, list[Disaster]] = {}
    for disaster in disasters:
        country = countries.get(disaster.disaster_id, UNKNOWN_COUNTRY)
        grouped.setdefault(country, []).append(disaster)
    return grouped


def count_by_country(
    disasters: Iterable[Disaster], countries: dict[str, str]
) -> dict[str, int]:
    counts: dict[str, int] = {}
    for disaster in disasters:
        country = countries.get(disaster.disaster_id, UNKNOWN_COUNTRY)
        counts[country] = counts.get(country, 0) + 1
    return counts


async def available_countries(
    resolver: CountryResolver, disasters: Iterable[Disaster]
) -> list[dict]:
    """Countries with at least one active disaster, alphabetically, with counts."""
    disasters = list(disasters)
    countries = await resolve_countries(resolver, disasters)
    counts = count_by_country(disasters, countries)
    return [
        {"country": country, "disaster_count": n}
        for country, n in sorted(counts.items())
        if country != UNKNOWN_COUNTRY
    ]


async def active_in_country(
    resolver: CountryResolver,
    disasters: Iterable[Disaster],
    country: str,
    *,
    limit: int = 20,
) -> list[Disaster]:
    wanted = country.strip().casefold()
    matches: list[Disaster] = []
    for disaster in disasters:
        if len(matches) >= limit:
            break
        resolved = await resolver.resolve_disaster(disaster)
        if resolved.casefold() == wanted:
            matches.append(disaster)
    return matches
