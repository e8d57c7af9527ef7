from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from datetime import UTC, datetime

from normalize.severity import (
    Severity,
    calculate_cyclone_severity,
    calculate_earthquake_severity,
    calculate_fire_severity,
    calculate_flood_severity,
)
from store.db import parse_iso, utc_now
from store.models import Disaster, DisasterType


logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = "Unknown Location"


def validate_coordinates(lat: object, lng: object) -> bool:
    if not (_is_number(lat) and _is_number(lng)):
        return False
    return -90 <= float(lat) <= 90 and -180 <= float(lng) <= 180


def _is_number(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def parse_timestamp(value: object) -> datetime:
    if value is None or value == "":
        return utc_now()
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        # epoch milliseconds
        return datetime.fromtimestamp(value / 1000.0, tz=UTC)
    try:
        return parse_iso(str(value))
    except ValueError:
        return utc_now()


def validate_disaster(disaster: Disaster | None) -> bool:
    return (
        disaster is not None
        and bool(disaster.disaster_id)
        and disaster.type is not None
        and disaster.severity is not None
        and disaster.latitude is not None
        and disaster.longitude is not None
        and disaster.occurred_at is not None
    )


def _coord(value: float) -> float:
    return round(float(value), 8)


def _optional_float(value: float | str | None) -> float | None:
    if value is None or value == "":
        return None
    return float(value)


def transform_earthquake(event: dict, disaster_id: str | None = None) -> Disaster | None:
    try:
        properties = event["properties"]
        coords = event["geometry"]["coordinates"]
        lng, lat = coords[0], coords[1]
        if not validate_coordinates(lat, lng):
            return None

        magnitude = float(properties.get("mag") or 0.0)
        depth = float(coords[2]) if len(coords) > 2 and coords[2] is not None else 0.0
        place = properties.get("place")

        return Disaster(
            disaster_id=disaster_id or f"usgs-{properties.get('code') or event.get('id')}",
            type=DisasterType.EARTHQUAKE,
            severity=calculate_earthquake_severity(magnitude),
            title=f"M{magnitude:.1f} Earthquake {place or 'Location Unknown'}",
            description=f"Depth: {depth:.1f}km",
            location_name=place or UNKNOWN_LOCATION,
            latitude=_coord(lat),
            longitude=_coord(lng),
            magnitude=round(magnitude, 1),
            depth=round(depth, 2),
            affected_area=None,
            source="USGS",
            external_url=properties.get("url") or None,
            occurred_at=parse_timestamp(properties.get("time")),
        )
    except (KeyError, IndexError, TypeError, ValueError) as e:
        logger.debug("earthquake event rejected: %s", e)
        return None


def transform_flood(event: dict, disaster_id: str | None = None) -> Disaster | None:
    try:
        lat = event.get("latitude")
        lng = event.get("longitude")
        if not validate_coordinates(lat, lng):
            return None

        severity = event.get("severity")
        if not isinstance(severity, Severity):
            severity = calculate_flood_severity(
                event.get("alert_level"), event.get("affected_population")
            )
        occurred_at = parse_timestamp(event.get("occurred_at"))

        return Disaster(
            disaster_id=disaster_id
            or f"flood-{lat:.2f}-{lng:.2f}-{occurred_at.date().isoformat()}",
            type=DisasterType.FLOOD,
            severity=severity,
            title=event.get("title") or "Flood Alert",
            description=event.get("description") or "Flood warning issued",
            location_name=event.get("location_name") or UNKNOWN_LOCATION,
            latitude=_coord(lat),
            longitude=_coord(lng),
            magnitude=None,
            depth=None,
            affected_area=_optional_float(event.get("affected_area")),
            source=event.get("source") or "GDACS",
            external_url=event.get("url") or None,
            occurred_at=occurred_at,
        )
    except (KeyError, TypeError, ValueError) as e:
        logger.debug("flood event rejected: %s", e)
        return None


def transform_fire(event: dict, disaster_id: str | None = None) -> Disaster | None:
    try:
        lat = event.get("latitude")
        lng = event.get("longitude")
        if not validate_coordinates(lat, lng):
            return None

        brightness = event.get("brightness")
        frp = event.get("frp")
        location = event.get("location_name") or UNKNOWN_LOCATION
        occurred_at = parse_timestamp(event.get("occurred_at"))

        return Disaster(
            disaster_id=disaster_id
            or f"fire-{lat:.2f}-{lng:.2f}-{occurred_at.date().isoformat()}",
            type=DisasterType.FIRE,
            severity=calculate_fire_severity(
                brightness if brightness is not None else 320, frp or 0
            ),
            title=event.get("title") or f"Wildfire detected near {location}",
            description=event.get("description")
            or f"Brightness: {brightness}K, Confidence: {event.get('confidence')}%",
            location_name=location,
            latitude=_coord(lat),
            longitude=_coord(lng),
            magnitude=None,
            depth=None,
            affected_area=_optional_float(event.get("area")),
            source=event.get("source") or "NASA FIRMS",
            external_url=None,
            occurred_at=occurred_at,
        )
    except (KeyError, TypeError, ValueError) as e:
        logger.debug("fire event rejected: %s", e)
        return None


def transform_cyclone(event: dict, disaster_id: str | None = None) -> Disaster | None:
    try:
        lat = event.get("latitude")
        lng = event.get("longitude")
        if not validate_coordinates(lat, lng):
            return None

        wind_speed = event.get("wind_speed") or 0
        category = event.get("category") or 0
        occurred_at = parse_timestamp(event.get("occurred_at"))

        return Disaster(
            disaster_id=disaster_id
            or f"cyclone-{event.get('name') or occurred_at.date().isoformat()}",
            type=DisasterType.CYCLONE,
            severity=calculate_cyclone_severity(wind_speed, category),
            title=event.get("title")
            or f"{event.get('name') or 'Cyclone'} - Category {category or 'Storm'}",
            description=event.get("description") or f"Wind Speed: {wind_speed} mph",
            location_name=event.get("location_name") or UNKNOWN_LOCATION,
            latitude=_coord(lat),
            longitude=_coord(lng),
            magnitude=float(category) if category else None,
            depth=None,
            affected_area=_optional_float(event.get("affected_area")),
            source=event.get("source") or "NOAA",
            external_url=event.get("url") or None,
            occurred_at=occurred_at,
        )
    except (KeyError, TypeError, ValueError) as e:
        logger.debug("cyclone event rejected: %s", e)
        return None


def remove_duplicates(disasters: Iterable[Disaster]) -> list[Disaster]:
    seen: set[str] = set()
    unique: list[Disaster] = []
    for disaster in disasters:
        if disaster.disaster_id in seen:
            continue
        seen.add(disaster.disaster_id)
        unique.append(disaster)
    return unique


def filter_valid_disasters(disasters: Iterable[Disaster | None]) -> list[Disaster]:
    valid: list[Disaster] = []
    for disaster in disasters:
        if disaster is None or not validate_disaster(disaster):
            logger.warning("invalid disaster record dropped: %r", disaster)
            continue
        valid.append(disaster)
    return valid
