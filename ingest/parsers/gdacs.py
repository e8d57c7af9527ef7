from __future__ import annotations

from datetime import UTC
from email.utils import parsedate_to_datetime

import feedparser


def _attr_value(raw: object) -> str | None:
    # gdacs:* elements that carry attributes come back as attribute dicts
    if isinstance(raw, dict):
        value = raw.get("value")
        return str(value) if value not in (None, "") else None
    if raw in (None, ""):
        return None
    return str(raw)


def _attr_unit(raw: object) -> str | None:
    if isinstance(raw, dict) and raw.get("unit"):
        return str(raw["unit"])
    return None


def _to_float(value: str | None) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def _point(entry: dict) -> tuple[float, float] | None:
    # feedparser turns georss:point into a GeoJSON-style (lon, lat) "where"
    where = entry.get("where") or {}
    if where.get("type") == "Point" and len(where.get("coordinates") or ()) >= 2:
        lon, lat = where["coordinates"][0], where["coordinates"][1]
        return (float(lat), float(lon))
    lat, lon = _to_float(entry.get("geo_lat")), _to_float(entry.get("geo_long"))
    if lat is not None and lon is not None:
        return (lat, lon)
    return None


def parse_gdacs_rss(data: bytes) -> list[dict]:
    parsed = feedparser.parse(data)
    if parsed.bozo and not parsed.entries:
        raise ValueError(f"unreadable GDACS feed: {parsed.get('bozo_exception')}")

    records: list[dict] = []
    for entry in parsed.entries:
        published = None
        for key in ("published", "updated"):
            if key not in entry:
                continue
            try:
                published = (
                    parsedate_to_datetime(entry[key])
                    .astimezone(tz=UTC)
                    .isoformat()
                    .replace("+00:00", "Z")
                )
                break
            except (TypeError, ValueError):
                published = None

        tags = entry.get("tags") or []
        category = " ".join(str(t.get("term") or "") for t in tags).strip()
        severity_raw = entry.get("gdacs_severity")
        population_raw = entry.get("gdacs_population")
        population = _to_float(_attr_value(population_raw))

        records.append(
            {
                "id": entry.get("id") or entry.get("guid") or entry.get("link"),
                "link": entry.get("link"),
                "title": entry.get("title", ""),
                "summary": entry.get("summary", ""),
                "category": category,
                "published": published,
                "point": _point(entry),
                "alert_level": _attr_value(entry.get("gdacs_alertlevel")),
                "event_type": (_attr_value(entry.get("gdacs_eventtype")) or "").upper(),
                "event_id": _attr_value(entry.get("gdacs_eventid")),
                "country": _attr_value(entry.get("gdacs_country")),
                "severity_value": _to_float(_attr_value(severity_raw)),
                "severity_unit": _attr_unit(severity_raw),
                "population": int(population) if population is not None else None,
            }
        )
    return records
