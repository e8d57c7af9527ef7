import math
from datetime import UTC, datetime

from normalize.severity import Severity
from normalize.transform import (
    filter_valid_disasters,
    parse_timestamp,
    remove_duplicates,
    transform_cyclone,
    transform_earthquake,
    transform_fire,
    transform_flood,
    validate_coordinates,
)
from store.models import DisasterType


def _quake(feature_id: str = "ci1", *, mag=6.1, coords=(-117.6, 35.7, 8.5)) -> dict:
    return {
        "type": "Feature",
        "id": feature_id,
        "properties": {
            "mag": mag,
            "place": "12 km NE of Ridgecrest, CA",
            "time": 1700000000000,
            "url": "https://example.test/ci1",
        },
        "geometry": {"type": "Point", "coordinates": list(coords)},
    }


def test_validate_coordinates_bounds() -> None:
    assert validate_coordinates(0, 0)
    assert validate_coordinates(90, 180)
    assert validate_coordinates(-90, -180)
    assert not validate_coordinates(90.0001, 0)
    assert not validate_coordinates(0, -180.5)
    assert not validate_coordinates(math.nan, 0)
    assert not validate_coordinates("12", 0)
    assert not validate_coordinates(None, 0)
    assert not validate_coordinates(True, 0)


def test_parse_timestamp_variants() -> None:
    assert parse_timestamp(1700000000000) == datetime(2023, 11, 14, 22, 13, 20, tzinfo=UTC)
    assert parse_timestamp("2023-11-14T06:00:00Z") == datetime(2023, 11, 14, 6, tzinfo=UTC)
    naive = datetime(2023, 1, 1, 12)
    assert parse_timestamp(naive).tzinfo is UTC


def test_transform_earthquake_fields() -> None:
    d = transform_earthquake(_quake(), "usgs-ci1")
    assert d is not None
    assert d.disaster_id == "usgs-ci1"
    assert d.type is DisasterType.EARTHQUAKE
    assert d.severity is Severity.HIGH
    assert d.title == "M6.1 Earthquake 12 km NE of Ridgecrest, CA"
    assert d.description == "Depth: 8.5km"
    assert d.location_name == "12 km NE of Ridgecrest, CA"
    assert (d.latitude, d.longitude) == (35.7, -117.6)
    assert d.magnitude == 6.1
    assert d.depth == 8.5
    assert d.source == "USGS"
    assert d.external_url == "https://example.test/ci1"


def test_transform_earthquake_rejects_bad_coordinates() -> None:
    assert transform_earthquake(_quake(coords=(-200.0, 35.7, 1.0))) is None
    assert transform_earthquake({"id": "x", "properties": {}}) is None


def test_transform_flood_uses_alert_and_population() -> None:
    d = transform_flood(
        {
            "latitude": -6.2,
            "longitude": 106.8,
            "alert_level": "Orange",
            "affected_population": 2_000_000,
            "location_name": "Indonesia",
            "occurred_at": "2023-11-14T06:00:00Z",
        }
    )
    assert d is not None
    assert d.severity is Severity.CRITICAL
    assert d.title == "Flood Alert"
    assert d.description == "Flood warning issued"
    assert d.source == "GDACS"
    assert d.disaster_id == "flood--6.20-106.80-2023-11-14"


def test_transform_fire_defaults() -> None:
    d = transform_fire(
        {
            "latitude": 34.1,
            "longitude": -118.3,
            "brightness": 367.5,
            "frp": 12.0,
            "confidence": 90,
            "occurred_at": "2023-11-14T09:30:00Z",
        }
    )
    assert d is not None
    assert d.severity is Severity.HIGH
    assert d.location_name == "Unknown Location"
    assert d.title == "Wildfire detected near Unknown Location"
    assert d.description == "Brightness: 367.5K, Confidence: 90%"
    assert d.source == "NASA FIRMS"


def test_transform_cyclone_category_drives_magnitude() -> None:
    d = transform_cyclone(
        {
            "latitude": 14.5,
            "longitude": 125.0,
            "name": "KIRK-23",
            "wind_speed": 132,
            "category": 4,
        },
        "cyclone-gdacs-1",
    )
    assert d is not None
    assert d.severity is Severity.CRITICAL
    assert d.title == "KIRK-23 - Category 4"
    assert d.description == "Wind Speed: 132 mph"
    assert d.magnitude == 4.0
    assert d.source == "NOAA"


def test_remove_duplicates_keeps_first_occurrence() -> None:
    a = transform_earthquake(_quake("a", mag=5.0), "usgs-a")
    b = transform_earthquake(_quake("b"), "usgs-b")
    a_again = transform_earthquake(_quake("a", mag=7.5), "usgs-a")
    unique = remove_duplicates([a, b, a_again])
    assert [d.disaster_id for d in unique] == ["usgs-a", "usgs-b"]
    assert unique[0].magnitude == 5.0


def test_filter_valid_disasters_drops_none() -> None:
    b = transform_earthquake(_quake("b"), "usgs-b")
    assert filter_valid_disasters([None, b]) == [b]
