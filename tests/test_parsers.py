from pathlib import Path

import pytest

from ingest.parsers.csv import parse_csv_records
from ingest.parsers.gdacs import parse_gdacs_rss
from ingest.parsers.geojson import parse_geojson


FIXTURES = Path(__file__).resolve().parent / "fixtures"


def test_parse_usgs_geojson_fixture() -> None:
    data = (FIXTURES / "usgs.geojson").read_bytes()
    features = parse_geojson(data)
    assert len(features) == 3
    assert features[0]["id"] == "ci40000001"
    assert features[0]["properties"]["mag"] == 6.1


def test_parse_geojson_rejects_other_documents() -> None:
    with pytest.raises(ValueError):
        parse_geojson(b'{"type": "Feature"}')
    with pytest.raises(ValueError):
        parse_geojson(b"<html>maintenance</html>")


def test_parse_gdacs_fixture() -> None:
    data = (FIXTURES / "gdacs.rss.xml").read_bytes()
    records = parse_gdacs_rss(data)
    assert [r["event_type"] for r in records] == ["FL", "TC", "EQ", "FL"]

    flood = records[0]
    assert flood["point"] == (-6.2, 106.8)
    assert flood["alert_level"] == "Orange"
    assert flood["event_id"] == "1102345"
    assert flood["country"] == "Indonesia"
    assert flood["population"] == 150000
    assert flood["published"] == "2023-11-14T06:00:00Z"

    cyclone = records[1]
    assert cyclone["severity_value"] == 213.0
    assert cyclone["severity_unit"] == "km/h"
    assert "Tropical Cyclone" in cyclone["category"]

    assert records[3]["point"] is None


def test_parse_firms_csv_lowercases_headers() -> None:
    data = (FIXTURES / "firms.csv").read_bytes()
    rows = parse_csv_records(data)
    assert len(rows) == 3
    assert rows[0]["latitude"] == "34.1"
    assert rows[0]["bright_ti4"] == "367.5"
    assert parse_csv_records(b"") == []
