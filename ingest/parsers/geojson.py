from __future__ import annotations

import json


def parse_geojson(data: bytes) -> list[dict]:
    doc = json.loads(data)
    if not isinstance(doc, dict) or doc.get("type") != "FeatureCollection":
        raise ValueError("expected a GeoJSON FeatureCollection")
    return [f for f in doc.get("features") or [] if isinstance(f, dict)]
