from __future__ import annotations

import sqlite3
from datetime import datetime

from normalize.severity import Severity
from store.db import Database, parse_iso, to_iso, utc_now
from store.models import Disaster, DisasterType


_COLUMNS = (
    "disaster_id",
    "type",
    "severity",
    "title",
    "description",
    "location_name",
    "latitude",
    "longitude",
    "magnitude",
    "depth",
    "affected_area",
    "source",
    "external_url",
    "occurred_at",
    "is_active",
)

# Fields the ingestion path is allowed to rewrite on a later sighting.
MUTABLE_FIELDS = frozenset(
    {
        "type",
        "severity",
        "title",
        "description",
        "location_name",
        "latitude",
        "longitude",
        "magnitude",
        "depth",
        "affected_area",
        "source",
        "external_url",
        "occurred_at",
    }
)


def _column_value(disaster: Disaster, column: str) -> object:
    value = getattr(disaster, column)
    if column in ("type", "severity"):
        return value.value
    if column == "occurred_at":
        return to_iso(value)
    if column == "is_active":
        return 1 if value else 0
    return value


def _row_to_disaster(row: sqlite3.Row) -> Disaster:
    return Disaster(
        disaster_id=str(row["disaster_id"]),
        type=DisasterType(row["type"]),
        severity=Severity(row["severity"]),
        title=str(row["title"]),
        description=str(row["description"] or ""),
        location_name=str(row["location_name"]),
        latitude=float(row["latitude"]),
        longitude=float(row["longitude"]),
        magnitude=float(row["magnitude"]) if row["magnitude"] is not None else None,
        depth=float(row["depth"]) if row["depth"] is not None else None,
        affected_area=float(row["affected_area"])
        if row["affected_area"] is not None
        else None,
        source=str(row["source"]),
        external_url=str(row["external_url"]) if row["external_url"] else None,
        occurred_at=parse_iso(str(row["occurred_at"])),
        is_active=bool(row["is_active"]),
        created_at=parse_iso(str(row["created_at"])),
        updated_at=parse_iso(str(row["updated_at"])),
    )


class DisasterStore:
    def __init__(self, db: Database) -> None:
        self._db = db

    def find_by_natural_key(self, disaster_id: str) -> Disaster | None:
        with self._db.lock:
            row = self._db.conn.execute(
                "SELECT * FROM disasters WHERE disaster_id = ? LIMIT 1;",
                (disaster_id,),
            ).fetchone()
        return _row_to_disaster(row) if row is not None else None

    def insert(self, disaster: Disaster) -> None:
        now_iso = to_iso(utc_now())
        placeholders = ", ".join("?" for _ in range(len(_COLUMNS) + 2))
        values = [_column_value(disaster, c) for c in _COLUMNS]
        with self._db.lock:
            self._db.conn.execute(
                f"""
                INSERT INTO disasters({", ".join(_COLUMNS)}, created_at, updated_at)
                VALUES({placeholders});
                """,
                (*values, now_iso, now_iso),
            )
            self._db.conn.commit()

    def update(self, disaster_id: str, fields: dict[str, object]) -> bool:
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"fields not updatable: {sorted(unknown)}")
        if not fields:
            return False

        assignments: list[str] = []
        params: list[object] = []
        for name, value in fields.items():
            assignments.append(f"{name} = ?")
            if isinstance(value, (DisasterType, Severity)):
                params.append(value.value)
            elif isinstance(value, datetime):
                params.append(to_iso(value))
            else:
                params.append(value)
        assignments.append("updated_at = ?")
        params.append(to_iso(utc_now()))
        params.append(disaster_id)

        with self._db.lock:
            cur = self._db.conn.execute(
                f"UPDATE disasters SET {', '.join(assignments)} WHERE disaster_id = ?;",
                params,
            )
            self._db.conn.commit()
        return cur.rowcount > 0

    def list_active(self) -> list[Disaster]:
        with self._db.lock:
            rows = self._db.conn.execute(
                """
                SELECT * FROM disasters
                WHERE is_active = 1
                ORDER BY occurred_at DESC, id DESC;
                """
            ).fetchall()
        return [_row_to_disaster(r) for r in rows]

    def stats_by_type(self) -> dict[str, dict[str, float | int | None]]:
        with self._db.lock:
            rows = self._db.conn.execute(
                """
                SELECT type,
                       COUNT(*) AS total,
                       SUM(CASE WHEN severity = 'critical' THEN 1 ELSE 0 END) AS critical,
                       SUM(CASE WHEN severity = 'high' THEN 1 ELSE 0 END) AS high,
                       SUM(CASE WHEN severity = 'moderate' THEN 1 ELSE 0 END) AS moderate,
                       SUM(CASE WHEN severity = 'low' THEN 1 ELSE 0 END) AS low,
                       MAX(magnitude) AS max_magnitude
                FROM disasters
                WHERE is_active = 1
                GROUP BY type;
                """
            ).fetchall()
        return {
            str(r["type"]): {
                "total": int(r["total"]),
                "critical": int(r["critical"] or 0),
                "high": int(r["high"] or 0),
                "moderate": int(r["moderate"] or 0),
                "low": int(r["low"] or 0),
                "max_magnitude": r["max_magnitude"],
            }
            for r in rows
        }
