from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime

import httpx

from health.health import record_fetch_error, record_fetch_success
from normalize.transform import filter_valid_disasters, remove_duplicates
from store.db import Database
from store.disasters import DisasterStore
from store.models import Disaster, DisasterType


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchResult:
    source: str
    success: bool
    new_count: int = 0
    updated_count: int = 0
    total: int = 0
    error: str | None = None
    message: str = ""

    def as_dict(self) -> dict:
        return asdict(self)


def derived_key(
    disaster_type: DisasterType, lat: float, lng: float, occurred_at: datetime
) -> str:
    return f"{disaster_type.value}-{lat:.2f}-{lng:.2f}-{occurred_at.date().isoformat()}"


class SourceFetcher(ABC):
    """Shared fetch -> transform -> dedup -> upsert pipeline for one disaster type.

    Subclasses supply `load_raw` (talks to the feed) and `build_records`
    (filters and transforms raw events). `fetch` never raises for feed or
    per-record failures; those come back as a failed result or a skipped
    record.
    """

    disaster_type: DisasterType
    source_id: str
    update_fields: tuple[str, ...] = (
        "severity",
        "title",
        "description",
        "location_name",
        "latitude",
        "longitude",
    )

    def __init__(self, *, db: Database) -> None:
        self._db = db
        self._store = DisasterStore(db)

    @abstractmethod
    async def load_raw(self) -> list[dict]: ...

    @abstractmethod
    def build_records(self, raw: list[dict]) -> list[Disaster | None]: ...

    async def fetch(self) -> FetchResult:
        name = self.disaster_type.value
        try:
            raw = await self.load_raw()
        except httpx.TimeoutException:
            return self._failed("timeout")
        except httpx.HTTPStatusError as e:
            return self._failed(f"http_{e.response.status_code}")
        except httpx.HTTPError as e:
            return self._failed(f"request_error:{e.__class__.__name__}")
        except ValueError as e:
            return self._failed(f"parse_error:{e}")

        logger.info("%s: %d raw events from %s", name, len(raw), self.source_id)
        try:
            built = self.build_records(raw)
        except (TypeError, ValueError) as e:
            return self._failed(f"parse_error:{e}")
        records = filter_valid_disasters(remove_duplicates(
            r for r in built if r is not None
        ))
        logger.info("%s: processing %d valid records", name, len(records))

        new_count = 0
        updated_count = 0
        for disaster in records:
            try:
                if self._upsert(disaster):
                    new_count += 1
                else:
                    updated_count += 1
            except sqlite3.Error as e:
                logger.error("failed to save %s: %s", disaster.disaster_id, e)

        record_fetch_success(
            self._db,
            source_id=self.source_id,
            new_count=new_count,
            updated_count=updated_count,
            total=len(records),
        )
        logger.info(
            "%s processed: %d new, %d updated", name, new_count, updated_count
        )
        return FetchResult(
            source=name,
            success=True,
            new_count=new_count,
            updated_count=updated_count,
            total=len(records),
            message=f"Successfully processed {len(records)} {name} events "
            f"({new_count} new, {updated_count} updated)",
        )

    def _upsert(self, disaster: Disaster) -> bool:
        existing = self._store.find_by_natural_key(disaster.disaster_id)
        if existing is None:
            self._store.insert(disaster)
            return True
        self._store.update(
            disaster.disaster_id,
            {field: getattr(disaster, field) for field in self.update_fields},
        )
        return False

    def _failed(self, error: str) -> FetchResult:
        name = self.disaster_type.value
        logger.warning("%s fetch from %s failed: %s", name, self.source_id, error)
        record_fetch_error(self._db, source_id=self.source_id, error=error)
        return FetchResult(
            source=name,
            success=False,
            error=error,
            message=f"Failed to fetch {name} data",
        )
