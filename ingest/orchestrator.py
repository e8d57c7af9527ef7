from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from health.health import source_status
from ingest.sources.base import FetchResult, SourceFetcher
from store.db import Database, to_iso, utc_now
from store.disasters import DisasterStore


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncSummary:
    success: bool
    total_new: int
    total_updated: int
    results: list[FetchResult] = field(default_factory=list)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def as_dict(self) -> dict:
        return {
            "success": self.success,
            "summary": {
                "total_new": self.total_new,
                "total_updated": self.total_updated,
                "sources": len(self.results),
                "failed": sum(1 for r in self.results if not r.success),
            },
            "results": [r.as_dict() for r in self.results],
            "started_at": to_iso(self.started_at) if self.started_at else None,
            "finished_at": to_iso(self.finished_at) if self.finished_at else None,
        }


class FetchOrchestrator:
    """Runs every source fetcher and merges the outcomes.

    One failing source never aborts the others: results are collected with
    all-settle semantics and an unexpected exception becomes a failed
    `FetchResult` for that source.
    """

    def __init__(self, *, db: Database, fetchers: Iterable[SourceFetcher]) -> None:
        self._db = db
        self._store = DisasterStore(db)
        self._fetchers = {f.disaster_type.value: f for f in fetchers}
        self._last_summary: SyncSummary | None = None

    @property
    def last_summary(self) -> SyncSummary | None:
        return self._last_summary

    @property
    def disaster_types(self) -> list[str]:
        return list(self._fetchers)

    async def fetch_all(self) -> SyncSummary:
        started_at = utc_now()
        logger.info("starting sync of %d sources", len(self._fetchers))

        names = list(self._fetchers)
        outcomes = await asyncio.gather(
            *(self._fetchers[name].fetch() for name in names),
            return_exceptions=True,
        )

        results: list[FetchResult] = []
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, FetchResult):
                results.append(outcome)
            elif isinstance(outcome, Exception):
                logger.error("%s fetch crashed", name, exc_info=outcome)
                results.append(_crashed(name, outcome))
            else:
                # CancelledError and friends are not ours to swallow
                raise outcome

        ok = [r for r in results if r.success]
        summary = SyncSummary(
            success=bool(ok),
            total_new=sum(r.new_count for r in ok),
            total_updated=sum(r.updated_count for r in ok),
            results=results,
            started_at=started_at,
            finished_at=utc_now(),
        )
        self._last_summary = summary
        logger.info(
            "sync finished: %d new, %d updated, %d/%d sources ok",
            summary.total_new,
            summary.total_updated,
            len(ok),
            len(results),
        )
        return summary

    async def fetch_by_type(self, disaster_type: str) -> FetchResult:
        fetcher = self._fetchers.get(disaster_type)
        if fetcher is None:
            return FetchResult(
                source=disaster_type,
                success=False,
                error="unknown_type",
                message=f"Unknown disaster type: {disaster_type}",
            )
        try:
            return await fetcher.fetch()
        except Exception as e:
            logger.exception("%s fetch crashed", disaster_type)
            return _crashed(disaster_type, e)

    def status(self) -> dict:
        return {
            "last_sync": self._last_summary.as_dict() if self._last_summary else None,
            "statistics": self._store.stats_by_type(),
            "sources": source_status(self._db),
        }


def _crashed(name: str, error: BaseException) -> FetchResult:
    return FetchResult(
        source=name,
        success=False,
        error=f"unexpected:{error.__class__.__name__}",
        message=f"Failed to fetch {name} data",
    )
