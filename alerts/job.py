from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from alerts.detector import NewEventDetector
from alerts.dispatcher import AlertDispatcher, DispatchResult
from geo.resolver import CountryResolver, resolve_countries
from store.db import to_iso, utc_now
from store.disasters import DisasterStore


logger = logging.getLogger(__name__)


class JobState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    DIFFING = "diffing"
    DISPATCHING = "dispatching"


@dataclass
class AlertCycleResult:
    started_at: datetime
    finished_at: datetime | None = None
    active: int = 0
    new: int = 0
    countries: dict[str, int] = field(default_factory=dict)
    dispatch: DispatchResult = field(default_factory=DispatchResult)

    def as_dict(self) -> dict:
        return {
            "started_at": to_iso(self.started_at),
            "finished_at": to_iso(self.finished_at) if self.finished_at else None,
            "active": self.active,
            "new": self.new,
            "countries": dict(self.countries),
            **self.dispatch.as_dict(),
        }


class AlertJob:
    """One alert cycle: refresh per-country counts, then alert on new events.

    Cycles never overlap. A call made while a cycle is in flight returns None
    straight away instead of queueing.
    """

    def __init__(
        self,
        *,
        store: DisasterStore,
        resolver: CountryResolver,
        detector: NewEventDetector,
        dispatcher: AlertDispatcher,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._detector = detector
        self._dispatcher = dispatcher
        self._lock = asyncio.Lock()
        self._state = JobState.IDLE
        self._last_result: AlertCycleResult | None = None

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def last_result(self) -> AlertCycleResult | None:
        return self._last_result

    async def run_once(self) -> AlertCycleResult | None:
        if self._lock.locked():
            logger.info("alert cycle already running, skipping")
            return None

        async with self._lock:
            result = AlertCycleResult(started_at=utc_now())
            try:
                self._state = JobState.FETCHING
                active = self._store.list_active()
                countries = await resolve_countries(self._resolver, active)
                result.active = len(active)
                try:
                    result.countries = await self._dispatcher.refresh_counts(
                        active, countries
                    )
                except Exception:
                    logger.exception("topic count refresh failed, alerting anyway")

                self._state = JobState.DIFFING
                new = self._detector.detect(active)
                result.new = len(new)
                if not new:
                    logger.info("no new disasters found")
                else:
                    logger.info("found %d new disasters", len(new))
                    self._state = JobState.DISPATCHING
                    result.dispatch = await self._dispatcher.dispatch(new, countries)
                    logger.info(
                        "alerts sent: %d, failed: %d",
                        len(result.dispatch.sent),
                        len(result.dispatch.failed),
                    )
            finally:
                self._state = JobState.IDLE
                result.finished_at = utc_now()
                self._last_result = result
        return result
