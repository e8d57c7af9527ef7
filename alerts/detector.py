from __future__ import annotations

import logging

from alerts.processed import ProcessedSet
from store.disasters import DisasterStore
from store.models import Disaster


logger = logging.getLogger(__name__)


class NewEventDetector:
    def __init__(self, *, store: DisasterStore, processed: ProcessedSet) -> None:
        self._store = store
        self._processed = processed

    def initialize(self) -> int:
        """Seed the processed set with every currently active disaster.

        Events already in the store when the service starts are treated as
        seen, so a restart does not re-alert the whole backlog.
        """
        ids = [d.disaster_id for d in self._store.list_active()]
        self._processed.update(ids)
        logger.info("initialized with %d existing disasters", len(ids))
        return len(ids)

    def detect(self, active: list[Disaster] | None = None) -> list[Disaster]:
        if active is None:
            active = self._store.list_active()
        return [d for d in active if d.disaster_id not in self._processed]
