from __future__ import annotations

import threading
from collections.abc import Iterable


class ProcessedSet:
    """Disaster ids that have already been alerted, or were present at startup.

    Guarded by a lock so the scheduler, the manual trigger route and tests can
    share one instance. Lives in memory only; a restart re-baselines it.
    """

    def __init__(self, ids: Iterable[str] = ()) -> None:
        self._lock = threading.Lock()
        self._ids: set[str] = set(ids)

    def add(self, disaster_id: str) -> None:
        with self._lock:
            self._ids.add(disaster_id)

    def update(self, disaster_ids: Iterable[str]) -> None:
        with self._lock:
            self._ids.update(disaster_ids)

    def __contains__(self, disaster_id: object) -> bool:
        with self._lock:
            return disaster_id in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)

    def snapshot(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._ids)
