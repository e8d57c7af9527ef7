from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from normalize.severity import Severity


class DisasterType(str, Enum):
    EARTHQUAKE = "earthquake"
    FLOOD = "flood"
    FIRE = "fire"
    CYCLONE = "cyclone"


@dataclass(frozen=True)
class Disaster:
    disaster_id: str
    type: DisasterType
    severity: Severity
    title: str
    description: str
    location_name: str
    latitude: float
    longitude: float
    occurred_at: datetime
    source: str
    magnitude: float | None = None
    depth: float | None = None
    affected_area: float | None = None
    external_url: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class CountryTopic:
    country: str
    topic_handle: str
    disaster_count: int
    updated_at: datetime | None


@dataclass(frozen=True)
class Subscription:
    email: str
    country: str
    subscription_handle: str
    status: str
    subscribed_at: datetime
    unsubscribed_at: datetime | None = None
