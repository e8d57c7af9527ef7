from __future__ import annotations

from enum import Enum


class Severity(str, Enum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _RANK[self]


_RANK = {
    Severity.LOW: 0,
    Severity.MODERATE: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}

_FLOOD_ALERT_LEVELS = {"red": 4, "orange": 3, "yellow": 2, "green": 1}


def calculate_earthquake_severity(magnitude: float | None) -> Severity:
    mag = magnitude or 0.0
    if mag >= 7:
        return Severity.CRITICAL
    if mag >= 5.5:
        return Severity.HIGH
    if mag >= 4:
        return Severity.MODERATE
    return Severity.LOW


def calculate_flood_severity(
    alert_level: str | None = "Green", affected_population: int | None = 0
) -> Severity:
    level = _FLOOD_ALERT_LEVELS.get(str(alert_level or "").strip().casefold(), 1)
    population = affected_population or 0

    if level == 4:
        by_alert = Severity.CRITICAL
    elif level == 3:
        by_alert = Severity.HIGH
    elif level == 2:
        by_alert = Severity.MODERATE
    else:
        by_alert = Severity.LOW

    if population > 1_000_000:
        by_population = Severity.CRITICAL
    elif population > 100_000:
        by_population = Severity.HIGH
    elif population > 10_000:
        by_population = Severity.MODERATE
    else:
        by_population = Severity.LOW

    return max(by_alert, by_population, key=lambda s: s.rank)


def calculate_fire_severity(brightness: float | None, frp: float | None) -> Severity:
    """Brightness temperature in Kelvin, fire radiative power in MW."""
    bright = brightness or 0.0
    power = frp or 0.0
    if bright > 400 or power > 100:
        return Severity.CRITICAL
    if bright > 350 or power > 50:
        return Severity.HIGH
    if bright > 320 or power > 20:
        return Severity.MODERATE
    return Severity.LOW


def calculate_cyclone_severity(
    wind_speed: float | None, category: int | None
) -> Severity:
    """Wind speed in mph, Saffir-Simpson category 0-5."""
    wind = wind_speed or 0.0
    cat = category or 0
    if cat >= 4 or wind >= 130:
        return Severity.CRITICAL
    if cat >= 2 or wind >= 96:
        return Severity.HIGH
    if cat >= 1 or wind >= 74:
        return Severity.MODERATE
    # tropical storms (>= 39 mph) and depressions both map to low
    return Severity.LOW


def calculate_severity(disaster_type: str, signals: dict) -> Severity:
    if disaster_type == "earthquake":
        return calculate_earthquake_severity(signals.get("magnitude"))
    if disaster_type == "flood":
        return calculate_flood_severity(
            signals.get("alert_level", "Green"),
            signals.get("affected_population", 0),
        )
    if disaster_type == "fire":
        return calculate_fire_severity(signals.get("brightness"), signals.get("frp"))
    if disaster_type == "cyclone":
        return calculate_cyclone_severity(
            signals.get("wind_speed"), signals.get("category")
        )
    return Severity.MODERATE
