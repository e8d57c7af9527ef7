from normalize.severity import (
    Severity,
    calculate_cyclone_severity,
    calculate_earthquake_severity,
    calculate_fire_severity,
    calculate_flood_severity,
    calculate_severity,
)


def test_earthquake_thresholds() -> None:
    assert calculate_earthquake_severity(7.0) is Severity.CRITICAL
    assert calculate_earthquake_severity(6.1) is Severity.HIGH
    assert calculate_earthquake_severity(5.5) is Severity.HIGH
    assert calculate_earthquake_severity(5.49) is Severity.MODERATE
    assert calculate_earthquake_severity(4.0) is Severity.MODERATE
    assert calculate_earthquake_severity(3.9) is Severity.LOW
    assert calculate_earthquake_severity(None) is Severity.LOW


def test_earthquake_severity_is_monotonic() -> None:
    ranks = [
        calculate_earthquake_severity(m / 10).rank for m in range(0, 100)
    ]
    assert ranks == sorted(ranks)


def test_flood_takes_the_higher_of_alert_and_population() -> None:
    assert calculate_flood_severity("Green", 2_000_000) is Severity.CRITICAL
    assert calculate_flood_severity("Red", 0) is Severity.CRITICAL
    assert calculate_flood_severity("orange", 50_000) is Severity.HIGH
    assert calculate_flood_severity("Yellow", 0) is Severity.MODERATE
    assert calculate_flood_severity("Green", 10_000) is Severity.LOW
    assert calculate_flood_severity("Green", 10_001) is Severity.MODERATE


def test_flood_unknown_alert_level_counts_as_green() -> None:
    assert calculate_flood_severity("purple", 0) is Severity.LOW
    assert calculate_flood_severity(None, None) is Severity.LOW


def test_flood_severity_is_monotonic_in_population() -> None:
    populations = [0, 10_000, 10_001, 100_001, 1_000_001, 5_000_000]
    ranks = [calculate_flood_severity("Green", p).rank for p in populations]
    assert ranks == sorted(ranks)


def test_fire_thresholds() -> None:
    assert calculate_fire_severity(401, 0) is Severity.CRITICAL
    assert calculate_fire_severity(300, 101) is Severity.CRITICAL
    assert calculate_fire_severity(351, 0) is Severity.HIGH
    assert calculate_fire_severity(300, 51) is Severity.HIGH
    assert calculate_fire_severity(321, 0) is Severity.MODERATE
    assert calculate_fire_severity(320, 20) is Severity.LOW


def test_cyclone_thresholds() -> None:
    assert calculate_cyclone_severity(0, 4) is Severity.CRITICAL
    assert calculate_cyclone_severity(130, 0) is Severity.CRITICAL
    assert calculate_cyclone_severity(96, 0) is Severity.HIGH
    assert calculate_cyclone_severity(0, 2) is Severity.HIGH
    assert calculate_cyclone_severity(74, 0) is Severity.MODERATE
    assert calculate_cyclone_severity(50, 0) is Severity.LOW
    assert calculate_cyclone_severity(None, None) is Severity.LOW


def test_dispatch_by_type_and_unknown_type() -> None:
    assert calculate_severity("earthquake", {"magnitude": 6.1}) is Severity.HIGH
    assert calculate_severity("flood", {"alert_level": "Red"}) is Severity.CRITICAL
    assert calculate_severity("fire", {"brightness": 360, "frp": 0}) is Severity.HIGH
    assert calculate_severity("cyclone", {"wind_speed": 80}) is Severity.MODERATE
    assert calculate_severity("volcano", {}) is Severity.MODERATE
