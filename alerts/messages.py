from __future__ import annotations

from collections.abc import Sequence

from store.models import Disaster, DisasterType


_EMOJI = {
    DisasterType.EARTHQUAKE: "🌋",
    DisasterType.FLOOD: "🌊",
    DisasterType.FIRE: "🔥",
    DisasterType.CYCLONE: "🌪️",
}
_DEFAULT_EMOJI = "⚠️"
_TIME_FORMAT = "%Y-%m-%d %H:%M:%S UTC"
_RULE = "=" * 60
_SEPARATOR = "-" * 60
_DETAILS_LIMIT = 100

FOOTER = (
    "---\n"
    "This is an automated alert from the disaster alert service.\n"
    "Stay safe and follow local emergency guidelines."
)


def _emoji(disaster: Disaster) -> str:
    return _EMOJI.get(disaster.type, _DEFAULT_EMOJI)


def format_alert_subject(disaster: Disaster, country: str) -> str:
    kind = disaster.type.value
    return (
        f"{_emoji(disaster)} {disaster.severity.value.upper()} "
        f"{kind[:1].upper()}{kind[1:]} Alert in {country}"
    )


def format_alert_message(disaster: Disaster) -> str:
    lines = [
        f"{_emoji(disaster)} {disaster.type.value.upper()} ALERT",
        "",
        f"Location: {disaster.location_name}",
        f"Severity: {disaster.severity.value.upper()}",
        f"Time: {disaster.occurred_at.strftime(_TIME_FORMAT)}",
        "",
    ]
    if disaster.magnitude:
        lines.append(f"Magnitude: {disaster.magnitude}")
    if disaster.depth:
        lines.append(f"Depth: {disaster.depth} km")
    if disaster.description:
        lines += ["", f"Details: {disaster.description}"]
    lines += ["", f"Coordinates: {disaster.latitude}, {disaster.longitude}"]
    if disaster.external_url:
        lines += ["", f"More Info: {disaster.external_url}"]
    lines += ["", FOOTER]
    return "\n".join(lines)


def format_welcome_subject(country: str, active: Sequence[Disaster]) -> str:
    n = len(active)
    if n == 0:
        return f"Welcome to Disaster Alerts for {country}"
    return f"Welcome! {n} Active Disaster{'s' if n > 1 else ''} in {country}"


def _welcome_entry(disaster: Disaster) -> list[str]:
    lines = [
        f"{_emoji(disaster)} {disaster.type.value.upper()} - "
        f"{disaster.severity.value.upper()}",
        f"   Location: {disaster.location_name}",
    ]
    if disaster.magnitude:
        lines.append(f"   Magnitude: {disaster.magnitude}")
    lines.append(f"   Time: {disaster.occurred_at.strftime(_TIME_FORMAT)}")
    if disaster.description:
        details = disaster.description[:_DETAILS_LIMIT]
        if len(disaster.description) > _DETAILS_LIMIT:
            details += "..."
        lines.append(f"   Details: {details}")
    lines.append(f"   Coordinates: {disaster.latitude}, {disaster.longitude}")
    if disaster.external_url:
        lines.append(f"   More Info: {disaster.external_url}")
    return lines


def format_welcome_message(country: str, active: Sequence[Disaster]) -> str:
    """Body of the message sent when someone subscribes to a country.

    Lists the disasters currently active in that country, newest first as
    given, or says there are none.
    """
    lines = [
        f"Thank you for subscribing to disaster alerts for {country}!",
        "",
        "You will receive notifications when new disasters occur in this region.",
        "",
    ]
    if active:
        lines += [f"CURRENTLY ACTIVE DISASTERS IN {country.upper()}:", _RULE, ""]
        for i, disaster in enumerate(active):
            lines += _welcome_entry(disaster)
            lines.append("")
            if i < len(active) - 1:
                lines += [_SEPARATOR, ""]
        lines += [_RULE, "", "You will receive alerts for any new disasters that occur.", ""]
    else:
        lines += [
            f"No active disasters in {country} at the moment.",
            "",
            "You will be notified when new disasters are detected.",
            "",
        ]
    lines.append(FOOTER)
    return "\n".join(lines)
