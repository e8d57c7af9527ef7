from __future__ import annotations

import re


_WS_RE = re.compile(r"\s+")
_LEADING_THE_RE = re.compile(r"^the\s+", flags=re.IGNORECASE)
_TRAILING_REPUBLIC_RE = re.compile(r"\s+republic$", flags=re.IGNORECASE)
_PLACEHOLDER_RE = re.compile(r"^unknown\b", flags=re.IGNORECASE)


REGION_TO_COUNTRY: dict[str, str] = {
    # US states
    "alaska": "United States",
    "california": "United States",
    "ca": "United States",
    "texas": "United States",
    "florida": "United States",
    "hawaii": "United States",
    "new york": "United States",
    "washington": "United States",
    "oregon": "United States",
    "nevada": "United States",
    "arizona": "United States",
    "colorado": "United States",
    "montana": "United States",
    "wyoming": "United States",
    "idaho": "United States",
    "utah": "United States",
    "new mexico": "United States",
    "north dakota": "United States",
    "south dakota": "United States",
    "nebraska": "United States",
    "kansas": "United States",
    "oklahoma": "United States",
    "missouri": "United States",
    "iowa": "United States",
    "arkansas": "United States",
    "louisiana": "United States",
    "mississippi": "United States",
    "alabama": "United States",
    "tennessee": "United States",
    "kentucky": "United States",
    "indiana": "United States",
    "illinois": "United States",
    "wisconsin": "United States",
    "michigan": "United States",
    "minnesota": "United States",
    "ohio": "United States",
    "pennsylvania": "United States",
    "west virginia": "United States",
    "virginia": "United States",
    "north carolina": "United States",
    "south carolina": "United States",
    "georgia": "United States",
    "maine": "United States",
    "vermont": "United States",
    "new hampshire": "United States",
    "massachusetts": "United States",
    "rhode island": "United States",
    "connecticut": "United States",
    "new jersey": "United States",
    "delaware": "United States",
    "maryland": "United States",
    "usa": "United States",
    "us": "United States",
    # postal codes used in USGS place strings
    **{
        code: "United States"
        for code in (
            "ak", "al", "ar", "az", "co", "ct", "de", "fl", "ga", "hi", "ia", "id",
            "il", "in", "ks", "ky", "la", "ma", "md", "me", "mi", "mn", "mo", "ms",
            "mt", "nc", "nd", "ne", "nh", "nj", "nm", "nv", "ny", "oh", "ok", "or",
            "pa", "pr", "ri", "sc", "sd", "tn", "tx", "ut", "va", "vt", "wa", "wi",
            "wv", "wy",
        )
    },
    # Canadian provinces and territories
    "british columbia": "Canada",
    "alberta": "Canada",
    "saskatchewan": "Canada",
    "manitoba": "Canada",
    "ontario": "Canada",
    "quebec": "Canada",
    "new brunswick": "Canada",
    "nova scotia": "Canada",
    "prince edward island": "Canada",
    "newfoundland": "Canada",
    "yukon": "Canada",
    "northwest territories": "Canada",
    "nunavut": "Canada",
    # Australian states and territories
    "new south wales": "Australia",
    "queensland": "Australia",
    "victoria": "Australia",
    "tasmania": "Australia",
    "south australia": "Australia",
    "western australia": "Australia",
    "northern territory": "Australia",
    # US territories
    "puerto rico": "United States",
    "guam": "United States",
    "northern mariana islands": "United States",
    "us virgin islands": "United States",
}

KNOWN_COUNTRIES: tuple[str, ...] = (
    "Afghanistan", "Albania", "Algeria", "Argentina", "Australia", "Austria",
    "Bangladesh", "Belgium", "Bolivia", "Brazil", "Bulgaria",
    "Cambodia", "Canada", "Chile", "China", "Colombia", "Costa Rica", "Croatia",
    "Denmark", "Dominican Republic", "Ecuador", "Egypt", "El Salvador",
    "Finland", "France", "Germany", "Greece", "Guatemala",
    "Honduras", "Hungary", "Iceland", "India", "Indonesia", "Iran", "Iraq",
    "Ireland", "Israel", "Italy",
    "Japan", "Jordan", "Kazakhstan", "Kenya", "Kuwait",
    "Lebanon", "Libya", "Luxembourg", "Malaysia", "Mexico", "Morocco", "Myanmar",
    "Nepal", "Netherlands", "New Zealand", "Nicaragua", "Nigeria", "Norway",
    "Pakistan", "Panama", "Papua New Guinea", "Paraguay", "Peru", "Philippines",
    "Poland", "Portugal",
    "Romania", "Russia", "Saudi Arabia", "Serbia", "Singapore", "Slovakia",
    "Slovenia", "South Africa", "South Korea", "Spain", "Sri Lanka", "Sudan",
    "Sweden", "Switzerland", "Syria",
    "Taiwan", "Tanzania", "Thailand", "Turkey", "Uganda", "Ukraine",
    "United Arab Emirates", "United Kingdom", "United States", "Uruguay",
    "Uzbekistan", "Venezuela", "Vietnam", "Yemen",
)

_KNOWN_BY_NORMALIZED = {c.casefold(): c for c in KNOWN_COUNTRIES}


def normalize_place_name(name: str) -> str:
    return _WS_RE.sub(" ", name.strip().casefold())


def split_location(text: str) -> list[str]:
    return [part.strip() for part in text.split(",")]


def extract_country(text: str | None) -> str | None:
    """Match comma-separated parts of `text` against the region and country tables.

    Parts are scanned right to left. For each part the region table wins, then
    an exact country name, then a substring match in either direction. The
    substring step can misfire on short or shared names ("Georgia", "Niger");
    that ambiguity is left as is.
    """
    if not text:
        return None

    for part in reversed(split_location(text)):
        key = normalize_place_name(part)
        if not key:
            continue

        region_country = REGION_TO_COUNTRY.get(key)
        if region_country is not None:
            return region_country

        exact = _KNOWN_BY_NORMALIZED.get(key)
        if exact is not None:
            return exact

        for normalized, country in _KNOWN_BY_NORMALIZED.items():
            if key in normalized or normalized in key:
                return country

    return None


def fallback_country(location_name: str | None) -> str | None:
    if not location_name:
        return None
    parts = [p for p in split_location(location_name) if p]
    if not parts:
        return None

    last = parts[-1]
    if len(last) <= 2 or last[0].isdigit() or _PLACEHOLDER_RE.match(last):
        return None
    cleaned = _TRAILING_REPUBLIC_RE.sub("", _LEADING_THE_RE.sub("", last)).strip()
    return cleaned or None
