"""Name-based satellite categories.

This is a heuristic: categories come from case-insensitive substring
matches on the spacecraft name, not from an authoritative catalog lookup.
Short patterns such as ``ISS`` will also match unrelated names that happen
to contain them (e.g. ``MISSION-1``).
"""
from __future__ import annotations

from enum import Enum


class SatelliteType(Enum):
    """Broad mission categories; values are the display labels."""
    COMMUNICATION = "Communication"
    SPACE_STATION = "Space Station"
    MILITARY = "Military"
    NAVIGATION = "Navigation"
    EARTH_OBSERVATION = "Earth Observation"
    SCIENTIFIC = "Scientific"
    WEATHER = "Weather"
    OTHER = "Other"


# Order matters: the first matching rule wins.
CLASSIFICATION_RULES: tuple[tuple[tuple[str, ...], SatelliteType], ...] = (
    (("STARLINK",), SatelliteType.COMMUNICATION),
    (("ISS", "ZARYA"), SatelliteType.SPACE_STATION),
    (("COSMOS", "MILITARY"), SatelliteType.MILITARY),
    (("GPS", "GLONASS", "GALILEO"), SatelliteType.NAVIGATION),
    (("LANDSAT", "SENTINEL", "TERRA"), SatelliteType.EARTH_OBSERVATION),
    (("HUBBLE", "CHANDRA", "SPITZER"), SatelliteType.SCIENTIFIC),
    (("WEATHER", "NOAA", "GOES"), SatelliteType.WEATHER),
)


def classify_satellite(name: str) -> SatelliteType:
    """Bucket a spacecraft into a :class:`SatelliteType` from its name."""
    upper = name.upper()
    for patterns, category in CLASSIFICATION_RULES:
        if any(p in upper for p in patterns):
            return category
    return SatelliteType.OTHER
