"""Geographic utility functions, pure Python with no external deps.

Inputs must be valid WGS84 decimal degrees. Out-of-range values raise
InvalidCoordinate; nothing is clamped.
"""

from __future__ import annotations

import math

from event_radar.errors import InvalidCoordinate
from event_radar.models import Coordinate

EARTH_RADIUS_MILES = 3959.0
KM_PER_MILE = 1.60934

UNIT_SUFFIXES = {
    "miles": "mi",
    "km": "km",
}


def _round_tenth(value: float) -> float:
    """Round half-up to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10


def _check(latitude: float, longitude: float) -> None:
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        raise InvalidCoordinate(latitude, longitude)
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        raise InvalidCoordinate(latitude, longitude)


def validate_coordinate(latitude: float, longitude: float) -> Coordinate:
    """Build a Coordinate, raising InvalidCoordinate when out of range."""
    try:
        latitude, longitude = float(latitude), float(longitude)
    except (TypeError, ValueError):
        raise InvalidCoordinate(latitude, longitude) from None
    _check(latitude, longitude)
    return Coordinate(latitude=latitude, longitude=longitude)


def distance_miles(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between two points in miles, to one decimal.

    Uses the Haversine formula with a spherical Earth of radius 3959 miles.
    """
    _check(a.latitude, a.longitude)
    _check(b.latitude, b.longitude)

    rlat1, rlat2 = math.radians(a.latitude), math.radians(b.latitude)

    # abs() keeps the result bit-identical when the arguments are swapped
    dlat = math.radians(abs(b.latitude - a.latitude))
    dlon = math.radians(abs(b.longitude - a.longitude))

    h = math.sin(dlat / 2) ** 2 + math.cos(rlat1) * math.cos(rlat2) * math.sin(dlon / 2) ** 2
    h = min(1.0, max(0.0, h))
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))

    return _round_tenth(EARTH_RADIUS_MILES * c)


def miles_to_km(miles: float) -> float:
    return _round_tenth(miles * KM_PER_MILE)


def _render(value: float) -> str:
    text = repr(value)
    if text.endswith(".0"):
        text = text[:-2]
    return text


def format_distance(miles: float, unit: str = "miles") -> str:
    """Render a distance for display, e.g. ``"12.3 mi"`` or ``"19.8 km"``."""
    if unit not in UNIT_SUFFIXES:
        raise ValueError(f"unknown distance unit '{unit}' (expected miles or km)")
    value = miles_to_km(miles) if unit == "km" else _round_tenth(miles)
    return f"{_render(value)} {UNIT_SUFFIXES[unit]}"
