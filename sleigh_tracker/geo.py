"""Geospatial utilities (no external dependencies)."""

from __future__ import annotations

import math
from typing import Any

from sleigh_tracker.models import Coords


def clamp01(x: float) -> float:
    return max(0.0, min(1.0, x))


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def interpolate(start: Coords, end: Coords, t: float) -> Coords:
    """Blend two points linearly in lat/lng space.

    This is not a great-circle path; the route is drawn as straight segments
    on the map, so the marker follows the same segments.

    Args:
        start: Point at t=0.
        end: Point at t=1.
        t: Fraction, clamped to [0, 1].
    """

    u = clamp01(t)
    return Coords(lat=lerp(start.lat, end.lat, u), lng=lerp(start.lng, end.lng, u))


def is_finite_coords(c: Coords) -> bool:
    return math.isfinite(c.lat) and math.isfinite(c.lng)


def in_range(lat: float, lng: float) -> bool:
    """Check latitude -90..90 and longitude -180..180."""

    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


def to_float(value: Any) -> float | None:
    """Coerce numbers and numeric strings; None for anything else or non-finite."""

    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def coords_from_mapping(raw: Any) -> Coords | None:
    """Read {"lat": .., "lng": ..} into Coords if finite and in range."""

    if not isinstance(raw, dict):
        return None
    lat = to_float(raw.get("lat"))
    lng = to_float(raw.get("lng"))
    if lat is None or lng is None or not in_range(lat, lng):
        return None
    return Coords(lat=lat, lng=lng)


def coords_from_geolocation(payload: Any) -> Coords:
    """Read a browser Geolocation result ({"coords": {"latitude", "longitude"}}).

    Raises:
        ValueError: Viewer-facing message when the browser reported an error or
            returned nothing usable.
    """

    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        message = payload["error"].get("message")
        raise ValueError(f"Location failed: {message}" if message else "Could not get location.")
    coords = payload.get("coords") if isinstance(payload, dict) else None
    if not isinstance(coords, dict):
        raise ValueError("Geolocation is not supported in this browser.")
    lat = to_float(coords.get("latitude"))
    lng = to_float(coords.get("longitude"))
    if lat is None or lng is None or not in_range(lat, lng):
        raise ValueError("Could not get location.")
    return Coords(lat=lat, lng=lng)
