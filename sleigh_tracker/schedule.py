"""Schedule loading and flattening into a time-sorted stop list."""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Iterable, Mapping

from sleigh_tracker.geo import coords_from_mapping
from sleigh_tracker.merge import unique_city_name
from sleigh_tracker.models import Stop, UserStop
from sleigh_tracker.timeutils import parse_arrival_ms

logger = logging.getLogger(__name__)

Schedule = dict[str, dict[str, dict[str, Any]]]


def _stop_from_entry(zone_key: str, city: str, entry: Any) -> Stop | None:
    if not isinstance(entry, dict):
        return None
    arrival = parse_arrival_ms(entry.get("arrival_time_utc"))
    if arrival is None:
        return None
    coords = coords_from_mapping(entry.get("coordinates"))
    if coords is None:
        return None
    msg = entry.get("msg")
    return Stop(
        zone_key=zone_key,
        city=city,
        coords=coords,
        arrival_ms=arrival,
        msg=msg if isinstance(msg, str) else None,
    )


def flatten_schedule(data: Mapping[str, Any]) -> list[Stop]:
    """Flatten {zone: {city: entry}} into stops sorted by arrival.

    Entries with an unparseable arrival or unusable coordinates are skipped;
    one bad entry never aborts the whole schedule. The sort is stable, so
    stops with equal arrivals keep their encounter order.

    Args:
        data: Nested schedule as loaded from JSON.

    Returns:
        Stops ordered by arrival_ms.
    """

    out: list[Stop] = []
    skipped = 0
    for zone_key, cities in data.items():
        if not isinstance(cities, dict):
            skipped += 1
            continue
        for city, entry in cities.items():
            stop = _stop_from_entry(str(zone_key), str(city), entry)
            if stop is None:
                skipped += 1
                continue
            out.append(stop)

    if skipped > 0:
        logger.warning("Skipped %s malformed schedule entries", skipped)
    out.sort(key=lambda s: s.arrival_ms)
    return out


def merge_user_stops(data: Mapping[str, Any], user_stops: Iterable[UserStop]) -> Schedule:
    """Return a copy of the schedule with each waypoint added under its zone.

    City keys are de-duplicated within the zone ("Home", "Home (2)", ...).
    The input schedule is left untouched.
    """

    merged, _ = merge_user_stops_with_keys(data, user_stops)
    return merged


def merge_user_stops_with_keys(
    data: Mapping[str, Any], user_stops: Iterable[UserStop]
) -> tuple[Schedule, list[tuple[str, str]]]:
    """Like merge_user_stops, also returning the (zone, city key) each waypoint got."""

    merged: Schedule = copy.deepcopy(dict(data))
    keys: list[tuple[str, str]] = []
    for s in user_stops:
        zone = merged.get(s.zone_key)
        if not isinstance(zone, dict):
            zone = merged[s.zone_key] = {}
        city_key = unique_city_name(zone.keys(), s.city)
        entry: dict[str, Any] = {
            "arrival_time_utc": s.arrival_time_utc,
            "coordinates": s.coordinates.as_dict(),
        }
        if s.msg:
            entry["msg"] = s.msg
        zone[city_key] = entry
        keys.append((s.zone_key, city_key))
    return merged, keys


def load_schedule(path: str | Path) -> Schedule:
    """Load the schedule JSON file.

    Raises:
        ValueError: If the top-level JSON value is not an object.
        OSError / json.JSONDecodeError: If the file cannot be read or parsed.
    """

    p = Path(path)
    raw = json.loads(p.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError(f"Schedule must be a JSON object of zones: {str(p)!r}")

    data: Schedule = {}
    for zone_key, cities in raw.items():
        if not isinstance(cities, dict):
            logger.warning("Zone %r is not an object, skipped", zone_key)
            continue
        data[zone_key] = cities
    logger.info("Loaded schedule %s: %s zones", p, len(data))
    return data
