"""Zone ordering and viewer zone matching."""

from __future__ import annotations

from typing import Final, Iterable

from sleigh_tracker.models import CUSTOM_ZONE, ZONE_ORDER, ZoneKey
from sleigh_tracker.timeutils import dt_from_epoch_ms

# Minutes to add to local time to get UTC (standard time).
OFFSET_TABLE: Final[tuple[tuple[int, ZoneKey], ...]] = (
    (210, "Newfoundland Time Zone"),
    (240, "Atlantic Time Zone"),
    (300, "Eastern Time Zone"),
    (360, "Central Time Zone"),
    (420, "Mountain Time Zone"),
    (480, "Pacific Time Zone"),
)

FALLBACK_VIEWER_ZONE: Final[ZoneKey] = "Eastern Time Zone"


def zone_rank(zone_key: str) -> int:
    """Position in ZONE_ORDER; unknown names rank as the catch-all zone."""

    try:
        return ZONE_ORDER.index(zone_key)
    except ValueError:
        return ZONE_ORDER.index(CUSTOM_ZONE)


def next_zone(zone_key: str) -> str | None:
    """The zone scheduled right after zone_key, or None for the last/unknown zone."""

    idx = zone_rank(zone_key) + 1
    return ZONE_ORDER[idx] if idx < len(ZONE_ORDER) else None


def utc_offset_minutes(now_ms: int, tz_name: str | None = None) -> int:
    """Viewer offset in "minutes to add to local time to get UTC" convention.

    Eastern Standard Time (UTC-5) yields 300.
    """

    offset = dt_from_epoch_ms(now_ms, tz_name).utcoffset()
    if offset is None:
        return 0
    return -int(offset.total_seconds() // 60)


def zone_key_from_offset(offset_minutes: float) -> ZoneKey:
    """Nearest named zone for a UTC offset.

    Never fails: odd or DST-shifted offsets resolve to the closest entry, ties
    go to the first listed.
    """

    best_off, best_key = OFFSET_TABLE[0]
    best_dist = abs(offset_minutes - best_off)
    for off, key in OFFSET_TABLE:
        d = abs(offset_minutes - off)
        if d < best_dist:
            best_key = key
            best_dist = d
    return best_key


def viewer_zone_key(schedule_zones: Iterable[str], offset_minutes: float) -> str:
    """Match the viewer's zone, falling back when the schedule has no such zone."""

    guess = zone_key_from_offset(offset_minutes)
    return guess if guess in set(schedule_zones) else FALLBACK_VIEWER_ZONE
