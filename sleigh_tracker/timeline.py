"""Re-anchoring the base timeline to the viewer's local bedtime."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Sequence

from sleigh_tracker.merge import max_arrival_for_zone
from sleigh_tracker.models import Stop
from sleigh_tracker.timeutils import dt_from_epoch_ms, epoch_ms_from_dt


def _check_bedtime(hour: int, minute: int) -> None:
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid bedtime {hour}:{minute:02d}; hour must be 0-23 and minute 0-59")


def next_local_bedtime_ms(hour: int, minute: int, now_ms: int, tz_name: str | None = None) -> int:
    """Next future occurrence of hour:minute on the viewer's wall clock.

    If today's hour:minute is at or before now, tomorrow's is returned. The day
    is added in wall-clock terms, so DST transitions keep the bedtime at the
    same local hour.

    Args:
        hour: 0-23.
        minute: 0-59.
        now_ms: Current instant, epoch milliseconds.
        tz_name: Viewer's IANA zone, or None for the system local zone.

    Returns:
        Epoch milliseconds.
    """

    _check_bedtime(hour, minute)
    if tz_name is None:
        # Naive local datetimes let mktime resolve the offset for each day.
        d = datetime.fromtimestamp(now_ms / 1000.0).replace(hour=hour, minute=minute, second=0, microsecond=0)
        if int(d.timestamp() * 1000) <= now_ms:
            d += timedelta(days=1)
        return int(d.timestamp() * 1000)

    d = dt_from_epoch_ms(now_ms, tz_name).replace(hour=hour, minute=minute, second=0, microsecond=0)
    if epoch_ms_from_dt(d) <= now_ms:
        d += timedelta(days=1)
    return epoch_ms_from_dt(d)


def local_day_start_ms(now_ms: int, tz_name: str | None = None) -> int:
    """Local midnight of the day containing now_ms."""

    midnight = dt_from_epoch_ms(now_ms, tz_name).replace(hour=0, minute=0, second=0, microsecond=0)
    if tz_name is None:
        midnight = midnight.replace(tzinfo=None).astimezone()
    return epoch_ms_from_dt(midnight)


def flight_anchor_ms(
    base_stops: Sequence[Stop],
    hour: int,
    minute: int,
    now_ms: int,
    tz_name: str | None = None,
) -> int:
    """Anchor whose bedtime flight is in progress or still ahead at now_ms.

    A flight that started at yesterday's bedtime and has not reached its last
    stop yet keeps yesterday's midnight as anchor; otherwise today's midnight is
    used, so tonight's bedtime applies.
    """

    today = local_day_start_ms(now_ms, tz_name)
    if not base_stops:
        return today
    arrivals = [s.arrival_ms for s in base_stops]
    span = max(arrivals) - min(arrivals)
    yesterday = local_day_start_ms(today - 1, tz_name)
    if now_ms <= next_local_bedtime_ms(hour, minute, yesterday, tz_name) + span:
        return yesterday
    return today


def shift_delta(
    base_stops: Sequence[Stop],
    hour: int,
    minute: int,
    now_ms: int,
    tz_name: str | None = None,
) -> int:
    """Milliseconds to add so the earliest stop lands on the next bedtime (0 if empty)."""

    if not base_stops:
        return 0
    first = min(s.arrival_ms for s in base_stops)
    return next_local_bedtime_ms(hour, minute, now_ms, tz_name) - first


def shift_timeline(stops: Sequence[Stop], delta_ms: int) -> list[Stop]:
    """Translate every arrival by delta_ms, returning new stops in arrival order."""

    ordered = sorted(stops, key=lambda s: s.arrival_ms)
    return [replace(s, arrival_ms=s.arrival_ms + delta_ms) for s in ordered]


def shift_to_local_bedtime(
    base_stops: Sequence[Stop],
    hour: int,
    minute: int,
    now_ms: int,
    tz_name: str | None = None,
) -> list[Stop]:
    """Build the viewer timeline: the base timeline moved to start at tonight's bedtime.

    Relative spacing between stops is preserved exactly. Recompute it whenever
    the base timeline, bedtime or current time changes; nothing is cached.
    """

    if not base_stops:
        return []
    return shift_timeline(base_stops, shift_delta(base_stops, hour, minute, now_ms, tz_name))


def max_shifted_arrival_for_zone(base_stops: Sequence[Stop], zone_key: str, delta_ms: int) -> int | None:
    zone_max = max_arrival_for_zone(base_stops, zone_key)
    return None if zone_max is None else zone_max + delta_ms


def zone_passed(base_stops: Sequence[Stop], zone_key: str, delta_ms: int, now_ms: int) -> bool:
    """True once the sleigh has reached the last shifted stop of zone_key.

    A zone without stops is never passed.
    """

    last = max_shifted_arrival_for_zone(base_stops, zone_key, delta_ms)
    if last is None:
        return False
    return last <= now_ms
