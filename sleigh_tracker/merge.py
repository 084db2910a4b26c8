"""Placement and naming of viewer-submitted stops."""

from __future__ import annotations

import uuid
from typing import Callable, Collection, Final, Sequence

from sleigh_tracker.models import Coords, Stop, UserStop
from sleigh_tracker.timeutils import iso_from_epoch_ms
from sleigh_tracker.zones import next_zone

NEW_STOP_STEP_MS: Final[int] = 2 * 60 * 1000
# Gap kept before the next zone's first stop, and the fallback step after the zone's last one.
ZONE_GUARD_MS: Final[int] = 60 * 1000


def max_arrival_for_zone(stops: Sequence[Stop], zone_key: str) -> int | None:
    """Latest arrival among stops in zone_key, or None if the zone is empty."""

    arrivals = [s.arrival_ms for s in stops if s.zone_key == zone_key]
    return max(arrivals) if arrivals else None


def min_arrival_for_zone(stops: Sequence[Stop], zone_key: str) -> int | None:
    """Earliest arrival among stops in zone_key, or None if the zone is empty."""

    arrivals = [s.arrival_ms for s in stops if s.zone_key == zone_key]
    return min(arrivals) if arrivals else None


def compute_new_stop_base_arrival(base_stops: Sequence[Stop], zone_key: str, now_ms: int) -> int:
    """Base (unshifted) arrival for a new stop appended to zone_key.

    The stop goes two minutes after the zone's last stop. If that would land
    within a minute of the next zone's first stop, it is pinned one minute after
    the zone's last stop instead. This never fails; under contention the result
    may still overlap the next zone, and interpolation copes with that.

    Args:
        base_stops: Base timeline (sorted by arrival).
        zone_key: Destination zone.
        now_ms: Used only when the timeline is empty.

    Returns:
        Epoch milliseconds.
    """

    zone_max = max_arrival_for_zone(base_stops, zone_key)

    nxt = next_zone(zone_key)
    next_min = min_arrival_for_zone(base_stops, nxt) if nxt is not None else None

    if zone_max is not None:
        anchor = zone_max
    elif base_stops:
        anchor = base_stops[0].arrival_ms
    else:
        anchor = now_ms
    candidate = anchor + NEW_STOP_STEP_MS

    if next_min is None:
        return candidate

    latest_allowed = next_min - ZONE_GUARD_MS
    if candidate < latest_allowed:
        return candidate

    return (zone_max if zone_max is not None else candidate) + ZONE_GUARD_MS


def unique_city_name(existing: Collection[str], desired: str) -> str:
    """Return desired (stripped) or the first free "name (n)" with n >= 2."""

    base = desired.strip()
    if base not in existing:
        return base
    i = 2
    while f"{base} ({i})" in existing:
        i += 1
    return f"{base} ({i})"


def new_stop_id() -> str:
    return uuid.uuid4().hex


def build_user_stop(
    *,
    zone_key: str,
    city: str,
    coords: Coords,
    base_arrival_ms: int,
    now_ms: int,
    msg: str | None = None,
    id_factory: Callable[[], str] = new_stop_id,
) -> UserStop:
    """Create the persisted record for a new stop."""

    text = (msg or "").strip()
    return UserStop(
        id=id_factory(),
        zone_key=zone_key,
        city=city.strip(),
        coordinates=coords,
        arrival_time_utc=iso_from_epoch_ms(base_arrival_ms),
        created_at=now_ms,
        msg=text or None,
    )
