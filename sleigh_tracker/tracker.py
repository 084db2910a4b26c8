"""Tracking session: schedule + viewer waypoints + viewer settings.

This is the boundary the CLI and the viewer app talk to. It validates viewer
input, enforces the "sleigh already passed your zone" gate and persists new
waypoints. Timelines are recomputed from the current inputs on each call.

The viewer timeline is anchored at ``anchor_ms``; bedtime is the next one after
it. Adding or removing a waypoint moves the anchor to the local midnight that
starts the flight in progress (or tonight's), so playback keeps progressing
past bedtime and past midnight while the session stays open.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from sleigh_tracker.geo import in_range, to_float
from sleigh_tracker.merge import build_user_stop, compute_new_stop_base_arrival
from sleigh_tracker.models import Coords, Stop, TrackerConfig, UserStop
from sleigh_tracker.playback import PlaybackEngine, PlaybackFrame
from sleigh_tracker.schedule import Schedule, flatten_schedule, merge_user_stops, merge_user_stops_with_keys
from sleigh_tracker.timeline import flight_anchor_ms, shift_delta, shift_to_local_bedtime, zone_passed
from sleigh_tracker.timeutils import now_ms
from sleigh_tracker.waypoints import UserStopStore
from sleigh_tracker.zones import utc_offset_minutes, viewer_zone_key

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2


class InvalidStopError(ValueError):
    """A viewer-submitted stop was refused; the message is meant for the viewer."""


@dataclass
class SleighTracker:
    """One viewer's tracking session."""

    schedule: Mapping[str, Any]
    store: UserStopStore
    config: TrackerConfig = field(default_factory=TrackerConfig)
    clock: Callable[[], int] = now_ms
    anchor_ms: int | None = None
    user_stops: list[UserStop] = field(init=False)

    def __post_init__(self) -> None:
        self.user_stops = self.store.load()
        if self.anchor_ms is None:
            self.anchor_ms = self.clock()

    def reanchor(self, anchor: int | None = None) -> None:
        """Resolve tonight's bedtime again, relative to anchor (default: now)."""

        self.anchor_ms = self.clock() if anchor is None else anchor

    def anchor_to_flight(self, now: int | None = None) -> None:
        """Anchor on the flight in progress at now, or on tonight's if none is."""

        now = self.clock() if now is None else now
        self.anchor_ms = flight_anchor_ms(
            self.base_timeline(),
            self.config.bedtime_hour,
            self.config.bedtime_minute,
            now,
            self.config.tz_name,
        )

    # -- derived views ----------------------------------------------------

    def merged_schedule(self) -> Schedule:
        return merge_user_stops(self.schedule, self.user_stops)

    def own_stop_keys(self) -> set[tuple[str, str]]:
        """(zone, city key) of this viewer's waypoints in the merged schedule."""

        _, keys = merge_user_stops_with_keys(self.schedule, self.user_stops)
        return set(keys)

    def base_timeline(self) -> list[Stop]:
        """Source arrival times, waypoints included, unshifted."""

        return flatten_schedule(self.merged_schedule())

    def _anchor(self) -> int:
        return self.clock() if self.anchor_ms is None else self.anchor_ms

    def _delta(self, base: list[Stop]) -> int:
        return shift_delta(base, self.config.bedtime_hour, self.config.bedtime_minute, self._anchor(), self.config.tz_name)

    def delta_ms(self) -> int:
        """Milliseconds added to every base arrival for tonight's bedtime."""

        return self._delta(self.base_timeline())

    def viewer_timeline(self) -> list[Stop]:
        """The base timeline moved to start at the next bedtime after anchor_ms."""

        return shift_to_local_bedtime(
            self.base_timeline(),
            self.config.bedtime_hour,
            self.config.bedtime_minute,
            self._anchor(),
            self.config.tz_name,
        )

    def viewer_zone(self, now: int | None = None) -> str:
        if self.config.viewer_zone:
            return self.config.viewer_zone
        now = self.clock() if now is None else now
        return viewer_zone_key(self.schedule.keys(), utc_offset_minutes(now, self.config.tz_name))

    def passed_viewer_zone(self, now: int | None = None) -> bool:
        """True once the viewer's zone has been fully visited under tonight's shift."""

        now = self.clock() if now is None else now
        base = self.base_timeline()
        return zone_passed(base, self.viewer_zone(now), self._delta(base), now)

    # -- waypoint editing -------------------------------------------------

    def add_stop(
        self,
        name: str,
        lat: Any,
        lng: Any,
        msg: str | None = None,
        now: int | None = None,
    ) -> UserStop:
        """Validate and append a viewer stop to the viewer's zone.

        Raises:
            InvalidStopError: Bad name or coordinates, or the zone was already passed.
        """

        now = self.clock() if now is None else now
        city = (name or "").strip()
        if len(city) < MIN_NAME_LENGTH:
            raise InvalidStopError("Please enter a location name.")

        lat_f = to_float(lat)
        lng_f = to_float(lng)
        if lat_f is None or lng_f is None:
            raise InvalidStopError("Latitude/longitude must be numbers.")
        if not in_range(lat_f, lng_f):
            raise InvalidStopError("Latitude must be -90..90 and longitude -180..180.")

        if self.passed_viewer_zone(now):
            raise InvalidStopError("Sorry, Santa has passed already, but Merry Christmas.")

        zone = self.viewer_zone(now)
        base_arrival = compute_new_stop_base_arrival(self.base_timeline(), zone, now)
        stop = build_user_stop(
            zone_key=zone,
            city=city,
            coords=Coords(lat=lat_f, lng=lng_f),
            base_arrival_ms=base_arrival,
            now_ms=now,
            msg=msg,
        )
        self.user_stops = [*self.user_stops, stop]
        self.store.save(self.user_stops)
        self.anchor_to_flight(now)
        logger.info("Added waypoint %r to %s at %s", stop.city, zone, stop.arrival_time_utc)
        return stop

    def remove_stop(self, stop_id: str) -> bool:
        """Delete a waypoint by id. Returns True if found."""

        kept = [s for s in self.user_stops if s.id != stop_id]
        if len(kept) == len(self.user_stops):
            return False
        self.user_stops = kept
        self.store.save(self.user_stops)
        self.anchor_to_flight()
        return True

    # -- playback ---------------------------------------------------------

    def new_engine(
        self,
        *,
        on_arrival: Callable[[str], None] | None = None,
        on_frame: Callable[[PlaybackFrame], None] | None = None,
    ) -> PlaybackEngine:
        """Engine over tonight's viewer timeline, sharing this session's clock."""

        return PlaybackEngine(
            self.viewer_timeline(),
            tz_name=self.config.tz_name,
            on_arrival=on_arrival,
            on_frame=on_frame,
            clock=self.clock,
        )
