"""Data models for schedule stops and viewer waypoints."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final, Literal

ZoneKey = Literal[
    "Newfoundland Time Zone",
    "Atlantic Time Zone",
    "Eastern Time Zone",
    "Central Time Zone",
    "Mountain Time Zone",
    "Pacific Time Zone",
    "Custom Time Zone",
]

CUSTOM_ZONE: Final[str] = "Custom Time Zone"

# West-to-east schedule order. Unknown zone names rank as the catch-all.
ZONE_ORDER: Final[tuple[str, ...]] = (
    "Newfoundland Time Zone",
    "Atlantic Time Zone",
    "Eastern Time Zone",
    "Central Time Zone",
    "Mountain Time Zone",
    "Pacific Time Zone",
    CUSTOM_ZONE,
)

DEFAULT_BEDTIME_HOUR: Final[int] = 22
DEFAULT_BEDTIME_MINUTE: Final[int] = 0
DEFAULT_SCHEDULE_PATH: Final[str] = "schedule.json"
DEFAULT_STORE_PATH: Final[str] = "user_stops.json"


@dataclass(frozen=True, slots=True)
class Coords:
    """A point in decimal degrees."""

    lat: float
    lng: float

    def as_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


# Reported while the sleigh has not launched yet.
OFF_MAP: Final[Coords] = Coords(lat=90.0, lng=0.0)


@dataclass(frozen=True, slots=True)
class Stop:
    """One scheduled visit.

    Attributes:
        zone_key: Zone name as found in the source schedule (may be unknown).
        city: Display name, unique within its zone.
        coords: Location of the visit.
        arrival_ms: Unix epoch milliseconds (UTC).
        msg: Optional message announced on arrival.
    """

    zone_key: str
    city: str
    coords: Coords
    arrival_ms: int
    msg: str | None = None


@dataclass(frozen=True, slots=True)
class UserStop:
    """A viewer-submitted waypoint as persisted.

    Note:
        ``arrival_time_utc`` is the ISO-8601 base (unshifted) arrival, kept as a
        string so the record round-trips through JSON unchanged.
    """

    id: str
    zone_key: str
    city: str
    coordinates: Coords
    arrival_time_utc: str
    created_at: float
    msg: str | None = None

    def to_record(self) -> dict[str, Any]:
        """Serialise using the storage field names."""

        record: dict[str, Any] = {
            "id": self.id,
            "zoneKey": self.zone_key,
            "city": self.city,
            "coordinates": self.coordinates.as_dict(),
            "arrival_time_utc": self.arrival_time_utc,
            "createdAt": self.created_at,
        }
        if self.msg is not None:
            record["msg"] = self.msg
        return record


@dataclass(frozen=True, slots=True)
class TrackerConfig:
    """Viewer-side settings for one tracking session."""

    bedtime_hour: int = DEFAULT_BEDTIME_HOUR
    bedtime_minute: int = DEFAULT_BEDTIME_MINUTE
    # IANA zone of the viewer; None means the system local zone.
    tz_name: str | None = None
    # None means "match from the viewer's UTC offset".
    viewer_zone: str | None = None
