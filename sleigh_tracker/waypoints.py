"""Viewer waypoint records: normalisation and on-disk storage.

Records are loosely typed JSON objects written by older and newer versions of
the tracker. Two shapes exist:

    current: {"city", "coordinates": {"lat", "lng"}, "arrival_time_utc", "createdAt", ...}
    legacy:  {"city", "lat", "lng", "arrival_time_utc", "createdAt", ...}

Every record is decoded on its own; a junk record is dropped without affecting
the rest of the batch.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Final, Iterable, Sequence

from sleigh_tracker.geo import in_range, to_float
from sleigh_tracker.merge import new_stop_id
from sleigh_tracker.models import CUSTOM_ZONE, Coords, UserStop

logger = logging.getLogger(__name__)

CURRENT_KEY: Final[str] = "santa_userStops_v2"
LEGACY_KEY: Final[str] = "santa_userStops_v1"


def normalize_user_stop(raw: Any, new_id: Callable[[], str] = new_stop_id) -> UserStop | None:
    """Decode one stored record into a UserStop.

    Args:
        raw: Anything read from storage.
        new_id: Id generator used when the record has no string id.

    Returns:
        UserStop, or None if the record is unusable (blank city, missing
        arrival, bad coordinates or createdAt).
    """

    if not isinstance(raw, dict):
        return None

    city = raw.get("city")
    city = city.strip() if isinstance(city, str) else ""
    msg = raw.get("msg")
    zone_key = raw.get("zoneKey")
    if not isinstance(zone_key, str) or not zone_key.strip():
        zone_key = CUSTOM_ZONE

    # A nested "coordinates" object wins; top-level lat/lng is the legacy shape.
    if isinstance(raw.get("coordinates"), dict):
        lat = to_float(raw["coordinates"].get("lat"))
        lng = to_float(raw["coordinates"].get("lng"))
    else:
        lat = to_float(raw.get("lat"))
        lng = to_float(raw.get("lng"))

    arrival = raw.get("arrival_time_utc")
    created_at = to_float(raw.get("createdAt"))

    if not city:
        return None
    if not isinstance(arrival, str) or not arrival:
        return None
    if lat is None or lng is None:
        return None
    if created_at is None:
        return None
    if not in_range(lat, lng):
        return None

    if created_at.is_integer():
        created_at = int(created_at)

    stop_id = raw.get("id")
    return UserStop(
        id=stop_id if isinstance(stop_id, str) else new_id(),
        zone_key=zone_key,
        city=city,
        coordinates=Coords(lat=lat, lng=lng),
        arrival_time_utc=arrival,
        created_at=created_at,
        msg=msg if isinstance(msg, str) else None,
    )


def normalize_user_stops(records: Iterable[Any]) -> list[UserStop]:
    """Normalise a batch, dropping (and counting) unusable records."""

    out: list[UserStop] = []
    dropped = 0
    for raw in records:
        stop = normalize_user_stop(raw)
        if stop is None:
            dropped += 1
            continue
        out.append(stop)
    if dropped > 0:
        logger.warning("Dropped %s invalid waypoint records", dropped)
    return out


class UserStopStore:
    """Waypoints persisted in a small JSON document on disk.

    The document maps storage keys to record lists, e.g.
    {"santa_userStops_v2": [...]}. Records found only under the legacy key are
    upgraded and rewritten under the current key on first read.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> list[UserStop]:
        """Read waypoints, migrating legacy records if needed."""

        doc = self._read_document()
        current = doc.get(CURRENT_KEY)
        if isinstance(current, list):
            return normalize_user_stops(current)

        legacy = doc.get(LEGACY_KEY)
        if not isinstance(legacy, list):
            return []
        migrated = normalize_user_stops(legacy)
        doc[CURRENT_KEY] = [s.to_record() for s in migrated]
        self._write_document(doc)
        logger.info("Migrated %s waypoints from %s to %s", len(migrated), LEGACY_KEY, CURRENT_KEY)
        return migrated

    def save(self, stops: Sequence[UserStop]) -> None:
        """Persist waypoints under the current key (other keys are kept)."""

        doc = self._read_document()
        doc[CURRENT_KEY] = [s.to_record() for s in stops]
        self._write_document(doc)
        logger.info("Saved %s waypoints to %s", len(stops), self._path)

    def _read_document(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        text = self._path.read_text(encoding="utf-8").strip()
        if not text:
            return {}
        try:
            doc = json.loads(text)
        except json.JSONDecodeError:
            # Store file corrupted: keep a backup and start fresh
            backup = self._path.with_suffix(self._path.suffix + ".broken")
            backup.write_text(text, encoding="utf-8")
            logger.warning("Waypoint store %s is not valid JSON; backed up to %s", self._path, backup)
            return {}
        return doc if isinstance(doc, dict) else {}

    def _write_document(self, doc: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(doc, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self._path)
