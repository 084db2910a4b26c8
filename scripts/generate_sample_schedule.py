from __future__ import annotations

import argparse
import json
import random
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Final

from zoneinfo import ZoneInfo


# The route starts at 22:00 in the first zone; each later zone starts at its own 22:00.
START_TZ: Final[str] = "America/St_Johns"


@dataclass(frozen=True, slots=True)
class City:
    name: str
    lat: float
    lng: float


# (zone, minutes after the first zone starts, cities in visiting order)
ZONES: Final[list[tuple[str, int, list[City]]]] = [
    (
        "Newfoundland Time Zone",
        0,
        [City("St. John's", 47.5615, -52.7126), City("Gander", 48.9569, -54.6089), City("Corner Brook", 48.9490, -57.9503)],
    ),
    (
        "Atlantic Time Zone",
        30,
        [City("Halifax", 44.6488, -63.5752), City("Charlottetown", 46.2382, -63.1311), City("Moncton", 46.0878, -64.7782)],
    ),
    (
        "Eastern Time Zone",
        90,
        [City("Montreal", 45.5019, -73.5674), City("Ottawa", 45.4215, -75.6972), City("Toronto", 43.6532, -79.3832)],
    ),
    (
        "Central Time Zone",
        150,
        [City("Thunder Bay", 48.3809, -89.2477), City("Winnipeg", 49.8951, -97.1384), City("Regina", 50.4452, -104.6189)],
    ),
    (
        "Mountain Time Zone",
        210,
        [City("Calgary", 51.0447, -114.0719), City("Edmonton", 53.5461, -113.4938), City("Yellowknife", 62.4540, -114.3718)],
    ),
    (
        "Pacific Time Zone",
        270,
        [City("Kelowna", 49.8880, -119.4960), City("Vancouver", 49.2827, -123.1207), City("Victoria", 48.4284, -123.3656)],
    ),
]

MESSAGES: Final[list[str]] = [
    "Merry Christmas!",
    "Sleigh signal: strong",
    "Nice list verified",
    "Cookies collected",
]


def generate_schedule(*, seed: int, start_local: datetime) -> dict[str, dict[str, dict[str, object]]]:
    """Build a nested {zone: {city: entry}} schedule with a few minutes between cities."""

    rng = random.Random(seed)
    start = start_local.replace(tzinfo=ZoneInfo(START_TZ)).astimezone(UTC)

    out: dict[str, dict[str, dict[str, object]]] = {}
    for zone, behind_min, cities in ZONES:
        cur = start + timedelta(minutes=behind_min)
        zone_out: dict[str, dict[str, object]] = {}
        for city in cities:
            entry: dict[str, object] = {
                "arrival_time_utc": cur.isoformat().replace("+00:00", "Z"),
                "coordinates": {"lat": city.lat, "lng": city.lng},
            }
            # Not every stop has a message
            if rng.random() < 0.5:
                entry["msg"] = f"{rng.choice(MESSAGES)} ({city.name})"
            zone_out[city.name] = entry
            cur = cur + timedelta(minutes=rng.randint(4, 9))
        out[zone] = zone_out
    return out


def main() -> int:
    p = argparse.ArgumentParser(description="Generate a sample schedule.json for demo/testing.")
    p.add_argument("--out", type=str, default="schedule.json", help="Output JSON path")
    p.add_argument("--seed", type=int, default=42, help="Random seed (reproducible)")
    p.add_argument(
        "--start",
        type=str,
        default="2025-12-24 22:00:00",
        help="Start local time in America/St_Johns, e.g. '2025-12-24 22:00:00'",
    )
    args = p.parse_args()

    schedule = generate_schedule(seed=args.seed, start_local=datetime.fromisoformat(args.start))
    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(schedule, ensure_ascii=False, indent=2), encoding="utf-8")

    stops = sum(len(cities) for cities in schedule.values())
    print(f"Generated: {out_path} (zones={len(schedule)}, stops={stops}, seed={args.seed})")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
