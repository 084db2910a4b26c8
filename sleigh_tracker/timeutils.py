"""Time parsing and formatting utilities."""

from __future__ import annotations

import math
import time
from datetime import UTC, datetime, timedelta, tzinfo

from zoneinfo import ZoneInfo

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
_ONE_MS = timedelta(milliseconds=1)


def tzinfo_from_name(tz_name: str) -> tzinfo:
    """Resolve the viewer's IANA zone (e.g. "America/Halifax").

    Raises:
        ValueError: If the zone is unknown to this system's tz database.
    """

    try:
        return ZoneInfo(tz_name)
    except (KeyError, OSError, ValueError) as exc:  # ZoneInfoNotFoundError is a KeyError
        raise ValueError(f"Invalid time zone: {tz_name!r}. Example: America/Toronto") from exc


def now_ms() -> int:
    """Current wall-clock time as Unix epoch milliseconds."""

    return time.time_ns() // 1_000_000


def dt_from_epoch_ms(epoch_ms: int, tz_name: str | None = None) -> datetime:
    """Convert epoch milliseconds to a timezone-aware datetime.

    Args:
        epoch_ms: Unix epoch milliseconds.
        tz_name: IANA timezone name, or None for the system local zone.

    Returns:
        Timezone-aware datetime.
    """

    dt = EPOCH + timedelta(milliseconds=epoch_ms)
    if tz_name is None:
        return dt.astimezone()
    return dt.astimezone(tzinfo_from_name(tz_name))


def epoch_ms_from_dt(dt: datetime) -> int:
    """Convert a datetime to epoch milliseconds.

    Args:
        dt: Datetime. If naive, will be treated as UTC.

    Returns:
        Epoch milliseconds.
    """

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return (dt - EPOCH) // _ONE_MS


def iso_from_epoch_ms(epoch_ms: int) -> str:
    """Format epoch milliseconds as "2024-12-25T03:04:05.000Z"."""

    dt = EPOCH + timedelta(milliseconds=epoch_ms)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_arrival_ms(value: object) -> int | None:
    """Parse an ISO-8601 arrival string to epoch milliseconds.

    A trailing "Z" is accepted and a string without offset is taken as UTC.

    Returns:
        Epoch milliseconds, or None when the value is not a parseable string.
    """

    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    try:
        return epoch_ms_from_dt(dt)
    except OverflowError:
        return None


def parse_dt(text: str, tz_name: str | None = None) -> datetime:
    """Parse a --at / --anchor value such as "2025-12-24 21:30" or "2025-12-24T21:30-04:00".

    Text without an offset is read on the viewer's wall clock (tz_name, or
    the system zone when None).

    Raises:
        ValueError: If the text is not an ISO-like date and time.
    """

    s = text.strip().replace("T", " ")
    if s[-1:] in ("z", "Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError as exc:
        raise ValueError(f"Cannot parse time: {text!r}. Expected e.g. 2025-12-24 22:30:00") from exc

    if tz_name is None:
        return dt.astimezone()
    tz = tzinfo_from_name(tz_name)
    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def parse_bedtime(text: str) -> tuple[int, int]:
    """Parse "HH:MM" into (hour, minute).

    Raises:
        ValueError: If the text is not a valid 24h wall-clock time.
    """

    hh, sep, mm = text.strip().partition(":")
    try:
        hour = int(hh)
        minute = int(mm) if sep else 0
    except ValueError as exc:
        raise ValueError(f"Invalid bedtime: {text!r}. Expected HH:MM, e.g. 22:00") from exc
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid bedtime: {text!r}. Hour must be 0-23 and minute 0-59")
    return hour, minute


def format_eta(ms: float | None) -> str:
    """Human countdown: "1h 5m", "4m 10s", "12s" or "now"."""

    if ms is None or not math.isfinite(ms) or ms <= 0:
        return "now"
    s = int(ms // 1000)
    m = s // 60
    h = m // 60
    if h > 0:
        return f"{h}h {m % 60}m"
    if m > 0:
        return f"{m}m {s % 60}s"
    return f"{s}s"


def pretty_local_time(epoch_ms: int, tz_name: str | None = None) -> str:
    """Short wall-clock time in the viewer's zone."""

    return dt_from_epoch_ms(epoch_ms, tz_name).strftime("%H:%M")


def pretty_tz(tz_name: str | None = None) -> str:
    """Label for the viewer's zone, used next to local times."""

    if tz_name:
        return tz_name
    return datetime.now().astimezone().tzname() or "local time"
