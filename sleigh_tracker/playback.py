"""Playback of the viewer timeline: position, status text and arrival events.

Each sample is recomputed from (timeline, now). The engine keeps only hints
between samples (bracket index, last announced city, last valid position), so a
stale hint can cost a rescan but never a wrong answer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Final, Literal, Protocol, Sequence

from sleigh_tracker.geo import clamp01, interpolate, is_finite_coords
from sleigh_tracker.models import OFF_MAP, Coords, Stop
from sleigh_tracker.timeutils import format_eta, now_ms, pretty_local_time, pretty_tz

logger = logging.getLogger(__name__)

Phase = Literal["empty", "pending", "en_route", "arrived"]

# Progress at which the next stop counts as reached.
ARRIVAL_THRESHOLD: Final[float] = 0.999


@dataclass(frozen=True, slots=True)
class PlaybackFrame:
    """Everything the rendering and notification surfaces need for one frame."""

    now_ms: int
    phase: Phase
    position: Coords
    headline: str
    subtext: str
    index: int = 0
    progress: float = 0.0
    next_city: str | None = None
    eta_ms: int | None = None
    # Arrival messages fired by this frame, oldest first.
    arrivals: tuple[str, ...] = ()


class FrameScheduler(Protocol):
    """Display-synchronised callback registration."""

    def request_frame(self, callback: Callable[[], None]) -> int: ...

    def cancel_frame(self, handle: int) -> None: ...


class FrameQueue:
    """In-process FrameScheduler: requested callbacks run on the next run_pending()."""

    def __init__(self) -> None:
        self._next_handle = 1
        self._pending: dict[int, Callable[[], None]] = {}

    def request_frame(self, callback: Callable[[], None]) -> int:
        handle = self._next_handle
        self._next_handle += 1
        self._pending[handle] = callback
        return handle

    def cancel_frame(self, handle: int) -> None:
        self._pending.pop(handle, None)

    def run_pending(self) -> int:
        """Run callbacks registered before this call; returns how many ran."""

        batch, self._pending = self._pending, {}
        for callback in batch.values():
            callback()
        return len(batch)

    def __len__(self) -> int:
        return len(self._pending)


class PlaybackEngine:
    """Samples a viewer timeline and reports where the sleigh is.

    Args:
        timeline: Viewer timeline, sorted by arrival.
        tz_name: Viewer's IANA zone for local-time strings (None = system local).
        on_arrival: Called with the arrival message, once per destination city.
        on_frame: Called with every frame produced by tick().
        clock: Returns the current epoch milliseconds.
    """

    def __init__(
        self,
        timeline: Sequence[Stop],
        *,
        tz_name: str | None = None,
        on_arrival: Callable[[str], None] | None = None,
        on_frame: Callable[[PlaybackFrame], None] | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._timeline: list[Stop] = list(timeline)
        self._tz_name = tz_name
        self._on_arrival = on_arrival
        self._on_frame = on_frame
        self._clock = clock

        self._index = 0
        self._last_announced = ""
        self._position = OFF_MAP

        self._scheduler: FrameScheduler | None = None
        self._handle: int | None = None

    @property
    def timeline(self) -> tuple[Stop, ...]:
        return tuple(self._timeline)

    @property
    def position(self) -> Coords:
        """Last valid reported position."""

        return self._position

    @property
    def running(self) -> bool:
        return self._handle is not None

    def replace_timeline(self, timeline: Sequence[Stop]) -> None:
        """Swap in a recomputed timeline (schedule or bedtime changed)."""

        self._timeline = list(timeline)
        self._index = 0
        self._last_announced = ""

    def sample(self, now: int) -> PlaybackFrame:
        """Compute the frame for instant now (epoch milliseconds)."""

        tl = self._timeline
        if not tl:
            return PlaybackFrame(
                now_ms=now,
                phase="empty",
                position=OFF_MAP,
                headline="Preparing sleigh…",
                subtext="Loading route",
            )

        tz_label = pretty_tz(self._tz_name)
        first = tl[0]
        if now < first.arrival_ms:
            self._index = 0
            self._position = OFF_MAP
            eta = first.arrival_ms - now
            return PlaybackFrame(
                now_ms=now,
                phase="pending",
                position=OFF_MAP,
                headline="Waiting to launch…",
                subtext=(
                    f"Starts at {pretty_local_time(first.arrival_ms, self._tz_name)} ({tz_label})"
                    f" • in {format_eta(eta)}"
                ),
                next_city=first.city,
                eta_ms=eta,
            )

        prev = self._index
        i = prev
        if i >= len(tl) or tl[i].arrival_ms > now:
            i = 0
        while i + 1 < len(tl) and now >= tl[i + 1].arrival_ms:
            i += 1
        self._index = i
        cur = tl[i]
        # Stops passed between two frames are announced late rather than lost.
        passed = i > prev and i < len(tl) - 1

        if i == len(tl) - 1:
            if is_finite_coords(cur.coords):
                self._position = cur.coords
            arrivals = self._announce(cur.city, cur.msg or f"Santa is now at {cur.city}")
            return PlaybackFrame(
                now_ms=now,
                phase="arrived",
                position=self._position,
                headline=cur.city,
                subtext=cur.msg or "Final stop reached",
                index=i,
                progress=1.0,
                arrivals=arrivals,
            )

        nxt = tl[i + 1]
        span = nxt.arrival_ms - cur.arrival_ms
        t = 1.0 if span <= 0 else clamp01((now - cur.arrival_ms) / span)
        p = interpolate(cur.coords, nxt.coords, t)
        if is_finite_coords(p):
            self._position = p
        else:
            logger.debug("Discarded non-finite position between %r and %r", cur.city, nxt.city)

        eta = nxt.arrival_ms - now
        arrivals: tuple[str, ...] = ()
        if passed:
            arrivals += self._announce(cur.city, cur.msg or f"Santa arrived at {cur.city}")
        if t >= ARRIVAL_THRESHOLD:
            arrivals += self._announce(nxt.city, nxt.msg or f"Santa arrived at {nxt.city}")

        return PlaybackFrame(
            now_ms=now,
            phase="en_route",
            position=self._position,
            headline="En route",
            subtext=(
                f"Next: {nxt.city} • ETA {format_eta(eta)} • "
                f"{pretty_local_time(nxt.arrival_ms, self._tz_name)} ({tz_label})"
            ),
            index=i,
            progress=t,
            next_city=nxt.city,
            eta_ms=eta,
            arrivals=arrivals,
        )

    def _announce(self, city: str, message: str) -> tuple[str, ...]:
        if self._last_announced == city:
            return ()
        self._last_announced = city
        if self._on_arrival is not None:
            self._on_arrival(message)
        return (message,)

    # -- frame loop -------------------------------------------------------

    def start(self, scheduler: FrameScheduler) -> None:
        """Begin ticking on every frame the scheduler delivers."""

        self.close()
        self._scheduler = scheduler
        self._handle = scheduler.request_frame(self.tick)

    def tick(self) -> PlaybackFrame:
        """Sample at the clock's current time and re-register for the next frame."""

        self._handle = None
        try:
            frame = self.sample(self._clock())
            if self._on_frame is not None:
                self._on_frame(frame)
            return frame
        finally:
            if self._scheduler is not None and self._handle is None:
                self._handle = self._scheduler.request_frame(self.tick)

    def close(self) -> None:
        """Cancel the pending frame registration; safe to call more than once."""

        if self._scheduler is not None and self._handle is not None:
            self._scheduler.cancel_frame(self._handle)
        self._scheduler = None
        self._handle = None
