from datetime import UTC, datetime

import pytest

from sleigh_tracker.models import OFF_MAP, Coords, Stop
from sleigh_tracker.playback import FrameQueue, PlaybackEngine
from sleigh_tracker.timeline import shift_to_local_bedtime
from sleigh_tracker.timeutils import epoch_ms_from_dt, format_eta

MINUTE = 60_000
HOUR = 60 * MINUTE

T0 = epoch_ms_from_dt(datetime(2020, 12, 24, 22, tzinfo=UTC))
ANCHOR = epoch_ms_from_dt(datetime(2024, 12, 24, 12, tzinfo=UTC))
T1 = epoch_ms_from_dt(datetime(2024, 12, 24, 22, tzinfo=UTC))


def _stop(city: str, arrival_ms: int, lat: float, lng: float, msg: str | None = None) -> Stop:
    return Stop(zone_key="Eastern Time Zone", city=city, coords=Coords(lat=lat, lng=lng), arrival_ms=arrival_ms, msg=msg)


def _viewer_timeline(*stops: Stop) -> list[Stop]:
    return shift_to_local_bedtime(stops, 22, 0, ANCHOR, "UTC")


def _engine(timeline, events=None, **kwargs) -> PlaybackEngine:
    on_arrival = events.append if events is not None else None
    return PlaybackEngine(timeline, tz_name="UTC", on_arrival=on_arrival, **kwargs)


def test_flight_from_launch_to_final_stop():
    events: list[str] = []
    engine = _engine(_viewer_timeline(_stop("A", T0, 0.0, 0.0), _stop("B", T0 + HOUR, 10.0, 20.0)), events)

    before = engine.sample(T1 - HOUR)
    assert before.phase == "pending"
    assert before.position == OFF_MAP
    assert before.headline == "Waiting to launch…"
    assert before.subtext == "Starts at 22:00 (UTC) • in 1h 0m"

    mid = engine.sample(T1 + 30 * MINUTE)
    assert mid.phase == "en_route"
    assert mid.position == Coords(lat=5.0, lng=10.0)
    assert mid.progress == pytest.approx(0.5)
    assert mid.subtext == "Next: B • ETA 30m 0s • 23:00 (UTC)"
    assert mid.arrivals == ()

    done = engine.sample(T1 + 61 * MINUTE)
    assert done.phase == "arrived"
    assert done.headline == "B"
    assert done.subtext == "Final stop reached"
    assert done.position == Coords(lat=10.0, lng=20.0)
    assert done.arrivals == ("Santa is now at B",)

    engine.sample(T1 + 62 * MINUTE)
    assert events == ["Santa is now at B"]


def test_arrival_fires_once_near_threshold():
    events: list[str] = []
    engine = _engine([_stop("A", T1, 0.0, 0.0), _stop("B", T1 + HOUR, 10.0, 20.0, msg="Ho ho ho")], events)

    almost = engine.sample(T1 + int(HOUR * 0.9995))
    assert almost.phase == "en_route"
    assert almost.arrivals == ("Ho ho ho",)

    final = engine.sample(T1 + HOUR)
    assert final.subtext == "Ho ho ho"
    assert final.arrivals == ()
    assert events == ["Ho ho ho"]


def test_short_segment_arrival_announced_at_one_second_frames():
    events: list[str] = []
    engine = _engine(
        [
            _stop("A", T1, 0.0, 0.0),
            _stop("My House", T1 + 2 * MINUTE, 1.0, 1.0),
            _stop("C", T1 + HOUR, 10.0, 20.0),
        ],
        events,
    )

    for now in range(T1 + 300, T1 + 5 * MINUTE, 1000):
        engine.sample(now)

    assert events == ["Santa arrived at My House"]


def test_stop_skipped_between_frames_is_announced_once():
    events: list[str] = []
    engine = _engine(
        [
            _stop("A", T1, 0.0, 0.0),
            _stop("B", T1 + MINUTE, 1.0, 1.0, msg="Cookies collected"),
            _stop("C", T1 + HOUR, 10.0, 20.0),
        ],
        events,
    )

    engine.sample(T1 + 10_000)
    late = engine.sample(T1 + 30 * MINUTE)
    engine.sample(T1 + 31 * MINUTE)

    assert late.next_city == "C"
    assert late.arrivals == ("Cookies collected",)
    assert events == ["Cookies collected"]


def test_empty_timeline():
    frame = _engine([]).sample(T1)

    assert frame.phase == "empty"
    assert frame.headline == "Preparing sleigh…"
    assert frame.subtext == "Loading route"


def test_equal_arrivals_do_not_divide_by_zero():
    engine = _engine([_stop("A", T1, 0.0, 0.0), _stop("B", T1, 1.0, 1.0)])

    frame = engine.sample(T1)

    assert frame.phase == "arrived"
    assert frame.headline == "B"


def test_non_finite_position_keeps_last_valid():
    engine = _engine(
        [
            _stop("A", T1, 0.0, 0.0),
            _stop("B", T1 + HOUR, 10.0, 20.0),
            _stop("C", T1 + 2 * HOUR, float("nan"), 0.0),
        ]
    )

    first = engine.sample(T1 + 30 * MINUTE)
    second = engine.sample(T1 + 90 * MINUTE)

    assert second.phase == "en_route"
    assert second.next_city == "C"
    assert second.position == first.position == Coords(lat=5.0, lng=10.0)


def test_stale_index_hint_is_rescanned():
    engine = _engine(
        [_stop("A", T1, 0.0, 0.0), _stop("B", T1 + HOUR, 10.0, 20.0), _stop("C", T1 + 2 * HOUR, 20.0, 40.0)]
    )

    assert engine.sample(T1 + 3 * HOUR).headline == "C"
    back = engine.sample(T1 + 30 * MINUTE)

    assert back.index == 0
    assert back.next_city == "B"
    assert back.position == Coords(lat=5.0, lng=10.0)


def test_replace_timeline_resets_announcements():
    events: list[str] = []
    timeline = [_stop("A", T1, 0.0, 0.0), _stop("B", T1 + HOUR, 10.0, 20.0)]
    engine = _engine(timeline, events)

    engine.sample(T1 + 2 * HOUR)
    engine.replace_timeline(timeline)
    engine.sample(T1 + 2 * HOUR)

    assert events == ["Santa is now at B", "Santa is now at B"]


def test_frame_loop_requests_and_cancels():
    frames = []
    queue = FrameQueue()
    engine = _engine(
        [_stop("A", T1, 0.0, 0.0), _stop("B", T1 + HOUR, 10.0, 20.0)],
        on_frame=frames.append,
        clock=lambda: T1 + 30 * MINUTE,
    )

    engine.start(queue)
    assert engine.running
    assert len(queue) == 1

    assert queue.run_pending() == 1
    assert [f.phase for f in frames] == ["en_route"]
    assert len(queue) == 1

    engine.close()
    engine.close()
    assert not engine.running
    assert len(queue) == 0
    assert queue.run_pending() == 0


def test_frame_loop_survives_callback_error():
    queue = FrameQueue()

    def boom(frame):
        raise RuntimeError("render failed")

    engine = _engine([_stop("A", T1, 0.0, 0.0)], on_frame=boom, clock=lambda: T1)
    engine.start(queue)

    with pytest.raises(RuntimeError):
        queue.run_pending()
    assert engine.running
    assert len(queue) == 1


@pytest.mark.parametrize(
    ("ms", "expected"),
    [
        (None, "now"),
        (0, "now"),
        (-5000, "now"),
        (float("nan"), "now"),
        (12_000, "12s"),
        (250_000, "4m 10s"),
        (3_900_000, "1h 5m"),
    ],
)
def test_format_eta(ms, expected):
    assert format_eta(ms) == expected
