from datetime import UTC, datetime

import pytest

from sleigh_tracker.models import Coords, Stop
from sleigh_tracker.timeline import (
    flight_anchor_ms,
    local_day_start_ms,
    next_local_bedtime_ms,
    shift_delta,
    shift_timeline,
    shift_to_local_bedtime,
    zone_passed,
)
from sleigh_tracker.timeutils import epoch_ms_from_dt

MINUTE = 60_000
HOUR = 60 * MINUTE


def _utc(*args) -> int:
    return epoch_ms_from_dt(datetime(*args, tzinfo=UTC))


def _stop(city: str, arrival_ms: int, zone: str = "Eastern Time Zone") -> Stop:
    return Stop(zone_key=zone, city=city, coords=Coords(lat=45.0, lng=-75.0), arrival_ms=arrival_ms)


class TestNextLocalBedtime:
    def test_later_today(self):
        assert next_local_bedtime_ms(22, 0, _utc(2024, 12, 24, 12), "UTC") == _utc(2024, 12, 24, 22)

    def test_already_past_rolls_to_tomorrow(self):
        assert next_local_bedtime_ms(22, 0, _utc(2024, 12, 24, 23), "UTC") == _utc(2024, 12, 25, 22)

    def test_exactly_now_rolls_to_tomorrow(self):
        assert next_local_bedtime_ms(22, 0, _utc(2024, 12, 24, 22), "UTC") == _utc(2024, 12, 25, 22)

    def test_uses_viewer_wall_clock(self):
        # 07:00 in Toronto; 22:00 EST is 03:00 UTC the next day
        assert next_local_bedtime_ms(22, 0, _utc(2024, 12, 24, 12), "America/Toronto") == _utc(2024, 12, 25, 3)

    def test_rollover_across_spring_forward_keeps_local_hour(self):
        # 23:00 EST on 2024-03-09; clocks jump to EDT overnight
        now = _utc(2024, 3, 10, 4)
        assert next_local_bedtime_ms(22, 0, now, "America/Toronto") == _utc(2024, 3, 11, 2)

    @pytest.mark.parametrize(("hour", "minute"), [(24, 0), (-1, 0), (22, 60)])
    def test_invalid_bedtime(self, hour, minute):
        with pytest.raises(ValueError):
            next_local_bedtime_ms(hour, minute, _utc(2024, 12, 24, 12), "UTC")


def test_shift_moves_first_stop_to_bedtime_and_keeps_gaps():
    t0 = _utc(2020, 12, 24, 22)
    base = [_stop("C", t0 + HOUR), _stop("A", t0), _stop("B", t0 + 10 * MINUTE)]

    shifted = shift_to_local_bedtime(base, 22, 0, _utc(2024, 12, 24, 12), "UTC")

    bedtime = _utc(2024, 12, 24, 22)
    assert [s.city for s in shifted] == ["A", "B", "C"]
    assert [s.arrival_ms for s in shifted] == [bedtime, bedtime + 10 * MINUTE, bedtime + HOUR]
    # inputs are not mutated
    assert base[1].arrival_ms == t0


def test_shift_empty_timeline():
    assert shift_to_local_bedtime([], 22, 0, _utc(2024, 12, 24, 12), "UTC") == []
    assert shift_delta([], 22, 0, _utc(2024, 12, 24, 12), "UTC") == 0


def test_shift_timeline_by_delta():
    shifted = shift_timeline([_stop("A", 1000), _stop("B", 500)], -500)

    assert [(s.city, s.arrival_ms) for s in shifted] == [("B", 0), ("A", 500)]


def test_zone_passed_after_last_shifted_stop():
    t0 = _utc(2020, 12, 24, 22)
    base = [
        _stop("Halifax", t0, zone="Atlantic Time Zone"),
        _stop("Ottawa", t0 + HOUR),
        _stop("Toronto", t0 + HOUR + 5 * MINUTE),
    ]
    delta = shift_delta(base, 22, 0, _utc(2024, 12, 24, 12), "UTC")
    last_eastern = _utc(2024, 12, 24, 23, 5)

    assert not zone_passed(base, "Eastern Time Zone", delta, last_eastern - 1)
    assert zone_passed(base, "Eastern Time Zone", delta, last_eastern)
    assert not zone_passed(base, "Central Time Zone", delta, last_eastern + 10 * HOUR)


def test_local_day_start():
    assert local_day_start_ms(_utc(2024, 12, 24, 23, 59), "UTC") == _utc(2024, 12, 24)
    # 21:00 in Toronto is already 02:00 UTC the next day
    assert local_day_start_ms(_utc(2024, 12, 25, 2), "America/Toronto") == _utc(2024, 12, 24, 5)


class TestFlightAnchor:
    base = [_stop("Halifax", _utc(2020, 12, 24, 22)), _stop("Victoria", _utc(2020, 12, 25, 4))]

    def test_after_midnight_keeps_last_nights_flight(self):
        anchor = flight_anchor_ms(self.base, 22, 0, _utc(2024, 12, 25, 1), "UTC")

        assert anchor == _utc(2024, 12, 24)
        assert shift_to_local_bedtime(self.base, 22, 0, anchor, "UTC")[0].arrival_ms == _utc(2024, 12, 24, 22)

    def test_last_stop_still_belongs_to_last_night(self):
        assert flight_anchor_ms(self.base, 22, 0, _utc(2024, 12, 25, 4), "UTC") == _utc(2024, 12, 24)

    def test_after_flight_uses_tonight(self):
        assert flight_anchor_ms(self.base, 22, 0, _utc(2024, 12, 25, 10), "UTC") == _utc(2024, 12, 25)

    def test_before_bedtime_uses_tonight(self):
        assert flight_anchor_ms(self.base, 22, 0, _utc(2024, 12, 24, 12), "UTC") == _utc(2024, 12, 24)

    def test_empty_timeline(self):
        assert flight_anchor_ms([], 22, 0, _utc(2024, 12, 25, 1), "UTC") == _utc(2024, 12, 25)
