from datetime import UTC, datetime

from sleigh_tracker.merge import build_user_stop, compute_new_stop_base_arrival, unique_city_name
from sleigh_tracker.models import CUSTOM_ZONE, Coords, Stop
from sleigh_tracker.timeutils import epoch_ms_from_dt

SECOND = 1000
MINUTE = 60 * SECOND

T = epoch_ms_from_dt(datetime(2020, 12, 24, 22, tzinfo=UTC))


def _stop(zone: str, arrival_ms: int, city: str = "X") -> Stop:
    return Stop(zone_key=zone, city=city, coords=Coords(lat=45.0, lng=-70.0), arrival_ms=arrival_ms)


def test_two_minutes_after_zone_last_stop():
    base = [_stop("Atlantic Time Zone", T), _stop("Eastern Time Zone", T + 60 * MINUTE)]

    assert compute_new_stop_base_arrival(base, "Atlantic Time Zone", 0) == T + 2 * MINUTE


def test_guard_before_next_zone_pins_one_minute_after_last_stop():
    base = [_stop("Atlantic Time Zone", T), _stop("Eastern Time Zone", T + 30 * SECOND)]

    assert compute_new_stop_base_arrival(base, "Atlantic Time Zone", 0) == T + 60 * SECOND


def test_empty_zone_uses_first_stop_of_timeline():
    base = [_stop("Atlantic Time Zone", T), _stop("Eastern Time Zone", T + 60 * MINUTE)]

    assert compute_new_stop_base_arrival(base, "Central Time Zone", 0) == T + 2 * MINUTE


def test_empty_zone_squeezed_by_next_zone():
    base = [_stop("Eastern Time Zone", T)]

    assert compute_new_stop_base_arrival(base, "Atlantic Time Zone", 0) == T + 3 * MINUTE


def test_empty_timeline_uses_now():
    assert compute_new_stop_base_arrival([], "Eastern Time Zone", 5000) == 5000 + 2 * MINUTE


def test_custom_zone_has_no_next_zone():
    base = [_stop(CUSTOM_ZONE, T), _stop("Atlantic Time Zone", T + MINUTE)]

    assert compute_new_stop_base_arrival(base, CUSTOM_ZONE, 0) == T + 2 * MINUTE


def test_unique_city_name():
    assert unique_city_name([], " Home ") == "Home"
    assert unique_city_name(["Home"], "Home") == "Home (2)"
    assert unique_city_name(["Home", "Home (2)"], "Home") == "Home (3)"
    assert unique_city_name(["Home", "Home (3)"], "Home") == "Home (2)"


def test_build_user_stop_record():
    stop = build_user_stop(
        zone_key="Eastern Time Zone",
        city="  My House ",
        coords=Coords(lat=43.7, lng=-79.4),
        base_arrival_ms=T + 2 * MINUTE,
        now_ms=1234,
        msg="   ",
        id_factory=lambda: "abc",
    )

    assert stop.city == "My House"
    assert stop.msg is None
    assert stop.arrival_time_utc == "2020-12-24T22:02:00.000Z"
    assert stop.to_record() == {
        "id": "abc",
        "zoneKey": "Eastern Time Zone",
        "city": "My House",
        "coordinates": {"lat": 43.7, "lng": -79.4},
        "arrival_time_utc": "2020-12-24T22:02:00.000Z",
        "createdAt": 1234,
    }


def test_candidate_exactly_at_guard_is_pinned():
    base = [_stop("Atlantic Time Zone", T), _stop("Eastern Time Zone", T + 3 * MINUTE)]

    assert compute_new_stop_base_arrival(base, "Atlantic Time Zone", 0) == T + MINUTE


def test_unknown_zone_ranks_as_catch_all():
    base = [_stop("Atlantis", T), _stop(CUSTOM_ZONE, T + 30 * SECOND)]

    # no zone follows the catch-all, so no guard applies
    assert compute_new_stop_base_arrival(base, "Atlantis", 0) == T + 2 * MINUTE
