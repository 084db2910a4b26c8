import math

import pytest

from sleigh_tracker.geo import coords_from_geolocation, interpolate, to_float
from sleigh_tracker.models import Coords


@pytest.mark.parametrize(
    ("value", "expected"),
    [(1, 1.0), (" 44.5 ", 44.5), ("-63", -63.0), ("", None), ("abc", None), (None, None), (True, None), ("nan", None)],
)
def test_to_float(value, expected):
    assert to_float(value) == expected


def test_interpolate_clamps():
    a, b = Coords(lat=0.0, lng=0.0), Coords(lat=10.0, lng=20.0)

    assert interpolate(a, b, 1.5) == b
    assert interpolate(a, b, -1.0) == a
    assert math.isclose(interpolate(a, b, 0.25).lng, 5.0)


class TestCoordsFromGeolocation:
    def test_position(self):
        payload = {"coords": {"latitude": 44.6488, "longitude": -63.5752, "accuracy": 20}, "timestamp": 1}

        assert coords_from_geolocation(payload) == Coords(lat=44.6488, lng=-63.5752)

    def test_browser_error(self):
        with pytest.raises(ValueError, match="Location failed: User denied Geolocation"):
            coords_from_geolocation({"error": {"code": 1, "message": "User denied Geolocation"}})

    @pytest.mark.parametrize("payload", [None, "nope", {}, {"timestamp": 1}])
    def test_unavailable(self, payload):
        with pytest.raises(ValueError, match="not supported"):
            coords_from_geolocation(payload)

    def test_out_of_range(self):
        with pytest.raises(ValueError, match="Could not get location"):
            coords_from_geolocation({"coords": {"latitude": 120, "longitude": 0}})
