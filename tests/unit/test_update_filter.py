"""
Update Filter Unit Tests
========================

Tests for the distance/time trigger and the haversine helper.
"""

from datetime import UTC, datetime, timedelta

from geoqueue.domain.models import GPSPosition
from geoqueue.infrastructure.gps.distance import UpdateFilter, calculate_distance

T0 = datetime(2025, 6, 1, 12, 0, 0, tzinfo=UTC)


def fix(lat: float, lon: float, seconds: float = 0.0, satellites: int = 8, quality: int = 2):
    return GPSPosition(
        latitude=lat,
        longitude=lon,
        satellites=satellites,
        fix_quality=quality,
        timestamp=T0 + timedelta(seconds=seconds),
    )


class TestUpdateFilter:
    """Tests for UpdateFilter class."""

    def test_first_fix_accepted(self):
        f = UpdateFilter()
        assert f.accept(fix(52.0, 21.0)) is True
        assert f.accepted_count == 1

    def test_small_move_within_interval_dropped(self):
        f = UpdateFilter(distance_interval_m=50, deferred_interval_ms=60000)
        f.accept(fix(52.0, 21.0))

        # ~11 m north, 10 s later
        assert f.accept(fix(52.0001, 21.0, seconds=10)) is False
        assert f.dropped_count == 1

    def test_distance_trigger(self):
        f = UpdateFilter(distance_interval_m=50, deferred_interval_ms=60000)
        f.accept(fix(52.0, 21.0))

        # ~111 m north
        assert f.accept(fix(52.001, 21.0, seconds=5)) is True

    def test_time_trigger(self):
        f = UpdateFilter(distance_interval_m=50, deferred_interval_ms=60000)
        f.accept(fix(52.0, 21.0))

        assert f.accept(fix(52.0, 21.0, seconds=59)) is False
        assert f.accept(fix(52.0, 21.0, seconds=60)) is True

    def test_distance_measured_from_last_accepted(self):
        f = UpdateFilter(distance_interval_m=50, deferred_interval_ms=10**9)
        f.accept(fix(52.0, 21.0))

        # Three ~33 m steps: only the second crosses 50 m from the anchor
        assert f.accept(fix(52.0003, 21.0, seconds=1)) is False
        assert f.accept(fix(52.0006, 21.0, seconds=2)) is True
        assert f.accept(fix(52.0009, 21.0, seconds=3)) is False

    def test_no_fix_dropped_when_required(self):
        f = UpdateFilter(require_fix=True)
        assert f.accept(fix(52.0, 21.0, satellites=0, quality=0)) is False
        assert f.last_accepted is None

    def test_no_fix_allowed_when_not_required(self):
        f = UpdateFilter(require_fix=False)
        assert f.accept(fix(52.0, 21.0, satellites=0, quality=0)) is True

    def test_zero_intervals_accept_everything(self):
        f = UpdateFilter(distance_interval_m=0, deferred_interval_ms=0)
        for i in range(5):
            assert f.accept(fix(52.0, 21.0, seconds=0)) is True
        assert f.accepted_count == 5

    def test_reset(self):
        f = UpdateFilter()
        f.accept(fix(52.0, 21.0))
        f.reset()

        assert f.last_accepted is None
        assert f.accepted_count == 0
        assert f.accept(fix(52.0, 21.0)) is True


class TestHaversineFormula:
    """Tests for haversine distance calculation."""

    def test_same_point_zero_distance(self):
        assert calculate_distance(52.0, 21.0, 52.0, 21.0) == 0.0

    def test_known_distance_warsaw_krakow(self):
        # Warsaw to Krakow is approximately 250 km
        km = calculate_distance(52.2297, 21.0122, 50.0647, 19.9450) / 1000
        assert 245 < km < 260

    def test_equator_one_degree(self):
        d = calculate_distance(0, 0, 0, 1)
        assert 110_000 < d < 112_000
