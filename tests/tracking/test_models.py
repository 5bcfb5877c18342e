"""Tests for tracking value models."""

import math
from collections import deque

import pytest

from core.exceptions import MalformedInput
from geo.coordinate import Coordinate
from tracking.models import (
    LocationFix,
    Pickup,
    RideRoute,
    TrackingState,
    checkpoints_from_route,
    is_finite_number,
)


@pytest.mark.unit
class TestCheckpointsFromRoute:
    def test_start_pickups_destination_order(self):
        route = RideRoute(
            start=Coordinate(12.0, 77.0),
            end=Coordinate(12.1, 77.0),
            pickups=(
                Pickup(Coordinate(12.03, 77.0), "Asha"),
                Pickup(Coordinate(12.06, 77.0), "Ravi"),
            ),
        )

        labels = [c.label for c in checkpoints_from_route(route)]

        assert labels == ["Start Point", "Pickup: Asha", "Pickup: Ravi", "Destination"]

    def test_no_pickups(self):
        route = RideRoute(start=Coordinate(12.0, 77.0), end=Coordinate(12.1, 77.0))

        checkpoints = checkpoints_from_route(route)

        assert len(checkpoints) == 2
        assert not any(c.reached for c in checkpoints)


@pytest.mark.unit
class TestLocationFix:
    def test_coordinate(self):
        fix = LocationFix(12.5, 77.5)

        assert fix.coordinate() == Coordinate(12.5, 77.5)

    def test_missing_coordinate_raises(self):
        with pytest.raises(MalformedInput):
            LocationFix(None, 77.5).coordinate()


@pytest.mark.unit
class TestTrackingState:
    def make_state(self, total=1000.0, samples=()):
        route = RideRoute(start=Coordinate(12.0, 77.0), end=Coordinate(12.1, 77.0))
        return TrackingState(
            route=route,
            checkpoints=checkpoints_from_route(route),
            total_route_distance_m=total,
            speed_samples=deque(samples, maxlen=20),
        )

    def test_progress_pct(self):
        state = self.make_state()
        state.distance_traveled_m = 250.0

        assert state.progress_pct == 25.0

    def test_progress_zero_length_route(self):
        state = self.make_state(total=0.0)
        state.distance_traveled_m = 10.0

        assert state.progress_pct == 0.0

    def test_average_speed(self):
        assert self.make_state(samples=(10.0, 20.0, 30.0)).average_speed_kmh == 20.0
        assert self.make_state().average_speed_kmh == 0.0


@pytest.mark.unit
@pytest.mark.parametrize(
    "value,expected",
    [(1.5, True), (0, True), (None, False), (math.nan, False), (math.inf, False), (True, False)],
)
def test_is_finite_number(value, expected):
    assert is_finite_number(value) is expected
