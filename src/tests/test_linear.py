"""
===============================================================================
PATCHED CONICS - Linear Trajectory Test Suite
===============================================================================
Tests for straight-line motion: states by time, point and distance, the
quadratic separation solve (two roots, no roots, degenerate velocity),
closest approach and stepping under a constant acceleration.
===============================================================================
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from patchedconics.core.constants import LINEAR_BATCH_SIZE
from patchedconics.core.states import (
    AccelerationState,
    KinematicState,
    KinematicTemporalState,
    TemporalState,
)
from patchedconics.trajectory.base import TrajectoryKind
from patchedconics.trajectory.linear import LinearTrajectory


def line(position, velocity, time=0.0):
    return LinearTrajectory(
        KinematicTemporalState(KinematicState(position, velocity), TemporalState(time)))


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def mover():
    """Moves along +X at 10 m/s from x = -100 m."""
    return line([-100.0, 0.0, 0.0], [10.0, 0.0, 0.0])


@pytest.fixture
def beacon():
    """Stationary at the origin."""
    return line([0.0, 0.0, 0.0], [0.0, 0.0, 0.0])


# =============================================================================
# State queries
# =============================================================================

class TestStateQueries:

    def test_metadata(self, mover):
        assert mover.kind is TrajectoryKind.LINEAR
        assert mover.default_batch_size == LINEAR_BATCH_SIZE
        assert mover.speed == pytest.approx(10.0)

    def test_state_at_time_is_offset_from_start(self, mover):
        state = mover.state_at_time(4.0)
        assert state.kinematics.parent == mover.start.kinematics
        assert_allclose(state.position, [40.0, 0.0, 0.0])
        assert_allclose(state.absolute_position, [-60.0, 0.0, 0.0])
        assert_allclose(state.absolute_velocity, [10.0, 0.0, 0.0])
        assert state.relative_time == 4.0
        assert state.time.parent == mover.start.time

    def test_state_at_temporal_state(self, mover):
        later = TemporalState(2.5, TemporalState(0.0))
        assert_allclose(mover.state_at_time(later).absolute_position, [-75.0, 0.0, 0.0])

    @pytest.mark.parametrize("point, t", [
        ([0.0, 0.0, 0.0], 10.0),
        ([-50.0, 30.0, -7.0], 5.0),
        ([-120.0, 1.0, 0.0], -2.0),
    ])
    def test_state_at_point(self, mover, point, t):
        assert mover.state_at_point(point).relative_time == pytest.approx(t)

    def test_state_at_distance(self, mover):
        state = mover.state_at_distance(250.0)
        assert state.relative_time == pytest.approx(25.0)
        assert_allclose(state.absolute_position, [150.0, 0.0, 0.0])

    def test_stationary_queries_raise(self, beacon):
        with pytest.raises(ValueError):
            beacon.state_at_point([1.0, 0.0, 0.0])
        with pytest.raises(ValueError):
            beacon.state_at_distance(1.0)


# =============================================================================
# Intersection
# =============================================================================

class TestIntersection:
    """Separation |dp + dv t| = d solved as a quadratic in t."""

    def test_two_roots(self, mover, beacon):
        entry, exit_ = mover.intersection_with(beacon, 50.0)
        assert entry.relative_time == pytest.approx(5.0)
        assert exit_.relative_time == pytest.approx(15.0)
        assert_allclose(entry.absolute_position, [-50.0, 0.0, 0.0])

    def test_roots_in_the_past(self, beacon):
        leaving = line([100.0, 0.0, 0.0], [10.0, 0.0, 0.0])
        entry, exit_ = leaving.intersection_with(beacon, 50.0)
        assert entry.relative_time == pytest.approx(-15.0)
        assert exit_.relative_time == pytest.approx(-5.0)

    def test_moving_target(self, mover):
        target = line([0.0, 0.0, 0.0], [-10.0, 0.0, 0.0])
        entry, _ = mover.intersection_with(target, 20.0)
        assert entry.relative_time == pytest.approx(4.0)

    def test_never_close_enough(self, beacon):
        offset = line([-100.0, 80.0, 0.0], [10.0, 0.0, 0.0])
        assert offset.intersection_with(beacon, 50.0) is None

    def test_common_velocity_raises(self):
        a = line([0.0, 0.0, 0.0], [1.0, 0.0, 0.0])
        b = line([10.0, 0.0, 0.0], [1.0, 0.0, 0.0])
        with pytest.raises(RuntimeError):
            a.intersection_with(b, 5.0)

    def test_different_epochs(self, beacon):
        late = line([-100.0, 0.0, 0.0], [10.0, 0.0, 0.0], time=3.0)
        entry, _ = late.intersection_with(beacon, 50.0)
        assert entry.relative_time == pytest.approx(5.0)
        assert entry.absolute_time == pytest.approx(8.0)

    def test_closest_approach(self, beacon):
        passer = line([-100.0, 30.0, 0.0], [10.0, 0.0, 0.0])
        mine, theirs = passer.closest_approach(beacon)
        assert mine.relative_time == pytest.approx(10.0)
        gap = mine.absolute_position - theirs.absolute_position
        assert np.linalg.norm(gap) == pytest.approx(30.0)

    def test_parallel_closest_approach_at_epoch(self):
        a = line([0.0, 5.0, 0.0], [1.0, 0.0, 0.0])
        b = line([0.0, 0.0, 0.0], [1.0, 0.0, 0.0])
        mine, _ = a.closest_approach(b)
        assert mine.relative_time == 0.0


# =============================================================================
# Stepping and sampling
# =============================================================================

class TestStepping:

    def test_at_time_without_acceleration(self, mover):
        later = mover.at_time(3.0)
        assert_allclose(later.start.position, [-70.0, 0.0, 0.0])
        assert later.start.relative_time == 3.0

    def test_at_time_with_acceleration(self, mover):
        later = mover.at_time(2.0, AccelerationState([0.0, 1.0, 0.0]))
        assert_allclose(later.start.position, [-80.0, 2.0, 0.0])
        assert_allclose(later.start.velocity, [10.0, 2.0, 0.0])

    def test_sample_range(self, mover):
        samples = list(mover.sample_range(0.0, 10.0, 11))
        assert len(samples) == 11
        assert [s.time for s in samples] == pytest.approx(list(np.linspace(0.0, 10.0, 11)))
        assert_allclose(samples[-1].position, [0.0, 0.0, 0.0], atol=1e-12)

    def test_negative_count_raises(self, mover):
        with pytest.raises(ValueError):
            mover.sample_range(0.0, 1.0, -1)
