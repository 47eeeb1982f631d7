"""
===============================================================================
PATCHED CONICS - Linear Trajectory
===============================================================================
Constant-velocity motion, used for root bodies and for craft outside every
sphere of influence.

    r(t) = r0 + v t

Intersection with another linear trajectory at separation d reduces to the
quadratic

    |dp + dv t|^2 = d^2   ->   a t^2 + 2 b t + c = 0
    a = dv.dv,  b = dv.dp,  c = dp.dp - d^2
    t = (-b -/+ sqrt(b^2 - a c)) / a
===============================================================================
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import numpy as np

from patchedconics.core.constants import LINEAR_BATCH_SIZE
from patchedconics.core.states import (
    AccelerationState,
    KinematicState,
    KinematicTemporalState,
)
from patchedconics.core.vector import ZERO, as_vector
from patchedconics.dynamics.root_finding import guard_finite
from patchedconics.trajectory.base import (
    LinearState,
    TimeLike,
    Trajectory,
    TrajectoryKind,
)

logger = logging.getLogger(__name__)


class LinearTrajectory(Trajectory):
    """
    Straight-line trajectory.

    States are expressed as offsets from ``start.kinematics``, so the
    absolute position of a distant root body is never recomputed.
    """

    kind = TrajectoryKind.LINEAR
    default_batch_size = LINEAR_BATCH_SIZE

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self._start.velocity))

    # =========================================================================
    # STATE QUERIES
    # =========================================================================

    def state_at_time(self, time: TimeLike) -> LinearState:
        t = self._as_relative_time(time)
        start = self._start.kinematics
        kinematics = KinematicState(start.velocity * t, ZERO, parent=start)
        return LinearState(kinematics, self._time_node(t))

    def state_at_point(self, point) -> LinearState:
        """
        State at the orthogonal projection of *point* onto the line.

        The returned time is negative when the point lies behind the start.

        Raises
        ------
        ValueError
            If the trajectory is stationary.
        """
        velocity = self._start.velocity
        speed_sq = float(np.dot(velocity, velocity))
        if speed_sq == 0.0:
            raise ValueError("Stationary trajectory has no point projection")
        t = float(np.dot(as_vector(point) - self._start.position, velocity)) / speed_sq
        return self.state_at_time(t)

    def state_at_distance(self, distance: float) -> LinearState:
        """
        State after travelling *distance* metres along the line.

        Raises
        ------
        ValueError
            If the trajectory is stationary.
        """
        speed = self.speed
        if speed == 0.0:
            raise ValueError("Stationary trajectory never covers any distance")
        return self.state_at_time(distance / speed)

    # =========================================================================
    # RELATIVE MOTION
    # =========================================================================

    def relative_motion(self, other: Trajectory) -> Tuple[np.ndarray, np.ndarray]:
        """
        Separation and relative velocity from *other* at this trajectory's
        epoch, both expressed in the deepest frame the two share.

        Raises
        ------
        ValueError
            If *other* is not linear.
        """
        if other.kind is not TrajectoryKind.LINEAR:
            raise ValueError(
                f"Linear intersection needs a linear trajectory, got {other.kind.name}"
            )
        mine = self._start.kinematics
        theirs = other.state_at_time(self._start.time).kinematics
        mine, theirs = mine.synchronize(theirs)
        return mine.position - theirs.position, mine.velocity - theirs.velocity

    def intersection_with(self, other: Trajectory, distance: float
                          ) -> Optional[Tuple[LinearState, LinearState]]:
        """
        Times at which the separation from *other* equals *distance*.

        Returns
        -------
        (entry, exit) : tuple of LinearState or None
            States of this trajectory at both roots, earliest first. None
            when the separation never reaches *distance*.

        Raises
        ------
        RuntimeError
            If the roots are not finite (both trajectories share a velocity).
        """
        dp, dv = self.relative_motion(other)
        a = float(np.dot(dv, dv))
        b = float(np.dot(dv, dp))
        c = float(np.dot(dp, dp)) - distance * distance

        discriminant = b * b - a * c
        if discriminant < 0.0:
            return None

        root = np.sqrt(np.float64(discriminant))
        with np.errstate(divide='ignore', invalid='ignore'):
            t_first = np.float64(-b - root) / np.float64(a)
            t_second = np.float64(-b + root) / np.float64(a)
        t_first = guard_finite(t_first, "LinearTrajectory.intersection_with")
        t_second = guard_finite(t_second, "LinearTrajectory.intersection_with")

        return self.state_at_time(t_first), self.state_at_time(t_second)

    def closest_approach(self, other: Trajectory) -> Tuple[LinearState, KinematicTemporalState]:
        """
        States of both trajectories at their minimum separation.

        Parallel trajectories keep a constant separation; the epoch is
        returned for them.
        """
        dp, dv = self.relative_motion(other)
        closing = float(np.dot(dv, dv))
        t = 0.0 if closing == 0.0 else -float(np.dot(dp, dv)) / closing
        mine = self.state_at_time(t)
        return mine, other.state_at_time(mine.time)

    # =========================================================================
    # STEPPING
    # =========================================================================

    def at_time(self, delta: float,
                acceleration: Optional[AccelerationState] = None) -> LinearTrajectory:
        return LinearTrajectory(
            KinematicTemporalState(
                self._start.kinematics.step(delta, acceleration),
                self._start.time.with_increment_time(delta),
            )
        )

    def __repr__(self) -> str:
        return (f"LinearTrajectory(r0={self._start.position.tolist()}, "
                f"v={self._start.velocity.tolist()})")
