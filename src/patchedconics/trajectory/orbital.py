"""
===============================================================================
PATCHED CONICS - Orbital Trajectory
===============================================================================
Two-body Keplerian motion around one gravity body.

The start state is an offset from the orbited body's state at the epoch.
Every state produced by the trajectory is likewise an offset from the body's
state at the same instant, so a craft around a moon is never expressed in
planet-sized coordinates.

Searches
--------
    state_at_point        Newton-Raphson on d/dnu |r(nu) - p|^2
    state_at_distance     bisection on the orbit equation r(nu) = d
    orbital_intersection  seeded Newton-Raphson on |r(nu) - r_other(t(nu))| = d

References
----------
    [1] Curtis, "Orbital Mechanics for Engineering Students", 4th ed.,
        Sec. 2.10 (perifocal frame), Sec. 4.4 (state vector from elements).
    [2] Bate, Mueller & White, "Fundamentals of Astrodynamics", Ch. 7
        (patched conics).
===============================================================================
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Tuple

import numpy as np

from patchedconics.core.constants import (
    TWO_PI,
    PI,
    RECONSTRUCTION_TOLERANCE,
    POINT_SEARCH_MAX_ITERATIONS,
    POINT_SEARCH_TOLERANCE,
    ASYMPTOTE_MARGIN,
    INTERSECTION_SEED_COUNT,
    INTERSECTION_SEED_SPACING,
    INTERSECTION_TOLERANCE,
    INTERSECTION_MAX_ITERATIONS,
    MIN_EXIT_TIME,
)
from patchedconics.core.states import (
    AccelerationState,
    KinematicState,
    KinematicTemporalState,
    TemporalState,
)
from patchedconics.core.vector import ZERO, as_vector, change_basis, inverse_change_basis
from patchedconics.dynamics.conics import ConicSection, make_conic
from patchedconics.dynamics.elements import (
    OrbitalElements,
    elements_from_state,
    patch_degenerate,
)
from patchedconics.dynamics.root_finding import (
    bisect,
    central_difference,
    newton_raphson,
)
from patchedconics.trajectory.base import (
    OrbitalState,
    TimeLike,
    Trajectory,
    TrajectoryKind,
)

logger = logging.getLogger(__name__)


class OrbitalTrajectory(Trajectory):
    """
    Conic trajectory around ``orbiting``.

    Parameters
    ----------
    start : KinematicTemporalState
        Position and velocity offsets relative to the orbited body at
        ``start.time``. Only the offsets are read; the parent frame is
        rebuilt from the body.
    orbiting : GravityCelestial
        The attracting body. Must expose ``mu`` and ``kinematics_at(time)``.
    """

    kind = TrajectoryKind.ORBITAL

    def __init__(self, start: KinematicTemporalState, orbiting) -> None:
        self.orbiting = orbiting
        self.mu = orbiting.mu

        position, velocity, patched = patch_degenerate(start.position, start.velocity)
        if patched:
            logger.warning(
                f"Degenerate start state around {orbiting.name}: "
                f"zero position or velocity replaced by a 1e-10 vector"
            )

        self.elements: OrbitalElements = elements_from_state(self.mu, position, velocity)
        self.conic: ConicSection = make_conic(
            self.mu,
            self.elements.angular_momentum_magnitude,
            self.elements.eccentricity,
            self.elements.true_anomaly,
        )

        given = KinematicTemporalState(
            KinematicState(position, velocity, orbiting.kinematics_at(start.time)),
            start.time,
        )
        super().__init__(given)

        # Keep the given time but take the kinematics from the conic so that
        # the epoch state lies exactly on it
        rebuilt = self.state_at_time(0.0)
        position_error = float(np.linalg.norm(rebuilt.position - position))
        velocity_error = float(np.linalg.norm(rebuilt.velocity - velocity))
        if position_error > RECONSTRUCTION_TOLERANCE or velocity_error > RECONSTRUCTION_TOLERANCE:
            logger.warning(
                f"Start state around {orbiting.name} inconsistent after "
                f"reconstruction: |dr| = {position_error:.3e} m, "
                f"|dv| = {velocity_error:.3e} m/s"
            )
        self._start = OrbitalState(rebuilt.kinematics, start.time, rebuilt.true_anomaly)

    @classmethod
    def from_vectors(cls, position, velocity, time: TemporalState,
                     orbiting) -> OrbitalTrajectory:
        """Build from position/velocity offsets relative to *orbiting*."""
        return cls(
            KinematicTemporalState(
                KinematicState(as_vector(position), as_vector(velocity)), time),
            orbiting,
        )

    # =========================================================================
    # METADATA
    # =========================================================================

    @property
    def start_true_anomaly(self) -> float:
        return self.elements.true_anomaly

    @property
    def eccentricity(self) -> float:
        return self.conic.eccentricity

    @property
    def is_closed(self) -> bool:
        return self.conic.kind.is_closed

    @property
    def is_bound(self) -> bool:
        return self.conic.kind.is_bound

    @property
    def has_apoapsis(self) -> bool:
        return self.is_closed

    @property
    def period(self) -> float:
        """Orbital period (s). Raises ValueError on open orbits."""
        return self.conic.period

    @property
    def semi_major_axis(self) -> float:
        if not self.is_closed:
            raise ValueError(f"{self.conic.kind.name.lower()} orbit has no semi-major axis")
        return self.elements.semi_major_axis

    @property
    def periapsis_radius(self) -> float:
        return self.conic.true_anomaly_to_radius(0.0)

    @property
    def apoapsis_radius(self) -> float:
        if not self.is_closed:
            raise ValueError(f"{self.conic.kind.name.lower()} orbit has no apoapsis")
        return self.conic.true_anomaly_to_radius(PI)

    @property
    def periapsis(self) -> OrbitalState:
        return self.state_at_true_anomaly(0.0)

    @property
    def apoapsis(self) -> OrbitalState:
        if not self.is_closed:
            raise ValueError(f"{self.conic.kind.name.lower()} orbit has no apoapsis")
        return self.state_at_true_anomaly(PI)

    # =========================================================================
    # STATE QUERIES
    # =========================================================================

    def _perifocal_to_frame(self, vector: np.ndarray) -> np.ndarray:
        e = self.elements
        return inverse_change_basis(vector, e.p_hat, e.q_hat, e.w_hat)

    def _frame_to_perifocal(self, vector: np.ndarray) -> np.ndarray:
        e = self.elements
        return change_basis(vector, e.p_hat, e.q_hat, e.w_hat)

    def _position_at(self, true_anomaly: float) -> np.ndarray:
        position, _ = self.conic.true_anomaly_to_perifocal(true_anomaly)
        return self._perifocal_to_frame(position)

    def _state(self, true_anomaly: float, time: float) -> OrbitalState:
        position, velocity = self.conic.true_anomaly_to_perifocal(true_anomaly)
        temporal = self._time_node(time)
        kinematics = KinematicState(
            self._perifocal_to_frame(position),
            self._perifocal_to_frame(velocity),
            self.orbiting.kinematics_at(temporal),
        )
        return OrbitalState(kinematics, temporal, true_anomaly)

    def state_at_time(self, time: TimeLike) -> OrbitalState:
        t = self._as_relative_time(time)
        return self._state(self.conic.time_to_true_anomaly(t), t)

    def state_at_true_anomaly(self, true_anomaly: float) -> OrbitalState:
        return self._state(true_anomaly, self.conic.true_anomaly_to_time(true_anomaly))

    def state_at_point(self, point) -> OrbitalState:
        """
        State on the orbit closest to *point*.

        *point* is a position relative to the orbited body. For closed orbits
        the soonest pass at or after the epoch is returned.
        """
        point = as_vector(point)
        h = self.conic.angular_momentum

        def slope(nu: float) -> float:
            # d/dnu |r - p|^2 with dr/dnu = v r^2 / h
            position, velocity = self.conic.true_anomaly_to_perifocal(nu)
            radius_sq = float(np.dot(position, position))
            offset = self._perifocal_to_frame(position) - point
            return 2.0 * float(np.dot(offset, self._perifocal_to_frame(velocity))) * radius_sq / h

        local = self._frame_to_perifocal(point)
        seed = math.atan2(float(local[1]), float(local[0]))
        bounds = None
        if not self.is_closed:
            lo, hi = self.conic.true_anomaly_range()
            bounds = (lo + ASYMPTOTE_MARGIN, hi - ASYMPTOTE_MARGIN)
            seed = min(max(seed, bounds[0]), bounds[1])

        tolerance = POINT_SEARCH_TOLERANCE * self.conic.semi_latus_rectum ** 2
        nu, converged = newton_raphson(slope, central_difference(slope), seed,
                                       tolerance=tolerance, bounds=bounds,
                                       max_iterations=POINT_SEARCH_MAX_ITERATIONS)
        if not converged:
            logger.debug(f"state_at_point best effort at nu = {nu:.6f}")

        if self.is_closed:
            nu0 = self.start_true_anomaly
            nu = nu0 + (nu - nu0) % TWO_PI
        return self.state_at_true_anomaly(nu)

    def state_at_distance(self, distance: float) -> Optional[OrbitalState]:
        """
        State at *distance* from the orbited body.

        Closed orbits return the soonest crossing more than ``MIN_EXIT_TIME``
        after the epoch. Open orbits return the inbound crossing while the
        start is outside *distance* and falling in, otherwise the outbound
        one, whose time is negative once it has been passed.

        Returns
        -------
        OrbitalState or None
            None when the orbit never reaches *distance*.
        """
        lo = 0.0
        if self.is_closed:
            hi = PI
        else:
            hi = self.conic.true_anomaly_range()[1] - ASYMPTOTE_MARGIN

        anomaly, _ = bisect(lambda nu: self.conic.true_anomaly_to_radius(nu) - distance, lo, hi)
        if not np.isfinite(anomaly):
            return None

        if self.is_closed:
            period = self.period
            best = math.inf
            for candidate in (anomaly, -anomaly):
                t = self.conic.true_anomaly_to_time(candidate) % period
                if t <= MIN_EXIT_TIME:
                    t += period
                best = min(best, t)
            return self.state_at_time(best)

        # Inbound crossing first while still outside and falling in
        radius = float(np.linalg.norm(self._start.position))
        if radius > distance and self.start_true_anomaly < 0.0:
            return self.state_at_true_anomaly(-anomaly)
        return self.state_at_true_anomaly(anomaly)

    # =========================================================================
    # INTERSECTION
    # =========================================================================

    def separation_at(self, true_anomaly: float, other: Trajectory) -> float:
        """Distance (m) to *other* when this trajectory is at *true_anomaly*."""
        t = self.conic.true_anomaly_to_time(true_anomaly)
        mine = self._position_at(true_anomaly)
        time = self._time_node(t)
        theirs = other.state_at_time(time)

        if getattr(other, 'orbiting', None) is self.orbiting:
            return float(np.linalg.norm(mine - theirs.position))

        own = KinematicState(mine, ZERO, self.orbiting.kinematics_at(time))
        own, theirs_k = own.synchronize(theirs.kinematics)
        return float(np.linalg.norm(own.position - theirs_k.position))

    def _intersection_seeds(self) -> np.ndarray:
        nu0 = self.start_true_anomaly
        if self.is_closed:
            return nu0 + np.arange(INTERSECTION_SEED_COUNT) * INTERSECTION_SEED_SPACING
        lo, hi = self.conic.true_anomaly_range()
        return np.linspace(lo, hi, INTERSECTION_SEED_COUNT + 2)[1:-1]

    def orbital_intersection(self, other: Trajectory, distance: float
                             ) -> Optional[Tuple[OrbitalState, KinematicTemporalState]]:
        """
        Earliest future state where *other* closes to *distance*.

        Parameters
        ----------
        other : Trajectory
            Usually the trajectory of a child of the orbited body.
        distance : float
            Target separation (m).

        Returns
        -------
        (own_state, other_state) or None
            States of both trajectories at the root, or None if no seed
            converged onto an approaching crossing.
        """
        def gap(nu: float) -> float:
            return self.separation_at(nu, other) - distance

        gap_rate = central_difference(gap)
        nu0 = self.start_true_anomaly

        bounds = None
        if not self.is_closed:
            lo, hi = self.conic.true_anomaly_range()
            bounds = (lo + ASYMPTOTE_MARGIN, hi - ASYMPTOTE_MARGIN)

        roots = []
        for seed in self._intersection_seeds():
            if bounds is not None:
                seed = min(max(seed, bounds[0]), bounds[1])
            nu, converged = newton_raphson(gap, gap_rate, float(seed),
                                           tolerance=INTERSECTION_TOLERANCE,
                                           bounds=bounds,
                                           max_iterations=INTERSECTION_MAX_ITERATIONS)
            # Closing in, in the future
            if converged and nu >= nu0 and gap_rate(nu) < 0.0:
                roots.append(nu)

        if not roots:
            return None

        mine = self.state_at_true_anomaly(min(roots))
        return mine, other.state_at_time(mine.time)

    def intersection_with(self, other: Trajectory, distance: float
                          ) -> Optional[Tuple[OrbitalState, KinematicTemporalState]]:
        return self.orbital_intersection(other, distance)

    # =========================================================================
    # SAMPLING AND STEPPING
    # =========================================================================

    def sample_times(self, start: float, end: float, count: int) -> np.ndarray:
        """Times spaced evenly in true anomaly between *start* and *end*."""
        if count <= 1:
            return np.linspace(start, end, count)
        nu_start = self.conic.time_to_true_anomaly(start)
        nu_end = self.conic.time_to_true_anomaly(end)
        times = np.array([self.conic.true_anomaly_to_time(nu)
                          for nu in np.linspace(nu_start, nu_end, count)])
        times[0], times[-1] = start, end
        return times

    def at_time(self, delta: float,
                acceleration: Optional[AccelerationState] = None) -> OrbitalTrajectory:
        state = self.state_at_time(delta)
        position, velocity = state.position, state.velocity
        if acceleration is not None:
            position = position + acceleration.position_change(delta)
            velocity = velocity + acceleration.velocity_change(delta)
        return OrbitalTrajectory(
            KinematicTemporalState(
                KinematicState(position, velocity),
                self._start.time.with_increment_time(delta),
            ),
            self.orbiting,
        )

    def __repr__(self) -> str:
        return (f"OrbitalTrajectory(orbiting={self.orbiting.name}, "
                f"kind={self.conic.kind.name}, e={self.eccentricity:.6f})")
