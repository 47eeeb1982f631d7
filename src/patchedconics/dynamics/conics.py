"""
===============================================================================
PATCHED CONICS - Conic Section Strategies
===============================================================================
Time <-> true-anomaly conversion for the four two-body orbit shapes.

Each strategy is a frozen dataclass holding the shape parameters (mu, |h|,
e) and the time since periapsis at the trajectory epoch. Times passed to and
returned from the public methods are measured from that epoch:

    true_anomaly_to_time(nu)   -- seconds from epoch until the body is at nu
    time_to_true_anomaly(t)    -- true anomaly t seconds after the epoch

For closed orbits the true anomaly is continuous across revolutions: one
revolution later the anomaly is 2*pi larger, not wrapped. This keeps the two
conversions exact inverses over any time span.

Shape selection happens exactly once, in :func:`make_conic`. A trajectory
never changes kind; a different eccentricity means a different trajectory.

References
----------
    [1] Curtis, "Orbital Mechanics for Engineering Students", 4th ed.,
        Ch. 3 (Kepler's equation, Barker's equation, hyperbolic anomaly).
    [2] Vallado, "Fundamentals of Astrodynamics and Applications", 4th ed.,
        Sec. 2.2-2.3.
===============================================================================
"""

import dataclasses
import logging
import math
from dataclasses import dataclass
from enum import Enum, auto
from typing import ClassVar, Dict, Tuple, Type

import numpy as np

from patchedconics.core.constants import (
    PI,
    TWO_PI,
    CIRCULAR_ECCENTRICITY_TOLERANCE,
    PARABOLIC_ECCENTRICITY_TOLERANCE,
    KEPLER_MAX_ITERATIONS,
    HYPERBOLIC_MAX_ITERATIONS,
    NEAR_PARABOLIC_ECCENTRICITY,
    NEWTON_TOLERANCE,
)
from patchedconics.dynamics.root_finding import guard_finite, newton_raphson

logger = logging.getLogger(__name__)


# =============================================================================
# ORBIT KIND
# =============================================================================

class OrbitKind(Enum):
    """Conic shape of a two-body orbit."""
    CIRCULAR = auto()
    ELLIPTICAL = auto()
    PARABOLIC = auto()
    HYPERBOLIC = auto()

    @property
    def is_closed(self) -> bool:
        return self in (OrbitKind.CIRCULAR, OrbitKind.ELLIPTICAL)

    @property
    def is_bound(self) -> bool:
        return self is not OrbitKind.HYPERBOLIC


def classify(eccentricity: float) -> OrbitKind:
    """Select the orbit kind for an eccentricity scalar."""
    if eccentricity < 0.0 or not np.isfinite(eccentricity):
        raise ValueError(f"Invalid eccentricity: {eccentricity}")
    if eccentricity < CIRCULAR_ECCENTRICITY_TOLERANCE:
        return OrbitKind.CIRCULAR
    if abs(eccentricity - 1.0) < PARABOLIC_ECCENTRICITY_TOLERANCE:
        return OrbitKind.PARABOLIC
    if eccentricity < 1.0:
        return OrbitKind.ELLIPTICAL
    return OrbitKind.HYPERBOLIC


def _wrap_pi(angle: float) -> float:
    # Map to [-pi, pi)
    return (angle + PI) % TWO_PI - PI


def _barker_true_anomaly(mean: float) -> float:
    # Closed-form inverse of tan(nu/2)/2 + tan(nu/2)^3/6 = mean, odd in mean
    x = 3.0 * abs(mean)
    z = np.cbrt(x + math.sqrt(1.0 + x * x))
    return math.copysign(2.0 * math.atan(z - 1.0 / z), mean)


# =============================================================================
# BASE STRATEGY
# =============================================================================

@dataclass(frozen=True)
class ConicSection:
    """
    Shape parameters shared by every orbit kind.

    Attributes
    ----------
    mu : float
        Gravitational parameter of the focus body (m^3/s^2).
    angular_momentum : float
        Specific angular momentum magnitude |h| (m^2/s).
    eccentricity : float
        Eccentricity scalar.
    epoch_offset : float
        Time since periapsis at the trajectory epoch (s).
    """
    kind: ClassVar[OrbitKind]

    mu: float
    angular_momentum: float
    eccentricity: float
    epoch_offset: float = 0.0

    # ------------------------------------------------------------------
    # Public conversions (epoch-relative)
    # ------------------------------------------------------------------

    def true_anomaly_to_time(self, true_anomaly: float) -> float:
        t = self.time_since_periapsis(true_anomaly) - self.epoch_offset
        return guard_finite(t, f"{type(self).__name__}.true_anomaly_to_time")

    def time_to_true_anomaly(self, time: float) -> float:
        nu = self.true_anomaly_since_periapsis(time + self.epoch_offset)
        return guard_finite(nu, f"{type(self).__name__}.time_to_true_anomaly")

    def anchored(self, epoch_true_anomaly: float) -> 'ConicSection':
        """Copy of this strategy with the epoch placed at *epoch_true_anomaly*."""
        return dataclasses.replace(
            self, epoch_offset=self.time_since_periapsis(epoch_true_anomaly))

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    @property
    def semi_latus_rectum(self) -> float:
        return self.angular_momentum ** 2 / self.mu

    @property
    def period(self) -> float:
        raise ValueError(f"{self.kind.name.lower()} orbit has no period")

    def true_anomaly_range(self) -> Tuple[float, float]:
        """Open interval of reachable true anomalies, centred on periapsis."""
        return -PI, PI

    def true_anomaly_to_radius(self, true_anomaly: float) -> float:
        """Orbit equation r = (h^2/mu) / (1 + e cos nu)."""
        return self.semi_latus_rectum / (1.0 + self.eccentricity * math.cos(true_anomaly))

    def true_anomaly_to_perifocal(self, true_anomaly: float) -> Tuple[np.ndarray, np.ndarray]:
        """
        Position and velocity in perifocal (p, q, w) coordinates.

        Returns
        -------
        position, velocity : np.ndarray, shape (3,)
        """
        cos_nu = math.cos(true_anomaly)
        sin_nu = math.sin(true_anomaly)
        radius = self.true_anomaly_to_radius(true_anomaly)
        position = np.array([radius * cos_nu, radius * sin_nu, 0.0])
        velocity = (self.mu / self.angular_momentum) * np.array(
            [-sin_nu, self.eccentricity + cos_nu, 0.0])
        return position, velocity

    # ------------------------------------------------------------------
    # Periapsis-relative conversions (per kind)
    # ------------------------------------------------------------------

    def time_since_periapsis(self, true_anomaly: float) -> float:
        raise NotImplementedError

    def true_anomaly_since_periapsis(self, time: float) -> float:
        raise NotImplementedError


# =============================================================================
# CLOSED ORBITS
# =============================================================================

@dataclass(frozen=True)
class Circular(ConicSection):
    """e = 0: mean, eccentric and true anomaly coincide."""
    kind: ClassVar[OrbitKind] = OrbitKind.CIRCULAR

    @property
    def period(self) -> float:
        radius = self.semi_latus_rectum
        return TWO_PI * math.sqrt(radius ** 3 / self.mu)

    def time_since_periapsis(self, true_anomaly: float) -> float:
        return true_anomaly * (self.period / TWO_PI)

    def true_anomaly_since_periapsis(self, time: float) -> float:
        return time * (TWO_PI / self.period)


@dataclass(frozen=True)
class Elliptical(ConicSection):
    """
    0 < e < 1: Kepler's equation M = E - e sin E, solved for E by clamped
    Newton-Raphson.
    """
    kind: ClassVar[OrbitKind] = OrbitKind.ELLIPTICAL

    @property
    def semi_major_axis(self) -> float:
        return self.semi_latus_rectum / (1.0 - self.eccentricity ** 2)

    @property
    def period(self) -> float:
        return TWO_PI * math.sqrt(self.semi_major_axis ** 3 / self.mu)

    def time_since_periapsis(self, true_anomaly: float) -> float:
        mean = self._eccentric_to_mean(self._true_to_eccentric(true_anomaly))
        return mean * (self.period / TWO_PI)

    def true_anomaly_since_periapsis(self, time: float) -> float:
        mean = time * (TWO_PI / self.period)
        return self._eccentric_to_true(self._mean_to_eccentric(mean))

    def _eccentric_to_mean(self, eccentric: float) -> float:
        return eccentric - self.eccentricity * math.sin(eccentric)

    def _mean_to_eccentric(self, mean: float) -> float:
        e = self.eccentricity
        # E - M = e sin E has the sign of sin M, which brackets E within
        # the half-revolution containing M.
        if math.floor(mean / PI) % 2 == 0:
            lo = mean
            hi = min(PI * math.ceil(mean / PI), mean + e)
        else:
            lo = max(PI * math.floor(mean / PI), mean - e)
            hi = mean
        guess = min(max(mean + e * math.sin(mean), lo), hi)

        eccentric, converged = newton_raphson(
            lambda E: E - e * math.sin(E) - mean,
            lambda E: 1.0 - e * math.cos(E),
            guess,
            bounds=(lo, hi),
            max_iterations=KEPLER_MAX_ITERATIONS,
        )
        if not converged:
            logger.debug("Kepler solve best effort: M=%.6f e=%.6f", mean, e)
        return eccentric

    def _true_to_eccentric(self, true_anomaly: float) -> float:
        if (true_anomaly / PI - 1.0) % 2.0 == 0.0:
            return true_anomaly
        root = math.sqrt((1.0 - self.eccentricity) / (1.0 + self.eccentricity))
        branch = TWO_PI * math.ceil((true_anomaly / PI - 1.0) / 2.0)
        return 2.0 * math.atan(root * math.tan(true_anomaly / 2.0)) + branch

    def _eccentric_to_true(self, eccentric: float) -> float:
        if (eccentric / PI - 1.0) % 2.0 == 0.0:
            return eccentric
        root = math.sqrt((1.0 + self.eccentricity) / (1.0 - self.eccentricity))
        branch = TWO_PI * math.ceil((eccentric / PI - 1.0) / 2.0)
        return 2.0 * math.atan(root * math.tan(eccentric / 2.0)) + branch


# =============================================================================
# OPEN ORBITS
# =============================================================================

@dataclass(frozen=True)
class Parabolic(ConicSection):
    """e = 1: Barker's equation, inverted in closed form."""
    kind: ClassVar[OrbitKind] = OrbitKind.PARABOLIC

    def _time_scale(self) -> float:
        return self.angular_momentum ** 3 / self.mu ** 2

    def time_since_periapsis(self, true_anomaly: float) -> float:
        nu = _wrap_pi(true_anomaly)
        if abs(nu) >= PI:
            raise ValueError("Parabolic orbit never reaches true anomaly pi")
        half_tan = math.tan(nu / 2.0)
        mean = half_tan / 2.0 + half_tan ** 3 / 6.0
        return self._time_scale() * mean

    def true_anomaly_since_periapsis(self, time: float) -> float:
        return _barker_true_anomaly(time / self._time_scale())


@dataclass(frozen=True)
class Hyperbolic(ConicSection):
    """
    e > 1: e sinh F - F = M, solved for F by Newton-Raphson.

    Near e = 1 the solve starts from the parabolic (Barker) anomaly and
    accepts a residual relative to M.
    """
    kind: ClassVar[OrbitKind] = OrbitKind.HYPERBOLIC

    @property
    def asymptote_anomaly(self) -> float:
        """True anomaly of the outbound asymptote, acos(-1/e)."""
        return math.acos(-1.0 / self.eccentricity)

    def true_anomaly_range(self) -> Tuple[float, float]:
        limit = self.asymptote_anomaly
        return -limit, limit

    def _mean_rate(self) -> float:
        # dM/dt = mu^2 (e^2 - 1)^(3/2) / h^3
        return (self.mu ** 2 / self.angular_momentum ** 3) * (self.eccentricity ** 2 - 1.0) ** 1.5

    def time_since_periapsis(self, true_anomaly: float) -> float:
        nu = _wrap_pi(true_anomaly)
        if abs(nu) >= self.asymptote_anomaly:
            raise ValueError(
                f"True anomaly {nu:.6f} is beyond the hyperbolic asymptote "
                f"({self.asymptote_anomaly:.6f})"
            )
        e = self.eccentricity
        root = math.sqrt((e - 1.0) / (e + 1.0))
        eccentric = 2.0 * math.atanh(root * math.tan(nu / 2.0))
        mean = e * math.sinh(eccentric) - eccentric
        return mean / self._mean_rate()

    def _seed(self, time: float, mean: float) -> Tuple[float, float]:
        # Initial F and residual tolerance for the Newton solve
        e = self.eccentricity
        if e - 1.0 >= NEAR_PARABOLIC_ECCENTRICITY:
            return math.asinh(mean / e), NEWTON_TOLERANCE
        # Close to e = 1 the orbit follows Barker's equation with the same h
        nu = _barker_true_anomaly(time * self.mu ** 2 / self.angular_momentum ** 3)
        half = math.sqrt((e - 1.0) / (e + 1.0)) * math.tan(nu / 2.0)
        seed = 2.0 * math.atanh(half) if abs(half) < 1.0 else math.asinh(mean / e)
        return seed, NEWTON_TOLERANCE * abs(mean)

    def true_anomaly_since_periapsis(self, time: float) -> float:
        e = self.eccentricity
        mean = time * self._mean_rate()
        seed, tolerance = self._seed(time, mean)
        eccentric, converged = newton_raphson(
            lambda F: e * math.sinh(F) - F - mean,
            lambda F: e * math.cosh(F) - 1.0,
            seed,
            tolerance=tolerance,
            max_iterations=HYPERBOLIC_MAX_ITERATIONS,
        )
        if not converged:
            logger.debug("Hyperbolic Kepler solve best effort: M=%.6f e=%.6f", mean, e)
        root = math.sqrt((e + 1.0) / (e - 1.0))
        return 2.0 * math.atan(root * math.tanh(eccentric / 2.0))


# =============================================================================
# FACTORY
# =============================================================================

_STRATEGIES: Dict[OrbitKind, Type[ConicSection]] = {
    OrbitKind.CIRCULAR: Circular,
    OrbitKind.ELLIPTICAL: Elliptical,
    OrbitKind.PARABOLIC: Parabolic,
    OrbitKind.HYPERBOLIC: Hyperbolic,
}


def make_conic(mu: float, angular_momentum: float, eccentricity: float,
               epoch_true_anomaly: float) -> ConicSection:
    """
    Build the strategy for an orbit and anchor it at the epoch.

    Circular and parabolic orbits snap their eccentricity to exactly 0 and 1
    so that the closed-form relations for those shapes hold.
    """
    kind = classify(eccentricity)
    if kind is OrbitKind.CIRCULAR:
        eccentricity = 0.0
    elif kind is OrbitKind.PARABOLIC:
        eccentricity = 1.0
    strategy = _STRATEGIES[kind](mu, angular_momentum, eccentricity)
    return strategy.anchored(epoch_true_anomaly)
