"""
===============================================================================
PATCHED CONICS - Classical Orbital Elements
===============================================================================
Derivation of the classical elements and the perifocal basis from a
position/velocity pair relative to the focus body.

    h  = r x v                         specific angular momentum
    e  = (v x h) / mu - r / |r|        eccentricity vector (points to periapsis)
    i  = acos(h_y / |h|)               inclination from the +Y reference pole
    n  = Y x h                         node line

The perifocal basis is p = e_hat, w = h_hat, q = w x p. Circular orbits have
no periapsis direction, so p is taken along the node line (or along +X
projected into the plane when the orbit lies in the reference plane) and the
"true anomaly" becomes the argument of latitude.

References
----------
    [1] Curtis, "Orbital Mechanics for Engineering Students", 4th ed.,
        Algorithm 4.2.
    [2] Vallado, "Fundamentals of Astrodynamics and Applications", 4th ed.,
        Algorithm 9 (RV2COE).
===============================================================================
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from patchedconics.core.constants import (
    TWO_PI,
    PI,
    DEGENERATE_POSITION,
    DEGENERATE_VELOCITY,
)
from patchedconics.core.vector import X_AXIS, Y_AXIS, as_vector, unit
from patchedconics.dynamics.conics import OrbitKind, classify

logger = logging.getLogger(__name__)

# Node line shorter than this fraction of |h| counts as equatorial
_EQUATORIAL_TOLERANCE = 1e-12


@dataclass(frozen=True)
class OrbitalElements:
    """
    Classical elements plus the perifocal basis for one state vector.

    Attributes
    ----------
    angular_momentum : np.ndarray
        Specific angular momentum vector h (m^2/s).
    eccentricity_vector : np.ndarray
        Eccentricity vector e, pointing to periapsis.
    eccentricity : float
        |e|.
    inclination, right_ascension, argument_of_periapsis : float
        Orientation angles (rad).
    true_anomaly : float
        Anomaly at the given state (rad). In [0, 2*pi) for closed orbits and
        in (-pi, pi] for open ones.
    semi_major_axis : float
        |a| (m); inf for a parabola.
    semi_minor_axis : float
        |b| (m); inf for a parabola.
    period : float or None
        Orbital period (s), None for open orbits.
    specific_energy : float
        v^2/2 - mu/r (J/kg).
    kind : OrbitKind
    p_hat, q_hat, w_hat : np.ndarray
        Perifocal basis vectors expressed in the parent frame.
    """
    angular_momentum: np.ndarray = field(compare=False)
    eccentricity_vector: np.ndarray = field(compare=False)
    eccentricity: float
    inclination: float
    right_ascension: float
    argument_of_periapsis: float
    true_anomaly: float
    semi_major_axis: float
    semi_minor_axis: float
    period: Optional[float]
    specific_energy: float
    kind: OrbitKind
    p_hat: np.ndarray = field(compare=False)
    q_hat: np.ndarray = field(compare=False)
    w_hat: np.ndarray = field(compare=False)

    @property
    def is_closed(self) -> bool:
        return self.kind.is_closed

    @property
    def is_bound(self) -> bool:
        return self.kind.is_bound

    @property
    def angular_momentum_magnitude(self) -> float:
        return float(np.linalg.norm(self.angular_momentum))


def patch_degenerate(position, velocity) -> Tuple[np.ndarray, np.ndarray, bool]:
    """
    Replace zero-magnitude position or velocity with a tiny non-zero vector.

    Returns
    -------
    position, velocity : np.ndarray
    patched : bool
        True if either vector was substituted.
    """
    position = as_vector(position)
    velocity = as_vector(velocity)
    patched = False
    if not np.any(position):
        position = DEGENERATE_POSITION.copy()
        patched = True
    if not np.any(velocity):
        velocity = DEGENERATE_VELOCITY.copy()
        patched = True
    return position, velocity, patched


def _clipped_acos(value: float) -> float:
    return math.acos(min(1.0, max(-1.0, value)))


def elements_from_state(mu: float, position, velocity) -> OrbitalElements:
    """
    Derive orbital elements from a state vector.

    Parameters
    ----------
    mu : float
        Gravitational parameter of the focus (m^3/s^2).
    position, velocity : array_like, shape (3,)
        State relative to the focus (m, m/s). Must be non-zero.

    Returns
    -------
    OrbitalElements

    Raises
    ------
    ValueError
        If mu is not positive or the motion is rectilinear (|h| = 0).
    """
    if mu <= 0.0:
        raise ValueError(f"Gravitational parameter must be positive, got {mu}")

    r = as_vector(position)
    v = as_vector(velocity)
    r_mag = float(np.linalg.norm(r))
    v_mag = float(np.linalg.norm(v))
    r_hat = r / r_mag
    radial_velocity = float(np.dot(v, r_hat))

    h = np.cross(r, v)
    h_mag = float(np.linalg.norm(h))
    if h_mag == 0.0:
        raise ValueError("Rectilinear motion (r parallel to v) has no orbital plane")
    w_hat = h / h_mag

    inclination = _clipped_acos(h[1] / h_mag)

    # Node line and right ascension, measured in the X-Z plane
    n = np.cross(Y_AXIS, h)
    n_mag = float(np.linalg.norm(n))
    equatorial = n_mag <= _EQUATORIAL_TOLERANCE * h_mag
    if equatorial:
        right_ascension = 0.0
    else:
        right_ascension = _clipped_acos(n[0] / n_mag)
        if n[2] > 0.0:
            right_ascension = TWO_PI - right_ascension

    e_vec = np.cross(v, h) / mu - r_hat
    e_mag = float(np.linalg.norm(e_vec))
    kind = classify(e_mag)
    slr = h_mag ** 2 / mu

    # Perifocal basis
    if kind is OrbitKind.CIRCULAR:
        if equatorial:
            p_hat = unit(X_AXIS - np.dot(X_AXIS, w_hat) * w_hat)
        else:
            p_hat = n / n_mag
    else:
        p_hat = e_vec / e_mag
    q_hat = np.cross(w_hat, p_hat)

    # Argument of periapsis
    if kind is OrbitKind.CIRCULAR:
        argument_of_periapsis = 0.0
    elif equatorial:
        argument_of_periapsis = math.atan2(
            float(np.dot(p_hat, np.cross(w_hat, X_AXIS))), float(np.dot(p_hat, X_AXIS))
        ) % TWO_PI
    else:
        argument_of_periapsis = _clipped_acos(np.dot(n, e_vec) / (n_mag * e_mag))
        if e_vec[1] < 0.0:
            argument_of_periapsis = TWO_PI - argument_of_periapsis

    # True anomaly
    if kind is OrbitKind.CIRCULAR:
        true_anomaly = math.atan2(float(np.dot(r_hat, q_hat)),
                                  float(np.dot(r_hat, p_hat))) % TWO_PI
    elif radial_velocity > 0.0:
        true_anomaly = _clipped_acos(np.dot(r_hat, p_hat))
    elif radial_velocity < 0.0:
        true_anomaly = TWO_PI - _clipped_acos(np.dot(r_hat, p_hat))
    else:
        # At an apsis: inside the semi-latus rectum means periapsis; open
        # orbits have no other apsis
        true_anomaly = 0.0 if r_mag < slr or not kind.is_closed else PI

    if not kind.is_closed and true_anomaly > PI:
        true_anomaly -= TWO_PI

    # Size and period
    if kind is OrbitKind.PARABOLIC:
        semi_major_axis = semi_minor_axis = math.inf
    else:
        ecc = 0.0 if kind is OrbitKind.CIRCULAR else e_mag
        shape = abs(1.0 - ecc ** 2)
        semi_major_axis = slr / shape
        semi_minor_axis = semi_major_axis * math.sqrt(shape)

    period = None
    if kind.is_closed:
        period = TWO_PI * math.sqrt(semi_major_axis ** 3 / mu)

    return OrbitalElements(
        angular_momentum=h,
        eccentricity_vector=e_vec,
        eccentricity=e_mag,
        inclination=inclination,
        right_ascension=right_ascension,
        argument_of_periapsis=argument_of_periapsis,
        true_anomaly=true_anomaly,
        semi_major_axis=semi_major_axis,
        semi_minor_axis=semi_minor_axis,
        period=period,
        specific_energy=0.5 * v_mag ** 2 - mu / r_mag,
        kind=kind,
        p_hat=p_hat,
        q_hat=q_hat,
        w_hat=w_hat,
    )


def specific_energy(mu: float, position, velocity) -> float:
    """Specific orbital energy v^2/2 - mu/r (J/kg)."""
    r = float(np.linalg.norm(position))
    v = float(np.linalg.norm(velocity))
    return 0.5 * v * v - mu / r
