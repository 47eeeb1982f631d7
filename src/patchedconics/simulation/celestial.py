"""
===============================================================================
PATCHED CONICS - Celestial Bodies
===============================================================================
Gravity bodies (planets, moons) follow a single fixed conic: a linear
trajectory for root bodies and an orbital trajectory for everything that
orbits another body. Physics bodies (craft) follow a composite trajectory
that is patched together as they cross spheres of influence.

Sphere of influence
-------------------
    orbiting body:  r_soi = a * (m / M)^(2/5)     (Laplace)
    root body:      r_soi = m^(7/15)
===============================================================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from patchedconics.core.constants import (
    GRAVITATIONAL_CONSTANT,
    ROOT_SOI_EXPONENT,
    CHILD_SOI_EXPONENT,
)
from patchedconics.core.states import (
    KinematicState,
    KinematicTemporalState,
    TemporalState,
)
from patchedconics.trajectory.base import TimeLike
from patchedconics.trajectory.composite import CompositeTrajectory
from patchedconics.trajectory.linear import LinearTrajectory
from patchedconics.trajectory.orbital import OrbitalTrajectory

logger = logging.getLogger(__name__)


# =============================================================================
# CELESTIAL STATES
# =============================================================================

@dataclass(frozen=True)
class GravityState:
    """Immutable state of a gravity body at one instant."""
    celestial: GravityCelestial = field(repr=False)
    state: KinematicTemporalState = field(compare=False)

    @property
    def name(self) -> str:
        return self.celestial.name

    @property
    def position(self) -> np.ndarray:
        return self.state.absolute_position

    @property
    def velocity(self) -> np.ndarray:
        return self.state.absolute_velocity


@dataclass(frozen=True)
class PhysicsState:
    """Immutable state of a craft at one instant, with the body it orbits."""
    celestial: PhysicsCelestial = field(repr=False)
    state: KinematicTemporalState = field(compare=False)
    orbiting: Optional[GravityCelestial] = field(repr=False)

    @property
    def name(self) -> str:
        return self.celestial.name

    @property
    def position(self) -> np.ndarray:
        return self.state.absolute_position

    @property
    def velocity(self) -> np.ndarray:
        return self.state.absolute_velocity


def _start_state(position, velocity, epoch: TemporalState) -> KinematicTemporalState:
    return KinematicTemporalState(KinematicState(position, velocity), epoch)


# =============================================================================
# GRAVITY CELESTIAL
# =============================================================================

class GravityCelestial:
    """
    A massive body on a fixed conic.

    Parameters
    ----------
    name : str
    position, velocity : array_like, shape (3,)
        Start state (m, m/s), relative to *orbiting* when given.
    epoch : TemporalState
        Time the start state is valid at.
    mass : float
        Mass (kg).
    radius : float
        Physical radius (m).
    color : tuple of float, optional
        RGB display color in [0, 1].
    orbiting : GravityCelestial, optional
        Parent body. Root bodies move in a straight line.
    """

    def __init__(self, name: str, position, velocity, epoch: TemporalState,
                 mass: float, radius: float,
                 color: Optional[Tuple[float, float, float]] = None,
                 orbiting: Optional[GravityCelestial] = None) -> None:
        if mass <= 0.0:
            raise ValueError(f"{name}: mass must be positive, got {mass}")
        if radius < 0.0:
            raise ValueError(f"{name}: radius must be non-negative, got {radius}")

        self.name = name
        self.mass = float(mass)
        self.mu = GRAVITATIONAL_CONSTANT * self.mass
        self.radius = float(radius)
        self.color = tuple(color) if color is not None else None
        self.orbiting = orbiting
        self.children: List[GravityCelestial] = []

        start = _start_state(position, velocity, epoch)
        if orbiting is None:
            self.trajectory = LinearTrajectory(start)
            self.soi_radius = self.mass ** ROOT_SOI_EXPONENT
        else:
            self.trajectory = OrbitalTrajectory(start, orbiting)
            if not self.trajectory.is_closed:
                raise ValueError(
                    f"{name}: a gravity body must be on a closed orbit around {orbiting.name}"
                )
            self.soi_radius = (self.trajectory.semi_major_axis
                               * (self.mass / orbiting.mass) ** CHILD_SOI_EXPONENT)
            orbiting.children.append(self)

        logger.debug(f"{name}: mu = {self.mu:.6e} m^3/s^2, SOI = {self.soi_radius:.6e} m")

    @property
    def is_root(self) -> bool:
        return self.orbiting is None

    def kinematics_at(self, time: TimeLike) -> KinematicState:
        """Kinematic state of this body at *time*."""
        return self.trajectory.state_at_time(time).kinematics

    def state_at(self, time: TimeLike) -> GravityState:
        return GravityState(self, self.trajectory.state_at_time(time))

    def __repr__(self) -> str:
        parent = self.orbiting.name if self.orbiting is not None else None
        return f"GravityCelestial({self.name!r}, orbiting={parent!r})"


# =============================================================================
# PHYSICS CELESTIAL
# =============================================================================

class PhysicsCelestial:
    """
    A massless craft whose path is a composite trajectory.

    Parameters
    ----------
    name : str
    position, velocity : array_like, shape (3,)
        Start state, relative to *orbiting* when given, absolute otherwise.
    epoch : TemporalState
    universe : Universe
    orbiting : GravityCelestial, optional
        Body whose SOI the craft starts in. None starts on a linear leg.
    """

    def __init__(self, name: str, position, velocity, epoch: TemporalState,
                 universe, orbiting: Optional[GravityCelestial] = None) -> None:
        self.name = name
        self.orbiting = orbiting

        if orbiting is None:
            segment = LinearTrajectory(_start_state(position, velocity, epoch))
        else:
            segment = OrbitalTrajectory(_start_state(position, velocity, epoch), orbiting)
        self.trajectory = CompositeTrajectory(segment, universe)

    def state_at(self, time: TimeLike) -> PhysicsState:
        """State at *time*; also records the body orbited at that time."""
        link, t = self.trajectory.segment_at_time(time)
        if link.orbiting is not self.orbiting:
            logger.info(
                f"{self.name}: now orbiting "
                f"{link.orbiting.name if link.orbiting is not None else 'nothing'}"
            )
            self.orbiting = link.orbiting
        return PhysicsState(self, link.segment.state_at_time(t), self.orbiting)

    def __repr__(self) -> str:
        parent = self.orbiting.name if self.orbiting is not None else None
        return f"PhysicsCelestial({self.name!r}, orbiting={parent!r})"
