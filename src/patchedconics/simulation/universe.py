"""
===============================================================================
PATCHED CONICS - Universe
===============================================================================
Context object owning the global clock and every body in a simulation.
Anything that needs the list of root bodies (linear-leg SOI searches) is
handed the Universe explicitly; there is no module-level registry.
===============================================================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from patchedconics.core.states import TemporalState
from patchedconics.simulation.celestial import (
    GravityCelestial,
    GravityState,
    PhysicsCelestial,
    PhysicsState,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UniverseState:
    """Snapshot of every body at one global time."""
    time: TemporalState
    gravity: Tuple[GravityState, ...]
    physics: Tuple[PhysicsState, ...]

    @property
    def elapsed(self) -> float:
        """Seconds since the universe epoch."""
        return self.time.relative_time

    def positions(self) -> Dict[str, np.ndarray]:
        """Absolute position of every body, keyed by name."""
        result = {state.name: state.position for state in self.gravity}
        result.update({state.name: state.position for state in self.physics})
        return result


class Universe:
    """
    Registry of bodies plus the global clock.

    Parameters
    ----------
    epoch : TemporalState, optional
        Root time every body's start state is valid at. Defaults to t = 0.
    """

    def __init__(self, epoch: Optional[TemporalState] = None) -> None:
        self.epoch = epoch if epoch is not None else TemporalState(0.0)
        self.global_time = self.epoch.child(0.0)
        self.root_gravity_celestials: List[GravityCelestial] = []
        self.gravity_celestials: List[GravityCelestial] = []
        self.physics_celestials: List[PhysicsCelestial] = []
        self._closed = False

    def _check_open(self) -> None:
        if self._closed:
            raise RuntimeError("Universe has been closed")

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def add_gravity_celestial(self, body: GravityCelestial) -> GravityCelestial:
        self._check_open()
        if any(existing.name == body.name for existing in self.gravity_celestials):
            raise ValueError(f"Gravity body {body.name!r} already registered")
        self.gravity_celestials.append(body)
        if body.is_root:
            self.root_gravity_celestials.append(body)
        logger.info(f"Added gravity body {body.name} (SOI {body.soi_radius:.4e} m)")
        return body

    def add_physics_celestial(self, craft: PhysicsCelestial) -> PhysicsCelestial:
        self._check_open()
        self.physics_celestials.append(craft)
        logger.info(f"Added craft {craft.name}")
        return craft

    def gravity_celestial(self, name: str) -> GravityCelestial:
        """
        Raises
        ------
        KeyError
            If no gravity body has this name.
        """
        for body in self.gravity_celestials:
            if body.name == name:
                return body
        raise KeyError(name)

    # =========================================================================
    # CLOCK
    # =========================================================================

    @property
    def elapsed(self) -> float:
        return self.global_time.relative_time

    def advance(self, dt: float) -> TemporalState:
        """Move the global clock by *dt* seconds and refresh craft SOIs."""
        self._check_open()
        self.global_time = self.global_time.with_increment_time(dt)
        for craft in self.physics_celestials:
            craft.state_at(self.global_time)
        return self.global_time

    def snapshot(self) -> UniverseState:
        self._check_open()
        time = self.global_time
        return UniverseState(
            time,
            tuple(body.state_at(time) for body in self.gravity_celestials),
            tuple(craft.state_at(time) for craft in self.physics_celestials),
        )

    # =========================================================================
    # TEARDOWN
    # =========================================================================

    def close(self) -> None:
        if self._closed:
            return
        self.physics_celestials.clear()
        self.gravity_celestials.clear()
        self.root_gravity_celestials.clear()
        self._closed = True
        logger.debug("Universe closed")

    def __enter__(self) -> Universe:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return (f"Universe(t={self.elapsed:.3f} s, "
                f"bodies={len(self.gravity_celestials)}, "
                f"craft={len(self.physics_celestials)})")
