"""
===============================================================================
PATCHED CONICS - Temporal and Kinematic States
===============================================================================
Concrete relative-frame nodes:

    TemporalState           -- time offset (s) relative to a parent time
    KinematicState          -- position (m) and velocity (m/s) relative to a
                               parent kinematic state
    KinematicTemporalState  -- a kinematic state paired with the time it is
                               valid at
    AccelerationState       -- constant acceleration applied over a step

Time is kept relative so that sub-second offsets around a moon survive next
to the multi-year absolute clock of its planet without catastrophic
cancellation.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

from patchedconics.core.relative import RelativeNode
from patchedconics.core.vector import as_vector


# =============================================================================
# TEMPORAL STATE
# =============================================================================

class TemporalState(RelativeNode):
    """
    A time offset relative to an optional parent time.

    Parameters
    ----------
    relative_time : float
        Offset in seconds from the parent (or from the global epoch when the
        state has no parent).
    parent : TemporalState, optional
        Time this offset is measured from.
    """

    __slots__ = ('_relative_time',)

    def __init__(self, relative_time: float = 0.0,
                 parent: Optional[TemporalState] = None) -> None:
        super().__init__(parent)
        self._relative_time = float(relative_time)

    @property
    def offset(self) -> float:
        return self._relative_time

    def _zero_offset(self) -> float:
        return 0.0

    def _with_offset(self, offset: float, parent: Optional[RelativeNode]) -> TemporalState:
        return TemporalState(offset, parent)

    @property
    def relative_time(self) -> float:
        return self._relative_time

    @property
    def absolute_time(self) -> float:
        """Sum of the offsets along the chain (s)."""
        return float(self.absolute_offset())

    def with_relative_time(self, relative_time: float) -> TemporalState:
        """Same parent, new offset."""
        return TemporalState(relative_time, self._parent)

    def with_increment_time(self, delta: float) -> TemporalState:
        """Same parent, offset shifted by *delta*."""
        return TemporalState(self._relative_time + delta, self._parent)

    def with_absolute_time(self, absolute_time: float) -> TemporalState:
        """Time at *absolute_time*, expressed under this node's parent."""
        return self.match_relative(TemporalState(absolute_time))

    def child(self, delta: float = 0.0) -> TemporalState:
        """A time *delta* seconds after this one, expressed relative to it."""
        return TemporalState(delta, self)

    def elapsed_since(self, anchor: TemporalState) -> float:
        """Seconds from *anchor* to this time, using trimmed sums."""
        return self.relative_to(anchor).relative_time

    # Ordering goes through the shared frame, so it never compares
    # absolute clocks that share a large common ancestor.
    def _aligned(self, other: TemporalState) -> Tuple[float, float]:
        if not isinstance(other, TemporalState):
            raise ValueError(f"Cannot compare TemporalState with {type(other).__name__}")
        if self.same_relative_tree(other):
            return self._relative_time, other._relative_time
        a, b = self.synchronize(other)
        return a.relative_time, b.relative_time

    def less_than(self, other: TemporalState) -> bool:
        a, b = self._aligned(other)
        return a < b

    def __lt__(self, other: TemporalState) -> bool:
        return self.less_than(other)

    def __le__(self, other: TemporalState) -> bool:
        a, b = self._aligned(other)
        return a <= b

    def __gt__(self, other: TemporalState) -> bool:
        a, b = self._aligned(other)
        return a > b

    def __ge__(self, other: TemporalState) -> bool:
        a, b = self._aligned(other)
        return a >= b

    def __repr__(self) -> str:
        return f"TemporalState({self._relative_time!r}, depth={self.depth})"


# =============================================================================
# KINEMATIC STATE
# =============================================================================

def _frozen_vector(value) -> np.ndarray:
    vec = np.array(as_vector(value), dtype=np.float64)
    vec.setflags(write=False)
    return vec


class KinematicState(RelativeNode):
    """
    Position and velocity relative to an optional parent kinematic state.

    Parameters
    ----------
    position : array_like, shape (3,)
        Position offset (m).
    velocity : array_like, shape (3,)
        Velocity offset (m/s).
    parent : KinematicState, optional
        State of the frame origin (usually the orbited body).
    """

    __slots__ = ('_position', '_velocity')

    def __init__(self, position, velocity,
                 parent: Optional[KinematicState] = None) -> None:
        super().__init__(parent)
        self._position = _frozen_vector(position)
        self._velocity = _frozen_vector(velocity)

    @property
    def offset(self) -> np.ndarray:
        return np.vstack((self._position, self._velocity))

    def _zero_offset(self) -> np.ndarray:
        return np.zeros((2, 3))

    def _with_offset(self, offset: np.ndarray, parent: Optional[RelativeNode]) -> KinematicState:
        return KinematicState(offset[0], offset[1], parent)

    @property
    def position(self) -> np.ndarray:
        return self._position

    @property
    def velocity(self) -> np.ndarray:
        return self._velocity

    @property
    def absolute_position(self) -> np.ndarray:
        return self.absolute_offset()[0]

    @property
    def absolute_velocity(self) -> np.ndarray:
        return self.absolute_offset()[1]

    def with_offset(self, position, velocity) -> KinematicState:
        """Same parent, new position and velocity."""
        return KinematicState(position, velocity, self._parent)

    def step(self, delta: float,
             acceleration: Optional[AccelerationState] = None) -> KinematicState:
        """
        Advance this state by *delta* seconds of straight-line motion,
        optionally under a constant acceleration.
        """
        position = self._position + self._velocity * delta
        velocity = self._velocity
        if acceleration is not None:
            position = position + acceleration.position_change(delta)
            velocity = velocity + acceleration.velocity_change(delta)
        return KinematicState(position, velocity, self._parent)

    def __repr__(self) -> str:
        return (f"KinematicState(position={self._position.tolist()}, "
                f"velocity={self._velocity.tolist()}, depth={self.depth})")


# =============================================================================
# ACCELERATION STATE
# =============================================================================

@dataclass(frozen=True)
class AccelerationState:
    """
    Constant acceleration applied over a trajectory step.

    Attributes
    ----------
    acceleration : np.ndarray
        Acceleration vector (m/s^2).
    """
    acceleration: np.ndarray = field(compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'acceleration', _frozen_vector(self.acceleration))

    def velocity_change(self, delta: float) -> np.ndarray:
        return self.acceleration * delta

    def position_change(self, delta: float) -> np.ndarray:
        return 0.5 * self.acceleration * delta * delta


# =============================================================================
# KINEMATIC-TEMPORAL STATE
# =============================================================================

class KinematicTemporalState:
    """
    A kinematic state together with the time it is valid at.

    All frame operations act on both halves; ``consolidate_kinematic`` and
    ``consolidate_temporal`` act on one half only.
    """

    __slots__ = ('kinematics', 'time')

    def __init__(self, kinematics: KinematicState, time: TemporalState) -> None:
        self.kinematics = kinematics
        self.time = time

    @property
    def position(self) -> np.ndarray:
        return self.kinematics.position

    @property
    def velocity(self) -> np.ndarray:
        return self.kinematics.velocity

    @property
    def relative_time(self) -> float:
        return self.time.relative_time

    @property
    def absolute_position(self) -> np.ndarray:
        return self.kinematics.absolute_position

    @property
    def absolute_velocity(self) -> np.ndarray:
        return self.kinematics.absolute_velocity

    @property
    def absolute_time(self) -> float:
        return self.time.absolute_time

    def absolute(self) -> KinematicTemporalState:
        return KinematicTemporalState(self.kinematics.absolute(), self.time.absolute())

    def consolidate_once(self) -> KinematicTemporalState:
        return KinematicTemporalState(self.kinematics.consolidate_once(),
                                      self.time.consolidate_once())

    def consolidate_kinematic(self) -> KinematicTemporalState:
        return KinematicTemporalState(self.kinematics.consolidate_once(), self.time)

    def consolidate_temporal(self) -> KinematicTemporalState:
        return KinematicTemporalState(self.kinematics, self.time.consolidate_once())

    def synchronize(self, other: KinematicTemporalState
                    ) -> Tuple[KinematicTemporalState, KinematicTemporalState]:
        k_self, k_other = self.kinematics.synchronize(other.kinematics)
        t_self, t_other = self.time.synchronize(other.time)
        return (KinematicTemporalState(k_self, t_self),
                KinematicTemporalState(k_other, t_other))

    def match_relative(self, other: KinematicTemporalState) -> KinematicTemporalState:
        return KinematicTemporalState(self.kinematics.match_relative(other.kinematics),
                                      self.time.match_relative(other.time))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KinematicTemporalState):
            return NotImplemented
        return self.kinematics == other.kinematics and self.time == other.time

    __hash__ = None

    def __repr__(self) -> str:
        return f"KinematicTemporalState({self.kinematics!r}, {self.time!r})"
