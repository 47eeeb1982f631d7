"""
===============================================================================
PATCHED CONICS - Trajectory Interface
===============================================================================
Common interface for the two conic segment types and the patched chain.

    TrajectoryKind   -- LINEAR | ORBITAL tag callers dispatch on
    LinearState      -- state on a straight-line segment
    OrbitalState     -- state on a Keplerian segment (adds true anomaly)
    Sample           -- absolute (time, position, velocity) record
    SampleRange      -- lazy, restartable sequence of samples
    Trajectory       -- abstract base

Times accepted by the query methods are either a float, read as seconds
after ``start.time``, or a TemporalState, which is re-expressed relative to
``start.time`` first.
===============================================================================
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import ClassVar, Iterator, Optional, Tuple, Union

import numpy as np

from patchedconics.core.constants import DEFAULT_BATCH_SIZE
from patchedconics.core.states import (
    AccelerationState,
    KinematicState,
    KinematicTemporalState,
    TemporalState,
)

logger = logging.getLogger(__name__)

TimeLike = Union[float, TemporalState]


class TrajectoryKind(Enum):
    LINEAR = auto()
    ORBITAL = auto()


# =============================================================================
# TRAJECTORY STATES
# =============================================================================

class LinearState(KinematicTemporalState):
    """State on a constant-velocity segment."""

    __slots__ = ()
    kind = TrajectoryKind.LINEAR

    def __repr__(self) -> str:
        return f"LinearState(t={self.relative_time:.3f}, r={self.position.tolist()})"


class OrbitalState(KinematicTemporalState):
    """
    State on a Keplerian segment.

    Attributes
    ----------
    true_anomaly : float
        Anomaly of the state (rad), continuous across revolutions.
    """

    __slots__ = ('true_anomaly',)
    kind = TrajectoryKind.ORBITAL

    def __init__(self, kinematics: KinematicState, time: TemporalState,
                 true_anomaly: float) -> None:
        super().__init__(kinematics, time)
        self.true_anomaly = float(true_anomaly)

    def __repr__(self) -> str:
        return (f"OrbitalState(t={self.relative_time:.3f}, "
                f"nu={self.true_anomaly:.6f}, r={self.position.tolist()})")


# =============================================================================
# SAMPLES
# =============================================================================

@dataclass(frozen=True)
class Sample:
    """
    One evaluated point of a trajectory.

    Attributes
    ----------
    time : float
        Seconds after the trajectory start.
    position, velocity : np.ndarray
        Absolute position (m) and velocity (m/s).
    """
    time: float
    position: np.ndarray = field(compare=False)
    velocity: np.ndarray = field(compare=False)


class SampleRange:
    """
    Lazy sequence of ``count`` samples between two times.

    Nothing is evaluated until iteration, and every iteration re-evaluates,
    so the range can be walked any number of times.
    """

    def __init__(self, trajectory: Trajectory, start: float, end: float,
                 count: int) -> None:
        if count < 0:
            raise ValueError(f"Sample count must be non-negative, got {count}")
        self.trajectory = trajectory
        self.start = float(start)
        self.end = float(end)
        self.count = int(count)

    def times(self) -> np.ndarray:
        """Sample times (s after the trajectory start), in order."""
        return self.trajectory.sample_times(self.start, self.end, self.count)

    def __len__(self) -> int:
        return self.count

    def __iter__(self) -> Iterator[Sample]:
        for t in self.times():
            yield self.trajectory.sample_at(float(t))

    def __repr__(self) -> str:
        return (f"SampleRange({type(self.trajectory).__name__}, "
                f"{self.start:.3f} -> {self.end:.3f}, n={self.count})")


# =============================================================================
# TRAJECTORY BASE
# =============================================================================

class Trajectory(ABC):
    """
    Immutable motion model starting from a known state.

    Parameters
    ----------
    start : KinematicTemporalState
        State at the trajectory epoch.
    """

    kind: ClassVar[TrajectoryKind]
    default_batch_size: ClassVar[int] = DEFAULT_BATCH_SIZE

    def __init__(self, start: KinematicTemporalState) -> None:
        self._start = start

    @property
    def start(self) -> KinematicTemporalState:
        return self._start

    def _as_relative_time(self, time: TimeLike) -> float:
        if isinstance(time, TemporalState):
            return time.elapsed_since(self._start.time)
        return float(time)

    def _time_node(self, delta: float) -> TemporalState:
        return self._start.time.child(delta)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @abstractmethod
    def state_at_time(self, time: TimeLike) -> KinematicTemporalState:
        """State *time* after the epoch."""

    @abstractmethod
    def state_at_point(self, point) -> KinematicTemporalState:
        """State closest to *point*, given in the frame of ``start.position``."""

    @abstractmethod
    def state_at_distance(self, distance: float) -> Optional[KinematicTemporalState]:
        """State at *distance* from the frame origin, or None if never reached."""

    @abstractmethod
    def intersection_with(self, other: Trajectory, distance: float
                          ) -> Optional[Tuple[KinematicTemporalState, ...]]:
        """States where the separation from *other* equals *distance*."""

    @abstractmethod
    def at_time(self, delta: float,
                acceleration: Optional[AccelerationState] = None) -> Trajectory:
        """New trajectory starting *delta* seconds later."""

    # ------------------------------------------------------------------
    # Sampling
    # ------------------------------------------------------------------

    def sample_times(self, start: float, end: float, count: int) -> np.ndarray:
        """Evenly spaced sample times; subclasses may space by another parameter."""
        return np.linspace(start, end, count)

    def sample_at(self, time: float) -> Sample:
        state = self.state_at_time(time)
        kinematics = state.kinematics
        return Sample(float(time), kinematics.absolute_position,
                      kinematics.absolute_velocity)

    def sample_range(self, start: TimeLike, end: TimeLike, count: int) -> SampleRange:
        return SampleRange(self, self._as_relative_time(start),
                           self._as_relative_time(end), count)
