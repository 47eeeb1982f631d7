"""
===============================================================================
PATCHED CONICS - Composite Trajectory
===============================================================================
Chain of conic segments patched together at sphere-of-influence boundaries.

Each CompositeTrajectory wraps one segment (linear or orbital) and lazily
finds the transition that ends it:

    orbital segment
        OUT  -- the orbit is open or its apoapsis lies outside the orbited
                body's SOI; the craft leaves at r = soi_radius
        IN   -- the craft closes to (soi_radius - 0.5 m) of a child body
    linear segment
        IN   -- the straight line closes to (soi_radius - 0.5 m) of a root body

The earliest candidate wins. The next segment is built in the frame of the
body the craft is moving into and wrapped in a new CompositeTrajectory, so
the chain extends one link at a time as it is queried.

References
----------
    [1] Bate, Mueller & White, "Fundamentals of Astrodynamics", Sec. 7.4
        (patched-conic approximation).
    [2] Curtis, "Orbital Mechanics for Engineering Students", 4th ed.,
        Sec. 8.5 (sphere of influence).
===============================================================================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, List, Optional, Tuple

import numpy as np

from patchedconics.core.constants import (
    SOI_ENTRY_MARGIN,
    FAR_FIELD_DISTANCE,
    DEFAULT_MAX_SEGMENTS,
)
from patchedconics.core.memo import MemoCell
from patchedconics.core.states import (
    AccelerationState,
    KinematicTemporalState,
    TemporalState,
)
from patchedconics.trajectory.base import TimeLike, Trajectory, TrajectoryKind
from patchedconics.trajectory.linear import LinearTrajectory
from patchedconics.trajectory.orbital import OrbitalTrajectory

logger = logging.getLogger(__name__)


class TransitionDirection(Enum):
    IN = 'in'
    OUT = 'out'


@dataclass(frozen=True)
class Transition:
    """
    End of a segment.

    Attributes
    ----------
    time : TemporalState
        Instant of the SOI crossing, relative to the segment start.
    direction : TransitionDirection
    next_body : GravityCelestial or None
        Body orbited after the crossing; None when leaving a root body.
    segment : CompositeTrajectory
        The chain from the crossing onwards.
    """
    time: TemporalState
    direction: TransitionDirection
    next_body: object
    segment: 'CompositeTrajectory'


@dataclass(frozen=True)
class Duration:
    """Length of a composite chain (s) and whether its final leg never ends."""
    seconds: float
    open_ended: bool


class CompositeTrajectory(Trajectory):
    """
    One segment plus the lazily computed remainder of the chain.

    Parameters
    ----------
    segment : LinearTrajectory or OrbitalTrajectory
        Motion until the next SOI crossing.
    universe : Universe
        Supplies the root gravity bodies for linear-segment searches.
    """

    def __init__(self, segment: Trajectory, universe) -> None:
        super().__init__(segment.start)
        self.segment = segment
        self.universe = universe
        self._transition: MemoCell[Optional[Transition]] = MemoCell()

    @property
    def kind(self) -> TrajectoryKind:
        return self.segment.kind

    @property
    def default_batch_size(self) -> int:
        return self.segment.default_batch_size

    @property
    def orbiting(self):
        """Body orbited on this segment, or None on a linear leg."""
        return getattr(self.segment, 'orbiting', None)

    # =========================================================================
    # TRANSITION SEARCH
    # =========================================================================

    def transition(self) -> Optional[Transition]:
        """The transition ending this segment, or None if it never ends."""
        return self._transition.get(self._find_transition)

    def _find_transition(self) -> Optional[Transition]:
        if self.segment.kind is TrajectoryKind.ORBITAL:
            transition = self._transition_from_orbital()
        else:
            transition = self._transition_from_linear()

        if transition is None:
            logger.debug(f"{self!r}: no further SOI transition")
        else:
            name = transition.next_body.name if transition.next_body is not None else 'deep space'
            logger.info(
                f"SOI transition {transition.direction.value.upper()} -> {name} "
                f"at t+{transition.time.relative_time:.3f} s"
            )
        return transition

    def _transition_from_orbital(self) -> Optional[Transition]:
        trajectory: OrbitalTrajectory = self.segment
        body = trajectory.orbiting
        best: Optional[Tuple[float, TransitionDirection, object, KinematicTemporalState]] = None

        if not trajectory.is_closed or trajectory.apoapsis_radius > body.soi_radius:
            exit_state = trajectory.state_at_distance(body.soi_radius)
            if exit_state is None:
                logger.debug(f"No SOI exit from {body.name} found")
            elif exit_state.relative_time < 0.0:
                logger.warning(
                    f"Discarding SOI exit from {body.name} in the past "
                    f"(t = {exit_state.relative_time:.3f} s)"
                )
            else:
                best = (exit_state.relative_time, TransitionDirection.OUT, body.orbiting, exit_state)

        for child in body.children:
            hit = trajectory.orbital_intersection(child.trajectory,
                                                  child.soi_radius - SOI_ENTRY_MARGIN)
            if hit is None:
                continue
            entry, child_state = hit
            if best is None or entry.relative_time < best[0]:
                start = KinematicTemporalState(
                    entry.kinematics.relative_to(child_state.kinematics), entry.time)
                best = (entry.relative_time, TransitionDirection.IN, child, start)

        if best is None:
            return None

        _, direction, next_body, state = best
        if direction is TransitionDirection.OUT:
            if next_body is None:
                segment = LinearTrajectory(
                    KinematicTemporalState(state.kinematics.absolute(), state.time))
            else:
                segment = OrbitalTrajectory(state.consolidate_kinematic(), next_body)
        else:
            segment = OrbitalTrajectory(state, next_body)

        return Transition(state.time, direction, next_body,
                          CompositeTrajectory(segment, self.universe))

    def _transition_from_linear(self) -> Optional[Transition]:
        trajectory: LinearTrajectory = self.segment
        best: Optional[Tuple[KinematicTemporalState, object]] = None

        for body in self.universe.root_gravity_celestials:
            _, closing = trajectory.relative_motion(body.trajectory)
            # Without relative motion the separation never changes
            if not np.any(closing):
                continue
            hit = trajectory.intersection_with(body.trajectory,
                                               body.soi_radius - SOI_ENTRY_MARGIN)
            if hit is None:
                continue
            entry = hit[0]
            # A past entry means the line is already inside or leaving
            if entry.relative_time < 0.0:
                continue
            if best is None or entry.relative_time < best[0].relative_time:
                best = (entry, body)

        if best is None:
            return None

        entry, body = best
        start = KinematicTemporalState(
            entry.kinematics.relative_to(body.kinematics_at(entry.time)), entry.time)
        segment = OrbitalTrajectory(start, body)
        return Transition(entry.time, TransitionDirection.IN, body,
                          CompositeTrajectory(segment, self.universe))

    # =========================================================================
    # TRANSITION ACCESSORS
    # =========================================================================

    def _require_transition(self, what: str) -> Transition:
        transition = self.transition()
        if transition is None:
            raise RuntimeError(f"CompositeTrajectory.{what}: trajectory has no next segment")
        return transition

    def has_next_segment(self) -> bool:
        return self.transition() is not None

    def next_segment(self) -> CompositeTrajectory:
        return self._require_transition('next_segment').segment

    def transition_time(self) -> TemporalState:
        return self._require_transition('transition_time').time

    def time_to_next_segment(self, time: float = 0.0) -> float:
        """Seconds from *time* (after the segment start) to the transition."""
        return self._require_transition('time_to_next_segment').time.relative_time - time

    def transition_direction(self) -> TransitionDirection:
        return self._require_transition('transition_direction').direction

    def enters_new_soi(self) -> bool:
        return self._require_transition('enters_new_soi').next_body is not None

    def next_body(self):
        transition = self._require_transition('next_body')
        if transition.next_body is None:
            raise RuntimeError("CompositeTrajectory.next_body: leaving a root body into deep space")
        return transition.next_body

    def segments(self, max_segments: Optional[int] = None) -> Iterator[CompositeTrajectory]:
        """Yield this link and every following one, up to *max_segments*."""
        link = self
        count = 0
        while True:
            yield link
            count += 1
            if max_segments is not None and count >= max_segments:
                return
            if not link.has_next_segment():
                return
            link = link.next_segment()

    def segment_at_time(self, time: TimeLike) -> Tuple[CompositeTrajectory, float]:
        """Link valid at *time* and the time relative to that link's start."""
        t = self._as_relative_time(time)
        link = self
        while link.has_next_segment() and link.time_to_next_segment(t) <= 0.0:
            t -= link.transition_time().relative_time
            link = link.next_segment()
        return link, t

    def orbiting_at(self, time: TimeLike):
        link, _ = self.segment_at_time(time)
        return link.orbiting

    # =========================================================================
    # STATE QUERIES
    # =========================================================================

    def state_at_time(self, time: TimeLike) -> KinematicTemporalState:
        link, t = self.segment_at_time(time)
        return link.segment.state_at_time(t)

    def state_at_point(self, point) -> KinematicTemporalState:
        return self.segment.state_at_point(point)

    def state_at_distance(self, distance: float) -> Optional[KinematicTemporalState]:
        return self.segment.state_at_distance(distance)

    def intersection_with(self, other: Trajectory, distance: float):
        if isinstance(other, CompositeTrajectory):
            other = other.segment
        return self.segment.intersection_with(other, distance)

    def at_time(self, delta: float,
                acceleration: Optional[AccelerationState] = None) -> CompositeTrajectory:
        link, t = self.segment_at_time(delta)
        return CompositeTrajectory(link.segment.at_time(t, acceleration), self.universe)

    # =========================================================================
    # DURATION AND TIME RANGES
    # =========================================================================

    def duration(self, max_segments: int = DEFAULT_MAX_SEGMENTS) -> Duration:
        """
        Total time covered by the chain.

        A closed final orbit contributes one period. The result is flagged
        open-ended when the final leg never ends or the walk is cut off
        after *max_segments* links.
        """
        seconds = 0.0
        link = self
        for _ in range(max_segments - 1):
            if not link.has_next_segment():
                break
            seconds += link.time_to_next_segment()
            link = link.next_segment()
        else:
            if link.has_next_segment():
                logger.warning(f"duration(): chain longer than {max_segments} segments, truncated")
                return Duration(seconds + link.time_to_next_segment(), True)

        final = link.segment
        if final.kind is TrajectoryKind.ORBITAL and final.is_closed:
            return Duration(seconds + final.period, False)
        return Duration(seconds, True)

    def _final_leg_end(self) -> float:
        final = self.segment
        if final.kind is TrajectoryKind.ORBITAL and final.is_closed:
            return final.period
        if final.kind is TrajectoryKind.LINEAR and final.speed == 0.0:
            return 0.0
        far = final.state_at_distance(FAR_FIELD_DISTANCE)
        if far is None:
            return 0.0
        return max(far.relative_time, 0.0)

    def time_ranges_base(self, max_segments: int = DEFAULT_MAX_SEGMENTS
                         ) -> List[Tuple[CompositeTrajectory, float, float]]:
        """
        Validity window of every link, in seconds after this link's start.

        The final link covers one period when it is a closed orbit, and runs
        out to ``FAR_FIELD_DISTANCE`` otherwise.
        """
        ranges = []
        offset = 0.0
        for link in self.segments(max_segments):
            if link.has_next_segment():
                end = offset + link.time_to_next_segment()
            else:
                end = offset + link._final_leg_end()
            ranges.append((link, offset, end))
            offset = end
        return ranges

    def _windows(self, start: Optional[TimeLike], end: Optional[TimeLike],
                 max_segments: int) -> List[Tuple[CompositeTrajectory, float, float, float]]:
        # (link, link start, clamped lo, clamped hi); the final link is
        # stretched to cover a request that runs past its nominal end
        base = self.time_ranges_base(max_segments)
        lower = base[0][1] if start is None else self._as_relative_time(start)
        upper = base[-1][2] if end is None else self._as_relative_time(end)

        windows = []
        for index, (link, lo, hi) in enumerate(base):
            if index == len(base) - 1:
                hi = max(hi, upper)
            if lower < hi and lo < upper:
                windows.append((link, lo, max(lo, lower), min(hi, upper)))
        return windows

    def time_ranges(self, start: Optional[TimeLike] = None, end: Optional[TimeLike] = None,
                    max_segments: int = DEFAULT_MAX_SEGMENTS
                    ) -> List[Tuple[CompositeTrajectory, float, float]]:
        """Windows of :meth:`time_ranges_base` clamped to [start, end]."""
        return [(link, lo, hi) for link, _, lo, hi in self._windows(start, end, max_segments)]

    def sample_times(self, start: float, end: float, count: int) -> np.ndarray:
        """
        Split *count* samples across the links covering [start, end] in
        proportion to each link's share of the window.
        """
        if count <= 0:
            return np.empty(0)
        windows = self._windows(start, end, DEFAULT_MAX_SEGMENTS)
        spans = np.array([hi - lo for _, _, lo, hi in windows], dtype=float)
        if not windows or spans.sum() <= 0.0:
            return np.full(count, float(start)) if start == end else np.linspace(start, end, count)

        shares = spans / spans.sum() * count
        counts = np.floor(shares).astype(int)
        for index in np.argsort(counts - shares)[:count - counts.sum()]:
            counts[index] += 1

        times = [link.segment.sample_times(lo - offset, hi - offset, n) + offset
                 for (link, offset, lo, hi), n in zip(windows, counts) if n > 0]
        return np.concatenate(times)

    def __repr__(self) -> str:
        return f"CompositeTrajectory({self.segment!r})"
