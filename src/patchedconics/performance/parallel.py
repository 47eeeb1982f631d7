"""
===============================================================================
PATCHED CONICS - Batched and Parallel Sampling
===============================================================================
Evaluates a SampleRange in fixed-size batches, optionally spread over a
``multiprocessing.Pool``.

Each batch is an independent list of sample times, so the work is
embarrassingly parallel: a worker receives a pickled copy of the trajectory
and its slice of times, and returns the evaluated samples tagged with the
batch index. Results arrive in any order and are reassembled by index.

Composite trajectories find their SOI transitions lazily. Sample times are
computed in the parent process before dispatch, which fills the transition
cache, so workers receive the already-patched chain.
===============================================================================
"""

from __future__ import annotations

import logging
import os
from multiprocessing import Pool
from typing import List, Optional, Sequence, Tuple

import numpy as np

from patchedconics.trajectory.base import Sample, SampleRange, Trajectory

logger = logging.getLogger(__name__)


def _sample_batch(args: Tuple[int, Trajectory, np.ndarray]) -> Tuple[int, List[Sample]]:
    """
    Top-level function for pickling by multiprocessing.Pool.
    Unpacks (batch index, trajectory, times) and evaluates every time.
    """
    index, trajectory, times = args
    return index, [trajectory.sample_at(float(t)) for t in times]


def split_batches(times: np.ndarray, batch_size: int) -> List[np.ndarray]:
    """Split *times* into consecutive slices of at most *batch_size*."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")
    return [times[i:i + batch_size] for i in range(0, len(times), batch_size)]


class ParallelSampler:
    """
    Batched evaluation of trajectory sample ranges.

    Parameters
    ----------
    num_workers : int or None
        Worker processes. Defaults to ``os.cpu_count()``. One worker runs
        every batch in-process.
    batch_size : int or None
        Samples per batch. Defaults to the trajectory's own batch size
        (500, or 1000 for linear trajectories).
    """

    def __init__(self, num_workers: Optional[int] = None,
                 batch_size: Optional[int] = None) -> None:
        self.num_workers = num_workers or os.cpu_count() or 4
        if batch_size is not None and batch_size < 1:
            raise ValueError(f"batch_size must be at least 1, got {batch_size}")
        self.batch_size = batch_size

    def _batch_size_for(self, trajectory: Trajectory) -> int:
        return self.batch_size or trajectory.default_batch_size

    def sample(self, sample_range: SampleRange) -> List[Sample]:
        """
        Evaluate every sample of *sample_range*.

        Returns
        -------
        list of Sample, in time order.
        """
        trajectory = sample_range.trajectory
        times = sample_range.times()
        batches = split_batches(times, self._batch_size_for(trajectory))

        if self.num_workers == 1 or len(batches) <= 1:
            logger.debug(f"Sampling {len(times)} points in-process ({len(batches)} batches)")
            results = [_sample_batch((i, trajectory, batch)) for i, batch in enumerate(batches)]
        else:
            logger.info(
                f"Sampling {len(times)} points in {len(batches)} batches "
                f"on {self.num_workers} workers"
            )
            tasks = [(i, trajectory, batch) for i, batch in enumerate(batches)]
            with Pool(processes=self.num_workers) as pool:
                results = list(pool.imap_unordered(_sample_batch, tasks))

        results.sort(key=lambda item: item[0])
        return [sample for _, batch in results for sample in batch]

    def sample_many(self, ranges: Sequence[SampleRange]) -> List[List[Sample]]:
        return [self.sample(r) for r in ranges]
