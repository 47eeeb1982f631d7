"""
===============================================================================
PATCHED CONICS - Parallel Sampling Test Suite
===============================================================================
Tests for batched sample evaluation: batch splitting, in-process against
multi-process results, ordering of reassembled batches and argument checks.
===============================================================================
"""

import math

import numpy as np
import pytest
from numpy.testing import assert_allclose

from patchedconics.core.constants import EARTH_MU
from patchedconics.performance.parallel import ParallelSampler, split_batches
from patchedconics.simulation.celestial import PhysicsCelestial

LEO_RADIUS = 7.0e6
LEO_SPEED = math.sqrt(EARTH_MU / LEO_RADIUS)


@pytest.fixture
def craft(universe, earth):
    body = PhysicsCelestial('Parked', [LEO_RADIUS, 0.0, 0.0], [0.0, 0.0, -LEO_SPEED],
                            universe.epoch, universe, orbiting=earth)
    return universe.add_physics_celestial(body)


class TestSplitBatches:

    def test_lengths(self):
        batches = split_batches(np.arange(23.0), 7)
        assert [len(b) for b in batches] == [7, 7, 7, 2]
        assert_allclose(np.concatenate(batches), np.arange(23.0))

    def test_empty(self):
        assert split_batches(np.array([]), 5) == []

    def test_bad_batch_size(self):
        with pytest.raises(ValueError):
            split_batches(np.arange(3.0), 0)


class TestParallelSampler:

    def test_in_process_matches_direct(self, craft):
        sample_range = craft.trajectory.sample_range(0.0, 5400.0, 40)
        samples = ParallelSampler(num_workers=1, batch_size=7).sample(sample_range)
        direct = list(sample_range)
        assert len(samples) == 40
        for got, want in zip(samples, direct):
            assert got.time == want.time
            assert_allclose(got.position, want.position)

    def test_workers_preserve_order(self, craft):
        sample_range = craft.trajectory.sample_range(0.0, 5400.0, 40)
        serial = ParallelSampler(num_workers=1, batch_size=7).sample(sample_range)
        pooled = ParallelSampler(num_workers=2, batch_size=7).sample(sample_range)
        assert [s.time for s in pooled] == [s.time for s in serial]
        for a, b in zip(pooled, serial):
            assert_allclose(a.position, b.position, rtol=1e-12)
            assert_allclose(a.velocity, b.velocity, rtol=1e-12)

    def test_sample_many(self, craft):
        ranges = [craft.trajectory.sample_range(0.0, 100.0, n) for n in (3, 0, 5)]
        results = ParallelSampler(num_workers=1).sample_many(ranges)
        assert [len(r) for r in results] == [3, 0, 5]

    def test_default_batch_size_from_trajectory(self, craft):
        sampler = ParallelSampler(num_workers=1)
        assert sampler._batch_size_for(craft.trajectory) == craft.trajectory.default_batch_size

    def test_bad_batch_size(self):
        with pytest.raises(ValueError):
            ParallelSampler(batch_size=0)
