"""
Shared fixtures: a universe holding a bare Earth, and the default
Earth-Moon scenario loaded from the packaged YAML file.
"""

import numpy as np
import pytest

from patchedconics.core.constants import EARTH_MASS, EARTH_RADIUS
from patchedconics.core.states import TemporalState
from patchedconics.simulation.celestial import GravityCelestial
from patchedconics.simulation.scenario import build_universe, load_config
from patchedconics.simulation.universe import Universe


@pytest.fixture
def epoch():
    return TemporalState(0.0)


@pytest.fixture
def universe():
    """Universe holding a stationary Earth at the origin."""
    u = Universe()
    u.add_gravity_celestial(GravityCelestial(
        'Earth', np.zeros(3), np.zeros(3), u.epoch,
        mass=EARTH_MASS, radius=EARTH_RADIUS,
    ))
    yield u
    u.close()


@pytest.fixture
def earth(universe):
    return universe.gravity_celestial('Earth')


@pytest.fixture
def scenario_config():
    return load_config()


@pytest.fixture
def scenario(scenario_config):
    """Default Earth-Moon-Satellite universe."""
    u = build_universe(scenario_config)
    yield u
    u.close()
