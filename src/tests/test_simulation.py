"""
===============================================================================
PATCHED CONICS - Simulation Test Suite
===============================================================================
Tests for the scenario layer: YAML loading and validation, the default
Earth-Moon universe (lunar period, eccentricity and SOI size), the Universe
registry and clock, gravity and physics bodies, and tabular export.

Constants are drawn from the project's core.constants module.
===============================================================================
"""

import numpy as np
import pytest
import yaml

from patchedconics.core.constants import (
    CHILD_SOI_EXPONENT,
    DEFAULT_BATCH_SIZE,
    EARTH_MASS,
    EARTH_MU,
    EARTH_RADIUS,
    MOON_ECCENTRICITY,
    MOON_MASS,
    MOON_ORBITAL_PERIOD,
    MOON_RADIUS,
)
from patchedconics.core.states import TemporalState
from patchedconics.simulation.celestial import GravityCelestial
from patchedconics.simulation.export import SAMPLE_COLUMNS, samples_to_frame, snapshot_to_frame
from patchedconics.simulation.scenario import (
    RunSettings,
    build_universe,
    load_config,
    run_settings,
)
from patchedconics.simulation.universe import Universe


def write_yaml(tmp_path, data, name='scenario.yaml'):
    path = tmp_path / name
    path.write_text(yaml.safe_dump(data))
    return str(path)


def minimal_config():
    return {
        'scenario': {'name': 'test', 'epoch': 0.0},
        'bodies': [{
            'name': 'Earth', 'mass': EARTH_MASS, 'radius': EARTH_RADIUS,
            'position': [0.0, 0.0, 0.0], 'velocity': [0.0, 0.0, 0.0],
        }],
    }


# =============================================================================
# Scenario loading
# =============================================================================

class TestScenario:

    def test_default_config_loads(self, scenario_config):
        assert scenario_config['scenario']['name']
        assert [b['name'] for b in scenario_config['bodies']] == ['Earth', 'Moon']

    def test_default_universe(self, scenario):
        assert len(scenario.gravity_celestials) == 2
        assert len(scenario.physics_celestials) == 1
        earth = scenario.gravity_celestial('Earth')
        moon = scenario.gravity_celestial('Moon')
        assert moon.orbiting is earth
        assert earth.children == [moon]
        assert scenario.root_gravity_celestials == [earth]

    def test_moon_orbit(self, scenario):
        moon = scenario.gravity_celestial('Moon')
        assert moon.trajectory.is_closed
        assert moon.trajectory.period == pytest.approx(MOON_ORBITAL_PERIOD, rel=0.015)
        assert moon.trajectory.eccentricity == pytest.approx(MOON_ECCENTRICITY, abs=0.005)

    def test_moon_period_from_vis_viva(self, scenario, scenario_config):
        entry = next(b for b in scenario_config['bodies'] if b['name'] == 'Moon')
        r = np.linalg.norm(entry['position'])
        v = np.linalg.norm(entry['velocity'])
        a = 1.0 / (2.0 / r - v * v / EARTH_MU)
        expected = 2.0 * np.pi * np.sqrt(a ** 3 / EARTH_MU)
        moon = scenario.gravity_celestial('Moon')
        assert moon.trajectory.semi_major_axis == pytest.approx(a, rel=1e-9)
        assert moon.trajectory.period == pytest.approx(expected, rel=1e-9)

    def test_moon_soi(self, scenario):
        moon = scenario.gravity_celestial('Moon')
        expected = moon.trajectory.semi_major_axis * (MOON_MASS / EARTH_MASS) ** CHILD_SOI_EXPONENT
        assert moon.soi_radius == pytest.approx(expected)
        assert 5.0e7 < moon.soi_radius < 8.0e7

    def test_bodies_in_any_order(self, tmp_path):
        config = load_config(write_yaml(tmp_path, minimal_config()))
        config['bodies'].insert(0, {
            'name': 'Moon', 'orbiting': 'Earth', 'mass': MOON_MASS, 'radius': MOON_RADIUS,
            'position': [3.844e8, 0.0, 0.0], 'velocity': [0.0, 0.0, -1022.0],
        })
        with build_universe(config) as universe:
            assert universe.gravity_celestial('Moon').orbiting is universe.gravity_celestial('Earth')

    def test_unknown_parent(self, tmp_path):
        config = minimal_config()
        config['bodies'].append({
            'name': 'Moon', 'orbiting': 'Mars', 'mass': MOON_MASS, 'radius': MOON_RADIUS,
            'position': [3.844e8, 0.0, 0.0], 'velocity': [0.0, 0.0, -1022.0],
        })
        with pytest.raises(ValueError, match="Unknown parent"):
            build_universe(load_config(write_yaml(tmp_path, config)))

    def test_missing_field(self, tmp_path):
        config = minimal_config()
        del config['bodies'][0]['mass']
        with pytest.raises(ValueError, match="missing field 'mass'"):
            build_universe(load_config(write_yaml(tmp_path, config)))

    def test_bad_vector(self):
        config = minimal_config()
        config['bodies'][0]['position'] = [0.0, 0.0]
        with pytest.raises(ValueError, match="Earth.position"):
            build_universe(config)

    def test_no_bodies(self):
        with pytest.raises(ValueError):
            build_universe({'scenario': {'name': 'empty'}})

    def test_top_level_list_rejected(self, tmp_path):
        with pytest.raises(ValueError):
            load_config(write_yaml(tmp_path, [1, 2, 3]))

    def test_run_settings_defaults(self):
        settings = run_settings(minimal_config())
        assert settings == RunSettings()
        assert settings.batch_size == DEFAULT_BATCH_SIZE

    def test_run_settings_from_config(self, scenario_config):
        settings = run_settings(scenario_config)
        assert settings.sample_count == 2000
        assert settings.batch_size == 500
        assert settings.log_level == 'INFO'

    @pytest.mark.parametrize("section, values", [
        ('sampling', {'workers': 0}),
        ('sampling', {'batch_size': 0}),
        ('sampling', {'count': -1}),
        ('composite', {'max_segments': 0}),
    ])
    def test_invalid_run_settings(self, section, values):
        config = minimal_config()
        config[section] = values
        with pytest.raises(ValueError):
            run_settings(config)


# =============================================================================
# Universe
# =============================================================================

class TestUniverse:

    def test_duplicate_name(self, universe, epoch):
        with pytest.raises(ValueError):
            universe.add_gravity_celestial(GravityCelestial(
                'Earth', [0.0, 0.0, 0.0], [0.0, 0.0, 0.0], epoch,
                mass=EARTH_MASS, radius=EARTH_RADIUS))

    def test_unknown_body(self, universe):
        with pytest.raises(KeyError):
            universe.gravity_celestial('Jupiter')

    def test_advance(self, universe):
        assert universe.elapsed == 0.0
        universe.advance(30.0)
        universe.advance(12.5)
        assert universe.elapsed == pytest.approx(42.5)

    def test_snapshot(self, scenario):
        scenario.advance(3600.0)
        snap = scenario.snapshot()
        assert snap.elapsed == pytest.approx(3600.0)
        positions = snap.positions()
        assert set(positions) == {'Earth', 'Moon', 'Satellite'}
        moon = scenario.gravity_celestial('Moon')
        np.testing.assert_allclose(positions['Moon'],
                                   moon.trajectory.state_at_time(3600.0).absolute_position)

    def test_closed_universe_rejects_changes(self, epoch):
        universe = Universe(epoch)
        universe.close()
        universe.close()
        with pytest.raises(RuntimeError):
            universe.add_gravity_celestial(GravityCelestial(
                'Earth', [0.0, 0.0, 0.0], [0.0, 0.0, 0.0], epoch,
                mass=EARTH_MASS, radius=EARTH_RADIUS))
        with pytest.raises(RuntimeError):
            universe.advance(1.0)

    def test_context_manager_closes(self, epoch):
        with Universe(epoch) as universe:
            pass
        with pytest.raises(RuntimeError):
            universe.snapshot()

    def test_default_epoch(self):
        universe = Universe()
        assert universe.epoch == TemporalState(0.0)


# =============================================================================
# Celestial bodies
# =============================================================================

class TestCelestials:

    def test_mass_must_be_positive(self, epoch):
        with pytest.raises(ValueError):
            GravityCelestial('Ghost', [0.0, 0.0, 0.0], [0.0, 0.0, 0.0], epoch,
                             mass=0.0, radius=1.0)

    def test_gravity_body_needs_closed_orbit(self, earth, epoch):
        escape = 2.0 * np.sqrt(EARTH_MU / 1.0e8)
        with pytest.raises(ValueError):
            GravityCelestial('Rogue', [1.0e8, 0.0, 0.0], [0.0, 0.0, -escape], epoch,
                             mass=MOON_MASS, radius=MOON_RADIUS, orbiting=earth)

    def test_root_body_moves_in_a_line(self, earth):
        assert earth.is_root
        assert earth.soi_radius == pytest.approx(EARTH_MASS ** (7.0 / 15.0))
        np.testing.assert_allclose(earth.state_at(100.0).position, [0.0, 0.0, 0.0])

    def test_craft_tracks_soi_change(self, scenario):
        craft = scenario.physics_celestials[0]
        moon = scenario.gravity_celestial('Moon')
        earth = scenario.gravity_celestial('Earth')
        t_exit = craft.trajectory.time_to_next_segment()
        assert craft.state_at(0.0).orbiting is moon
        assert craft.state_at(t_exit + 10.0).orbiting is earth
        assert craft.orbiting is earth

    def test_advance_updates_craft(self, scenario):
        craft = scenario.physics_celestials[0]
        t_exit = craft.trajectory.time_to_next_segment()
        scenario.advance(t_exit + 10.0)
        assert craft.orbiting is scenario.gravity_celestial('Earth')

    def test_unknown_craft_parent(self):
        config = minimal_config()
        config['craft'] = [{'name': 'Lost', 'orbiting': 'Mars',
                            'position': [7.0e6, 0.0, 0.0], 'velocity': [0.0, 0.0, -7.5e3]}]
        with pytest.raises(ValueError, match="unknown parent"):
            build_universe(config)


# =============================================================================
# Export
# =============================================================================

class TestExport:

    def test_samples_to_frame(self, scenario):
        craft = scenario.physics_celestials[0]
        samples = list(craft.trajectory.sample_range(0.0, 1000.0, 5))
        df = samples_to_frame(samples, craft.name)
        assert list(df.columns) == ['name', *SAMPLE_COLUMNS, 'radius']
        assert len(df) == 5
        assert (df['name'] == 'Satellite').all()
        first = samples[0]
        assert df['radius'].iloc[0] == pytest.approx(np.linalg.norm(first.position))

    def test_samples_to_frame_without_name(self, scenario):
        craft = scenario.physics_celestials[0]
        df = samples_to_frame(craft.trajectory.sample_range(0.0, 10.0, 2))
        assert 'name' not in df.columns

    def test_snapshot_to_frame(self, scenario):
        df = snapshot_to_frame(scenario.snapshot())
        assert list(df['name']) == ['Earth', 'Moon', 'Satellite']
        assert list(df['kind']) == ['gravity', 'gravity', 'physics']
        assert df['orbiting'].iloc[1] == 'Earth'
        assert df['orbiting'].iloc[2] == 'Moon'
        assert (df['time'] == 0.0).all()
