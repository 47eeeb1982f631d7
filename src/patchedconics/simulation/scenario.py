"""
===============================================================================
PATCHED CONICS - Scenario Loading
===============================================================================
Reads a YAML scenario file and builds a populated Universe from it.

Sections
--------
    scenario   name, epoch (s)
    bodies     gravity bodies: name, mass, radius, color, position,
               velocity, orbiting
    craft      physics bodies: name, position, velocity, orbiting
    sampling   count, batch_size, workers
    composite  max_segments
    logging    level

Bodies may be listed in any order; each is built once its parent exists.
===============================================================================
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import yaml

from patchedconics.core.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_SEGMENTS,
)
from patchedconics.core.states import TemporalState
from patchedconics.simulation.celestial import GravityCelestial, PhysicsCelestial
from patchedconics.simulation.universe import Universe

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = Path(__file__).parent.parent / 'config' / 'earth_moon.yaml'

_BODY_FIELDS = ('name', 'mass', 'radius', 'position', 'velocity')
_CRAFT_FIELDS = ('name', 'position', 'velocity')


@dataclass(frozen=True)
class RunSettings:
    """Sampling and chain-walk settings read from a scenario."""
    sample_count: int = 1000
    batch_size: int = DEFAULT_BATCH_SIZE
    workers: int = 1
    max_segments: int = DEFAULT_MAX_SEGMENTS
    log_level: str = 'INFO'


def load_config(config_path: Optional[str] = None) -> dict:
    """
    Load a scenario configuration from a YAML file.

    Args:
        config_path: Path to YAML config. Defaults to config/earth_moon.yaml
            inside the package.

    Returns:
        Dictionary of scenario parameters
    """
    if config_path is None:
        config_path = str(DEFAULT_CONFIG)

    logger.info(f"Loading configuration from: {config_path}")
    with open(config_path, 'r') as f:
        config = yaml.safe_load(f)
    if not isinstance(config, dict):
        raise ValueError(f"{config_path}: expected a mapping at the top level")
    logger.info(f"Scenario: {config.get('scenario', {}).get('name', 'unnamed')}")
    return config


# =============================================================================
# VALIDATION HELPERS
# =============================================================================

def _require(entry: Dict[str, Any], fields, where: str) -> None:
    if not isinstance(entry, dict):
        raise ValueError(f"{where}: expected a mapping, got {type(entry).__name__}")
    for name in fields:
        if name not in entry:
            raise ValueError(f"{where}: missing field '{name}'")


def _vector(value, where: str) -> np.ndarray:
    try:
        vec = np.array([float(x) for x in value], dtype=np.float64)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{where}: expected three numbers, got {value!r}") from exc
    if vec.shape != (3,) or not np.all(np.isfinite(vec)):
        raise ValueError(f"{where}: expected three finite numbers, got {value!r}")
    return vec


def _number(value, where: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{where}: expected a number, got {value!r}") from exc


def _color(value, where: str):
    if value is None:
        return None
    color = tuple(_number(c, where) for c in value)
    if len(color) != 3:
        raise ValueError(f"{where}: expected an RGB triple, got {value!r}")
    return color


# =============================================================================
# BUILDERS
# =============================================================================

def _build_bodies(universe: Universe, entries: List[dict]) -> None:
    for index, entry in enumerate(entries):
        _require(entry, _BODY_FIELDS, f"bodies[{index}]")

    pending = list(entries)
    while pending:
        built_any = False
        for entry in list(pending):
            parent_name = entry.get('orbiting')
            if parent_name is not None:
                try:
                    parent = universe.gravity_celestial(parent_name)
                except KeyError:
                    continue
            else:
                parent = None

            name = str(entry['name'])
            body = GravityCelestial(
                name,
                _vector(entry['position'], f"{name}.position"),
                _vector(entry['velocity'], f"{name}.velocity"),
                universe.epoch,
                mass=_number(entry['mass'], f"{name}.mass"),
                radius=_number(entry['radius'], f"{name}.radius"),
                color=_color(entry.get('color'), f"{name}.color"),
                orbiting=parent,
            )
            universe.add_gravity_celestial(body)
            pending.remove(entry)
            built_any = True

        if not built_any:
            unknown = sorted({str(e.get('orbiting')) for e in pending})
            raise ValueError(f"Unknown parent body: {', '.join(unknown)}")


def _build_craft(universe: Universe, entries: List[dict]) -> None:
    for index, entry in enumerate(entries):
        _require(entry, _CRAFT_FIELDS, f"craft[{index}]")
        name = str(entry['name'])
        parent = None
        if entry.get('orbiting') is not None:
            try:
                parent = universe.gravity_celestial(entry['orbiting'])
            except KeyError:
                raise ValueError(f"{name}: unknown parent body {entry['orbiting']!r}") from None

        craft = PhysicsCelestial(
            name,
            _vector(entry['position'], f"{name}.position"),
            _vector(entry['velocity'], f"{name}.velocity"),
            universe.epoch,
            universe,
            orbiting=parent,
        )
        universe.add_physics_celestial(craft)


def build_universe(config: dict) -> Universe:
    """
    Construct a Universe from a loaded scenario configuration.

    Raises
    ------
    ValueError
        On a missing section or field, a malformed vector or an unknown
        parent body.
    """
    bodies = config.get('bodies')
    if not bodies:
        raise ValueError("Scenario must define at least one entry under 'bodies'")

    scenario = config.get('scenario') or {}
    epoch = TemporalState(_number(scenario.get('epoch', 0.0), 'scenario.epoch'))
    universe = Universe(epoch)

    _build_bodies(universe, bodies)
    _build_craft(universe, config.get('craft') or [])

    logger.info(
        f"Universe ready: {len(universe.gravity_celestials)} bodies, "
        f"{len(universe.physics_celestials)} craft"
    )
    return universe


def run_settings(config: dict) -> RunSettings:
    """Sampling, composite and logging settings with defaults filled in."""
    sampling = config.get('sampling') or {}
    composite = config.get('composite') or {}
    log_cfg = config.get('logging') or {}
    defaults = RunSettings()

    settings = RunSettings(
        sample_count=int(sampling.get('count', defaults.sample_count)),
        batch_size=int(sampling.get('batch_size', defaults.batch_size)),
        workers=int(sampling.get('workers', defaults.workers)),
        max_segments=int(composite.get('max_segments', defaults.max_segments)),
        log_level=str(log_cfg.get('level', defaults.log_level)).upper(),
    )
    if settings.sample_count < 0 or settings.batch_size < 1 or settings.workers < 1:
        raise ValueError(f"Invalid sampling settings: {sampling}")
    if settings.max_segments < 1:
        raise ValueError(f"composite.max_segments must be at least 1, got {settings.max_segments}")
    return settings
