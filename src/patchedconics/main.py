#!/usr/bin/env python3
"""
===============================================================================
PATCHED CONICS - MAIN ENTRY POINT
===============================================================================
Loads a scenario, builds the Universe, reports every body's orbit and every
craft's patched segment chain, and optionally samples the craft paths.

USAGE:
    patchedconics                                 # Default Earth-Moon scenario
    patchedconics --config my_scenario.yaml       # Custom scenario
    patchedconics --samples 5000 --workers 4      # Parallel sampling
    patchedconics --csv output/satellite.csv      # Write samples to CSV

DEPENDENCIES:
    numpy, scipy, pandas, pyyaml
===============================================================================
"""

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Optional

import pandas as pd

from patchedconics.core.constants import RAD2DEG
from patchedconics.performance.parallel import ParallelSampler
from patchedconics.simulation.celestial import GravityCelestial, PhysicsCelestial
from patchedconics.simulation.export import samples_to_frame, snapshot_to_frame
from patchedconics.simulation.scenario import build_universe, load_config, run_settings
from patchedconics.trajectory.base import TrajectoryKind

logger = logging.getLogger('PATCHED_CONICS')


def setup_logging(level: str = 'INFO', log_file: Optional[str] = None) -> None:
    """Configure root logging with a stdout handler and an optional file."""
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode='w'))
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=handlers,
        force=True,
    )


def report_body(body: GravityCelestial) -> None:
    print(f"\n  {body.name}")
    print(f"    mass          : {body.mass:.6e} kg")
    print(f"    SOI radius    : {body.soi_radius:.6e} m")
    if body.orbiting is None:
        return
    traj = body.trajectory
    e = traj.elements
    print(f"    orbiting      : {body.orbiting.name}")
    print(f"    eccentricity  : {traj.eccentricity:.6f}")
    print(f"    semi-major    : {traj.semi_major_axis:.6e} m")
    print(f"    period        : {traj.period:.6e} s ({traj.period / 86400.0:.3f} days)")
    print(f"    inclination   : {e.inclination * RAD2DEG:.4f} deg")
    print(f"    periapsis     : {traj.periapsis_radius:.6e} m")
    print(f"    apoapsis      : {traj.apoapsis_radius:.6e} m")


def report_craft(craft: PhysicsCelestial, max_segments: int) -> float:
    """Print the segment chain and return the sampling horizon (s)."""
    print(f"\n  {craft.name}")
    ranges = craft.trajectory.time_ranges_base(max_segments)
    for index, (link, start, end) in enumerate(ranges):
        where = link.orbiting.name if link.orbiting is not None else 'deep space'
        kind = link.kind.name.lower()
        line = f"    [{index}] {kind:<7} around {where:<10} t = {start:14.3f} -> {end:14.3f} s"
        if link.has_next_segment():
            line += f"  ({link.transition_direction().value.upper()})"
        print(line)
        if link.kind is TrajectoryKind.ORBITAL:
            logger.info(f"{craft.name} segment {index}: e = {link.segment.eccentricity:.6f}")

    duration = craft.trajectory.duration(max_segments)
    suffix = ' (open-ended)' if duration.open_ended else ''
    print(f"    duration      : {duration.seconds:.3f} s{suffix}")
    return ranges[-1][2]


def main(argv=None):
    """
    Main entry point. Parses command line arguments and runs the scenario.
    """
    parser = argparse.ArgumentParser(
        description='Patched-conic orbital simulation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  patchedconics                         Default Earth-Moon scenario
  patchedconics --samples 2000          Sample each craft path
  patchedconics --csv out/samples.csv   Write samples as CSV
        """
    )
    parser.add_argument('--config', type=str, default=None,
                        help='Path to scenario YAML')
    parser.add_argument('--samples', type=int, default=None,
                        help='Samples per craft (overrides sampling.count)')
    parser.add_argument('--workers', type=int, default=None,
                        help='Worker processes (overrides sampling.workers)')
    parser.add_argument('--csv', type=str, default=None,
                        help='Write sampled craft states to this CSV file')
    parser.add_argument('--log-level', type=str, default=None,
                        help='Logging level (overrides logging.level)')
    parser.add_argument('--log-file', type=str, default=None,
                        help='Also write the log to this file')
    args = parser.parse_args(argv)

    setup_logging(args.log_level or 'INFO', args.log_file)
    config = load_config(args.config)
    settings = run_settings(config)
    if args.log_level is None:
        logging.getLogger().setLevel(getattr(logging, settings.log_level, logging.INFO))

    count = settings.sample_count if args.samples is None else args.samples
    workers = settings.workers if args.workers is None else args.workers

    print("=" * 70)
    print("  PATCHED CONICS SIMULATION")
    print(f"  Scenario: {config.get('scenario', {}).get('name', 'unnamed')}")
    print("=" * 70)

    start_wall = time.time()
    with build_universe(config) as universe:
        print("\n  GRAVITY BODIES")
        print("-" * 70)
        for body in universe.gravity_celestials:
            report_body(body)

        print("\n  CRAFT")
        print("-" * 70)
        frames = []
        sampler = ParallelSampler(num_workers=workers, batch_size=settings.batch_size)
        for craft in universe.physics_celestials:
            horizon = report_craft(craft, settings.max_segments)
            if count > 0:
                samples = sampler.sample(craft.trajectory.sample_range(0.0, horizon, count))
                frame = samples_to_frame(samples, craft.name)
                frames.append(frame)
                print(f"    sampled       : {len(frame)} points, "
                      f"max radius {frame['radius'].max():.6e} m")

        snapshot = universe.snapshot()
        print("\n  STATE AT EPOCH")
        print("-" * 70)
        print(snapshot_to_frame(snapshot).to_string(index=False))

        if args.csv and frames:
            out = Path(args.csv)
            out.parent.mkdir(parents=True, exist_ok=True)
            pd.concat(frames, ignore_index=True).to_csv(out, index=False)
            logger.info(f"Samples written to {out}")

    print("\n" + "=" * 70)
    print("  SIMULATION COMPLETE")
    print(f"  Total wall time: {time.time() - start_wall:.1f} seconds")
    print("=" * 70)
    return 0


if __name__ == '__main__':
    sys.exit(main())
