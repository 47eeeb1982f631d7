"""
Tabular export of sampled trajectories and universe snapshots.

Both tables are plain pandas DataFrames; writing them out is left to the
caller (``DataFrame.to_csv`` in the CLI).
"""

from typing import Iterable

import numpy as np
import pandas as pd

from patchedconics.trajectory.base import Sample

SAMPLE_COLUMNS = ['time', 'x', 'y', 'z', 'vx', 'vy', 'vz']


def samples_to_frame(samples: Iterable[Sample], name: str = None) -> pd.DataFrame:
    """
    One row per sample: time (s) plus absolute position (m) and velocity (m/s).
    A ``radius`` column gives the distance from the global origin.
    """
    rows = [
        [s.time, *np.asarray(s.position).tolist(), *np.asarray(s.velocity).tolist()]
        for s in samples
    ]
    df = pd.DataFrame(rows, columns=SAMPLE_COLUMNS)
    df['radius'] = np.sqrt(df['x'] ** 2 + df['y'] ** 2 + df['z'] ** 2)
    if name is not None:
        df.insert(0, 'name', name)
    return df


def snapshot_to_frame(snapshot) -> pd.DataFrame:
    """One row per body in a UniverseState."""
    rows = []
    for state in snapshot.gravity:
        parent = state.celestial.orbiting
        rows.append({
            'name': state.name,
            'kind': 'gravity',
            'orbiting': parent.name if parent is not None else None,
            **dict(zip(SAMPLE_COLUMNS[1:], [*state.position, *state.velocity])),
        })
    for state in snapshot.physics:
        rows.append({
            'name': state.name,
            'kind': 'physics',
            'orbiting': state.orbiting.name if state.orbiting is not None else None,
            **dict(zip(SAMPLE_COLUMNS[1:], [*state.position, *state.velocity])),
        })
    df = pd.DataFrame(rows)
    df.insert(0, 'time', snapshot.elapsed)
    return df
