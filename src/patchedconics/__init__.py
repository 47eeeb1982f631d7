"""
===============================================================================
PATCHED CONICS - Orbital Simulation Engine
===============================================================================
Multi-body orbital motion with the patched-conic approximation: bodies
follow exact two-body conics around one attractor at a time, and craft
trajectories are stitched together where they cross a sphere of influence.

Subpackages:
    core         -- Constants, vector helpers, relative-frame states, memo cell
    dynamics     -- Root finding, conic strategies, orbital elements
    trajectory   -- Linear, orbital and composite (patched) trajectories
    simulation   -- Celestial bodies, the Universe context, scenario loading
    performance  -- Batched and multiprocess sampling
===============================================================================
"""

__version__ = '1.0.0'
