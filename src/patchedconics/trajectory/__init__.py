"""
===============================================================================
PATCHED CONICS - Trajectory Module
===============================================================================
Immutable motion models.

Submodules:
    base       -- Trajectory interface, trajectory states, sample ranges
    linear     -- Constant-velocity trajectory
    orbital    -- Keplerian trajectory around one gravity body
    composite  -- Segments patched together at SOI boundaries
===============================================================================
"""
