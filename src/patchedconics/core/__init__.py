"""
===============================================================================
PATCHED CONICS - Core Module
===============================================================================
Foundational types shared by every other module.

Submodules:
    constants  -- Physical constants, solver tolerances, sampling defaults
    vector     -- 3D vector helpers and basis changes
    relative   -- Immutable relative-frame nodes
    states     -- Temporal, kinematic and acceleration states
    memo       -- Single-slot memoization cell
===============================================================================
"""
