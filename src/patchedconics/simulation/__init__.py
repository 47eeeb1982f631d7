"""
===============================================================================
PATCHED CONICS - Simulation Module
===============================================================================
Bodies, the owning Universe, and scenario input/output.

Submodules:
    celestial -- Gravity bodies (fixed conics) and physics bodies (craft)
    universe  -- Global clock and body registry
    scenario  -- YAML scenario loading and Universe construction
    export    -- pandas tables of samples and snapshots
===============================================================================
"""
