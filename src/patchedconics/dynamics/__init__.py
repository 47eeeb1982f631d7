"""
===============================================================================
PATCHED CONICS - Dynamics Module
===============================================================================
Two-body orbit mathematics.

Submodules:
    root_finding -- Bounded Newton-Raphson, bisection, finiteness guard
    conics       -- Circular/elliptical/parabolic/hyperbolic time <-> anomaly
    elements     -- Classical elements and perifocal basis from a state vector
===============================================================================
"""
