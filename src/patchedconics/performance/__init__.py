"""
===============================================================================
PATCHED CONICS - Performance Module
===============================================================================
Submodules:
    parallel -- Batched, optionally multiprocess, trajectory sampling
===============================================================================
"""
