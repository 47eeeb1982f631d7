"""
===============================================================================
PATCHED CONICS - Physical Constants and Solver Settings
===============================================================================
Central repository for the constants used by the trajectory engine. SI units
throughout (meters, seconds, kilograms, radians).

Body data matches the Earth-Moon scenario the engine is validated against;
the solver settings bound every iterative method in the package so that no
query can loop without end.
===============================================================================
"""

import numpy as np


# =============================================================================
# MATHEMATICAL CONSTANTS
# =============================================================================
PI = np.pi
TWO_PI = 2.0 * np.pi
HALF_PI = 0.5 * np.pi
DEG2RAD = PI / 180.0
RAD2DEG = 180.0 / PI

# =============================================================================
# FUNDAMENTAL PHYSICAL CONSTANTS
# =============================================================================
GRAVITATIONAL_CONSTANT = 6.67430e-11   # m^3 / (kg * s^2)

# =============================================================================
# EARTH PARAMETERS
# =============================================================================
EARTH_MASS = 5.97219e24                # kg
EARTH_RADIUS = 6371010.0               # Mean radius (m)
EARTH_MU = GRAVITATIONAL_CONSTANT * EARTH_MASS

# =============================================================================
# MOON PARAMETERS
# =============================================================================
MOON_MASS = 7.349e22                   # kg
MOON_RADIUS = 1737530.0                # Mean radius (m)
MOON_MU = GRAVITATIONAL_CONSTANT * MOON_MASS
MOON_ORBITAL_PERIOD = 2.3593e6         # Reference sidereal period (s) ~27.3 days
MOON_ECCENTRICITY = 0.0549

# =============================================================================
# ORBIT CLASSIFICATION
# =============================================================================
CIRCULAR_ECCENTRICITY_TOLERANCE = 1e-9
PARABOLIC_ECCENTRICITY_TOLERANCE = 1e-9

# Substitutes for zero-magnitude state vectors
DEGENERATE_POSITION = np.array([1e-10, 0.0, 0.0])
DEGENERATE_VELOCITY = np.array([0.0, 1e-10, 0.0])

# Reconstruction check performed after building an orbital trajectory
RECONSTRUCTION_TOLERANCE = 0.1         # m and m/s

# =============================================================================
# ROOT-FINDING SETTINGS
# =============================================================================
NEWTON_TOLERANCE = 1e-12
NEWTON_MAX_ITERATIONS = 7
KEPLER_MAX_ITERATIONS = 9
HYPERBOLIC_MAX_ITERATIONS = 9
NEAR_PARABOLIC_ECCENTRICITY = 1e-2     # e - 1 below which hyperbolas seed from Barker

SECANT_STEP = 1e-5                     # rad, central difference half-width
POINT_SEARCH_MAX_ITERATIONS = 20
POINT_SEARCH_TOLERANCE = 1e-9          # relative to (h^2/mu)^2
ASYMPTOTE_MARGIN = 1e-3                # rad kept clear of an open orbit's asymptote
BISECTION_XTOL = 1e-13                 # rad
BISECTION_MAX_ITERATIONS = 200

# =============================================================================
# SOI TRANSITION SEARCH
# =============================================================================
INTERSECTION_SEED_COUNT = 17
INTERSECTION_SEED_SPACING = (10.0 / 9.0) * PI
INTERSECTION_TOLERANCE = 1e-4          # m
INTERSECTION_MAX_ITERATIONS = 20
SOI_ENTRY_MARGIN = 0.5                 # m, keeps a fresh entry inside the SOI
MIN_EXIT_TIME = 1e-4                   # s
ROOT_SOI_EXPONENT = 7.0 / 15.0
CHILD_SOI_EXPONENT = 2.0 / 5.0

# =============================================================================
# SAMPLING
# =============================================================================
DEFAULT_BATCH_SIZE = 500
LINEAR_BATCH_SIZE = 1000
FAR_FIELD_DISTANCE = 1e12              # m, horizon for open final legs
DEFAULT_MAX_SEGMENTS = 32
