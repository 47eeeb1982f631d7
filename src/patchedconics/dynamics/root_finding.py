"""
===============================================================================
PATCHED CONICS - Root Finding
===============================================================================
Bounded-iteration solvers shared by the conic strategies and trajectory
searches. Every solver has a hard iteration cap; none of them raise on
non-convergence. They return their best estimate together with a flag so
the caller decides whether a loose answer is acceptable.

References
----------
    [1] Vallado, "Fundamentals of Astrodynamics and Applications", 4th ed.,
        Algorithm 2 (Kepler's equation by Newton-Raphson).
    [2] Press et al., "Numerical Recipes", 3rd ed., Sec. 9.1 and 9.4.
===============================================================================
"""

import logging
from typing import Callable, Optional, Sequence, Tuple

import numpy as np
from scipy import optimize

from patchedconics.core.constants import (
    NEWTON_TOLERANCE,
    NEWTON_MAX_ITERATIONS,
    SECANT_STEP,
    BISECTION_XTOL,
    BISECTION_MAX_ITERATIONS,
)

logger = logging.getLogger(__name__)


def guard_finite(value: float, where: str) -> float:
    """
    Reject NaN/inf at a solver boundary.

    Raises
    ------
    RuntimeError
        If *value* is not finite.
    """
    if not np.isfinite(value):
        raise RuntimeError(f"{where}: non-finite result ({value})")
    return float(value)


def newton_raphson(
    f: Callable[[float], float],
    fprime: Callable[[float], float],
    guess: float,
    tolerance: float = NEWTON_TOLERANCE,
    bounds: Optional[Sequence[float]] = None,
    max_iterations: int = NEWTON_MAX_ITERATIONS,
) -> Tuple[float, bool]:
    """
    Newton-Raphson root search with optional clamping.

    Iteration stops when |f(x)| <= tolerance, when *max_iterations* steps
    have been taken, or when the residual stops changing between steps.

    Parameters
    ----------
    f, fprime : callable
        Function and its derivative.
    guess : float
        Starting point.
    tolerance : float
        Absolute residual accepted as a root.
    bounds : (lo, hi), optional
        Every iterate is clamped into this interval.
    max_iterations : int
        Hard cap on the number of steps.

    Returns
    -------
    x : float
        Best estimate of the root.
    converged : bool
        True if |f(x)| <= tolerance.
    """
    x = float(guess)
    y = f(x)
    last_y = np.nan
    iterations = 0

    while abs(y) > tolerance and iterations < max_iterations and y != last_y:
        slope = fprime(x)
        if slope == 0.0 or not np.isfinite(slope):
            break
        x = x - y / slope
        if bounds is not None:
            x = min(max(x, bounds[0]), bounds[1])
        last_y = y
        y = f(x)
        iterations += 1

    converged = bool(abs(y) <= tolerance)
    if not converged:
        logger.debug("newton_raphson stopped after %d iterations, |f| = %.3e",
                     iterations, abs(y))
    return x, converged


def central_difference(f: Callable[[float], float],
                       step: float = SECANT_STEP) -> Callable[[float], float]:
    """Secant-style derivative estimate of *f*."""
    def derivative(x: float) -> float:
        return (f(x + step) - f(x - step)) / (2.0 * step)
    return derivative


def bisect(f: Callable[[float], float], lo: float, hi: float) -> Tuple[float, bool]:
    """
    Bisection on a sign-changing bracket [lo, hi].

    Returns
    -------
    x : float
        Root estimate, or NaN if the bracket does not change sign.
    converged : bool
        Whether scipy reported convergence.
    """
    f_lo, f_hi = f(lo), f(hi)
    if f_lo == 0.0:
        return lo, True
    if f_hi == 0.0:
        return hi, True
    if np.sign(f_lo) == np.sign(f_hi):
        return np.nan, False

    root, result = optimize.bisect(f, lo, hi, xtol=BISECTION_XTOL,
                                   maxiter=BISECTION_MAX_ITERATIONS,
                                   full_output=True, disp=False)
    if not result.converged:
        logger.debug("bisect stopped after %d iterations", result.iterations)
    return float(root), bool(result.converged)
