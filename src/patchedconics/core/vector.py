"""
===============================================================================
PATCHED CONICS - 3D Vector Helpers
===============================================================================
Thin helpers over numpy float64 arrays. Vectors are plain ``np.ndarray`` of
shape (3,); these functions only collect the handful of operations the
trajectory engine repeats (safe unit vectors, basis changes).

Convention
----------
The reference frame is right-handed with +Y as the reference pole: the
reference plane is X-Z and inclination is measured from +Y.
===============================================================================
"""

import numpy as np

X_AXIS = np.array([1.0, 0.0, 0.0])
Y_AXIS = np.array([0.0, 1.0, 0.0])
Z_AXIS = np.array([0.0, 0.0, 1.0])
ZERO = np.zeros(3)


def as_vector(value) -> np.ndarray:
    """Return *value* as a float64 vector of shape (3,)."""
    vec = np.asarray(value, dtype=np.float64)
    if vec.shape != (3,):
        raise ValueError(f"Expected a 3-vector, got shape {vec.shape}")
    return vec


def magnitude(vec: np.ndarray) -> float:
    """Euclidean norm as a Python float."""
    return float(np.linalg.norm(vec))


def unit(vec: np.ndarray) -> np.ndarray:
    """
    Unit vector along *vec*.

    Raises
    ------
    ValueError
        If *vec* has zero length.
    """
    norm = np.linalg.norm(vec)
    if norm == 0.0:
        raise ValueError("Cannot normalise a zero-length vector")
    return vec / norm


def change_basis(vec: np.ndarray, i: np.ndarray, j: np.ndarray,
                 k: np.ndarray) -> np.ndarray:
    """
    Express a standard-basis vector in the orthonormal basis {i, j, k}.

    Equivalent to multiplying by the matrix whose rows are i, j, k.
    """
    return np.array([np.dot(i, vec), np.dot(j, vec), np.dot(k, vec)])


def inverse_change_basis(vec: np.ndarray, i: np.ndarray, j: np.ndarray,
                         k: np.ndarray) -> np.ndarray:
    """
    Express a vector given in the orthonormal basis {i, j, k} in the
    standard basis. Inverse of :func:`change_basis`.
    """
    return vec[0] * i + vec[1] * j + vec[2] * k
