"""Computational kernels for the Jacobi sweep.

This module contains the stencil update used by every solver. The kernels are
pure functions with no class dependencies, making them ideal for JIT
compilation with numba.
"""

from __future__ import annotations

import numpy as np
from numba import njit


def jacobi_sweep_numpy(u: np.ndarray, unew: np.ndarray) -> float:
    """Perform a single Jacobi sweep using pure numpy.

    Every interior cell of ``unew`` becomes the average of its four neighbours
    in ``u``. Only ``u`` is read, so no update sees a value written during the
    same sweep. The ghost ring of ``unew`` is left untouched.

    Parameters
    ----------
    u : np.ndarray
        Previous values including the ghost ring, shape (rows + 2, cols + 2)
    unew : np.ndarray
        Buffer receiving the new interior values, same shape as ``u``

    Returns
    -------
    float
        Local error sum: sum((unew - u)²) over the interior

    """
    unew[1:-1, 1:-1] = 0.25 * (
        u[0:-2, 1:-1]  # up
        + u[2:, 1:-1]  # down
        + u[1:-1, 0:-2]  # left
        + u[1:-1, 2:]  # right
    )
    diff = unew[1:-1, 1:-1] - u[1:-1, 1:-1]
    return float(np.sum(diff * diff))


@njit
def jacobi_sweep_numba(u: np.ndarray, unew: np.ndarray) -> float:
    """Perform a single Jacobi sweep with explicit loops compiled by numba.

    Same contract as :func:`jacobi_sweep_numpy`.
    """
    error_sum = 0.0
    for i in range(1, u.shape[0] - 1):
        for j in range(1, u.shape[1] - 1):
            value = 0.25 * (u[i - 1, j] + u[i + 1, j] + u[i, j - 1] + u[i, j + 1])
            delta = value - u[i, j]
            unew[i, j] = value
            error_sum += delta * delta
    return error_sum


def select_kernel(use_numba: bool):
    """Return the sweep kernel for the requested backend."""
    return jacobi_sweep_numba if use_numba else jacobi_sweep_numpy
