"""Boundary conditions and initial grids for the Laplace problem.

Boundary conditions are callables evaluated on *padded* global indices: the
N×N grid is surrounded by one ring of boundary cells, so valid row and column
indices run from 0 to N+1 and the interior occupies 1..N.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class ConstantBoundary:
    """Dirichlet boundary with the same value on every edge.

    Parameters
    ----------
    value : float, default -1.0
        Boundary value

    """

    value: float = -1.0

    def __call__(self, rows: np.ndarray, cols: np.ndarray, N: int) -> np.ndarray:
        shape = np.broadcast(rows, cols).shape
        return np.full(shape, self.value, dtype=np.float64)


@dataclass(frozen=True)
class LinearBoundary:
    """Dirichlet boundary varying linearly from the top edge to the bottom edge.

    Row 0 of the padded grid takes ``top``, row N+1 takes ``bottom`` and the
    left/right edges interpolate between them.
    """

    top: float = 1.0
    bottom: float = -1.0

    def __call__(self, rows: np.ndarray, cols: np.ndarray, N: int) -> np.ndarray:
        rows, cols = np.broadcast_arrays(rows, cols)
        t = rows.astype(np.float64) / (N + 1)
        return self.top + (self.bottom - self.top) * t


def as_boundary(boundary) -> ConstantBoundary | LinearBoundary:
    """Turn a plain number into a ConstantBoundary, pass callables through."""
    if callable(boundary):
        return boundary
    return ConstantBoundary(float(boundary))


def create_grid_2d(N: int, value: float | np.ndarray = 0.0, boundary=-1.0) -> np.ndarray:
    """Create a padded (N+2)×(N+2) grid with interior and boundary values.

    Parameters
    ----------
    N : int
        Number of interior points per side
    value : float or np.ndarray, default 0.0
        Initial value for interior points (scalar or an N×N array)
    boundary : float or callable, default -1.0
        Boundary value or boundary function

    Returns
    -------
    np.ndarray
        Grid of shape (N+2, N+2) with boundary conditions applied

    """
    boundary = as_boundary(boundary)
    idx = np.arange(N + 2)
    u = boundary(idx[:, None], idx[None, :], N).astype(np.float64)
    u[1:-1, 1:-1] = value
    return u


def worker_seed_grid(N: int, row_cuts: int, col_cuts: int) -> np.ndarray:
    """Interior N×N grid where each tile holds the id of the worker owning it.

    This is the initial state of a distributed run with default seeding,
    which lets the sequential reference reproduce it exactly.
    """
    rows, cols = N // row_cuts, N // col_cuts
    ids = np.arange(row_cuts * col_cuts, dtype=np.float64).reshape(row_cuts, col_cuts)
    return np.kron(ids, np.ones((rows, cols)))
