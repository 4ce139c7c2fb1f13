"""Local tile owned by a single worker.

A tile is one ``(local_rows+2) × (local_cols+2)`` buffer. The outer ring holds
ghost cells, the inner block holds the cells the worker owns. Interior, edge
and ghost regions are numpy views over that buffer, never copies.

Edges exclude the corner cells: the 5-point stencil never reads them, so they
are neither sent nor received during halo exchange.
"""

from __future__ import annotations

import numpy as np

from .errors import AllocationError
from .problems import as_boundary
from .topology import Direction, ProcessTopology


def allocate_buffer(shape: tuple[int, int]) -> np.ndarray:
    """Allocate an uninitialised float64 buffer, raising AllocationError on failure."""
    try:
        return np.empty(shape, dtype=np.float64)
    except MemoryError as exc:
        raise AllocationError(f"Cannot allocate buffer of shape {shape}") from exc


class LocalTile:
    """Interior cells of one worker plus a one-cell ghost border.

    Parameters
    ----------
    topology : ProcessTopology
        Position of the owning worker
    array : np.ndarray
        Backing buffer of shape (local_rows + 2, local_cols + 2)

    """

    def __init__(self, topology: ProcessTopology, array: np.ndarray):
        expected = (topology.local_rows + 2, topology.local_cols + 2)
        if array.shape != expected:
            raise ValueError(f"Tile buffer has shape {array.shape}, expected {expected}")
        self.topology = topology
        self.array = array

    @classmethod
    def allocate(cls, topology: ProcessTopology, seed: float | None = None, boundary=-1.0) -> "LocalTile":
        """Allocate and initialise a tile.

        The interior is set to ``seed`` (the worker id when None) and the whole
        ghost ring to the boundary function at its global position. Ghosts
        facing a live neighbour are overwritten by the first halo exchange;
        those on a domain edge keep the boundary values for the whole run.
        """
        boundary = as_boundary(boundary)
        tile = cls(topology, allocate_buffer((topology.local_rows + 2, topology.local_cols + 2)))

        # Padded global indices of the tile's rows and columns
        rows = topology.global_row_offset + np.arange(topology.local_rows + 2)
        cols = topology.global_col_offset + np.arange(topology.local_cols + 2)
        tile.array[:, :] = boundary(rows[:, None], cols[None, :], topology.n)
        tile.interior[:, :] = topology.worker_id if seed is None else seed
        return tile

    @property
    def shape(self) -> tuple[int, int]:
        return self.array.shape

    @property
    def interior(self) -> np.ndarray:
        return self.array[1:-1, 1:-1]

    def edge(self, direction: Direction | str) -> np.ndarray:
        """Owned boundary row/column facing ``direction`` (corners excluded)."""
        direction = Direction(direction)
        if direction is Direction.UP:
            return self.array[1, 1:-1]
        if direction is Direction.DOWN:
            return self.array[-2, 1:-1]
        if direction is Direction.LEFT:
            return self.array[1:-1, 1]
        return self.array[1:-1, -2]

    def ghost(self, direction: Direction | str) -> np.ndarray:
        """Ghost row/column on the ``direction`` side (corners excluded)."""
        direction = Direction(direction)
        if direction is Direction.UP:
            return self.array[0, 1:-1]
        if direction is Direction.DOWN:
            return self.array[-1, 1:-1]
        if direction is Direction.LEFT:
            return self.array[1:-1, 0]
        return self.array[1:-1, -1]

    def copy_interior(self) -> np.ndarray:
        return self.interior.copy()

    def __repr__(self) -> str:
        return f"LocalTile(worker={self.topology.worker_id}, shape={self.shape})"
