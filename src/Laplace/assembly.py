"""Reassemble the global grid from the interior tiles of all workers."""

from __future__ import annotations

import numpy as np

from .errors import TopologyMismatchError
from .problems import as_boundary
from .tile import LocalTile
from .topology import ProcessTopology
from .transport import HaloTransport

COLLECTOR = 0


def order_fragments(fragments, topology: ProcessTopology) -> list[tuple[ProcessTopology, np.ndarray]]:
    """Sort ``(worker_id, interior)`` fragments by their position in the processor grid.

    Strip decomposition reduces to worker id order (one strip per worker,
    stacked top to bottom); block decomposition orders by
    (row-cut index, column-cut index).
    """
    received = sorted(worker_id for worker_id, _ in fragments)
    if received != list(range(topology.worker_count)):
        raise TopologyMismatchError(
            f"Expected fragments from workers 0..{topology.worker_count - 1}, got {received}"
        )
    placed = [(topology.for_worker(worker_id), block) for worker_id, block in fragments]
    return sorted(placed, key=lambda item: item[0].coords)


def assemble(fragments, topology: ProcessTopology, boundary=None) -> np.ndarray:
    """Build the global grid in output orientation from gathered fragments.

    Parameters
    ----------
    fragments : iterable of (int, np.ndarray)
        Worker id and interior block of every worker
    topology : ProcessTopology
        Topology of any worker of the run (only its shape is used)
    boundary : float or callable, optional
        If given, the grid is padded with the boundary ring, giving shape
        (N+2, N+2) instead of (N, N)

    Returns
    -------
    np.ndarray
        Global grid with row 0 holding the bottom row of the physical domain

    """
    N = topology.n
    grid = np.empty((N, N), dtype=np.float64)
    for owner, block in order_fragments(fragments, topology):
        rows, cols = owner.interior_slices
        if block.shape != (owner.local_rows, owner.local_cols):
            raise TopologyMismatchError(
                f"Worker {owner.worker_id} sent a {block.shape} block, expected "
                f"{(owner.local_rows, owner.local_cols)}"
            )
        grid[rows, cols] = block

    if boundary is not None:
        idx = np.arange(N + 2)
        padded = as_boundary(boundary)(idx[:, None], idx[None, :], N).astype(np.float64)
        padded[1:-1, 1:-1] = grid
        grid = padded

    # Internal storage runs top to bottom; output runs bottom to top
    return grid[::-1].copy()


def gather_tiles(transport: HaloTransport, tile: LocalTile, boundary=None) -> np.ndarray | None:
    """Send every interior to the collector and assemble it there.

    Returns the assembled grid on the collector and None on every other worker.
    """
    fragments = transport.gather((tile.topology.worker_id, tile.copy_interior()), root=COLLECTOR)
    if transport.rank != COLLECTOR:
        return None
    return assemble(fragments, tile.topology, boundary=boundary)
