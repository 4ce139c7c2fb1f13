"""Jacobi solver with block (2D) domain decomposition.

The N×N grid is cut into a sqrt(P)×sqrt(P) arrangement of square tiles, one
per worker, numbered row-major from the top-left corner. Each worker swaps
ghost rows with its up/down neighbours and ghost columns with its left/right
neighbours every iteration.
"""

from .base import JacobiSolver
from .halo import exchange_columns, exchange_rows


class BlockJacobi(JacobiSolver):
    """Block decomposition: each worker owns a square tile of the grid.

    Requires a perfect-square number of workers whose root divides N.

    Examples
    --------
    >>> solver = BlockJacobi(N=12, precision=1e-2)
    >>> u, config, global_res, perrank = solver.solve()
    """

    method = "block_jacobi"
    decomposition = "block"

    def _exchange_boundaries(self, transport, tile):
        """Row phase first, then strided columns; corner ghosts are not exchanged."""
        exchange_rows(transport, tile)
        exchange_columns(transport, tile)
