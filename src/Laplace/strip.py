"""Jacobi solver with strip (row) domain decomposition."""

from .base import JacobiSolver
from .halo import exchange_rows


class StripJacobi(JacobiSolver):
    """Strip decomposition: each worker owns a horizontal band of N / workers rows.

    Worker 0 owns the top band. Only the ghost rows above and below a band
    face other workers, so the halo exchange is the row phase alone.
    """

    method = "strip_jacobi"
    decomposition = "strip"

    def _exchange_boundaries(self, transport, tile):
        exchange_rows(transport, tile)
