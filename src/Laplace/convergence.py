"""Iteration driver: local Jacobi sweep, halo exchange, global error reduction."""

from __future__ import annotations

import logging
import math
import time
from typing import Callable

import numpy as np

from .datastructures import IterationState
from .errors import AllocationError, RunCancelledError
from .tile import LocalTile, allocate_buffer
from .transport import HaloTransport

logger = logging.getLogger(__name__)


def combine_and_decide(global_error_sum: float, precision: float) -> tuple[float, bool]:
    """Turn the cross-worker sum of squared deltas into (global_error, converged)."""
    global_error = math.sqrt(global_error_sum)
    return global_error, global_error < precision


class ConvergenceEngine:
    """Run Jacobi iterations on one tile until the global error drops below precision.

    Every worker of a run drives its own engine; they stay in lock-step through
    the halo exchange and the error reduction.

    Parameters
    ----------
    tile : LocalTile
        Tile updated in place
    transport : HaloTransport
        Communication backend shared with the halo exchange
    step : callable
        Sweep kernel ``step(u, unew) -> local_error_sum``
    exchange : callable
        Halo exchange ``exchange(transport, tile)`` for the decomposition
    precision : float, default 1.0e-2
        Convergence threshold on the global error
    max_iter : int, optional
        Stop unconverged after this many iterations (default: no cap)

    """

    def __init__(
        self,
        tile: LocalTile,
        transport: HaloTransport,
        step: Callable[[np.ndarray, np.ndarray], float],
        exchange: Callable[[HaloTransport, LocalTile], None],
        precision: float = 1.0e-2,
        max_iter: int | None = None,
    ):
        self.tile = tile
        self.transport = transport
        self.step = step
        self.exchange = exchange
        self.precision = precision
        self.max_iter = max_iter
        self.state = IterationState()
        self.residual_history: list[float] = []
        self.compute_times: list[float] = []
        self.halo_times: list[float] = []
        self.comm_times: list[float] = []
        self._scratch: np.ndarray | None = None

    def _sweep(self) -> float:
        if self._scratch is None:
            self._scratch = allocate_buffer(self.tile.shape)
        local_error_sum = self.step(self.tile.array, self._scratch)
        # Commit only the interior; domain-edge ghosts stay fixed
        self.tile.interior[:, :] = self._scratch[1:-1, 1:-1]
        return float(local_error_sum)

    def advance(self) -> IterationState:
        """Perform one full iteration and return the new state.

        A worker whose sweep fails still joins the exchange and the reduction,
        flagging the failure, so its peers raise RunCancelledError instead of
        blocking forever.
        """
        failure = None
        t0 = time.perf_counter()
        try:
            local_error_sum = self._sweep()
        except AllocationError as exc:
            failure = exc
            local_error_sum = 0.0
        t1 = time.perf_counter()
        self.exchange(self.transport, self.tile)
        t2 = time.perf_counter()
        global_error_sum, aborted = self.transport.allreduce_sum(local_error_sum, failed=failure is not None)
        t3 = time.perf_counter()

        self.compute_times.append(t1 - t0)
        self.halo_times.append(t2 - t1)
        self.comm_times.append(t3 - t2)

        if failure is not None:
            raise failure
        if aborted:
            raise RunCancelledError(
                f"Worker {self.transport.rank}: a peer failed during iteration {self.state.iteration + 1}"
            )

        global_error, converged = combine_and_decide(global_error_sum, self.precision)
        self.state = IterationState(
            iteration=self.state.iteration + 1,
            local_error_sum=local_error_sum,
            global_error_sum=global_error_sum,
            global_error=global_error,
            converged=converged,
        )
        self.residual_history.append(global_error)
        if self.transport.rank == 0:
            logger.debug("Iteration %d - error = %e", self.state.iteration, global_error)
        return self.state

    def run(self) -> IterationState:
        """Iterate until converged (or until max_iter)."""
        while not self.state.converged:
            if self.max_iter is not None and self.state.iteration >= self.max_iter:
                if self.transport.rank == 0:
                    logger.warning(
                        "Did not converge after %d iterations (error: %.2e)",
                        self.state.iteration,
                        self.state.global_error,
                    )
                break
            self.advance()
        return self.state
