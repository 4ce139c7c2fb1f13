"""Sequential Jacobi solver."""

import logging
import socket
import time

import numpy as np

from .base import JacobiSolver
from .convergence import combine_and_decide
from .datastructures import GlobalResults, PerRankResults
from .problems import create_grid_2d

logger = logging.getLogger(__name__)


class SequentialJacobi(JacobiSolver):
    """Sequential Jacobi solver (single process, no domain decomposition).

    Serves as the reference the distributed solvers are checked against.
    """

    method = "sequential_jacobi"

    def solve(self, include_boundary=False, u_true=None, initial=None):
        """Solve using sequential Jacobi iteration.

        Parameters
        ----------
        include_boundary : bool, default False
            Return the grid padded with the boundary ring
        u_true : np.ndarray, optional
            Reference grid used to report ``final_error``
        initial : float or np.ndarray, optional
            Initial interior (scalar or N×N, top row first). Defaults to
            ``seed`` from the config, or 0 (the id of a single worker).
        """
        N = self.config.N
        if initial is None:
            initial = 0.0 if self.config.seed is None else self.config.seed
        uold = create_grid_2d(N, value=initial, boundary=self.boundary)
        u = uold.copy()

        converged = False
        iteration = 0
        global_error = float("inf")
        compute_times = []
        residual_history = []
        t_start = time.perf_counter()

        # Main iteration loop
        while self.config.max_iter is None or iteration < self.config.max_iter:
            iteration += 1

            # Jacobi step
            t_comp_start = time.perf_counter()
            error_sum = self._step(uold, u)
            t_comp_end = time.perf_counter()
            compute_times.append(t_comp_end - t_comp_start)
            uold, u = u, uold

            global_error, converged = combine_and_decide(error_sum, self.config.precision)
            residual_history.append(global_error)
            logger.debug("Iteration %d - error = %e", iteration, global_error)

            # Check convergence
            if converged:
                if self.verbose:
                    logger.info("Converged at iteration %d (error: %.2e)", iteration, global_error)
                break

        elapsed_time = time.perf_counter() - t_start

        if not converged:
            logger.warning("Did not converge after %d iterations (error: %.2e)", iteration, global_error)

        # uold holds the latest values after the final swap
        grid = uold if include_boundary else uold[1:-1, 1:-1]
        u_global = grid[::-1].copy()

        # Compute error
        final_error = 0.0
        if u_true is not None:
            final_error = float(np.linalg.norm(u_global - u_true))
            if self.verbose:
                logger.info("Final error vs reference solution: %.2e", final_error)

        global_results = GlobalResults(
            iterations=iteration,
            residual_history=residual_history,
            converged=converged,
            final_residual=global_error,
            final_error=final_error,
            wall_time_min=elapsed_time,
            wall_time_max=elapsed_time,
            wall_time_avg=elapsed_time,
            compute_time=sum(compute_times),
            halo_time=0.0,
            mpi_comm_time=0.0,
        )

        per_rank_results = PerRankResults(
            mpi_rank=0,
            hostname=socket.gethostname(),
            wall_time=elapsed_time,
            compute_time=sum(compute_times),
            halo_time=0.0,
            mpi_comm_time=0.0,
        )

        return u_global, self.config, global_results, per_rank_results
