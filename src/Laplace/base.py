"""Base class for Jacobi solvers of the 2D Laplace problem."""

from __future__ import annotations

import logging
import socket
import time

import numpy as np

from .assembly import gather_tiles
from .convergence import ConvergenceEngine
from .datastructures import RuntimeConfig, GlobalResults, PerRankResults
from .errors import AllocationError, ConfigurationError, RunCancelledError
from .kernels import select_kernel
from .problems import as_boundary
from .tile import LocalTile
from .topology import ProcessTopology
from .transport import HaloTransport, create_mpi_transport

logger = logging.getLogger(__name__)


class JacobiSolver:
    """Base class for all Jacobi solvers.

    Provides shared bookkeeping and the per-worker solve loop. Subclasses set
    ``method`` and ``decomposition`` and override ``_exchange_boundaries`` to
    implement their halo exchange.

    Parameters
    ----------
    transport : HaloTransport, optional
        Communication backend (default: MPI over COMM_WORLD)
    boundary : float or callable, optional
        Boundary condition (default: ``boundary_value`` from the config)
    verbose : bool, default False
        Log convergence info (rank 0 only)
    **kwargs
        Fields of :class:`RuntimeConfig` (N, precision, seed, max_iter, ...)
    """

    method = ""
    decomposition: str | None = None

    def __init__(self, transport: HaloTransport | None = None, boundary=None, **kwargs):
        # Extract verbose before passing to RuntimeConfig
        self.verbose = kwargs.pop('verbose', False)
        self.config = RuntimeConfig(**kwargs)
        self.config.method = self.method
        self.boundary = as_boundary(self.config.boundary_value if boundary is None else boundary)
        self._step = select_kernel(self.config.use_numba)

        if self.config.N < 1:
            raise ConfigurationError(f"Grid size N must be positive, got {self.config.N}")

        if self.decomposition is None:
            self.transport = None
            self.rank, self.size = 0, 1
            self.config.transport = "none"
            self.topology = None
            return

        self.transport = transport if transport is not None else create_mpi_transport(self.config.mpi_strategy)
        self.rank = self.transport.rank
        self.size = self.transport.size
        self.config.workers = self.size
        self.config.transport = self.transport.get_name()
        # Every worker validates the same inputs, so all of them fail together
        self.topology = ProcessTopology.build(self.rank, self.size, self.config.N, self.decomposition)

        if self.verbose and self.rank == 0:
            logger.info(
                "Using %s kernel with %d workers (%s, topology: %dx%d)",
                'numba' if self.config.use_numba else 'numpy',
                self.size,
                self.config.transport,
                self.topology.row_cuts,
                self.topology.col_cuts,
            )

    def _exchange_boundaries(self, transport: HaloTransport, tile: LocalTile) -> None:
        raise NotImplementedError("Subclass must implement _exchange_boundaries()")

    def warmup(self, N=10):
        """Warmup the solver (trigger JIT compilation)."""
        u = np.random.randn(N + 2, N + 2)
        unew = u.copy()
        for _ in range(5):
            self._step(u, unew)
            u, unew = unew, u

    def solve(self, include_boundary=False, u_true=None):
        """Run the distributed Jacobi iteration on this worker.

        Parameters
        ----------
        include_boundary : bool, default False
            Pad the assembled grid with the boundary ring
        u_true : np.ndarray, optional
            Reference grid (same orientation and shape as the output) used to
            report ``final_error`` on the collector

        Returns
        -------
        u_global : np.ndarray or None
            Assembled grid in output orientation (rank 0), None elsewhere
        runtime_config : RuntimeConfig
        global_results : GlobalResults
        per_rank_results : PerRankResults
        """
        t_start = time.perf_counter()
        tile = self._allocate_tile()

        engine = ConvergenceEngine(
            tile,
            self.transport,
            step=self._step,
            exchange=self._exchange_boundaries,
            precision=self.config.precision,
            max_iter=self.config.max_iter,
        )

        # First refresh of the ghosts facing live neighbours
        t0 = time.perf_counter()
        self._exchange_boundaries(self.transport, tile)
        engine.halo_times.append(time.perf_counter() - t0)

        state = engine.run()
        elapsed_time = time.perf_counter() - t_start

        if state.converged and self.verbose and self.rank == 0:
            logger.info("Converged at iteration %d (error: %.2e)", state.iteration, state.global_error)

        # Gather solution
        u_global = gather_tiles(
            self.transport, tile, boundary=self.boundary if include_boundary else None
        )

        per_rank_results = PerRankResults(
            mpi_rank=self.rank,
            hostname=socket.gethostname(),
            wall_time=elapsed_time,
            compute_time=sum(engine.compute_times),
            halo_time=sum(engine.halo_times),
            mpi_comm_time=sum(engine.comm_times),
        )
        all_perrank = self.transport.gather(per_rank_results, root=0)

        if self.rank == 0:
            global_results = self._build_global_results(
                state, engine.residual_history, all_perrank, u_global, u_true
            )
        else:
            global_results = GlobalResults()

        # Broadcast to all ranks
        global_results = self.transport.bcast(global_results, root=0)
        runtime_config = self.transport.bcast(self.config, root=0)

        return u_global, runtime_config, global_results, per_rank_results

    # ============================================================================
    # Internal methods
    # ============================================================================

    def _allocate_tile(self) -> LocalTile:
        """Allocate this worker's tile; if any worker fails, every worker raises."""
        failure = None
        tile = None
        try:
            tile = LocalTile.allocate(self.topology, seed=self.config.seed, boundary=self.boundary)
        except AllocationError as exc:
            failure = exc
        _, aborted = self.transport.allreduce_sum(0.0, failed=failure is not None)
        if failure is not None:
            raise failure
        if aborted:
            raise RunCancelledError(f"Worker {self.rank}: a peer could not allocate its tile")
        return tile

    def _build_global_results(self, state, residual_history, all_perrank, u_global, u_true):
        final_error = 0.0
        if u_true is not None and u_global is not None:
            final_error = float(np.linalg.norm(u_global - u_true))
            if self.verbose:
                logger.info("Final error vs reference solution: %.2e", final_error)

        wall_times = [pr.wall_time for pr in all_perrank]
        return GlobalResults(
            iterations=state.iteration,
            residual_history=list(residual_history),
            converged=state.converged,
            final_residual=state.global_error,
            final_error=final_error,
            wall_time_min=min(wall_times),
            wall_time_max=max(wall_times),
            wall_time_avg=sum(wall_times) / len(wall_times),
            compute_time=sum(pr.compute_time for pr in all_perrank),
            halo_time=sum(pr.halo_time for pr in all_perrank),
            mpi_comm_time=sum(pr.mpi_comm_time for pr in all_perrank),
        )

    def print_summary(self, global_results: GlobalResults):
        """Log a summary of the solver results."""
        logger.info(
            "Wall time min/max/avg = %.6f / %.6f / %.6f s",
            global_results.wall_time_min,
            global_results.wall_time_max,
            global_results.wall_time_avg,
        )
        logger.info("Compute time = %.6f s", global_results.compute_time)
        logger.info("Halo exchange time = %.6f s", global_results.halo_time)
        logger.info("MPI comm time = %.6f s", global_results.mpi_comm_time)
        logger.info("Iterations = %d", global_results.iterations)
        if global_results.converged:
            logger.info("Converged within precision %s", self.config.precision)
        if global_results.final_error > 0:
            logger.info("Final error = %.6e", global_results.final_error)
