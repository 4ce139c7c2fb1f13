"""Run a solver across a fixed set of workers.

- :func:`run_threaded` starts one OS thread per worker in this process and
  connects them through a :class:`ThreadGroup`.
- :func:`run_mpi` runs the current MPI rank (start the script with
  ``mpiexec -n P``).

Both return what ``solver.solve()`` returns on the collector (rank 0).
"""

from __future__ import annotations

import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait

from .block import BlockJacobi
from .errors import ConfigurationError, RunCancelledError
from .sequential import SequentialJacobi
from .strip import StripJacobi
from .transport import ThreadGroup, create_mpi_transport

logger = logging.getLogger(__name__)

SOLVERS = {
    "strip": StripJacobi,
    "block": BlockJacobi,
    "sequential": SequentialJacobi,
}


def create_solver_class(method: str):
    """Look up a solver class by method name ("strip", "block" or "sequential").

    Raises
    ------
    ValueError
        If method is not recognized
    """
    if method not in SOLVERS:
        raise ValueError(f"Unknown method '{method}'. Available methods: {list(SOLVERS.keys())}")
    return SOLVERS[method]


def _root_cause(errors: list[BaseException]) -> BaseException:
    """Prefer the error that caused the cancellation over the cancellations themselves."""
    for error in errors:
        if not isinstance(error, RunCancelledError):
            return error
    return errors[0]


def run_threaded(method: str, workers: int, solve_kwargs=None, timeout=None, all_ranks=False, **kwargs):
    """Run a distributed solver with one thread per worker.

    Parameters
    ----------
    method : str
        "strip" or "block"
    workers : int
        Number of worker threads
    solve_kwargs : dict, optional
        Keyword arguments for ``solve()`` (e.g. ``include_boundary``)
    timeout : float, optional
        Seconds a worker may wait on a peer before the run is cancelled
    all_ranks : bool, default False
        Return the results of every worker instead of rank 0 only
    **kwargs
        Solver / RuntimeConfig keyword arguments (N, precision, boundary, ...)

    Returns
    -------
    tuple
        ``(u_global, runtime_config, global_results, per_rank_results)`` of rank 0,
        or a list of such tuples ordered by rank when ``all_ranks`` is set

    Raises
    ------
    LaplaceError
        The first non-cancellation error raised by any worker
    """
    solver_class = create_solver_class(method)
    solve_kwargs = solve_kwargs or {}
    group = ThreadGroup(workers, timeout=timeout)

    def worker(transport):
        try:
            solver = solver_class(transport=transport, timeout=timeout, **kwargs)
            return solver.solve(**solve_kwargs)
        except RunCancelledError:
            # Raised only once the whole group already knows the run is over
            raise
        except BaseException:
            # Unblock every peer waiting on this worker
            group.cancel()
            raise

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="laplace-worker") as pool:
        futures = [pool.submit(worker, transport) for transport in group.transports()]
        wait(futures, return_when=FIRST_EXCEPTION)
        wait(futures)

    errors = [f.exception() for f in futures if f.exception() is not None]
    if errors:
        error = _root_cause(errors)
        logger.error("Threaded %s run failed: %s", method, error)
        raise error

    if all_ranks:
        return [f.result() for f in futures]
    return futures[0].result()


def run_mpi(method: str, solve_kwargs=None, comm=None, **kwargs):
    """Run a distributed solver on the current MPI rank.

    An uncaught error on any rank aborts the whole MPI job, so peers never
    stay blocked on a rank that died. ConfigurationError is the exception:
    every rank raises it before any communication, so it propagates without
    an abort and each rank can exit cleanly.
    """
    solver_class = create_solver_class(method)
    transport = create_mpi_transport(kwargs.get("mpi_strategy", "mpi_datatype"), comm=comm)
    try:
        solver = solver_class(transport=transport, **kwargs)
        return solver.solve(**(solve_kwargs or {}))
    except ConfigurationError:
        # Every rank validates the same inputs and fails the same way
        raise
    except Exception as exc:
        if transport.size > 1:
            logger.error("Rank %d failed, aborting the run: %s", transport.rank, exc)
            transport.cancel()
        raise
    finally:
        transport.free()
