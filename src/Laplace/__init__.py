"""Parallel Jacobi relaxation for the 2D Laplace equation."""

from .base import JacobiSolver
from .datastructures import RuntimeConfig, IterationState, GlobalResults, PerRankResults
from .errors import (
    LaplaceError,
    ConfigurationError,
    AllocationError,
    TopologyMismatchError,
    RunCancelledError,
)
from .kernels import jacobi_sweep_numpy, jacobi_sweep_numba
from .topology import Direction, ProcessTopology
from .tile import LocalTile
from .transport import HaloTransport, MPITransport, ThreadGroup, ThreadTransport, create_mpi_transport
from .convergence import ConvergenceEngine, combine_and_decide
from .assembly import assemble, gather_tiles
from .sequential import SequentialJacobi
from .strip import StripJacobi
from .block import BlockJacobi
from .launch import create_solver_class, run_mpi, run_threaded
from .problems import ConstantBoundary, LinearBoundary, create_grid_2d, worker_seed_grid

__all__ = [
    "JacobiSolver",
    "RuntimeConfig",
    "IterationState",
    "GlobalResults",
    "PerRankResults",
    "LaplaceError",
    "ConfigurationError",
    "AllocationError",
    "TopologyMismatchError",
    "RunCancelledError",
    "jacobi_sweep_numpy",
    "jacobi_sweep_numba",
    "Direction",
    "ProcessTopology",
    "LocalTile",
    "HaloTransport",
    "MPITransport",
    "ThreadGroup",
    "ThreadTransport",
    "create_mpi_transport",
    "ConvergenceEngine",
    "combine_and_decide",
    "assemble",
    "gather_tiles",
    "SequentialJacobi",
    "StripJacobi",
    "BlockJacobi",
    "create_solver_class",
    "run_mpi",
    "run_threaded",
    "ConstantBoundary",
    "LinearBoundary",
    "create_grid_2d",
    "worker_seed_grid",
]
