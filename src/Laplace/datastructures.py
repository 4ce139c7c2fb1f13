"""Data structures for solver configuration and results."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class RuntimeConfig:
    """Global runtime configuration (same for all ranks)."""
    # Problem
    N: int = 0
    boundary_value: float = -1.0
    seed: float | None = None  # None: each worker seeds its tile with its id

    # Specs
    workers: int = 1
    method: str = ""
    transport: str = "mpi"
    mpi_strategy: str = "mpi_datatype"
    timeout: float | None = None

    # Jacobi Solver
    use_numba: bool = False
    precision: float = 1.0e-2
    max_iter: int | None = None


@dataclass
class IterationState:
    """Convergence state after one completed iteration."""
    iteration: int = 0
    local_error_sum: float = 0.0
    global_error_sum: float = float("inf")
    global_error: float = float("inf")
    converged: bool = False


@dataclass
class GlobalResults:
    """Global solver results (same for all ranks)."""
    # Convergence info
    iterations: int = 0
    residual_history: list[float] = field(default_factory=list)
    converged: bool = False
    final_residual: float = 0.0
    final_error: float = 0.0
    # Global timings
    wall_time_min: float = 0.0
    wall_time_max: float = 0.0
    wall_time_avg: float = 0.0
    compute_time: float = 0.0
    halo_time: float = 0.0
    mpi_comm_time: float = 0.0


@dataclass
class PerRankResults:
    """Per-rank performance results."""
    mpi_rank: int = 0
    hostname: str = ""
    wall_time: float = 0.0
    compute_time: float = 0.0
    halo_time: float = 0.0
    mpi_comm_time: float = 0.0
