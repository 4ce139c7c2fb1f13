"""Solve the Laplace problem with strip or block decomposition.

Run with MPI ranks:
    mpiexec -n 4 python Experiments/decomposition/compute_decomposition.py -N 12 --method block
or with threads in a single process:
    python Experiments/decomposition/compute_decomposition.py -N 12 --transport threads --workers 4
"""

import logging
import sys

from mpi4py import MPI

from utils import cli, io
from Laplace import LaplaceError, run_mpi, run_threaded

# Create the argument parser using shared utility
parser = cli.create_parser(
    methods=["strip", "block"],
    default_method="strip",
    description="Distributed Laplace problem solver",
)

# Grab options!
options = parser.parse_args()
N: int = options.N
method: str = options.method

logging.basicConfig(
    level=logging.DEBUG if options.verbose else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("compute_decomposition")

solver_kwargs = dict(
    N=N,
    precision=options.precision,
    max_iter=options.max_iter,
    boundary_value=options.boundary,
    seed=options.seed,
    use_numba=options.numba,
    mpi_strategy=options.mpi_strategy,
    verbose=True,
)

try:
    if options.transport == "threads":
        results = run_threaded(method, options.workers, all_ranks=True, **solver_kwargs)
        u, runtime_config, global_results, _ = results[0]
        all_per_rank_results = [r[3] for r in results]
        rank = 0
    else:
        comm = MPI.COMM_WORLD
        rank = comm.Get_rank()
        u, runtime_config, global_results, per_rank_results = run_mpi(method, **solver_kwargs)
        all_per_rank_results = comm.gather(per_rank_results, root=0)
except LaplaceError as exc:
    logger.error("Run failed: %s", exc)
    sys.exit(1)

# Only rank 0 reports and saves
if rank == 0:
    logger.info("Wall time min/max/avg = %.6f / %.6f / %.6f s",
                global_results.wall_time_min, global_results.wall_time_max, global_results.wall_time_avg)
    logger.info("Iterations = %d, final error = %.3e", global_results.iterations, global_results.final_residual)

    # Get data directory (automatically mirrors Experiments/ structure)
    data_dir = io.get_data_dir()

    if options.output:
        base_name = options.output.replace(".txt", "").replace(".parquet", "")
    else:
        base_name = f"run_N{N}_iter{global_results.iterations}_{method}"

    grid_file = io.save_grid_text(u, data_dir / f"{base_name}_grid.txt")
    logger.info("Grid saved to: %s", grid_file)

    for name, path in io.save_run_tables(
        data_dir, base_name, runtime_config, global_results, all_per_rank_results
    ).items():
        logger.info("%s saved to: %s", name.capitalize(), path)
