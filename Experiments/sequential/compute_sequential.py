"""Sequential reference solve of the Laplace problem."""

import logging
import sys

from utils import cli, io
from Laplace import LaplaceError, SequentialJacobi

# Create the argument parser using shared utility
parser = cli.create_parser(
    methods=["sequential"],
    description="Sequential Laplace problem solver",
    distributed=False,
)

# Grab options!
options = parser.parse_args()
N: int = options.N

logging.basicConfig(
    level=logging.DEBUG if options.verbose else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Create solver instance with all configuration
try:
    solver = SequentialJacobi(
        N=N,
        precision=options.precision,
        max_iter=options.max_iter,
        boundary_value=options.boundary,
        seed=options.seed,
        use_numba=options.numba,
        verbose=True,
    )
except LaplaceError as exc:
    logging.getLogger("compute_sequential").error("Run failed: %s", exc)
    sys.exit(1)

# Warmup for numba
if options.numba:
    solver.warmup(N=10)

# Run the solver
u, runtime_config, global_results, per_rank_results = solver.solve()

# Print summary
solver.print_summary(global_results)

# Save results
data_dir = io.get_data_dir()
base_name = options.output or f"run_N{N}_iter{global_results.iterations}_sequential"
io.save_grid_text(u, data_dir / f"{base_name}_grid.txt")
io.save_run_tables(data_dir, base_name, runtime_config, global_results, [per_rank_results])
