"""Command-line interface utilities for Laplace solver experiments.

This module provides shared argument parsing functionality for all solver implementations.
"""

from argparse import ArgumentParser
from typing import List


def create_parser(
    methods: List[str],
    default_method: str | None = None,
    description: str = "Laplace problem solver",
    distributed: bool = True,
) -> ArgumentParser:
    """Create argument parser for Laplace solver experiments.

    Parameters
    ----------
    methods : List[str]
        List of available solver methods
    default_method : str, optional
        Default method to use (defaults to first method in list)
    description : str
        Parser description
    distributed : bool, default True
        Add the worker and transport options (--workers, --transport,
        --mpi-strategy); leave out for single-process solvers

    Returns
    -------
    ArgumentParser
        Configured argument parser

    Examples
    --------
    >>> # For the strip solver
    >>> parser = create_parser(["strip"], description="Strip-decomposed Laplace solver")
    >>> options = parser.parse_args()

    >>> # For both decompositions
    >>> parser = create_parser(["strip", "block"])
    >>> options = parser.parse_args(["-N", "12", "--method", "block"])
    """
    if default_method is None:
        default_method = methods[0]

    parser = ArgumentParser(description=description)

    # Grid size
    parser.add_argument(
        "-N",
        type=int,
        default=12,
        help="Number of interior points along each side of the square grid",
    )

    # Workers
    if distributed:
        _add_worker_options(parser)

    # Iteration control
    parser.add_argument(
        "--precision",
        type=float,
        default=1.0e-2,
        help="Stop once the global error sqrt(sum of squared updates) drops below this value.",
    )
    parser.add_argument(
        "--max-iter",
        type=int,
        default=None,
        help="Optional cap on the number of iterations.",
    )

    # Problem
    parser.add_argument(
        "--boundary",
        type=float,
        default=-1.0,
        help="The fixed boundary value",
    )
    parser.add_argument(
        "--seed",
        type=float,
        default=None,
        help="Initial interior value (default: each worker starts from its own id)",
    )

    # Kernel
    parser.add_argument(
        "--numba",
        action="store_true",
        help="Use the numba-compiled sweep kernel",
    )

    # Output file
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Output filename for saving results (default: auto-generated based on N, iterations, and method)",
    )

    # Solver method
    parser.add_argument(
        "--method",
        choices=methods,
        default=default_method,
        help=f"The chosen decomposition (default: {default_method}).",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log every iteration",
    )

    return parser


def _add_worker_options(parser: ArgumentParser) -> None:
    """Options that only make sense for the decomposed solvers."""
    parser.add_argument(
        "--workers",
        type=int,
        default=4,
        help="Number of worker threads (ignored with --transport mpi, which uses the MPI size)",
    )
    parser.add_argument(
        "--transport",
        choices=["mpi", "threads"],
        default="mpi",
        help="Run workers as MPI ranks or as threads of this process (default: mpi).",
    )
    parser.add_argument(
        "--mpi-strategy",
        choices=["numpy_buffer", "mpi_datatype"],
        default="mpi_datatype",
        help="How strided columns are sent over MPI (default: mpi_datatype).",
    )
