"""Utility modules for command-line parsing and I/O."""

from .cli import create_parser
from .io import (
    ensure_output_dir,
    get_data_dir,
    get_experiment_name,
    get_repo_root,
    load_grid_text,
    results_to_frames,
    save_grid_text,
    save_run_tables,
)

__all__ = [
    # CLI
    "create_parser",
    # I/O
    "ensure_output_dir",
    "get_data_dir",
    "get_experiment_name",
    "get_repo_root",
    "load_grid_text",
    "results_to_frames",
    "save_grid_text",
    "save_run_tables",
]
