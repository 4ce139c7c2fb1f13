"""I/O utilities for saving and loading solver output."""

from __future__ import annotations

import inspect
from dataclasses import asdict
from pathlib import Path

import numpy as np
import pandas as pd


def save_grid_text(grid: np.ndarray, output_path: Path | str, fmt: str = "%f") -> Path:
    """Write the assembled grid as text, one row per line.

    Rows are written in the order given, so a grid in output orientation puts
    the bottom row of the domain on the first line. Values are separated by
    single spaces.

    Parameters
    ----------
    grid : np.ndarray
        2D grid to save
    output_path : Path or str
        Destination text file
    fmt : str, default "%f"
        Fixed-precision number format

    Returns
    -------
    Path
        The written file

    """
    output_path = Path(output_path)
    grid = np.asarray(grid)
    if grid.ndim != 2:
        raise ValueError(f"Expected a 2D grid, got shape {grid.shape}")
    np.savetxt(output_path, grid, fmt=fmt, delimiter=" ")
    return output_path


def load_grid_text(path: Path | str) -> np.ndarray:
    """Load a grid written by :func:`save_grid_text`."""
    return np.loadtxt(Path(path), ndmin=2)


def results_to_frames(runtime_config, global_results, all_per_rank_results) -> dict[str, pd.DataFrame]:
    """Convert solver dataclasses into one DataFrame per table."""
    return {
        "config": pd.DataFrame([asdict(runtime_config)]),
        "global": pd.DataFrame([asdict(global_results)]),
        "perrank": pd.DataFrame([asdict(pr) for pr in all_per_rank_results]),
    }


def save_run_tables(
    data_dir: Path | str,
    base_name: str,
    runtime_config,
    global_results,
    all_per_rank_results,
) -> dict[str, Path]:
    """Save config, global results and per-rank results as parquet files.

    Parameters
    ----------
    data_dir : Path or str
        Directory to save results
    base_name : str
        Common prefix, e.g. ``run_N12_iter148_strip``
    runtime_config : RuntimeConfig
    global_results : GlobalResults
    all_per_rank_results : list of PerRankResults

    Returns
    -------
    dict
        Table name → written file

    """
    data_dir = ensure_output_dir(data_dir)
    written = {}
    for name, df in results_to_frames(runtime_config, global_results, all_per_rank_results).items():
        path = data_dir / f"{base_name}_{name}.parquet"
        df.to_parquet(path, index=False)
        written[name] = path
    return written


def ensure_output_dir(path: Path | str) -> Path:
    """Ensure output directory exists, creating it if necessary.

    Parameters
    ----------
    path : Path or str
        Directory path to create

    Returns
    -------
    Path
        The created/existing directory path

    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_repo_root() -> Path:
    """Get repository root directory.

    Returns the repository root by detecting the presence of pyproject.toml.
    Works from any subdirectory of the repository.

    Returns
    -------
    Path
        Absolute path to the repository root

    """
    # Start from this file's location
    current = Path(__file__).resolve().parent

    # Walk up until we find pyproject.toml (marks repo root)
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent

    # Fallback: assume two levels up from utils
    return current.parent.parent


def get_experiment_name(caller_file: Path | str | None = None) -> str:
    """Get experiment name from the calling script's location.

    Extracts the experiment name from the path relative to Experiments/.
    For example:
    - Experiments/decomposition/compute_decomposition.py → "decomposition"
    - Experiments/sequential/compute_sequential.py → "sequential"

    Parameters
    ----------
    caller_file : Path or str, optional
        Path to the calling file. If None, automatically detects the caller.

    Returns
    -------
    str
        Experiment name (relative path from Experiments/)

    Raises
    ------
    ValueError
        If the calling file is not in an Experiments/ subdirectory

    """
    if caller_file is None:
        # Go up 2 frames: this function -> get_data_dir -> actual caller
        frame = inspect.currentframe()
        if frame is None or frame.f_back is None or frame.f_back.f_back is None:
            raise RuntimeError("Cannot detect caller file")
        caller_file = Path(frame.f_back.f_back.f_globals["__file__"])
    else:
        caller_file = Path(caller_file)

    caller_file = caller_file.resolve()

    experiments_idx = None
    for i, part in enumerate(caller_file.parts):
        if part == "Experiments":
            experiments_idx = i
            break

    if experiments_idx is None:
        raise ValueError(
            f"File {caller_file} is not in an Experiments/ subdirectory. "
            "This utility is designed for scripts in Experiments/*/"
        )

    experiment_parts = caller_file.parts[experiments_idx + 1 : -1]

    if not experiment_parts:
        raise ValueError(
            f"File {caller_file} is directly in Experiments/. "
            "Scripts should be in a subdirectory (e.g., Experiments/decomposition/)"
        )

    return "/".join(experiment_parts)


def get_data_dir(caller_file: Path | str | None = None, create: bool = True) -> Path:
    """Get data directory for the calling experiment.

    Mirrors the calling script's location in Experiments/, e.g.
    Experiments/decomposition/compute_decomposition.py → repo_root/data/decomposition/.

    Parameters
    ----------
    caller_file : Path or str, optional
        Path to the calling file. If None, automatically detects the caller.
    create : bool, default True
        Whether to create the directory if it doesn't exist

    Returns
    -------
    Path
        Data directory path

    """
    experiment_name = get_experiment_name(caller_file)
    data_dir = get_repo_root() / "data" / experiment_name

    if create:
        data_dir.mkdir(parents=True, exist_ok=True)

    return data_dir
