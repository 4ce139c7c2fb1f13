"""End-to-end tests of the strip, block and sequential solvers."""

import numpy as np
import pytest
from mpi4py import MPI

import Laplace.launch as launch
from Laplace import (
    ConfigurationError,
    LinearBoundary,
    SequentialJacobi,
    run_mpi,
    run_threaded,
    worker_seed_grid,
)


@pytest.mark.parametrize(
    "method, workers, N",
    [
        ("strip", 1, 6),
        ("strip", 3, 12),
        ("strip", 4, 12),
        ("block", 1, 6),
        ("block", 4, 12),
        ("block", 9, 12),
    ],
)
def test_output_shape(method, workers, N):
    u, config, global_results, _ = run_threaded(method, workers, N=N, timeout=30)

    assert u.shape == (N, N)
    assert config.workers == workers
    assert global_results.converged


@pytest.mark.parametrize("method, cuts", [("strip", (4, 1)), ("block", (2, 2))])
def test_matches_sequential_reference_exactly(method, cuts):
    """Same initial grid, same trajectory: halo exchange adds no approximation."""
    u, _, results, _ = run_threaded(method, 4, N=12, precision=1e-2, timeout=30)
    u_ref, _, ref_results, _ = SequentialJacobi(N=12, precision=1e-2).solve(
        initial=worker_seed_grid(12, *cuts)
    )

    assert results.iterations == ref_results.iterations
    np.testing.assert_allclose(u, u_ref, rtol=0, atol=1e-10)
    np.testing.assert_allclose(results.residual_history, ref_results.residual_history, rtol=1e-9)


def test_decompositions_agree():
    """Strip, block and a single worker all reach the same discrete solution."""
    boundary = LinearBoundary(top=1.0, bottom=-1.0)
    kwargs = dict(N=12, precision=1e-8, boundary=boundary, timeout=60)
    u_strip, _, _, _ = run_threaded("strip", 4, **kwargs)
    u_block, _, _, _ = run_threaded("block", 4, **kwargs)
    u_single, _, _, _ = run_threaded("strip", 1, **kwargs)

    np.testing.assert_allclose(u_strip, u_block, rtol=0, atol=1e-5)
    np.testing.assert_allclose(u_strip, u_single, rtol=0, atol=1e-5)
    # A boundary linear in the row index is harmonic, so the solution is the
    # same linear profile; output row r is internal row N-1-r
    N = 12
    expected = 1.0 - 2.0 * (N - np.arange(N)) / (N + 1)
    np.testing.assert_allclose(u_block, np.repeat(expected[:, None], N, axis=1), rtol=0, atol=1e-5)


def test_single_worker_is_sequential():
    u, _, results, per_rank = run_threaded("strip", 1, N=8, timeout=30)
    u_ref, _, ref_results, _ = SequentialJacobi(N=8).solve()

    assert results.iterations == ref_results.iterations
    np.testing.assert_allclose(u, u_ref, rtol=0, atol=1e-12)


@pytest.mark.parametrize("method", ["strip", "block"])
def test_boundary_invariant(method):
    u, _, _, _ = run_threaded(method, 4, N=12, timeout=30, solve_kwargs={"include_boundary": True})

    assert u.shape == (14, 14)
    ring = np.concatenate([u[0], u[-1], u[:, 0], u[:, -1]])
    assert np.all(ring == -1.0)


def test_configurable_boundary_function():
    boundary = LinearBoundary(top=1.0, bottom=-1.0)
    u, _, results, _ = run_threaded(
        "block", 4, N=8, precision=1e-4, boundary=boundary, timeout=30, solve_kwargs={"include_boundary": True}
    )
    u_ref, _, _, _ = SequentialJacobi(N=8, precision=1e-4, boundary=boundary).solve(
        include_boundary=True, initial=worker_seed_grid(8, 2, 2)
    )

    np.testing.assert_allclose(u, u_ref, rtol=0, atol=1e-10)
    # Output row 0 is the bottom of the domain
    np.testing.assert_allclose(u[0], -1.0)
    np.testing.assert_allclose(u[-1], 1.0)
    assert results.converged


def test_end_to_end_example():
    """N=12, strip, 4 workers, seed = worker id, boundary -1."""
    u, config, results, _ = run_threaded("strip", 4, N=12, boundary_value=-1.0, timeout=30)
    u_ref, _, _, _ = SequentialJacobi(N=12).solve(initial=worker_seed_grid(12, 4, 1))

    assert config.method == "strip_jacobi"
    assert results.converged and results.final_residual < 1e-2
    np.testing.assert_allclose(u, u_ref, atol=1e-10)
    # Values relax from the seeds (0..3) towards the -1 boundary
    assert u.min() >= -1.0 - 1e-12 and u.max() < 3.0


def test_u_true_reports_final_error():
    u_ref, _, _, _ = SequentialJacobi(N=12).solve(initial=worker_seed_grid(12, 4, 1))
    _, _, results, _ = run_threaded("strip", 4, N=12, timeout=30, solve_kwargs={"u_true": u_ref})

    assert results.final_error < 1e-8


def test_numba_kernel_gives_same_grid():
    u_np, _, _, _ = run_threaded("strip", 2, N=8, timeout=60)
    u_nb, _, _, _ = run_threaded("strip", 2, N=8, use_numba=True, timeout=60)

    np.testing.assert_allclose(u_nb, u_np, rtol=0, atol=1e-12)


def test_timings_reported_for_all_workers():
    results = run_threaded("block", 4, N=8, timeout=30, all_ranks=True)
    _, _, global_results, _ = results[0]

    assert [r[3].mpi_rank for r in results] == [0, 1, 2, 3]
    assert all(r[0] is None for r in results[1:])
    assert global_results.wall_time_min <= global_results.wall_time_avg <= global_results.wall_time_max
    # Every worker sees the collector's results
    assert all(r[2].iterations == global_results.iterations for r in results)


@pytest.mark.parametrize("method, workers, N", [("block", 3, 12), ("block", 4, 9), ("strip", 5, 12)])
def test_configuration_error(method, workers, N):
    with pytest.raises(ConfigurationError):
        run_threaded(method, workers, N=N, timeout=10)


@pytest.mark.parametrize("N", [0, -3])
def test_sequential_rejects_empty_grid(N):
    with pytest.raises(ConfigurationError):
        SequentialJacobi(N=N)


def test_sequential_requires_grid_size():
    with pytest.raises(ConfigurationError):
        SequentialJacobi()


class _RecordingTransport:
    """Stands in for a two-rank MPI transport and records aborts."""

    rank = 0
    size = 2

    def __init__(self):
        self.cancelled = False
        self.freed = False

    def cancel(self):
        self.cancelled = True

    def free(self):
        self.freed = True


def test_mpi_configuration_error_exits_without_abort(monkeypatch):
    transport = _RecordingTransport()
    monkeypatch.setattr(launch, "create_mpi_transport", lambda *args, **kwargs: transport)

    with pytest.raises(ConfigurationError):
        run_mpi("strip", N=0)
    assert not transport.cancelled
    assert transport.freed


def test_mpi_other_errors_abort(monkeypatch):
    transport = _RecordingTransport()
    monkeypatch.setattr(launch, "create_mpi_transport", lambda *args, **kwargs: transport)

    with pytest.raises(TypeError):
        run_mpi("strip", N=12, not_an_option=True)
    assert transport.cancelled
    assert transport.freed


def test_unknown_method():
    with pytest.raises(ValueError):
        run_threaded("diagonal", 4, N=12)


def test_mpi_single_rank():
    u, config, results, per_rank = run_mpi("block", comm=MPI.COMM_SELF, N=6)
    u_ref, _, ref_results, _ = SequentialJacobi(N=6).solve()

    assert config.transport == "mpi/mpi_datatype"
    assert results.iterations == ref_results.iterations
    np.testing.assert_allclose(u, u_ref, rtol=0, atol=1e-12)
