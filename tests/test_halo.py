"""Tests for the ghost-cell exchange protocol, run over worker threads."""

from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest

from Laplace import LocalTile, ProcessTopology, ThreadGroup
from Laplace.halo import exchange_all, exchange_rows


def _make_tiles(worker_count, n, mode):
    tiles = []
    for k in range(worker_count):
        tile = LocalTile.allocate(ProcessTopology.build(k, worker_count, n, mode), boundary=-1.0)
        # Distinct value in every interior cell: 1000 * worker + 10 * row + col
        rows, cols = np.indices(tile.interior.shape)
        tile.interior[:, :] = 1000 * k + 10 * rows + cols
        tiles.append(tile)
    return tiles


def _exchange(tiles, exchange):
    group = ThreadGroup(len(tiles), timeout=10)
    with ThreadPoolExecutor(max_workers=len(tiles)) as pool:
        futures = [pool.submit(exchange, t, tile) for t, tile in zip(group.transports(), tiles)]
        for f in futures:
            f.result(timeout=30)


def test_strip_rows_refreshed():
    tiles = _make_tiles(3, 6, "strip")
    _exchange(tiles, exchange_rows)
    top, middle, bottom = tiles

    np.testing.assert_array_equal(middle.ghost("up"), top.edge("down"))
    np.testing.assert_array_equal(middle.ghost("down"), bottom.edge("up"))
    np.testing.assert_array_equal(top.ghost("down"), middle.edge("up"))
    np.testing.assert_array_equal(bottom.ghost("up"), middle.edge("down"))


def test_strip_domain_edges_untouched():
    tiles = _make_tiles(3, 6, "strip")
    _exchange(tiles, exchange_rows)

    assert np.all(tiles[0].array[0, :] == -1.0)
    assert np.all(tiles[-1].array[-1, :] == -1.0)
    for tile in tiles:
        assert np.all(tile.array[:, 0] == -1.0)
        assert np.all(tile.array[:, -1] == -1.0)


def test_block_rows_and_columns_refreshed():
    tiles = _make_tiles(4, 8, "block")
    _exchange(tiles, exchange_all)
    t0, t1, t2, t3 = tiles

    np.testing.assert_array_equal(t0.ghost("right"), t1.edge("left"))
    np.testing.assert_array_equal(t1.ghost("left"), t0.edge("right"))
    np.testing.assert_array_equal(t0.ghost("down"), t2.edge("up"))
    np.testing.assert_array_equal(t2.ghost("up"), t0.edge("down"))
    np.testing.assert_array_equal(t3.ghost("up"), t1.edge("down"))
    np.testing.assert_array_equal(t3.ghost("left"), t2.edge("right"))
    np.testing.assert_array_equal(t1.ghost("down"), t3.edge("up"))
    np.testing.assert_array_equal(t2.ghost("right"), t3.edge("left"))


def test_block_domain_edges_and_corners_untouched():
    tiles = _make_tiles(4, 8, "block")
    _exchange(tiles, exchange_all)
    t0, t1, t2, t3 = tiles

    assert np.all(t0.ghost("up") == -1.0) and np.all(t0.ghost("left") == -1.0)
    assert np.all(t3.ghost("down") == -1.0) and np.all(t3.ghost("right") == -1.0)
    # Corner ghosts are never exchanged
    for tile in tiles:
        corners = tile.array[[0, 0, -1, -1], [0, -1, 0, -1]]
        assert np.all(corners == -1.0)


@pytest.mark.parametrize("worker_count, n", [(4, 8), (9, 9)])
def test_ghosts_match_global_neighbors(worker_count, n):
    """After one exchange every ghost equals the adjacent cell of the global grid."""
    tiles = _make_tiles(worker_count, n, "block")
    global_grid = np.full((n + 2, n + 2), -1.0)
    for tile in tiles:
        rows, cols = tile.topology.interior_slices
        global_grid[rows.start + 1 : rows.stop + 1, cols.start + 1 : cols.stop + 1] = tile.interior

    _exchange(tiles, exchange_all)

    for tile in tiles:
        rows, cols = tile.topology.interior_slices
        window = global_grid[rows.start : rows.stop + 2, cols.start : cols.stop + 2]
        np.testing.assert_array_equal(tile.array[0, 1:-1], window[0, 1:-1])
        np.testing.assert_array_equal(tile.array[-1, 1:-1], window[-1, 1:-1])
        np.testing.assert_array_equal(tile.array[1:-1, 0], window[1:-1, 0])
        np.testing.assert_array_equal(tile.array[1:-1, -1], window[1:-1, -1])
