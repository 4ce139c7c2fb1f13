"""Ghost-cell (halo) exchange between neighbouring tiles.

Row phase: the first owned row goes up, the last owned row goes down.
Column phase (block decomposition only): the last owned column goes right,
the first owned column goes left. Columns are strided views of the tile
buffer. Corner ghost cells are not part of either phase.

Each direction pair is one ``sendrecv`` call, paired so that worker k talks to
its up neighbour before its down neighbour. The chain of calls resolves from
the top edge downwards (and from the left edge rightwards), so no two
neighbours ever wait on each other.
"""

from __future__ import annotations

from .tile import LocalTile
from .topology import Direction
from .transport import HaloTransport

# Message tags, by direction of travel
TAG_UP = 1
TAG_DOWN = 2
TAG_RIGHT = 3
TAG_LEFT = 4


def _swap(transport: HaloTransport, tile: LocalTile, direction: Direction, sendtag: int, recvtag: int) -> None:
    neighbor = tile.topology.require(direction)
    transport.sendrecv(
        sendbuf=tile.edge(direction),
        dest=neighbor,
        sendtag=sendtag,
        recvbuf=tile.ghost(direction),
        source=neighbor,
        recvtag=recvtag,
    )


def exchange_rows(transport: HaloTransport, tile: LocalTile) -> None:
    """Refresh the top and bottom ghost rows from the up/down neighbours."""
    topology = tile.topology
    if topology.up is not None:
        _swap(transport, tile, Direction.UP, sendtag=TAG_UP, recvtag=TAG_DOWN)
    if topology.down is not None:
        _swap(transport, tile, Direction.DOWN, sendtag=TAG_DOWN, recvtag=TAG_UP)


def exchange_columns(transport: HaloTransport, tile: LocalTile) -> None:
    """Refresh the left and right ghost columns from the left/right neighbours."""
    topology = tile.topology
    if topology.left is not None:
        _swap(transport, tile, Direction.LEFT, sendtag=TAG_LEFT, recvtag=TAG_RIGHT)
    if topology.right is not None:
        _swap(transport, tile, Direction.RIGHT, sendtag=TAG_RIGHT, recvtag=TAG_LEFT)


def exchange_all(transport: HaloTransport, tile: LocalTile) -> None:
    """Row phase, then column phase. Both complete before this returns."""
    exchange_rows(transport, tile)
    exchange_columns(transport, tile)
