"""Process topology for strip and block domain decomposition."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

from .errors import ConfigurationError, TopologyMismatchError


class Direction(str, Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


DECOMPOSITIONS = ("strip", "block")


def is_perfect_square(number: int) -> bool:
    """Check if a non-negative integer is a perfect square."""
    if number < 0:
        return False
    root = math.isqrt(number)
    return root * root == number


@dataclass(frozen=True)
class ProcessTopology:
    """Position and neighbours of one worker in the processor grid.

    Workers are laid out row-major on a ``row_cuts × col_cuts`` grid: worker
    ``k`` sits at ``(k // col_cuts, k % col_cuts)``, worker 0 owns the top-left
    tile. Absent neighbours (domain edges) are ``None``.

    Use :meth:`build` rather than the constructor; it validates the inputs
    and derives the cut counts and neighbours.
    """

    worker_id: int
    worker_count: int
    n: int
    decomposition: str
    row_cuts: int
    col_cuts: int
    up: int | None
    down: int | None
    left: int | None
    right: int | None

    @classmethod
    def build(cls, worker_id: int, worker_count: int, n: int, decomposition: str = "strip") -> "ProcessTopology":
        """Derive the topology of ``worker_id``.

        Raises
        ------
        ConfigurationError
            If the worker count does not fit the decomposition or N is not
            evenly divisible by the number of cuts.
        """
        if worker_count < 1:
            raise ConfigurationError(f"Worker count must be at least 1, got {worker_count}")
        if n < 1:
            raise ConfigurationError(f"Grid size N must be positive, got {n}")
        if not 0 <= worker_id < worker_count:
            raise ConfigurationError(f"Worker id {worker_id} out of range for {worker_count} workers")

        if decomposition == "strip":
            row_cuts, col_cuts = worker_count, 1
        elif decomposition == "block":
            if not is_perfect_square(worker_count):
                raise ConfigurationError(
                    "Block decomposition cuts rows and columns the same number of times; "
                    f"the worker count must be a perfect square (4, 9, ...), got {worker_count}"
                )
            row_cuts = col_cuts = math.isqrt(worker_count)
        else:
            raise ConfigurationError(
                f"Unknown decomposition '{decomposition}'. Available: {list(DECOMPOSITIONS)}"
            )

        if n % row_cuts != 0 or n % col_cuts != 0:
            raise ConfigurationError(
                f"Incompatible number of workers and grid size: N={n} is not divisible "
                f"into {row_cuts}x{col_cuts} tiles"
            )

        row, col = divmod(worker_id, col_cuts)
        return cls(
            worker_id=worker_id,
            worker_count=worker_count,
            n=n,
            decomposition=decomposition,
            row_cuts=row_cuts,
            col_cuts=col_cuts,
            up=worker_id - col_cuts if row > 0 else None,
            down=worker_id + col_cuts if row < row_cuts - 1 else None,
            left=worker_id - 1 if col > 0 else None,
            right=worker_id + 1 if col < col_cuts - 1 else None,
        )

    def for_worker(self, worker_id: int) -> "ProcessTopology":
        """Topology of another worker in the same run."""
        return ProcessTopology.build(worker_id, self.worker_count, self.n, self.decomposition)

    @property
    def coords(self) -> tuple[int, int]:
        """(row-cut index, column-cut index) of this worker."""
        return divmod(self.worker_id, self.col_cuts)

    @property
    def local_rows(self) -> int:
        return self.n // self.row_cuts

    @property
    def local_cols(self) -> int:
        return self.n // self.col_cuts

    @property
    def global_row_offset(self) -> int:
        """Row of the first owned cell in the unpadded N×N grid."""
        return self.coords[0] * self.local_rows

    @property
    def global_col_offset(self) -> int:
        return self.coords[1] * self.local_cols

    @property
    def interior_slices(self) -> tuple[slice, slice]:
        """Region of the N×N global grid owned by this worker."""
        r0, c0 = self.global_row_offset, self.global_col_offset
        return slice(r0, r0 + self.local_rows), slice(c0, c0 + self.local_cols)

    def neighbor(self, direction: Direction | str) -> int | None:
        return getattr(self, Direction(direction).value)

    def require(self, direction: Direction | str) -> int:
        """Neighbour id in ``direction``; raises if the worker sits on that edge."""
        neighbor = self.neighbor(direction)
        if neighbor is None:
            raise TopologyMismatchError(
                f"Worker {self.worker_id} has no '{Direction(direction).value}' neighbour"
            )
        return neighbor

    def neighbors(self) -> dict[Direction, int | None]:
        return {d: self.neighbor(d) for d in Direction}
