"""Exception types raised by the Laplace solvers."""


class LaplaceError(Exception):
    """Base class for all solver errors."""


class ConfigurationError(LaplaceError, ValueError):
    """Worker count, grid size or decomposition are incompatible.

    Raised while the topology is built, before any message is exchanged, so
    every worker reaches the same verdict from its local inputs alone.
    """


class AllocationError(LaplaceError, MemoryError):
    """A tile or scratch buffer could not be allocated."""


class TopologyMismatchError(LaplaceError, RuntimeError):
    """An exchange was attempted with a neighbour that does not exist."""


class RunCancelledError(LaplaceError, RuntimeError):
    """A peer worker failed and the run was cancelled."""
