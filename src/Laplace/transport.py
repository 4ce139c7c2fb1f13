"""Communication backends for halo exchange and collectives.

Every solver talks to its peers through a :class:`HaloTransport`, a narrow
interface with one point-to-point primitive and a handful of collectives:

- ``sendrecv``: send one array slice and receive another in the same call,
  so two neighbours exchanging in opposite directions cannot deadlock
- ``allreduce_sum``: global sum of the local error plus a failure flag
- ``gather`` / ``bcast``

Two backends implement it:

- **MPITransport**: real processes over mpi4py. Strided slices (tile columns)
  are either copied into contiguous buffers (``numpy_buffer``) or described
  to MPI with a vector datatype so they travel without a copy
  (``mpi_datatype``).
- **ThreadTransport**: one OS thread per worker inside a single process,
  communicating over queues. Created through a :class:`ThreadGroup`, which
  also carries the cancellation event shared by all workers of a run.

Runtime selection:
```python
transport = create_mpi_transport("mpi_datatype")
transports = ThreadGroup(4).transports()
```
"""

from __future__ import annotations

import queue
import threading
from abc import ABC, abstractmethod

import numpy as np
from mpi4py import MPI

from .errors import RunCancelledError


class HaloTransport(ABC):
    """Abstract base class for worker-to-worker communication."""

    rank: int
    size: int

    @abstractmethod
    def sendrecv(
        self,
        sendbuf: np.ndarray,
        dest: int,
        sendtag: int,
        recvbuf: np.ndarray,
        source: int,
        recvtag: int,
    ) -> None:
        """Send ``sendbuf`` to ``dest`` and receive into ``recvbuf`` from ``source``.

        Parameters
        ----------
        sendbuf : np.ndarray
            Array slice to send (may be strided)
        dest : int
            Destination worker
        sendtag : int
            Send tag
        recvbuf : np.ndarray
            Array slice to receive into (may be strided)
        source : int
            Source worker
        recvtag : int
            Receive tag
        """

    @abstractmethod
    def allreduce_sum(self, value: float, failed: bool = False) -> tuple[float, bool]:
        """Sum ``value`` over all workers and OR their failure flags.

        Every worker receives the identical pair.
        """

    @abstractmethod
    def gather(self, obj, root: int = 0):
        """Collect one object per worker on ``root`` (list ordered by rank, None elsewhere)."""

    @abstractmethod
    def bcast(self, obj, root: int = 0):
        """Return ``root``'s object on every worker."""

    @abstractmethod
    def cancel(self) -> None:
        """Abort the run so no peer stays blocked on this worker."""

    @abstractmethod
    def get_name(self) -> str:
        """Get transport name for logging/reporting."""


# ---------------------------------------------------------------------------
# MPI
# ---------------------------------------------------------------------------


def strided_span(view: np.ndarray) -> tuple[np.ndarray, int, int]:
    """Describe a 1D strided view as a contiguous span plus a vector layout.

    Returns ``(span, count, stride)`` where ``span`` is a contiguous view
    starting at the first element of ``view`` and covering its last element,
    and ``view == span[::stride][:count]``. ``span`` shares memory with
    ``view``, so MPI can read or write the strided elements in place.
    """
    if view.ndim != 1:
        raise ValueError("strided_span expects a 1D view")
    if view.strides[0] % view.itemsize != 0 or view.strides[0] <= 0:
        raise ValueError(f"Unsupported stride {view.strides[0]} for itemsize {view.itemsize}")
    count = view.shape[0]
    stride = view.strides[0] // view.itemsize
    length = (count - 1) * stride + 1 if count else 0
    span = np.lib.stride_tricks.as_strided(view, shape=(length,), strides=(view.itemsize,))
    return span, count, stride


class MPITransport(HaloTransport):
    """Transport over an MPI communicator.

    Parameters
    ----------
    comm : MPI.Comm, optional
        MPI communicator (default: MPI.COMM_WORLD)
    strategy : str, default "mpi_datatype"
        How non-contiguous slices are sent:
        "numpy_buffer" makes contiguous copies before sending,
        "mpi_datatype" uses an MPI vector datatype (zero-copy)

    Notes
    -----
    Contiguous slices (tile rows) always go through the buffer protocol
    directly. Strategies only differ for strided slices (tile columns).
    """

    STRATEGIES = ("numpy_buffer", "mpi_datatype")

    def __init__(self, comm: MPI.Comm | None = None, strategy: str = "mpi_datatype"):
        if strategy not in self.STRATEGIES:
            raise ValueError(
                f"Unknown MPI strategy '{strategy}'. "
                f"Available strategies: {list(self.STRATEGIES)}"
            )
        self.comm = comm if comm is not None else MPI.COMM_WORLD
        self.rank = self.comm.Get_rank()
        self.size = self.comm.Get_size()
        self.strategy = strategy
        self._vector_types: dict[tuple[int, int], MPI.Datatype] = {}

    def _vector_type(self, count: int, stride: int) -> MPI.Datatype:
        key = (count, stride)
        if key not in self._vector_types:
            self._vector_types[key] = MPI.DOUBLE.Create_vector(count, 1, stride).Commit()
        return self._vector_types[key]

    def _buffer_spec(self, arr: np.ndarray):
        span, count, stride = strided_span(arr)
        return [span, 1, self._vector_type(count, stride)]

    def sendrecv(self, sendbuf, dest, sendtag, recvbuf, source, recvtag):
        """Send/recv with zero-copy for contiguous arrays."""
        if sendbuf.flags['C_CONTIGUOUS'] and recvbuf.flags['C_CONTIGUOUS']:
            # Both contiguous - zero-copy communication
            self.comm.Sendrecv(
                sendbuf,
                dest=dest,
                sendtag=sendtag,
                recvbuf=recvbuf,
                source=source,
                recvtag=recvtag,
            )
        elif self.strategy == "mpi_datatype":
            # Strided column - describe the layout to MPI instead of copying
            self.comm.Sendrecv(
                self._buffer_spec(sendbuf),
                dest=dest,
                sendtag=sendtag,
                recvbuf=self._buffer_spec(recvbuf),
                source=source,
                recvtag=recvtag,
            )
        else:
            temp = np.empty_like(recvbuf)
            self.comm.Sendrecv(
                np.ascontiguousarray(sendbuf),
                dest=dest,
                sendtag=sendtag,
                recvbuf=temp,
                source=source,
                recvtag=recvtag,
            )
            recvbuf[...] = temp

    def allreduce_sum(self, value, failed=False):
        local = np.array([value, 1.0 if failed else 0.0])
        total = np.zeros(2)
        self.comm.Allreduce(local, total, op=MPI.SUM)
        return float(total[0]), bool(total[1] > 0)

    def gather(self, obj, root=0):
        return self.comm.gather(obj, root=root)

    def bcast(self, obj, root=0):
        return self.comm.bcast(obj, root=root)

    def cancel(self):
        self.comm.Abort(1)

    def free(self) -> None:
        """Release the committed MPI datatypes."""
        for datatype in self._vector_types.values():
            datatype.Free()
        self._vector_types.clear()

    def get_name(self) -> str:
        return f"mpi/{self.strategy}"


def create_mpi_transport(strategy_name: str = "mpi_datatype", comm: MPI.Comm | None = None) -> MPITransport:
    """Create an MPI transport using the given buffer strategy.

    Parameters
    ----------
    strategy_name : str
        Strategy name: "numpy_buffer" or "mpi_datatype"
    comm : MPI.Comm, optional
        Communicator (default: MPI.COMM_WORLD)

    Raises
    ------
    ValueError
        If strategy_name is not recognized
    """
    return MPITransport(comm, strategy=strategy_name)


# ---------------------------------------------------------------------------
# Threads
# ---------------------------------------------------------------------------


class ThreadGroup:
    """Shared state of a set of thread workers.

    Holds the point-to-point queues, the cyclic barrier used by collectives
    and the cancellation event. One group serves exactly one run.

    Parameters
    ----------
    size : int
        Number of workers
    timeout : float, optional
        Seconds a worker waits on a peer before the run is cancelled
        (default: wait forever, until cancelled)
    """

    _POLL = 0.05

    def __init__(self, size: int, timeout: float | None = None):
        if size < 1:
            raise ValueError(f"Thread group needs at least one worker, got {size}")
        self.size = size
        self.timeout = timeout
        self._channels: dict[tuple[int, int, int], queue.Queue] = {}
        self._lock = threading.Lock()
        self._barrier = threading.Barrier(size)
        self._slots: list = [None] * size
        self._cancelled = threading.Event()

    def transports(self) -> list["ThreadTransport"]:
        return [ThreadTransport(self, rank) for rank in range(self.size)]

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Wake every blocked worker with RunCancelledError."""
        self._cancelled.set()
        self._barrier.abort()

    def channel(self, source: int, dest: int, tag: int) -> queue.Queue:
        key = (source, dest, tag)
        with self._lock:
            if key not in self._channels:
                self._channels[key] = queue.Queue()
            return self._channels[key]

    def receive(self, source: int, dest: int, tag: int) -> np.ndarray:
        channel = self.channel(source, dest, tag)
        waited = 0.0
        while True:
            if self.cancelled:
                raise RunCancelledError(f"Worker {dest}: run cancelled while waiting on worker {source}")
            try:
                return channel.get(timeout=self._POLL)
            except queue.Empty:
                waited += self._POLL
                if self.timeout is not None and waited >= self.timeout:
                    self.cancel()
                    raise RunCancelledError(
                        f"Worker {dest}: timed out after {self.timeout}s waiting on worker {source}"
                    ) from None

    def wait(self) -> None:
        try:
            self._barrier.wait(self.timeout)
        except threading.BrokenBarrierError:
            self._cancelled.set()
            raise RunCancelledError("Run cancelled while waiting at a collective") from None

    def exchange_all(self, rank: int, obj) -> list:
        """Deposit ``obj`` and return every worker's contribution, ordered by rank."""
        self._slots[rank] = obj
        self.wait()
        values = list(self._slots)
        # Second wait keeps slots intact until every worker has read them
        self.wait()
        return values


class ThreadTransport(HaloTransport):
    """Transport for one worker thread of a :class:`ThreadGroup`.

    Sends never block: the payload is copied into the destination queue.
    Strided slices are therefore always copied, as with ``numpy_buffer``.
    """

    def __init__(self, group: ThreadGroup, rank: int):
        self.group = group
        self.rank = rank
        self.size = group.size

    def sendrecv(self, sendbuf, dest, sendtag, recvbuf, source, recvtag):
        self.group.channel(self.rank, dest, sendtag).put(np.array(sendbuf, copy=True))
        recvbuf[...] = self.group.receive(source, self.rank, recvtag)

    def allreduce_sum(self, value, failed=False):
        values = self.group.exchange_all(self.rank, (float(value), bool(failed)))
        # Same summation order on every worker, so every worker sees the same bits
        total = 0.0
        for partial, _ in values:
            total += partial
        return total, any(flag for _, flag in values)

    def gather(self, obj, root=0):
        values = self.group.exchange_all(self.rank, obj)
        return values if self.rank == root else None

    def bcast(self, obj, root=0):
        return self.group.exchange_all(self.rank, obj)[root]

    def cancel(self):
        self.group.cancel()

    def get_name(self) -> str:
        return "threads"
