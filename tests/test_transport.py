"""Tests for the communication backends."""

import threading
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest
from mpi4py import MPI

from Laplace import MPITransport, RunCancelledError, ThreadGroup
from Laplace.transport import strided_span


def _run_all(group, fn):
    transports = group.transports()
    with ThreadPoolExecutor(max_workers=group.size) as pool:
        futures = [pool.submit(fn, t) for t in transports]
        return [f.result(timeout=30) for f in futures]


def test_strided_span_describes_column():
    a = np.arange(30, dtype=float).reshape(5, 6)
    column = a[1:-1, 2]

    span, count, stride = strided_span(column)

    assert (count, stride) == (3, 6)
    assert span.flags["C_CONTIGUOUS"]
    assert np.shares_memory(span, a)
    np.testing.assert_array_equal(span[::stride][:count], column)

    span[::stride] = -1.0
    assert np.all(a[1:-1, 2] == -1.0)
    assert a[1, 3] == 9.0


def test_strided_span_of_contiguous_row():
    a = np.arange(12, dtype=float).reshape(3, 4)
    span, count, stride = strided_span(a[1, 1:-1])

    assert (count, stride) == (2, 1)
    np.testing.assert_array_equal(span, [5.0, 6.0])


def test_allreduce_is_identical_everywhere():
    group = ThreadGroup(4, timeout=10)
    results = _run_all(group, lambda t: t.allreduce_sum(0.1 * (t.rank + 1)))

    totals = {total for total, _ in results}
    assert len(totals) == 1
    assert totals.pop() == pytest.approx(1.0)
    assert not any(flag for _, flag in results)


def test_allreduce_propagates_failure_flag():
    group = ThreadGroup(3, timeout=10)
    results = _run_all(group, lambda t: t.allreduce_sum(1.0, failed=t.rank == 2))

    assert all(flag for _, flag in results)


def test_gather_and_bcast():
    group = ThreadGroup(3, timeout=10)

    def fn(t):
        gathered = t.gather(t.rank * 10, root=0)
        shared = t.bcast(f"from {t.rank}", root=0)
        return gathered, shared

    results = _run_all(group, fn)

    assert results[0][0] == [0, 10, 20]
    assert results[1][0] is None and results[2][0] is None
    assert all(shared == "from 0" for _, shared in results)


def test_sendrecv_between_threads():
    group = ThreadGroup(2, timeout=10)
    buffers = [np.zeros((3, 3)), np.zeros((3, 3))]
    buffers[0][:, 1] = [1.0, 2.0, 3.0]
    buffers[1][:, 1] = [4.0, 5.0, 6.0]

    def fn(t):
        other = 1 - t.rank
        buf = buffers[t.rank]
        t.sendrecv(buf[:, 1], dest=other, sendtag=7, recvbuf=buf[:, 0], source=other, recvtag=7)

    _run_all(group, fn)

    assert buffers[0][:, 0].tolist() == [4.0, 5.0, 6.0]
    assert buffers[1][:, 0].tolist() == [1.0, 2.0, 3.0]


def test_cancel_wakes_blocked_receiver():
    group = ThreadGroup(2)
    transport = group.transports()[0]
    errors = []

    def blocked():
        try:
            transport.sendrecv(np.zeros(2), dest=1, sendtag=1, recvbuf=np.zeros(2), source=1, recvtag=2)
        except RunCancelledError as exc:
            errors.append(exc)

    thread = threading.Thread(target=blocked)
    thread.start()
    group.cancel()
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert len(errors) == 1


def test_receive_timeout_cancels_group():
    group = ThreadGroup(2, timeout=0.2)
    transport = group.transports()[0]

    with pytest.raises(RunCancelledError):
        transport.sendrecv(np.zeros(2), dest=1, sendtag=1, recvbuf=np.zeros(2), source=1, recvtag=2)
    assert group.cancelled


def test_mpi_transport_rejects_unknown_strategy():
    with pytest.raises(ValueError):
        MPITransport(MPI.COMM_SELF, strategy="zero_copy_magic")


def test_mpi_transport_self_reduction():
    transport = MPITransport(MPI.COMM_SELF)

    assert transport.allreduce_sum(2.5) == (2.5, False)
    assert transport.allreduce_sum(0.0, failed=True) == (0.0, True)
    assert transport.gather("x") == ["x"]
    assert transport.get_name() == "mpi/mpi_datatype"


@pytest.mark.parametrize("strategy", MPITransport.STRATEGIES)
def test_mpi_sendrecv_strided_column_to_self(strategy):
    transport = MPITransport(MPI.COMM_SELF, strategy=strategy)
    a = np.arange(25, dtype=np.float64).reshape(5, 5)
    b = np.full((5, 5), -1.0)
    try:
        # Last owned column of one tile into the left ghost column of another
        transport.sendrecv(a[1:-1, -2], dest=0, sendtag=3, recvbuf=b[1:-1, 0], source=0, recvtag=3)
    finally:
        transport.free()

    np.testing.assert_array_equal(b[1:-1, 0], [8.0, 13.0, 18.0])
    # Corners and every other cell keep their values
    b[1:-1, 0] = -1.0
    np.testing.assert_array_equal(b, -1.0)


@pytest.mark.parametrize("strategy", MPITransport.STRATEGIES)
def test_mpi_sendrecv_contiguous_row_to_self(strategy):
    transport = MPITransport(MPI.COMM_SELF, strategy=strategy)
    a = np.arange(25, dtype=np.float64).reshape(5, 5)
    b = np.zeros((5, 5))
    try:
        transport.sendrecv(a[1, 1:-1], dest=0, sendtag=1, recvbuf=b[-1, 1:-1], source=0, recvtag=1)
    finally:
        transport.free()

    np.testing.assert_array_equal(b[-1, 1:-1], [6.0, 7.0, 8.0])
