import threading
import time

import pytest

from porygo.workerpool import PoolCancelled, Result, WorkerPool


def test_job_queue_holds_buffer_size_jobs():
    pool = WorkerPool(10, 10)
    cancel = threading.Event()
    for i in range(10):
        pool.submit(cancel, lambda i=i: Result(value=i))
    timer = threading.Timer(0.1, cancel.set)
    timer.start()
    started = time.monotonic()
    with pytest.raises(PoolCancelled):
        pool.submit(cancel, lambda: Result(value="extra"))
    assert time.monotonic() - started >= 0.05
    timer.join()
    pool.close()


def test_submit_and_run():
    pool = WorkerPool(2, 10)
    cancel = threading.Event()
    pool.run(cancel, 2)
    pool.submit(cancel, lambda: Result(value="test-value"))
    result = next(pool.results())
    assert result.value == "test-value"
    assert result.error is None
    pool.close()


def test_job_cancellation():
    pool = WorkerPool(2, 10)
    cancel = threading.Event()
    pool.run(cancel, 2)
    started = threading.Event()

    def blocking_job():
        started.set()
        cancel.wait()
        return Result(value="done")

    pool.submit(cancel, blocking_job)
    assert started.wait(1)
    cancel.set()

    closer = threading.Thread(target=pool.close)
    closer.start()
    closer.join(1)
    assert not closer.is_alive()

    with pytest.raises((PoolCancelled, RuntimeError)):
        pool.submit(cancel, lambda: Result(value="test"))
    assert [r.value for r in pool.results()] == ["done"]


def test_submit_on_cancelled_context_before_close():
    pool = WorkerPool(2, 10)
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(PoolCancelled):
        pool.submit(cancel, lambda: Result(value="test"))
    pool.close()


def test_job_error():
    pool = WorkerPool(2, 10)
    cancel = threading.Event()
    pool.run(cancel, 1)
    pool.submit(cancel, lambda: Result(error=ValueError("test-error")))
    result = next(pool.results())
    assert isinstance(result.error, ValueError)
    assert str(result.error) == "test-error"
    pool.close()


def test_raising_job_becomes_error_result():
    pool = WorkerPool(1, 4)
    cancel = threading.Event()
    pool.run(cancel, 1)

    def failing():
        raise RuntimeError("boom")

    pool.submit(cancel, failing)
    pool.close()
    results = list(pool.results())
    assert len(results) == 1
    assert str(results[0].error) == "boom"


def test_results_drain_after_close():
    pool = WorkerPool(3, 10)
    cancel = threading.Event()
    pool.run(cancel, 3)
    for i in range(8):
        pool.submit(cancel, lambda i=i: Result(value=i))
    pool.close()
    assert sorted(r.value for r in pool.results()) == list(range(8))


def test_submit_after_close_raises():
    pool = WorkerPool(1, 1)
    pool.close()
    with pytest.raises(RuntimeError):
        pool.submit(threading.Event(), lambda: Result())
    with pytest.raises(RuntimeError):
        pool.close()