"""A fixed-size pool of worker threads fed through a bounded job queue."""

from __future__ import annotations

import queue
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import Any

_POLL_INTERVAL = 0.02


@dataclass
class Result:
    """Outcome of one job: a value, or the error that stopped it."""

    value: Any = None
    error: BaseException | None = None


Job = Callable[[], Result]


class PoolCancelled(Exception):
    """Raised when a job is submitted after cancellation was requested."""


class WorkerPool:
    """Runs jobs on worker threads and collects their results."""

    def __init__(self, worker_count: int, buffer_size: int) -> None:
        self.worker_count = worker_count
        size = max(1, buffer_size)
        self._jobs: queue.Queue[Job] = queue.Queue(maxsize=size)
        self._results: queue.Queue[Result] = queue.Queue(maxsize=size)
        self._workers: list[threading.Thread] = []
        self._closed = threading.Event()
        self._finished = threading.Event()

    def submit(self, cancel: threading.Event, job: Job) -> None:
        """Queue ``job``, waiting for space until ``cancel`` is set."""
        if self._closed.is_set():
            raise RuntimeError("submit on a closed worker pool")
        while True:
            if cancel.is_set():
                raise PoolCancelled("context canceled")
            try:
                self._jobs.put(job, timeout=_POLL_INTERVAL)
                return
            except queue.Full:
                continue

    def run(self, cancel: threading.Event, worker_count: int) -> None:
        """Start ``worker_count`` workers; they stop when ``cancel`` is set."""
        for _ in range(worker_count):
            worker = threading.Thread(target=self._work, args=(cancel,), daemon=True)
            self._workers.append(worker)
            worker.start()

    def _work(self, cancel: threading.Event) -> None:
        while not cancel.is_set():
            try:
                job = self._jobs.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                if self._closed.is_set() and self._jobs.empty():
                    return
                continue
            try:
                result = job()
            except Exception as exc:  # a failing job becomes an error result
                result = Result(error=exc)
            self._results.put(result)

    def close(self) -> None:
        """Stop accepting jobs, wait for workers to finish and end the results."""
        if self._closed.is_set():
            raise RuntimeError("worker pool already closed")
        self._closed.set()
        for worker in self._workers:
            worker.join()
        self._finished.set()

    def results(self) -> Iterator[Result]:
        """Yield results as they arrive, ending once the pool is closed and drained."""
        while True:
            try:
                yield self._results.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                if self._finished.is_set() and self._results.empty():
                    return