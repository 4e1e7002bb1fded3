"""Bounded worker pool for accepted client sockets."""

from __future__ import annotations

import logging
import queue
import socket
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from config import SUBMIT_POLL_SECS

logger = logging.getLogger(__name__)

ClientAddress = tuple[str, int]
ClientHandler = Callable[[socket.socket, ClientAddress], None]


class WorkerState(Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    TERMINATED = "terminated"


@dataclass(frozen=True, slots=True)
class ClientJob:
    connection: socket.socket
    address: ClientAddress
    accepted_at: float = field(default_factory=time.monotonic)


class ThreadPool:
    """Fixed-size thread pool consuming a bounded FIFO of client jobs.

    Producers block while the queue is full; a job is only refused once the
    pool has been shut down, in which case the caller keeps ownership of the
    connection.
    """

    def __init__(
        self,
        worker_count: int,
        queue_size: int,
        handler: ClientHandler,
        *,
        submit_poll_secs: float = SUBMIT_POLL_SECS,
    ) -> None:
        if worker_count <= 0:
            raise ValueError("worker_count must be positive")
        if queue_size <= 0:
            raise ValueError("queue_size must be positive")

        self._handler = handler
        self._queue: queue.Queue[ClientJob | None] = queue.Queue(maxsize=queue_size)
        self._submit_poll_secs = submit_poll_secs
        self._closed = threading.Event()
        self._threads: list[threading.Thread] = []
        self._worker_count = worker_count
        self._states = [WorkerState.IDLE] * worker_count
        self._state_lock = threading.Lock()
        self._active_jobs = 0
        self._failed_jobs = 0
        self._active_lock = threading.Lock()
        self._drain_condition = threading.Condition(self._active_lock)
        self._shutdown_lock = threading.Lock()
        self._shutdown_started = False

    @property
    def worker_count(self) -> int:
        return self._worker_count

    @property
    def threads(self) -> tuple[threading.Thread, ...]:
        return tuple(self._threads)

    @property
    def active_jobs(self) -> int:
        with self._active_lock:
            return self._active_jobs

    @property
    def failed_jobs(self) -> int:
        with self._active_lock:
            return self._failed_jobs

    @property
    def pending_jobs(self) -> int:
        return self._queue.qsize()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def worker_states(self) -> tuple[WorkerState, ...]:
        with self._state_lock:
            return tuple(self._states)

    def start(self) -> None:
        for index in range(self._worker_count):
            worker = threading.Thread(
                target=self._worker_loop,
                args=(index,),
                name=f"http-worker-{index}",
                daemon=True,
            )
            self._threads.append(worker)
            worker.start()

    def submit(
        self,
        client_socket: socket.socket,
        address: ClientAddress,
        *,
        timeout: float | None = None,
    ) -> bool:
        """Queue a connection, blocking while the queue is full.

        Returns False if the pool is shut down (or timeout expires) before the
        job could be queued.
        """
        job = ClientJob(connection=client_socket, address=address)
        deadline = None if timeout is None else time.monotonic() + timeout
        while not self._closed.is_set():
            wait_secs = self._submit_poll_secs
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                wait_secs = min(wait_secs, remaining)
            try:
                self._queue.put(job, timeout=wait_secs)
            except queue.Full:
                continue
            return True
        return False

    def wait_for_drain(self, timeout: float | None = None) -> bool:
        with self._drain_condition:
            if timeout is None:
                while not self._is_drained_locked():
                    self._drain_condition.wait(timeout=0.1)
                return True

            deadline = time.monotonic() + timeout
            while not self._is_drained_locked():
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._drain_condition.wait(timeout=min(remaining, 0.1))
            return True

    def shutdown(self, *, drain: bool = True, timeout: float | None = None) -> None:
        """Stop accepting jobs and wait for every worker to terminate.

        With drain=True queued jobs are served first; otherwise they are
        abandoned and their connections closed. In-flight jobs always finish.
        If timeout expires before the queue drains, the jobs still queued are
        abandoned as well and a warning reports how many.
        """
        with self._shutdown_lock:
            if self._shutdown_started:
                return
            self._shutdown_started = True

        self._closed.set()
        if not drain or not self._threads:
            self._abandon_pending()

        for _ in self._threads:
            self._queue.put(None)

        for thread in self._threads:
            thread.join(timeout=timeout)

        # A producer racing the closed flag may have queued a job behind the sentinels.
        abandoned = self._abandon_pending()
        if drain and abandoned:
            logger.warning(
                "Drain ended with %d queued connection(s) unserved; closed them",
                abandoned,
            )
        logger.debug("Thread pool shut down (drain=%s)", drain)

    def _is_drained_locked(self) -> bool:
        return self._active_jobs == 0 and self._queue.empty()

    def _set_state(self, index: int, state: WorkerState) -> None:
        with self._state_lock:
            self._states[index] = state

    def _abandon_pending(self) -> int:
        abandoned = 0
        while True:
            try:
                job = self._queue.get_nowait()
            except queue.Empty:
                return abandoned
            try:
                if job is None:
                    # Sentinels belong to workers that are still running.
                    self._queue.put_nowait(None)
                    return abandoned
                logger.info("Abandoning queued connection from %s", job.address[0])
                _close_quietly(job.connection)
                abandoned += 1
            finally:
                self._queue.task_done()

    def _worker_loop(self, index: int) -> None:
        while True:
            job = self._queue.get()
            try:
                if job is None:
                    self._set_state(index, WorkerState.TERMINATED)
                    return
                self._set_state(index, WorkerState.PROCESSING)
                with self._drain_condition:
                    self._active_jobs += 1
                self._run_job(job)
            finally:
                if job is not None:
                    with self._drain_condition:
                        self._active_jobs = max(0, self._active_jobs - 1)
                        self._drain_condition.notify_all()
                    self._set_state(index, WorkerState.IDLE)
                self._queue.task_done()

    def _run_job(self, job: ClientJob) -> None:
        logger.debug(
            "Serving %s after %.2f ms in queue",
            job.address[0],
            (time.monotonic() - job.accepted_at) * 1000,
        )
        try:
            self._handler(job.connection, job.address)
        except Exception:
            logger.exception("Unhandled error while serving %s", job.address[0])
            with self._active_lock:
                self._failed_jobs += 1
            _close_quietly(job.connection)


def _close_quietly(client_socket: socket.socket) -> None:
    try:
        client_socket.close()
    except OSError:
        logger.debug("Error closing client socket", exc_info=True)
