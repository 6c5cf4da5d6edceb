"""Bounded pool of process-isolated comparison executors."""

from __future__ import annotations

import asyncio
import logging
import multiprocessing
import os
from collections import deque
from dataclasses import dataclass
from typing import TYPE_CHECKING

from multi_diff.core.errors import ExecutorError, PoolClosedError, TaskFailedError
from multi_diff.core.worker import TaskError, TaskExecutor, TaskRequest

if TYPE_CHECKING:
    from multiprocessing.context import BaseContext

    from multi_diff.core.models import ComparisonRequest, ComparisonResult

logger = logging.getLogger(__name__)

MAX_POOL_SIZE = 8


def default_pool_size() -> int:
    """One executor per CPU, leaving one CPU for the coordinator."""
    return max(1, (os.cpu_count() or 2) - 1)


def clamp_pool_size(size: int | None) -> int:
    """Bound a requested pool size to ``[1, MAX_POOL_SIZE]``."""
    requested = default_pool_size() if size is None else size
    return max(1, min(requested, MAX_POOL_SIZE))


@dataclass
class _PendingTask:
    task: TaskRequest
    future: asyncio.Future[ComparisonResult]


class ExecutorPool:
    """Fixed-size set of TaskExecutors fed from a FIFO queue.

    Whenever a task is queued and an executor is idle, the head of the queue
    is assigned to that executor.  An executor that crashes or breaks
    protocol fails its task and is replaced, so capacity is restored.  After
    ``shutdown`` no new tasks are accepted and all worker processes are
    terminated; tasks still in flight are abandoned, not resolved.

    Must be constructed and used from within a running event loop.
    """

    def __init__(self, size: int | None = None, *, mp_context: BaseContext | None = None) -> None:
        """Start the worker processes.

        Args:
            size: Requested number of executors. Clamped to
                ``[1, MAX_POOL_SIZE]``; defaults to the CPU count minus one.
            mp_context: Multiprocessing context. Defaults to ``spawn``.
        """
        self._size = clamp_pool_size(size)
        self._context = mp_context or multiprocessing.get_context("spawn")
        self._executors: list[TaskExecutor] = []
        self._idle: list[TaskExecutor] = []
        self._retired: list[TaskExecutor] = []
        self._queue: deque[_PendingTask] = deque()
        self._running: set[asyncio.Task[None]] = set()
        self._next_task_id = 1
        self._closed = False
        self._shutdown_task: asyncio.Task[None] | None = None

        for _ in range(self._size):
            self._add_executor()
        logger.debug("Executor pool started with %d executors", self._size)

    @property
    def size(self) -> int:
        """Number of executors the pool maintains."""
        return self._size

    @property
    def closed(self) -> bool:
        """Whether the pool has been shut down."""
        return self._closed

    @property
    def idle_count(self) -> int:
        """Number of executors currently waiting for work."""
        return len(self._idle)

    @property
    def executors(self) -> tuple[TaskExecutor, ...]:
        """Live executors owned by the pool."""
        return tuple(self._executors)

    def submit(self, request: ComparisonRequest) -> asyncio.Future[ComparisonResult]:
        """Queue a comparison and return a future for its result.

        Raises:
            PoolClosedError: If the pool has been shut down.
        """
        if self._closed:
            msg = "Executor pool is closed"
            raise PoolClosedError(msg)

        future: asyncio.Future[ComparisonResult] = asyncio.get_running_loop().create_future()
        task = TaskRequest(task_id=self._next_task_id, request=request)
        self._next_task_id += 1
        self._queue.append(_PendingTask(task=task, future=future))
        self._dispatch()
        return future

    def shutdown(self) -> asyncio.Future[None]:
        """Close the pool and terminate every executor.

        The pool is marked closed immediately.  The returned future resolves
        once all worker processes have exited.  Repeated calls share the same
        shutdown.
        """
        self._closed = True
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.get_running_loop().create_task(self._terminate_all())
        return asyncio.shield(self._shutdown_task)

    def _add_executor(self) -> None:
        executor = TaskExecutor(self._context)
        self._executors.append(executor)
        self._idle.append(executor)

    def _dispatch(self) -> None:
        """Assign queued tasks to idle executors while both are available."""
        if not self._closed:
            for executor in [e for e in self._idle if not e.is_alive()]:
                logger.warning("Idle executor pid=%s exited; replacing it", executor.pid)
                self._replace(executor)
        while self._queue and self._idle and not self._closed:
            pending = self._queue.popleft()
            if pending.future.done():
                continue
            executor = self._idle.pop()
            logger.debug("Dispatching task %d to executor pid=%s", pending.task.task_id, executor.pid)
            running = asyncio.get_running_loop().create_task(self._run_on(executor, pending))
            self._running.add(running)
            running.add_done_callback(self._running.discard)

    async def _run_on(self, executor: TaskExecutor, pending: _PendingTask) -> None:
        try:
            reply = await executor.run(pending.task)
        except ExecutorError as exc:
            if self._closed:
                return
            logger.warning("Executor pid=%s failed: %s", executor.pid, exc)
            if not pending.future.done():
                pending.future.set_exception(exc)
            self._replace(executor)
            self._dispatch()
            return

        if not pending.future.done():
            if isinstance(reply, TaskError):
                pending.future.set_exception(TaskFailedError(reply.message, error_type=reply.error_type))
            else:
                pending.future.set_result(reply.result)

        if not self._closed:
            self._idle.append(executor)
            self._dispatch()

    def _replace(self, executor: TaskExecutor) -> None:
        """Discard a failed executor and start a new one in its place."""
        if executor in self._executors:
            self._executors.remove(executor)
        if executor in self._idle:
            self._idle.remove(executor)
        executor.terminate()
        self._retired.append(executor)
        if not self._closed:
            self._add_executor()
            logger.debug("Replaced executor pid=%s", executor.pid)

    async def _terminate_all(self) -> None:
        executors = self._executors + self._retired
        self._executors = []
        self._idle = []
        self._retired = []

        for executor in executors:
            executor.terminate()
        await asyncio.gather(*(executor.join() for executor in executors))
        # Exchanges blocked on a terminated worker end with EOF.
        if self._running:
            await asyncio.gather(*self._running, return_exceptions=True)
        for executor in executors:
            executor.close()
        logger.debug("Executor pool shut down (%d executors)", len(executors))
