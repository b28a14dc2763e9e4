# sheetqueue/core/queue/work_queue.py
from __future__ import annotations
import asyncio
import inspect
import uuid
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar
from sheetqueue.core.errors import ErrorCode, TaskDefinitionError
from sheetqueue.core.logging import get_logger
from sheetqueue.core.models.queues import QueueConfig
from sheetqueue.core.models.tasks import TaskUnit
from sheetqueue.core.queue.exceptions import JobTimeoutError
from sheetqueue.core.queue.handle import JobHandle
from sheetqueue.core.types.status import JobStatus

logger = get_logger('queue')

T = TypeVar('T')

ActiveListener = Callable[['BoundedWorkQueue'], None]


@dataclass(frozen=True)
class QueueSnapshot:
    """Point-in-time load of one queue."""

    name: str
    size: int
    pending: int
    concurrency: int
    timeout_seconds: float | None
    # Jobs whose deadline fired but whose work has not finished yet.
    overrunning: int = 0

    @property
    def is_busy(self) -> bool:
        return self.size > 0 or self.pending > 0


@dataclass(eq=False)
class _QueuedJob:
    task: Optional[TaskUnit[Any]]
    handle: JobHandle[Any]


async def run_task_unit(task: TaskUnit[T]) -> T:
    """Call a task unit and await its result if it returned an awaitable."""
    result = task()
    if inspect.isawaitable(result):
        return await result
    return result


class BoundedWorkQueue:
    """
    FIFO work queue with a fixed number of concurrently running jobs.

    - Admission: a submitted job starts at once if fewer than `concurrency`
      jobs are running, otherwise it waits at the tail of the pending list.
    - Settlement (value, exception or timeout) frees the slot and starts
      pending jobs from the head until the list is empty or the queue is full.
    - No retries, no priorities, no requeueing.

    All bookkeeping runs on the event loop thread without suspending, so
    admission and settlement never interleave with other scheduling decisions.
    """

    def __init__(
        self,
        config: QueueConfig,
        *,
        exception_mapper: Mapping[type[BaseException], str] | None = None,
    ) -> None:
        self.config = config
        self._exception_mapper = exception_mapper
        self._pending: deque[_QueuedJob] = deque()
        self._running = 0
        self._runners: set[asyncio.Task[None]] = set()
        self._overruns: set[asyncio.Task[Any]] = set()
        self._active_listeners: list[ActiveListener] = []
        self._idle_waiters: list[asyncio.Future[None]] = []
        self._empty_waiters: list[asyncio.Future[None]] = []

    @classmethod
    def configure(
        cls,
        name: str,
        concurrency: int,
        timeout_seconds: float | None = None,
        *,
        cancel_on_timeout: bool = False,
        exception_mapper: Mapping[type[BaseException], str] | None = None,
    ) -> 'BoundedWorkQueue':
        """Build a queue directly; raises ConfigurationError on bad limits."""
        config = QueueConfig(
            name=name,
            concurrency=concurrency,
            timeout_seconds=timeout_seconds,
            cancel_on_timeout=cancel_on_timeout,
        )
        return cls(config, exception_mapper=exception_mapper)

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def concurrency(self) -> int:
        return self.config.concurrency

    @property
    def timeout_seconds(self) -> float | None:
        return self.config.timeout_seconds

    @property
    def size(self) -> int:
        """Jobs accepted but not yet started."""
        return len(self._pending)

    @property
    def pending(self) -> int:
        """Jobs currently running."""
        return self._running

    @property
    def overrunning(self) -> int:
        return len(self._overruns)

    def snapshot(self) -> QueueSnapshot:
        return QueueSnapshot(
            name=self.name,
            size=self.size,
            pending=self.pending,
            concurrency=self.concurrency,
            timeout_seconds=self.timeout_seconds,
            overrunning=self.overrunning,
        )

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(self, task: TaskUnit[T], *, label: str | None = None) -> JobHandle[T]:
        """Accept a zero-argument task unit and return a handle to its outcome.

        Must be called from a running event loop. Never suspends.
        """
        if not callable(task):
            raise TaskDefinitionError(
                message='task unit must be a zero-argument callable',
                code=ErrorCode.TASK_NOT_CALLABLE,
                notes=[f"queue '{self.name}' received {type(task).__name__}"],
                help_text='wrap the work in a coroutine function or functools.partial',
            )

        loop = asyncio.get_running_loop()
        handle: JobHandle[T] = JobHandle(
            job_id=f'{self.name}-{uuid.uuid4().hex[:12]}',
            queue_name=self.name,
            label=label,
            future=loop.create_future(),
            exception_mapper=self._exception_mapper,
        )
        job = _QueuedJob(task=task, handle=handle)

        if self._running < self.concurrency:
            self._start(job)
        else:
            self._pending.append(job)
            logger.debug(
                f'{self.name}: queued {handle.job_id} '
                f'({self.size} waiting, {self.pending} running)'
            )
        return handle

    def submit_detached(
        self, task: TaskUnit[T], *, label: str | None = None
    ) -> JobHandle[T]:
        """Submit a job nobody will await.

        Its only failure channel is the log. The returned handle is for
        inspection; awaiting it is allowed but not expected.
        """
        handle = self.submit(task, label=label)
        handle.add_done_callback(self._log_detached_outcome)
        return handle

    def _log_detached_outcome(self, handle: JobHandle[Any]) -> None:
        if handle.cancelled():
            logger.warning(
                f'{self.name}: detached job {handle.label or handle.job_id} was cancelled'
            )
            return
        exc = handle.exception()
        if exc is not None:
            logger.error(
                f'{self.name}: detached job {handle.label or handle.job_id} failed: '
                f'{type(exc).__name__}: {exc}',
                exc_info=(type(exc), exc, exc.__traceback__),
            )

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    def on_active(self, listener: ActiveListener) -> Callable[[], None]:
        """Call listener(queue) every time a job starts running.

        Returns a function that removes the listener.
        """
        self._active_listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._active_listeners:
                self._active_listeners.remove(listener)

        return _unsubscribe

    def _notify_active(self) -> None:
        for listener in tuple(self._active_listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f'{self.name}: active listener failed: {e}', exc_info=True)

    async def on_empty(self) -> None:
        """Wait until no job is waiting (running jobs may remain)."""
        if not self._pending:
            return
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._empty_waiters.append(waiter)
        await waiter

    async def on_idle(self) -> None:
        """Wait until no job is waiting or running."""
        if not self._pending and self._running == 0:
            return
        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._idle_waiters.append(waiter)
        await waiter

    def _wake_waiters(self) -> None:
        if self._pending:
            return
        waiters = self._empty_waiters
        if self._running == 0:
            waiters = waiters + self._idle_waiters
            self._idle_waiters = []
        self._empty_waiters = []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _start(self, job: _QueuedJob) -> None:
        self._running += 1
        job.handle._mark_running()
        logger.debug(
            f'{self.name}: started {job.handle.job_id} '
            f'({self.size} waiting, {self.pending} running)'
        )
        self._notify_active()
        runner = asyncio.create_task(
            self._run(job), name=f'sheetqueue-{job.handle.job_id}'
        )
        self._runners.add(runner)
        runner.add_done_callback(self._runners.discard)

    async def _run(self, job: _QueuedJob) -> None:
        handle = job.handle
        task = job.task
        job.task = None
        assert task is not None
        try:
            if self.timeout_seconds is None:
                value = await run_task_unit(task)
            else:
                value = await self._run_with_deadline(task, handle)
        except JobTimeoutError as exc:
            logger.warning(str(exc))
            handle._reject(exc, JobStatus.TIMED_OUT)
        except asyncio.CancelledError:
            handle._cancel()
            raise
        except Exception as exc:
            logger.debug(
                f'{self.name}: job {handle.label or handle.job_id} failed: '
                f'{type(exc).__name__}: {exc}'
            )
            handle._reject(exc, JobStatus.FAILED)
        else:
            handle._resolve(value)
        finally:
            self._settle()

    async def _run_with_deadline(self, task: TaskUnit[T], handle: JobHandle[T]) -> T:
        timeout = self.timeout_seconds
        assert timeout is not None
        work = asyncio.ensure_future(run_task_unit(task))
        try:
            done, _ = await asyncio.wait({work}, timeout=timeout)
        except asyncio.CancelledError:
            work.cancel()
            raise
        if work in done:
            return work.result()

        if self.config.cancel_on_timeout:
            work.cancel()
        else:
            self._overruns.add(work)
            work.add_done_callback(self._overrun_finished)
        raise JobTimeoutError(self.name, timeout, handle.label or handle.job_id)

    def _overrun_finished(self, work: asyncio.Task[Any]) -> None:
        self._overruns.discard(work)
        if work.cancelled():
            return
        exc = work.exception()
        if exc is not None:
            logger.debug(f'{self.name}: timed-out work finished late with {exc!r}')
        else:
            logger.debug(f'{self.name}: timed-out work finished late; result dropped')

    def _settle(self) -> None:
        self._running -= 1
        while self._pending and self._running < self.concurrency:
            self._start(self._pending.popleft())
        self._wake_waiters()

    def __repr__(self) -> str:
        return (
            f'BoundedWorkQueue(name={self.name!r}, concurrency={self.concurrency}, '
            f'timeout={self.timeout_seconds}, size={self.size}, pending={self.pending})'
        )
