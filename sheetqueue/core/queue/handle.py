# sheetqueue/core/queue/handle.py
from __future__ import annotations
import asyncio
from collections.abc import Mapping
from typing import Any, Callable, Generator, Generic, TypeVar
from sheetqueue.core.exception_mapper import resolve_exception_error_code
from sheetqueue.core.models.tasks import LibraryErrorCode, TaskError, TaskResult
from sheetqueue.core.queue.exceptions import JobTimeoutError
from sheetqueue.core.types.status import JobStatus

T = TypeVar('T')


def task_error_from_exception(
    exc: BaseException,
    exception_mapper: Mapping[type[BaseException], str] | None = None,
) -> TaskError:
    """Build the TaskError payload describing a failed job."""
    if isinstance(exc, JobTimeoutError):
        code: str = LibraryErrorCode.TASK_TIMEOUT
    else:
        code = resolve_exception_error_code(
            exc, exception_mapper, LibraryErrorCode.TASK_EXCEPTION,
        )
    return TaskError(exception=exc, error_code=code, message=str(exc))


class JobHandle(Generic[T]):
    """
    Awaitable view of one submitted job.

    `await handle` returns the job's value or raises its exception
    (JobTimeoutError on timeout). `await handle.outcome()` never raises for
    job failures and returns a TaskResult instead.

    Awaiting is shielded: cancelling the awaiting coroutine does not cancel
    the job or disturb the queue.
    """

    def __init__(
        self,
        *,
        job_id: str,
        queue_name: str,
        label: str | None,
        future: 'asyncio.Future[T]',
        exception_mapper: Mapping[type[BaseException], str] | None = None,
    ) -> None:
        self.job_id = job_id
        self.queue_name = queue_name
        self.label = label
        self._future = future
        self._exception_mapper = exception_mapper
        self._status = JobStatus.PENDING

    @property
    def status(self) -> JobStatus:
        return self._status

    def done(self) -> bool:
        return self._future.done()

    def cancelled(self) -> bool:
        return self._future.cancelled()

    def exception(self) -> BaseException | None:
        """The job's exception once settled, else None."""
        if not self._future.done() or self._future.cancelled():
            return None
        return self._future.exception()

    def add_done_callback(self, fn: Callable[['JobHandle[T]'], None]) -> None:
        """Run fn(handle) after the job settles, on the event loop."""
        self._future.add_done_callback(lambda _fut: fn(self))

    async def result(self) -> T:
        return await asyncio.shield(self._future)

    def __await__(self) -> Generator[Any, None, T]:
        return self.result().__await__()

    async def outcome(self) -> TaskResult[T, TaskError]:
        try:
            value = await self.result()
        except asyncio.CancelledError:
            if self._future.cancelled():
                return TaskResult(
                    err=TaskError(
                        error_code=LibraryErrorCode.TASK_CANCELLED,
                        message=f'job {self.job_id} was cancelled before settling',
                    )
                )
            raise
        except Exception as exc:
            return TaskResult(err=self.error_for(exc))
        return TaskResult(ok=value)

    def error_for(self, exc: BaseException) -> TaskError:
        return task_error_from_exception(exc, self._exception_mapper)

    # --- transitions, driven by the owning queue only ---

    def _mark_running(self) -> None:
        self._status = JobStatus.RUNNING

    def _resolve(self, value: T) -> None:
        self._status = JobStatus.COMPLETED
        if not self._future.done():
            self._future.set_result(value)

    def _reject(self, exc: BaseException, status: JobStatus) -> None:
        self._status = status
        if not self._future.done():
            self._future.set_exception(exc)

    def _cancel(self) -> None:
        self._status = JobStatus.FAILED
        self._future.cancel()

    def __repr__(self) -> str:
        return (
            f'JobHandle(job_id={self.job_id!r}, queue={self.queue_name!r}, '
            f'label={self.label!r}, status={self._status.value})'
        )
