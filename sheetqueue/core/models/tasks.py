# sheetqueue/core/models/tasks.py
from __future__ import annotations
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union, overload
from pydantic import BaseModel, ConfigDict

T = TypeVar('T')  # value of a settled job
E = TypeVar('E')  # error payload, normally TaskError

# A task unit is a zero-argument callable. Coroutine functions are the norm;
# a plain return value is accepted and treated as an immediately settled job.
TaskUnit = Callable[[], Union[Awaitable[T], T]]

_MISSING: Any = object()


class LibraryErrorCode(str, Enum):
    """
    Error codes produced by the queue runtime itself.

    Map your own exceptions to domain codes (e.g. "LLM_RATE_LIMITED")
    through AppConfig.exception_mapper.
    """

    TASK_EXCEPTION = 'TASK_EXCEPTION'  # job raised and no mapping applied
    TASK_TIMEOUT = 'TASK_TIMEOUT'  # job lost the race against its queue deadline
    TASK_CANCELLED = 'TASK_CANCELLED'  # job's runner was cancelled, e.g. at loop shutdown


class TaskError(BaseModel):
    """Why a job or pipeline run did not produce a value."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    exception: Optional[BaseException] = None
    error_code: Optional[Union[LibraryErrorCode, str]] = None
    message: Optional[str] = None
    data: Optional[Any] = None


class TaskResult(Generic[T, E]):
    """
    Outcome of a job that never raises on inspection.

    Built with exactly one of `ok=` or `err=`. `ok=None` is a valid success,
    so check is_ok() rather than truthiness of .ok.
    """

    __slots__ = ('_is_ok', '_value')

    @overload
    def __init__(self, *, ok: T) -> None: ...

    @overload
    def __init__(self, *, err: E) -> None: ...

    def __init__(self, *, ok: Any = _MISSING, err: Any = _MISSING) -> None:
        if (ok is _MISSING) == (err is _MISSING):
            raise ValueError('TaskResult must have exactly one of ok / err')
        self._is_ok = ok is not _MISSING
        self._value = ok if self._is_ok else err

    def is_ok(self) -> bool:
        return self._is_ok

    def is_err(self) -> bool:
        return not self._is_ok

    @property
    def ok(self) -> T | None:
        return self._value if self._is_ok else None

    @property
    def err(self) -> E | None:
        return None if self._is_ok else self._value

    def unwrap(self) -> T:
        match self._is_ok:
            case True:
                return self._value
            case False:
                raise ValueError('Result is not ok - check is_ok() first')

    def unwrap_err(self) -> E:
        match self._is_ok:
            case False:
                return self._value
            case True:
                raise ValueError('Result is not error - check is_err() first')

    def __repr__(self) -> str:
        return f"TaskResult({'ok' if self._is_ok else 'err'}={self._value!r})"
