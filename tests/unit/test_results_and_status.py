"""Unit tests for TaskResult, JobStatus and PipelineStatus."""

from __future__ import annotations

import pytest

from sheetqueue.core.models.tasks import LibraryErrorCode, TaskError, TaskResult
from sheetqueue.core.types.status import (
    JOB_TERMINAL_STATES,
    PIPELINE_TERMINAL_STATES,
    JobStatus,
    PipelineStatus,
)


@pytest.mark.unit
class TestTaskResult:
    def test_ok(self) -> None:
        result: TaskResult[str, TaskError] = TaskResult(ok='w1')
        assert result.is_ok()
        assert not result.is_err()
        assert result.ok == 'w1'
        assert result.err is None
        assert result.unwrap() == 'w1'

    def test_none_is_a_valid_ok_value(self) -> None:
        result: TaskResult[None, TaskError] = TaskResult(ok=None)
        assert result.is_ok()
        assert result.unwrap() is None

    def test_err(self) -> None:
        error = TaskError(error_code=LibraryErrorCode.TASK_TIMEOUT, message='late')
        result: TaskResult[str, TaskError] = TaskResult(err=error)
        assert result.is_err()
        assert result.ok is None
        assert result.unwrap_err() is error
        with pytest.raises(ValueError, match='not ok'):
            result.unwrap()

    def test_unwrap_err_on_ok_raises(self) -> None:
        with pytest.raises(ValueError, match='not error'):
            TaskResult(ok=1).unwrap_err()

    def test_requires_exactly_one_side(self) -> None:
        with pytest.raises(ValueError):
            TaskResult()  # type: ignore[call-overload]
        with pytest.raises(ValueError):
            TaskResult(ok=1, err=TaskError())  # type: ignore[call-overload]

    def test_repr(self) -> None:
        assert repr(TaskResult(ok='w1')) == "TaskResult(ok='w1')"

    def test_task_error_holds_exception(self) -> None:
        exc = RuntimeError('boom')
        error = TaskError(exception=exc, error_code='LLM_DOWN', message='boom')
        assert error.exception is exc
        assert error.error_code == 'LLM_DOWN'


@pytest.mark.unit
class TestJobStatus:
    def test_terminal_members(self) -> None:
        assert JobStatus.COMPLETED.is_terminal is True
        assert JobStatus.FAILED.is_terminal is True
        assert JobStatus.TIMED_OUT.is_terminal is True

    def test_non_terminal_members(self) -> None:
        assert JobStatus.PENDING.is_terminal is False
        assert JobStatus.RUNNING.is_terminal is False

    def test_frozenset_contents(self) -> None:
        assert JOB_TERMINAL_STATES == frozenset({
            JobStatus.COMPLETED,
            JobStatus.FAILED,
            JobStatus.TIMED_OUT,
        })


@pytest.mark.unit
class TestPipelineStatus:
    def test_terminal_members(self) -> None:
        assert PIPELINE_TERMINAL_STATES == frozenset({
            PipelineStatus.COMPLETED,
            PipelineStatus.GENERATION_FAILED,
            PipelineStatus.RENDER_FAILED,
        })

    def test_in_progress_members(self) -> None:
        for status in (
            PipelineStatus.ACCEPTED,
            PipelineStatus.GENERATING,
            PipelineStatus.RENDERING,
        ):
            assert status.is_terminal is False
