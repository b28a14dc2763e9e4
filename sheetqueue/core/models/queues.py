# sheetqueue/core/models/queues.py
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, model_validator
from sheetqueue.core.errors import (
    ConfigurationError,
    ErrorCode,
    ValidationReport,
    raise_collected,
)


class QueueName(str, Enum):
    WORKSHEET = 'worksheet'
    PDF = 'pdf'
    IMAGE = 'image'


class QueueConfig(BaseModel):
    """
    name: name of the queue. Usage: `registry.submit("name", task)`
    concurrency: max number of jobs running at the same time on this queue.
    timeout_seconds: per-job deadline. Required on purpose: pass None to let
        jobs run unbounded (they keep their slot until they settle).
    cancel_on_timeout: cancel the underlying asyncio task when the deadline
        fires. When False the work keeps running after its slot is released.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    concurrency: int
    timeout_seconds: Optional[float]
    cancel_on_timeout: bool = False

    @model_validator(mode='after')
    def validate_limits(self):
        report = ValidationReport('queue')

        if not self.name:
            report.add(
                ConfigurationError(
                    message='queue name must be non-empty',
                    code=ErrorCode.CONFIG_MISSING_QUEUE,
                    help_text="use one of 'worksheet', 'pdf', 'image' or a custom name",
                )
            )
        if self.concurrency < 1:
            report.add(
                ConfigurationError(
                    message='queue concurrency must be at least 1',
                    code=ErrorCode.CONFIG_INVALID_CONCURRENCY,
                    notes=[f"queue '{self.name}' got concurrency={self.concurrency}"],
                    help_text='use a positive integer',
                )
            )
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            report.add(
                ConfigurationError(
                    message='queue timeout must be positive',
                    code=ErrorCode.CONFIG_INVALID_TIMEOUT,
                    notes=[
                        f"queue '{self.name}' got timeout_seconds={self.timeout_seconds}"
                    ],
                    help_text='use a positive number of seconds, or None for no timeout',
                )
            )

        raise_collected(report)
        return self

    def describe(self) -> str:
        timeout = (
            f'{self.timeout_seconds:g}s' if self.timeout_seconds is not None else 'none'
        )
        return f'{self.name} (concurrency={self.concurrency}, timeout={timeout})'
