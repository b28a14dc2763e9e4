# sheetqueue/core/models/app.py
from typing import List, Mapping, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from sheetqueue.core import defaults
from sheetqueue.core.models.queues import QueueConfig, QueueName
from sheetqueue.core.exception_mapper import (
    ExceptionMapper,
    validate_exception_mapper,
)
from sheetqueue.core.errors import (
    ConfigurationError,
    ErrorCode,
    MultipleValidationErrors,
    ValidationReport,
    raise_collected,
)
import logging
from sheetqueue.core.logging import set_level
import os

_ENV_PREFIX = 'SHEETQUEUE_'
_NO_TIMEOUT_VALUES = ('', 'none', 'off')


def default_queues() -> list[QueueConfig]:
    """The three production lanes: worksheet generation, PDF rendering, images."""
    return [
        QueueConfig(
            name=QueueName.WORKSHEET.value,
            concurrency=defaults.WORKSHEET_CONCURRENCY,
            timeout_seconds=defaults.WORKSHEET_TIMEOUT_SECONDS,
        ),
        QueueConfig(
            name=QueueName.PDF.value,
            concurrency=defaults.PDF_CONCURRENCY,
            timeout_seconds=defaults.PDF_TIMEOUT_SECONDS,
        ),
        QueueConfig(
            name=QueueName.IMAGE.value,
            concurrency=defaults.IMAGE_CONCURRENCY,
            timeout_seconds=defaults.IMAGE_TIMEOUT_SECONDS,
        ),
    ]


class AppConfig(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    queues: List[QueueConfig] = Field(default_factory=default_queues)
    # Seconds between load reports. Reporting only; never affects scheduling.
    report_interval_seconds: float = defaults.REPORT_INTERVAL_SECONDS
    # Log "<queue> queue: N waiting, M processing" every time a job starts.
    log_queue_activity: bool = True
    exception_mapper: ExceptionMapper = Field(default_factory=dict)

    @model_validator(mode='after')
    def validate_app_configuration(self):
        """Collects all independent errors and raises them together."""
        report = ValidationReport('config')

        queue_names = [q.name for q in self.queues]
        if len(queue_names) != len(set(queue_names)):
            report.add(
                ConfigurationError(
                    message='duplicate queue names in queues',
                    code=ErrorCode.CONFIG_DUPLICATE_QUEUE,
                    notes=[f'queue names: {queue_names}'],
                    help_text='each queue name must be unique',
                )
            )

        missing = [n.value for n in QueueName if n.value not in queue_names]
        if missing:
            report.add(
                ConfigurationError(
                    message='required queues are not configured',
                    code=ErrorCode.CONFIG_MISSING_QUEUE,
                    notes=[f'missing: {missing}', f'configured: {queue_names}'],
                    help_text="configure 'worksheet', 'pdf' and 'image' queues",
                )
            )

        if self.report_interval_seconds <= 0:
            report.add(
                ConfigurationError(
                    message='report_interval_seconds must be positive',
                    code=ErrorCode.CONFIG_INVALID_REPORT_INTERVAL,
                    notes=[f'got report_interval_seconds={self.report_interval_seconds}'],
                    help_text='use a positive number of seconds (default 60)',
                )
            )

        for msg in validate_exception_mapper(self.exception_mapper):
            report.add(
                ConfigurationError(
                    message=msg,
                    code=ErrorCode.CONFIG_INVALID_EXCEPTION_MAPPER,
                    notes=['check exception_mapper keys and values'],
                    help_text='keys must be BaseException subclasses, values must be UPPER_SNAKE_CASE error codes',
                )
            )

        raise_collected(report)
        return self

    def queue(self, name: str) -> Optional[QueueConfig]:
        for q in self.queues:
            if q.name == name:
                return q
        return None

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        **overrides: object,
    ) -> 'AppConfig':
        """
        Build an AppConfig from SHEETQUEUE_* environment variables.

        Recognised keys (unset keys keep their defaults):
            SHEETQUEUE_<QUEUE>_CONCURRENCY       e.g. SHEETQUEUE_PDF_CONCURRENCY=2
            SHEETQUEUE_<QUEUE>_TIMEOUT_SECONDS   'none' or 'off' disables the timeout
            SHEETQUEUE_REPORT_INTERVAL_SECONDS
            SHEETQUEUE_LOG_LEVEL                 DEBUG, INFO, WARNING, ERROR; applied
                                                 to sheetqueue loggers
        """
        env = os.environ if environ is None else environ
        report = ValidationReport('env')

        def _parse(key: str, raw: str, cast: type) -> object | None:
            try:
                return cast(raw)
            except ValueError:
                report.add(
                    ConfigurationError(
                        message=f'invalid value for {key}',
                        code=ErrorCode.CONFIG_INVALID_ENV,
                        notes=[f'{key}={raw!r}'],
                        help_text=f'expected {cast.__name__}',
                    )
                )
                return None

        queues: list[QueueConfig] = []
        for base in default_queues():
            prefix = f'{_ENV_PREFIX}{base.name.upper()}_'
            updates: dict[str, object] = {}

            raw_concurrency = env.get(f'{prefix}CONCURRENCY')
            if raw_concurrency is not None:
                value = _parse(f'{prefix}CONCURRENCY', raw_concurrency, int)
                if value is not None:
                    updates['concurrency'] = value

            raw_timeout = env.get(f'{prefix}TIMEOUT_SECONDS')
            if raw_timeout is not None:
                if raw_timeout.strip().lower() in _NO_TIMEOUT_VALUES:
                    updates['timeout_seconds'] = None
                else:
                    value = _parse(f'{prefix}TIMEOUT_SECONDS', raw_timeout, float)
                    if value is not None:
                        updates['timeout_seconds'] = value

            # Revalidate through the constructor; model_copy skips validators.
            try:
                queues.append(QueueConfig(**{**base.model_dump(), **updates}))
            except MultipleValidationErrors as exc:
                for error in exc.report.errors:
                    report.add(error)
            except ConfigurationError as exc:
                report.add(exc)

        kwargs: dict[str, object] = {'queues': queues}
        raw_interval = env.get(f'{_ENV_PREFIX}REPORT_INTERVAL_SECONDS')
        if raw_interval is not None:
            value = _parse(f'{_ENV_PREFIX}REPORT_INTERVAL_SECONDS', raw_interval, float)
            if value is not None:
                kwargs['report_interval_seconds'] = value

        log_level: Optional[int] = None
        raw_level = env.get(f'{_ENV_PREFIX}LOG_LEVEL')
        if raw_level is not None:
            resolved = logging.getLevelName(raw_level.strip().upper())
            if isinstance(resolved, int):
                log_level = resolved
            else:
                report.add(
                    ConfigurationError(
                        message=f'invalid value for {_ENV_PREFIX}LOG_LEVEL',
                        code=ErrorCode.CONFIG_INVALID_ENV,
                        notes=[f'{_ENV_PREFIX}LOG_LEVEL={raw_level!r}'],
                        help_text='expected DEBUG, INFO, WARNING, ERROR or CRITICAL',
                    )
                )

        raise_collected(report)
        if log_level is not None:
            set_level(log_level)
        kwargs.update(overrides)
        return cls(**kwargs)

    def log_config(self, logger: Optional[logging.Logger] = None) -> None:
        """
        Log the AppConfig in a human-readable format.

        Args:
            logger: Logger instance to use. If None, uses root logger.
        """
        if logger is None:
            logger = logging.getLogger()
        logger.info('AppConfig:\n%s', self._format_for_logging())

    def _format_for_logging(self) -> str:
        lines: list[str] = ['  queues:']
        for queue in self.queues:
            lines.append(f'    - {queue.describe()}')
        lines.append(f'  report_interval: {self.report_interval_seconds:g}s')
        lines.append(f'  log_queue_activity: {self.log_queue_activity}')
        if self.exception_mapper:
            lines.append(f'  exception_mapper: {len(self.exception_mapper)} mapping(s)')
        return '\n'.join(lines)
