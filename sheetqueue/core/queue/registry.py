# sheetqueue/core/queue/registry.py
from __future__ import annotations
import asyncio
from typing import Iterator, TypeVar
from sheetqueue.core.errors import ErrorCode, RegistryError
from sheetqueue.core.logging import get_logger
from sheetqueue.core.models.app import AppConfig
from sheetqueue.core.models.queues import QueueName
from sheetqueue.core.models.tasks import TaskUnit
from sheetqueue.core.queue.handle import JobHandle
from sheetqueue.core.queue.work_queue import BoundedWorkQueue, QueueSnapshot

logger = get_logger('registry')

T = TypeVar('T')


class QueueNotFoundError(RegistryError, KeyError):
    """Raised when a queue name is not present in the registry.

    Inherits from KeyError so `name in registry` style lookups behave.
    """

    def __init__(self, queue_name: str, known: list[str] | None = None) -> None:
        RegistryError.__init__(
            self,
            message=f"queue '{queue_name}' not registered",
            code=ErrorCode.QUEUE_NOT_REGISTERED,
            notes=[f'known queues: {known}'] if known else [],
            help_text='add the queue to AppConfig.queues or use a configured name',
        )
        self.queue_name = queue_name


class QueueRegistry:
    """The process-wide set of named work queues.

    Build one at startup and pass it to whatever needs to schedule work:

        registry = QueueRegistry(AppConfig.from_env())
        registry.submit('worksheet', partial(generate, job))
    """

    def __init__(self, config: AppConfig | None = None) -> None:
        self.config = config or AppConfig()
        self._queues: dict[str, BoundedWorkQueue] = {}
        for queue_config in self.config.queues:
            queue = BoundedWorkQueue(
                queue_config, exception_mapper=self.config.exception_mapper
            )
            if self.config.log_queue_activity:
                queue.on_active(_log_activity)
            self._queues[queue_config.name] = queue

    def get(self, name: str | QueueName) -> BoundedWorkQueue:
        key = name.value if isinstance(name, QueueName) else name
        try:
            return self._queues[key]
        except KeyError:
            raise QueueNotFoundError(key, list(self._queues))

    __getitem__ = get

    def __contains__(self, name: object) -> bool:
        key = name.value if isinstance(name, QueueName) else name
        return key in self._queues

    def __iter__(self) -> Iterator[BoundedWorkQueue]:
        return iter(self._queues.values())

    def __len__(self) -> int:
        return len(self._queues)

    def names(self) -> list[str]:
        return list(self._queues)

    @property
    def worksheet(self) -> BoundedWorkQueue:
        return self.get(QueueName.WORKSHEET)

    @property
    def pdf(self) -> BoundedWorkQueue:
        return self.get(QueueName.PDF)

    @property
    def image(self) -> BoundedWorkQueue:
        return self.get(QueueName.IMAGE)

    def submit(
        self,
        name: str | QueueName,
        task: TaskUnit[T],
        *,
        label: str | None = None,
    ) -> JobHandle[T]:
        return self.get(name).submit(task, label=label)

    def submit_detached(
        self,
        name: str | QueueName,
        task: TaskUnit[T],
        *,
        label: str | None = None,
    ) -> JobHandle[T]:
        return self.get(name).submit_detached(task, label=label)

    def snapshots(self) -> list[QueueSnapshot]:
        return [queue.snapshot() for queue in self]

    async def on_idle(self) -> None:
        """Wait until every queue is idle."""
        await asyncio.gather(*(queue.on_idle() for queue in self))

    def log_startup(self) -> None:
        logger.info('Queue system initialized')
        for queue in self:
            logger.info(f'  - {queue.config.describe()}')


def _log_activity(queue: BoundedWorkQueue) -> None:
    logger.debug(f'{queue.name} queue: {queue.size} waiting, {queue.pending} processing')
