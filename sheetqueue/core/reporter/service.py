# sheetqueue/core/reporter/service.py
from __future__ import annotations
import asyncio
import weakref
from typing import TYPE_CHECKING, Iterable, Optional
from sheetqueue.core.errors import ConfigurationError, ErrorCode
from sheetqueue.core.logging import get_logger
from sheetqueue.core.queue.work_queue import BoundedWorkQueue, QueueSnapshot

if TYPE_CHECKING:
    from sheetqueue.core.queue.registry import QueueRegistry

logger = get_logger('reporter')


class PeriodicReporter:
    """
    Logs the load of every busy queue at a fixed interval.

    Responsibilities:
    1. Sample size (waiting) and pending (running) of each queue
    2. Emit one line per queue that has waiting or running jobs
    3. Stay out of scheduling: it holds weak references to the queues, never
       submits work and never occupies a queue slot

    Runs as its own asyncio task next to the queues.
    """

    def __init__(
        self,
        queues: Iterable[BoundedWorkQueue],
        interval_seconds: float,
    ) -> None:
        if interval_seconds <= 0:
            raise ConfigurationError(
                message='report interval must be positive',
                code=ErrorCode.CONFIG_INVALID_REPORT_INTERVAL,
                notes=[f'got interval_seconds={interval_seconds}'],
                help_text='use a positive number of seconds (default 60)',
            )
        self.interval_seconds = interval_seconds
        self._refs: list[weakref.ref[BoundedWorkQueue]] = [
            weakref.ref(queue) for queue in queues
        ]
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task[None]] = None

    @classmethod
    def for_registry(cls, registry: 'QueueRegistry') -> 'PeriodicReporter':
        return cls(registry, registry.config.report_interval_seconds)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def report_once(self) -> list[QueueSnapshot]:
        """Log and return snapshots of the queues that are currently busy."""
        emitted: list[QueueSnapshot] = []
        alive: list[weakref.ref[BoundedWorkQueue]] = []
        for ref in self._refs:
            queue = ref()
            if queue is None:
                continue
            alive.append(ref)
            snapshot = queue.snapshot()
            del queue
            if not snapshot.is_busy:
                continue
            line = f'queue={snapshot.name} size={snapshot.size} pending={snapshot.pending}'
            if snapshot.overrunning:
                line += f' overrunning={snapshot.overrunning}'
            logger.info(line)
            emitted.append(snapshot)
        self._refs = alive
        return emitted

    async def run_forever(self) -> None:
        """Main reporting loop."""
        logger.info(f'Reporter started, interval={self.interval_seconds:g}s')
        try:
            while not self._stop.is_set():
                try:
                    await asyncio.wait_for(
                        self._stop.wait(), timeout=self.interval_seconds
                    )
                    break  # Stop signal received
                except asyncio.TimeoutError:
                    pass

                try:
                    self.report_once()
                except Exception as e:
                    logger.error(f'Error in reporter loop: {e}', exc_info=True)

                if not self._refs:
                    logger.info('No queues left to observe')
                    break
        finally:
            logger.info('Reporter stopped')

    def start(self) -> asyncio.Task[None]:
        """Spawn run_forever() on the running loop (idempotent)."""
        if self._task is None or self._task.done():
            self._stop.clear()
            self._task = asyncio.create_task(
                self.run_forever(), name='sheetqueue-reporter'
            )
        return self._task

    def request_stop(self) -> None:
        """Request the loop to stop after its current wait."""
        self._stop.set()

    async def stop(self) -> None:
        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None
