# sheetqueue/core/queue/__init__.py
"""
Bounded in-process work queues.

Main components:
- BoundedWorkQueue: FIFO queue with a concurrency limit and per-job timeout
- JobHandle: awaitable outcome of one submitted job
- QueueRegistry: the named queues built once at startup

Example usage:
    from sheetqueue.core.queue import QueueRegistry

    registry = QueueRegistry()
    handle = registry.submit('pdf', partial(render, job))
    pdf = await handle
"""

from sheetqueue.core.queue.exceptions import JobTimeoutError
from sheetqueue.core.queue.handle import JobHandle
from sheetqueue.core.queue.registry import QueueNotFoundError, QueueRegistry
from sheetqueue.core.queue.work_queue import BoundedWorkQueue, QueueSnapshot

__all__ = [
    'BoundedWorkQueue',
    'JobHandle',
    'JobTimeoutError',
    'QueueNotFoundError',
    'QueueRegistry',
    'QueueSnapshot',
]
