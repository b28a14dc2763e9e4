# sheetqueue/core/app.py
from __future__ import annotations
import weakref
from typing import Any, Optional
from sheetqueue.core.logging import get_logger
from sheetqueue.core.models.app import AppConfig
from sheetqueue.core.pipeline.images import ImageIntake, UploadFn
from sheetqueue.core.pipeline.worksheet import (
    GenerateFn,
    PublishFn,
    RenderFn,
    WorksheetPipeline,
)
from sheetqueue.core.queue.registry import QueueRegistry
from sheetqueue.core.reporter.service import PeriodicReporter

logger = get_logger('app')


class SheetQueue:
    """Process-level owner of the queue registry and its reporter.

    Construct once at startup and hand `registry` (or the pipelines built
    from it) to request handlers:

        sq = SheetQueue(AppConfig.from_env())
        await sq.start()
        pipeline = sq.pipeline(generate=llm.generate, render=renderer.render)
    """

    def __init__(self, config: Optional[AppConfig] = None) -> None:
        self.config = config or AppConfig()
        self.registry = QueueRegistry(self.config)
        self.reporter = PeriodicReporter.for_registry(self.registry)
        self._pipelines: weakref.WeakSet[WorksheetPipeline] = weakref.WeakSet()

    def pipeline(
        self,
        generate: GenerateFn,
        render: RenderFn,
        publish: Optional[PublishFn] = None,
    ) -> WorksheetPipeline:
        pipeline = WorksheetPipeline(self.registry, generate, render, publish)
        self._pipelines.add(pipeline)
        return pipeline

    def images(self, upload: UploadFn) -> ImageIntake:
        return ImageIntake(self.registry, upload)

    async def start(self) -> None:
        self.config.log_config(logger)
        self.registry.log_startup()
        self.reporter.start()

    async def drain(self) -> None:
        """Wait until no pipeline run is in flight and every queue is idle."""
        # Queues look idle between a stage-1 settle and the stage-2 submit.
        while True:
            for pipeline in list(self._pipelines):
                await pipeline.drain()
            await self.registry.on_idle()
            in_flight = any(p.in_flight for p in self._pipelines)
            if not in_flight and not any(s.is_busy for s in self.registry.snapshots()):
                return

    async def stop(self, *, drain: bool = True) -> None:
        """Stop reporting; with drain=True also wait for pipelines and queued jobs."""
        await self.reporter.stop()
        if drain:
            await self.drain()
        logger.info('Queue system stopped')

    async def __aenter__(self) -> 'SheetQueue':
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()
