# sheetqueue/core/pipeline/worksheet.py
from __future__ import annotations
import asyncio
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from functools import partial
from typing import Any, Awaitable, Callable, Optional, TypeVar
from sheetqueue.core.logging import get_logger
from sheetqueue.core.models.queues import QueueName
from sheetqueue.core.models.tasks import LibraryErrorCode, TaskError, TaskResult, TaskUnit
from sheetqueue.core.pipeline.models import (
    GeneratedWorksheet,
    GenerationJob,
    RenderedArtifact,
    RenderJob,
)
from sheetqueue.core.queue.handle import task_error_from_exception
from sheetqueue.core.queue.registry import QueueRegistry
from sheetqueue.core.queue.work_queue import run_task_unit
from sheetqueue.core.types.status import PipelineStatus
from sheetqueue.core.utils.loop_runner import LoopRunner, get_shared_runner

logger = get_logger('pipeline')

T = TypeVar('T')

# Collaborators. The queue layer never looks inside them.
GenerateFn = Callable[[GenerationJob], Awaitable[Any]]
RenderFn = Callable[[RenderJob], Awaitable[bytes]]
PublishFn = Callable[[str, bytes], Awaitable[str]]

# How a stage runs: (queue it belongs to, task unit, label) -> awaitable result.
StageInvoker = Callable[[QueueName, TaskUnit[Any], str], Awaitable[Any]]


class PipelineMode(str, Enum):
    QUEUED = 'queued'
    INLINE = 'inline'


@dataclass
class PipelineTicket:
    """
    Acknowledgment for one pipeline run.

    Returned before any stage has run in queued mode. `status` moves through
    accepted -> generating -> rendering -> completed, or stops at
    generation_failed / render_failed. `await ticket.wait()` returns the final
    TaskResult without raising.
    """

    ticket_id: str
    job: GenerationJob
    mode: PipelineMode
    accepted_at: datetime
    status: PipelineStatus = PipelineStatus.ACCEPTED
    worksheet_id: Optional[str] = None
    artifact: Optional[RenderedArtifact] = None
    error: Optional[TaskError] = None
    _done: asyncio.Event = field(default_factory=asyncio.Event, repr=False)

    @classmethod
    def open(cls, job: GenerationJob, mode: PipelineMode) -> 'PipelineTicket':
        return cls(
            ticket_id=f'ws-{uuid.uuid4().hex[:12]}',
            job=job,
            mode=mode,
            accepted_at=datetime.now(timezone.utc),
        )

    def done(self) -> bool:
        return self.status.is_terminal

    async def wait(self) -> TaskResult[RenderedArtifact, TaskError]:
        await self._done.wait()
        if self.artifact is not None:
            return TaskResult(ok=self.artifact)
        assert self.error is not None
        return TaskResult(err=self.error)

    def _advance(self, status: PipelineStatus) -> None:
        self.status = status

    def _complete(self, artifact: RenderedArtifact) -> None:
        self.artifact = artifact
        self.status = PipelineStatus.COMPLETED
        self._done.set()

    def _fail(self, status: PipelineStatus, error: TaskError) -> None:
        self.error = error
        self.status = status
        self._done.set()


class WorksheetPipeline:
    """
    Two-stage worksheet pipeline: generate content, then render the PDF.

    Stage 2 runs if and only if stage 1 succeeded, and receives only the
    generated worksheet id. The stages share no transaction: a render failure
    leaves the generated worksheet in place and nothing is retried.

    Modes share `_execute`; they differ only in how a stage is invoked:
    - queued (`submit`): each stage is a job on its queue, the caller gets a
      ticket immediately
    - inline (`run_inline` / `run_blocking`): legacy callers await both
      stages by direct call, no queue involved
    """

    def __init__(
        self,
        registry: QueueRegistry,
        generate: GenerateFn,
        render: RenderFn,
        publish: Optional[PublishFn] = None,
    ) -> None:
        self.registry = registry
        self._generate = generate
        self._render = render
        self._publish = publish
        self._drivers: set[asyncio.Task[None]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._drivers)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def submit(self, job: GenerationJob) -> PipelineTicket:
        """Queue stage 1 and return at once. Never awaited by the pipeline's caller."""
        ticket = PipelineTicket.open(job, PipelineMode.QUEUED)
        first_stage = self._via_queue(
            QueueName.WORKSHEET,
            partial(self._generation_stage, ticket),
            f'generate:{ticket.ticket_id}',
        )
        driver = asyncio.create_task(
            self._drive_detached(ticket, first_stage),
            name=f'sheetqueue-pipeline-{ticket.ticket_id}',
        )
        self._drivers.add(driver)
        driver.add_done_callback(self._drivers.discard)
        logger.info(
            f'[{ticket.ticket_id}] accepted: user={job.user_id} topic={job.topic!r} '
            f'difficulty={job.difficulty.value}'
        )
        return ticket

    async def run_inline(self, job: GenerationJob) -> RenderedArtifact:
        """Legacy mode: await both stages directly; errors propagate."""
        ticket = PipelineTicket.open(job, PipelineMode.INLINE)
        return await self._execute(ticket, self._direct)

    def run_blocking(
        self, job: GenerationJob, runner: Optional[LoopRunner] = None
    ) -> RenderedArtifact:
        """Legacy mode for synchronous callers, run on a background loop thread."""
        runner = runner or get_shared_runner()
        return runner.call(self.run_inline, job)

    async def drain(self) -> None:
        """Wait for every queued pipeline run to reach a terminal state."""
        while self._drivers:
            await asyncio.gather(*tuple(self._drivers), return_exceptions=True)

    # ------------------------------------------------------------------
    # Shared pipeline
    # ------------------------------------------------------------------

    async def _execute(
        self,
        ticket: PipelineTicket,
        invoke: StageInvoker,
        first_stage: Optional[Awaitable[Any]] = None,
    ) -> RenderedArtifact:
        tid = ticket.ticket_id
        if first_stage is None:
            first_stage = invoke(
                QueueName.WORKSHEET,
                partial(self._generation_stage, ticket),
                f'generate:{tid}',
            )
        try:
            generated: GeneratedWorksheet = await first_stage
        except asyncio.CancelledError:
            ticket._fail(
                PipelineStatus.GENERATION_FAILED, _cancelled_error(f'generation of {tid}')
            )
            logger.error(f'[{tid}] generation was cancelled; no render job was scheduled')
            raise
        except Exception as exc:
            ticket._fail(PipelineStatus.GENERATION_FAILED, self._error_for(exc))
            logger.error(
                f'[{tid}] generation failed ({type(exc).__name__}: {exc}); '
                'no render job was scheduled'
            )
            raise

        ticket.worksheet_id = generated.worksheet_id
        render_job = RenderJob.from_generated(generated)
        ticket._advance(PipelineStatus.RENDERING)
        logger.info(f'[{tid}] worksheet {render_job.worksheet_id} generated; rendering')
        try:
            artifact: RenderedArtifact = await invoke(
                QueueName.PDF,
                partial(self._render_stage, render_job),
                f'render:{render_job.worksheet_id}',
            )
        except asyncio.CancelledError:
            ticket._fail(
                PipelineStatus.RENDER_FAILED,
                _cancelled_error(f'render of worksheet {render_job.worksheet_id}'),
            )
            logger.error(
                f'[{tid}] render of worksheet {render_job.worksheet_id} was cancelled; '
                'generated content is kept'
            )
            raise
        except Exception as exc:
            ticket._fail(PipelineStatus.RENDER_FAILED, self._error_for(exc))
            logger.error(
                f'[{tid}] render of worksheet {render_job.worksheet_id} failed '
                f'({type(exc).__name__}: {exc}); generated content is kept'
            )
            raise

        ticket._complete(artifact)
        logger.info(
            f'[{tid}] worksheet {artifact.worksheet_id} finalized '
            f'({artifact.size_bytes} bytes{", " + artifact.url if artifact.url else ""})'
        )
        return artifact

    async def _drive_detached(
        self, ticket: PipelineTicket, first_stage: Awaitable[Any]
    ) -> None:
        # The outcome is on the ticket and was logged by _execute.
        try:
            await self._execute(ticket, self._via_queue, first_stage)
        except asyncio.CancelledError:
            # A cancelled stage ends the run; cancelling the driver itself propagates.
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
        except Exception:
            return

    def _via_queue(
        self, queue: QueueName, task: TaskUnit[T], label: str
    ) -> Awaitable[T]:
        return self.registry.submit(queue, task, label=label)

    @staticmethod
    def _direct(queue: QueueName, task: TaskUnit[T], label: str) -> Awaitable[T]:
        return run_task_unit(task)

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def _generation_stage(self, ticket: PipelineTicket) -> GeneratedWorksheet:
        # Runs once the job holds a worksheet slot, not when it is queued.
        ticket._advance(PipelineStatus.GENERATING)
        result = await self._generate(ticket.job)
        if isinstance(result, GeneratedWorksheet):
            return result
        return GeneratedWorksheet.model_validate(result)

    async def _render_stage(self, job: RenderJob) -> RenderedArtifact:
        pdf = await self._render(job)
        if not isinstance(pdf, (bytes, bytearray)) or not pdf:
            raise ValueError(
                f'renderer returned no PDF bytes for worksheet {job.worksheet_id}'
            )
        url = None
        if self._publish is not None:
            url = await self._publish(job.worksheet_id, bytes(pdf))
        return RenderedArtifact(worksheet_id=job.worksheet_id, pdf=bytes(pdf), url=url)

    def _error_for(self, exc: BaseException) -> TaskError:
        return task_error_from_exception(exc, self.registry.config.exception_mapper)


def _cancelled_error(what: str) -> TaskError:
    return TaskError(
        error_code=LibraryErrorCode.TASK_CANCELLED,
        message=f'{what} was cancelled before settling',
    )
