# sheetqueue/core/types/status.py
"""
Core status enums used throughout the package.
This module should not import from other package modules.
"""

from enum import Enum


class JobStatus(Enum):
    """Status of one job inside a bounded work queue"""

    PENDING = 'pending'  # Accepted, waiting for a free slot.

    RUNNING = 'running'  # Holding a slot and executing.

    COMPLETED = 'completed'  # Settled with a value.

    FAILED = 'failed'  # Settled by raising.
    TIMED_OUT = 'timed_out'  # Lost the race against the queue timeout.

    @property
    def is_terminal(self) -> bool:
        """Whether this status represents a final state (no further transitions)."""
        return self in JOB_TERMINAL_STATES


JOB_TERMINAL_STATES: frozenset[JobStatus] = frozenset({
    JobStatus.COMPLETED,
    JobStatus.FAILED,
    JobStatus.TIMED_OUT,
})


class PipelineStatus(Enum):
    """Progress of a two-stage worksheet pipeline run"""

    ACCEPTED = 'accepted'
    GENERATING = 'generating'
    RENDERING = 'rendering'
    COMPLETED = 'completed'
    GENERATION_FAILED = 'generation_failed'
    RENDER_FAILED = 'render_failed'

    @property
    def is_terminal(self) -> bool:
        return self in PIPELINE_TERMINAL_STATES


PIPELINE_TERMINAL_STATES: frozenset[PipelineStatus] = frozenset({
    PipelineStatus.COMPLETED,
    PipelineStatus.GENERATION_FAILED,
    PipelineStatus.RENDER_FAILED,
})
