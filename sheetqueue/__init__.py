"""sheetqueue - bounded in-process job queues for worksheet generation"""

# Install Rust-style error handler on import
from .core.errors import install_error_handler as _install_error_handler

_install_error_handler()

from .core.app import SheetQueue
from .core.models.app import AppConfig
from .core.models.queues import QueueConfig, QueueName
from .core.models.tasks import TaskResult, TaskError, LibraryErrorCode, TaskUnit
from .core.types.status import (
    JobStatus,
    PipelineStatus,
    JOB_TERMINAL_STATES,
    PIPELINE_TERMINAL_STATES,
)
from .core.queue import (
    BoundedWorkQueue,
    JobHandle,
    JobTimeoutError,
    QueueNotFoundError,
    QueueRegistry,
    QueueSnapshot,
)
from .core.reporter import PeriodicReporter
from .core.pipeline import (
    Difficulty,
    GeneratedWorksheet,
    GenerationJob,
    ImageIntake,
    ImageUpload,
    PipelineMode,
    PipelineTicket,
    RenderedArtifact,
    RenderJob,
    WorksheetPipeline,
)
from .core.errors import (
    ErrorCode,
    SheetQueueError,
    ConfigurationError,
    TaskDefinitionError,
    RegistryError,
    ValidationReport,
    MultipleValidationErrors,
)
from .core.logging import get_logger, set_default_level

__all__ = [
    # Core
    'SheetQueue',
    'AppConfig',
    'QueueConfig',
    'QueueName',
    # Queues
    'BoundedWorkQueue',
    'JobHandle',
    'JobTimeoutError',
    'QueueNotFoundError',
    'QueueRegistry',
    'QueueSnapshot',
    'PeriodicReporter',
    # Results
    'TaskResult',
    'TaskError',
    'TaskUnit',
    'LibraryErrorCode',
    'JobStatus',
    'PipelineStatus',
    'JOB_TERMINAL_STATES',
    'PIPELINE_TERMINAL_STATES',
    # Pipeline
    'Difficulty',
    'GeneratedWorksheet',
    'GenerationJob',
    'ImageIntake',
    'ImageUpload',
    'PipelineMode',
    'PipelineTicket',
    'RenderedArtifact',
    'RenderJob',
    'WorksheetPipeline',
    # Errors
    'ErrorCode',
    'SheetQueueError',
    'ConfigurationError',
    'TaskDefinitionError',
    'RegistryError',
    'ValidationReport',
    'MultipleValidationErrors',
    # Logging
    'get_logger',
    'set_default_level',
]
