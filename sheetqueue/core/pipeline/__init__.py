# sheetqueue/core/pipeline/__init__.py
"""
Job composition on top of the queue registry.

Main components:
- WorksheetPipeline: generate (worksheet queue) then render (pdf queue)
- ImageIntake: user image uploads on the image queue
- GenerationJob / RenderJob / ImageUpload: explicit stage inputs

Example usage:
    pipeline = WorksheetPipeline(registry, generate=llm.generate, render=browser.render)
    ticket = pipeline.submit(GenerationJob(user_id='u1', topic='Sorting', syllabus='...'))
    # respond to the client now; ticket.status tracks progress
"""

from sheetqueue.core.pipeline.images import ImageIntake
from sheetqueue.core.pipeline.models import (
    Difficulty,
    GeneratedWorksheet,
    GenerationJob,
    ImageUpload,
    RenderedArtifact,
    RenderJob,
)
from sheetqueue.core.pipeline.worksheet import (
    PipelineMode,
    PipelineTicket,
    WorksheetPipeline,
)

__all__ = [
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
]
