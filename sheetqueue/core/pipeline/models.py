# sheetqueue/core/pipeline/models.py
from __future__ import annotations
from enum import Enum
from typing import Annotated, Any, Optional
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
)

NonEmptyStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class Difficulty(str, Enum):
    EASY = 'easy'
    MEDIUM = 'medium'
    HARD = 'hard'


class GenerationJob(BaseModel):
    """
    Inputs of the content generation stage.

    Fields:
        user_id: owner of the worksheet
        topic / syllabus: what the LLM should write about
        difficulty: easy, medium or hard (case-insensitive)
        template_id: template to follow; None means the default template
        subject, additional_instructions, experiment_number: passed through
            to the generator as-is
    """

    model_config = ConfigDict(frozen=True, extra='forbid')

    user_id: NonEmptyStr
    topic: NonEmptyStr
    syllabus: NonEmptyStr
    difficulty: Difficulty = Difficulty.MEDIUM
    template_id: Optional[str] = None
    subject: Optional[str] = None
    additional_instructions: str = ''
    experiment_number: str = 'N/A'

    @field_validator('difficulty', mode='before')
    @classmethod
    def _lower_difficulty(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class GeneratedWorksheet(BaseModel):
    """Stage 1 output. Only worksheet_id crosses into stage 2."""

    model_config = ConfigDict(populate_by_name=True)

    worksheet_id: NonEmptyStr = Field(
        validation_alias=AliasChoices('worksheet_id', 'id'),
    )
    content: dict[str, Any] = Field(default_factory=dict)


class RenderJob(BaseModel):
    """Stage 2 input: the stored worksheet to render, nothing else."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    worksheet_id: NonEmptyStr

    @classmethod
    def from_generated(cls, generated: GeneratedWorksheet) -> 'RenderJob':
        return cls(worksheet_id=generated.worksheet_id)


class RenderedArtifact(BaseModel):
    """Stage 2 output: the PDF and, when published, where it lives."""

    model_config = ConfigDict(frozen=True)

    worksheet_id: str
    pdf: bytes = Field(repr=False)
    url: Optional[str] = None

    @property
    def size_bytes(self) -> int:
        return len(self.pdf)


class ImageUpload(BaseModel):
    """A user-supplied image attached to a worksheet."""

    model_config = ConfigDict(frozen=True, extra='forbid')

    user_id: NonEmptyStr
    worksheet_id: NonEmptyStr
    filename: NonEmptyStr
    content: bytes = Field(repr=False, min_length=1)
    content_type: str = 'image/png'
