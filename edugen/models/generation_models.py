from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import ValidationError
from pydantic import field_validator

from edugen.core.config import settings
from edugen.core.exceptions import ValidationFailed


def _match_recognised(value: str, recognised: list[str], label: str) -> str:
    """Return the canonical spelling of ``value`` from ``recognised`` (case-insensitive)."""
    for candidate in recognised:
        if candidate.lower() == value.strip().lower():
            return candidate
    raise ValueError(f"Unrecognised {label}: {value!r}")


class _ParsedInput(BaseModel):
    """Mixin providing validation that surfaces as ValidationFailed."""

    @classmethod
    def parse_input(cls, data: dict[str, Any]):
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ValidationFailed(f"Invalid {cls.__name__}", errors=e.errors(include_url=False, include_context=False)) from e


class AssessmentRequest(_ParsedInput):
    """Immutable input of the assessment builder."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    topic: str = Field(min_length=3)
    grade_level: str = Field(alias="gradeLevel")
    subject: str
    num_mcq: int = Field(default=0, ge=0, alias="numMcq")
    num_short_answer: int = Field(default=0, ge=0, alias="numShortAnswer")

    @field_validator("topic")
    @classmethod
    def strip_topic(cls, v: str) -> str:
        if len(v.strip()) < 3:
            raise ValueError("Topic must be at least 3 characters.")
        return v.strip()

    @field_validator("grade_level")
    @classmethod
    def check_grade_level(cls, v: str) -> str:
        return _match_recognised(v, settings.grade_levels, "grade level")

    @field_validator("subject")
    @classmethod
    def check_subject(cls, v: str) -> str:
        return _match_recognised(v, settings.subjects, "subject")


class QuestionType(str, Enum):
    MCQ = "MCQ"
    SHORT_ANSWER = "SHORT_ANSWER"


class AssessmentItem(BaseModel):
    """A single generated question."""

    type: QuestionType
    cognitive_level: str
    question: str
    options: list[str] | None = None
    answer: str


class QuestionSet(BaseModel):
    """Structured result of the second assessment phase."""

    questions: list[AssessmentItem]


class AssessmentRecord(BaseModel):
    """Row written once both assessment phases succeed."""

    user_id: str
    subject: str
    grade_level: str
    topic: str
    generated_tos: str
    generated_questions: str  # JSON-serialised list of items


class LessonPlanRequest(_ParsedInput):
    """Input of the lesson planner."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    subject: str = Field(min_length=2)
    grade_level: str = Field(alias="gradeLevel")
    topic: str = Field(min_length=5)
    duration: int = Field(ge=5, description="Total lesson duration in minutes.")

    @field_validator("grade_level")
    @classmethod
    def check_grade_level(cls, v: str) -> str:
        return _match_recognised(v, settings.grade_levels, "grade level")


class LessonPlanRecord(BaseModel):
    """Lesson plan row, as written to and read back from the record store."""

    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    user_id: str
    subject: str
    grade_level: str
    topic: str
    duration_minutes: int
    generated_content: str
    created_at: datetime | None = None


class ResourceMetadata(_ParsedInput):
    """Metadata for an uploaded learning resource (file already in object storage)."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(min_length=3)
    description: str | None = None
    subject: str = Field(min_length=2)
    grade_level: str = Field(alias="gradeLevel")
    file_path: str = Field(alias="filePath")
    file_type: str = Field(alias="fileType")


class ResourceRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    title: str
    description: str | None = None
    subject: str
    grade_level: str
    file_path: str
    file_type: str
    created_at: datetime | None = None
