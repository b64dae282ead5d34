"""Collaborator protocols consumed by the generation flows.

Concrete implementations live in ``edugen.core.security`` (auth),
``edugen.services.llm`` (generation) and ``edugen.services.storage.record_store``
(persistence); tests substitute in-memory doubles.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any, Protocol

from pydantic import BaseModel

from edugen.models.generation_models import AssessmentRecord
from edugen.models.generation_models import LessonPlanRecord


class AuthProvider(Protocol):
    """Resolves the principal of the current request."""

    def current_user(self) -> str | None:
        """Return the authenticated user id, or None when there is no session."""
        ...


class GenerationProvider(Protocol):
    """Streaming text / structured generation against a hosted model."""

    def stream_text(self, prompt: str) -> AsyncIterator[str]:
        """Yield incremental text chunks. Raises ProviderError on fault."""
        ...

    def stream_structured(self, prompt: str, schema: type[BaseModel]) -> AsyncIterator[dict[str, Any]]:
        """Yield partial snapshots of an object conforming to ``schema``. Raises ProviderError."""
        ...


class RecordStore(Protocol):
    """Relational persistence of generated artifacts."""

    def insert_assessment(self, record: AssessmentRecord) -> int:
        """Insert an assessment row. Raises PersistenceError."""
        ...

    def insert_lesson_plan(self, record: LessonPlanRecord) -> int:
        """Insert a lesson plan row. Raises PersistenceError."""
        ...
