import asyncio
import logging
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from edugen.core.config import settings
from edugen.core.exceptions import AuthenticationRequired
from edugen.core.exceptions import as_provider_error
from edugen.generation_logic.stream_handle import StreamHandle
from edugen.models.generation_models import LessonPlanRecord
from edugen.models.generation_models import LessonPlanRequest
from edugen.services.interfaces import AuthProvider
from edugen.services.interfaces import GenerationProvider
from edugen.services.llm import render_prompt
from edugen.services.section_parser import DETAILS_KEY
from edugen.services.section_parser import extract_lesson_plan_details
from edugen.services.section_parser import parse_sections
from edugen.services.storage.record_store import SQLAlchemyRecordStore

__all__ = ["LessonPlanFlow", "LessonPlanStreams", "build_lesson_plan_prompt", "render_sections"]

logger = logging.getLogger(__name__)

_background_tasks: set[asyncio.Task] = set()


@dataclass
class LessonPlanStreams:
    content: StreamHandle[str]
    task: asyncio.Task
    request_id: str


def build_lesson_plan_prompt(request: LessonPlanRequest) -> str:
    return render_prompt(
        "lesson_plan_prompt.jinja2",
        subject=request.subject,
        grade_level=request.grade_level,
        topic=request.topic,
        duration=request.duration,
    )


def render_sections(record: LessonPlanRecord) -> dict[str, Any]:
    """Structured view of a stored lesson plan: its sections plus the details table."""
    sections = parse_sections(record.generated_content)
    return {
        "id": record.id,
        "topic": record.topic,
        "sections": sections,
        "details": extract_lesson_plan_details(sections[DETAILS_KEY]),
    }


class LessonPlanFlow:
    """Streams a single SBC-format lesson plan and stores it once finished."""

    def __init__(
        self,
        auth_provider: AuthProvider,
        provider: GenerationProvider,
        record_store: SQLAlchemyRecordStore,
    ):
        self.auth_provider = auth_provider
        self.provider = provider
        self.record_store = record_store

    def _require_user(self) -> str:
        user_id = self.auth_provider.current_user()
        if not user_id:
            raise AuthenticationRequired("Authentication required.")
        return user_id

    def run(self, request: LessonPlanRequest) -> LessonPlanStreams:
        user_id = self._require_user()
        request_id = str(uuid4())
        content: StreamHandle[str] = StreamHandle("lesson_plan")
        task = asyncio.get_running_loop().create_task(
            self._generate(request_id, user_id, request, content),
            name=f"lesson-plan-{request_id}",
        )
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)
        logger.info("[%s] Lesson plan generation started for user %s: %r", request_id, user_id, request.topic)
        return LessonPlanStreams(content=content, task=task, request_id=request_id)

    async def _generate(
        self,
        request_id: str,
        user_id: str,
        request: LessonPlanRequest,
        content: StreamHandle[str],
    ) -> None:
        final_content = ""
        try:
            async for delta in self.provider.stream_text(build_lesson_plan_prompt(request)):
                final_content += delta
                content.append(delta)
        except Exception as e:
            error = as_provider_error(e)
            logger.error("[%s] Lesson plan generation failed: %s", request_id, str(error))
            content.fail(error)
            return
        content.complete()

        record = LessonPlanRecord(
            user_id=user_id,
            subject=request.subject,
            grade_level=request.grade_level,
            topic=request.topic,
            duration_minutes=request.duration,
            generated_content=final_content,
        )
        try:
            record_id = await asyncio.to_thread(self.record_store.insert_lesson_plan, record)
            logger.info("[%s] Lesson plan saved with id %s", request_id, record_id)
        except Exception as e:
            logger.error("[%s] DB save error: %s", request_id, str(e), exc_info=True)

    def list_history(self, limit: int | None = None) -> list[LessonPlanRecord]:
        user_id = self._require_user()
        return self.record_store.list_lesson_plans(user_id, limit or settings.lesson_plan_history_limit)

    def get_sections(self, lesson_plan_id: int) -> dict[str, Any] | None:
        user_id = self._require_user()
        record = self.record_store.get_lesson_plan(user_id, lesson_plan_id)
        if record is None:
            return None
        return render_sections(record)
