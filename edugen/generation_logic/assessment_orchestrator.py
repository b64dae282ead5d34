import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

from edugen.core.exceptions import AuthenticationRequired
from edugen.core.exceptions import as_provider_error
from edugen.generation_logic.stream_handle import StreamHandle
from edugen.models.generation_models import AssessmentRecord
from edugen.models.generation_models import AssessmentRequest
from edugen.models.generation_models import QuestionSet
from edugen.services.interfaces import AuthProvider
from edugen.services.interfaces import GenerationProvider
from edugen.services.interfaces import RecordStore
from edugen.services.llm import render_prompt

__all__ = [
    "AssessmentStreams",
    "DualPhaseGenerationOrchestrator",
    "build_questions_prompt",
    "build_tos_prompt",
]

logger = logging.getLogger(__name__)

# Background tasks are referenced here until done so they are not garbage collected
_background_tasks: set[asyncio.Task] = set()


@dataclass
class AssessmentStreams:
    """What the caller observes: the ToS text stream and the questions snapshot stream."""

    tos: StreamHandle[str]
    questions: StreamHandle[dict[str, Any]]
    task: asyncio.Task | None
    request_id: str


def build_tos_prompt(request: AssessmentRequest) -> str:
    return render_prompt(
        "tos_prompt.jinja2",
        topic=request.topic,
        grade_level=request.grade_level,
        subject=request.subject,
        num_mcq=request.num_mcq,
        num_short_answer=request.num_short_answer,
    )


def build_questions_prompt(request: AssessmentRequest, tos: str) -> str:
    return render_prompt(
        "questions_prompt.jinja2",
        tos=tos,
        topic=request.topic,
        grade_level=request.grade_level,
        subject=request.subject,
        num_mcq=request.num_mcq,
        num_short_answer=request.num_short_answer,
    )


class DualPhaseGenerationOrchestrator:
    """Generates a Table of Specification, then questions derived from it.

    ``run`` returns two live streams immediately; generation and persistence
    continue in a detached task. The record is only written once both phases
    succeed, and a failed write never changes the stream outcomes.
    """

    def __init__(
        self,
        auth_provider: AuthProvider,
        provider: GenerationProvider,
        record_store: RecordStore,
    ):
        self.auth_provider = auth_provider
        self.provider = provider
        self.record_store = record_store

    def run(self, request: AssessmentRequest) -> AssessmentStreams:
        """Start the orchestration. Must be called from a running event loop.

        Without an authenticated user both streams are returned already
        failed with AuthenticationRequired and no task is started.
        """
        request_id = str(uuid4())
        tos_stream: StreamHandle[str] = StreamHandle("tos")
        # Each snapshot supersedes the previous one
        questions_stream: StreamHandle[dict[str, Any]] = StreamHandle("questions", keep_history=False)

        user_id = self.auth_provider.current_user()
        if not user_id:
            logger.warning("[%s] Assessment generation rejected: no authenticated user", request_id)
            error = AuthenticationRequired("Authentication required.")
            tos_stream.fail(error)
            questions_stream.fail(error)
            return AssessmentStreams(tos=tos_stream, questions=questions_stream, task=None, request_id=request_id)

        task = asyncio.get_running_loop().create_task(
            self._orchestrate(request_id, user_id, request, tos_stream, questions_stream),
            name=f"assessment-{request_id}",
        )
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)

        logger.info(
            "[%s] Assessment generation started for user %s: topic=%r mcq=%d short_answer=%d",
            request_id,
            user_id,
            request.topic,
            request.num_mcq,
            request.num_short_answer,
        )
        return AssessmentStreams(tos=tos_stream, questions=questions_stream, task=task, request_id=request_id)

    async def _orchestrate(
        self,
        request_id: str,
        user_id: str,
        request: AssessmentRequest,
        tos_stream: StreamHandle[str],
        questions_stream: StreamHandle[dict[str, Any]],
    ) -> None:
        try:
            # --- Phase 1: Table of Specification as free text ---
            tos_text = ""
            try:
                async for delta in self.provider.stream_text(build_tos_prompt(request)):
                    tos_text += delta
                    tos_stream.append(delta)
            except Exception as e:
                error = as_provider_error(e)
                logger.error("[%s] ToS generation failed: %s", request_id, str(error))
                tos_stream.fail(error)
                questions_stream.fail(error)
                return
            tos_stream.complete()
            logger.info("[%s] ToS generation complete, length: %d chars", request_id, len(tos_text))

            # --- Phase 2: questions as a structured object, using the ToS as context ---
            final_questions: dict[str, Any] = {}
            try:
                async for snapshot in self.provider.stream_structured(
                    build_questions_prompt(request, tos_text), QuestionSet
                ):
                    final_questions = snapshot
                    questions_stream.append(snapshot)
            except Exception as e:
                error = as_provider_error(e)
                logger.error("[%s] Question generation failed: %s", request_id, str(error))
                questions_stream.fail(error)
                return
            questions_stream.complete()
            logger.info(
                "[%s] Question generation complete: %d questions",
                request_id,
                len(final_questions.get("questions") or []),
            )

            await self._persist(request_id, user_id, request, tos_text, final_questions)

        except Exception as e:
            logger.exception("[%s] Unexpected error during assessment generation", request_id)
            error = as_provider_error(e)
            tos_stream.fail(error)
            questions_stream.fail(error)
        finally:
            logger.info("[%s] Assessment generation finished.", request_id)

    async def _persist(
        self,
        request_id: str,
        user_id: str,
        request: AssessmentRequest,
        tos_text: str,
        final_questions: dict[str, Any],
    ) -> None:
        questions = final_questions.get("questions")
        if not tos_text or not isinstance(questions, list):
            logger.warning("[%s] Nothing to persist (empty ToS or no questions list)", request_id)
            return

        record = AssessmentRecord(
            user_id=user_id,
            subject=request.subject,
            grade_level=request.grade_level,
            topic=request.topic,
            generated_tos=tos_text,
            generated_questions=json.dumps(questions),
        )
        try:
            record_id = await asyncio.to_thread(self.record_store.insert_assessment, record)
            logger.info("[%s] Assessment saved with id %s", request_id, record_id)
        except Exception as e:
            # The user already has the generated content; a failed save is only logged
            logger.error("[%s] DB save error: %s", request_id, str(e), exc_info=True)
