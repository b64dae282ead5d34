import asyncio
import logging
from functools import lru_cache
from typing import Any

from fastapi import APIRouter
from fastapi import Depends
from fastapi import HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from edugen.core.exceptions import AuthenticationRequired
from edugen.core.security import HeaderAuthProvider
from edugen.core.security import get_auth_provider
from edugen.core.security import verify_api_key
from edugen.generation_logic.assessment_orchestrator import DualPhaseGenerationOrchestrator
from edugen.generation_logic.lesson_plan_flow import LessonPlanFlow
from edugen.generation_logic.stream_events import stream_assessment_events
from edugen.generation_logic.stream_events import stream_lesson_plan_events
from edugen.models.generation_models import AssessmentRequest
from edugen.models.generation_models import LessonPlanRecord
from edugen.models.generation_models import LessonPlanRequest
from edugen.models.generation_models import ResourceMetadata
from edugen.models.generation_models import ResourceRecord
from edugen.services.llm import OpenAIGenerationProvider
from edugen.services.storage.record_store import SQLAlchemyRecordStore
from edugen.services.storage.s3_service import build_resource_key
from edugen.services.storage.s3_service import create_presigned_put

# Configure module logger
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", dependencies=[Depends(verify_api_key)])

NDJSON = "application/x-ndjson"


@lru_cache
def get_record_store() -> SQLAlchemyRecordStore:
    store = SQLAlchemyRecordStore()
    store.create_schema()
    return store


@lru_cache
def get_generation_provider() -> OpenAIGenerationProvider:
    return OpenAIGenerationProvider()


def _require_user(auth: HeaderAuthProvider) -> str:
    user_id = auth.current_user()
    if not user_id:
        raise AuthenticationRequired("Authentication required.")
    return user_id


# ---------------------------------------------------------------------------
# Assessment builder
# ---------------------------------------------------------------------------


@router.post("/assessments", summary="Generate a ToS and questions", tags=["Assessments"])
async def generate_assessment(
    payload: dict[str, Any],
    auth: HeaderAuthProvider = Depends(get_auth_provider),
    provider: OpenAIGenerationProvider = Depends(get_generation_provider),
    store: SQLAlchemyRecordStore = Depends(get_record_store),
) -> StreamingResponse:
    request = AssessmentRequest.parse_input(payload)
    orchestrator = DualPhaseGenerationOrchestrator(auth_provider=auth, provider=provider, record_store=store)
    streams = orchestrator.run(request)
    return StreamingResponse(stream_assessment_events(streams), media_type=NDJSON)


@router.get("/assessments", tags=["Assessments"])
async def list_assessments(
    auth: HeaderAuthProvider = Depends(get_auth_provider),
    store: SQLAlchemyRecordStore = Depends(get_record_store),
) -> list[dict[str, Any]]:
    user_id = _require_user(auth)
    records = await asyncio.to_thread(store.list_assessments, user_id)
    return [record.model_dump() for record in records]


# ---------------------------------------------------------------------------
# Lesson planner
# ---------------------------------------------------------------------------


@router.post("/lesson-plans", summary="Generate an SBC lesson plan", tags=["Lesson Plans"])
async def generate_lesson_plan(
    payload: dict[str, Any],
    auth: HeaderAuthProvider = Depends(get_auth_provider),
    provider: OpenAIGenerationProvider = Depends(get_generation_provider),
    store: SQLAlchemyRecordStore = Depends(get_record_store),
) -> StreamingResponse:
    _require_user(auth)
    request = LessonPlanRequest.parse_input(payload)
    flow = LessonPlanFlow(auth_provider=auth, provider=provider, record_store=store)
    streams = flow.run(request)
    return StreamingResponse(stream_lesson_plan_events(streams), media_type=NDJSON)


@router.get("/lesson-plans", response_model=list[LessonPlanRecord], tags=["Lesson Plans"])
async def lesson_plan_history(
    auth: HeaderAuthProvider = Depends(get_auth_provider),
    provider: OpenAIGenerationProvider = Depends(get_generation_provider),
    store: SQLAlchemyRecordStore = Depends(get_record_store),
) -> list[LessonPlanRecord]:
    flow = LessonPlanFlow(auth_provider=auth, provider=provider, record_store=store)
    return await asyncio.to_thread(flow.list_history)


@router.get("/lesson-plans/{lesson_plan_id}/sections", tags=["Lesson Plans"])
async def lesson_plan_sections(
    lesson_plan_id: int,
    auth: HeaderAuthProvider = Depends(get_auth_provider),
    provider: OpenAIGenerationProvider = Depends(get_generation_provider),
    store: SQLAlchemyRecordStore = Depends(get_record_store),
) -> dict[str, Any]:
    flow = LessonPlanFlow(auth_provider=auth, provider=provider, record_store=store)
    rendered = await asyncio.to_thread(flow.get_sections, lesson_plan_id)
    if rendered is None:
        raise HTTPException(status_code=404, detail="Lesson plan not found.")
    return rendered


# ---------------------------------------------------------------------------
# Resource hub
# ---------------------------------------------------------------------------


class PresignRequest(BaseModel):
    filename: str
    content_type: str


@router.post("/resources/presign", summary="Generate Presigned URL for S3 Upload", tags=["Resources"])
def presign_resource_upload(
    body: PresignRequest,
    auth: HeaderAuthProvider = Depends(get_auth_provider),
) -> dict[str, str]:
    """Returns a presigned URL the client PUTs the file to, plus the object key to register afterwards."""
    user_id = _require_user(auth)
    if not body.filename or not body.content_type:
        raise HTTPException(status_code=400, detail="Filename and content_type are required.")
    key = build_resource_key(user_id, body.filename)
    url = create_presigned_put(key, body.content_type)
    return {"upload_url": url, "file_path": key}


@router.post("/resources", response_model=ResourceRecord, status_code=201, tags=["Resources"])
async def add_resource_metadata(
    payload: dict[str, Any],
    auth: HeaderAuthProvider = Depends(get_auth_provider),
    store: SQLAlchemyRecordStore = Depends(get_record_store),
) -> ResourceRecord:
    user_id = _require_user(auth)
    metadata = ResourceMetadata.parse_input(payload)
    return await asyncio.to_thread(store.insert_resource, user_id, metadata)


@router.get("/resources", response_model=list[ResourceRecord], tags=["Resources"])
async def list_resources(
    auth: HeaderAuthProvider = Depends(get_auth_provider),
    store: SQLAlchemyRecordStore = Depends(get_record_store),
) -> list[ResourceRecord]:
    user_id = _require_user(auth)
    return await asyncio.to_thread(store.list_resources, user_id)
