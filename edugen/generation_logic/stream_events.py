import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from edugen.generation_logic.assessment_orchestrator import AssessmentStreams
from edugen.generation_logic.lesson_plan_flow import LessonPlanStreams
from edugen.generation_logic.stream_handle import StreamHandle

__all__ = [
    "_create_stream_event",
    "stream_assessment_events",
    "stream_lesson_plan_events",
]

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# NDJSON event helper
# ---------------------------------------------------------------------------


def _create_stream_event(
    event_type: str,
    message: str | None = None,
    payload: Any | None = None,
    stream: str | None = None,
) -> str:
    """Serialize an event dict to an NDJSON line."""
    event: dict[str, Any] = {"type": event_type}
    if stream is not None:
        event["stream"] = stream
    if message is not None:
        event["message"] = message
    if payload is not None:
        event["payload"] = payload
    return json.dumps(event) + "\n"


async def _relay(handle: StreamHandle, value_event: str, queue: asyncio.Queue) -> None:
    """Forward one handle's values and terminal state onto the shared event queue."""
    try:
        async for value in handle:
            if isinstance(value, str):
                await queue.put(_create_stream_event(value_event, message=value, stream=handle.name))
            else:
                await queue.put(_create_stream_event(value_event, payload=value, stream=handle.name))
        await queue.put(_create_stream_event("done", stream=handle.name))
    except Exception as e:
        await queue.put(_create_stream_event("error", message=str(e), stream=handle.name))
    finally:
        await queue.put(None)


async def stream_assessment_events(streams: AssessmentStreams) -> AsyncIterator[str]:
    """Multiplex the ToS and questions streams into one tagged NDJSON stream."""
    queue: asyncio.Queue = asyncio.Queue()
    relays = [
        asyncio.create_task(_relay(streams.tos, "tos_delta", queue)),
        asyncio.create_task(_relay(streams.questions, "questions_snapshot", queue)),
    ]
    pending = len(relays)
    try:
        while pending:
            line = await queue.get()
            if line is None:
                pending -= 1
                continue
            yield line
        yield _create_stream_event("finished", message="Stream completed.")
    finally:
        for relay in relays:
            relay.cancel()
        logger.info("[%s] Assessment event stream closed.", streams.request_id)


async def stream_lesson_plan_events(streams: LessonPlanStreams) -> AsyncIterator[str]:
    try:
        async for delta in streams.content:
            yield _create_stream_event("delta", message=delta)
        yield _create_stream_event("done")
    except Exception as e:
        yield _create_stream_event("error", message=str(e))
    yield _create_stream_event("finished", message="Stream completed.")
