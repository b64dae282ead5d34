"""Generation logic package.

This package groups the flows that turn a validated request into live output
streams (assessment builder, lesson planner) plus the NDJSON helpers that
relay those streams over HTTP. Keeping them here allows `edugen/api/routes.py`
to stay minimal and focused on HTTP routing.
"""

from .assessment_orchestrator import DualPhaseGenerationOrchestrator  # noqa: F401
from .lesson_plan_flow import LessonPlanFlow  # noqa: F401
from .stream_events import stream_assessment_events  # noqa: F401
from .stream_events import stream_lesson_plan_events  # noqa: F401
from .stream_handle import StreamHandle  # noqa: F401
