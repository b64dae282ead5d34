import pytest

from edugen.core.exceptions import PersistenceError
from edugen.core.exceptions import ProviderError
from edugen.models.generation_models import AssessmentRequest

CANNED_TOS = (
    "| Topic Area | Cognitive Level (Bloom/SBC) | No. of Items | Marks Allocated |\n"
    "|---|---|---|---|\n"
    "| Light reactions | Knowledge | 2 | 2 |\n"
    "| Calvin cycle | Application | 1 | 3 |"
)

CANNED_QUESTIONS = {
    "questions": [
        {
            "type": "MCQ",
            "cognitive_level": "Knowledge",
            "question": "Where do the light reactions take place?",
            "options": ["Stroma", "Thylakoid membrane", "Nucleus", "Cytoplasm"],
            "answer": "Thylakoid membrane",
        },
        {
            "type": "MCQ",
            "cognitive_level": "Knowledge",
            "question": "Which gas is released during photosynthesis?",
            "options": ["Oxygen", "Nitrogen", "Carbon dioxide", "Hydrogen"],
            "answer": "Oxygen",
        },
        {
            "type": "SHORT_ANSWER",
            "cognitive_level": "Application",
            "question": "Explain why plants kept in the dark stop producing glucose.",
            "answer": "Without light the light reactions cannot supply ATP and NADPH to the Calvin cycle.",
        },
    ]
}


def _chunks(text: str, size: int = 16) -> list[str]:
    return [text[i : i + size] for i in range(0, len(text), size)]


def _snapshots(final: dict) -> list[dict]:
    """Growing prefixes of the question list, ending with the full object."""
    questions = final["questions"]
    return [{"questions": questions[:n]} for n in range(len(questions) + 1)]


class FakeAuthProvider:
    def __init__(self, user_id: str | None = "teacher-1"):
        self.user_id = user_id
        self.calls = 0

    def current_user(self) -> str | None:
        self.calls += 1
        return self.user_id


class FakeGenerationProvider:
    """Deterministic provider with call counters and injectable faults."""

    def __init__(
        self,
        text: str = CANNED_TOS,
        structured: dict | None = None,
        text_error: Exception | None = None,
        text_error_after: int = 0,
        structured_error: Exception | None = None,
        structured_error_after: int = 0,
    ):
        self.text = text
        self.structured = structured if structured is not None else CANNED_QUESTIONS
        self.text_error = text_error
        self.text_error_after = text_error_after
        self.structured_error = structured_error
        self.structured_error_after = structured_error_after
        self.text_calls = 0
        self.structured_calls = 0
        self.prompts: list[str] = []
        self.schemas: list[type] = []

    async def stream_text(self, prompt: str):
        self.text_calls += 1
        self.prompts.append(prompt)
        for index, chunk in enumerate(_chunks(self.text)):
            if self.text_error is not None and index == self.text_error_after:
                raise self.text_error
            yield chunk
        if self.text_error is not None and self.text_error_after >= len(_chunks(self.text)):
            raise self.text_error

    async def stream_structured(self, prompt: str, schema: type):
        self.structured_calls += 1
        self.prompts.append(prompt)
        self.schemas.append(schema)
        for index, snapshot in enumerate(_snapshots(self.structured)):
            if self.structured_error is not None and index == self.structured_error_after:
                raise self.structured_error
            yield snapshot


class FakeRecordStore:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.attempts = 0
        self.assessments: list = []
        self.lesson_plans: list = []

    def insert_assessment(self, record) -> int:
        self.attempts += 1
        if self.fail:
            raise PersistenceError("database unavailable")
        self.assessments.append(record)
        return len(self.assessments)

    def insert_lesson_plan(self, record) -> int:
        if self.fail:
            raise PersistenceError("database unavailable")
        self.lesson_plans.append(record)
        return len(self.lesson_plans)

    def list_lesson_plans(self, user_id: str, limit: int = 10) -> list:
        return [r for r in reversed(self.lesson_plans) if r.user_id == user_id][:limit]

    def get_lesson_plan(self, user_id: str, lesson_plan_id: int):
        if 1 <= lesson_plan_id <= len(self.lesson_plans):
            record = self.lesson_plans[lesson_plan_id - 1]
            if record.user_id == user_id:
                return record.model_copy(update={"id": lesson_plan_id})
        return None


@pytest.fixture
def assessment_request() -> AssessmentRequest:
    return AssessmentRequest(
        topic="Photosynthesis",
        grade_level="SHS 1",
        subject="Biology",
        num_mcq=2,
        num_short_answer=1,
    )


@pytest.fixture
def auth_provider() -> FakeAuthProvider:
    return FakeAuthProvider()


@pytest.fixture
def generation_provider() -> FakeGenerationProvider:
    return FakeGenerationProvider()


@pytest.fixture
def record_store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def provider_error() -> ProviderError:
    return ProviderError("model unavailable")


# Factory fixtures for tests that need non-default doubles
@pytest.fixture
def make_provider():
    return FakeGenerationProvider


@pytest.fixture
def make_auth():
    return FakeAuthProvider


@pytest.fixture
def make_store():
    return FakeRecordStore


@pytest.fixture
def canned_tos() -> str:
    return CANNED_TOS


@pytest.fixture
def canned_questions() -> dict:
    return CANNED_QUESTIONS
