import json

import pytest

from edugen.core.exceptions import PersistenceError
from edugen.models.generation_models import AssessmentRecord
from edugen.models.generation_models import LessonPlanRecord
from edugen.models.generation_models import ResourceMetadata
from edugen.services.storage.db import Base
from edugen.services.storage.record_store import SQLAlchemyRecordStore


@pytest.fixture
def store():
    store = SQLAlchemyRecordStore("sqlite://")
    store.create_schema()
    return store


def _lesson_plan(user_id="teacher-1", topic="Photosynthesis basics"):
    return LessonPlanRecord(
        user_id=user_id,
        subject="Integrated Science",
        grade_level="Basic 8",
        topic=topic,
        duration_minutes=60,
        generated_content="- **Week:** 1\n### Lesson Closure\nRecap.",
    )


def test_insert_and_list_assessments(store, canned_tos, canned_questions):
    record = AssessmentRecord(
        user_id="teacher-1",
        subject="Biology",
        grade_level="SHS 1",
        topic="Photosynthesis",
        generated_tos=canned_tos,
        generated_questions=json.dumps(canned_questions["questions"]),
    )

    record_id = store.insert_assessment(record)

    assert record_id == 1
    assert store.list_assessments("teacher-1") == [record]
    assert store.list_assessments("someone-else") == []


def test_lesson_plans_are_listed_newest_first_and_limited(store):
    for index in range(3):
        store.insert_lesson_plan(_lesson_plan(topic=f"Topic number {index}"))
    store.insert_lesson_plan(_lesson_plan(user_id="teacher-2"))

    history = store.list_lesson_plans("teacher-1", limit=2)

    assert [plan.topic for plan in history] == ["Topic number 2", "Topic number 1"]
    assert all(plan.id is not None and plan.created_at is not None for plan in history)


def test_get_lesson_plan_is_scoped_to_owner(store):
    plan_id = store.insert_lesson_plan(_lesson_plan())

    assert store.get_lesson_plan("teacher-1", plan_id).topic == "Photosynthesis basics"
    assert store.get_lesson_plan("teacher-2", plan_id) is None
    assert store.get_lesson_plan("teacher-1", 999) is None


def test_resources_round_trip(store):
    metadata = ResourceMetadata(
        title="Leaf diagram",
        subject="Biology",
        grade_level="SHS 1",
        file_path="resources/teacher-1/abc_leaf.pdf",
        file_type="application/pdf",
    )

    saved = store.insert_resource("teacher-1", metadata)

    assert saved.id == 1
    assert saved.description is None
    assert [r.title for r in store.list_resources("teacher-1")] == ["Leaf diagram"]
    assert store.list_resources("teacher-2") == []


def test_database_errors_become_persistence_errors(store):
    Base.metadata.drop_all(store.engine)

    with pytest.raises(PersistenceError):
        store.insert_lesson_plan(_lesson_plan())
