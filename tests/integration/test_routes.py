import json

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from edugen.api import routes as routes_module
from edugen.core.exceptions import ProviderError
from edugen.main import app
from edugen.models.generation_models import LessonPlanRecord
from edugen.services.storage.record_store import SQLAlchemyRecordStore

HEADERS = {"X-User-Id": "teacher-1", "X-API-Key": "test-key"}

ASSESSMENT_PAYLOAD = {
    "topic": "Photosynthesis",
    "gradeLevel": "SHS 1",
    "subject": "Biology",
    "numMcq": 2,
    "numShortAnswer": 1,
}

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def store():
    store = SQLAlchemyRecordStore("sqlite://")
    store.create_schema()
    return store


@pytest.fixture()
def client(store, generation_provider):
    app.dependency_overrides[routes_module.verify_api_key] = lambda: True
    app.dependency_overrides[routes_module.get_record_store] = lambda: store
    app.dependency_overrides[routes_module.get_generation_provider] = lambda: generation_provider
    yield TestClient(app)
    app.dependency_overrides.clear()


def _events(resp):
    return [json.loads(line) for line in resp.text.splitlines() if line.strip()]


# ---------------------------------------------------------------------------
# /health
# ---------------------------------------------------------------------------


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == status.HTTP_200_OK
    assert resp.json() == {"status": "ok"}


# ---------------------------------------------------------------------------
# /api/assessments
# ---------------------------------------------------------------------------


def test_generate_assessment_streams_both_artifacts(client, canned_tos):
    resp = client.post("/api/assessments", json=ASSESSMENT_PAYLOAD, headers=HEADERS)

    assert resp.status_code == status.HTTP_200_OK
    assert resp.headers["content-type"].startswith("application/x-ndjson")
    events = _events(resp)
    tos = "".join(e["message"] for e in events if e["type"] == "tos_delta")
    snapshots = [e["payload"] for e in events if e["type"] == "questions_snapshot"]
    done = {e["stream"] for e in events if e["type"] == "done"}

    assert tos == canned_tos
    assert len(snapshots[-1]["questions"]) == 3
    assert done == {"tos", "questions"}
    assert events[-1]["type"] == "finished"


def test_generate_assessment_reports_phase_one_failure(store, make_provider):
    provider = make_provider(text_error=ProviderError("model unavailable"))
    app.dependency_overrides[routes_module.verify_api_key] = lambda: True
    app.dependency_overrides[routes_module.get_record_store] = lambda: store
    app.dependency_overrides[routes_module.get_generation_provider] = lambda: provider
    try:
        resp = TestClient(app).post("/api/assessments", json=ASSESSMENT_PAYLOAD, headers=HEADERS)
    finally:
        app.dependency_overrides.clear()

    errors = {e["stream"]: e["message"] for e in _events(resp) if e["type"] == "error"}
    assert errors == {"tos": "model unavailable", "questions": "model unavailable"}
    assert provider.structured_calls == 0


def test_generate_assessment_without_user_fails_both_streams(client, generation_provider):
    resp = client.post("/api/assessments", json=ASSESSMENT_PAYLOAD, headers={"X-API-Key": "test-key"})

    events = _events(resp)
    errors = {e["stream"]: e["message"] for e in events if e["type"] == "error"}
    assert resp.status_code == status.HTTP_200_OK
    assert errors == {"tos": "Authentication required.", "questions": "Authentication required."}
    assert events[-1]["type"] == "finished"
    assert generation_provider.text_calls == 0
    assert generation_provider.structured_calls == 0


def test_generate_assessment_rejects_invalid_request(client, generation_provider):
    resp = client.post("/api/assessments", json={**ASSESSMENT_PAYLOAD, "topic": "ab"}, headers=HEADERS)

    assert resp.status_code == 422
    assert resp.json()["error"] == "Input validation failed"
    assert generation_provider.text_calls == 0


def test_api_key_is_enforced(client):
    app.dependency_overrides.pop(routes_module.verify_api_key)
    resp = client.get("/api/resources", headers={"X-User-Id": "teacher-1", "X-API-Key": "wrong"})
    assert resp.status_code == status.HTTP_403_FORBIDDEN


# ---------------------------------------------------------------------------
# /api/lesson-plans
# ---------------------------------------------------------------------------


def test_generate_lesson_plan_streams_markdown(client):
    payload = {"subject": "Integrated Science", "gradeLevel": "Basic 8", "topic": "Photosynthesis", "duration": 60}

    resp = client.post("/api/lesson-plans", json=payload, headers=HEADERS)

    events = _events(resp)
    assert resp.status_code == status.HTTP_200_OK
    assert [e["type"] for e in events][-2:] == ["done", "finished"]
    assert all(e["type"] == "delta" for e in events[:-2])


def test_generate_lesson_plan_checks_user_before_body(client, generation_provider):
    resp = client.post("/api/lesson-plans", json={"topic": "ab"}, headers={"X-API-Key": "test-key"})

    assert resp.status_code == status.HTTP_401_UNAUTHORIZED
    assert generation_provider.text_calls == 0


def test_lesson_plan_history_and_sections(client, store):
    plan_id = store.insert_lesson_plan(
        LessonPlanRecord(
            user_id="teacher-1",
            subject="Mathematics",
            grade_level="Basic 7",
            topic="Fractions",
            duration_minutes=40,
            generated_content="- **Week:** Week 5\n### Lesson Closure\nExit ticket.",
        )
    )

    history = client.get("/api/lesson-plans", headers=HEADERS)
    sections = client.get(f"/api/lesson-plans/{plan_id}/sections", headers=HEADERS)
    missing = client.get("/api/lesson-plans/999/sections", headers=HEADERS)

    assert [plan["topic"] for plan in history.json()] == ["Fractions"]
    assert sections.json()["sections"] == {"Details": "- **Week:** Week 5", "Lesson Closure": "Exit ticket."}
    assert sections.json()["details"]["Week"] == "Week 5"
    assert missing.status_code == status.HTTP_404_NOT_FOUND


# ---------------------------------------------------------------------------
# /api/resources
# ---------------------------------------------------------------------------


def test_presign_resource_upload(client, monkeypatch):
    monkeypatch.setattr(routes_module, "create_presigned_put", lambda key, content_type: f"https://s3.example/{key}")

    resp = client.post("/api/resources/presign", json={"filename": "leaf diagram.pdf", "content_type": "application/pdf"}, headers=HEADERS)

    body = resp.json()
    assert resp.status_code == status.HTTP_200_OK
    assert body["file_path"].startswith("resources/teacher-1/")
    assert body["file_path"].endswith("_leaf_diagram.pdf")
    assert body["upload_url"] == f"https://s3.example/{body['file_path']}"


def test_add_and_list_resources(client):
    payload = {
        "title": "Leaf diagram",
        "subject": "Biology",
        "gradeLevel": "SHS 1",
        "filePath": "resources/teacher-1/abc_leaf.pdf",
        "fileType": "application/pdf",
    }

    created = client.post("/api/resources", json=payload, headers=HEADERS)
    listed = client.get("/api/resources", headers=HEADERS)
    other = client.get("/api/resources", headers={**HEADERS, "X-User-Id": "teacher-2"})

    assert created.status_code == status.HTTP_201_CREATED
    assert created.json()["title"] == "Leaf diagram"
    assert [r["file_path"] for r in listed.json()] == ["resources/teacher-1/abc_leaf.pdf"]
    assert other.json() == []


def test_add_resource_requires_user(client):
    resp = client.post("/api/resources", json={}, headers={"X-API-Key": "test-key"})
    assert resp.status_code == status.HTTP_401_UNAUTHORIZED
