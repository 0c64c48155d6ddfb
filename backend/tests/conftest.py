"""
Shared fixtures: a scripted backend behind ``httpx.MockTransport``, sample
payloads and a FastAPI ``TestClient`` wired to that backend.
"""

import json
import os
import tempfile

# The portal database must point somewhere disposable before the app is imported
_DB_DIR = tempfile.mkdtemp(prefix="assessment-portal-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from assessment_portal.backend_client import BackendClient, get_backend_client  # noqa: E402
from assessment_portal.db import Base, SessionLocal, engine  # noqa: E402
from assessment_portal.schemas import Assessment  # noqa: E402

BACKEND_URL = "http://backend.test"
RESULTS_URL = "http://results.test"


class FakeBackend:
    """Answers requests from a table of (method, path) routes and records them."""

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, path, body=None, status=200):
        self.routes[(method, path)] = (status, body)

    def add_handler(self, method, path, handler):
        self.routes[(method, path)] = handler

    def handler(self, request):
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"detail": "Not Found"})
        if callable(route):
            return route(request)
        status, body = route
        return httpx.Response(status, json=body)

    def client(self):
        return BackendClient(
            BACKEND_URL,
            results_base_url=RESULTS_URL,
            transport=httpx.MockTransport(self.handler),
        )

    def sent(self, path):
        return [json.loads(r.content) for r in self.requests if r.url.path == path and r.content]

    def calls(self, path):
        return [r for r in self.requests if r.url.path == path]


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def db_session():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def make_role_assessment(**overrides):
    data = {
        "assessment_id": "ra-1",
        "role_name": "Data Analyst",
        "target_skills": ["Python", "SQL"],
        "difficulty_level": "medium",
        "mcqs": [
            {
                "id": 1,
                "question": "Which keyword defines a function?",
                "options": ["func", "def", "lambda", "fn"],
                "correct_answer": 1,
                "skill": "Python",
                "explanation": "def starts a function definition",
            },
            {
                "id": 2,
                "question": "Which clause filters groups?",
                "options": ["HAVING", "WHERE", "ORDER BY", "LIMIT"],
                "correct_answer": 0,
                "skill": "SQL",
            },
        ],
        "saqs": [{"id": 1, "question": "Explain a left join.", "sample_answer": "All rows from the left table"}],
        "case_study": {
            "id": "cs-1",
            "title": "Churn spike",
            "scenario": "Monthly churn doubled after a pricing change.",
            "questions": ["What data would you pull first?", "How would you present it?"],
            "skills": ["SQL"],
        },
        "aptitude_questions": [{"id": 1, "question": "Capital of France?", "correct_answer": "Paris"}],
        "total_questions": 6,
        "estimated_duration_minutes": 30,
        "created_at": "2026-10-01T09:00:00Z",
    }
    data.update(overrides)
    return data


def make_task_payload(
    *,
    status="in_progress",
    time_spent=0,
    is_timed=False,
    limit=None,
    current_index=0,
    saved=None,
):
    return {
        "submission": {
            "id": 77,
            "user_id": 5,
            "task_id": 9,
            "started_at": "2026-10-17T08:00:00Z",
            "time_spent_seconds": time_spent,
            "status": status,
        },
        "task": {
            "id": 9,
            "title": "Week 3 assessment",
            "questions": [
                {"id": 101, "title": "Q1", "position": 0},
                {"id": 102, "title": "Q2", "input_type": "code", "position": 1},
                {"id": 103, "title": "Q3", "position": 2},
            ],
            "total_questions": 3,
            "is_timed": is_timed,
            "time_limit_minutes": limit,
        },
        "current_question_index": current_index,
        "saved_responses": saved or {},
    }


def make_results(**overrides):
    data = {
        "submission_id": 77,
        "task_title": "Week 3 assessment",
        "total_score": 17,
        "max_possible_score": 20,
        "percentage_score": 85.0,
        "grade_letter": "B",
        "time_spent_minutes": 65,
        "submitted_at": "2026-10-17T09:05:00Z",
        "question_results": [
            {"question_id": 101, "question_title": "Q1", "score": 9, "max_score": 10, "percentage": 90.0},
            {"question_id": 102, "question_title": "Q2", "score": 8, "max_score": 10, "percentage": 80.0},
        ],
    }
    data.update(overrides)
    return data


@pytest.fixture
def role_assessment_data():
    return make_role_assessment()


@pytest.fixture
def role_assessment(role_assessment_data):
    return Assessment.model_validate(role_assessment_data)


@pytest.fixture
def client(backend):
    from assessment_portal.main import app

    fake = backend.client()
    app.dependency_overrides[get_backend_client] = lambda: fake
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
