"""
Tests for assessment generation tracking and the per-user cache.
"""

import asyncio
from datetime import datetime, timedelta

import httpx
import pytest

from assessment_portal.cleanup import purge_expired_generations
from assessment_portal.generation import (
    GenerationError,
    GenerationTracker,
    build_request,
    cache_generated,
    clear_cached,
    load_cached,
)
from conftest import make_role_assessment

STATUS_PATH = "/role_assessment/status/ra-1"


class TestBuildRequest:
    def test_trims_and_dedupes_skills(self):
        req = build_request("  Data Analyst ", [" SQL", "SQL", "", "Python "], "hard")
        assert req.role == "Data Analyst"
        assert req.skills == ["SQL", "Python"]
        assert req.difficulty == "hard"

    @pytest.mark.parametrize("role,skills", [("", ["SQL"]), ("Analyst", []), ("Analyst", ["  "])])
    def test_role_and_skill_required(self, role, skills):
        with pytest.raises(GenerationError, match="Please select a role and at least one skill"):
            build_request(role, skills)

    def test_unknown_difficulty(self):
        with pytest.raises(GenerationError):
            build_request("Analyst", ["SQL"], "extreme")


class TestTracker:
    async def test_initial_status_and_poll_to_completion(self, backend):
        backend.add("POST", "/role_assessment/generate", make_role_assessment(estimated_duration_minutes=0))
        statuses = iter(
            [
                {"assessment_id": "ra-1", "status": "generating", "progress_percentage": 40, "current_step": "Writing MCQs"},
                {"assessment_id": "ra-1", "status": "completed", "progress_percentage": 100},
            ]
        )
        backend.add_handler("GET", STATUS_PATH, lambda r: httpx.Response(200, json=next(statuses)))
        tracker = GenerationTracker(backend.client(), poll_seconds=0.01)
        req = build_request("Data Analyst", ["SQL"])

        await tracker.start(req)
        first = tracker.status("ra-1")
        assert first.status == "generating"
        assert first.progress_percentage == 0
        assert first.current_step == "Starting generation..."
        assert first.estimated_completion_seconds == 180

        for _ in range(100):
            if not tracker.is_polling("ra-1"):
                break
            await asyncio.sleep(0.01)
        assert tracker.status("ra-1").status == "completed"
        assert len(backend.calls(STATUS_PATH)) == 2

    async def test_failed_status_gets_default_message(self, backend):
        backend.add("GET", STATUS_PATH, {"assessment_id": "ra-1", "status": "failed"})
        tracker = GenerationTracker(backend.client())
        status = await tracker.check("ra-1")
        assert status.error_message == "Assessment generation failed"

    async def test_poll_error_keeps_last_status(self, backend):
        backend.add("GET", STATUS_PATH, {"detail": "busy"}, status=503)
        tracker = GenerationTracker(backend.client())
        assert await tracker.check("ra-1") is None

    async def test_close_stops_polling(self, backend):
        backend.add("POST", "/role_assessment/generate", make_role_assessment())
        backend.add("GET", STATUS_PATH, {"assessment_id": "ra-1", "status": "generating"})
        tracker = GenerationTracker(backend.client(), poll_seconds=0.01)
        await tracker.start(build_request("Data Analyst", ["SQL"]))
        assert tracker.is_polling("ra-1")
        tracker.close()
        await asyncio.sleep(0.02)
        assert not tracker.is_polling("ra-1")


class TestCache:
    def test_round_trip_and_clear(self, db_session, role_assessment):
        cache_generated(db_session, "owner-1", role_assessment)
        cached = load_cached(db_session, "owner-1")
        assert cached.assessment_id == "ra-1"
        assert cached.mcqs[0].correct_answer == 1
        clear_cached(db_session, "owner-1")
        assert load_cached(db_session, "owner-1") is None

    def test_expired_entry_is_dropped(self, db_session, role_assessment):
        cache_generated(db_session, "owner-2", role_assessment, hours=24)
        later = datetime.utcnow() + timedelta(hours=25)
        assert load_cached(db_session, "owner-2", now=later) is None

    def test_newer_generation_replaces_older(self, db_session, role_assessment):
        cache_generated(db_session, "owner-3", role_assessment)
        cache_generated(db_session, "owner-3", role_assessment.model_copy(update={"assessment_id": "ra-9"}))
        assert load_cached(db_session, "owner-3").assessment_id == "ra-9"

    def test_purge_removes_only_expired(self, db_session, role_assessment):
        cache_generated(db_session, "owner-4", role_assessment, hours=1)
        cache_generated(db_session, "owner-5", role_assessment, hours=48)
        purge_expired_generations(db_session, now=datetime.utcnow() + timedelta(hours=2))
        assert load_cached(db_session, "owner-4") is None
        assert load_cached(db_session, "owner-5") is not None
