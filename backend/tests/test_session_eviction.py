"""
Tests for closing in-memory sessions that were abandoned.
"""

import asyncio

from assessment_portal.engine import AssessmentSession, SessionConfig
from assessment_portal.routers.common import evict_stale
from conftest import make_role_assessment


async def _loaded(backend, assessment_id="ra-1", **overrides):
    backend.add("GET", f"/role_assessment/{assessment_id}", make_role_assessment(assessment_id=assessment_id, **overrides))
    session = AssessmentSession(backend.client(), SessionConfig.role_quiz(tick_seconds=0.01))
    await session.load_assessment(assessment_id)
    return session


class TestEvictStale:
    async def test_idle_session_is_dropped_and_its_clock_stopped(self, backend):
        session = await _loaded(backend)
        sessions = {session.session_id: session}
        assert session._ticker.running

        removed = await evict_stale(sessions, idle_seconds=60, submitted_grace_seconds=10, now=session.last_active + 61)

        assert removed == 1
        assert sessions == {}
        assert not session._ticker.running
        elapsed = session.state.clock.elapsed
        await asyncio.sleep(0.05)
        assert session.state.clock.elapsed == elapsed

    async def test_recent_session_is_kept(self, backend):
        session = await _loaded(backend)
        sessions = {session.session_id: session}
        try:
            removed = await evict_stale(sessions, idle_seconds=60, submitted_grace_seconds=10, now=session.last_active + 30)
            assert removed == 0
            assert session._ticker.running
        finally:
            await session.close()

    async def test_clock_ticks_do_not_count_as_activity(self, backend):
        session = await _loaded(backend)
        try:
            touched = session.last_active
            await asyncio.sleep(0.05)
            assert session.state.clock.elapsed > 0
            assert session.last_active == touched
        finally:
            await session.close()

    async def test_submitted_session_kept_only_for_grace_period(self, backend):
        session = await _loaded(backend, "ra-2", mcqs=[], saqs=[], case_study=None)
        await session.submit()
        sessions = {session.session_id: session}

        kept = await evict_stale(sessions, idle_seconds=60, submitted_grace_seconds=10, now=session.last_active + 5)
        assert kept == 0
        assert session.session_id in sessions

        dropped = await evict_stale(sessions, idle_seconds=60, submitted_grace_seconds=10, now=session.last_active + 11)
        assert dropped == 1
        assert sessions == {}
