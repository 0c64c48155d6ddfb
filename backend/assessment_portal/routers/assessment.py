from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from ..answers import TextAnswer
from ..backend_client import BackendClient, BackendError, get_backend_client
from ..engine import AssessmentSession, SessionConfig
from ..scoring import performance_level, results_summary
from ..timer import format_minutes
from .common import backend_http_error, evict_stale, raise_if_load_failed, session_errors

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/assessment", tags=["assessment"])

_sessions: Dict[str, AssessmentSession] = {}


class StartRequest(BaseModel):
	task_id: Optional[int] = None
	cohort_id: Optional[int] = None
	course_id: Optional[int] = None


class AnswerRequest(BaseModel):
	text: str


class JumpRequest(BaseModel):
	index: int


def _get_session(session_id: str) -> AssessmentSession:
	session = _sessions.get(session_id)
	if not session:
		raise HTTPException(status_code=404, detail="Session not found")
	session.touch()
	return session


async def close_all() -> None:
	for session in list(_sessions.values()):
		await session.close()
	_sessions.clear()


async def evict_stale_sessions(now=None) -> int:
	return await evict_stale(_sessions, now=now)


@router.post("/start")
async def start(req: StartRequest, client: BackendClient = Depends(get_backend_client)):
	session = AssessmentSession(client, SessionConfig.task_exam())
	await session.start_task(req.task_id, cohort_id=req.cohort_id, course_id=req.course_id)
	raise_if_load_failed(session)
	_sessions[session.session_id] = session
	return {**session.snapshot(), "task_title": session.task_session.task.title}


@router.get("/results/{submission_id}")
async def results(submission_id: int, client: BackendClient = Depends(get_backend_client)):
	try:
		result = await client.get_results(submission_id)
	except BackendError as err:
		logger.error("Error fetching results for %s: %s", submission_id, err)
		raise backend_http_error(err, failed="Failed to load results", not_found="Results not found")
	return {
		**result.model_dump(),
		"performance_level": performance_level(result.percentage_score),
		"time_spent_label": format_minutes(result.time_spent_minutes),
	}


@router.get("/results/{submission_id}/summary", response_class=PlainTextResponse)
async def results_text(submission_id: int, client: BackendClient = Depends(get_backend_client)):
	try:
		result = await client.get_results(submission_id)
	except BackendError as err:
		raise backend_http_error(err, failed="Failed to load results", not_found="Results not found")
	return results_summary(result)


@router.get("/{session_id}")
def state(session_id: str):
	session = _get_session(session_id)
	return {**session.snapshot(), "questions": session.question_statuses()}


@router.post("/{session_id}/answer")
async def answer(session_id: str, req: AnswerRequest):
	session = _get_session(session_id)
	with session_errors():
		session.answer(TextAnswer(text=req.text))
	return session.snapshot()


@router.post("/{session_id}/save")
async def save(session_id: str):
	session = _get_session(session_id)
	with session_errors():
		saved = await session.save()
	if not saved:
		raise HTTPException(status_code=502, detail="Failed to save answer")
	return {**session.snapshot(), "saved": True}


@router.post("/{session_id}/next")
async def next_question(session_id: str):
	session = _get_session(session_id)
	with session_errors():
		await session.next()
	return session.snapshot()


@router.post("/{session_id}/previous")
async def previous_question(session_id: str):
	session = _get_session(session_id)
	with session_errors():
		await session.previous()
	return session.snapshot()


@router.post("/{session_id}/jump")
async def jump(session_id: str, req: JumpRequest):
	session = _get_session(session_id)
	with session_errors():
		await session.jump(req.index)
	return session.snapshot()


@router.post("/{session_id}/flag")
async def flag(session_id: str):
	session = _get_session(session_id)
	with session_errors():
		session.toggle_flag()
	return session.snapshot()


@router.post("/{session_id}/finalize")
async def finalize(session_id: str):
	session = _get_session(session_id)
	try:
		with session_errors():
			await session.submit()
	except BackendError:
		raise HTTPException(status_code=502, detail=session.state.error or "Failed to submit assessment. Please try again.")
	return {**session.snapshot(), "results_path": f"/assessment/results/{session.submission_id}"}


@router.delete("/{session_id}")
async def close(session_id: str):
	session = _sessions.pop(session_id, None)
	if session:
		await session.close()
	return {"ok": True}
