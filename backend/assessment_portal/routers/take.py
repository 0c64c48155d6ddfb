from __future__ import annotations

import json
import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..answers import AnswerValue
from ..backend_client import BackendClient, get_backend_client
from ..db import SessionLocal
from ..engine import AssessmentSession, SessionConfig
from ..models import LocalResult
from .common import evict_stale, raise_if_load_failed, session_errors

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/take", tags=["take"])

_sessions: Dict[str, AssessmentSession] = {}


class StartRequest(BaseModel):
	assessment_id: str = ""


class AnswerRequest(BaseModel):
	value: AnswerValue


class CaseStudyPartRequest(BaseModel):
	part: int
	text: str


def _persist_result(session: AssessmentSession) -> None:
	result = session.result
	if result is None or session.assessment is None:
		return
	db = SessionLocal()
	try:
		if db.get(LocalResult, session.session_id):
			# results are write-once per attempt
			return
		db.add(
			LocalResult(
				session_id=session.session_id,
				assessment_id=session.assessment.assessment_id,
				role_name=session.assessment.role_name,
				score=result.score,
				total_questions=result.total_questions,
				percentage=result.percentage,
				pass_threshold=result.pass_threshold,
				passed=result.passed,
				time_spent_seconds=result.time_spent,
				skill_breakdown_json=json.dumps({k: v.model_dump() for k, v in result.skill_breakdown.items()}),
			)
		)
		db.commit()
		logger.info("Stored result for session %s: %s%%", session.session_id, result.percentage)
	finally:
		db.close()


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
	session = AssessmentSession(client, SessionConfig.role_quiz(), on_complete=_persist_result)
	await session.load_assessment(req.assessment_id)
	raise_if_load_failed(session)
	_sessions[session.session_id] = session
	return session.snapshot()


@router.get("/{session_id}")
def state(session_id: str):
	session = _get_session(session_id)
	return {**session.snapshot(), "questions": session.question_statuses()}


@router.post("/{session_id}/answer")
async def answer(session_id: str, req: AnswerRequest):
	session = _get_session(session_id)
	with session_errors():
		session.answer(req.value)
	return session.snapshot()


@router.post("/{session_id}/case-study")
async def answer_case_study(session_id: str, req: CaseStudyPartRequest):
	session = _get_session(session_id)
	with session_errors():
		session.answer_case_study_part(req.part, req.text)
	return session.snapshot()


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


@router.post("/{session_id}/flag")
async def flag(session_id: str):
	session = _get_session(session_id)
	with session_errors():
		session.toggle_flag()
	return session.snapshot()


@router.post("/{session_id}/reset")
async def reset(session_id: str):
	session = _get_session(session_id)
	with session_errors():
		session.reset()
	return session.snapshot()


@router.post("/{session_id}/submit")
async def submit(session_id: str):
	session = _get_session(session_id)
	with session_errors():
		await session.submit()
	return session.snapshot()


@router.delete("/{session_id}")
async def close(session_id: str):
	session = _sessions.pop(session_id, None)
	if session:
		await session.close()
	return {"ok": True}
