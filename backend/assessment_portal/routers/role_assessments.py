"""
Role assessment library, generation and editor endpoints.

- GET  /role-assessments                      list with search, filter and sort
- POST /role-assessments/generate             start generating an assessment
- GET  /role-assessments/generate/status/{id} poll generation progress
- GET/DELETE /role-assessments/generate/last  the caller's cached generation
- GET  /role-assessments/{id}                 preview with share path
- /role-assessments/{id}/draft...             editor draft (load, edit, save)
- courses, deploy and undeploy
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..answers import Section
from ..backend_client import BackendClient, BackendError, get_backend_client
from ..db import get_db
from ..generation import GenerationError, GenerationTracker, build_request, cache_generated, clear_cached, load_cached
from ..library import AssessmentDraft, EditError, filter_and_sort, relative_date, share_path
from ..schemas import UpdateAssessmentRequest
from .common import backend_http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/role-assessments", tags=["role-assessments"])

# Editor drafts by assessment id; unsaved edits live only in this process
_drafts: Dict[str, AssessmentDraft] = {}
_tracker: Optional[GenerationTracker] = None


async def get_tracker(client: BackendClient = Depends(get_backend_client)) -> GenerationTracker:
	global _tracker
	if _tracker is None or _tracker.client is not client:
		if _tracker is not None:
			_tracker.close()
		_tracker = GenerationTracker(client)
	return _tracker


def close_all() -> None:
	global _tracker
	if _tracker is not None:
		_tracker.close()
		_tracker = None
	_drafts.clear()


class GenerateRequest(BaseModel):
	user_id: str
	role: str
	skills: List[str] = Field(default_factory=list)
	difficulty: str = "medium"


class DeployRequest(BaseModel):
	user_id: str
	course_id: Optional[int] = None


class UndeployRequest(BaseModel):
	user_id: str
	course_id: int


def _parse_section(value: str) -> Section:
	try:
		section = Section(value)
	except ValueError:
		raise HTTPException(status_code=400, detail=f"Unknown section '{value}'")
	if section is Section.TASK:
		raise HTTPException(status_code=400, detail="Task questions are not part of role assessments")
	return section


def _draft_view(draft: AssessmentDraft) -> Dict[str, Any]:
	return {"assessment": draft.assessment.model_dump(), "has_changes": draft.has_changes}


@router.get("")
async def list_assessments(
	user_id: str,
	search: str = "",
	difficulty: str = "all",
	sort_by: str = "recent",
	client: BackendClient = Depends(get_backend_client),
):
	if difficulty not in ("all", "easy", "medium", "hard"):
		raise HTTPException(status_code=400, detail="difficulty must be one of all, easy, medium, hard")
	if sort_by not in ("recent", "name", "questions"):
		raise HTTPException(status_code=400, detail="sort_by must be one of recent, name, questions")
	try:
		items = await client.list_role_assessments(user_id)
	except BackendError as err:
		logger.error("Error fetching assessments for %s: %s", user_id, err)
		raise backend_http_error(
			err,
			failed="Failed to load assessments",
			forbidden="You do not have permission to view assessments",
		)
	shown = filter_and_sort(items, search=search, difficulty=difficulty, sort_by=sort_by)
	return {
		"total": len(items),
		"assessments": [
			{
				**item.model_dump(),
				"created_label": relative_date(item.created_at),
				"share_path": share_path(item.assessment_id),
			}
			for item in shown
		],
	}


@router.post("/generate")
async def generate(
	req: GenerateRequest,
	tracker: GenerationTracker = Depends(get_tracker),
	db: Session = Depends(get_db),
):
	try:
		gen_req = build_request(req.role, req.skills, req.difficulty)
	except GenerationError as bad:
		raise HTTPException(status_code=400, detail=str(bad))
	try:
		assessment = await tracker.start(gen_req)
	except BackendError as err:
		logger.error("Error generating assessment for %s: %s", req.user_id, err)
		raise backend_http_error(err, failed="Failed to generate assessment")
	cache_generated(db, req.user_id, assessment)
	return {"assessment": assessment.model_dump(), "status": tracker.status(assessment.assessment_id).model_dump()}


@router.get("/generate/status/{assessment_id}")
async def generation_status(assessment_id: str, tracker: GenerationTracker = Depends(get_tracker)):
	status = tracker.status(assessment_id)
	if status is None:
		# not started by this process; ask the backend once
		status = await tracker.check(assessment_id)
	if status is None:
		raise HTTPException(status_code=404, detail="Unknown assessment generation")
	return {**status.model_dump(), "polling": tracker.is_polling(assessment_id)}


@router.get("/generate/last")
def last_generated(user_id: str, db: Session = Depends(get_db)):
	assessment = load_cached(db, user_id)
	if assessment is None:
		raise HTTPException(status_code=404, detail="No recently generated assessment")
	return assessment.model_dump()


@router.delete("/generate/last")
async def reset_generated(user_id: str, db: Session = Depends(get_db), tracker: GenerationTracker = Depends(get_tracker)):
	cached = load_cached(db, user_id)
	if cached is not None:
		tracker.forget(cached.assessment_id)
	clear_cached(db, user_id)
	return {"ok": True}


@router.get("/mentor/{user_id}/courses")
async def mentor_courses(user_id: str, client: BackendClient = Depends(get_backend_client)):
	try:
		courses = await client.list_mentor_courses(user_id)
	except BackendError as err:
		logger.error("Error fetching mentor courses for %s: %s", user_id, err)
		raise backend_http_error(err, failed="Failed to load courses")
	return [c.model_dump() for c in courses]


@router.get("/{assessment_id}")
async def preview(assessment_id: str, client: BackendClient = Depends(get_backend_client)):
	try:
		assessment = await client.get_role_assessment(assessment_id)
	except BackendError as err:
		raise backend_http_error(err, failed="Failed to load assessment", not_found="Assessment not found")
	return {"assessment": assessment.model_dump(), "share_path": share_path(assessment_id)}


@router.post("/{assessment_id}/draft")
async def open_draft(assessment_id: str, client: BackendClient = Depends(get_backend_client)):
	try:
		assessment = await client.get_role_assessment(assessment_id)
	except BackendError as err:
		raise backend_http_error(err, failed="Failed to load assessment", not_found="Assessment not found")
	draft = AssessmentDraft(assessment)
	_drafts[assessment_id] = draft
	return _draft_view(draft)


def _get_draft(assessment_id: str) -> AssessmentDraft:
	draft = _drafts.get(assessment_id)
	if not draft:
		raise HTTPException(status_code=404, detail="No open draft for this assessment")
	return draft


@router.get("/{assessment_id}/draft")
def get_draft(assessment_id: str):
	return _draft_view(_get_draft(assessment_id))


@router.put("/{assessment_id}/draft/{section}/{index}")
def replace_draft_question(assessment_id: str, section: str, index: int, data: Dict[str, Any]):
	draft = _get_draft(assessment_id)
	try:
		draft.replace(_parse_section(section), index, data)
	except EditError as bad:
		raise HTTPException(status_code=400, detail=str(bad))
	return _draft_view(draft)


@router.delete("/{assessment_id}/draft/{section}/{index}")
def delete_draft_question(assessment_id: str, section: str, index: int):
	draft = _get_draft(assessment_id)
	try:
		draft.delete(_parse_section(section), index)
	except EditError as bad:
		raise HTTPException(status_code=400, detail=str(bad))
	return _draft_view(draft)


@router.post("/{assessment_id}/draft/save")
async def save_draft(assessment_id: str, client: BackendClient = Depends(get_backend_client)):
	draft = _get_draft(assessment_id)
	try:
		saved = await client.update_role_assessment(UpdateAssessmentRequest.from_assessment(draft.assessment))
	except BackendError as err:
		logger.error("Error saving assessment %s: %s", assessment_id, err)
		raise backend_http_error(err, failed="Failed to save assessment")
	draft.saved(saved)
	return _draft_view(draft)


@router.delete("/{assessment_id}/draft")
def discard_draft(assessment_id: str):
	_drafts.pop(assessment_id, None)
	return {"ok": True}


@router.get("/{assessment_id}/courses")
async def deployed_courses(assessment_id: str, client: BackendClient = Depends(get_backend_client)):
	try:
		courses = await client.list_deployed_courses(assessment_id)
	except BackendError as err:
		logger.error("Error fetching courses for %s: %s", assessment_id, err)
		raise backend_http_error(err, failed="Failed to load courses")
	return [c.model_dump() for c in courses]


@router.post("/{assessment_id}/deploy")
async def deploy(assessment_id: str, req: DeployRequest, client: BackendClient = Depends(get_backend_client)):
	if req.course_id is None:
		raise HTTPException(status_code=400, detail="Please select a course")
	try:
		return await client.deploy(assessment_id, req.course_id, req.user_id)
	except BackendError as err:
		logger.error("Error deploying %s to course %s: %s", assessment_id, req.course_id, err)
		raise backend_http_error(err, failed="Failed to deploy assessment")


@router.post("/{assessment_id}/undeploy")
async def undeploy(assessment_id: str, req: UndeployRequest, client: BackendClient = Depends(get_backend_client)):
	try:
		return await client.undeploy(assessment_id, req.course_id, req.user_id)
	except BackendError as err:
		logger.error("Error undeploying %s from course %s: %s", assessment_id, req.course_id, err)
		raise backend_http_error(err, failed="Failed to undeploy assessment")
