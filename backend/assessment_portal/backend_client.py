from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, List, Optional, Type, TypeVar
from pydantic import BaseModel, ValidationError
from .settings import settings
from .schemas import (
	Assessment,
	AssessmentListItem,
	AssessmentSessionPayload,
	AssessmentStatus,
	Course,
	GenerateAssessmentRequest,
	StudentAssessmentResult,
	UpdateAssessmentRequest,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class BackendError(Exception):
	"""Non-2xx answer or unreadable payload from the backend."""

	kind = "failed"

	def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
		super().__init__(message)
		self.message = message
		self.status_code = status_code


class BackendUnavailable(BackendError):
	kind = "unavailable"


class NotFound(BackendError):
	kind = "not_found"


class PermissionDenied(BackendError):
	kind = "forbidden"


def _parse(model: Type[M], data: Any) -> M:
	try:
		return model.model_validate(data)
	except ValidationError as err:
		logger.warning("Malformed %s payload: %s", model.__name__, err)
		raise BackendError(f"Malformed {model.__name__} payload from backend") from err


class BackendClient:
	def __init__(
		self,
		base_url: Optional[str] = None,
		*,
		results_base_url: Optional[str] = None,
		timeout: Optional[float] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.base_url = (base_url or settings.backend_url).rstrip("/")
		self.results_base_url = (results_base_url or base_url or settings.results_base_url).rstrip("/")
		self._client = httpx.AsyncClient(
			timeout=timeout or settings.request_timeout_seconds,
			headers={"Content-Type": "application/json"},
			transport=transport,
		)

	async def _request(
		self,
		method: str,
		path: str,
		*,
		json: Optional[Dict[str, Any]] = None,
		base_url: Optional[str] = None,
	) -> Any:
		url = f"{base_url or self.base_url}{path}"
		try:
			r = await self._client.request(method, url, json=json)
		except httpx.RequestError as net_err:
			logger.warning("%s %s failed: %s", method, url, net_err)
			raise BackendUnavailable(f"Backend unreachable: {net_err}") from net_err
		if r.status_code == 404:
			raise NotFound(f"{method} {path} returned 404", status_code=404)
		if r.status_code == 403:
			raise PermissionDenied(f"{method} {path} returned 403", status_code=403)
		try:
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			logger.warning("%s %s returned %s", method, url, r.status_code)
			raise BackendError(f"{method} {path} returned {r.status_code}", status_code=r.status_code) from http_err
		try:
			return r.json()
		except ValueError as parse_err:
			raise BackendError(f"Unexpected backend response: {r.text[:200]}", status_code=r.status_code) from parse_err

	# Role assessments

	async def get_role_assessment(self, assessment_id: str) -> Assessment:
		data = await self._request("GET", f"/role_assessment/{assessment_id}")
		return _parse(Assessment, data)

	async def generate_role_assessment(self, req: GenerateAssessmentRequest) -> Assessment:
		data = await self._request("POST", "/role_assessment/generate", json=req.model_dump())
		return _parse(Assessment, data)

	async def get_generation_status(self, assessment_id: str) -> AssessmentStatus:
		data = await self._request("GET", f"/role_assessment/status/{assessment_id}")
		return _parse(AssessmentStatus, data)

	async def update_role_assessment(self, req: UpdateAssessmentRequest) -> Assessment:
		data = await self._request("PUT", "/role_assessment/update", json=req.model_dump())
		return _parse(Assessment, data)

	async def list_role_assessments(self, user_id: str) -> List[AssessmentListItem]:
		data = await self._request("GET", f"/role_assessment/list/{user_id}")
		return [_parse(AssessmentListItem, item) for item in data or []]

	async def list_deployed_courses(self, assessment_id: str) -> List[Course]:
		data = await self._request("GET", f"/role_assessment/{assessment_id}/courses")
		return [_parse(Course, item) for item in data or []]

	async def list_mentor_courses(self, user_id: str) -> List[Course]:
		data = await self._request("GET", f"/role_assessment/mentor/{user_id}/courses")
		return [_parse(Course, item) for item in data or []]

	async def deploy(self, assessment_id: str, course_id: int, user_id: str) -> Dict[str, Any]:
		payload = {"assessment_id": assessment_id, "course_id": course_id, "user_id": user_id}
		return await self._request("POST", "/role_assessment/deploy/", json=payload)

	async def undeploy(self, assessment_id: str, course_id: int, user_id: str) -> Dict[str, Any]:
		payload = {"assessment_id": assessment_id, "course_id": course_id, "user_id": user_id}
		return await self._request("POST", "/role_assessment/undeploy", json=payload)

	# Task assessments

	async def start_assessment(
		self,
		task_id: int,
		*,
		cohort_id: Optional[int] = None,
		course_id: Optional[int] = None,
	) -> AssessmentSessionPayload:
		payload: Dict[str, Any] = {"task_id": task_id}
		if cohort_id is not None:
			payload["cohort_id"] = cohort_id
		if course_id is not None:
			payload["course_id"] = course_id
		data = await self._request("POST", "/assessment/start", json=payload)
		return _parse(AssessmentSessionPayload, data)

	async def submit_question(
		self,
		submission_id: int,
		question_id: int,
		user_response: str,
		*,
		response_type: str = "text",
		time_spent_seconds: int = 30,
	) -> Dict[str, Any]:
		payload = {
			"submission_id": submission_id,
			"question_id": question_id,
			"user_response": user_response,
			"response_type": response_type,
			"time_spent_seconds": time_spent_seconds,
		}
		return await self._request("POST", "/assessment/question/submit", json=payload)

	async def finalize(self, submission_id: int) -> Dict[str, Any]:
		payload = {"submission_id": submission_id, "confirm_submission": True}
		return await self._request("POST", f"/assessment/{submission_id}/finalize", json=payload)

	async def get_results(self, submission_id: int) -> StudentAssessmentResult:
		data = await self._request("GET", f"/assessment/{submission_id}/results", base_url=self.results_base_url)
		return _parse(StudentAssessmentResult, data)

	async def aclose(self) -> None:
		await self._client.aclose()


_shared: Optional[BackendClient] = None


def get_backend_client() -> BackendClient:
	# Sessions outlive a single request (timers, autosave), so one client is shared process-wide
	global _shared
	if _shared is None:
		_shared = BackendClient()
	return _shared


async def close_backend_client() -> None:
	global _shared
	if _shared is not None:
		await _shared.aclose()
		_shared = None
