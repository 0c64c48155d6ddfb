from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from .backend_client import BackendClient, BackendError
from .models import GeneratedAssessment
from .schemas import Assessment, AssessmentStatus, GenerateAssessmentRequest
from .settings import settings

logger = logging.getLogger(__name__)


class GenerationError(ValueError):
    pass


def build_request(role: str, skills: List[str], difficulty: str = "medium") -> GenerateAssessmentRequest:
    role = (role or "").strip()
    cleaned: List[str] = []
    for skill in skills or []:
        skill = (skill or "").strip()
        if skill and skill not in cleaned:
            cleaned.append(skill)
    if not role or not cleaned:
        raise GenerationError("Please select a role and at least one skill")
    if difficulty not in ("easy", "medium", "hard"):
        raise GenerationError("difficulty must be one of easy, medium, hard")
    return GenerateAssessmentRequest(role=role, skills=cleaned, difficulty=difficulty)


class GenerationTracker:
    """Starts assessment generation and polls its status until it settles."""

    def __init__(
        self,
        client: BackendClient,
        *,
        poll_seconds: Optional[float] = None,
        default_estimate_seconds: Optional[int] = None,
    ) -> None:
        self.client = client
        self.poll_seconds = poll_seconds if poll_seconds is not None else settings.status_poll_seconds
        self.default_estimate_seconds = default_estimate_seconds or settings.default_estimated_completion_seconds
        self._statuses: Dict[str, AssessmentStatus] = {}
        self._pollers: Dict[str, asyncio.Task] = {}

    def status(self, assessment_id: str) -> Optional[AssessmentStatus]:
        return self._statuses.get(assessment_id)

    def is_polling(self, assessment_id: str) -> bool:
        task = self._pollers.get(assessment_id)
        return task is not None and not task.done()

    async def start(self, req: GenerateAssessmentRequest) -> Assessment:
        assessment = await self.client.generate_role_assessment(req)
        estimate = assessment.estimated_duration_minutes * 60 if assessment.estimated_duration_minutes else self.default_estimate_seconds
        self._statuses[assessment.assessment_id] = AssessmentStatus(
            assessment_id=assessment.assessment_id,
            status="generating",
            progress_percentage=0,
            current_step="Starting generation...",
            estimated_completion_seconds=estimate,
        )
        self.cancel(assessment.assessment_id)
        self._pollers[assessment.assessment_id] = asyncio.create_task(self._poll(assessment.assessment_id))
        logger.info("Generation started for %s (%s)", assessment.assessment_id, req.role)
        return assessment

    async def check(self, assessment_id: str) -> Optional[AssessmentStatus]:
        try:
            status = await self.client.get_generation_status(assessment_id)
        except BackendError as err:
            # transient; the next poll tries again
            logger.warning("Status check error for %s: %s", assessment_id, err)
            return self._statuses.get(assessment_id)
        if status.status == "failed" and not status.error_message:
            status = status.model_copy(update={"error_message": "Assessment generation failed"})
        self._statuses[assessment_id] = status
        return status

    async def _poll(self, assessment_id: str) -> None:
        while True:
            await asyncio.sleep(self.poll_seconds)
            status = await self.check(assessment_id)
            if status is not None and status.status != "generating":
                logger.info("Generation for %s finished: %s", assessment_id, status.status)
                return

    def cancel(self, assessment_id: str) -> None:
        task = self._pollers.pop(assessment_id, None)
        if task is not None and not task.done():
            task.cancel()

    def forget(self, assessment_id: str) -> None:
        self.cancel(assessment_id)
        self._statuses.pop(assessment_id, None)

    def close(self) -> None:
        for assessment_id in list(self._pollers):
            self.cancel(assessment_id)


def cache_generated(db: Session, owner: str, assessment: Assessment, *, hours: Optional[int] = None) -> GeneratedAssessment:
    now = datetime.utcnow()
    lifetime = timedelta(hours=hours if hours is not None else settings.generation_cache_hours)
    row = db.get(GeneratedAssessment, owner)
    if not row:
        row = GeneratedAssessment(owner=owner)
        db.add(row)
    row.assessment_id = assessment.assessment_id
    row.payload_json = assessment.model_dump_json()
    row.created_at = now
    row.expires_at = now + lifetime
    db.commit()
    return row


def load_cached(db: Session, owner: str, now: Optional[datetime] = None) -> Optional[Assessment]:
    row = db.get(GeneratedAssessment, owner)
    if not row:
        return None
    if row.expires_at < (now or datetime.utcnow()):
        db.delete(row)
        db.commit()
        return None
    try:
        return Assessment.model_validate(json.loads(row.payload_json))
    except ValueError:
        logger.warning("Dropping unreadable cached assessment for %s", owner)
        db.delete(row)
        db.commit()
        return None


def clear_cached(db: Session, owner: str) -> None:
    row = db.get(GeneratedAssessment, owner)
    if row:
        db.delete(row)
        db.commit()
