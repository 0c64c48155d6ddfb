from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from fastapi import HTTPException

from ..answers import AnswerShapeError
from ..backend_client import BackendError, NotFound, PermissionDenied
from ..engine import AssessmentSession, SessionClosed, SessionError
from ..settings import settings
from ..state import Phase

logger = logging.getLogger(__name__)

_LOAD_FAILURE_STATUS = {"missing": 400, "not_found": 404, "forbidden": 403}


def backend_http_error(
	err: BackendError,
	*,
	failed: str,
	not_found: Optional[str] = None,
	forbidden: Optional[str] = None,
) -> HTTPException:
	if isinstance(err, NotFound):
		return HTTPException(status_code=404, detail=not_found or failed)
	if isinstance(err, PermissionDenied):
		return HTTPException(status_code=403, detail=forbidden or failed)
	return HTTPException(status_code=502, detail=failed)


def raise_if_load_failed(session: AssessmentSession) -> None:
	if session.state.phase is Phase.FAILED:
		status = _LOAD_FAILURE_STATUS.get(session.state.error_kind or "", 502)
		raise HTTPException(status_code=status, detail=session.state.error)


@contextmanager
def session_errors() -> Iterator[None]:
	try:
		yield
	except SessionClosed as closed:
		raise HTTPException(status_code=409, detail=str(closed)) from closed
	except (SessionError, AnswerShapeError) as bad:
		raise HTTPException(status_code=400, detail=str(bad)) from bad


async def evict_stale(
	sessions: Dict[str, AssessmentSession],
	*,
	idle_seconds: Optional[float] = None,
	submitted_grace_seconds: Optional[float] = None,
	now: Optional[float] = None,
) -> int:
	"""Close and drop sessions nobody has touched for too long."""
	if idle_seconds is None:
		idle_seconds = settings.session_idle_minutes * 60
	if submitted_grace_seconds is None:
		submitted_grace_seconds = settings.submitted_session_grace_minutes * 60
	stale = []
	for session_id, session in sessions.items():
		limit = submitted_grace_seconds if session.state.phase is Phase.SUBMITTED else idle_seconds
		if session.idle_seconds(now) > limit:
			stale.append(session_id)
	for session_id in stale:
		session = sessions.pop(session_id)
		await session.close()
	if stale:
		logger.info("Evicted %s stale sessions", len(stale))
	return len(stale)
