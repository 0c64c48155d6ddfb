from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy import delete
from sqlalchemy.orm import Session

from .models import GeneratedAssessment


def purge_expired_generations(db: Session, now: Optional[datetime] = None) -> int:
	threshold = now or datetime.utcnow()
	# Local results are kept forever; only the generation cache expires
	res = db.execute(delete(GeneratedAssessment).where(GeneratedAssessment.expires_at < threshold))
	db.commit()
	return res.rowcount or 0
