from __future__ import annotations
from datetime import datetime
from sqlalchemy import Boolean, Column, String, DateTime, Integer, Float, Text
from .db import Base


class LocalResult(Base):
	__tablename__ = "local_results"
	# One row per locally scored attempt; never updated once written
	session_id = Column(String(64), primary_key=True, index=True)
	assessment_id = Column(String(128), nullable=False, index=True)
	role_name = Column(String(256), nullable=True)
	score = Column(Integer, default=0, nullable=False)
	total_questions = Column(Integer, default=0, nullable=False)
	percentage = Column(Integer, default=0, nullable=False)
	pass_threshold = Column(Float, default=70.0, nullable=False)
	passed = Column(Boolean, default=False, nullable=False)
	time_spent_seconds = Column(Integer, default=0, nullable=False)
	skill_breakdown_json = Column(Text, nullable=True)  # JSON string snapshot
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class GeneratedAssessment(Base):
	__tablename__ = "generated_assessments"
	# Single entry per user; holds the last generated assessment until it expires
	owner = Column(String(128), primary_key=True)
	assessment_id = Column(String(128), nullable=False)
	payload_json = Column(Text, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	expires_at = Column(DateTime, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
