from __future__ import annotations
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings


DATABASE_URL = settings.database_url or "sqlite:///./assessment_portal.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# Best-effort lightweight migrations for development (SQLite-friendly)
def ensure_schema() -> None:
	try:
		inspector = inspect(engine)
		tables = set(inspector.get_table_names())
	except Exception:
		return
	if "local_results" in tables:
		cols = {c["name"] for c in inspector.get_columns("local_results")}
		with engine.begin() as conn:
			if "skill_breakdown_json" not in cols:
				conn.exec_driver_sql("ALTER TABLE local_results ADD COLUMN skill_breakdown_json TEXT")
	if "generated_assessments" in tables:
		cols = {c["name"] for c in inspector.get_columns("generated_assessments")}
		with engine.begin() as conn:
			if "expires_at" not in cols:
				conn.exec_driver_sql("ALTER TABLE generated_assessments ADD COLUMN expires_at DATETIME")
