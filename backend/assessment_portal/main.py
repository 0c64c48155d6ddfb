import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .backend_client import BackendError, NotFound, PermissionDenied, close_backend_client
from .cleanup import purge_expired_generations
from .db import Base, SessionLocal, engine, ensure_schema
from .routers import assessment, health, role_assessments, take
from .settings import settings

logging.basicConfig(
	level=settings.log_level.upper(),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Assessment Portal API")
app.include_router(health.router)
app.include_router(role_assessments.router)
app.include_router(take.router)
app.include_router(assessment.router)


@app.exception_handler(BackendError)
async def backend_error_handler(request: Request, exc: BackendError):
	if isinstance(exc, NotFound):
		status = 404
	elif isinstance(exc, PermissionDenied):
		status = 403
	else:
		status = 502
	logger.warning("Unhandled backend error on %s: %s", request.url.path, exc)
	return JSONResponse(status_code=status, content={"detail": exc.message})


def _purge_once() -> None:
	db = SessionLocal()
	try:
		removed = purge_expired_generations(db)
		if removed:
			logger.info("Purged %s expired generated assessments", removed)
	finally:
		db.close()


async def _cleanup_watcher():
	# Startup already purged once; then daily
	while True:
		await asyncio.sleep(24 * 60 * 60)
		try:
			_purge_once()
		except Exception:
			logger.exception("Daily cleanup failed")


async def _session_sweeper():
	while True:
		await asyncio.sleep(settings.session_sweep_seconds)
		try:
			await take.evict_stale_sessions()
			await assessment.evict_stale_sessions()
		except Exception:
			logger.exception("Session sweep failed")


_watchers = []


@app.on_event("startup")
async def startup_event():
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	# Apply lightweight dev migrations
	ensure_schema()
	_purge_once()
	_watchers.append(asyncio.create_task(_cleanup_watcher()))
	_watchers.append(asyncio.create_task(_session_sweeper()))


@app.on_event("shutdown")
async def shutdown_event():
	for task in _watchers:
		task.cancel()
	_watchers.clear()
	role_assessments.close_all()
	await take.close_all()
	await assessment.close_all()
	await close_backend_client()
