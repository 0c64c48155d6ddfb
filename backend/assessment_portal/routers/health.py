from fastapi import APIRouter

from .. import __version__
from ..settings import settings

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
	return {"status": "ok", "version": __version__, "backend_url": settings.backend_url}
