"""Detection API routers."""

from fastapi import APIRouter

from . import analyze, reputation, stats, views

router = APIRouter()
router.include_router(stats.router)
router.include_router(analyze.router)
router.include_router(reputation.router)
router.include_router(views.router)

__all__ = ["router"]
