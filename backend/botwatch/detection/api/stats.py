"""Staff endpoint exposing tracker statistics."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from botwatch.api.deps import require_admin
from botwatch.detection.domain.container import get_tracker

router = APIRouter(prefix="/api/detection/v1", tags=["detection-stats"])


class TrackerStatsOut(BaseModel):
    total_tracked_keys: int
    suspicious_key_count: int
    bot_key_count: int
    sweep_running: bool


@router.get("/stats", response_model=TrackerStatsOut, dependencies=[Depends(require_admin)])
async def get_stats() -> TrackerStatsOut:
    tracker = get_tracker()
    stats = await tracker.stats()
    return TrackerStatsOut(
        total_tracked_keys=stats.total_tracked_keys,
        suspicious_key_count=stats.suspicious_key_count,
        bot_key_count=stats.bot_key_count,
        sweep_running=tracker.running,
    )
