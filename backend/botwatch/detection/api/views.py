"""Staff endpoint for checking a single reported post view."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from botwatch.api.deps import require_admin
from botwatch.detection.domain.container import get_sink
from botwatch.detection.domain.events import VIEW
from botwatch.detection.domain.view_quality import assess_view, counts_as_view
from botwatch.detection.middleware.bot_check import record_offense_bounded

router = APIRouter(prefix="/api/detection/v1/views", tags=["detection-views"])


class ViewReportIn(BaseModel):
    actor_id: str = Field(..., max_length=128)
    duration_seconds: float = Field(..., ge=0, allow_inf_nan=False)
    screen_percentage: float = Field(..., allow_inf_nan=False)


class ViewAssessmentOut(BaseModel):
    is_bot: bool
    reasons: list[str]
    counted: bool


@router.post("/assess", response_model=ViewAssessmentOut, dependencies=[Depends(require_admin)])
async def assess_reported_view(payload: ViewReportIn) -> ViewAssessmentOut:
    activity = await get_sink().get_activity(payload.actor_id)
    assessment = assess_view(
        duration_seconds=payload.duration_seconds,
        screen_percentage=payload.screen_percentage,
        activity=activity,
    )
    if assessment.is_bot:
        await record_offense_bounded(payload.actor_id, VIEW)
    return ViewAssessmentOut(
        is_bot=assessment.is_bot,
        reasons=list(assessment.reasons),
        counted=not assessment.is_bot and counts_as_view(payload.screen_percentage),
    )
