"""Staff endpoint for inspecting an actor's offense counters."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from botwatch.api.deps import require_admin
from botwatch.detection.domain.container import get_sink
from botwatch.detection.domain.reputation import SuspiciousActivity

router = APIRouter(prefix="/api/detection/v1/reputation", tags=["detection-reputation"])


class SuspiciousActivityOut(BaseModel):
    actor_id: str
    like_spam_count: int
    view_spam_count: int
    other_spam_count: int
    last_suspicious_activity: datetime | None = None
    is_flagged: bool

    @classmethod
    def from_domain(cls, activity: SuspiciousActivity) -> "SuspiciousActivityOut":
        return cls(
            actor_id=activity.actor_id,
            like_spam_count=activity.like_spam_count,
            view_spam_count=activity.view_spam_count,
            other_spam_count=activity.other_spam_count,
            last_suspicious_activity=activity.last_suspicious_activity,
            is_flagged=activity.is_flagged,
        )


@router.get("/{actor_id}", response_model=SuspiciousActivityOut, dependencies=[Depends(require_admin)])
async def get_reputation(actor_id: str) -> SuspiciousActivityOut:
    activity = await get_sink().get_activity(actor_id)
    if activity is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail={"code": "actor_not_found"})
    return SuspiciousActivityOut.from_domain(activity)
