"""Offline re-scoring of a supplied interaction history."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, model_validator

from botwatch.api.deps import require_admin
from botwatch.detection.domain.container import get_tracker
from botwatch.detection.domain.events import ClassificationResult, InteractionEvent

router = APIRouter(prefix="/api/detection/v1", tags=["detection-analyze"])


class InteractionIn(BaseModel):
    action_kind: str = Field(..., max_length=64)
    timestamp: float = Field(..., ge=0, allow_inf_nan=False)


class AnalyzeIn(BaseModel):
    events: list[InteractionIn] = Field(default_factory=list, max_length=5000)
    client_signature: str = Field(default="", max_length=1024)

    @model_validator(mode="after")
    def _ordered(self) -> "AnalyzeIn":
        stamps = [event.timestamp for event in self.events]
        if stamps != sorted(stamps):
            raise ValueError("events must be ordered by timestamp")
        return self


class ClassificationOut(BaseModel):
    is_bot: bool
    suspicious_score: int
    reasons: list[str]
    interaction_count: int

    @classmethod
    def from_domain(cls, result: ClassificationResult) -> "ClassificationOut":
        return cls(
            is_bot=result.is_bot,
            suspicious_score=result.suspicious_score,
            reasons=list(result.reasons),
            interaction_count=result.interaction_count,
        )


@router.post("/analyze", response_model=ClassificationOut, dependencies=[Depends(require_admin)])
async def analyze_history(payload: AnalyzeIn) -> ClassificationOut:
    history = [InteractionEvent(action_kind=item.action_kind, timestamp=item.timestamp) for item in payload.events]
    result = get_tracker().analyzer.analyze(history, payload.client_signature)
    return ClassificationOut.from_domain(result)
