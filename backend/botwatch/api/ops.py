"""Operations endpoints providing health checks and metrics."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from botwatch.api.deps import require_metrics_access
from botwatch.detection.domain import container

router = APIRouter(prefix="", tags=["ops"])


@router.get("/health/live")
async def health_live() -> dict[str, str]:
	try:
		tracker = container.get_tracker()
	except RuntimeError:
		return {"status": "starting"}
	return {"status": "ok", "sweep": "running" if tracker.running else "stopped"}


@router.get("/metrics", dependencies=[Depends(require_metrics_access)])
async def metrics_endpoint() -> Response:
	return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
