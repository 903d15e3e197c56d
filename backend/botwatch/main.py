"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI

from botwatch import detection
from botwatch.api import ops
from botwatch.api.errors import install_error_handlers
from botwatch.detection.domain.container import DetectionContainer
from botwatch.infra import postgres
from botwatch.infra.redis import redis_client
from botwatch.obs import init as obs_init
from botwatch.settings import settings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "detection.yml"


async def _build_detection() -> DetectionContainer:
	pool = None
	if settings.reputation_backend == "postgres":
		pool = await postgres.init_pool()
	store = await detection.build_store(settings.reputation_backend, redis_conn=redis_client, pool=pool)
	config_override = None
	if not settings.detection_config_path and DEFAULT_CONFIG_PATH.exists():
		from botwatch.detection.domain.config import load_detection_config

		config_override = load_detection_config(DEFAULT_CONFIG_PATH)
	return detection.build_container(store=store, config=config_override)


def create_app(container: Optional[DetectionContainer] = None) -> FastAPI:
	"""Build the application; tests pass a prepared container to skip backend wiring."""

	@asynccontextmanager
	async def lifespan(app: FastAPI):
		active = container or await _build_detection()
		detection.configure(active)
		active.tracker.start()
		app.state.detection = active
		try:
			yield
		finally:
			await detection.shutdown()
			if settings.reputation_backend == "postgres":
				await postgres.close_pool()

	app = FastAPI(title="botwatch", lifespan=lifespan)
	obs_init(app)
	install_error_handlers(app)
	app.include_router(ops.router)
	app.include_router(detection.router)
	return app


app = create_app()
