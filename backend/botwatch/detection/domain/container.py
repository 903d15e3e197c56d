"""Composition root for the detection engine.

The application builds one :class:`DetectionContainer` at startup, installs it
with :func:`configure`, and tears it down with :func:`shutdown`. Nothing is
created at import time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import asyncpg
from redis.asyncio import Redis

from botwatch.detection.domain.analyzer import BehaviorAnalyzer
from botwatch.detection.domain.config import DetectionConfig, load_detection_config
from botwatch.detection.domain.reputation import InMemoryReputationStore, ReputationSink, ReputationStore
from botwatch.detection.domain.tracker import InteractionTracker
from botwatch.infra.redis import RedisProxy
from botwatch.settings import Settings, settings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DetectionContainer:
    config: DetectionConfig
    tracker: InteractionTracker
    sink: ReputationSink


def build_container(
    *,
    store: Optional[ReputationStore] = None,
    config: Optional[DetectionConfig] = None,
    app_settings: Optional[Settings] = None,
    clock: Optional[Callable[[], float]] = None,
) -> DetectionContainer:
    app_settings = app_settings or settings
    if config is None:
        path = app_settings.detection_config_path
        config = load_detection_config(path) if path else DetectionConfig()
    tracker_kwargs = {} if clock is None else {"clock": clock}
    tracker = InteractionTracker(
        BehaviorAnalyzer(config.heuristics),
        retention_seconds=app_settings.tracker_retention_seconds,
        eviction_seconds=app_settings.tracker_eviction_seconds,
        sweep_interval_seconds=app_settings.tracker_sweep_interval_seconds,
        **tracker_kwargs,
    )
    sink = ReputationSink(store or InMemoryReputationStore(), thresholds=config.flag_thresholds)
    return DetectionContainer(config=config, tracker=tracker, sink=sink)


async def build_store(
    backend: str,
    *,
    redis_conn: Redis | RedisProxy | None = None,
    pool: asyncpg.Pool | None = None,
) -> ReputationStore:
    """Pick the reputation store named by ``backend`` (memory, redis, postgres)."""

    if backend == "redis":
        if redis_conn is None:
            raise RuntimeError("redis reputation backend requires a redis connection")
        from botwatch.detection.infra.redis_reputation import RedisReputationStore

        return RedisReputationStore(redis_conn)
    if backend == "postgres":
        if pool is None:
            raise RuntimeError("postgres reputation backend requires a pool")
        from botwatch.detection.infra.reputation_repo import PostgresReputationStore, ensure_schema

        await ensure_schema(pool)
        return PostgresReputationStore(pool)
    return InMemoryReputationStore()


_container: DetectionContainer | None = None


def configure(container: DetectionContainer) -> DetectionContainer:
    global _container
    _container = container
    logger.info(
        "detection_configured",
        extra={
            "store": type(container.sink.store).__name__,
            "bot_threshold": container.config.heuristics.bot_threshold,
        },
    )
    return container


def get_container() -> DetectionContainer:
    if _container is None:
        raise RuntimeError("detection engine not configured")
    return _container


def get_tracker() -> InteractionTracker:
    return get_container().tracker


def get_sink() -> ReputationSink:
    return get_container().sink


def get_config() -> DetectionConfig:
    return get_container().config


async def shutdown() -> None:
    """Stop the active tracker sweep and uninstall the container."""

    global _container
    container = _container
    _container = None
    if container is not None:
        await container.tracker.shutdown()
