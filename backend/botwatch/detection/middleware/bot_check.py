"""FastAPI dependency that scores each user interaction before the handler runs."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from fastapi import HTTPException, Request, status

from botwatch.detection.domain import container
from botwatch.detection.domain.addresses import is_suspicious_address, normalise_address
from botwatch.detection.domain.reputation import ReputationWriteError, SuspiciousActivity
from botwatch.obs import metrics
from botwatch.settings import settings

logger = logging.getLogger(__name__)

BOT_DETECTION_ATTR = "bot_detection"


@dataclass(slots=True)
class BotDetection:
    """Advisory result attached to ``request.state.bot_detection``."""

    is_bot: bool = False
    score: int = 0
    reasons: tuple[str, ...] = field(default_factory=tuple)
    suspicious_address: bool = False
    checked: bool = False


async def record_offense_bounded(actor_id: str, action_kind: str) -> SuspiciousActivity | None:
    """Persist an offense, giving up after ``reputation_write_timeout_seconds``.

    Store failures and timeouts are logged and swallowed so the caller's
    request is never held up by the reputation store.
    """

    try:
        return await asyncio.wait_for(
            container.get_sink().record_offense(actor_id, action_kind),
            timeout=settings.reputation_write_timeout_seconds,
        )
    except ReputationWriteError:
        # Already logged and counted by the sink
        return None
    except asyncio.TimeoutError:
        metrics.BOT_CHECK_DEGRADED.labels(mode="sink_timeout").inc()
        logger.warning(
            "reputation_write_timeout",
            extra={
                "actor_id": actor_id,
                "action_kind": action_kind,
                "timeout_seconds": settings.reputation_write_timeout_seconds,
            },
        )
        return None


def _actor_from_request(request: Request) -> str | None:
    actor = getattr(request.state, "user_id", None)
    return str(actor) if actor is not None else None


def check_bot_behavior(
    action_kind: str,
    *,
    actor_resolver: Callable[[Request], str | None] = _actor_from_request,
) -> Callable[[Request], Awaitable[BotDetection]]:
    """Build a dependency that records ``action_kind`` for the authenticated actor.

    Requests without an actor pass through unchecked. Detection never blocks the
    interaction itself unless ``bot_check_fail_closed`` is enabled and the
    tracker fails.
    """

    async def dependency(request: Request) -> BotDetection:
        actor_id = actor_resolver(request)
        if actor_id is None:
            detection = BotDetection()
            setattr(request.state, BOT_DETECTION_ATTR, detection)
            return detection

        address = normalise_address(request.client.host if request.client else None)
        signature = request.headers.get("User-Agent", "")
        try:
            tracker = container.get_tracker()
            result = await tracker.record_interaction(actor_id, action_kind, address, signature)
        except Exception:
            mode = "closed" if settings.bot_check_fail_closed else "open"
            metrics.BOT_CHECK_DEGRADED.labels(mode=mode).inc()
            logger.exception("bot_check_failed", extra={"actor_id": actor_id, "action_kind": action_kind})
            if settings.bot_check_fail_closed:
                raise HTTPException(
                    status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                    detail={"code": "bot_check_unavailable"},
                )
            detection = BotDetection()
            setattr(request.state, BOT_DETECTION_ATTR, detection)
            return detection

        if result.is_bot:
            await record_offense_bounded(actor_id, action_kind)

        deny_list = container.get_config().suspicious_addresses
        detection = BotDetection(
            is_bot=result.is_bot,
            score=result.suspicious_score,
            reasons=result.reasons if result.is_bot else (),
            suspicious_address=is_suspicious_address(address, deny_list),
            checked=True,
        )
        setattr(request.state, BOT_DETECTION_ATTR, detection)
        return detection

    return dependency
