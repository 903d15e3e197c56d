"""Redis hash store for actor offense counters."""

from __future__ import annotations

from datetime import datetime

from redis.asyncio import Redis

from botwatch.detection.domain.reputation import (
    LIKE_COUNTER,
    OTHER_COUNTER,
    VIEW_COUNTER,
    FlagThresholds,
    ReputationStore,
    SuspiciousActivity,
    counter_for_kind,
)
from botwatch.infra.redis import RedisProxy

_LAST_ACTIVITY = "last_suspicious_activity"
_FLAGGED = "is_flagged"


def _activity_from_hash(actor_id: str, data: dict) -> SuspiciousActivity:
    last = data.get(_LAST_ACTIVITY)
    return SuspiciousActivity(
        actor_id=actor_id,
        like_spam_count=int(data.get(LIKE_COUNTER, 0)),
        view_spam_count=int(data.get(VIEW_COUNTER, 0)),
        other_spam_count=int(data.get(OTHER_COUNTER, 0)),
        last_suspicious_activity=datetime.fromisoformat(last) if last else None,
        is_flagged=str(data.get(_FLAGGED, "0")) == "1",
    )


class RedisReputationStore(ReputationStore):
    """One hash per actor; counters use HINCRBY so concurrent writers never collide.

    The flag is only ever written as ``1``, so racing writers cannot clear it.
    Expects a client created with ``decode_responses=True``.
    """

    def __init__(self, redis: Redis | RedisProxy, *, namespace: str = "botwatch:rep") -> None:
        self._redis = redis
        self._namespace = namespace

    def _key(self, actor_id: str) -> str:
        return f"{self._namespace}:{actor_id}"

    async def increment_spam_counter(self, actor_id: str, kind: str, at: datetime) -> SuspiciousActivity:
        key = self._key(actor_id)
        async with self._redis.pipeline(transaction=True) as pipe:
            pipe.hincrby(key, counter_for_kind(kind), 1)
            pipe.hset(key, _LAST_ACTIVITY, at.isoformat())
            pipe.hgetall(key)
            results = await pipe.execute()
        return _activity_from_hash(actor_id, results[-1])

    async def flag_if_over_threshold(self, actor_id: str, thresholds: FlagThresholds) -> bool:
        data = await self._redis.hgetall(self._key(actor_id))
        if not data:
            return False
        activity = _activity_from_hash(actor_id, data)
        if activity.is_flagged:
            return True
        if activity.over_threshold(thresholds):
            await self._redis.hset(self._key(actor_id), _FLAGGED, "1")
            return True
        return False

    async def get_activity(self, actor_id: str) -> SuspiciousActivity | None:
        data = await self._redis.hgetall(self._key(actor_id))
        if not data:
            return None
        return _activity_from_hash(actor_id, data)
