from __future__ import annotations

import asyncio
from datetime import datetime, timezone

import pytest

from botwatch.detection.domain.reputation import (
    FlagThresholds,
    InMemoryReputationStore,
    ReputationSink,
    ReputationWriteError,
    counter_for_kind,
)
from botwatch.detection.infra.redis_reputation import RedisReputationStore

FIXED_NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def _sink(store, **kwargs) -> ReputationSink:
    return ReputationSink(store, clock=lambda: FIXED_NOW, **kwargs)


class _BrokenStore(InMemoryReputationStore):
    async def increment_spam_counter(self, actor_id, kind, at):
        raise ConnectionError("database unavailable")


def test_counter_for_kind_routes_unknown_kinds_to_other() -> None:
    assert counter_for_kind("like") == "like_spam_count"
    assert counter_for_kind("view") == "view_spam_count"
    assert counter_for_kind("comment") == "other_spam_count"
    assert counter_for_kind("follow") == "other_spam_count"
    assert counter_for_kind("") == "other_spam_count"


@pytest.mark.asyncio
async def test_offense_creates_record_and_stamps_time(reputation_store) -> None:
    sink = _sink(reputation_store)
    activity = await sink.record_offense("u1", "like")

    assert activity.like_spam_count == 1
    assert activity.view_spam_count == 0
    assert activity.last_suspicious_activity == FIXED_NOW
    assert activity.is_flagged is False
    assert await sink.get_activity("u1") == activity


@pytest.mark.asyncio
async def test_each_kind_increments_its_own_counter(reputation_store) -> None:
    sink = _sink(reputation_store)
    await sink.record_offense("u1", "like")
    await sink.record_offense("u1", "view")
    await sink.record_offense("u1", "view")
    activity = await sink.record_offense("u1", "comment")

    assert (activity.like_spam_count, activity.view_spam_count, activity.other_spam_count) == (1, 2, 1)


@pytest.mark.asyncio
async def test_like_flag_requires_more_than_fifty(reputation_store) -> None:
    sink = _sink(reputation_store)
    for _ in range(50):
        activity = await sink.record_offense("u1", "like")
    assert activity.like_spam_count == 50
    assert activity.is_flagged is False

    activity = await sink.record_offense("u1", "like")
    assert activity.like_spam_count == 51
    assert activity.is_flagged is True


@pytest.mark.asyncio
async def test_view_flag_requires_more_than_one_hundred(reputation_store) -> None:
    sink = _sink(reputation_store)
    for _ in range(100):
        activity = await sink.record_offense("u1", "view")
    assert activity.is_flagged is False
    activity = await sink.record_offense("u1", "view")
    assert activity.is_flagged is True


@pytest.mark.asyncio
async def test_other_kinds_never_flag(reputation_store) -> None:
    sink = _sink(reputation_store, thresholds=FlagThresholds(like_spam_limit=1, view_spam_limit=1))
    for _ in range(5):
        activity = await sink.record_offense("u1", "follow")
    assert activity.other_spam_count == 5
    assert activity.is_flagged is False


@pytest.mark.asyncio
async def test_flag_is_never_cleared(reputation_store) -> None:
    sink = _sink(reputation_store, thresholds=FlagThresholds(like_spam_limit=1, view_spam_limit=1))
    await sink.record_offense("u1", "like")
    flagged = await sink.record_offense("u1", "like")
    assert flagged.is_flagged is True

    # A sink with looser limits must not unflag the account
    relaxed = _sink(reputation_store, thresholds=FlagThresholds(like_spam_limit=500, view_spam_limit=500))
    activity = await relaxed.record_offense("u1", "view")
    assert activity.is_flagged is True


@pytest.mark.asyncio
async def test_concurrent_offenses_are_not_lost(reputation_store) -> None:
    sink = _sink(reputation_store)
    await asyncio.gather(*(sink.record_offense("u1", "like") for _ in range(60)))
    activity = await sink.get_activity("u1")
    assert activity is not None
    assert activity.like_spam_count == 60
    assert activity.is_flagged is True


@pytest.mark.asyncio
async def test_store_failure_is_wrapped_and_chained() -> None:
    sink = _sink(_BrokenStore())
    with pytest.raises(ReputationWriteError) as excinfo:
        await sink.record_offense("u1", "like")
    assert excinfo.value.actor_id == "u1"
    assert excinfo.value.action_kind == "like"
    assert isinstance(excinfo.value.__cause__, ConnectionError)


@pytest.mark.asyncio
async def test_unknown_actor_has_no_activity(reputation_store) -> None:
    sink = _sink(reputation_store)
    assert await sink.get_activity("nobody") is None
    assert await reputation_store.flag_if_over_threshold("nobody", FlagThresholds()) is False


@pytest.mark.asyncio
async def test_redis_store_counts_and_flags(fake_redis) -> None:
    store = RedisReputationStore(fake_redis, namespace="test:rep")
    sink = _sink(store, thresholds=FlagThresholds(like_spam_limit=2, view_spam_limit=2))

    first = await sink.record_offense("u1", "like")
    assert first.like_spam_count == 1
    assert first.last_suspicious_activity == FIXED_NOW
    await sink.record_offense("u1", "like")
    third = await sink.record_offense("u1", "like")
    assert third.like_spam_count == 3
    assert third.is_flagged is True

    raw = await fake_redis.hgetall("test:rep:u1")
    assert raw["like_spam_count"] == "3"
    assert raw["is_flagged"] == "1"

    stored = await store.get_activity("u1")
    assert stored is not None
    assert stored.is_flagged is True
    assert await store.get_activity("u2") is None


@pytest.mark.asyncio
async def test_redis_store_concurrent_increments(fake_redis) -> None:
    store = RedisReputationStore(fake_redis)
    sink = _sink(store)
    await asyncio.gather(*(sink.record_offense("u1", "view") for _ in range(25)))
    activity = await store.get_activity("u1")
    assert activity is not None
    assert activity.view_spam_count == 25
    assert activity.is_flagged is False
