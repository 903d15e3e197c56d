"""Reputation sink: persists offense counters for actors classified as bots."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Protocol

from botwatch.detection.domain.events import LIKE, VIEW, require_text
from botwatch.obs import metrics

logger = logging.getLogger(__name__)

LIKE_COUNTER = "like_spam_count"
VIEW_COUNTER = "view_spam_count"
OTHER_COUNTER = "other_spam_count"


def counter_for_kind(kind: str) -> str:
    if kind == LIKE:
        return LIKE_COUNTER
    if kind == VIEW:
        return VIEW_COUNTER
    return OTHER_COUNTER


@dataclass(slots=True)
class SuspiciousActivity:
    """Persisted reputation fields for an actor."""

    actor_id: str
    like_spam_count: int = 0
    view_spam_count: int = 0
    other_spam_count: int = 0
    last_suspicious_activity: datetime | None = None
    is_flagged: bool = False

    def over_threshold(self, thresholds: "FlagThresholds") -> bool:
        return (
            self.like_spam_count > thresholds.like_spam_limit
            or self.view_spam_count > thresholds.view_spam_limit
        )


@dataclass(frozen=True, slots=True)
class FlagThresholds:
    """Offense counts above which an actor is flagged.

    Independent of the analyzer's score threshold.
    """

    like_spam_limit: int = 50
    view_spam_limit: int = 100


class ReputationWriteError(RuntimeError):
    """Raised when the reputation store rejects or fails an update."""

    def __init__(self, actor_id: str, action_kind: str) -> None:
        super().__init__(f"failed to record offense for actor {actor_id!r} ({action_kind})")
        self.actor_id = actor_id
        self.action_kind = action_kind


class ReputationStore(Protocol):
    """Write contract for the user-record collaborator."""

    async def increment_spam_counter(self, actor_id: str, kind: str, at: datetime) -> SuspiciousActivity:
        """Add one offense of ``kind`` and stamp ``last_suspicious_activity``."""
        ...

    async def flag_if_over_threshold(self, actor_id: str, thresholds: FlagThresholds) -> bool:
        """Set ``is_flagged`` when a counter exceeds its limit; returns the flag state."""
        ...

    async def get_activity(self, actor_id: str) -> SuspiciousActivity | None:
        ...


class ReputationSink:
    """Turns positive classifications into durable counter updates.

    Updates are not retried here; failures are logged and raised as
    :class:`ReputationWriteError` so the caller can decide.
    """

    def __init__(
        self,
        store: ReputationStore,
        *,
        thresholds: FlagThresholds | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._thresholds = thresholds or FlagThresholds()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def store(self) -> ReputationStore:
        return self._store

    @property
    def thresholds(self) -> FlagThresholds:
        return self._thresholds

    async def record_offense(self, actor_id: str, action_kind: str) -> SuspiciousActivity:
        require_text("actor_id", actor_id)
        require_text("action_kind", action_kind)
        try:
            activity = await self._store.increment_spam_counter(actor_id, action_kind, self._clock())
            was_flagged = activity.is_flagged
            flagged = await self._store.flag_if_over_threshold(actor_id, self._thresholds)
        except Exception as exc:
            metrics.REPUTATION_WRITE_FAILURES.inc()
            logger.exception(
                "reputation_write_failed",
                extra={"actor_id": actor_id, "action_kind": action_kind},
            )
            raise ReputationWriteError(actor_id, action_kind) from exc

        metrics.REPUTATION_WRITES.labels(counter=counter_for_kind(action_kind)).inc()
        if flagged and not was_flagged:
            metrics.ACCOUNTS_FLAGGED.inc()
            logger.warning(
                "actor_flagged",
                extra={
                    "actor_id": actor_id,
                    "like_spam_count": activity.like_spam_count,
                    "view_spam_count": activity.view_spam_count,
                },
            )
        return replace(activity, is_flagged=activity.is_flagged or flagged)

    async def get_activity(self, actor_id: str) -> SuspiciousActivity | None:
        return await self._store.get_activity(actor_id)


class InMemoryReputationStore(ReputationStore):
    """Reference store used in tests and developer environments."""

    def __init__(self) -> None:
        self.records: dict[str, SuspiciousActivity] = {}
        self._lock = asyncio.Lock()

    async def increment_spam_counter(self, actor_id: str, kind: str, at: datetime) -> SuspiciousActivity:
        async with self._lock:
            record = self.records.setdefault(actor_id, SuspiciousActivity(actor_id=actor_id))
            column = counter_for_kind(kind)
            setattr(record, column, getattr(record, column) + 1)
            record.last_suspicious_activity = at
            return replace(record)

    async def flag_if_over_threshold(self, actor_id: str, thresholds: FlagThresholds) -> bool:
        async with self._lock:
            record = self.records.get(actor_id)
            if record is None:
                return False
            if not record.is_flagged and record.over_threshold(thresholds):
                record.is_flagged = True
            return record.is_flagged

    async def get_activity(self, actor_id: str) -> SuspiciousActivity | None:
        record = self.records.get(actor_id)
        return replace(record) if record is not None else None
