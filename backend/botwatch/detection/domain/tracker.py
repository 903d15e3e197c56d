"""In-memory interaction tracker keyed by (actor, origin address)."""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple

from botwatch.detection.domain.analyzer import BehaviorAnalyzer
from botwatch.detection.domain.events import (
    ClassificationResult,
    InteractionEvent,
    TrackerStats,
    require_text,
)
from botwatch.obs import metrics

logger = logging.getLogger(__name__)

TrackingKey = Tuple[str, str]

DEFAULT_RETENTION_SECONDS = 10 * 60
DEFAULT_EVICTION_SECONDS = 10 * 60
DEFAULT_SWEEP_INTERVAL_SECONDS = 5 * 60


@dataclass(slots=True)
class TrackedKey:
    """Behavioral memory for one actor seen from one address."""

    actor_id: str
    origin_address: str
    first_seen: float
    last_seen: float
    client_signature: str = ""
    history: list[InteractionEvent] = field(default_factory=list)

    def prune(self, now: float, retention_seconds: float) -> None:
        if self.history and now - self.history[0].timestamp >= retention_seconds:
            self.history = [event for event in self.history if now - event.timestamp < retention_seconds]


class InteractionTracker:
    """Records interactions, keeps a bounded window per key, and scores it.

    The registry is guarded by a single ``asyncio.Lock`` that is held only while
    a key is looked up, appended to, pruned, or evicted. Scoring runs outside the
    lock on an immutable snapshot of the key's history.
    """

    def __init__(
        self,
        analyzer: BehaviorAnalyzer | None = None,
        *,
        retention_seconds: float = DEFAULT_RETENTION_SECONDS,
        eviction_seconds: float = DEFAULT_EVICTION_SECONDS,
        sweep_interval_seconds: float = DEFAULT_SWEEP_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if retention_seconds <= 0 or eviction_seconds <= 0 or sweep_interval_seconds <= 0:
            raise ValueError("retention, eviction, and sweep interval must be positive")
        if eviction_seconds < retention_seconds:
            # A shorter eviction age would drop keys whose history still counts
            raise ValueError("eviction_seconds must not be shorter than retention_seconds")
        self._analyzer = analyzer or BehaviorAnalyzer()
        self._retention = float(retention_seconds)
        self._eviction = float(eviction_seconds)
        self._sweep_interval = float(sweep_interval_seconds)
        self._clock = clock
        self._keys: Dict[TrackingKey, TrackedKey] = {}
        self._lock = asyncio.Lock()
        self._stop = asyncio.Event()
        self._sweeper: Optional[asyncio.Task] = None

    @property
    def analyzer(self) -> BehaviorAnalyzer:
        return self._analyzer

    async def record_interaction(
        self,
        actor_id: str,
        action_kind: str,
        origin_address: str,
        client_signature: str | None = "",
    ) -> ClassificationResult:
        """Append one interaction for (actor_id, origin_address) and classify the key."""

        require_text("actor_id", actor_id)
        require_text("action_kind", action_kind)
        require_text("origin_address", origin_address)
        signature = "" if client_signature is None else require_text("client_signature", client_signature)

        async with self._lock:
            now = self._clock()
            key = (actor_id, origin_address)
            tracked = self._keys.get(key)
            if tracked is not None and now < tracked.last_seen:
                # Wall clock stepped back; keep the history ordered
                now = tracked.last_seen
            event = InteractionEvent(action_kind=action_kind, timestamp=now)
            if tracked is None:
                tracked = TrackedKey(
                    actor_id=actor_id,
                    origin_address=origin_address,
                    first_seen=now,
                    last_seen=now,
                )
                self._keys[key] = tracked
                metrics.TRACKED_KEYS.set(len(self._keys))
            tracked.history.append(event)
            tracked.client_signature = signature
            tracked.last_seen = now
            tracked.prune(now, self._retention)
            snapshot = tuple(tracked.history)

        result = self._analyzer.analyze(snapshot, signature)
        metrics.INTERACTIONS_RECORDED.labels(action=action_kind).inc()
        for code in result.heuristics:
            metrics.HEURISTIC_TRIGGERS.labels(heuristic=code).inc()
        if result.is_bot:
            metrics.BOT_CLASSIFICATIONS.labels(action=action_kind).inc()
            logger.warning(
                "bot_behavior_detected",
                extra={
                    "actor_id": actor_id,
                    "origin_address": origin_address,
                    "score": result.suspicious_score,
                    "reasons": list(result.reasons),
                },
            )
        return result

    async def history_for(self, actor_id: str, origin_address: str) -> tuple[InteractionEvent, ...]:
        """Return the pruned history of a key, or an empty tuple when it is not tracked."""

        async with self._lock:
            tracked = self._keys.get((actor_id, origin_address))
            if tracked is None:
                return ()
            tracked.prune(self._clock(), self._retention)
            return tuple(tracked.history)

    async def stats(self) -> TrackerStats:
        """Re-score every tracked key; meant for dashboards, not decisions."""

        async with self._lock:
            now = self._clock()
            snapshots = []
            for tracked in self._keys.values():
                tracked.prune(now, self._retention)
                snapshots.append((tuple(tracked.history), tracked.client_signature))

        cutoff = self._analyzer.config.suspicious_threshold
        suspicious = 0
        bots = 0
        for history, signature in snapshots:
            result = self._analyzer.analyze(history, signature)
            if result.suspicious_score > cutoff:
                suspicious += 1
            if result.is_bot:
                bots += 1
        return TrackerStats(
            total_tracked_keys=len(snapshots),
            suspicious_key_count=suspicious,
            bot_key_count=bots,
        )

    async def sweep(self) -> int:
        """Evict idle keys and return how many were removed."""

        async with self._lock:
            now = self._clock()
            stale: list[TrackingKey] = []
            for key, tracked in self._keys.items():
                tracked.prune(now, self._retention)
                if not tracked.history or now - tracked.last_seen >= self._eviction:
                    stale.append(key)
            for key in stale:
                del self._keys[key]
            remaining = len(self._keys)
        metrics.TRACKED_KEYS.set(remaining)
        if stale:
            metrics.EVICTED_KEYS.inc(len(stale))
            logger.debug("tracker_sweep", extra={"evicted": len(stale), "remaining": remaining})
        return len(stale)

    async def reset(self) -> None:
        """Drop all tracked state."""

        async with self._lock:
            self._keys.clear()
        metrics.TRACKED_KEYS.set(0)

    def __len__(self) -> int:
        return len(self._keys)

    def start(self) -> None:
        """Launch the periodic eviction sweep on the running loop."""

        if self._sweeper is not None and not self._sweeper.done():
            return
        self._stop.clear()
        self._sweeper = asyncio.create_task(self._sweep_loop(), name="interaction-tracker-sweep")

    async def shutdown(self) -> None:
        """Stop the sweep and wait for it to finish."""

        self._stop.set()
        task = self._sweeper
        self._sweeper = None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    @property
    def running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    async def _sweep_loop(self) -> None:
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._sweep_interval)
            except asyncio.TimeoutError:
                pass
            else:
                return
            try:
                await self.sweep()
            except Exception:  # pragma: no cover - keep the loop alive
                logger.exception("tracker_sweep_failed")
