"""One-shot eviction pass for deployments that schedule sweeps externally."""

from __future__ import annotations

from botwatch.detection.domain.tracker import InteractionTracker


async def run(tracker: InteractionTracker) -> int:
    """Run a single sweep and return the number of keys evicted."""

    return await tracker.sweep()
