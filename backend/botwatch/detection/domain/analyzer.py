"""Heuristic scoring of a tracking key's recent interactions.

Every heuristic is evaluated independently and contributes a fixed penalty;
the evaluation order below is also the order of ``reasons`` in the result.

1. rapid interactions inside the trailing window
2. one action kind repeated too often across the retained history
3. client signature containing an automation marker
4. near-constant spacing between interactions
5. most transitions shorter than a natural pause
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from botwatch.detection.domain.events import ClassificationResult, InteractionEvent, require_text

RAPID = "rapid_interactions"
REPETITIVE = "repetitive_action"
USER_AGENT = "suspicious_user_agent"
UNIFORM_TIMING = "uniform_timing"
NO_PAUSES = "no_natural_pauses"

DEFAULT_SUSPICIOUS_AGENTS: tuple[str, ...] = (
    "bot",
    "crawler",
    "spider",
    "scraper",
    "headless",
    "phantom",
    "selenium",
)


@dataclass(frozen=True, slots=True)
class HeuristicConfig:
    """Tunable constants for :class:`BehaviorAnalyzer`."""

    rapid_window_seconds: float = 60.0
    rapid_max_interactions: int = 10
    rapid_points: int = 30
    repetitive_max_same_action: int = 20
    repetitive_points: int = 25
    suspicious_agents: tuple[str, ...] = DEFAULT_SUSPICIOUS_AGENTS
    user_agent_points: int = 40
    uniform_min_events: int = 5
    uniform_max_variance_ms2: float = 1000.0
    uniform_max_mean_ms: float = 5000.0
    uniform_points: int = 20
    pause_min_gap_ms: float = 1000.0
    pause_max_fast_ratio: float = 0.5
    pause_points: int = 15
    bot_threshold: int = 50
    # Used by tracker stats only; does not affect classification
    suspicious_threshold: int = 25


class BehaviorAnalyzer:
    """Pure scorer: the same history and signature always give the same result."""

    def __init__(self, config: HeuristicConfig | None = None) -> None:
        self._config = config or HeuristicConfig()
        self._agents = tuple(marker.lower() for marker in self._config.suspicious_agents)

    @property
    def config(self) -> HeuristicConfig:
        return self._config

    def analyze(self, history: Sequence[InteractionEvent], client_signature: str | None = "") -> ClassificationResult:
        signature = "" if client_signature is None else require_text("client_signature", client_signature)
        cfg = self._config
        score = 0
        reasons: list[str] = []
        codes: list[str] = []

        if self._rapid(history):
            score += cfg.rapid_points
            reasons.append("Rapid interactions detected")
            codes.append(RAPID)

        for action in self._repeated_actions(history):
            score += cfg.repetitive_points
            reasons.append(f"Repetitive {action} behavior")
            codes.append(REPETITIVE)

        if self._suspicious_agent(signature):
            score += cfg.user_agent_points
            reasons.append("Suspicious user agent")
            codes.append(USER_AGENT)

        gaps = _gaps_ms(history)

        if len(history) > cfg.uniform_min_events and _uniform(gaps, cfg):
            score += cfg.uniform_points
            reasons.append("Uniform timing patterns")
            codes.append(UNIFORM_TIMING)

        if gaps:
            fast = sum(1 for gap in gaps if gap < cfg.pause_min_gap_ms)
            if fast > len(gaps) * cfg.pause_max_fast_ratio:
                score += cfg.pause_points
                reasons.append("Lack of natural pauses")
                codes.append(NO_PAUSES)

        return ClassificationResult(
            is_bot=score >= cfg.bot_threshold,
            suspicious_score=score,
            reasons=tuple(reasons),
            interaction_count=len(history),
            heuristics=tuple(codes),
        )

    def _rapid(self, history: Sequence[InteractionEvent]) -> bool:
        if len(history) < 2:
            return False
        now = history[-1].timestamp
        window = self._config.rapid_window_seconds
        recent = sum(1 for event in history if now - event.timestamp < window)
        return recent > self._config.rapid_max_interactions

    def _repeated_actions(self, history: Sequence[InteractionEvent]) -> list[str]:
        counts: dict[str, int] = {}
        for event in history:
            counts[event.action_kind] = counts.get(event.action_kind, 0) + 1
        limit = self._config.repetitive_max_same_action
        return [action for action, count in counts.items() if count > limit]

    def _suspicious_agent(self, signature: str) -> bool:
        if not signature:
            return False
        lowered = signature.lower()
        return any(marker in lowered for marker in self._agents)


def _gaps_ms(history: Sequence[InteractionEvent]) -> list[float]:
    return [(history[idx].timestamp - history[idx - 1].timestamp) * 1000.0 for idx in range(1, len(history))]


def _uniform(gaps: Sequence[float], cfg: HeuristicConfig) -> bool:
    if not gaps:
        return False
    mean = sum(gaps) / len(gaps)
    variance = sum((gap - mean) ** 2 for gap in gaps) / len(gaps)
    return variance < cfg.uniform_max_variance_ms2 and mean < cfg.uniform_max_mean_ms


_default_analyzer = BehaviorAnalyzer()


def analyze(history: Sequence[InteractionEvent], client_signature: str | None = "") -> ClassificationResult:
    """Score ``history`` with the default heuristic configuration."""

    return _default_analyzer.analyze(history, client_signature)
