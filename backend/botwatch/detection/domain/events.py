"""Records exchanged between the tracker, the analyzer, and callers."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from numbers import Real

LIKE = "like"
VIEW = "view"
COMMENT = "comment"
FOLLOW = "follow"


class InvalidInteractionError(ValueError):
    """Raised for inputs that cannot be keyed or scored (non-strings, bad timestamps)."""


def require_text(name: str, value: object) -> str:
    """Return ``value`` when it is a string; empty strings are valid keys."""

    if not isinstance(value, str):
        raise InvalidInteractionError(f"{name} must be a string, got {type(value).__name__}")
    return value


def require_timestamp(value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidInteractionError(f"timestamp must be a number, got {type(value).__name__}")
    as_float = float(value)
    if not math.isfinite(as_float) or as_float < 0:
        raise InvalidInteractionError(f"timestamp must be finite and non-negative, got {value!r}")
    return as_float


@dataclass(frozen=True, slots=True)
class InteractionEvent:
    """One user action observed at ``timestamp`` (seconds)."""

    action_kind: str
    timestamp: float

    def __post_init__(self) -> None:
        require_text("action_kind", self.action_kind)
        object.__setattr__(self, "timestamp", require_timestamp(self.timestamp))


@dataclass(frozen=True, slots=True)
class ClassificationResult:
    """Outcome of scoring one tracking key."""

    is_bot: bool
    suspicious_score: int
    reasons: tuple[str, ...] = field(default_factory=tuple)
    interaction_count: int = 0
    # Machine-readable code per entry in ``reasons``
    heuristics: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class TrackerStats:
    total_tracked_keys: int
    suspicious_key_count: int
    bot_key_count: int
