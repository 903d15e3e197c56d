"""Checks applied to a single reported post view."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from botwatch.detection.domain.reputation import SuspiciousActivity

MIN_COUNTED_SCREEN_PERCENTAGE = 70.0


@dataclass(frozen=True, slots=True)
class ViewAssessment:
    is_bot: bool
    reasons: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ViewRules:
    recent_offense_window: timedelta = timedelta(seconds=60)
    recent_offense_limit: int = 5
    min_duration_seconds: float = 0.5
    glance_duration_seconds: float = 1.0
    glance_max_screen_percentage: float = 90.0


def counts_as_view(screen_percentage: float) -> bool:
    """Views are only recorded when most of the post was on screen."""

    return screen_percentage >= MIN_COUNTED_SCREEN_PERCENTAGE


def assess_view(
    *,
    duration_seconds: float,
    screen_percentage: float,
    activity: SuspiciousActivity | None = None,
    now: datetime | None = None,
    rules: ViewRules | None = None,
) -> ViewAssessment:
    rules = rules or ViewRules()
    now = now or datetime.now(timezone.utc)
    reasons: list[str] = []

    if (
        activity is not None
        and activity.last_suspicious_activity is not None
        and now - activity.last_suspicious_activity < rules.recent_offense_window
        and activity.view_spam_count > rules.recent_offense_limit
    ):
        reasons.append("repeat_view_offender")
    if duration_seconds < rules.min_duration_seconds:
        reasons.append("view_too_short")
    if screen_percentage > 100 or screen_percentage < 0:
        reasons.append("impossible_screen_percentage")
    if duration_seconds < rules.glance_duration_seconds and screen_percentage > rules.glance_max_screen_percentage:
        reasons.append("glance_claims_full_view")

    return ViewAssessment(is_bot=bool(reasons), reasons=tuple(reasons))
