"""
Progress Rules

Pure decision functions, one per achievement type. Each takes the
definition, the user's current tracker, the event context and the
evaluation moment, and returns an AchievementCheckResult:

- achieved=True              -> award
- achieved=False, progress   -> persist progress
- achieved=False, no progress -> nothing to persist

Rules never touch storage.
"""

from typing import Any, Callable, Dict, Optional
from datetime import datetime
import logging

from src.models.achievement import (
    Achievement,
    AchievementCheckResult,
    AchievementType,
    UserAchievementProgress,
)
from src.utils.datetime_helpers import calendar_days_between

logger = logging.getLogger(__name__)

ProgressRule = Callable[
    [Achievement, UserAchievementProgress, Dict[str, Any], datetime],
    AchievementCheckResult
]


def _target_count(achievement: Achievement) -> int:
    """Threshold for counting rules; a missing count is treated as 0"""
    count = achievement.criteria.count
    if count is None:
        logger.warning(
            f"Achievement {achievement.id} ({achievement.type.value}) has no criteria.count; "
            f"it will be awarded on its first event"
        )
        return 0
    return count


def check_single(
    achievement: Achievement,
    progress: UserAchievementProgress,
    context: Dict[str, Any],
    now: datetime
) -> AchievementCheckResult:
    """Achieved when every condition equals the context value under the same key"""
    conditions = achievement.criteria.conditions or {}
    for key, expected in conditions.items():
        if key not in context or context[key] != expected:
            return AchievementCheckResult(achieved=False)

    return AchievementCheckResult(achieved=True)


def check_cumulative(
    achievement: Achievement,
    progress: UserAchievementProgress,
    context: Dict[str, Any],
    now: datetime
) -> AchievementCheckResult:
    """Count one more qualifying event"""
    new_count = progress.current_count + 1

    return AchievementCheckResult(
        achieved=new_count >= _target_count(achievement),
        progress=progress.model_copy(update={"current_count": new_count}),
    )


def is_consecutive_day(last_updated: Optional[datetime], now: datetime) -> bool:
    """True for the first ever event, or when last_updated was the previous calendar day"""
    if last_updated is None:
        return True
    return calendar_days_between(last_updated, now) == 1


def check_streak(
    achievement: Achievement,
    progress: UserAchievementProgress,
    context: Dict[str, Any],
    now: datetime
) -> AchievementCheckResult:
    """
    Extend or restart a daily streak

    Previous calendar day (or no history) extends the streak. Anything else,
    a second event on the same day included, restarts it at 1.
    """
    if is_consecutive_day(progress.last_updated, now):
        new_streak = progress.current_streak + 1
    else:
        new_streak = 1

    new_highest = max(new_streak, progress.highest_streak)

    return AchievementCheckResult(
        achieved=new_streak >= _target_count(achievement),
        progress=progress.model_copy(update={
            "current_streak": new_streak,
            "highest_streak": new_highest,
        }),
    )


def check_social(
    achievement: Achievement,
    progress: UserAchievementProgress,
    context: Dict[str, Any],
    now: datetime
) -> AchievementCheckResult:
    """Social achievements are not implemented yet and never progress"""
    return AchievementCheckResult(achieved=False)


RULES: Dict[AchievementType, ProgressRule] = {
    AchievementType.SINGLE: check_single,
    AchievementType.CUMULATIVE: check_cumulative,
    AchievementType.STREAK: check_streak,
    AchievementType.SOCIAL: check_social,
}


def evaluate_rule(
    achievement: Achievement,
    progress: UserAchievementProgress,
    context: Dict[str, Any],
    now: datetime
) -> AchievementCheckResult:
    """Dispatch to the rule for the achievement's type"""
    rule = RULES.get(achievement.type)
    if rule is None:
        logger.warning(f"No progress rule for achievement type {achievement.type!r} ({achievement.id})")
        return AchievementCheckResult(achieved=False)
    return rule(achievement, progress, context, now)
