"""
Achievement System

Evaluates achievement definitions against per-user progress when a
domain event arrives, and builds the read-side achievement summary.

Achievement types:
- single (exact-match conditions on the event context)
- cumulative (count of qualifying events)
- streak (consecutive calendar days)
- social (not implemented yet, never progresses)

Features:
- Progress tracking for locked achievements
- Automatic detection and awarding
- Point rewards for earned achievements
- Hidden achievements obscured until earned
"""

from typing import Any, Callable, Dict, List, Optional
from datetime import datetime, timezone
import logging

from src.exceptions import ValidationError
from src.gamification.catalog import AchievementCatalog
from src.gamification.progress_rules import evaluate_rule
from src.gamification.progress_store import ProgressStore
from src.models.achievement import (
    Achievement,
    AchievementCategory,
    AchievementType,
    UserAchievementProgress,
)
from src.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)

HIDDEN_NAME = "???"
HIDDEN_DESCRIPTION = "Secret Achievement"


class AchievementEvaluator:
    """
    Decides, per event, which achievements to award, advance or ignore.

    Collaborators are injected so the evaluator runs against in-memory
    fakes in tests and against Postgres in production.
    """

    def __init__(
        self,
        catalog: AchievementCatalog,
        store: ProgressStore,
        clock: Callable[[], datetime] = now_utc
    ):
        self.catalog = catalog
        self.store = store
        self._clock = clock

    async def check_achievements(
        self,
        user_id: str,
        action: str,
        context: Optional[Dict[str, Any]] = None
    ) -> List[Achievement]:
        """
        Evaluate every achievement reacting to action for one user

        Args:
            user_id: User identifier
            action: Event key ('meal_log', 'photo_log', 'late_night_log', 'calorie_goal_met', 'daily_log')
            context: Event data the rules may inspect (e.g. {'timeAfter': '22:00'})

        Returns:
            Achievements newly awarded by this call, in catalog order.
            Uninitialized users get an empty list and nothing is written.

        Store failures propagate; candidates already processed keep their writes.
        """
        if not user_id:
            raise ValidationError("user_id is required", field="user_id", value=user_id, operation="check_achievements")

        context = context or {}
        newly_awarded: List[Achievement] = []

        async with self.store.user_lock(user_id):
            user_achievements = await self.store.get(user_id)
            if user_achievements is None:
                logger.debug(f"No achievement record for user {user_id}, skipping '{action}'")
                return newly_awarded

            candidates = await self.catalog.list_by_action(action)
            now = self._clock()

            for achievement in candidates:
                # Earned achievements are terminal
                if user_achievements.has_earned(achievement.id):
                    continue

                current_progress = user_achievements.progress_for(achievement.id)
                if current_progress.completed:
                    continue

                result = evaluate_rule(achievement, current_progress, context, now)

                if result.achieved:
                    awarded = await self.store.award(
                        user_id,
                        achievement.id,
                        achievement.points,
                        result.progress
                    )
                    if awarded:
                        newly_awarded.append(achievement)
                        logger.info(
                            f"User {user_id} unlocked achievement: {achievement.id} "
                            f"({achievement.name}) +{achievement.points} points"
                        )

                elif result.progress is not None:
                    await self.store.update_progress(user_id, achievement.id, result.progress)
                    logger.debug(
                        f"Progress for {achievement.id} (user {user_id}): "
                        f"count={result.progress.current_count} streak={result.progress.current_streak}"
                    )

        return newly_awarded

    async def handle_event(self, event) -> List[Achievement]:
        """Event bus subscriber entry point"""
        return await self.check_achievements(event.user_id, event.action, event.context)


# ============================================
# Read-side summary
# ============================================

def calculate_achievement_progress(
    achievement: Achievement,
    tracker: Optional[UserAchievementProgress],
    earned: bool = False
) -> Dict[str, Any]:
    """
    Calculate progress toward an achievement

    Returns:
        {
            'current': int,
            'required': int,
            'percentage': int,
            'description': str
        }
    """
    required = achievement.criteria.count or 0
    current = 0

    if tracker is not None:
        if achievement.type == AchievementType.STREAK:
            current = tracker.current_streak
        elif achievement.type in (AchievementType.CUMULATIVE, AchievementType.SOCIAL):
            current = tracker.current_count

    if earned:
        percentage = 100
    elif required > 0:
        percentage = min(100, int(current / required * 100))
    else:
        percentage = 0

    if achievement.type == AchievementType.STREAK:
        description = f"{current}/{required} days"
    elif achievement.type == AchievementType.CUMULATIVE:
        description = f"{current}/{required}"
    elif achievement.type == AchievementType.SOCIAL:
        description = f"{current}/{required} friends" if current else "Not started"
    else:
        description = "Completed" if earned else ""

    return {
        'current': current,
        'required': required,
        'percentage': percentage,
        'description': description,
    }


def _achievement_view(
    achievement: Achievement,
    tracker: Optional[UserAchievementProgress],
    earned: bool
) -> Dict[str, Any]:
    obscured = achievement.hidden and not earned
    return {
        'id': achievement.id,
        'name': HIDDEN_NAME if obscured else achievement.name,
        'description': HIDDEN_DESCRIPTION if obscured else (achievement.description or "No description available"),
        'icon': achievement.icon,
        'category': achievement.category.value,
        'type': achievement.type.value,
        'points': achievement.points,
        'badge': achievement.reward.badge if achievement.reward else None,
        'hidden': achievement.hidden,
        'earned': earned,
        'earned_at': tracker.last_updated if earned and tracker else None,
        'progress': calculate_achievement_progress(achievement, tracker, earned),
    }


async def get_user_achievement_summary(
    catalog: AchievementCatalog,
    store: ProgressStore,
    user_id: str,
    include_locked: bool = True,
    category: Optional[AchievementCategory] = None
) -> Optional[Dict[str, Any]]:
    """
    Get user's achievements with progress

    Args:
        catalog: Achievement catalog
        store: Progress store
        user_id: User identifier
        include_locked: Whether to include locked achievements with progress
        category: Only include achievements of this category

    Returns:
        None for uninitialized users, otherwise
        {
            'user_id': str,
            'earned': [earned achievements],
            'locked': [locked achievements with progress] (if include_locked=True),
            'total_earned': int,
            'total_achievements': int,
            'total_points': int
        }
    """
    user_achievements = await store.get(user_id)
    if user_achievements is None:
        return None

    all_achievements = await catalog.list_all()
    if category is not None:
        all_achievements = [a for a in all_achievements if a.category == category]

    earned = []
    locked = []
    for achievement in all_achievements:
        tracker = user_achievements.progress_trackers.get(achievement.id)
        if user_achievements.has_earned(achievement.id):
            earned.append(_achievement_view(achievement, tracker, earned=True))
        elif include_locked:
            locked.append(_achievement_view(achievement, tracker, earned=False))

    # Most recent first; trackers written before timestamps existed go last
    earned.sort(key=lambda x: x['earned_at'] or datetime.min.replace(tzinfo=timezone.utc), reverse=True)

    result = {
        'user_id': user_id,
        'earned': earned,
        'total_earned': len(earned),
        'total_achievements': len(all_achievements),
        'total_points': user_achievements.total_points,
    }

    if include_locked:
        # Closest to completion first
        locked.sort(key=lambda x: x['progress']['percentage'], reverse=True)
        result['locked'] = locked

    return result


def format_achievement_display(summary: Dict[str, Any]) -> str:
    """
    Format achievements for text display

    Args:
        summary: Output from get_user_achievement_summary()

    Returns:
        Formatted string for display
    """
    earned = summary['earned']
    total_earned = summary['total_earned']
    total_achievements = summary['total_achievements']

    if total_earned == 0:
        return "🏆 No achievements earned yet. Log your first meal to get started! 🍽️"

    lines = [
        f"🏆 YOUR ACHIEVEMENTS ({total_earned}/{total_achievements})",
        f"⭐ Total points: {summary['total_points']}\n"
    ]

    by_category: Dict[str, List[Dict[str, Any]]] = {c.value: [] for c in AchievementCategory}
    for ach in earned:
        by_category.setdefault(ach['category'], []).append(ach)

    for category_name, achievements in by_category.items():
        if achievements:
            lines.append(category_name.upper())
            for ach in achievements:
                lines.append(f"{ach['icon'] or '🏅'} {ach['name']} (+{ach['points']} pts)")
            lines.append("")

    return "\n".join(lines).rstrip()


def format_achievement_unlock_message(achievement: Achievement) -> str:
    """
    Format achievement unlock message for celebration

    Args:
        achievement: Achievement returned by AchievementEvaluator.check_achievements()

    Returns:
        Formatted celebration message
    """
    icon = achievement.icon or '🏆'
    lines = [
        "🎉 ACHIEVEMENT UNLOCKED! 🎉",
        "",
        f"{icon} {achievement.name}",
        "",
        achievement.description,
    ]
    if achievement.points:
        lines.extend(["", f"⭐ +{achievement.points} points!"])

    return "\n".join(lines)
