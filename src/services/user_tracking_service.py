"""
UserTrackingService - Activity Tracking Business Logic

Records meal, calorie goal, weight and recipe activity for a user and
fires the matching achievement triggers.
"""

import logging
from typing import List, Optional, Tuple, Union
from datetime import date, datetime

from src.exceptions import ValidationError
from src.gamification.progress_store import ProgressStore
from src.gamification.triggers import AchievementTriggers, is_calorie_goal_met
from src.models.achievement import Achievement, UserAchievements
from src.models.activity import UserActivityLog
from src.services.activity_store import ActivityStore
from src.utils.datetime_helpers import ensure_utc, now_utc

logger = logging.getLogger(__name__)


class UserTrackingService:
    """
    Service for user activity tracking.

    Responsibilities:
    - Initializing activity and achievement records for new users
    - Counting meals, photos, calorie goals met, weight entries, recipes
    - Daily reset of per-day counters
    - Firing achievement triggers and returning what they awarded

    Errors from stores and achievement evaluation propagate to the caller.
    """

    def __init__(
        self,
        activity_store: ActivityStore,
        progress_store: ProgressStore,
        triggers: AchievementTriggers
    ):
        """
        Initialize UserTrackingService.

        Args:
            activity_store: Storage for activity counters
            progress_store: Storage for achievement progress (for initialization)
            triggers: Achievement trigger adapters
        """
        self.activity_store = activity_store
        self.progress_store = progress_store
        self.triggers = triggers
        logger.debug("UserTrackingService initialized")

    @staticmethod
    def _require_user_id(user_id: str, operation: str) -> None:
        if not user_id or not user_id.strip():
            raise ValidationError("user_id is required", field="user_id", value=user_id, operation=operation)

    async def initialize_user(self, user_id: str) -> Tuple[UserActivityLog, UserAchievements]:
        """
        Create activity and achievement records for a user.

        Safe to call for existing users; their records are returned unchanged.
        """
        self._require_user_id(user_id, "initialize_user")

        activity = await self.activity_store.initialize(user_id)
        achievements = await self.progress_store.initialize(user_id)

        logger.info(f"Tracking initialized for user {user_id}")
        return activity, achievements

    async def get_activity(self, user_id: str) -> Optional[UserActivityLog]:
        return await self.activity_store.get(user_id)

    async def track_meal_logged(
        self,
        user_id: str,
        calories: float,
        has_photo: bool,
        timestamp: Optional[datetime] = None
    ) -> List[Achievement]:
        """
        Record a logged meal and check meal achievements.

        Args:
            user_id: User identifier
            calories: Estimated calories of the meal
            has_photo: Whether the meal was logged from a photo
            timestamp: When the meal was logged (defaults to now)

        Returns:
            Achievements newly awarded
        """
        self._require_user_id(user_id, "track_meal_logged")
        if calories < 0:
            raise ValidationError("Calories cannot be negative", field="calories", value=calories, user_id=user_id)

        timestamp = ensure_utc(timestamp) if timestamp else now_utc()

        increments = {"total_meals_logged": 1, "daily_meal_count": 1}
        if has_photo:
            increments["total_photos_logged"] = 1

        await self.activity_store.update(
            user_id,
            increments=increments,
            values={"last_meal_timestamp": timestamp}
        )

        awarded = await self.triggers.on_meal_logged(user_id, timestamp, calories, has_photo)

        logger.info(
            f"Meal tracked for user {user_id}: {calories} kcal, photo={has_photo}, "
            f"achievements={len(awarded)}"
        )
        return awarded

    async def track_calorie_goal(
        self,
        user_id: str,
        target_calories: float,
        actual_calories: float,
        day: Optional[Union[date, datetime]] = None
    ) -> List[Achievement]:
        """
        Record a day's calorie result; only days within the goal margin count.

        Returns:
            Achievements newly awarded (empty when the goal was missed)
        """
        self._require_user_id(user_id, "track_calorie_goal")
        if target_calories <= 0:
            raise ValidationError(
                "Target calories must be positive",
                field="target_calories",
                value=target_calories,
                user_id=user_id
            )

        if not is_calorie_goal_met(target_calories, actual_calories):
            logger.debug(f"Calorie goal not met for user {user_id}: {actual_calories}/{target_calories}")
            return []

        await self.activity_store.update(user_id, increments={"calorie_goals_met_count": 1})

        return await self.triggers.on_calorie_goal_met(
            user_id,
            target_calories,
            actual_calories,
            day=day,
            met_goal=True
        )

    async def track_weight_entry(self, user_id: str, weight_kg: float) -> UserActivityLog:
        """Count a weight entry (no achievements react to weight yet)"""
        self._require_user_id(user_id, "track_weight_entry")
        if weight_kg <= 0:
            raise ValidationError("Weight must be positive", field="weight_kg", value=weight_kg, user_id=user_id)

        return await self.activity_store.update(user_id, increments={"weight_entries_count": 1})

    async def track_custom_recipe(self, user_id: str) -> UserActivityLog:
        """Count a custom recipe"""
        self._require_user_id(user_id, "track_custom_recipe")
        return await self.activity_store.update(user_id, increments={"custom_recipes_created": 1})

    async def process_daily_reset(
        self,
        user_id: str,
        day: Optional[Union[date, datetime]] = None
    ) -> List[Achievement]:
        """
        Close out a user's day: zero the daily meal count, then check daily streaks.
        """
        self._require_user_id(user_id, "process_daily_reset")

        await self.activity_store.update(user_id, values={"daily_meal_count": 0})
        return await self.triggers.on_daily_activity_completed(user_id, day=day)
