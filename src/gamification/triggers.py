"""
Achievement Triggers

Thin adapters that turn domain occurrences into achievement events:

- meal logged          -> meal_log, photo_log (with photo), late_night_log (late hours)
- calorie goal checked -> calorie_goal_met (only when the goal was met)
- daily activity done  -> daily_log

Each trigger awaits the evaluation and returns the achievements it awarded.
"""

from typing import List, Optional, Union
from datetime import date, datetime
import logging

from src.config import CALORIE_GOAL_MARGIN, LATE_NIGHT_START_HOUR, LATE_NIGHT_END_HOUR
from src.gamification.events import AchievementEventBus, build_event
from src.models.achievement import Achievement
from src.utils.datetime_helpers import ensure_utc, local_hour, now_utc, to_local_date

logger = logging.getLogger(__name__)


def is_calorie_goal_met(
    target_calories: float,
    actual_calories: float,
    margin: float = CALORIE_GOAL_MARGIN
) -> bool:
    """Actual intake within margin (fraction of target) of the target"""
    return abs(target_calories - actual_calories) <= target_calories * margin


def is_late_night(
    hour: int,
    start_hour: int = LATE_NIGHT_START_HOUR,
    end_hour: int = LATE_NIGHT_END_HOUR
) -> bool:
    return hour >= start_hour or hour < end_hour


class AchievementTriggers:
    """Publishes achievement events for meal, goal and daily activity occurrences"""

    def __init__(self, bus: AchievementEventBus):
        self.bus = bus

    async def _publish(self, user_id: str, action: str, context: dict) -> List[Achievement]:
        results = await self.bus.publish(build_event(user_id, action, context))
        return [r for r in results if isinstance(r, Achievement)]

    async def on_meal_logged(
        self,
        user_id: str,
        timestamp: datetime,
        calories: float,
        has_photo: bool
    ) -> List[Achievement]:
        """
        Check meal logging achievements

        Args:
            user_id: User identifier
            timestamp: When the meal was logged
            calories: Estimated calories of the meal
            has_photo: Whether the meal was logged from a photo

        Returns:
            Achievements awarded across all resulting events
        """
        timestamp = ensure_utc(timestamp)
        awarded = await self._publish(user_id, "meal_log", {
            "timestamp": timestamp,
            "hasPhoto": has_photo,
        })

        if has_photo:
            awarded += await self._publish(user_id, "photo_log", {
                "timestamp": timestamp,
            })

        # Time-based achievements (e.g. night owl)
        hour = local_hour(timestamp)
        if is_late_night(hour):
            awarded += await self._publish(user_id, "late_night_log", {
                "timeAfter": f"{hour}:00",
            })

        logger.debug(
            f"Meal trigger for user {user_id}: {calories} kcal, photo={has_photo}, "
            f"awarded={[a.id for a in awarded]}"
        )
        return awarded

    async def on_calorie_goal_met(
        self,
        user_id: str,
        target_calories: float,
        actual_calories: float,
        day: Optional[Union[date, datetime]] = None,
        met_goal: Optional[bool] = None
    ) -> List[Achievement]:
        """
        Check calorie goal achievements for one day's totals

        met_goal=None derives the outcome from target/actual and the
        configured margin. Days that missed the goal publish nothing. day
        only fills the event's date field.
        """
        if met_goal is None:
            met_goal = is_calorie_goal_met(target_calories, actual_calories)

        if not met_goal:
            logger.debug(f"Calorie goal missed for user {user_id}: {actual_calories}/{target_calories} kcal")
            return []

        return await self._publish(user_id, "calorie_goal_met", {
            "date": to_local_date(day or now_utc()),
            "targetCalories": target_calories,
            "actualCalories": actual_calories,
        })

    async def on_daily_activity_completed(
        self,
        user_id: str,
        day: Optional[Union[date, datetime]] = None
    ) -> List[Achievement]:
        """
        Check daily streak achievements

        day only fills the event's date field; streak days are judged by
        the evaluator's clock.
        """
        return await self._publish(user_id, "daily_log", {
            "date": to_local_date(day or now_utc()),
        })
