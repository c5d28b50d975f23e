"""User activity tracking models"""
from typing import Optional
from datetime import datetime, timezone
from pydantic import BaseModel, Field


class UserActivityLog(BaseModel):
    """Running per-user activity counters that feed achievement triggers"""
    user_id: str
    last_meal_timestamp: Optional[datetime] = None
    daily_meal_count: int = 0
    total_meals_logged: int = 0
    total_photos_logged: int = 0
    custom_recipes_created: int = 0
    weight_entries_count: int = 0
    calorie_goals_met_count: int = 0
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# Counter columns that track_* operations may increment
ACTIVITY_COUNTERS = frozenset({
    "daily_meal_count",
    "total_meals_logged",
    "total_photos_logged",
    "custom_recipes_created",
    "weight_entries_count",
    "calorie_goals_met_count",
})
