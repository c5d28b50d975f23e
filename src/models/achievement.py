"""Achievement models for gamification"""
from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, Any
from datetime import datetime


class AchievementCategory(str, Enum):
    """Achievement categories"""
    DAILY = "Daily"
    HABIT = "Habit"
    GOAL = "Goal"
    SOCIAL = "Social"


class AchievementType(str, Enum):
    """Which progress rule decides the achievement"""
    SINGLE = "single"
    CUMULATIVE = "cumulative"
    STREAK = "streak"
    SOCIAL = "social"


class AchievementCriteria(BaseModel):
    """
    What an achievement reacts to and when it completes

    action is the event key; count is the threshold for cumulative and
    streak types; conditions is an exact-match filter for single types.
    """
    action: str
    count: Optional[int] = None
    conditions: Optional[dict[str, Any]] = None


class AchievementReward(BaseModel):
    """Points and badge granted on award"""
    points: int = 0
    badge: Optional[str] = None


class Achievement(BaseModel):
    """Achievement definition (immutable once seeded)"""
    id: str = Field(..., min_length=1)
    name: str
    description: str = ""
    category: AchievementCategory
    type: AchievementType
    criteria: AchievementCriteria
    reward: Optional[AchievementReward] = None
    hidden: bool = False
    icon: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def points(self) -> int:
        return self.reward.points if self.reward else 0


class UserAchievementProgress(BaseModel):
    """Progress tracker for one (user, achievement) pair"""
    achievement_id: str
    current_count: int = 0
    current_streak: int = 0
    highest_streak: int = 0
    last_updated: Optional[datetime] = None
    completed: bool = False


class UserAchievements(BaseModel):
    """Per-user root aggregate of earned achievements and progress"""
    user_id: str
    earned_achievements: list[str] = Field(default_factory=list)
    progress_trackers: dict[str, UserAchievementProgress] = Field(default_factory=dict)
    total_points: int = 0

    def has_earned(self, achievement_id: str) -> bool:
        return achievement_id in self.earned_achievements

    def progress_for(self, achievement_id: str) -> UserAchievementProgress:
        """Stored tracker, or a zero-value one if this achievement was never evaluated"""
        tracker = self.progress_trackers.get(achievement_id)
        if tracker is None:
            return UserAchievementProgress(achievement_id=achievement_id)
        return tracker


class AchievementCheckResult(BaseModel):
    """Outcome of a progress rule"""
    achieved: bool
    progress: Optional[UserAchievementProgress] = None
