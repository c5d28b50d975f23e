"""Stock achievement catalog seeded for new deployments"""
from src.models.achievement import (
    Achievement,
    AchievementCategory,
    AchievementCriteria,
    AchievementReward,
    AchievementType,
)

DEFAULT_ACHIEVEMENTS: list[Achievement] = [
    Achievement(
        id="first_meal_log",
        name="First Steps",
        description="Log your first meal",
        category=AchievementCategory.DAILY,
        type=AchievementType.SINGLE,
        criteria=AchievementCriteria(action="meal_log", count=1),
        reward=AchievementReward(points=10, badge="first_meal"),
        icon="🍽️",
    ),
    Achievement(
        id="week_streak",
        name="Consistency Champion",
        description="Log meals for 7 consecutive days",
        category=AchievementCategory.HABIT,
        type=AchievementType.STREAK,
        criteria=AchievementCriteria(action="daily_log", count=7),
        reward=AchievementReward(points=50, badge="week_streak"),
        icon="🔥",
    ),
    Achievement(
        id="calorie_goal_master",
        name="Goal Crusher",
        description="Meet your calorie goal for 5 consecutive days",
        category=AchievementCategory.GOAL,
        type=AchievementType.STREAK,
        criteria=AchievementCriteria(action="calorie_goal_met", count=5),
        reward=AchievementReward(points=30, badge="goal_master"),
        icon="🎯",
    ),
    Achievement(
        id="photo_logger",
        name="Snap Master",
        description="Log 50 meals with photos",
        category=AchievementCategory.HABIT,
        type=AchievementType.CUMULATIVE,
        criteria=AchievementCriteria(action="photo_log", count=50),
        reward=AchievementReward(points=100, badge="camera_pro"),
        icon="📸",
    ),
    Achievement(
        id="night_owl",
        name="Night Owl",
        description="Log a meal after 10 PM",
        category=AchievementCategory.DAILY,
        type=AchievementType.SINGLE,
        criteria=AchievementCriteria(action="late_night_log", conditions={"timeAfter": "22:00"}),
        reward=AchievementReward(points=15, badge="night_owl"),
        hidden=True,
        icon="🦉",
    ),
]
