"""
Achievement engine for the calorie tracker

This module implements rule-driven achievement tracking:
- Achievement catalog (definitions keyed by event action)
- Per-user progress store with atomic awards
- Progress rules (single, cumulative, streak, social)
- Evaluator, event bus and domain event triggers
"""

from src.gamification.achievement_system import AchievementEvaluator, get_user_achievement_summary
from src.gamification.catalog import AchievementCatalog, InMemoryAchievementCatalog, seed_achievements
from src.gamification.events import AchievementEvent, AchievementEventBus
from src.gamification.progress_store import ProgressStore, InMemoryProgressStore
from src.gamification.triggers import AchievementTriggers

__all__ = [
    "AchievementEvaluator",
    "get_user_achievement_summary",
    "AchievementCatalog",
    "InMemoryAchievementCatalog",
    "seed_achievements",
    "AchievementEvent",
    "AchievementEventBus",
    "ProgressStore",
    "InMemoryProgressStore",
    "AchievementTriggers",
]
