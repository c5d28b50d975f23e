"""
Database queries - re-exports for 'from src.db.queries import ...'

Module organization:
- achievements.py: Achievement catalog, user achievement aggregates, progress trackers, per-user locks
- activity.py: User activity counters that feed achievement triggers
"""

# Achievement operations
from src.db.queries.achievements import (
    upsert_achievement,
    get_achievements_by_action,
    get_all_achievement_definitions,
    get_achievement_definition,
    user_advisory_lock,
    get_user_achievement_record,
    create_user_achievement_record,
    award_user_achievement,
    update_achievement_progress,
)

# Activity operations
from src.db.queries.activity import (
    create_user_activity,
    get_user_activity,
    update_user_activity,
)

__all__ = [
    # Achievements
    "upsert_achievement",
    "get_achievements_by_action",
    "get_all_achievement_definitions",
    "get_achievement_definition",
    "user_advisory_lock",
    "get_user_achievement_record",
    "create_user_achievement_record",
    "award_user_achievement",
    "update_achievement_progress",
    # Activity
    "create_user_activity",
    "get_user_activity",
    "update_user_activity",
]
