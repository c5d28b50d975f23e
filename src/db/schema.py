"""Table definitions for achievements and activity tracking"""
import logging
from src.db.connection import Database

logger = logging.getLogger(__name__)

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS achievements (
        id TEXT PRIMARY KEY,
        position BIGSERIAL,
        name TEXT NOT NULL,
        description TEXT NOT NULL DEFAULT '',
        category TEXT NOT NULL,
        type TEXT NOT NULL,
        action TEXT NOT NULL,
        criteria JSONB NOT NULL,
        reward JSONB,
        hidden BOOLEAN NOT NULL DEFAULT FALSE,
        icon TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_achievements_action ON achievements (action, position)",
    """
    CREATE TABLE IF NOT EXISTS user_achievements (
        user_id TEXT PRIMARY KEY,
        earned_achievements TEXT[] NOT NULL DEFAULT '{}',
        total_points INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS achievement_progress (
        user_id TEXT NOT NULL REFERENCES user_achievements (user_id) ON DELETE CASCADE,
        achievement_id TEXT NOT NULL,
        current_count INTEGER NOT NULL DEFAULT 0,
        current_streak INTEGER NOT NULL DEFAULT 0,
        highest_streak INTEGER NOT NULL DEFAULT 0,
        last_updated TIMESTAMPTZ,
        completed BOOLEAN NOT NULL DEFAULT FALSE,
        PRIMARY KEY (user_id, achievement_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_activity (
        user_id TEXT PRIMARY KEY,
        last_meal_timestamp TIMESTAMPTZ,
        daily_meal_count INTEGER NOT NULL DEFAULT 0,
        total_meals_logged INTEGER NOT NULL DEFAULT 0,
        total_photos_logged INTEGER NOT NULL DEFAULT 0,
        custom_recipes_created INTEGER NOT NULL DEFAULT 0,
        weight_entries_count INTEGER NOT NULL DEFAULT 0,
        calorie_goals_met_count INTEGER NOT NULL DEFAULT 0,
        last_updated TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
    )
    """,
]


async def ensure_schema(database: Database) -> None:
    """Create missing tables and indexes"""
    async with database.connection("ensure_schema") as conn:
        async with conn.cursor() as cur:
            for statement in SCHEMA_STATEMENTS:
                await cur.execute(statement)
        await conn.commit()
    logger.info("Achievement schema is up to date")
