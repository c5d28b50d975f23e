"""Achievement catalog and progress database queries"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional
from psycopg import AsyncConnection, sql
from psycopg.types.json import Jsonb
from src.db.connection import db
from src.exceptions import RecordNotFoundError

logger = logging.getLogger(__name__)

# First key of the two-key advisory lock; keeps our locks apart from other users of pg_advisory_*
ACHIEVEMENT_LOCK_NAMESPACE = 4201

# Tracker counters that update_achievement_progress may write
PROGRESS_COLUMNS = ("current_count", "current_streak", "highest_streak")

_ACHIEVEMENT_COLUMNS = "id, name, description, category, type, criteria, reward, hidden, icon"


# ==========================================
# Catalog Functions
# ==========================================

async def upsert_achievement(achievement: dict, conn: Optional[AsyncConnection] = None) -> None:
    """
    Insert or replace an achievement definition

    Args:
        achievement: Definition as produced by Achievement.model_dump(mode="json")
        conn: Connection to run on; a pooled one when None
    """
    async with db.transaction("upsert_achievement", conn) as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO achievements (id, name, description, category, type, action, criteria, reward, hidden, icon)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (id) DO UPDATE
                SET name = EXCLUDED.name,
                    description = EXCLUDED.description,
                    category = EXCLUDED.category,
                    type = EXCLUDED.type,
                    action = EXCLUDED.action,
                    criteria = EXCLUDED.criteria,
                    reward = EXCLUDED.reward,
                    hidden = EXCLUDED.hidden,
                    icon = EXCLUDED.icon
                """,
                (
                    achievement['id'],
                    achievement['name'],
                    achievement.get('description', ''),
                    achievement['category'],
                    achievement['type'],
                    achievement['criteria']['action'],
                    Jsonb(achievement['criteria']),
                    Jsonb(achievement['reward']) if achievement.get('reward') else None,
                    achievement.get('hidden', False),
                    achievement.get('icon'),
                )
            )


async def get_achievements_by_action(action: str, conn: Optional[AsyncConnection] = None) -> list[dict]:
    """Definitions reacting to action, in insertion order"""
    async with db.transaction("get_achievements_by_action", conn) as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_ACHIEVEMENT_COLUMNS}
                FROM achievements
                WHERE action = %s
                ORDER BY position
                """,
                (action,)
            )
            rows = await cur.fetchall()
            return [dict(row) for row in rows]


async def get_all_achievement_definitions(conn: Optional[AsyncConnection] = None) -> list[dict]:
    """Every definition, in insertion order"""
    async with db.transaction("get_all_achievement_definitions", conn) as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"""
                SELECT {_ACHIEVEMENT_COLUMNS}
                FROM achievements
                ORDER BY position
                """
            )
            rows = await cur.fetchall()
            return [dict(row) for row in rows]


async def get_achievement_definition(
    achievement_id: str,
    conn: Optional[AsyncConnection] = None
) -> Optional[dict]:
    async with db.transaction("get_achievement_definition", conn) as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"SELECT {_ACHIEVEMENT_COLUMNS} FROM achievements WHERE id = %s",
                (achievement_id,)
            )
            row = await cur.fetchone()
            return dict(row) if row else None


# ==========================================
# User Progress Functions
# ==========================================

@asynccontextmanager
async def user_advisory_lock(user_id: str) -> AsyncIterator[AsyncConnection]:
    """
    Hold a session-level advisory lock for one user

    Every process evaluating achievements for the same user queues here.
    Yields the connection holding the lock; run the evaluation's queries
    on it so one evaluation never needs a second pool connection. Each
    query still commits on its own, so work done before a failure is kept.
    The lock is released when the block exits.
    """
    lock_key = (ACHIEVEMENT_LOCK_NAMESPACE, user_id)
    async with db.connection("user_advisory_lock") as conn:
        async with conn.transaction():
            await conn.execute("SELECT pg_advisory_lock(%s, hashtext(%s))", lock_key)
        try:
            yield conn
        finally:
            async with conn.transaction():
                await conn.execute("SELECT pg_advisory_unlock(%s, hashtext(%s))", lock_key)


async def get_user_achievement_record(
    user_id: str,
    conn: Optional[AsyncConnection] = None
) -> Optional[dict]:
    """
    Get user's achievement aggregate

    Returns:
        None if never initialized, otherwise
        {
            'user_id': str,
            'earned_achievements': list[str],
            'total_points': int,
            'progress_trackers': {achievement_id: tracker row}
        }
    """
    async with db.transaction("get_user_achievement_record", conn) as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                SELECT user_id, earned_achievements, total_points
                FROM user_achievements
                WHERE user_id = %s
                """,
                (user_id,)
            )
            row = await cur.fetchone()
            if not row:
                return None

            await cur.execute(
                """
                SELECT achievement_id, current_count, current_streak, highest_streak, last_updated, completed
                FROM achievement_progress
                WHERE user_id = %s
                """,
                (user_id,)
            )
            trackers = await cur.fetchall()

    record = dict(row)
    record['earned_achievements'] = list(record['earned_achievements'] or [])
    record['progress_trackers'] = {t['achievement_id']: dict(t) for t in trackers}
    return record


async def create_user_achievement_record(user_id: str, conn: Optional[AsyncConnection] = None) -> None:
    """Create the zero-value aggregate; existing rows are left alone"""
    async with db.transaction("create_user_achievement_record", conn) as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO user_achievements (user_id)
                VALUES (%s)
                ON CONFLICT (user_id) DO NOTHING
                """,
                (user_id,)
            )
            if cur.rowcount:
                logger.info(f"Created achievement record for user {user_id}")


async def award_user_achievement(
    user_id: str,
    achievement_id: str,
    points: int,
    progress: dict,
    awarded_at: datetime,
    conn: Optional[AsyncConnection] = None
) -> bool:
    """
    Atomically mark an achievement earned and add its points

    Args:
        user_id: User identifier
        achievement_id: Achievement being awarded
        points: Reward points to add to total_points
        progress: Final tracker counters (missing keys default to 0)
        awarded_at: Timestamp written to last_updated
        conn: Connection to run on; a pooled one when None

    Returns:
        False if the user had already earned it (nothing written)

    Raises:
        RecordNotFoundError: If the user has no achievement record
    """
    async with db.transaction("award_achievement", conn) as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                "SELECT earned_achievements FROM user_achievements WHERE user_id = %s FOR UPDATE",
                (user_id,)
            )
            row = await cur.fetchone()
            if row is None:
                raise RecordNotFoundError(
                    f"No achievement record for user {user_id}",
                    record_type="UserAchievements",
                    record_id=user_id,
                    user_id=user_id,
                    operation="award_achievement"
                )
            if achievement_id in (row['earned_achievements'] or []):
                return False

            await cur.execute(
                """
                UPDATE user_achievements
                SET earned_achievements = array_append(earned_achievements, %s),
                    total_points = total_points + %s,
                    updated_at = CURRENT_TIMESTAMP
                WHERE user_id = %s
                """,
                (achievement_id, points, user_id)
            )
            await cur.execute(
                """
                INSERT INTO achievement_progress
                    (user_id, achievement_id, current_count, current_streak, highest_streak, last_updated, completed)
                VALUES (%s, %s, %s, %s, %s, %s, TRUE)
                ON CONFLICT (user_id, achievement_id) DO UPDATE
                SET current_count = EXCLUDED.current_count,
                    current_streak = EXCLUDED.current_streak,
                    highest_streak = EXCLUDED.highest_streak,
                    last_updated = EXCLUDED.last_updated,
                    completed = TRUE
                """,
                (
                    user_id,
                    achievement_id,
                    progress.get('current_count', 0),
                    progress.get('current_streak', 0),
                    progress.get('highest_streak', 0),
                    awarded_at,
                )
            )
    return True


async def update_achievement_progress(
    user_id: str,
    achievement_id: str,
    progress: dict,
    updated_at: datetime,
    conn: Optional[AsyncConnection] = None
) -> bool:
    """
    Merge tracker counters for one achievement

    Only PROGRESS_COLUMNS present in progress are written. Completed
    trackers are never touched.

    Returns:
        False if the tracker is completed
    """
    columns = [c for c in PROGRESS_COLUMNS if c in progress]

    insert_columns = [sql.Identifier(c) for c in ("user_id", "achievement_id", *columns, "last_updated")]
    assignments = [
        sql.SQL("{col} = EXCLUDED.{col}").format(col=sql.Identifier(c))
        for c in (*columns, "last_updated")
    ]
    query = sql.SQL(
        """
        INSERT INTO achievement_progress ({columns})
        VALUES ({placeholders})
        ON CONFLICT (user_id, achievement_id) DO UPDATE
        SET {assignments}
        WHERE achievement_progress.completed = FALSE
        RETURNING achievement_id
        """
    ).format(
        columns=sql.SQL(", ").join(insert_columns),
        placeholders=sql.SQL(", ").join(sql.Placeholder() * len(insert_columns)),
        assignments=sql.SQL(", ").join(assignments),
    )

    async with db.transaction("update_achievement_progress", conn) as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                query,
                (user_id, achievement_id, *(progress[c] for c in columns), updated_at)
            )
            row = await cur.fetchone()
            return row is not None
