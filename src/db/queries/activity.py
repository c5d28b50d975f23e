"""User activity tracking database queries"""
import logging
from datetime import datetime
from typing import Optional
from psycopg import sql
from src.db.connection import db
from src.exceptions import RecordNotFoundError
from src.models.activity import ACTIVITY_COUNTERS

logger = logging.getLogger(__name__)

_ACTIVITY_COLUMNS = (
    "user_id, last_meal_timestamp, daily_meal_count, total_meals_logged, total_photos_logged, "
    "custom_recipes_created, weight_entries_count, calorie_goals_met_count, last_updated"
)


async def create_user_activity(user_id: str, created_at: datetime) -> None:
    """Create the zero-value activity log; existing rows are left alone"""
    async with db.connection("create_user_activity") as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                """
                INSERT INTO user_activity (user_id, last_updated)
                VALUES (%s, %s)
                ON CONFLICT (user_id) DO NOTHING
                """,
                (user_id, created_at)
            )
            await conn.commit()


async def get_user_activity(user_id: str) -> Optional[dict]:
    async with db.connection("get_user_activity") as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                f"SELECT {_ACTIVITY_COLUMNS} FROM user_activity WHERE user_id = %s",
                (user_id,)
            )
            row = await cur.fetchone()
            return dict(row) if row else None


async def update_user_activity(
    user_id: str,
    increments: dict[str, int],
    values: dict,
    updated_at: datetime
) -> dict:
    """
    Increment counters and set plain fields in one statement

    Args:
        user_id: User identifier
        increments: {counter column: amount}, columns from ACTIVITY_COUNTERS
        values: {column: value} to overwrite (counters or last_meal_timestamp)
        updated_at: New last_updated value

    Returns:
        The updated row

    Raises:
        RecordNotFoundError: If the user has no activity log
    """
    allowed = ACTIVITY_COUNTERS | {"last_meal_timestamp"}
    unknown = (set(increments) - ACTIVITY_COUNTERS) | (set(values) - allowed)
    if unknown:
        raise ValueError(f"Unknown activity columns: {sorted(unknown)}")

    assignments = [
        sql.SQL("{col} = {col} + {val}").format(col=sql.Identifier(c), val=sql.Placeholder())
        for c in increments
    ]
    assignments += [
        sql.SQL("{col} = {val}").format(col=sql.Identifier(c), val=sql.Placeholder())
        for c in values
    ]
    assignments.append(sql.SQL("last_updated = {val}").format(val=sql.Placeholder()))

    query = sql.SQL("UPDATE user_activity SET {assignments} WHERE user_id = %s RETURNING " + _ACTIVITY_COLUMNS).format(
        assignments=sql.SQL(", ").join(assignments)
    )

    async with db.connection("update_user_activity") as conn:
        async with conn.cursor() as cur:
            await cur.execute(
                query,
                (*increments.values(), *values.values(), updated_at, user_id)
            )
            row = await cur.fetchone()
            await conn.commit()

    if row is None:
        raise RecordNotFoundError(
            f"No activity log for user {user_id}",
            record_type="UserActivityLog",
            record_id=user_id,
            user_id=user_id,
            operation="update_user_activity"
        )
    return dict(row)
