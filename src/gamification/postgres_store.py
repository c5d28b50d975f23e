"""
PostgreSQL-backed catalog and progress store

Thin adapters from the AchievementCatalog / ProgressStore contracts to
src.db.queries. Atomicity lives in the queries: awards run in one
transaction with the user row locked, progress updates skip completed
trackers, and user_lock() takes a per-user advisory lock.

While user_lock() is held, every query issued from this module runs on
the connection that holds the lock.
"""

from contextlib import asynccontextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import AsyncIterator, Callable, List, Optional
import logging

import pydantic
from psycopg import AsyncConnection

from src.db import queries
from src.exceptions import ValidationError
from src.gamification.catalog import AchievementCatalog
from src.gamification.progress_store import ProgressStore, ProgressUpdate, progress_fields
from src.models.achievement import Achievement, UserAchievementProgress, UserAchievements
from src.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)

# Connection holding the current task's user lock, None outside user_lock()
_lock_connection: ContextVar[Optional[AsyncConnection]] = ContextVar(
    "achievement_lock_connection", default=None
)


def _to_achievement(row: dict) -> Achievement:
    try:
        return Achievement.model_validate(row)
    except pydantic.ValidationError as e:
        raise ValidationError(
            f"Malformed achievement definition '{row.get('id')}'",
            field="achievement",
            value=row.get('id'),
            operation="load_achievement",
            cause=e
        )


class PostgresAchievementCatalog(AchievementCatalog):
    """Catalog stored in the achievements table"""

    async def list_by_action(self, action: str) -> List[Achievement]:
        rows = await queries.get_achievements_by_action(action, conn=_lock_connection.get())
        return [_to_achievement(row) for row in rows]

    async def list_all(self) -> List[Achievement]:
        rows = await queries.get_all_achievement_definitions(conn=_lock_connection.get())
        return [_to_achievement(row) for row in rows]

    async def get(self, achievement_id: str) -> Optional[Achievement]:
        row = await queries.get_achievement_definition(achievement_id, conn=_lock_connection.get())
        return _to_achievement(row) if row else None

    async def create(self, achievement: Achievement) -> None:
        await queries.upsert_achievement(achievement.model_dump(mode="json"), conn=_lock_connection.get())
        logger.debug(f"Upserted achievement {achievement.id}")


class PostgresProgressStore(ProgressStore):
    """Progress store backed by user_achievements and achievement_progress"""

    def __init__(self, clock: Callable[[], datetime] = now_utc):
        self._clock = clock

    @asynccontextmanager
    async def user_lock(self, user_id: str) -> AsyncIterator[None]:
        async with queries.user_advisory_lock(user_id) as conn:
            token = _lock_connection.set(conn)
            try:
                yield
            finally:
                _lock_connection.reset(token)

    async def get(self, user_id: str) -> Optional[UserAchievements]:
        record = await queries.get_user_achievement_record(user_id, conn=_lock_connection.get())
        if record is None:
            return None

        return UserAchievements(
            user_id=record['user_id'],
            earned_achievements=record['earned_achievements'],
            total_points=record['total_points'],
            progress_trackers={
                achievement_id: UserAchievementProgress(**tracker)
                for achievement_id, tracker in record['progress_trackers'].items()
            },
        )

    async def initialize(self, user_id: str) -> UserAchievements:
        await queries.create_user_achievement_record(user_id, conn=_lock_connection.get())
        return await self.get(user_id)

    async def award(
        self,
        user_id: str,
        achievement_id: str,
        points: int,
        progress: Optional[ProgressUpdate] = None
    ) -> bool:
        return await queries.award_user_achievement(
            user_id,
            achievement_id,
            points,
            progress_fields(progress),
            self._clock(),
            conn=_lock_connection.get()
        )

    async def update_progress(
        self,
        user_id: str,
        achievement_id: str,
        progress: ProgressUpdate
    ) -> bool:
        updated = await queries.update_achievement_progress(
            user_id,
            achievement_id,
            progress_fields(progress),
            self._clock(),
            conn=_lock_connection.get()
        )
        if not updated:
            logger.debug(f"Tracker {achievement_id} for user {user_id} is completed, ignoring update")
        return updated
