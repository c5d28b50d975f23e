"""
User Progress Store

Per-user aggregate of earned achievements, progress trackers and points.

Concurrency contract:
- user_lock(user_id) serializes evaluations for one user; different users
  never contend.
- award() adds points atomically and only once per achievement, so
  overlapping awards cannot lose points or double-count them.
- update_progress() never marks a tracker completed and never touches a
  tracker that is already completed.
"""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Callable, Dict, Optional, Union
import asyncio
import logging

from src.exceptions import RecordNotFoundError
from src.models.achievement import UserAchievementProgress, UserAchievements
from src.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)

ProgressUpdate = Union[UserAchievementProgress, Dict[str, Any]]

# Fields callers may not set through update_progress
_PROTECTED_FIELDS = {"achievement_id", "completed", "last_updated"}


def progress_fields(progress: Optional[ProgressUpdate]) -> Dict[str, Any]:
    """Mergeable tracker fields from a model or partial dict"""
    if progress is None:
        return {}
    if isinstance(progress, UserAchievementProgress):
        data = progress.model_dump()
    else:
        data = dict(progress)
    return {k: v for k, v in data.items() if k not in _PROTECTED_FIELDS}


class ProgressStore(ABC):
    """Persistence contract consumed by the achievement evaluator"""

    @abstractmethod
    async def get(self, user_id: str) -> Optional[UserAchievements]:
        """Snapshot of the user's aggregate, or None if never initialized"""

    @abstractmethod
    async def initialize(self, user_id: str) -> UserAchievements:
        """Create the zero-value aggregate (existing aggregates are returned unchanged)"""

    @abstractmethod
    async def award(
        self,
        user_id: str,
        achievement_id: str,
        points: int,
        progress: Optional[ProgressUpdate] = None
    ) -> bool:
        """
        Mark an achievement earned

        Adds achievement_id to earned_achievements, adds points to
        total_points and writes the tracker as progress + completed=True.
        Returns False (and changes nothing) if it was already earned.
        """

    @abstractmethod
    async def update_progress(
        self,
        user_id: str,
        achievement_id: str,
        progress: ProgressUpdate
    ) -> bool:
        """
        Merge progress fields into the tracker and stamp last_updated

        Returns False (and changes nothing) if the tracker is completed.
        """

    @abstractmethod
    def user_lock(self, user_id: str):
        """Async context manager held for the duration of one evaluation"""


class InMemoryProgressStore(ProgressStore):
    """Progress store kept in process memory (tests, single-process deployments)"""

    def __init__(self, clock: Callable[[], datetime] = now_utc):
        self._clock = clock
        self._users: Dict[str, UserAchievements] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        # Holders plus waiters per user; the lock is dropped when this hits zero
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def user_lock(self, user_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(user_id, asyncio.Lock())
        self._lock_users[user_id] = self._lock_users.get(user_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[user_id] -= 1
            if not self._lock_users[user_id]:
                del self._lock_users[user_id]
                del self._locks[user_id]

    async def get(self, user_id: str) -> Optional[UserAchievements]:
        aggregate = self._users.get(user_id)
        return aggregate.model_copy(deep=True) if aggregate else None

    async def initialize(self, user_id: str) -> UserAchievements:
        if user_id not in self._users:
            self._users[user_id] = UserAchievements(user_id=user_id)
            logger.info(f"Initialized achievements for user {user_id}")
        return self._users[user_id].model_copy(deep=True)

    def _require(self, user_id: str, operation: str) -> UserAchievements:
        aggregate = self._users.get(user_id)
        if aggregate is None:
            raise RecordNotFoundError(
                f"No achievement record for user {user_id}",
                record_type="UserAchievements",
                record_id=user_id,
                user_id=user_id,
                operation=operation
            )
        return aggregate

    async def award(
        self,
        user_id: str,
        achievement_id: str,
        points: int,
        progress: Optional[ProgressUpdate] = None
    ) -> bool:
        aggregate = self._require(user_id, "award_achievement")

        if achievement_id in aggregate.earned_achievements:
            logger.debug(f"Achievement {achievement_id} already earned by user {user_id}")
            return False

        aggregate.earned_achievements.append(achievement_id)
        aggregate.total_points += points
        aggregate.progress_trackers[achievement_id] = UserAchievementProgress(
            **progress_fields(progress),
            achievement_id=achievement_id,
            completed=True,
            last_updated=self._clock(),
        )
        return True

    async def update_progress(
        self,
        user_id: str,
        achievement_id: str,
        progress: ProgressUpdate
    ) -> bool:
        aggregate = self._require(user_id, "update_achievement_progress")

        current = aggregate.progress_for(achievement_id)
        if current.completed:
            logger.debug(f"Tracker {achievement_id} for user {user_id} is completed, ignoring update")
            return False

        aggregate.progress_trackers[achievement_id] = current.model_copy(update={
            **progress_fields(progress),
            "last_updated": self._clock(),
        })
        return True
