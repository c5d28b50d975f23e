"""
Activity Store - per-user activity counters

In-memory and PostgreSQL implementations of the same small contract.
Counter updates are single atomic operations (one statement in Postgres,
no await points in memory).
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable, Dict, Optional
import logging

from src.db import queries
from src.exceptions import RecordNotFoundError
from src.models.activity import ACTIVITY_COUNTERS, UserActivityLog
from src.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)


class ActivityStore(ABC):
    """Storage contract for UserActivityLog"""

    @abstractmethod
    async def get(self, user_id: str) -> Optional[UserActivityLog]:
        """Activity log, or None if tracking was never initialized"""

    @abstractmethod
    async def initialize(self, user_id: str) -> UserActivityLog:
        """Create the zero-value log (existing logs are returned unchanged)"""

    @abstractmethod
    async def update(
        self,
        user_id: str,
        increments: Optional[Dict[str, int]] = None,
        values: Optional[Dict[str, Any]] = None
    ) -> UserActivityLog:
        """Add increments to counters, overwrite values, stamp last_updated"""


class InMemoryActivityStore(ActivityStore):
    """Activity logs kept in process memory"""

    def __init__(self, clock: Callable[[], datetime] = now_utc):
        self._clock = clock
        self._logs: Dict[str, UserActivityLog] = {}

    async def get(self, user_id: str) -> Optional[UserActivityLog]:
        log = self._logs.get(user_id)
        return log.model_copy() if log else None

    async def initialize(self, user_id: str) -> UserActivityLog:
        if user_id not in self._logs:
            self._logs[user_id] = UserActivityLog(user_id=user_id, last_updated=self._clock())
        return self._logs[user_id].model_copy()

    async def update(
        self,
        user_id: str,
        increments: Optional[Dict[str, int]] = None,
        values: Optional[Dict[str, Any]] = None
    ) -> UserActivityLog:
        log = self._logs.get(user_id)
        if log is None:
            raise RecordNotFoundError(
                f"No activity log for user {user_id}",
                record_type="UserActivityLog",
                record_id=user_id,
                user_id=user_id,
                operation="update_user_activity"
            )

        values = values or {}
        increments = increments or {}
        unknown = (set(increments) - ACTIVITY_COUNTERS) | (set(values) - ACTIVITY_COUNTERS - {"last_meal_timestamp"})
        if unknown:
            raise ValueError(f"Unknown activity columns: {sorted(unknown)}")

        changes: Dict[str, Any] = dict(values)
        for counter, amount in increments.items():
            changes[counter] = getattr(log, counter) + amount
        changes["last_updated"] = self._clock()

        self._logs[user_id] = log.model_copy(update=changes)
        return self._logs[user_id].model_copy()


class PostgresActivityStore(ActivityStore):
    """Activity logs stored in the user_activity table"""

    def __init__(self, clock: Callable[[], datetime] = now_utc):
        self._clock = clock

    async def get(self, user_id: str) -> Optional[UserActivityLog]:
        row = await queries.get_user_activity(user_id)
        return UserActivityLog(**row) if row else None

    async def initialize(self, user_id: str) -> UserActivityLog:
        await queries.create_user_activity(user_id, self._clock())
        return await self.get(user_id)

    async def update(
        self,
        user_id: str,
        increments: Optional[Dict[str, int]] = None,
        values: Optional[Dict[str, Any]] = None
    ) -> UserActivityLog:
        row = await queries.update_user_activity(
            user_id,
            increments or {},
            values or {},
            self._clock()
        )
        return UserActivityLog(**row)
