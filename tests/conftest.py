"""Global test fixtures and utilities for calorie tracker tests"""
import pytest
from unittest.mock import AsyncMock
from datetime import datetime, timedelta, timezone

from src.data.default_achievements import DEFAULT_ACHIEVEMENTS
from src.gamification.achievement_system import AchievementEvaluator
from src.gamification.catalog import InMemoryAchievementCatalog
from src.gamification.events import AchievementEventBus
from src.gamification.progress_store import InMemoryProgressStore
from src.gamification.triggers import AchievementTriggers
from src.models.achievement import (
    Achievement,
    AchievementCategory,
    AchievementCriteria,
    AchievementReward,
    AchievementType,
)
from src.services.activity_store import InMemoryActivityStore
from src.services.user_tracking_service import UserTrackingService


class FakeClock:
    """Settable clock injected wherever now_utc would be used"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, value: datetime) -> datetime:
        self.now = value
        return self.now


def make_achievement(
    achievement_id: str,
    type: AchievementType = AchievementType.SINGLE,
    action: str = "meal_log",
    count=None,
    conditions=None,
    points: int = 10,
    category: AchievementCategory = AchievementCategory.DAILY,
    hidden: bool = False,
) -> Achievement:
    """Build an achievement definition with sensible defaults"""
    return Achievement(
        id=achievement_id,
        name=achievement_id.replace("_", " ").title(),
        description=f"Description of {achievement_id}",
        category=category,
        type=type,
        criteria=AchievementCriteria(action=action, count=count, conditions=conditions),
        reward=AchievementReward(points=points),
        hidden=hidden,
    )


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def mock_db_cursor():
    """Mock database cursor with standard query results"""
    cursor = AsyncMock()
    cursor.fetchone = AsyncMock(return_value=None)
    cursor.fetchall = AsyncMock(return_value=[])
    cursor.execute = AsyncMock()
    cursor.rowcount = 0
    return cursor


# ============================================================================
# User & Clock Fixtures
# ============================================================================

@pytest.fixture
def test_user_id():
    """Standard test user ID"""
    return "user-123"


@pytest.fixture
def clock():
    """Clock fixed at 2024-03-15 12:00 UTC"""
    return FakeClock(datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc))


# ============================================================================
# Achievement Engine Fixtures
# ============================================================================

@pytest.fixture
def catalog():
    """In-memory catalog holding the default achievements"""
    return InMemoryAchievementCatalog(DEFAULT_ACHIEVEMENTS)


@pytest.fixture
def progress_store(clock):
    return InMemoryProgressStore(clock=clock)


@pytest.fixture
def evaluator(catalog, progress_store, clock):
    return AchievementEvaluator(catalog, progress_store, clock=clock)


@pytest.fixture
async def initialized_user(progress_store, test_user_id):
    """User with a zero-value achievement record"""
    await progress_store.initialize(test_user_id)
    return test_user_id


@pytest.fixture
def event_bus(evaluator):
    bus = AchievementEventBus()
    bus.subscribe(evaluator.handle_event)
    return bus


@pytest.fixture
def triggers(event_bus):
    return AchievementTriggers(event_bus)


@pytest.fixture
def activity_store(clock):
    return InMemoryActivityStore(clock=clock)


@pytest.fixture
def tracking_service(activity_store, progress_store, triggers):
    return UserTrackingService(activity_store, progress_store, triggers)


@pytest.fixture
def achievement_factory():
    """Factory for ad-hoc achievement definitions"""
    return make_achievement
