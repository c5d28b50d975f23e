"""Unit tests for the PostgreSQL catalog, progress store and queries (database mocked)"""
import pytest
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch
from datetime import datetime, timezone

from src.db.connection import Database
from src.db.queries import activity as activity_queries
from src.db.queries import achievements as achievement_queries
from src.exceptions import RecordNotFoundError, ValidationError
from src.gamification.achievement_system import AchievementEvaluator
from src.gamification.postgres_store import PostgresAchievementCatalog, PostgresProgressStore
from src.models.achievement import AchievementType, UserAchievementProgress
from src.services.activity_store import PostgresActivityStore


NOW = datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)

NIGHT_OWL_ROW = {
    "id": "night_owl",
    "name": "Night Owl",
    "description": "Log a meal after 10 PM",
    "category": "Daily",
    "type": "single",
    "criteria": {"action": "late_night_log", "count": None, "conditions": {"timeAfter": "22:00"}},
    "reward": {"points": 15, "badge": "night_owl"},
    "hidden": True,
    "icon": "🦉",
}


def _fake_conn(cursor):
    """Connection mock whose cursor() yields cursor and which counts transactions"""
    conn = MagicMock()
    conn.execute = AsyncMock()
    conn.commit = AsyncMock()
    conn.transactions = 0

    @asynccontextmanager
    async def _cursor():
        yield cursor

    @asynccontextmanager
    async def _transaction():
        conn.transactions += 1
        yield

    conn.cursor = _cursor
    conn.transaction = _transaction
    return conn


class _FakePool:
    """Pool handing out one connection and counting checkouts"""

    def __init__(self, conn):
        self.conn = conn
        self.checkouts = 0

    @asynccontextmanager
    async def connection(self):
        self.checkouts += 1
        yield self.conn


def _fake_db(cursor):
    """Real Database wired to a fake pool, for patching over src.db.connection.db"""
    conn = _fake_conn(cursor)
    fake = Database("postgresql://test")
    fake._pool = _FakePool(conn)
    return fake, conn


# ============================================================================
# Catalog
# ============================================================================

@pytest.mark.asyncio
async def test_catalog_parses_rows():
    with patch('src.gamification.postgres_store.queries.get_achievements_by_action', AsyncMock(return_value=[NIGHT_OWL_ROW])):
        achievements = await PostgresAchievementCatalog().list_by_action("late_night_log")

    assert len(achievements) == 1
    assert achievements[0].id == "night_owl"
    assert achievements[0].points == 15
    assert achievements[0].criteria.conditions == {"timeAfter": "22:00"}


@pytest.mark.asyncio
async def test_catalog_malformed_row_raises_validation_error():
    bad_row = {**NIGHT_OWL_ROW, "type": "lottery"}

    with patch('src.gamification.postgres_store.queries.get_all_achievement_definitions', AsyncMock(return_value=[bad_row])):
        with pytest.raises(ValidationError):
            await PostgresAchievementCatalog().list_all()


@pytest.mark.asyncio
async def test_catalog_create_upserts_json_dump(catalog):
    achievement = await catalog.get("night_owl")
    upsert = AsyncMock()

    with patch('src.gamification.postgres_store.queries.upsert_achievement', upsert):
        await PostgresAchievementCatalog().create(achievement)

    payload = upsert.call_args.args[0]
    assert payload["id"] == "night_owl"
    assert payload["category"] == "Daily"
    assert payload["criteria"]["action"] == "late_night_log"


@pytest.mark.asyncio
async def test_catalog_get_missing():
    with patch('src.gamification.postgres_store.queries.get_achievement_definition', AsyncMock(return_value=None)):
        assert await PostgresAchievementCatalog().get("nope") is None


# ============================================================================
# Progress store
# ============================================================================

@pytest.mark.asyncio
async def test_progress_store_get_builds_aggregate():
    record = {
        "user_id": "u1",
        "earned_achievements": ["first_meal_log"],
        "total_points": 10,
        "progress_trackers": {
            "photo_logger": {
                "achievement_id": "photo_logger",
                "current_count": 4,
                "current_streak": 0,
                "highest_streak": 0,
                "last_updated": NOW,
                "completed": False,
            }
        },
    }

    with patch('src.gamification.postgres_store.queries.get_user_achievement_record', AsyncMock(return_value=record)):
        state = await PostgresProgressStore().get("u1")

    assert state.has_earned("first_meal_log")
    assert state.progress_trackers["photo_logger"].current_count == 4


@pytest.mark.asyncio
async def test_progress_store_get_missing_user():
    with patch('src.gamification.postgres_store.queries.get_user_achievement_record', AsyncMock(return_value=None)):
        assert await PostgresProgressStore().get("ghost") is None


@pytest.mark.asyncio
async def test_progress_store_award_passes_final_progress():
    award = AsyncMock(return_value=True)
    progress = UserAchievementProgress(achievement_id="photo_logger", current_count=50, completed=True)

    with patch('src.gamification.postgres_store.queries.award_user_achievement', award):
        assert await PostgresProgressStore(clock=lambda: NOW).award("u1", "photo_logger", 100, progress) is True

    user_id, achievement_id, points, fields, awarded_at = award.call_args.args
    assert (user_id, achievement_id, points, awarded_at) == ("u1", "photo_logger", 100, NOW)
    assert fields["current_count"] == 50
    assert "completed" not in fields


@pytest.mark.asyncio
async def test_progress_store_update_strips_protected_fields():
    update = AsyncMock(return_value=False)

    with patch('src.gamification.postgres_store.queries.update_achievement_progress', update):
        result = await PostgresProgressStore(clock=lambda: NOW).update_progress(
            "u1", "week_streak", {"current_streak": 3, "completed": True}
        )

    assert result is False
    assert update.call_args.args[2] == {"current_streak": 3}


@pytest.mark.asyncio
async def test_progress_store_user_lock_uses_advisory_lock():
    entered = []

    @asynccontextmanager
    async def fake_lock(user_id):
        entered.append(user_id)
        yield

    with patch('src.gamification.postgres_store.queries.user_advisory_lock', fake_lock):
        async with PostgresProgressStore().user_lock("u1"):
            pass

    assert entered == ["u1"]


@pytest.mark.asyncio
async def test_evaluation_runs_on_lock_connection(clock, achievement_factory):
    lock_conn = object()

    @asynccontextmanager
    async def fake_lock(user_id):
        yield lock_conn

    rows = [
        achievement_factory("first_bite").model_dump(mode="json"),
        achievement_factory("five_meals", type=AchievementType.CUMULATIVE, count=5).model_dump(mode="json"),
    ]
    record = {"user_id": "u1", "earned_achievements": [], "total_points": 0, "progress_trackers": {}}
    get_record = AsyncMock(return_value=record)
    by_action = AsyncMock(return_value=rows)
    award = AsyncMock(return_value=True)
    update = AsyncMock(return_value=True)

    with patch('src.gamification.postgres_store.queries.user_advisory_lock', fake_lock), \
         patch('src.gamification.postgres_store.queries.get_user_achievement_record', get_record), \
         patch('src.gamification.postgres_store.queries.get_achievements_by_action', by_action), \
         patch('src.gamification.postgres_store.queries.award_user_achievement', award), \
         patch('src.gamification.postgres_store.queries.update_achievement_progress', update):
        evaluator = AchievementEvaluator(
            PostgresAchievementCatalog(), PostgresProgressStore(clock=clock), clock=clock
        )
        awarded = await evaluator.check_achievements("u1", "meal_log")

        assert [a.id for a in awarded] == ["first_bite"]
        for query in (get_record, by_action, award, update):
            assert query.await_args.kwargs["conn"] is lock_conn

        # Outside the lock the store goes back to the pool
        await PostgresProgressStore().get("u1")
        assert get_record.await_args.kwargs["conn"] is None


# ============================================================================
# Queries
# ============================================================================

@pytest.mark.asyncio
async def test_award_query_skips_already_earned(mock_db_cursor):
    mock_db_cursor.fetchone = AsyncMock(return_value={"earned_achievements": ["night_owl"]})
    fake_db, _ = _fake_db(mock_db_cursor)

    with patch.object(achievement_queries, "db", fake_db):
        awarded = await achievement_queries.award_user_achievement("u1", "night_owl", 15, {}, NOW)

    assert awarded is False
    assert mock_db_cursor.execute.await_count == 1


@pytest.mark.asyncio
async def test_award_query_increments_points(mock_db_cursor):
    mock_db_cursor.fetchone = AsyncMock(return_value={"earned_achievements": []})
    fake_db, _ = _fake_db(mock_db_cursor)

    with patch.object(achievement_queries, "db", fake_db):
        awarded = await achievement_queries.award_user_achievement("u1", "photo_logger", 100, {"current_count": 50}, NOW)

    assert awarded is True
    update_sql, update_params = mock_db_cursor.execute.await_args_list[1].args
    assert "total_points = total_points + %s" in update_sql
    assert update_params == ("photo_logger", 100, "u1")
    insert_params = mock_db_cursor.execute.await_args_list[2].args[1]
    assert insert_params == ("u1", "photo_logger", 50, 0, 0, NOW)


@pytest.mark.asyncio
async def test_award_query_missing_user(mock_db_cursor):
    fake_db, _ = _fake_db(mock_db_cursor)

    with patch.object(achievement_queries, "db", fake_db):
        with pytest.raises(RecordNotFoundError):
            await achievement_queries.award_user_achievement("ghost", "a", 1, {}, NOW)


@pytest.mark.asyncio
async def test_update_progress_query_reports_completed(mock_db_cursor):
    fake_db, conn = _fake_db(mock_db_cursor)

    with patch.object(achievement_queries, "db", fake_db):
        updated = await achievement_queries.update_achievement_progress(
            "u1", "week_streak", {"current_streak": 2, "highest_streak": 2}, NOW
        )

    assert updated is False
    params = mock_db_cursor.execute.await_args.args[1]
    assert params == ("u1", "week_streak", 2, 2, NOW)
    assert conn.transactions == 1
    conn.commit.assert_not_awaited()


@pytest.mark.asyncio
async def test_advisory_lock_holds_one_connection(mock_db_cursor):
    mock_db_cursor.fetchone = AsyncMock(return_value={"earned_achievements": []})
    fake_db, conn = _fake_db(mock_db_cursor)

    with patch.object(achievement_queries, "db", fake_db):
        async with achievement_queries.user_advisory_lock("u1") as locked:
            assert locked is conn
            await achievement_queries.update_achievement_progress(
                "u1", "photo_logger", {"current_count": 1}, NOW, conn=locked
            )
            await achievement_queries.award_user_achievement("u1", "first_meal_log", 10, {}, NOW, conn=locked)

    assert fake_db._pool.checkouts == 1
    statements = [c.args[0] for c in conn.execute.await_args_list]
    assert statements == [
        "SELECT pg_advisory_lock(%s, hashtext(%s))",
        "SELECT pg_advisory_unlock(%s, hashtext(%s))",
    ]
    assert conn.execute.await_args.args[1] == (achievement_queries.ACHIEVEMENT_LOCK_NAMESPACE, "u1")


@pytest.mark.asyncio
async def test_advisory_lock_released_when_block_fails(mock_db_cursor):
    fake_db, conn = _fake_db(mock_db_cursor)

    with patch.object(achievement_queries, "db", fake_db):
        with pytest.raises(RuntimeError):
            async with achievement_queries.user_advisory_lock("u1"):
                raise RuntimeError("evaluation failed")

    assert "pg_advisory_unlock" in conn.execute.await_args.args[0]


@pytest.mark.asyncio
async def test_query_on_given_connection_skips_pool(mock_db_cursor):
    fake_db, _ = _fake_db(mock_db_cursor)
    lock_conn = _fake_conn(mock_db_cursor)
    mock_db_cursor.fetchone = AsyncMock(return_value={"earned_achievements": []})

    with patch.object(achievement_queries, "db", fake_db):
        awarded = await achievement_queries.award_user_achievement("u1", "a", 5, {}, NOW, conn=lock_conn)

    assert awarded is True
    assert fake_db._pool.checkouts == 0
    assert lock_conn.transactions == 1


@pytest.mark.asyncio
async def test_update_user_activity_rejects_unknown_columns():
    with pytest.raises(ValueError):
        await activity_queries.update_user_activity("u1", {"steps": 1}, {}, NOW)


@pytest.mark.asyncio
async def test_update_user_activity_missing_row(mock_db_cursor):
    fake_db, _ = _fake_db(mock_db_cursor)

    with patch.object(activity_queries, "db", fake_db):
        with pytest.raises(RecordNotFoundError):
            await activity_queries.update_user_activity("ghost", {"total_meals_logged": 1}, {}, NOW)

    params = mock_db_cursor.execute.await_args.args[1]
    assert params == (1, NOW, "ghost")


@pytest.mark.asyncio
async def test_postgres_activity_store_update():
    row = {
        "user_id": "u1",
        "last_meal_timestamp": NOW,
        "daily_meal_count": 2,
        "total_meals_logged": 9,
        "total_photos_logged": 3,
        "custom_recipes_created": 0,
        "weight_entries_count": 0,
        "calorie_goals_met_count": 1,
        "last_updated": NOW,
    }
    update = AsyncMock(return_value=row)

    with patch('src.services.activity_store.queries.update_user_activity', update):
        activity = await PostgresActivityStore(clock=lambda: NOW).update("u1", increments={"total_meals_logged": 1})

    assert activity.total_meals_logged == 9
    update.assert_awaited_once_with("u1", {"total_meals_logged": 1}, {}, NOW)
