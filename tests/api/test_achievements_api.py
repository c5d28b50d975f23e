"""Tests for the achievements REST API (in-memory backend)"""
import asyncio
import pytest
from fastapi.testclient import TestClient

from src.api.middleware import limiter
from src.api.server import create_api_application
from src.data.default_achievements import DEFAULT_ACHIEVEMENTS
from src.gamification.catalog import seed_achievements
from src.services.container import init_container, reset_container


CLIENT_KEY = "test_key_123"
ADMIN_KEY = "admin_key_456"
HEADERS = {"Authorization": f"Bearer {CLIENT_KEY}"}
ADMIN_HEADERS = {"Authorization": f"Bearer {ADMIN_KEY}"}


@pytest.fixture
def services(clock):
    container = init_container("memory", clock=clock)
    asyncio.run(seed_achievements(container.catalog, DEFAULT_ACHIEVEMENTS))
    yield container
    reset_container()


@pytest.fixture
def client(services, monkeypatch):
    monkeypatch.setenv("API_KEYS", CLIENT_KEY)
    monkeypatch.setenv("ADMIN_API_KEYS", ADMIN_KEY)
    monkeypatch.setattr(limiter, "enabled", False)
    return TestClient(create_api_application())


def _create_user(client, user_id="api_user"):
    response = client.post(f"/api/v1/users/{user_id}/achievements", headers=HEADERS)
    assert response.status_code == 201
    return response.json()


def test_health_check(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["backend"] == "memory"
    assert data["database"] == "not_used"


def test_requires_valid_api_key(client):
    response = client.get("/api/v1/users/api_user/achievements", headers={"Authorization": "Bearer wrong"})

    assert response.status_code == 401


def test_missing_api_keys_configuration(client, monkeypatch):
    monkeypatch.delenv("API_KEYS")

    response = client.get("/api/v1/users/api_user/achievements", headers=HEADERS)

    assert response.status_code == 503


def test_initialize_user_returns_locked_catalog(client):
    data = _create_user(client)

    assert data["user_id"] == "api_user"
    assert data["total_earned"] == 0
    assert data["total_achievements"] == 5
    names = {a["id"]: a["name"] for a in data["locked"]}
    assert names["night_owl"] == "???"


def test_get_achievements_unknown_user(client):
    response = client.get("/api/v1/users/ghost/achievements", headers=HEADERS)

    assert response.status_code == 404


def test_meal_unlocks_first_meal_log(client):
    _create_user(client)

    response = client.post(
        "/api/v1/users/api_user/meals",
        json={"calories": 520, "has_photo": True, "timestamp": "2024-03-15T12:30:00Z"},
        headers=HEADERS
    )

    assert response.status_code == 200
    unlocked = response.json()["achievements_unlocked"]
    assert [a["id"] for a in unlocked] == ["first_meal_log"]
    assert unlocked[0]["points"] == 10
    assert "ACHIEVEMENT UNLOCKED" in unlocked[0]["message"]

    summary = client.get("/api/v1/users/api_user/achievements", headers=HEADERS).json()
    assert summary["total_points"] == 10
    assert summary["earned"][0]["id"] == "first_meal_log"

    activity = client.get("/api/v1/users/api_user/activity", headers=HEADERS).json()
    assert activity["total_meals_logged"] == 1
    assert activity["total_photos_logged"] == 1


def test_second_meal_unlocks_nothing(client):
    _create_user(client)
    body = {"calories": 300, "timestamp": "2024-03-15T12:30:00Z"}

    client.post("/api/v1/users/api_user/meals", json=body, headers=HEADERS)
    response = client.post("/api/v1/users/api_user/meals", json=body, headers=HEADERS)

    assert response.json()["achievements_unlocked"] == []


def test_meal_for_unknown_user_is_404(client):
    response = client.post("/api/v1/users/ghost/meals", json={"calories": 300}, headers=HEADERS)

    assert response.status_code == 404
    assert response.json()["error"] == "RecordNotFoundError"


def test_meal_rejects_negative_calories(client):
    _create_user(client)

    response = client.post("/api/v1/users/api_user/meals", json={"calories": -1}, headers=HEADERS)

    assert response.status_code == 422


def test_calorie_goal_and_daily_reset(client, services):
    _create_user(client)

    goal = client.post(
        "/api/v1/users/api_user/calorie-goal",
        json={"target_calories": 2000, "actual_calories": 1900, "day": "2024-03-15"},
        headers=HEADERS
    )
    reset = client.post("/api/v1/users/api_user/daily-reset", json={"day": "2024-03-15"}, headers=HEADERS)

    assert goal.status_code == 200
    assert reset.status_code == 200
    activity = client.get("/api/v1/users/api_user/activity", headers=HEADERS).json()
    assert activity["calorie_goals_met_count"] == 1
    assert activity["daily_meal_count"] == 0


def test_daily_reset_day_does_not_drive_streak(client, services, clock):
    """Streak days come from the server clock, whatever day the client sends"""
    _create_user(client)

    for day in ("2024-03-14", "2024-03-15"):
        response = client.post("/api/v1/users/api_user/daily-reset", json={"day": day}, headers=HEADERS)
        assert response.status_code == 200

    state = asyncio.run(services.progress_store.get("api_user"))
    assert state.progress_trackers["week_streak"].current_streak == 1

    clock.advance(days=1)
    client.post("/api/v1/users/api_user/daily-reset", json={"day": "2024-03-14"}, headers=HEADERS)

    state = asyncio.run(services.progress_store.get("api_user"))
    assert state.progress_trackers["week_streak"].current_streak == 2


def test_weight_and_recipe_counters(client):
    _create_user(client)

    weight = client.post("/api/v1/users/api_user/weight", json={"weight_kg": 70.2}, headers=HEADERS)
    recipe = client.post("/api/v1/users/api_user/recipes", headers=HEADERS)

    assert weight.json()["weight_entries_count"] == 1
    assert recipe.json()["custom_recipes_created"] == 1


def test_catalog_admin_endpoints(client):
    achievement = {
        "id": "hydration_hero",
        "name": "Hydration Hero",
        "description": "Log ten meals",
        "category": "Habit",
        "type": "cumulative",
        "criteria": {"action": "meal_log", "count": 10},
        "reward": {"points": 20},
    }

    forbidden = client.post("/api/v1/achievements", json=achievement, headers=HEADERS)
    created = client.post("/api/v1/achievements", json=achievement, headers=ADMIN_HEADERS)
    listed = client.get("/api/v1/achievements", headers=ADMIN_HEADERS)

    assert forbidden.status_code == 401
    assert created.status_code == 201
    ids = [a["id"] for a in listed.json()]
    assert ids[-1] == "hydration_hero"
    night_owl = next(a for a in listed.json() if a["id"] == "night_owl")
    assert night_owl["name"] == "Night Owl"
