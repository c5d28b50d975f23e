"""API routes for the calorie tracker achievement engine"""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.api.models import (
    MealLogRequest, CalorieGoalRequest, DailyResetRequest, WeightEntryRequest,
    UserAchievementsResponse, AwardedAchievement, TrackingResponse,
    ActivityResponse, HealthCheckResponse, ErrorResponse
)
from src.api.auth import verify_api_key, verify_admin_api_key
from src.api.middleware import limiter
from src.db.connection import db
from src.exceptions import CalorieTrackerError
from src.gamification.achievement_system import (
    format_achievement_unlock_message,
    get_user_achievement_summary,
)
from src.models.achievement import Achievement, AchievementCategory
from src.services.container import ServiceContainer, get_container
from src.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)

router = APIRouter(
    responses={
        404: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    }
)


def get_services() -> ServiceContainer:
    """Dependency returning the global service container"""
    return get_container()


def _awarded(achievements: List[Achievement]) -> List[AwardedAchievement]:
    return [
        AwardedAchievement(
            id=a.id,
            name=a.name,
            description=a.description,
            points=a.points,
            badge=a.reward.badge if a.reward else None,
            icon=a.icon,
            message=format_achievement_unlock_message(a),
        )
        for a in achievements
    ]


def _tracking_response(user_id: str, achievements: List[Achievement]) -> TrackingResponse:
    return TrackingResponse(
        user_id=user_id,
        achievements_unlocked=_awarded(achievements),
        timestamp=now_utc()
    )


# ==========================================
# Catalog (admin)
# ==========================================

@router.get("/api/v1/achievements", response_model=List[Achievement])
@limiter.limit("30/minute")
async def list_catalog_endpoint(
    request: Request,
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_admin_api_key)
):
    """List every achievement definition, hidden ones included (Rate limit: 30/minute)"""
    return await services.catalog.list_all()


@router.post("/api/v1/achievements", response_model=Achievement, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def create_achievement_endpoint(
    request: Request,
    achievement: Achievement,
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_admin_api_key)
):
    """Create or replace an achievement definition (Rate limit: 30/minute)"""
    await services.catalog.create(achievement)
    logger.info(f"Achievement {achievement.id} written via API")
    return achievement


# ==========================================
# User achievements
# ==========================================

@router.post(
    "/api/v1/users/{user_id}/achievements",
    response_model=UserAchievementsResponse,
    status_code=status.HTTP_201_CREATED
)
@limiter.limit("20/minute")
async def initialize_user_endpoint(
    request: Request,
    user_id: str,
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """Initialize activity tracking and achievements for a user (Rate limit: 20/minute)"""
    await services.tracking_service.initialize_user(user_id)
    summary = await get_user_achievement_summary(services.catalog, services.progress_store, user_id)
    return UserAchievementsResponse(**summary)


@router.get("/api/v1/users/{user_id}/achievements", response_model=UserAchievementsResponse)
@limiter.limit("30/minute")
async def get_achievements_endpoint(
    request: Request,
    user_id: str,
    include_locked: bool = Query(default=True),
    category: Optional[AchievementCategory] = Query(default=None),
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """Get user achievements with progress (Rate limit: 30/minute)"""
    try:
        summary = await get_user_achievement_summary(
            services.catalog,
            services.progress_store,
            user_id,
            include_locked=include_locked,
            category=category
        )
        if summary is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"User {user_id} not found"
            )
        return UserAchievementsResponse(**summary)

    except (HTTPException, CalorieTrackerError):
        raise
    except Exception as e:
        logger.error(f"Error getting achievements: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )


# ==========================================
# Activity tracking
# ==========================================

@router.post("/api/v1/users/{user_id}/meals", response_model=TrackingResponse)
@limiter.limit("60/minute")
async def track_meal_endpoint(
    request: Request,
    user_id: str,
    body: MealLogRequest,
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """Record a logged meal and check meal achievements (Rate limit: 60/minute)"""
    awarded = await services.tracking_service.track_meal_logged(
        user_id,
        body.calories,
        body.has_photo,
        timestamp=body.timestamp
    )
    return _tracking_response(user_id, awarded)


@router.post("/api/v1/users/{user_id}/calorie-goal", response_model=TrackingResponse)
@limiter.limit("20/minute")
async def track_calorie_goal_endpoint(
    request: Request,
    user_id: str,
    body: CalorieGoalRequest,
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """Record a day's calorie result (Rate limit: 20/minute)"""
    awarded = await services.tracking_service.track_calorie_goal(
        user_id,
        body.target_calories,
        body.actual_calories,
        day=body.day
    )
    return _tracking_response(user_id, awarded)


@router.post("/api/v1/users/{user_id}/daily-reset", response_model=TrackingResponse)
@limiter.limit("20/minute")
async def daily_reset_endpoint(
    request: Request,
    user_id: str,
    body: DailyResetRequest,
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """Close out the user's day and check daily streaks (Rate limit: 20/minute)"""
    awarded = await services.tracking_service.process_daily_reset(user_id, day=body.day)
    return _tracking_response(user_id, awarded)


@router.post("/api/v1/users/{user_id}/weight", response_model=ActivityResponse)
@limiter.limit("20/minute")
async def track_weight_endpoint(
    request: Request,
    user_id: str,
    body: WeightEntryRequest,
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """Record a weight entry (Rate limit: 20/minute)"""
    activity = await services.tracking_service.track_weight_entry(user_id, body.weight_kg)
    return ActivityResponse(**activity.model_dump())


@router.post("/api/v1/users/{user_id}/recipes", response_model=ActivityResponse)
@limiter.limit("20/minute")
async def track_recipe_endpoint(
    request: Request,
    user_id: str,
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """Record a custom recipe (Rate limit: 20/minute)"""
    activity = await services.tracking_service.track_custom_recipe(user_id)
    return ActivityResponse(**activity.model_dump())


@router.get("/api/v1/users/{user_id}/activity", response_model=ActivityResponse)
@limiter.limit("30/minute")
async def get_activity_endpoint(
    request: Request,
    user_id: str,
    services: ServiceContainer = Depends(get_services),
    api_key: str = Depends(verify_api_key)
):
    """Get activity counters (Rate limit: 30/minute)"""
    activity = await services.tracking_service.get_activity(user_id)
    if activity is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"User {user_id} not found"
        )
    return ActivityResponse(**activity.model_dump())


# ==========================================
# Health
# ==========================================

@router.get("/api/health", response_model=HealthCheckResponse)
@limiter.limit("60/minute")
async def health_check(
    request: Request,
    services: ServiceContainer = Depends(get_services)
):
    """Health check endpoint (Rate limit: 60/minute for monitoring systems)"""
    if services.backend != "postgres":
        db_status = "not_used"
    else:
        try:
            async with db.connection("health_check") as conn:
                async with conn.cursor() as cur:
                    await cur.execute("SELECT 1")
                    await cur.fetchone()
            db_status = "connected"
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            db_status = "disconnected"

    return HealthCheckResponse(
        status="degraded" if db_status == "disconnected" else "healthy",
        backend=services.backend,
        database=db_status,
        timestamp=now_utc()
    )
