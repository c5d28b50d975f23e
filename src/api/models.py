"""Pydantic models for API request/response validation"""
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field
from datetime import date, datetime


class MealLogRequest(BaseModel):
    """Request to record a logged meal"""
    calories: float = Field(..., ge=0, description="Estimated calories of the meal")
    has_photo: bool = Field(default=False, description="Whether the meal was logged from a photo")
    timestamp: Optional[datetime] = Field(
        default=None,
        description="When the meal was logged (defaults to now)"
    )


class CalorieGoalRequest(BaseModel):
    """Request to record a day's calorie result"""
    target_calories: float = Field(..., gt=0, description="Daily calorie target")
    actual_calories: float = Field(..., ge=0, description="Calories consumed that day")
    day: Optional[date] = Field(
        default=None,
        description="Day being assessed, recorded in the event context only; streaks follow server time (defaults to today)"
    )


class DailyResetRequest(BaseModel):
    """Request to close out a user's day"""
    day: Optional[date] = Field(
        default=None,
        description="Day being closed, recorded in the event context only; streaks follow server time (defaults to today)"
    )


class WeightEntryRequest(BaseModel):
    """Request to record a weight entry"""
    weight_kg: float = Field(..., gt=0, description="Body weight in kilograms")


class AchievementSummary(BaseModel):
    """Achievement as shown to a user (hidden ones obscured until earned)"""
    id: str
    name: str
    description: str
    icon: Optional[str] = None
    category: str
    type: str
    points: int
    badge: Optional[str] = None
    hidden: bool
    earned: bool
    earned_at: Optional[datetime] = None
    progress: Dict[str, Any]


class UserAchievementsResponse(BaseModel):
    """Response with a user's achievement summary"""
    user_id: str
    earned: List[AchievementSummary]
    locked: List[AchievementSummary] = Field(default_factory=list)
    total_earned: int
    total_achievements: int
    total_points: int


class AwardedAchievement(BaseModel):
    """Achievement unlocked by a tracked activity"""
    id: str
    name: str
    description: str
    points: int
    badge: Optional[str] = None
    icon: Optional[str] = None
    message: str


class TrackingResponse(BaseModel):
    """Response for tracking endpoints"""
    user_id: str
    achievements_unlocked: List[AwardedAchievement]
    timestamp: datetime


class ActivityResponse(BaseModel):
    """Response with activity counters"""
    user_id: str
    last_meal_timestamp: Optional[datetime] = None
    daily_meal_count: int
    total_meals_logged: int
    total_photos_logged: int
    custom_recipes_created: int
    weight_entries_count: int
    calorie_goals_met_count: int
    last_updated: datetime


class HealthCheckResponse(BaseModel):
    """Health check response"""
    status: str
    backend: str
    database: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Error response"""
    error: str
    message: str
    user_message: Optional[str] = None
    request_id: Optional[str] = None
    timestamp: Optional[datetime] = None
