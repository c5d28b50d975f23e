"""
Service Layer Package

This package contains business logic services that sit between the
presentation layer (API routes, scripts) and storage.

Core Services:
- UserTrackingService: Meal, calorie goal, weight and recipe tracking; fires achievement triggers
- ActivityStore: Per-user activity counters (in-memory or PostgreSQL)
- ServiceContainer: Lazy wiring of catalog, stores, evaluator, event bus and services
"""

from src.services.container import ServiceContainer, get_container, init_container, reset_container
from src.services.user_tracking_service import UserTrackingService

__all__ = [
    "ServiceContainer",
    "get_container",
    "init_container",
    "reset_container",
    "UserTrackingService",
]
