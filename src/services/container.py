"""
Service Container - Dependency Injection Container

Simple DI container for the achievement engine and the services around it.
Uses lazy loading to only instantiate components when first accessed.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional
import logging

from src.config import STORE_BACKEND
from src.utils.datetime_helpers import now_utc

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """
    Simple dependency injection container for services.

    Components are lazy-loaded on first access via properties.
    The storage backend ('memory' or 'postgres') and the clock are injected.
    """

    backend: str = STORE_BACKEND
    clock: Callable[[], datetime] = now_utc

    # Components (lazy-loaded via properties)
    _catalog: Optional[object] = field(default=None, init=False, repr=False)
    _progress_store: Optional[object] = field(default=None, init=False, repr=False)
    _activity_store: Optional[object] = field(default=None, init=False, repr=False)
    _evaluator: Optional[object] = field(default=None, init=False, repr=False)
    _event_bus: Optional[object] = field(default=None, init=False, repr=False)
    _triggers: Optional[object] = field(default=None, init=False, repr=False)
    _tracking_service: Optional[object] = field(default=None, init=False, repr=False)

    @property
    def catalog(self):
        """Get AchievementCatalog for the configured backend (lazy-loaded)"""
        if self._catalog is None:
            if self.backend == "postgres":
                from src.gamification.postgres_store import PostgresAchievementCatalog
                self._catalog = PostgresAchievementCatalog()
            else:
                from src.gamification.catalog import InMemoryAchievementCatalog
                self._catalog = InMemoryAchievementCatalog()
            logger.debug(f"{type(self._catalog).__name__} instantiated")
        return self._catalog

    @property
    def progress_store(self):
        """Get ProgressStore for the configured backend (lazy-loaded)"""
        if self._progress_store is None:
            if self.backend == "postgres":
                from src.gamification.postgres_store import PostgresProgressStore
                self._progress_store = PostgresProgressStore(clock=self.clock)
            else:
                from src.gamification.progress_store import InMemoryProgressStore
                self._progress_store = InMemoryProgressStore(clock=self.clock)
            logger.debug(f"{type(self._progress_store).__name__} instantiated")
        return self._progress_store

    @property
    def activity_store(self):
        """Get ActivityStore for the configured backend (lazy-loaded)"""
        if self._activity_store is None:
            from src.services.activity_store import InMemoryActivityStore, PostgresActivityStore
            if self.backend == "postgres":
                self._activity_store = PostgresActivityStore(clock=self.clock)
            else:
                self._activity_store = InMemoryActivityStore(clock=self.clock)
            logger.debug(f"{type(self._activity_store).__name__} instantiated")
        return self._activity_store

    @property
    def evaluator(self):
        """Get AchievementEvaluator (lazy-loaded)"""
        if self._evaluator is None:
            from src.gamification.achievement_system import AchievementEvaluator
            self._evaluator = AchievementEvaluator(self.catalog, self.progress_store, clock=self.clock)
            logger.debug("AchievementEvaluator instantiated")
        return self._evaluator

    @property
    def event_bus(self):
        """Get AchievementEventBus with the evaluator subscribed (lazy-loaded)"""
        if self._event_bus is None:
            from src.gamification.events import AchievementEventBus
            self._event_bus = AchievementEventBus()
            self._event_bus.subscribe(self.evaluator.handle_event)
            logger.debug("AchievementEventBus instantiated")
        return self._event_bus

    @property
    def triggers(self):
        """Get AchievementTriggers (lazy-loaded)"""
        if self._triggers is None:
            from src.gamification.triggers import AchievementTriggers
            self._triggers = AchievementTriggers(self.event_bus)
            logger.debug("AchievementTriggers instantiated")
        return self._triggers

    @property
    def tracking_service(self):
        """Get UserTrackingService (lazy-loaded)"""
        if self._tracking_service is None:
            from src.services.user_tracking_service import UserTrackingService
            self._tracking_service = UserTrackingService(
                self.activity_store,
                self.progress_store,
                self.triggers
            )
            logger.debug("UserTrackingService instantiated")
        return self._tracking_service


# Global container instance (initialized in main.py / server lifespan)
_container: Optional[ServiceContainer] = None


def get_container() -> ServiceContainer:
    """
    Get the global service container.

    Returns:
        ServiceContainer: The global container instance

    Raises:
        RuntimeError: If container not initialized (call init_container first)
    """
    if _container is None:
        raise RuntimeError(
            "Service container not initialized. "
            "Call init_container() at startup before using services."
        )
    return _container


def init_container(
    backend: str = STORE_BACKEND,
    clock: Callable[[], datetime] = now_utc
) -> ServiceContainer:
    """
    Initialize the global service container.

    Should be called once at startup, after the database pool is open
    when using the postgres backend.

    Args:
        backend: 'memory' or 'postgres'
        clock: Source of the current time for stores and the evaluator

    Returns:
        ServiceContainer: The initialized container
    """
    global _container

    _container = ServiceContainer(backend=backend, clock=clock)

    logger.info(f"Service container initialized (backend={backend})")
    return _container


def reset_container() -> None:
    """Drop the global container (tests, shutdown)"""
    global _container
    _container = None
