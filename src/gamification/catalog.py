"""
Achievement Catalog

Registry of achievement definitions. The evaluator only reads it
(list_by_action); definitions are written by the administrative seeding
path (create / seed_achievements).
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional
import logging

from src.models.achievement import Achievement

logger = logging.getLogger(__name__)


class AchievementCatalog(ABC):
    """Read/seed contract for achievement definitions"""

    @abstractmethod
    async def list_by_action(self, action: str) -> List[Achievement]:
        """Definitions whose criteria.action equals action, in catalog order"""

    @abstractmethod
    async def list_all(self) -> List[Achievement]:
        """Every definition, in catalog order"""

    @abstractmethod
    async def get(self, achievement_id: str) -> Optional[Achievement]:
        """Single definition by id"""

    @abstractmethod
    async def create(self, achievement: Achievement) -> None:
        """Insert or replace a definition (administrative)"""


class InMemoryAchievementCatalog(AchievementCatalog):
    """Catalog held in a dict; insertion order is catalog order"""

    def __init__(self, achievements: Optional[Iterable[Achievement]] = None):
        self._achievements: Dict[str, Achievement] = {}
        for achievement in achievements or ():
            self._achievements[achievement.id] = achievement

    async def list_by_action(self, action: str) -> List[Achievement]:
        return [a for a in self._achievements.values() if a.criteria.action == action]

    async def list_all(self) -> List[Achievement]:
        return list(self._achievements.values())

    async def get(self, achievement_id: str) -> Optional[Achievement]:
        return self._achievements.get(achievement_id)

    async def create(self, achievement: Achievement) -> None:
        # Replacing keeps the original position
        self._achievements[achievement.id] = achievement
        logger.debug(f"Stored achievement {achievement.id} in memory catalog")


async def seed_achievements(
    catalog: AchievementCatalog,
    achievements: Iterable[Achievement]
) -> int:
    """
    Write achievement definitions into the catalog

    Args:
        catalog: Target catalog
        achievements: Definitions to create (existing ids are replaced)

    Returns:
        Number of definitions written
    """
    logger.info("Starting achievement initialization...")

    created = 0
    for achievement in achievements:
        if achievement.type.value in ("cumulative", "streak") and achievement.criteria.count is None:
            logger.warning(
                f"Achievement {achievement.id} is {achievement.type.value} but has no criteria.count; "
                f"it will be awarded on its first event"
            )
        await catalog.create(achievement)
        created += 1
        logger.info(f"Created achievement: {achievement.name}")

    logger.info(f"Achievement initialization completed: {created} definitions")
    return created
