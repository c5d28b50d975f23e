"""Seed the default achievement catalog into Postgres"""
import asyncio
import sys
from pathlib import Path

# Add parent directory to path so we can import src modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

from src.data.default_achievements import DEFAULT_ACHIEVEMENTS
from src.db.connection import db
from src.db.schema import ensure_schema
from src.gamification.catalog import seed_achievements
from src.gamification.postgres_store import PostgresAchievementCatalog


async def main():
    """Create tables if missing and upsert every default achievement"""
    print("🌱 Seeding achievement catalog...\n")

    await db.init_pool()
    try:
        await ensure_schema(db)
        catalog = PostgresAchievementCatalog()
        seeded = await seed_achievements(catalog, DEFAULT_ACHIEVEMENTS)

        for achievement in DEFAULT_ACHIEVEMENTS:
            hidden = " (hidden)" if achievement.hidden else ""
            print(f"   {achievement.icon or '🏅'} {achievement.id}: {achievement.name}{hidden}")

        print(f"\n✅ Seeded {seeded} achievements")
    finally:
        await db.close_pool()


if __name__ == "__main__":
    asyncio.run(main())
