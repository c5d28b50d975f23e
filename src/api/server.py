"""FastAPI application setup"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.responses import JSONResponse

from src.api.routes import router
from src.api.middleware import setup_cors, setup_error_handlers, setup_rate_limiting
from src.config import LOG_LEVEL, STORE_BACKEND, validate_config
from src.data.default_achievements import DEFAULT_ACHIEVEMENTS
from src.db.connection import db
from src.db.schema import ensure_schema
from src.gamification.catalog import seed_achievements
from src.services.container import init_container

# Configure logging
logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=getattr(logging, LOG_LEVEL)
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application"""
    # Startup
    logger.info("Starting API server...")
    validate_config()
    container = init_container(STORE_BACKEND)

    if STORE_BACKEND == "postgres":
        await db.init_pool()
        logger.info("Database pool initialized")
        await ensure_schema(db)
    else:
        # The in-memory catalog starts empty on every boot
        seeded = await seed_achievements(container.catalog, DEFAULT_ACHIEVEMENTS)
        logger.info(f"Seeded {seeded} default achievements into memory catalog")

    yield

    # Shutdown
    logger.info("Shutting down API server...")
    if db.is_initialized:
        await db.close_pool()
        logger.info("Database pool closed")


def create_api_application() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Calorie Tracker Achievements API",
        description="REST API for calorie tracker activity and achievements",
        version="1.0.0",
        lifespan=lifespan
    )

    # Setup middleware
    setup_cors(app)
    setup_rate_limiting(app)
    setup_error_handlers(app)

    # Include routes
    app.include_router(router)

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request, exc):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "detail": str(exc)}
        )

    logger.info("FastAPI application created")

    return app


app = create_api_application()
