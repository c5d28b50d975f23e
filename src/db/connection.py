"""Database connection management"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool
from src.config import DATABASE_URL
from src.exceptions import wrap_external_exception

logger = logging.getLogger(__name__)


class Database:
    """Database connection pool manager"""

    def __init__(self, connection_string: str = DATABASE_URL):
        self.connection_string = connection_string
        self._pool: Optional[AsyncConnectionPool] = None

    @property
    def is_initialized(self) -> bool:
        return self._pool is not None

    async def init_pool(self) -> None:
        """Initialize connection pool"""
        logger.info("Initializing database connection pool")
        self._pool = AsyncConnectionPool(
            self.connection_string,
            min_size=2,
            max_size=10,
            open=False
        )
        await self._pool.open()

    async def close_pool(self) -> None:
        """Close connection pool"""
        if self._pool:
            logger.info("Closing database connection pool")
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def connection(self, operation: str = "database_operation") -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """
        Get database connection from pool

        Driver errors raised inside the block surface as ConnectionError /
        QueryError from src.exceptions.
        """
        if not self._pool:
            raise RuntimeError("Database pool not initialized")

        try:
            async with self._pool.connection() as conn:
                conn.row_factory = dict_row
                yield conn
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation=operation) from e

    @asynccontextmanager
    async def transaction(
        self,
        operation: str = "database_operation",
        conn: Optional[psycopg.AsyncConnection] = None
    ) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """
        Run a block in its own transaction

        Uses conn when given (e.g. the connection holding a user lock),
        otherwise borrows one from the pool. Commits on success, rolls
        back on error.
        """
        if conn is None:
            async with self.connection(operation) as pooled:
                async with pooled.transaction():
                    yield pooled
            return

        try:
            async with conn.transaction():
                yield conn
        except psycopg.Error as e:
            raise wrap_external_exception(e, operation=operation) from e


# Global database instance
db = Database()
