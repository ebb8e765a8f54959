"""PostgreSQL connection pool for invoice records and rule sets"""

import asyncio
from contextlib import asynccontextmanager
from typing import Optional

import asyncpg

from ..config import settings
from ..utils.logging import logger


class DatabaseManager:
    """
    asyncpg pool shared by the repositories.

    The pool is created on first use unless the app connects at startup;
    concurrent first requests wait for a single pool.
    """

    def __init__(self):
        self.pool: Optional[asyncpg.Pool] = None
        self._connect_lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self.pool is not None

    async def connect(self):
        async with self._connect_lock:
            if self.pool:
                return
            target = {"host": settings.POSTGRES_HOST, "database": settings.POSTGRES_DB}
            try:
                self.pool = await asyncpg.create_pool(
                    host=settings.POSTGRES_HOST,
                    port=settings.POSTGRES_PORT,
                    user=settings.POSTGRES_USER,
                    password=settings.POSTGRES_PASSWORD,
                    database=settings.POSTGRES_DB,
                    min_size=settings.POSTGRES_POOL_MIN_SIZE,
                    max_size=settings.POSTGRES_POOL_MAX_SIZE,
                    server_settings={"application_name": "invoice_compliance"}
                )
            except Exception as e:
                logger.log_error("postgres_connection_failed", {**target, "error": str(e)})
                raise
            logger.log_step("postgres_connection_pool_created", {
                **target,
                "max_size": settings.POSTGRES_POOL_MAX_SIZE
            })

    async def close(self):
        pool, self.pool = self.pool, None
        if pool:
            await pool.close()
            logger.log_step("postgres_connection_pool_closed")

    @asynccontextmanager
    async def get_connection(self):
        """Pooled connection, connecting on first use"""
        if not self.pool:
            await self.connect()

        async with self.pool.acquire() as connection:
            yield connection


# Global database manager instance
db_manager = DatabaseManager()
