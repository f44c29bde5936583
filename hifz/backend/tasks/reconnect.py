import logging
from typing import Awaitable, Callable, Optional
import asyncpg
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from ..config.config import settings
from ..db.db_client import AsyncPostgresClient, init_connection

logger = logging.getLogger(__name__)

RECONNECT_JOB_ID = "reconnect_postgres"


async def create_postgres_pool(dsn: str) -> asyncpg.Pool:
    return await asyncpg.create_pool(
        dsn=dsn,
        min_size=settings.DB_POOL_MIN_SIZE,
        max_size=settings.DB_POOL_MAX_SIZE,
        init=init_connection,
    )


class PostgresConnector:
    """
    Owns the process-wide PostgreSQL pool.

    The first connection attempt happens at startup. When it fails, an interval job retries
    every DB_RETRY_DELAY_SECONDS without limit; after DB_MAX_RETRIES failed attempts the log
    level is raised to ERROR. The HTTP server keeps running meanwhile and store-dependent
    routes answer 503 until the pool exists.
    """

    def __init__(
        self,
        dsn: str,
        scheduler: AsyncIOScheduler,
        on_connect: Optional[Callable[[asyncpg.Pool], Awaitable[None]]] = None,
        pool_factory: Callable[[str], Awaitable[asyncpg.Pool]] = create_postgres_pool,
    ):
        self.dsn = dsn
        self.scheduler = scheduler
        self.on_connect = on_connect
        self.pool_factory = pool_factory
        self.pool: Optional[asyncpg.Pool] = None
        self.failed_attempts = 0

    @property
    def is_connected(self) -> bool:
        return self.pool is not None

    async def connect(self) -> bool:
        """Tries to create the pool and apply the schema once. Returns True on success."""
        pool = None
        try:
            pool = await self.pool_factory(self.dsn)
            await AsyncPostgresClient(pool=pool).ensure_schema()
        except Exception as e:
            if pool is not None:
                await pool.close()
            self.failed_attempts += 1
            attempt = f"attempt {self.failed_attempts}"
            if self.failed_attempts <= settings.DB_MAX_RETRIES:
                logger.warning(f"PostgreSQL connection failed ({attempt}/{settings.DB_MAX_RETRIES}): {e}")
            else:
                logger.error(f"PostgreSQL still unreachable after {attempt}, will keep retrying: {e}")
            return False

        self.pool = pool
        self.failed_attempts = 0
        logger.info("PostgreSQL connection pool created and schema applied.")

        if self.on_connect is not None:
            try:
                await self.on_connect(pool)
            except Exception as e:
                logger.error(f"Post-connect hook failed: {e}", exc_info=True)
        return True

    async def reconnect_job(self):
        """Scheduled retry; removes itself once connected."""
        if self.is_connected:
            self._cancel_reconnect()
            return
        if await self.connect():
            self._cancel_reconnect()

    def schedule_reconnect(self):
        logger.info(f"Retrying PostgreSQL connection every {settings.DB_RETRY_DELAY_SECONDS}s.")
        self.scheduler.add_job(
            self.reconnect_job,
            "interval",
            seconds=settings.DB_RETRY_DELAY_SECONDS,
            id=RECONNECT_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    def _cancel_reconnect(self):
        if self.scheduler.get_job(RECONNECT_JOB_ID) is not None:
            self.scheduler.remove_job(RECONNECT_JOB_ID)

    async def close(self):
        if self.pool is not None:
            await self.pool.close()
            self.pool = None
            logger.info("PostgreSQL connection pool closed.")
