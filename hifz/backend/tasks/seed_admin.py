import asyncio
import logging
from typing import Optional

from ..config.config import settings
from ..db.db_client import AsyncPostgresClient
from ..logging.logging_config import setup_logging
from ..models.db_models import User
from ..services.user_service import UserService
from .reconnect import create_postgres_pool

logger = logging.getLogger(__name__)


async def ensure_default_admin(db_client: AsyncPostgresClient) -> Optional[User]:
    """Creates the configured default admin when no admin account exists yet."""
    if not settings.DEFAULT_ADMIN_EMAIL or not settings.DEFAULT_ADMIN_PASSWORD:
        logger.info("DEFAULT_ADMIN_EMAIL / DEFAULT_ADMIN_PASSWORD not set, skipping default admin.")
        return None
    service = UserService(db_client=db_client)
    return await service.ensure_admin(
        settings.DEFAULT_ADMIN_NAME, settings.DEFAULT_ADMIN_EMAIL, settings.DEFAULT_ADMIN_PASSWORD
    )


async def main() -> int:
    setup_logging()
    if not settings.DATABASE_URL:
        logger.error("DATABASE_URL is not set.")
        return 1

    pool = await create_postgres_pool(settings.DATABASE_URL)
    try:
        db_client = AsyncPostgresClient(pool=pool)
        await db_client.ensure_schema()
        await ensure_default_admin(db_client)
    except Exception as e:
        logger.error(f"Seeding the default admin failed: {e}", exc_info=True)
        return 1
    finally:
        await pool.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
