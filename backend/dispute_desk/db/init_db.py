import asyncio

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from dispute_desk.core.config import get_settings
from dispute_desk.db.base import Base
from dispute_desk.db.session import build_engine

logger = structlog.get_logger()


async def create_tables(engine: AsyncEngine) -> None:
    # Trigger model registration
    from dispute_desk.models import dispute, message, support_user  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def main():
    settings = get_settings()
    logger.info("db_init_start")
    engine = build_engine(settings.DATABASE_URL)
    try:
        # Fail fast if the connection hangs (firewall/network issues)
        async with asyncio.timeout(10):
            await create_tables(engine)
    except TimeoutError:
        logger.error("db_init_timeout", message="Connection to database timed out after 10s. Check network/firewall/URL settings.")
        raise
    except Exception as e:
        logger.error("db_init_failed", error=str(e))
        raise
    finally:
        await engine.dispose()
    logger.info("db_init_complete")

if __name__ == "__main__":
    asyncio.run(main())
