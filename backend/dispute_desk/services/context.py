from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from dispute_desk.core.config import Settings
from dispute_desk.db.session import build_engine, build_session_factory
from dispute_desk.services.change_feed import ChangeFeed
from dispute_desk.services.storage_service import StorageService


@dataclass
class ClientContext:
    """
    Handles to the document store, live-query feed and blob store.
    Built once at startup and handed to every repository.
    """
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    feed: ChangeFeed
    storage: StorageService

    @classmethod
    def from_settings(cls, settings: Settings) -> "ClientContext":
        engine = build_engine(settings.DATABASE_URL, echo=False)
        return cls(
            settings=settings,
            engine=engine,
            session_factory=build_session_factory(engine),
            feed=ChangeFeed(),
            storage=StorageService(settings.STORAGE_DIR, settings.PUBLIC_BASE_URL),
        )

    async def aclose(self) -> None:
        await self.engine.dispose()
