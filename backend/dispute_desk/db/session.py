from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool


def normalize_database_url(db_url: str) -> str:
    """
    For Supabase/PostgreSQL with asyncpg, SSL is specified in the URL, not connect_args.
    """
    if "supabase" in db_url and "ssl=" not in db_url:
        db_url = db_url + ("&" if "?" in db_url else "?") + "ssl=require"
    return db_url


def build_engine(db_url: str, echo: bool = False) -> AsyncEngine:
    db_url = normalize_database_url(db_url)
    if db_url.startswith("sqlite"):
        return create_async_engine(
            db_url,
            echo=echo,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(
        db_url,
        echo=echo,
        poolclass=NullPool,  # Fixes asyncpg concurrency/connection issues behind the Supabase pooler
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


# Driver-level connect failures (asyncpg ConnectionRefusedError, timeouts)
# surface as OSError without SQLAlchemy wrapping them.
STORE_ERRORS = (SQLAlchemyError, OSError)
