from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    async_sessionmaker,
    AsyncAttrs,
)
from sqlalchemy.orm import DeclarativeBase

from billing.core.config import settings

ASYNC_SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

# SQLite uses a static/null pool that rejects sizing arguments
_pool_options: dict = (
    {}
    if ASYNC_SQLALCHEMY_DATABASE_URL.startswith("sqlite")
    else {
        "pool_size": 20,
        "max_overflow": 30,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }
)

async_engine: AsyncEngine = create_async_engine(
    ASYNC_SQLALCHEMY_DATABASE_URL,
    echo=settings.DEBUG,
    **_pool_options,
)

AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    autoflush=False,
    expire_on_commit=False,
    autobegin=True,
)


class Base(AsyncAttrs, DeclarativeBase):
    pass


async def init_db() -> None:
    """
    Initializes the database by creating all the tables defined in the metadata.

    Returns:
        None
    """
    # Register every model on Base.metadata before create_all
    import billing.core.db.models  # noqa: F401

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_db() -> None:
    """
    Dispose the database connection pool held by `async_engine`.

    Returns:
        None
    """
    await async_engine.dispose()
