from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from .settings import settings


def engine_options(database_url: str) -> dict:
    options = {"echo": settings.DB_ECHO, "pool_pre_ping": True}
    # sqlite has no connection pool to size
    if make_url(database_url).get_backend_name() != "sqlite":
        options.update(
            pool_size=settings.DB_POOL_SIZE, max_overflow=settings.DB_MAX_OVERFLOW
        )
    return options


async_engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL, **engine_options(settings.DATABASE_URL)
)

# services keep reading settled rows after commit, so instances must not expire
AsyncSessionLocal = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db_async():
    async with AsyncSessionLocal() as session:
        yield session


Base = declarative_base()
