from typing import Any

from loguru import logger
from sqlalchemy import Engine, event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from soundshelf.core.config import settings
from soundshelf.core.models import Base

_IS_SQLITE = settings.DB_URL.startswith("sqlite")

# Create Async Engine
# busy_timeout (ms) allows SQLite to wait instead of failing immediately with "database is locked"
engine = create_async_engine(
    settings.DB_URL,
    echo=settings.DB_ECHO,
    connect_args={"check_same_thread": False, "timeout": 30} if _IS_SQLITE else {},
)


# Configure WAL Mode on connection (SQLite Only)
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
    """Sets performance pragmas for SQLite.

    WAL (Write-Ahead Logging) mode lets the API keep reading the catalog while
    the indexer commits batches from the same process.
    """
    if _IS_SQLITE:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA busy_timeout=30000")  # 30 seconds
        cursor.close()


# Session Factory
AsyncSessionLocal = async_sessionmaker(
    bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
)


async def init_db(force: bool = False) -> None:
    """Initialize database tables according to current models.

    Args:
        force: If True, drops all existing tables and re-creates them.
            Use with extreme caution as this results in total data loss.
    """
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    if force:
        logger.warning(
            "FORCED database initialization. Existing catalog will be lost."
        )

    async with engine.begin() as conn:
        if force:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready.")
