# utils/database.py
import logging

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from utils.auction_data import Base, ErrorLog

logger = logging.getLogger("auction_bot")


def create_engine(database_url: str) -> AsyncEngine:
    """Create the async engine, enabling foreign keys when running on SQLite."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Concurrent writers wait on the file lock instead of failing straight away
        connect_args["timeout"] = 15
    engine = create_async_engine(database_url, connect_args=connect_args)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_models(engine: AsyncEngine):
    """Create any missing tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables are ready")


async def record_error(session_factory: async_sessionmaker, error: BaseException, context: str):
    """Keep a row in error_logs for a failure; a broken store only gets a log line."""
    try:
        async with session_factory() as session:
            async with session.begin():
                session.add(ErrorLog(error=str(error) or type(error).__name__, context=context))
    except Exception:
        logger.exception(f"Could not record error for {context}")
