import logging
from typing import AsyncGenerator

from core.errors import AppError
from core.logging_setup import log_step
from core.orm import Database
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

LOG_STEP = "DATABASE"


async def init_db(database_url: str) -> Database:
    """Create the process-wide database resource and verify the schema."""
    database = Database(database_url)
    try:
        await database.create_schema()
        with log_step(LOG_STEP):
            logger.info("ORM initialized successfully and schema verified.")
    except Exception as e:
        with log_step(LOG_STEP):
            logger.error(f"Failed to initialize ORM: {e}", exc_info=True)
        await database.dispose()
        raise
    return database


async def close_db(database: Database) -> None:
    await database.dispose()
    with log_step(LOG_STEP):
        logger.info("Database engine disposed.")


async def get_db_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; always closed when the request finishes."""
    database: Database | None = getattr(request.app.state, "database", None)
    if database is None:
        raise AppError("Database not initialized.", error="Service unavailable", status_code=503)

    async with database.session() as session:
        yield session


__all__ = ["Database", "close_db", "get_db_session", "init_db"]
