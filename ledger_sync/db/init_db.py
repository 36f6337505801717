"""Database initialization helpers.

Production schemas are managed with Alembic (`alembic upgrade head`).
`create_tables` exists for SQLite development databases and tests, where
running migrations is unnecessary ceremony.
"""
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from ledger_sync.db.base import Base
import ledger_sync.db.models  # noqa: F401

logger = logging.getLogger(__name__)


async def init_db(session: AsyncSession) -> None:
    """Check connectivity on startup; failures propagate to the caller."""
    await session.execute(text("SELECT 1"))


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Ledger tables ensured", extra={"tables": sorted(Base.metadata.tables)})
