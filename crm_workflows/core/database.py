"""Async SQLModel/SQLAlchemy implementation of the record store."""

import copy
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel, select

from crm_workflows.core.config import Settings
from crm_workflows.core.exceptions import StorageError
from crm_workflows.core.logging import get_logger
from crm_workflows.core.store import Where, normalize_where, order_rows, prepare_insert, row_matches
from crm_workflows.models.database import Record

logger = get_logger(__name__)


class SQLRecordStore:
    """Record store persisting each row as a JSON document in the ``records`` table."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.engine = None
        self.async_session = None

    async def startup(self):
        """Initialize database connection and create tables."""
        try:
            logging.getLogger("aiosqlite").setLevel(logging.WARNING)
            logging.getLogger("sqlalchemy.dialects").setLevel(logging.WARNING)
            logging.getLogger("sqlalchemy.pool").setLevel(logging.WARNING)

            engine_kwargs: Dict[str, Any] = {"echo": self.settings.database_echo, "future": True}
            if not self.settings.is_sqlite:
                engine_kwargs["pool_size"] = self.settings.database_pool_size
                engine_kwargs["max_overflow"] = self.settings.database_max_overflow

            self.engine = create_async_engine(self.settings.database_url, **engine_kwargs)

            self.async_session = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)

            logger.info("Database initialized successfully")

        except Exception as e:
            logger.error("Database startup failed", error=str(e))
            raise

    async def shutdown(self):
        """Close database connections."""
        if self.engine:
            await self.engine.dispose()
            logger.info("Database connections closed")

    @asynccontextmanager
    async def get_session(self):
        """Get async database session."""
        if not self.async_session:
            raise StorageError("Database not initialized")

        async with self.async_session() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    # ============================================================================
    # Record store operations
    # ============================================================================

    async def _load(self, session, collection: str) -> List[Record]:
        stmt = select(Record).where(Record.collection == collection).order_by(Record.pk)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        record = prepare_insert(row)
        try:
            async with self.get_session() as session:
                session.add(Record(id=record["id"], collection=table, data=record))
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Failed to insert record", table=table, error=str(e))
            raise StorageError(f"Insert into {table} failed: {e}") from e
        return copy.deepcopy(record)

    async def update(self, table: str, patch: Dict[str, Any], where: Where) -> int:
        filters = normalize_where(where)
        count = 0
        try:
            async with self.get_session() as session:
                for rec in await self._load(session, table):
                    if not row_matches(rec.data or {}, filters):
                        continue
                    # Reassign so the JSON column registers the change
                    rec.data = {**(rec.data or {}), **copy.deepcopy(patch)}
                    rec.updated_at = datetime.now(timezone.utc)
                    session.add(rec)
                    count += 1
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Failed to update records", table=table, error=str(e))
            raise StorageError(f"Update of {table} failed: {e}") from e
        return count

    async def select(self, table: str, where: Where = None, *,
                     order_by: Optional[str] = None, descending: bool = False,
                     limit: Optional[int] = None) -> List[Dict[str, Any]]:
        filters = normalize_where(where)
        try:
            async with self.get_session() as session:
                records = await self._load(session, table)
        except SQLAlchemyError as e:
            logger.error("Failed to select records", table=table, error=str(e))
            raise StorageError(f"Select from {table} failed: {e}") from e

        rows = [copy.deepcopy(r.data or {}) for r in records if row_matches(r.data or {}, filters)]
        rows = order_rows(rows, order_by, descending)
        if limit is not None:
            rows = rows[:limit]
        return rows
