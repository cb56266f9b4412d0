import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Optional, Sequence, Tuple

from sqlalchemy import func, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stockdb.core.config import settings
from stockdb.core.database import AsyncSessionLocal
from stockdb.core.exceptions import PersistenceError, QueryError
from stockdb.models.stock_record import StockRecord

logger = logging.getLogger(__name__)


class StockRecordStore:
    """
    Persistence and aggregate queries for uploaded stock records.

    Pass a session to share it with the caller (request scope, tests); the
    bulk write still commits or rolls back that session. Without one, every
    call opens and commits its own session.
    """

    def __init__(self, session: Optional[AsyncSession] = None, batch_size: Optional[int] = None):
        self.session = session
        self.batch_size = batch_size or settings.INGEST_BATCH_SIZE

    async def bulk_insert(self, records: Sequence[dict]) -> int:
        """
        Insert all records as one logical write.

        Atomicity: every batch runs in the same transaction, committed once at
        the end. On a transactional database the insert is all-or-nothing; any
        driver error rolls the whole write back and raises PersistenceError.
        """
        if not records:
            return 0

        try:
            async with self._get_session() as session:
                inserted = 0
                for i in range(0, len(records), self.batch_size):
                    batch = records[i:i + self.batch_size]
                    await session.execute(insert(StockRecord), list(batch))
                    inserted += len(batch)
                    logger.debug(
                        f"Inserted batch {i // self.batch_size + 1}: {len(batch)} records "
                        f"(total: {inserted}/{len(records)})"
                    )
                if self.session is not None:
                    await session.commit()
        except (SQLAlchemyError, OverflowError) as e:
            # sqlite3 raises a bare OverflowError for integers past 64 bits
            logger.error(f"Failed to store {len(records)} stock records: {e}")
            if self.session is not None:
                await self.session.rollback()
            raise PersistenceError("Error saving data to database", record_count=len(records)) from e

        logger.info(f"Stored {inserted} stock records")
        return inserted

    async def max_volume_in_range(
        self,
        start_date: date,
        end_date: date,
        symbol: Optional[str] = None,
    ) -> Optional[StockRecord]:
        """Record with the highest volume in [start_date, end_date]; ties go to store order."""
        stmt = (
            select(StockRecord)
            .where(*self._filters(start_date, end_date, symbol))
            .order_by(StockRecord.volume.desc())
            .limit(1)
        )
        result = await self._read("max_volume_in_range", stmt)
        return result.scalars().first()

    async def average_close(
        self,
        start_date: date,
        end_date: date,
        symbol: Optional[str] = None,
    ) -> Optional[float]:
        """Mean close over matching records, None if nothing matches."""
        return await self._average("average_close", StockRecord.close, start_date, end_date, symbol)

    async def average_vwap(
        self,
        start_date: date,
        end_date: date,
        symbol: Optional[str] = None,
    ) -> Optional[float]:
        """Mean VWAP over matching records, None if nothing matches."""
        return await self._average("average_vwap", StockRecord.vwap, start_date, end_date, symbol)

    async def close_stats(
        self,
        start_date: date,
        end_date: date,
        symbol: Optional[str] = None,
    ) -> Tuple[Optional[float], int]:
        """Mean close and the number of matching records, from one read."""
        return await self._stats("close_stats", StockRecord.close, start_date, end_date, symbol)

    async def vwap_stats(
        self,
        start_date: date,
        end_date: date,
        symbol: Optional[str] = None,
    ) -> Tuple[Optional[float], int]:
        """Mean VWAP and the number of matching records, from one read."""
        return await self._stats("vwap_stats", StockRecord.vwap, start_date, end_date, symbol)

    async def count_in_range(
        self,
        start_date: date,
        end_date: date,
        symbol: Optional[str] = None,
    ) -> int:
        stmt = select(func.count(StockRecord.id)).where(*self._filters(start_date, end_date, symbol))
        result = await self._read("count_in_range", stmt)
        return int(result.scalar_one())

    async def count(self, symbol: Optional[str] = None) -> int:
        stmt = select(func.count(StockRecord.id))
        if symbol:
            stmt = stmt.where(StockRecord.symbol == symbol)
        result = await self._read("count", stmt)
        return int(result.scalar_one())

    async def _average(self, name, column, start_date, end_date, symbol) -> Optional[float]:
        average, _ = await self._stats(name, column, start_date, end_date, symbol)
        return average

    async def _stats(self, name, column, start_date, end_date, symbol) -> Tuple[Optional[float], int]:
        stmt = select(func.avg(column), func.count(StockRecord.id)).where(
            *self._filters(start_date, end_date, symbol)
        )
        result = await self._read(name, stmt)
        average, count = result.one()
        return (float(average) if average is not None else None), int(count)

    async def _read(self, name: str, stmt):
        try:
            async with self._get_session() as session:
                return await session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Query {name} failed: {e}")
            raise QueryError(f"Error running {name}", query=name) from e

    @staticmethod
    def _filters(start_date: date, end_date: date, symbol: Optional[str]) -> list:
        filters = [StockRecord.date >= start_date, StockRecord.date <= end_date]
        if symbol:
            filters.append(StockRecord.symbol == symbol)
        return filters

    @asynccontextmanager
    async def _get_session(self):
        if self.session is not None:
            yield self.session
        else:
            async with AsyncSessionLocal() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise
