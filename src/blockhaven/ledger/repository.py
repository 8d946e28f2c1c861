"""Repository for persisted rate locks."""

from datetime import timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from blockhaven.exchange.models import RateLock
from blockhaven.ledger.models import ACTIVE_SLOT, RateLockRecord


class RateLockRepository:
    """Reads and writes the single keyed rate lock record.

    Returns records as they were stored; staleness is the caller's concern.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, slot: str = ACTIVE_SLOT) -> Optional[RateLock]:
        """Load the stored lock, if any."""
        stmt = select(RateLockRecord).where(RateLockRecord.slot == slot)
        result = await self.session.execute(stmt)
        record = result.scalar_one_or_none()
        if record is None:
            return None
        return self._to_lock(record)

    async def put(self, lock: RateLock, slot: str = ACTIVE_SLOT) -> None:
        """Store a lock, replacing whatever the slot held."""
        record = await self.session.get(RateLockRecord, slot)
        if record is None:
            record = RateLockRecord(slot=slot)
            self.session.add(record)

        record.rate_lock_id = lock.rate_lock_id
        record.source_ticker = lock.source_ticker
        record.destination_ticker = lock.destination_ticker
        record.source_amount = str(lock.source_amount)
        record.destination_amount = str(lock.destination_amount)
        record.rate_valid_until = lock.rate_valid_until.astimezone(timezone.utc)
        record.captured_at_epoch_ms = lock.captured_at_epoch_ms
        await self.session.flush()

    async def delete(self, slot: str = ACTIVE_SLOT) -> bool:
        """Delete the stored lock. Returns True if a row was removed."""
        result = await self.session.execute(
            delete(RateLockRecord).where(RateLockRecord.slot == slot)
        )
        await self.session.flush()
        return bool(result.rowcount)

    @staticmethod
    def _to_lock(record: RateLockRecord) -> RateLock:
        valid_until = record.rate_valid_until
        if valid_until.tzinfo is None:
            # SQLite drops tzinfo; values are always written in UTC
            valid_until = valid_until.replace(tzinfo=timezone.utc)
        return RateLock(
            rate_lock_id=record.rate_lock_id,
            source_ticker=record.source_ticker,
            destination_ticker=record.destination_ticker,
            source_amount=Decimal(record.source_amount),
            destination_amount=Decimal(record.destination_amount),
            rate_valid_until=valid_until,
            captured_at_epoch_ms=record.captured_at_epoch_ms,
        )
