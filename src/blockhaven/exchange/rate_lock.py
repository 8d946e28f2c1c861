"""Rate-lock store and countdown helpers.

Holds at most one fixed-rate lock. Reads always re-check expiry, so a
stored record is never trusted just because it was found.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from blockhaven.exchange.models import Flow, QuoteRequest, QuoteResult, RateLock, utcnow
from blockhaven.ledger.database import get_session_factory
from blockhaven.ledger.repository import RateLockRepository
from blockhaven.utils.locks import resource_lock

logger = logging.getLogger(__name__)

RATE_LOCK_RESOURCE = "rate_lock"


class RateLockStore:
    """Persisted single-slot store for the active rate lock.

    capture, current and clear each run under the same named lock so a
    reader never observes a half-replaced record.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._session_factory = session_factory
        self._clock = clock

    def _sessions(self) -> async_sessionmaker[AsyncSession]:
        return self._session_factory or get_session_factory()

    async def capture(self, quote: QuoteResult, request: QuoteRequest) -> Optional[RateLock]:
        """Store the lock carried by a fixed-rate quote.

        Returns:
            The stored RateLock, or None if the quote carries no lock
        """
        if quote.flow is not Flow.FIXED or not quote.rate_lock_id or quote.rate_valid_until is None:
            return None
        if quote.is_empty:
            return None

        now = self._clock()
        lock = RateLock(
            rate_lock_id=quote.rate_lock_id,
            source_ticker=request.source_ticker.lower(),
            destination_ticker=request.destination_ticker.lower(),
            source_amount=quote.source_amount,
            destination_amount=quote.destination_amount,
            rate_valid_until=quote.rate_valid_until,
            captured_at_epoch_ms=int(now.timestamp() * 1000),
        )

        async with resource_lock(RATE_LOCK_RESOURCE, operation="capture"):
            async with self._sessions()() as session:
                await RateLockRepository(session).put(lock)
                await session.commit()

        logger.info(
            f"Captured rate lock {lock.rate_lock_id} for {lock.source_ticker}->"
            f"{lock.destination_ticker} valid until {lock.rate_valid_until.isoformat()}"
        )
        return lock

    async def current(self) -> Optional[RateLock]:
        """Get the active lock, evicting it if it has expired."""
        async with resource_lock(RATE_LOCK_RESOURCE, operation="read"):
            async with self._sessions()() as session:
                repo = RateLockRepository(session)
                lock = await repo.get()
                if lock is None:
                    return None
                if lock.is_expired(self._clock()):
                    await repo.delete()
                    await session.commit()
                    logger.info(f"Evicted expired rate lock {lock.rate_lock_id}")
                    return None
                return lock

    async def matches(
        self,
        source_ticker: str,
        destination_ticker: str,
        source_amount: Optional[Decimal],
        destination_amount: Optional[Decimal],
    ) -> bool:
        """Check that the active lock still covers the displayed pair and amounts."""
        lock = await self.current()
        if lock is None:
            return False
        return lock.matches(source_ticker, destination_ticker, source_amount, destination_amount)

    async def clear(self) -> bool:
        """Drop the active lock. Returns True if one was held."""
        async with resource_lock(RATE_LOCK_RESOURCE, operation="clear"):
            async with self._sessions()() as session:
                removed = await RateLockRepository(session).delete()
                await session.commit()
        if removed:
            logger.info("Cleared rate lock")
        return removed


@dataclass(frozen=True)
class Countdown:
    """Time left on a rate lock, as shown next to the quote."""

    total_seconds: int
    warning_threshold: int = 120
    critical_threshold: int = 30

    @property
    def is_expired(self) -> bool:
        return self.total_seconds <= 0

    @property
    def minutes(self) -> int:
        return self.total_seconds // 60

    @property
    def seconds(self) -> int:
        return self.total_seconds % 60

    @property
    def formatted(self) -> str:
        """MM:SS"""
        return f"{self.minutes:02d}:{self.seconds:02d}"

    @property
    def label(self) -> str:
        if self.is_expired:
            return "Rate expired"
        if self.total_seconds < 60:
            return f"{self.seconds}s remaining"
        return f"{self.formatted} remaining"

    @property
    def is_about_to_expire(self) -> bool:
        return not self.is_expired and self.total_seconds < self.warning_threshold

    @property
    def is_critically_low(self) -> bool:
        return not self.is_expired and self.total_seconds < self.critical_threshold


def countdown(
    valid_until: datetime,
    now: Optional[datetime] = None,
    warning_threshold: int = 120,
    critical_threshold: int = 30,
) -> Countdown:
    """Build the countdown for a lock expiry."""
    remaining = (valid_until - (now or utcnow())).total_seconds()
    return Countdown(
        total_seconds=max(0, int(remaining)),
        warning_threshold=warning_threshold,
        critical_threshold=critical_threshold,
    )
