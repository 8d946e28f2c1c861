"""SQLAlchemy models for persisted engine state."""

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

ACTIVE_SLOT = "active"


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class RateLockRecord(Base):
    """The single active fixed-rate lock.

    Keyed by slot so at most one row exists; writes replace it in place.
    """

    __tablename__ = "rate_locks"

    slot: Mapped[str] = mapped_column(String(20), primary_key=True, default=ACTIVE_SLOT)
    rate_lock_id: Mapped[str] = mapped_column(String(255), nullable=False)
    source_ticker: Mapped[str] = mapped_column(String(50), nullable=False)
    destination_ticker: Mapped[str] = mapped_column(String(50), nullable=False)
    # Amounts as exact decimal strings; SQLite has no native decimal type
    source_amount: Mapped[str] = mapped_column(String(64), nullable=False)
    destination_amount: Mapped[str] = mapped_column(String(64), nullable=False)
    rate_valid_until: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    captured_at_epoch_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
