"""Ledger module for persisted engine state."""

from blockhaven.ledger.database import close_db, get_db, init_db
from blockhaven.ledger.models import ACTIVE_SLOT, Base, RateLockRecord
from blockhaven.ledger.repository import RateLockRepository

__all__ = [
    # Models
    "Base",
    "RateLockRecord",
    "ACTIVE_SLOT",
    # Database
    "get_db",
    "init_db",
    "close_db",
    "RateLockRepository",
]
