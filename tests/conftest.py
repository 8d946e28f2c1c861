"""Pytest configuration and fixtures."""

import asyncio
import os
from datetime import timedelta
from decimal import Decimal
from typing import Any, AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["DEBUG"] = "true"
os.environ["PROVIDER"] = "dryrun"
os.environ["QUOTE_DEBOUNCE_SECONDS"] = "0"
os.environ["STATUS_POLL_INTERVAL_SECONDS"] = "0.01"

from blockhaven.exchange.models import (
    AmountBounds,
    AmountDirection,
    Currency,
    Flow,
    OrderStatus,
    SessionContext,
    utcnow,
)
from blockhaven.exchange.rate_lock import RateLockStore
from blockhaven.ledger.models import Base
from blockhaven.providers.base import (
    AddressCheck,
    CreatedExchange,
    CurrencyQuery,
    Estimate,
    EstimateQuery,
    ExchangeDraft,
    ExchangeProvider,
    ExchangeState,
    ProviderError,
)
from blockhaven.utils.locks import clear_resource_locks


class FakeProvider(ExchangeProvider):
    """Scriptable provider that records every call."""

    def __init__(self):
        self.currencies: list[Currency] = [
            Currency(ticker="btc", display_name="Bitcoin", network="btc",
                     supports_fixed_rate=True, featured=True),
            Currency(ticker="eth", display_name="Ethereum", network="eth",
                     supports_fixed_rate=True, featured=True),
            Currency(ticker="xmr", display_name="Monero", network="xmr",
                     supports_fixed_rate=False),
            Currency(ticker="ada", display_name="Cardano", network="ada",
                     supports_fixed_rate=True),
        ]
        self.rate = Decimal("2")
        self.bounds: Optional[AmountBounds] = AmountBounds(Decimal("0.01"), Decimal("5"))
        self.range_error: Optional[Exception] = None
        self.estimate_error: Optional[Exception] = None
        self.estimate_delays: dict[Decimal, float] = {}
        self.rate_id = "rate-123"
        self.valid_until = utcnow() + timedelta(minutes=15)
        self.address_checks: dict[str, AddressCheck] = {}
        self.address_error: Optional[ProviderError] = None
        self.create_error: Optional[ProviderError] = None
        self.statuses: list[Any] = [OrderStatus.WAITING]
        self.calls: list[tuple[str, Any]] = []

    @property
    def name(self) -> str:
        return "fake"

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    def args(self, method: str) -> list[Any]:
        return [args for name, args in self.calls if name == method]

    async def list_currencies(self, query: CurrencyQuery) -> list[Currency]:
        self.calls.append(("list_currencies", query))
        return list(self.currencies)

    async def get_estimate(self, query: EstimateQuery) -> Estimate:
        self.calls.append(("get_estimate", query))
        delay = self.estimate_delays.get(query.amount)
        if delay:
            await asyncio.sleep(delay)
        if self.estimate_error is not None:
            raise self.estimate_error

        fixed = query.flow is Flow.FIXED
        if query.direction is AmountDirection.FROM_SOURCE:
            from_amount, to_amount = query.amount, query.amount * self.rate
        else:
            from_amount, to_amount = query.amount / self.rate, query.amount
        return Estimate(
            from_amount=from_amount,
            to_amount=to_amount,
            rate_id=self.rate_id if fixed else None,
            valid_until=self.valid_until if fixed else None,
        )

    async def get_range(self, source_ticker: str, destination_ticker: str, flow: Flow) -> AmountBounds:
        self.calls.append(("get_range", (source_ticker, destination_ticker, flow)))
        if self.range_error is not None:
            raise self.range_error
        return self.bounds

    async def validate_address(self, currency: str, address: str) -> AddressCheck:
        self.calls.append(("validate_address", (currency, address)))
        if self.address_error is not None:
            raise self.address_error
        return self.address_checks.get(address, AddressCheck(result=True))

    async def create_exchange(
        self,
        draft: ExchangeDraft,
        session: Optional[SessionContext] = None,
    ) -> CreatedExchange:
        self.calls.append(("create_exchange", (draft, session)))
        if self.create_error is not None:
            raise self.create_error
        return CreatedExchange(
            order_id="order-1",
            deposit_address="deposit-address-1",
            payout_address=draft.payout_address,
            from_amount=draft.source_amount,
            to_amount=draft.destination_amount,
            valid_until=utcnow() + timedelta(hours=1),
            created_at=utcnow(),
            refund_address=draft.refund_address,
            rate_id=draft.rate_id,
        )

    async def get_exchange_status(self, order_id: str) -> ExchangeState:
        self.calls.append(("get_exchange_status", order_id))
        item = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(item, Exception):
            raise item
        return ExchangeState(order_id=order_id, status=item)


@pytest.fixture(autouse=True)
def fresh_resource_locks():
    """Named locks are bound to the loop that first waits on them."""
    clear_resource_locks()
    yield
    clear_resource_locks()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest_asyncio.fixture
async def db_engine():
    """Create in-memory database engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for testing."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def rate_lock_store(session_factory) -> RateLockStore:
    return RateLockStore(session_factory)
