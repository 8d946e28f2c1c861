"""Exchange engine facade.

Wires the catalog, quote negotiator, rate-lock store, address validator,
order service and order tracker around one provider, and exposes the
operations the storefront calls.
"""

import logging
from decimal import Decimal
from typing import Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from blockhaven.config import Settings, get_settings
from blockhaven.exchange.addresses import AddressValidator
from blockhaven.exchange.catalog import CatalogFilter, CurrencyCatalog
from blockhaven.exchange.models import (
    AddressValidation,
    Currency,
    Order,
    OrderRequest,
    QuoteRequest,
    QuoteResult,
    RateLock,
    SessionContext,
    StatusUpdate,
)
from blockhaven.exchange.orders import OrderService
from blockhaven.exchange.quotes import ErrorNoticeThrottle, QuoteNegotiator, QuoteSession
from blockhaven.exchange.rate_lock import Countdown, RateLockStore, countdown
from blockhaven.exchange.status import (
    NoticeCallback,
    OrderTracker,
    StatusSubscription,
    UpdateCallback,
)
from blockhaven.providers.base import ExchangeProvider
from blockhaven.providers.factory import get_provider

logger = logging.getLogger(__name__)


class ExchangeEngine:
    """Quote-and-order lifecycle engine."""

    def __init__(
        self,
        provider: ExchangeProvider,
        settings: Optional[Settings] = None,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        rate_locks: Optional[RateLockStore] = None,
    ):
        self.settings = settings or get_settings()
        self.provider = provider
        self.catalog = CurrencyCatalog(provider)
        self.negotiator = QuoteNegotiator(
            provider,
            catalog=self.catalog,
            timeout=self.settings.quote_timeout_seconds,
        )
        self.rate_locks = rate_locks or RateLockStore(session_factory)
        self.validator = AddressValidator(provider)
        self.orders = OrderService(
            provider,
            validator=self.validator,
            rate_locks=self.rate_locks,
            catalog=self.catalog,
        )
        self.tracker = OrderTracker(
            provider,
            interval=self.settings.status_poll_interval_seconds,
            failure_escalation=self.settings.status_failure_escalation,
        )
        self.notices = ErrorNoticeThrottle(window=self.settings.error_notice_window_seconds)

    # Catalog

    async def load_catalog(self, catalog_filter: Optional[CatalogFilter] = None) -> list[Currency]:
        return await self.catalog.load(catalog_filter)

    def lookup(self, ticker: str) -> Optional[Currency]:
        return self.catalog.lookup(ticker)

    # Quotes

    async def estimate(self, request: QuoteRequest) -> QuoteResult:
        return await self.negotiator.estimate(request)

    def new_quote_session(self) -> QuoteSession:
        """Sequenced quoting for one exchange form."""
        return QuoteSession(self.negotiator, debounce=self.settings.quote_debounce_seconds)

    # Rate lock

    async def capture_lock(self, quote: QuoteResult, request: QuoteRequest) -> Optional[RateLock]:
        return await self.rate_locks.capture(quote, request)

    async def current_lock(self) -> Optional[RateLock]:
        return await self.rate_locks.current()

    async def clear_lock(self) -> bool:
        return await self.rate_locks.clear()

    async def lock_matches(
        self,
        source_ticker: str,
        destination_ticker: str,
        source_amount: Optional[Decimal],
        destination_amount: Optional[Decimal],
    ) -> bool:
        return await self.rate_locks.matches(
            source_ticker, destination_ticker, source_amount, destination_amount
        )

    def lock_countdown(self, lock: RateLock) -> Countdown:
        return countdown(
            lock.rate_valid_until,
            warning_threshold=self.settings.rate_expiry_warning_seconds,
            critical_threshold=self.settings.rate_expiry_critical_seconds,
        )

    # Addresses

    async def validate_address(self, currency: Union[Currency, str], address: str) -> AddressValidation:
        return await self.validator.validate(currency, address)

    async def validate_refund_address(
        self, source_currency: Union[Currency, str], address: str
    ) -> AddressValidation:
        return await self.validator.validate_refund(source_currency, address)

    # Orders

    async def submit_order(
        self,
        request: OrderRequest,
        session: Optional[SessionContext] = None,
    ) -> Order:
        return await self.orders.submit(request, session)

    async def poll_status(self, order_id: str) -> StatusUpdate:
        return await self.tracker.poll_status(order_id)

    def subscribe_to_status(
        self,
        order_id: str,
        on_update: Optional[UpdateCallback] = None,
        on_notice: Optional[NoticeCallback] = None,
    ) -> StatusSubscription:
        """Start tracking an order. Call `cancel()` on the result to stop."""
        return self.tracker.subscribe(order_id, on_update, on_notice)

    async def close(self) -> None:
        await self.tracker.cancel_all()
        await self.provider.close()


# Singleton instance
_engine_instance: Optional[ExchangeEngine] = None


def get_exchange_engine() -> ExchangeEngine:
    """Get the process-wide engine built from settings."""
    global _engine_instance
    if _engine_instance is None:
        _engine_instance = ExchangeEngine(get_provider())
        logger.info(f"Exchange engine using provider {_engine_instance.provider.name}")
    return _engine_instance


def reset_exchange_engine() -> None:
    """Reset engine instance (useful for testing)."""
    global _engine_instance
    _engine_instance = None
