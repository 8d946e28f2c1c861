"""Order submission.

Checks every precondition locally before the provider is asked to create
anything, then adopts the provider's answer as the Order.
"""

import logging
from typing import Optional

from blockhaven.exchange.addresses import AddressValidator
from blockhaven.exchange.catalog import CurrencyCatalog
from blockhaven.exchange.errors import OrderCreationFailed, StaleQuote
from blockhaven.exchange.models import (
    Flow,
    Order,
    OrderRequest,
    RateLock,
    SessionContext,
    utcnow,
)
from blockhaven.exchange.rate_lock import RateLockStore
from blockhaven.providers.base import ExchangeDraft, ExchangeProvider, ProviderError

logger = logging.getLogger(__name__)


class OrderService:
    """Creates exchange orders with the provider."""

    def __init__(
        self,
        provider: ExchangeProvider,
        validator: AddressValidator,
        rate_locks: RateLockStore,
        catalog: Optional[CurrencyCatalog] = None,
        session: Optional[SessionContext] = None,
    ):
        self.provider = provider
        self.validator = validator
        self.rate_locks = rate_locks
        self.catalog = catalog
        self.session = session or SessionContext()

    def _network(self, ticker: str) -> Optional[str]:
        if self.catalog is None:
            return None
        currency = self.catalog.lookup(ticker)
        return currency.network if currency else None

    async def submit(
        self,
        request: OrderRequest,
        session: Optional[SessionContext] = None,
    ) -> Order:
        """Submit an order.

        Args:
            request: Confirmed order details
            session: Caller identity, defaults to the one given at construction

        Returns:
            The created Order

        Raises:
            OrderCreationFailed: amounts unresolved or provider refused the order
            EmptyAddress / AddressInvalid: payout or refund address rejected
            StaleQuote: fixed-rate lock expired or no longer matches the amounts
        """
        session = session or self.session
        source = request.source_ticker.lower()
        destination = request.destination_ticker.lower()

        if not request.source_amount or not request.destination_amount:
            raise OrderCreationFailed("amounts_unresolved")

        payout = await self.validator.validate(destination, request.payout_address)
        payout.raise_for_invalid()

        if request.refund_address:
            refund = await self.validator.validate_refund(source, request.refund_address)
            refund.raise_for_invalid()

        lock: Optional[RateLock] = None
        if request.flow is Flow.FIXED:
            lock = await self._require_lock(request)

        draft = ExchangeDraft(
            source_ticker=source,
            destination_ticker=destination,
            payout_address=payout.address,
            flow=request.flow,
            direction=request.direction,
            source_amount=request.source_amount,
            destination_amount=request.destination_amount,
            source_network=self._network(source),
            destination_network=self._network(destination),
            refund_address=(request.refund_address or "").strip() or None,
            payout_extra_id=request.payout_extra_id,
            refund_extra_id=request.refund_extra_id,
            contact_email=request.contact_email,
            rate_id=lock.rate_lock_id if lock else None,
        )

        # No automatic retry: a timed-out create may still have succeeded upstream
        try:
            created = await self.provider.create_exchange(draft, session)
        except ProviderError as e:
            logger.error(
                f"Order creation failed for {source}->{destination}: {e.message}"
                f"{' (outcome unknown)' if e.transient else ''}"
            )
            raise OrderCreationFailed(e.message, outcome_unknown=e.transient)

        order = Order(
            order_id=created.order_id,
            flow=request.flow,
            direction=request.direction,
            source_ticker=source,
            destination_ticker=destination,
            source_amount=created.from_amount if created.from_amount is not None else request.source_amount,
            destination_amount=(
                created.to_amount if created.to_amount is not None else request.destination_amount
            ),
            deposit_address=created.deposit_address,
            payout_address=created.payout_address,
            refund_address=created.refund_address,
            rate_lock_id=created.rate_id or draft.rate_id,
            created_at=created.created_at or utcnow(),
            valid_until=created.valid_until,
            deposit_extra_id=created.deposit_extra_id,
            payout_extra_id=created.payout_extra_id,
            warning_message=created.warning_message,
        )

        if lock is not None:
            # The provider consumed the rate id; the order stands even if clearing fails
            try:
                await self.rate_locks.clear()
            except Exception as e:
                logger.error(f"Could not clear rate lock after order {order.order_id}: {e!r}")

        logger.info(
            f"Created order {order.order_id}: {order.source_amount} {source} -> "
            f"{order.destination_amount} {destination} ({order.flow.value})"
        )
        return order

    async def _require_lock(self, request: OrderRequest) -> RateLock:
        lock = await self.rate_locks.current()
        if lock is None:
            raise StaleQuote("The fixed rate has expired. Please refresh the quote.")
        if not lock.matches(
            request.source_ticker,
            request.destination_ticker,
            request.source_amount,
            request.destination_amount,
        ):
            raise StaleQuote("The fixed rate no longer matches the amounts. Please refresh the quote.")
        return lock
