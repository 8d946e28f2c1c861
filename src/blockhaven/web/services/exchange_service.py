"""Exchange service for the storefront API.

Turns engine results into response contracts. Every ExchangeError becomes a
`success=False` response carrying its code; only unknown orders escape as
OrderNotFound for the controller to map to 404.
"""

import logging
from decimal import Decimal
from typing import Optional

from blockhaven.exchange.catalog import CatalogFilter
from blockhaven.exchange.engine import ExchangeEngine, get_exchange_engine
from blockhaven.exchange.errors import ExchangeError, OrderNotFound, QuoteUnavailable
from blockhaven.exchange.models import (
    Flow,
    Order,
    OrderRequest,
    QuoteRequest,
    QuoteResult,
    RateLock,
    SessionContext,
    StatusUpdate,
)
from blockhaven.exchange.status import StatusSubscription, present
from blockhaven.web.contracts.addresses import (
    AddressValidationRequest,
    AddressValidationResponse,
)
from blockhaven.web.contracts.currencies import (
    CurrencyInfo,
    CurrencyListResponse,
    CurrencyResponse,
)
from blockhaven.web.contracts.orders import (
    OrderCreateRequest,
    OrderResponse,
    OrderStatusResponse,
    TrackingResponse,
)
from blockhaven.web.contracts.quotes import (
    EstimateRequest,
    EstimateResponse,
    RateLockResponse,
)

logger = logging.getLogger(__name__)


class ExchangeService:
    """Storefront-facing wrapper around the exchange engine."""

    def __init__(self, engine: Optional[ExchangeEngine] = None):
        self._engine = engine

    @property
    def engine(self) -> ExchangeEngine:
        return self._engine or get_exchange_engine()

    # Currencies

    async def list_currencies(self, catalog_filter: CatalogFilter) -> CurrencyListResponse:
        try:
            currencies = await self.engine.load_catalog(catalog_filter)
        except ExchangeError as e:
            return CurrencyListResponse(success=False, error=e.message, error_code=e.code)

        return CurrencyListResponse(
            success=True,
            currencies=[CurrencyInfo.from_currency(c) for c in currencies],
            total=len(currencies),
        )

    async def get_currency(self, ticker: str) -> CurrencyResponse:
        engine = self.engine
        if not engine.catalog.is_loaded:
            try:
                await engine.load_catalog()
            except ExchangeError as e:
                return CurrencyResponse(success=False, error=e.message, error_code=e.code)

        currency = engine.lookup(ticker)
        if currency is None:
            return CurrencyResponse(
                success=False,
                error=f"Unknown currency {ticker.upper()}",
                error_code="unknown_currency",
            )
        return CurrencyResponse(success=True, currency=CurrencyInfo.from_currency(currency))

    # Quotes

    @staticmethod
    def _quote_request(request: EstimateRequest, flow: Optional[Flow] = None) -> QuoteRequest:
        return QuoteRequest.build(
            request.from_currency,
            request.to_currency,
            request.amount,
            direction=request.direction,
            flow=flow or request.flow,
        )

    def _estimate_response(self, quote_request: QuoteRequest, result: QuoteResult) -> EstimateResponse:
        bounds = result.bounds
        return EstimateResponse(
            success=True,
            from_currency=quote_request.source_ticker,
            to_currency=quote_request.destination_ticker,
            flow=result.flow,
            direction=result.edited,
            from_amount=result.source_amount,
            to_amount=result.destination_amount,
            rate=result.rate,
            rate_id=result.rate_lock_id,
            valid_until=result.rate_valid_until,
            min_amount=bounds.min_source_amount if bounds else None,
            max_amount=bounds.max_source_amount if bounds else None,
            out_of_bounds=result.is_out_of_bounds,
            bound_violation=result.bound_violation.value if result.bound_violation else None,
            warning_message=result.warning_message,
        )

    def _estimate_failure(self, quote_request: QuoteRequest, error: ExchangeError) -> EstimateResponse:
        code = getattr(error, "reason", None) or error.code
        return EstimateResponse(
            success=False,
            from_currency=quote_request.source_ticker,
            to_currency=quote_request.destination_ticker,
            flow=quote_request.flow,
            direction=quote_request.amount_direction,
            error=error.message,
            error_code=error.code,
            notify=self.engine.notices.should_notify(
                quote_request.source_ticker, quote_request.destination_ticker, code
            ),
        )

    async def estimate(self, request: EstimateRequest) -> EstimateResponse:
        """Estimate the dependent amount for one edit."""
        quote_request = self._quote_request(request)
        try:
            result = await self.engine.estimate(quote_request)
        except ExchangeError as e:
            logger.info(
                f"Estimate {quote_request.source_ticker}->{quote_request.destination_ticker} "
                f"failed: {e.code}"
            )
            return self._estimate_failure(quote_request, e)
        return self._estimate_response(quote_request, result)

    async def lock_quote(self, request: EstimateRequest) -> RateLockResponse:
        """Estimate under the fixed flow and capture the returned rate lock."""
        quote_request = self._quote_request(request, flow=Flow.FIXED)
        engine = self.engine
        try:
            result = await engine.estimate(quote_request)
            if result.is_empty:
                raise QuoteUnavailable("amounts_unresolved", "Enter an amount to lock a rate")
            lock = await engine.capture_lock(result, quote_request)
            if lock is None:
                raise QuoteUnavailable("no_rate_id", "The provider did not return a fixed rate")
        except ExchangeError as e:
            return RateLockResponse(
                success=False,
                error=e.message,
                error_code=e.code,
                estimate=self._estimate_failure(quote_request, e),
            )

        response = self._lock_response(lock)
        response.estimate = self._estimate_response(quote_request, result)
        return response

    async def get_lock(
        self,
        from_currency: Optional[str] = None,
        to_currency: Optional[str] = None,
        from_amount: Optional[Decimal] = None,
        to_amount: Optional[Decimal] = None,
    ) -> RateLockResponse:
        """Describe the active lock, optionally checking it against displayed amounts."""
        lock = await self.engine.current_lock()
        check = from_currency is not None and to_currency is not None
        if lock is None:
            return RateLockResponse(success=True, active=False, matches=False if check else None)

        response = self._lock_response(lock)
        if check:
            response.matches = lock.matches(from_currency, to_currency, from_amount, to_amount)
        return response

    async def clear_lock(self) -> RateLockResponse:
        await self.engine.clear_lock()
        return RateLockResponse(success=True, active=False)

    def _lock_response(self, lock: RateLock) -> RateLockResponse:
        countdown = self.engine.lock_countdown(lock)
        return RateLockResponse(
            success=True,
            active=True,
            rate_id=lock.rate_lock_id,
            from_currency=lock.source_ticker,
            to_currency=lock.destination_ticker,
            from_amount=lock.source_amount,
            to_amount=lock.destination_amount,
            valid_until=lock.rate_valid_until,
            seconds_remaining=countdown.total_seconds,
            countdown=countdown.label,
            about_to_expire=countdown.is_about_to_expire,
            critically_low=countdown.is_critically_low,
        )

    # Addresses

    async def validate_address(self, request: AddressValidationRequest) -> AddressValidationResponse:
        if request.role == "refund":
            result = await self.engine.validate_refund_address(request.currency, request.address)
        else:
            result = await self.engine.validate_address(request.currency, request.address)
        return AddressValidationResponse(
            currency=result.currency,
            address=result.address,
            is_valid=result.is_valid,
            message=result.message,
            reason=result.reason,
        )

    # Orders

    async def create_order(
        self,
        request: OrderCreateRequest,
        session: Optional[SessionContext] = None,
    ) -> OrderResponse:
        order_request = OrderRequest(
            source_ticker=request.from_currency.lower(),
            destination_ticker=request.to_currency.lower(),
            source_amount=request.from_amount,
            destination_amount=request.to_amount,
            payout_address=request.address,
            flow=request.flow,
            direction=request.direction,
            refund_address=request.refund_address,
            payout_extra_id=request.extra_id,
            refund_extra_id=request.refund_extra_id,
            contact_email=request.contact_email,
        )
        try:
            order = await self.engine.submit_order(order_request, session)
        except ExchangeError as e:
            logger.info(f"Order rejected ({e.code}): {e.message}")
            return OrderResponse(
                success=False,
                from_currency=order_request.source_ticker,
                to_currency=order_request.destination_ticker,
                error=e.message,
                error_code=e.code,
                outcome_unknown=getattr(e, "outcome_unknown", False),
            )
        return self._order_response(order)

    @staticmethod
    def _order_response(order: Order) -> OrderResponse:
        return OrderResponse(
            success=True,
            order_id=order.order_id,
            flow=order.flow,
            direction=order.direction,
            from_currency=order.source_ticker,
            to_currency=order.destination_ticker,
            from_amount=order.source_amount,
            to_amount=order.destination_amount,
            deposit_address=order.deposit_address,
            deposit_extra_id=order.deposit_extra_id,
            payout_address=order.payout_address,
            payout_extra_id=order.payout_extra_id,
            refund_address=order.refund_address,
            rate_id=order.rate_lock_id,
            created_at=order.created_at,
            valid_until=order.valid_until,
            warning_message=order.warning_message,
        )

    async def get_status(self, order_id: str) -> OrderStatusResponse:
        """Poll once.

        Raises:
            OrderNotFound: the provider does not know the order
        """
        try:
            update = await self.engine.poll_status(order_id)
        except OrderNotFound:
            raise
        except ExchangeError as e:
            return OrderStatusResponse(
                success=False, order_id=order_id, error=e.message, error_code=e.code
            )
        return self._status_response(update)

    @staticmethod
    def _status_response(update: StatusUpdate) -> OrderStatusResponse:
        presentation = present(update.status)
        return OrderStatusResponse(
            success=True,
            order_id=update.order_id,
            status=update.status,
            label=presentation.label,
            description=presentation.description,
            is_terminal=update.status.is_terminal,
            amount_from=update.amount_from,
            amount_to=update.amount_to,
            payin_hash=update.payin_hash,
            payout_hash=update.payout_hash,
            observed_at=update.observed_at,
            updated_at=update.updated_at,
        )

    # Tracking

    def _tracking_response(self, subscription: StatusSubscription) -> TrackingResponse:
        return TrackingResponse(
            success=True,
            order_id=subscription.order_id,
            active=subscription.is_active,
            consecutive_failures=subscription.consecutive_failures,
            notice=subscription.notice,
            last_status=(
                self._status_response(subscription.last_update)
                if subscription.last_update
                else None
            ),
        )

    def start_tracking(self, order_id: str) -> TrackingResponse:
        subscription = self.engine.subscribe_to_status(order_id)
        return self._tracking_response(subscription)

    def get_tracking(self, order_id: str) -> Optional[TrackingResponse]:
        subscription = self.engine.tracker.get_subscription(order_id)
        if subscription is None:
            return None
        return self._tracking_response(subscription)

    def stop_tracking(self, order_id: str) -> bool:
        return self.engine.tracker.unsubscribe(order_id)
