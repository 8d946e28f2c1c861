"""Quote negotiation.

QuoteNegotiator answers one QuoteRequest with a QuoteResult. QuoteSession
sits in front of it for a single exchange form: it coalesces bursts of edits
and applies only the response to the most recently issued request.
"""

import asyncio
import logging
import time
from decimal import Decimal
from typing import Callable, Optional

from blockhaven.exchange.catalog import CurrencyCatalog
from blockhaven.exchange.errors import (
    PAIR_INACTIVE_MESSAGE,
    ExchangeError,
    InvalidPair,
    QuoteUnavailable,
)
from blockhaven.exchange.models import (
    AmountBounds,
    AmountDirection,
    EditingSource,
    Flow,
    QuoteRequest,
    QuoteResult,
)
from blockhaven.providers.base import EstimateQuery, ExchangeProvider, ProviderError

logger = logging.getLogger(__name__)

DEFAULT_QUOTE_TIMEOUT = 12.0


class QuoteNegotiator:
    """Bidirectional amount estimation against the provider."""

    def __init__(
        self,
        provider: ExchangeProvider,
        catalog: Optional[CurrencyCatalog] = None,
        timeout: float = DEFAULT_QUOTE_TIMEOUT,
    ):
        self.provider = provider
        self.catalog = catalog
        self.timeout = timeout

    async def estimate(self, request: QuoteRequest) -> QuoteResult:
        """Estimate the dependent amount for one edit.

        Args:
            request: The edit to price

        Returns:
            QuoteResult where the edited amount is taken from the request and
            the other one comes from the provider. Empty when the edited
            amount is blank or not positive.

        Raises:
            InvalidPair: source and destination are the same currency
            QuoteUnavailable: provider failure, malformed answer or timeout
        """
        if request.source_ticker == request.destination_ticker:
            raise InvalidPair(request.source_ticker, request.destination_ticker)

        amount = request.amount
        if amount is None:
            return QuoteResult.empty(request)

        if request.flow is Flow.FIXED:
            self._require_fixed_rate(request)

        try:
            return await asyncio.wait_for(self._negotiate(request, amount), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(
                f"Estimate for {request.source_ticker}->{request.destination_ticker} "
                f"timed out after {self.timeout}s"
            )
            raise QuoteUnavailable("timeout", "The quote took too long. Please try again.")

    def _require_fixed_rate(self, request: QuoteRequest) -> None:
        if self.catalog is None:
            return
        for ticker in (request.source_ticker, request.destination_ticker):
            currency = self.catalog.lookup(ticker)
            if currency is not None and not currency.supports_fixed_rate:
                raise QuoteUnavailable(
                    "fixed_rate_unsupported",
                    f"{ticker.upper()} does not support fixed-rate exchanges",
                )

    def _network(self, ticker: str) -> Optional[str]:
        if self.catalog is None:
            return None
        currency = self.catalog.lookup(ticker)
        return currency.network if currency else None

    async def _negotiate(self, request: QuoteRequest, amount: Decimal) -> QuoteResult:
        query = EstimateQuery(
            source_ticker=request.source_ticker,
            destination_ticker=request.destination_ticker,
            amount=amount,
            direction=request.amount_direction,
            flow=request.flow,
            source_network=self._network(request.source_ticker),
            destination_network=self._network(request.destination_ticker),
        )

        bounds, estimate = await asyncio.gather(
            self._bounds(request),
            self._estimate(query),
        )

        if request.amount_direction is AmountDirection.FROM_SOURCE:
            source_amount, destination_amount = amount, estimate.to_amount
        else:
            source_amount, destination_amount = estimate.from_amount, amount

        if source_amount is None or destination_amount is None:
            raise QuoteUnavailable("malformed_response", "The provider returned an incomplete quote")
        if source_amount <= 0 or destination_amount <= 0:
            raise QuoteUnavailable("malformed_response", "The provider returned an unusable amount")

        rate_lock_id = None
        rate_valid_until = None
        if request.flow is Flow.FIXED:
            rate_lock_id = estimate.rate_id
            rate_valid_until = estimate.valid_until

        violation = bounds.check(source_amount) if bounds else None
        if violation:
            logger.debug(
                f"{request.source_ticker} amount {source_amount} is {violation.value} "
                f"(min={bounds.min_source_amount}, max={bounds.max_source_amount})"
            )

        return QuoteResult(
            source_amount=source_amount,
            destination_amount=destination_amount,
            flow=request.flow,
            edited=request.amount_direction,
            rate_lock_id=rate_lock_id,
            rate_valid_until=rate_valid_until,
            bounds=bounds,
            bound_violation=violation,
            warning_message=estimate.warning_message,
        )

    async def _estimate(self, query: EstimateQuery):
        try:
            return await self.provider.get_estimate(query)
        except ProviderError as e:
            logger.warning(
                f"Estimate failed for {query.source_ticker}->{query.destination_ticker}: "
                f"{e.error or ''} {e.message}"
            )
            if e.error == "pair_is_inactive":
                raise QuoteUnavailable("pair_is_inactive", PAIR_INACTIVE_MESSAGE)
            raise QuoteUnavailable(e.error or "provider_error", e.message)
        except Exception as e:
            logger.error(
                f"Unreadable estimate for {query.source_ticker}->{query.destination_ticker}: {e!r}"
            )
            raise QuoteUnavailable("malformed_response", "The provider returned an unreadable quote")

    async def _bounds(self, request: QuoteRequest) -> Optional[AmountBounds]:
        """Fetch bounds. A failed lookup leaves the estimate without bounds."""
        try:
            return await self.provider.get_range(
                request.source_ticker,
                request.destination_ticker,
                request.flow,
            )
        except ProviderError as e:
            logger.warning(
                f"Range lookup failed for {request.source_ticker}->{request.destination_ticker}: "
                f"{e.message}"
            )
            return None
        except Exception as e:
            logger.error(
                f"Unreadable range for {request.source_ticker}->{request.destination_ticker}: {e!r}"
            )
            return None


class QuoteSession:
    """Sequenced estimates for one exchange form.

    Every call to `request` takes a new generation number. After the debounce
    window only the newest generation reaches the provider, and a response
    whose generation was overtaken while in flight is dropped.
    """

    def __init__(self, negotiator: QuoteNegotiator, debounce: float = 0.0):
        self.negotiator = negotiator
        self.debounce = debounce
        self._generation = 0
        self.latest: Optional[QuoteResult] = None
        self.latest_request: Optional[QuoteRequest] = None
        self.last_error: Optional[ExchangeError] = None

    @property
    def generation(self) -> int:
        return self._generation

    def invalidate(self) -> None:
        """Drop whatever is in flight (form reset or currency change)."""
        self._generation += 1
        self.latest = None
        self.latest_request = None
        self.last_error = None

    def _is_current(self, token: int) -> bool:
        return token == self._generation

    async def request(self, request: QuoteRequest) -> Optional[QuoteResult]:
        """Issue an estimate for the latest edit.

        Returns:
            The applied QuoteResult, or None if a newer edit superseded this one

        Raises:
            ExchangeError: only when this request is still the newest one
        """
        self._generation += 1
        token = self._generation

        if self.debounce > 0:
            await asyncio.sleep(self.debounce)
            if not self._is_current(token):
                logger.debug(f"Quote generation {token} coalesced into {self._generation}")
                return None

        try:
            result = await self.negotiator.estimate(request)
        except ExchangeError as e:
            if not self._is_current(token):
                logger.debug(f"Discarding stale failure from generation {token}: {e.code}")
                return None
            self.latest = None
            self.latest_request = request
            self.last_error = e
            raise

        if not self._is_current(token):
            logger.debug(f"Discarding stale quote from generation {token}")
            return None

        self.latest = result
        self.latest_request = request
        self.last_error = None
        return result


def swap_direction(request: QuoteRequest, result: Optional[QuoteResult] = None) -> QuoteRequest:
    """Reverse the pair.

    The old destination amount becomes the new source amount; the new
    destination amount is left to be derived.
    """
    amount = ""
    if result is not None and result.destination_amount is not None:
        amount = result.destination_amount
    elif request.amount_direction is AmountDirection.FROM_DESTINATION:
        amount = request.edit.amount

    return QuoteRequest(
        source_ticker=request.destination_ticker,
        destination_ticker=request.source_ticker,
        edit=EditingSource(amount),
        flow=request.flow,
    )


class ErrorNoticeThrottle:
    """Decides whether an estimate error should be shown to the user again.

    A notice repeats only when the pair or error code changed, or when the
    window has passed since the last one.
    """

    def __init__(self, window: float = 30.0, clock: Callable[[], float] = time.monotonic):
        self.window = window
        self._clock = clock
        self._last: Optional[tuple[str, str, str]] = None
        self._last_at: float = 0.0

    def should_notify(self, source_ticker: str, destination_ticker: str, code: str) -> bool:
        key = (source_ticker.lower(), destination_ticker.lower(), code)
        now = self._clock()
        if key == self._last and now - self._last_at < self.window:
            return False
        self._last = key
        self._last_at = now
        return True

    def reset(self) -> None:
        self._last = None
        self._last_at = 0.0
