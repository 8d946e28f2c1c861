"""Dry-run exchange provider for development and tests.

Quotes come from a static price table, orders live in memory and advance
one status per poll until they finish.
"""

import logging
import re
import uuid
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from blockhaven.exchange.models import (
    AmountBounds,
    AmountDirection,
    Currency,
    Flow,
    OrderStatus,
    SessionContext,
    utcnow,
)
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

logger = logging.getLogger(__name__)

# Simulated market prices in USD
# These are for demonstration purposes only and should not be used for real trading
SIMULATED_PRICES: dict[str, Decimal] = {
    "btc": Decimal("100000.00"),
    "eth": Decimal("3900.00"),
    "ltc": Decimal("115.00"),
    "xmr": Decimal("195.00"),
    "sol": Decimal("225.00"),
    "trx": Decimal("0.27"),
    "bnb": Decimal("710.00"),
    "xrp": Decimal("2.35"),
    "ada": Decimal("1.05"),
    "doge": Decimal("0.42"),
    "usdt": Decimal("1.00"),
    "usdc": Decimal("1.00"),
}

SIMULATED_CURRENCIES: dict[str, tuple[str, str]] = {
    "btc": ("Bitcoin", "btc"),
    "eth": ("Ethereum", "eth"),
    "ltc": ("Litecoin", "ltc"),
    "xmr": ("Monero", "xmr"),
    "sol": ("Solana", "sol"),
    "trx": ("TRON", "trx"),
    "bnb": ("BNB Smart Chain", "bsc"),
    "xrp": ("XRP", "xrp"),
    "ada": ("Cardano", "ada"),
    "doge": ("Dogecoin", "doge"),
    "usdt": ("Tether", "eth"),
    "usdc": ("USD Coin", "eth"),
}

FEATURED = {"btc", "eth", "usdt", "bnb", "xrp", "ada"}
NO_FIXED_RATE = {"xmr"}
EXTRA_ID_CURRENCIES = {"xrp"}

# Rough address shapes, enough to reject obvious typos
ADDRESS_PATTERNS: dict[str, str] = {
    "btc": r"^(bc1[a-z0-9]{25,62}|[13][a-km-zA-HJ-NP-Z1-9]{25,34})$",
    "ltc": r"^(ltc1[a-z0-9]{25,62}|[LM3][a-km-zA-HJ-NP-Z1-9]{26,33})$",
    "eth": r"^0x[0-9a-fA-F]{40}$",
    "usdt": r"^0x[0-9a-fA-F]{40}$",
    "usdc": r"^0x[0-9a-fA-F]{40}$",
    "bnb": r"^0x[0-9a-fA-F]{40}$",
    "trx": r"^T[1-9A-HJ-NP-Za-km-z]{33}$",
    "xrp": r"^r[1-9A-HJ-NP-Za-km-z]{24,34}$",
}

STATUS_PROGRESSION = [
    OrderStatus.NEW,
    OrderStatus.WAITING,
    OrderStatus.CONFIRMING,
    OrderStatus.EXCHANGING,
    OrderStatus.SENDING,
    OrderStatus.FINISHED,
]

MIN_USD_VALUE = Decimal("2")
FIXED_MAX_USD_VALUE = Decimal("50000")
RATE_VALIDITY = timedelta(minutes=15)
ORDER_VALIDITY = timedelta(hours=1)


class DryRunProvider(ExchangeProvider):
    """Simulated provider with deterministic quotes."""

    def __init__(
        self,
        fee_percent: Decimal = Decimal("0"),
        fixed_rate_markup: Decimal = Decimal("0.005"),
    ):
        self.fee_percent = fee_percent
        self.fixed_rate_markup = fixed_rate_markup
        self._prices = SIMULATED_PRICES.copy()
        self._orders: dict[str, dict] = {}

    @property
    def name(self) -> str:
        return "dryrun"

    def set_price(self, ticker: str, price: Decimal) -> None:
        """Set simulated price for a ticker."""
        self._prices[ticker.lower()] = price

    def _price(self, ticker: str) -> Decimal:
        price = self._prices.get(ticker.lower())
        if price is None:
            raise ProviderError(f"Unknown currency {ticker}", status_code=400, error="pair_is_inactive")
        return price

    def _rate(self, source: str, destination: str, flow: Flow) -> Decimal:
        rate = self._price(source) / self._price(destination)
        rate *= Decimal("1") - self.fee_percent
        if flow is Flow.FIXED:
            rate *= Decimal("1") - self.fixed_rate_markup
        return rate

    async def list_currencies(self, query: CurrencyQuery) -> list[Currency]:
        currencies = []
        for ticker, (name, network) in SIMULATED_CURRENCIES.items():
            supports_fixed = ticker not in NO_FIXED_RATE
            if query.flow is Flow.FIXED and not supports_fixed:
                continue
            currencies.append(
                Currency(
                    ticker=ticker,
                    display_name=name,
                    network=network,
                    supports_fixed_rate=supports_fixed,
                    featured=ticker in FEATURED,
                    is_stable=ticker in {"usdt", "usdc"},
                    is_extra_id_supported=ticker in EXTRA_ID_CURRENCIES,
                )
            )
        return currencies

    async def get_estimate(self, query: EstimateQuery) -> Estimate:
        rate = self._rate(query.source_ticker, query.destination_ticker, query.flow)
        if query.direction is AmountDirection.FROM_SOURCE:
            from_amount = query.amount
            to_amount = (query.amount * rate).quantize(Decimal("0.00000001"))
        else:
            to_amount = query.amount
            from_amount = (query.amount / rate).quantize(Decimal("0.00000001"))

        rate_id = None
        valid_until = None
        if query.flow is Flow.FIXED:
            rate_id = uuid.uuid4().hex
            valid_until = utcnow() + RATE_VALIDITY

        return Estimate(
            from_amount=from_amount,
            to_amount=to_amount,
            rate_id=rate_id,
            valid_until=valid_until,
        )

    async def get_range(
        self,
        source_ticker: str,
        destination_ticker: str,
        flow: Flow,
    ) -> AmountBounds:
        price = self._price(source_ticker)
        self._price(destination_ticker)
        min_amount = (MIN_USD_VALUE / price).quantize(Decimal("0.00000001"))
        max_amount = None
        if flow is Flow.FIXED:
            max_amount = (FIXED_MAX_USD_VALUE / price).quantize(Decimal("0.00000001"))
        return AmountBounds(min_source_amount=min_amount, max_source_amount=max_amount)

    async def validate_address(self, currency: str, address: str) -> AddressCheck:
        pattern = ADDRESS_PATTERNS.get(currency.lower())
        if pattern is None:
            return AddressCheck(result=len(address.strip()) >= 20)
        if re.match(pattern, address.strip()):
            return AddressCheck(result=True)
        return AddressCheck(result=False, message=f"Invalid {currency.upper()} address format")

    async def create_exchange(
        self,
        draft: ExchangeDraft,
        session: Optional[SessionContext] = None,
    ) -> CreatedExchange:
        estimate = await self.get_estimate(
            EstimateQuery(
                source_ticker=draft.source_ticker,
                destination_ticker=draft.destination_ticker,
                amount=(
                    draft.source_amount
                    if draft.direction is AmountDirection.FROM_SOURCE
                    else draft.destination_amount
                ),
                direction=draft.direction,
                flow=draft.flow,
            )
        )
        order_id = uuid.uuid4().hex[:14]
        created_at = utcnow()
        self._orders[order_id] = {"step": 0}

        logger.info(
            f"[dry-run] order {order_id}: {estimate.from_amount} {draft.source_ticker} -> "
            f"{estimate.to_amount} {draft.destination_ticker}"
        )
        return CreatedExchange(
            order_id=order_id,
            deposit_address=f"sim:{draft.source_ticker}:{order_id}",
            payout_address=draft.payout_address,
            from_amount=estimate.from_amount,
            to_amount=estimate.to_amount,
            valid_until=created_at + ORDER_VALIDITY,
            created_at=created_at,
            refund_address=draft.refund_address,
            rate_id=draft.rate_id,
            payout_extra_id=draft.payout_extra_id,
        )

    async def get_exchange_status(self, order_id: str) -> ExchangeState:
        order = self._orders.get(order_id)
        if order is None:
            raise ProviderError(f"Order {order_id} not found", status_code=404, error="not_found")

        status = STATUS_PROGRESSION[order["step"]]
        if order["step"] < len(STATUS_PROGRESSION) - 1:
            order["step"] += 1
        return ExchangeState(order_id=order_id, status=status, updated_at=utcnow())
