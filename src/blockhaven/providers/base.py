"""Exchange provider adapter interface.

Adapters talk to the remote liquidity provider and hand the engine typed,
envelope-free payloads. Nothing past this module inspects raw responses.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from blockhaven.exchange.models import (
    AmountBounds,
    AmountDirection,
    Currency,
    Flow,
    OrderStatus,
    SessionContext,
)


class ProviderError(Exception):
    """A provider call failed or returned something unusable."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        error: Optional[str] = None,
        transient: bool = False,
    ):
        self.message = message
        self.status_code = status_code
        self.error = error
        self.transient = transient
        super().__init__(message)


@dataclass
class CurrencyQuery:
    """Filter forwarded to the provider currency listing."""

    active: Optional[bool] = True
    flow: Flow = Flow.FLOATING
    buy: Optional[bool] = None
    sell: Optional[bool] = None


@dataclass
class EstimateQuery:
    """Parameters of one estimated-amount lookup."""

    source_ticker: str
    destination_ticker: str
    amount: Decimal
    direction: AmountDirection
    flow: Flow
    source_network: Optional[str] = None
    destination_network: Optional[str] = None


@dataclass
class Estimate:
    """Normalized estimated-amount response."""

    from_amount: Optional[Decimal]
    to_amount: Optional[Decimal]
    rate_id: Optional[str] = None
    valid_until: Optional[datetime] = None
    warning_message: Optional[str] = None


@dataclass
class AddressCheck:
    """Normalized validate-address response."""

    result: bool
    message: Optional[str] = None


@dataclass
class ExchangeDraft:
    """Body of an order creation call."""

    source_ticker: str
    destination_ticker: str
    payout_address: str
    flow: Flow
    direction: AmountDirection
    source_amount: Optional[Decimal] = None
    destination_amount: Optional[Decimal] = None
    source_network: Optional[str] = None
    destination_network: Optional[str] = None
    refund_address: Optional[str] = None
    payout_extra_id: Optional[str] = None
    refund_extra_id: Optional[str] = None
    contact_email: Optional[str] = None
    rate_id: Optional[str] = None

    def to_payload(self, session: Optional[SessionContext] = None) -> dict[str, Any]:
        """Build the JSON body in provider field names."""
        payload: dict[str, Any] = {
            "fromCurrency": self.source_ticker,
            "toCurrency": self.destination_ticker,
            "fromNetwork": self.source_network or "",
            "toNetwork": self.destination_network or "",
            "address": self.payout_address,
            "flow": self.flow.provider_value,
            "type": self.direction.provider_type,
        }
        if self.direction is AmountDirection.FROM_SOURCE:
            payload["fromAmount"] = str(self.source_amount)
        else:
            payload["toAmount"] = str(self.destination_amount)

        optional = {
            "refundAddress": self.refund_address,
            "extraId": self.payout_extra_id,
            "refundExtraId": self.refund_extra_id,
            "contactEmail": self.contact_email,
            "rateId": self.rate_id,
        }
        payload.update({k: v for k, v in optional.items() if v})

        if session is not None:
            if session.user_id:
                payload["userId"] = session.user_id
            if session.user_ip:
                payload["userIp"] = session.user_ip
        return payload


@dataclass
class CreatedExchange:
    """Normalized order creation response."""

    order_id: str
    deposit_address: str
    payout_address: str
    from_amount: Optional[Decimal]
    to_amount: Optional[Decimal]
    valid_until: Optional[datetime] = None
    created_at: Optional[datetime] = None
    refund_address: Optional[str] = None
    rate_id: Optional[str] = None
    deposit_extra_id: Optional[str] = None
    payout_extra_id: Optional[str] = None
    warning_message: Optional[str] = None


@dataclass
class ExchangeState:
    """Normalized order status response."""

    order_id: str
    status: OrderStatus
    amount_from: Optional[Decimal] = None
    amount_to: Optional[Decimal] = None
    payin_hash: Optional[str] = None
    payout_hash: Optional[str] = None
    updated_at: Optional[datetime] = None


class ExchangeProvider(ABC):
    """Abstract base class for exchange providers.

    Every method raises ProviderError on failure.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name identifier."""
        raise NotImplementedError()

    @abstractmethod
    async def list_currencies(self, query: CurrencyQuery) -> list[Currency]:
        """List tradable currencies, possibly with duplicate tickers."""
        raise NotImplementedError()

    @abstractmethod
    async def get_estimate(self, query: EstimateQuery) -> Estimate:
        """Estimate the dependent amount for one edited amount."""
        raise NotImplementedError()

    @abstractmethod
    async def get_range(
        self,
        source_ticker: str,
        destination_ticker: str,
        flow: Flow,
    ) -> AmountBounds:
        """Get min/max source amount for a pair under a flow."""
        raise NotImplementedError()

    @abstractmethod
    async def validate_address(self, currency: str, address: str) -> AddressCheck:
        """Validate a wallet address for a currency."""
        raise NotImplementedError()

    @abstractmethod
    async def create_exchange(
        self,
        draft: ExchangeDraft,
        session: Optional[SessionContext] = None,
    ) -> CreatedExchange:
        """Create an exchange order."""
        raise NotImplementedError()

    @abstractmethod
    async def get_exchange_status(self, order_id: str) -> ExchangeState:
        """Fetch the current status of an order."""
        raise NotImplementedError()

    async def close(self) -> None:
        """Release network resources."""
        return None
