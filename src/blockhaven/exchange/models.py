"""Domain types for the quote and order lifecycle."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import ClassVar, Optional, Union

from blockhaven.exchange.errors import AddressInvalid, EmptyAddress


class Flow(str, Enum):
    """Pricing mode of an exchange."""

    FIXED = "fixed"
    FLOATING = "floating"

    @property
    def provider_value(self) -> str:
        """Flow name on the provider wire."""
        return "fixed-rate" if self is Flow.FIXED else "standard"


class AmountDirection(str, Enum):
    """Which side of the pair the user typed into."""

    FROM_SOURCE = "fromSource"
    FROM_DESTINATION = "fromDestination"

    @property
    def provider_type(self) -> str:
        return "direct" if self is AmountDirection.FROM_SOURCE else "reverse"


class BoundViolation(str, Enum):
    """Advisory flag for a source amount outside provider bounds."""

    BELOW_MINIMUM = "below_minimum"
    ABOVE_MAXIMUM = "above_maximum"


class OrderStatus(str, Enum):
    """Provider-reported order status."""

    NEW = "new"
    WAITING = "waiting"
    CONFIRMING = "confirming"
    EXCHANGING = "exchanging"
    SENDING = "sending"
    FINISHED = "finished"
    FAILED = "failed"
    REFUNDED = "refunded"
    VERIFYING = "verifying"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {OrderStatus.FINISHED, OrderStatus.FAILED, OrderStatus.REFUNDED, OrderStatus.EXPIRED}
)


def parse_amount(value: Union[str, Decimal, int, float, None]) -> Optional[Decimal]:
    """Parse user or provider input into a positive Decimal.

    Returns None for blank, unparseable, non-finite or non-positive input.
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        amount = value
    else:
        text = str(value).strip().replace(",", ".")
        if not text:
            return None
        try:
            amount = Decimal(text)
        except InvalidOperation:
            return None
    if not amount.is_finite() or amount <= 0:
        return None
    return amount


def to_decimal(value) -> Optional[Decimal]:
    """Convert a provider number (int, float or str) to Decimal without float noise."""
    if value is None or value == "":
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (optionally 'Z' suffixed) into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        # epoch milliseconds
        try:
            parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        try:
            parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Currency:
    """A tradable asset as listed by the provider."""

    ticker: str
    display_name: str
    network: str
    is_fiat: bool = False
    supports_fixed_rate: bool = False
    tradable_as_source: bool = True
    tradable_as_destination: bool = True
    color_hint: str = "#6b7280"
    icon_ref: str = ""
    featured: bool = False
    is_stable: bool = False
    is_extra_id_supported: bool = False
    legacy_ticker: str = ""
    token_contract: Optional[str] = None

    @classmethod
    def from_ticker(cls, ticker: str) -> "Currency":
        """Minimal stand-in for a ticker missing from the loaded catalog."""
        return cls(ticker=ticker.lower(), display_name=ticker.upper(), network="")


@dataclass(frozen=True)
class EditingSource:
    """The user typed the amount they send."""

    amount: Union[str, Decimal]
    tag: ClassVar[str] = "editingSource"
    direction: ClassVar[AmountDirection] = AmountDirection.FROM_SOURCE


@dataclass(frozen=True)
class EditingDestination:
    """The user typed the amount they want to receive."""

    amount: Union[str, Decimal]
    tag: ClassVar[str] = "editingDestination"
    direction: ClassVar[AmountDirection] = AmountDirection.FROM_DESTINATION


AmountEdit = Union[EditingSource, EditingDestination]


def edit_for(direction: AmountDirection, amount: Union[str, Decimal]) -> AmountEdit:
    """Build the tagged edit for a direction."""
    if direction is AmountDirection.FROM_DESTINATION:
        return EditingDestination(amount)
    return EditingSource(amount)


@dataclass(frozen=True)
class QuoteRequest:
    """One user edit of the exchange form. Built fresh for every change."""

    source_ticker: str
    destination_ticker: str
    edit: AmountEdit
    flow: Flow = Flow.FLOATING

    @classmethod
    def build(
        cls,
        source_ticker: str,
        destination_ticker: str,
        amount: Union[str, Decimal],
        direction: AmountDirection = AmountDirection.FROM_SOURCE,
        flow: Flow = Flow.FLOATING,
    ) -> "QuoteRequest":
        return cls(
            source_ticker=source_ticker.lower(),
            destination_ticker=destination_ticker.lower(),
            edit=edit_for(AmountDirection(direction), amount),
            flow=Flow(flow),
        )

    @property
    def amount_direction(self) -> AmountDirection:
        return self.edit.direction

    @property
    def amount(self) -> Optional[Decimal]:
        """Parsed edited amount, None when blank or not a positive number."""
        return parse_amount(self.edit.amount)


@dataclass(frozen=True)
class AmountBounds:
    """Provider min/max source amount for a (source, destination, flow) triple."""

    min_source_amount: Decimal
    max_source_amount: Optional[Decimal] = None

    def check(self, source_amount: Optional[Decimal]) -> Optional[BoundViolation]:
        if source_amount is None:
            return None
        if source_amount < self.min_source_amount:
            return BoundViolation.BELOW_MINIMUM
        if self.max_source_amount is not None and source_amount > self.max_source_amount:
            return BoundViolation.ABOVE_MAXIMUM
        return None


@dataclass(frozen=True)
class QuoteResult:
    """Outcome of one estimate round.

    `edited` names the authoritative field; the other amount is derived.
    Both amounts are None for an empty result (nothing to estimate).
    """

    source_amount: Optional[Decimal]
    destination_amount: Optional[Decimal]
    flow: Flow
    edited: AmountDirection
    rate_lock_id: Optional[str] = None
    rate_valid_until: Optional[datetime] = None
    bounds: Optional[AmountBounds] = None
    bound_violation: Optional[BoundViolation] = None
    warning_message: Optional[str] = None

    @classmethod
    def empty(cls, request: QuoteRequest) -> "QuoteResult":
        return cls(
            source_amount=None,
            destination_amount=None,
            flow=request.flow,
            edited=request.amount_direction,
        )

    @property
    def is_empty(self) -> bool:
        return self.source_amount is None or self.destination_amount is None

    @property
    def is_out_of_bounds(self) -> bool:
        return self.bound_violation is not None

    @property
    def derived_amount(self) -> Optional[Decimal]:
        if self.edited is AmountDirection.FROM_SOURCE:
            return self.destination_amount
        return self.source_amount

    @property
    def rate(self) -> Optional[Decimal]:
        if self.is_empty or not self.source_amount:
            return None
        return self.destination_amount / self.source_amount


@dataclass(frozen=True)
class RateLock:
    """Persisted fixed-rate lock for the single active negotiation."""

    rate_lock_id: str
    source_ticker: str
    destination_ticker: str
    source_amount: Decimal
    destination_amount: Decimal
    rate_valid_until: datetime
    captured_at_epoch_ms: int

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.rate_valid_until

    def seconds_remaining(self, now: Optional[datetime] = None) -> int:
        remaining = (self.rate_valid_until - (now or utcnow())).total_seconds()
        return max(0, int(remaining))

    def matches(
        self,
        source_ticker: str,
        destination_ticker: str,
        source_amount: Optional[Decimal],
        destination_amount: Optional[Decimal],
    ) -> bool:
        return (
            self.source_ticker == source_ticker.lower()
            and self.destination_ticker == destination_ticker.lower()
            and source_amount is not None
            and destination_amount is not None
            and self.source_amount == source_amount
            and self.destination_amount == destination_amount
        )


@dataclass(frozen=True)
class AddressValidation:
    """Form state for one address check. Never persisted."""

    currency: str
    address: str
    is_valid: bool
    message: Optional[str] = None
    reason: Optional[str] = None

    def raise_for_invalid(self) -> None:
        """Raise the matching validation error unless the address is valid."""
        if self.is_valid:
            return
        if self.reason == EmptyAddress.code:
            raise EmptyAddress(self.currency)
        raise AddressInvalid(self.currency, self.message)


@dataclass(frozen=True)
class SessionContext:
    """Caller identity injected into order submission."""

    auth_token: Optional[str] = None
    user_id: Optional[str] = None
    user_ip: Optional[str] = None


@dataclass(frozen=True)
class OrderRequest:
    """Everything the user confirmed before submitting an order."""

    source_ticker: str
    destination_ticker: str
    source_amount: Optional[Decimal]
    destination_amount: Optional[Decimal]
    payout_address: str
    flow: Flow = Flow.FLOATING
    direction: AmountDirection = AmountDirection.FROM_SOURCE
    refund_address: Optional[str] = None
    payout_extra_id: Optional[str] = None
    refund_extra_id: Optional[str] = None
    contact_email: Optional[str] = None


@dataclass(frozen=True)
class Order:
    """A created exchange order as reported by the provider."""

    order_id: str
    flow: Flow
    direction: AmountDirection
    source_ticker: str
    destination_ticker: str
    source_amount: Optional[Decimal]
    destination_amount: Optional[Decimal]
    deposit_address: str
    payout_address: str
    refund_address: Optional[str] = None
    rate_lock_id: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    valid_until: Optional[datetime] = None
    deposit_extra_id: Optional[str] = None
    payout_extra_id: Optional[str] = None
    warning_message: Optional[str] = None


@dataclass(frozen=True)
class StatusUpdate:
    """One successful status observation for an order."""

    order_id: str
    status: OrderStatus
    observed_at: datetime = field(default_factory=utcnow)
    amount_from: Optional[Decimal] = None
    amount_to: Optional[Decimal] = None
    payin_hash: Optional[str] = None
    payout_hash: Optional[str] = None
    updated_at: Optional[datetime] = None
