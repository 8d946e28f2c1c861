"""Errors raised by the exchange engine."""

from typing import Optional

PAIR_INACTIVE_MESSAGE = (
    "This currency pair is currently inactive or not supported. "
    "Please select a different pair."
)


class ExchangeError(Exception):
    """Base class for recoverable exchange engine failures."""

    code = "exchange_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class CatalogUnavailable(ExchangeError):
    """The currency list could not be loaded."""

    code = "catalog_unavailable"


class InvalidPair(ExchangeError):
    """Source and destination cannot be exchanged against each other."""

    code = "invalid_pair"

    def __init__(self, source_ticker: str, destination_ticker: str, message: Optional[str] = None):
        self.source_ticker = source_ticker
        self.destination_ticker = destination_ticker
        super().__init__(
            message or f"Cannot exchange {source_ticker.upper()} for {destination_ticker.upper()}"
        )


class QuoteUnavailable(ExchangeError):
    """No usable estimate; the dependent amount must be shown as unknown."""

    code = "quote_unavailable"

    def __init__(self, reason: str, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or f"Quote unavailable: {reason}")


class StaleQuote(ExchangeError):
    """The fixed-rate lock expired or no longer matches the submitted amounts."""

    code = "stale_quote"


class EmptyAddress(ExchangeError):
    code = "empty_address"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Enter a {currency.upper()} address")


class AddressInvalid(ExchangeError):
    code = "address_invalid"

    def __init__(self, currency: str, message: Optional[str] = None):
        self.currency = currency
        super().__init__(message or f"Enter a valid {currency.upper()} address")


class OrderCreationFailed(ExchangeError):
    """The order was not confirmed. No local state was changed.

    `outcome_unknown` is set for transient provider failures, where the
    provider may have created the order anyway.
    """

    code = "order_creation_failed"

    def __init__(self, reason: str, outcome_unknown: bool = False):
        self.reason = reason
        self.outcome_unknown = outcome_unknown
        message = f"Order creation failed: {reason}"
        if outcome_unknown:
            message += ". The order may still have been created; check your orders before retrying."
        super().__init__(message)


class StatusPollTransientFailure(ExchangeError):
    """A status poll failed; the last known status still stands."""

    code = "status_poll_transient_failure"

    def __init__(self, order_id: str, reason: str):
        self.order_id = order_id
        self.reason = reason
        super().__init__(f"Status poll for {order_id} failed: {reason}")


class OrderNotFound(ExchangeError):
    """The provider does not know the order id."""

    code = "order_not_found"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order {order_id} not found")
