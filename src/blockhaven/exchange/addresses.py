"""Payout and refund address validation."""

import logging
from typing import Union

from blockhaven.exchange.errors import AddressInvalid, EmptyAddress
from blockhaven.exchange.models import AddressValidation, Currency
from blockhaven.providers.base import ExchangeProvider, ProviderError

logger = logging.getLogger(__name__)

VALIDATION_UNAVAILABLE = "validation_unavailable"


def _ticker(currency: Union[Currency, str]) -> str:
    if isinstance(currency, Currency):
        return currency.ticker
    return currency.lower()


class AddressValidator:
    """Checks wallet addresses with the provider before an order is sent."""

    def __init__(self, provider: ExchangeProvider):
        self.provider = provider

    async def validate(self, currency: Union[Currency, str], address: str) -> AddressValidation:
        """Validate a payout address for a currency.

        Blank input is rejected locally without a provider call. A provider
        rejection keeps its message verbatim when one is given.
        """
        ticker = _ticker(currency)
        address = (address or "").strip()

        if not address:
            return AddressValidation(
                currency=ticker,
                address=address,
                is_valid=False,
                message=EmptyAddress(ticker).message,
                reason=EmptyAddress.code,
            )

        try:
            check = await self.provider.validate_address(ticker, address)
        except ProviderError as e:
            logger.warning(f"Address validation for {ticker} unavailable: {e.message}")
            return AddressValidation(
                currency=ticker,
                address=address,
                is_valid=False,
                message="Address could not be verified right now. Please try again.",
                reason=VALIDATION_UNAVAILABLE,
            )

        if check.result:
            return AddressValidation(currency=ticker, address=address, is_valid=True)

        return AddressValidation(
            currency=ticker,
            address=address,
            is_valid=False,
            message=AddressInvalid(ticker, check.message).message,
            reason=AddressInvalid.code,
        )

    async def validate_refund(
        self,
        source_currency: Union[Currency, str],
        address: str,
    ) -> AddressValidation:
        """Validate an optional refund address against the source currency.

        An empty refund address is valid since refunds are opt-in.
        """
        ticker = _ticker(source_currency)
        if not (address or "").strip():
            return AddressValidation(currency=ticker, address="", is_valid=True)
        return await self.validate(ticker, address)
