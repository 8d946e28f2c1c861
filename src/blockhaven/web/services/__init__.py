"""Web services wrapping the exchange engine."""

from blockhaven.web.services.exchange_service import ExchangeService

__all__ = [
    "ExchangeService",
]
