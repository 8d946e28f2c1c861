"""Currency catalog resolver.

Loads tradable currencies from the provider, removes duplicates and
unusable entries, and keeps a ticker lookup for the rest of the engine.
"""

import logging
from dataclasses import dataclass, replace
from typing import Optional

from blockhaven.exchange.errors import CatalogUnavailable
from blockhaven.exchange.models import Currency, Flow
from blockhaven.providers.base import CurrencyQuery, ExchangeProvider, ProviderError

logger = logging.getLogger(__name__)

DEFAULT_COLOR = "#6b7280"

# Brand colours for well-known tickers
COIN_COLORS: dict[str, str] = {
    "btc": "#f7931a",
    "eth": "#627eea",
    "usdt": "#26a17b",
    "usdc": "#2775ca",
    "bnb": "#f3ba2f",
    "xrp": "#23292f",
    "ada": "#0033ad",
    "sol": "#9945ff",
    "dot": "#e6007a",
    "avax": "#e84142",
    "matic": "#8247e5",
    "link": "#2a5ada",
    "ltc": "#bfbbbb",
    "bch": "#0ac18e",
    "xlm": "#7b00ff",
    "atom": "#2e3148",
    "near": "#00d4aa",
    "ftm": "#1969ff",
    "algo": "#000000",
    "trx": "#ff060a",
    "xtz": "#2c7df7",
    "doge": "#c2a633",
    "xmr": "#ff6600",
}


def color_for(ticker: str) -> str:
    """Get the colour hint for a ticker."""
    return COIN_COLORS.get(ticker.lower(), DEFAULT_COLOR)


@dataclass(frozen=True)
class CatalogFilter:
    """Which currencies to list."""

    active_only: bool = True
    flow: Flow = Flow.FLOATING
    supports_buy: Optional[bool] = None
    supports_sell: Optional[bool] = None

    def to_query(self) -> CurrencyQuery:
        return CurrencyQuery(
            active=True if self.active_only else None,
            flow=self.flow,
            buy=self.supports_buy,
            sell=self.supports_sell,
        )


def sort_key(currency: Currency) -> tuple:
    """Featured first, then display name, ticker as tie-breaker."""
    return (not currency.featured, currency.display_name.casefold(), currency.ticker)


def dedupe(currencies: list[Currency]) -> list[Currency]:
    """Keep one entry per ticker, preferring the featured one.

    Among equally featured duplicates the first listed entry wins.
    """
    by_ticker: dict[str, Currency] = {}
    for currency in currencies:
        existing = by_ticker.get(currency.ticker)
        if existing is None or (currency.featured and not existing.featured):
            by_ticker[currency.ticker] = currency
    return list(by_ticker.values())


class CurrencyCatalog:
    """Ticker-keyed currency catalog backed by an exchange provider."""

    def __init__(self, provider: ExchangeProvider):
        self.provider = provider
        self._currencies: dict[str, Currency] = {}
        self._ordered: list[Currency] = []

    @property
    def is_loaded(self) -> bool:
        return bool(self._currencies)

    @property
    def currencies(self) -> list[Currency]:
        """Currencies from the last load, in presentation order."""
        return list(self._ordered)

    async def load(self, catalog_filter: Optional[CatalogFilter] = None) -> list[Currency]:
        """Load, filter and sort the currency list.

        Args:
            catalog_filter: Listing filter, defaults to active floating-rate currencies

        Returns:
            Currencies ordered featured first, then alphabetically

        Raises:
            CatalogUnavailable: the provider failed or listed nothing usable
        """
        catalog_filter = catalog_filter or CatalogFilter()

        try:
            raw = await self.provider.list_currencies(catalog_filter.to_query())
        except ProviderError as e:
            logger.error(f"Currency list failed: {e.message}")
            raise CatalogUnavailable(f"Could not load currencies: {e.message}")

        currencies = [c for c in raw if self._accept(c, catalog_filter)]
        currencies = dedupe(currencies)
        if not currencies:
            logger.error(f"Currency list is empty ({len(raw)} raw entries)")
            raise CatalogUnavailable("No currencies available")

        ordered = sorted(
            (replace(c, color_hint=color_for(c.ticker)) for c in currencies),
            key=sort_key,
        )
        self._ordered = ordered
        # Lookup spans every listing loaded so far, so a fixed-flow listing
        # does not hide floating-only currencies
        self._currencies.update((c.ticker, c) for c in ordered)

        logger.info(f"Loaded {len(ordered)} currencies ({catalog_filter.flow.value} flow)")
        return list(ordered)

    @staticmethod
    def _accept(currency: Currency, catalog_filter: CatalogFilter) -> bool:
        if not currency.network:
            return False
        if catalog_filter.flow is Flow.FIXED and not currency.supports_fixed_rate:
            return False
        if catalog_filter.supports_buy and not currency.tradable_as_destination:
            return False
        if catalog_filter.supports_sell and not currency.tradable_as_source:
            return False
        return True

    def lookup(self, ticker: str) -> Optional[Currency]:
        """Find a currency from any loaded listing by ticker (case-insensitive)."""
        return self._currencies.get(ticker.lower())

    def resolve(self, ticker: str) -> Currency:
        """Like lookup, but falls back to a bare currency for unknown tickers."""
        return self.lookup(ticker) or Currency.from_ticker(ticker)
