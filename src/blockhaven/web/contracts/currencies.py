"""Currency catalog contracts."""

from typing import Optional

from pydantic import BaseModel, Field

from blockhaven.exchange.models import Currency


class CurrencyInfo(BaseModel):
    """A tradable currency."""

    ticker: str = Field(..., description="Provider ticker (lowercase)")
    name: str = Field(..., description="Display name")
    network: str = Field(..., description="Network the ticker lives on")
    is_fiat: bool = False
    supports_fixed_rate: bool = False
    tradable_as_source: bool = True
    tradable_as_destination: bool = True
    color: str = Field("#6b7280", description="Brand colour hint")
    image: str = Field("", description="Icon reference")
    featured: bool = False
    is_stable: bool = False
    is_extra_id_supported: bool = Field(False, description="Requires a memo/tag")
    legacy_ticker: str = ""
    token_contract: Optional[str] = None

    @classmethod
    def from_currency(cls, currency: Currency) -> "CurrencyInfo":
        return cls(
            ticker=currency.ticker,
            name=currency.display_name,
            network=currency.network,
            is_fiat=currency.is_fiat,
            supports_fixed_rate=currency.supports_fixed_rate,
            tradable_as_source=currency.tradable_as_source,
            tradable_as_destination=currency.tradable_as_destination,
            color=currency.color_hint,
            image=currency.icon_ref,
            featured=currency.featured,
            is_stable=currency.is_stable,
            is_extra_id_supported=currency.is_extra_id_supported,
            legacy_ticker=currency.legacy_ticker,
            token_contract=currency.token_contract,
        )


class CurrencyListResponse(BaseModel):
    """Currency catalog listing."""

    success: bool
    currencies: list[CurrencyInfo] = Field(default_factory=list)
    total: int = 0
    error: Optional[str] = None
    error_code: Optional[str] = None


class CurrencyResponse(BaseModel):
    """Single currency lookup."""

    success: bool
    currency: Optional[CurrencyInfo] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
