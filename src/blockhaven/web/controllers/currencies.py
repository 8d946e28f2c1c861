"""Currency catalog endpoints."""

from typing import Optional

from fastapi import APIRouter

from blockhaven.exchange.catalog import CatalogFilter
from blockhaven.exchange.models import Flow
from blockhaven.web.contracts.currencies import CurrencyListResponse, CurrencyResponse
from blockhaven.web.services.exchange_service import ExchangeService

router = APIRouter(prefix="/currencies", tags=["currencies"])

# Service instance
_exchange_service = ExchangeService()


@router.get("", response_model=CurrencyListResponse)
async def list_currencies(
    flow: Flow = Flow.FLOATING,
    active: bool = True,
    buy: Optional[bool] = None,
    sell: Optional[bool] = None,
) -> CurrencyListResponse:
    """List tradable currencies, featured first."""
    return await _exchange_service.list_currencies(
        CatalogFilter(active_only=active, flow=flow, supports_buy=buy, supports_sell=sell)
    )


@router.get("/{ticker}", response_model=CurrencyResponse)
async def get_currency(ticker: str) -> CurrencyResponse:
    """Look up one currency by ticker."""
    return await _exchange_service.get_currency(ticker)
