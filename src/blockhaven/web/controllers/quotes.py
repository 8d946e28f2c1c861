"""Quote and rate lock endpoints."""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter

from blockhaven.web.contracts.quotes import EstimateRequest, EstimateResponse, RateLockResponse
from blockhaven.web.services.exchange_service import ExchangeService

router = APIRouter(prefix="/quotes", tags=["quotes"])

# Service instance
_exchange_service = ExchangeService()


@router.post("/estimate", response_model=EstimateResponse)
async def estimate(request: EstimateRequest) -> EstimateResponse:
    """Estimate the amount on the other side of the pair.

    Bounds violations are reported in the response but do not fail it.
    """
    return await _exchange_service.estimate(request)


@router.post("/lock", response_model=RateLockResponse)
async def lock_quote(request: EstimateRequest) -> RateLockResponse:
    """Get a fixed-rate quote and keep its rate lock as the active one."""
    return await _exchange_service.lock_quote(request)


@router.get("/lock", response_model=RateLockResponse)
async def get_lock(
    from_currency: Optional[str] = None,
    to_currency: Optional[str] = None,
    from_amount: Optional[Decimal] = None,
    to_amount: Optional[Decimal] = None,
) -> RateLockResponse:
    """Get the active rate lock; pass the displayed pair and amounts to check it still applies."""
    return await _exchange_service.get_lock(from_currency, to_currency, from_amount, to_amount)


@router.delete("/lock", response_model=RateLockResponse)
async def clear_lock() -> RateLockResponse:
    """Drop the active rate lock."""
    return await _exchange_service.clear_lock()
