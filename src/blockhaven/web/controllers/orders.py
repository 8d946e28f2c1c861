"""Order endpoints."""

from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request

from blockhaven.exchange.errors import OrderNotFound
from blockhaven.exchange.models import SessionContext
from blockhaven.web.contracts.orders import (
    OrderCreateRequest,
    OrderResponse,
    OrderStatusResponse,
    TrackingResponse,
)
from blockhaven.web.services.exchange_service import ExchangeService

router = APIRouter(prefix="/orders", tags=["orders"])

# Service instance
_exchange_service = ExchangeService()


def _session_context(request: Request, authorization: Optional[str]) -> SessionContext:
    token = None
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip() or None
    return SessionContext(
        auth_token=token,
        user_ip=request.client.host if request.client else None,
    )


@router.post("", response_model=OrderResponse)
async def create_order(
    body: OrderCreateRequest,
    request: Request,
    authorization: Optional[str] = Header(None),
) -> OrderResponse:
    """Create an exchange order.

    Fixed-rate orders require the active rate lock to match the amounts.
    """
    return await _exchange_service.create_order(body, _session_context(request, authorization))


@router.get("/{order_id}/status", response_model=OrderStatusResponse)
async def get_order_status(order_id: str) -> OrderStatusResponse:
    """Poll the provider once for the order status."""
    try:
        return await _exchange_service.get_status(order_id)
    except OrderNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.post("/{order_id}/track", response_model=TrackingResponse)
async def start_tracking(order_id: str) -> TrackingResponse:
    """Start polling the order in the background until it is terminal."""
    return _exchange_service.start_tracking(order_id)


@router.get("/{order_id}/track", response_model=TrackingResponse)
async def get_tracking(order_id: str) -> TrackingResponse:
    """Get the last status seen by the background poller."""
    tracking = _exchange_service.get_tracking(order_id)
    if tracking is None:
        raise HTTPException(status_code=404, detail=f"Order {order_id} is not being tracked")
    return tracking


@router.delete("/{order_id}/track")
async def stop_tracking(order_id: str) -> dict:
    """Stop polling the order."""
    if not _exchange_service.stop_tracking(order_id):
        raise HTTPException(status_code=404, detail=f"Order {order_id} is not being tracked")
    return {"success": True, "order_id": order_id}
