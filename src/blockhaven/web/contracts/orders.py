"""Order and tracking contracts."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from blockhaven.exchange.models import AmountDirection, Flow, OrderStatus


class OrderCreateRequest(BaseModel):
    """Order details confirmed by the user."""

    from_currency: str = Field(..., description="Source ticker")
    to_currency: str = Field(..., description="Destination ticker")
    from_amount: Optional[Decimal] = Field(None, description="Amount sent")
    to_amount: Optional[Decimal] = Field(None, description="Amount received")
    address: str = Field(..., description="Payout address")
    flow: Flow = Flow.FLOATING
    direction: AmountDirection = AmountDirection.FROM_SOURCE
    refund_address: Optional[str] = None
    extra_id: Optional[str] = Field(None, description="Payout memo/tag")
    refund_extra_id: Optional[str] = None
    contact_email: Optional[str] = None


class OrderResponse(BaseModel):
    """A created order."""

    success: bool
    order_id: Optional[str] = None
    flow: Optional[Flow] = None
    direction: Optional[AmountDirection] = None
    from_currency: Optional[str] = None
    to_currency: Optional[str] = None
    from_amount: Optional[Decimal] = None
    to_amount: Optional[Decimal] = None
    deposit_address: Optional[str] = None
    deposit_extra_id: Optional[str] = None
    payout_address: Optional[str] = None
    payout_extra_id: Optional[str] = None
    refund_address: Optional[str] = None
    rate_id: Optional[str] = None
    created_at: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    warning_message: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    outcome_unknown: bool = Field(
        False, description="The provider may have created the order despite the error"
    )

    class Config:
        json_encoders = {Decimal: str}


class OrderStatusResponse(BaseModel):
    """Latest known status of an order."""

    success: bool
    order_id: str
    status: Optional[OrderStatus] = None
    label: Optional[str] = None
    description: Optional[str] = None
    is_terminal: bool = False
    amount_from: Optional[Decimal] = None
    amount_to: Optional[Decimal] = None
    payin_hash: Optional[str] = None
    payout_hash: Optional[str] = None
    observed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    class Config:
        json_encoders = {Decimal: str}


class TrackingResponse(BaseModel):
    """State of a status subscription."""

    success: bool
    order_id: str
    active: bool = False
    consecutive_failures: int = 0
    notice: Optional[str] = None
    last_status: Optional[OrderStatusResponse] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
