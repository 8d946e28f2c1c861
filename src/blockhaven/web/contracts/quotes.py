"""Quote and rate lock contracts."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from blockhaven.exchange.models import AmountDirection, Flow


class EstimateRequest(BaseModel):
    """Request for an amount estimate.

    `amount` is kept as text: a blank or non-positive value yields an empty
    estimate instead of a validation error.
    """

    from_currency: str = Field(..., description="Source ticker (e.g. btc)")
    to_currency: str = Field(..., description="Destination ticker")
    amount: str = Field(..., description="Amount the user typed")
    direction: AmountDirection = Field(
        AmountDirection.FROM_SOURCE,
        description="fromSource when the user typed the send amount, fromDestination otherwise",
    )
    flow: Flow = Field(Flow.FLOATING, description="fixed or floating")


class EstimateResponse(BaseModel):
    """Estimate with advisory bounds."""

    success: bool = Field(..., description="Whether the estimate was successful")
    from_currency: str
    to_currency: str
    flow: Flow
    direction: AmountDirection
    from_amount: Optional[Decimal] = Field(None, description="Amount sent")
    to_amount: Optional[Decimal] = Field(None, description="Amount received")
    rate: Optional[Decimal] = None
    rate_id: Optional[str] = Field(None, description="Rate lock id (fixed flow only)")
    valid_until: Optional[datetime] = Field(None, description="Rate lock expiry (fixed flow only)")
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None
    out_of_bounds: bool = False
    bound_violation: Optional[str] = None
    warning_message: Optional[str] = None
    error: Optional[str] = Field(None, description="Error message if failed")
    error_code: Optional[str] = None
    notify: bool = Field(False, description="Whether the error should be shown to the user")

    class Config:
        json_encoders = {Decimal: str}


class RateLockResponse(BaseModel):
    """The active fixed-rate lock."""

    success: bool
    active: bool = False
    rate_id: Optional[str] = None
    from_currency: Optional[str] = None
    to_currency: Optional[str] = None
    from_amount: Optional[Decimal] = None
    to_amount: Optional[Decimal] = None
    valid_until: Optional[datetime] = None
    seconds_remaining: int = 0
    countdown: Optional[str] = Field(None, description="e.g. '14:32 remaining'")
    about_to_expire: bool = False
    critically_low: bool = False
    matches: Optional[bool] = Field(None, description="Whether the lock covers the given amounts")
    estimate: Optional[EstimateResponse] = None
    error: Optional[str] = None
    error_code: Optional[str] = None

    class Config:
        json_encoders = {Decimal: str}
